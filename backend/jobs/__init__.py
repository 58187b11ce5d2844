"""
Ingestion Jobs

Durable tracking for arXiv ingestion requests.
"""

from .job_store import IngestionJob, JobStore

__all__ = ["JobStore", "IngestionJob"]
