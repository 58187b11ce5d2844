"""
FastAPI Dependency Injection Module

Builds the stores, completion capability, processor and importer used by the
routers. Tests swap any of these through ``app.dependency_overrides``.
"""
from functools import lru_cache

from fastapi import Depends

from config import settings
from database import db
from graph.graph_store import GraphStore
from importers.arxiv_importer import ArxivImporter
from importers.pdf_fetcher import PDFFetcher
from jobs.job_store import JobStore
from llm import StructuredCompletion, create_llm_provider
from llm.base import BaseLLMProvider
from llm.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from pipeline.processor import PaperProcessor
from retry_policy import RetryPolicy


@lru_cache()
def _memory_graph_store() -> GraphStore:
    """Process-wide in-memory store used when the database is not connected."""
    return GraphStore()


def get_graph_store() -> GraphStore:
    if db.is_connected:
        return GraphStore(db=db)
    return _memory_graph_store()


@lru_cache()
def get_job_store() -> JobStore:
    """Cached job store; resolved after startup so it sees the connected database."""
    return JobStore(db_connection=db if db.is_connected else None)


@lru_cache()
def get_llm_provider() -> BaseLLMProvider:
    return create_llm_provider(settings.default_llm_provider, settings)


@lru_cache()
def get_completion() -> StructuredCompletion:
    """Structured completion over the default provider, with retry policy and circuit breaker."""
    return StructuredCompletion(
        provider=get_llm_provider(),
        retry_policy=RetryPolicy(
            max_attempts=settings.completion_max_attempts,
            base_delay=settings.completion_retry_delay,
            multiplier=settings.completion_retry_multiplier,
        ),
        circuit_breaker=CircuitBreaker(settings.default_llm_provider, CircuitBreakerConfig()),
        max_tokens=settings.llm_max_tokens,
    )


@lru_cache()
def get_pdf_fetcher() -> PDFFetcher:
    return PDFFetcher()


def get_processor(
    store: GraphStore = Depends(get_graph_store),
    completion: StructuredCompletion = Depends(get_completion),
) -> PaperProcessor:
    return PaperProcessor(store, completion, settings=settings)


def get_importer(
    store: GraphStore = Depends(get_graph_store),
    job_store: JobStore = Depends(get_job_store),
    processor: PaperProcessor = Depends(get_processor),
    fetcher: PDFFetcher = Depends(get_pdf_fetcher),
) -> ArxivImporter:
    return ArxivImporter(store, job_store, fetcher=fetcher, processor=processor)
