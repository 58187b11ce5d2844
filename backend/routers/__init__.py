"""API Routers for PaperGraph."""

from . import graph, ingest, papers

__all__ = [
    "graph",
    "ingest",
    "papers",
]
