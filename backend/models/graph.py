"""
Knowledge graph records for PaperGraph.

Papers, typed nodes, typed confidence-scored edges, and provenance rows.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional


class NodeType(str, Enum):
    """Node types in the knowledge graph."""
    PAPER = "paper"
    METHOD = "method"
    CONCEPT = "concept"
    DATASET = "dataset"
    METRIC = "metric"


class EdgeType(str, Enum):
    """Relationship types. Extraction never emits CITES or AUTHORED_BY."""
    EXTENDS = "extends"
    IMPROVES = "improves"
    USES = "uses"
    INTRODUCES = "introduces"
    CITES = "cites"
    EVALUATES_ON = "evaluates_on"
    COMPARES_TO = "compares_to"
    AUTHORED_BY = "authored_by"

    @classmethod
    def parse(cls, value: Any) -> Optional["EdgeType"]:
        """Return the matching type, or None for anything outside the enum."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(key)
        except ValueError:
            return None


class ProcessingStatus(str, Enum):
    """Paper processing status, also used by ingestion jobs."""
    PENDING = "pending"
    DOWNLOADING_PDF = "downloading_pdf"
    EXTRACTING_TEXT = "extracting_text"
    CHUNKING = "chunking"
    EXTRACTING_ENTITIES = "extracting_entities"
    RESOLVING_ENTITIES = "resolving_entities"
    VALIDATING = "validating"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)


def normalize_name(name: str) -> str:
    """Soft dedup key for nodes: lower-cased with collapsed whitespace."""
    return " ".join((name or "").lower().split())


def clamp_confidence(value: Any, default: float = 0.5) -> float:
    """Coerce a confidence value into [0.0, 1.0]."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return max(0.0, min(1.0, number))


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Paper:
    """A paper and its processing state."""

    id: str
    title: str
    abstract: Optional[str] = None
    arxiv_id: Optional[str] = None
    doi: Optional[str] = None
    pdf_url: Optional[str] = None
    publication_date: Optional[date] = None
    venue: Optional[str] = None
    raw_text: Optional[str] = None
    processed: bool = False
    status: ProcessingStatus = ProcessingStatus.PENDING
    progress: int = 0
    error: Optional[str] = None
    node_id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self, include_text: bool = False) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "abstract": self.abstract,
            "arxiv_id": self.arxiv_id,
            "doi": self.doi,
            "pdf_url": self.pdf_url,
            "publication_date": _iso(self.publication_date),
            "venue": self.venue,
            "processed": self.processed,
            "status": self.status.value,
            "progress": self.progress,
            "error": self.error,
            "node_id": self.node_id,
            "has_text": bool(self.raw_text),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_text:
            data["raw_text"] = self.raw_text
        return data


@dataclass
class Node:
    """Graph node representing an entity."""

    id: str
    type: NodeType
    name: str
    normalized_name: str
    description: Optional[str] = None
    paper_id: Optional[str] = None
    properties: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
            "normalized_name": self.normalized_name,
            "description": self.description,
            "paper_id": self.paper_id,
            "properties": self.properties,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class Edge:
    """Directed, typed, confidence-scored relationship."""

    id: str
    source_id: str
    target_id: str
    type: EdgeType
    confidence: float = 1.0
    properties: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def key(self) -> tuple[str, str, str]:
        """Identity used when deduplicating traversal results."""
        return (self.source_id, self.target_id, self.type.value)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "target_id": self.target_id,
            "type": self.type.value,
            "confidence": self.confidence,
            "properties": self.properties,
            "created_at": _iso(self.created_at),
        }


@dataclass
class Source:
    """Provenance row linking an edge to the chunk that justified it."""

    id: str
    edge_id: str
    paper_id: str
    page_number: Optional[int] = None
    section: Optional[str] = None
    extracted_text: Optional[str] = None
    span_start: Optional[int] = None
    span_end: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "edge_id": self.edge_id,
            "paper_id": self.paper_id,
            "page_number": self.page_number,
            "section": self.section,
            "extracted_text": self.extracted_text,
            "span_start": self.span_start,
            "span_end": self.span_end,
            "created_at": _iso(self.created_at),
        }
