"""
Graph Store

PostgreSQL-backed storage for papers, nodes, edges and provenance rows.
Falls back to in-memory dictionaries when constructed without a database,
which is how the pipeline runs in development and in tests.
"""

import json
import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime
from typing import Any, Iterable, Optional, Union
from uuid import UUID, uuid4

import asyncpg

from exceptions import InvalidGraphDataError
from models.graph import (
    Edge,
    EdgeType,
    Node,
    NodeType,
    Paper,
    ProcessingStatus,
    Source,
    clamp_confidence,
    normalize_name,
)

logger = logging.getLogger(__name__)

PAPER_UPDATABLE_FIELDS = {
    "title",
    "abstract",
    "doi",
    "pdf_url",
    "publication_date",
    "venue",
    "raw_text",
    "processed",
    "status",
    "progress",
    "error",
    "node_id",
}


def _is_uuid(value: Any) -> bool:
    try:
        UUID(str(value))
        return True
    except (ValueError, TypeError, AttributeError):
        return False


def _parse_json_field(value) -> dict:
    """Parse a JSONB column that might come back as a string or a dict."""
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
            return parsed if isinstance(parsed, dict) else {}
        except (json.JSONDecodeError, TypeError):
            return {}
    return {}


def escape_sql_like(value: str) -> str:
    """Escape LIKE/ILIKE wildcards in user-provided search text."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class GraphStore:
    """
    Storage for the knowledge graph.

    Provides:
    - Paper CRUD and processing status updates
    - Node / edge / provenance creation and lookup
    - Edge fetches for a node set (used by subgraph traversal)
    - Counts by type and per-paper graph deletion for reprocessing
    """

    CREATE_SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS papers (
        id UUID PRIMARY KEY,
        title TEXT NOT NULL,
        abstract TEXT,
        arxiv_id TEXT UNIQUE,
        doi TEXT,
        pdf_url TEXT,
        publication_date DATE,
        venue TEXT,
        raw_text TEXT,
        processed BOOLEAN NOT NULL DEFAULT FALSE,
        status VARCHAR(32) NOT NULL DEFAULT 'pending',
        progress INTEGER NOT NULL DEFAULT 0,
        error TEXT,
        node_id UUID,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    );

    CREATE TABLE IF NOT EXISTS nodes (
        id UUID PRIMARY KEY,
        type VARCHAR(16) NOT NULL
            CHECK (type IN ('paper', 'method', 'concept', 'dataset', 'metric')),
        name TEXT NOT NULL,
        normalized_name TEXT,
        description TEXT,
        properties JSONB DEFAULT '{}'::jsonb,
        paper_id UUID REFERENCES papers(id) ON DELETE SET NULL,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    );

    CREATE TABLE IF NOT EXISTS edges (
        id UUID PRIMARY KEY,
        source_id UUID NOT NULL REFERENCES nodes(id) ON DELETE CASCADE,
        target_id UUID NOT NULL REFERENCES nodes(id) ON DELETE CASCADE,
        type VARCHAR(16) NOT NULL
            CHECK (type IN ('extends', 'improves', 'uses', 'introduces', 'cites',
                            'evaluates_on', 'compares_to', 'authored_by')),
        confidence NUMERIC(3, 2) CHECK (confidence >= 0 AND confidence <= 1),
        properties JSONB DEFAULT '{}'::jsonb,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    );

    CREATE TABLE IF NOT EXISTS sources (
        id UUID PRIMARY KEY,
        edge_id UUID NOT NULL REFERENCES edges(id) ON DELETE CASCADE,
        paper_id UUID NOT NULL REFERENCES papers(id) ON DELETE CASCADE,
        page_number INTEGER,
        section TEXT,
        extracted_text TEXT,
        span_start INTEGER,
        span_end INTEGER,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    );

    CREATE INDEX IF NOT EXISTS idx_papers_processed ON papers(processed);
    CREATE INDEX IF NOT EXISTS idx_nodes_type ON nodes(type);
    CREATE INDEX IF NOT EXISTS idx_nodes_normalized_name ON nodes(normalized_name);
    CREATE INDEX IF NOT EXISTS idx_nodes_paper_id ON nodes(paper_id);
    CREATE INDEX IF NOT EXISTS idx_edges_source_id ON edges(source_id);
    CREATE INDEX IF NOT EXISTS idx_edges_target_id ON edges(target_id);
    CREATE INDEX IF NOT EXISTS idx_edges_type ON edges(type);
    CREATE INDEX IF NOT EXISTS idx_sources_edge_id ON sources(edge_id);
    CREATE INDEX IF NOT EXISTS idx_sources_paper_id ON sources(paper_id);
    """

    def __init__(self, db=None, _bound: bool = False):
        """
        Initialize GraphStore.

        Args:
            db: Database instance from backend/database.py, or an asyncpg
                connection when bound to a transaction
        """
        self.db = db
        self._bound = _bound
        # In-memory fallback for development
        self._papers: dict[str, Paper] = {}
        self._nodes: dict[str, Node] = {}
        self._edges: dict[str, Edge] = {}
        self._sources: dict[str, Source] = {}

    async def init_schema(self) -> None:
        """Create tables if they don't exist."""
        if self.db:
            await self.db.execute(self.CREATE_SCHEMA_SQL)
            logger.info("Graph schema initialized")

    @asynccontextmanager
    async def transaction(self):
        """
        Group writes so they apply together or not at all.

        With a database this yields a store bound to one connection inside
        a transaction. In memory it snapshots the dictionaries and restores
        them if the block raises.
        """
        if self.db is None:
            snapshot = (
                dict(self._papers),
                dict(self._nodes),
                dict(self._edges),
                dict(self._sources),
            )
            try:
                yield self
            except BaseException:
                self._papers, self._nodes, self._edges, self._sources = snapshot
                raise
        elif self._bound:
            async with self.db.transaction():
                yield self
        else:
            async with self.db.transaction() as conn:
                yield GraphStore(db=conn, _bound=True)

    # =========================================================================
    # Papers
    # =========================================================================

    async def create_paper(
        self,
        title: str,
        abstract: Optional[str] = None,
        arxiv_id: Optional[str] = None,
        doi: Optional[str] = None,
        pdf_url: Optional[str] = None,
        publication_date=None,
        venue: Optional[str] = None,
        raw_text: Optional[str] = None,
    ) -> Paper:
        """Create a paper row. arXiv ids are unique when set."""
        if not title or not title.strip():
            raise InvalidGraphDataError("Paper title is required", field="title")

        paper = Paper(
            id=str(uuid4()),
            title=title.strip(),
            abstract=abstract,
            arxiv_id=arxiv_id,
            doi=doi,
            pdf_url=pdf_url,
            publication_date=publication_date,
            venue=venue,
            raw_text=raw_text,
        )

        if self.db:
            return await self._db_create_paper(paper)

        if arxiv_id and any(p.arxiv_id == arxiv_id for p in self._papers.values()):
            raise InvalidGraphDataError(f"Paper already exists for arXiv id {arxiv_id}", field="arxiv_id")
        self._papers[paper.id] = paper
        return paper

    async def get_paper(self, paper_id: str) -> Optional[Paper]:
        """Get a single paper by ID."""
        if self.db:
            if not _is_uuid(paper_id):
                return None
            row = await self.db.fetchrow("SELECT * FROM papers WHERE id = $1", paper_id)
            return self._row_to_paper(row) if row else None
        return self._papers.get(paper_id)

    async def get_paper_by_arxiv_id(self, arxiv_id: str) -> Optional[Paper]:
        if self.db:
            row = await self.db.fetchrow("SELECT * FROM papers WHERE arxiv_id = $1", arxiv_id)
            return self._row_to_paper(row) if row else None
        for paper in self._papers.values():
            if paper.arxiv_id == arxiv_id:
                return paper
        return None

    async def list_papers(
        self,
        limit: int = 20,
        offset: int = 0,
        processed: Optional[bool] = None,
    ) -> list[Paper]:
        """List papers, newest first."""
        if self.db:
            query = "SELECT * FROM papers"
            params: list[Any] = []
            if processed is not None:
                query += " WHERE processed = $1"
                params.append(processed)
            query += f" ORDER BY created_at DESC LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}"
            params.extend([limit, offset])
            rows = await self.db.fetch(query, *params)
            return [self._row_to_paper(row) for row in rows]

        papers = list(self._papers.values())
        if processed is not None:
            papers = [p for p in papers if p.processed == processed]
        papers.reverse()
        return papers[offset:offset + limit]

    async def update_paper(self, paper_id: str, **fields) -> Optional[Paper]:
        """Update the given paper columns. Unknown column names raise."""
        unknown = set(fields) - PAPER_UPDATABLE_FIELDS
        if unknown:
            raise InvalidGraphDataError(f"Cannot update paper fields: {sorted(unknown)}")
        if "status" in fields and fields["status"] is not None:
            fields["status"] = ProcessingStatus(fields["status"])
        if "progress" in fields and fields["progress"] is not None:
            fields["progress"] = max(0, min(100, int(fields["progress"])))

        if self.db:
            if not _is_uuid(paper_id):
                return None
            return await self._db_update_paper(paper_id, fields)

        paper = self._papers.get(paper_id)
        if paper is None:
            return None
        updated = replace(paper, **fields, updated_at=datetime.now())
        self._papers[paper_id] = updated
        return updated

    async def set_paper_status(
        self,
        paper_id: str,
        status: ProcessingStatus,
        progress: Optional[int] = None,
        error: Optional[str] = None,
    ) -> Optional[Paper]:
        """Record a processing status transition."""
        fields: dict[str, Any] = {"status": status}
        if progress is not None:
            fields["progress"] = progress
        if error is not None or status != ProcessingStatus.FAILED:
            fields["error"] = error
        return await self.update_paper(paper_id, **fields)

    async def count_papers(self) -> dict:
        if self.db:
            row = await self.db.fetchrow(
                "SELECT COUNT(*) AS total, COUNT(*) FILTER (WHERE processed) AS processed FROM papers"
            )
            return {"total": row["total"], "processed": row["processed"]}
        papers = list(self._papers.values())
        return {"total": len(papers), "processed": sum(1 for p in papers if p.processed)}

    # =========================================================================
    # Nodes
    # =========================================================================

    async def create_node(
        self,
        node_type: Union[NodeType, str],
        name: str,
        description: Optional[str] = None,
        paper_id: Optional[str] = None,
        properties: Optional[dict] = None,
    ) -> Node:
        """Create a node. Name collisions are not checked here."""
        try:
            node_type = NodeType(node_type)
        except ValueError as e:
            raise InvalidGraphDataError(f"Unknown node type: {node_type}", field="type") from e
        if not name or not name.strip():
            raise InvalidGraphDataError("Node name is required", field="name")

        node = Node(
            id=str(uuid4()),
            type=node_type,
            name=name.strip(),
            normalized_name=normalize_name(name),
            description=description,
            paper_id=paper_id,
            properties=properties or {},
        )

        if self.db:
            await self.db.execute(
                """
                INSERT INTO nodes (id, type, name, normalized_name, description, properties, paper_id,
                                   created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                """,
                node.id,
                node.type.value,
                node.name,
                node.normalized_name,
                node.description,
                json.dumps(node.properties),
                node.paper_id,
                node.created_at,
                node.updated_at,
            )
        else:
            self._nodes[node.id] = node
        return node

    async def get_node(self, node_id: str) -> Optional[Node]:
        """Get a single node by ID."""
        if self.db:
            if not _is_uuid(node_id):
                return None
            row = await self.db.fetchrow("SELECT * FROM nodes WHERE id = $1", node_id)
            return self._row_to_node(row) if row else None
        return self._nodes.get(node_id)

    async def get_nodes_by_ids(self, node_ids: Iterable[str]) -> list[Node]:
        ids = [node_id for node_id in dict.fromkeys(node_ids)]
        if not ids:
            return []
        if self.db:
            ids = [node_id for node_id in ids if _is_uuid(node_id)]
            rows = await self.db.fetch(
                "SELECT * FROM nodes WHERE id = ANY($1::uuid[]) ORDER BY created_at, id",
                ids,
            )
            return [self._row_to_node(row) for row in rows]
        return [self._nodes[node_id] for node_id in ids if node_id in self._nodes]

    async def find_node_by_normalized_name(self, name: str) -> Optional[Node]:
        """Case-insensitive lookup on the soft dedup key; oldest match wins."""
        key = normalize_name(name)
        if not key:
            return None
        if self.db:
            row = await self.db.fetchrow(
                """
                SELECT * FROM nodes
                WHERE normalized_name = $1 OR LOWER(name) = $1
                ORDER BY created_at, id
                LIMIT 1
                """,
                key,
            )
            return self._row_to_node(row) if row else None
        for node in self._nodes.values():
            if node.normalized_name == key:
                return node
        return None

    async def list_nodes(
        self,
        node_type: Optional[Union[NodeType, str]] = None,
        search: Optional[str] = None,
        paper_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Node]:
        """List nodes with optional type / name-substring / owning-paper filters."""
        node_type = NodeType(node_type) if node_type else None

        if self.db:
            conditions = []
            params: list[Any] = []
            if node_type:
                params.append(node_type.value)
                conditions.append(f"type = ${len(params)}")
            if search:
                params.append(f"%{escape_sql_like(search)}%")
                conditions.append(f"name ILIKE ${len(params)}")
            if paper_id:
                if not _is_uuid(paper_id):
                    return []
                params.append(paper_id)
                conditions.append(f"paper_id = ${len(params)}")
            where = f" WHERE {' AND '.join(conditions)}" if conditions else ""
            params.extend([limit, offset])
            rows = await self.db.fetch(
                f"SELECT * FROM nodes{where} ORDER BY created_at, id "
                f"LIMIT ${len(params) - 1} OFFSET ${len(params)}",
                *params,
            )
            return [self._row_to_node(row) for row in rows]

        nodes = list(self._nodes.values())
        if node_type:
            nodes = [n for n in nodes if n.type == node_type]
        if search:
            needle = search.lower()
            nodes = [n for n in nodes if needle in n.name.lower()]
        if paper_id:
            nodes = [n for n in nodes if n.paper_id == paper_id]
        return nodes[offset:offset + limit]

    async def count_nodes_by_type(self) -> dict[str, int]:
        if self.db:
            rows = await self.db.fetch("SELECT type, COUNT(*) AS count FROM nodes GROUP BY type")
            return {row["type"]: row["count"] for row in rows}
        counts: dict[str, int] = {}
        for node in self._nodes.values():
            counts[node.type.value] = counts.get(node.type.value, 0) + 1
        return counts

    # =========================================================================
    # Edges
    # =========================================================================

    async def create_edge(
        self,
        source_id: str,
        target_id: str,
        edge_type: Union[EdgeType, str],
        confidence: float = 1.0,
        properties: Optional[dict] = None,
    ) -> Edge:
        """Create an edge. Confidence is clamped into [0, 1]."""
        parsed_type = EdgeType.parse(edge_type)
        if parsed_type is None:
            raise InvalidGraphDataError(f"Unknown edge type: {edge_type}", field="type")

        edge = Edge(
            id=str(uuid4()),
            source_id=source_id,
            target_id=target_id,
            type=parsed_type,
            confidence=round(clamp_confidence(confidence), 2),
            properties=properties or {},
        )

        if self.db:
            try:
                await self.db.execute(
                    """
                    INSERT INTO edges (id, source_id, target_id, type, confidence, properties, created_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7)
                    """,
                    edge.id,
                    edge.source_id,
                    edge.target_id,
                    edge.type.value,
                    edge.confidence,
                    json.dumps(edge.properties),
                    edge.created_at,
                )
            except asyncpg.ForeignKeyViolationError as e:
                raise InvalidGraphDataError("Edge endpoint does not exist", field="source_id") from e
            return edge

        missing = [node_id for node_id in (source_id, target_id) if node_id not in self._nodes]
        if missing:
            raise InvalidGraphDataError(f"Edge endpoint does not exist: {missing[0]}", field="source_id")
        self._edges[edge.id] = edge
        return edge

    async def get_edge(self, edge_id: str) -> Optional[Edge]:
        if self.db:
            if not _is_uuid(edge_id):
                return None
            row = await self.db.fetchrow("SELECT * FROM edges WHERE id = $1", edge_id)
            return self._row_to_edge(row) if row else None
        return self._edges.get(edge_id)

    async def list_edges(
        self,
        edge_type: Optional[Union[EdgeType, str]] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Edge]:
        edge_type = EdgeType(edge_type) if edge_type else None

        if self.db:
            if edge_type:
                rows = await self.db.fetch(
                    "SELECT * FROM edges WHERE type = $1 ORDER BY created_at, id LIMIT $2 OFFSET $3",
                    edge_type.value, limit, offset,
                )
            else:
                rows = await self.db.fetch(
                    "SELECT * FROM edges ORDER BY created_at, id LIMIT $1 OFFSET $2",
                    limit, offset,
                )
            return [self._row_to_edge(row) for row in rows]

        edges = list(self._edges.values())
        if edge_type:
            edges = [e for e in edges if e.type == edge_type]
        return edges[offset:offset + limit]

    async def get_edges_touching(self, node_ids: Iterable[str]) -> list[Edge]:
        """All edges with either endpoint in ``node_ids``, in one query."""
        ids = list(dict.fromkeys(node_ids))
        if not ids:
            return []
        if self.db:
            ids = [node_id for node_id in ids if _is_uuid(node_id)]
            rows = await self.db.fetch(
                """
                SELECT * FROM edges
                WHERE source_id = ANY($1::uuid[]) OR target_id = ANY($1::uuid[])
                ORDER BY created_at, id
                """,
                ids,
            )
            return [self._row_to_edge(row) for row in rows]

        id_set = set(ids)
        return [e for e in self._edges.values() if e.source_id in id_set or e.target_id in id_set]

    async def get_node_edges(self, node_id: str) -> tuple[list[Edge], list[Edge]]:
        """(outgoing, incoming) edges of one node."""
        edges = await self.get_edges_touching([node_id])
        outgoing = [e for e in edges if e.source_id == node_id]
        incoming = [e for e in edges if e.target_id == node_id]
        return outgoing, incoming

    async def count_edges_by_type(self) -> dict[str, int]:
        if self.db:
            rows = await self.db.fetch("SELECT type, COUNT(*) AS count FROM edges GROUP BY type")
            return {row["type"]: row["count"] for row in rows}
        counts: dict[str, int] = {}
        for edge in self._edges.values():
            counts[edge.type.value] = counts.get(edge.type.value, 0) + 1
        return counts

    # =========================================================================
    # Provenance
    # =========================================================================

    async def create_source(
        self,
        edge_id: str,
        paper_id: str,
        extracted_text: Optional[str] = None,
        section: Optional[str] = None,
        page_number: Optional[int] = None,
        span_start: Optional[int] = None,
        span_end: Optional[int] = None,
    ) -> Source:
        source = Source(
            id=str(uuid4()),
            edge_id=edge_id,
            paper_id=paper_id,
            page_number=page_number,
            section=section,
            extracted_text=extracted_text,
            span_start=span_start,
            span_end=span_end,
        )

        if self.db:
            await self.db.execute(
                """
                INSERT INTO sources (id, edge_id, paper_id, page_number, section, extracted_text,
                                     span_start, span_end, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                """,
                source.id,
                source.edge_id,
                source.paper_id,
                source.page_number,
                source.section,
                source.extracted_text,
                source.span_start,
                source.span_end,
                source.created_at,
            )
            return source

        if edge_id not in self._edges:
            raise InvalidGraphDataError(f"Edge does not exist: {edge_id}", field="edge_id")
        self._sources[source.id] = source
        return source

    async def list_sources(self, edge_id: str) -> list[Source]:
        if self.db:
            if not _is_uuid(edge_id):
                return []
            rows = await self.db.fetch(
                "SELECT * FROM sources WHERE edge_id = $1 ORDER BY created_at, id",
                edge_id,
            )
            return [self._row_to_source(row) for row in rows]
        return [s for s in self._sources.values() if s.edge_id == edge_id]

    # =========================================================================
    # Reprocessing / stats
    # =========================================================================

    async def delete_paper_graph(self, paper_id: str) -> dict[str, int]:
        """
        Delete every node owned by the paper and every edge touching them.

        Edges go first so no edge is ever left pointing at a deleted node.
        Provenance rows of deleted edges go with them.
        """
        if self.db:
            edge_status = await self.db.execute(
                """
                DELETE FROM edges
                WHERE source_id IN (SELECT id FROM nodes WHERE paper_id = $1)
                   OR target_id IN (SELECT id FROM nodes WHERE paper_id = $1)
                """,
                paper_id,
            )
            node_status = await self.db.execute("DELETE FROM nodes WHERE paper_id = $1", paper_id)
            # Parse "DELETE N" to get count
            edges_deleted = int(edge_status.split()[-1]) if edge_status else 0
            nodes_deleted = int(node_status.split()[-1]) if node_status else 0
        else:
            owned = {node_id for node_id, node in self._nodes.items() if node.paper_id == paper_id}
            doomed_edges = {
                edge_id for edge_id, edge in self._edges.items()
                if edge.source_id in owned or edge.target_id in owned
            }
            for edge_id in doomed_edges:
                del self._edges[edge_id]
            self._sources = {
                source_id: source for source_id, source in self._sources.items()
                if source.edge_id not in doomed_edges
            }
            for node_id in owned:
                del self._nodes[node_id]
            edges_deleted, nodes_deleted = len(doomed_edges), len(owned)

        logger.info(f"Deleted graph for paper {paper_id}: {edges_deleted} edges, {nodes_deleted} nodes")
        return {"edges_deleted": edges_deleted, "nodes_deleted": nodes_deleted}

    async def get_stats(self) -> dict:
        """Totals and per-type counts for nodes and edges, plus paper counts."""
        node_counts = await self.count_nodes_by_type()
        edge_counts = await self.count_edges_by_type()
        return {
            "nodes": {"total": sum(node_counts.values()), "by_type": node_counts},
            "edges": {"total": sum(edge_counts.values()), "by_type": edge_counts},
            "papers": await self.count_papers(),
        }

    # =========================================================================
    # Database Methods
    # =========================================================================

    async def _db_create_paper(self, paper: Paper) -> Paper:
        try:
            await self.db.execute(
                """
                INSERT INTO papers (id, title, abstract, arxiv_id, doi, pdf_url, publication_date,
                                    venue, raw_text, processed, status, progress, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
                """,
                paper.id,
                paper.title,
                paper.abstract,
                paper.arxiv_id,
                paper.doi,
                paper.pdf_url,
                paper.publication_date,
                paper.venue,
                paper.raw_text,
                paper.processed,
                paper.status.value,
                paper.progress,
                paper.created_at,
                paper.updated_at,
            )
        except asyncpg.UniqueViolationError as e:
            raise InvalidGraphDataError(
                f"Paper already exists for arXiv id {paper.arxiv_id}", field="arxiv_id"
            ) from e
        return paper

    async def _db_update_paper(self, paper_id: str, fields: dict) -> Optional[Paper]:
        assignments = []
        params: list[Any] = [paper_id]
        for column, value in fields.items():
            if isinstance(value, ProcessingStatus):
                value = value.value
            params.append(value)
            assignments.append(f"{column} = ${len(params)}")
        params.append(datetime.now())
        assignments.append(f"updated_at = ${len(params)}")

        row = await self.db.fetchrow(
            f"UPDATE papers SET {', '.join(assignments)} WHERE id = $1 RETURNING *",
            *params,
        )
        return self._row_to_paper(row) if row else None

    @staticmethod
    def _row_to_paper(row) -> Paper:
        return Paper(
            id=str(row["id"]),
            title=row["title"],
            abstract=row["abstract"],
            arxiv_id=row["arxiv_id"],
            doi=row["doi"],
            pdf_url=row["pdf_url"],
            publication_date=row["publication_date"],
            venue=row["venue"],
            raw_text=row["raw_text"],
            processed=bool(row["processed"]),
            status=ProcessingStatus(row["status"]),
            progress=row["progress"] or 0,
            error=row["error"],
            node_id=str(row["node_id"]) if row["node_id"] else None,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_node(row) -> Node:
        return Node(
            id=str(row["id"]),
            type=NodeType(row["type"]),
            name=row["name"],
            normalized_name=row["normalized_name"] or normalize_name(row["name"]),
            description=row["description"],
            paper_id=str(row["paper_id"]) if row["paper_id"] else None,
            properties=_parse_json_field(row["properties"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_edge(row) -> Edge:
        return Edge(
            id=str(row["id"]),
            source_id=str(row["source_id"]),
            target_id=str(row["target_id"]),
            type=EdgeType(row["type"]),
            confidence=float(row["confidence"]) if row["confidence"] is not None else 0.0,
            properties=_parse_json_field(row["properties"]),
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_source(row) -> Source:
        return Source(
            id=str(row["id"]),
            edge_id=str(row["edge_id"]),
            paper_id=str(row["paper_id"]),
            page_number=row["page_number"],
            section=row["section"],
            extracted_text=row["extracted_text"],
            span_start=row["span_start"],
            span_end=row["span_end"],
            created_at=row["created_at"],
        )
