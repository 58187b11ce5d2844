"""
Graph Mutator

Persists one chunk's validated output: new nodes, edges and one provenance
row per edge. Endpoint names are resolved through the in-run cache, then the
persisted graph, then the similarity strategy over cached names.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from config import settings
from graph.similarity import CompositeSimilarity
from models.graph import EdgeType, Node, NodeType, Paper, normalize_name
from models.pipeline import ResolutionResult, ResolvedEntity, ValidationResult

from .chunker import Chunk
from .resolver import ResolutionCache

logger = logging.getLogger(__name__)


@dataclass
class MutationResult:
    nodes_created: int = 0
    edges_created: int = 0
    sources_created: int = 0
    relationships_unresolved: int = 0
    new_nodes: list[Node] = field(default_factory=list)


class GraphMutator:
    """Translate validated relationships into persisted edges with provenance."""

    def __init__(
        self,
        store,
        similarity: Optional[CompositeSimilarity] = None,
        evidence_max_chars: Optional[int] = None,
    ):
        self.store = store
        self.similarity = similarity or CompositeSimilarity(threshold=settings.name_similarity_threshold)
        self.evidence_max_chars = (
            settings.evidence_max_chars if evidence_max_chars is None else evidence_max_chars
        )

    async def apply(
        self,
        paper: Paper,
        chunk: Chunk,
        resolution: ResolutionResult,
        validation: ValidationResult,
        cache: ResolutionCache,
        store=None,
    ) -> MutationResult:
        """
        Persist one chunk.

        Args:
            store: store to write through, e.g. one bound to a transaction;
                defaults to the mutator's own store
        """
        store = store or self.store
        result = MutationResult()

        for entity in resolution.resolved_entities:
            await self._ensure_node(store, paper, entity, cache, result)

        for rel in validation.accepted:
            source_id = await self._resolve_endpoint(store, rel.source_name, cache)
            target_id = await self._resolve_endpoint(store, rel.target_name, cache)
            if source_id is None or target_id is None:
                missing = rel.source_name if source_id is None else rel.target_name
                logger.info(f"Dropping relationship {rel.source_name} -{rel.type}-> {rel.target_name}: "
                            f"unresolved endpoint '{missing}'")
                result.relationships_unresolved += 1
                continue
            if source_id == target_id:
                logger.info(f"Dropping relationship {rel.source_name} -{rel.type}-> {rel.target_name}: "
                            f"both endpoints resolve to node {source_id}")
                result.relationships_unresolved += 1
                continue

            edge = await store.create_edge(
                source_id,
                target_id,
                EdgeType.parse(rel.type) or EdgeType.USES,
                confidence=rel.confidence,
                properties={"paper_id": paper.id, "chunk_index": chunk.index},
            )
            result.edges_created += 1

            evidence = rel.evidence.strip()
            span_start = span_end = None
            if evidence:
                position = chunk.text.find(evidence)
                if position != -1:
                    span_start = chunk.start + position
                    span_end = span_start + len(evidence)

            await store.create_source(
                edge_id=edge.id,
                paper_id=paper.id,
                extracted_text=evidence[:self.evidence_max_chars] or None,
                section=getattr(chunk.section, "value", chunk.section),
                span_start=span_start,
                span_end=span_end,
            )
            result.sources_created += 1

        return result

    async def _ensure_node(
        self,
        store,
        paper: Paper,
        entity: ResolvedEntity,
        cache: ResolutionCache,
        result: MutationResult,
    ) -> str:
        """Return the node id for an entity, creating the node at most once per run."""
        node_id = cache.get(entity.canonical_name)

        if node_id is None and entity.canonical_id and not entity.is_new:
            existing = await store.get_node(entity.canonical_id)
            if existing is not None:
                node_id = existing.id

        if node_id is None:
            existing = await store.find_node_by_normalized_name(entity.canonical_name)
            if existing is not None:
                node_id = existing.id

        if node_id is None:
            # Paper nodes represent other papers, so they are not owned by this one
            owner = None if entity.type == NodeType.PAPER else paper.id
            node = await store.create_node(
                entity.type,
                entity.canonical_name,
                paper_id=owner,
                properties={"source_paper_id": paper.id, "resolution_confidence": entity.confidence},
            )
            node_id = node.id
            result.nodes_created += 1
            result.new_nodes.append(node)

        cache.put(entity.canonical_name, node_id)
        if entity.mention and normalize_name(entity.mention) != normalize_name(entity.canonical_name):
            cache.put(entity.mention, node_id)
        return node_id

    async def _resolve_endpoint(self, store, name: str, cache: ResolutionCache) -> Optional[str]:
        node_id = cache.get(name)
        if node_id is not None:
            return node_id

        existing = await store.find_node_by_normalized_name(name)
        if existing is not None:
            cache.put(name, existing.id)
            return existing.id

        match = self.similarity.best_match(name, cache.names())
        if match is not None:
            logger.debug(f"Matched '{name}' to '{match.name}' ({match.strategy}, {match.score:.2f})")
            return cache.get(match.name)
        return None
