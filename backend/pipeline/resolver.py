"""
Resolution Stage

Maps extracted mentions to canonical entities (an existing node id, or new)
and restates relationships in terms of canonical names. Ids are not used in
relationships because new entities are not persisted until the mutator runs.
"""

import json
import logging
from typing import Iterable, Optional

from config import settings
from exceptions import CompletionError
from models.graph import Node, normalize_name
from models.pipeline import (
    ExtractionResult,
    ResolutionResult,
    ResolvedEntity,
    ResolvedRelationship,
)

from .prompts import RESOLUTION_SYSTEM_PROMPT, RESOLUTION_USER_PROMPT

logger = logging.getLogger(__name__)


class ResolutionCache:
    """
    Local in-run cache: normalized name -> node id.

    Lives for one paper-processing run. Writes made after ``begin()`` are
    undone by ``rollback()``: new keys are dropped and overwritten keys get
    their previous id back, so ids of rolled-back nodes never leak into
    later chunks.
    """

    def __init__(self):
        self._ids: dict[str, str] = {}
        self._names: dict[str, str] = {}
        self._pending: Optional[list[tuple[str, Optional[str], Optional[str]]]] = None

    def __contains__(self, name: str) -> bool:
        return normalize_name(name) in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def get(self, name: str) -> Optional[str]:
        return self._ids.get(normalize_name(name))

    def put(self, name: str, node_id: str) -> None:
        key = normalize_name(name)
        if not key:
            return
        if self._pending is not None:
            self._pending.append((key, self._ids.get(key), self._names.get(key)))
        self._ids[key] = node_id
        self._names.setdefault(key, name.strip())

    def names(self) -> list[str]:
        """Display names of cached entities, in insertion order."""
        return list(self._names.values())

    def begin(self) -> None:
        self._pending = []

    def commit(self) -> None:
        self._pending = None

    def rollback(self) -> None:
        # Newest first, so a key written twice ends at its pre-begin value.
        for key, previous_id, previous_name in reversed(self._pending or []):
            if previous_id is None:
                self._ids.pop(key, None)
                self._names.pop(key, None)
            else:
                self._ids[key] = previous_id
                self._names[key] = previous_name
        self._pending = None


def _node_summary(node: Node) -> dict:
    return {"id": node.id, "name": node.name, "type": node.type.value}


class ResolutionStage:
    """Resolve one chunk's extraction output against a bounded node sample."""

    def __init__(
        self,
        completion,
        temperature: Optional[float] = None,
        retries: Optional[int] = None,
        prompt_node_limit: Optional[int] = None,
    ):
        self.completion = completion
        self.temperature = settings.resolution_temperature if temperature is None else temperature
        self.retries = retries
        self.prompt_node_limit = (
            settings.resolution_prompt_nodes if prompt_node_limit is None else prompt_node_limit
        )

    def build_prompt(self, extraction: ExtractionResult, existing_nodes: list[Node]) -> str:
        return RESOLUTION_USER_PROMPT.format(
            extracted=json.dumps(extraction.model_dump(mode="json"), indent=2),
            existing=json.dumps(
                [_node_summary(node) for node in existing_nodes[:self.prompt_node_limit]], indent=2
            ),
        )

    async def resolve(
        self,
        extraction: ExtractionResult,
        existing_nodes: Optional[Iterable[Node]] = None,
    ) -> ResolutionResult:
        if extraction.is_empty:
            return ResolutionResult.empty()

        existing_nodes = list(existing_nodes or [])
        try:
            result = await self.completion.complete_model(
                RESOLUTION_SYSTEM_PROMPT,
                self.build_prompt(extraction, existing_nodes),
                ResolutionResult,
                temperature=self.temperature,
                retries=self.retries,
            )
        except CompletionError as e:
            logger.warning(f"Resolution failed, using local fallback: {e.message}")
            return self.resolve_locally(extraction, existing_nodes)

        return self._fill_gaps(result, extraction, existing_nodes)

    def _fill_gaps(
        self,
        result: ResolutionResult,
        extraction: ExtractionResult,
        existing_nodes: list[Node],
    ) -> ResolutionResult:
        """Resolve locally any mentions the completion left out."""
        covered = {normalize_name(e.mention) for e in result.resolved_entities}
        covered |= {normalize_name(e.canonical_name) for e in result.resolved_entities}
        missing = [m for m in extraction.entities if normalize_name(m.mention) not in covered]

        relationships = result.resolved_relationships
        if not relationships and extraction.relationships:
            relationships = self.resolve_locally(extraction, existing_nodes).resolved_relationships

        if not missing and relationships is result.resolved_relationships:
            return result

        local = self.resolve_locally(ExtractionResult(entities=missing), existing_nodes)
        if missing:
            logger.debug(f"Resolved {len(missing)} omitted mention(s) locally")
        return ResolutionResult(
            resolved_entities=result.resolved_entities + local.resolved_entities,
            resolved_relationships=relationships,
        )

    @staticmethod
    def resolve_locally(extraction: ExtractionResult, existing_nodes: Iterable[Node]) -> ResolutionResult:
        """Deterministic fallback: exact normalized-name match against the sample, else new."""
        by_name: dict[str, Node] = {}
        for node in existing_nodes:
            by_name.setdefault(node.normalized_name or normalize_name(node.name), node)

        entities: list[ResolvedEntity] = []
        canonical_names: dict[str, str] = {}
        for mention in extraction.entities:
            key = normalize_name(mention.mention)
            if key in canonical_names:
                continue
            node = by_name.get(key)
            if node is not None:
                entity = ResolvedEntity(
                    mention=mention.mention,
                    canonical_id=node.id,
                    canonical_name=node.name,
                    type=node.type,
                    is_new=False,
                    confidence=1.0,
                )
            else:
                entity = ResolvedEntity(
                    mention=mention.mention,
                    canonical_name=mention.mention,
                    type=mention.type.to_node_type(),
                    is_new=True,
                    confidence=1.0,
                )
            entities.append(entity)
            canonical_names[key] = entity.canonical_name

        relationships = [
            ResolvedRelationship(
                source_name=canonical_names.get(normalize_name(rel.subject), rel.subject),
                target_name=canonical_names.get(normalize_name(rel.object), rel.object),
                type=rel.predicate,
                confidence=rel.confidence,
                evidence=rel.evidence_text,
            )
            for rel in extraction.relationships
        ]
        return ResolutionResult(resolved_entities=entities, resolved_relationships=relationships)
