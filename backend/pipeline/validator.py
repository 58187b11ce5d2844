"""
Validation Stage

The completion capability checks temporal consistency, type compatibility
and contradictions. A local safety net then runs over its verdicts:

- unknown relationship types are coerced to ``uses``
- confidence adjustments are applied and clamped
- self-loops and ``evaluates_on`` edges into non-dataset entities are rejected
- anything below the confidence floor is rejected even if accepted
- relationships the capability did not mention are rejected
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from config import settings
from exceptions import CompletionError
from models.graph import EdgeType, Node, NodeType, clamp_confidence, normalize_name
from models.pipeline import (
    AcceptedVerdict,
    ConfidenceAdjustment,
    RejectedRelationship,
    ResolutionResult,
    ResolvedRelationship,
    ValidationResponse,
    ValidationResult,
)

from .prompts import VALIDATION_SYSTEM_PROMPT, VALIDATION_USER_PROMPT

logger = logging.getLogger(__name__)

NOT_ACCEPTED_REASON = "not accepted by validator"


@dataclass
class ValidationContext:
    """Graph context handed to the validator for one chunk."""
    nodes: list[Node] = field(default_factory=list)
    publication_date: Optional[date] = None
    title: Optional[str] = None


def coerce_edge_type(value: str) -> str:
    """Return a valid edge type string; anything unknown becomes ``uses``."""
    parsed = EdgeType.parse(value)
    if parsed is None:
        logger.info(f"Coercing unknown relationship type '{value}' to 'uses'")
        return EdgeType.USES.value
    return parsed.value


def _relationship_key(source: Optional[str], target: Optional[str], rel_type: Optional[str]) -> tuple:
    return (normalize_name(source or ""), normalize_name(target or ""), (rel_type or "").lower())


class ValidationStage:
    """Accept, reject or adjust one chunk's resolved relationships."""

    def __init__(
        self,
        completion,
        temperature: Optional[float] = None,
        retries: Optional[int] = None,
        min_confidence: Optional[float] = None,
        accept_on_failure: Optional[bool] = None,
        context_limit: Optional[int] = None,
    ):
        self.completion = completion
        self.temperature = settings.validation_temperature if temperature is None else temperature
        self.retries = retries
        self.min_confidence = settings.min_edge_confidence if min_confidence is None else min_confidence
        self.accept_on_failure = (
            settings.validation_accept_on_failure if accept_on_failure is None else accept_on_failure
        )
        self.context_limit = settings.context_node_sample if context_limit is None else context_limit

    def build_prompt(
        self,
        resolution: ResolutionResult,
        relationships: list[ResolvedRelationship],
        context: ValidationContext,
    ) -> str:
        entities = [
            {"name": e.canonical_name, "type": e.type.value, "isNew": e.is_new}
            for e in resolution.resolved_entities
        ]
        nodes = [{"name": n.name, "type": n.type.value} for n in context.nodes[:self.context_limit]]
        return VALIDATION_USER_PROMPT.format(
            title=context.title or "unknown",
            publication_date=context.publication_date.isoformat() if context.publication_date else "unknown",
            entities=json.dumps(entities, indent=2),
            relationships=json.dumps([r.model_dump(mode="json") for r in relationships], indent=2),
            context=json.dumps(nodes, indent=2),
        )

    async def validate(
        self,
        resolution: ResolutionResult,
        context: Optional[ValidationContext] = None,
    ) -> ValidationResult:
        if not resolution.resolved_relationships:
            return ValidationResult.empty()

        context = context or ValidationContext()
        relationships = [
            rel.model_copy(update={"id": f"r{i}", "type": coerce_edge_type(rel.type)})
            for i, rel in enumerate(resolution.resolved_relationships, start=1)
        ]

        try:
            response = await self.completion.complete_model(
                VALIDATION_SYSTEM_PROMPT.format(min_confidence=self.min_confidence),
                self.build_prompt(resolution, relationships, context),
                ValidationResponse,
                temperature=self.temperature,
                retries=self.retries,
            )
        except CompletionError as e:
            if not self.accept_on_failure:
                logger.warning(f"Validation failed, accepting nothing: {e.message}")
                return ValidationResult.empty()
            logger.warning(f"Validation failed, accepting all relationships: {e.message}")
            response = ValidationResponse(accepted=[AcceptedVerdict(id=rel.id) for rel in relationships])

        return self.apply_verdicts(response, relationships, resolution, context)

    def apply_verdicts(
        self,
        response: ValidationResponse,
        relationships: list[ResolvedRelationship],
        resolution: ResolutionResult,
        context: ValidationContext,
    ) -> ValidationResult:
        """Turn raw verdicts into disjoint accepted/rejected lists and run the safety net."""
        by_id = {rel.id: rel for rel in relationships}
        by_key = {}
        for rel in relationships:
            by_key.setdefault(_relationship_key(rel.source_name, rel.target_name, rel.type), rel.id)

        def lookup(rel_id: Optional[str], verdict: Optional[AcceptedVerdict]) -> Optional[str]:
            if rel_id in by_id:
                return rel_id
            if verdict is not None:
                return by_key.get(_relationship_key(verdict.source_name, verdict.target_name, verdict.type))
            return None

        rejected_reasons: dict[str, str] = {}
        for verdict in response.rejected:
            rel_id = lookup(verdict.relationship_id, verdict.relationship)
            if rel_id and rel_id not in rejected_reasons:
                rejected_reasons[rel_id] = verdict.reason or "rejected by validator"

        confidences: dict[str, float] = {}
        reasons: dict[str, str] = {}
        accepted_ids: list[str] = []
        for verdict in response.accepted:
            rel_id = lookup(verdict.id, verdict)
            if rel_id is None or rel_id in rejected_reasons or rel_id in accepted_ids:
                continue
            accepted_ids.append(rel_id)
            if verdict.confidence is not None and verdict.confidence != by_id[rel_id].confidence:
                confidences[rel_id] = verdict.confidence
                reasons[rel_id] = "confidence revised by validator"

        for adjustment in response.confidence_adjustments:
            rel_id = lookup(adjustment.relationship_id, None)
            if rel_id in accepted_ids:
                confidences[rel_id] = clamp_confidence(adjustment.adjusted_confidence)
                reasons[rel_id] = adjustment.reason or "confidence adjusted by validator"

        entity_types = {n.normalized_name: n.type for n in context.nodes}
        entity_types.update({normalize_name(e.canonical_name): e.type for e in resolution.resolved_entities})

        accepted: list[ResolvedRelationship] = []
        adjustments: list[ConfidenceAdjustment] = []
        for rel_id in accepted_ids:
            rel = by_id[rel_id]
            confidence = confidences.get(rel_id, rel.confidence)
            reason = self._safety_net_reason(rel, confidence, entity_types)
            if reason:
                rejected_reasons[rel_id] = reason
                continue
            if rel_id in confidences:
                adjustments.append(
                    ConfidenceAdjustment(
                        relationship_id=rel_id,
                        original_confidence=rel.confidence,
                        adjusted_confidence=confidence,
                        reason=reasons[rel_id],
                    )
                )
                rel = rel.model_copy(update={"confidence": confidence})
            accepted.append(rel)

        accepted_set = {rel.id for rel in accepted}
        rejected = []
        for rel in relationships:
            if rel.id in accepted_set:
                continue
            rejected.append(
                RejectedRelationship(relationship=rel, reason=rejected_reasons.get(rel.id, NOT_ACCEPTED_REASON))
            )

        logger.info(
            f"Validation: {len(accepted)} accepted, {len(rejected)} rejected, {len(adjustments)} adjusted"
        )
        return ValidationResult(accepted=accepted, rejected=rejected, adjustments=adjustments)

    def _safety_net_reason(
        self,
        rel: ResolvedRelationship,
        confidence: float,
        entity_types: dict[str, NodeType],
    ) -> Optional[str]:
        if normalize_name(rel.source_name) == normalize_name(rel.target_name):
            return "self-loop"
        if rel.type == EdgeType.EVALUATES_ON.value:
            target_type = entity_types.get(normalize_name(rel.target_name))
            if target_type is not None and target_type != NodeType.DATASET:
                return f"evaluates_on target is a {target_type.value}, not a dataset"
        if confidence < self.min_confidence:
            return f"confidence {confidence:.2f} below {self.min_confidence}"
        return None
