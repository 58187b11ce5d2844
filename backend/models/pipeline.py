"""
Typed records passed between the extraction, resolution and validation stages.

LLM output is decoded into these models at each stage boundary. Confidence
values are clamped into [0, 1] on decode, and list items that fail validation
are dropped one at a time so a single malformed item does not discard a whole
response.
"""

import logging
from enum import Enum
from typing import Any, List, Optional, Type

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from models.graph import NodeType, clamp_confidence

logger = logging.getLogger(__name__)


def _keep_valid(items: Any, model: Type[BaseModel]) -> list:
    """Validate list items individually, skipping the ones that fail."""
    if not isinstance(items, list):
        return []
    kept = []
    for item in items:
        if isinstance(item, model):
            kept.append(item)
            continue
        try:
            kept.append(model.model_validate(item))
        except ValidationError as e:
            logger.debug(f"Dropping invalid {model.__name__}: {e.error_count()} error(s)")
    return kept


def _normalize_label(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower().replace("-", "_").replace(" ", "_")
    return value


class PipelineModel(BaseModel):
    """Base for stage records: accepts camelCase or snake_case keys."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class MentionType(str, Enum):
    """Entity types the extraction stage may emit."""
    METHOD = "method"
    CONCEPT = "concept"
    DATASET = "dataset"
    METRIC = "metric"
    PAPER_REFERENCE = "paper_reference"

    def to_node_type(self) -> NodeType:
        if self == MentionType.PAPER_REFERENCE:
            return NodeType.PAPER
        return NodeType(self.value)


# =========================================================================
# Extraction
# =========================================================================

class EntityMention(PipelineModel):
    mention: str = Field(min_length=1, validation_alias=AliasChoices("mention", "name", "text"))
    type: MentionType
    span_start: Optional[int] = Field(None, validation_alias=AliasChoices("spanStart", "span_start"))
    span_end: Optional[int] = Field(None, validation_alias=AliasChoices("spanEnd", "span_end"))
    confidence: float = 0.5

    @field_validator("mention", mode="before")
    @classmethod
    def _strip_mention(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value):
        value = _normalize_label(value)
        if value in ("paper", "reference", "citation"):
            return MentionType.PAPER_REFERENCE.value
        return value

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value):
        return clamp_confidence(value)


class ExtractedRelationship(PipelineModel):
    subject: str = Field(min_length=1)
    predicate: str = Field(min_length=1)
    object: str = Field(min_length=1)
    evidence_text: str = Field(
        "", validation_alias=AliasChoices("evidenceText", "evidence_text", "evidence")
    )
    confidence: float = 0.5

    @field_validator("subject", "object", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("predicate", mode="before")
    @classmethod
    def _normalize_predicate(cls, value):
        return _normalize_label(value)

    @field_validator("evidence_text", mode="before")
    @classmethod
    def _evidence_str(cls, value):
        return value if isinstance(value, str) else ""

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value):
        return clamp_confidence(value)


class ExtractionResult(PipelineModel):
    entities: List[EntityMention] = Field(default_factory=list)
    relationships: List[ExtractedRelationship] = Field(default_factory=list)

    @field_validator("entities", mode="before")
    @classmethod
    def _valid_entities(cls, value):
        return _keep_valid(value, EntityMention)

    @field_validator("relationships", mode="before")
    @classmethod
    def _valid_relationships(cls, value):
        return _keep_valid(value, ExtractedRelationship)

    @classmethod
    def empty(cls) -> "ExtractionResult":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.entities and not self.relationships


# =========================================================================
# Resolution
# =========================================================================

class ResolvedEntity(PipelineModel):
    mention: str = ""
    canonical_id: Optional[str] = Field(None, validation_alias=AliasChoices("canonicalId", "canonical_id"))
    canonical_name: str = Field(min_length=1, validation_alias=AliasChoices("canonicalName", "canonical_name"))
    type: NodeType
    is_new: bool = Field(True, validation_alias=AliasChoices("isNew", "is_new"))
    confidence: float = 1.0

    @model_validator(mode="before")
    @classmethod
    def _fill_name(cls, data):
        if isinstance(data, dict):
            name = data.get("canonicalName") or data.get("canonical_name")
            if not (isinstance(name, str) and name.strip()) and isinstance(data.get("mention"), str):
                data = {**data, "canonicalName": data["mention"]}
        return data

    @field_validator("canonical_name", mode="before")
    @classmethod
    def _strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("canonical_id", mode="before")
    @classmethod
    def _blank_id(cls, value):
        if value is None or (isinstance(value, str) and value.strip().lower() in ("", "null", "none", "new")):
            return None
        return str(value)

    @field_validator("type", mode="before")
    @classmethod
    def _map_type(cls, value):
        value = _normalize_label(value)
        if value in ("paper_reference", "reference", "citation"):
            return NodeType.PAPER.value
        return value

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value):
        return clamp_confidence(value, default=1.0)

    @model_validator(mode="after")
    def _new_without_id(self):
        if self.canonical_id is None:
            self.is_new = True
        return self


class ResolvedRelationship(PipelineModel):
    """A relationship between canonical entities, referenced by name."""

    id: Optional[str] = Field(None, validation_alias=AliasChoices("id", "relationshipId", "relationship_id"))
    source_name: str = Field(min_length=1, validation_alias=AliasChoices("sourceName", "source_name", "source"))
    target_name: str = Field(min_length=1, validation_alias=AliasChoices("targetName", "target_name", "target"))
    type: str = Field(min_length=1)
    confidence: float = 0.5
    evidence: str = Field("", validation_alias=AliasChoices("evidence", "evidenceText", "evidence_text"))

    @field_validator("source_name", "target_name", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value):
        return _normalize_label(value)

    @field_validator("evidence", mode="before")
    @classmethod
    def _evidence_str(cls, value):
        return value if isinstance(value, str) else ""

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value):
        return clamp_confidence(value)


class ResolutionResult(PipelineModel):
    resolved_entities: List[ResolvedEntity] = Field(
        default_factory=list, validation_alias=AliasChoices("resolvedEntities", "resolved_entities")
    )
    resolved_relationships: List[ResolvedRelationship] = Field(
        default_factory=list,
        validation_alias=AliasChoices("resolvedRelationships", "resolved_relationships"),
    )

    @field_validator("resolved_entities", mode="before")
    @classmethod
    def _valid_entities(cls, value):
        return _keep_valid(value, ResolvedEntity)

    @field_validator("resolved_relationships", mode="before")
    @classmethod
    def _valid_relationships(cls, value):
        return _keep_valid(value, ResolvedRelationship)

    @classmethod
    def empty(cls) -> "ResolutionResult":
        return cls()


# =========================================================================
# Validation
# =========================================================================

class RejectedRelationship(PipelineModel):
    relationship: ResolvedRelationship
    reason: str = ""


class ConfidenceAdjustment(PipelineModel):
    relationship_id: str
    original_confidence: float
    adjusted_confidence: float
    reason: str = ""

    @field_validator("original_confidence", "adjusted_confidence", mode="before")
    @classmethod
    def _clamp(cls, value):
        return clamp_confidence(value)


class ValidationResult(PipelineModel):
    """Disjoint accepted / rejected lists plus adjustments to accepted items."""

    accepted: List[ResolvedRelationship] = Field(default_factory=list)
    rejected: List[RejectedRelationship] = Field(default_factory=list)
    adjustments: List[ConfidenceAdjustment] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "ValidationResult":
        return cls()


class AcceptedVerdict(PipelineModel):
    """An accepted item as returned by the completion capability."""

    id: Optional[str] = Field(None, validation_alias=AliasChoices("id", "relationshipId", "relationship_id"))
    source_name: Optional[str] = Field(None, validation_alias=AliasChoices("sourceName", "source_name", "source"))
    target_name: Optional[str] = Field(None, validation_alias=AliasChoices("targetName", "target_name", "target"))
    type: Optional[str] = None
    confidence: Optional[float] = None
    evidence: Optional[str] = Field(None, validation_alias=AliasChoices("evidence", "evidenceText"))

    @model_validator(mode="before")
    @classmethod
    def _from_id(cls, data):
        if isinstance(data, str):
            return {"id": data}
        return data

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value):
        return None if value is None else clamp_confidence(value)


class RejectedVerdict(PipelineModel):
    id: Optional[str] = Field(None, validation_alias=AliasChoices("id", "relationshipId", "relationship_id"))
    relationship: Optional[AcceptedVerdict] = None
    reason: str = ""

    @model_validator(mode="before")
    @classmethod
    def _from_id(cls, data):
        if isinstance(data, str):
            return {"id": data}
        return data

    @field_validator("reason", mode="before")
    @classmethod
    def _reason_str(cls, value):
        return value if isinstance(value, str) else ""

    @property
    def relationship_id(self) -> Optional[str]:
        if self.id:
            return self.id
        return self.relationship.id if self.relationship else None


class AdjustmentVerdict(PipelineModel):
    relationship_id: str = Field(validation_alias=AliasChoices("relationshipId", "relationship_id", "id"))
    original_confidence: Optional[float] = Field(
        None, validation_alias=AliasChoices("originalConfidence", "original_confidence")
    )
    adjusted_confidence: float = Field(validation_alias=AliasChoices("adjustedConfidence", "adjusted_confidence"))
    reason: str = ""

    @field_validator("relationship_id", mode="before")
    @classmethod
    def _id_str(cls, value):
        return str(value) if value is not None else value

    @field_validator("original_confidence", "adjusted_confidence", mode="before")
    @classmethod
    def _clamp(cls, value):
        return None if value is None else clamp_confidence(value)


class ValidationResponse(PipelineModel):
    """Raw verdicts from the completion capability, before the safety net."""

    accepted: List[AcceptedVerdict] = Field(default_factory=list)
    rejected: List[RejectedVerdict] = Field(default_factory=list)
    confidence_adjustments: List[AdjustmentVerdict] = Field(
        default_factory=list,
        validation_alias=AliasChoices("confidenceAdjustments", "confidence_adjustments", "adjustments"),
    )

    @field_validator("accepted", mode="before")
    @classmethod
    def _valid_accepted(cls, value):
        return _keep_valid(value, AcceptedVerdict)

    @field_validator("rejected", mode="before")
    @classmethod
    def _valid_rejected(cls, value):
        return _keep_valid(value, RejectedVerdict)

    @field_validator("confidence_adjustments", mode="before")
    @classmethod
    def _valid_adjustments(cls, value):
        return _keep_valid(value, AdjustmentVerdict)
