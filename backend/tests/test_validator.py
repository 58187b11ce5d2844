"""
Tests for the validation stage and its local safety net.
"""

from datetime import date

import pytest

from exceptions import CompletionError
from models.graph import Node, NodeType
from models.pipeline import ResolutionResult
from pipeline.validator import NOT_ACCEPTED_REASON, ValidationContext, ValidationStage, coerce_edge_type


def resolution(*relationships, entities=None) -> ResolutionResult:
    return ResolutionResult.model_validate({
        "resolvedEntities": entities or [
            {"mention": "FastSplat", "canonicalName": "FastSplat", "type": "method"},
            {"mention": "3DGS", "canonicalName": "3D Gaussian Splatting", "type": "method", "isNew": False,
             "canonicalId": "n-3dgs"},
            {"mention": "Mip-NeRF360", "canonicalName": "Mip-NeRF360", "type": "dataset"},
        ],
        "resolvedRelationships": [
            {"sourceName": s, "targetName": t, "type": kind, "confidence": c, "evidence": f"{s} {kind} {t}"}
            for s, t, kind, c in relationships
        ],
    })


def make_stage(fake_completion, **kwargs) -> ValidationStage:
    kwargs.setdefault("min_confidence", 0.4)
    kwargs.setdefault("accept_on_failure", False)
    return ValidationStage(fake_completion, **kwargs)


def assert_disjoint(result, total):
    accepted = {r.id for r in result.accepted}
    rejected = {r.relationship.id for r in result.rejected}
    assert not accepted & rejected
    assert len(accepted) + len(rejected) == total


class TestValidationStage:
    @pytest.mark.asyncio
    async def test_accepts_valid_relationships(self, fake_completion):
        fake_completion.script("ValidationResponse", {"accepted": ["r1", "r2"], "rejected": []})
        res = resolution(
            ("FastSplat", "3D Gaussian Splatting", "extends", 0.9),
            ("FastSplat", "Mip-NeRF360", "evaluates_on", 0.85),
        )

        result = await make_stage(fake_completion).validate(res)

        assert [(r.source_name, r.type) for r in result.accepted] == [
            ("FastSplat", "extends"),
            ("FastSplat", "evaluates_on"),
        ]
        assert result.rejected == []

    @pytest.mark.asyncio
    async def test_unknown_type_coerced_to_uses(self, fake_completion):
        fake_completion.script("ValidationResponse", {"accepted": ["r1"]})
        res = resolution(("FastSplat", "3D Gaussian Splatting", "outperforms", 0.8))

        result = await make_stage(fake_completion).validate(res)

        assert result.accepted[0].type == "uses"
        assert '"type": "uses"' in fake_completion.calls_for("ValidationResponse")[0]

    @pytest.mark.asyncio
    async def test_below_floor_rejected_even_if_accepted(self, fake_completion):
        fake_completion.script("ValidationResponse", {"accepted": ["r1"]})
        res = resolution(("FastSplat", "3D Gaussian Splatting", "extends", 0.3))

        result = await make_stage(fake_completion).validate(res)

        assert result.accepted == []
        assert "below" in result.rejected[0].reason

    @pytest.mark.asyncio
    async def test_unmentioned_relationship_rejected(self, fake_completion):
        fake_completion.script("ValidationResponse", {"accepted": ["r1"]})
        res = resolution(
            ("FastSplat", "3D Gaussian Splatting", "extends", 0.9),
            ("FastSplat", "Mip-NeRF360", "evaluates_on", 0.9),
        )

        result = await make_stage(fake_completion).validate(res)

        assert len(result.accepted) == 1
        assert result.rejected[0].relationship.target_name == "Mip-NeRF360"
        assert result.rejected[0].reason == NOT_ACCEPTED_REASON
        assert_disjoint(result, 2)

    @pytest.mark.asyncio
    async def test_self_loop_rejected(self, fake_completion):
        fake_completion.script("ValidationResponse", {"accepted": ["r1"]})
        res = resolution(("FastSplat", "fastsplat", "improves", 0.9))

        result = await make_stage(fake_completion).validate(res)

        assert result.accepted == []
        assert result.rejected[0].reason == "self-loop"

    @pytest.mark.asyncio
    async def test_evaluates_on_non_dataset_rejected(self, fake_completion):
        fake_completion.script("ValidationResponse", {"accepted": ["r1"]})
        res = resolution(("FastSplat", "3D Gaussian Splatting", "evaluates_on", 0.9))

        result = await make_stage(fake_completion).validate(res)

        assert result.accepted == []
        assert "not a dataset" in result.rejected[0].reason

    @pytest.mark.asyncio
    async def test_evaluates_on_checks_context_nodes(self, fake_completion):
        fake_completion.script("ValidationResponse", {"accepted": ["r1"]})
        res = resolution(("FastSplat", "PSNR", "evaluates_on", 0.9))
        context = ValidationContext(
            nodes=[Node(id="n-psnr", type=NodeType.METRIC, name="PSNR", normalized_name="psnr")],
            publication_date=date(2024, 3, 1),
            title="FastSplat",
        )

        result = await make_stage(fake_completion).validate(res, context)

        assert result.accepted == []
        assert "2024-03-01" in fake_completion.calls_for("ValidationResponse")[0]

    @pytest.mark.asyncio
    async def test_confidence_adjustments_applied(self, fake_completion):
        fake_completion.script("ValidationResponse", {
            "accepted": [{"id": "r1"}, {"id": "r2", "confidence": 0.7}],
            "confidenceAdjustments": [
                {"relationshipId": "r1", "originalConfidence": 0.8, "adjustedConfidence": 1.4,
                 "reason": "explicit statement"},
            ],
        })
        res = resolution(
            ("FastSplat", "3D Gaussian Splatting", "extends", 0.8),
            ("FastSplat", "Mip-NeRF360", "evaluates_on", 0.9),
        )

        result = await make_stage(fake_completion).validate(res)

        confidences = {r.id: r.confidence for r in result.accepted}
        assert confidences == {"r1": 1.0, "r2": 0.7}
        adjustments = {a.relationship_id: a for a in result.adjustments}
        assert adjustments["r1"].original_confidence == 0.8
        assert adjustments["r1"].reason == "explicit statement"
        assert adjustments["r2"].adjusted_confidence == 0.7

    @pytest.mark.asyncio
    async def test_rejection_wins_over_acceptance(self, fake_completion):
        fake_completion.script("ValidationResponse", {
            "accepted": ["r1"],
            "rejected": [{"id": "r1", "reason": "published before the method it extends"}],
        })
        res = resolution(("FastSplat", "3D Gaussian Splatting", "extends", 0.9))

        result = await make_stage(fake_completion).validate(res)

        assert result.accepted == []
        assert result.rejected[0].reason == "published before the method it extends"

    @pytest.mark.asyncio
    async def test_verdicts_matched_by_endpoints_without_id(self, fake_completion):
        fake_completion.script("ValidationResponse", {
            "accepted": [{"sourceName": "fastsplat", "targetName": "mip-nerf360", "type": "evaluates_on"}],
        })
        res = resolution(("FastSplat", "Mip-NeRF360", "evaluates_on", 0.9))

        result = await make_stage(fake_completion).validate(res)

        assert len(result.accepted) == 1

    @pytest.mark.asyncio
    async def test_failure_accepts_nothing_by_default(self, fake_completion):
        fake_completion.script("ValidationResponse", CompletionError(provider="fake", attempts=2, reason="x"))
        res = resolution(("FastSplat", "3D Gaussian Splatting", "extends", 0.9))

        result = await make_stage(fake_completion).validate(res)

        assert result.accepted == [] and result.rejected == []

    @pytest.mark.asyncio
    async def test_failure_can_accept_all_through_safety_net(self, fake_completion):
        fake_completion.script("ValidationResponse", CompletionError(provider="fake", attempts=2, reason="x"))
        res = resolution(
            ("FastSplat", "3D Gaussian Splatting", "extends", 0.9),
            ("FastSplat", "3D Gaussian Splatting", "uses", 0.1),
        )

        result = await make_stage(fake_completion, accept_on_failure=True).validate(res)

        assert [r.type for r in result.accepted] == ["extends"]
        assert_disjoint(result, 2)

    @pytest.mark.asyncio
    async def test_no_relationships_skips_completion(self, fake_completion):
        result = await make_stage(fake_completion).validate(resolution())

        assert result.accepted == [] and result.rejected == []
        assert fake_completion.calls == []


def test_coerce_edge_type():
    assert coerce_edge_type("Evaluates On") == "evaluates_on"
    assert coerce_edge_type("extends") == "extends"
    assert coerce_edge_type("outperforms") == "uses"
