"""
Tests for entity resolution and the in-run resolution cache.
"""

import pytest

from exceptions import CompletionError
from models.graph import NodeType
from models.pipeline import ExtractionResult, ResolutionResult
from pipeline.resolver import ResolutionCache, ResolutionStage

EXTRACTION = ExtractionResult.model_validate({
    "entities": [
        {"mention": "FastSplat", "type": "method"},
        {"mention": "3D gaussian splatting", "type": "method"},
        {"mention": "Mip-NeRF360", "type": "dataset"},
    ],
    "relationships": [
        {"subject": "FastSplat", "predicate": "extends", "object": "3D gaussian splatting",
         "evidenceText": "FastSplat extends 3DGS", "confidence": 0.9},
    ],
})


class TestResolutionStage:
    @pytest.mark.asyncio
    async def test_uses_completion_output(self, store, fake_completion):
        node = await store.create_node(NodeType.METHOD, "3D Gaussian Splatting")
        fake_completion.script("ResolutionResult", {
            "resolvedEntities": [
                {"mention": "FastSplat", "canonicalId": None, "canonicalName": "FastSplat",
                 "type": "method", "isNew": True},
                {"mention": "3D gaussian splatting", "canonicalId": node.id,
                 "canonicalName": "3D Gaussian Splatting", "type": "method", "isNew": False},
                {"mention": "Mip-NeRF360", "canonicalName": "Mip-NeRF360", "type": "dataset", "isNew": True},
            ],
            "resolvedRelationships": [
                {"sourceName": "FastSplat", "targetName": "3D Gaussian Splatting", "type": "extends",
                 "confidence": 0.9, "evidence": "FastSplat extends 3DGS"},
            ],
        })

        result = await ResolutionStage(fake_completion).resolve(EXTRACTION, [node])

        by_name = {e.canonical_name: e for e in result.resolved_entities}
        assert by_name["3D Gaussian Splatting"].canonical_id == node.id
        assert not by_name["3D Gaussian Splatting"].is_new
        assert by_name["FastSplat"].is_new
        assert result.resolved_relationships[0].target_name == "3D Gaussian Splatting"

    @pytest.mark.asyncio
    async def test_prompt_lists_existing_nodes(self, store, fake_completion):
        node = await store.create_node(NodeType.DATASET, "Tanks and Temples")
        fake_completion.script("ResolutionResult", {"resolvedEntities": [], "resolvedRelationships": []})

        await ResolutionStage(fake_completion).resolve(EXTRACTION, [node])

        prompt = fake_completion.calls_for("ResolutionResult")[0]
        assert node.id in prompt
        assert "FastSplat" in prompt

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_exact_match(self, store, fake_completion):
        node = await store.create_node(NodeType.METHOD, "3D Gaussian Splatting")
        fake_completion.script("ResolutionResult", CompletionError(provider="fake", attempts=2, reason="timeout"))

        result = await ResolutionStage(fake_completion).resolve(EXTRACTION, [node])

        by_mention = {e.mention: e for e in result.resolved_entities}
        assert by_mention["3D gaussian splatting"].canonical_id == node.id
        assert by_mention["3D gaussian splatting"].canonical_name == "3D Gaussian Splatting"
        assert by_mention["FastSplat"].is_new
        assert by_mention["Mip-NeRF360"].type == NodeType.DATASET

        relationship = result.resolved_relationships[0]
        assert (relationship.source_name, relationship.target_name) == ("FastSplat", "3D Gaussian Splatting")
        assert relationship.type == "extends"

    @pytest.mark.asyncio
    async def test_omitted_mentions_resolved_locally(self, fake_completion):
        fake_completion.script("ResolutionResult", {
            "resolvedEntities": [{"mention": "FastSplat", "canonicalName": "FastSplat", "type": "method"}],
            "resolvedRelationships": [],
        })

        result = await ResolutionStage(fake_completion).resolve(EXTRACTION, [])

        names = {e.canonical_name for e in result.resolved_entities}
        assert names == {"FastSplat", "3D gaussian splatting", "Mip-NeRF360"}
        assert len(result.resolved_relationships) == 1

    @pytest.mark.asyncio
    async def test_empty_extraction_skips_completion(self, fake_completion):
        result = await ResolutionStage(fake_completion).resolve(ExtractionResult.empty(), [])

        assert result == ResolutionResult.empty()
        assert fake_completion.calls == []

    def test_resolved_entity_without_id_is_new(self):
        result = ResolutionResult.model_validate({
            "resolvedEntities": [{"mention": "GS", "canonicalId": "new", "type": "Method", "isNew": False}],
        })
        entity = result.resolved_entities[0]
        assert entity.canonical_name == "GS"
        assert entity.canonical_id is None
        assert entity.is_new


class TestResolutionCache:
    def test_lookup_is_normalized(self):
        cache = ResolutionCache()
        cache.put("Gaussian  Splatting", "n1")
        assert cache.get("gaussian splatting") == "n1"
        assert "GAUSSIAN SPLATTING" in cache
        assert cache.names() == ["Gaussian  Splatting"]

    def test_rollback_discards_entries_since_begin(self):
        cache = ResolutionCache()
        cache.put("NeRF", "n1")
        cache.begin()
        cache.put("FastSplat", "n2")
        cache.put("NeRF", "n1")
        cache.rollback()

        assert cache.get("NeRF") == "n1"
        assert cache.get("FastSplat") is None
        assert len(cache) == 1

    def test_rollback_restores_overwritten_entries(self):
        cache = ResolutionCache()
        cache.put("3DGS", "n1")
        cache.begin()
        cache.put("3D Gaussian Splatting", "n2")
        cache.put("3DGS", "n2")
        cache.put("3DGS", "n3")
        cache.rollback()

        assert cache.get("3DGS") == "n1"
        assert cache.get("3D Gaussian Splatting") is None
        assert cache.names() == ["3DGS"]

    def test_commit_keeps_entries(self):
        cache = ResolutionCache()
        cache.begin()
        cache.put("FastSplat", "n2")
        cache.commit()
        cache.rollback()
        assert cache.get("FastSplat") == "n2"
