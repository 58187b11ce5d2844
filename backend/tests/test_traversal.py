"""
Tests for bounded subgraph traversal.
"""

import pytest

from exceptions import NodeNotFoundError
from graph.traversal import SubgraphTraversal
from models.graph import EdgeType, NodeType


@pytest.fixture
def chain(store):
    """A -> B -> C -> D, plus E -> A pointing into the seed."""

    async def build():
        nodes = {}
        for name in "ABCDE":
            nodes[name] = await store.create_node(NodeType.METHOD, name)
        edges = {
            "AB": await store.create_edge(nodes["A"].id, nodes["B"].id, EdgeType.EXTENDS),
            "BC": await store.create_edge(nodes["B"].id, nodes["C"].id, EdgeType.USES),
            "CD": await store.create_edge(nodes["C"].id, nodes["D"].id, EdgeType.USES),
            "EA": await store.create_edge(nodes["E"].id, nodes["A"].id, EdgeType.IMPROVES),
        }
        return nodes, edges

    return build


def names(subgraph):
    return {node.name for node in subgraph.nodes}


class TestSubgraphTraversal:
    @pytest.mark.asyncio
    async def test_depth_zero_is_seed_only(self, store, chain):
        nodes, _ = await chain()

        subgraph = await SubgraphTraversal(store, max_depth=3).expand(nodes["A"].id, depth=0)

        assert [n.id for n in subgraph.nodes] == [nodes["A"].id]
        assert subgraph.edges == []

    @pytest.mark.asyncio
    async def test_depth_two_follows_both_directions(self, store, chain):
        nodes, edges = await chain()

        subgraph = await SubgraphTraversal(store, max_depth=3).expand(nodes["A"].id, depth=2)

        assert subgraph.center.id == nodes["A"].id
        assert subgraph.nodes[0].id == nodes["A"].id
        assert names(subgraph) == {"A", "B", "C", "E"}
        assert {e.id for e in subgraph.edges} == {edges["AB"].id, edges["BC"].id, edges["EA"].id}
        assert edges["CD"].id not in {e.id for e in subgraph.edges}

    @pytest.mark.asyncio
    async def test_three_hop_node_is_outside_depth_two(self, store):
        # A -> B -> C -> D from A at depth 2: D is three hops out, so it and
        # C -> D are only reached at depth 3.
        nodes = {name: await store.create_node(NodeType.METHOD, name) for name in "ABCD"}
        ab = await store.create_edge(nodes["A"].id, nodes["B"].id, EdgeType.EXTENDS)
        bc = await store.create_edge(nodes["B"].id, nodes["C"].id, EdgeType.USES)
        cd = await store.create_edge(nodes["C"].id, nodes["D"].id, EdgeType.USES)
        traversal = SubgraphTraversal(store, max_depth=3)

        subgraph = await traversal.expand(nodes["A"].id, depth=2)

        assert names(subgraph) == {"A", "B", "C"}
        assert {e.id for e in subgraph.edges} == {ab.id, bc.id}

        deeper = await traversal.expand(nodes["A"].id, depth=3)

        assert names(deeper) == {"A", "B", "C", "D"}
        assert cd.id in {e.id for e in deeper.edges}

    @pytest.mark.asyncio
    async def test_depth_is_monotonic(self, store, chain):
        nodes, _ = await chain()
        traversal = SubgraphTraversal(store, max_depth=3)

        previous_nodes, previous_edges = set(), set()
        for depth in range(4):
            subgraph = await traversal.expand(nodes["A"].id, depth=depth)
            current_nodes = subgraph.node_ids
            current_edges = {e.id for e in subgraph.edges}
            assert previous_nodes <= current_nodes
            assert previous_edges <= current_edges
            previous_nodes, previous_edges = current_nodes, current_edges

        assert names(subgraph) == {"A", "B", "C", "D", "E"}

    @pytest.mark.asyncio
    async def test_depth_clamped_to_maximum(self, store, chain):
        nodes, _ = await chain()

        subgraph = await SubgraphTraversal(store, max_depth=1).expand(nodes["A"].id, depth=10)

        assert subgraph.depth == 1
        assert names(subgraph) == {"A", "B", "E"}

    @pytest.mark.asyncio
    async def test_every_edge_endpoint_is_returned(self, store, chain):
        nodes, _ = await chain()

        subgraph = await SubgraphTraversal(store, max_depth=3).expand(nodes["B"].id, depth=1)

        for edge in subgraph.edges:
            assert {edge.source_id, edge.target_id} <= subgraph.node_ids

    @pytest.mark.asyncio
    async def test_one_store_call_per_level(self, store, chain):
        nodes, _ = await chain()
        calls = []
        original = store.get_edges_touching

        async def counting(node_ids):
            node_ids = list(node_ids)
            calls.append(node_ids)
            return await original(node_ids)

        store.get_edges_touching = counting
        await SubgraphTraversal(store, max_depth=3).expand(nodes["A"].id, depth=3)

        assert len(calls) == 3
        assert calls[0] == [nodes["A"].id]

    @pytest.mark.asyncio
    async def test_missing_seed_raises(self, store):
        with pytest.raises(NodeNotFoundError):
            await SubgraphTraversal(store).expand("missing", depth=2)
