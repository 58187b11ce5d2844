"""
Subgraph Traversal

Breadth-first, frontier-based expansion from a seed node. Each depth level
costs exactly one store call that fetches every edge touching the frontier,
in either direction.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from config import settings
from exceptions import NodeNotFoundError
from models.graph import Edge, Node

logger = logging.getLogger(__name__)


@dataclass
class Subgraph:
    center: Node
    depth: int
    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)

    @property
    def node_ids(self) -> set[str]:
        return {node.id for node in self.nodes}

    def to_dict(self) -> dict:
        return {
            "center": self.center.to_dict(),
            "depth": self.depth,
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }


class SubgraphTraversal:
    """Bounded undirected expansion over a GraphStore."""

    def __init__(self, store, max_depth: Optional[int] = None):
        self.store = store
        self.max_depth = settings.subgraph_max_depth if max_depth is None else max_depth

    def clamp_depth(self, depth: int) -> int:
        return max(0, min(int(depth), self.max_depth))

    async def expand(self, seed_id: str, depth: int = 2) -> Subgraph:
        """
        Return nodes and edges reachable from ``seed_id`` within ``depth`` hops.

        Raises:
            NodeNotFoundError: the seed does not exist
        """
        seed = await self.store.get_node(seed_id)
        if seed is None:
            raise NodeNotFoundError(seed_id)

        depth = self.clamp_depth(depth)
        visited: set[str] = {seed.id}
        edges: dict[tuple[str, str, str], Edge] = {}
        frontier: set[str] = {seed.id}

        for level in range(depth):
            if not frontier:
                break
            touching = await self.store.get_edges_touching(frontier)
            next_frontier: set[str] = set()
            for edge in touching:
                if edge.key in edges:
                    continue
                edges[edge.key] = edge
                for endpoint in (edge.source_id, edge.target_id):
                    if endpoint not in visited:
                        visited.add(endpoint)
                        next_frontier.add(endpoint)
            logger.debug(f"Subgraph {seed.id} level {level + 1}: +{len(next_frontier)} nodes")
            frontier = next_frontier

        others = await self.store.get_nodes_by_ids(node_id for node_id in visited if node_id != seed.id)
        return Subgraph(center=seed, depth=depth, nodes=[seed] + others, edges=list(edges.values()))
