"""Graph storage, similarity matching and subgraph traversal for PaperGraph."""

__all__ = [
    "graph_store",
    "similarity",
    "traversal",
]
