"""
Graph API Router

Node and edge listing, node detail with adjacent edges, edge provenance,
bounded subgraph queries and aggregate stats.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from dependencies import get_graph_store
from exceptions import NodeNotFoundError
from graph.graph_store import GraphStore
from graph.traversal import SubgraphTraversal
from models.graph import EdgeType, NodeType

logger = logging.getLogger(__name__)

router = APIRouter()


# Pydantic Models
class NodeResponse(BaseModel):
    id: str
    type: str
    name: str
    normalized_name: str
    description: Optional[str] = None
    paper_id: Optional[str] = None
    properties: dict = {}
    created_at: Optional[datetime] = None


class EdgeResponse(BaseModel):
    id: str
    source_id: str
    target_id: str
    type: str
    confidence: float
    properties: dict = {}
    created_at: Optional[datetime] = None


class SourceResponse(BaseModel):
    id: str
    edge_id: str
    paper_id: str
    page_number: Optional[int] = None
    section: Optional[str] = None
    extracted_text: Optional[str] = None
    span_start: Optional[int] = None
    span_end: Optional[int] = None


class NodeDetailResponse(BaseModel):
    node: NodeResponse
    outgoing: List[EdgeResponse]
    incoming: List[EdgeResponse]


class ProvenanceResponse(BaseModel):
    edge: EdgeResponse
    sources: List[SourceResponse]


class GraphDataResponse(BaseModel):
    nodes: List[NodeResponse]
    edges: List[EdgeResponse]


class SubgraphResponse(GraphDataResponse):
    center: NodeResponse
    depth: int


class CountsResponse(BaseModel):
    total: int
    by_type: dict


class StatsResponse(BaseModel):
    nodes: CountsResponse
    edges: CountsResponse
    papers: dict


def _node(node) -> NodeResponse:
    return NodeResponse(**node.to_dict())


def _edge(edge) -> EdgeResponse:
    return EdgeResponse(**edge.to_dict())


@router.get("/nodes", response_model=List[NodeResponse])
async def get_nodes(
    type: Optional[NodeType] = None,
    search: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    store: GraphStore = Depends(get_graph_store),
):
    """List nodes, optionally filtered by type and name substring."""
    try:
        nodes = await store.list_nodes(node_type=type, search=search, limit=limit, offset=offset)
        return [_node(node) for node in nodes]
    except Exception as e:
        logger.error(f"Failed to get nodes: {e}")
        raise HTTPException(status_code=503, detail="Database temporarily unavailable. Please try again later.")


@router.get("/nodes/{node_id}", response_model=NodeDetailResponse)
async def get_node(node_id: str, store: GraphStore = Depends(get_graph_store)):
    """A node with its outgoing and incoming edges."""
    node = await store.get_node(node_id)
    if node is None:
        raise HTTPException(status_code=404, detail="Node not found")
    outgoing, incoming = await store.get_node_edges(node.id)
    return NodeDetailResponse(
        node=_node(node),
        outgoing=[_edge(e) for e in outgoing],
        incoming=[_edge(e) for e in incoming],
    )


@router.get("/edges", response_model=List[EdgeResponse])
async def get_edges(
    type: Optional[EdgeType] = None,
    limit: int = Query(100, ge=1, le=5000),
    offset: int = Query(0, ge=0),
    store: GraphStore = Depends(get_graph_store),
):
    try:
        edges = await store.list_edges(edge_type=type, limit=limit, offset=offset)
        return [_edge(edge) for edge in edges]
    except Exception as e:
        logger.error(f"Failed to get edges: {e}")
        raise HTTPException(status_code=503, detail="Database temporarily unavailable. Please try again later.")


@router.get("/edges/{edge_id}/provenance", response_model=ProvenanceResponse)
async def get_edge_provenance(edge_id: str, store: GraphStore = Depends(get_graph_store)):
    """The evidence rows that justified an edge."""
    edge = await store.get_edge(edge_id)
    if edge is None:
        raise HTTPException(status_code=404, detail="Edge not found")
    sources = await store.list_sources(edge.id)
    return ProvenanceResponse(
        edge=_edge(edge),
        sources=[SourceResponse(**source.to_dict()) for source in sources],
    )


@router.get("/subgraph", response_model=SubgraphResponse)
async def get_subgraph(
    node_id: str,
    depth: int = Query(2, ge=0),
    store: GraphStore = Depends(get_graph_store),
):
    """Nodes and edges within ``depth`` hops of a node; depth is clamped to the configured maximum."""
    try:
        subgraph = await SubgraphTraversal(store).expand(node_id, depth)
    except NodeNotFoundError:
        raise HTTPException(status_code=404, detail="Node not found")
    return SubgraphResponse(
        center=_node(subgraph.center),
        depth=subgraph.depth,
        nodes=[_node(n) for n in subgraph.nodes],
        edges=[_edge(e) for e in subgraph.edges],
    )


@router.get("/stats", response_model=StatsResponse)
async def get_stats(store: GraphStore = Depends(get_graph_store)):
    try:
        return StatsResponse(**await store.get_stats())
    except Exception as e:
        logger.error(f"Failed to get graph stats: {e}")
        raise HTTPException(status_code=503, detail="Database temporarily unavailable. Please try again later.")


@router.get("/queries/relationships", response_model=GraphDataResponse)
async def query_relationships(
    name: str = Query(..., min_length=1),
    edge_type: Optional[EdgeType] = None,
    limit: int = Query(50, ge=1, le=500),
    store: GraphStore = Depends(get_graph_store),
):
    """Edges touching any node whose name contains ``name``, with their endpoints."""
    matches = await store.list_nodes(search=name, limit=limit)
    if not matches:
        return GraphDataResponse(nodes=[], edges=[])

    edges = await store.get_edges_touching(node.id for node in matches)
    if edge_type:
        edges = [edge for edge in edges if edge.type == edge_type]

    endpoint_ids = [node.id for node in matches]
    for edge in edges:
        endpoint_ids.extend((edge.source_id, edge.target_id))
    nodes = await store.get_nodes_by_ids(endpoint_ids)
    return GraphDataResponse(nodes=[_node(n) for n in nodes], edges=[_edge(e) for e in edges])
