"""
Papers API Router

Paper CRUD, processing status, and synchronous (re)processing.
"""

import logging
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from dependencies import get_graph_store, get_processor
from exceptions import InvalidGraphDataError, PaperNotFoundError, PaperTextMissingError
from graph.graph_store import GraphStore
from pipeline.processor import PaperProcessor

logger = logging.getLogger(__name__)

router = APIRouter()


# Pydantic Models
class PaperCreate(BaseModel):
    title: str = Field(..., min_length=1)
    abstract: Optional[str] = None
    arxiv_id: Optional[str] = None
    doi: Optional[str] = None
    pdf_url: Optional[str] = None
    publication_date: Optional[date] = None
    venue: Optional[str] = None
    raw_text: Optional[str] = None


class PaperResponse(BaseModel):
    id: str
    title: str
    abstract: Optional[str] = None
    arxiv_id: Optional[str] = None
    doi: Optional[str] = None
    pdf_url: Optional[str] = None
    publication_date: Optional[date] = None
    venue: Optional[str] = None
    processed: bool = False
    status: str
    progress: int = 0
    error: Optional[str] = None
    node_id: Optional[str] = None
    has_text: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PaperStatusResponse(BaseModel):
    paper_id: str
    status: str
    progress: int
    processed: bool
    error: Optional[str] = None


class ProcessResponse(BaseModel):
    paper_id: str
    status: str
    stats: dict


@router.get("", response_model=List[PaperResponse])
async def list_papers(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    processed: Optional[bool] = None,
    store: GraphStore = Depends(get_graph_store),
):
    """List papers, newest first."""
    try:
        papers = await store.list_papers(limit=limit, offset=offset, processed=processed)
        return [PaperResponse(**paper.to_dict()) for paper in papers]
    except Exception as e:
        logger.error(f"Failed to list papers: {e}")
        raise HTTPException(status_code=503, detail="Database temporarily unavailable. Please try again later.")


@router.post("", response_model=PaperResponse, status_code=201)
async def create_paper(
    request: PaperCreate,
    store: GraphStore = Depends(get_graph_store),
):
    """Create a paper. Raw text may be supplied directly instead of fetched."""
    try:
        paper = await store.create_paper(**request.model_dump())
        logger.info(f"Created paper {paper.id}: {paper.title}")
        return PaperResponse(**paper.to_dict())
    except InvalidGraphDataError as e:
        raise HTTPException(status_code=409 if e.details.get("field") == "arxiv_id" else 422, detail=e.message)
    except Exception as e:
        logger.error(f"Failed to create paper: {e}")
        raise HTTPException(status_code=500, detail="Failed to create paper")


@router.get("/{paper_id}", response_model=PaperResponse)
async def get_paper(paper_id: str, store: GraphStore = Depends(get_graph_store)):
    paper = await store.get_paper(paper_id)
    if paper is None:
        raise HTTPException(status_code=404, detail="Paper not found")
    return PaperResponse(**paper.to_dict())


@router.get("/{paper_id}/status", response_model=PaperStatusResponse)
async def get_paper_status(paper_id: str, store: GraphStore = Depends(get_graph_store)):
    """Processing status and progress, for polling."""
    paper = await store.get_paper(paper_id)
    if paper is None:
        raise HTTPException(status_code=404, detail="Paper not found")
    return PaperStatusResponse(
        paper_id=paper.id,
        status=paper.status.value,
        progress=paper.progress,
        processed=paper.processed,
        error=paper.error,
    )


async def _run_processing(paper_id: str, processor: PaperProcessor, reprocess: bool) -> ProcessResponse:
    action = "reprocess" if reprocess else "process"
    try:
        if reprocess:
            stats = await processor.reprocess_paper(paper_id)
        else:
            stats = await processor.process_paper(paper_id)
        paper = await processor.store.get_paper(paper_id)
        return ProcessResponse(paper_id=paper_id, status=paper.status.value, stats=stats.to_dict())
    except HTTPException:
        raise
    except PaperNotFoundError:
        raise HTTPException(status_code=404, detail="Paper not found")
    except PaperTextMissingError as e:
        raise HTTPException(status_code=422, detail=e.message)
    except Exception as e:
        logger.error(f"Failed to {action} paper {paper_id}: {type(e).__name__}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to {action} paper")


@router.post("/{paper_id}/process", response_model=ProcessResponse)
async def process_paper(paper_id: str, processor: PaperProcessor = Depends(get_processor)):
    """Run the pipeline synchronously and return aggregate stats."""
    return await _run_processing(paper_id, processor, reprocess=False)


@router.post("/{paper_id}/reprocess", response_model=ProcessResponse)
async def reprocess_paper(paper_id: str, processor: PaperProcessor = Depends(get_processor)):
    """Delete the paper's nodes and edges, then run the pipeline again."""
    return await _run_processing(paper_id, processor, reprocess=True)
