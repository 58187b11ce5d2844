"""
Ingest API Router

Queues arXiv ingestion as a background task and exposes job status for
polling.
"""

import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import AliasChoices, BaseModel, Field

from dependencies import get_importer, get_job_store
from importers.arxiv_importer import ArxivImporter, normalize_arxiv_id
from jobs.job_store import JobStore

logger = logging.getLogger(__name__)

router = APIRouter()


# Pydantic Models
class ArxivIngestRequest(BaseModel):
    arxiv_id: str = Field(..., min_length=1, validation_alias=AliasChoices("arxiv_id", "arxivId"))
    auto_process: bool = Field(False, validation_alias=AliasChoices("auto_process", "autoProcess"))


class BulkIngestRequest(BaseModel):
    arxiv_ids: List[str] = Field(..., min_length=1, validation_alias=AliasChoices("arxiv_ids", "arxivIds"))
    auto_process: bool = Field(False, validation_alias=AliasChoices("auto_process", "autoProcess"))


class IngestJobResponse(BaseModel):
    job_id: str
    status: str
    message: str = ""


def _validated_id(value: str) -> str:
    try:
        return normalize_arxiv_id(value)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/arxiv", response_model=IngestJobResponse, status_code=202)
async def ingest_arxiv(
    request: ArxivIngestRequest,
    background_tasks: BackgroundTasks,
    importer: ArxivImporter = Depends(get_importer),
    job_store: JobStore = Depends(get_job_store),
):
    """Queue one arXiv paper for ingestion (and processing when ``auto_process`` is set)."""
    arxiv_id = _validated_id(request.arxiv_id)
    job = await job_store.create_job(
        job_type="arxiv",
        metadata={"arxiv_id": arxiv_id, "auto_process": request.auto_process},
    )
    background_tasks.add_task(importer.run_job, job.id, arxiv_id, request.auto_process)
    logger.info(f"Queued ingestion job {job.id} for arXiv:{arxiv_id}")
    return IngestJobResponse(job_id=job.id, status=job.status.value, message="Ingestion queued")


@router.post("/bulk", response_model=IngestJobResponse, status_code=202)
async def ingest_bulk(
    request: BulkIngestRequest,
    background_tasks: BackgroundTasks,
    importer: ArxivImporter = Depends(get_importer),
    job_store: JobStore = Depends(get_job_store),
):
    """Queue several arXiv papers; they are ingested one at a time."""
    arxiv_ids = list(dict.fromkeys(_validated_id(value) for value in request.arxiv_ids))
    job = await job_store.create_job(
        job_type="bulk",
        metadata={"arxiv_ids": arxiv_ids, "auto_process": request.auto_process},
    )
    background_tasks.add_task(importer.run_bulk_job, job.id, arxiv_ids, request.auto_process)
    logger.info(f"Queued bulk ingestion job {job.id} for {len(arxiv_ids)} papers")
    return IngestJobResponse(
        job_id=job.id,
        status=job.status.value,
        message=f"Queued {len(arxiv_ids)} papers",
    )


@router.get("/status/{job_id}")
async def get_job_status(job_id: str, job_store: JobStore = Depends(get_job_store)):
    job = await job_store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job.to_dict()
