"""
arXiv Importer

Ingestion stage: creates the Paper row and its paper-node placeholder,
downloads and extracts the PDF, and optionally runs the processing pipeline.
Progress is recorded on both the paper and its ingestion job.
"""

import logging
import re
from typing import Optional

from config import settings
from exceptions import DataImportError, PaperGraphException
from models.graph import NodeType, Paper, ProcessingStatus

from .pdf_fetcher import PDFFetcher, extract_text_from_pdf_bytes

logger = logging.getLogger(__name__)

# 2401.12345, 2401.12345v2, hep-th/9901001, math.GT/0309136v1
_NEW_STYLE_ID = re.compile(r"^\d{4}\.\d{4,5}(v\d+)?$")
_OLD_STYLE_ID = re.compile(r"^[a-z][a-z\-]*(\.[A-Z]{2})?/\d{7}(v\d+)?$")
_ARXIV_URL = re.compile(r"^https?://(?:www\.|export\.)?arxiv\.org/(?:abs|pdf)/(?P<id>.+?)(?:\.pdf)?/?$", re.IGNORECASE)


def normalize_arxiv_id(value: str) -> str:
    """
    Accept a bare id, an ``arXiv:`` prefixed id, or an abs/pdf URL.

    Raises:
        ValueError: not an arXiv identifier
    """
    candidate = (value or "").strip()
    url_match = _ARXIV_URL.match(candidate)
    if url_match:
        candidate = url_match.group("id")
    if candidate.lower().startswith("arxiv:"):
        candidate = candidate[len("arxiv:"):]
    candidate = candidate.strip()

    if _NEW_STYLE_ID.match(candidate) or _OLD_STYLE_ID.match(candidate):
        return candidate
    raise ValueError(f"Invalid arXiv identifier: {value!r}")


class ArxivImporter:
    """Ingest arXiv papers by identifier."""

    def __init__(
        self,
        store,
        job_store,
        fetcher: Optional[PDFFetcher] = None,
        processor=None,
        pdf_base_url: Optional[str] = None,
    ):
        self.store = store
        self.job_store = job_store
        self.fetcher = fetcher or PDFFetcher()
        self.processor = processor
        self.pdf_base_url = (pdf_base_url or settings.arxiv_pdf_base_url).rstrip("/")

    def pdf_url_for(self, arxiv_id: str) -> str:
        return f"{self.pdf_base_url}/{arxiv_id}.pdf"

    async def _set_status(
        self,
        paper_id: str,
        job_id: Optional[str],
        status: ProcessingStatus,
        progress: int,
        message: str,
        error: Optional[str] = None,
    ) -> None:
        await self.store.set_paper_status(paper_id, status, progress=progress, error=error)
        if job_id:
            await self.job_store.update_job(job_id, status=status, progress=progress, message=message, error=error)

    async def create_paper(self, arxiv_id: str) -> Paper:
        """Create the Paper row and its paper-node placeholder, or return the existing paper."""
        existing = await self.store.get_paper_by_arxiv_id(arxiv_id)
        if existing is not None:
            logger.info(f"arXiv:{arxiv_id} already ingested as paper {existing.id}")
            return existing

        paper = await self.store.create_paper(
            title=f"Paper from arXiv:{arxiv_id}",
            arxiv_id=arxiv_id,
            pdf_url=self.pdf_url_for(arxiv_id),
        )
        node = await self.store.create_node(
            NodeType.PAPER,
            paper.title,
            properties={"arxiv_id": arxiv_id, "paper_id": paper.id},
        )
        return await self.store.update_paper(paper.id, node_id=node.id)

    async def ingest(
        self,
        arxiv_id: str,
        auto_process: bool = False,
        job_id: Optional[str] = None,
    ) -> Paper:
        """
        Ingest one paper: create it, fetch its text, optionally process it.

        Raises:
            DataImportError: PDF download or extraction failed (paper marked failed)
            PipelineError: processing precondition failed
        """
        arxiv_id = normalize_arxiv_id(arxiv_id)
        paper = await self.create_paper(arxiv_id)
        if job_id:
            await self.job_store.update_job(job_id, paper_id=paper.id)

        if not paper.raw_text:
            try:
                await self._set_status(paper.id, job_id, ProcessingStatus.DOWNLOADING_PDF, 10, "Downloading PDF")
                content = await self.fetcher.download(paper.pdf_url)

                await self._set_status(paper.id, job_id, ProcessingStatus.EXTRACTING_TEXT, 30, "Extracting text")
                text, page_count = extract_text_from_pdf_bytes(content, source=paper.pdf_url)
            except DataImportError as e:
                await self._set_status(paper.id, job_id, ProcessingStatus.FAILED, 0, "PDF ingestion failed", error=e.message)
                raise

            paper = await self.store.update_paper(paper.id, raw_text=text)
            logger.info(f"arXiv:{arxiv_id}: {len(text)} chars from {page_count} pages")
            await self._set_status(paper.id, job_id, ProcessingStatus.PENDING, 0, "Text extracted")

        if auto_process and self.processor is not None:
            if job_id:
                await self.job_store.update_job(
                    job_id, status=ProcessingStatus.CHUNKING, progress=50, message="Processing paper"
                )
            stats = await self.processor.process_paper(paper.id)
            paper = await self.store.get_paper(paper.id)
            if job_id:
                await self.job_store.update_job(job_id, result={"paper_id": paper.id, "stats": stats.to_dict()})

        return paper

    async def run_job(self, job_id: str, arxiv_id: str, auto_process: bool = False) -> None:
        """Background task entry point for a single ingestion."""
        try:
            paper = await self.ingest(arxiv_id, auto_process=auto_process, job_id=job_id)
        except Exception as e:
            message = e.message if isinstance(e, PaperGraphException) else str(e)
            logger.error(f"Ingestion job {job_id} for arXiv:{arxiv_id} failed: {type(e).__name__}: {message}")
            await self.job_store.update_job(job_id, status=ProcessingStatus.FAILED, error=message)
            return

        job = await self.job_store.get_job(job_id)
        result = {"paper_id": paper.id, "processed": paper.processed}
        if job and job.result:
            result = {**job.result, **result}
        await self.job_store.update_job(
            job_id, status=ProcessingStatus.COMPLETED, progress=100, message="Ingestion complete", result=result
        )

    async def run_bulk_job(self, job_id: str, arxiv_ids: list[str], auto_process: bool = False) -> None:
        """Ingest papers one at a time, recording a per-paper outcome."""
        outcomes = []
        total = len(arxiv_ids)
        await self.job_store.update_job(job_id, status=ProcessingStatus.DOWNLOADING_PDF, progress=0)

        for i, arxiv_id in enumerate(arxiv_ids):
            await self.job_store.update_job(
                job_id, progress=int(i / total * 100), message=f"Ingesting {arxiv_id} ({i + 1}/{total})"
            )
            try:
                paper = await self.ingest(arxiv_id, auto_process=auto_process)
                outcomes.append({"arxiv_id": arxiv_id, "paper_id": paper.id, "status": paper.status.value})
            except Exception as e:
                message = e.message if isinstance(e, PaperGraphException) else str(e)
                logger.error(f"Bulk job {job_id}: arXiv:{arxiv_id} failed: {type(e).__name__}: {message}")
                outcomes.append({"arxiv_id": arxiv_id, "paper_id": None, "status": "failed", "error": message})

        failed = sum(1 for outcome in outcomes if outcome["status"] == "failed")
        result = {"papers": outcomes, "succeeded": total - failed, "failed": failed}
        status = ProcessingStatus.FAILED if total and failed == total else ProcessingStatus.COMPLETED
        await self.job_store.update_job(
            job_id,
            status=status,
            progress=100,
            message=f"Ingested {total - failed}/{total} papers",
            result=result,
            error="All papers failed" if status == ProcessingStatus.FAILED else None,
        )
