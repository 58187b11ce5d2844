"""
Paper Processor

Runs one paper through Chunker -> Extraction -> Resolution -> Validation ->
Graph Mutator, strictly one chunk at a time.

Failure policy:
- missing paper or missing raw text is fatal and propagates
- anything that goes wrong inside a chunk is logged, the chunk's writes are
  rolled back, and the loop moves on to the next chunk
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Awaitable, Callable, Optional

from config import Settings, settings as default_settings
from exceptions import PaperNotFoundError, PaperTextMissingError
from models.graph import Paper, ProcessingStatus

from .chunker import Chunk, chunk_text
from .extractor import ExtractionStage
from .mutator import GraphMutator
from .resolver import ResolutionCache, ResolutionStage
from .validator import ValidationContext, ValidationStage

logger = logging.getLogger(__name__)


@dataclass
class ProcessingStats:
    chunks_processed: int = 0
    chunks_failed: int = 0
    entities_extracted: int = 0
    entities_created: int = 0
    relationships_created: int = 0
    relationships_rejected: int = 0
    relationships_unresolved: int = 0
    nodes_deleted: int = 0
    edges_deleted: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class PaperProcessor:
    """
    Per-paper pipeline orchestration.

    Usage:
        processor = PaperProcessor(store, completion)
        stats = await processor.process_paper(paper_id)
    """

    def __init__(
        self,
        store,
        completion,
        settings: Optional[Settings] = None,
        extractor: Optional[ExtractionStage] = None,
        resolver: Optional[ResolutionStage] = None,
        validator: Optional[ValidationStage] = None,
        mutator: Optional[GraphMutator] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.store = store
        self.settings = settings or default_settings
        self.extractor = extractor or ExtractionStage(completion, temperature=self.settings.extraction_temperature)
        self.resolver = resolver or ResolutionStage(
            completion,
            temperature=self.settings.resolution_temperature,
            prompt_node_limit=self.settings.resolution_prompt_nodes,
        )
        self.validator = validator or ValidationStage(
            completion,
            temperature=self.settings.validation_temperature,
            min_confidence=self.settings.min_edge_confidence,
            accept_on_failure=self.settings.validation_accept_on_failure,
            context_limit=self.settings.context_node_sample,
        )
        self.mutator = mutator or GraphMutator(store, evidence_max_chars=self.settings.evidence_max_chars)
        self._sleep = sleep or asyncio.sleep

    async def _load_paper(self, paper_id: str) -> Paper:
        paper = await self.store.get_paper(paper_id)
        if paper is None:
            raise PaperNotFoundError(paper_id)
        return paper

    async def process_paper(self, paper_id: str) -> ProcessingStats:
        """
        Process every chunk of a paper and mark it completed.

        Raises:
            PaperNotFoundError: no such paper
            PaperTextMissingError: the paper has no raw text (paper marked failed)
        """
        paper = await self._load_paper(paper_id)
        if not paper.raw_text or not paper.raw_text.strip():
            await self.store.set_paper_status(
                paper_id, ProcessingStatus.FAILED, error="Paper has no raw text"
            )
            raise PaperTextMissingError(paper_id)

        logger.info(f"Processing paper {paper_id}: {paper.title}")
        try:
            stats = await self._run_chunks(paper)
        except Exception as e:
            logger.error(f"Processing failed for paper {paper_id}: {type(e).__name__}: {e}")
            await self.store.set_paper_status(paper_id, ProcessingStatus.FAILED, error=str(e))
            raise

        await self.store.update_paper(
            paper_id,
            processed=True,
            status=ProcessingStatus.COMPLETED,
            progress=100,
            error=None,
        )
        logger.info(f"Finished paper {paper_id}: {stats.to_dict()}")
        return stats

    async def _run_chunks(self, paper: Paper) -> ProcessingStats:
        await self.store.set_paper_status(paper.id, ProcessingStatus.CHUNKING, progress=0)
        chunks = chunk_text(paper.raw_text, self.settings.chunk_size, self.settings.chunk_overlap)
        total = len(chunks)
        logger.info(f"Paper {paper.id}: {total} chunks")

        existing_nodes = await self.store.list_nodes(limit=self.settings.existing_node_sample)
        cache = ResolutionCache()
        stats = ProcessingStats()

        for chunk in chunks:
            if chunk.index > 0 and self.settings.chunk_delay_seconds > 0:
                await self._sleep(self.settings.chunk_delay_seconds)

            progress = min(99, int(chunk.index / total * 100))
            try:
                await self._process_chunk(paper, chunk, progress, existing_nodes, cache, stats)
            except Exception as e:
                cache.rollback()
                stats.chunks_failed += 1
                logger.error(
                    f"Chunk {chunk.index + 1}/{total} of paper {paper.id} failed: {type(e).__name__}: {e}"
                )
            stats.chunks_processed += 1

        return stats

    async def _process_chunk(
        self,
        paper: Paper,
        chunk: Chunk,
        progress: int,
        existing_nodes: list,
        cache: ResolutionCache,
        stats: ProcessingStats,
    ) -> None:
        await self.store.set_paper_status(paper.id, ProcessingStatus.EXTRACTING_ENTITIES, progress=progress)
        extraction = await self.extractor.extract(paper.id, chunk.index, chunk.text, chunk.section)
        stats.entities_extracted += len(extraction.entities)
        if extraction.is_empty:
            return

        await self.store.set_paper_status(paper.id, ProcessingStatus.RESOLVING_ENTITIES, progress=progress)
        resolution = await self.resolver.resolve(extraction, existing_nodes)

        await self.store.set_paper_status(paper.id, ProcessingStatus.VALIDATING, progress=progress)
        context = ValidationContext(
            nodes=existing_nodes[:self.settings.context_node_sample],
            publication_date=paper.publication_date,
            title=paper.title,
        )
        validation = await self.validator.validate(resolution, context)
        stats.relationships_rejected += len(validation.rejected)

        cache.begin()
        async with self.store.transaction() as tx:
            mutation = await self.mutator.apply(paper, chunk, resolution, validation, cache, store=tx)
        cache.commit()

        existing_nodes.extend(mutation.new_nodes)
        stats.entities_created += mutation.nodes_created
        stats.relationships_created += mutation.edges_created
        stats.relationships_unresolved += mutation.relationships_unresolved

    async def reprocess_paper(self, paper_id: str) -> ProcessingStats:
        """
        Delete the paper's graph and run the pipeline again.

        Edges touching the paper's nodes are deleted before the nodes. The
        steps are not wrapped in one transaction.
        """
        await self._load_paper(paper_id)
        deleted = await self.store.delete_paper_graph(paper_id)
        await self.store.update_paper(
            paper_id,
            processed=False,
            status=ProcessingStatus.PENDING,
            progress=0,
            error=None,
        )
        stats = await self.process_paper(paper_id)
        stats.nodes_deleted = deleted["nodes_deleted"]
        stats.edges_deleted = deleted["edges_deleted"]
        return stats
