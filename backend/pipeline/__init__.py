"""Paper-processing pipeline: chunking, extraction, resolution, validation and graph mutation."""

from .chunker import Chunk, SectionLabel, chunk_text, detect_section
from .extractor import ExtractionStage
from .mutator import GraphMutator, MutationResult
from .processor import PaperProcessor, ProcessingStats
from .resolver import ResolutionCache, ResolutionStage
from .validator import ValidationContext, ValidationStage

__all__ = [
    "Chunk",
    "SectionLabel",
    "chunk_text",
    "detect_section",
    "ExtractionStage",
    "GraphMutator",
    "MutationResult",
    "PaperProcessor",
    "ProcessingStats",
    "ResolutionCache",
    "ResolutionStage",
    "ValidationContext",
    "ValidationStage",
]
