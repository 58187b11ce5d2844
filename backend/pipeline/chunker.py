"""
Paper Chunker

Splits normalized paper text into overlapping, paragraph-aware chunks and
labels each with a coarse section.

Boundary preference inside each window:
1. Last paragraph break
2. Last whitespace (over-long paragraphs are split on words)
3. Hard cut, only when a single token is longer than the window
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

logger = logging.getLogger(__name__)


class SectionLabel(str, Enum):
    """Coarse section labels attached to chunks."""
    ABSTRACT = "abstract"
    INTRODUCTION = "introduction"
    RELATED_WORK = "related_work"
    METHODS = "methods"
    RESULTS = "results"
    CONCLUSION = "conclusion"
    REFERENCES = "references"


# Optional numbering: "3", "3.1", "III.", "A."
_NUMBERING = r"(?:(?:\d+(?:\.\d+)*\.?|[ivxlc]+\.|[a-h]\.)\s+)?"

SECTION_PATTERNS = [
    (SectionLabel.ABSTRACT, [r"abstract", r"summary"]),
    (SectionLabel.INTRODUCTION, [r"introduction"]),
    (SectionLabel.RELATED_WORK, [r"related\s+work", r"background", r"prior\s+work", r"literature\s+review"]),
    (SectionLabel.METHODS, [r"methodology", r"methods?", r"approach", r"our\s+method", r"proposed\s+method"]),
    (SectionLabel.RESULTS, [r"experiments?", r"results?", r"evaluation", r"experimental\s+results"]),
    (SectionLabel.CONCLUSION, [r"conclusions?", r"discussion", r"future\s+work", r"concluding\s+remarks"]),
    (SectionLabel.REFERENCES, [r"references", r"bibliography"]),
]

HEADING_WINDOW = 300
MAX_HEADING_LENGTH = 80
_RUN_IN_PATTERN = re.compile(r"^(?:[:.]|\s*[\u2014\u2013]|\s+-\s)")
HEADING_CONNECTIVES = {"a", "an", "and", "by", "for", "from", "in", "of", "on", "the", "to", "via", "vs", "with"}

_COMPILED_PATTERNS = [
    (label, [re.compile(rf"^(?P<number>{_NUMBERING}){pattern}\b(?P<rest>.*)$", re.IGNORECASE) for pattern in patterns])
    for label, patterns in SECTION_PATTERNS
]


@dataclass
class Chunk:
    """A slice of the normalized paper text."""
    index: int
    text: str
    start: int  # offset of text[0] in the normalized paper text
    end: int
    overlap: int = 0  # leading characters repeated from the previous chunk
    section: SectionLabel = SectionLabel.METHODS

    @property
    def new_text(self) -> str:
        """Text not already covered by the previous chunk."""
        return self.text[self.overlap:]


def normalize_text(text: Optional[str]) -> str:
    """Split on blank lines, collapse spaces/tabs, re-join paragraphs with one blank line."""
    if not text:
        return ""
    paragraphs = []
    for paragraph in re.split(r"\n\s*\n", text):
        paragraph = re.sub(r"[ \t]+", " ", paragraph)
        paragraph = "\n".join(line.strip() for line in paragraph.splitlines()).strip()
        if paragraph:
            paragraphs.append(paragraph)
    return "\n\n".join(paragraphs)


def _is_heading_line(line: str, numbered: bool, rest: str) -> bool:
    """
    A standalone heading: no sentence punctuation at the end, and the words
    after the keyword are title-cased (or the line is numbered).
    """
    if rest.strip() and line[-1] in ".?!,;":
        return False
    if numbered:
        return True
    for word in rest.split():
        if word[0].isalpha() and word[0].islower() and word.lower() not in HEADING_CONNECTIVES:
            return False
    return True


def _heading_match(line: str) -> Optional[SectionLabel]:
    for label, patterns in _COMPILED_PATTERNS:
        for pattern in patterns:
            match = pattern.match(line)
            if not match:
                continue
            rest = match.group("rest")
            # Run-in heading like "Abstract. We ..." or "Results: ..."
            if _RUN_IN_PATTERN.match(rest):
                return label
            if len(line) <= MAX_HEADING_LENGTH and _is_heading_line(line, bool(match.group("number")), rest):
                return label
    return None


def detect_section(text: str, index: int, total: int) -> SectionLabel:
    """
    Classify a chunk by heading keywords near its start, else by position.

    Positional fallback: first chunk is the abstract, then the first 20% of
    chunks introduction, up to 60% methods, up to 85% results, rest conclusion.
    """
    for line in (text or "")[:HEADING_WINDOW].splitlines():
        line = line.strip()
        if not line:
            continue
        label = _heading_match(line)
        if label is not None:
            return label

    if index == 0:
        return SectionLabel.ABSTRACT
    position = index / max(total, 1)
    if position < 0.2:
        return SectionLabel.INTRODUCTION
    if position < 0.6:
        return SectionLabel.METHODS
    if position < 0.85:
        return SectionLabel.RESULTS
    return SectionLabel.CONCLUSION


def _find_boundary(text: str, start: int, limit: int, min_end: int) -> tuple[int, int]:
    """Return (chunk_end, next_start) for a window [start, limit)."""
    paragraph_break = text.rfind("\n\n", max(start + 1, min_end), limit + 1)
    if paragraph_break != -1:
        return paragraph_break, paragraph_break + 2

    for position in range(min(limit, len(text) - 1), start, -1):
        if text[position].isspace():
            return position, position + 1

    return limit, limit


def _overlap_start(text: str, content_start: int, end: int, overlap: int) -> Optional[int]:
    """First word start at or after ``end - overlap``, never before ``content_start``."""
    if overlap <= 0:
        return None
    position = max(end - overlap, content_start)
    while position < end and (text[position].isspace() or (position > 0 and not text[position - 1].isspace())):
        position += 1
    return position if position < end else None


def chunk_text(text: Optional[str], chunk_size: int = 2000, overlap: int = 200) -> List[Chunk]:
    """
    Split text into overlapping chunks.

    Args:
        text: raw paper text
        chunk_size: maximum characters per chunk
        overlap: approximate characters repeated from the previous chunk

    Returns:
        Ordered chunks with section labels; empty input gives an empty list

    Raises:
        ValueError: chunk_size <= 0, overlap < 0 or overlap >= chunk_size
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError("overlap must be >= 0 and smaller than chunk_size")

    normalized = normalize_text(text)
    if not normalized:
        return []

    length = len(normalized)
    chunks: List[Chunk] = []
    chunk_start = 0
    content_start = 0

    while content_start < length:
        limit = max(chunk_start + chunk_size, content_start + 1)
        if limit >= length:
            end, next_start = length, length
        else:
            # Paragraph breaks only count in the second half of the window
            end, next_start = _find_boundary(normalized, content_start, limit, chunk_start + chunk_size // 2)

        chunks.append(
            Chunk(
                index=len(chunks),
                text=normalized[chunk_start:end],
                start=chunk_start,
                end=end,
                overlap=content_start - chunk_start,
            )
        )

        while next_start < length and normalized[next_start].isspace():
            next_start += 1
        if next_start >= length:
            break

        overlap_from = _overlap_start(normalized, content_start, end, overlap)
        chunk_start = overlap_from if overlap_from is not None else next_start
        content_start = next_start

    total = len(chunks)
    for chunk in chunks:
        chunk.section = detect_section(chunk.text, chunk.index, total)

    logger.debug(f"Chunked {length} chars into {total} chunks (size={chunk_size}, overlap={overlap})")
    return chunks
