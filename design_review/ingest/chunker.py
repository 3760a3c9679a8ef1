"""Section-aware chunking of procedure documents."""

import logging
import re
import uuid
from dataclasses import dataclass
from typing import List, Optional

from config.settings import settings
from design_review.errors import ChunkingConfigError

logger = logging.getLogger(__name__)

# Structural markers, one per line
SECTION_PATTERNS = [
    r"#{1,6}[ \t]+\S.*",                                   # Markdown headings
    r"\d+\.(?:\d+\.?)*[ \t]+\S.*",                          # Numbered outlines (1. 1.1 1.1.1)
    r"(?:Article|Section|Clause|§)[ \t]*\d+[\w.]*.*",      # Legal clauses
    r"제[ \t]*\d+[ \t]*[조항].*",                           # Korean legal clauses (제1조, 제2항)
]
SECTION_REGEX = re.compile(
    "|".join(f"^(?:{pattern})$" for pattern in SECTION_PATTERNS),
    re.MULTILINE,
)

SENTENCE_END = re.compile(r"[.!?]\s+(?=[A-Z가-힣])")

BREAK_LOOKBACK = 100  # Characters searched backward for a natural break


@dataclass
class ChunkingOptions:
    """Options controlling chunk size and section handling."""
    chunk_size: int = 1000
    overlap: int = 200
    preserve_sections: bool = True

    @classmethod
    def from_settings(cls) -> "ChunkingOptions":
        return cls(
            chunk_size=settings.chunk_size,
            overlap=settings.chunk_overlap,
            preserve_sections=settings.preserve_sections,
        )

    def validate(self) -> None:
        """Fail fast on options that cannot produce a terminating split."""
        if self.chunk_size <= 0:
            raise ChunkingConfigError("chunk_size must be positive", self.chunk_size, self.overlap)
        if self.overlap < 0:
            raise ChunkingConfigError("overlap must not be negative", self.chunk_size, self.overlap)
        if self.overlap >= self.chunk_size:
            raise ChunkingConfigError("overlap must be smaller than chunk_size", self.chunk_size, self.overlap)


@dataclass
class Section:
    """A structural section of a document, in absolute offsets."""
    start: int
    end: int
    header: Optional[str] = None


@dataclass
class ChunkMetadata:
    """Metadata for a document chunk."""
    chunk_id: str
    source_id: str
    chunk_index: int  # document-wide, monotonic
    start_offset: int  # absolute, inclusive
    end_offset: int  # absolute, exclusive
    section_header: Optional[str] = None


@dataclass
class Chunk:
    """A chunk of a procedure document."""
    content: str
    metadata: ChunkMetadata


class DocumentChunker:
    """
    Structure-aware chunker for procedure documents.

    Splits text into sections at headings, numbered outline entries and
    legal clause markers, then cuts each section into overlapping windows
    that end at the most natural break found near the window edge.
    Offsets always refer to the full source text.
    """

    def __init__(self, options: Optional[ChunkingOptions] = None):
        """
        Initialize the chunker.

        Args:
            options: Chunking options (uses settings if not provided)

        Raises:
            ChunkingConfigError: If the options are invalid
        """
        self.options = options or ChunkingOptions.from_settings()
        self.options.validate()

    def chunk_document(self, text: str, source_id: str) -> List[Chunk]:
        """
        Chunk a document.

        Args:
            text: Raw document text
            source_id: Identifier of the source document

        Returns:
            Chunks ordered by chunk_index
        """
        if not text or not text.strip():
            return []

        if not self.options.preserve_sections:
            sections = [Section(start=0, end=len(text))]
        elif len(text) <= self.options.chunk_size:
            # Short documents stay whole; a leading marker still tags them
            first = self.split_sections(text)[0]
            sections = [Section(start=0, end=len(text), header=first.header if first.start == 0 else None)]
        else:
            sections = self.split_sections(text)

        chunks: List[Chunk] = []
        for section in sections:
            self._chunk_section(text, section, source_id, chunks)

        logger.debug(
            "Chunked %s into %d chunks across %d sections",
            source_id, len(chunks), len(sections),
        )
        return chunks

    def split_sections(self, text: str) -> List[Section]:
        """Split text at structural markers; leading text becomes an untagged section."""
        matches = list(SECTION_REGEX.finditer(text))

        if not matches:
            return [Section(start=0, end=len(text))]

        sections = []
        if matches[0].start() > 0:
            sections.append(Section(start=0, end=matches[0].start()))

        for idx, match in enumerate(matches):
            end = matches[idx + 1].start() if idx + 1 < len(matches) else len(text)
            sections.append(Section(start=match.start(), end=end, header=match.group(0).strip()))

        return sections

    def _chunk_section(self, text: str, section: Section, source_id: str, chunks: List[Chunk]) -> None:
        """Cut one section into size-bounded windows, appending to chunks."""
        chunk_size = self.options.chunk_size
        overlap = self.options.overlap
        start = section.start

        while start < section.end:
            end = min(start + chunk_size, section.end)

            if end < section.end:
                break_point = self._find_break_point(text, start, end)
                # The next window must still start after this one
                if break_point > start + overlap:
                    end = break_point

            content = text[start:end].strip()
            if content:
                chunks.append(Chunk(
                    content=content,
                    metadata=ChunkMetadata(
                        chunk_id=str(uuid.uuid4()),
                        source_id=source_id,
                        chunk_index=len(chunks),
                        start_offset=start,
                        end_offset=end,
                        section_header=section.header,
                    ),
                ))

            # Remaining span after the overlap would be no longer than the overlap itself
            if end >= section.end:
                break
            start = end - overlap

    def _find_break_point(self, text: str, window_start: int, position: int) -> int:
        """
        Find a natural break at or before position.

        Prefers a paragraph break, then a sentence end, then a line break.
        Returns position itself (hard cut) when none is found.
        """
        search_start = max(window_start, position - BREAK_LOOKBACK)
        search_text = text[search_start:position]

        paragraph_break = search_text.rfind("\n\n")
        if paragraph_break != -1:
            return search_start + paragraph_break + 2

        sentence_ends = list(SENTENCE_END.finditer(search_text))
        if sentence_ends:
            return search_start + sentence_ends[-1].start() + 2

        line_break = search_text.rfind("\n")
        if line_break != -1:
            return search_start + line_break + 1

        return position


def chunk_document(text: str, source_id: str, options: Optional[ChunkingOptions] = None) -> List[Chunk]:
    """Chunk a document with the given options (uses settings if not provided)."""
    return DocumentChunker(options).chunk_document(text, source_id)


def count_words(text: str) -> int:
    """Count whitespace-separated words."""
    return len(text.split())
