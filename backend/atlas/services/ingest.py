"""Document ingestion — validate, extract and chunk uploaded rules PDFs."""

import io
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

import pdfplumber

from atlas.config import settings
from atlas.errors import EmptyDocument, TooLarge, UnsupportedFormat

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n"


@dataclass
class ExtractedDocument:
    text: str
    # Character offset in `text` at which each page starts
    page_offsets: list[int] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.page_offsets)

    def page_at(self, offset: int) -> int:
        """1-based page number containing the character at `offset`."""
        page = 1
        for i, start in enumerate(self.page_offsets):
            if start <= offset:
                page = i + 1
            else:
                break
        return page


@dataclass
class Chunk:
    index: int
    text: str
    start: int
    metadata: dict


def validate_pdf(content: bytes) -> None:
    """Reject uploads that are too large or are not PDFs at all."""
    if len(content) > settings.MAX_UPLOAD_BYTES:
        limit_mb = settings.MAX_UPLOAD_BYTES / (1024 * 1024)
        raise TooLarge(f"File too large (max {limit_mb:g}MB)")
    if len(content) < 4 or content[:4] != b"%PDF":
        raise UnsupportedFormat("File does not appear to be a valid PDF")


def extract_pages(content: bytes) -> ExtractedDocument:
    """Extract text page by page, in page order."""
    parts: list[str] = []
    offsets: list[int] = []
    cursor = 0
    try:
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            for page in pdf.pages:
                page_text = (page.extract_text() or "").strip()
                if not page_text:
                    continue
                if parts:
                    cursor += len(PAGE_SEPARATOR)
                offsets.append(cursor)
                parts.append(page_text)
                cursor += len(page_text)
    except Exception as e:
        raise UnsupportedFormat(f"Failed to extract text from PDF: {e}") from e

    text = PAGE_SEPARATOR.join(parts)
    if not text.strip():
        raise EmptyDocument(
            "No extractable text found in PDF. Make sure it is not a scanned/image-only document."
        )
    return ExtractedDocument(text=text, page_offsets=offsets)


def _clean(piece: str) -> str:
    lines = (line.strip() for line in piece.splitlines())
    return " ".join(line for line in lines if line)


def chunk_text(
    text: str,
    chunk_size: int | None = None,
    overlap: int | None = None,
) -> list[tuple[int, str]]:
    """Split text into overlapping character windows.

    Returns (start_offset, cleaned_text) pairs; windows that clean to nothing
    are dropped.
    """
    chunk_size = chunk_size or settings.RAG_CHUNK_SIZE
    overlap = settings.RAG_CHUNK_OVERLAP if overlap is None else overlap
    if overlap >= chunk_size:
        raise ValueError("chunk overlap must be smaller than chunk size")

    if not text or not text.strip():
        return []

    chunks = []
    start = 0
    length = len(text)
    while start < length:
        end = min(start + chunk_size, length)
        cleaned = _clean(text[start:end])
        if cleaned:
            chunks.append((start, cleaned))
        if end == length:
            break
        start = max(end - overlap, start + 1)
    return chunks


def build_chunks(document: ExtractedDocument, file_name: str) -> list[Chunk]:
    """Chunk an extracted document and attach per-chunk metadata."""
    windows = chunk_text(document.text)
    processed_at = datetime.now(timezone.utc).isoformat()
    return [
        Chunk(
            index=i,
            text=piece,
            start=start,
            metadata={
                "file_name": file_name,
                "page": document.page_at(start),
                "chunk_size": len(piece),
                "total_chunks": len(windows),
                "processing_timestamp": processed_at,
            },
        )
        for i, (start, piece) in enumerate(windows)
    ]


def ingest_pdf(content: bytes, file_name: str) -> tuple[ExtractedDocument, list[Chunk]]:
    """Validate → extract → chunk. CPU-bound; callers run it off the event loop."""
    validate_pdf(content)
    document = extract_pages(content)
    chunks = build_chunks(document, file_name)
    if not chunks:
        raise EmptyDocument("No extractable text found in PDF.")
    logger.info(
        "Extracted %d characters from %d pages of %s into %d chunks",
        len(document.text), document.page_count, file_name, len(chunks),
    )
    return document, chunks
