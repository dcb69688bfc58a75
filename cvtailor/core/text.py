"""
Text utilities for CV Tailor.

Leaf helpers with no dependencies on the rest of the package:
1. Scraped text normalization (entities, whitespace, paragraph breaks)
2. PDF text cleanup
3. CV chunking and section detection
4. Identifiers and display formatting
"""

import re
import math
import secrets
import string
from typing import List

from cvtailor.core.schemas import CVDocument, ChunkMetadata, CVSection


_ID_ALPHABET = string.ascii_letters + string.digits + "_-"

HTML_ENTITIES = {
    "&nbsp;": " ",
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
}

# Ordered keyword groups, first match wins
SECTION_KEYWORDS = [
    (CVSection.EXPERIENCE, ("experience", "work history")),
    (CVSection.EDUCATION, ("education", "degree")),
    (CVSection.SKILLS, ("skills", "technologies")),
    (CVSection.CERTIFICATIONS, ("certification", "certificate")),
    (CVSection.PROJECTS, ("project",)),
]


class ChunkConfigError(ValueError):
    """Chunk parameters that would never advance the window."""


# ============================================================================
# Normalization
# ============================================================================

def clean_scraped_text(text: str) -> str:
    """
    Clean scraped text while keeping paragraph breaks.

    - Replaces &nbsp; &amp; &lt; &gt; with their characters
    - Collapses runs of spaces/tabs (newlines untouched)
    - Collapses 3+ newlines (with stray whitespace between) to one blank line
    - Trims the whole string
    """
    if not text:
        return ""

    for entity, char in HTML_ENTITIES.items():
        text = text.replace(entity, char)

    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n\s*\n\s*\n+", "\n\n", text)
    return text.strip()


def clean_pdf_text(text: str) -> str:
    """Normalize text extracted from a PDF (single spaces, ASCII only)."""
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"[^\x00-\x7F]", "", text)
    return text.strip()


# ============================================================================
# Chunking
# ============================================================================

def chunk_text(text: str, chunk_size: int = 800, overlap: int = 200) -> List[str]:
    """
    Split text into overlapping windows.

    Args:
        text: The text to chunk
        chunk_size: Maximum characters per chunk
        overlap: Trailing characters of one chunk repeated at the start of the next

    Returns:
        Trimmed, non-empty chunks in order

    Raises:
        ChunkConfigError: If the window would not advance
    """
    if chunk_size <= 0:
        raise ChunkConfigError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0:
        raise ChunkConfigError(f"overlap must not be negative, got {overlap}")
    if overlap >= chunk_size:
        raise ChunkConfigError(
            f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
        )

    step = chunk_size - overlap
    chunks = []
    start = 0

    while start < len(text):
        chunk = text[start:start + chunk_size].strip()
        if chunk:
            chunks.append(chunk)
        start += step

    return chunks


def detect_section(text: str) -> CVSection:
    """Classify a chunk by the first keyword group it mentions."""
    lower_text = text.lower()

    for section, keywords in SECTION_KEYWORDS:
        if any(keyword in lower_text for keyword in keywords):
            return section

    return CVSection.GENERAL


def create_cv_documents(chunks: List[str], session_id: str) -> List[CVDocument]:
    """Wrap kept chunks as documents indexed 0..n-1."""
    total = len(chunks)
    return [
        CVDocument(
            id=f"doc_{generate_id(10)}",
            content=chunk,
            metadata=ChunkMetadata(
                section=detect_section(chunk),
                chunk_index=index,
                total_chunks=total,
                session_id=session_id,
            ),
        )
        for index, chunk in enumerate(chunks)
    ]


# ============================================================================
# Identifiers & Formatting
# ============================================================================

def generate_id(size: int = 12) -> str:
    """URL-safe random identifier."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(size))


def generate_session_id() -> str:
    """Generate a unique session ID."""
    return f"session_{generate_id(12)}"


def format_file_size(num_bytes: int) -> str:
    """Format a byte count for display (e.g. '1.5 MB')."""
    if num_bytes == 0:
        return "0 Bytes"

    units = ["Bytes", "KB", "MB", "GB"]
    i = min(int(math.floor(math.log(num_bytes, 1024))), len(units) - 1)
    value = round(num_bytes / (1024 ** i), 2)
    if value == int(value):
        value = int(value)
    return f"{value} {units[i]}"
