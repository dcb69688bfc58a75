"""
Test text normalization, chunking and identifiers.

Run with: python -m pytest cvtailor/tests/test_text.py -v
"""

import logging
import string

import pytest

from cvtailor.core.schemas import CVSection
from cvtailor.core.text import (
    ChunkConfigError, chunk_text, clean_pdf_text, clean_scraped_text,
    create_cv_documents, detect_section, format_file_size, generate_session_id
)

logger = logging.getLogger(__name__)


# ============================================================================
# Normalization
# ============================================================================

def test_clean_scraped_text_entities_and_whitespace():
    raw = "  Senior&nbsp;Engineer &amp; Lead\t\t&lt;Remote&gt;  "
    assert clean_scraped_text(raw) == "Senior Engineer & Lead <Remote>"


def test_clean_scraped_text_keeps_paragraph_breaks():
    raw = "About us\n \n\t\n\n\nResponsibilities\nBuild things\n\nRequirements"
    cleaned = clean_scraped_text(raw)

    assert cleaned == "About us\n\nResponsibilities\nBuild things\n\nRequirements"
    assert "\n\n\n" not in cleaned


def test_clean_scraped_text_empty_and_idempotent():
    assert clean_scraped_text("") == ""
    assert clean_scraped_text("   \n\n  ") == ""

    samples = [
        "a  b\n\n\n\nc",
        "&amp;amp; stays one level",
        "\tx\t\ty \n \n \n z ",
    ]
    for sample in samples:
        once = clean_scraped_text(sample)
        assert once == once.strip()
        assert "  " not in once
        assert "\n\n\n" not in once
        # Entity replacement can expose a new entity, everything else is stable
        if "&amp;amp;" not in sample:
            assert clean_scraped_text(once) == once


def test_clean_pdf_text():
    assert clean_pdf_text("  Jane\n\nDoe • Engineer\t ") == "Jane Doe  Engineer"


# ============================================================================
# Chunking
# ============================================================================

def test_chunk_text_window_sizes_and_overlap():
    text = (string.ascii_letters * 40)[:2000]
    chunks = chunk_text(text, chunk_size=800, overlap=200)

    logger.info(f"{len(text)} chars -> {len(chunks)} chunks")
    assert len(chunks) == 4  # starts at 0, 600, 1200, 1800
    assert all(len(chunk) <= 800 for chunk in chunks)
    for current, following in zip(chunks, chunks[1:]):
        assert current[-200:] == following[:200]
    assert "".join(c[:600] for c in chunks[:-1]) + chunks[-1] == text


def test_chunk_text_short_and_empty():
    assert chunk_text("") == []
    assert chunk_text("Short CV") == ["Short CV"]


def test_chunk_text_drops_blank_windows():
    text = "A" * 10 + " " * 30 + "B" * 10
    chunks = chunk_text(text, chunk_size=10, overlap=0)
    assert chunks == ["A" * 10, "B" * 10]


@pytest.mark.parametrize("chunk_size, overlap", [(800, 800), (800, 900), (0, 0), (100, -1)])
def test_chunk_text_rejects_non_advancing_windows(chunk_size, overlap):
    with pytest.raises(ChunkConfigError):
        chunk_text("some text", chunk_size=chunk_size, overlap=overlap)


def test_detect_section_ordering():
    assert detect_section("Work History: Acme Corp") == CVSection.EXPERIENCE
    assert detect_section("EDUCATION\nBSc Computer Science") == CVSection.EDUCATION
    assert detect_section("Technologies: Python, Go") == CVSection.SKILLS
    assert detect_section("AWS Certified (certificate 123)") == CVSection.CERTIFICATIONS
    assert detect_section("Side project: a compiler") == CVSection.PROJECTS
    assert detect_section("Jane Doe, London") == CVSection.GENERAL
    # First group wins when several match
    assert detect_section("Experience with degree-level skills") == CVSection.EXPERIENCE


def test_create_cv_documents_indexes_contiguously():
    chunks = ["Experience at Acme", "Education: MIT", "Skills: Python"]
    documents = create_cv_documents(chunks, "session_abc")

    assert [d.metadata.chunk_index for d in documents] == [0, 1, 2]
    assert all(d.metadata.total_chunks == 3 for d in documents)
    assert all(d.metadata.session_id == "session_abc" for d in documents)
    assert all(d.id.startswith("doc_") and len(d.id) == 14 for d in documents)
    assert len({d.id for d in documents}) == 3
    assert [d.metadata.section for d in documents] == [
        CVSection.EXPERIENCE, CVSection.EDUCATION, CVSection.SKILLS
    ]


# ============================================================================
# Identifiers & Formatting
# ============================================================================

def test_generate_session_id():
    ids = {generate_session_id() for _ in range(200)}
    assert len(ids) == 200
    assert all(i.startswith("session_") and len(i) == len("session_") + 12 for i in ids)


def test_format_file_size():
    assert format_file_size(0) == "0 Bytes"
    assert format_file_size(500) == "500 Bytes"
    assert format_file_size(1536) == "1.5 KB"
    assert format_file_size(10 * 1024 * 1024) == "10 MB"
