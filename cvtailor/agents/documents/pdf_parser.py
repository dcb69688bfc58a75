"""
PDF Parser - Extract text content from uploaded CV files.
"""

import io
import logging
from typing import List, Optional

from PyPDF2 import PdfReader

from cvtailor.core.config import UploadSettings, get_settings
from cvtailor.core.schemas import PDFInfo, PDFParseResult
from cvtailor.core.text import clean_pdf_text, format_file_size

logger = logging.getLogger(__name__)


class PDFParseError(ValueError):
    """The uploaded bytes could not be read as a PDF."""


def validate_pdf_upload(
    filename: Optional[str],
    content_type: Optional[str],
    size: int,
    settings: Optional[UploadSettings] = None
) -> List[str]:
    """
    Check an upload before parsing.

    Returns:
        Every problem found (empty list when the file is acceptable)
    """
    settings = settings or get_settings().upload
    errors = []

    if content_type != "application/pdf":
        errors.append("File must be a PDF")
    if size > settings.max_pdf_bytes:
        errors.append(
            f"File size must be less than {format_file_size(settings.max_pdf_bytes)} "
            f"(got {format_file_size(size)})"
        )
    if not (filename or "").lower().endswith(".pdf"):
        errors.append("File must have .pdf extension")

    return errors


def _meta(metadata, key: str) -> Optional[str]:
    if not metadata:
        return None
    value = metadata.get(key)
    return str(value) if value else None


def parse_pdf(data: bytes) -> PDFParseResult:
    """
    Extract text from PDF bytes.

    Raises:
        PDFParseError: If the bytes are not a readable PDF
    """
    try:
        reader = PdfReader(io.BytesIO(data))
        text = ""
        for page in reader.pages:
            text += (page.extract_text() or "") + "\n"
        metadata = reader.metadata
        pages = len(reader.pages)
    except Exception as e:
        logger.error(f"PDF extraction error: {e}")
        raise PDFParseError(
            "Failed to parse PDF file. Please ensure it's a valid PDF."
        ) from e

    logger.info(f"Parsed PDF: {pages} pages, {len(text)} chars")
    return PDFParseResult(
        text=clean_pdf_text(text),
        pages=pages,
        info=PDFInfo(
            title=_meta(metadata, "/Title"),
            author=_meta(metadata, "/Author"),
            creator=_meta(metadata, "/Creator"),
        ),
    )
