"""
FastAPI Routes for CV Tailor

REST endpoints for the tailoring flow: scrape a job posting, tailor a CV,
poll or remove sessions, and convert documents to and from PDF.

Error responses share one shape: {"success": false, "error": "..."}.

Run with: uvicorn cvtailor.api.routes:app --reload
"""

import re
import logging
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from cvtailor import __version__
from cvtailor.agents.documents.pdf_parser import PDFParseError, parse_pdf, validate_pdf_upload
from cvtailor.agents.documents.pdf_renderer import (
    format_cover_letter_as_text, format_cv_as_text, parse_cover_letter_text,
    parse_cv_text, render_cover_letter_pdf, render_cv_pdf
)
from cvtailor.agents.job_scraper.job_scraper import InvalidURLError, ScrapeError
from cvtailor.core.config import get_settings
from cvtailor.core.llm_client import LLMConfigurationError
from cvtailor.core.schemas import (
    CoverLetterData, DocumentType, GenerateDocumentRequest, ScrapeRequest,
    SessionStatusResponse, TailorRequest
)
from cvtailor.services.orchestrator import SessionLostError, TailorOrchestrator, create_orchestrator

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

# ============================================================================
# FastAPI App Setup
# ============================================================================

app = FastAPI(
    title="CV Tailor API",
    description="AI-powered CV and cover letter tailoring",
    version=__version__
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_orchestrator: Optional[TailorOrchestrator] = None


def get_orchestrator() -> TailorOrchestrator:
    """Process-wide orchestrator, created on first use."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = create_orchestrator()
    return _orchestrator


# ============================================================================
# Error Handlers
# ============================================================================

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Report every invalid field at once."""
    details = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid input", "details": details}
    )


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail}
    )


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__
    }


# ============================================================================
# Scrape & Tailor Endpoints
# ============================================================================

@app.post("/api/scrape")
async def scrape_job(
    request: ScrapeRequest,
    orchestrator: TailorOrchestrator = Depends(get_orchestrator)
):
    """Resolve a job posting URL into structured job data."""
    try:
        job = await orchestrator.resolve_job_description(request.url)
    except InvalidURLError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ScrapeError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return {"success": True, "data": job.model_dump(mode="json", by_alias=True)}


@app.post("/api/agent")
async def tailor_cv(
    request: TailorRequest,
    orchestrator: TailorOrchestrator = Depends(get_orchestrator)
):
    """
    Tailor a CV and write a cover letter for one job.

    The job description may be pasted, or scraped from jobUrl.
    """
    try:
        session, output = await orchestrator.run(request)
    except InvalidURLError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ScrapeError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except SessionLostError as e:
        logger.warning(str(e))
        raise HTTPException(status_code=409, detail="Session expired before tailoring finished")
    except LLMConfigurationError as e:
        logger.error(f"LLM not configured: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Tailoring error: {e}")
        raise HTTPException(status_code=500, detail="Failed to process CV")

    sections = output.sections
    return {
        "success": True,
        "sessionId": session.session_id,
        "result": {
            "content": output.content,
            "tokensUsed": output.tokens_used,
            "model": output.model,
            "tailoredCV": sections.tailored_cv,
            "coverLetter": sections.cover_letter,
            "summary": sections.summary,
            "matchScore": session.result.match_score if session.result else None,
            "complete": sections.complete,
        }
    }


@app.get("/api/agent")
async def get_session_status(
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    orchestrator: TailorOrchestrator = Depends(get_orchestrator)
):
    """Poll a session's status."""
    if not session_id:
        raise HTTPException(status_code=400, detail="Session ID required")

    session = orchestrator.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")

    status = SessionStatusResponse.from_session(session)
    return {"success": True, "session": status.model_dump(mode="json", by_alias=True)}


# ============================================================================
# Session Endpoints
# ============================================================================

@app.delete("/api/sessions/{session_id}")
async def delete_session(
    session_id: str,
    orchestrator: TailorOrchestrator = Depends(get_orchestrator)
):
    """Delete a session (no error if it is already gone)."""
    return {"success": True, "deleted": orchestrator.delete_session(session_id)}


@app.post("/api/sessions/cleanup")
async def cleanup_sessions(
    max_age_seconds: Optional[int] = Query(default=None, alias="maxAgeSeconds", ge=0),
    orchestrator: TailorOrchestrator = Depends(get_orchestrator)
):
    """Expire old sessions. Intended for an external scheduler."""
    removed = orchestrator.cleanup(max_age_seconds)
    return {"success": True, "removed": removed}


# ============================================================================
# Document Endpoints
# ============================================================================

@app.post("/api/parse-pdf")
async def parse_pdf_upload(file: UploadFile = File(...)):
    """Extract text from an uploaded CV."""
    content = await file.read()

    errors = validate_pdf_upload(file.filename, file.content_type, len(content),
                                 get_settings().upload)
    if errors:
        raise HTTPException(status_code=400, detail=errors[0])

    try:
        result = parse_pdf(content)
    except PDFParseError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Parsed upload {file.filename}: {result.pages} pages")
    return {
        "success": True,
        "text": result.text,
        "pages": result.pages,
        "info": result.info.model_dump(),
    }


def _cover_letter_data(request: GenerateDocumentRequest) -> CoverLetterData:
    if not request.cover_letter_text:
        raise HTTPException(status_code=400, detail="Cover letter text is required")
    user = request.user_data
    return parse_cover_letter_text(
        request.cover_letter_text,
        user.name,
        user.email,
        user.company_name or "the company",
        user.job_title
    )


def _require_cv_text(request: GenerateDocumentRequest) -> str:
    if not request.cv_text:
        raise HTTPException(status_code=400, detail="CV text is required")
    return request.cv_text


def _attachment(content: bytes, media_type: str, stem: str, extension: str) -> Response:
    stamp = int(datetime.utcnow().timestamp() * 1000)
    stem = re.sub(r"[^A-Za-z0-9_-]+", "-", stem).strip("-") or "document"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{stem}-{stamp}.{extension}"'}
    )


@app.post("/api/generate-pdf")
async def generate_pdf(request: GenerateDocumentRequest):
    """Render the tailored CV or cover letter as a PDF download."""
    if request.type == DocumentType.CV:
        cv_data = parse_cv_text(_require_cv_text(request))
        pdf_bytes = render_cv_pdf(cv_data)
        return _attachment(pdf_bytes, "application/pdf", "tailored-cv", "pdf")

    pdf_bytes = render_cover_letter_pdf(_cover_letter_data(request))
    return _attachment(pdf_bytes, "application/pdf", "cover-letter", "pdf")


@app.post("/api/generate-text")
async def generate_text(request: GenerateDocumentRequest):
    """Render the tailored CV or cover letter as a plain-text download."""
    if request.type == DocumentType.CV:
        text = format_cv_as_text(_require_cv_text(request))
        return _attachment(text.encode("utf-8"), "text/plain; charset=utf-8", "tailored-cv", "txt")

    text = format_cover_letter_as_text(_cover_letter_data(request))
    return _attachment(text.encode("utf-8"), "text/plain; charset=utf-8", "cover-letter", "txt")


# ============================================================================
# Run Server
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
