"""
Pydantic schemas for data validation and API responses.

These schemas ensure:
1. User input is validated (all field errors reported at once)
2. Scraped and chunked data keeps a fixed shape once created
3. API responses are consistent
"""

from datetime import datetime
from typing import Optional, List
from enum import Enum
from pydantic import BaseModel, Field, model_validator


# ============================================================================
# Enums for State Management
# ============================================================================

class SessionStatus(str, Enum):
    """Processing status of one tailoring session."""

    INITIALIZED = "initialized"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class ScrapeMethod(str, Enum):
    """Which scraping strategy produced a result."""

    PRIMARY = "primary"     # Headless browser
    FALLBACK = "fallback"   # Hosted scraping API


class CVSection(str, Enum):
    """Heuristic section classification of a CV chunk."""

    EXPERIENCE = "experience"
    EDUCATION = "education"
    SKILLS = "skills"
    CERTIFICATIONS = "certifications"
    PROJECTS = "projects"
    GENERAL = "general"


# ============================================================================
# Job Data Schemas
# ============================================================================

TITLE_NOT_FOUND = "Job Title Not Found"
COMPANY_NOT_FOUND = "Company Not Found"


class ScrapedJobData(BaseModel):
    """Result of resolving a job posting URL."""

    title: str = TITLE_NOT_FOUND
    company: str = COMPANY_NOT_FOUND
    description: str = ""
    location: Optional[str] = None

    url: str
    scraped_at: datetime = Field(default_factory=datetime.utcnow, serialization_alias="scrapedAt")
    method: ScrapeMethod

    class Config:
        frozen = True


# ============================================================================
# CV Documents (chunks of the uploaded CV)
# ============================================================================

class ChunkMetadata(BaseModel):
    """Where a chunk sits in its CV."""

    section: CVSection = CVSection.GENERAL
    chunk_index: int = Field(ge=0)
    total_chunks: int = Field(ge=1)
    session_id: str

    class Config:
        frozen = True


class CVDocument(BaseModel):
    """One chunk of a session's CV."""

    id: str
    content: str
    metadata: ChunkMetadata

    class Config:
        frozen = True


# ============================================================================
# Session
# ============================================================================

class TailorResult(BaseModel):
    """Parsed output of a tailoring run."""

    tailored_cv: str
    cover_letter: str
    summary: Optional[str] = None
    match_score: Optional[float] = None


class Session(BaseModel):
    """One user's tailoring request."""

    session_id: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
    status: SessionStatus = SessionStatus.INITIALIZED
    collection_name: str

    # Inputs
    cv_text: Optional[str] = None
    job_description: Optional[str] = None
    documents: List[CVDocument] = Field(default_factory=list)

    # Outputs
    result: Optional[TailorResult] = None
    error: Optional[str] = None


class SessionStatusResponse(BaseModel):
    """Session summary returned to polling clients."""

    session_id: str = Field(serialization_alias="sessionId")
    status: SessionStatus
    created_at: datetime = Field(serialization_alias="createdAt")
    document_count: int = Field(default=0, serialization_alias="documentCount")
    has_result: bool = Field(default=False, serialization_alias="hasResult")
    error: Optional[str] = None

    @classmethod
    def from_session(cls, session: Session) -> "SessionStatusResponse":
        return cls(
            session_id=session.session_id,
            status=session.status,
            created_at=session.created_at,
            document_count=len(session.documents),
            has_result=session.result is not None,
            error=session.error,
        )


# ============================================================================
# API Requests
# ============================================================================

class TailorRequest(BaseModel):
    """Input for the tailor operation."""

    cv_text: str = Field(alias="cvText", min_length=100,
                         description="CV must be at least 100 characters")
    job_description: Optional[str] = Field(default=None, alias="jobDescription", min_length=50,
                                            description="Job description must be at least 50 characters")
    job_title: str = Field(alias="jobTitle", min_length=1,
                           description="Job title is required")
    company_name: Optional[str] = Field(default=None, alias="companyName")
    job_url: Optional[str] = Field(default=None, alias="jobUrl",
                                   description="Scraped when no job description is given")

    class Config:
        populate_by_name = True

    @model_validator(mode="after")
    def require_job_source(self):
        if not self.job_description and not self.job_url:
            raise ValueError("Either jobDescription or jobUrl is required")
        return self


class ScrapeRequest(BaseModel):
    """Input for the scrape operation."""

    url: str


class UserData(BaseModel):
    """Details used to fill document headers."""

    name: str = "Your Name"
    email: str = "your.email@example.com"
    job_title: str = Field(default="", alias="jobTitle")
    company_name: Optional[str] = Field(default=None, alias="companyName")

    class Config:
        populate_by_name = True


class DocumentType(str, Enum):
    """Which document to render."""

    CV = "cv"
    COVER_LETTER = "cover-letter"


class GenerateDocumentRequest(BaseModel):
    """Input for PDF / text rendering."""

    type: DocumentType
    cv_text: Optional[str] = Field(default=None, alias="cvText")
    cover_letter_text: Optional[str] = Field(default=None, alias="coverLetterText")
    user_data: UserData = Field(alias="userData")

    class Config:
        populate_by_name = True


# ============================================================================
# Document I/O
# ============================================================================

class PDFInfo(BaseModel):
    """Basic PDF metadata."""

    title: Optional[str] = None
    author: Optional[str] = None
    creator: Optional[str] = None


class PDFParseResult(BaseModel):
    """Text extracted from an uploaded CV."""

    text: str
    pages: int
    info: PDFInfo = Field(default_factory=PDFInfo)


class CVExperience(BaseModel):
    """Experience entry for the rendered CV."""

    title: str
    company: str
    date: str
    description: List[str] = Field(default_factory=list)


class CVEducation(BaseModel):
    """Education entry for the rendered CV."""

    degree: str
    school: str
    date: str


class CVData(BaseModel):
    """Structured CV parsed from generated text."""

    name: str = "Your Name"
    email: str = "your.email@example.com"
    phone: str = "(123) 456-7890"
    location: str = "City, State"
    summary: str = "Professional summary"
    experience: List[CVExperience] = Field(default_factory=list)
    education: List[CVEducation] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)


class CoverLetterData(BaseModel):
    """Structured cover letter parsed from generated text."""

    sender_name: str
    sender_email: str
    sender_phone: str = "(123) 456-7890"
    sender_address: str = "Your Address"
    date: str
    recipient_name: str = "Hiring Manager"
    recipient_title: str = "Talent Acquisition"
    company_name: str = "Company"
    company_address: str = ""
    job_title: str
    paragraphs: List[str] = Field(default_factory=list)
