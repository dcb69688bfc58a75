"""
Tailor Orchestrator

Coordinates one tailoring request end to end:
1. Job source -> 2. Session + CV chunks -> 3. LLM tailoring -> 4. Result

Implements:
- State machine for session status (forward-only)
- Job description from pasted text or a scraped URL
- Error capture on the session before the failure propagates

Blocking calls (Anthropic SDK) run in a worker thread so the event loop
stays free for other requests.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Optional, Tuple, Union

from cvtailor.core.config import Settings, get_settings
from cvtailor.core.schemas import (
    ScrapedJobData, Session, SessionStatus, TailorRequest, TailorResult
)
from cvtailor.core.session_store import InMemorySessionStore, SessionStore
from cvtailor.core.text import chunk_text, create_cv_documents
from cvtailor.agents.cv_tailor.cv_tailor import (
    CVTailorAgent, TailorOutput, extract_match_score
)
from cvtailor.agents.job_scraper.job_scraper import JobScraper

logger = logging.getLogger(__name__)


class SessionLostError(RuntimeError):
    """The session was deleted or swept while its request was still running."""

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} was removed before tailoring finished")
        self.session_id = session_id


# ============================================================================
# State Machine
# ============================================================================

class SessionStateMachine:
    """
    Manages status transitions for a session.

    Valid transitions:
    INITIALIZED -> PROCESSING | ERROR
    PROCESSING -> COMPLETED | ERROR

    COMPLETED and ERROR are terminal.
    """

    TRANSITIONS = {
        SessionStatus.INITIALIZED: [SessionStatus.PROCESSING, SessionStatus.ERROR],
        SessionStatus.PROCESSING: [SessionStatus.COMPLETED, SessionStatus.ERROR],
    }

    @classmethod
    def can_transition(cls, from_state: SessionStatus, to_state: SessionStatus) -> bool:
        """Check if transition is valid."""
        valid_targets = cls.TRANSITIONS.get(from_state, [])
        return to_state in valid_targets

    @classmethod
    def transition(
        cls,
        store: SessionStore,
        session_id: str,
        to_state: SessionStatus,
        **fields
    ) -> Optional[Session]:
        """
        Attempt status transition, merging any extra fields.

        Returns the updated session, or None if the session is unknown or
        the transition is invalid.
        """
        session = store.get(session_id)
        if session is None:
            logger.warning(f"Transition on unknown session: {session_id}")
            return None

        if cls.can_transition(session.status, to_state):
            logger.info(f"Session {session_id}: {session.status.value} -> {to_state.value}")
            return store.update(session_id, status=to_state, **fields)

        logger.warning(f"Invalid transition: {session.status.value} -> {to_state.value}")
        return None


# ============================================================================
# Main Orchestrator
# ============================================================================

class TailorOrchestrator:
    """
    Main orchestrator that coordinates the scraper and the tailoring agent.

    Handles:
    - Session creation, lookup, deletion and expiry
    - CV chunking into session documents
    - Agent coordination and error capture
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        agent: Optional[CVTailorAgent] = None,
        scraper: Optional[JobScraper] = None,
        settings: Optional[Settings] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Session storage (in-memory if not given)
            agent: CV tailoring agent
            scraper: Job posting scraper, used when only a URL is given
            settings: Application settings (defaults to global settings)
        """
        self.settings = settings or get_settings()
        self.store = store if store is not None else InMemorySessionStore()
        self.agent = agent if agent is not None else CVTailorAgent(settings=self.settings.llm)
        self.scraper = scraper if scraper is not None else JobScraper(settings=self.settings.scraper)

    # ========================================================================
    # Sessions
    # ========================================================================

    def start_session(self, cv_text: str, job_description: str) -> Session:
        """
        Create a session, chunk the CV into documents and mark it processing.
        """
        session = self.store.create()

        chunks = chunk_text(
            cv_text,
            chunk_size=self.settings.chunking.chunk_size,
            overlap=self.settings.chunking.overlap
        )
        documents = create_cv_documents(chunks, session.session_id)
        logger.info(f"Session {session.session_id}: {len(documents)} CV chunks")

        self.store.update(
            session.session_id,
            cv_text=cv_text,
            job_description=job_description,
            documents=documents
        )
        return SessionStateMachine.transition(
            self.store, session.session_id, SessionStatus.PROCESSING
        )

    def get_session(self, session_id: str) -> Optional[Session]:
        return self.store.get(session_id)

    def delete_session(self, session_id: str) -> bool:
        return self.store.delete(session_id)

    def cleanup(self, max_age: Union[timedelta, int, float, None] = None) -> int:
        """Remove sessions older than max_age (default from settings)."""
        if max_age is None:
            max_age = self.settings.session.max_age_seconds
        return self.store.sweep(max_age)

    # ========================================================================
    # Pipeline
    # ========================================================================

    async def resolve_job_description(self, job_url: str) -> ScrapedJobData:
        """Scrape a job posting. InvalidURLError and ScrapeError propagate."""
        return await self.scraper.scrape(job_url)

    async def run(self, request: TailorRequest) -> Tuple[Session, TailorOutput]:
        """
        Run the full tailoring pipeline for one request.

        Returns:
            Completed session and the agent output

        Raises:
            InvalidURLError, ScrapeError: Job URL could not be resolved
                (no session is created)
            Any LLM provider error, after the session is moved to error
        """
        job_description = request.job_description
        company_name = request.company_name

        if not job_description:
            job = await self.resolve_job_description(request.job_url)
            job_description = job.description
            if not company_name and job.company:
                company_name = job.company

        session = self.start_session(request.cv_text, job_description)
        session_id = session.session_id

        try:
            output = await asyncio.to_thread(
                self.agent.tailor,
                request.cv_text,
                job_description,
                request.job_title,
                company_name
            )
        except Exception as e:
            logger.error(f"Session {session_id}: tailoring failed: {e}")
            SessionStateMachine.transition(
                self.store, session_id, SessionStatus.ERROR, error=str(e)
            )
            raise

        sections = output.sections
        result = TailorResult(
            tailored_cv=sections.tailored_cv,
            cover_letter=sections.cover_letter,
            summary=sections.summary,
            match_score=extract_match_score(sections.summary),
        )
        session = SessionStateMachine.transition(
            self.store, session_id, SessionStatus.COMPLETED, result=result
        )
        if session is None:
            raise SessionLostError(session_id)
        return session, output


# ============================================================================
# Factory Function
# ============================================================================

def create_orchestrator(store: Optional[SessionStore] = None, llm_client=None) -> TailorOrchestrator:
    """
    Create an orchestrator instance.

    Args:
        store: Optional session store
        llm_client: Optional LLM client (created from settings on first use)
    """
    settings = get_settings()
    return TailorOrchestrator(
        store=store,
        agent=CVTailorAgent(llm_client=llm_client, settings=settings.llm),
        settings=settings,
    )
