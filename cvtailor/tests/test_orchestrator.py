"""
Test the tailoring pipeline and session state machine.

Run with: python -m pytest cvtailor/tests/test_orchestrator.py -v
"""

import asyncio
import logging

import pytest

from cvtailor.core.config import Settings
from cvtailor.core.llm_client import MockLLMClient
from cvtailor.core.schemas import SessionStatus, TailorRequest
from cvtailor.core.session_store import InMemorySessionStore
from cvtailor.agents.cv_tailor.cv_tailor import CVTailorAgent
from cvtailor.agents.job_scraper.job_scraper import InvalidURLError, JobScraper
from cvtailor.services.orchestrator import (
    SessionLostError, SessionStateMachine, TailorOrchestrator, create_orchestrator
)

logger = logging.getLogger(__name__)

CV_TEXT = (
    "Jane Doe\nBackend Engineer\n\nEXPERIENCE\nSix years building Python services "
    "with FastAPI and PostgreSQL at Initech.\n\nEDUCATION\nBSc Computer Science, "
    "University of Somewhere.\n\nSKILLS\nPython, SQL, Docker, AWS, Kubernetes."
)
JOB_DESCRIPTION = (
    "Senior Python Engineer to own our payments APIs, improve reliability and "
    "mentor a small team."
)


def _orchestrator(llm_client=None, primary=None, fallback=None):
    settings = Settings()
    settings.chunking.chunk_size = 80
    settings.chunking.overlap = 20

    async def unused(url):
        raise AssertionError("scraper must not run")

    return TailorOrchestrator(
        store=InMemorySessionStore(),
        agent=CVTailorAgent(llm_client=llm_client or MockLLMClient(), settings=settings.llm),
        scraper=JobScraper(settings=settings.scraper, primary=primary or unused,
                           fallback=fallback or unused),
        settings=settings,
    )


class SweepingLLMClient(MockLLMClient):
    """Removes every session from the store while the completion is in flight."""

    def __init__(self, store):
        super().__init__()
        self.store = store

    def _complete(self, prompt, system_prompt, temperature, max_tokens):
        for session_id in self.store.active_session_ids():
            self.store.delete(session_id)
        return super()._complete(prompt, system_prompt, temperature, max_tokens)


def _request(**overrides):
    values = {
        "cvText": CV_TEXT,
        "jobDescription": JOB_DESCRIPTION,
        "jobTitle": "Senior Python Engineer",
        "companyName": "Acme",
    }
    values.update(overrides)
    return TailorRequest(**values)


# ============================================================================
# State Machine
# ============================================================================

def test_state_machine_transitions():
    assert SessionStateMachine.can_transition(SessionStatus.INITIALIZED, SessionStatus.PROCESSING)
    assert SessionStateMachine.can_transition(SessionStatus.PROCESSING, SessionStatus.COMPLETED)
    assert SessionStateMachine.can_transition(SessionStatus.PROCESSING, SessionStatus.ERROR)
    assert SessionStateMachine.can_transition(SessionStatus.INITIALIZED, SessionStatus.ERROR)

    # Forward-only
    assert not SessionStateMachine.can_transition(SessionStatus.PROCESSING, SessionStatus.INITIALIZED)
    assert not SessionStateMachine.can_transition(SessionStatus.COMPLETED, SessionStatus.PROCESSING)
    assert not SessionStateMachine.can_transition(SessionStatus.ERROR, SessionStatus.COMPLETED)
    assert not SessionStateMachine.can_transition(SessionStatus.INITIALIZED, SessionStatus.COMPLETED)


def test_state_machine_refuses_invalid_transition():
    store = InMemorySessionStore()
    session = store.create()

    assert SessionStateMachine.transition(store, session.session_id, SessionStatus.COMPLETED) is None
    assert store.get(session.session_id).status == SessionStatus.INITIALIZED

    moved = SessionStateMachine.transition(store, session.session_id, SessionStatus.PROCESSING)
    assert moved.status == SessionStatus.PROCESSING

    assert SessionStateMachine.transition(store, "session_missing", SessionStatus.ERROR) is None


# ============================================================================
# Pipeline
# ============================================================================

def test_start_session_chunks_cv():
    orchestrator = _orchestrator()
    session = orchestrator.start_session(CV_TEXT, JOB_DESCRIPTION)

    logger.info(f"{session.session_id}: {len(session.documents)} documents")
    assert session.status == SessionStatus.PROCESSING
    assert session.cv_text == CV_TEXT
    assert session.job_description == JOB_DESCRIPTION
    assert len(session.documents) > 1
    assert all(len(doc.content) <= 80 for doc in session.documents)
    assert [d.metadata.chunk_index for d in session.documents] == list(range(len(session.documents)))


def test_run_completes_session():
    client = MockLLMClient(reply=MockLLMClient.CANNED_RESPONSE + "Match Score: 88%\n")
    orchestrator = _orchestrator(llm_client=client)

    session, output = asyncio.run(orchestrator.run(_request()))

    assert session.status == SessionStatus.COMPLETED
    assert session.result.tailored_cv.startswith("Jane Doe")
    assert session.result.cover_letter.startswith("Dear Hiring Team")
    assert session.result.match_score == 88.0
    assert output.tokens_used == 300
    assert "Company: Acme" in client.prompts[0]
    assert orchestrator.get_session(session.session_id) == session


def test_run_records_llm_error():
    orchestrator = _orchestrator(llm_client=MockLLMClient(error=RuntimeError("rate limited")))

    with pytest.raises(RuntimeError):
        asyncio.run(orchestrator.run(_request()))

    sessions = [orchestrator.get_session(i) for i in orchestrator.store.active_session_ids()]
    assert len(sessions) == 1
    assert sessions[0].status == SessionStatus.ERROR
    assert sessions[0].error == "rate limited"
    assert sessions[0].result is None


def test_run_scrapes_job_url_when_no_description():
    async def primary(url):
        return {
            "title": "Senior Python Engineer",
            "company": "Globex",
            "description": JOB_DESCRIPTION,
            "location": "Remote",
        }

    client = MockLLMClient()
    orchestrator = _orchestrator(llm_client=client, primary=primary)
    request = _request(jobDescription=None, companyName=None,
                       jobUrl="https://jobs.example.com/42")

    session, _ = asyncio.run(orchestrator.run(request))

    assert session.job_description == JOB_DESCRIPTION
    assert "Company: Globex" in client.prompts[0]


def test_run_invalid_job_url_creates_no_session():
    orchestrator = _orchestrator()
    request = _request(jobDescription=None, jobUrl="not-a-url")

    with pytest.raises(InvalidURLError):
        asyncio.run(orchestrator.run(request))

    assert len(orchestrator.store) == 0


def test_delete_and_cleanup():
    orchestrator = _orchestrator()
    first = orchestrator.start_session(CV_TEXT, JOB_DESCRIPTION)
    orchestrator.start_session(CV_TEXT, JOB_DESCRIPTION)

    assert orchestrator.delete_session(first.session_id) is True
    assert orchestrator.delete_session(first.session_id) is False
    assert orchestrator.cleanup() == 0  # nothing older than the default hour
    assert orchestrator.cleanup(max_age=-1) == 1
    assert len(orchestrator.store) == 0


def test_empty_injected_store_is_kept():
    store = InMemorySessionStore()
    settings = Settings()
    orchestrator = TailorOrchestrator(
        store=store,
        agent=CVTailorAgent(llm_client=MockLLMClient(), settings=settings.llm),
        settings=settings,
    )

    session, _ = asyncio.run(orchestrator.run(_request()))

    assert orchestrator.store is store
    assert store.get(session.session_id) == session
    assert store.get(session.session_id).status == SessionStatus.COMPLETED


def test_create_orchestrator_keeps_empty_store():
    store = InMemorySessionStore()
    orchestrator = create_orchestrator(store=store, llm_client=MockLLMClient())

    session = orchestrator.start_session(CV_TEXT, JOB_DESCRIPTION)

    assert orchestrator.store is store
    assert store.active_session_ids() == [session.session_id]


def test_run_session_removed_mid_flight():
    orchestrator = _orchestrator()
    orchestrator.agent = CVTailorAgent(llm_client=SweepingLLMClient(orchestrator.store),
                                       settings=orchestrator.settings.llm)

    with pytest.raises(SessionLostError) as exc_info:
        asyncio.run(orchestrator.run(_request()))

    assert "removed before tailoring finished" in str(exc_info.value)
    assert len(orchestrator.store) == 0
