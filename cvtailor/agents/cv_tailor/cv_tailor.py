"""
CV Tailor Agent

Generates a tailored CV and cover letter using Claude (Anthropic):
1. Prompt Builder - Embeds CV, job description, title and company
2. Generator - One completion call, no tool loop
3. Section Parser - Splits the reply on its ## headers

The model is asked for three sections (## TAILORED CV, ## COVER LETTER,
## BRIEF SUMMARY). Parsing is best-effort: replies missing a header come
back as PartialSections so callers cannot assume a well-formed split.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from cvtailor.core.config import LLMSettings, get_settings
from cvtailor.core.llm_client import get_llm_client

logger = logging.getLogger(__name__)


# ============================================================================
# Prompts
# ============================================================================

SYSTEM_PROMPT = (
    "You are an expert CV and cover letter writer with 15 years of experience "
    "in recruitment."
)

TAILOR_PROMPT = """You are an expert CV tailoring specialist.

CANDIDATE'S CV:
{cv_text}

JOB POSTING:
Title: {job_title}
{company_line}
Description:
{job_description}

TASK:
1. Analyze the job requirements
2. Identify relevant experience from the CV
3. Create a tailored version that emphasizes relevant skills
4. Write a compelling cover letter

RULES:
- Work only with the candidate's real experience. Never invent roles, skills or achievements.
- Use keywords from the job description naturally.
- Use action verbs and quantify achievements where the CV supports it.
- Keep the cover letter to 3-4 paragraphs.

OUTPUT FORMAT:
Respond with exactly these three sections, each starting with its header on its own line:

## TAILORED CV
(the full tailored CV, formatted professionally, with SUMMARY:, EXPERIENCE:, EDUCATION: and SKILLS: blocks)

## COVER LETTER
(the cover letter, 3-4 paragraphs)

## BRIEF SUMMARY
(bullet list of key changes made, then a line "Match Score: NN%")"""


# ============================================================================
# Section Parsing
# ============================================================================

SECTION_MARKERS = (
    ("tailored_cv", "TAILORED CV"),
    ("cover_letter", "COVER LETTER"),
    ("summary", "BRIEF SUMMARY"),
)

_MARKER_PATTERNS = {
    key: re.compile(r"#{2,}[ \t]*" + re.escape(label) + r"[ \t]*:?", re.IGNORECASE)
    for key, label in SECTION_MARKERS
}

_MATCH_SCORE_PATTERN = re.compile(r"match\s*score\W*(\d{1,3}(?:\.\d+)?)\s*%", re.IGNORECASE)


@dataclass(frozen=True)
class CompleteSections:
    """All three headers were found."""

    tailored_cv: str
    cover_letter: str
    summary: str

    complete = True


@dataclass(frozen=True)
class PartialSections:
    """At least one header was missing; missing sections hold the stripped raw text."""

    raw: str
    found_markers: Tuple[str, ...]
    tailored_cv: str
    cover_letter: str
    summary: str

    complete = False


ParsedSections = Union[CompleteSections, PartialSections]


def _strip_markers(text: str) -> str:
    for pattern in _MARKER_PATTERNS.values():
        text = pattern.sub("", text)
    return text.strip()


def parse_sections(text: str) -> ParsedSections:
    """
    Split an LLM reply into CV, cover letter and summary.

    Each found section runs from the end of its header to the start of the
    next found header. A missing section is the whole reply with all known
    headers removed. Never raises.
    """
    text = text or ""
    positions = {}
    for key, pattern in _MARKER_PATTERNS.items():
        match = pattern.search(text)
        if match:
            positions[key] = match

    ordered = sorted(positions.items(), key=lambda item: item[1].start())
    sections = {}
    for i, (key, match) in enumerate(ordered):
        end = ordered[i + 1][1].start() if i + 1 < len(ordered) else len(text)
        sections[key] = text[match.end():end].strip()

    if len(positions) == len(SECTION_MARKERS):
        return CompleteSections(**sections)

    fallback = _strip_markers(text)
    found = tuple(key for key, _ in ordered)
    logger.warning(f"LLM reply missing section headers (found: {list(found) or 'none'})")
    return PartialSections(
        raw=text,
        found_markers=found,
        tailored_cv=sections.get("tailored_cv", fallback),
        cover_letter=sections.get("cover_letter", fallback),
        summary=sections.get("summary", fallback),
    )


def extract_match_score(text: str) -> Optional[float]:
    """Read 'Match Score: NN%' from the summary, if the model gave one."""
    match = _MATCH_SCORE_PATTERN.search(text or "")
    if not match:
        return None
    return min(100.0, float(match.group(1)))


# ============================================================================
# Agent
# ============================================================================

@dataclass
class TailorOutput:
    """Raw completion plus its parsed sections."""

    content: str
    tokens_used: int
    model: str
    sections: ParsedSections


class CVTailorAgent:
    """
    Builds the tailoring prompt, calls the LLM once and parses the reply.

    Provider errors (timeouts, rate limits, bad credentials) propagate as-is.
    """

    def __init__(self, llm_client=None, settings: Optional[LLMSettings] = None):
        """
        Initialize the agent.

        Args:
            llm_client: Client with a generate() method. Created from settings
                        on first use if not given (fails without an API key).
            settings: LLM settings (defaults to global settings)
        """
        self.llm_client = llm_client
        self.settings = settings or get_settings().llm

    def _client(self):
        if self.llm_client is None:
            self.llm_client = get_llm_client(model=self.settings.model)
        return self.llm_client

    def build_prompt(
        self,
        cv_text: str,
        job_description: str,
        job_title: str,
        company_name: Optional[str] = None
    ) -> str:
        """Embed the inputs in the tailoring prompt."""
        return TAILOR_PROMPT.format(
            cv_text=cv_text,
            job_title=job_title,
            company_line=f"Company: {company_name}\n" if company_name else "",
            job_description=job_description,
        )

    def tailor(
        self,
        cv_text: str,
        job_description: str,
        job_title: str,
        company_name: Optional[str] = None
    ) -> TailorOutput:
        """
        Generate a tailored CV and cover letter.

        Args:
            cv_text: Candidate's CV text
            job_description: Job posting text
            job_title: Role being applied for
            company_name: Optional company name

        Returns:
            TailorOutput with the raw completion and parsed sections
        """
        prompt = self.build_prompt(cv_text, job_description, job_title, company_name)
        client = self._client()

        logger.info(f"Generating tailored CV for: {job_title}"
                    f"{f' at {company_name}' if company_name else ''}")

        response = client.generate(
            prompt=prompt,
            system_prompt=SYSTEM_PROMPT,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens
        )

        sections = parse_sections(response.content)
        logger.info(f"Generation complete: {len(response.content)} chars, "
                    f"{response.total_tokens} tokens, complete={sections.complete}")

        return TailorOutput(
            content=response.content,
            tokens_used=response.total_tokens,
            model=response.model,
            sections=sections,
        )
