"""
Job Scraper Agent

Resolves a job posting URL into structured job data using two strategies:
1. Primary - Headless Chromium (Playwright), selectors probed with BeautifulSoup
2. Fallback - Firecrawl hosted scraping API (markdown output, paid, needs API key)

The primary strategy is free and local but may be blocked by anti-bot
defenses or miss a site's markup. The fallback only runs when the primary
fails. Each attempt produces a StrategyOutcome so callers can see which
strategies ran and why the first was abandoned.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup

from cvtailor.core.config import ScraperSettings, get_settings
from cvtailor.core.schemas import (
    ScrapedJobData, ScrapeMethod, TITLE_NOT_FOUND, COMPANY_NOT_FOUND
)
from cvtailor.core.text import clean_scraped_text

logger = logging.getLogger(__name__)


SCRAPE_FAILED_MESSAGE = (
    "Failed to scrape job URL. Please copy and paste the job description manually."
)

# Raw fields produced by a strategy: title, company, description, location
JobFields = Dict[str, Optional[str]]
Strategy = Callable[[str], Awaitable[JobFields]]


# ============================================================================
# Errors & Outcomes
# ============================================================================

class InvalidURLError(ValueError):
    """Input is not an absolute http(s) URL."""

    def __init__(self, message: str = "Invalid URL provided"):
        super().__init__(message)


class ScrapeStrategyError(RuntimeError):
    """A single strategy could not produce job data."""


class ScrapeError(RuntimeError):
    """Every strategy failed. The message is safe to show to users."""

    def __init__(self, report: "ScrapeReport", message: str = SCRAPE_FAILED_MESSAGE):
        super().__init__(message)
        self.report = report


@dataclass(frozen=True)
class StrategyOutcome:
    """Result of one strategy attempt: data on success, error text on failure."""

    method: ScrapeMethod
    data: Optional[ScrapedJobData] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.data is not None


@dataclass
class ScrapeReport:
    """All strategy attempts for one URL, in the order they ran."""

    url: str
    outcomes: List[StrategyOutcome] = field(default_factory=list)

    @property
    def attempted(self) -> List[ScrapeMethod]:
        return [outcome.method for outcome in self.outcomes]


# ============================================================================
# URL Validation
# ============================================================================

def validate_job_url(url: str) -> str:
    """
    Check that url is an absolute http(s) URL.

    Returns:
        The URL, stripped of surrounding whitespace

    Raises:
        InvalidURLError: For empty, malformed or non-http(s) input
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidURLError()

    url = url.strip()
    try:
        parsed = urlparse(url)
    except ValueError:
        raise InvalidURLError()

    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidURLError()
    if any(ch.isspace() for ch in url):
        raise InvalidURLError()

    return url


# ============================================================================
# Field Extraction
# ============================================================================

# Selector candidates per field, probed in order (first non-empty wins).
# Covers common class names plus LinkedIn and Indeed markup.
TITLE_SELECTORS = [
    "h1",
    ".job-title",
    '[data-testid="job-title"]',
    ".jobsearch-JobInfoHeader-title",
    "h1.topcard__title",
]

COMPANY_SELECTORS = [
    ".company-name",
    '[data-testid="company-name"]',
    ".jobsearch-InlineCompanyRating-companyHeader",
    "a.topcard__org-name-link",
    ".jobs-unified-top-card__company-name",
]

DESCRIPTION_SELECTORS = [
    ".job-description",
    '[data-testid="job-description"]',
    "#jobDescriptionText",
    ".show-more-less-html__markup",
    ".description__text",
]

LOCATION_SELECTORS = [
    ".job-location",
    '[data-testid="job-location"]',
    ".jobsearch-JobInfoHeader-subtitle",
    ".topcard__flavor--bullet",
]


def _first_text(soup: BeautifulSoup, selectors: List[str], separator: str = " ") -> str:
    """Text of the first selector that matches a non-empty element."""
    for selector in selectors:
        try:
            elem = soup.select_one(selector)
        except Exception as e:
            logger.debug(f"Selector {selector!r} failed: {e}")
            continue
        if elem is None:
            continue
        text = elem.get_text(separator, strip=True)
        if text:
            return text
    return ""


def extract_job_fields(html: str, body_text: str = "") -> JobFields:
    """
    Pull job fields out of rendered HTML.

    Args:
        html: Page HTML after scripts ran
        body_text: Visible page text, used when no description selector matches

    Returns:
        Dict with title, company, description and location
    """
    soup = BeautifulSoup(html, "html.parser")

    title = _first_text(soup, TITLE_SELECTORS)
    company = _first_text(soup, COMPANY_SELECTORS)
    description = _first_text(soup, DESCRIPTION_SELECTORS, separator="\n")
    location = _first_text(soup, LOCATION_SELECTORS)

    if not description:
        description = body_text or soup.get_text("\n", strip=True)

    return {
        "title": title or TITLE_NOT_FOUND,
        "company": company or COMPANY_NOT_FOUND,
        "description": description,
        "location": location or None,
    }


def parse_markdown_job(markdown: str) -> JobFields:
    """
    Heuristic parse of scraped markdown.

    First line (minus heading marker) is the title, second line the
    company, the whole content is the description.
    """
    lines = markdown.split("\n")
    title = re.sub(r"^#+\s*", "", lines[0]).strip() if lines else ""
    company = lines[1].strip() if len(lines) > 1 else ""

    return {
        "title": title or TITLE_NOT_FOUND,
        "company": company or COMPANY_NOT_FOUND,
        "description": markdown,
        "location": None,
    }


# ============================================================================
# Strategies
# ============================================================================

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
]


async def scrape_with_browser(url: str, settings: Optional[ScraperSettings] = None) -> JobFields:
    """
    Primary strategy: render the page in headless Chromium.

    A fresh browser and context are launched per call and closed on every
    exit path.
    """
    from playwright.async_api import async_playwright

    settings = settings or get_settings().scraper
    logger.info(f"[Browser] Starting scrape for: {url}")

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=settings.headless, args=BROWSER_ARGS)
        try:
            context = await browser.new_context(user_agent=settings.user_agent)
            page = await context.new_page()
            await page.goto(
                url,
                wait_until="networkidle",
                timeout=settings.navigation_timeout_ms
            )
            html = await page.content()
            body_text = await page.inner_text("body")
        finally:
            await browser.close()

    return extract_job_fields(html, body_text)


def fetch_firecrawl_markdown(
    url: str,
    settings: Optional[ScraperSettings] = None,
    session: Optional[requests.Session] = None
) -> str:
    """
    Ask Firecrawl for the page as markdown.

    Raises:
        ScrapeStrategyError: Missing API key, non-2xx response, or no markdown
    """
    settings = settings or get_settings().scraper

    if not settings.firecrawl_api_key:
        raise ScrapeStrategyError("FIRECRAWL_API_KEY not set in environment")

    http = session or requests
    response = http.post(
        settings.firecrawl_url,
        headers={
            "Authorization": f"Bearer {settings.firecrawl_api_key}",
            "Content-Type": "application/json"
        },
        json={
            "url": url,
            "formats": ["markdown"]
        },
        timeout=settings.fallback_timeout
    )

    if not response.ok:
        raise ScrapeStrategyError(
            f"Firecrawl API failed: {response.status_code} {response.reason}"
        )

    payload = response.json()
    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    markdown = data.get("markdown")
    if markdown is None:
        raise ScrapeStrategyError("Firecrawl response contained no markdown")

    return markdown


async def scrape_with_firecrawl(url: str, settings: Optional[ScraperSettings] = None) -> JobFields:
    """Fallback strategy: hosted scraping API, parsed from markdown."""
    logger.info(f"[Firecrawl] Starting scrape for: {url}")
    markdown = await asyncio.to_thread(fetch_firecrawl_markdown, url, settings)
    return parse_markdown_job(markdown)


# ============================================================================
# Scraper
# ============================================================================

class JobScraper:
    """
    Scrapes job postings with primary -> fallback ordering.

    Strategies run one after the other, never in parallel. A primary
    failure of any kind leads to the fallback; only the aggregate failure
    leaves this class.
    """

    def __init__(
        self,
        settings: Optional[ScraperSettings] = None,
        primary: Optional[Strategy] = None,
        fallback: Optional[Strategy] = None
    ):
        """
        Args:
            settings: Scraper settings (defaults to global settings)
            primary: Override the browser strategy (tests)
            fallback: Override the Firecrawl strategy (tests)
        """
        self.settings = settings or get_settings().scraper
        self._strategies: List[Tuple[ScrapeMethod, Strategy]] = [
            (ScrapeMethod.PRIMARY, primary or self._browser),
            (ScrapeMethod.FALLBACK, fallback or self._firecrawl),
        ]

    async def _browser(self, url: str) -> JobFields:
        return await scrape_with_browser(url, self.settings)

    async def _firecrawl(self, url: str) -> JobFields:
        return await scrape_with_firecrawl(url, self.settings)

    async def _attempt(self, method: ScrapeMethod, strategy: Strategy, url: str) -> StrategyOutcome:
        """Run one strategy, turning any exception into a failed outcome."""
        try:
            fields = await strategy(url)
        except Exception as e:
            logger.warning(f"[Scraper] {method.value} strategy failed for {url}: {e!r}")
            return StrategyOutcome(method=method, error=f"{type(e).__name__}: {e}")

        data = ScrapedJobData(
            title=fields.get("title") or TITLE_NOT_FOUND,
            company=fields.get("company") or COMPANY_NOT_FOUND,
            description=clean_scraped_text(fields.get("description") or ""),
            location=fields.get("location") or None,
            url=url,
            scraped_at=datetime.utcnow(),
            method=method,
        )
        logger.info(f"[Scraper] {method.value} strategy succeeded for {url}")
        return StrategyOutcome(method=method, data=data)

    async def scrape_with_report(self, url: str) -> Tuple[ScrapedJobData, ScrapeReport]:
        """
        Scrape a URL and report every strategy attempted.

        Raises:
            InvalidURLError: Before any network access, for bad input
            ScrapeError: If all strategies fail (report attached)
        """
        url = validate_job_url(url)
        report = ScrapeReport(url=url)
        logger.info(f"[Scraper] Starting scrape for: {url}")

        for method, strategy in self._strategies:
            outcome = await self._attempt(method, strategy, url)
            report.outcomes.append(outcome)
            if outcome.succeeded:
                return outcome.data, report

        details = "; ".join(f"{o.method.value}: {o.error}" for o in report.outcomes)
        logger.error(f"[Scraper] All strategies failed for {url} ({details})")
        raise ScrapeError(report)

    async def scrape(self, url: str) -> ScrapedJobData:
        """Scrape a job posting URL. See scrape_with_report."""
        data, _ = await self.scrape_with_report(url)
        return data
