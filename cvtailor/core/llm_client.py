"""
LLM access for CV Tailor.

The tailoring agent only needs "prompt in, text out". BaseLLMClient fixes
that contract and resolves per-call overrides; subclasses only implement
the provider call.

Usage:
    from cvtailor.core.llm_client import get_llm_client

    llm = get_llm_client()
    reply = llm.generate(prompt, system_prompt="You write CVs.")
    print(reply.content, reply.total_tokens)
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from cvtailor.core.config import LLMSettings, get_settings

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."


class LLMConfigurationError(ValueError):
    """The LLM provider cannot be used as configured (e.g. missing API key)."""


@dataclass
class LLMResponse:
    """Completion text plus token accounting."""

    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)
    raw_response: Any = None

    @property
    def total_tokens(self) -> int:
        return self.usage.get("input_tokens", 0) + self.usage.get("output_tokens", 0)


class BaseLLMClient(ABC):
    """Single-turn completion client."""

    model: str
    temperature: float
    max_tokens: int

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> LLMResponse:
        """
        Complete one user prompt.

        Args:
            prompt: User message
            system_prompt: System message (generic assistant if omitted)
            temperature: Per-call override of the client default
            max_tokens: Per-call override of the client default
        """
        return self._complete(
            prompt,
            system_prompt or DEFAULT_SYSTEM_PROMPT,
            self.temperature if temperature is None else temperature,
            max_tokens or self.max_tokens,
        )

    @abstractmethod
    def _complete(self, prompt: str, system_prompt: str,
                  temperature: float, max_tokens: int) -> LLMResponse:
        """Provider call with every parameter resolved."""


class ClaudeLLMClient(BaseLLMClient):
    """
    Anthropic Messages API client.

    The SDK is built with max_retries=0, so one generate() is one HTTP
    request. Rate limits and timeouts reach the caller unchanged.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        settings: Optional[LLMSettings] = None
    ):
        """
        Args:
            api_key: Overrides ANTHROPIC_API_KEY / LLM_ANTHROPIC_API_KEY
            model, max_tokens, temperature: Override the LLM_* settings
            settings: LLM settings (defaults to global settings)

        Raises:
            LLMConfigurationError: If no API key is configured
        """
        settings = settings or get_settings().llm
        key = api_key or settings.anthropic_api_key
        if not key:
            raise LLMConfigurationError(
                "Missing Anthropic API key: set ANTHROPIC_API_KEY to enable CV tailoring"
            )

        self.model = model or settings.model
        self.max_tokens = max_tokens or settings.max_tokens
        self.temperature = settings.temperature if temperature is None else temperature

        import anthropic
        self.client = anthropic.Anthropic(api_key=key, max_retries=0)
        logger.info(f"Anthropic client ready (model={self.model}, retries disabled)")

    def _complete(self, prompt: str, system_prompt: str,
                  temperature: float, max_tokens: int) -> LLMResponse:
        try:
            message = self.client.messages.create(
                model=self.model,
                system=system_prompt,
                temperature=temperature,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as e:
            logger.error(f"Anthropic request failed ({type(e).__name__}): {e}")
            raise

        text = "".join(
            block.text for block in message.content
            if getattr(block, "type", None) == "text"
        )
        usage = {
            "input_tokens": message.usage.input_tokens,
            "output_tokens": message.usage.output_tokens,
        }
        logger.info(f"Anthropic completion: {usage['output_tokens']} output tokens, "
                    f"stop_reason={message.stop_reason}")
        return LLMResponse(content=text, model=message.model, usage=usage, raw_response=message)


class MockLLMClient(BaseLLMClient):
    """
    Offline client for tests and local demos.

    Replies with a well-formed three-section tailoring answer unless given
    a fixed reply or an error to raise.
    """

    CANNED_RESPONSE = """## TAILORED CV
Jane Doe
jane.doe@example.com | (555) 123-4567

SUMMARY:
Backend engineer with 6 years building Python services.

EXPERIENCE:
- Led migration of billing platform to FastAPI, cutting latency by 40%
- Built data pipelines processing 2M events per day

SKILLS:
Python, FastAPI, PostgreSQL, AWS

## COVER LETTER
Dear Hiring Team,

I am excited to apply for this role. My background in Python services maps directly to your needs.

At my current company I led a platform migration that cut latency by 40%.

I would welcome the chance to discuss how I can help your team.

Sincerely,
Jane Doe

## BRIEF SUMMARY
- Emphasized Python and FastAPI experience
- Added quantified achievements
"""

    def __init__(self, reply: Optional[str] = None, error: Optional[Exception] = None):
        """
        Args:
            reply: Content returned instead of CANNED_RESPONSE
            error: Raised by every generate() call (provider failure)
        """
        self.model = "mock-claude"
        self.temperature = 0.7
        self.max_tokens = 4000
        self.reply = reply
        self.error = error
        self.prompts = []
        logger.info("LLM calls are mocked")

    def _complete(self, prompt: str, system_prompt: str,
                  temperature: float, max_tokens: int) -> LLMResponse:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error

        return LLMResponse(
            content=self.CANNED_RESPONSE if self.reply is None else self.reply,
            model=self.model,
            usage={"input_tokens": 100, "output_tokens": 200},
        )


# ============================================================================
# Factory Function
# ============================================================================

def get_llm_client(
    provider: str = "claude",
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    use_mock: bool = False
) -> BaseLLMClient:
    """
    Build the client used by the tailoring agent.

    Raises:
        ValueError: Unknown provider
        LLMConfigurationError: Claude selected without an API key
    """
    if use_mock:
        return MockLLMClient()
    if provider != "claude":
        raise ValueError(f"Unsupported provider: {provider}")
    return ClaudeLLMClient(api_key=api_key, model=model)
