"""
Scoring client — one call to the AI text-generation service.

The client knows nothing about JSON validity: it sends a prompt and returns
whatever text comes back. Transport and timeout errors from the openai SDK
are NOT caught here; the batch runner classifies them per task.

The SDK's own retry loop is disabled (max_retries=0) so that one complete()
is exactly one request. The only retry in the system is the bounded repair
pass in scoring/repair.py.
"""

import logging

import openai

from config.settings import settings
from scoring.errors import ConfigurationError

logger = logging.getLogger(__name__)


class ScoringClient:

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        openai_client=None,
    ):
        self._api_key = settings.OPENAI_API_KEY if api_key is None else api_key
        self._model = model or settings.SCORING_MODEL
        # Tests inject a stub here; production builds the real client lazily
        self._client = openai_client

    @property
    def model(self) -> str:
        return self._model

    def ensure_configured(self) -> None:
        """Raise ConfigurationError before any work is claimed if no credentials exist."""
        if self._client is None and not self._api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set")

    def _get_client(self):
        if self._client is None:
            self.ensure_configured()
            self._client = openai.AsyncOpenAI(
                api_key=self._api_key,
                base_url=settings.OPENAI_BASE_URL or None,
                timeout=settings.AI_REQUEST_TIMEOUT,
                max_retries=0,
            )
        return self._client

    async def complete(self, prompt: str, max_output_tokens: int | None = None) -> str:
        """Send one prompt, return the model's text (possibly empty, possibly not JSON)."""
        client = self._get_client()
        resp = await client.responses.create(
            model=self._model,
            input=[{"role": "user", "content": prompt}],
            max_output_tokens=max_output_tokens or settings.SCORING_MAX_OUTPUT_TOKENS,
        )
        text = getattr(resp, "output_text", None) or ""
        logger.debug(f"AI call [{self._model}] returned {len(text)} chars")
        return text.strip()
