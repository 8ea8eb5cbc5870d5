"""Async HTTP client for the Gemini text-generation API.

WHY: Highlight ranking is delegated to a hosted language model that
answers a prompt with free-form text. Model names come and go, so the
client has to survive the configured model disappearing.

HOW: ``GeminiClient.generate`` POSTs to ``models/{model}:generateContent``.
On a 404 it walks GEMINI_FALLBACK_MODELS in order and uses the first
model that answers. The raw text and token usage are returned; turning
the text into clips is the candidate parser's job.

RULES:
- Use as: async with GeminiClient() as client: ...
- api_key defaults to load_gemini_key() from .env
- Only 404 triggers the fallback walk; other errors raise immediately
"""

from __future__ import annotations

import logging
from typing import Any, Dict

import httpx

from reel_timeline.api.models import GenerationResponse
from reel_timeline.config import (
    GEMINI_BASE_URL,
    GEMINI_FALLBACK_MODELS,
    GEMINI_MODEL,
    load_gemini_key,
)

logger = logging.getLogger(__name__)

GENERATION_CONFIG: Dict[str, Any] = {
    "temperature": 0.5,
    "topP": 0.9,
    "topK": 32,
    "maxOutputTokens": 16384,
}


class GenerationError(Exception):
    """Raised when no model produced a response."""


class GenerationAPIError(GenerationError):
    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Gemini API error {status_code}: {message}")


class GeminiClient:
    """Async client for one-shot text generation with model fallback."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key or load_gemini_key()
        self._base_url = (base_url or GEMINI_BASE_URL).rstrip("/")
        self._model = model or GEMINI_MODEL
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> GeminiClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"x-goog-api-key": self._api_key},
            timeout=httpx.Timeout(300.0, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "GeminiClient must be used as an async context manager: "
                "async with GeminiClient() as client: ..."
            )
        return self._client

    async def _generate_with(self, model: str, prompt: str) -> GenerationResponse:
        client = self._ensure_client()
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": GENERATION_CONFIG,
        }
        resp = await client.post(f"/models/{model}:generateContent", json=body)
        if resp.status_code != 200:
            raise GenerationAPIError(resp.status_code, resp.text)
        return GenerationResponse.from_dict(resp.json(), model=model)

    async def generate(self, prompt: str) -> GenerationResponse:
        """Generate text for a prompt, falling back to other models on 404.

        RULES:
        - Raises GenerationAPIError for non-404 failures of the primary model
        - Raises GenerationError when every fallback also failed
        """
        try:
            result = await self._generate_with(self._model, prompt)
        except GenerationAPIError as exc:
            if exc.status_code != 404:
                raise
            logger.warning("Model %s not available, trying fallback models", self._model)
            result = await self._try_fallbacks(prompt, exc)

        logger.info(
            "Generation used model %s (input=%d, output=%d tokens)",
            result.usage.model, result.usage.tokens_input, result.usage.tokens_output,
        )
        return result

    async def _try_fallbacks(
        self, prompt: str, original: GenerationAPIError
    ) -> GenerationResponse:
        for model in GEMINI_FALLBACK_MODELS:
            if model == self._model:
                continue
            try:
                result = await self._generate_with(model, prompt)
            except (GenerationAPIError, httpx.HTTPError) as exc:
                logger.warning("Fallback model %s failed: %s", model, exc)
                continue
            logger.info("Using fallback model %s", model)
            return result

        raise GenerationError(
            "All Gemini models failed. Tried: {}, {}. Error: {}".format(
                self._model, ", ".join(GEMINI_FALLBACK_MODELS), original.message
            )
        ) from original
