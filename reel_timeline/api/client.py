"""Async HTTP client for the ElevenLabs Scribe speech-to-text API.

WHY: Transcription is the only step that talks to a quota-limited
service with several interchangeable credentials. This module puts the
upload, the key rotation retry loop, and the error classification behind
one client class so the pipeline only ever sees segments or a typed
failure.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. ScribeClient is an
async context manager — enter it to open the connection pool, exit to
close it. transcribe() asks the KeyPool for a key on every attempt and
sends the key per request, since it can change between attempts.

RULES:
- Always use the async context manager (async with ScribeClient(...) as client:)
- 401/403/429 → mark the key exhausted and retry with the next key
- Any other non-2xx → raise ASRAPIError immediately (no retry, no mark)
- Transport errors → raise TranscriptionFailed (no retry, no mark)
- At most MAX_KEY_RETRIES attempts; AllKeysExhausted propagates as-is
- Status callback (on_status) is optional; when provided, called with status strings
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import httpx

from reel_timeline.api.keys import QUOTA_STATUS_CODES, KeyPool, mask_key
from reel_timeline.api.models import TranscriptionResponse
from reel_timeline.config import ELEVENLABS_BASE_URL, ELEVENLABS_STT_MODEL

logger = logging.getLogger(__name__)

MAX_KEY_RETRIES = 5


class TranscriptionFailed(Exception):
    """Raised when audio could not be transcribed.

    WHY: The pipeline surfaces one error type to the user regardless of
    whether the network, the service, or the key budget failed.
    """


class ASRAPIError(TranscriptionFailed):
    """Raised when the speech-to-text API returns a non-retryable error.

    RULES:
    - Always include status_code and message
    - message is the response body text or a summary
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Speech-to-text API error {status_code}: {message}")


class ScribeClient:
    """Async client for the speech-to-text endpoint with key rotation.

    WHY: Provides a clean, typed interface for one transcription request,
    hiding the retry-with-next-key discipline from callers.

    HOW: Wraps httpx.AsyncClient. The xi-api-key header is set on each
    request from the KeyPool rather than on the client.

    RULES:
    - key_pool defaults to KeyPool.from_env()
    - base_url defaults to ELEVENLABS_BASE_URL from config
    - model defaults to ELEVENLABS_STT_MODEL from config
    - transport is only for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        key_pool: KeyPool | None = None,
        base_url: str | None = None,
        model: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._key_pool = key_pool or KeyPool.from_env()
        self._base_url = (base_url or ELEVENLABS_BASE_URL).rstrip("/")
        self._model = model or ELEVENLABS_STT_MODEL
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> ScribeClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(300.0, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "ScribeClient must be used as an async context manager: "
                "async with ScribeClient() as client: ..."
            )
        return self._client

    async def transcribe(
        self,
        audio: bytes,
        filename: str = "audio.mp4",
        on_status: Callable[[str], None] | None = None,
    ) -> TranscriptionResponse:
        """Transcribe an audio/video payload with word-level timestamps.

        WHY: One call site owns the retry loop, so a quota failure on one
        key transparently moves on to the next configured key.

        HOW: Up to MAX_KEY_RETRIES attempts. Each attempt takes a fresh key
        from the pool and POSTs multipart form data to /speech-to-text.

        RULES:
        - Raises AllKeysExhausted when the pool has nothing left
        - Raises ASRAPIError on non-quota HTTP errors
        - Raises TranscriptionFailed on transport errors or after the
          attempt cap is reached

        Args:
            audio: Raw audio or video bytes.
            filename: File name reported to the service.
            on_status: Optional callback for status updates.

        Returns:
            The parsed TranscriptionResponse.
        """
        client = self._ensure_client()
        last_error = ""

        for attempt in range(MAX_KEY_RETRIES):
            api_key = self._key_pool.get_available_key()
            if on_status:
                suffix = f" (retry #{attempt})" if attempt else ""
                on_status(f"Transcribing audio...{suffix}")

            request_start = time.monotonic()
            try:
                resp = await client.post(
                    "/speech-to-text",
                    headers={"xi-api-key": api_key},
                    data={"model_id": self._model, "timestamps_granularity": "word"},
                    files={"file": (filename, audio)},
                )
            except httpx.TransportError as exc:
                raise TranscriptionFailed(
                    f"Speech-to-text request failed: {exc}"
                ) from exc

            logger.info(
                "Speech-to-text request finished in %.0fms with status %d",
                (time.monotonic() - request_start) * 1000,
                resp.status_code,
            )

            if resp.status_code in QUOTA_STATUS_CODES:
                self._key_pool.mark_key_exhausted(api_key)
                last_error = f"Speech-to-text API error {resp.status_code}"
                logger.warning(
                    "Key %s rejected with %d, trying next key",
                    mask_key(api_key), resp.status_code,
                )
                continue

            if resp.status_code not in (200, 201):
                raise ASRAPIError(resp.status_code, resp.text)

            if on_status:
                on_status("Transcription complete.")
            return TranscriptionResponse.from_dict(resp.json())

        raise TranscriptionFailed(
            f"Gave up after {MAX_KEY_RETRIES} attempts: {last_error}"
        )
