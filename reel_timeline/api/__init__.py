"""Upstream service clients — speech recognition and text generation.

WHY: The pipeline depends on two hosted services with very different
failure modes: a quota-limited recognizer with several keys, and a
generator that may drop models. This package keeps every HTTP detail
and retry rule in one place.

HOW: keys.py holds the KeyPool, client.py the speech-to-text client,
generation.py the Gemini client, and models.py the typed responses.

RULES:
- All HTTP calls go through ScribeClient or GeminiClient
- Key rotation decisions are made in exactly one place (ScribeClient.transcribe)
"""

from reel_timeline.api.client import ASRAPIError, ScribeClient, TranscriptionFailed
from reel_timeline.api.generation import GeminiClient, GenerationError
from reel_timeline.api.keys import AllKeysExhausted, KeyPool, NoKeysConfigured
from reel_timeline.api.models import GenerationResponse, TranscriptionResponse

__all__ = [
    "ASRAPIError",
    "AllKeysExhausted",
    "GeminiClient",
    "GenerationError",
    "GenerationResponse",
    "KeyPool",
    "NoKeysConfigured",
    "ScribeClient",
    "TranscriptionFailed",
    "TranscriptionResponse",
]
