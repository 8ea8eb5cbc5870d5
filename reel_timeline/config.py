"""Configuration constants, credential loading, and .env loading.

WHY: Centralizes all configurable values so they are easy to find,
update, and override. Service endpoints, model names, and the key
cooldown are plain module-level values — not buried in client logic —
so both the pipeline and the tests can see what is in effect.

HOW: python-dotenv loads the .env file on import. Constants read
os.getenv with defaults. load_api_keys() returns the ordered list of
speech-recognition keys; load_gemini_key() provides a clear error when
the generation key is missing.

RULES:
- ELEVENLABS_API_KEYS (comma-separated) wins over ELEVENLABS_API_KEY
- Key order is rotation preference order — never sort or shuffle it
- API keys are loaded from the environment, never hardcoded
- All defaults can be overridden via environment variables
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Speech recognition (ElevenLabs Scribe)
# ---------------------------------------------------------------------------

ELEVENLABS_BASE_URL = os.getenv("ELEVENLABS_BASE_URL", "https://api.elevenlabs.io/v1")
ELEVENLABS_STT_MODEL = os.getenv("ELEVENLABS_STT_MODEL", "scribe_v2")

KEY_COOLDOWN_SECONDS = float(os.getenv("KEY_COOLDOWN_SECONDS", "3600"))
"""How long an exhausted key stays out of rotation before it is retried."""

# ---------------------------------------------------------------------------
# Text generation (Gemini)
# ---------------------------------------------------------------------------

GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
)
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-3-flash-preview")

GEMINI_FALLBACK_MODELS: list[str] = [
    "gemini-1.5-pro",
    "gemini-3-flash-preview",
    "gemini-3-pro-preview",
]
"""Tried in order when the configured model is not available (404)."""

# ---------------------------------------------------------------------------
# Editor session
# ---------------------------------------------------------------------------

SEGMENT_CACHE_KEY = os.getenv("SEGMENT_CACHE_KEY", "reelify_segments")


def load_api_keys() -> list[str]:
    """Load the ordered list of speech-recognition API keys.

    WHY: Several keys can be configured so that one exhausted quota does
    not stop transcription. The order the operator wrote them in is the
    order they are tried.

    HOW: Splits ELEVENLABS_API_KEYS on commas; falls back to the single
    ELEVENLABS_API_KEY value.

    RULES:
    - Blank entries are dropped, duplicates keep their first position
    - Returns [] when nothing is configured (the key pool reports that)
    """
    multi = os.getenv("ELEVENLABS_API_KEYS", "")
    if multi.strip():
        keys = [k.strip() for k in multi.split(",") if k.strip()]
    else:
        single = os.getenv("ELEVENLABS_API_KEY", "").strip()
        keys = [single] if single else []

    seen: set[str] = set()
    ordered = []
    for key in keys:
        if key not in seen:
            seen.add(key)
            ordered.append(key)
    return ordered


def load_gemini_key() -> str:
    """Load the Gemini API key from the environment.

    RULES:
    - Raises ValueError if the key is missing or empty
    - Never returns a default/placeholder value
    """
    key = os.getenv("GEMINI_API_KEY", "").strip()
    if not key:
        raise ValueError(
            "Gemini API key not configured. "
            "Add GEMINI_API_KEY to the .env file in the app folder."
        )
    return key
