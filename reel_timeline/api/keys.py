"""Speech-recognition API key rotation with time-based recovery.

WHY: Transcription keys run out of quota or get revoked mid-session.
Several keys can be configured, and the pool hands out the first one
that has not recently failed, so one exhausted quota does not stop the
pipeline.

HOW: The pool keeps an ordered list of entries, each with the timestamp
at which it was marked exhausted (or None). get_available_key() is a
pure in-memory scan; no network call checks quota. An exhausted entry
becomes available again once the cooldown has elapsed, and is cleared
on the spot when the scan notices that.

RULES:
- Order is preference: first available key wins (not round-robin)
- Only real 401/403/429 responses mark a key; callers never mark on
  transport errors
- The pool never retries anything — the caller owns the retry loop
- Recovery is time-based only; there is no health check
- All mutations are protected by a threading.Lock
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import List, Optional, Sequence

from reel_timeline.config import KEY_COOLDOWN_SECONDS, load_api_keys

logger = logging.getLogger(__name__)

QUOTA_STATUS_CODES = frozenset({401, 403, 429})
"""HTTP statuses that mean the key itself is unusable right now."""


class NoKeysConfigured(ValueError):
    """Raised when the pool is built without any keys."""


class AllKeysExhausted(RuntimeError):
    """Raised when every configured key is inside its cooldown window.

    RULES:
    - diagnostics holds one "<masked key>: exhausted Ns ago" line per key
    """

    def __init__(self, diagnostics: List[str], cooldown_s: float) -> None:
        self.diagnostics = diagnostics
        self.cooldown_s = cooldown_s
        lines = "\n".join("  • {}".format(d) for d in diagnostics)
        super().__init__(
            "All speech-recognition API keys are exhausted.\n"
            "{}\nKeys auto-recover after {:.0f} minutes.".format(lines, cooldown_s / 60)
        )


def mask_key(key: str) -> str:
    """Return a log-safe form of an API key."""
    if len(key) <= 8:
        return "****"
    return key[:4] + "…" + key[-4:]


@dataclass
class KeyPoolEntry:
    key: str
    exhausted_at: Optional[float] = None


class KeyPool:
    """Ordered pool of API keys with cooldown-based exhaustion tracking.

    WHY: Call sites need "a key that is probably usable" without caring
    how many keys exist or which failed last.

    HOW: Entries are scanned in configuration order. The clock is
    injectable so tests can simulate the cooldown passing.

    RULES:
    - Use KeyPool.from_env() to load keys from configuration
    - mark_key_exhausted() on an unknown key is logged and ignored
    """

    def __init__(
        self,
        keys: Sequence[str],
        cooldown_s: float = KEY_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not keys:
            raise NoKeysConfigured(
                "No speech-recognition API keys configured. "
                "Set ELEVENLABS_API_KEYS (comma-separated) or ELEVENLABS_API_KEY."
            )
        self._entries = [KeyPoolEntry(key=k) for k in keys]
        self._cooldown_s = cooldown_s
        self._clock = clock
        self._lock = threading.Lock()

    @classmethod
    def from_env(cls, **kwargs) -> KeyPool:
        return cls(load_api_keys(), **kwargs)

    def __len__(self) -> int:
        return len(self._entries)

    def get_available_key(self) -> str:
        """Return the first key that is not inside its cooldown window.

        RULES:
        - Entries whose cooldown has passed are cleared, then returned
        - Raises AllKeysExhausted with per-key diagnostics otherwise
        """
        with self._lock:
            now = self._clock()
            diagnostics = []
            for entry in self._entries:
                if entry.exhausted_at is not None:
                    elapsed = now - entry.exhausted_at
                    if elapsed <= self._cooldown_s:
                        diagnostics.append(
                            "{}: exhausted {}s ago".format(mask_key(entry.key), round(elapsed))
                        )
                        continue
                    entry.exhausted_at = None
                    logger.info(
                        "Key %s cooldown expired, making it available again",
                        mask_key(entry.key),
                    )
                return entry.key

        raise AllKeysExhausted(diagnostics, self._cooldown_s)

    def mark_key_exhausted(self, key: str) -> None:
        """Take a key out of rotation after a 401/403/429 response."""
        with self._lock:
            for entry in self._entries:
                if entry.key == key:
                    entry.exhausted_at = self._clock()
                    break
            else:
                logger.warning("Ignoring exhaustion mark for unknown key %s", mask_key(key))
                return
        logger.warning("Key %s marked as exhausted", mask_key(key))

    def reset_all_keys(self) -> None:
        """Clear every exhaustion mark (e.g. after a billing-cycle reset)."""
        with self._lock:
            for entry in self._entries:
                entry.exhausted_at = None
        logger.info("All keys reset to available")

    def entries(self) -> List[KeyPoolEntry]:
        """Snapshot of the pool state, for diagnostics."""
        with self._lock:
            return [KeyPoolEntry(e.key, e.exhausted_at) for e in self._entries]
