"""Best-effort segment cache consulted by the timeline.

WHY: The full-video transcript may have been stored earlier in the
session (for example by the page that ran transcription) while the
editor was only handed the clip's slice. Reading it back lets the user
extend a trim past the slice and still get captions.

HOW: SegmentCache is a minimal string get/set protocol. Segment lists
are stored as JSON text. read_cached_segments() never raises: unreadable
entries are logged and treated as absent.

RULES:
- The cache is never authoritative; the timeline only adopts a cached
  list when it covers more of the timeline than what it already has
- Values are JSON arrays of {text, start, end, language?, words?}
"""

from __future__ import annotations

import json
import logging
from typing import Dict, List, Optional, Protocol

from reel_timeline.core.ir import TranscriptSegment
from reel_timeline.core.segmenter import normalize_segments

logger = logging.getLogger(__name__)


class SegmentCache(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class InMemorySegmentCache:
    """Dict-backed SegmentCache for a single process or test."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


def write_cached_segments(
    cache: SegmentCache, key: str, segments: List[TranscriptSegment]
) -> None:
    cache.set(key, json.dumps([s.to_dict() for s in segments], ensure_ascii=False))


def read_cached_segments(cache: SegmentCache, key: str) -> List[TranscriptSegment]:
    raw = cache.get(key)
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring unreadable segment cache entry %r", key)
        return []
    if not isinstance(data, list):
        logger.warning("Ignoring segment cache entry %r: not a list", key)
        return []
    return normalize_segments(item for item in data if isinstance(item, dict))
