"""Word-to-sentence segment building and segment normalization.

WHY: Speech recognition returns a flat list of word timestamps. Clip
ranking and captioning both need sentence-sized pieces: short enough to
read on screen, long enough to carry meaning, and cut at natural
sentence boundaries where the speaker provides them.

HOW: build_segments greedily accumulates words into a running segment
and closes it on sentence-ending punctuation, a 5 second span, a 15 word
count, or the end of input. Timestamps go through normalize_time, which
detects millisecond values heuristically. normalize_segments handles the
case where the service already returned segments.

RULES:
- Timestamps > 1000 are milliseconds and are divided by 1000
- Non-finite or non-numeric timestamps become 0
- Missing word end → start + 0.5
- Sentence terminators: . ! ? ، ؛ ؟ (Latin and Arabic)
- Empty/whitespace tokens are dropped; they never shift neighbor timing
- Output preserves input order; each segment keeps its words
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Iterable, List, Optional, Tuple, Union

from reel_timeline.core.ir import TranscriptSegment, WordTimestamp

logger = logging.getLogger(__name__)

MAX_SEGMENT_DURATION_S = 5.0
MAX_SEGMENT_WORDS = 15
DEFAULT_WORD_DURATION_S = 0.5
MILLISECONDS_THRESHOLD = 1000

_SENTENCE_END_RE = re.compile(r"[.!?،؛؟]$")
_ARABIC_RE = re.compile(r"[\u0600-\u06FF]")

RawWord = Union[WordTimestamp, dict]


def normalize_time(value: Any) -> float:
    """Convert a raw timestamp into float seconds.

    RULES:
    - bool, str, None, NaN and infinities → 0.0
    - value > 1000 → value / 1000 (assumed milliseconds)
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    seconds = float(value)
    return seconds / 1000.0 if seconds > MILLISECONDS_THRESHOLD else seconds


def detect_language(text: str) -> str:
    """Return "ar" if the text contains Arabic script, else "en"."""
    return "ar" if _ARABIC_RE.search(text) else "en"


def _coerce_word(word: RawWord) -> Tuple[str, float, float]:
    """Extract (text, start, end) from a WordTimestamp or a raw service dict.

    Raw dicts may spell the fields text/word and start/start_time,
    end/end_time depending on the service version.
    """
    if isinstance(word, WordTimestamp):
        text, raw_start, raw_end = word.text, word.start, word.end
    else:
        text = word.get("text")
        if text is None:
            text = word.get("word")
        raw_start = word.get("start", word.get("start_time"))
        raw_end = word.get("end", word.get("end_time"))

    start = normalize_time(raw_start)
    end = normalize_time(raw_end)
    if end <= 0:
        end = start + DEFAULT_WORD_DURATION_S
    # A word never ends before it starts
    end = max(end, start)
    return str(text or "").strip(), start, end


def _close_segment(
    words: List[WordTimestamp], language: Optional[str]
) -> TranscriptSegment:
    text = " ".join(w.text for w in words)
    return TranscriptSegment(
        text=text,
        start=words[0].start,
        end=words[-1].end,
        language=language or detect_language(text),
        words=list(words),
    )


def build_segments(
    words: Iterable[RawWord],
    language: Optional[str] = None,
) -> List[TranscriptSegment]:
    """Group word timestamps into sentence-level transcript segments.

    WHY: Captions and clip boundaries are chosen at sentence granularity,
    but the recognizer only gives us words.

    HOW: Words are appended to a running segment; after each append the
    segment is closed if the word ends a sentence, the segment spans 5s or
    more, the segment holds 15 words, or the word is the last input item.

    RULES:
    - segment.start = first word start, segment.end = last word end
    - Segments never overlap and keep input order
    - language, when given, applies to every segment; otherwise each
      segment's language is detected from its text

    Args:
        words: WordTimestamp objects or raw word dicts from the service.
        language: Transcript language reported by the service, if any.

    Returns:
        List of TranscriptSegment objects, each with its words attached.
    """
    items = list(words)
    segments: List[TranscriptSegment] = []
    current: List[WordTimestamp] = []
    last_index = len(items) - 1

    for index, raw in enumerate(items):
        text, start, end = _coerce_word(raw)

        if text:
            current.append(WordTimestamp(text=text, start=start, end=end))
            span = end - current[0].start
            if (
                _SENTENCE_END_RE.search(text)
                or span >= MAX_SEGMENT_DURATION_S
                or len(current) >= MAX_SEGMENT_WORDS
            ):
                segments.append(_close_segment(current, language))
                current = []

        if index == last_index and current:
            segments.append(_close_segment(current, language))
            current = []

    return segments


def normalize_segments(
    raw_segments: Iterable[Union[TranscriptSegment, dict]],
    language: Optional[str] = None,
) -> List[TranscriptSegment]:
    """Normalize ready-made segments from a service, cache, or clip input.

    HOW: Text is stripped, times go through normalize_time, nested words
    are coerced to WordTimestamp, and language falls back to the given
    language and then to script detection.

    RULES:
    - Segments with empty text or end <= start are dropped
    - Order is preserved; nothing is merged or re-split
    """
    result: List[TranscriptSegment] = []
    for raw in raw_segments:
        if isinstance(raw, TranscriptSegment):
            segment = raw
        else:
            text = str(raw.get("text") or "").strip()
            words = []
            for w in raw.get("words") or []:
                w_text, w_start, w_end = _coerce_word(w)
                if w_text:
                    words.append(WordTimestamp(text=w_text, start=w_start, end=w_end))
            segment = TranscriptSegment(
                text=text,
                start=normalize_time(raw.get("start")),
                end=normalize_time(raw.get("end")),
                language=raw.get("language") or language or detect_language(text),
                words=words,
            )

        if not segment.text or segment.end <= segment.start:
            logger.debug(
                "Dropping unusable segment %.2f-%.2f %r",
                segment.start, segment.end, segment.text[:40],
            )
            continue
        result.append(segment)
    return result


def segment_coverage(segments: List[TranscriptSegment]) -> Tuple[float, float]:
    """Return (min start, max end) of a segment list; (inf, -inf) when empty."""
    if not segments:
        return math.inf, -math.inf
    return min(s.start for s in segments), max(s.end for s in segments)
