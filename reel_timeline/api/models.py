"""Typed response dataclasses for the speech-recognition and generation APIs.

WHY: Both upstream services return loosely-shaped JSON. The recognizer
has shipped several spellings of its word list over time, and the
generator nests its text several levels deep. Parsing each shape once,
at the API boundary, keeps that ambiguity out of the rest of the code.

HOW: Each dataclass has a from_dict factory. TranscriptionResponse also
knows how to turn itself into transcript segments, delegating to the
core segmenter.

RULES:
- Words may arrive under "words" or "word_timestamps"
- "spacing" word entries are whitespace and are skipped
- A "segments" array, when present, wins over building from words
- language is "ar" only when the service reports language_code "ar"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from reel_timeline.core.ir import TranscriptSegment
from reel_timeline.core.segmenter import build_segments, normalize_segments


@dataclass
class TranscriptionResponse:
    """Result of one speech-to-text call."""

    language: str
    words: List[Dict[str, Any]] = field(default_factory=list)
    segments: Optional[List[Dict[str, Any]]] = None
    text: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TranscriptionResponse:
        raw_words = data.get("words")
        if not isinstance(raw_words, list):
            raw_words = data.get("word_timestamps")
        if not isinstance(raw_words, list):
            raw_words = []
        words = [
            w for w in raw_words
            if isinstance(w, dict) and w.get("type") != "spacing"
        ]

        segments = data.get("segments")
        if not isinstance(segments, list):
            segments = None

        return cls(
            language="ar" if data.get("language_code") == "ar" else "en",
            words=words,
            segments=segments,
            text=str(data.get("text") or ""),
        )

    def to_segments(self) -> List[TranscriptSegment]:
        if self.segments is not None:
            return normalize_segments(
                [s for s in self.segments if isinstance(s, dict)],
                language=self.language,
            )
        return build_segments(self.words, language=self.language)


@dataclass
class TokenUsage:
    model: str
    tokens_input: int = 0
    tokens_output: int = 0


@dataclass
class GenerationResponse:
    """Text and token usage from one generateContent call.

    RULES:
    - text concatenates every text part of the first candidate
    - Missing usage metadata reports zero tokens
    """

    text: str
    usage: TokenUsage

    @classmethod
    def from_dict(cls, data: Dict[str, Any], model: str) -> GenerationResponse:
        parts: List[str] = []
        candidates = data.get("candidates") or []
        if candidates:
            content = candidates[0].get("content") or {}
            for part in content.get("parts") or []:
                if isinstance(part, dict) and isinstance(part.get("text"), str):
                    parts.append(part["text"])

        usage_meta = data.get("usageMetadata") or {}
        usage = TokenUsage(
            model=model,
            tokens_input=int(usage_meta.get("promptTokenCount") or 0),
            tokens_output=int(usage_meta.get("candidatesTokenCount") or 0),
        )
        return cls(text="".join(parts), usage=usage)
