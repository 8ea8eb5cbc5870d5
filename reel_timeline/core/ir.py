"""Intermediate representation dataclasses for transcripts, clips and captions.

WHY: Speech recognition, highlight generation, and the trim/caption editor
each see the same timeline through a different lens — words, ranked clip
ranges, or editable captions. A single set of well-typed dataclasses is
the contract that lets those stages be built and tested independently.

HOW: Types are grouped by lifecycle:
  WordTimestamp     — one recognized word with timing (immutable)
  TranscriptSegment — sentence-level group of words (immutable)
  ClipCandidate     — ranked highlight range proposed by the generator
  TrimRange         — the currently selected [start, end) window
  Position / Padding / CaptionStyle — caption presentation (immutable)
  Caption           — derived, independently editable caption record
  EditorState       — the aggregate owned by the timeline synchronizer

RULES:
- All times are float seconds relative to the full source video
- Segments are never mutated once built, only filtered or sliced
- A Caption copies its text and timing from a segment by value; it never
  holds a reference back to the segment
- CaptionStyle is frozen so one instance can be shared by many captions;
  edits go through CaptionStyle.merged()
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class WordTimestamp:
    """A single recognized word with start/end time in seconds."""

    text: str
    start: float
    end: float

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "start": self.start, "end": self.end}


@dataclass(frozen=True)
class TranscriptSegment:
    """A sentence-level slice of the transcript.

    RULES:
    - start < end
    - language is "ar" or "en"
    - words is empty when the upstream service returned ready-made segments
    """

    text: str
    start: float
    end: float
    language: str = "en"
    words: List[WordTimestamp] = field(default_factory=list, compare=False)

    def overlaps(self, start: float, end: float) -> bool:
        """True if this segment intersects the open interval (start, end)."""
        return self.start < end and self.end > start

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "text": self.text,
            "start": self.start,
            "end": self.end,
            "language": self.language,
        }
        if self.words:
            data["words"] = [w.to_dict() for w in self.words]
        return data


@dataclass
class ClipCandidate:
    """A highlight range proposed by the ranking service.

    WHY: Candidates only live between generation and the moment one is
    accepted as a trim range, but they carry the metadata (title, tags)
    the user chooses between.

    RULES:
    - score is None when the generator did not rate the clip
    - tags never contain empty strings
    """

    title: str
    start: float
    end: float
    category: str
    tags: List[str] = field(default_factory=list)
    score: Optional[float] = None

    @property
    def duration(self) -> float:
        return self.end - self.start

    def to_trim_range(self) -> TrimRange:
        return TrimRange(start_time=self.start, end_time=self.end)


@dataclass(frozen=True)
class TrimRange:
    """The selected time window: 0 <= start_time < end_time <= duration."""

    start_time: float
    end_time: float

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def overlaps(self, start: float, end: float) -> bool:
        return start < self.end_time and end > self.start_time


@dataclass(frozen=True)
class Position:
    """Absolute pixel position of a caption box on the 1080x1920 canvas."""

    x: float = 540
    y: float = 1500


@dataclass(frozen=True)
class Padding:
    top: float = 10
    right: float = 20
    bottom: float = 10
    left: float = 20


@dataclass(frozen=True)
class CaptionStyle:
    """Full presentation style of a caption.

    WHY: Renderers and exporters must be able to draw a caption from the
    caption alone. The style is therefore always complete — partial style
    edits are merged into a full style before they are stored.

    HOW: Frozen dataclass; merged() returns a copy with the given fields
    replaced. A padding given as a dict is converted to Padding.

    RULES:
    - Unknown field names in a partial style raise TypeError
    - Optional fields left as None mean "renderer default"
    """

    font_size: float = 48
    font_family: str = "Arial"
    color: str = "#FFFFFF"
    background_color: Optional[str] = "rgba(0, 0, 0, 0.7)"
    text_align: str = "center"
    padding: Padding = field(default_factory=Padding)
    font_weight: Optional[str] = None
    font_style: Optional[str] = None
    stroke_color: Optional[str] = None
    stroke_width: Optional[float] = None
    opacity: Optional[float] = None
    max_width: Optional[float] = None
    letter_spacing: Optional[float] = None
    line_height: Optional[float] = None
    text_transform: Optional[str] = None
    direction: Optional[str] = None
    karaoke: bool = False
    karaoke_active_color: Optional[str] = None

    def merged(self, partial: Dict[str, Any]) -> CaptionStyle:
        updates = dict(partial)
        padding = updates.get("padding")
        if isinstance(padding, dict):
            updates["padding"] = dataclasses.replace(self.padding, **padding)
        return dataclasses.replace(self, **updates)


@dataclass
class Caption:
    """A caption record shown over the video.

    WHY: Captions are derived from transcript segments but become the
    user's own data once edited. Each one is self-contained so that a
    renderer never needs the transcript to draw or export it.

    RULES:
    - id is unique within an EditorState
    - is_visible reflects overlap with the current trim range
    - word_timestamps is only set when word-level timing is known
    """

    id: str
    text: str
    start_time: float
    end_time: float
    position: Position = field(default_factory=Position)
    style: CaptionStyle = field(default_factory=CaptionStyle)
    is_visible: bool = True
    language: str = "en"
    word_timestamps: Optional[List[WordTimestamp]] = None

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def overlaps(self, trim: TrimRange) -> bool:
        return trim.overlaps(self.start_time, self.end_time)


@dataclass
class EditorState:
    """The aggregate owned by the timeline synchronizer.

    RULES:
    - full_transcript_segments only ever grows in coverage
    - has_user_edited_transcription selects the reconciliation strategy
    - last_edited_caption_style is per session, never module-global
    """

    source_video_duration: float = 0.0
    trim_range: TrimRange = field(default_factory=lambda: TrimRange(0.0, 0.0))
    captions: List[Caption] = field(default_factory=list)
    full_transcript_segments: List[TranscriptSegment] = field(default_factory=list)
    has_user_edited_transcription: bool = False
    last_edited_caption_style: Optional[CaptionStyle] = None
