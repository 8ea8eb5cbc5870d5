"""Caption edit operations — materialize, split, merge, shift, restyle.

WHY: Caption editing has fiddly preconditions (a split needs two words and
a playhead inside the caption, a merge needs two real captions, a shift
must not push a caption out of the clip). Keeping these as pure functions
over caption lists makes each rule testable without a timeline.

HOW: Every function takes a list of captions and returns a new list; the
input list and its captions are never modified. Precondition failures
raise CaptionSplitInvalid / MergeInvalidSelection before anything is
built, so a failed call cannot leave a half-applied edit behind.

RULES:
- Captions are replaced with dataclasses.replace, never mutated in place
- Structural edits (split, merge) renumber ids in start-time order
- Split index = round(ratio * word_count), clamped to [1, word_count - 1],
  with halves rounded up
- Shift keeps duration fixed and never moves a caption further outside
  the trim range than it already is
"""

from __future__ import annotations

import dataclasses
import math
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from reel_timeline.core.ir import (
    Caption,
    CaptionStyle,
    Position,
    TranscriptSegment,
    TrimRange,
)
from reel_timeline.core.segmenter import detect_language

_SENTENCE_SPLIT_RE = re.compile(r"([.!?،؛؟]+)")


class CaptionSplitInvalid(ValueError):
    """Raised when a caption cannot be split at the requested time."""


class MergeInvalidSelection(ValueError):
    """Raised when fewer than two existing captions are selected for merging."""


def renumber(captions: Iterable[Caption], prefix: str = "caption") -> List[Caption]:
    """Sort by start time and assign sequential ids."""
    ordered = sorted(captions, key=lambda c: (c.start_time, c.end_time))
    return [
        dataclasses.replace(c, id="{}-{}".format(prefix, i))
        for i, c in enumerate(ordered)
    ]


def segments_to_captions(
    segments: Iterable[TranscriptSegment],
    style: CaptionStyle,
    position: Position,
    id_prefix: str = "caption",
) -> List[Caption]:
    """Materialize one visible caption per segment, copying fields by value."""
    return [
        Caption(
            id="{}-{}".format(id_prefix, i),
            text=segment.text,
            start_time=segment.start,
            end_time=segment.end,
            position=position,
            style=style,
            is_visible=True,
            language=segment.language or "ar",
            word_timestamps=list(segment.words) if segment.words else None,
        )
        for i, segment in enumerate(segments)
    ]


def refresh_visibility(captions: Iterable[Caption], trim: TrimRange) -> List[Caption]:
    """Mark each caption visible iff it overlaps the trim range."""
    return [dataclasses.replace(c, is_visible=c.overlaps(trim)) for c in captions]


def find_caption(captions: Sequence[Caption], caption_id: str) -> Optional[Caption]:
    for caption in captions:
        if caption.id == caption_id:
            return caption
    return None


# ---------------------------------------------------------------------------
# Style
# ---------------------------------------------------------------------------


def apply_style(
    captions: Iterable[Caption],
    partial_style: Dict[str, Any],
    ids: Iterable[str],
) -> List[Caption]:
    """Merge partial_style into the style of the given captions only."""
    targets = set(ids)
    return [
        dataclasses.replace(c, style=c.style.merged(partial_style)) if c.id in targets else c
        for c in captions
    ]


def broadcast_style(
    captions: Iterable[Caption],
    style: CaptionStyle,
    exclude_id: Optional[str] = None,
) -> List[Caption]:
    """Give every caption (except exclude_id) the same full style.

    Positions are untouched; only the look is shared across the clip.
    """
    return [c if c.id == exclude_id else dataclasses.replace(c, style=style) for c in captions]


# ---------------------------------------------------------------------------
# Split / merge / shift
# ---------------------------------------------------------------------------


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def split_caption(
    captions: Sequence[Caption],
    caption_id: str,
    playhead_time: float,
) -> List[Caption]:
    """Split one caption in two at the word nearest the playhead.

    WHY: Users split long captions where the speaker pauses; the playhead
    is the natural pointer for that spot.

    HOW: The playhead's relative position inside the caption picks a word
    index; the new boundary time is placed proportionally to that index so
    both halves keep a reading speed close to the unsplit caption.

    RULES:
    - start_time < playhead_time < end_time, else CaptionSplitInvalid
    - At least 2 whitespace-separated words, else CaptionSplitInvalid
    - Both halves inherit style, position, visibility and language
    - Word timestamps, when present, follow the boundary time
    """
    target = find_caption(captions, caption_id)
    if target is None:
        raise CaptionSplitInvalid("No caption with id {!r}".format(caption_id))
    if not target.start_time < playhead_time < target.end_time:
        raise CaptionSplitInvalid(
            "Playhead {:.2f}s is outside caption {:.2f}-{:.2f}s".format(
                playhead_time, target.start_time, target.end_time
            )
        )
    words = target.text.split()
    if len(words) < 2:
        raise CaptionSplitInvalid("Caption needs at least two words to split")

    ratio = (playhead_time - target.start_time) / target.duration
    index = min(max(_round_half_up(ratio * len(words)), 1), len(words) - 1)
    boundary = target.start_time + target.duration * index / len(words)

    first_words = second_words = None
    if target.word_timestamps:
        first_words = [w for w in target.word_timestamps if w.start < boundary] or None
        second_words = [w for w in target.word_timestamps if w.start >= boundary] or None

    first = dataclasses.replace(
        target,
        text=" ".join(words[:index]),
        end_time=boundary,
        word_timestamps=first_words,
    )
    second = dataclasses.replace(
        target,
        text=" ".join(words[index:]),
        start_time=boundary,
        word_timestamps=second_words,
    )

    rest = [c for c in captions if c.id != caption_id]
    return renumber(rest + [first, second])


def merge_captions(captions: Sequence[Caption], ids: Iterable[str]) -> List[Caption]:
    """Replace the selected captions with one caption spanning all of them.

    RULES:
    - Unknown ids are ignored; fewer than 2 known ids → MergeInvalidSelection
    - Text is joined with single spaces in start-time order
    - Style, position and language come from the earliest caption
    """
    wanted = set(ids)
    selected = sorted(
        (c for c in captions if c.id in wanted),
        key=lambda c: (c.start_time, c.end_time),
    )
    if len(selected) < 2:
        raise MergeInvalidSelection("Select at least two captions to merge")

    word_timestamps = None
    if all(c.word_timestamps for c in selected):
        word_timestamps = [w for c in selected for w in c.word_timestamps]

    merged = dataclasses.replace(
        selected[0],
        text=" ".join(c.text.strip() for c in selected if c.text.strip()),
        start_time=min(c.start_time for c in selected),
        end_time=max(c.end_time for c in selected),
        is_visible=any(c.is_visible for c in selected),
        word_timestamps=word_timestamps,
    )
    rest = [c for c in captions if c.id not in wanted]
    return renumber(rest + [merged])


def shift_captions(
    captions: Sequence[Caption],
    ids: Iterable[str],
    delta_ms: float,
    trim: TrimRange,
) -> List[Caption]:
    """Move the selected captions by delta_ms, keeping their durations.

    HOW: The new start is clamped into [trim.start, trim.end - duration].
    A caption that already sticks out of the trim range may stay where it
    is or move inward, but is never pushed further out.
    """
    wanted = set(ids)
    delta_s = delta_ms / 1000.0
    result = []
    for caption in captions:
        if caption.id not in wanted:
            result.append(caption)
            continue
        lowest = min(trim.start_time, caption.start_time)
        highest = max(trim.end_time - caption.duration, caption.start_time)
        new_start = min(max(caption.start_time + delta_s, lowest), highest)
        applied = new_start - caption.start_time
        shifted_words = None
        if caption.word_timestamps:
            shifted_words = [
                dataclasses.replace(w, start=w.start + applied, end=w.end + applied)
                for w in caption.word_timestamps
            ]
        result.append(dataclasses.replace(
            caption,
            start_time=new_start,
            end_time=new_start + caption.duration,
            word_timestamps=shifted_words,
        ))
    return result


# ---------------------------------------------------------------------------
# Free-text transcript edits
# ---------------------------------------------------------------------------


def split_sentences(text: str) -> List[str]:
    """Split free text into sentences, keeping each terminator attached."""
    sentences: List[str] = []
    for part in _SENTENCE_SPLIT_RE.split(text):
        if not part.strip():
            continue
        if _SENTENCE_SPLIT_RE.fullmatch(part):
            if sentences:
                sentences[-1] += part
        else:
            sentences.append(part.strip())
    return sentences


def captions_from_text(
    text: str,
    trim: TrimRange,
    style: CaptionStyle,
    position: Position,
) -> List[Caption]:
    """Spread the sentences of an edited transcript evenly over the trim range."""
    sentences = split_sentences(text)
    if not sentences:
        return []
    language = detect_language(text)
    slot = trim.duration / len(sentences)
    return [
        Caption(
            id="caption-{}".format(i),
            text=sentence,
            start_time=trim.start_time + i * slot,
            end_time=trim.start_time + (i + 1) * slot,
            position=position,
            style=style,
            is_visible=True,
            language=language,
        )
        for i, sentence in enumerate(sentences)
    ]
