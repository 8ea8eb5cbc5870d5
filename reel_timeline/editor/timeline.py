"""Trim range and caption synchronization for one editing session.

WHY: The user drags trim handles, splits and retimes captions, restyles
them, and sometimes rewrites the transcript — in any order, many times.
Captions must always match the selected range, newly exposed speech must
get captions, and nothing the user edited may silently disappear just
because the range moved. Transcription may also be missing entirely,
and the editor must still behave.

HOW: Timeline owns an EditorState and applies every mutation under one
re-entrant lock, bumping a version counter per accepted change. Trim
changes reconcile captions with one of two strategies, selected by
has_user_edited_transcription:
  - not edited → discard captions and rematerialize them from every
    transcript segment overlapping the new range
  - edited     → gap-filling merge: keep every caption still overlapping
    the range, and materialize segments only for the uncovered gaps
    before, between, and after the kept captions
The transcript used for both is the widest segment list seen so far,
chosen among the current list, freshly supplied segments, and the
optional segment cache.

RULES:
- Trim ranges are clamped into [0, duration] with at least 0.1s width;
  an invalid range is never surfaced as an error
- full_transcript_segments never shrinks in coverage
- With no segments from any source, trim changes only refresh caption
  visibility; no caption is created or destroyed
- Text/timing edits set has_user_edited_transcription; style and
  position edits do not
- Rejected edits (bad split, bad merge selection) return False and leave
  state and version untouched
- Style edits through update_caption_style apply to every caption
  (broadcast_style); update_caption_style_for_ids is the narrow variant
"""

from __future__ import annotations

import copy
import dataclasses
import logging
import threading
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from reel_timeline.config import SEGMENT_CACHE_KEY
from reel_timeline.core.ir import (
    Caption,
    CaptionStyle,
    ClipCandidate,
    EditorState,
    Position,
    TranscriptSegment,
    TrimRange,
)
from reel_timeline.core.segmenter import normalize_segments, segment_coverage
from reel_timeline.editor import captions as ops
from reel_timeline.editor.cache import SegmentCache, read_cached_segments
from reel_timeline.editor.styles import DEFAULT_POSITION, DEFAULT_STYLE, STYLE_TEMPLATES

logger = logging.getLogger(__name__)

MIN_TRIM_SEPARATION_S = 0.1
GAP_EPSILON_S = 0.01
_FLOAT_TOLERANCE = 1e-9

SegmentInput = Union[TranscriptSegment, dict]


class InvalidTrimRange(ValueError):
    """Raised by validate_trim_range; the timeline recovers by clamping."""


def validate_trim_range(trim: TrimRange, duration: float) -> None:
    """Raise InvalidTrimRange unless 0 <= start, end <= duration, width >= 0.1s.

    A non-positive duration means "not known yet" and is not checked.
    """
    if trim.start_time < 0:
        raise InvalidTrimRange("Trim start {:.3f}s is negative".format(trim.start_time))
    if duration > 0 and trim.end_time > duration:
        raise InvalidTrimRange(
            "Trim end {:.3f}s is past the video end {:.3f}s".format(trim.end_time, duration)
        )
    if trim.duration < MIN_TRIM_SEPARATION_S - _FLOAT_TOLERANCE:
        raise InvalidTrimRange(
            "Trim range {:.3f}-{:.3f}s is narrower than {}s".format(
                trim.start_time, trim.end_time, MIN_TRIM_SEPARATION_S
            )
        )


def clamp_trim_range(trim: TrimRange, duration: float) -> TrimRange:
    """Clamp a trim range into [0, duration] with the minimum width."""
    start = max(trim.start_time, 0.0)
    end = trim.end_time
    if duration > 0:
        start = min(start, max(duration - MIN_TRIM_SEPARATION_S, 0.0))
        end = min(end, duration)
    end = max(end, start + MIN_TRIM_SEPARATION_S)
    if duration > 0:
        end = min(end, duration)
    return TrimRange(start_time=start, end_time=end)


def _covers_more(candidate: List[TranscriptSegment], current: List[TranscriptSegment]) -> bool:
    """True if candidate should replace current as the widest segment list."""
    if not candidate:
        return False
    if not current:
        return True
    cand_min, cand_max = segment_coverage(candidate)
    cur_min, cur_max = segment_coverage(current)
    if cand_min <= cur_min and cand_max >= cur_max:
        return cand_min < cur_min or cand_max > cur_max
    if cand_min >= cur_min and cand_max <= cur_max:
        return False
    # Partial overlap: keep whichever spans more time
    return (cand_max - cand_min) > (cur_max - cur_min)


class Timeline:
    """Serialized owner of the editor state for one clip.

    WHY: Every caller (UI events, tests, exporters) must see the same
    ordering of mutations; applying a stale trim event after a newer
    one could resurrect gap-filled captions the user already replaced.

    HOW: All public mutators take self._lock (re-entrant, since the trim
    helpers delegate to set_trim_range) and increment self.version when
    they change anything. Readers use snapshot() for a consistent copy.

    RULES:
    - state is the live aggregate; treat it as read-only outside this class
    - segment_cache is optional and best-effort
    """

    def __init__(
        self,
        source_video_duration: float = 0.0,
        segment_cache: Optional[SegmentCache] = None,
        cache_key: str = SEGMENT_CACHE_KEY,
    ) -> None:
        self._state = EditorState(
            source_video_duration=source_video_duration,
            trim_range=TrimRange(0.0, source_video_duration),
        )
        self._cache = segment_cache
        self._cache_key = cache_key
        self._lock = threading.RLock()
        self.version = 0

    @property
    def state(self) -> EditorState:
        return self._state

    def snapshot(self) -> Tuple[int, EditorState]:
        """Return (version, deep copy of the state) taken atomically."""
        with self._lock:
            return self.version, copy.deepcopy(self._state)

    def visible_captions(self) -> List[Caption]:
        with self._lock:
            return sorted(
                (c for c in self._state.captions if c.is_visible),
                key=lambda c: c.start_time,
            )

    def _commit(self, **changes: Any) -> None:
        for name, value in changes.items():
            setattr(self._state, name, value)
        self.version += 1

    # ------------------------------------------------------------------
    # Materialization helpers
    # ------------------------------------------------------------------

    def _presentation(self) -> Tuple[CaptionStyle, Position]:
        """Style and position for newly materialized captions."""
        captions = self._state.captions
        if captions:
            return captions[0].style, captions[0].position
        return self._state.last_edited_caption_style or DEFAULT_STYLE, DEFAULT_POSITION

    def _materialize(self, segments: Sequence[TranscriptSegment], trim: TrimRange) -> List[Caption]:
        style, position = self._presentation()
        overlapping = [s for s in segments if s.overlaps(trim.start_time, trim.end_time)]
        return ops.renumber(ops.segments_to_captions(overlapping, style, position))

    def _widen_segments(self, supplied: Optional[Iterable[SegmentInput]]) -> None:
        """Adopt whichever known segment list covers the most of the timeline."""
        current = self._state.full_transcript_segments
        candidates = []
        if supplied is not None:
            candidates.append(("supplied", normalize_segments(supplied)))
        if self._cache is not None:
            candidates.append(("cache", read_cached_segments(self._cache, self._cache_key)))

        for source, segments in candidates:
            if _covers_more(segments, current):
                logger.info(
                    "Using %d segments from %s as the full transcript", len(segments), source
                )
                current = sorted(segments, key=lambda s: s.start)
        self._state.full_transcript_segments = current

    def _gap_fill(self, segments: Sequence[TranscriptSegment], trim: TrimRange) -> List[Caption]:
        """Keep overlapping captions and caption only the uncovered gaps.

        HOW: Gaps are the spans before the first kept caption, between
        kept captions (wider than GAP_EPSILON_S), and after the last one,
        all within the trim range. A segment fills a gap if it overlaps the
        gap by more than it overlaps any kept caption, so a retimed caption
        is not duplicated by its own source segment.
        """
        kept = sorted(
            (dataclasses.replace(c, is_visible=True) for c in self._state.captions if c.overlaps(trim)),
            key=lambda c: (c.start_time, c.end_time),
        )
        if not kept:
            return self._materialize(segments, trim)

        gaps: List[Tuple[float, float]] = []
        if kept[0].start_time - trim.start_time > GAP_EPSILON_S:
            gaps.append((trim.start_time, kept[0].start_time))
        covered_until = kept[0].end_time
        for caption in kept[1:]:
            if caption.start_time - covered_until > GAP_EPSILON_S:
                gaps.append((covered_until, caption.start_time))
            covered_until = max(covered_until, caption.end_time)
        if trim.end_time - covered_until > GAP_EPSILON_S:
            gaps.append((covered_until, trim.end_time))

        def kept_overlap(segment: TranscriptSegment) -> float:
            return max(
                min(segment.end, c.end_time) - max(segment.start, c.start_time)
                for c in kept
            )

        fill: List[TranscriptSegment] = []
        for gap_start, gap_end in gaps:
            for segment in segments:
                gap_overlap = min(segment.end, gap_end) - max(segment.start, gap_start)
                if (
                    gap_overlap > 0
                    and gap_overlap > kept_overlap(segment)
                    and segment not in fill
                ):
                    fill.append(segment)

        style, position = self._presentation()
        gap_captions = ops.segments_to_captions(fill, style, position, id_prefix="caption-gap")
        logger.debug("Gap fill kept %d captions, added %d", len(kept), len(gap_captions))
        return ops.renumber(kept + gap_captions)

    # ------------------------------------------------------------------
    # Clip and trim
    # ------------------------------------------------------------------

    def load_clip(
        self,
        source_video_duration: float,
        trim_range: Union[TrimRange, ClipCandidate],
        segments: Optional[Iterable[SegmentInput]] = None,
    ) -> None:
        """Start editing a clip: set duration, initial range, and captions.

        The transcript becomes exactly the given segments; edit history is
        cleared. The last edited style survives, so a new clip keeps the
        look the user chose for the previous one.
        """
        if isinstance(trim_range, ClipCandidate):
            trim_range = trim_range.to_trim_range()
        full = sorted(normalize_segments(segments or []), key=lambda s: s.start)
        with self._lock:
            trim = clamp_trim_range(trim_range, source_video_duration)
            self._state.captions = []
            self._state.source_video_duration = source_video_duration
            captions = self._materialize(full, trim) if full else []
            self._commit(
                trim_range=trim,
                full_transcript_segments=full,
                captions=captions,
                has_user_edited_transcription=False,
            )
        logger.info(
            "Loaded clip %.1f-%.1fs with %d segments, %d captions",
            trim.start_time, trim.end_time, len(full), len(captions),
        )

    def set_source_duration(self, duration: float) -> None:
        """Record the real video duration once known, clamping the range into it."""
        with self._lock:
            trim = self._state.trim_range
            clamped = clamp_trim_range(trim, duration)
            if clamped == trim:
                self._commit(source_video_duration=duration)
                return
            self._commit(
                source_video_duration=duration,
                trim_range=clamped,
                captions=ops.refresh_visibility(self._state.captions, clamped),
            )

    def set_trim_range(
        self,
        new_range: TrimRange,
        segments: Optional[Iterable[SegmentInput]] = None,
    ) -> TrimRange:
        """Move the trim window and reconcile captions with it.

        WHY: This is the single entry point for every trim drag, so it is
        where the caption/trim consistency is restored.

        HOW: Clamp, widen the known transcript, then either rematerialize
        (no user edits) or gap-fill (user edits). Without any transcript,
        only visibility is refreshed.

        Args:
            new_range: Requested range; clamped if out of bounds.
            segments: Freshly supplied segments, adopted only if wider.

        Returns:
            The trim range actually applied.
        """
        with self._lock:
            duration = self._state.source_video_duration
            try:
                validate_trim_range(new_range, duration)
                trim = new_range
            except InvalidTrimRange as exc:
                trim = clamp_trim_range(new_range, duration)
                logger.debug("Clamped trim range to %.3f-%.3fs: %s", trim.start_time, trim.end_time, exc)

            self._widen_segments(segments)
            source = self._state.full_transcript_segments

            if not source:
                captions = ops.refresh_visibility(self._state.captions, trim)
            elif self._state.has_user_edited_transcription:
                captions = self._gap_fill(source, trim)
            else:
                captions = self._materialize(source, trim)

            self._commit(trim_range=trim, captions=captions)
            return trim

    def update_trim_start(self, start_time: float) -> TrimRange:
        with self._lock:
            end = self._state.trim_range.end_time
            start = max(0.0, min(start_time, end - MIN_TRIM_SEPARATION_S))
            return self.set_trim_range(TrimRange(start, end))

    def update_trim_end(self, end_time: float) -> TrimRange:
        with self._lock:
            start = self._state.trim_range.start_time
            end = max(end_time, start + MIN_TRIM_SEPARATION_S)
            duration = self._state.source_video_duration
            if duration > 0:
                end = min(end, duration)
            return self.set_trim_range(TrimRange(start, end))

    def restore_original_transcription(self) -> bool:
        """Drop user edits for the current range and rebuild from the transcript.

        Returns False (and changes nothing) when no transcript is known.
        """
        with self._lock:
            source = self._state.full_transcript_segments
            if not source:
                logger.warning("Cannot restore transcription: no transcript segments")
                return False
            captions = self._materialize(source, self._state.trim_range)
            self._commit(captions=captions, has_user_edited_transcription=False)
            return True

    # ------------------------------------------------------------------
    # Caption content edits
    # ------------------------------------------------------------------

    def update_caption(
        self,
        caption_id: str,
        text: Optional[str] = None,
        start_time: Optional[float] = None,
        end_time: Optional[float] = None,
    ) -> bool:
        """Edit a caption's text and/or timing; marks the transcription edited."""
        changes: Dict[str, Any] = {}
        if text is not None:
            changes["text"] = text.strip()
        if start_time is not None:
            changes["start_time"] = start_time
        if end_time is not None:
            changes["end_time"] = end_time

        with self._lock:
            target = ops.find_caption(self._state.captions, caption_id)
            if target is None or not changes:
                return False
            updated = dataclasses.replace(target, **changes)
            if updated.end_time <= updated.start_time or not updated.text:
                logger.warning("Rejected edit of %s: empty text or range", caption_id)
                return False
            updated.is_visible = updated.overlaps(self._state.trim_range)
            captions = [updated if c.id == caption_id else c for c in self._state.captions]
            self._commit(captions=captions, has_user_edited_transcription=True)
            return True

    def update_caption_position(self, caption_id: str, position: Position) -> bool:
        with self._lock:
            if ops.find_caption(self._state.captions, caption_id) is None:
                return False
            captions = [
                dataclasses.replace(c, position=position) if c.id == caption_id else c
                for c in self._state.captions
            ]
            self._commit(captions=captions)
            return True

    def split_caption_at_playhead(self, caption_id: str, playhead_time: float) -> bool:
        with self._lock:
            try:
                captions = ops.split_caption(self._state.captions, caption_id, playhead_time)
            except ops.CaptionSplitInvalid as exc:
                logger.warning("Split rejected: %s", exc)
                return False
            self._commit(captions=captions, has_user_edited_transcription=True)
            return True

    def merge_captions(self, ids: Iterable[str]) -> bool:
        with self._lock:
            try:
                captions = ops.merge_captions(self._state.captions, ids)
            except ops.MergeInvalidSelection as exc:
                logger.warning("Merge rejected: %s", exc)
                return False
            self._commit(captions=captions, has_user_edited_transcription=True)
            return True

    def shift_captions(self, ids: Iterable[str], delta_ms: float) -> bool:
        wanted = set(ids)
        with self._lock:
            if not any(c.id in wanted for c in self._state.captions) or delta_ms == 0:
                return False
            captions = ops.shift_captions(
                self._state.captions, wanted, delta_ms, self._state.trim_range
            )
            self._commit(captions=captions, has_user_edited_transcription=True)
            return True

    def apply_transcript_text(self, text: str) -> bool:
        """Replace the captions of the current range with edited free text.

        Sentences are spread evenly over the trim range; style and position
        of the current first caption are kept.
        """
        with self._lock:
            style, position = self._presentation()
            captions = ops.captions_from_text(text, self._state.trim_range, style, position)
            if not captions:
                logger.warning("Rejected empty transcript text")
                return False
            self._commit(captions=captions, has_user_edited_transcription=True)
            return True

    # ------------------------------------------------------------------
    # Style edits
    # ------------------------------------------------------------------

    def update_caption_style(self, caption_id: str, partial_style: Dict[str, Any]) -> bool:
        """Restyle one caption, then share the resulting style with all others.

        Captions in one clip share one look; positions stay per caption.
        """
        with self._lock:
            target = ops.find_caption(self._state.captions, caption_id)
            if target is None:
                return False
            new_style = target.style.merged(partial_style)
            captions = ops.apply_style(self._state.captions, partial_style, [caption_id])
            captions = ops.broadcast_style(captions, new_style, exclude_id=caption_id)
            self._commit(captions=captions, last_edited_caption_style=new_style)
            return True

    def update_caption_style_for_ids(self, ids: Iterable[str], partial_style: Dict[str, Any]) -> bool:
        """Restyle only the given captions (used by style templates)."""
        wanted = set(ids)
        with self._lock:
            captions = ops.apply_style(self._state.captions, partial_style, wanted)
            touched = [c for c in captions if c.id in wanted]
            if not touched:
                return False
            self._commit(captions=captions, last_edited_caption_style=touched[0].style)
            return True

    def broadcast_style(self, style: CaptionStyle) -> bool:
        with self._lock:
            if not self._state.captions:
                return False
            captions = ops.broadcast_style(self._state.captions, style)
            self._commit(captions=captions, last_edited_caption_style=style)
            return True

    def apply_template(self, template_id: str, ids: Optional[Iterable[str]] = None) -> bool:
        template = STYLE_TEMPLATES.get(template_id)
        if template is None:
            logger.warning("Unknown style template %r", template_id)
            return False
        with self._lock:
            if ids is None:
                ids = [c.id for c in self._state.captions]
            return self.update_caption_style_for_ids(ids, template["style"])
