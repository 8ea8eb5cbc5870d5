"""Recovery parsing, boundary snapping, and validation of ranked clip proposals.

WHY: The ranking service is a free-text generator. It is asked for a JSON
array of clips but regularly wraps it in code fences, uses typographic
quotes, leaves trailing commas, or forgets to quote keys. Its timestamps
also land mid-sentence. Clips shown to the user must be parsable, start
and end on real sentence boundaries, and respect the duration and quality
rules — without ever leaving the user with nothing when the response did
contain clips.

HOW: Three stages, in order:
  1. recover_clip_objects — clean, extract, parse, repair once, unwrap
  2. normalize_candidate  — coerce fields and snap start/end onto segment
                            boundaries within SNAP_TOLERANCE_S
  3. select_candidates    — validate, keep the top N by score under the
                            duration-based cap, fall back to all
                            structurally valid clips if none survive

RULES:
- Array extraction takes precedence over object extraction
- {"clips": [...]} is unwrapped here and nowhere else
- Snapping that would invert a range is discarded for both ends
- Valid: non-empty title, finite start < end, 30s <= duration <= 90s,
  score >= 65 when a score is present
- The cap is an upper bound only; lists are never padded
- Survivors keep the order the generator returned them in
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Dict, List, Optional, Sequence

import jsonschema

from reel_timeline.core.ir import ClipCandidate, TranscriptSegment

logger = logging.getLogger(__name__)

SNAP_TOLERANCE_S = 3.0
MIN_CLIP_DURATION_S = 30.0
MAX_CLIP_DURATION_S = 90.0
MIN_SCORE = 65.0

# (max video minutes, max candidates); anything longer gets the last cap
DURATION_CAPS = (
    (5, 2),
    (10, 3),
    (20, 5),
    (40, 7),
    (60, 10),
)
LONG_VIDEO_CAP = 12

DEFAULT_CATEGORIES = {"en": "General", "ar": "عام"}

CLIP_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["start", "end"],
    "properties": {
        "title": {"type": ["string", "number", "null"]},
        "start": {"type": ["number", "string"]},
        "end": {"type": ["number", "string"]},
        "category": {"type": ["string", "null"]},
        "tags": {"type": ["array", "null"]},
        "score": {"type": ["number", "string", "null"]},
    },
}
"""Structural shape a clip object must have before it is normalized."""

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
# String literals match first and are kept as-is by the repair pass
_JSON_STRING = r'("(?:\\.|[^"\\])*")'
_TRAILING_COMMA_RE = re.compile(_JSON_STRING + r"|,\s*([}\]])")
_BARE_KEY_RE = re.compile(_JSON_STRING + r"|([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)\s*:")


class CandidatesUnparsable(ValueError):
    """Raised when a generator response contains no extractable clip list.

    Distinct from a response that parses but filters down to zero clips,
    which is a normal outcome.
    """


# ---------------------------------------------------------------------------
# Stage 1: recovery parsing
# ---------------------------------------------------------------------------


def clean_json_text(raw: str) -> str:
    """Strip code fences and normalize typographic quotes to ASCII."""
    text = _FENCE_RE.sub("", raw)
    text = text.replace("“", '"').replace("”", '"')
    return text.replace("‘", "'").replace("’", "'")


def extract_json_chunk(text: str) -> str:
    """Return the outermost [...] span, else the outermost {...} span."""
    array_start, array_end = text.find("["), text.rfind("]")
    if array_start != -1 and array_end > array_start:
        return text[array_start:array_end + 1]
    object_start, object_end = text.find("{"), text.rfind("}")
    if object_start != -1 and object_end > object_start:
        return text[object_start:object_end + 1]
    return text


def _drop_trailing_comma(match: re.Match) -> str:
    return match.group(1) if match.group(1) is not None else match.group(2)


def _quote_bare_key(match: re.Match) -> str:
    if match.group(1) is not None:
        return match.group(1)
    return '{}"{}":'.format(match.group(2), match.group(3))


def repair_json(text: str) -> str:
    """One repair pass: drop trailing commas and quote bare object keys."""
    repaired = _TRAILING_COMMA_RE.sub(_drop_trailing_comma, text.strip())
    return _BARE_KEY_RE.sub(_quote_bare_key, repaired)


def _unwrap_clip_list(parsed: Any) -> List[Any]:
    """Resolve the array-or-envelope response shape to a plain list."""
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict) and isinstance(parsed.get("clips"), list):
        return parsed["clips"]
    raise CandidatesUnparsable(
        "Generator JSON is neither a clip array nor a {\"clips\": [...]} object"
    )


def recover_clip_objects(raw: str) -> List[Dict[str, Any]]:
    """Recover the list of clip objects from raw generator text.

    RULES:
    - Strict parse first, then exactly one repair attempt
    - Non-object entries are skipped
    - Raises CandidatesUnparsable when no clip list can be recovered
    """
    chunk = extract_json_chunk(clean_json_text(raw or ""))
    try:
        parsed = json.loads(chunk)
    except json.JSONDecodeError:
        try:
            parsed = json.loads(repair_json(chunk))
        except json.JSONDecodeError as exc:
            raise CandidatesUnparsable(
                "No parsable JSON in generator response: {}".format(exc)
            ) from exc

    return [item for item in _unwrap_clip_list(parsed) if isinstance(item, dict)]


# ---------------------------------------------------------------------------
# Stage 2: normalization and boundary snapping
# ---------------------------------------------------------------------------


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def snap_start(time_s: float, segments: Sequence[TranscriptSegment]) -> float:
    """Snap backward to the start of the latest segment starting at or before time_s."""
    for segment in reversed(segments):
        if segment.start <= time_s:
            if time_s - segment.start <= SNAP_TOLERANCE_S:
                return segment.start
            break
    return time_s


def snap_end(time_s: float, segments: Sequence[TranscriptSegment]) -> float:
    """Snap forward to the end of the earliest segment ending at or after time_s."""
    for segment in segments:
        if segment.end >= time_s:
            if segment.end - time_s <= SNAP_TOLERANCE_S:
                return segment.end
            break
    return time_s


def normalize_candidate(
    clip: Dict[str, Any],
    segments: Sequence[TranscriptSegment],
    default_category: str = DEFAULT_CATEGORIES["en"],
) -> ClipCandidate:
    """Coerce one clip object into a ClipCandidate with snapped boundaries.

    HOW: start and end are snapped independently. If the snapped range is
    empty or inverted, both raw values are kept instead.

    RULES:
    - segments must be sorted by start time
    - A non-finite score is treated as missing
    """
    raw_start = _to_float(clip.get("start"))
    raw_end = _to_float(clip.get("end"))
    start, end = raw_start, raw_end
    if math.isfinite(raw_start) and math.isfinite(raw_end):
        start = snap_start(raw_start, segments)
        end = snap_end(raw_end, segments)
        if end <= start:
            start, end = raw_start, raw_end

    score = _to_float(clip.get("score"))
    tags = clip.get("tags")
    category = clip.get("category")

    return ClipCandidate(
        title=str(clip.get("title") or "").strip(),
        start=start,
        end=end,
        category=str(category).strip() if category else default_category,
        tags=[str(t).strip() for t in tags if str(t).strip()] if isinstance(tags, list) else [],
        score=score if math.isfinite(score) else None,
    )


# ---------------------------------------------------------------------------
# Stage 3: validation and ranking
# ---------------------------------------------------------------------------


def max_candidates_for_duration(duration_s: float) -> int:
    """Upper bound on returned clips for a source video of this length."""
    minutes = duration_s / 60.0
    for max_minutes, cap in DURATION_CAPS:
        if minutes <= max_minutes:
            return cap
    return LONG_VIDEO_CAP


def is_structurally_valid(clip: ClipCandidate) -> bool:
    return bool(
        clip.title
        and math.isfinite(clip.start)
        and math.isfinite(clip.end)
        and clip.end > clip.start
    )


def is_duration_valid(clip: ClipCandidate) -> bool:
    return MIN_CLIP_DURATION_S <= clip.duration <= MAX_CLIP_DURATION_S


def has_good_score(clip: ClipCandidate) -> bool:
    # Unscored clips are kept for older prompt versions that return no score
    return clip.score is None or clip.score >= MIN_SCORE


def _top_by_score(clips: List[ClipCandidate], limit: int) -> List[ClipCandidate]:
    """Keep the `limit` best-scored clips, returned in their original order."""
    if len(clips) <= limit:
        return clips
    ranked = sorted(
        range(len(clips)),
        key=lambda i: -clips[i].score if clips[i].score is not None else math.inf,
    )
    keep = set(ranked[:limit])
    return [clip for i, clip in enumerate(clips) if i in keep]


def select_candidates(
    clip_objects: Sequence[Dict[str, Any]],
    segments: Sequence[TranscriptSegment],
    video_duration_s: Optional[float] = None,
    output_language: str = "en",
) -> List[ClipCandidate]:
    """Normalize, snap, validate, and cap recovered clip objects.

    WHY: The generator is asked to follow these rules itself, but its
    output cannot be trusted to. Enforcing them here keeps the editor's
    inputs well-formed.

    HOW: Objects failing CLIP_SCHEMA are dropped. The rest are normalized
    against the segments sorted by start time, filtered by the validity
    rules, and capped by source duration. If nothing passes, every
    structurally valid clip is returned instead.

    Args:
        clip_objects: Dicts recovered from the generator response.
        segments: Transcript segments used for boundary snapping.
        video_duration_s: Source duration; derived from segments when
            missing or not positive.
        output_language: "en" or "ar"; selects the default category.

    Returns:
        Candidates in generator order, possibly empty.
    """
    ordered_segments = sorted(segments, key=lambda s: s.start)
    if not video_duration_s or video_duration_s <= 0:
        video_duration_s = max((s.end for s in ordered_segments), default=0.0)
    default_category = DEFAULT_CATEGORIES.get(output_language, DEFAULT_CATEGORIES["en"])

    normalized: List[ClipCandidate] = []
    for obj in clip_objects:
        try:
            jsonschema.validate(instance=obj, schema=CLIP_SCHEMA)
        except jsonschema.ValidationError as exc:
            logger.debug("Dropping malformed clip object: %s", exc.message)
            continue
        normalized.append(normalize_candidate(obj, ordered_segments, default_category))

    valid = [
        c for c in normalized
        if is_structurally_valid(c) and is_duration_valid(c) and has_good_score(c)
    ]
    cap = max_candidates_for_duration(video_duration_s)
    selected = _top_by_score(valid, cap)

    logger.info(
        "Filtered clips: %d -> %d valid -> %d selected (cap %d for %.0fs video)",
        len(normalized), len(valid), len(selected), cap, video_duration_s,
    )

    if selected:
        return selected
    return [c for c in normalized if is_structurally_valid(c)]


def parse_candidates(
    raw_text: str,
    segments: Sequence[TranscriptSegment],
    video_duration_s: Optional[float] = None,
    output_language: str = "en",
) -> List[ClipCandidate]:
    """Turn a raw generator response into validated, boundary-snapped clips.

    RULES:
    - Returns [] when the response is unparsable (logged as a warning)
    - Callers that must distinguish "unparsable" from "filtered to zero"
      use recover_clip_objects + select_candidates directly
    """
    try:
        objects = recover_clip_objects(raw_text)
    except CandidatesUnparsable as exc:
        logger.warning("Could not parse clip candidates: %s", exc)
        return []
    logger.info("Parsed %d clip objects from generator response", len(objects))
    return select_candidates(objects, segments, video_duration_s, output_language)
