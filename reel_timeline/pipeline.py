"""Highlight pipeline — audio to transcript segments to ranked clip candidates.

WHY: Callers (a web route, a worker, a script) want one async call per
stage with typed failures, not the details of two HTTP services and a
recovery parser. This module wires the stages together the same way
for every caller.

HOW: transcribe_segments() runs the ASR client and segments its words.
generate_candidates() formats the transcript into a compact prompt, asks
the generator, recovers the clip list and selects candidates.
find_highlights() chains both.

RULES:
- No transcript segments → TranscriptEmpty; the generator is not called
- Unparsable generator text → CandidatesUnparsable (distinct from an
  empty result after filtering, which is returned as [])
- When a segment cache is given, the full transcript is written to it so
  the editor can extend trims past the clip later
- Clients are passed in already entered (async with ... as client)
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence, Tuple

from reel_timeline.api.client import ScribeClient
from reel_timeline.api.generation import GeminiClient
from reel_timeline.candidates.parser import (
    max_candidates_for_duration,
    recover_clip_objects,
    select_candidates,
)
from reel_timeline.config import SEGMENT_CACHE_KEY
from reel_timeline.core.ir import ClipCandidate, TranscriptSegment
from reel_timeline.editor.cache import SegmentCache, write_cached_segments

logger = logging.getLogger(__name__)

_LANGUAGE_NAMES = {"en": "English", "ar": "Arabic"}


class TranscriptEmpty(ValueError):
    """Raised when transcription produced no usable segments."""


def _format_timestamp(seconds: float) -> str:
    minutes, secs = divmod(max(seconds, 0.0), 60)
    return "{:02d}:{:05.2f}".format(int(minutes), secs)


def format_transcript(segments: Sequence[TranscriptSegment]) -> str:
    """One line per segment: ``[start - end] text`` with seconds as floats."""
    return "\n".join(
        "[{:.2f} - {:.2f}] {}".format(s.start, s.end, s.text) for s in segments
    )


def build_clip_prompt(
    segments: Sequence[TranscriptSegment],
    max_clips: int,
    output_language: str = "en",
) -> str:
    """Build the default ranking prompt for a transcript."""
    language = _LANGUAGE_NAMES.get(output_language, "English")
    return (
        "You select highlight clips for vertical short-form video.\n"
        "Pick at most {max_clips} self-contained moments, each 30 to 90 seconds "
        "long, that start and end on sentence boundaries.\n"
        "Answer with a JSON array only. Each item: "
        '{{"title": string, "start": seconds, "end": seconds, '
        '"category": string, "tags": [string], "score": 0-100}}.\n'
        "Write title, category and tags in {language}.\n\n"
        "Transcript (seconds):\n{transcript}\n"
    ).format(
        max_clips=max_clips,
        language=language,
        transcript=format_transcript(segments),
    )


async def transcribe_segments(
    asr: ScribeClient,
    audio: bytes,
    filename: str = "audio.mp4",
    on_status: Optional[Callable[[str], None]] = None,
    segment_cache: Optional[SegmentCache] = None,
    cache_key: str = SEGMENT_CACHE_KEY,
) -> List[TranscriptSegment]:
    """Transcribe audio and return sentence segments.

    Raises:
        AllKeysExhausted, TranscriptionFailed: from the ASR client.
        TranscriptEmpty: when no segment survives normalization.
    """
    response = await asr.transcribe(audio, filename=filename, on_status=on_status)
    segments = response.to_segments()
    if not segments:
        raise TranscriptEmpty("Transcription returned no usable segments")

    logger.info(
        "Transcribed %d words into %d segments (language=%s)",
        len(response.words), len(segments), response.language,
    )
    if segment_cache is not None:
        write_cached_segments(segment_cache, cache_key, segments)
    return segments


async def generate_candidates(
    generator: GeminiClient,
    segments: Sequence[TranscriptSegment],
    video_duration_s: Optional[float] = None,
    output_language: str = "en",
) -> List[ClipCandidate]:
    """Ask the generator for highlight clips and validate its answer.

    Raises:
        TranscriptEmpty: when segments is empty.
        GenerationError: from the generation client.
        CandidatesUnparsable: when the answer holds no clip list.
    """
    if not segments:
        raise TranscriptEmpty("Cannot rank clips without transcript segments")

    duration = video_duration_s or max(s.end for s in segments)
    prompt = build_clip_prompt(segments, max_candidates_for_duration(duration), output_language)
    response = await generator.generate(prompt)

    objects = recover_clip_objects(response.text)
    candidates = select_candidates(objects, segments, duration, output_language)
    logger.info(
        "Generator proposed %d clips, %d kept (%s long video)",
        len(objects), len(candidates), _format_timestamp(duration),
    )
    return candidates


async def find_highlights(
    asr: ScribeClient,
    generator: GeminiClient,
    audio: bytes,
    filename: str = "audio.mp4",
    video_duration_s: Optional[float] = None,
    output_language: str = "en",
    on_status: Optional[Callable[[str], None]] = None,
    segment_cache: Optional[SegmentCache] = None,
) -> Tuple[List[TranscriptSegment], List[ClipCandidate]]:
    """Run transcription and ranking; returns (segments, candidates)."""
    segments = await transcribe_segments(
        asr, audio, filename=filename, on_status=on_status, segment_cache=segment_cache
    )
    if on_status:
        on_status("Finding highlight clips...")
    candidates = await generate_candidates(
        generator, segments, video_duration_s, output_language
    )
    return segments, candidates
