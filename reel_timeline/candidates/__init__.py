"""Clip candidate parsing — from generator text to validated highlight ranges."""

from reel_timeline.candidates.parser import (
    CandidatesUnparsable,
    max_candidates_for_duration,
    parse_candidates,
    recover_clip_objects,
    select_candidates,
)

__all__ = [
    "CandidatesUnparsable",
    "max_candidates_for_duration",
    "parse_candidates",
    "recover_clip_objects",
    "select_candidates",
]
