"""Trim/caption editor — timeline synchronizer, caption operations, styles.

WHY: Editing a clip means moving its trim range and reshaping its
captions, and the two must never drift apart.

HOW: timeline.py owns the session state and serializes mutations,
captions.py holds the pure edit operations, styles.py the defaults and
templates, cache.py the optional full-transcript cache.
"""

from reel_timeline.editor.cache import InMemorySegmentCache, SegmentCache
from reel_timeline.editor.captions import CaptionSplitInvalid, MergeInvalidSelection
from reel_timeline.editor.timeline import InvalidTrimRange, Timeline

__all__ = [
    "CaptionSplitInvalid",
    "InMemorySegmentCache",
    "InvalidTrimRange",
    "MergeInvalidSelection",
    "SegmentCache",
    "Timeline",
]
