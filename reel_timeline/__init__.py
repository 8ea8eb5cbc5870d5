"""Reel Timeline — highlight extraction and caption editing for short-form video.

WHY: Long recordings hide a few 30–90 second moments worth publishing as
vertical reels. Finding them needs a transcript, a ranking model, and an
editor where trimming and captioning stay consistent with each other.

HOW: Four stages, each independently testable — transcribe (API client
with key rotation), segment (core IR), rank (candidate parser), and edit
(timeline synchronizer with caption operations).

RULES:
- All stages exchange the IR dataclasses from reel_timeline.core.ir
- Only reel_timeline.api performs network I/O
- The timeline never calls a service; it only consumes segments
"""

__version__ = "0.1.0"
