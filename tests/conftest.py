"""Shared test fixtures for the reel_timeline test suite.

WHY: The segmenter, candidate parser, and timeline tests all reason about
the same small transcript. Centralizing it here keeps the expected
caption texts and boundaries consistent across modules.

HOW: TRANSCRIPT is ten contiguous 5-second English segments covering
0–50s. Fixtures hand out fresh lists so tests can slice them freely.

RULES:
- Segment i spans [5i, 5i + 5) with text "Sentence number i."
- Segments carry no word timestamps unless a test adds them
- Timelines default to a 60-second source video
"""

from typing import Any, Dict, List

import pytest

from reel_timeline.core.ir import TranscriptSegment, TrimRange
from reel_timeline.editor.timeline import Timeline

TRANSCRIPT: List[TranscriptSegment] = [
    TranscriptSegment(text="Sentence number {}.".format(i), start=5.0 * i, end=5.0 * i + 5.0)
    for i in range(10)
]

SOURCE_DURATION_S = 60.0

# ElevenLabs-style word list, including a spacing token
SCRIBE_WORDS: List[Dict[str, Any]] = [
    {"text": "Hello", "start": 0.0, "end": 0.4, "type": "word"},
    {"text": " ", "start": 0.4, "end": 0.5, "type": "spacing"},
    {"text": "world.", "start": 0.5, "end": 0.9, "type": "word"},
    {"text": " ", "start": 0.9, "end": 1.0, "type": "spacing"},
    {"text": "Second", "start": 1.0, "end": 1.4, "type": "word"},
    {"text": " ", "start": 1.4, "end": 1.5, "type": "spacing"},
    {"text": "sentence", "start": 1.5, "end": 2.0, "type": "word"},
]


@pytest.fixture
def segments():
    """Ten contiguous 5-second segments covering 0–50s."""
    return list(TRANSCRIPT)


@pytest.fixture
def scribe_response():
    """A speech-to-text JSON body with word timestamps."""
    return {
        "language_code": "en",
        "text": "Hello world. Second sentence",
        "words": list(SCRIBE_WORDS),
    }


@pytest.fixture
def timeline(segments):
    """A timeline loaded with the 10–20s clip of the sample transcript."""
    tl = Timeline(source_video_duration=SOURCE_DURATION_S)
    tl.load_clip(SOURCE_DURATION_S, TrimRange(10.0, 20.0), segments)
    return tl
