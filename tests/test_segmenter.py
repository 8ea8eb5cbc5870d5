"""Tests for word-to-segment building and segment normalization.

WHY: Every caption and every clip boundary is derived from these
segments; an off-by-one in the closing rule shifts captions for the
whole session.

HOW: Each class exercises one closing rule or normalization behavior
with hand-built word lists.
"""

import math

import pytest

from reel_timeline.api.models import TranscriptionResponse
from reel_timeline.core.ir import TranscriptSegment, WordTimestamp
from reel_timeline.core.segmenter import (
    build_segments,
    detect_language,
    normalize_segments,
    normalize_time,
    segment_coverage,
)


def _words(texts, step=1.0, start=0.0):
    return [
        {"text": t, "start": start + i * step, "end": start + (i + 1) * step}
        for i, t in enumerate(texts)
    ]


class TestSentenceTerminators:
    """Segments close on . ! ? and Arabic punctuation."""

    def test_scribe_response_splits_on_period(self, scribe_response):
        segments = TranscriptionResponse.from_dict(scribe_response).to_segments()

        assert [s.text for s in segments] == ["Hello world.", "Second sentence"]
        assert segments[0].start == pytest.approx(0.0)
        assert segments[0].end == pytest.approx(0.9)
        assert segments[1].start == pytest.approx(1.0)
        assert segments[1].end == pytest.approx(2.0)

    @pytest.mark.parametrize("terminator", ["!", "?", "،", "؛", "؟"])
    def test_other_terminators_close_segment(self, terminator):
        segments = build_segments(_words(["one", "two" + terminator, "three"], step=0.2))
        assert [s.text for s in segments] == ["one two" + terminator, "three"]

    def test_words_are_attached(self):
        segments = build_segments(_words(["a", "b."], step=0.5))
        assert segments[0].words == [
            WordTimestamp("a", 0.0, 0.5),
            WordTimestamp("b.", 0.5, 1.0),
        ]


class TestSpanAndWordLimits:
    def test_five_second_span_closes_segment(self):
        segments = build_segments(_words(["w{}".format(i) for i in range(7)]))

        assert len(segments) == 2
        assert segments[0].start == 0.0
        assert segments[0].end == 5.0
        assert len(segments[0].text.split()) == 5
        assert segments[1].text == "w5 w6"

    def test_fifteen_words_close_segment(self):
        segments = build_segments(_words(["x"] * 20, step=0.1))

        assert [len(s.text.split()) for s in segments] == [15, 5]

    def test_segments_never_overlap(self):
        segments = build_segments(_words(["w."] * 3 + ["w"] * 30, step=0.3))
        for prev, nxt in zip(segments, segments[1:]):
            assert prev.end <= nxt.start


class TestWordCoercion:
    def test_missing_end_falls_back_to_half_second(self):
        segments = build_segments([{"text": "hi", "start": 2.0, "end": 0}])
        assert segments[0].end == pytest.approx(2.5)

    def test_end_before_start_is_clamped(self):
        # 2500 is read as milliseconds, landing before the 3.0s start
        segments = build_segments([
            {"text": "bad", "start": 3.0, "end": 2500},
            {"text": "timing.", "start": 3.2, "end": 1.0},
        ])
        assert segments[0].words == [
            WordTimestamp("bad", 3.0, 3.0),
            WordTimestamp("timing.", 3.2, 3.2),
        ]
        assert segments[0].start <= segments[0].end

    def test_alternate_field_names(self):
        segments = build_segments([{"word": "hey", "start_time": 1.0, "end_time": 1.2}])
        assert segments[0].text == "hey"
        assert segments[0].start == pytest.approx(1.0)

    def test_empty_tokens_dropped_and_tail_flushed(self):
        words = _words(["keep", "  ", "this", ""], step=0.2)
        segments = build_segments(words)
        assert [s.text for s in segments] == ["keep this"]

    def test_no_words_gives_no_segments(self):
        assert build_segments([]) == []


class TestNormalizeTime:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (1.5, 1.5),
            (1000, 1000.0),
            (1500, 1.5),
            ("12", 0.0),
            (None, 0.0),
            (True, 0.0),
            (math.nan, 0.0),
            (math.inf, 0.0),
        ],
    )
    def test_values(self, value, expected):
        assert normalize_time(value) == pytest.approx(expected)


class TestLanguage:
    def test_arabic_detected_from_script(self):
        assert detect_language("مرحبا بكم") == "ar"
        assert detect_language("hello") == "en"

    def test_explicit_language_applies_to_every_segment(self):
        segments = build_segments(_words(["hello.", "world"]), language="ar")
        assert {s.language for s in segments} == {"ar"}

    def test_response_language_code(self, scribe_response):
        scribe_response["language_code"] = "ar"
        assert TranscriptionResponse.from_dict(scribe_response).language == "ar"
        scribe_response["language_code"] = "fr"
        assert TranscriptionResponse.from_dict(scribe_response).language == "en"


class TestNormalizeSegments:
    def test_drops_empty_and_inverted(self):
        raw = [
            {"text": " ok ", "start": 0, "end": 2},
            {"text": "", "start": 2, "end": 3},
            {"text": "backwards", "start": 5, "end": 4},
        ]
        segments = normalize_segments(raw)
        assert [s.text for s in segments] == ["ok"]

    def test_ready_made_segments_pass_through_response(self):
        data = {
            "language_code": "en",
            "segments": [{"text": "Already grouped.", "start": 1, "end": 4}],
            "words": [{"text": "ignored", "start": 0, "end": 1}],
        }
        segments = TranscriptionResponse.from_dict(data).to_segments()
        assert segments == [TranscriptSegment("Already grouped.", 1.0, 4.0, "en")]

    def test_word_timestamps_key_is_accepted(self):
        data = {"word_timestamps": [{"text": "Hi.", "start": 0, "end": 1}]}
        assert TranscriptionResponse.from_dict(data).to_segments()[0].text == "Hi."


class TestSegmentCoverage:
    def test_min_start_max_end(self, segments):
        assert segment_coverage(segments) == (0.0, 50.0)

    def test_empty(self):
        assert segment_coverage([]) == (math.inf, -math.inf)
