"""Tests for recovery parsing, snapping, and selection of clip candidates.

WHY: Generator output is unreliable by nature. These tests pin down the
recovery steps and the validation rules so a formatting quirk in the
response never turns into "no clips" or into a clip that cuts mid-word.

HOW: Raw response strings go through recover_clip_objects /
parse_candidates; selection rules are tested with dict clip objects
and an explicit video duration.
"""

import pytest

from reel_timeline.candidates.parser import (
    CandidatesUnparsable,
    max_candidates_for_duration,
    parse_candidates,
    recover_clip_objects,
    select_candidates,
)
from reel_timeline.core.ir import TranscriptSegment

SNAP_SEGMENTS = [
    TranscriptSegment("Intro.", 0.0, 10.0),
    TranscriptSegment("Setup.", 10.0, 15.0),
    TranscriptSegment("Story.", 15.0, 30.0),
    TranscriptSegment("Turn.", 30.0, 45.0),
    TranscriptSegment("Payoff.", 45.0, 57.0),
    TranscriptSegment("Outro.", 57.0, 60.0),
]


def _clip(title="Clip", start=0.0, end=40.0, **extra):
    data = {"title": title, "start": start, "end": end}
    data.update(extra)
    return data


class TestRecovery:
    def test_code_fence_and_smart_quotes(self):
        raw = (
            "```json\n"
            "[{“title”: “Big moment”, “start”: 12.4, "
            "“end”: 58.9, “score”: 90}]\n"
            "```"
        )
        objects = recover_clip_objects(raw)
        assert objects == [{"title": "Big moment", "start": 12.4, "end": 58.9, "score": 90}]

    def test_trailing_commas_and_bare_keys_repaired(self):
        raw = '[{title: "A", start: 0, end: 40, score: 80,},]'
        assert recover_clip_objects(raw) == [
            {"title": "A", "start": 0, "end": 40, "score": 80}
        ]

    def test_repair_leaves_string_values_alone(self):
        raw = '[{"title": "Sales, tips: how to close", "start": 0, "end": 40,}]'
        assert recover_clip_objects(raw) == [
            {"title": "Sales, tips: how to close", "start": 0, "end": 40}
        ]

    def test_repair_keeps_commas_before_brackets_inside_strings(self):
        raw = '[{title: "Lists like [a, b,] stay", "note": "say \\"hi, there:\\"", start: 0, end: 40,}]'
        objects = recover_clip_objects(raw)
        assert objects[0]["title"] == "Lists like [a, b,] stay"
        assert objects[0]["note"] == 'say "hi, there:"'

    def test_prose_around_json(self):
        raw = 'Sure! Here are the clips:\n[{"title": "A", "start": 1, "end": 41}]\nEnjoy.'
        assert recover_clip_objects(raw)[0]["title"] == "A"

    def test_clips_envelope_unwrapped(self):
        raw = '{"clips": [{"title": "A", "start": 0, "end": 40}]}'
        assert len(recover_clip_objects(raw)) == 1

    def test_non_object_entries_skipped(self):
        raw = '[1, "two", {"title": "A", "start": 0, "end": 40}]'
        assert recover_clip_objects(raw) == [{"title": "A", "start": 0, "end": 40}]

    @pytest.mark.parametrize(
        "raw",
        ["I could not find any highlights.", '{"foo": 1}', "[{broken", ""],
    )
    def test_unparsable_raises(self, raw):
        with pytest.raises(CandidatesUnparsable):
            recover_clip_objects(raw)

    def test_parse_candidates_returns_empty_when_unparsable(self):
        assert parse_candidates("no json here", SNAP_SEGMENTS, 600) == []


class TestSnapping:
    def test_both_ends_snap_within_tolerance(self):
        clips = select_candidates([_clip(start=12.4, end=58.9, score=90)], SNAP_SEGMENTS, 600)
        assert len(clips) == 1
        assert clips[0].start == 10.0
        assert clips[0].end == 60.0

    def test_no_snap_beyond_tolerance(self):
        clips = select_candidates([_clip(start=14.0, end=52.0)], SNAP_SEGMENTS, 600)
        # 14.0 is 4s after the segment start at 10.0; 52.0 is 5s before 57.0
        assert clips[0].start == 14.0
        assert clips[0].end == 52.0

    def test_string_times_are_coerced(self):
        clips = parse_candidates(
            '[{"title": "A", "start": "12.4", "end": "58.9"}]', SNAP_SEGMENTS, 600
        )
        assert (clips[0].start, clips[0].end) == (10.0, 60.0)


class TestValidation:
    def test_low_score_dropped_unscored_kept(self):
        clips = select_candidates(
            [
                _clip("Low", 0, 40, score=50),
                _clip("Unscored", 100, 140),
                _clip("High", 200, 240, score=65),
            ],
            [],
            video_duration_s=3600,
        )
        assert [c.title for c in clips] == ["Unscored", "High"]

    def test_duration_bounds_inclusive(self):
        clips = select_candidates(
            [
                _clip("Thirty", 0, 30),
                _clip("Ninety", 100, 190),
                _clip("Too long", 200, 291),
            ],
            [],
            video_duration_s=3600,
        )
        assert [c.title for c in clips] == ["Thirty", "Ninety"]

    def test_schema_failures_dropped(self):
        clips = select_candidates(
            [{"title": "No end", "start": 0}, _clip("Good", 0, 40)],
            [],
            video_duration_s=600,
        )
        assert [c.title for c in clips] == ["Good"]

    def test_fallback_to_structurally_valid(self):
        clips = select_candidates(
            [
                _clip("Short one", 0, 10),
                _clip("", 20, 30),
                _clip("Short two", 40, 45, score=20),
            ],
            [],
            video_duration_s=600,
        )
        assert [c.title for c in clips] == ["Short one", "Short two"]

    def test_defaults_for_category_and_tags(self):
        clips = select_candidates(
            [_clip(tags=[" funny ", "", "  "]), _clip(start=50, end=90, category="Tech")],
            [],
            video_duration_s=600,
            output_language="ar",
        )
        assert clips[0].category == "عام"
        assert clips[0].tags == ["funny"]
        assert clips[1].category == "Tech"


class TestDurationCap:
    @pytest.mark.parametrize(
        "minutes, cap",
        [(3, 2), (5, 2), (8, 3), (15, 5), (35, 7), (42, 10), (60, 10), (61, 12), (180, 12)],
    )
    def test_caps(self, minutes, cap):
        assert max_candidates_for_duration(minutes * 60) == cap

    def test_top_by_score_in_received_order(self):
        scores = [70, 95, 80, 66, 90, 75, 85, 99, 68]
        objects = [
            _clip("Clip {}".format(i), i * 100, i * 100 + 40, score=s)
            for i, s in enumerate(scores)
        ]

        clips = select_candidates(objects, [], video_duration_s=35 * 60)

        assert len(clips) == 7
        assert [c.score for c in clips] == [70, 95, 80, 90, 75, 85, 99]

    def test_cap_never_pads(self):
        clips = select_candidates([_clip(score=90)], [], video_duration_s=50 * 60)
        assert len(clips) == 1

    def test_duration_derived_from_segments(self):
        objects = [_clip("C{}".format(i), 0, 40) for i in range(5)]
        # Segments end at 60s -> 1-minute video -> cap 2
        assert len(select_candidates(objects, SNAP_SEGMENTS)) == 2
