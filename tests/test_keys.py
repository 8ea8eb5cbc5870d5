"""Tests for the API key rotation pool.

WHY: Key exhaustion is driven by real failures and recovered purely by
time, so the only reliable way to test it is with a controllable clock.

HOW: A FakeClock stands in for time.time; tests advance it explicitly.
"""

import pytest

from reel_timeline.api.keys import AllKeysExhausted, KeyPool, NoKeysConfigured, mask_key
from reel_timeline.config import load_api_keys

KEYS = ["key-aaaa-0000-first", "key-bbbb-1111-second", "key-cccc-2222-third"]


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def pool(clock):
    return KeyPool(KEYS, cooldown_s=3600, clock=clock)


class TestRotation:
    def test_first_available_wins(self, pool):
        assert pool.get_available_key() == KEYS[0]
        assert pool.get_available_key() == KEYS[0]

    def test_exhausted_key_is_skipped(self, pool):
        pool.mark_key_exhausted(KEYS[0])
        assert pool.get_available_key() == KEYS[1]

    def test_key_recovers_after_cooldown(self, pool, clock):
        assert pool.get_available_key() == KEYS[0]
        pool.mark_key_exhausted(KEYS[0])
        assert pool.get_available_key() == KEYS[1]

        clock.advance(61 * 60)

        assert pool.get_available_key() == KEYS[0]
        assert pool.entries()[0].exhausted_at is None

    def test_key_still_out_inside_cooldown(self, pool, clock):
        pool.mark_key_exhausted(KEYS[0])
        clock.advance(59 * 60)
        assert pool.get_available_key() == KEYS[1]

    def test_unknown_key_is_ignored(self, pool):
        pool.mark_key_exhausted("not-a-configured-key")
        assert all(e.exhausted_at is None for e in pool.entries())

    def test_reset_all_keys(self, pool):
        for key in KEYS:
            pool.mark_key_exhausted(key)
        pool.reset_all_keys()
        assert pool.get_available_key() == KEYS[0]


class TestExhaustion:
    def test_all_exhausted_raises_with_diagnostics(self, pool, clock):
        for key in KEYS:
            pool.mark_key_exhausted(key)
        clock.advance(12)

        with pytest.raises(AllKeysExhausted) as excinfo:
            pool.get_available_key()

        diagnostics = excinfo.value.diagnostics
        assert len(diagnostics) == 3
        assert diagnostics[0] == "key-…irst: exhausted 12s ago"
        # Raw keys never appear in the message
        assert KEYS[1] not in str(excinfo.value)

    def test_empty_pool_rejected(self):
        with pytest.raises(NoKeysConfigured):
            KeyPool([])


class TestMaskKey:
    def test_long_key(self):
        assert mask_key("abcd1234wxyz") == "abcd…wxyz"

    def test_short_key(self):
        assert mask_key("short") == "****"


class TestLoadApiKeys:
    def test_comma_list_wins_and_dedupes(self, monkeypatch):
        monkeypatch.setenv("ELEVENLABS_API_KEYS", " k1, k2 ,,k1,k3 ")
        monkeypatch.setenv("ELEVENLABS_API_KEY", "single")
        assert load_api_keys() == ["k1", "k2", "k3"]

    def test_single_key_fallback(self, monkeypatch):
        monkeypatch.delenv("ELEVENLABS_API_KEYS", raising=False)
        monkeypatch.setenv("ELEVENLABS_API_KEY", "single")
        assert load_api_keys() == ["single"]

    def test_nothing_configured(self, monkeypatch):
        monkeypatch.delenv("ELEVENLABS_API_KEYS", raising=False)
        monkeypatch.delenv("ELEVENLABS_API_KEY", raising=False)
        assert load_api_keys() == []
