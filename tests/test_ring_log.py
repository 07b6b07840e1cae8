"""Tests for the bounded debug logs."""

import threading

import pytest

from ring_log import MAX_CAPACITY, RingLog, capacity_from_env


class TestRingLog:

    def test_never_exceeds_capacity(self):
        log = RingLog(5)
        for i in range(23):
            log.append({"n": i})
            assert len(log) <= 5
        assert [e["n"] for e in log.recent()] == [22, 21, 20, 19, 18]

    def test_recent_limit(self):
        log = RingLog(10)
        for i in range(4):
            log.append({"n": i})
        assert [e["n"] for e in log.recent(2)] == [3, 2]
        assert log.recent(0) == []

    def test_append_stamps_time_without_mutating_input(self):
        log = RingLog(2)
        entry = {"n": 1}
        stored = log.append(entry)
        assert "ts" in stored
        assert "ts" not in entry
        assert log.append({"ts": "fixed"})["ts"] == "fixed"

    def test_clear(self):
        log = RingLog(3)
        log.append({})
        log.clear()
        assert len(log) == 0
        assert log.capacity == 3

    @pytest.mark.parametrize("capacity", [0, -1, 2.5, "10", True])
    def test_rejects_bad_capacity(self, capacity):
        with pytest.raises(ValueError):
            RingLog(capacity)

    def test_concurrent_appends_stay_bounded(self):
        log = RingLog(50)

        def writer():
            for i in range(200):
                log.append({"n": i})

        threads = [threading.Thread(target=writer) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(log) == 50


class TestCapacityFromEnv:

    @pytest.mark.parametrize("raw, expected", [
        (None, 200), ("", 200), ("75", 75), (" 12 ", 12), ("junk", 200),
        ("0", 1), ("-4", 1), ("999999", MAX_CAPACITY),
    ])
    def test_parse_and_clamp(self, raw, expected):
        assert capacity_from_env(raw, 200) == expected
