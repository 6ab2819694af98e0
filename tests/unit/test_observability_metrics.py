# pylint: disable=missing-module-docstring,missing-function-docstring

from typing import Any

import pytest

import observability.metrics as metrics


@pytest.fixture
def emitted(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    events: list[dict[str, Any]] = []
    monkeypatch.setattr(metrics, "log_event", events.append)
    return events


def test_timed_emits_exactly_one_metric(emitted: list[dict[str, Any]]):
    with metrics.timed("supervisor_stop", device="COM_TEST"):
        pass

    assert len(emitted) == 1
    event = emitted[0]
    assert event["event_type"] == "METRIC_TIMER"
    assert event["metric"] == "supervisor_stop"
    assert event["device"] == "COM_TEST"
    assert event["value_ms"] >= 0


def test_timed_stops_timer_on_exception(emitted: list[dict[str, Any]]):
    with pytest.raises(RuntimeError):
        with metrics.timed("serial_open"):
            raise RuntimeError("boom")

    assert len(emitted) == 1


def test_stop_unknown_timer_returns_none(emitted: list[dict[str, Any]]):
    assert metrics.stop_timer("timer_missing") is None
    assert emitted == []


def test_stop_timer_twice_emits_once(emitted: list[dict[str, Any]]):
    timer_id = metrics.start_timer("x")

    assert metrics.stop_timer(timer_id) is not None
    assert metrics.stop_timer(timer_id) is None
    assert len(emitted) == 1
