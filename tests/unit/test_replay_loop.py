"""
Replay loop behaviour against a synchronous fake channel.

Guarantees under test:
- Nothing is written until the trigger command arrives
- Once triggered, one recorded frame per tick, verbatim unless corrupted
- Corruption is decided per tick
- A read is always re-armed, after errors too
- Completions after stop are ignored
"""

import threading
import time
from typing import Any, Iterator

import pytest

import replay.loop as loop_mod
from constants import FRAME_SIZE_BYTES
from fake_serial import FakeChannel
from replay.enums.state import ReplayState
from replay.frame_store import FrameStore
from replay.loop import ReplayLoop
from replay.toggles import ReplayToggles


TICK_S = 0.005
RECORDING = bytes((i * 7) % 256 for i in range(FRAME_SIZE_BYTES * 2))


class Toggles:
    """Mutable holder handing out immutable snapshots."""

    def __init__(self, **kwargs: bool) -> None:
        self.current = ReplayToggles(**kwargs)

    def __call__(self) -> ReplayToggles:
        return self.current


@pytest.fixture(autouse=True)
def quiet_logs(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(loop_mod, "log_event", emitted.append)
    return emitted


def make_loop(channel: FakeChannel, toggles: Toggles | None = None) -> tuple[ReplayLoop, threading.Event]:
    stop = threading.Event()
    loop = ReplayLoop(
        channel=channel,  # type: ignore[arg-type]
        frames=FrameStore.from_bytes(RECORDING, name="test.bin"),
        stop_token=stop,
        toggles=toggles or Toggles(),
        tick_period_s=TICK_S,
    )
    return loop, stop


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def running(channel: FakeChannel) -> Iterator[tuple[ReplayLoop, threading.Event, Toggles]]:
    toggles = Toggles()
    loop, stop = make_loop(channel, toggles)
    worker = threading.Thread(target=loop.run)
    worker.start()
    assert channel.wait_for_pending_read()
    yield loop, stop, toggles
    stop.set()
    worker.join(timeout=2.0)


def expected_frames(count: int) -> list[bytes]:
    store = FrameStore.from_bytes(RECORDING)
    return [store.next_chunk(FRAME_SIZE_BYTES) for _ in range(count)]


# ---------------------------------------------------------------------
# Trigger gating
# ---------------------------------------------------------------------

def test_no_writes_before_trigger(running, channel: FakeChannel):
    loop, _, _ = running

    time.sleep(10 * TICK_S)

    assert channel.writes == []
    assert loop.state is ReplayState.AWAITING_TRIGGER
    assert loop.trigger_received is False


def test_non_trigger_payload_keeps_listening(running, channel: FakeChannel):
    loop, _, _ = running

    channel.deliver(b"$TSC,BIN,31\r\n")
    time.sleep(5 * TICK_S)

    assert loop.trigger_received is False
    assert channel.writes == []
    assert channel.pending_reads() == 1


def test_trigger_starts_replay_of_recorded_frames(running, channel: FakeChannel, quiet_logs):
    loop, _, _ = running

    channel.deliver(b"$TSC,BIN,30\r\n")

    assert channel.wait_for_writes(3)
    assert loop.state is ReplayState.REPLAYING
    assert loop.trigger_received is True
    assert channel.writes[:3] == expected_frames(3)
    assert channel.writes[0][:9] == RECORDING[:9]
    assert sum(e["event_type"] == "REPLAY_TRIGGERED" for e in quiet_logs) == 1


def test_trigger_is_permanent(running, channel: FakeChannel):
    loop, _, _ = running

    channel.deliver(b"$TSC,BIN,30\r\n")
    channel.deliver(b"something else")
    assert channel.wait_for_writes(2)

    assert loop.trigger_received is True


# ---------------------------------------------------------------------
# Corruption
# ---------------------------------------------------------------------

def test_corruption_off_emits_verbatim_frames(running, channel: FakeChannel):
    channel.deliver(b"$TSC,BIN,30")

    assert channel.wait_for_writes(4)
    assert channel.writes[:4] == expected_frames(4)


def test_corruption_on_changes_only_two_offsets(running, channel: FakeChannel):
    _, _, toggles = running
    toggles.current = ReplayToggles(corrupt_checksum=True)

    channel.deliver(b"$TSC,BIN,30")

    assert channel.wait_for_writes(2)
    for written, stored in zip(channel.writes[:2], expected_frames(2)):
        diff = [i for i, (a, b) in enumerate(zip(written, stored)) if a != b]
        assert set(diff) <= {FRAME_SIZE_BYTES - 4, FRAME_SIZE_BYTES - 3}
        assert written[FRAME_SIZE_BYTES - 4] == ord("?")
        assert written[FRAME_SIZE_BYTES - 3] == ord("?")


def test_corruption_is_sampled_per_tick(running, channel: FakeChannel):
    _, _, toggles = running
    toggles.current = ReplayToggles(corrupt_checksum=True)
    channel.deliver(b"$TSC,BIN,30")
    assert channel.wait_for_writes(1)

    toggles.current = ReplayToggles(corrupt_checksum=False)
    seen = len(channel.writes)
    assert channel.wait_for_writes(seen + 2)

    # Every frame after the switch is verbatim again
    frames = expected_frames(seen + 2)
    assert channel.writes[seen + 1] == frames[seen + 1]


# ---------------------------------------------------------------------
# Failure semantics
# ---------------------------------------------------------------------

def test_read_error_rearms_read(running, channel: FakeChannel, quiet_logs):
    loop, _, _ = running

    channel.deliver_error()

    assert channel.pending_reads() == 1
    assert loop.counters.read_errors == 1
    assert any(e["event_type"] == "SERIAL_READ_ERROR" for e in quiet_logs)


def test_write_error_is_dropped_and_next_tick_writes_again(running, channel: FakeChannel):
    loop, _, _ = running
    channel.fail_writes = True

    channel.deliver(b"$TSC,BIN,30")

    assert channel.wait_for_writes(4)
    assert loop.counters.write_errors >= 3
    assert loop.counters.frames_written == 0


def test_debug_output_dumps_reads_and_frames(channel: FakeChannel):
    dumped: list[tuple[str, bytes]] = []

    class RecordingSink:
        def dump_raw(self, direction, data):
            dumped.append((direction.value, data))

        def dump_frame(self, frame):
            dumped.append(("frame", frame))

    stop = threading.Event()
    loop = ReplayLoop(
        channel=channel,  # type: ignore[arg-type]
        frames=FrameStore.from_bytes(RECORDING),
        stop_token=stop,
        toggles=Toggles(debug_output=True),
        diagnostics=RecordingSink(),  # type: ignore[arg-type]
        tick_period_s=TICK_S,
    )
    worker = threading.Thread(target=loop.run)
    worker.start()
    try:
        assert channel.wait_for_pending_read()
        channel.deliver(b"$TSC,BIN,30\r\n")
        assert channel.wait_for_writes(1)
    finally:
        stop.set()
        worker.join(timeout=2.0)

    assert dumped[0] == (">", b"$TSC,BIN,30\r\n")
    assert ("frame", expected_frames(1)[0]) in dumped


# ---------------------------------------------------------------------
# Stop
# ---------------------------------------------------------------------

def test_stop_before_trigger_exits_without_writes(channel: FakeChannel):
    loop, stop = make_loop(channel)
    worker = threading.Thread(target=loop.run)
    worker.start()
    assert channel.wait_for_pending_read()

    stop.set()
    worker.join(timeout=10 * TICK_S + 1.0)

    assert not worker.is_alive()
    assert channel.writes == []
    assert loop.state is ReplayState.STOPPED


def test_completions_after_stop_are_ignored(channel: FakeChannel):
    loop, stop = make_loop(channel)
    worker = threading.Thread(target=loop.run)
    worker.start()
    assert channel.wait_for_pending_read()
    stop.set()
    worker.join(timeout=2.0)

    # A late completion neither triggers nor re-arms
    channel.deliver(b"$TSC,BIN,30")

    assert loop.trigger_received is False
    assert channel.pending_reads() == 0
    assert channel.read_calls == 1


def test_run_with_stop_already_set_issues_no_writes(channel: FakeChannel):
    loop, stop = make_loop(channel)
    stop.set()

    loop.run()

    assert channel.writes == []
    assert channel.read_calls == 0
    assert loop.state is ReplayState.STOPPED


def test_run_twice_is_rejected(channel: FakeChannel):
    loop, stop = make_loop(channel)
    stop.set()
    loop.run()

    with pytest.raises(RuntimeError):
        loop.run()


def test_snapshot_reports_counters(running, channel: FakeChannel):
    loop, _, _ = running
    channel.deliver(b"$TSC,BIN,30")
    assert channel.wait_for_writes(3)

    snap = loop.snapshot()

    assert snap["recording"] == "test.bin"
    assert snap["trigger_received"] is True
    assert snap["reads"] == 1
    assert snap["frames_sent"] >= 2
