import itertools

import pytest

from day_tracker.interruptions import InterruptionTracker
from day_tracker.models import Interruption
from day_tracker.storage import INTERRUPTIONS_KEY


def make_tracker(store, wall, mono):
    counter = itertools.count(1)
    return InterruptionTracker(store, wall_clock=wall, monotonic=mono, id_factory=lambda: f"i{next(counter)}")


def test_start_and_end_records_duration(qtbot, store, wall, mono):
    tracker = make_tracker(store, wall, mono)
    with qtbot.waitSignal(tracker.started) as started:
        tracker.start_interruption("t1")
    assert started.args == ["i1"]
    assert tracker.is_interrupted

    mono.advance(95_500)
    wall.advance(95_500)
    with qtbot.waitSignal(tracker.ended) as ended:
        done = tracker.end_interruption()
    assert ended.args == ["i1", 95]
    assert done.duration_sec == 95
    assert done.ended_at_wall_clock == wall.now
    assert not tracker.is_interrupted
    assert tracker.elapsed_ms == 0


def test_active_interruption_persisted_on_start(qtbot, store, wall, mono):
    tracker = make_tracker(store, wall, mono)
    tracker.start_interruption("t1")
    saved = store.load(INTERRUPTIONS_KEY)["interruptions"]
    assert len(saved) == 1
    assert saved[0]["started_at_wall_clock"] == wall.now
    assert saved[0]["ended_at_wall_clock"] is None
    tracker.reset()


def test_double_start_and_end_without_start_raise(qtbot, store, wall, mono):
    tracker = make_tracker(store, wall, mono)
    with pytest.raises(RuntimeError):
        tracker.end_interruption()
    tracker.start_interruption("t1")
    with pytest.raises(RuntimeError):
        tracker.start_interruption("t1")
    tracker.reset()


def test_auto_end(qtbot, store, wall, mono):
    tracker = make_tracker(store, wall, mono)
    assert tracker.auto_end_interruption() is None
    tracker.start_interruption("t1")
    mono.advance(3_000)
    assert tracker.auto_end_interruption().duration_sec == 3


def test_update_category_and_note(qtbot, store, wall, mono):
    tracker = make_tracker(store, wall, mono)
    tracker.start_interruption("t1")
    tracker.end_interruption()

    updated = tracker.update_interruption("i1", category="Phone", note="call from school")
    assert (updated.category, updated.note) == ("Phone", "call from school")
    # omitted fields stay untouched
    tracker.update_interruption("i1", note=None)
    assert tracker.interruptions()[0].category == "Phone"
    assert tracker.interruptions()[0].note is None

    with pytest.raises(ValueError):
        tracker.update_interruption("i1", category="Lunch")
    with pytest.raises(ValueError):
        tracker.update_interruption("i1", note="x" * 201)
    with pytest.raises(KeyError):
        tracker.update_interruption("missing", category="Other")


def test_task_summary_counts_completed_only(qtbot, store, wall, mono):
    tracker = make_tracker(store, wall, mono)
    for seconds in (60, 30):
        tracker.start_interruption("t1")
        mono.advance(seconds * 1000)
        tracker.end_interruption()
    tracker.start_interruption("t2")
    mono.advance(10_000)
    tracker.end_interruption()
    tracker.start_interruption("t1")

    summary = tracker.task_summary("t1")
    assert summary.count == 2
    assert summary.total_duration_sec == 90
    assert tracker.task_summary("t2").count == 1
    tracker.reset()


def test_load_recovers_open_interruption(qtbot, store, wall, mono):
    first = make_tracker(store, wall, mono)
    first.start_interruption("t1")
    mono.advance(1_000)
    first.end_interruption()
    first.start_interruption("t1")

    wall.advance(120_000)  # process was gone for two minutes
    second = make_tracker(store, wall, mono)
    result = second.load()
    assert result.success is True
    assert result.recovered_elapsed_ms == 120_000
    assert second.is_interrupted
    assert second.elapsed_ms == 120_000
    assert len(second.interruptions()) == 1
    second.reset()


def test_restore_drops_interruption_from_the_future(qtbot, store, wall, mono):
    tracker = make_tracker(store, wall, mono)
    bogus = Interruption(interruption_id="x", task_id="t1", started_at_wall_clock=wall.now + 60_000)
    result = tracker.restore([bogus])
    assert result.is_valid is False
    assert not tracker.is_interrupted
    assert store.load(INTERRUPTIONS_KEY) == {"interruptions": []}


def test_load_skips_corrupt_entries(qtbot, store, wall, mono):
    store.save(INTERRUPTIONS_KEY, {"interruptions": [{"task_id": "t1"}, "junk"]})
    tracker = make_tracker(store, wall, mono)
    assert tracker.load() is None
    assert tracker.interruptions() == []


def test_reset_clears_store(qtbot, store, wall, mono):
    tracker = make_tracker(store, wall, mono)
    tracker.start_interruption("t1")
    tracker.reset()
    assert not tracker.is_interrupted
    assert store.load(INTERRUPTIONS_KEY) is None
