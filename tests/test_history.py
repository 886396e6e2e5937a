"""Tests for :class:`inkflow.editor.history.UndoRedoManager`."""

from __future__ import annotations

import asyncio

import pytest

from inkflow.editor.history import HistoryEntry, ReplayState, UndoRedoManager
from inkflow.editor.scheduling import AsyncioScheduler
from tests.helpers import FlakyScheduler, ManualScheduler


def _entry(content: str, title: str = "Doc") -> HistoryEntry:
    return HistoryEntry(title=title, content=content)


@pytest.fixture
def manager(scheduler: ManualScheduler) -> UndoRedoManager:
    return UndoRedoManager(_entry(""), scheduler=scheduler)


def _commit(manager: UndoRedoManager, scheduler: ManualScheduler, content: str) -> None:
    manager.push_state(_entry(content))
    scheduler.advance(0.3)


class TestDebounce:
    def test_burst_of_pushes_records_only_the_last(self, manager: UndoRedoManager, scheduler: ManualScheduler) -> None:
        for text in ("h", "he", "hel", "hell", "hello"):
            manager.push_state(_entry(text))
            scheduler.advance(0.1)

        assert manager.history_size == 1
        scheduler.advance(0.3)

        assert manager.history_size == 2
        assert manager.current_state == _entry("hello")
        assert manager.current_index == 1

    def test_push_is_not_recorded_before_window_elapses(
        self, manager: UndoRedoManager, scheduler: ManualScheduler
    ) -> None:
        manager.push_state(_entry("a"))
        scheduler.advance(0.299)

        assert manager.history_size == 1
        assert manager.has_pending_push

    def test_single_pending_timer(self, manager: UndoRedoManager, scheduler: ManualScheduler) -> None:
        manager.push_state(_entry("a"))
        manager.push_state(_entry("ab"))
        manager.push_state(_entry("abc"))

        assert scheduler.pending == 1

    def test_duplicate_of_current_state_is_not_recorded(
        self, manager: UndoRedoManager, scheduler: ManualScheduler
    ) -> None:
        _commit(manager, scheduler, "same")
        _commit(manager, scheduler, "same")

        assert manager.history_size == 2

    def test_title_change_is_a_new_entry(self, manager: UndoRedoManager, scheduler: ManualScheduler) -> None:
        manager.push_state(_entry("", title="Renamed"))
        scheduler.advance(0.3)

        assert manager.history_size == 2
        assert manager.current_state.title == "Renamed"

    def test_flush_records_pending_push(self, manager: UndoRedoManager, scheduler: ManualScheduler) -> None:
        manager.push_state(_entry("typed"))

        assert manager.flush() is True
        assert manager.current_state == _entry("typed")
        assert scheduler.pending == 0
        assert manager.flush() is False


class TestUndoRedo:
    def test_boundaries_return_none(self, manager: UndoRedoManager) -> None:
        assert manager.undo() is None
        assert manager.redo() is None
        assert manager.replay_state is ReplayState.IDLE

    def test_round_trip(self, manager: UndoRedoManager, scheduler: ManualScheduler) -> None:
        _commit(manager, scheduler, "one")
        _commit(manager, scheduler, "two")

        assert manager.undo() == _entry("one")
        assert manager.undo() == _entry("")
        assert not manager.can_undo
        scheduler.advance(0.1)
        assert manager.redo() == _entry("one")
        assert manager.redo() == _entry("two")
        assert not manager.can_redo
        assert manager.history_size == 3

    def test_undo_flushes_pending_edit(self, manager: UndoRedoManager, scheduler: ManualScheduler) -> None:
        _commit(manager, scheduler, "one")
        manager.push_state(_entry("one two"))

        assert manager.undo() == _entry("one")
        assert manager.history_size == 3
        assert manager.can_redo

    def test_undo_at_oldest_entry_still_steps_back_over_pending_edit(self, manager: UndoRedoManager) -> None:
        manager.push_state(_entry("typed"))

        assert manager.current_index == 0
        assert manager.undo() == _entry("")
        assert manager.entries == (_entry(""), _entry("typed"))
        assert manager.can_redo

    def test_new_edit_after_undo_discards_redo_branch(
        self, manager: UndoRedoManager, scheduler: ManualScheduler
    ) -> None:
        for text in ("a", "b", "c"):
            _commit(manager, scheduler, text)
        manager.undo()
        manager.undo()
        scheduler.advance(0.1)

        _commit(manager, scheduler, "x")

        assert [entry.content for entry in manager.entries] == ["", "a", "x"]
        assert not manager.can_redo
        assert manager.current_index == 2


class TestReplayGuard:
    def test_pushes_ignored_while_replaying(self, manager: UndoRedoManager, scheduler: ManualScheduler) -> None:
        _commit(manager, scheduler, "one")
        manager.undo()

        assert manager.is_applying_history
        manager.push_state(_entry("echo from the editor"))
        scheduler.advance(0.05)

        assert not manager.has_pending_push
        assert manager.history_size == 2

    def test_replaying_clears_after_settle(self, manager: UndoRedoManager, scheduler: ManualScheduler) -> None:
        _commit(manager, scheduler, "one")
        manager.undo()
        scheduler.advance(0.099)
        assert manager.replay_state is ReplayState.REPLAYING

        scheduler.advance(0.002)

        assert manager.replay_state is ReplayState.IDLE

    def test_late_echo_of_replayed_entry_is_discarded_once(
        self, manager: UndoRedoManager, scheduler: ManualScheduler
    ) -> None:
        _commit(manager, scheduler, "one")
        _commit(manager, scheduler, "two")
        manager.undo()
        scheduler.advance(0.1)

        manager.push_state(_entry("one"))
        assert not manager.has_pending_push
        assert manager.can_redo

        manager.push_state(_entry("one!"))
        assert manager.has_pending_push

    def test_non_matching_push_forgets_replayed_entry(
        self, manager: UndoRedoManager, scheduler: ManualScheduler
    ) -> None:
        _commit(manager, scheduler, "one")
        _commit(manager, scheduler, "two")
        manager.undo()
        scheduler.advance(0.1)

        manager.push_state(_entry("one and more"))
        manager.push_state(_entry("one"))

        assert manager.has_pending_push
        scheduler.advance(0.3)
        assert manager.current_state == _entry("one")
        assert manager.history_size == 3

    def test_consecutive_undos_keep_single_settle_timer(
        self, manager: UndoRedoManager, scheduler: ManualScheduler
    ) -> None:
        _commit(manager, scheduler, "one")
        _commit(manager, scheduler, "two")
        manager.undo()
        scheduler.advance(0.06)
        manager.undo()
        scheduler.advance(0.06)

        assert manager.is_applying_history
        scheduler.advance(0.05)
        assert not manager.is_applying_history


class TestCapacity:
    def test_oldest_entries_evicted(self, scheduler: ManualScheduler, telemetry_events) -> None:
        manager = UndoRedoManager(_entry("0"), scheduler=scheduler)
        for number in range(1, 60):
            _commit(manager, scheduler, str(number))

        assert manager.history_size == 50
        assert manager.current_index == 49
        assert manager.entries[0].content == "10"
        assert manager.current_state.content == "59"
        assert telemetry_events.named("history.evicted")

    def test_custom_limit(self, scheduler: ManualScheduler) -> None:
        manager = UndoRedoManager(_entry("0"), scheduler=scheduler, max_history_size=3)
        for number in range(1, 6):
            _commit(manager, scheduler, str(number))

        assert [entry.content for entry in manager.entries] == ["3", "4", "5"]
        assert manager.current_index == 2


class TestLifecycle:
    def test_clear_history_keeps_current(self, manager: UndoRedoManager, scheduler: ManualScheduler) -> None:
        _commit(manager, scheduler, "one")
        _commit(manager, scheduler, "two")
        manager.undo()

        manager.clear_history()

        assert manager.entries == (_entry("one"),)
        assert manager.current_index == 0
        assert not manager.can_undo
        assert not manager.can_redo

    def test_close_cancels_timers(self, manager: UndoRedoManager, scheduler: ManualScheduler) -> None:
        _commit(manager, scheduler, "one")
        manager.undo()
        manager.push_state(_entry("ignored"))

        manager.close()

        assert scheduler.pending == 0
        assert manager.replay_state is ReplayState.IDLE
        assert not manager.has_pending_push

    def test_listener_notified_on_changes(self, scheduler: ManualScheduler) -> None:
        seen: list[tuple[int, int]] = []
        manager = UndoRedoManager(
            _entry(""),
            scheduler=scheduler,
            listener=lambda m: seen.append((m.current_index, m.history_size)),
        )

        _commit(manager, scheduler, "a")
        manager.undo()

        assert seen == [(1, 2), (0, 2)]

    def test_telemetry_for_recording(self, manager: UndoRedoManager, scheduler: ManualScheduler, telemetry_events) -> None:
        _commit(manager, scheduler, "a")
        manager.undo()

        recorded = telemetry_events.named("history.recorded")
        assert recorded[0]["index"] == 1
        assert telemetry_events.named("history.replay")[0]["direction"] == "undo"


class TestSchedulingFailure:
    @pytest.fixture
    def flaky(self) -> FlakyScheduler:
        return FlakyScheduler()

    def test_failed_undo_leaves_manager_idle(self, flaky: FlakyScheduler) -> None:
        manager = UndoRedoManager(_entry(""), scheduler=flaky)
        _commit(manager, flaky, "one")
        flaky.failing = True

        with pytest.raises(RuntimeError):
            manager.undo()

        assert manager.replay_state is ReplayState.IDLE
        assert manager.current_index == 1
        flaky.failing = False
        _commit(manager, flaky, "one two")
        assert manager.current_state == _entry("one two")

    def test_failed_push_keeps_earlier_pending_entry(self, flaky: FlakyScheduler) -> None:
        manager = UndoRedoManager(_entry(""), scheduler=flaky)
        manager.push_state(_entry("a"))
        flaky.failing = True

        with pytest.raises(RuntimeError):
            manager.push_state(_entry("ab"))

        flaky.failing = False
        flaky.advance(0.3)
        assert manager.current_state == _entry("a")

    def test_asyncio_scheduler_requires_a_loop_at_construction(self) -> None:
        with pytest.raises(RuntimeError):
            AsyncioScheduler()

    @pytest.mark.asyncio
    async def test_asyncio_scheduler_binds_running_loop(self) -> None:
        scheduler = AsyncioScheduler()

        assert scheduler.loop is asyncio.get_running_loop()
