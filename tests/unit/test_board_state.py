"""Tests for BoardState loading, task lifecycle and optimistic moves."""

import asyncio

import pytest

from planboard.core.errors import ErrorCode
from planboard.domain.create_models import TaskCreate
from planboard.domain.task import Column, DragMove
from planboard.services.board_state import BoardState, MoveStatus
from planboard.services.task_store import TaskStore


async def seed(task_store, assignee_id, *titles, is_done=False):
    """Create tasks oldest first and return them in creation order."""
    created = []
    for title in titles:
        data = TaskCreate(
            assignee_id=assignee_id,
            title=title,
            date="2025-06-01",
            location="London, United Kingdom",
            weather_summary="Overcast • 18.4°C",
            is_done=is_done,
        )
        created.append(await task_store.create(data))
    return created


def titles(tasks):
    return [task.title for task in tasks]


class GatedTaskStore(TaskStore):
    """TaskStore whose listing waits until the test opens the gate."""

    def __init__(self, db):
        super().__init__(db)
        self.gate = asyncio.Event()

    async def list_for_assignees(self, assignee_ids):
        await self.gate.wait()
        return await super().list_for_assignees(assignee_ids)


class GatedWeather:
    """Weather stand-in that holds each lookup until released."""

    def __init__(self):
        self.release = asyncio.Event()

    async def resolve_weather(self, location, date):
        await self.release.wait()
        return "Clear sky • 21°C"


@pytest.mark.unit
class TestLoad:
    async def test_partitions_by_done_flag_newest_first(self, board, task_store, alice):
        await seed(task_store, alice.id, "Buy milk", "Walk dog")
        await seed(task_store, alice.id, "File taxes", is_done=True)

        result = await board.load([alice.id])

        assert result.success is True
        assert titles(board.pending) == ["Walk dog", "Buy milk"]
        assert titles(board.completed) == ["File taxes"]
        assert board.profile_ids == (alice.id,)

    async def test_only_selected_profiles(self, board, task_store, alice, bob):
        await seed(task_store, alice.id, "Alice task")
        await seed(task_store, bob.id, "Bob task")

        await board.load([bob.id])

        assert titles(board.pending) == ["Bob task"]

    async def test_multiple_profiles_interleave_by_creation(self, board, task_store, alice, bob):
        await seed(task_store, alice.id, "A1")
        await seed(task_store, bob.id, "B1")
        await seed(task_store, alice.id, "A2")

        await board.load([alice.id, bob.id])

        assert titles(board.pending) == ["A2", "B1", "A1"]

    async def test_empty_selection_clears_without_query(self, board, task_store, failing_db, alice):
        await seed(task_store, alice.id, "Buy milk")
        await board.load([alice.id])
        failing_db.calls.clear()

        result = await board.load([])

        assert result.success is True
        assert board.pending == []
        assert board.completed == []
        assert "list_records" not in failing_db.calls

    async def test_failure_keeps_previous_lists(self, board, task_store, failing_db, alice):
        await seed(task_store, alice.id, "Buy milk")
        await board.load([alice.id])
        failing_db.fail_on.add("list_records")

        result = await board.load([alice.id])

        assert result.success is False
        assert result.error.code == ErrorCode.ERR_PERSISTENCE_FAILED
        assert titles(board.pending) == ["Buy milk"]

    async def test_stale_load_discarded_after_clear(self, failing_db, stub_weather, alice):
        store = GatedTaskStore(failing_db)
        await seed(store, alice.id, "Buy milk")
        board = BoardState(tasks=store, weather=stub_weather)

        loading = asyncio.create_task(board.load([alice.id]))
        await asyncio.sleep(0)
        board.clear()
        store.gate.set()
        result = await loading

        assert result.success is False
        assert result.error is None
        assert board.pending == []

    async def test_stale_load_discarded_after_newer_load(self, failing_db, stub_weather, alice, bob):
        store = GatedTaskStore(failing_db)
        await seed(store, alice.id, "Alice task")
        await seed(store, bob.id, "Bob task")
        board = BoardState(tasks=store, weather=stub_weather)

        first = asyncio.create_task(board.load([alice.id]))
        await asyncio.sleep(0)
        second = asyncio.create_task(board.load([bob.id]))
        await asyncio.sleep(0)
        store.gate.set()
        await asyncio.gather(first, second)

        assert titles(board.pending) == ["Bob task"]


@pytest.mark.unit
class TestAdd:
    async def test_prepends_with_weather(self, board, task_store, stub_weather, alice, sample_task_data):
        await seed(task_store, alice.id, "Existing")
        await board.load([alice.id])

        result = await board.add(**sample_task_data, assignee_id=alice.id)

        assert result.success is True
        assert titles(board.pending) == ["Picnic in the park", "Existing"]
        assert board.pending[0].weather_summary == "Overcast • 18.4°C"
        assert board.pending[0].is_done is False
        assert stub_weather.calls == [("London, United Kingdom", "2025-06-01")]
        assert board.is_adding is False

    async def test_title_is_stored_trimmed(self, board, alice, sample_task_data):
        await board.load([alice.id])

        result = await board.add(**{**sample_task_data, "title": "  Picnic  "}, assignee_id=alice.id)

        assert result.task.title == "Picnic"

    @pytest.mark.parametrize("blank_field", ["title", "date", "location"])
    async def test_blank_field_is_refused(self, board, failing_db, stub_weather, alice, sample_task_data, blank_field):
        failing_db.calls.clear()

        result = await board.add(**{**sample_task_data, blank_field: "   "}, assignee_id=alice.id)

        assert result.success is False
        assert result.error is None
        assert stub_weather.calls == []
        assert failing_db.calls == []

    async def test_missing_assignee_is_refused(self, board, stub_weather, sample_task_data):
        result = await board.add(**sample_task_data, assignee_id="")

        assert result.success is False
        assert stub_weather.calls == []

    async def test_malformed_date_is_refused(self, board, stub_weather, alice, sample_task_data):
        result = await board.add(**{**sample_task_data, "date": "June 1st"}, assignee_id=alice.id)

        assert result.success is False
        assert result.error is None
        assert stub_weather.calls == []

    async def test_store_failure_leaves_board_unchanged(self, board, failing_db, alice, sample_task_data):
        await board.load([alice.id])
        failing_db.fail_on.add("create_record")

        result = await board.add(**sample_task_data, assignee_id=alice.id)

        assert result.success is False
        assert result.error.code == ErrorCode.ERR_PERSISTENCE_FAILED
        assert board.pending == []
        assert board.is_adding is False

    async def test_second_add_while_busy(self, failing_db, task_store, alice, sample_task_data):
        weather = GatedWeather()
        board = BoardState(tasks=task_store, weather=weather)
        await board.load([alice.id])

        first = asyncio.create_task(board.add(**sample_task_data, assignee_id=alice.id))
        await asyncio.sleep(0)
        assert board.is_adding is True

        second = await board.add(**sample_task_data, assignee_id=alice.id)
        weather.release.set()
        first_result = await first

        assert second.success is False
        assert second.error.code == ErrorCode.ERR_BUSY
        assert first_result.success is True
        assert len(board.pending) == 1

    async def test_task_for_unloaded_profile_stays_off_board(self, board, task_store, alice, bob, sample_task_data):
        await board.load([alice.id])

        result = await board.add(**sample_task_data, assignee_id=bob.id)

        assert result.success is True
        assert board.pending == []
        assert titles(await task_store.list_for_assignees([bob.id])) == ["Picnic in the park"]

    async def test_load_during_add_does_not_duplicate(self, board, failing_db, alice, sample_task_data):
        await board.load([alice.id])
        failing_db.create_hold = asyncio.Event()

        adding = asyncio.create_task(board.add(**sample_task_data, assignee_id=alice.id))
        await asyncio.sleep(0)
        assert board.is_adding is True

        # The insert is already committed, so this load sees it
        await board.load([alice.id])
        assert titles(board.pending) == ["Picnic in the park"]

        failing_db.create_hold.set()
        result = await adding

        assert result.success is True
        assert [task.id for task in board.pending] == [result.task.id]


@pytest.mark.unit
class TestRemoveAndEdit:
    async def test_remove(self, board, task_store, alice):
        keep, drop = await seed(task_store, alice.id, "Keep", "Drop")
        await board.load([alice.id])

        result = await board.remove(drop.id, False)

        assert result.success is True
        assert titles(board.pending) == ["Keep"]
        assert titles(await task_store.list_for_assignees([alice.id])) == ["Keep"]

    async def test_remove_failure_keeps_card(self, board, task_store, failing_db, alice):
        (task,) = await seed(task_store, alice.id, "Keep")
        await board.load([alice.id])
        failing_db.fail_on.add("delete_record")

        result = await board.remove(task.id, False)

        assert result.success is False
        assert result.error is not None
        assert titles(board.pending) == ["Keep"]

    async def test_edit_title_keeps_weather(self, board, task_store, alice):
        (task,) = await seed(task_store, alice.id, "Old title", is_done=True)
        await board.load([alice.id])

        result = await board.edit_title(task.id, True, "  New title ")

        assert result.success is True
        assert board.completed[0].title == "New title"
        assert board.completed[0].weather_summary == "Overcast • 18.4°C"
        (stored,) = await task_store.list_for_assignees([alice.id])
        assert stored.title == "New title"

    async def test_blank_title_is_noop(self, board, task_store, failing_db, alice):
        (task,) = await seed(task_store, alice.id, "Old title")
        await board.load([alice.id])
        failing_db.calls.clear()

        result = await board.edit_title(task.id, False, "   ")

        assert result.success is False
        assert result.error is None
        assert failing_db.calls == []
        assert board.pending[0].title == "Old title"

    async def test_edit_failure_keeps_title(self, board, task_store, failing_db, alice):
        (task,) = await seed(task_store, alice.id, "Old title")
        await board.load([alice.id])
        failing_db.fail_on.add("update_record")

        result = await board.edit_title(task.id, False, "New title")

        assert result.success is False
        assert board.pending[0].title == "Old title"


@pytest.mark.unit
class TestApplyMove:
    async def test_reorder_within_column_is_local(self, board, task_store, failing_db, alice):
        await seed(task_store, alice.id, "First", "Second")
        await board.load([alice.id])
        failing_db.calls.clear()

        pending_move = board.apply_move(
            DragMove(from_column=Column.PENDING, from_index=0, to_column=Column.PENDING, to_index=1)
        )

        assert pending_move is None
        assert titles(board.pending) == ["First", "Second"]
        assert failing_db.calls == []

    async def test_cross_column_move_is_confirmed(self, board, task_store, alice):
        first, second = await seed(task_store, alice.id, "First", "Second")
        await board.load([alice.id])

        pending_move = board.apply_move(
            DragMove(from_column=Column.PENDING, from_index=0, to_column=Column.COMPLETED, to_index=0)
        )

        assert pending_move.status is MoveStatus.APPLIED
        assert titles(board.completed) == ["Second"]
        assert board.completed[0].is_done is True

        await board.drain()

        assert pending_move.status is MoveStatus.CONFIRMED
        stored = {task.id: task.is_done for task in await task_store.list_for_assignees([alice.id])}
        assert stored == {first.id: False, second.id: True}

    async def test_rejected_move_is_reverted(self, board, task_store, failing_db, alice):
        await seed(task_store, alice.id, "First", "Second", "Third")
        await board.load([alice.id])
        failing_db.fail_on.add("update_record")

        pending_move = board.apply_move(
            DragMove(from_column=Column.PENDING, from_index=1, to_column=Column.COMPLETED, to_index=0)
        )
        assert titles(board.pending) == ["Third", "First"]

        await board.drain()

        assert pending_move.status is MoveStatus.REVERTED
        assert pending_move.error is not None
        assert titles(board.pending) == ["Third", "Second", "First"]
        assert board.completed == []
        assert not any(task.is_done for task in board.pending)

    async def test_revert_skipped_when_task_removed(self, board, task_store, failing_db, alice):
        (task,) = await seed(task_store, alice.id, "Only")
        await board.load([alice.id])
        failing_db.fail_on.add("update_record")

        pending_move = board.apply_move(
            DragMove(from_column=Column.PENDING, from_index=0, to_column=Column.COMPLETED, to_index=0)
        )
        await board.remove(task.id, True)
        await board.drain()

        assert pending_move.status is MoveStatus.FAILED
        assert board.pending == []
        assert board.completed == []

    async def test_revert_skipped_after_board_cleared(self, board, task_store, failing_db, alice):
        await seed(task_store, alice.id, "Only")
        await board.load([alice.id])
        failing_db.fail_on.add("update_record")

        pending_move = board.apply_move(
            DragMove(from_column=Column.PENDING, from_index=0, to_column=Column.COMPLETED, to_index=0)
        )
        board.clear()
        await board.drain()

        assert pending_move.status is MoveStatus.FAILED
        assert board.pending == []

    async def test_failed_move_superseded_by_second_move(self, board, task_store, failing_db, alice, caplog):
        first, second, third = await seed(task_store, alice.id, "First", "Second", "Third")
        await board.load([alice.id])
        failing_db.fail_once.add("update_record")

        to_done = board.apply_move(
            DragMove(from_column=Column.PENDING, from_index=1, to_column=Column.COMPLETED, to_index=0)
        )
        back_to_top = board.apply_move(
            DragMove(from_column=Column.COMPLETED, from_index=0, to_column=Column.PENDING, to_index=0)
        )
        await board.drain()

        assert to_done.status is MoveStatus.FAILED
        assert back_to_top.status is MoveStatus.CONFIRMED
        assert "moved again" in caplog.text
        assert titles(board.pending) == ["Second", "Third", "First"]
        assert board.completed == []
        stored = {task.id: task.is_done for task in await task_store.list_for_assignees([alice.id])}
        assert stored == {first.id: False, second.id: False, third.id: False}

    async def test_back_and_forth_moves_persist_in_order(self, board, task_store, failing_db, alice):
        (task,) = await seed(task_store, alice.id, "Only")
        await board.load([alice.id])
        # The first write is slower than the second
        failing_db.update_delays = [0.05, 0]

        to_done = board.apply_move(
            DragMove(from_column=Column.PENDING, from_index=0, to_column=Column.COMPLETED, to_index=0)
        )
        back = board.apply_move(
            DragMove(from_column=Column.COMPLETED, from_index=0, to_column=Column.PENDING, to_index=0)
        )
        await board.drain()

        assert to_done.status is MoveStatus.CONFIRMED
        assert back.status is MoveStatus.CONFIRMED
        assert titles(board.pending) == ["Only"]
        assert board.pending[0].is_done is False
        (stored,) = await task_store.list_for_assignees([alice.id])
        assert stored.id == task.id
        assert stored.is_done is False

    async def test_cancelled_drag(self, board, task_store, alice):
        await seed(task_store, alice.id, "Only")
        await board.load([alice.id])

        assert board.apply_move(DragMove(from_column=Column.PENDING, from_index=0)) is None
        assert titles(board.pending) == ["Only"]
        assert board.has_outstanding_moves is False

    async def test_invalid_source_index_raises(self, board):
        with pytest.raises(IndexError):
            board.apply_move(DragMove(from_column=Column.PENDING, from_index=0, to_column=Column.COMPLETED, to_index=0))
