"""Pure reorder logic for drag-and-drop between the To Do and Done columns."""

from collections.abc import Sequence
from typing import NamedTuple

from planboard.domain.task import Column, DragMove, Task


class ReorderResult(NamedTuple):
    """New column contents after a drag, plus the task whose status flipped."""

    pending: Sequence[Task]
    completed: Sequence[Task]
    changed_task: Task | None


def reorder(pending: Sequence[Task], completed: Sequence[Task], move: DragMove) -> ReorderResult:
    """Compute the column pair that results from a drag gesture.

    Inputs are never mutated. A cancelled drag, or a drop onto the card's own
    slot, returns the input sequences themselves.

    Args:
        pending: Current To Do column
        completed: Current Done column
        move: The finished drag gesture

    Returns:
        ReorderResult; changed_task is set only for a cross-column move and
        carries the updated is_done flag

    Raises:
        IndexError: If from_index is not a valid position in the source column
    """
    if move.cancelled or (move.to_column == move.from_column and move.to_index == move.from_index):
        return ReorderResult(pending, completed, None)

    columns = {Column.PENDING: list(pending), Column.COMPLETED: list(completed)}
    source = columns[move.from_column]
    if not 0 <= move.from_index < len(source):
        raise IndexError(f"No task at index {move.from_index} in {move.from_column} (size {len(source)})")

    task = source.pop(move.from_index)
    destination = columns[move.to_column]

    changed_task = None
    if move.to_column != move.from_column:
        task = task.model_copy(update={"is_done": move.to_column.is_done})
        changed_task = task

    # Clamp: dropping past the last card appends
    to_index = min(move.to_index, len(destination))
    destination.insert(to_index, task)

    return ReorderResult(columns[Column.PENDING], columns[Column.COMPLETED], changed_task)
