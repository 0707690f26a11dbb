"""Task domain models and enums."""

from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


class Column(StrEnum):
    """Board column a task sits in, derived from its done flag."""

    PENDING = "pending"
    COMPLETED = "completed"

    @property
    def is_done(self) -> bool:
        return self is Column.COMPLETED

    @classmethod
    def for_task(cls, is_done: bool) -> "Column":
        return cls.COMPLETED if is_done else cls.PENDING


class Task(BaseModel):
    """Task data transfer object."""

    id: str = Field(..., description="Unique task ID from the store")
    assignee_id: str = Field(..., description="Profile the task belongs to")
    title: str = Field(..., description="What needs to be done")
    date: str = Field(..., description="Planned calendar date (YYYY-MM-DD)")
    location: str = Field(..., description="Free-text place name")
    weather_summary: str = Field(default="", description="Weather text computed once at creation")
    is_done: bool = Field(default=False, description="True when the task sits in the Done column")
    created: str = Field(default="", description="Creation timestamp (ISO format)")

    @field_validator("id", "assignee_id", mode="before")
    @classmethod
    def coerce_id(cls, v: object) -> object:
        """Accept integer ids from local backends."""
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v

    @property
    def column(self) -> Column:
        return Column.for_task(self.is_done)


class DragMove(BaseModel):
    """A finished drag gesture.

    to_column and to_index are None when the card was dropped outside any column.
    """

    from_column: Column
    from_index: int = Field(..., ge=0)
    to_column: Column | None = None
    to_index: int | None = Field(default=None, ge=0)

    @property
    def cancelled(self) -> bool:
        return self.to_column is None or self.to_index is None

    @property
    def crosses_columns(self) -> bool:
        return not self.cancelled and self.to_column != self.from_column
