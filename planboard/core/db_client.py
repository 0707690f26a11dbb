"""Database client interface shared by all persistence backends.

Every backend exposes the same async CRUD surface over named collections
("users", "todos") and speaks the PocketBase filter syntax:

    field = "value"
    field != "value"
    (field = "a" || field = "b") && other = "c"

Sort strings use a "-field" (descending) or "+field" / "field" (ascending) prefix.
"""

import json
from typing import Any, Protocol


class DatabaseError(Exception):
    """Raised when a persistence operation fails."""


class RecordNotFoundError(DatabaseError, KeyError):
    """Raised when a record does not exist."""

    def __str__(self) -> str:
        # KeyError quotes its message; keep the plain text
        return str(self.args[0]) if self.args else ""


class DuplicateRecordError(DatabaseError):
    """Raised when a unique constraint rejects a write."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class DBClient(Protocol):
    """Async CRUD surface implemented by the memory, SQLite and PocketBase backends."""

    async def create_record(self, *, collection: str, data: dict[str, Any]) -> dict[str, Any]: ...

    async def get_record(self, *, collection: str, record_id: str) -> dict[str, Any]: ...

    async def update_record(self, *, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]: ...

    async def delete_record(self, *, collection: str, record_id: str) -> None: ...

    async def list_records(
        self,
        *,
        collection: str,
        page: int = 1,
        per_page: int = 50,
        filter_query: str = "",
        sort: str = "",
    ) -> list[dict[str, Any]]: ...

    async def get_first_record(self, *, collection: str, filter_query: str) -> dict[str, Any] | None: ...

    async def close(self) -> None: ...


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    return json.dumps(str(value))[1:-1]


def build_any_of_filter(field: str, values: list[str]) -> str:
    """Build a filter matching records whose field equals any of the values.

    Returns an empty string for an empty list; callers must treat that as
    "match nothing" rather than passing it on as "match everything".
    """
    if not values:
        return ""
    parts = [f'{field} = "{sanitize_param(value)}"' for value in values]
    if len(parts) == 1:
        return parts[0]
    return f"({' || '.join(parts)})"


def split_sort(sort: str) -> tuple[str, bool]:
    """Split a "-field" / "+field" sort string into (field, descending)."""
    sort = sort.strip()
    if sort.startswith("-"):
        return sort[1:].strip(), True
    if sort.startswith("+"):
        return sort[1:].strip(), False
    return sort, False
