"""Pure Python in-memory database backend.

Used as the "memory" storage backend and as the store fake in tests. Supports
CRUD, unique fields per collection, cascading deletes along declared relations,
and the subset of the PocketBase filter syntax the services use.
"""

import copy
import re
from datetime import UTC, datetime, timedelta
from typing import Any

from planboard.core.db_client import DatabaseError, DuplicateRecordError, RecordNotFoundError, split_sort


# Fields that must be unique per collection
DEFAULT_UNIQUE_FIELDS: dict[str, tuple[str, ...]] = {"users": ("name",)}

# child collection -> (foreign key field, parent collection)
DEFAULT_CASCADES: dict[str, tuple[str, str]] = {"todos": ("assignee_id", "users")}

_COMPARISON_RE = re.compile(r"""^(\w+)\s*(!=|=|~)\s*(['"])(.*)\3$""")


def _timestamp(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


class InMemoryDBClient:
    """In-memory implementation of the DB client interface."""

    def __init__(
        self,
        *,
        unique_fields: dict[str, tuple[str, ...]] | None = None,
        cascades: dict[str, tuple[str, str]] | None = None,
    ) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._id_counter = 1000
        self._last_created: datetime | None = None
        self._unique_fields = DEFAULT_UNIQUE_FIELDS if unique_fields is None else unique_fields
        self._cascades = DEFAULT_CASCADES if cascades is None else cascades

    def _now(self) -> datetime:
        """Return a strictly increasing timestamp so creation order is total."""
        now = datetime.now(UTC)
        if self._last_created is not None and now <= self._last_created:
            now = self._last_created + timedelta(microseconds=1)
        self._last_created = now
        return now

    def _check_unique(self, collection: str, data: dict[str, Any], *, exclude_id: str | None = None) -> None:
        for field in self._unique_fields.get(collection, ()):
            if field not in data:
                continue
            for record_id, record in self._collections.get(collection, {}).items():
                if record_id != exclude_id and record.get(field) == data[field]:
                    raise DuplicateRecordError(
                        f"Value for {field} must be unique in {collection}: {data[field]}", field=field
                    )

    async def create_record(self, *, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        """Create a new record with generated id and timestamps.

        Raises:
            DuplicateRecordError: If a unique field collides
            DatabaseError: If data is not a dictionary
        """
        if not isinstance(data, dict):
            raise DatabaseError(f"Data must be a dictionary, got {type(data)}")

        self._check_unique(collection, data)
        records = self._collections.setdefault(collection, {})

        record_id = str(self._id_counter)
        self._id_counter += 1
        now = _timestamp(self._now())

        record = {"id": record_id, "created": now, "updated": now, **data}
        records[record_id] = record
        return copy.deepcopy(record)

    async def get_record(self, *, collection: str, record_id: str) -> dict[str, Any]:
        """Get a record by ID.

        Raises:
            RecordNotFoundError: If record not found
        """
        record = self._collections.get(collection, {}).get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")
        return copy.deepcopy(record)

    async def update_record(self, *, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Update an existing record and return it.

        Raises:
            RecordNotFoundError: If record not found
            DuplicateRecordError: If a unique field collides
        """
        if not data:
            raise DatabaseError("Empty update payload")

        record = self._collections.get(collection, {}).get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")

        self._check_unique(collection, data, exclude_id=record_id)
        record.update(data)
        record["updated"] = _timestamp(datetime.now(UTC))
        return copy.deepcopy(record)

    async def delete_record(self, *, collection: str, record_id: str) -> None:
        """Delete a record, cascading to children that reference it.

        Raises:
            RecordNotFoundError: If record not found
        """
        records = self._collections.get(collection, {})
        if record_id not in records:
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")

        del records[record_id]

        for child, (fk_field, parent) in self._cascades.items():
            if parent != collection:
                continue
            children = self._collections.get(child, {})
            for child_id in [cid for cid, rec in children.items() if rec.get(fk_field) == record_id]:
                del children[child_id]

    async def list_records(
        self,
        *,
        collection: str,
        page: int = 1,
        per_page: int = 50,
        filter_query: str = "",
        sort: str = "",
    ) -> list[dict[str, Any]]:
        """List records with optional filtering, sorting and pagination.

        Raises:
            DatabaseError: For invalid filter syntax
        """
        records = list(self._collections.get(collection, {}).values())

        if filter_query:
            records = [r for r in records if self._matches(filter_query, r)]

        if sort:
            records = self._apply_sort(records, sort)

        start = (page - 1) * per_page
        return [copy.deepcopy(r) for r in records[start : start + per_page]]

    async def get_first_record(self, *, collection: str, filter_query: str) -> dict[str, Any] | None:
        """Return the first matching record or None."""
        records = await self.list_records(collection=collection, filter_query=filter_query, per_page=1)
        return records[0] if records else None

    async def close(self) -> None:
        """Nothing to release."""

    def _matches(self, filter_str: str, record: dict[str, Any]) -> bool:
        """Evaluate a filter expression against a record.

        Supports =, != and ~ (case-insensitive contains), && between terms and
        parenthesised || groups.
        """
        filter_str = filter_str.strip()
        if not filter_str:
            return True

        terms = [t.strip() for t in filter_str.split("&&")]
        if len(terms) > 1:
            return all(self._matches(term, record) for term in terms)

        if filter_str.startswith("(") and filter_str.endswith(")"):
            options = [o.strip() for o in filter_str[1:-1].split("||")]
            return any(self._matches(option, record) for option in options)

        match = _COMPARISON_RE.match(filter_str)
        if not match:
            raise DatabaseError(f"Invalid filter syntax: {filter_str}")

        field, op, _, value = match.groups()
        actual = record.get(field)

        if op == "~":
            return value.lower() in str(actual or "").lower()

        if isinstance(actual, bool) or value.lower() in ("true", "false"):
            equal = actual == (value.lower() == "true")
        else:
            equal = str(actual if actual is not None else "") == value

        return equal if op == "=" else not equal

    def _apply_sort(self, records: list[dict[str, Any]], sort: str) -> list[dict[str, Any]]:
        field, descending = split_sort(sort)
        return sorted(records, key=lambda r: r.get(field, ""), reverse=descending)
