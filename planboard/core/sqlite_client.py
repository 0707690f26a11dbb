"""SQLite database backend with CRUD operations (local persistence)."""

import json
import logging
import re
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from planboard.core.db_client import DatabaseError, DuplicateRecordError, RecordNotFoundError, split_sort


logger = logging.getLogger(__name__)

_UNIQUE_VIOLATION_RE = re.compile(r"UNIQUE constraint failed: \w+\.(\w+)")


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID and foreign key fields to strings so ids stay opaque."""
    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and (key == "id" or key.endswith("_id")):
            converted[key] = str(value)
    return converted


def _parse_value(value: str) -> str | int | float | bool | None:
    """Parse a filter literal to the appropriate Python type for SQLite."""
    if value.isdigit():
        return int(value)
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    return value


def _parse_single_comparison(comparison: str) -> tuple[str, str | int | float | bool | None]:
    """Parse a single comparison expression into a SQL condition and parameter."""
    match = re.match(r"""^(\w+)\s*(!=|=|~)\s*(['"])(.*)\3$""", comparison.strip())
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field, op, _, raw_value = match.groups()

    if op == "~":
        escaped = raw_value.replace("%", "\\%").replace("_", "\\_")
        return f"{field} LIKE ? ESCAPE '\\'", f"%{escaped}%"

    return f"{field} {op} ?", _parse_value(raw_value)


def _parse_or_group(or_group: str) -> tuple[str, list[str | int | float | bool | None]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]
    or_conditions = []
    or_params = []

    for part in (p.strip() for p in inner.split("||")):
        cond, value = _parse_single_comparison(part)
        or_conditions.append(cond)
        or_params.append(value)

    return f"({' OR '.join(or_conditions)})", or_params


def _split_and_conditions(filter_query: str) -> list[str]:
    """Split filter query by && while preserving parenthesized groups."""
    parts = []
    current = ""
    paren_depth = 0

    for char in filter_query:
        if char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1

        current += char

        if paren_depth == 0 and current.endswith("&&"):
            parts.append(current[:-2].strip())
            current = ""

    if current.strip():
        parts.append(current.strip())

    return parts


def parse_filter(filter_query: str) -> tuple[str, list[str | int | float | bool | None]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list."""
    if not filter_query:
        return "", []

    conditions = []
    params: list[str | int | float | bool | None] = []

    for part in _split_and_conditions(filter_query):
        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
            conditions.append(cond)
            params.extend(cond_params)
        else:
            cond, value = _parse_single_comparison(part)
            conditions.append(cond)
            params.append(value)

    return " AND ".join(conditions), params


def _to_sql_order(sort: str) -> str:
    """Translate a "-field" sort string into a safe ORDER BY clause."""
    field, descending = split_sort(sort)
    if not re.match(r"^[A-Za-z_][A-Za-z0-9_]*$", field):
        logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
        return "id ASC"
    # id breaks ties between rows created within the same timestamp
    direction = "DESC" if descending else "ASC"
    return f"{field} {direction}, id {direction}"


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict | list):
        return json.dumps(value)
    return value


def _timestamp() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class SQLiteDBClient:
    """aiosqlite-backed implementation of the DB client interface."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path).resolve()
        self._conn: aiosqlite.Connection | None = None

    async def connection(self) -> aiosqlite.Connection:
        """Open the connection on first use."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = await aiosqlite.connect(str(self.db_path))
            await conn.execute("PRAGMA foreign_keys = ON")
            await conn.execute("PRAGMA journal_mode = WAL")
            self._conn = conn
            logger.info("Created new SQLite connection", extra={"db_path": str(self.db_path)})
        return self._conn

    async def close(self) -> None:
        """Close the connection if open."""
        if self._conn is None:
            return
        try:
            await self._conn.close()
            logger.info("Closed SQLite connection", extra={"db_path": str(self.db_path)})
        except Exception as e:
            logger.warning("Error closing SQLite connection", extra={"error": str(e)})
        finally:
            self._conn = None

    async def create_record(self, *, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a new record and return it with its assigned id."""
        _validate_collection_name(collection)
        now = _timestamp()
        row = {"created": now, "updated": now, **data}
        columns = list(row)

        try:
            conn = await self.connection()
            query = f"INSERT INTO {collection} ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})"  # noqa: S608 - collection is validated
            cursor = await conn.execute(query, [_serialize(row[c]) for c in columns])
            await conn.commit()
            record_id = cursor.lastrowid
        except sqlite3.IntegrityError as e:
            match = _UNIQUE_VIOLATION_RE.search(str(e))
            if match:
                raise DuplicateRecordError(str(e), field=match.group(1)) from e
            logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
            raise DatabaseError(f"Failed to create record in {collection}: {e}") from e
        except Exception as e:
            if isinstance(e, sqlite3.OperationalError) and "no such table" in str(e):
                logger.error("Table not found", extra={"collection": collection})
                raise DatabaseError(f"Table '{collection}' does not exist. Call init_sqlite_schema() first.") from e
            logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
            raise DatabaseError(f"Failed to create record in {collection}: {e}") from e

        logger.info("Created record", extra={"collection": collection, "record_id": record_id})
        return await self.get_record(collection=collection, record_id=str(record_id))

    async def get_record(self, *, collection: str, record_id: str) -> dict[str, Any]:
        """Fetch a single record by ID, raising RecordNotFoundError if not found."""
        _validate_collection_name(collection)
        try:
            conn = await self.connection()
            cursor = await conn.execute(f"SELECT * FROM {collection} WHERE id = ?", (record_id,))  # noqa: S608 - collection is validated
            row = await cursor.fetchone()
            columns = [description[0] for description in cursor.description]
        except Exception as e:
            logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
            raise DatabaseError(f"Failed to get record from {collection}: {e}") from e

        if row is None:
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")

        return _convert_record_ids(dict(zip(columns, row, strict=True)))

    async def update_record(self, *, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Update a record by ID and return the updated record."""
        if not data:
            raise DatabaseError("Empty update payload")
        _validate_collection_name(collection)

        row = {**data, "updated": _timestamp()}
        set_clause = ", ".join(f"{key} = ?" for key in row)
        values = [_serialize(v) for v in row.values()]
        values.append(record_id)

        try:
            conn = await self.connection()
            cursor = await conn.execute(f"UPDATE {collection} SET {set_clause} WHERE id = ?", values)  # noqa: S608 - collection is validated
            await conn.commit()
        except sqlite3.IntegrityError as e:
            match = _UNIQUE_VIOLATION_RE.search(str(e))
            if match:
                raise DuplicateRecordError(str(e), field=match.group(1)) from e
            raise DatabaseError(f"Failed to update record in {collection}: {e}") from e
        except Exception as e:
            logger.error(
                "update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)}
            )
            raise DatabaseError(f"Failed to update record in {collection}: {e}") from e

        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")

        logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
        return await self.get_record(collection=collection, record_id=record_id)

    async def delete_record(self, *, collection: str, record_id: str) -> None:
        """Delete a record by ID, raising RecordNotFoundError if not found."""
        _validate_collection_name(collection)
        try:
            conn = await self.connection()
            cursor = await conn.execute(f"DELETE FROM {collection} WHERE id = ?", (record_id,))  # noqa: S608 - collection is validated
            await conn.commit()
        except Exception as e:
            logger.error(
                "delete_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)}
            )
            raise DatabaseError(f"Failed to delete record from {collection}: {e}") from e

        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")

        logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})

    async def list_records(
        self,
        *,
        collection: str,
        page: int = 1,
        per_page: int = 50,
        filter_query: str = "",
        sort: str = "",
    ) -> list[dict[str, Any]]:
        """List records with optional filtering, sorting, and pagination."""
        _validate_collection_name(collection)
        try:
            where_clause, params = parse_filter(filter_query)
            where_sql = f"WHERE {where_clause}" if where_clause else ""
            order_sql = _to_sql_order(sort) if sort else "id ASC"

            query = f"SELECT * FROM {collection} {where_sql} ORDER BY {order_sql} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
            params.extend([per_page, (page - 1) * per_page])

            conn = await self.connection()
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            columns = [description[0] for description in cursor.description]
        except Exception as e:
            logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
            raise DatabaseError(f"Failed to list records from {collection}: {e}") from e

        records = [_convert_record_ids(dict(zip(columns, row, strict=True))) for row in rows]
        logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
        return records

    async def get_first_record(self, *, collection: str, filter_query: str) -> dict[str, Any] | None:
        """Return the first record matching the filter, or None."""
        records = await self.list_records(collection=collection, filter_query=filter_query, per_page=1)
        return records[0] if records else None
