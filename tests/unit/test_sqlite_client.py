"""Tests for the SQLite backend against a temporary database file."""

import pytest

from planboard.core.db_client import DatabaseError, DuplicateRecordError, RecordNotFoundError
from planboard.core.schema import init_sqlite_schema
from planboard.core.sqlite_client import SQLiteDBClient, parse_filter


@pytest.fixture
async def sqlite_db(tmp_path):
    client = SQLiteDBClient(tmp_path / "test.db")
    await init_sqlite_schema(client)
    yield client
    await client.close()


async def create_user(db, name, color="#60a5fa"):
    return await db.create_record(collection="users", data={"name": name, "color": color})


async def create_todo(db, assignee_id, title, *, is_done=False):
    return await db.create_record(
        collection="todos",
        data={
            "assignee_id": assignee_id,
            "title": title,
            "date": "2025-06-01",
            "location": "Lisbon, Portugal",
            "weather_summary": "Clear sky • 24°C",
            "is_done": is_done,
        },
    )


@pytest.mark.unit
class TestSQLiteCrud:
    async def test_create_returns_string_ids_and_timestamps(self, sqlite_db):
        user = await create_user(sqlite_db, "Alice")
        todo = await create_todo(sqlite_db, user["id"], "Surf")

        assert isinstance(user["id"], str)
        assert todo["assignee_id"] == user["id"]
        assert user["created"]
        assert user["updated"] == user["created"]

    async def test_update(self, sqlite_db):
        user = await create_user(sqlite_db, "Alice")
        todo = await create_todo(sqlite_db, user["id"], "Surf")

        updated = await sqlite_db.update_record(collection="todos", record_id=todo["id"], data={"is_done": True})

        assert updated["is_done"] == 1
        assert updated["title"] == "Surf"

    async def test_update_missing_record(self, sqlite_db):
        with pytest.raises(RecordNotFoundError):
            await sqlite_db.update_record(collection="users", record_id="999", data={"name": "Ghost"})

    async def test_delete_missing_record(self, sqlite_db):
        with pytest.raises(RecordNotFoundError):
            await sqlite_db.delete_record(collection="users", record_id="999")

    async def test_get_first_record(self, sqlite_db):
        await create_user(sqlite_db, "Alice")

        assert (await sqlite_db.get_first_record(collection="users", filter_query='name = "Alice"'))["name"] == "Alice"
        assert await sqlite_db.get_first_record(collection="users", filter_query='name = "Bob"') is None

    async def test_invalid_collection_name(self, sqlite_db):
        with pytest.raises(ValueError, match="Invalid collection name"):
            await sqlite_db.get_record(collection="users; DROP TABLE users", record_id="1")

    async def test_missing_table(self, tmp_path):
        client = SQLiteDBClient(tmp_path / "empty.db")
        try:
            with pytest.raises(DatabaseError, match="does not exist"):
                await client.create_record(collection="users", data={"name": "Alice", "color": "#000000"})
        finally:
            await client.close()


@pytest.mark.unit
class TestSQLiteConstraints:
    async def test_duplicate_name(self, sqlite_db):
        await create_user(sqlite_db, "Alice")

        with pytest.raises(DuplicateRecordError) as exc_info:
            await create_user(sqlite_db, "Alice")

        assert exc_info.value.field == "name"

    async def test_rename_to_duplicate(self, sqlite_db):
        await create_user(sqlite_db, "Alice")
        bob = await create_user(sqlite_db, "Bob")

        with pytest.raises(DuplicateRecordError):
            await sqlite_db.update_record(collection="users", record_id=bob["id"], data={"name": "Alice"})

    async def test_delete_user_cascades(self, sqlite_db):
        user = await create_user(sqlite_db, "Alice")
        await create_todo(sqlite_db, user["id"], "Surf")

        await sqlite_db.delete_record(collection="users", record_id=user["id"])

        assert await sqlite_db.list_records(collection="todos") == []


@pytest.mark.unit
class TestSQLiteListing:
    async def test_any_of_filter_and_newest_first(self, sqlite_db):
        alice = await create_user(sqlite_db, "Alice")
        bob = await create_user(sqlite_db, "Bob")
        carol = await create_user(sqlite_db, "Carol")
        await create_todo(sqlite_db, alice["id"], "First")
        await create_todo(sqlite_db, carol["id"], "Hidden")
        await create_todo(sqlite_db, bob["id"], "Second")

        records = await sqlite_db.list_records(
            collection="todos",
            filter_query=f'(assignee_id = "{alice["id"]}" || assignee_id = "{bob["id"]}")',
            sort="-created",
        )

        assert [record["title"] for record in records] == ["Second", "First"]

    async def test_boolean_filter(self, sqlite_db):
        user = await create_user(sqlite_db, "Alice")
        await create_todo(sqlite_db, user["id"], "Open")
        await create_todo(sqlite_db, user["id"], "Closed", is_done=True)

        records = await sqlite_db.list_records(collection="todos", filter_query='is_done = "true"')

        assert [record["title"] for record in records] == ["Closed"]

    async def test_pagination(self, sqlite_db):
        for name in ("A", "B", "C"):
            await create_user(sqlite_db, name)

        page_two = await sqlite_db.list_records(collection="users", page=2, per_page=2, sort="+created")

        assert [record["name"] for record in page_two] == ["C"]


@pytest.mark.unit
class TestParseFilter:
    def test_empty(self):
        assert parse_filter("") == ("", [])

    def test_and_with_or_group(self):
        clause, params = parse_filter('(assignee_id = "1" || assignee_id = "2") && is_done = "false"')

        assert clause == "(assignee_id = ? OR assignee_id = ?) AND is_done = ?"
        assert params == [1, 2, False]

    def test_contains_escapes_wildcards(self):
        clause, params = parse_filter('title ~ "50%_off"')

        assert clause == "title LIKE ? ESCAPE '\\'"
        assert params == ["%50\\%\\_off%"]

    def test_invalid_syntax(self):
        with pytest.raises(ValueError, match="Invalid filter syntax"):
            parse_filter("title LIKE x")
