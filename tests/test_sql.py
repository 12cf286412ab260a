import pytest

from message_dispatch.sql import (
    Boolean,
    Integer,
    Json,
    SqlDb,
    SqliteAdapter,
    String,
    Table,
    get_adapter,
)


class NotesV1(Table):
    name = "notes"

    def configure(self):
        c = self.columns
        c.column("id", String, primary_key=True)
        c.column("title", String, nullable=False)
        c.column("tags", Json)
        c.column("pinned", Boolean, default=False)


class NotesV2(NotesV1):
    def configure(self):
        super().configure()
        self.columns.column("views", Integer, default=0)
        self.columns.column("token", String, unique=True)


def test_get_adapter_connection_strings():
    assert isinstance(get_adapter(":memory:"), SqliteAdapter)
    assert get_adapter("/tmp/x.db").db_path == "/tmp/x.db"
    assert get_adapter("sqlite:/tmp/y.db").db_path == "/tmp/y.db"
    assert get_adapter("sqlite::memory:").db_path == ":memory:"
    with pytest.raises(ValueError, match="Unknown database type"):
        get_adapter("postgresql://localhost/db")


def test_table_requires_name():
    class Nameless(Table):
        pass

    with pytest.raises(ValueError):
        Nameless(SqlDb())


def test_unknown_table_lookup():
    with pytest.raises(ValueError, match="not registered"):
        SqlDb().table("nope")


@pytest.mark.asyncio
async def test_json_and_boolean_round_trip():
    db = SqlDb(":memory:")
    notes = db.add_table(NotesV1)
    await db.connect()
    await db.check_structure()

    await notes.insert({"id": "n1", "title": "First", "tags": ["a", "b"], "pinned": True})
    await notes.insert({"id": "n2", "title": "Second"})

    first = await notes.select_one(where={"id": "n1"})
    assert first["tags"] == ["a", "b"]
    assert first["pinned"] is True

    second = await notes.select_one(where={"id": "n2"})
    assert second["tags"] is None
    assert second["pinned"] is False
    assert await notes.count() == 2
    await db.close()


@pytest.mark.asyncio
async def test_record_updater_inserts_and_updates_changed_fields():
    db = SqlDb(":memory:")
    notes = db.add_table(NotesV1)
    await db.connect()
    await db.check_structure()

    async with notes.record("n1", insert_missing=True) as rec:
        rec["title"] = "Draft"
    async with notes.record("n1") as rec:
        rec["title"] = "Final"
        rec["pinned"] = True
    async with notes.record("missing") as rec:
        assert rec == {}

    row = await notes.select_one(where={"id": "n1"})
    assert row["title"] == "Final"
    assert row["pinned"] is True
    assert await notes.exists({"id": "missing"}) is False
    await db.close()


@pytest.mark.asyncio
async def test_check_structure_adds_missing_columns(tmp_path):
    path = str(tmp_path / "notes.db")

    db = SqlDb(path)
    notes = db.add_table(NotesV1)
    await db.connect()
    await db.check_structure()
    await notes.insert({"id": "n1", "title": "Old"})
    await db.close()

    db = SqlDb(path)
    notes = db.add_table(NotesV2)
    await db.connect()
    await db.check_structure()
    assert {"views", "token"} <= await notes.existing_columns()
    row = await notes.select_one(where={"id": "n1"})
    assert row["views"] == 0
    assert row["token"] is None
    await db.close()


@pytest.mark.asyncio
async def test_where_none_matches_null():
    db = SqlDb(":memory:")
    notes = db.add_table(NotesV1)
    await db.connect()
    await db.check_structure()
    await notes.insert({"id": "n1", "title": "A"})
    await notes.insert({"id": "n2", "title": "B", "tags": ["x"]})

    rows = await notes.select(where={"tags": None})
    assert [r["id"] for r in rows] == ["n1"]
    assert await notes.update({"title": "AA"}, {"id": "n1"}) == 1
    assert await notes.delete({"id": "n2"}) == 1
    await db.close()


class Events(Table):
    name = "events"
    generate_id = True
    created_column = "created_ts"
    updated_column = "updated_ts"

    def configure(self):
        c = self.columns
        c.column("id", String, primary_key=True)
        c.column("label", String)
        c.column("created_ts", Integer)
        c.column("updated_ts", Integer)


@pytest.mark.asyncio
async def test_generated_id_and_timestamps(monkeypatch):
    db = SqlDb(":memory:")
    events = db.add_table(Events)
    await db.connect()
    await db.check_structure()

    monkeypatch.setattr("message_dispatch.sql.table.time.time", lambda: 1000)
    data = {"label": "created"}
    await events.insert(data)
    assert len(data["id"]) == 32
    assert data["created_ts"] == data["updated_ts"] == 1000

    monkeypatch.setattr("message_dispatch.sql.table.time.time", lambda: 2000)
    await events.update({"label": "renamed"}, {"id": data["id"]})
    row = await events.get_by_key(data["id"])
    assert (row["label"], row["created_ts"], row["updated_ts"]) == ("renamed", 1000, 2000)
    await db.close()
