"""Unit tests for tables, schemas and schema diffs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import pytest

from cfstore import Column, Orm, RangeQuery, Schema, SeqID, Table
from cfstore.components.marshal import BIGINT, SEQID, VARCHAR
from cfstore.core.errors import ConfigurationError
from cfstore.core.schema import columns_from_dataclass


@dataclass
class Comment:
    body: str = ""
    likes: int = 0
    created: datetime | None = None
    tags: list | None = None
    seqid: SeqID = SeqID("")


def test_columns_from_dataclass(posts):
    """Test column derivation from annotations."""
    cols = columns_from_dataclass(posts.row_type)
    assert [(c.name, c.type) for c in cols] == [
        ("name", VARCHAR),
        ("number", BIGINT),
        ("status", "boolean"),
        ("seqid", SEQID),
    ]


def test_unmapped_annotations_are_skipped():
    """Test that fields without a column type are not persisted, and Optional unwraps."""
    cols = columns_from_dataclass(Comment)
    assert [c.name for c in cols] == ["body", "likes", "created", "seqid"]


def test_key_columns_come_first():
    """Test that setting a key reorders columns."""
    table = Table("comments", Comment, key=["seqid"])
    assert [c.name for c in table.columns] == ["seqid", "body", "likes", "created"]
    assert table.primary_key == ["seqid"]


def test_invalid_key():
    with pytest.raises(ConfigurationError):
        Table("comments", Comment, key=["missing"])
    with pytest.raises(ConfigurationError):
        Table("comments", Comment).options.key()


def test_unknown_column_type():
    with pytest.raises(ConfigurationError):
        Column("x", "uuid")


def test_create_statements(posts):
    """Test the CQL rendering of a table and of an index backing table."""
    assert posts.create_statement() == (
        "CREATE TABLE posts (name varchar, number bigint, status boolean, seqid varchar,"
        " PRIMARY KEY (name))"
    )
    assert posts.index_by("number").backing.create_statement() == (
        "CREATE TABLE posts_by_number (interval varchar, seqid varchar, name varchar,"
        " PRIMARY KEY (interval, seqid))"
    )


def test_index_lookup(posts):
    """Test finding indexes by strategy and by name."""
    assert posts.index_by_seqid().name == "by_seqid"
    assert posts.index_by("number", "status").name == "by_number_status"
    assert posts.index("by_number").indexer.columns == ("number",)
    with pytest.raises(ConfigurationError):
        posts.index("by_status")
    with pytest.raises(ConfigurationError):
        posts.index_by("status")


def test_duplicate_index_name(posts):
    """Test that two indexes on one table cannot share a name."""
    with pytest.raises(ConfigurationError):
        posts.options.add_index_by("number")
    posts.options.add_index_by("number", name="by_number_again")
    assert posts.index("by_number_again").backing.name == "posts_by_number_again"


def test_index_requirements():
    """Test the table properties an index depends on."""
    with pytest.raises(ConfigurationError):
        Table("comments", Comment).options.add_index_by_seqid()

    no_seqid = Table("plain", columns=[Column("id", VARCHAR)], key=["id"])
    with pytest.raises(ConfigurationError):
        no_seqid.options.add_index_by_seqid()

    table = Table("comments", Comment, key=["body"])
    with pytest.raises(ConfigurationError):
        table.options.add_index_by("missing")
    with pytest.raises(ConfigurationError):
        table.options.add_index_by_seqid().key("likes")


def test_schema_rejects_duplicate_names(posts):
    """Test table name collisions, including index backing tables."""
    with pytest.raises(ConfigurationError):
        Schema(posts, Table("POSTS", Comment, key=["body"]))
    with pytest.raises(ConfigurationError):
        Schema(posts, Table("posts_by_seqid", Comment, key=["body"]))
    with pytest.raises(ConfigurationError):
        Schema(Table("comments", Comment))


def test_schema_lookup(posts):
    schema = Schema(posts)
    assert schema.get("Posts") is posts
    assert schema.table_for(posts.row_type) is posts
    assert [t.name for t in schema.all_tables()] == [
        "posts",
        "posts_by_seqid",
        "posts_by_number",
        "posts_by_number_status",
    ]
    with pytest.raises(ConfigurationError):
        schema.get("comments")
    with pytest.raises(ConfigurationError):
        schema.table_for(Comment)


def test_marshal_omits_none_and_unmarshal_restores(posts):
    """Test row marshalling through a table."""
    row = posts.new_row(name="a", number=7, status=True)
    mmap = posts.marshal(row)
    assert set(mmap) == {"name", "number", "status", "seqid"}
    assert posts.unmarshal(mmap) == row

    plain = Table("plain", columns=[Column("id", VARCHAR), Column("n", BIGINT)], key=["id"])
    assert plain.marshal({"id": "x", "n": None}) == {"id": b"x"}
    assert plain.unmarshal({"id": b"x"}) == {"id": "x"}


def test_diff_creates_tables_and_sentinels(store, posts, config, generator):
    """Test that a fresh store needs every table and gets one sentinel per index."""
    orm = Orm(store, Schema(posts), config=config, seqid=generator)
    assert orm.requires_updates()
    assert [t.name for t in orm.schema_updates.creates] == [
        "posts",
        "posts_by_seqid",
        "posts_by_number",
        "posts_by_number_status",
    ]
    orm.apply_schema_updates()
    assert not orm.requires_updates()

    for idx in posts.indexes:
        rows = store.select(RangeQuery(table=idx.backing.name, equal={"interval": b"00000"}))
        assert rows == [{"interval": b"00000", "seqid": b""}]


def test_reopening_schema_needs_no_updates(store, posts, config, generator):
    """Test that an applied schema diffs clean, with seqid stored as varchar."""
    Orm(store, Schema(posts), config=config, seqid=generator).apply_schema_updates()
    again = Orm(store, Schema(posts), config=config, seqid=generator)
    assert not again.requires_updates()


def test_diff_adds_missing_columns(store, config):
    """Test that new schema columns become alters on a live table."""
    store.create_table(Table("things", columns=[Column("id", VARCHAR)], key=["id"]))
    wider = Table("things", columns=[Column("id", VARCHAR), Column("note", VARCHAR)], key=["id"])

    orm = Orm(store, Schema(wider), config=config)
    assert orm.schema_updates.creates == []
    assert [(t.name, c.name) for t, c in orm.schema_updates.alters] == [("things", "note")]

    orm.apply_schema_updates()
    assert [c.name for c in store.describe_table("things")] == ["id", "note"]


def test_diff_rejects_type_changes(store, config):
    """Test that a column whose type changed cannot be migrated."""
    store.create_table(Table("things", columns=[Column("id", VARCHAR)], key=["id"]))
    changed = Table("things", columns=[Column("id", BIGINT)], key=["id"])
    with pytest.raises(ConfigurationError):
        Orm(store, Schema(changed), config=config)
