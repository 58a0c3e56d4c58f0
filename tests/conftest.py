"""Shared fixtures for cfstore tests."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from cfstore import CFStoreConfig, MemoryColumnStore, Orm, Schema, SeqID, Table
from cfstore.components.interval import format_seqid, interval, interval_to_seqid, parse_base36


class ManualSeqIDGenerator:
    """SeqID generator whose counter the test controls, to force particular intervals."""

    def __init__(self, start: int = 0):
        self.value = start

    def new(self) -> SeqID:
        self.value += 1
        return format_seqid(self.value)

    def current_interval(self) -> str:
        return interval(format_seqid(self.value))

    def set_interval(self, iv: str) -> None:
        self.value = parse_base36(interval_to_seqid(iv))


@dataclass
class Post:
    name: str = ""
    number: int = 0
    status: bool = False
    seqid: SeqID = SeqID("")


def make_posts_table() -> Table:
    table = Table("posts", Post, key=["name"])
    table.options.add_index_by_seqid()
    table.options.add_index_by("number")
    table.options.add_index_by("number", "status")
    return table


@pytest.fixture
def generator():
    """Controllable SeqID generator starting at zero."""
    return ManualSeqIDGenerator()


@pytest.fixture
def config():
    """Test configuration with fast queue polling."""
    return CFStoreConfig(queue_poll_seconds=0.01)


@pytest.fixture
def store():
    """Empty in-memory column store."""
    s = MemoryColumnStore()
    yield s
    s.close()


@pytest.fixture
def posts_factory():
    """Builds fresh, unbound copies of the posts table."""
    return make_posts_table


@pytest.fixture
def posts():
    """Posts table with a SeqID index and two compound indexes."""
    return make_posts_table()


@pytest.fixture
def orm(store, posts, config, generator):
    """Orm over the posts table with its schema applied."""
    o = Orm(store, Schema(posts), config=config, seqid=generator)
    o.apply_schema_updates()
    return o
