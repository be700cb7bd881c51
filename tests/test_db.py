"""Metadata store unit tests."""

import sqlite3

import pytest

from meld.config import Config, Version
from meld.db import Database
from meld.dirmap import DirectoryMap
from meld.errors import StoreError


@pytest.fixture
def db(tmp_path):
    d = Database(tmp_path / "meld.db")
    d.create_schema()
    yield d
    d.close()


def _config(blob="b1", map_path="/etc/a.conf"):
    return Config(blob=blob, subset="", family="", map_path=map_path)


class TestSchema:
    def test_creates_three_tables(self, db):
        names = {
            row[0]
            for row in db.conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        assert names == {"configs", "versions", "maps"}

    def test_second_create_fails(self, db):
        with pytest.raises(StoreError, match="SQL Failed"):
            db.create_schema()

    def test_store_error_wraps_sqlite(self, db):
        with pytest.raises(StoreError) as exc_info:
            db.create_schema()
        assert isinstance(exc_info.value.__cause__, sqlite3.Error)


class TestConfigs:
    def test_config_exists_by_path(self, db):
        db.add_config(_config())
        assert db.config_exists("/etc/a.conf") == "b1"
        assert db.config_exists("/etc/b.conf") is None

    def test_mapped_path_reverse_lookup(self, db):
        db.add_config(_config())
        assert db.get_mapped_path("b1") == "/etc/a.conf"
        assert db.get_mapped_path("missing") is None

    def test_reclassify(self, db):
        db.add_config(_config())
        db.update_subset("b1", "web")
        db.update_family("b1", "nginx")
        stored = db.get_config("b1")
        assert stored.subset == "web"
        assert stored.family == "nginx"
        assert stored.map_path == "/etc/a.conf"


class TestVersions:
    def test_no_current_version(self, db):
        assert db.get_current_version("b1") is None

    def test_current_is_highest_ver(self, db):
        db.add_version(Version("h1", 1, "", "b1"))
        db.add_version(Version("h3", 3, "", "b1"))
        db.add_version(Version("h2", 2, "", "b1"))
        assert db.get_current_version("b1").ver == 3

    def test_versions_scoped_to_owner(self, db):
        db.add_version(Version("h1", 1, "", "b1"))
        db.add_version(Version("h9", 1, "", "b2"))
        assert list(db.get_versions("b1")) == ["h1"]

    def test_versions_keyed_by_content_highest_wins(self, db):
        db.add_version(Version("A", 1, "first", "b1"))
        db.add_version(Version("B", 2, "", "b1"))
        db.add_version(Version("A", 3, "", "b1"))
        versions = db.get_versions("b1")
        assert set(versions) == {"A", "B"}
        assert versions["A"].ver == 3
        assert len(db.list_versions("b1")) == 3

    def test_update_tag_in_place(self, db):
        v = Version("h1", 1, "", "b1")
        db.add_version(v)
        db.update_version_tag(v, "stable")
        assert db.get_current_version("b1").tag == "stable"
        assert len(db.list_versions("b1")) == 1


class TestMaps:
    def test_current_map(self, db):
        assert db.get_current_map("m") is None
        db.add_map(DirectoryMap("m", 1, "agg1", ""))
        db.add_map(DirectoryMap("m", 2, "agg2", "t"))
        current = db.get_current_map("m")
        assert (current.ver, current.hash, current.tag) == (2, "agg2", "t")


class TestStats:
    def test_counts(self, db):
        db.add_config(_config())
        db.add_version(Version("h1", 1, "", "b1"))
        assert db.stats() == {"configs": 1, "versions": 1, "maps": 0}


class TestClose:
    def test_close_idempotent(self, tmp_path):
        d = Database(tmp_path / "x.db")
        d.create_schema()
        d.close()
        d.close()
