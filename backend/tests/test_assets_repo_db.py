"""
Integration test: Postgres stores using a fake psycopg driver.

Uses the fake psycopg module so the tests run without a database; the fake
executes the statements the stores issue against in-memory tables.
"""
from __future__ import annotations

import threading

import pytest

from backend.assets import repo_db
from backend.assets.errors import ConfigPersistenceFailure
from backend.tests.utils.fake_psycopg import FakeUniqueViolation, install_fake_psycopg

DSN = "postgresql://assets@localhost/assets"


@pytest.fixture
def db(monkeypatch: pytest.MonkeyPatch):
    return install_fake_psycopg(monkeypatch, repo_db)


def test_get_or_create_inserts_once(db) -> None:
    store = repo_db.DBConfigStore(DSN)
    first = store.get_or_create()
    second = store.get_or_create()
    assert len(db.config) == 1
    assert first.id == second.id == 1
    assert first.background_type == "color"
    assert first.background_color == "#000000"
    assert first.logo_version == 0
    inserts = [s for s in db.statements if s.startswith("insert into")]
    assert len(inserts) == 1


def test_commit_bumps_version_in_sql_and_maps_logo_column(db) -> None:
    store = repo_db.DBConfigStore(DSN)
    result = store.commit("logo", {"logo_path": "logo/logo.png"})
    assert result.previous.logo_version == 0
    assert result.current.logo_version == 1
    assert result.current.logo_path == "logo/logo.png"
    update = next(s for s in db.statements if s.startswith("update"))
    assert "logo_picture_version = logo_picture_version + 1" in update
    assert "for update" in " ".join(db.statements)


def test_background_color_commit_clears_path(db) -> None:
    store = repo_db.DBConfigStore(DSN)
    store.commit("background", {"background_type": "video", "background_path": "background/background.mp4"})
    result = store.commit("background", {"background_type": "color", "background_color": "#112233"})
    assert result.current.background_type == "color"
    assert result.current.background_path is None
    assert result.current.background_color == "#112233"
    assert result.current.background_version == 2
    assert result.superseded_path == "background/background.mp4"


def test_concurrent_commits_serialize(db) -> None:
    store = repo_db.DBConfigStore(DSN)
    workers = 10
    barrier = threading.Barrier(workers)

    def commit() -> None:
        barrier.wait()
        store.commit("reviews", {})

    threads = [threading.Thread(target=commit) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert store.get_or_create().reviews_version == workers


def test_unique_violation_on_first_read_is_resolved_by_rereading(db) -> None:
    store = repo_db.DBConfigStore(DSN)
    db.fail_next = FakeUniqueViolation("duplicate key")
    record = store.get_or_create()
    assert record.id == 1
    assert len(db.config) == 1


def test_database_errors_surface_as_persistence_failure(db) -> None:
    store = repo_db.DBConfigStore(DSN)
    db.fail_next = RuntimeError("connection reset")
    with pytest.raises(ConfigPersistenceFailure):
        store.commit("audio", {"audio_path": "audio/audio.m4a"})


def test_invalid_table_name_rejected(db) -> None:
    with pytest.raises(ValueError):
        repo_db.DBConfigStore(DSN, table="app_config; drop table x")


def test_reviews_insert_list_delete(db) -> None:
    repo = repo_db.DBReviewsRepo(DSN)
    first = repo.insert(name="Ada", label=None, rating=5, comment="Great!")
    second = repo.insert(name="Grace", label="Regular", rating=4, comment="Nice")
    listed = repo.list(limit=10)
    assert [r.id for r in listed] == [second.id, first.id]
    assert listed[0].to_public()["createdAt"]
    assert repo.delete(first.id) is True
    assert repo.delete(first.id) is False
    assert repo.delete("not-a-uuid") is False
    assert [r.name for r in repo.list(limit=10)] == ["Grace"]


def test_probe_reports_reachability(db) -> None:
    assert repo_db.probe(DSN) == {"ok": True, "error": None}
