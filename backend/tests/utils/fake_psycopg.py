"""
Lightweight psycopg stand-in for unit tests.

Provides ``install_fake_psycopg`` which monkeypatches a target module so that
``psycopg.connect`` runs against in-memory tables. Designed to support the
subset of SQL issued by ``backend.assets.repo_db`` (app_config and reviews).
"""
from __future__ import annotations

import re
import threading
import types
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

_CONFIG_COLUMNS = (
    "id",
    "background_version",
    "background_type",
    "background_path",
    "background_color",
    "logo_picture_version",
    "logo_path",
    "audio_version",
    "audio_path",
    "reviews_version",
    "updated_at",
)

_SET_RE = re.compile(r"\bset\s+(.*?)\s+where\b", re.IGNORECASE | re.DOTALL)


class FakeUniqueViolation(Exception):
    """Stands in for psycopg.errors.UniqueViolation."""


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S+00:00")


@dataclass
class FakeDatabase:
    """Backing tables plus counters tests can assert on."""

    config: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    reviews: List[Dict[str, Any]] = field(default_factory=list)
    statements: List[str] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock)
    fail_next: Optional[Exception] = None

    def config_row(self, row_id: int):
        rec = self.config.get(int(row_id))
        return tuple(rec[c] for c in _CONFIG_COLUMNS) if rec else None


class _FakeCursor:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db
        self._row = None
        self._rows: List[tuple] = []
        self.rowcount = 0

    def execute(self, sql: str, params: tuple | list = ()) -> None:
        db = self._db
        sql_low = " ".join((sql or "").lower().split())
        db.statements.append(sql_low)
        if db.fail_next is not None:
            exc, db.fail_next = db.fail_next, None
            raise exc
        params = list(params or ())
        self._row, self._rows, self.rowcount = None, [], 0
        if "app_config" in sql_low:
            self._execute_config(sql, sql_low, params)
        elif "reviews" in sql_low:
            self._execute_reviews(sql_low, params)
        else:
            raise AssertionError(f"Unexpected SQL in fake psycopg: {sql}")

    def _execute_config(self, sql: str, sql_low: str, params: list) -> None:
        db = self._db
        if sql_low.startswith("insert into"):
            row_id = int(params[0])
            if row_id not in db.config:
                db.config[row_id] = {
                    "id": row_id,
                    "background_version": 0,
                    "background_type": "color",
                    "background_path": None,
                    "background_color": "#000000",
                    "logo_picture_version": 0,
                    "logo_path": None,
                    "audio_version": 0,
                    "audio_path": None,
                    "reviews_version": 0,
                    "updated_at": _now(),
                }
                self.rowcount = 1
        elif sql_low.startswith("select"):
            self._row = db.config_row(params[0])
        elif sql_low.startswith("update"):
            row_id = int(params[-1])
            rec = db.config.get(row_id)
            if rec is None:
                return
            values = iter(params[:-1])
            assignments = _SET_RE.search(sql).group(1)
            for part in assignments.split(","):
                column, expr = (s.strip() for s in part.split("=", 1))
                if expr == "%s":
                    rec[column] = next(values)
                elif expr.endswith("+ 1"):
                    rec[column] = int(rec[column] or 0) + 1
                elif expr.lower() == "now()":
                    rec[column] = _now()
                else:
                    raise AssertionError(f"Unsupported assignment: {part}")
            self._row = db.config_row(row_id)
            self.rowcount = 1
        else:
            raise AssertionError(f"Unexpected SQL in fake psycopg: {sql}")

    def _execute_reviews(self, sql_low: str, params: list) -> None:
        db = self._db
        if sql_low.startswith("insert into"):
            name, label, rating, comment = params
            row = {
                "id": str(uuid.uuid4()),
                "name": name,
                "label": label,
                "rating": rating,
                "comment": comment,
                "created_at": _now(),
            }
            db.reviews.append(row)
            self._row = self._review_tuple(row)
            self.rowcount = 1
        elif sql_low.startswith("delete"):
            before = len(db.reviews)
            db.reviews[:] = [r for r in db.reviews if r["id"] != params[0]]
            self.rowcount = before - len(db.reviews)
        elif sql_low.startswith("select"):
            limit = int(params[0])
            # Later inserts first, like `order by created_at desc` on distinct stamps.
            ordered = list(reversed(db.reviews))[:limit]
            self._rows = [self._review_tuple(r) for r in ordered]
        else:
            raise AssertionError(f"Unexpected SQL in fake psycopg: {sql_low}")

    @staticmethod
    def _review_tuple(row: Dict[str, Any]) -> tuple:
        return (row["id"], row["name"], row["label"], row["rating"], row["comment"], row["created_at"])

    def fetchone(self):
        return self._row

    def fetchall(self):
        return self._rows or []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class _FakeConn:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db

    def cursor(self):
        return _FakeCursor(self._db)

    def __enter__(self):
        # One transaction at a time, like a row lock held until commit.
        self._db.lock.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self._db.lock.release()
        return False


def install_fake_psycopg(monkeypatch, target_module) -> FakeDatabase:
    """
    Patch ``target_module`` so psycopg operations go against in-memory tables.

    Returns the FakeDatabase acting as the backing store.
    """
    db = FakeDatabase()

    def fake_connect(dsn: str, autocommit: bool | None = None, connect_timeout: int | None = None):
        return _FakeConn(db)

    fake_psycopg = types.SimpleNamespace(
        connect=fake_connect,
        errors=types.SimpleNamespace(UniqueViolation=FakeUniqueViolation),
    )

    monkeypatch.setattr(target_module, "HAVE_PSYCOPG", True, raising=False)
    monkeypatch.setattr(target_module, "psycopg", fake_psycopg, raising=False)
    return db


__all__ = ["install_fake_psycopg", "FakeDatabase", "FakeUniqueViolation"]
