"""
Postgres-backed stores for the asset configuration record and reviews.

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection and runs
  in a single transaction (committed when the connection context exits).
- The version bump is expressed in SQL (`v = v + 1`) inside the same UPDATE
  that swaps the value, so concurrent commits serialize on the row lock and
  no update is lost.
- Column names match the deployed `app_config` table; the logo counter is
  stored as `logo_picture_version`.
"""
from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import UUID

from backend.assets.config_store import (
    CONFIG_ID,
    SLOT_VERSION_FIELDS,
    CommitResult,
    ConfigRecord,
    validate_patch,
)
from backend.assets.errors import ConfigPersistenceFailure
from backend.assets.reviews_repo import Review
from backend.storage.config import get_database_dsn

try:
    import psycopg
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore
    HAVE_PSYCOPG = False


_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")

# Record field -> column, where they differ.
_FIELD_COLUMNS = {"logo_version": "logo_picture_version"}

_CONFIG_COLUMNS_SQL = """
    id,
    background_version,
    background_type,
    background_path,
    background_color,
    logo_picture_version,
    logo_path,
    audio_version,
    audio_path,
    reviews_version,
    to_char(updated_at at time zone 'utc', 'YYYY-MM-DD"T"HH24:MI:SS"+00:00"')
"""

_REVIEW_COLUMNS_SQL = """
    id::text,
    name,
    label,
    rating,
    comment,
    to_char(created_at at time zone 'utc', 'YYYY-MM-DD"T"HH24:MI:SS"+00:00"')
"""


def _dsn() -> str:
    """Resolve the DSN for the assets database."""
    dsn = get_database_dsn()
    if dsn:
        return dsn
    raise RuntimeError("Database DSN unavailable for asset stores")


def _column(field_name: str) -> str:
    return _FIELD_COLUMNS.get(field_name, field_name)


def _checked_table(table: str) -> str:
    if not _TABLE_RE.match(table or ""):
        raise ValueError("Invalid table name")
    return table


def _config_row_to_record(row: Tuple) -> ConfigRecord:
    return ConfigRecord(
        id=int(row[0]),
        background_version=int(row[1] or 0),
        background_type=row[2] or "color",
        background_path=row[3],
        background_color=row[4] or "#000000",
        logo_version=int(row[5] or 0),
        logo_path=row[6],
        audio_version=int(row[7] or 0),
        audio_path=row[8],
        reviews_version=int(row[9] or 0),
        updated_at=row[10] or "",
    )


def _review_row_to_record(row: Tuple) -> Review:
    return Review(
        id=row[0],
        name=row[1],
        label=row[2],
        rating=int(row[3]),
        comment=row[4],
        created_at=row[5],
    )


def _is_unique_violation(exc: BaseException) -> bool:
    errors = getattr(psycopg, "errors", None)
    unique = getattr(errors, "UniqueViolation", None)
    return isinstance(unique, type) and isinstance(exc, unique)


class DBConfigStore:
    """Postgres store for the singleton `app_config` row."""

    def __init__(self, dsn: Optional[str] = None, table: str = "public.app_config") -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBConfigStore")
        self._dsn = dsn or _dsn()
        self._table = _checked_table(table)

    def _insert_if_absent(self, cur) -> None:
        cur.execute(
            f"insert into {self._table} (id) values (%s) on conflict (id) do nothing",
            (CONFIG_ID,),
        )

    def _select(self, cur, *, for_update: bool = False):
        lock = " for update" if for_update else ""
        cur.execute(f"select {_CONFIG_COLUMNS_SQL} from {self._table} where id = %s{lock}", (CONFIG_ID,))
        return cur.fetchone()

    def get_or_create(self) -> ConfigRecord:
        """Return the configuration row, creating it on first use.

        Behavior:
            - Reads first; only inserts (`on conflict do nothing`) when absent.
            - A concurrent creator winning the race surfaces either as a no-op
              insert or a UniqueViolation; both are resolved by re-reading.
        """
        for attempt in range(2):
            try:
                with psycopg.connect(self._dsn) as conn:
                    with conn.cursor() as cur:
                        row = self._select(cur)
                        if row is None:
                            self._insert_if_absent(cur)
                            row = self._select(cur)
            except Exception as exc:
                if attempt == 0 and _is_unique_violation(exc):
                    continue
                raise ConfigPersistenceFailure("config_read_failed") from exc
            if row is not None:
                return _config_row_to_record(row)
        raise ConfigPersistenceFailure("config_row_missing")

    def commit(self, slot: str, changes: Mapping[str, Any]) -> CommitResult:
        patch = validate_patch(slot, changes)
        version_col = _column(SLOT_VERSION_FIELDS[slot])
        assignments = [f"{_column(name)} = %s" for name in patch]
        assignments.append(f"{version_col} = {version_col} + 1")
        assignments.append("updated_at = now()")
        params: List[Any] = list(patch.values()) + [CONFIG_ID]
        try:
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    self._insert_if_absent(cur)
                    before = self._select(cur, for_update=True)
                    cur.execute(
                        f"update {self._table} set {', '.join(assignments)} "
                        f"where id = %s returning {_CONFIG_COLUMNS_SQL}",
                        params,
                    )
                    after = cur.fetchone()
        except Exception as exc:
            raise ConfigPersistenceFailure("config_update_failed") from exc
        if before is None or after is None:
            raise ConfigPersistenceFailure("config_row_missing")
        return CommitResult(previous=_config_row_to_record(before), current=_config_row_to_record(after))


class DBReviewsRepo:
    """Postgres repository for the `reviews` table."""

    def __init__(self, dsn: Optional[str] = None, table: str = "public.reviews") -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBReviewsRepo")
        self._dsn = dsn or _dsn()
        self._table = _checked_table(table)

    def insert(self, *, name: str, label: Optional[str], rating: int, comment: str) -> Review:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"insert into {self._table} (name, label, rating, comment) "
                    f"values (%s, %s, %s, %s) returning {_REVIEW_COLUMNS_SQL}",
                    (name, label, rating, comment),
                )
                row = cur.fetchone()
        if not row:
            raise RuntimeError("review_insert_failed")
        return _review_row_to_record(row)

    def delete(self, review_id: str) -> bool:
        try:
            UUID(str(review_id))
        except (ValueError, TypeError):
            # Not a key of this table, so nothing can match.
            return False
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"delete from {self._table} where id = %s", (str(review_id),))
                return (cur.rowcount or 0) > 0

    def list(self, *, limit: int) -> List[Review]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select {_REVIEW_COLUMNS_SQL} from {self._table} order by created_at desc limit %s",
                    (int(limit),),
                )
                rows = cur.fetchall()
        return [_review_row_to_record(r) for r in rows or []]


def probe(dsn: str) -> Dict[str, Any]:
    """Return {"ok": bool, "error": str|None} for a quick connectivity check."""
    if not HAVE_PSYCOPG:
        return {"ok": False, "error": "psycopg_missing"}
    try:
        with psycopg.connect(dsn, connect_timeout=3):
            return {"ok": True, "error": None}
    except Exception as exc:
        return {"ok": False, "error": exc.__class__.__name__}


__all__ = ["DBConfigStore", "DBReviewsRepo", "probe"]
