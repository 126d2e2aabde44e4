"""Durable backing stores for the service registry.

Two implementations of :class:`ServiceStore` are provided:

* :class:`SQLiteServiceStore` — rows in the ``services`` table created by
  :func:`aries.db.init_db`.
* :class:`CSVServiceStore` — a flat ``services.csv`` file.  The legacy
  two-column ``name,url`` layout is accepted on load; it is rewritten in the
  full layout on the first write.

Every failure is re-raised as :class:`~aries.registry.errors.StoreError`.
"""

from __future__ import annotations

import abc
import csv
import logging
import os
import sqlite3
from datetime import datetime
from pathlib import Path

from aries.registry.errors import StoreError
from aries.registry.models import ServiceRecord, ServiceStatus

logger = logging.getLogger(__name__)

CSV_FIELDS = ["id", "name", "url", "status", "last_checked"]


class ServiceStore(abc.ABC):
    """Abstract persistence interface consumed by the registry."""

    @abc.abstractmethod
    def load_all(self) -> list[ServiceRecord]:
        """Return every persisted record, ordered by id."""
        raise NotImplementedError

    @abc.abstractmethod
    def insert(self, record: ServiceRecord) -> int:
        """Persist a new record and return its freshly assigned id."""
        raise NotImplementedError

    @abc.abstractmethod
    def update(self, record: ServiceRecord) -> None:
        """Persist the current state of an existing record."""
        raise NotImplementedError


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_status(value: str | None) -> ServiceStatus:
    try:
        return ServiceStatus(value or ServiceStatus.UNKNOWN.value)
    except ValueError:
        logger.warning("Unknown service status %r, treating as unknown", value)
        return ServiceStatus.UNKNOWN


# ------------------------------------------------------------------ #
# SQLite                                                               #
# ------------------------------------------------------------------ #

class SQLiteServiceStore(ServiceStore):
    """CRUD wrapper around the ``services`` table.

    Args:
        conn: An open :class:`sqlite3.Connection` with ``row_factory`` set to
              :class:`sqlite3.Row`.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def load_all(self) -> list[ServiceRecord]:
        try:
            rows = self._conn.execute(
                "SELECT id, name, url, status, last_checked FROM services ORDER BY id"
            ).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Unable to load services: {exc}") from exc
        return [
            ServiceRecord(
                id=int(row["id"]),
                name=row["name"],
                url=row["url"],
                status=_parse_status(row["status"]),
                last_checked=_parse_timestamp(row["last_checked"]),
            )
            for row in rows
        ]

    def insert(self, record: ServiceRecord) -> int:
        try:
            cur = self._conn.execute(
                """
                INSERT INTO services (name, url, status, last_checked, updated_at)
                VALUES (?, ?, ?, ?, CURRENT_TIMESTAMP)
                """,
                (
                    record.name,
                    record.url,
                    record.status.value,
                    _format_timestamp(record.last_checked),
                ),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StoreError(f"Unable to insert service {record.name}: {exc}") from exc
        row_id = int(cur.lastrowid)
        logger.debug("insert service id=%d name=%s url=%s", row_id, record.name, record.url)
        return row_id

    def update(self, record: ServiceRecord) -> None:
        try:
            cur = self._conn.execute(
                """
                UPDATE services
                   SET name = ?, url = ?, status = ?, last_checked = ?,
                       updated_at = CURRENT_TIMESTAMP
                 WHERE id = ?
                """,
                (
                    record.name,
                    record.url,
                    record.status.value,
                    _format_timestamp(record.last_checked),
                    record.id,
                ),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StoreError(f"Unable to update service {record.name}: {exc}") from exc
        if cur.rowcount == 0:
            raise StoreError(f"Service id {record.id} is not persisted")


# ------------------------------------------------------------------ #
# CSV                                                                  #
# ------------------------------------------------------------------ #

class CSVServiceStore(ServiceStore):
    """Flat-file store; the whole file is rewritten on every write."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._records: dict[int, ServiceRecord] = {}
        self._next_id = 1
        self._loaded = False

    def load_all(self) -> list[ServiceRecord]:
        self._records = {}
        self._next_id = 1
        if self.path.exists():
            try:
                with open(self.path, newline="") as f:
                    rows = list(csv.reader(f))
            except OSError as exc:
                raise StoreError(f"Unable to read {self.path}: {exc}") from exc
            for lineno, row in enumerate(rows, start=1):
                if not row or row == CSV_FIELDS:
                    continue
                record = self._parse_row(row, lineno)
                if record.id in self._records:
                    raise StoreError(f"{self.path}:{lineno}: duplicate id {record.id}")
                self._records[record.id] = record
                self._next_id = max(self._next_id, record.id + 1)
        else:
            logger.warning("Services file %s not found, starting empty", self.path)
        self._loaded = True
        return [r.copy() for r in sorted(self._records.values(), key=lambda r: r.id)]

    def insert(self, record: ServiceRecord) -> int:
        self._ensure_loaded()
        stored = record.copy()
        stored.id = self._next_id
        self._records[stored.id] = stored
        try:
            self._flush()
        except StoreError:
            del self._records[stored.id]
            raise
        self._next_id += 1
        return stored.id

    def update(self, record: ServiceRecord) -> None:
        self._ensure_loaded()
        previous = self._records.get(record.id)
        if previous is None:
            raise StoreError(f"Service id {record.id} is not persisted")
        self._records[record.id] = record.copy()
        try:
            self._flush()
        except StoreError:
            self._records[record.id] = previous
            raise

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load_all()

    def _parse_row(self, row: list[str], lineno: int) -> ServiceRecord:
        if len(row) == 2:
            # legacy name,url layout
            return ServiceRecord(
                id=self._next_id, name=row[0].strip(), url=row[1].strip()
            )
        if len(row) != len(CSV_FIELDS):
            raise StoreError(f"{self.path}:{lineno}: expected {len(CSV_FIELDS)} columns")
        try:
            return ServiceRecord(
                id=int(row[0]),
                name=row[1].strip(),
                url=row[2].strip(),
                status=_parse_status(row[3]),
                last_checked=_parse_timestamp(row[4]),
            )
        except ValueError as exc:
            raise StoreError(f"{self.path}:{lineno}: {exc}") from exc

    def _flush(self) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", newline="") as f:
                writer = csv.writer(f)
                writer.writerow(CSV_FIELDS)
                for rec in sorted(self._records.values(), key=lambda r: r.id):
                    writer.writerow([
                        rec.id,
                        rec.name,
                        rec.url,
                        rec.status.value,
                        _format_timestamp(rec.last_checked) or "",
                    ])
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StoreError(f"Unable to write {self.path}: {exc}") from exc
