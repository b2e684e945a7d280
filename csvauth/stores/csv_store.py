"""CSV-backed record store.

One file per table, a header row followed by one row per record. Every
mutation is a full read-modify-write-rewrite executed under a per-table
lock, and the rewrite lands through a staging file that atomically replaces
the live one, so readers only ever see complete files.
"""

from __future__ import annotations

import csv
import logging
import os
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Mapping

from csvauth.config import AuthConfig
from csvauth.exceptions import StorageError
from csvauth.interfaces.record_store import Row
from csvauth.models import TABLES, TableSchema
from csvauth.utils import Clock, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

_FILE_LOCK_POLL_SECONDS = 0.01


def _encode(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def _encode_mapping(values: Mapping[str, Any]) -> dict[str, str]:
    return {field: _encode(value) for field, value in values.items()}


class _TableState:
    """Parsed rows of one table plus value indexes for its indexed fields."""

    __slots__ = ("signature", "rows", "indexes")

    def __init__(self, signature: tuple[int, int, int] | None, rows: list[Row], indexed: tuple[str, ...]) -> None:
        self.signature = signature
        self.rows = rows
        self.indexes: dict[str, dict[str, list[int]]] = {field: {} for field in indexed}
        for position, row in enumerate(rows):
            for field, index in self.indexes.items():
                index.setdefault(row.get(field, ""), []).append(position)

    def select(self, where: dict[str, str]) -> list[int]:
        if not where:
            return list(range(len(self.rows)))
        candidates: Iterable[int] = range(len(self.rows))
        for field, value in where.items():
            index = self.indexes.get(field)
            if index is not None:
                candidates = index.get(value, [])
                break
        return [position for position in candidates if _matches(self.rows[position], where)]


def _matches(row: Row, where: dict[str, str]) -> bool:
    return all(field in row and row[field] == value for field, value in where.items())


class CsvRecordStore:
    """File-backed table store with atomic whole-table rewrites."""

    def __init__(
        self,
        data_dir: str | Path,
        tables: Mapping[str, TableSchema] | None = None,
        lock_timeout: float = 10.0,
        file_locking: bool = False,
        clock: Clock = time.time,
    ) -> None:
        self._data_dir = Path(data_dir)
        self._tables = dict(tables if tables is not None else TABLES)
        self._lock_timeout = lock_timeout
        self._file_locking = file_locking
        self._clock = clock
        self._locks = {name: threading.Lock() for name in self._tables}
        self._cache: dict[str, _TableState] = {}
        self._ensure_files()

    @classmethod
    def from_config(cls, config: AuthConfig, clock: Clock = time.time) -> "CsvRecordStore":
        return cls(
            config.DATA_DIR,
            lock_timeout=config.STORE_LOCK_TIMEOUT,
            file_locking=config.STORE_FILE_LOCKING,
            clock=clock,
        )

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def tables(self) -> list[str]:
        return list(self._tables)

    # ------------------------------------------------------------------ reads

    def fetch_one(self, table: str, where: Mapping[str, Any]) -> Row | None:
        state = self._load(table)
        positions = state.select(_encode_mapping(where))
        return dict(state.rows[positions[0]]) if positions else None

    def fetch_all(self, table: str, where: Mapping[str, Any] | None = None) -> list[Row]:
        state = self._load(table)
        return [dict(state.rows[position]) for position in state.select(_encode_mapping(where or {}))]

    def count(self, table: str, where: Mapping[str, Any] | None = None) -> int:
        return len(self._load(table).select(_encode_mapping(where or {})))

    def filter(self, table: str, predicate: Callable[[Row], bool]) -> list[Row]:
        rows = (dict(row) for row in self._load(table).rows)
        return [row for row in rows if predicate(row)]

    # -------------------------------------------------------------- mutations

    def insert(self, table: str, fields: Mapping[str, Any]) -> int:
        schema = self._schema(table)
        record = self._conform(schema, fields)
        with self._table_lock(table):
            return self._append(schema, self._load(table).rows, record)

    def insert_unique(self, table: str, fields: Mapping[str, Any], unique: Iterable[str]) -> int | None:
        """Insert unless a row already holds the same value in any ``unique`` field.

        The check and the append share one critical section. Returns the new
        id, or ``None`` on conflict.
        """
        schema = self._schema(table)
        record = self._conform(schema, fields)
        unique = tuple(unique)
        self._check_columns(schema, dict.fromkeys(unique))
        with self._table_lock(table):
            state = self._load(table)
            for field in unique:
                if state.select({field: record[field]}):
                    return None
            return self._append(schema, state.rows, record)

    def update(self, table: str, patch: Mapping[str, Any], where: Mapping[str, Any]) -> bool:
        schema = self._schema(table)
        self._check_columns(schema, patch)
        changes = _encode_mapping(patch)
        if "updated_at" in schema.fields and "updated_at" not in changes:
            changes["updated_at"] = format_timestamp(self._clock())
        criteria = _encode_mapping(where)
        with self._table_lock(table):
            state = self._load(table)
            matched = set(state.select(criteria))
            if not matched:
                return False
            rows = [
                {**row, **changes} if position in matched else row
                for position, row in enumerate(state.rows)
            ]
            self._write_rows(schema, rows)
        return True

    def modify(
        self,
        table: str,
        where: Mapping[str, Any],
        change: Callable[[Row], Mapping[str, Any]],
    ) -> int:
        """Patch each matching row with ``change(row)`` inside one critical section.

        Use when the new values depend on the current ones (counters).
        Returns the number of rows patched.
        """
        schema = self._schema(table)
        criteria = _encode_mapping(where)
        with self._table_lock(table):
            state = self._load(table)
            matched = set(state.select(criteria))
            if not matched:
                return 0
            rows = []
            for position, row in enumerate(state.rows):
                if position in matched:
                    patch = change(dict(row))
                    self._check_columns(schema, patch)
                    changes = _encode_mapping(patch)
                    if "updated_at" in schema.fields and "updated_at" not in changes:
                        changes["updated_at"] = format_timestamp(self._clock())
                    row = {**row, **changes}
                rows.append(row)
            self._write_rows(schema, rows)
        return len(matched)

    def delete(self, table: str, where: Mapping[str, Any]) -> int:
        schema = self._schema(table)
        criteria = _encode_mapping(where)
        with self._table_lock(table):
            state = self._load(table)
            doomed = set(state.select(criteria))
            if not doomed:
                return 0
            survivors = [row for position, row in enumerate(state.rows) if position not in doomed]
            self._write_rows(schema, survivors)
        return len(doomed)

    def cleanup(self, table: str, time_field: str, cutoff: float) -> int:
        """Remove rows whose ``time_field`` is older than ``cutoff`` (epoch seconds)."""
        schema = self._schema(table)
        if time_field not in schema.fields:
            raise ValueError(f"Table '{table}' has no column '{time_field}'")
        with self._table_lock(table):
            rows = self._load(table).rows
            survivors = []
            for row in rows:
                stamp = parse_timestamp(row.get(time_field))
                if stamp is None or stamp >= cutoff:
                    survivors.append(row)
            removed = len(rows) - len(survivors)
            if removed:
                self._write_rows(schema, survivors)
        if removed:
            logger.info("Removed %d rows from %s older than %s", removed, table, format_timestamp(cutoff))
        return removed

    # ---------------------------------------------------------------- helpers

    def _schema(self, table: str) -> TableSchema:
        try:
            return self._tables[table]
        except KeyError:
            raise ValueError(f"Unknown table '{table}'") from None

    def _path(self, table: str) -> Path:
        return self._data_dir / f"{table}.csv"

    def _check_columns(self, schema: TableSchema, fields: Mapping[str, Any]) -> None:
        unknown = sorted(set(fields) - set(schema.fields))
        if unknown:
            raise ValueError(f"Unknown column(s) for table '{schema.name}': {', '.join(unknown)}")

    def _append(self, schema: TableSchema, rows: list[Row], record: Row) -> int:
        """Assign the next id to ``record`` and rewrite the table with it; caller holds the lock."""
        new_id = max((int(row["id"]) for row in rows if row.get("id", "").isdigit()), default=0) + 1
        record["id"] = str(new_id)
        if "created_at" in schema.fields and not record["created_at"]:
            record["created_at"] = format_timestamp(self._clock())
        self._write_rows(schema, [*rows, record])
        return new_id

    def _conform(self, schema: TableSchema, fields: Mapping[str, Any]) -> Row:
        self._check_columns(schema, fields)
        return {field: _encode(fields.get(field)) for field in schema.fields}

    def _ensure_files(self) -> None:
        try:
            self._data_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create data directory {self._data_dir}") from exc
        for table, schema in self._tables.items():
            if self._path(table).exists():
                continue
            with self._table_lock(table):
                if not self._path(table).exists():
                    self._write_rows(schema, [])

    def _load(self, table: str) -> _TableState:
        schema = self._schema(table)
        path = self._path(table)
        try:
            with open(path, newline="", encoding="utf-8") as handle:
                stat = os.fstat(handle.fileno())
                signature = (stat.st_ino, stat.st_mtime_ns, stat.st_size)
                cached = self._cache.get(table)
                if cached is not None and cached.signature == signature:
                    return cached
                rows = self._parse(schema, csv.reader(handle))
        except FileNotFoundError:
            return _TableState(None, [], schema.indexed)
        except OSError as exc:
            logger.error("Failed to read table %s: %s", table, exc)
            raise StorageError(f"Failed to read table '{table}'") from exc
        except (UnicodeDecodeError, csv.Error) as exc:
            logger.error("Table %s is not valid CSV: %s", table, exc)
            raise StorageError(f"Failed to parse table '{table}'") from exc
        state = _TableState(signature, rows, schema.indexed)
        self._cache[table] = state
        return state

    def _parse(self, schema: TableSchema, reader: Iterator[list[str]]) -> list[Row]:
        header = next(reader, None)
        if not header:
            return []
        if tuple(header) != schema.fields:
            # Older or foreign header: read by column name, rewrite with the current schema.
            logger.info(
                "Header of %s differs from schema v%d; mapping columns by name",
                schema.name,
                schema.version,
            )
        rows: list[Row] = []
        for line_number, values in enumerate(reader, start=2):
            if not values:
                continue
            if len(values) != len(header):
                logger.warning("Skipping malformed row %d in %s", line_number, schema.name)
                continue
            record = dict(zip(header, values))
            rows.append({field: record.get(field, "") for field in schema.fields})
        return rows

    def _write_rows(self, schema: TableSchema, rows: list[Row]) -> None:
        path = self._path(schema.name)
        staging = path.with_name(path.name + ".tmp")
        try:
            with open(staging, "w", newline="", encoding="utf-8") as handle:
                writer = csv.writer(handle)
                writer.writerow(schema.fields)
                for row in rows:
                    writer.writerow([row.get(field, "") for field in schema.fields])
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(staging, path)
        except OSError as exc:
            logger.error("Failed to rewrite table %s: %s", schema.name, exc)
            self._discard_staging(staging)
            raise StorageError(f"Failed to write table '{schema.name}'") from exc
        finally:
            self._cache.pop(schema.name, None)

    def _discard_staging(self, staging: Path) -> None:
        try:
            staging.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove staging file %s: %s", staging, exc)

    @contextmanager
    def _table_lock(self, table: str) -> Iterator[None]:
        lock = self._locks[table]
        if not lock.acquire(timeout=self._lock_timeout):
            raise StorageError(f"Timed out waiting for lock on table '{table}'")
        try:
            if self._file_locking:
                with self._file_lock(table):
                    yield
            else:
                yield
        finally:
            lock.release()

    @contextmanager
    def _file_lock(self, table: str) -> Iterator[None]:
        import fcntl

        lock_path = self._data_dir / f"{table}.csv.lock"
        try:
            handle = open(lock_path, "a")
        except OSError as exc:
            raise StorageError(f"Cannot open lock file for table '{table}'") from exc
        try:
            deadline = time.monotonic() + self._lock_timeout
            while True:
                try:
                    fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        raise StorageError(f"Timed out waiting for lock on table '{table}'") from None
                    time.sleep(_FILE_LOCK_POLL_SECONDS)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()
