"""Keyed-upsert stores used by the sync engine."""
from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Engine,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    func,
    insert,
    select,
    update,
)

logger = logging.getLogger(__name__)


class KeyedStore(ABC):
    """Anything that can insert-or-update a row by key."""

    @abstractmethod
    def upsert(self, key: str, fields: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def count(self) -> int:
        ...


class InMemoryStore(KeyedStore):
    """Dict-backed store for tests and dry runs."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rows: Dict[str, Dict[str, Any]] = {}

    def upsert(self, key: str, fields: Dict[str, Any]) -> None:
        with self._lock:
            self._rows.setdefault(key, {}).update(fields)

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self._rows.get(key)
            return dict(row) if row is not None else None

    def count(self) -> int:
        with self._lock:
            return len(self._rows)


metadata = MetaData()

users_table = Table(
    "zkteco_users",
    metadata,
    Column("user_id", String(64), primary_key=True),
    Column("uid", Integer),
    Column("name", String(64)),
    Column("privilege", Integer, default=0),
    Column("group_id", String(16)),
    Column("card", Integer, default=0),
    Column("device_ip", String(64), nullable=True),
    Column("last_sync_at", DateTime, nullable=True),
)

attendance_table = Table(
    "attendance_records",
    metadata,
    Column("record_hash", String(32), primary_key=True),
    Column("user_id", String(64), index=True),
    Column("uid", Integer, nullable=True),
    Column("timestamp", DateTime, index=True),
    Column("date", String(10), index=True),
    Column("time", String(8)),
    Column("status", Integer, index=True),
    Column("punch_type", Integer, default=0),
    Column("device_ip", String(64), nullable=True),
    Column("last_sync_at", DateTime, nullable=True),
    Column("is_processed", Boolean, default=False),
)


class SqlStore(KeyedStore):
    """SQLAlchemy-backed store over one table keyed by its primary key column."""

    def __init__(self, engine: Engine, table: Table):
        self._engine = engine
        self._table = table
        (self._key,) = table.primary_key.columns
        self._columns = set(table.columns.keys())

    def upsert(self, key: str, fields: Dict[str, Any]) -> None:
        values = {k: v for k, v in fields.items() if k in self._columns and k != self._key.name}
        with self._engine.begin() as conn:
            exists = conn.execute(select(self._key).where(self._key == key)).first()
            if exists:
                conn.execute(update(self._table).where(self._key == key).values(**values))
            else:
                conn.execute(insert(self._table).values({self._key.name: key, **values}))

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._engine.connect() as conn:
            row = conn.execute(select(self._table).where(self._key == key)).mappings().first()
        return dict(row) if row is not None else None

    def count(self) -> int:
        with self._engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(self._table)).scalar_one()


def open_sql_stores(url: str) -> Tuple[SqlStore, SqlStore]:
    """Create tables if needed and return ``(user_store, attendance_store)``."""
    engine = create_engine(url)
    metadata.create_all(engine)
    logger.info("Opened store %s", engine.url.render_as_string(hide_password=True))
    return SqlStore(engine, users_table), SqlStore(engine, attendance_table)
