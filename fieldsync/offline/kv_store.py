"""Local key/value stores backing the offline cache.

Values are opaque strings (the cache stores JSON). Two implementations:
an in-process dict for tests and ephemeral sessions, and a durable
single-table SQLite store that runs its blocking I/O on a worker thread.
"""
import logging
from typing import Dict, Optional, Protocol

import anyio
from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, delete, insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from fieldsync.offline.errors import StorageError

logger = logging.getLogger(__name__)

metadata = MetaData()

kv_table = Table(
    "kv",
    metadata,
    Column("k", String(255), primary_key=True),
    Column("v", Text, nullable=False),
)


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Process-local store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


def _engine_for(url: str) -> Engine:
    kwargs: dict = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url.rstrip("/").endswith("sqlite:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


class SqlKeyValueStore:
    """
    Durable store over a ``kv (k, v)`` table.

    Backend failures surface as ``StorageError``.
    """

    def __init__(self, url: Optional[str] = None, engine: Optional[Engine] = None):
        if engine is None and url is None:
            raise ValueError("url or engine is required")
        self.engine = engine if engine is not None else _engine_for(url)
        self._schema_ready = False

    def _ensure_schema(self) -> None:
        if not self._schema_ready:
            metadata.create_all(self.engine, tables=[kv_table])
            self._schema_ready = True

    def _get(self, key: str) -> Optional[str]:
        self._ensure_schema()
        with self.engine.connect() as conn:
            row = conn.execute(select(kv_table.c.v).where(kv_table.c.k == key)).first()
        return row[0] if row else None

    def _set(self, key: str, value: str) -> None:
        self._ensure_schema()
        with self.engine.begin() as conn:
            conn.execute(delete(kv_table).where(kv_table.c.k == key))
            conn.execute(insert(kv_table).values(k=key, v=value))

    def _delete(self, key: str) -> None:
        self._ensure_schema()
        with self.engine.begin() as conn:
            conn.execute(delete(kv_table).where(kv_table.c.k == key))

    async def _run(self, func, *args):
        try:
            return await anyio.to_thread.run_sync(func, *args)
        except SQLAlchemyError as exc:
            logger.error("Key/value store failure in %s", func.__name__, exc_info=True)
            raise StorageError(str(exc)) from exc

    async def get(self, key: str) -> Optional[str]:
        return await self._run(self._get, key)

    async def set(self, key: str, value: str) -> None:
        await self._run(self._set, key, value)

    async def delete(self, key: str) -> None:
        await self._run(self._delete, key)

    def close(self) -> None:
        self.engine.dispose()
