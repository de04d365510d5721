from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any


def _import_psycopg() -> Any:
    try:
        import psycopg  # type: ignore
    except ImportError as exc:
        raise RuntimeError("psycopg is required for PostgreSQL backends; install psycopg[binary]") from exc
    return psycopg


class PostgresConnectionProvider:
    """Hold one autocommit PostgreSQL connection for the life of the process.

    The connection is opened on first use and reopened if the server closed it.
    """

    def __init__(self, dsn: str) -> None:
        if not dsn.strip():
            raise ValueError("POSTGRES_DSN must not be empty")
        self._dsn = dsn.strip()
        self._conn: Any | None = None
        self._lock = threading.Lock()

    def connection(self) -> Any:
        with self._lock:
            if self._conn is None or getattr(self._conn, "closed", False):
                psycopg = _import_psycopg()
                self._conn = psycopg.connect(self._dsn, autocommit=True)
            return self._conn

    def run(self, fn: Callable[[Any], Any]) -> Any:
        return fn(self.connection())

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
