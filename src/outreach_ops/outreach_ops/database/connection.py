from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from mysql.connector import pooling

logger = logging.getLogger(__name__)

# Connection bound by an open transaction() in the current context.
_tx_conn: ContextVar[Optional[Any]] = ContextVar("tx_conn", default=None)


@dataclass
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str
    pool_size: int = 5
    pool_name: str = "outreach_ops"

    @classmethod
    def from_mapping(cls, db_config: dict) -> "DBConfig":
        """Build from a settings DB_CONFIG dict; missing keys fall back to a local server."""

        return cls(
            host=str(db_config.get("host", "localhost")),
            port=int(db_config.get("port", 3306)),
            user=str(db_config.get("user", "root")),
            password=str(db_config.get("password", "")),
            database=str(db_config.get("database", "outreach_ops")),
            pool_size=int(db_config.get("pool_size", 5)),
        )


class DatabaseConnection:
    """Singleton-like DB connection factory backed by one connection pool per process.

    Outside a transaction() each connect() hands out a pooled connection that the
    caller closes (returns to the pool). Inside a transaction() the bound
    connection is reused so several repository calls commit or roll back together.
    """

    _instance: Optional["DatabaseConnection"] = None

    def __init__(self, config: DBConfig):
        self._config = config
        self._pool: Optional[pooling.MySQLConnectionPool] = None

    @classmethod
    def get_instance(cls, config: DBConfig) -> "DatabaseConnection":
        if cls._instance is None:
            cls._instance = DatabaseConnection(config)
        return cls._instance

    def _get_pool(self) -> pooling.MySQLConnectionPool:
        if self._pool is None:
            self._pool = pooling.MySQLConnectionPool(
                pool_name=self._config.pool_name,
                pool_size=int(self._config.pool_size),
                host=self._config.host,
                port=int(self._config.port),
                user=self._config.user,
                password=self._config.password,
                database=self._config.database,
                time_zone="+00:00",
            )
            logger.info(
                "Connection pool %s ready (%s@%s:%s/%s, size=%s)",
                self._config.pool_name,
                self._config.user,
                self._config.host,
                self._config.port,
                self._config.database,
                self._config.pool_size,
            )
        return self._pool

    def connect(self):
        return self._get_pool().get_connection()

    def current(self):
        """Connection of the enclosing transaction(), or None."""
        return _tx_conn.get()

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        """Run the enclosed repository calls on one connection and one transaction.

        Nested use joins the outer transaction.
        """

        outer = _tx_conn.get()
        if outer is not None:
            yield outer
            return

        conn = self.connect()
        token = _tx_conn.set(conn)
        try:
            conn.start_transaction(isolation_level="READ COMMITTED")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            _tx_conn.reset(token)
            conn.close()
