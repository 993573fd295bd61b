"""
PostgreSQL session handling for the behavioral engine stores.

A single psycopg2 connection per store, reopened on demand after the server
drops it, with transactional cursors and row-to-dict query helpers.
"""

from contextlib import contextmanager
from typing import Any

import psycopg2
import structlog

logger = structlog.get_logger(__name__)


class PostgresConnection:
    """Owns one PostgreSQL connection and scopes every statement to a transaction"""

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
    ):
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.connection = None
        self._connect()

    def _connect(self):
        try:
            self.connection = psycopg2.connect(
                host=self.host,
                port=self.port,
                database=self.database,
                user=self.user,
                password=self.password,
                connect_timeout=10,
            )
            logger.info("Store connected", host=self.host, database=self.database)
        except Exception as e:
            logger.error("Store connection failed", host=self.host, error=str(e))
            raise

    def _ensure_open(self):
        # psycopg2 sets `closed` to a non-zero value once the server drops the session
        if self.connection is None or self.connection.closed:
            logger.warning("Store connection lost, reconnecting", database=self.database)
            self._connect()

    @contextmanager
    def get_cursor(self):
        """Yield a cursor whose statements commit together, or roll back on error"""
        self._ensure_open()
        cursor = self.connection.cursor()
        try:
            yield cursor
            self.connection.commit()
        except Exception as e:
            self.connection.rollback()
            logger.error("Store transaction rolled back", error=str(e))
            raise
        finally:
            cursor.close()

    def execute_query(self, query: str, params: dict[str, Any] | None = None) -> bool:
        """Run one write statement; False if it failed"""
        try:
            with self.get_cursor() as cursor:
                cursor.execute(query, params or {})
            return True
        except Exception as e:
            logger.error("Store write failed", error=str(e), query=query)
            return False

    def fetch_all(self, query: str, params: Any = None) -> list[dict[str, Any]]:
        """Run a query and return every row as a column -> value dict

        Errors propagate so callers decide how to degrade.
        """
        with self.get_cursor() as cursor:
            cursor.execute(query, params or {})
            columns = [desc[0] for desc in cursor.description]
            return [dict(zip(columns, row, strict=False)) for row in cursor.fetchall()]

    def fetch_one(self, query: str, params: Any = None) -> dict[str, Any] | None:
        with self.get_cursor() as cursor:
            cursor.execute(query, params or {})
            row = cursor.fetchone()
            if row is None:
                return None
            columns = [desc[0] for desc in cursor.description]
            return dict(zip(columns, row, strict=False))

    def check_health(self) -> bool:
        try:
            with self.get_cursor() as cursor:
                cursor.execute("SELECT 1")
                return cursor.fetchone()[0] == 1
        except Exception as e:
            logger.error("Store health check failed", error=str(e))
            return False

    def close(self):
        if self.connection:
            self.connection.close()
            self.connection = None
            logger.info("Store connection closed", database=self.database)
