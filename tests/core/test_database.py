"""
Tests for core PostgreSQL connection management.
"""

from unittest.mock import MagicMock, patch

import pytest

from src.core.database import PostgresConnection

CONNECTION_ARGS = {
    "host": "localhost",
    "port": 5432,
    "database": "test_db",
    "user": "test_user",
    "password": "test_password",
}


@pytest.fixture
def mock_connection():
    connection = MagicMock()
    connection.closed = 0
    with patch("src.core.database.psycopg2.connect", return_value=connection) as mock_connect:
        connection.mock_connect = mock_connect
        yield connection


@pytest.fixture
def mock_cursor(mock_connection):
    cursor = MagicMock()
    mock_connection.cursor.return_value = cursor
    return cursor


@pytest.fixture
def conn(mock_connection):
    return PostgresConnection(**CONNECTION_ARGS)


class TestConnection:
    """Tests for connection setup and teardown."""

    def test_initialization_success(self, conn, mock_connection):
        """Connection is opened with the configured parameters."""
        mock_connection.mock_connect.assert_called_once_with(**CONNECTION_ARGS, connect_timeout=10)
        assert conn.connection == mock_connection
        assert conn.database == "test_db"

    @patch("src.core.database.psycopg2.connect")
    def test_initialization_failure(self, mock_connect):
        mock_connect.side_effect = Exception("Connection failed")

        with pytest.raises(Exception, match="Connection failed"):
            PostgresConnection(**CONNECTION_ARGS)

    def test_close_connection(self, conn, mock_connection):
        conn.close()
        mock_connection.close.assert_called_once()

    def test_close_connection_forgets_session(self, conn):
        conn.close()
        assert conn.connection is None

    def test_close_when_no_connection(self, conn):
        conn.connection = None
        conn.close()

    def test_reconnects_after_server_drop(self, conn, mock_connection, mock_cursor):
        mock_connection.closed = 2

        with conn.get_cursor() as cursor:
            cursor.execute("SELECT 1")

        assert mock_connection.mock_connect.call_count == 2
        mock_cursor.execute.assert_called_once_with("SELECT 1")

    def test_reconnects_after_close(self, conn, mock_connection, mock_cursor):
        conn.close()
        mock_cursor.fetchone.return_value = (1,)

        assert conn.check_health() is True
        assert mock_connection.mock_connect.call_count == 2

    def test_open_connection_is_reused(self, conn, mock_connection, mock_cursor):
        conn.execute_query("SELECT 1")
        conn.execute_query("SELECT 2")

        mock_connection.mock_connect.assert_called_once()


class TestCursor:
    """Tests for the cursor context manager."""

    def test_commit_on_success(self, conn, mock_connection, mock_cursor):
        with conn.get_cursor() as cursor:
            cursor.execute("CREATE TABLE test (id INT)")
            cursor.execute("INSERT INTO test VALUES (1)")

        assert mock_cursor.execute.call_count == 2
        mock_connection.commit.assert_called_once()
        mock_cursor.close.assert_called_once()

    def test_rollback_on_error(self, conn, mock_connection, mock_cursor):
        mock_cursor.execute.side_effect = Exception("Query failed")

        with pytest.raises(Exception, match="Query failed"):  # noqa: SIM117
            with conn.get_cursor() as cursor:
                cursor.execute("BAD SQL")

        mock_connection.rollback.assert_called_once()
        mock_connection.commit.assert_not_called()


class TestQueries:
    """Tests for query helpers."""

    def test_execute_query(self, conn, mock_cursor):
        assert conn.execute_query("UPDATE t SET x = %(x)s", {"x": 1}) is True
        mock_cursor.execute.assert_called_once_with("UPDATE t SET x = %(x)s", {"x": 1})

    def test_execute_query_without_params(self, conn, mock_cursor):
        assert conn.execute_query("SELECT 1") is True
        mock_cursor.execute.assert_called_once_with("SELECT 1", {})

    def test_execute_query_failure(self, conn, mock_cursor):
        mock_cursor.execute.side_effect = Exception("Query error")
        assert conn.execute_query("BAD QUERY") is False

    def test_fetch_all_returns_dicts(self, conn, mock_cursor):
        mock_cursor.description = [("entity_id",), ("count",)]
        mock_cursor.fetchall.return_value = [("alice", 3), ("bob", 1)]

        rows = conn.fetch_all("SELECT entity_id, count FROM t WHERE x = %s", ("y",))

        assert rows == [{"entity_id": "alice", "count": 3}, {"entity_id": "bob", "count": 1}]
        mock_cursor.execute.assert_called_once_with(
            "SELECT entity_id, count FROM t WHERE x = %s", ("y",)
        )

    def test_fetch_all_propagates_errors(self, conn, mock_cursor):
        mock_cursor.execute.side_effect = Exception("relation does not exist")

        with pytest.raises(Exception, match="relation does not exist"):
            conn.fetch_all("SELECT * FROM missing")

    def test_fetch_one(self, conn, mock_cursor):
        mock_cursor.description = [("total",)]
        mock_cursor.fetchone.return_value = (12,)

        assert conn.fetch_one("SELECT COUNT(*) AS total FROM t") == {"total": 12}

    def test_fetch_one_no_row(self, conn, mock_cursor):
        mock_cursor.fetchone.return_value = None
        assert conn.fetch_one("SELECT * FROM t WHERE false") is None


class TestHealth:
    """Tests for the health check."""

    def test_healthy(self, conn, mock_cursor):
        mock_cursor.fetchone.return_value = (1,)

        assert conn.check_health() is True
        mock_cursor.execute.assert_called_once_with("SELECT 1")

    def test_unexpected_result(self, conn, mock_cursor):
        mock_cursor.fetchone.return_value = (0,)
        assert conn.check_health() is False

    def test_connection_lost(self, conn, mock_connection):
        mock_connection.cursor.side_effect = Exception("Connection lost")
        assert conn.check_health() is False
