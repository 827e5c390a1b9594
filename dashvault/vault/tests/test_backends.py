"""Tests for the JSON file and PostgreSQL record backends."""

import stat
import threading
from contextlib import contextmanager
from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest

from dashvault.errors import TamperedOrCorrupt
from dashvault.vault.backends import JsonFileBackend, PostgresBackend
from dashvault.vault.models import EncryptedSecretRecord


def _record(tag: str = "aa") -> EncryptedSecretRecord:
    return EncryptedSecretRecord(
        initialization_vector="00" * 12,
        authentication_tag=tag * 16,
        ciphertext="beef",
    )


class TestJsonFileBackend:
    def test_put_get(self, tmp_path):
        backend = JsonFileBackend(tmp_path / "secrets.json")
        backend.put("t1", _record())
        got = backend.get("t1")
        assert got.ciphertext == "beef"
        assert backend.exists("t1")
        assert not backend.exists("t2")
        assert backend.get("t2") is None

    def test_missing_file_is_empty(self, tmp_path):
        backend = JsonFileBackend(tmp_path / "nope" / "secrets.json")
        assert backend.get("t1") is None
        assert backend.delete("t1") is False

    def test_file_mode_is_owner_only(self, tmp_path):
        path = tmp_path / "secrets.json"
        JsonFileBackend(path).put("t1", _record())
        mode = path.stat().st_mode
        assert mode & stat.S_IRGRP == 0
        assert mode & stat.S_IROTH == 0

    def test_no_temp_files_left(self, tmp_path):
        backend = JsonFileBackend(tmp_path / "secrets.json")
        backend.put("t1", _record())
        backend.put("t2", _record("bb"))
        assert [p.name for p in tmp_path.iterdir()] == ["secrets.json"]

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "secrets.json"
        path.write_text("{not json")
        with pytest.raises(TamperedOrCorrupt):
            JsonFileBackend(path).get("t1")

    def test_malformed_entry(self, tmp_path):
        path = tmp_path / "secrets.json"
        path.write_text('{"t1": {"ciphertext": "beef"}}')
        with pytest.raises(TamperedOrCorrupt):
            JsonFileBackend(path).get("t1")

    def test_failed_write_keeps_old_file(self, tmp_path):
        path = tmp_path / "secrets.json"
        backend = JsonFileBackend(path)
        backend.put("t1", _record())
        before = path.read_text()
        with patch("dashvault.vault.backends.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                backend.put("t2", _record("bb"))
        assert path.read_text() == before
        assert [p.name for p in tmp_path.iterdir()] == ["secrets.json"]

    def test_concurrent_writers_lose_nothing(self, tmp_path):
        path = tmp_path / "secrets.json"
        backends = [JsonFileBackend(path) for _ in range(4)]

        def write(i):
            backends[i % 4].put(f"t{i}", _record())

        threads = [threading.Thread(target=write, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert all(JsonFileBackend(path).exists(f"t{i}") for i in range(20))

    def test_delete(self, tmp_path):
        backend = JsonFileBackend(tmp_path / "secrets.json")
        backend.put("t1", _record())
        assert backend.delete("t1") is True
        assert not backend.exists("t1")


@pytest.fixture
def mock_conn():
    conn = MagicMock()
    cursor = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor

    @contextmanager
    def fake_get_connection(autocommit=False):
        yield conn

    with patch("dashvault.db.connection.get_connection", fake_get_connection):
        yield conn, cursor


class TestPostgresBackend:
    def test_get_row(self, mock_conn):
        _, cursor = mock_conn
        created = datetime(2025, 1, 1, tzinfo=UTC)
        cursor.fetchone.return_value = ("00" * 12, "aa" * 16, "beef", created)
        record = PostgresBackend("baas_credentials").get("t1")
        assert record.ciphertext == "beef"
        assert record.created_at == created
        sql, params = cursor.execute.call_args[0]
        assert "FROM tenant_secrets" in sql
        assert params == ("baas_credentials", "t1")

    def test_get_missing(self, mock_conn):
        _, cursor = mock_conn
        cursor.fetchone.return_value = None
        assert PostgresBackend("baas_credentials").get("t1") is None

    def test_put_upserts(self, mock_conn):
        _, cursor = mock_conn
        PostgresBackend("database_connections").put("t1", _record())
        sql, params = cursor.execute.call_args[0]
        assert "ON CONFLICT (store, tenant_id)" in sql
        assert params[:5] == ("database_connections", "t1", "00" * 12, "aa" * 16, "beef")

    def test_exists(self, mock_conn):
        _, cursor = mock_conn
        cursor.fetchone.return_value = (1,)
        assert PostgresBackend("baas_credentials").exists("t1") is True
        cursor.fetchone.return_value = None
        assert PostgresBackend("baas_credentials").exists("t1") is False

    def test_delete(self, mock_conn):
        _, cursor = mock_conn
        cursor.rowcount = 1
        assert PostgresBackend("baas_credentials").delete("t1") is True
        cursor.rowcount = 0
        assert PostgresBackend("baas_credentials").delete("t1") is False
