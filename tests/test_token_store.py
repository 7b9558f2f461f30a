"""Tests for secret storage and token persistence."""

import json
import os
import stat
from datetime import datetime, timedelta, timezone

from hubspot_sync.models import TokenResponse
from hubspot_sync.token_store import FileSecretStore, MemorySecretStore, TokenStore

NOW = datetime(2026, 1, 25, 12, 0, 0, tzinfo=timezone.utc)


class TestMemorySecretStore:
    def test_read_write_delete(self):
        store = MemorySecretStore()
        store.write("k", "v")
        assert store.read("k") == "v"
        store.delete("k")
        assert store.read("k") is None

    def test_delete_missing_key(self):
        MemorySecretStore().delete("absent")


class TestFileSecretStore:
    """Tests for the JSON file backed store."""

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "tokens.json"
        FileSecretStore(path).write("hubspot.access_token", "abc")

        assert FileSecretStore(path).read("hubspot.access_token") == "abc"

    def test_file_is_private(self, tmp_path):
        path = tmp_path / "tokens.json"
        FileSecretStore(path).write("k", "v")

        mode = stat.S_IMODE(os.stat(path).st_mode)
        assert mode == 0o600

    def test_missing_file_reads_empty(self, tmp_path):
        assert FileSecretStore(tmp_path / "absent.json").read("k") is None

    def test_corrupt_file_reads_empty(self, tmp_path):
        path = tmp_path / "tokens.json"
        path.write_text("{not json")

        assert FileSecretStore(path).read("k") is None

    def test_delete(self, tmp_path):
        path = tmp_path / "tokens.json"
        store = FileSecretStore(path)
        store.write("a", "1")
        store.write("b", "2")

        store.delete("a")

        assert json.loads(path.read_text()) == {"b": "2"}


class TestTokenStore:
    """Tests for the namespaced token record."""

    def test_save_computes_expiry(self, token_store, secrets):
        record = token_store.save(
            TokenResponse(access_token="a", refresh_token="r", expires_in=1800),
            now=NOW,
        )

        assert record.expires_at == NOW + timedelta(seconds=1800)
        assert token_store.expires_at == NOW + timedelta(seconds=1800)
        assert secrets.read("hubspot.access_token") == "a"
        assert secrets.read("hubspot.refresh_token") == "r"

    def test_save_without_refresh_token_keeps_stored_one(self, connected_token_store):
        record = connected_token_store.save(
            TokenResponse(access_token="new", expires_in=60), now=NOW
        )

        assert record.access_token == "new"
        assert record.refresh_token == "refresh-xyz"

    def test_save_without_access_token_drops_stored_one(
        self, connected_token_store, secrets
    ):
        record = connected_token_store.save(
            TokenResponse(refresh_token="r2", expires_in=60), now=NOW
        )

        assert record.access_token is None
        assert record.expires_at is None
        assert secrets.read("hubspot.access_token") is None
        assert secrets.read("hubspot.access_expires_at") is None
        assert connected_token_store.refresh_token == "r2"
        assert connected_token_store.has_credentials

    def test_load_empty(self, token_store):
        assert token_store.load() is None
        assert token_store.has_credentials is False

    def test_refresh_token_alone_counts_as_credentials(self, secrets, token_store):
        secrets.write("hubspot.refresh_token", "r")

        assert token_store.has_credentials is True
        record = token_store.load()
        assert record.access_token is None
        assert record.refresh_token == "r"

    def test_unparsable_expiry(self, secrets, token_store):
        secrets.write("hubspot.access_expires_at", "soon")

        assert token_store.expires_at is None

    def test_clear(self, connected_token_store, secrets):
        connected_token_store.clear()

        assert connected_token_store.load() is None
        assert secrets.read("hubspot.access_expires_at") is None

    def test_namespace(self, secrets):
        TokenStore(secrets, namespace="other").save(
            TokenResponse(access_token="a", expires_in=10), now=NOW
        )

        assert secrets.read("other.access_token") == "a"
        assert secrets.read("hubspot.access_token") is None
