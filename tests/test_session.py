"""
Tests for credential providers and the orchestrator factory.
"""

import asyncio
from datetime import datetime, timedelta, timezone

from google.oauth2.credentials import Credentials

from lifesync.config import get_settings
from lifesync.models import StorageMode
from lifesync.orchestrator import _flush_on_exit, create_app_components, register_exit_flush
from lifesync.services import (
    GoogleCredentialProvider,
    InMemoryLocalStore,
    InMemoryRemoteStore,
    StaticCredentialProvider,
)
from lifesync.services.session import DRIVE_SCOPES
from lifesync.sync import SyncEngine

from conftest import read_remote, tasks_payload


def utc_naive_now() -> datetime:
    """google-auth compares expiry as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TestStaticCredentialProvider:
    def test_sign_in_and_out(self):
        provider = StaticCredentialProvider()
        assert not provider.is_authenticated

        provider.sign_in("token")
        assert provider.is_authenticated
        assert provider.credential == "token"

        provider.sign_out()
        assert provider.credential is None


class TestGoogleCredentialProvider:
    def test_valid_token(self):
        credentials = Credentials(token="abc", expiry=utc_naive_now() + timedelta(hours=1))
        provider = GoogleCredentialProvider(credentials)

        assert provider.is_authenticated
        assert provider.credential == "abc"

    def test_expired_token_counts_as_signed_out(self):
        credentials = Credentials(token="abc", expiry=utc_naive_now() - timedelta(hours=1))
        provider = GoogleCredentialProvider(credentials)

        assert not provider.is_authenticated
        assert provider.credential is None

    def test_clear(self):
        provider = GoogleCredentialProvider(Credentials(token="abc"))
        provider.clear()
        assert not provider.is_authenticated

    def test_token_without_expiry_counts_as_signed_out(self):
        provider = GoogleCredentialProvider(Credentials(token="abc"))

        assert not provider.is_authenticated
        assert provider.credential is None

    def test_from_authorized_user_info(self):
        expiry = utc_naive_now() + timedelta(hours=1)
        provider = GoogleCredentialProvider.from_authorized_user_info({
            "token": "abc",
            "refresh_token": "refresh",
            "client_id": "client",
            "client_secret": "secret",
            "expiry": expiry.strftime("%Y-%m-%dT%H:%M:%SZ"),
        })
        assert provider.credential == "abc"

    def test_authorized_user_info_without_expiry_is_signed_out(self):
        provider = GoogleCredentialProvider.from_authorized_user_info({
            "token": "abc",
            "refresh_token": "refresh",
            "client_id": "client",
            "client_secret": "secret",
        })
        assert not provider.is_authenticated

    def test_requests_only_drive_file_scope(self):
        assert DRIVE_SCOPES == ["https://www.googleapis.com/auth/drive.file"]


class TestOrchestrator:
    """Tests for component wiring and the exit hook."""

    def test_defaults_start_signed_out(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LIFESYNC_DATA_DIR", str(tmp_path))
        get_settings.cache_clear()

        engine = create_app_components()

        assert isinstance(engine, SyncEngine)
        assert engine.mode == StorageMode.LOCAL
        get_settings.cache_clear()

    def test_exit_flush_pushes_pending_write(self):
        """Test that a pending debounced write reaches remote at exit."""

        remote = InMemoryRemoteStore()
        engine = create_app_components(
            credentials=StaticCredentialProvider("token"),
            local_store=InMemoryLocalStore(),
            remote_store=remote,
        )

        async def edit():
            await engine.refresh_session()
            await engine.save(tasks_payload({"id": "t1"}))

        asyncio.run(edit())
        assert engine.has_pending_write

        _flush_on_exit(engine)

        assert read_remote(remote).payload == tasks_payload({"id": "t1"})
        assert not engine.has_pending_write

    def test_register_exit_flush_can_be_removed(self):
        engine = create_app_components(
            local_store=InMemoryLocalStore(),
            remote_store=InMemoryRemoteStore(),
        )
        unregister = register_exit_flush(engine)
        unregister()
