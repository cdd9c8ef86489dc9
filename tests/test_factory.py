"""Tests for photoforge.factory — wiring helpers."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from mock_service import MockGenerationService
from photoforge.config import AppSettings
from photoforge.factory import create_executor, create_pool, create_session
from photoforge.models import CredentialOrigin, OutcomeStatus, SessionOptions
from photoforge.observability import RunMetricsCollector
from photoforge.pool import SYSTEM_CREDENTIAL_ID
from photoforge.storage import InMemoryCredentialStore


class TestCreatePool:
    """Tests for create_pool()."""

    def test_system_key_from_environment(self) -> None:
        pool = create_pool(
            AppSettings(system_key_env="MY_KEY"),
            store=InMemoryCredentialStore(),
            environ={"MY_KEY": "AIzaFromEnv00000001"},
        )
        assert [c.id for c in pool.credentials] == [SYSTEM_CREDENTIAL_ID]
        assert pool.credentials[0].origin is CredentialOrigin.SYSTEM

    def test_no_system_key(self) -> None:
        pool = create_pool(store=InMemoryCredentialStore(), environ={})
        assert len(pool) == 0

    def test_file_store_from_settings(self, tmp_path: Path) -> None:
        path = tmp_path / "creds.json"
        path.write_text(json.dumps([{"id": "k1", "secret": "AIzaStored00000001"}]))
        pool = create_pool(AppSettings(credentials_path=path), environ={})
        assert [c.id for c in pool.credentials] == ["k1"]


class TestCreateExecutor:
    def test_uses_settings(self) -> None:
        pool = create_pool(store=InMemoryCredentialStore(), environ={})
        metrics = RunMetricsCollector()
        executor = create_executor(
            pool, AppSettings(max_attempts=7, backoff_base_seconds=1.0), metrics
        )
        assert executor.config.max_attempts == 7
        assert executor.config.backoff_base_seconds == 1.0
        assert executor.metrics is metrics
        assert executor.pool is pool


class TestCreateSession:
    @pytest.mark.asyncio
    async def test_wires_a_runnable_session(self, recording_sleep) -> None:
        pool = create_pool(
            store=InMemoryCredentialStore(), environ={"PHOTOFORGE_API_KEY": "AIzaSystem000000001"}
        )
        service = MockGenerationService()
        session = create_session(
            SessionOptions(prompt="A couple", image_count=2),
            pool=pool,
            service=service,
            sleep=recording_sleep,
        )

        outcome = await session.start()

        assert outcome is not None
        assert outcome.status is OutcomeStatus.COMPLETED
        assert len(session.images) == 2
        assert session.executor.pool is pool

    def test_empty_pool_is_kept(self) -> None:
        pool = create_pool(store=InMemoryCredentialStore(), environ={})
        session = create_session(
            SessionOptions(prompt="A couple"), pool=pool, service=MockGenerationService()
        )
        assert session.executor.pool is pool
