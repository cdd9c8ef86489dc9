"""Factory functions for wiring a pool, executor and session together."""

from __future__ import annotations

import os
import random
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from photoforge.config import AppSettings
from photoforge.executor import ResilientExecutor
from photoforge.logging import get_logger
from photoforge.models import SessionOptions
from photoforge.observability import RunMetricsCollector
from photoforge.pool import CredentialPool
from photoforge.progress import ProgressCallback
from photoforge.providers._base import GenerationService
from photoforge.session import GenerationSession
from photoforge.storage import CredentialStore, JsonFileCredentialStore

logger = get_logger("factory")


def create_pool(
    settings: AppSettings | None = None,
    store: CredentialStore | None = None,
    environ: Mapping[str, str] | None = None,
) -> CredentialPool:
    """Create and load a credential pool.

    The system credential is read from ``settings.system_key_env`` in
    *environ* (default ``os.environ``).  User credentials come from *store*,
    or from a JSON file at ``settings.credentials_path``.

    Returns:
        A loaded :class:`CredentialPool`.
    """
    settings = settings or AppSettings()
    env = os.environ if environ is None else environ
    system_secret = env.get(settings.system_key_env, "")
    if not system_secret:
        logger.info(
            "No system API key in $%s; using stored keys only",
            settings.system_key_env,
        )
    pool = CredentialPool(
        store if store is not None else JsonFileCredentialStore(settings.credentials_path),
        system_secret=system_secret,
    )
    pool.load()
    return pool


def create_service(settings: AppSettings | None = None) -> GenerationService:
    """Create the Gemini-backed generation service."""
    from photoforge.providers.gemini import GeminiService

    settings = settings or AppSettings()
    return GeminiService(text_model=settings.text_model)


def create_executor(
    pool: CredentialPool,
    settings: AppSettings | None = None,
    metrics: RunMetricsCollector | None = None,
) -> ResilientExecutor:
    settings = settings or AppSettings()
    return ResilientExecutor(pool, settings.executor_config(), metrics=metrics)


def create_session(
    options: SessionOptions,
    settings: AppSettings | None = None,
    *,
    pool: CredentialPool | None = None,
    service: GenerationService | None = None,
    metrics: RunMetricsCollector | None = None,
    on_progress: ProgressCallback | None = None,
    rng: random.Random | None = None,
    sleep: Callable[[float], Awaitable[Any]] | None = None,
) -> GenerationSession:
    """Create a fully wired :class:`GenerationSession`.

    Args:
        options: Session configuration.
        settings: Application settings (credentials, models, backoff).
        pool: Existing pool to share; created with :func:`create_pool`
            when omitted.
        service: Generation backend; a :class:`GeminiService` by default.
        metrics: Collector shared by the executor and the session.
        on_progress: Status-line listener.
        rng: Random source for style and fallback picks.
        sleep: Pause override, mainly for tests.

    Example::

        config = load_config("configs/example.yaml")
        session = create_session(config.session, config.settings)
        outcome = await session.start()
    """
    settings = settings or AppSettings()
    if pool is None:
        pool = create_pool(settings)
    if service is None:
        service = create_service(settings)
    executor = create_executor(pool, settings, metrics)
    return GenerationSession(
        executor,
        service,
        options,
        on_progress=on_progress,
        rng=rng,
        metrics=metrics,
        sleep=sleep,
    )
