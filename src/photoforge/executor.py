"""Resilient call executor: one logical call, many credentials.

Given an async operation parametrized only by a credential secret, the
executor walks the pool's usable credentials in order and tries each one
up to ``max_attempts`` times:

* success returns immediately, promoting an ``unvalidated`` key to
  ``active``;
* an invalid-key error marks the key ``invalid`` and moves on;
* a safety/policy rejection aborts the whole call, since no other key
  would get a different answer for the same request;
* a rate-limit error backs off (``backoff_base_seconds × attempt`` or the
  provider's retry hint) and retries the same key, marking it
  ``exhausted`` once its attempts run out;
* anything else moves on without blaming the key.

When no key succeeds the call fails with
:class:`~photoforge.errors.AllCredentialsFailedError`.
"""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, Field

from photoforge.errors import (
    AllCredentialsFailedError,
    CallCancelledError,
    PolicyRejectedError,
)
from photoforge.logging import get_logger
from photoforge.models import Credential, CredentialStatus
from photoforge.observability import RunMetricsCollector
from photoforge.pool import CredentialPool
from photoforge.progress import ProgressCallback, emit_progress

logger = get_logger("executor")

T = TypeVar("T")

Operation = Callable[[str], Awaitable[T]]
Sleeper = Callable[[float], Awaitable[Any]]

# Substrings the provider uses to signal each failure class.
INVALID_CREDENTIAL_MARKER = "API key not valid"
POLICY_REJECTION_MARKER = "SAFETY_BLOCK"
RATE_LIMIT_MARKERS = ("429", "RESOURCE_EXHAUSTED")
RETRY_INFO_TYPE = "type.googleapis.com/google.rpc.RetryInfo"

NO_USABLE_CREDENTIALS_MESSAGE = (
    "No active API keys. Add your own API key to keep generating."
)
ALL_CREDENTIALS_FAILED_MESSAGE = (
    "All available API keys failed or ran out of quota. "
    "Check your keys or try again later."
)
POLICY_REJECTED_MESSAGE = (
    "The request was blocked by the provider's safety policy. "
    "Try changing your prompt."
)


class ErrorKind(str, Enum):
    """How a failed attempt is handled."""

    INVALID_CREDENTIAL = "invalid_credential"
    POLICY_REJECTED = "policy_rejected"
    RATE_LIMITED = "rate_limited"
    OTHER = "other"


def classify_error(exc: BaseException) -> ErrorKind:
    """Map a provider error to an :class:`ErrorKind` by its message."""
    message = str(exc)
    if INVALID_CREDENTIAL_MARKER in message:
        return ErrorKind.INVALID_CREDENTIAL
    if POLICY_REJECTION_MARKER in message:
        return ErrorKind.POLICY_REJECTED
    if any(marker in message for marker in RATE_LIMIT_MARKERS):
        return ErrorKind.RATE_LIMITED
    return ErrorKind.OTHER


def parse_retry_delay(message: str) -> int | None:
    """Extract the provider's retry hint (whole seconds) from an error message.

    The message may embed a JSON body from the first ``{`` onwards; the
    hint is the ``retryDelay`` (e.g. ``"17s"``) of its ``RetryInfo``
    detail.  Any parse problem yields None.
    """
    start = message.find("{")
    if start == -1:
        return None
    try:
        payload, _end = json.JSONDecoder().raw_decode(message[start:])
        body = payload.get("error", payload)
        for detail in body.get("details") or []:
            if not isinstance(detail, dict) or detail.get("@type") != RETRY_INFO_TYPE:
                continue
            match = re.match(r"\s*(\d+)", str(detail.get("retryDelay", "")))
            if match:
                return int(match.group(1))
    except (ValueError, AttributeError, TypeError) as exc:
        logger.debug("Could not parse retryDelay from error message: %s", exc)
    return None


class ExecutorConfig(BaseModel):
    """Configuration for the resilient executor.

    Attributes:
        max_attempts: Tries per credential before it is marked exhausted.
        backoff_base_seconds: Default backoff is this times the attempt
            number, unless the provider supplies a retry hint.
    """

    max_attempts: int = Field(3, ge=1)
    backoff_base_seconds: float = Field(20.0, ge=0)


class ResilientExecutor:
    """Runs single remote operations across the credential pool.

    Args:
        pool: Credential source and status sink.
        config: Attempt and backoff settings.
        sleep: Default async sleep used for backoff.  Sessions pass their
            own interruptible sleep per call instead.
        metrics: Optional run metrics collector.
    """

    def __init__(
        self,
        pool: CredentialPool,
        config: ExecutorConfig | None = None,
        sleep: Sleeper = asyncio.sleep,
        metrics: RunMetricsCollector | None = None,
    ) -> None:
        self.pool = pool
        self._config = config or ExecutorConfig()
        self._sleep = sleep
        self.metrics = metrics

    @property
    def config(self) -> ExecutorConfig:
        return self._config

    def backoff_delay(self, attempt: int, message: str) -> float:
        """Seconds to wait before retry number *attempt* + 1."""
        hint = parse_retry_delay(message)
        if hint is not None:
            return float(hint)
        return self._config.backoff_base_seconds * attempt

    def _mark(self, credential: Credential, status: CredentialStatus) -> None:
        self.pool.set_status(credential.id, status)
        if self.metrics is not None:
            self.metrics.record_status_change(status.value)

    async def execute(
        self,
        operation: Operation[T],
        on_progress: ProgressCallback | None = None,
        *,
        sleep: Sleeper | None = None,
        cancelled: Callable[[], bool] | None = None,
    ) -> T:
        """Run *operation* until one credential succeeds.

        Args:
            operation: Async callable taking a credential secret.
            on_progress: Optional status-line listener (best-effort).
            sleep: Override for the backoff sleep.
            cancelled: Polled after each backoff; when it returns True the
                call is abandoned.

        Returns:
            The first successful result.

        Raises:
            AllCredentialsFailedError: No usable credential, or every
                credential failed.
            PolicyRejectedError: The provider rejected the request content.
            CallCancelledError: *cancelled* reported True after a backoff.
        """
        candidates = self.pool.usable()
        if not candidates:
            raise AllCredentialsFailedError(NO_USABLE_CREDENTIALS_MESSAGE)

        do_sleep = sleep or self._sleep
        max_attempts = self._config.max_attempts

        for candidate in candidates:
            attempts = 0
            while attempts < max_attempts:
                emit_progress(on_progress, f"Using credential {candidate.masked}")
                if self.metrics is not None:
                    self.metrics.record_attempt(candidate.masked)
                try:
                    result = await operation(candidate.secret)
                except Exception as exc:
                    message = str(exc)
                    kind = classify_error(exc)

                    if kind is ErrorKind.INVALID_CREDENTIAL:
                        logger.warning(
                            "API key %s is invalid.",
                            candidate.masked,
                            extra={"credential": candidate.masked},
                        )
                        self._mark(candidate, CredentialStatus.INVALID)
                        break

                    if kind is ErrorKind.POLICY_REJECTED:
                        logger.error(
                            "Request blocked by safety settings (key %s): %s",
                            candidate.masked,
                            message,
                        )
                        raise PolicyRejectedError(POLICY_REJECTED_MESSAGE) from exc

                    if kind is ErrorKind.RATE_LIMITED:
                        attempts += 1
                        if attempts >= max_attempts:
                            logger.error(
                                "API key %s still rate limited after %d attempts.",
                                candidate.masked,
                                attempts,
                                extra={"credential": candidate.masked, "attempt": attempts},
                            )
                            self._mark(candidate, CredentialStatus.EXHAUSTED)
                            break

                        delay = self.backoff_delay(attempts, message)
                        logger.warning(
                            "API key %s hit a rate limit (attempt %d/%d); "
                            "retrying in %s s.",
                            candidate.masked,
                            attempts,
                            max_attempts,
                            delay,
                            extra={
                                "credential": candidate.masked,
                                "attempt": attempts,
                                "delay_seconds": delay,
                            },
                        )
                        emit_progress(
                            on_progress,
                            f"Quota limit reached. Retrying in {delay:g} seconds...",
                        )
                        if self.metrics is not None:
                            self.metrics.record_backoff(delay)
                        await do_sleep(delay)
                        if cancelled is not None and cancelled():
                            raise CallCancelledError(
                                "Call cancelled while waiting to retry"
                            ) from exc
                        emit_progress(
                            on_progress,
                            f"Retrying... (attempt {attempts + 1}/{max_attempts})",
                        )
                        continue

                    logger.error(
                        "API call failed for key %s: %s",
                        candidate.masked,
                        message,
                        extra={"credential": candidate.masked},
                    )
                    break

                if candidate.status is CredentialStatus.UNVALIDATED:
                    self._mark(candidate, CredentialStatus.ACTIVE)
                return result

        raise AllCredentialsFailedError(ALL_CREDENTIALS_FAILED_MESSAGE)
