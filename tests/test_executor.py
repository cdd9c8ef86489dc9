"""Tests for photoforge.executor — resilient multi-credential calls."""

from __future__ import annotations

import json

import pytest

from photoforge.errors import (
    AllCredentialsFailedError,
    CallCancelledError,
    PolicyRejectedError,
    ProviderError,
)
from photoforge.executor import (
    ALL_CREDENTIALS_FAILED_MESSAGE,
    NO_USABLE_CREDENTIALS_MESSAGE,
    ErrorKind,
    ExecutorConfig,
    ResilientExecutor,
    classify_error,
    parse_retry_delay,
)
from photoforge.models import CredentialStatus
from photoforge.observability import RunMetricsCollector
from photoforge.pool import CredentialPool
from photoforge.storage import InMemoryCredentialStore

INVALID_KEY = "400 INVALID_ARGUMENT. API key not valid. Please pass a valid API key."
RATE_LIMITED = "429 RESOURCE_EXHAUSTED. You exceeded your current quota."
SAFETY = "SAFETY_BLOCK: prompt blocked (PROHIBITED_CONTENT)"


def _quota_error(delay: str) -> ProviderError:
    body = {
        "error": {
            "code": 429,
            "status": "RESOURCE_EXHAUSTED",
            "details": [
                {"@type": "type.googleapis.com/google.rpc.QuotaFailure"},
                {"@type": "type.googleapis.com/google.rpc.RetryInfo", "retryDelay": delay},
            ],
        }
    }
    return ProviderError(f"429 RESOURCE_EXHAUSTED. {json.dumps(body)}")


class ScriptedOperation:
    """Operation whose outcome per call is scripted by secret."""

    def __init__(self, script: dict[str, list[Exception | str]]) -> None:
        self.script = {k: list(v) for k, v in script.items()}
        self.calls: list[str] = []

    async def __call__(self, secret: str) -> str:
        self.calls.append(secret)
        outcome = self.script[secret].pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _secrets(pool: CredentialPool) -> tuple[str, str]:
    first, second = pool.credentials
    return first.secret, second.secret


# ---------------------------------------------------------------------------
# classify_error
# ---------------------------------------------------------------------------


class TestClassifyError:
    """Tests for substring-based error classification."""

    @pytest.mark.parametrize(
        ("message", "kind"),
        [
            (INVALID_KEY, ErrorKind.INVALID_CREDENTIAL),
            (SAFETY, ErrorKind.POLICY_REJECTED),
            (RATE_LIMITED, ErrorKind.RATE_LIMITED),
            ("Error 429 Too Many Requests", ErrorKind.RATE_LIMITED),
            ("503 UNAVAILABLE. The model is overloaded.", ErrorKind.OTHER),
            ("", ErrorKind.OTHER),
        ],
    )
    def test_classification(self, message: str, kind: ErrorKind) -> None:
        assert classify_error(ProviderError(message)) is kind

    def test_invalid_key_checked_before_rate_limit(self) -> None:
        assert (
            classify_error(ProviderError(f"429 {INVALID_KEY}"))
            is ErrorKind.INVALID_CREDENTIAL
        )

    def test_policy_checked_before_rate_limit(self) -> None:
        assert (
            classify_error(ProviderError("RESOURCE_EXHAUSTED SAFETY_BLOCK"))
            is ErrorKind.POLICY_REJECTED
        )


# ---------------------------------------------------------------------------
# parse_retry_delay
# ---------------------------------------------------------------------------


class TestParseRetryDelay:
    """Tests for the embedded RetryInfo hint parser."""

    def test_parses_retry_info(self) -> None:
        assert parse_retry_delay(str(_quota_error("17s"))) == 17

    def test_fractional_seconds_truncated(self) -> None:
        assert parse_retry_delay(str(_quota_error("31.5s"))) == 31

    def test_inner_error_object(self) -> None:
        body = {"details": [{"@type": "type.googleapis.com/google.rpc.RetryInfo", "retryDelay": "9s"}]}
        assert parse_retry_delay(f"429. {json.dumps(body)} trailing") == 9

    def test_no_json(self) -> None:
        assert parse_retry_delay(RATE_LIMITED) is None

    def test_malformed_json(self) -> None:
        assert parse_retry_delay("429 {not json at all") is None

    def test_no_retry_info(self) -> None:
        body = {"error": {"details": [{"@type": "type.googleapis.com/google.rpc.Help"}]}}
        assert parse_retry_delay(f"429 {json.dumps(body)}") is None

    def test_non_numeric_delay(self) -> None:
        assert parse_retry_delay(str(_quota_error("soon"))) is None

    def test_unexpected_shape(self) -> None:
        assert parse_retry_delay('429 {"error": {"details": "oops"}}') is None


# ---------------------------------------------------------------------------
# ResilientExecutor.execute
# ---------------------------------------------------------------------------


class TestExecute:
    """Tests for credential rotation, backoff and status transitions."""

    @pytest.mark.asyncio
    async def test_first_credential_succeeds(
        self, pool: CredentialPool, recording_sleep
    ) -> None:
        first, _second = _secrets(pool)
        op = ScriptedOperation({first: ["ok"]})
        executor = ResilientExecutor(pool, sleep=recording_sleep)

        assert await executor.execute(op) == "ok"
        assert op.calls == [first]
        assert pool.credentials[0].status is CredentialStatus.ACTIVE
        assert pool.credentials[1].status is CredentialStatus.UNVALIDATED
        assert recording_sleep.calls == []

    @pytest.mark.asyncio
    async def test_invalid_then_next_credential(
        self, pool: CredentialPool, recording_sleep
    ) -> None:
        first, second = _secrets(pool)
        op = ScriptedOperation({first: [ProviderError(INVALID_KEY)], second: ["ok"]})
        executor = ResilientExecutor(pool, sleep=recording_sleep)

        assert await executor.execute(op) == "ok"
        assert op.calls == [first, second]
        assert pool.credentials[0].status is CredentialStatus.INVALID
        assert pool.credentials[1].status is CredentialStatus.ACTIVE
        assert recording_sleep.calls == []

    @pytest.mark.asyncio
    async def test_rate_limited_twice_then_success(self, recording_sleep) -> None:
        pool = CredentialPool(InMemoryCredentialStore())
        pool.load()
        pool.add("AIzaOnlyKey00000001")
        secret = pool.credentials[0].secret
        op = ScriptedOperation(
            {secret: [ProviderError(RATE_LIMITED), ProviderError(RATE_LIMITED), "ok"]}
        )
        executor = ResilientExecutor(pool, sleep=recording_sleep)

        assert await executor.execute(op) == "ok"
        assert recording_sleep.calls == [20.0, 40.0]
        assert pool.credentials[0].status is CredentialStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_rate_limited_on_every_try(self, recording_sleep) -> None:
        pool = CredentialPool(InMemoryCredentialStore())
        pool.load()
        pool.add("AIzaOnlyKey00000001")
        secret = pool.credentials[0].secret
        op = ScriptedOperation({secret: [ProviderError(RATE_LIMITED)] * 3})
        executor = ResilientExecutor(pool, sleep=recording_sleep)

        with pytest.raises(AllCredentialsFailedError, match="ran out of quota"):
            await executor.execute(op)
        assert len(op.calls) == 3
        assert recording_sleep.calls == [20.0, 40.0]
        assert pool.credentials[0].status is CredentialStatus.EXHAUSTED
        assert pool.exhausted_all

    @pytest.mark.asyncio
    async def test_exhausted_credential_moves_to_next(
        self, pool: CredentialPool, recording_sleep
    ) -> None:
        first, second = _secrets(pool)
        op = ScriptedOperation({first: [ProviderError(RATE_LIMITED)] * 3, second: ["ok"]})
        executor = ResilientExecutor(pool, sleep=recording_sleep)

        assert await executor.execute(op) == "ok"
        assert pool.credentials[0].status is CredentialStatus.EXHAUSTED
        assert pool.credentials[1].status is CredentialStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_retry_hint_overrides_backoff(self, recording_sleep) -> None:
        pool = CredentialPool(InMemoryCredentialStore())
        pool.load()
        pool.add("AIzaOnlyKey00000001")
        secret = pool.credentials[0].secret
        op = ScriptedOperation({secret: [_quota_error("17s"), "ok"]})
        executor = ResilientExecutor(pool, sleep=recording_sleep)

        assert await executor.execute(op) == "ok"
        assert recording_sleep.calls == [17.0]

    @pytest.mark.asyncio
    async def test_policy_rejection_short_circuits(
        self, pool: CredentialPool, recording_sleep
    ) -> None:
        first, second = _secrets(pool)
        op = ScriptedOperation({first: [ProviderError(SAFETY)], second: ["ok"]})
        executor = ResilientExecutor(pool, sleep=recording_sleep)

        with pytest.raises(PolicyRejectedError) as exc_info:
            await executor.execute(op)
        assert op.calls == [first]
        assert isinstance(exc_info.value.__cause__, ProviderError)
        assert pool.credentials[0].status is CredentialStatus.UNVALIDATED

    @pytest.mark.asyncio
    async def test_other_error_moves_on_without_blame(
        self, pool: CredentialPool, recording_sleep
    ) -> None:
        first, second = _secrets(pool)
        op = ScriptedOperation(
            {first: [ProviderError("503 UNAVAILABLE")], second: ["ok"]}
        )
        executor = ResilientExecutor(pool, sleep=recording_sleep)

        assert await executor.execute(op) == "ok"
        assert pool.credentials[0].status is CredentialStatus.UNVALIDATED
        assert recording_sleep.calls == []

    @pytest.mark.asyncio
    async def test_every_credential_fails(
        self, pool: CredentialPool, recording_sleep
    ) -> None:
        first, second = _secrets(pool)
        op = ScriptedOperation(
            {first: [ProviderError(INVALID_KEY)], second: [ProviderError("boom")]}
        )
        executor = ResilientExecutor(pool, sleep=recording_sleep)

        with pytest.raises(AllCredentialsFailedError) as exc_info:
            await executor.execute(op)
        assert str(exc_info.value) == ALL_CREDENTIALS_FAILED_MESSAGE

    @pytest.mark.asyncio
    async def test_no_usable_credentials(self, recording_sleep) -> None:
        pool = CredentialPool(InMemoryCredentialStore())
        pool.load()
        op = ScriptedOperation({})
        executor = ResilientExecutor(pool, sleep=recording_sleep)

        with pytest.raises(AllCredentialsFailedError) as exc_info:
            await executor.execute(op)
        assert str(exc_info.value) == NO_USABLE_CREDENTIALS_MESSAGE
        assert op.calls == []

    @pytest.mark.asyncio
    async def test_skips_unusable_credentials(
        self, pool: CredentialPool, recording_sleep
    ) -> None:
        first, second = pool.credentials
        pool.set_status(first.id, CredentialStatus.INVALID)
        op = ScriptedOperation({second.secret: ["ok"]})
        executor = ResilientExecutor(pool, sleep=recording_sleep)

        assert await executor.execute(op) == "ok"
        assert op.calls == [second.secret]

    @pytest.mark.asyncio
    async def test_active_credential_stays_active(self, recording_sleep) -> None:
        pool = CredentialPool(InMemoryCredentialStore())
        pool.load()
        pool.add("AIzaOnlyKey00000001")
        cred = pool.credentials[0]
        pool.set_status(cred.id, CredentialStatus.ACTIVE)
        metrics = RunMetricsCollector()
        executor = ResilientExecutor(pool, sleep=recording_sleep, metrics=metrics)

        await executor.execute(ScriptedOperation({cred.secret: ["ok"]}))
        assert metrics.snapshot()["status_transitions"] == {}

    @pytest.mark.asyncio
    async def test_custom_config(self, recording_sleep) -> None:
        pool = CredentialPool(InMemoryCredentialStore())
        pool.load()
        pool.add("AIzaOnlyKey00000001")
        secret = pool.credentials[0].secret
        op = ScriptedOperation({secret: [ProviderError(RATE_LIMITED)] * 5})
        executor = ResilientExecutor(
            pool,
            ExecutorConfig(max_attempts=5, backoff_base_seconds=1.5),
            sleep=recording_sleep,
        )

        with pytest.raises(AllCredentialsFailedError):
            await executor.execute(op)
        assert recording_sleep.calls == [1.5, 3.0, 4.5, 6.0]

    @pytest.mark.asyncio
    async def test_per_call_sleep_override(self, recording_sleep) -> None:
        pool = CredentialPool(InMemoryCredentialStore())
        pool.load()
        pool.add("AIzaOnlyKey00000001")
        secret = pool.credentials[0].secret
        default_sleep_calls: list[float] = []

        async def default_sleep(seconds: float) -> None:
            default_sleep_calls.append(seconds)

        executor = ResilientExecutor(pool, sleep=default_sleep)
        op = ScriptedOperation({secret: [ProviderError(RATE_LIMITED), "ok"]})
        await executor.execute(op, sleep=recording_sleep)
        assert recording_sleep.calls == [20.0]
        assert default_sleep_calls == []

    @pytest.mark.asyncio
    async def test_cancelled_after_backoff(self, recording_sleep) -> None:
        pool = CredentialPool(InMemoryCredentialStore())
        pool.load()
        pool.add("AIzaOnlyKey00000001")
        secret = pool.credentials[0].secret
        op = ScriptedOperation({secret: [ProviderError(RATE_LIMITED), "ok"]})
        executor = ResilientExecutor(pool, sleep=recording_sleep)

        with pytest.raises(CallCancelledError):
            await executor.execute(op, cancelled=lambda: True)
        assert op.calls == [secret]
        assert pool.credentials[0].status is CredentialStatus.UNVALIDATED


class TestProgressAndMetrics:
    """Tests for progress messages and metrics emitted by execute()."""

    @pytest.mark.asyncio
    async def test_progress_messages(self, recording_sleep) -> None:
        pool = CredentialPool(InMemoryCredentialStore())
        pool.load()
        pool.add("AIzaOnlyKey00000001")
        cred = pool.credentials[0]
        op = ScriptedOperation({cred.secret: [ProviderError(RATE_LIMITED), "ok"]})
        messages: list[str] = []
        executor = ResilientExecutor(pool, sleep=recording_sleep)

        await executor.execute(op, messages.append)
        assert messages == [
            f"Using credential {cred.masked}",
            "Quota limit reached. Retrying in 20 seconds...",
            "Retrying... (attempt 2/3)",
            f"Using credential {cred.masked}",
        ]
        assert all(cred.secret not in m for m in messages)

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_abort(self, pool: CredentialPool) -> None:
        first, _second = _secrets(pool)

        def listener(message: str) -> None:
            raise RuntimeError("UI went away")

        executor = ResilientExecutor(pool)
        assert await executor.execute(ScriptedOperation({first: ["ok"]}), listener) == "ok"

    @pytest.mark.asyncio
    async def test_metrics_recorded(
        self, pool: CredentialPool, recording_sleep
    ) -> None:
        first, second = pool.credentials
        op = ScriptedOperation(
            {
                first.secret: [ProviderError(INVALID_KEY)],
                second.secret: [ProviderError(RATE_LIMITED), "ok"],
            }
        )
        metrics = RunMetricsCollector()
        executor = ResilientExecutor(pool, sleep=recording_sleep, metrics=metrics)

        await executor.execute(op)
        snap = metrics.snapshot()
        assert snap["attempts_total"] == 3
        assert snap["attempts_by_credential"] == {first.masked: 1, second.masked: 2}
        assert snap["status_transitions"] == {"invalid": 1, "active": 1}
        assert snap["backoff_count"] == 1
        assert snap["backoff_seconds_total"] == 20.0

    def test_backoff_delay(self, pool: CredentialPool) -> None:
        executor = ResilientExecutor(pool)
        assert executor.backoff_delay(1, RATE_LIMITED) == 20.0
        assert executor.backoff_delay(2, RATE_LIMITED) == 40.0
        assert executor.backoff_delay(2, str(_quota_error("5s"))) == 5.0

    def test_config_validation(self) -> None:
        with pytest.raises(ValueError):
            ExecutorConfig(max_attempts=0)
