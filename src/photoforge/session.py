"""Generation session: the multi-image photo pipeline.

A session turns :class:`~photoforge.models.SessionOptions` into a batch of
images.  Each run is a single sequential task:

1. Subject anchoring (text mode, fresh runs only): a reusable description
   of the couple.
2. Scenario batch: one scene/emotion pair per image, with a local fallback.
3. A short settle pause.
4. The per-image loop, carrying a visual anchor between images when the
   image model supports editing.

Every remote call goes through the :class:`~photoforge.executor.ResilientExecutor`,
so key rotation, backoff and key status tracking are handled there.  A run
never raises for provider failures; it records a
:class:`~photoforge.models.SessionOutcome` and keeps the images produced so
far.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from photoforge.catalog import DEFAULT_CATALOG, CreativeCatalog, is_edit_capable
from photoforge.errors import (
    AllCredentialsFailedError,
    CallCancelledError,
    SessionStateError,
)
from photoforge.executor import ResilientExecutor
from photoforge.logging import get_logger
from photoforge.models import (
    GeneratedImage,
    ImageArtifact,
    OutcomeStatus,
    Scenario,
    SessionMode,
    SessionOptions,
    SessionOutcome,
    SessionSnapshot,
    SessionState,
)
from photoforge.observability import RunMetricsCollector
from photoforge.progress import ProgressCallback, emit_progress
from photoforge.prompts import (
    build_anchored_image_prompt,
    build_negative_prompt,
    build_text_image_prompt,
)
from photoforge.providers._base import GenerationService
from photoforge.utils import generate_random_filename, shuffled

logger = get_logger("session")

T = TypeVar("T")

CREDENTIALS_EXHAUSTED_MESSAGE = (
    "All credentials are invalid or exhausted. "
    "Add a working API key and try again."
)
STOPPED_MESSAGE = "Process stopped."
COMPLETED_MESSAGE = "Photo session finished!"


class GenerationSession:
    """Owns the state of one photo session across runs.

    Args:
        executor: Resilient executor used for every remote call.
        service: Generation backend.
        options: Session configuration.
        on_progress: Optional status-line listener.
        rng: Random source for style and fallback-scenario picks.
        metrics: Optional run metrics collector.
        sleep: Override for the settle and inter-image pauses (and for
            backoff sleeps of this session's calls).  Defaults to a sleep
            that :meth:`stop` wakes early.
        catalog: Vocabularies to draw styles and fallback scenes from.
    """

    def __init__(
        self,
        executor: ResilientExecutor,
        service: GenerationService,
        options: SessionOptions,
        *,
        on_progress: ProgressCallback | None = None,
        rng: random.Random | None = None,
        metrics: RunMetricsCollector | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        catalog: CreativeCatalog | None = None,
    ) -> None:
        self.executor = executor
        self.service = service
        self._options = options
        self.on_progress = on_progress
        self._rng = rng or random.Random()
        self.metrics = metrics
        self._sleep_override = sleep
        self.catalog = catalog or DEFAULT_CATALOG

        self._images: list[GeneratedImage] = []
        self._target_count = 0
        self._running = False
        self._finished = False
        self._carried_subject_description = ""
        self._carried_reference: ImageArtifact | None = None
        self._stop_event: asyncio.Event | None = None
        self._last_outcome: SessionOutcome | None = None

    # ------------------------------------------------------------------
    # Read-only view
    # ------------------------------------------------------------------

    @property
    def options(self) -> SessionOptions:
        return self._options

    @property
    def images(self) -> tuple[GeneratedImage, ...]:
        return tuple(self._images)

    @property
    def target_count(self) -> int:
        return self._target_count

    @property
    def running(self) -> bool:
        return self._running

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def state(self) -> SessionState:
        if self._running:
            return SessionState.RUNNING
        if self._finished:
            return SessionState.FINISHED
        return SessionState.IDLE

    @property
    def is_incomplete(self) -> bool:
        """Finished with some, but not all, of the target images."""
        return self._finished and 0 < len(self._images) < self._target_count

    @property
    def is_complete(self) -> bool:
        return self._finished and len(self._images) >= self._target_count

    @property
    def last_outcome(self) -> SessionOutcome | None:
        return self._last_outcome

    @property
    def carried_subject_description(self) -> str:
        return self._carried_subject_description

    @property
    def carried_reference(self) -> ImageArtifact | None:
        return self._carried_reference

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self.state,
            images_produced=len(self._images),
            target_count=self._target_count,
            running=self._running,
            finished=self._finished,
            incomplete=self.is_incomplete,
            carried_subject_description=self._carried_subject_description,
            has_carried_reference=self._carried_reference is not None,
        )

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    def configure(self, options: SessionOptions) -> None:
        """Replace the session options between runs.

        Raises:
            SessionStateError: If a run is in progress.
        """
        if self._running:
            raise SessionStateError("Cannot change options while the session is running")
        self._options = options

    async def start(self, count: int | None = None) -> SessionOutcome | None:
        """Start a fresh run of *count* images (default ``image_count``).

        Returns:
            The run outcome, or None if a run was already in progress.
        """
        return await self._run(count or self._options.image_count, continuation=False)

    async def continue_run(self, extra_count: int | None = None) -> SessionOutcome | None:
        """Append *extra_count* more images to a completed session.

        Returns:
            The run outcome, or None if a run is already in progress.

        Raises:
            SessionStateError: If the session has not finished a complete run.
        """
        if self._running:
            logger.warning("Session already running; ignoring new run request")
            return None
        if not self.is_complete:
            raise SessionStateError(
                "Only a completed session can be continued; "
                "start a new run or complete the failed one"
            )
        return await self._run(
            extra_count or self._options.image_count, continuation=True
        )

    async def complete_failed_session(self) -> SessionOutcome | None:
        """Produce the images still missing from the target.

        Returns:
            The run outcome, or None when the session is not incomplete
            (nothing produced yet, nothing missing) or a run is in progress.
        """
        if self._running or not self.is_incomplete:
            return None
        deficit = self._target_count - len(self._images)
        return await self._run(deficit, continuation=True, extend_target=False)

    def stop(self) -> None:
        """Ask the current run to stop at the next safe point.

        Pending pauses end immediately; an in-flight remote call is left to
        finish on its own.
        """
        if self._running:
            logger.info("Stop requested after %d image(s)", len(self._images))
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()

    def clear(self) -> None:
        """Reset the session to idle.

        Raises:
            SessionStateError: If a run is in progress.
        """
        if self._running:
            raise SessionStateError("Cannot clear a running session; stop it first")
        self._images = []
        self._target_count = 0
        self._finished = False
        self._carried_subject_description = ""
        self._carried_reference = None
        self._last_outcome = None

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def _run(
        self,
        count: int,
        *,
        continuation: bool,
        extend_target: bool = True,
    ) -> SessionOutcome | None:
        if self._running:
            logger.warning("Session already running; ignoring new run request")
            return None

        self._running = True
        self._finished = False
        self._stop_event = asyncio.Event()
        if continuation:
            if extend_target:
                self._target_count += count
        else:
            self._images = []
            self._target_count = count
            self._carried_reference = None

        logger.info(
            "Starting %s run: %d image(s), target %d",
            "continuation" if continuation else "fresh",
            count,
            self._target_count,
        )

        error: Exception | None = None
        stopped = False
        try:
            await self._execute_steps(count, continuation=continuation)
        except CallCancelledError:
            stopped = True
        except Exception as exc:  # noqa: BLE001
            logger.error("Photo session failed: %s", exc)
            error = exc
        finally:
            if not self._running:
                stopped = True
            self._running = False
            self._finished = True
        # a stop that lands after the last image still counts as complete
        stopped = stopped and len(self._images) < self._target_count

        self._last_outcome = self._build_outcome(error, stopped)
        emit_progress(self.on_progress, self._last_outcome.message)
        logger.info(
            "Run finished (%s): %d/%d image(s)",
            self._last_outcome.status.value,
            len(self._images),
            self._target_count,
            extra={"outcome": self._last_outcome.status.value},
        )
        return self._last_outcome

    def _build_outcome(self, error: Exception | None, stopped: bool) -> SessionOutcome:
        if isinstance(error, AllCredentialsFailedError):
            status, message = OutcomeStatus.CREDENTIALS_EXHAUSTED, CREDENTIALS_EXHAUSTED_MESSAGE
        elif error is not None:
            status, message = OutcomeStatus.FAILED, f"Photo session failed: {error}"
        elif stopped:
            status, message = OutcomeStatus.STOPPED, STOPPED_MESSAGE
        else:
            status, message = OutcomeStatus.COMPLETED, COMPLETED_MESSAGE
        return SessionOutcome(
            status=status,
            message=message,
            images_produced=len(self._images),
            target_count=self._target_count,
        )

    async def _execute_steps(self, count: int, *, continuation: bool) -> None:
        options = self._options
        text_mode = options.mode is SessionMode.TEXT

        # Step 1: subject anchoring
        if not text_mode:
            self._carried_subject_description = ""
        elif not continuation:
            emit_progress(self.on_progress, "Step 1: Creating a consistent subject description...")
            self._carried_subject_description = await self._call(
                lambda secret: self.service.generate_consistent_subject_description(
                    secret, options.prompt
                )
            )
        description = self._carried_subject_description or options.prompt

        # Step 2: scenarios
        scenarios = await self._prepare_scenarios(count)

        emit_progress(self.on_progress, "Preparation complete. Starting the photo session...")
        await self._pause(options.settle_seconds)

        # Step 3: images
        edit_capable = is_edit_capable(options.image_model)
        negative = build_negative_prompt(options.negative_tags, options.custom_negative)
        start = len(self._images)
        for i in range(start, start + count):
            if not self._running:
                break

            scenario = scenarios[(i - start) % len(scenarios)]
            style = self._rng.choice(self.catalog.photographic_styles)
            emit_progress(
                self.on_progress,
                f"Image {i + 1}/{self._target_count} | {scenario.scene[:50]}...",
            )

            if not text_mode:
                anchor = options.reference_image
            elif edit_capable:
                anchor = self._carried_reference
            else:
                anchor = None

            if anchor is not None:
                prompt = build_anchored_image_prompt(
                    scenario,
                    options.theme,
                    style,
                    negative,
                    notes="" if text_mode else options.prompt.strip(),
                )
            else:
                prompt = build_text_image_prompt(
                    description, scenario, options.theme, style, negative
                )

            artifact = await self._call(
                lambda secret, p=prompt, a=anchor: self.service.generate_image(
                    secret, p, options.image_model, a
                )
            )

            if text_mode and edit_capable and self._carried_reference is None:
                self._carried_reference = artifact

            self._images.append(
                GeneratedImage(id=generate_random_filename(rng=self._rng), artifact=artifact)
            )
            if self.metrics is not None:
                self.metrics.record_image()

            if i < start + count - 1 and options.delay_seconds > 0 and self._running:
                await self._pause(options.delay_seconds)

    async def _prepare_scenarios(self, count: int) -> list[Scenario]:
        emit_progress(self.on_progress, "Step 2: Generating unique scenarios...")
        theme = self._options.theme
        try:
            scenarios = list(
                await self._call(
                    lambda secret: self.service.generate_scenario_batch(secret, theme, count)
                )
            )[:count]
        except CallCancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.warning("Scenario generation failed, using fallback scenes: %s", exc)
            emit_progress(self.on_progress, "Failed to generate scenarios. Using fallback scenes.")
            if self.metrics is not None:
                self.metrics.record_scenario_fallback()
            scenarios = [
                Scenario(scene=scene, emotion=self._rng.choice(self.catalog.emotional_cues))
                for scene in shuffled(self.catalog.story_scenes, self._rng)[:count]
            ]

        scene, emotion = self.catalog.generic_scenario
        while len(scenarios) < count:
            scenarios.append(Scenario(scene=scene, emotion=emotion))
        return scenarios

    async def _call(self, operation: Callable[[str], Awaitable[T]]) -> T:
        return await self.executor.execute(
            operation,
            self.on_progress,
            sleep=self._sleep,
            cancelled=lambda: not self._running,
        )

    async def _pause(self, seconds: float) -> None:
        if seconds > 0 and self._running:
            await self._sleep(seconds)

    async def _sleep(self, seconds: float) -> None:
        if self._sleep_override is not None:
            await self._sleep_override(seconds)
            return
        if self._stop_event is None or seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
