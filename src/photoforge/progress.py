"""Best-effort progress notifications.

Progress listeners are UI code; a failing listener must never abort a
remote call or a session run, so every notification goes through
:func:`emit_progress`.
"""

from __future__ import annotations

from collections.abc import Callable

from photoforge.logging import get_logger

logger = get_logger("progress")

ProgressCallback = Callable[[str], None]


def emit_progress(callback: ProgressCallback | None, message: str) -> None:
    """Deliver *message* to *callback*, logging and dropping listener errors."""
    if callback is None:
        return
    try:
        callback(message)
    except Exception:  # noqa: BLE001
        logger.exception("Progress listener failed for message %r", message)
