"""Race an awaitable against a timeout without cancelling it."""

import asyncio
import time
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, Literal

from loguru import logger

OutcomeStatus = Literal["success", "timeout", "error"]


@dataclass(frozen=True)
class Outcome:
    """Result of race_with_timeout.

    Attributes:
        status: success, timeout or error
        value: Result of the awaitable on success
        error: Exception raised by the awaitable on error
        elapsed_ms: Time spent waiting, in milliseconds
    """

    status: OutcomeStatus
    value: Any = None
    error: BaseException | None = None
    elapsed_ms: float = 0.0


def _discard_late_result(task: asyncio.Future[Any]) -> None:
    # The race is already decided; retrieve the exception so it is never reported as unhandled.
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug(f"Late failure after timeout discarded: {error}")


async def race_with_timeout(awaitable: Awaitable[Any], timeout_s: float) -> Outcome:
    """Wait for `awaitable` at most `timeout_s` seconds.

    On timeout the awaitable keeps running; whatever it eventually produces,
    value or exception, is discarded.
    """
    started = time.perf_counter()
    task = asyncio.ensure_future(awaitable)
    done, _ = await asyncio.wait({task}, timeout=timeout_s)
    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

    if not done:
        task.add_done_callback(_discard_late_result)
        return Outcome(status="timeout", elapsed_ms=elapsed_ms)

    error = task.exception()
    if error is not None:
        return Outcome(status="error", error=error, elapsed_ms=elapsed_ms)
    return Outcome(status="success", value=task.result(), elapsed_ms=elapsed_ms)
