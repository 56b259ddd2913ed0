"""Deadline helpers for the two failure channels of a turn.

with_deadline() is used for steps whose failure aborts the request: expiry
raises AppError("timeout"). run_best_effort() is used for side effects whose
failure is only logged: errors and expiry are swallowed and None is returned.
"""

import asyncio
import logging
from typing import Awaitable, TypeVar

from shared.models.errors import TIMEOUT, AppError

T = TypeVar("T")


async def with_deadline(awaitable: Awaitable[T], timeout: float | None, step: str) -> T:
    """Await a hard-failure step, bounded by timeout seconds.

    Args:
        awaitable (Awaitable[T]): The step to run.
        timeout (float | None): Seconds before the step is cancelled. None or <= 0 means no bound.
        step (str): Step name used in the timeout error message.

    Returns:
        T: The step's result.

    Raises:
        AppError: code "timeout" if the deadline expires. Errors from the step propagate unchanged.
    """
    if timeout is None or timeout <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise AppError(TIMEOUT, f"{step} timed out after {timeout:g}s", e)


async def run_best_effort(awaitable: Awaitable[T], timeout: float | None, step: str, logger: logging.Logger) -> T | None:
    """Await a best-effort side effect. Never raises (except on cancellation of the caller).

    Args:
        awaitable (Awaitable[T]): The side effect to run.
        timeout (float | None): Seconds before the step is skipped. None or <= 0 means no bound.
        step (str): Step name used in log messages.
        logger (logging.Logger): Logger receiving the warning on failure.

    Returns:
        T | None: The step's result, or None if it failed or timed out.
    """
    try:
        if timeout is None or timeout <= 0:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("%s skipped: timed out after %ss", step, timeout)
    except Exception as e:
        logger.warning("%s failed: %s", step, e)
    return None
