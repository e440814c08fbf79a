"""
Bounded wait for the storage backend at process start.

The database container usually comes up after the API container, so the
service probes it a fixed number of times with a fixed delay between tries
before it begins serving. What to do when every attempt failed is left to the
caller (see ``main.lifespan``).
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from .repositories import StorageError

logger = logging.getLogger(__name__)

Probe = Callable[[], Awaitable[None]]
Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class StartupOutcome:
    connected: bool
    attempts: int
    last_error: str = ""


# PUBLIC_INTERFACE
async def wait_for_storage(
    probe: Probe,
    attempts: int = 5,
    delay: float = 5.0,
    sleep: Sleep = asyncio.sleep,
) -> StartupOutcome:
    """
    Call ``probe`` until it succeeds or ``attempts`` calls have failed.

    A failed attempt is one where the probe raises StorageError; it is
    followed by ``delay`` seconds of sleep unless it was the last one.
    Any other exception propagates.

    Returns:
        StartupOutcome with ``connected`` set when a probe succeeded and
        ``attempts`` holding the number of probes made.
    """
    budget = max(attempts, 1)
    last_error = ""
    for attempt in range(1, budget + 1):
        try:
            await probe()
        except StorageError as exc:
            last_error = str(exc)
            logger.warning("Waiting for database... (%d/%d): %s", attempt, budget, last_error)
            if attempt < budget:
                await sleep(delay)
            continue
        logger.info("Database connected successfully")
        return StartupOutcome(connected=True, attempts=attempt)
    return StartupOutcome(connected=False, attempts=budget, last_error=last_error)
