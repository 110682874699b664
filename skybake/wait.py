"""Polling until a droplet reaches a condition.

A single primitive, PollingWaiter, is reused with different predicates
for every state transition a build waits on.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_delay,
    wait_fixed,
)

from skybake.exceptions import PollCancelledError, PollTimeoutError, RemoteActionError

from .types import DropletResponse

type Fetch = Callable[[int], Awaitable[DropletResponse]]


@dataclass(frozen=True, slots=True)
class Condition:
    """Named predicate over droplet state."""

    name: str
    check: Callable[[DropletResponse], bool]

    def __call__(self, droplet: DropletResponse) -> bool:
        return self.check(droplet)


def status_is(status: str) -> Condition:
    return Condition(f"status={status}", lambda d: d.get("status") == status)


def unlocked() -> Condition:
    return Condition("unlocked", lambda d: not d.get("locked", False))


def recovery_mode_active() -> Condition:
    return Condition("recovery_mode", lambda d: bool(d.get("recovery_mode", False)))


class _NotReady(Exception):
    """Condition not met yet - retry."""


class PollingWaiter:
    """Fetch a droplet repeatedly until a condition holds.

    Fetch errors are treated like an unmet condition: they are retried
    until the timeout runs out. The wait between polls returns early with
    PollCancelledError once ``cancelled`` is set.

    Args:
        fetch: Async function returning the current droplet state.
        timeout: Budget in seconds for a single ``wait`` call.
        interval: Seconds between polls.
        cancelled: Optional build cancellation signal.
    """

    def __init__(
        self,
        fetch: Fetch,
        *,
        timeout: float,
        interval: float = 3.0,
        cancelled: asyncio.Event | None = None,
    ) -> None:
        self._fetch = fetch
        self._timeout = timeout
        self._interval = interval
        self._cancelled = cancelled

    def _sleeper(self, resource_id: int, condition: Condition) -> Callable[[float], Awaitable[None]]:
        async def sleep(seconds: float) -> None:
            if self._cancelled is None:
                await asyncio.sleep(seconds)
                return
            try:
                await asyncio.wait_for(self._cancelled.wait(), timeout=seconds)
            except TimeoutError:
                return
            raise PollCancelledError(resource_id, condition.name, self._timeout)

        return sleep

    async def wait(self, resource_id: int, condition: Condition) -> DropletResponse:
        """Return the droplet state once ``condition`` holds.

        Raises:
            PollTimeoutError: If the condition does not hold within the timeout.
            PollCancelledError: If the build is cancelled while waiting.
        """
        logger.debug(f"Waiting for droplet {resource_id} to reach {condition.name}")
        retrying = AsyncRetrying(
            stop=stop_after_delay(self._timeout),
            wait=wait_fixed(self._interval),
            retry=retry_if_exception_type((_NotReady, RemoteActionError)),
            sleep=self._sleeper(resource_id, condition),
        )

        try:
            async for attempt in retrying:
                if self._cancelled is not None and self._cancelled.is_set():
                    raise PollCancelledError(resource_id, condition.name, self._timeout)
                with attempt:
                    droplet = await self._fetch(resource_id)
                    if not condition(droplet):
                        raise _NotReady()
                    return droplet
        except RetryError as e:
            last = e.last_attempt.exception()
            if isinstance(last, RemoteActionError):
                logger.warning(f"Last poll of droplet {resource_id} failed: {last}")
            raise PollTimeoutError(resource_id, condition.name, self._timeout) from e

        # AsyncRetrying only stops by returning or raising RetryError
        raise PollTimeoutError(resource_id, condition.name, self._timeout)


__all__ = [
    "Condition",
    "PollingWaiter",
    "recovery_mode_active",
    "status_is",
    "unlocked",
]
