"""Single-use handoff between a producer and one waiting consumer.

The callback listener and the login flow share one ``Handoff`` per attempt.
The first delivery wins; every later delivery, and any delivery after the
handoff was closed, is a no-op.
"""

from __future__ import annotations

import asyncio
from typing import Generic, TypeVar

T = TypeVar("T")


class HandoffClosedError(Exception):
    """Raised to the consumer when the handoff closed without a value."""


class Handoff(Generic[T]):
    """Deliver-at-most-once transfer backed by an ``asyncio.Future``.

    Must be created and used on a single event loop. ``deliver`` has no
    await point, so concurrent request handlers on that loop cannot both
    resolve it.
    """

    def __init__(self) -> None:
        self._future: asyncio.Future[T] = asyncio.get_running_loop().create_future()

    @property
    def is_closed(self) -> bool:
        return self._future.done()

    def deliver(self, value: T) -> bool:
        """Hand over ``value``. Returns False if the handoff was already closed."""
        if self._future.done():
            return False
        self._future.set_result(value)
        return True

    def close(self) -> bool:
        """Close without a value. Returns False if already closed."""
        if self._future.done():
            return False
        self._future.set_exception(HandoffClosedError("Handoff closed without a value"))
        return True

    async def wait(self, timeout: float | None = None) -> T:
        """Wait for the delivered value.

        Raises:
            HandoffClosedError: If the producer closed without delivering
            asyncio.TimeoutError: If nothing arrived within ``timeout``
        """
        return await asyncio.wait_for(asyncio.shield(self._future), timeout)

    def take(self) -> T | None:
        """Close the handoff and return the delivered value, if any.

        Later deliveries are refused. A pending closure exception is marked
        as retrieved.
        """
        self.close()
        if self._future.cancelled() or self._future.exception() is not None:
            return None
        return self._future.result()
