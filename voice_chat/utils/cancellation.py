"""Cooperative cancellation for streamed exchanges."""

import asyncio
from typing import Awaitable, TypeVar
import structlog


logger = structlog.get_logger()

T = TypeVar("T")


class ExchangeCancelled(Exception):
    """Raised by ``CancellationToken.run`` when the token fires first."""


class CancellationToken:
    """
    One-shot cancellation signal for a single exchange.

    The chat transport wraps each suspension point in ``run()`` so a
    stalled request or stream gives up as soon as the host calls
    ``cancel()``.
    """

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation. Further calls are no-ops."""
        if self._event.is_set():
            return

        self._event.set()
        logger.info("Exchange cancellation requested")

    async def wait(self) -> None:
        """Wait until the token is cancelled."""
        await self._event.wait()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless the token fires first.

        Raises:
            ExchangeCancelled: The token was cancelled before the awaitable
                finished; the awaitable is cancelled
        """
        task = asyncio.ensure_future(awaitable)
        if self.is_cancelled:
            task.cancel()
            raise ExchangeCancelled()

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise ExchangeCancelled()
