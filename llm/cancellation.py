"""Per-call cancellation handles for provider requests."""

import asyncio
import logging
from typing import Any, Awaitable, Optional

from .errors import LLMAbortedError

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    One-shot cancellation signal scoped to a single operation.

    ``guard`` races an awaitable against the signal; if the signal fires
    first the awaitable is cancelled and ``LLMAbortedError`` is raised.
    """

    def __init__(self, label: str = ""):
        self.label = label
        self.reason: Optional[str] = None
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()
        logger.debug(f"Cancellation requested for {self.label or 'call'}: {reason}")

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise LLMAbortedError(f"Call aborted: {self.reason}")

    async def guard(self, awaitable: Awaitable[Any]) -> Any:
        """Await ``awaitable`` unless this token fires first."""
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if self.cancelled:
            if not task.done():
                task.cancel()
                # Let the awaitable unwind before callers close what it was using
                await asyncio.wait({task})
            if not task.cancelled():
                # Retrieve so a discarded failure is not reported as unhandled
                task.exception()
            raise LLMAbortedError(f"Call aborted: {self.reason}")

        return task.result()
