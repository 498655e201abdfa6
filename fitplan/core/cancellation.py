"""Cooperative cancellation shared across one plan composition.

A single token is threaded through every external call. Once it fires, new
calls refuse to start and in-flight calls are cancelled and surface as
``PlanCancelledError``.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from fitplan.core.exceptions import PlanCancelledError

T = TypeVar("T")


class CancellationToken:
    """One-shot cancellation signal backed by an ``asyncio.Event``."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = "Plan composition cancelled"

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Signal cancellation. Later calls keep the first reason."""
        if self._event.is_set():
            return
        if reason:
            self._reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PlanCancelledError(self._reason)

    async def wait(self) -> None:
        await self._event.wait()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        Raises:
            PlanCancelledError: token was already cancelled, or fired while
                the call was in flight (the call is cancelled).
        """
        if self._event.is_set():
            # Close coroutine objects that will never be scheduled
            close = getattr(awaitable, "close", None)
            if close is not None:
                close()
            raise PlanCancelledError(self._reason)

        call = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({call, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            call.cancel()
            waiter.cancel()
            raise

        if self._event.is_set():
            call.cancel()
            await asyncio.gather(call, return_exceptions=True)
            raise PlanCancelledError(self._reason)

        waiter.cancel()
        return call.result()
