"""
Cancellation composition for a single request attempt.

A CancellationScope merges a fixed timeout with an optional caller-owned
CancelToken into one trigger. The first reason to fire wins:
- TIMEOUT: the scope's timer expired
- EXTERNAL: the caller's token was cancelled

Usage:
    token = CancelToken()
    scope, release = compose_cancellation(timeout=10.0, signal=token)
    try:
        response = await scope.run(transport.send(request))
    finally:
        release()
"""

import asyncio
from contextlib import suppress
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from zap_http.services.errors import CancelReason, RequestCancelledError

T = TypeVar("T")


class CancellationFired(Exception):
    """Raised by CancellationScope.run when the trigger wins the race."""

    def __init__(self, reason: CancelReason, detail: str | None = None):
        self.reason = reason
        self.detail = detail
        super().__init__(detail or reason.value)


class CancelToken:
    """
    Externally owned cancellation signal.

    The owner calls cancel(); subscribers are notified synchronously and
    exactly once.
    """

    def __init__(self) -> None:
        self._reason: str | None = None
        self._cancelled = False
        self._callbacks: list[Callable[[str | None], None]] = []
        self._event: asyncio.Event | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason
        if self._event is not None:
            self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(reason)

    def subscribe(self, callback: Callable[[str | None], None]) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            with suppress(ValueError):
                self._callbacks.remove(callback)

        return unsubscribe

    def subscriber_count(self) -> int:
        return len(self._callbacks)

    async def wait(self) -> str | None:
        """Wait until the token is cancelled."""
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        await self._event.wait()
        return self._reason


class CancellationScope:
    """Effective cancellation trigger for one attempt."""

    def __init__(self, timeout: float, signal: CancelToken | None = None):
        self.timeout = timeout
        self._signal = signal
        self._fired = asyncio.Event()
        self._timer: asyncio.TimerHandle | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._deadline: float | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._started = False
        self._released = False
        self.reason: CancelReason | None = None
        self.detail: str | None = None

    @property
    def fired(self) -> bool:
        return self.reason is not None

    @property
    def released(self) -> bool:
        return self._released

    def start(self) -> "CancellationScope":
        """Arm the timer and subscribe to the external signal."""
        if self._started:
            return self
        self._started = True

        self._loop = loop = asyncio.get_running_loop()
        self._deadline = loop.time() + self.timeout
        self._timer = loop.call_later(self.timeout, self._fire, CancelReason.TIMEOUT)

        if self._signal is not None:
            if self._signal.cancelled:
                self._on_external(self._signal.reason)
            else:
                self._unsubscribe = self._signal.subscribe(self._on_external)
        return self

    def _on_external(self, reason: str | None) -> None:
        # A signal arriving at the deadline is reported as a timeout
        if self._loop is not None and self._loop.time() >= self._deadline:
            self._fire(CancelReason.TIMEOUT)
        else:
            self._fire(CancelReason.EXTERNAL, reason)

    def _fire(self, reason: CancelReason, detail: str | None = None) -> None:
        if self.reason is not None or self._released:
            return
        self.reason = reason
        self.detail = detail
        self._fired.set()
        logger.debug(f"Cancellation trigger fired: {reason.value}")

    async def wait(self) -> CancelReason:
        """Wait until the trigger fires."""
        await self._fired.wait()
        return self.reason  # type: ignore[return-value]

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await `awaitable` unless the trigger fires first.

        Raises:
            CancellationFired: If the trigger fired before the awaitable finished
        """
        self.start()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._fired.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done():
            return task.result()

        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        raise CancellationFired(self.reason, self.detail)  # type: ignore[arg-type]

    def release(self) -> None:
        """Free the timer and subscription. Idempotent, never raises."""
        if self._released:
            return
        self._released = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def __aenter__(self) -> "CancellationScope":
        return self.start()

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.release()


def compose_cancellation(
    timeout: float,
    signal: CancelToken | None = None,
) -> tuple[CancellationScope, Callable[[], None]]:
    """Start a scope for one attempt and hand back its release function."""
    scope = CancellationScope(timeout, signal).start()
    return scope, scope.release


async def wait_or_cancel(delay: float, signal: CancelToken | None = None) -> None:
    """
    Sleep for `delay` seconds, waking early if `signal` is cancelled.

    Raises:
        RequestCancelledError: If the signal fired during the wait
    """
    if signal is None:
        await asyncio.sleep(delay)
        return

    if signal.cancelled:
        raise RequestCancelledError(signal.reason or "Request cancelled")

    try:
        await asyncio.wait_for(signal.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    raise RequestCancelledError(signal.reason or "Request cancelled")
