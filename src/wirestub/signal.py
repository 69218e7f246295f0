"""One-shot result delivery between a worker and a suspended caller."""

from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Generator
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


class InvocationResult(ABC):
    """Outcome of one pipeline run: either a Value or a Failure."""

    @abstractmethod
    def unwrap(self) -> Any:
        """Return the value or raise the failure."""

    @staticmethod
    def capture(fn: Callable[..., Any], *args: Any) -> InvocationResult:
        """Run fn and wrap whatever it returns or raises.

        ``asyncio.CancelledError``, ``KeyboardInterrupt`` and ``SystemExit``
        are not captured.
        """
        try:
            return Value(fn(*args))
        except Exception as e:  # noqa: BLE001
            return Failure(e)


@dataclass(frozen=True)
class Value(InvocationResult):
    value: Any

    def unwrap(self) -> Any:
        return self.value


@dataclass(frozen=True)
class Failure(InvocationResult):
    error: Exception

    def unwrap(self) -> Any:
        raise self.error


class CompletionSignal:
    """Resolves a caller's await exactly once, from any thread.

    The signal is bound to the event loop of the caller that created it. A
    worker thread or task calls ``resolve`` once with the outcome; the caller
    awaits the signal and gets the value or the raised failure. Any later
    ``resolve`` is ignored and reported by its False return value, so the first
    outcome can never be overwritten.

    Example:
        ```python
        signal = CompletionSignal()
        threading.Thread(target=lambda: signal.resolve(Value(42))).start()
        assert await signal == 42
        ```
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._future: asyncio.Future[Any] = self._loop.create_future()
        self._lock = threading.Lock()
        self._result: InvocationResult | None = None
        self._cancelled = False

    @property
    def result(self) -> InvocationResult | None:
        """The accepted outcome, or None while unresolved."""
        return self._result

    @property
    def resolved(self) -> bool:
        return self._result is not None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def resolve(self, result: InvocationResult) -> bool:
        """Deliver the outcome of the invocation.

        Args:
            result: A Value or a Failure

        Returns:
            True if this call resolved the signal, False if it was already
            resolved or cancelled (the outcome is discarded)
        """
        with self._lock:
            if self._result is not None:
                logger.debug("Signal already resolved; ignoring %r", result)
                return False
            if self._cancelled:
                logger.debug("Signal cancelled; discarding %r", result)
                return False
            self._result = result

        if self._on_loop_thread():
            self._deliver(result)
            return True
        try:
            self._loop.call_soon_threadsafe(self._deliver, result)
        except RuntimeError:
            # The caller's loop is closed; nobody is left to resume
            logger.debug("Event loop closed; discarding %r", result)
        return True

    def cancel(self) -> bool:
        """Abandon the signal. Must be called from the caller's loop.

        Returns:
            True if the signal was still pending; False (a no-op) once resolved
        """
        with self._lock:
            if self._result is not None or self._cancelled:
                return False
            self._cancelled = True
        self._future.cancel()
        return True

    def _on_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def _deliver(self, result: InvocationResult) -> None:
        if self._future.done():
            return
        if isinstance(result, Failure):
            self._future.set_exception(result.error)
        else:
            self._future.set_result(result.unwrap())

    def __await__(self) -> Generator[Any, None, Any]:
        return self._future.__await__()

    def __repr__(self) -> str:
        if self._cancelled:
            state = "cancelled"
        elif self._result is not None:
            state = f"resolved={self._result!r}"
        else:
            state = "pending"
        return f"CompletionSignal({state})"
