"""Routing of API calls onto the direct or suspending path.

Direct calls run the handler pipeline on the caller's thread. Suspending calls
create a ``CompletionSignal``, hand the pipeline to the ``AsyncDispatchAdapter``
and await the signal; the adapter guarantees exactly one outcome reaches it.

Cancellation: if the awaiting task is cancelled before the signal resolves, the
signal is cancelled and the worker is asked to abort. A task worker cancels its
task, which aborts the asyncio request. A thread worker skips the send if it has
not started yet, and otherwise calls ``abort(request)`` on transports that
define it. An aborted thread worker makes no further retry attempts. On other
transports the exchange runs to completion and its outcome is discarded.
Cancelling after resolution does nothing.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Mapping
from concurrent.futures import Executor
from typing import TYPE_CHECKING, Any, Protocol

from wirestub.signal import CompletionSignal, Failure, InvocationResult, Value
from wirestub.types import AbortableTransport

if TYPE_CHECKING:
    from wirestub.handler import MethodHandler
    from wirestub.http import Request
    from wirestub.types import AsyncTransport, Transport

logger = logging.getLogger(__name__)


class Worker(Protocol):
    """Handle on one in-flight suspending invocation."""

    def abort(self) -> None: ...


class ThreadWorker:
    """Runs the blocking pipeline for one invocation on a worker thread."""

    def __init__(
        self,
        handler: MethodHandler,
        args: tuple[Any, ...],
        kwargs: Mapping[str, Any],
        signal: CompletionSignal,
    ) -> None:
        self.handler = handler
        self.args = args
        self.kwargs = kwargs
        self.signal = signal
        self._lock = threading.Lock()
        self._aborted = threading.Event()
        self._request: Request | None = None

    def run(self) -> None:
        try:
            request, options = self.handler.build_request(self.args, self.kwargs)
        except Exception as e:  # noqa: BLE001
            self.signal.resolve(Failure(e))
            return

        with self._lock:
            if self._aborted.is_set():
                logger.debug("Skipping send of aborted %s", self.handler.method_key)
                return
            self._request = request

        self.signal.resolve(
            InvocationResult.capture(self.handler.complete, request, options, self._aborted)
        )

    def abort(self) -> None:
        with self._lock:
            self._aborted.set()
            request = self._request
        transport = self.handler.transport
        if request is None or not isinstance(transport, AbortableTransport):
            return
        try:
            transport.abort(request)
        except Exception:
            logger.warning(
                "Aborting %s failed", self.handler.method_key, exc_info=True
            )


class TaskWorker:
    """Runs the pipeline for one invocation as an asyncio task."""

    def __init__(
        self,
        handler: MethodHandler,
        args: tuple[Any, ...],
        kwargs: Mapping[str, Any],
        signal: CompletionSignal,
        transport: AsyncTransport,
    ) -> None:
        self.handler = handler
        self.args = args
        self.kwargs = kwargs
        self.signal = signal
        self.transport = transport
        self.task: asyncio.Task[None] | None = None

    async def run(self) -> None:
        try:
            value = await self.handler.execute_async(self.args, self.kwargs, self.transport)
        except Exception as e:  # noqa: BLE001
            self.signal.resolve(Failure(e))
        else:
            self.signal.resolve(Value(value))

    def abort(self) -> None:
        if self.task is not None:
            self.task.cancel()


class AsyncDispatchAdapter:
    """Starts an independent execution path for each suspending invocation.

    With an asyncio transport each invocation gets its own task on the caller's
    loop. Otherwise the blocking pipeline runs on the given executor, or on a
    fresh daemon thread per invocation. Thread count is not capped; pass an
    executor to bound it.
    """

    def __init__(
        self,
        transport: Transport,
        async_transport: AsyncTransport | None = None,
        executor: Executor | None = None,
    ) -> None:
        self.transport = transport
        self.async_transport = async_transport
        self.executor = executor
        self._tasks: set[asyncio.Task[None]] = set()

    def submit(
        self,
        handler: MethodHandler,
        args: tuple[Any, ...],
        kwargs: Mapping[str, Any],
        signal: CompletionSignal,
    ) -> Worker:
        """Start the pipeline for one call; its outcome resolves signal.

        Must be called from the event loop the signal is bound to.
        """
        if self.async_transport is not None:
            task_worker = TaskWorker(handler, args, kwargs, signal, self.async_transport)
            task = asyncio.get_running_loop().create_task(
                task_worker.run(), name=f"wirestub-{handler.method_key}"
            )
            task_worker.task = task
            # Keep a reference so the task is not collected mid-flight
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return task_worker

        thread_worker = ThreadWorker(handler, args, kwargs, signal)
        if self.executor is not None:
            self.executor.submit(thread_worker.run)
        else:
            threading.Thread(
                target=thread_worker.run,
                name=f"wirestub-{handler.method_key}",
                daemon=True,
            ).start()
        return thread_worker

    @property
    def pending(self) -> int:
        """Number of task workers still running."""
        return len(self._tasks)


class Dispatcher:
    """Routes calls by method name to the matching handler and path."""

    def __init__(
        self, handlers: Mapping[str, MethodHandler], adapter: AsyncDispatchAdapter
    ) -> None:
        self.handlers = handlers
        self.adapter = adapter

    def invoke_direct(self, name: str, args: tuple[Any, ...], kwargs: Mapping[str, Any]) -> Any:
        """Run the pipeline on the calling thread and return or raise.

        Called from inside a running event loop this blocks the loop.
        """
        return self.handlers[name].invoke(args, kwargs).unwrap()

    async def invoke_suspending(
        self, name: str, args: tuple[Any, ...], kwargs: Mapping[str, Any]
    ) -> Any:
        """Run the pipeline on a worker and await its outcome."""
        handler = self.handlers[name]
        signal = CompletionSignal()
        worker = self.adapter.submit(handler, args, kwargs, signal)
        try:
            return await signal
        except asyncio.CancelledError:
            if signal.cancel():
                logger.debug("Cancelled %s; aborting worker", handler.method_key)
                worker.abort()
            raise
