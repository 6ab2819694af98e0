"""
I/O completion engine.

Responsibilities:
- Run an asyncio event loop on its own thread
- Accept coroutine submissions from any thread
- Offload blocking pyserial calls to dedicated reader/writer threads
- Tear everything down on stop()

Non-responsibilities:
- NO serial port ownership (see transport.serial_channel)
- NO pacing or replay logic
- NO retry logic

All completion callbacks run on the engine thread.
"""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Coroutine, TypeVar

from observability.logger import log_event
from transport.errors import IoError


T = TypeVar("T")


class IoEngine:
    """
    Cooperative completion engine for one supervisor run.

    Lifecycle:
    1. start() spins up a fresh loop thread and executors
    2. submit() schedules coroutines onto the loop
    3. stop() stops the loop, cancels what is left, joins threads

    A stopped engine can be started again; every start gets a fresh loop.
    """

    def __init__(self, *, name: str = "io-engine") -> None:
        self._name = name
        self._lock = threading.Lock()

        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._read_executor: ThreadPoolExecutor | None = None
        self._write_executor: ThreadPoolExecutor | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._thread is not None

    def start(self) -> None:
        """Start the loop thread. Idempotent."""
        with self._lock:
            if self._thread is not None:
                return

            loop = asyncio.new_event_loop()
            ready = threading.Event()

            self._read_executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix=f"{self._name}-read"
            )
            # One writer thread: writes pipeline but never interleave
            self._write_executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix=f"{self._name}-write"
            )

            thread = threading.Thread(
                target=self._run_loop,
                args=(loop, ready),
                name=self._name,
                daemon=True,
            )
            self._loop = loop
            self._thread = thread
            thread.start()

        ready.wait()
        log_event({"event_type": "IO_ENGINE_STARTED", "engine": self._name})

    def stop(self) -> None:
        """
        Stop the loop and release its threads. Idempotent.

        Pending operations are cancelled; their callbacks do not fire.
        Must not be called from the engine thread.
        """
        with self._lock:
            loop, thread = self._loop, self._thread
            read_executor, write_executor = self._read_executor, self._write_executor
            if loop is None or thread is None:
                return
            if threading.current_thread() is thread:
                raise RuntimeError("IoEngine.stop() called from the engine thread")

            self._loop = None
            self._thread = None
            self._read_executor = None
            self._write_executor = None

        loop.call_soon_threadsafe(loop.stop)
        thread.join()

        # Blocked reads observe running == False within one poll interval
        for executor in (read_executor, write_executor):
            if executor is not None:
                executor.shutdown(wait=True, cancel_futures=True)

        log_event({"event_type": "IO_ENGINE_STOPPED", "engine": self._name})

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(self, coro: Coroutine[Any, Any, T]) -> Future[T]:
        """
        Schedule `coro` on the engine loop from any thread.

        Raises:
            IoError if the engine is not running.
        """
        loop = self._loop
        if loop is None:
            coro.close()
            raise IoError("I/O engine is not running")

        try:
            return asyncio.run_coroutine_threadsafe(coro, loop)
        except RuntimeError as exc:
            # Loop closed between the check and the call
            coro.close()
            raise IoError(f"I/O engine is not running: {exc}") from exc

    async def run_blocking_read(self, fn: Callable[..., T], *args: Any) -> T:
        return await self._run_in(self._read_executor, fn, *args)

    async def run_blocking_write(self, fn: Callable[..., T], *args: Any) -> T:
        return await self._run_in(self._write_executor, fn, *args)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _run_in(
        self,
        executor: ThreadPoolExecutor | None,
        fn: Callable[..., T],
        *args: Any,
    ) -> T:
        if executor is None:
            raise IoError("I/O engine is not running")

        loop = asyncio.get_running_loop()
        try:
            future = loop.run_in_executor(executor, fn, *args)
        except RuntimeError as exc:
            # Executor already shut down
            raise IoError(f"I/O engine is not running: {exc}") from exc
        return await future

    @staticmethod
    def _run_loop(loop: asyncio.AbstractEventLoop, ready: threading.Event) -> None:
        asyncio.set_event_loop(loop)
        loop.call_soon(ready.set)
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(
                    asyncio.gather(*pending, return_exceptions=True)
                )
            loop.close()
