from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Coroutine, Optional

logger = logging.getLogger(__name__)


class BackgroundDispatcher:
    """Fire-and-forget runner backed by an event loop on its own thread.

    Callers on any thread (including one already running an event loop) hand
    over a coroutine and return straight away. Failures are logged here and
    never reach the submitter.
    """

    def __init__(self, name: str = "push-registration") -> None:
        self.name = name
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._pending: set[concurrent.futures.Future] = set()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def submit(self, coro: Coroutine[Any, Any, Any]) -> concurrent.futures.Future:
        try:
            loop = self._ensure_loop()
            future = asyncio.run_coroutine_threadsafe(self._guard(coro), loop)
        except Exception:
            coro.close()
            raise
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Block until submitted work finishes; False if the timeout hit first."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = concurrent.futures.wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, timeout: Optional[float] = 5.0) -> None:
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = None
            self._thread = None
        if loop is None or thread is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout)
        logger.info("%s worker stopped", self.name)

    async def _guard(self, coro: Coroutine[Any, Any, Any]) -> Any:
        try:
            return await coro
        except asyncio.CancelledError:
            logger.info("%s task cancelled", self.name)
            raise
        except Exception:
            logger.exception("%s task encountered an error", self.name)
            return None

    def _discard(self, future: concurrent.futures.Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is not None and self._thread is not None and self._thread.is_alive():
                return self._loop
            loop = asyncio.new_event_loop()
            ready = threading.Event()
            thread = threading.Thread(
                target=self._run_loop,
                args=(loop, ready),
                name=f"{self.name}-worker",
                daemon=True,
            )
            thread.start()
            ready.wait()
            self._loop, self._thread = loop, thread
            logger.info("%s worker started", self.name)
            return loop

    @staticmethod
    def _run_loop(loop: asyncio.AbstractEventLoop, ready: threading.Event) -> None:
        asyncio.set_event_loop(loop)
        loop.call_soon(ready.set)
        try:
            loop.run_forever()
        finally:
            remaining = asyncio.all_tasks(loop)
            for task in remaining:
                task.cancel()
            if remaining:
                loop.run_until_complete(asyncio.gather(*remaining, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()
