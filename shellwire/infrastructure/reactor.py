"""
Event loop ownership for the Shellwire engine.

A ``Reactor`` is created once at the top level and handed to the engine
and every session by reference. It either wraps the loop that is already
running, or, after ``start()``, owns a private loop on a daemon thread so
synchronous callers can ``submit()`` coroutines to it.
"""

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Coroutine, Dict, Optional, Set, TypeVar

from ..core.interfaces.lifecycle import IHealthCheckable

logger = logging.getLogger(__name__)

T = TypeVar('T')


class Reactor(IHealthCheckable):
    """Shared asyncio event loop handle."""

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        name: str = "shellwire-reactor"
    ):
        self._loop = loop
        self._name = name
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._tasks: Set['asyncio.Task[Any]'] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        """The bound loop, binding to the running loop on first use."""
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def threaded(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Run a private event loop on a dedicated daemon thread."""
        if self.threaded:
            return
        if self._loop is not None:
            raise RuntimeError("Reactor is already bound to an event loop")

        self._ready.clear()
        self._thread = threading.Thread(target=self._run_in_thread, daemon=True, name=self._name)
        self._thread.start()
        self._ready.wait(timeout=5.0)
        logger.info(f"Reactor {self._name} started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the private loop and join its thread."""
        if not self.threaded or self._loop is None:
            return

        try:
            asyncio.run_coroutine_threadsafe(self.shutdown(), self._loop).result(timeout=timeout)
        except Exception as e:
            logger.warning(f"Reactor shutdown did not complete cleanly: {e}")

        self._loop.call_soon_threadsafe(self._loop.stop)
        if self._thread:
            self._thread.join(timeout=timeout)
        self._thread = None
        self._loop = None
        logger.info(f"Reactor {self._name} stopped")

    def _run_in_thread(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._ready.set()

        try:
            loop.run_forever()
        finally:
            loop.close()

    def submit(self, coro: Coroutine[Any, Any, T]) -> 'concurrent.futures.Future[T]':
        """Schedule a coroutine from another thread."""
        if self._loop is None:
            coro.close()
            raise RuntimeError("Reactor has no event loop; call start() first")
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    async def sleep(self, seconds: float) -> None:
        """The engine's only timing primitive."""
        await asyncio.sleep(seconds)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> 'asyncio.Task[Any]':
        """Run a background task; failures are logged, not raised."""
        task = self.loop.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: 'asyncio.Task[Any]') -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background task {task.get_name()} failed: {exc}")

    async def drain(self) -> None:
        """Wait until every background task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding background tasks."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def check_health(self) -> Dict[str, Any]:
        return {
            'healthy': self._loop is not None and not self._loop.is_closed(),
            'status': 'threaded' if self.threaded else 'bound',
            'details': {
                'name': self._name,
                'background_tasks': len(self._tasks),
            }
        }
