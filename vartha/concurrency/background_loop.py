"""A long-lived asyncio loop on a daemon thread.

Flask handlers are synchronous; aggregation passes are coroutines. Handlers
submit coroutines here and wait on the returned concurrent future with their
own deadline. A pass whose caller gave up keeps running to completion.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Coroutine, Optional

logger = logging.getLogger(__name__)


class BackgroundLoop:
    def __init__(self, name: str = "HeadlinesLoop"):
        self.name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            self._loop = asyncio.new_event_loop()

            def _run(loop_obj: asyncio.AbstractEventLoop) -> None:
                asyncio.set_event_loop(loop_obj)
                loop_obj.run_forever()

            self._thread = threading.Thread(
                target=_run,
                args=(self._loop,),
                daemon=True,
                name=self.name,
            )
            self._thread.start()
            logger.info(f"Background event loop {self.name} started")

    def submit(self, coro: Coroutine[Any, Any, Any]) -> "concurrent.futures.Future[Any]":
        self.start()
        if self._loop is None:
            raise RuntimeError(f"Background loop {self.name} is not running")
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop, self._thread = None, None
        if loop is None or thread is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout)
        if not thread.is_alive():
            loop.close()
