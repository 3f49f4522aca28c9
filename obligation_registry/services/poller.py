"""
Polling subscription for the obligation register.

``RegistryPoller`` re-fetches the register at a fixed interval while documents
are still pending or processing, and stops by itself once they are done. It
is an async context manager so the owner always cancels the task on exit:

    async with RegistryPoller(fetch, on_update=render, on_complete=notify):
        ...
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from obligation_registry.services.registry import RegistrySnapshot

logger = logging.getLogger(__name__)

Fetch = Callable[[], Awaitable[RegistrySnapshot]]


class RegistryPoller:
    def __init__(
        self,
        fetch: Fetch,
        interval: float = 10.0,
        on_update: Optional[Callable[[RegistrySnapshot], None]] = None,
        on_complete: Optional[Callable[[RegistrySnapshot], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.fetch = fetch
        self.interval = interval
        self.on_update = on_update
        self.on_complete = on_complete
        self.on_error = on_error
        self.snapshot: Optional[RegistrySnapshot] = None
        self.last_error: Optional[Exception] = None
        self._was_pending = False
        self._completion_notified = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def __aenter__(self) -> "RegistryPoller":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the polling task and wait for it to finish."""
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def wait(self) -> None:
        """Wait until polling stops on its own (no pending documents left)."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def refresh(self) -> Optional[RegistrySnapshot]:
        """Fetch once now; used for the initial load and manual retries."""
        try:
            snapshot = await self.fetch()
        except Exception as e:
            logger.error(f"Failed to load obligations data: {e}")
            self.last_error = e
            if self.on_error:
                self.on_error(e)
            return None

        self.last_error = None
        self.snapshot = snapshot
        if self.on_update:
            self.on_update(snapshot)

        if snapshot.needs_polling:
            self._was_pending = True
        elif self._was_pending and not self._completion_notified:
            self._completion_notified = True
            logger.info("All pending documents have been processed")
            if self.on_complete:
                self.on_complete(snapshot)
        return snapshot

    async def _run(self) -> None:
        while True:
            snapshot = await self.refresh()
            if snapshot is not None and not snapshot.needs_polling:
                return
            logger.debug(f"Polling for document updates in {self.interval}s")
            await asyncio.sleep(self.interval)
