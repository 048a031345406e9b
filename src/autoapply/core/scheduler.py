from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from collections.abc import Awaitable, Callable

from autoapply.config import Settings, get_settings
from autoapply.core.orchestrator import AutoApplyOrchestrator

logger = logging.getLogger(__name__)


class AutoApplyScheduler:
    """Drives ``AutoApplyOrchestrator.tick`` on a fixed interval until cancelled."""

    def __init__(
        self,
        orchestrator: AutoApplyOrchestrator,
        *,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.orchestrator = orchestrator
        self.settings = settings or get_settings()
        self.sleep = sleep
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task[None]:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop(), name="autoapply-scheduler")
        return self._task

    async def shutdown(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        await self.orchestrator.shutdown()
        logger.info("Scheduler stopped")

    async def run_forever(self, *, install_signal_handlers: bool = True) -> None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        installed: list[signal.Signals] = []
        if install_signal_handlers:
            for sig in (signal.SIGINT, signal.SIGTERM):
                with contextlib.suppress(NotImplementedError):
                    loop.add_signal_handler(sig, stop.set)
                    installed.append(sig)

        self.start()
        try:
            await stop.wait()
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
            await self.shutdown()

    async def _loop(self) -> None:
        interval = self.settings.scheduler_tick_minutes * 60
        logger.info("Starting continuous autoapply process interval_min=%s", self.settings.scheduler_tick_minutes)
        while True:
            try:
                await self.orchestrator.tick()
            except Exception:
                logger.exception("Continuous autoapply cycle failed")
            await self.sleep(interval)
