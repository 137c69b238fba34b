"""
Loop orchestrator: independently scheduled, failure isolated periodic loops.

Each loop is a ``tick(now)`` coroutine function. The orchestrator decides
*when* ticks happen; the tick decides what to do at ``now``. In background
mode every loop gets its own asyncio task sleeping on a stop event. Tests
call ``start(background=False)`` and then ``run_due()`` after moving an
injected clock, stepping virtual time without real sleeps.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from pulse.v1.core.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

Tick = Callable[[datetime], Awaitable[Any]]


@dataclass
class LoopState:
    name: str
    interval_s: float
    tick: Tick
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    runs: int = 0
    failures: int = 0
    skipped: int = 0
    last_error: str | None = None
    last_result: Any = None
    last_run_at: datetime | None = None
    next_run_at: datetime | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "interval_s": self.interval_s,
            "runs": self.runs,
            "failures": self.failures,
            "skipped": self.skipped,
            "running": self.lock.locked(),
            "last_error": self.last_error,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "next_run_at": self.next_run_at.isoformat() if self.next_run_at else None,
        }


class LoopOrchestrator:
    """
    Owns the engine's periodic loops.

    Guarantees:
    - an exception in one tick is logged and never reaches other loops
    - ticks of the same loop never overlap; a trigger that finds the loop
      busy is dropped, not queued
    - ``recovery`` runs once per ``start()``, before any tick
    """

    def __init__(
        self,
        clock: Clock | None = None,
        recovery: Callable[[], Awaitable[Any]] | None = None,
        shutdown_grace_s: float = 10.0,
    ):
        self.clock = clock or SystemClock()
        self.recovery = recovery
        self.shutdown_grace_s = shutdown_grace_s
        self._loops: dict[str, LoopState] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._stop_event: asyncio.Event | None = None
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    def add_loop(self, name: str, interval_s: float, tick: Tick) -> None:
        if self._started:
            raise RuntimeError(f"Cannot add loop '{name}' while the orchestrator runs")
        if name in self._loops:
            raise ValueError(f"Loop already registered: {name}")
        if interval_s <= 0:
            raise ValueError(f"Loop interval must be positive, got {interval_s}")
        self._loops[name] = LoopState(name=name, interval_s=interval_s, tick=tick)

    def loop_names(self) -> list[str]:
        return list(self._loops)

    async def start(self, background: bool = True) -> None:
        """Recover, then fire one eager tick per loop and arm the schedule."""
        if self._started:
            logger.debug("Orchestrator already running")
            return

        self._started = True
        self._stop_event = asyncio.Event()

        if self.recovery is not None:
            try:
                await self.recovery()
            except Exception:
                logger.exception("Startup recovery failed")

        now = self.clock.now()
        for loop in self._loops.values():
            loop.next_run_at = now

        logger.info(
            "Starting loop orchestrator",
            extra={"loops": self.loop_names(), "background": background},
        )

        if background:
            for loop in self._loops.values():
                self._tasks[loop.name] = asyncio.create_task(
                    self._run_loop(loop), name=f"pulse-loop-{loop.name}"
                )
        else:
            await self.run_due(now)

    async def stop(self) -> None:
        """Disarm every loop. In-flight ticks get the shutdown grace to finish."""
        if not self._started:
            return

        self._started = False
        if self._stop_event is not None:
            self._stop_event.set()

        tasks = list(self._tasks.values())
        self._tasks.clear()
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=self.shutdown_grace_s)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning(
                    "Loops cancelled after shutdown grace",
                    extra={"loops": sorted(t.get_name() for t in pending)},
                )
                await asyncio.gather(*pending, return_exceptions=True)

        for loop in self._loops.values():
            loop.next_run_at = None
        logger.info("Loop orchestrator stopped")

    async def run_due(self, now: datetime | None = None) -> dict[str, Any]:
        """Tick every loop whose next run is due at ``now``."""
        if not self._started:
            return {}

        now = now or self.clock.now()
        results = {}
        for loop in self._loops.values():
            if loop.next_run_at is not None and loop.next_run_at <= now:
                if await self.trigger(loop.name, now):
                    results[loop.name] = loop.last_result
        return results

    async def trigger(self, name: str, now: datetime | None = None) -> bool:
        """
        Run one tick of loop ``name`` now.

        Returns:
            False when the loop was already mid-tick and this trigger was dropped.
        """
        loop = self._loops[name]
        if loop.lock.locked():
            loop.skipped += 1
            logger.debug("Loop busy, tick skipped", extra={"loop": name})
            return False

        async with loop.lock:
            now = now or self.clock.now()
            loop.last_run_at = now
            loop.last_result = None
            try:
                loop.last_result = await loop.tick(now)
                loop.last_error = None
            except Exception as e:
                loop.failures += 1
                loop.last_error = str(e) or e.__class__.__name__
                logger.exception("Loop tick failed", extra={"loop": name})
            finally:
                loop.runs += 1
                if self._started:
                    loop.next_run_at = now + timedelta(seconds=loop.interval_s)
        return True

    def status(self) -> dict[str, Any]:
        return {
            "running": self._started,
            "loops": {name: loop.as_dict() for name, loop in self._loops.items()},
        }

    async def _run_loop(self, loop: LoopState) -> None:
        assert self._stop_event is not None
        while not self._stop_event.is_set():
            await self.trigger(loop.name)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=loop.interval_s)
            except TimeoutError:
                pass
