from __future__ import annotations

import asyncio
import contextlib
import inspect
import math
from typing import Any, Callable

from .events import EventBus

POLICY_FIXED_RATE = "fixed_rate"
POLICY_FIXED_DELAY = "fixed_delay"


class Scheduler:
    """Cancellable immediate-plus-periodic runner for tracker cycles.

    Cycles never overlap. With ``fixed_rate`` the loop aims at ticks spaced
    ``interval_s`` apart from the first start and skips any tick a slow cycle
    ran past; with ``fixed_delay`` it sleeps the full interval after each
    cycle. A failing cycle is published and the loop moves on.
    """

    def __init__(
        self,
        cycle: Callable[[], Any],
        *,
        interval_s: float,
        policy: str = POLICY_FIXED_RATE,
        event_bus: EventBus | None = None,
        max_cycles: int | None = None,
    ) -> None:
        if policy not in (POLICY_FIXED_RATE, POLICY_FIXED_DELAY):
            raise ValueError(f"unknown schedule policy: {policy}")
        self.cycle = cycle
        self.interval_s = max(0.0, float(interval_s))
        self.policy = policy
        self.event_bus = event_bus or EventBus()
        self.max_cycles = max_cycles

        self.cycles_run = 0
        self.failures = 0
        self.missed_ticks = 0

        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task[None]:
        if self._task is not None and not self._task.done():
            return self._task
        self._task = asyncio.create_task(self._loop(), name="progress-tracker-scheduler")
        self.event_bus.publish_event(
            "scheduler.started",
            f"Scheduler started; cycles every {self.interval_s:g}s ({self.policy}).",
            source="scheduler",
            metadata={"interval_s": self.interval_s, "policy": self.policy, "max_cycles": self.max_cycles},
        )
        return self._task

    async def stop(self) -> None:
        task = self._task
        if task is None:
            return
        self._task = None
        await _cancel_task(task)
        self.event_bus.publish_event(
            "scheduler.stopped",
            f"Scheduler stopped after {self.cycles_run} cycles.",
            source="scheduler",
            metadata={"cycles": self.cycles_run, "failures": self.failures},
        )

    async def wait(self) -> None:
        if self._task is None:
            return
        with contextlib.suppress(asyncio.CancelledError):
            await self._task

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        anchor = loop.time()
        tick = 0
        while True:
            await self._run_one()
            if self.max_cycles is not None and self.cycles_run >= self.max_cycles:
                return
            tick, delay = self._next_slot(tick, loop.time(), anchor)
            await asyncio.sleep(delay)

    async def _run_one(self) -> None:
        self.cycles_run += 1
        try:
            await _maybe_await(self.cycle())
        except Exception as exc:  # noqa: BLE001
            self.failures += 1
            self.event_bus.publish_event(
                "cycle.error",
                f"Error updating progress: {exc}",
                severity="error",
                source="scheduler",
                metadata={"cycle": self.cycles_run, "error": type(exc).__name__},
            )

    def _next_slot(self, tick: int, now: float, anchor: float) -> tuple[int, float]:
        """Return the next tick index and how long to sleep until it."""

        if self.policy == POLICY_FIXED_DELAY or self.interval_s <= 0:
            return tick + 1, self.interval_s
        next_tick = max(tick + 1, math.floor((now - anchor) / self.interval_s) + 1)
        skipped = next_tick - (tick + 1)
        if skipped > 0:
            self.missed_ticks += skipped
            self.event_bus.publish_event(
                "scheduler.tick.skipped",
                f"Cycle overran its slot; skipping {skipped} tick(s).",
                severity="warn",
                source="scheduler",
                metadata={"skipped": skipped},
            )
        return next_tick, max(0.0, anchor + next_tick * self.interval_s - now)


def run_scheduler(
    cycle: Callable[[], Any],
    *,
    interval_s: float,
    policy: str = POLICY_FIXED_RATE,
    event_bus: EventBus | None = None,
    max_cycles: int | None = None,
) -> Scheduler:
    """Blocking helper: run a scheduler until it finishes or is interrupted."""

    scheduler = Scheduler(
        cycle,
        interval_s=interval_s,
        policy=policy,
        event_bus=event_bus,
        max_cycles=max_cycles,
    )

    async def _main() -> None:
        scheduler.start()
        try:
            await scheduler.wait()
        finally:
            await scheduler.stop()

    asyncio.run(_main())
    return scheduler


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def _cancel_task(task: asyncio.Task[None] | None) -> None:
    if task is None:
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
