# backend/reverie/engine/systems/time_manager.py
"""
TimeEventManager - Scheduled events and fixed-rate recurring timers.

Each scheduled event runs in its own asyncio task. A recurring event fires
at a fixed rate: the next deadline is the previous deadline plus the
interval, and the callback is awaited to completion before the next wait
begins, so two invocations of the same event never overlap. A callback that
overruns its period skips the missed firings instead of queueing them.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict

if TYPE_CHECKING:
    from .context import GameContext

logger = logging.getLogger(__name__)

Callback = Callable[[], "Awaitable[Any] | Any"]


@dataclass
class TimeEvent:
    """A one-shot or recurring scheduled callback."""

    event_id: str
    delay: float
    callback: Callback
    recurring: bool = False
    runs: int = 0
    overruns: int = 0
    task: "asyncio.Task[None] | None" = None


class TimeEventManager:
    """
    Owns the scheduled events of the simulation.

    Usage:
        manager = TimeEventManager(ctx)
        await manager.start()
        manager.schedule(0.05, simulation_tick, recurring=True, event_id="simulation_tick")
        ...
        await manager.stop()
    """

    def __init__(self, ctx: "GameContext | None" = None) -> None:
        self.ctx = ctx
        self._events: Dict[str, TimeEvent] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start processing. Events scheduled before start() begin now."""
        if self._running:
            return
        self._running = True
        for event in self._events.values():
            if event.task is None:
                event.task = asyncio.create_task(self._run_event(event))
        logger.info("Time event manager started")

    async def stop(self) -> None:
        """Cancel every pending event and wait for their tasks to finish."""
        self._running = False
        tasks = [e.task for e in self._events.values() if e.task is not None]
        self._events.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Time event manager stopped")

    def schedule(
        self,
        delay_seconds: float,
        callback: Callback,
        *,
        recurring: bool = False,
        event_id: str | None = None,
    ) -> str:
        """
        Schedule a callback after delay_seconds.

        With recurring=True the callback repeats every delay_seconds until
        cancelled. Scheduling with an existing event_id replaces that event.
        """
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be non-negative")
        if recurring and delay_seconds <= 0:
            raise ValueError("recurring events need a positive interval")

        event_id = event_id or str(uuid.uuid4())
        self.cancel(event_id)

        event = TimeEvent(
            event_id=event_id,
            delay=delay_seconds,
            callback=callback,
            recurring=recurring,
        )
        self._events[event_id] = event
        if self._running:
            event.task = asyncio.create_task(self._run_event(event))
        return event_id

    def cancel(self, event_id: str) -> bool:
        """Cancel a scheduled event. Returns False if it does not exist."""
        event = self._events.pop(event_id, None)
        if event is None:
            return False
        if event.task is not None and not event.task.done():
            event.task.cancel()
        return True

    def get_event(self, event_id: str) -> TimeEvent | None:
        return self._events.get(event_id)

    async def _run_event(self, event: TimeEvent) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + event.delay
        try:
            while True:
                await asyncio.sleep(max(0.0, deadline - loop.time()))
                try:
                    result = event.callback()
                    if inspect.isawaitable(result):
                        await result
                except Exception:
                    logger.exception("Time event %s failed", event.event_id)
                event.runs += 1

                if not event.recurring or self._events.get(event.event_id) is not event:
                    break

                deadline += event.delay
                now = loop.time()
                if deadline < now:
                    event.overruns += 1
                    logger.debug("Time event %s overran its period", event.event_id)
                    deadline = now
        finally:
            if self._events.get(event.event_id) is event:
                del self._events[event.event_id]
