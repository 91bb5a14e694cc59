"""Timer scheduling for session loops.

WHY: The session loop needs one-shot timers (startup delay, tick,
end-phase refresh, replay delay) that it can cancel. Hiding the timer
source behind a tiny interface lets production code use the asyncio
event loop while tests drive time by hand.

HOW: Scheduler.call_later(delay_s, callback) returns a handle with a
cancel() method. AsyncioScheduler forwards to the running event loop's
call_later(), so every callback runs on the loop thread (the same
thread the HTTP handlers run on) and state is never mutated from two
threads at once.

RULES:
- Callbacks take no arguments and return nothing
- cancel() on an already-fired or already-cancelled handle is a no-op
- AsyncioScheduler must be used from code running on an event loop
  (or be given an explicit loop)
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop.

    RULES:
    - loop=None resolves the running loop at call time
    - Returned handles are asyncio.TimerHandle instances
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(0.0, delay_s), callback)
