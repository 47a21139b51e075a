"""Advisory per-attempt timers.

Each watched attempt gets one asyncio task that re-derives its phase and
remaining time from the clock on every tick. The Gated-Wait countdown turns
into the Active countdown inside the same task, so two timers never run for
one attempt, and the task auto-submits once when time reaches zero. Store
calls run in a worker thread so retry backoff never stalls the event loop.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Union

from quiz_engine.config import settings
from quiz_engine.exceptions import NotFoundError
from quiz_engine.models import AttemptPhase
from quiz_engine.services.attempt_machine import AttemptStateMachine

logger = logging.getLogger(__name__)

TickCallback = Callable[[str, AttemptPhase, int], Union[None, Awaitable[None]]]

TERMINAL_PHASES = (AttemptPhase.SUBMITTED, AttemptPhase.AUTO_SUBMITTED)


class CountdownScheduler:
    def __init__(self, machine: AttemptStateMachine,
                 tick_seconds: float = settings.countdown_tick_seconds,
                 on_tick: Optional[TickCallback] = None):
        self.machine = machine
        self.tick_seconds = tick_seconds
        self.on_tick = on_tick
        self._tasks: Dict[str, asyncio.Task] = {}

    def watch(self, attempt_id: str) -> asyncio.Task:
        """Start the attempt's timer, replacing any timer already running"""
        self.cancel(attempt_id)
        task = asyncio.create_task(self._run(attempt_id))
        self._tasks[attempt_id] = task
        task.add_done_callback(lambda t: self._discard(attempt_id, t))
        return task

    def _discard(self, attempt_id: str, task: asyncio.Task):
        if self._tasks.get(attempt_id) is task:
            del self._tasks[attempt_id]

    async def _notify(self, attempt_id: str, phase: AttemptPhase, seconds: int):
        if self.on_tick is None:
            return
        result = self.on_tick(attempt_id, phase, seconds)
        if asyncio.iscoroutine(result):
            await result

    async def _run(self, attempt_id: str):
        previous_phase = None
        while True:
            try:
                phase, seconds = await asyncio.to_thread(self.machine.countdown, attempt_id)
                if phase in TERMINAL_PHASES:
                    break
                if previous_phase == AttemptPhase.GATED_WAIT and phase == AttemptPhase.ACTIVE:
                    logger.info(f"Attempt {attempt_id} released: quiz has started")
                previous_phase = phase

                await self._notify(attempt_id, phase, seconds)

                if phase == AttemptPhase.ACTIVE and seconds <= 0:
                    logger.info(f"Time is up for attempt {attempt_id}, auto-submitting")
                    await asyncio.to_thread(self.machine.expire, attempt_id)
                    break

                await asyncio.sleep(self.tick_seconds)
            except asyncio.CancelledError:
                break
            except NotFoundError as e:
                logger.warning(f"Stopping countdown for attempt {attempt_id}: {e}")
                break
            except Exception as e:
                logger.error(f"Error in countdown for attempt {attempt_id}: {e}")
                await asyncio.sleep(self.tick_seconds)

    def cancel(self, attempt_id: str) -> bool:
        task = self._tasks.pop(attempt_id, None)
        if task is None:
            return False
        task.cancel()
        return True

    def cancel_all(self):
        for attempt_id in list(self._tasks):
            self.cancel(attempt_id)

    def is_watching(self, attempt_id: str) -> bool:
        return attempt_id in self._tasks

    def active_attempts(self) -> List[str]:
        return list(self._tasks)
