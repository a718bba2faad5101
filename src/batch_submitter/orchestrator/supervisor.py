"""Loop supervisor - one independent, never-ending submission loop per role."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Iterable

from batch_submitter.models.config import PollConfig
from batch_submitter.models.records import LoopStats, SubmitterBinding, SubmitterRole

log = logging.getLogger(__name__)


class LoopSupervisor:
    """Drives each enabled submitter forever at a fixed polling cadence.

    Every iteration calls submit_next_batch(), logs any error, then sleeps
    poll_interval whatever the outcome. Loops share nothing but the poll
    settings, so one failing submitter never stalls the other.
    """

    def __init__(
        self,
        bindings: Iterable[SubmitterBinding],
        poll: PollConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._bindings: dict[SubmitterRole, SubmitterBinding] = {}
        for binding in bindings:
            if binding.role in self._bindings:
                raise ValueError(f"duplicate submitter binding for role {binding.role.value}")
            self._bindings[binding.role] = binding
        self._poll = poll
        self._sleep = sleep
        self._stopping = asyncio.Event()
        self._tasks: dict[SubmitterRole, asyncio.Task] = {}
        self.stats: dict[SubmitterRole, LoopStats] = {
            role: LoopStats(role=role) for role in self._bindings
        }

    @property
    def running_roles(self) -> list[SubmitterRole]:
        return [role for role, task in self._tasks.items() if not task.done()]

    def start(self) -> list[asyncio.Task]:
        """Launch a task per enabled binding. Disabled roles are never run."""
        if self._tasks:
            raise RuntimeError("submission loops already started")

        for role, binding in self._bindings.items():
            if not binding.enabled:
                log.info("%s submitter disabled", role.value)
                continue
            self._tasks[role] = asyncio.create_task(
                self._run_loop(binding), name=f"{role.value}-loop",
            )
            log.info(
                "%s loop started (poll_interval=%.3fs)", role.value, self._poll.poll_interval,
            )
        return list(self._tasks.values())

    async def wait(self) -> None:
        """Block until every loop has finished, i.e. until stop()."""
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    async def stop(self) -> None:
        """Cancel all loops and wait for them to unwind."""
        self._stopping.set()
        for task in self._tasks.values():
            task.cancel()
        await self.wait()
        log.info("Submission loops stopped")

    async def _run_loop(self, binding: SubmitterBinding) -> None:
        stats = self.stats[binding.role]
        while not self._stopping.is_set():
            await self._run_once(binding, stats)
            await self._sleep(self._poll.poll_interval)

    async def _run_once(self, binding: SubmitterBinding, stats: LoopStats) -> None:
        stats.iterations += 1
        try:
            await binding.submitter.submit_next_batch()
        except Exception as exc:
            stats.failures += 1
            stats.consecutive_failures += 1
            stats.last_error = str(exc)
            log.error(
                "Error submitting batch (%s): %s", binding.role.value, exc, exc_info=True,
            )
            log.info("Retrying...")
        else:
            stats.successes += 1
            stats.consecutive_failures = 0
            stats.last_success_at = time.time()
