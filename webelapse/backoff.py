"""Exponential backoff and segment completion for the capture loop."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from webelapse.compiler import CompileResult
from webelapse.config import ScheduleParameters
from webelapse.run_state import RunState
from webelapse.scheduler import ScheduledCall

_LOG = logging.getLogger("webelapse.backoff")


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall: ...


def compute_delay(duplicates: int, base: float, maximum: float) -> float:
    """``base * 2**duplicates`` clamped to ``maximum``; ``base`` with no duplicates."""
    if duplicates <= 0:
        return min(base, maximum)
    delay = base
    for _ in range(duplicates):
        delay *= 2
        if delay >= maximum:
            return maximum
    return delay


def segment_complete(delay: float, maximum: float, frame_count: int, target: int | None) -> bool:
    if delay >= maximum:
        return True
    return bool(target) and frame_count >= target


@dataclass
class Decision:
    delay: float | None
    complete: bool = False
    compiled: CompileResult | None = None
    armed: ScheduledCall | None = None

    @property
    def finished(self) -> bool:
        """True when the run has nothing left to do."""
        return self.armed is None


class BackoffScheduler:
    """Decides, after every cycle, whether to compile and when to capture next."""

    def __init__(
        self,
        params: ScheduleParameters,
        scheduler: Scheduler,
        compile_fn: Callable[[Sequence[Path]], CompileResult],
    ) -> None:
        self.params = params
        self.scheduler = scheduler
        self.compile_fn = compile_fn

    def decide(self, state: RunState, run_cycle: Callable[[], None]) -> Decision:
        params = self.params
        if not params.scheduling_enabled:
            return Decision(delay=None)

        delay = compute_delay(state.duplicates, params.interval, params.max_interval)
        if not segment_complete(delay, params.max_interval, len(state.frames), params.frames):
            _LOG.debug("Next capture in %gs (%d duplicates)", delay, state.duplicates)
            return Decision(delay=delay, armed=self.scheduler.call_later(delay, run_cycle))

        _LOG.info(
            "Segment complete with %d frames (delay %gs, %d duplicates)",
            len(state.frames),
            delay,
            state.duplicates,
        )
        result = self.compile_fn(list(state.frames))
        state.reset()
        armed = None
        if params.infinite:
            armed = self.scheduler.call_later(delay, run_cycle)
        return Decision(delay=delay, complete=True, compiled=result, armed=armed)
