"""Run one scenario's virtual users under a constant or staged-ramp executor."""

import asyncio
import logging
import math
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence, Tuple

from pizza_perf.aggregator import MetricsAggregator
from pizza_perf.models import (
    CONSTANT_CONCURRENCY,
    CheckResult,
    Sample,
    ScenarioOutcome,
    ScenarioSpec,
    Stage,
    freeze_tags,
)

logger = logging.getLogger(__name__)


class MonotonicClock:
    """Real time. ``wait`` sleeps until the timeout or until *event* is set."""

    def now(self) -> float:
        return time.monotonic()

    async def wait(self, event: asyncio.Event, timeout: float) -> bool:
        if event.is_set():
            return True
        if timeout <= 0:
            # still yield so a VU with no think time cannot starve the loop
            await asyncio.sleep(0)
            return event.is_set()
        try:
            await asyncio.wait_for(event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True


class ScenarioState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class ScenarioStatus:
    state: ScenarioState
    stage_index: int = 0
    elapsed: float = 0.0
    active_vus: int = 0
    iterations: int = 0


@dataclass(frozen=True)
class IterationContext:
    scenario: str
    vu: int
    iteration: int
    tags: Mapping[str, str]
    setup_data: Any
    aggregator: MetricsAggregator

    def record(self, sample: Sample, checks: Sequence[CheckResult] = ()) -> None:
        self.aggregator.record(sample, checks)


Step = Callable[[IterationContext], Awaitable[None]]


def target_at(stages: Sequence[Stage], start_vus: int, elapsed: float) -> Tuple[int, int]:
    """Return ``(target_vus, stage_index)`` for a ramp *elapsed* seconds in.

    Each stage moves linearly from the previous target to its own; the value
    is floored. Zero-length stages jump straight to their target.
    """
    previous = start_vus
    offset = 0.0
    for index, stage in enumerate(stages):
        end = offset + stage.duration_seconds
        if elapsed < end:
            fraction = (elapsed - offset) / stage.duration_seconds
            value = previous + (stage.target - previous) * fraction
            return int(math.floor(value + 1e-9)), index
        previous = stage.target
        offset = end
    return previous, max(len(stages) - 1, 0)


class _VirtualUser:
    def __init__(self, vu_id: int):
        self.id = vu_id
        self.stop = asyncio.Event()
        self.task: Optional[asyncio.Task] = None


class ScenarioExecutor:
    """Drive the virtual users of a single scenario.

    States move ``PENDING -> RUNNING -> COMPLETED | ABORTED``. Stopping never
    interrupts a step in flight: VUs are signalled and finish their current
    iteration before exiting. Exceptions escaping a step are recorded as a
    failed check and the VU keeps looping.
    """

    def __init__(
        self,
        spec: ScenarioSpec,
        step: Step,
        aggregator: MetricsAggregator,
        setup_data: Any = None,
        clock=None,
        rng: Optional[random.Random] = None,
        tick: float = 1.0,
    ):
        self.spec = spec
        self._step = step
        self._aggregator = aggregator
        self._setup_data = setup_data
        self._clock = clock or MonotonicClock()
        self._rng = rng or random.Random()
        self._tick = tick
        self._state = ScenarioState.PENDING
        self._stage_index = 0
        self._started: Optional[float] = None
        self._stop_requested: Optional[asyncio.Event] = None
        self._abort_reason: Optional[str] = None
        self._active: List[_VirtualUser] = []
        self._tasks: List[asyncio.Task] = []
        self._next_vu = 1
        self._iterations = 0
        self._vus_max = 0
        self._base_tags = {"scenario": spec.name, **spec.tags}

    @property
    def state(self) -> ScenarioState:
        return self._state

    @property
    def status(self) -> ScenarioStatus:
        elapsed = 0.0
        if self._started is not None:
            elapsed = self._clock.now() - self._started
        return ScenarioStatus(
            state=self._state,
            stage_index=self._stage_index,
            elapsed=elapsed,
            active_vus=len(self._active),
            iterations=self._iterations,
        )

    def stop(self) -> None:
        """Ask every VU to finish its current iteration and exit."""
        if self._stop_requested is not None:
            self._stop_requested.set()
        for vu in self._active:
            vu.stop.set()

    def abort(self, reason: str) -> None:
        """Abort before start, or stop gracefully and finish as aborted."""
        self._abort_reason = reason
        if self._state == ScenarioState.PENDING:
            self._state = ScenarioState.ABORTED
            logger.warning("Scenario %s aborted before start: %s", self.spec.name, reason)
            return
        self.stop()

    async def run(self) -> ScenarioOutcome:
        if self._state == ScenarioState.ABORTED:
            return self._outcome()
        if self._state != ScenarioState.PENDING:
            raise RuntimeError(f"scenario {self.spec.name!r} already ran")

        self._stop_requested = asyncio.Event()
        self._started = self._clock.now()
        self._state = ScenarioState.RUNNING
        logger.info("Scenario %s started (%s)", self.spec.name, self.spec.executor)

        try:
            if self.spec.executor == CONSTANT_CONCURRENCY:
                await self._run_constant()
            else:
                await self._run_ramp()
        finally:
            self._retire(len(self._active))
            if self._tasks:
                await asyncio.gather(*self._tasks)

        self._state = ScenarioState.ABORTED if self._abort_reason else ScenarioState.COMPLETED
        logger.info(
            "Scenario %s %s after %d iterations",
            self.spec.name, self._state.value, self._iterations,
        )
        return self._outcome()

    # -- executors ------------------------------------------------------------

    async def _run_constant(self) -> None:
        deadline = self._started + self.spec.duration_seconds
        if self.spec.iterations is not None and self.spec.duration_seconds == 0:
            deadline = None
        self._spawn(self.spec.vus, deadline)
        await asyncio.gather(*self._tasks)

    async def _run_ramp(self) -> None:
        total = sum(stage.duration_seconds for stage in self.spec.stages)
        while not self._stop_requested.is_set():
            elapsed = self._clock.now() - self._started
            if elapsed >= total:
                break
            target, self._stage_index = target_at(self.spec.stages, self.spec.vus, elapsed)
            self._scale_to(target)
            await self._clock.wait(self._stop_requested, min(self._tick, total - elapsed))

    def _scale_to(self, target: int) -> None:
        current = len(self._active)
        if target > current:
            self._spawn(target - current, None)
        elif target < current:
            self._retire(current - target)

    def _spawn(self, count: int, deadline: Optional[float]) -> None:
        for _ in range(count):
            vu = _VirtualUser(self._next_vu)
            self._next_vu += 1
            vu.task = asyncio.ensure_future(self._vu_loop(vu, deadline))
            self._active.append(vu)
            self._tasks.append(vu.task)
        self._vus_max = max(self._vus_max, len(self._active))

    def _retire(self, count: int) -> None:
        for _ in range(count):
            vu = self._active.pop()
            vu.stop.set()

    async def _vu_loop(self, vu: _VirtualUser, deadline: Optional[float]) -> None:
        iteration = 0
        cap = self.spec.iterations
        while not vu.stop.is_set():
            if deadline is not None and self._clock.now() >= deadline:
                break
            tags = freeze_tags({**self._base_tags, "vu": vu.id, "iter": iteration})
            ctx = IterationContext(
                scenario=self.spec.name,
                vu=vu.id,
                iteration=iteration,
                tags=tags,
                setup_data=self._setup_data,
                aggregator=self._aggregator,
            )
            try:
                await self._step(ctx)
            except Exception as exc:
                logger.debug("VU %d iteration %d raised %r", vu.id, iteration, exc)
                self._aggregator.record_checks(
                    [CheckResult(name=f"iteration error: {type(exc).__name__}", passed=False, error=str(exc))],
                    tags,
                )
            iteration += 1
            self._iterations += 1
            if cap is not None and iteration >= cap:
                break
            await self._clock.wait(vu.stop, self._rng.uniform(*self.spec.think_time))
        if vu in self._active:
            self._active.remove(vu)

    def _outcome(self) -> ScenarioOutcome:
        return ScenarioOutcome(
            name=self.spec.name,
            status=self._state.value if self._state != ScenarioState.RUNNING else "completed",
            iterations=self._iterations,
            vus_max=self._vus_max,
            abort_reason=self._abort_reason,
        )
