"""Compose setup, scenario execution, aggregation, thresholds, and teardown into one run."""

import asyncio
import inspect
import logging
import random
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

from pizza_perf.aggregator import MetricsAggregator
from pizza_perf.executor import MonotonicClock, ScenarioExecutor, ScenarioState, Step
from pizza_perf.models import LoadPlan, RunReport, ScenarioOutcome, ScenarioSpec
from pizza_perf.steps import build_step, probe_health
from pizza_perf.thresholds import check_thresholds, parse_thresholds

logger = logging.getLogger(__name__)

SEQUENTIAL = "sequential"
CONCURRENT = "concurrent"

StepFactory = Callable[[LoadPlan, httpx.AsyncClient, random.Random], Step]


class SetupError(Exception):
    """Raised when the pre-run setup fails and the run must not start."""


def schedule_mode(scenarios: Sequence[ScenarioSpec]) -> str:
    """Sequential when every scenario has a known window and none overlap."""
    windows = []
    for spec in scenarios:
        duration = spec.planned_duration
        if duration is None:
            return CONCURRENT
        windows.append((spec.start_offset_seconds, spec.start_offset_seconds + duration))
    windows.sort()
    for (_, previous_end), (start, _) in zip(windows, windows[1:]):
        if start < previous_end:
            return CONCURRENT
    return SEQUENTIAL


class Orchestrator:
    """Run a LoadPlan against a base URL and produce the final RunReport.

    ``setup`` receives the HTTP client and returns a context value handed to
    every iteration; ``teardown`` receives that context and the report. Both
    may be plain or async callables. Without a custom setup the API health
    endpoint is probed: a failure only warns unless ``strict_setup`` is set,
    in which case every scenario is aborted before a VU starts.
    """

    def __init__(
        self,
        plan: LoadPlan,
        base_url: str,
        step_factory: Optional[StepFactory] = None,
        setup: Optional[Callable[[httpx.AsyncClient], Any]] = None,
        teardown: Optional[Callable[[Any, RunReport], Any]] = None,
        strict_setup: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock=None,
        rng: Optional[random.Random] = None,
        request_timeout: float = 60.0,
        tick: float = 1.0,
    ):
        self.plan = plan
        self.base_url = base_url.rstrip("/")
        self.aggregator = MetricsAggregator()
        self._step_factory = step_factory or build_step
        self._setup = setup
        self._teardown = teardown
        self._strict_setup = strict_setup
        self._transport = transport
        self._clock = clock or MonotonicClock()
        self._rng = rng or random.Random()
        self._request_timeout = request_timeout
        self._tick = tick
        self._executors: List[ScenarioExecutor] = []
        self._stop_event: Optional[asyncio.Event] = None
        self._stop_early = False

    @property
    def executors(self) -> List[ScenarioExecutor]:
        return list(self._executors)

    def stop(self) -> None:
        """Gracefully stop every running scenario and skip the ones not started."""
        self._stop_early = True
        if self._stop_event is not None:
            self._stop_event.set()
        for executor in self._executors:
            executor.stop()

    async def run(self) -> RunReport:
        threshold_specs = parse_thresholds(self.plan.thresholds)
        self._stop_event = asyncio.Event()
        if self._stop_early:
            self._stop_event.set()
        started_at = datetime.now(timezone.utc)

        async with httpx.AsyncClient(
            base_url=self.base_url,
            transport=self._transport,
            timeout=self._request_timeout,
        ) as client:
            step = self._step_factory(self.plan, client, self._rng)
            context, setup_error = await self._run_setup(client)
            self._executors = [
                ScenarioExecutor(
                    spec, step, self.aggregator,
                    setup_data=context, clock=self._clock, rng=self._rng, tick=self._tick,
                )
                for spec in self.plan.scenarios
            ]
            if setup_error is not None:
                for executor in self._executors:
                    executor.abort(f"setup failed: {setup_error}")
            outcomes = await self._run_scenarios()

        report = self.aggregator.summarize(
            plan=self.plan.name,
            scenarios=outcomes,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )
        results = check_thresholds(report, threshold_specs)
        success = all(r.passed for r in results) and not any(o.status == "aborted" for o in outcomes)
        report = replace(report, thresholds=tuple(results), success=success)

        await self._run_teardown(context, report)
        return report

    # -- setup / teardown -----------------------------------------------------

    async def _run_setup(self, client: httpx.AsyncClient):
        try:
            if self._setup is None:
                return await self._default_setup(client), None
            return await _maybe_await(self._setup(client)), None
        except Exception as exc:
            logger.error("Setup failed for plan %s: %s", self.plan.name, exc)
            return None, str(exc) or type(exc).__name__

    async def _default_setup(self, client: httpx.AsyncClient) -> Dict[str, Any]:
        logger.info("Starting plan %s against %s", self.plan.name, self.base_url)
        logger.info("Test scenarios: %s", ", ".join(s.name for s in self.plan.scenarios))
        healthy = await probe_health(client)
        if not healthy and self._strict_setup:
            raise SetupError(f"health check against {self.base_url} failed")
        return {
            "started_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "healthy": healthy,
        }

    async def _run_teardown(self, context: Any, report: RunReport) -> None:
        if self._teardown is None:
            logger.info("Plan %s completed at %s", self.plan.name, report.finished_at)
            if isinstance(context, dict) and context.get("started_at"):
                logger.info("Plan %s started at %s", self.plan.name, context["started_at"])
            return
        try:
            await _maybe_await(self._teardown(context, report))
        except Exception as exc:
            logger.warning("Teardown failed for plan %s: %s", self.plan.name, exc)

    # -- scheduling -----------------------------------------------------------

    async def _run_scenarios(self) -> List[ScenarioOutcome]:
        mode = schedule_mode(self.plan.scenarios)
        logger.info("Running %d scenario(s) %sly", len(self._executors), mode)
        start = self._clock.now()

        if mode == CONCURRENT:
            return list(await asyncio.gather(*(self._run_at(ex, start) for ex in self._executors)))

        outcomes: Dict[int, ScenarioOutcome] = {}
        order = sorted(range(len(self._executors)), key=lambda i: self._executors[i].spec.start_offset_seconds)
        for index in order:
            outcomes[index] = await self._run_at(self._executors[index], start)
        return [outcomes[index] for index in range(len(self._executors))]

    async def _run_at(self, executor: ScenarioExecutor, start: float) -> ScenarioOutcome:
        delay = start + executor.spec.start_offset_seconds - self._clock.now()
        if delay > 0:
            await self._clock.wait(self._stop_event, delay)
        if self._stop_event.is_set() and executor.state == ScenarioState.PENDING:
            executor.abort("run stopped before the scenario started")
        return await executor.run()


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value
