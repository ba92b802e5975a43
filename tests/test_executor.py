"""Tests for scenario execution: constant and staged-ramp executors."""

import asyncio

import pytest

from pizza_perf.aggregator import MetricsAggregator
from pizza_perf.executor import ScenarioExecutor, ScenarioState, target_at
from pizza_perf.models import STAGED_RAMP, CheckResult, Sample, ScenarioSpec, Stage


def _recording_step(calls):
    async def step(ctx):
        calls.append((ctx.vu, ctx.iteration))
        ctx.record(Sample(0.0, 5.0, 200, ctx.tags), [CheckResult("ok", True)])
    return step


class TestTargetAt:
    def test_linear_interpolation_floored(self):
        stages = [Stage(10, 10)]
        assert target_at(stages, 0, 0) == (0, 0)
        assert target_at(stages, 0, 2.5) == (2, 0)
        assert target_at(stages, 0, 5) == (5, 0)
        assert target_at(stages, 0, 9.99) == (9, 0)

    def test_moves_from_previous_target(self):
        stages = [Stage(10, 10), Stage(10, 0)]
        assert target_at(stages, 0, 10) == (10, 1)
        assert target_at(stages, 0, 15) == (5, 1)

    def test_starts_from_initial_vus(self):
        assert target_at([Stage(4, 8)], 4, 2) == (6, 0)

    def test_zero_length_stage_jumps(self):
        stages = [Stage(0, 7), Stage(10, 7)]
        assert target_at(stages, 0, 0) == (7, 1)

    def test_after_last_stage_holds_final_target(self):
        assert target_at([Stage(5, 3)], 0, 50) == (3, 0)


class TestConstantExecutor:
    def test_exact_iterations_with_virtual_clock(self, fake_clock):
        calls = []
        spec = ScenarioSpec(name="steady", vus=1, duration_seconds=3, think_time=(1, 1))
        aggregator = MetricsAggregator()
        executor = ScenarioExecutor(spec, _recording_step(calls), aggregator, clock=fake_clock)

        outcome = asyncio.run(executor.run())

        assert calls == [(1, 0), (1, 1), (1, 2)]
        assert len(aggregator.samples) == 3
        assert outcome.status == "completed"
        assert outcome.iterations == 3
        assert executor.state == ScenarioState.COMPLETED

    def test_each_vu_has_its_own_iteration_counter(self, fake_clock):
        calls = []
        spec = ScenarioSpec(name="pair", vus=2, iterations=2, think_time=(1, 1))
        executor = ScenarioExecutor(spec, _recording_step(calls), MetricsAggregator(), clock=fake_clock)
        outcome = asyncio.run(executor.run())
        assert sorted(calls) == [(1, 0), (1, 1), (2, 0), (2, 1)]
        assert outcome.vus_max == 2

    def test_iteration_cap_without_duration(self):
        calls = []
        spec = ScenarioSpec(name="once", vus=3, iterations=2, think_time=(0, 0))
        outcome = asyncio.run(ScenarioExecutor(spec, _recording_step(calls), MetricsAggregator()).run())
        assert outcome.iterations == 6
        assert sorted(calls) == [(v, i) for v in (1, 2, 3) for i in (0, 1)]

    def test_samples_carry_scenario_tags(self, fake_clock):
        spec = ScenarioSpec(
            name="tagged", vus=1, duration_seconds=1, think_time=(1, 1), tags={"test_type": "smoke"},
        )
        aggregator = MetricsAggregator()
        asyncio.run(ScenarioExecutor(spec, _recording_step([]), aggregator, clock=fake_clock).run())
        tags = aggregator.samples[0].tags
        assert tags["scenario"] == "tagged"
        assert tags["test_type"] == "smoke"
        assert tags["vu"] == "1"
        assert tags["iter"] == "0"

    def test_raising_step_becomes_failed_check(self, fake_clock):
        async def step(ctx):
            raise RuntimeError("kaput")

        spec = ScenarioSpec(name="broken", vus=1, duration_seconds=2, think_time=(1, 1))
        aggregator = MetricsAggregator()
        outcome = asyncio.run(ScenarioExecutor(spec, step, aggregator, clock=fake_clock).run())

        assert outcome.status == "completed"
        assert outcome.iterations == 2
        assert aggregator.samples == ()
        checks = aggregator.check_results
        assert [c.name for c in checks] == ["iteration error: RuntimeError"] * 2
        assert checks[0].error == "kaput"

    def test_zero_vus_runs_nothing(self, fake_clock):
        calls = []
        spec = ScenarioSpec(name="idle", vus=0, duration_seconds=5)
        outcome = asyncio.run(ScenarioExecutor(spec, _recording_step(calls), MetricsAggregator(), clock=fake_clock).run())
        assert calls == []
        assert outcome.status == "completed"


class TestStopAndAbort:
    def test_abort_before_start(self):
        calls = []
        spec = ScenarioSpec(name="never", vus=2, duration_seconds=10)
        executor = ScenarioExecutor(spec, _recording_step(calls), MetricsAggregator())
        executor.abort("setup failed")
        outcome = asyncio.run(executor.run())
        assert calls == []
        assert outcome.status == "aborted"
        assert outcome.abort_reason == "setup failed"

    def test_run_twice_rejected(self, fake_clock):
        spec = ScenarioSpec(name="once", vus=1, iterations=1, think_time=(0, 0))
        executor = ScenarioExecutor(spec, _recording_step([]), MetricsAggregator(), clock=fake_clock)
        asyncio.run(executor.run())
        with pytest.raises(RuntimeError, match="already ran"):
            asyncio.run(executor.run())

    def test_stop_mid_stage_lets_in_flight_iterations_finish(self):
        spec = ScenarioSpec(
            name="ramp", executor=STAGED_RAMP, vus=3, stages=[Stage(10, 3)], think_time=(0, 0),
        )
        aggregator = MetricsAggregator()

        async def scenario():
            gate = asyncio.Event()
            started = []

            async def step(ctx):
                started.append(ctx.vu)
                await gate.wait()
                ctx.record(Sample(0.0, 1.0, 200, ctx.tags))

            executor = ScenarioExecutor(spec, step, aggregator, tick=0.01)
            task = asyncio.ensure_future(executor.run())
            while len(started) < 3:
                await asyncio.sleep(0.01)

            executor.stop()
            await asyncio.sleep(0.05)
            state_while_draining = executor.state
            gate.set()
            outcome = await task
            return state_while_draining, outcome, executor

        draining, outcome, executor = asyncio.run(scenario())
        assert draining == ScenarioState.RUNNING
        assert outcome.status == "completed"
        assert outcome.iterations == 3
        assert len(aggregator.samples) == 3
        assert executor.state == ScenarioState.COMPLETED


class TestRampExecutor:
    def test_ramp_scales_up_and_down(self, fake_clock):
        active = []

        async def step(ctx):
            active.append(ctx.vu)
            ctx.record(Sample(0.0, 1.0, 200, ctx.tags))

        spec = ScenarioSpec(
            name="ramp",
            executor=STAGED_RAMP,
            vus=0,
            stages=[Stage(4, 4), Stage(4, 0)],
            think_time=(0, 0),
        )
        executor = ScenarioExecutor(spec, step, MetricsAggregator(), clock=fake_clock, tick=1.0)
        outcome = asyncio.run(executor.run())

        assert outcome.status == "completed"
        assert outcome.vus_max == 4
        assert set(active) == {1, 2, 3, 4}
        assert executor.status.active_vus == 0
