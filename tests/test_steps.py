"""Tests for workload steps and request suites."""

import asyncio
import json
import random

import httpx
import pytest

from pizza_perf.aggregator import MetricsAggregator
from pizza_perf.assertions import ResponseView
from pizza_perf.executor import IterationContext
from pizza_perf.models import LoadPlan, OrderPizzaRequest, ScenarioSpec, freeze_tags
from pizza_perf.steps import OrderStep, build_step, probe_health
from pizza_perf.suites import boundary_cases, find_case, functional_cases


def _ctx(aggregator, iteration=0, **tags):
    return IterationContext(
        scenario="s",
        vu=1,
        iteration=iteration,
        tags=freeze_tags({"scenario": "s", "vu": 1, "iter": iteration, **tags}),
        setup_data=None,
        aggregator=aggregator,
    )


def _run_step(step_for_client, transport, ctx):
    async def call():
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            await step_for_client(client)(ctx)
    asyncio.run(call())


class TestOrderStep:
    def test_records_sample_with_request_name(self, mock_transport):
        aggregator = MetricsAggregator()
        order = OrderPizzaRequest(custom_name="Step Pizza")
        _run_step(lambda client: OrderStep(client, lambda ctx: order), mock_transport, _ctx(aggregator))

        sample = aggregator.samples[0]
        assert sample.status_code == 200
        assert sample.tags["name"] == "order-pizza"
        assert sample.tags["scenario"] == "s"
        assert sample.duration_ms > 0
        assert all(c.passed for c in aggregator.check_results)

    def test_sends_json_headers_and_user_agent(self):
        seen = {}

        def handler(request):
            seen["content_type"] = request.headers["Content-Type"]
            seen["user_agent"] = request.headers["User-Agent"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(400, json={"error": "nope"})

        aggregator = MetricsAggregator()
        order = OrderPizzaRequest(custom_name="Header Pizza")
        _run_step(
            lambda client: OrderStep(client, lambda ctx: order, check_mode="performance"),
            httpx.MockTransport(handler),
            _ctx(aggregator, test_type="peak"),
        )
        assert seen["content_type"] == "application/json"
        assert seen["user_agent"] == "pizza-perf-peak"
        assert seen["body"]["customName"] == "Header Pizza"
        assert aggregator.samples[0].failed is True

    def test_unknown_check_mode(self):
        with pytest.raises(ValueError, match="unknown check mode"):
            OrderStep(None, lambda ctx: None, check_mode="fuzzy")


class TestBuildStep:
    def test_fixed_without_payload(self):
        plan = LoadPlan(name="p", workload="fixed", scenarios=[ScenarioSpec(name="s", iterations=1)])
        with pytest.raises(ValueError, match="needs a payload"):
            build_step(plan, None, random.Random(0))

    def test_unknown_workload(self):
        plan = LoadPlan(name="p", workload="soak", scenarios=[ScenarioSpec(name="s", iterations=1)])
        with pytest.raises(ValueError, match="unknown workload"):
            build_step(plan, None)

    def test_order_mix_uses_iteration_number(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content)["customName"])
            return httpx.Response(200, json={})

        plan = LoadPlan(name="p", workload="order-mix", scenarios=[ScenarioSpec(name="s", iterations=1)])
        aggregator = MetricsAggregator()
        transport = httpx.MockTransport(handler)
        for iteration in (70, 95):
            _run_step(lambda client: build_step(plan, client, random.Random(0)), transport, _ctx(aggregator, iteration))
        assert seen == ["Veggie Supreme", ""]


class TestProbeHealth:
    def test_healthy(self, mock_transport):
        async def call():
            async with httpx.AsyncClient(transport=mock_transport, base_url="http://testserver") as client:
                return await probe_health(client)
        assert asyncio.run(call()) is True

    def test_unhealthy_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503))

        async def call():
            async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
                return await probe_health(client)
        assert asyncio.run(call()) is False


class TestSuites:
    def test_functional_groups(self):
        cases = functional_cases()
        groups = [c.group for c in cases]
        assert groups.count("valid") == 5
        assert groups.count("invalid") == 4
        assert groups.count("edge") == 2

    def test_boundary_malformed_bodies_are_raw(self):
        case = find_case(boundary_cases(), "malformed-Invalid JSON")
        assert case.raw is True
        assert case.body == '{"customName": "Test", invalid}'
        assert find_case(boundary_cases(), "malformed-Null Body").body is None

    def test_find_case_missing(self):
        assert find_case(functional_cases(), "nope") is None

    def test_case_checks_are_prefixed(self):
        case = find_case(functional_cases(), "emptyName")
        results = case.checks(ResponseView(400, 5.0, '{"error": "blank"}'))
        assert [r.name for r in results] == [
            "emptyName: returns error status",
            "emptyName: fast error response",
            "emptyName: has error message",
        ]
        assert all(r.passed for r in results)
