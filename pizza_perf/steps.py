"""VU step functions: build a request, call the API, check the response, record it."""

import json
import logging
import random
import time
from typing import Callable, List, Optional, Sequence, Tuple

import httpx

from pizza_perf.assertions import (
    ResponseView,
    check_order_response,
    check_performance_response,
)
from pizza_perf.constants import (
    HEALTH_PATH,
    HTTP_OK,
    JSON_HEADERS,
    ORDER_PATH,
    SLOW_RESPONSE_MS,
)
from pizza_perf.executor import IterationContext, Step
from pizza_perf.generator import (
    SIMPLE_ORDER,
    order_mix_patterns,
    performance_patterns,
    select_by_iteration,
    select_pattern,
)
from pizza_perf.models import CheckResult, LoadPlan, OrderPizzaRequest, Sample, freeze_tags
from pizza_perf.suites import OrderCase, boundary_cases, functional_cases

logger = logging.getLogger(__name__)

WORKLOADS = ("order-mix", "performance-mix", "simple", "fixed", "functional", "boundary")

ORDER_CHECKS = "order"
PERFORMANCE_CHECKS = "performance"


async def probe_health(client: httpx.AsyncClient) -> bool:
    """Return True when ``GET /health`` answers 200."""
    try:
        response = await client.get(HEALTH_PATH)
    except httpx.HTTPError as exc:
        logger.warning("API health check failed: %s", exc)
        return False
    if response.status_code != HTTP_OK:
        logger.warning("API health check failed: %s", response.status_code)
        return False
    return True


async def send(
    client: httpx.AsyncClient,
    body: Optional[str],
    test_type: str,
) -> Tuple[float, Optional[ResponseView], Optional[str]]:
    """POST *body* to the order endpoint.

    Returns:
        ``(started_at, view, error)``. ``view`` is None and ``error`` holds
        the transport failure when no response arrived.
    """
    headers = dict(JSON_HEADERS)
    headers["User-Agent"] = f"pizza-perf-{test_type}"
    started_at = time.time()
    start = time.perf_counter()
    try:
        response = await client.post(ORDER_PATH, content=(body or "").encode("utf-8"), headers=headers)
    except httpx.RequestError as exc:
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        logger.warning("Request to %s failed after %.0f ms: %r", ORDER_PATH, elapsed_ms, exc)
        return started_at, ResponseView(None, elapsed_ms), f"{type(exc).__name__}: {exc}"
    elapsed_ms = (time.perf_counter() - start) * 1000.0
    return started_at, ResponseView.from_httpx(response, elapsed_ms), None


class OrderStep:
    """One order per iteration, checked with the order or performance suite."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        choose: Callable[[IterationContext], OrderPizzaRequest],
        check_mode: str = ORDER_CHECKS,
        request_name: str = "order-pizza",
    ):
        if check_mode not in (ORDER_CHECKS, PERFORMANCE_CHECKS):
            raise ValueError(f"unknown check mode: {check_mode}")
        self._client = client
        self._choose = choose
        self._check_mode = check_mode
        self.request_name = request_name

    async def __call__(self, ctx: IterationContext) -> None:
        order = self._choose(ctx)
        test_type = ctx.tags.get("test_type", "default")
        tags = freeze_tags({**ctx.tags, "name": self.request_name})

        started_at, view, error = await send(self._client, json.dumps(order.to_json()), test_type)
        if error is not None:
            checks = [CheckResult(name="request completed", passed=False, error=error)]
        elif self._check_mode == PERFORMANCE_CHECKS:
            checks = check_performance_response(view, test_type)
        else:
            checks = check_order_response(order, view)

        ctx.record(Sample(started_at, view.duration_ms, view.status_code, tags, error), checks)
        _log_response(view, ctx)


class CaseSuiteStep:
    """Send every case of a fixed suite in one iteration."""

    def __init__(self, client: httpx.AsyncClient, cases: Sequence[OrderCase], request_name: str):
        self._client = client
        self._cases = list(cases)
        self.request_name = request_name

    async def __call__(self, ctx: IterationContext) -> None:
        test_type = ctx.tags.get("test_type", "default")
        for case in self._cases:
            logger.debug("Testing case %s", case.name)
            body = case.body if case.raw else json.dumps(case.body.to_json())
            tags = freeze_tags({**ctx.tags, "name": self.request_name, "test_case": case.name})
            started_at, view, error = await send(self._client, body, test_type)
            if error is not None:
                checks: List[CheckResult] = [
                    CheckResult(name=f"{case.name}: request completed", passed=False, error=error)
                ]
            else:
                checks = case.checks(view)
            ctx.record(Sample(started_at, view.duration_ms, view.status_code, tags, error), checks)


def build_step(plan: LoadPlan, client: httpx.AsyncClient, rng: Optional[random.Random] = None) -> Step:
    """Return the step function for *plan*'s workload.

    Raises:
        ValueError: For an unknown workload, or a "fixed" workload without a
            payload.
    """
    rng = rng or random.Random()
    workload = plan.workload
    if workload == "order-mix":
        patterns = order_mix_patterns(rng)
        return OrderStep(client, lambda ctx: select_by_iteration(patterns, ctx.iteration))
    if workload == "performance-mix":
        return OrderStep(
            client,
            lambda ctx: select_pattern(performance_patterns(ctx.vu, ctx.iteration, rng), rng),
            check_mode=PERFORMANCE_CHECKS,
            request_name="order-pizza-performance",
        )
    if workload == "simple":
        return OrderStep(client, lambda ctx: SIMPLE_ORDER, request_name="simple-order-test")
    if workload == "fixed":
        if plan.payload is None:
            raise ValueError(f"plan {plan.name!r}: the fixed workload needs a payload")
        payload = plan.payload
        return OrderStep(client, lambda ctx: payload)
    if workload == "functional":
        return CaseSuiteStep(client, functional_cases(), request_name="order-pizza-functional")
    if workload == "boundary":
        return CaseSuiteStep(client, boundary_cases(), request_name="order-pizza-boundary")
    raise ValueError(f"unknown workload {workload!r} (expected one of {', '.join(WORKLOADS)})")


# -- internal helpers ---------------------------------------------------------


def _log_response(view: ResponseView, ctx: IterationContext) -> None:
    if view.status_code is None:
        return
    if view.status_code >= 500:
        logger.error("Server error: %s (VU: %d, Iter: %d)", view.status_code, ctx.vu, ctx.iteration)
    elif view.status_code >= 400:
        logger.info("Error %s: %s", view.status_code, view.body[:200])
    if view.duration_ms > SLOW_RESPONSE_MS:
        logger.warning(
            "Slow response: %.0fms for %s (VU: %d, Iter: %d)",
            view.duration_ms, ctx.scenario, ctx.vu, ctx.iteration,
        )
