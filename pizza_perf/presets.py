"""Built-in load plans and their YAML/JSON serialization."""

import json
from collections import OrderedDict
from typing import Callable, Dict, List, Tuple

import yaml

from pizza_perf.constants import DEFAULT_THINK_TIME, DEFAULT_THRESHOLDS, THINK_TIMES
from pizza_perf.loader import format_duration, parse_duration
from pizza_perf.models import (
    CONSTANT_CONCURRENCY,
    STAGED_RAMP,
    LoadPlan,
    ScenarioSpec,
    Stage,
)


def _stages(*pairs: Tuple[str, int]) -> List[Stage]:
    return [Stage(duration_seconds=parse_duration(d), target=t) for d, t in pairs]


def _smoke() -> ScenarioSpec:
    return ScenarioSpec(
        name="smoke_test",
        executor=CONSTANT_CONCURRENCY,
        vus=1,
        duration_seconds=60,
        tags={"test_type": "smoke"},
        think_time=DEFAULT_THINK_TIME,
    )


def _load() -> ScenarioSpec:
    return ScenarioSpec(
        name="load_test",
        executor=STAGED_RAMP,
        vus=0,
        stages=_stages(("2m", 10), ("5m", 10), ("2m", 0)),
        tags={"test_type": "load"},
        think_time=DEFAULT_THINK_TIME,
    )


def _stress() -> ScenarioSpec:
    return ScenarioSpec(
        name="stress_test",
        executor=STAGED_RAMP,
        vus=0,
        stages=_stages(("2m", 10), ("5m", 20), ("2m", 30), ("5m", 30), ("2m", 0)),
        tags={"test_type": "stress"},
        think_time=DEFAULT_THINK_TIME,
    )


def _spike() -> ScenarioSpec:
    return ScenarioSpec(
        name="spike_test",
        executor=STAGED_RAMP,
        vus=0,
        stages=_stages(("1m", 5), ("1m", 50), ("3m", 50), ("1m", 5), ("1m", 0)),
        tags={"test_type": "spike"},
        think_time=DEFAULT_THINK_TIME,
    )


_ORDER_SCENARIO_LIMITS = {"smoke": 1000, "load": 2000, "stress": 3000, "spike": 5000}


def _order_plan(name: str, description: str, scenarios: List[ScenarioSpec]) -> LoadPlan:
    thresholds = OrderedDict((k, list(v)) for k, v in DEFAULT_THRESHOLDS.items())
    for scenario in scenarios:
        test_type = scenario.tags["test_type"]
        thresholds[f"http_req_duration{{test_type:{test_type}}}"] = [
            f"p(95)<{_ORDER_SCENARIO_LIMITS[test_type]}"
        ]
    return LoadPlan(
        name=name,
        description=description,
        workload="order-mix",
        scenarios=scenarios,
        thresholds=thresholds,
    )


def order_pizza_plan() -> LoadPlan:
    return _order_plan(
        "order-pizza",
        "Smoke, load, stress and spike scenarios together with the order mix",
        [_smoke(), _load(), _stress(), _spike()],
    )


def performance_plan() -> LoadPlan:
    """Baseline, ramp-up, peak, stress and spike back to back (about an hour)."""
    scenarios = [
        ScenarioSpec(
            name="baseline",
            executor=CONSTANT_CONCURRENCY,
            vus=5,
            duration_seconds=300,
            tags={"test_type": "baseline"},
            think_time=THINK_TIMES["baseline"],
        ),
        ScenarioSpec(
            name="ramp_up",
            executor=STAGED_RAMP,
            vus=0,
            start_offset_seconds=300,
            stages=_stages(("2m", 5), ("5m", 15), ("5m", 25), ("5m", 15), ("2m", 0)),
            tags={"test_type": "ramp_up"},
            think_time=THINK_TIMES["ramp_up"],
        ),
        ScenarioSpec(
            name="peak_load",
            executor=CONSTANT_CONCURRENCY,
            vus=30,
            duration_seconds=600,
            start_offset_seconds=24 * 60,
            tags={"test_type": "peak"},
            think_time=THINK_TIMES["peak"],
        ),
        ScenarioSpec(
            name="stress",
            executor=STAGED_RAMP,
            vus=0,
            start_offset_seconds=34 * 60,
            stages=_stages(("2m", 50), ("5m", 100), ("2m", 150), ("5m", 150), ("5m", 100), ("2m", 0)),
            tags={"test_type": "stress"},
            think_time=THINK_TIMES["stress"],
        ),
        ScenarioSpec(
            name="spike",
            executor=STAGED_RAMP,
            vus=0,
            start_offset_seconds=55 * 60,
            stages=_stages(("30s", 5), ("30s", 100), ("2m", 100), ("30s", 5), ("30s", 0)),
            tags={"test_type": "spike"},
            think_time=THINK_TIMES["spike"],
        ),
    ]
    thresholds = OrderedDict([
        ("http_req_duration", ["p(95)<3000", "p(99)<5000"]),
        ("http_req_failed", ["rate<0.05"]),
        ("checks", ["rate>0.95"]),
    ])
    duration_limits = [("baseline", 1500), ("ramp_up", 2000), ("peak", 2500), ("stress", 4000), ("spike", 6000)]
    error_limits = [("baseline", 0.01), ("ramp_up", 0.02), ("peak", 0.03), ("stress", 0.10), ("spike", 0.15)]
    for test_type, limit in duration_limits:
        thresholds[f"http_req_duration{{test_type:{test_type}}}"] = [f"p(95)<{limit}"]
    for test_type, limit in error_limits:
        thresholds[f"http_req_failed{{test_type:{test_type}}}"] = [f"rate<{limit}"]
    return LoadPlan(
        name="performance",
        description="Baseline, ramp-up, peak, stress and spike scenarios run back to back",
        workload="performance-mix",
        scenarios=scenarios,
        thresholds=thresholds,
    )


def simple_plan() -> LoadPlan:
    return LoadPlan(
        name="simple",
        description="Two VUs ordering the same pizza for 30 seconds",
        workload="simple",
        scenarios=[ScenarioSpec(name="simple", vus=2, duration_seconds=30, think_time=(1.0, 2.0))],
        thresholds=OrderedDict([
            ("http_req_duration", ["p(95)<2000"]),
            ("http_req_failed", ["rate<0.1"]),
            ("checks", ["rate>0.9"]),
        ]),
    )


def functional_plan() -> LoadPlan:
    return LoadPlan(
        name="functional",
        description="Valid, invalid and edge-case orders, each sent once",
        workload="functional",
        scenarios=[ScenarioSpec(name="functional", vus=1, iterations=1, think_time=(0.0, 0.0))],
        thresholds=OrderedDict([
            ("http_req_duration", ["p(95)<3000"]),
            ("http_req_failed", ["rate<0.05"]),
            ("checks", ["rate>0.95"]),
        ]),
    )


def boundary_plan() -> LoadPlan:
    return LoadPlan(
        name="boundary",
        description="Boundary values, malformed bodies and unusual characters, each sent once",
        workload="boundary",
        scenarios=[ScenarioSpec(name="boundary", vus=1, iterations=1, think_time=(0.0, 0.0))],
        thresholds=OrderedDict([
            ("http_req_duration", ["p(95)<5000"]),
            ("http_req_failed", ["rate<0.20"]),
            ("checks", ["rate>0.80"]),
        ]),
    )


def _single(builder: Callable[[], ScenarioSpec], name: str, description: str) -> Callable[[], LoadPlan]:
    return lambda: _order_plan(name, description, [builder()])


PRESETS: Dict[str, Callable[[], LoadPlan]] = OrderedDict([
    ("smoke", _single(_smoke, "smoke", "One VU for a minute to verify basic functionality")),
    ("load", _single(_load, "load", "Ramp to 10 VUs, hold, ramp down")),
    ("stress", _single(_stress, "stress", "Ramp past normal capacity to 30 VUs")),
    ("spike", _single(_spike, "spike", "Sudden jump from 5 to 50 VUs")),
    ("order-pizza", order_pizza_plan),
    ("performance", performance_plan),
    ("simple", simple_plan),
    ("functional", functional_plan),
    ("boundary", boundary_plan),
])


def list_presets() -> List[Tuple[str, str]]:
    return [(name, builder().description) for name, builder in PRESETS.items()]


def get_preset(name: str) -> LoadPlan:
    """Return a fresh copy of the named preset.

    Raises:
        KeyError: If no preset has that name.
    """
    try:
        return PRESETS[name]()
    except KeyError:
        raise KeyError(f"unknown preset {name!r} (available: {', '.join(PRESETS)})") from None


def plan_to_dict(plan: LoadPlan) -> dict:
    """Convert a LoadPlan into the plain structure the plan loader reads."""
    scenarios = []
    for spec in plan.scenarios:
        entry = OrderedDict([("name", spec.name), ("executor", spec.executor), ("vus", spec.vus)])
        if spec.executor == STAGED_RAMP:
            entry["stages"] = [
                {"duration": format_duration(s.duration_seconds), "target": s.target} for s in spec.stages
            ]
        elif spec.duration_seconds:
            entry["duration"] = format_duration(spec.duration_seconds)
        if spec.start_offset_seconds:
            entry["start_offset"] = format_duration(spec.start_offset_seconds)
        if spec.iterations is not None:
            entry["iterations"] = spec.iterations
        if spec.tags:
            entry["tags"] = dict(spec.tags)
        entry["think_time"] = [spec.think_time[0], spec.think_time[1]]
        scenarios.append(dict(entry))

    result = {
        "name": plan.name,
        "description": plan.description,
        "workload": plan.workload,
        "scenarios": scenarios,
        "thresholds": {k: list(v) for k, v in plan.thresholds.items()},
    }
    if plan.payload is not None:
        result["payload"] = plan.payload.to_json()
    return result


def plan_to_json(plan: LoadPlan) -> str:
    return json.dumps(plan_to_dict(plan), indent=2)


def write_plan_yaml(plan: LoadPlan, out_path: str) -> None:
    with open(out_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(plan_to_dict(plan), f, sort_keys=False, allow_unicode=True)
