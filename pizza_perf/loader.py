"""Load and validate load plan files (YAML or JSON)."""

import json
import os
import re
from typing import Any, Dict, List, Optional, Tuple

import yaml

from pizza_perf.constants import DEFAULT_THINK_TIME
from pizza_perf.models import (
    CONSTANT_CONCURRENCY,
    STAGED_RAMP,
    LoadPlan,
    OrderPizzaRequest,
    ScenarioSpec,
    Stage,
)
from pizza_perf.steps import WORKLOADS
from pizza_perf.thresholds import ThresholdParseError, parse_threshold


class PlanValidationError(Exception):
    """Raised when a load plan fails validation."""


EXECUTOR_ALIASES = {
    "constant-concurrency": CONSTANT_CONCURRENCY,
    "constant-vus": CONSTANT_CONCURRENCY,
    "staged-ramp": STAGED_RAMP,
    "ramping-vus": STAGED_RAMP,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Any) -> float:
    """Convert ``90``, ``"90s"``, ``"2m"`` or ``"1h30m"`` to seconds.

    Raises:
        ValueError: If the value is negative or not a duration.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"duration must be >= 0, got {value}")
        return float(value)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"invalid duration: {value!r}")
    text = value.strip().lower()
    try:
        return parse_duration(float(text))
    except ValueError:
        pass
    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            raise ValueError(f"invalid duration: {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text) or pos == 0:
        raise ValueError(f"invalid duration: {value!r}")
    return total


def format_duration(seconds: float) -> str:
    """Render seconds the way plan files write them (``"1h30m"``, ``"45s"``)."""
    if seconds != int(seconds):
        return f"{seconds:g}s"
    seconds = int(seconds)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs}s")
    return "".join(parts)


def load_plan(path: str) -> LoadPlan:
    """Load a load plan from a YAML or JSON file.

    Args:
        path: Path to the plan file.

    Returns:
        A validated LoadPlan instance.

    Raises:
        PlanValidationError: If the file is missing, unreadable, or invalid.
    """
    if not os.path.isfile(path):
        raise PlanValidationError(f"plan file not found: {path}")

    ext = os.path.splitext(path)[1].lower()
    try:
        with open(path, "r", encoding="utf-8") as f:
            if ext in (".yaml", ".yml"):
                raw = yaml.safe_load(f)
            elif ext == ".json":
                raw = json.load(f)
            else:
                raise PlanValidationError(
                    f"unsupported file extension: {ext} (expected .yaml, .yml, or .json)"
                )
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise PlanValidationError(f"failed to parse {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise PlanValidationError("plan must be a mapping/object at the top level")

    return build_plan(raw, default_name=os.path.splitext(os.path.basename(path))[0])


def build_plan(raw: dict, default_name: str = "plan") -> LoadPlan:
    """Construct and validate a LoadPlan from a raw dict."""
    errors: List[str] = []

    name = raw.get("name", default_name)
    if not name or not isinstance(name, str):
        errors.append("'name' must be a non-empty string")
        name = default_name

    workload = raw.get("workload", "order-mix")
    if workload not in WORKLOADS:
        errors.append(f"'workload' must be one of: {', '.join(WORKLOADS)}")

    scenarios_raw = raw.get("scenarios")
    if not isinstance(scenarios_raw, list) or not scenarios_raw:
        errors.append("'scenarios' is required and must be a non-empty list")
        scenarios_raw = []
    scenarios = []
    for i, entry in enumerate(scenarios_raw):
        spec = _parse_scenario(i, entry, errors)
        if spec is not None:
            scenarios.append(spec)
    names = [s.name for s in scenarios]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        errors.append(f"duplicate scenario names: {', '.join(duplicates)}")

    thresholds = _parse_thresholds(raw.get("thresholds", {}), errors)
    payload = _parse_payload(raw.get("payload"), errors)
    if workload == "fixed" and payload is None:
        errors.append("'payload' is required for the fixed workload")

    if errors:
        raise PlanValidationError(
            "plan validation failed:\n  - " + "\n  - ".join(errors)
        )

    return LoadPlan(
        name=name,
        description=str(raw.get("description", "")),
        workload=workload,
        scenarios=scenarios,
        thresholds=thresholds,
        payload=payload,
    )


# -- internal helpers ---------------------------------------------------------


def _parse_scenario(i: int, raw: Any, errors: List[str]) -> Optional[ScenarioSpec]:
    where = f"scenarios[{i}]"
    if not isinstance(raw, dict):
        errors.append(f"{where} must be a mapping")
        return None

    name = raw.get("name")
    if not name or not isinstance(name, str):
        errors.append(f"{where}.name is required")
        return None
    where = f"scenario {name!r}"

    executor = EXECUTOR_ALIASES.get(raw.get("executor", CONSTANT_CONCURRENCY))
    if executor is None:
        errors.append(f"{where}: unknown executor {raw.get('executor')!r}")
        return None

    before = len(errors)
    default_vus = 1 if executor == CONSTANT_CONCURRENCY else 0
    vus = raw.get("vus", default_vus)
    if isinstance(vus, bool) or not isinstance(vus, int) or vus < 0:
        errors.append(f"{where}: 'vus' must be a non-negative integer")

    duration = _duration(raw.get("duration", 0), f"{where}: 'duration'", errors)
    start_offset = _duration(raw.get("start_offset", raw.get("startTime", 0)), f"{where}: 'start_offset'", errors)
    stages = _parse_stages(raw.get("stages", []), where, errors)
    if executor == STAGED_RAMP and not stages and len(errors) == before:
        errors.append(f"{where}: staged-ramp needs at least one stage")

    iterations = raw.get("iterations")
    if iterations is not None and (isinstance(iterations, bool) or not isinstance(iterations, int) or iterations < 1):
        errors.append(f"{where}: 'iterations' must be a positive integer")
    if executor == CONSTANT_CONCURRENCY and not duration and iterations is None and len(errors) == before:
        errors.append(f"{where}: constant-concurrency needs a duration or iterations")

    think_time = _parse_think_time(raw.get("think_time", list(DEFAULT_THINK_TIME)), where, errors)

    tags = raw.get("tags", {})
    if not isinstance(tags, dict):
        errors.append(f"{where}: 'tags' must be a mapping")
        tags = {}

    if len(errors) != before:
        return None
    return ScenarioSpec(
        name=name,
        executor=executor,
        vus=vus,
        duration_seconds=duration,
        stages=stages,
        start_offset_seconds=start_offset,
        tags={str(k): str(v) for k, v in tags.items()},
        think_time=think_time,
        iterations=iterations,
    )


def _parse_stages(raw: Any, where: str, errors: List[str]) -> List[Stage]:
    if not isinstance(raw, list):
        errors.append(f"{where}: 'stages' must be a list")
        return []
    stages = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            errors.append(f"{where}: stages[{i}] must be a mapping")
            continue
        duration = _duration(entry.get("duration"), f"{where}: stages[{i}].duration", errors)
        target = entry.get("target")
        if isinstance(target, bool) or not isinstance(target, int) or target < 0:
            errors.append(f"{where}: stages[{i}].target must be a non-negative integer")
            continue
        stages.append(Stage(duration_seconds=duration, target=target))
    return stages


def _parse_think_time(raw: Any, where: str, errors: List[str]) -> Tuple[float, float]:
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        raw = [raw, raw]
    if not isinstance(raw, (list, tuple)) or len(raw) != 2:
        errors.append(f"{where}: 'think_time' must be a number or a [min, max] pair")
        return DEFAULT_THINK_TIME
    try:
        low, high = float(raw[0]), float(raw[1])
    except (TypeError, ValueError):
        errors.append(f"{where}: 'think_time' values must be numbers")
        return DEFAULT_THINK_TIME
    if low < 0 or high < low:
        errors.append(f"{where}: 'think_time' must satisfy 0 <= min <= max")
        return DEFAULT_THINK_TIME
    return (low, high)


def _parse_thresholds(raw: Any, errors: List[str]) -> Dict[str, List[str]]:
    if not isinstance(raw, dict):
        errors.append("'thresholds' must be a mapping of metric to expressions")
        return {}
    thresholds: Dict[str, List[str]] = {}
    for metric_key, expressions in raw.items():
        if isinstance(expressions, str):
            expressions = [expressions]
        if not isinstance(expressions, list):
            errors.append(f"thresholds[{metric_key!r}] must be a string or a list")
            continue
        for expression in expressions:
            try:
                parse_threshold(metric_key, str(expression))
            except ThresholdParseError as exc:
                errors.append(f"thresholds[{metric_key!r}]: {exc}")
        thresholds[str(metric_key)] = [str(e) for e in expressions]
    return thresholds


def _parse_payload(raw: Any, errors: List[str]) -> Optional[OrderPizzaRequest]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        errors.append("'payload' must be a mapping")
        return None
    before = len(errors)
    if not isinstance(raw.get("customName", ""), str):
        errors.append("payload.customName must be a string")
    for key in ("maxCaloriesPerSlice", "maxNumberOfToppings", "minNumberOfToppings"):
        value = raw.get(key, 0)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            errors.append(f"payload.{key} must be a number")
    for key in ("excludedIngredients", "excludedTools"):
        if not isinstance(raw.get(key, []), list):
            errors.append(f"payload.{key} must be a list")
    if len(errors) != before:
        return None
    return OrderPizzaRequest.from_json(raw)


def _duration(value: Any, label: str, errors: List[str]) -> float:
    try:
        return parse_duration(value)
    except ValueError as exc:
        errors.append(f"{label}: {exc}")
        return 0.0
