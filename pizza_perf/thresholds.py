"""Parse threshold expressions and evaluate them against a run report."""

import operator
import re
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from pizza_perf.aggregator import percentile
from pizza_perf.models import MetricGroup, RunReport, ThresholdResult, ThresholdSpec


class ThresholdParseError(Exception):
    """Raised when a threshold metric key or expression cannot be parsed."""


COMPARATORS = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}

METRIC_ALIASES = {
    "duration": "http_req_duration",
    "latency": "http_req_duration",
    "errors": "http_req_failed",
    "error_rate": "http_req_failed",
    "requests": "http_reqs",
}

# Aggregations each metric supports.
_METRIC_AGGREGATIONS = {
    "http_req_duration": ("p", "avg", "min", "max", "med", "count"),
    "http_req_failed": ("rate", "count"),
    "checks": ("rate", "count"),
    "http_reqs": ("count", "rate"),
}

_KEY_RE = re.compile(r"^\s*(?P<metric>[A-Za-z_][\w]*)\s*(?:\{(?P<tags>[^}]*)\})?\s*$")
_EXPR_RE = re.compile(
    r"^\s*(?P<agg>p\(\s*(?P<pct>\d+(?:\.\d+)?)\s*\)|avg|min|max|med|count|rate)"
    r"\s*(?P<cmp><=|>=|<|>)\s*(?P<limit>-?\d+(?:\.\d+)?)\s*$"
)


def parse_threshold(metric_key: str, expression: str) -> ThresholdSpec:
    """Parse one k6-style threshold.

    Args:
        metric_key: Metric with an optional tag filter, e.g.
            ``"http_req_duration{test_type:smoke}"``.
        expression: Aggregation, comparator and limit, e.g. ``"p(95)<2000"``.

    Returns:
        A ThresholdSpec.

    Raises:
        ThresholdParseError: If either part is malformed or the aggregation
            does not apply to the metric.
    """
    key_match = _KEY_RE.match(metric_key or "")
    if not key_match:
        raise ThresholdParseError(f"invalid threshold metric: {metric_key!r}")
    metric = METRIC_ALIASES.get(key_match.group("metric"), key_match.group("metric"))
    if metric not in _METRIC_AGGREGATIONS:
        raise ThresholdParseError(
            f"unknown metric {metric!r} (expected one of {', '.join(sorted(_METRIC_AGGREGATIONS))})"
        )
    tags = _parse_tags(key_match.group("tags"), metric_key)

    expr_match = _EXPR_RE.match(expression or "")
    if not expr_match:
        raise ThresholdParseError(f"invalid threshold expression: {expression!r}")
    aggregation = expr_match.group("agg").replace(" ", "")
    family = "p" if aggregation.startswith("p(") else aggregation
    if family not in _METRIC_AGGREGATIONS[metric]:
        raise ThresholdParseError(f"aggregation {aggregation!r} does not apply to {metric}")
    if expr_match.group("pct") is not None and float(expr_match.group("pct")) > 100:
        raise ThresholdParseError(f"percentile out of range in {expression!r}")

    return ThresholdSpec(
        metric=metric,
        aggregation=aggregation,
        comparator=expr_match.group("cmp"),
        limit=float(expr_match.group("limit")),
        tags=tags,
        source=f"{metric_key}: {expression}",
    )


def parse_thresholds(raw: Mapping[str, Iterable[str]]) -> List[ThresholdSpec]:
    """Parse a ``{metric_key: [expression, ...]}`` mapping in order."""
    specs = []
    for metric_key, expressions in raw.items():
        if isinstance(expressions, str):
            expressions = [expressions]
        for expression in expressions:
            specs.append(parse_threshold(metric_key, expression))
    return specs


def check_thresholds(report: RunReport, specs: Iterable[ThresholdSpec]) -> List[ThresholdResult]:
    """Evaluate each threshold against *report*.

    A selector that cannot be resolved (no samples, unknown tag group) is
    reported as not met rather than raising.
    """
    results = []
    for spec in specs:
        actual, problem = resolve_metric(report, spec)
        if actual is None:
            results.append(ThresholdResult(
                spec=spec,
                passed=False,
                detail=f"{spec}: no data ({problem})",
            ))
            continue
        passed = COMPARATORS[spec.comparator](actual, spec.limit)
        results.append(ThresholdResult(
            spec=spec,
            passed=passed,
            actual=actual,
            detail=f"{spec.selector} {spec.aggregation}={_fmt(actual)} (limit: {spec.comparator}{spec.limit:g})",
        ))
    return results


def evaluate_thresholds(report: RunReport, specs: Iterable[ThresholdSpec]) -> Dict[ThresholdSpec, bool]:
    return {result.spec: result.passed for result in check_thresholds(report, specs)}


def resolve_metric(report: RunReport, spec: ThresholdSpec) -> Tuple[Optional[float], str]:
    """Return ``(value, "")`` or ``(None, reason)`` for a threshold's metric."""
    group = _select_group(report, spec.tags)
    if group is None:
        return None, f"no samples tagged {spec.selector}"

    agg = spec.aggregation
    if spec.metric == "http_req_duration":
        if agg == "count":
            return float(group.count), ""
        value = _duration_value(group, agg)
        return value, "" if value is not None else "no samples"
    if spec.metric == "http_req_failed":
        if agg == "count":
            return float(group.failures), ""
        return group.error_rate, "" if group.error_rate is not None else "no samples"
    if spec.metric == "checks":
        if agg == "count":
            return float(group.check_total), ""
        return group.check_rate, "" if group.check_rate is not None else "no checks recorded"
    if spec.metric == "http_reqs":
        if agg == "count":
            return float(group.count), ""
        if report.duration_seconds <= 0 or group.count == 0:
            return None, "no samples"
        return group.count / report.duration_seconds, ""
    return None, f"unsupported metric {spec.metric}"


# -- internal helpers ---------------------------------------------------------


def _parse_tags(raw: Optional[str], metric_key: str) -> Tuple[Tuple[str, str], ...]:
    if raw is None or not raw.strip():
        return ()
    tags = []
    for part in raw.split(","):
        if ":" not in part:
            raise ThresholdParseError(f"invalid tag filter {part!r} in {metric_key!r}")
        key, value = part.split(":", 1)
        tags.append((key.strip(), value.strip()))
    return tuple(tags)


def _select_group(report: RunReport, tags: Tuple[Tuple[str, str], ...]) -> Optional[MetricGroup]:
    if not tags:
        return report.overall
    if len(tags) > 1:
        # groups are built per single tag only
        return None
    key, value = tags[0]
    return report.groups.get(f"{key}:{value}")


def _duration_value(group: MetricGroup, aggregation: str) -> Optional[float]:
    if aggregation.startswith("p("):
        return percentile(group.durations, float(aggregation[2:-1]))
    if aggregation == "med":
        return group.p50_ms
    return {"avg": group.avg_ms, "min": group.min_ms, "max": group.max_ms}.get(aggregation)


def _fmt(value: float) -> str:
    return f"{value:.4g}" if value < 1 else f"{value:.1f}"
