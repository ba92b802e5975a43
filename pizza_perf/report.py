"""Render a RunReport as a text summary or as JSON."""

import json
from typing import List, Optional

from pizza_perf.models import MetricGroup, RunReport


def render_summary(report: RunReport) -> str:
    """Build the end-of-run summary printed by the CLI.

    Args:
        report: The finished run report, with threshold results attached.

    Returns:
        A multi-line string: overall metrics, per-scenario status, check pass
        rates, and every threshold (failed ones with actual vs limit).
    """
    overall = report.overall
    lines = [f"Plan: {report.plan}  ({report.duration_seconds:.1f}s)"]
    lines.append("")
    lines.append(f"  http_reqs ............ {overall.count}")
    lines.append(f"  http_req_failed ...... {_pct(overall.error_rate)} ({overall.failures} of {overall.count})")
    lines.append(
        f"  http_req_duration .... avg={_ms(overall.avg_ms)} min={_ms(overall.min_ms)} "
        f"med={_ms(overall.p50_ms)} max={_ms(overall.max_ms)} "
        f"p(90)={_ms(overall.p90_ms)} p(95)={_ms(overall.p95_ms)}"
    )
    lines.append(f"  checks ............... {_pct(overall.check_rate)} ({overall.check_passes} of {overall.check_total})")

    if report.scenarios:
        lines.append("")
        lines.append("Scenarios:")
        for outcome in report.scenarios:
            line = f"  {outcome.name}: {outcome.status}, {outcome.iterations} iteration(s), max {outcome.vus_max} VU(s)"
            if outcome.abort_reason:
                line += f" ({outcome.abort_reason})"
            lines.append(line)

    failing_checks = [t for t in report.checks.values() if t.fails]
    if failing_checks:
        lines.append("")
        lines.append("Failing checks:")
        for tally in failing_checks:
            lines.append(f"  x {tally.name}: {tally.passes} passed, {tally.fails} failed")

    if report.thresholds:
        lines.append("")
        lines.append("Thresholds:")
        for result in report.thresholds:
            mark = "ok" if result.passed else "FAIL"
            text = result.detail or str(result.spec)
            if not result.passed and result.margin is not None:
                text += f", off by {abs(result.margin):.4g}"
            lines.append(f"  [{mark}] {text}")

    lines.append("")
    if report.success:
        lines.append("All thresholds passed.")
    else:
        problems: List[str] = []
        if report.failed_thresholds:
            problems.append(f"{len(report.failed_thresholds)} threshold(s) failed")
        if report.aborted:
            problems.append(f"aborted: {', '.join(report.aborted)}")
        lines.append("RUN FAILED: " + "; ".join(problems or ["unsuccessful"]))
    return "\n".join(lines)


def report_to_dict(report: RunReport) -> dict:
    """Plain JSON-ready structure of a report (durations are not included)."""
    return {
        "plan": report.plan,
        "started_at": report.started_at,
        "finished_at": report.finished_at,
        "duration_seconds": report.duration_seconds,
        "success": report.success,
        "metrics": _group_to_dict(report.overall),
        "groups": {key: _group_to_dict(group) for key, group in report.groups.items()},
        "checks": [
            {"name": t.name, "passes": t.passes, "fails": t.fails, "rate": t.rate}
            for t in report.checks.values()
        ],
        "scenarios": [
            {
                "name": s.name,
                "status": s.status,
                "iterations": s.iterations,
                "vus_max": s.vus_max,
                "abort_reason": s.abort_reason,
            }
            for s in report.scenarios
        ],
        "thresholds": [
            {
                "threshold": str(t.spec),
                "source": t.spec.source,
                "passed": t.passed,
                "actual": t.actual,
                "detail": t.detail,
            }
            for t in report.thresholds
        ],
    }


def report_to_json(report: RunReport) -> str:
    return json.dumps(report_to_dict(report), indent=2)


# -- internal helpers ---------------------------------------------------------


def _group_to_dict(group: MetricGroup) -> dict:
    return {
        "count": group.count,
        "failures": group.failures,
        "error_rate": group.error_rate,
        "avg_ms": group.avg_ms,
        "min_ms": group.min_ms,
        "max_ms": group.max_ms,
        "p50_ms": group.p50_ms,
        "p90_ms": group.p90_ms,
        "p95_ms": group.p95_ms,
        "p99_ms": group.p99_ms,
        "check_passes": group.check_passes,
        "check_total": group.check_total,
        "check_rate": group.check_rate,
    }


def _ms(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:.2f}ms"


def _pct(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value * 100:.2f}%"
