"""Collect samples and check results; summarize them into a RunReport."""

import logging
from collections import OrderedDict, defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pizza_perf.models import (
    CheckResult,
    CheckTally,
    MetricGroup,
    RunReport,
    Sample,
    ScenarioOutcome,
)

logger = logging.getLogger(__name__)

# Tag keys with one value per VU/iteration are not worth a group each.
UNGROUPED_TAGS = frozenset({"vu", "iter"})


def percentile(sorted_values: Sequence[float], pct: float) -> Optional[float]:
    """Linear-interpolated percentile of an already sorted sequence.

    Returns None for an empty sequence.
    """
    if not sorted_values:
        return None
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pct = min(max(pct, 0.0), 100.0)
    rank = (pct / 100.0) * (len(sorted_values) - 1)
    low = int(rank)
    high = min(low + 1, len(sorted_values) - 1)
    weight = rank - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


class MetricsAggregator:
    """Append-only store of samples and check results for one run.

    Every VU runs on the same event loop thread, so appends never interleave;
    ``summarize`` is only called once the writers have stopped.
    """

    def __init__(self):
        self._samples: List[Sample] = []
        self._checks: List[Tuple[Mapping[str, str], CheckResult]] = []

    @property
    def samples(self) -> Tuple[Sample, ...]:
        return tuple(self._samples)

    @property
    def check_results(self) -> Tuple[CheckResult, ...]:
        return tuple(check for _, check in self._checks)

    def record(self, sample: Sample, checks: Iterable[CheckResult] = ()) -> None:
        self._samples.append(sample)
        for check in checks:
            self._checks.append((sample.tags, check))

    def record_checks(self, checks: Iterable[CheckResult], tags: Mapping[str, str]) -> None:
        """Record checks that have no sample, e.g. a step that raised."""
        for check in checks:
            self._checks.append((tags, check))

    def summarize(
        self,
        plan: str = "",
        scenarios: Iterable[ScenarioOutcome] = (),
        started_at: Optional[datetime] = None,
        finished_at: Optional[datetime] = None,
    ) -> RunReport:
        """Build the run report: a global group plus one group per ``tag:value``.

        Args:
            plan: Plan name recorded on the report.
            scenarios: Outcomes of the scenarios that ran.
            started_at: Run start (UTC); defaults to the first sample.
            finished_at: Run end (UTC); defaults to now.

        Returns:
            An immutable RunReport without threshold results.
        """
        finished_at = finished_at or datetime.now(timezone.utc)
        if started_at is None and self._samples:
            started_at = datetime.fromtimestamp(min(s.timestamp for s in self._samples), timezone.utc)
        duration = (finished_at - started_at).total_seconds() if started_at else 0.0

        sample_groups: Dict[str, List[Sample]] = defaultdict(list)
        for sample in self._samples:
            for key in _group_keys(sample.tags):
                sample_groups[key].append(sample)

        check_groups: Dict[str, List[CheckResult]] = defaultdict(list)
        for tags, check in self._checks:
            for key in _group_keys(tags):
                check_groups[key].append(check)

        groups = OrderedDict()
        for key in sorted(set(sample_groups) | set(check_groups)):
            groups[key] = _build_group(sample_groups.get(key, []), check_groups.get(key, []))

        tallies: Dict[str, CheckTally] = OrderedDict()
        for _, check in self._checks:
            tally = tallies.get(check.name, CheckTally(name=check.name))
            if check.passed:
                tallies[check.name] = CheckTally(check.name, tally.passes + 1, tally.fails)
            else:
                tallies[check.name] = CheckTally(check.name, tally.passes, tally.fails + 1)

        overall = _build_group(self._samples, [check for _, check in self._checks])
        logger.debug("Summarized %d samples and %d checks", overall.count, overall.check_total)

        return RunReport(
            plan=plan,
            started_at=_iso(started_at),
            finished_at=_iso(finished_at),
            duration_seconds=duration,
            overall=overall,
            groups=dict(groups),
            checks=dict(tallies),
            scenarios=tuple(scenarios),
        )


# -- internal helpers ---------------------------------------------------------


def _group_keys(tags: Mapping[str, str]) -> List[str]:
    return [f"{k}:{v}" for k, v in tags.items() if k not in UNGROUPED_TAGS]


def _build_group(samples: Sequence[Sample], checks: Sequence[CheckResult]) -> MetricGroup:
    durations = tuple(sorted(s.duration_ms for s in samples))
    failures = sum(1 for s in samples if s.failed)
    passes = sum(1 for c in checks if c.passed)
    count = len(samples)
    return MetricGroup(
        count=count,
        failures=failures,
        error_rate=failures / count if count else None,
        avg_ms=sum(durations) / count if count else None,
        min_ms=durations[0] if durations else None,
        max_ms=durations[-1] if durations else None,
        p50_ms=percentile(durations, 50),
        p90_ms=percentile(durations, 90),
        p95_ms=percentile(durations, 95),
        p99_ms=percentile(durations, 99),
        check_passes=passes,
        check_total=len(checks),
        check_rate=passes / len(checks) if checks else None,
        durations=durations,
    )


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")
