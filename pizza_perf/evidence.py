"""Append-only log of completed runs in JSONL format."""

import json
import os
from datetime import datetime, timezone
from typing import List

from pizza_perf.models import EvidenceEvent, RunReport


def create_event(plan: str, base_url: str, report: RunReport) -> EvidenceEvent:
    """Build an EvidenceEvent for a finished run.

    Args:
        plan: Plan file path or preset name the run came from.
        base_url: Base URL the run targeted.
        report: The finished run report.

    Returns:
        A populated EvidenceEvent stamped with the current UTC time.
    """
    if report.aborted:
        outcome = "run-aborted"
    elif report.failed_thresholds:
        outcome = "thresholds-failed"
    else:
        outcome = "run-completed"
    return EvidenceEvent(
        ts=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        plan=plan,
        base_url=base_url,
        scenarios=[s.name for s in report.scenarios],
        success=report.success,
        failed_thresholds=[str(t.spec) for t in report.failed_thresholds],
        outcome=outcome,
    )


def append_event(event: EvidenceEvent, log_path: str) -> None:
    """Append one event as a JSONL line, creating the file and its parent directories.

    Existing entries are never rewritten.
    """
    parent = os.path.dirname(log_path)
    if parent and not os.path.isdir(parent):
        os.makedirs(parent, exist_ok=True)

    line = json.dumps({
        "ts": event.ts,
        "plan": event.plan,
        "base_url": event.base_url,
        "scenarios": event.scenarios,
        "success": event.success,
        "failed_thresholds": event.failed_thresholds,
        "outcome": event.outcome,
    })

    with open(log_path, "a", encoding="utf-8") as f:
        f.write(line + "\n")


def read_events(log_path: str) -> List[EvidenceEvent]:
    """Read every event from a JSONL log; malformed lines are skipped."""
    if not os.path.isfile(log_path):
        return []

    events = []
    with open(log_path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                raw = json.loads(line)
            except json.JSONDecodeError:
                continue
            if not isinstance(raw, dict):
                continue
            events.append(EvidenceEvent(
                ts=raw.get("ts", ""),
                plan=raw.get("plan", ""),
                base_url=raw.get("base_url", ""),
                scenarios=raw.get("scenarios", []),
                success=raw.get("success", False),
                failed_thresholds=raw.get("failed_thresholds", []),
                outcome=raw.get("outcome", ""),
            ))
    return events
