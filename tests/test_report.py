"""Tests for report rendering."""

import json
from dataclasses import replace

import pytest

from pizza_perf.aggregator import MetricsAggregator
from pizza_perf.models import CheckResult, Sample, ScenarioOutcome, freeze_tags
from pizza_perf.report import render_summary, report_to_json
from pizza_perf.thresholds import check_thresholds, parse_thresholds


def _finished_report(thresholds, statuses=(200, 200, 500)):
    agg = MetricsAggregator()
    for status in statuses:
        tags = freeze_tags({"scenario": "smoke_test", "test_type": "smoke"})
        agg.record(Sample(1700000000.0, 120.0, status, tags), [CheckResult("status is 200", status == 200)])
    report = agg.summarize(plan="smoke", scenarios=[ScenarioOutcome("smoke_test", "completed", 3, 1)])
    results = check_thresholds(report, parse_thresholds(thresholds))
    return replace(report, thresholds=tuple(results), success=all(r.passed for r in results))


class TestRenderSummary:
    def test_passing_run(self):
        text = render_summary(_finished_report({"http_req_duration": ["p(95)<2000"]}))
        assert "Plan: smoke" in text
        assert "http_reqs ............ 3" in text
        assert "smoke_test: completed, 3 iteration(s)" in text
        assert "[ok] http_req_duration p(95)=120.0" in text
        assert text.endswith("All thresholds passed.")

    def test_failing_run_shows_actual_and_limit(self):
        text = render_summary(_finished_report({"http_req_failed": ["rate<0.1"]}))
        assert "[FAIL] http_req_failed rate=0.3333 (limit: <0.1)" in text
        assert "x status is 200: 2 passed, 1 failed" in text
        assert "RUN FAILED: 1 threshold(s) failed" in text

    def test_failed_threshold_reports_margin(self):
        text = render_summary(_finished_report({"http_req_failed": ["rate<0.1"]}))
        assert "[FAIL] http_req_failed rate=0.3333 (limit: <0.1), off by 0.2333" in text

    def test_passed_threshold_has_no_margin(self):
        text = render_summary(_finished_report({"http_req_duration": ["p(95)<2000"]}))
        assert "off by" not in text

    def test_empty_run(self):
        report = MetricsAggregator().summarize(plan="empty")
        text = render_summary(report)
        assert "avg=n/a" in text
        assert "RUN FAILED" in text


class TestReportToJson:
    def test_structure(self):
        parsed = json.loads(report_to_json(_finished_report({"http_req_failed": ["rate<0.1"]})))
        assert parsed["plan"] == "smoke"
        assert parsed["success"] is False
        assert parsed["metrics"]["count"] == 3
        assert parsed["groups"]["test_type:smoke"]["failures"] == 1
        assert parsed["checks"][0] == {"name": "status is 200", "passes": 2, "fails": 1, "rate": 2 / 3}
        assert parsed["scenarios"][0]["status"] == "completed"
        assert parsed["thresholds"][0]["threshold"] == "http_req_failed rate<0.1"
        assert parsed["thresholds"][0]["passed"] is False


class TestRunReportImmutability:
    def test_groups_and_checks_are_read_only(self):
        report = _finished_report({"http_req_failed": ["rate<0.1"]})
        with pytest.raises(TypeError):
            report.groups["test_type:smoke"] = report.overall
        with pytest.raises(TypeError):
            del report.checks["status is 200"]
        assert report.groups["test_type:smoke"].count == 3
