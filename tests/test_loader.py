"""Tests for load plan loading and validation."""

import json
import os
import tempfile

import pytest
import yaml

from pizza_perf.loader import PlanValidationError, format_duration, load_plan, parse_duration
from pizza_perf.models import CONSTANT_CONCURRENCY, STAGED_RAMP


FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "..", "fixtures")


def _write(tmpdir, data, name="plan.yaml"):
    path = os.path.join(tmpdir, name)
    with open(path, "w") as f:
        if name.endswith(".json"):
            json.dump(data, f)
        else:
            yaml.dump(data, f)
    return path


class TestLoadPlanFiles:
    def test_load_valid_yaml(self):
        plan = load_plan(os.path.join(FIXTURES_DIR, "smoke-plan.yaml"))
        assert plan.name == "smoke-check"
        assert plan.workload == "fixed"
        assert len(plan.scenarios) == 1
        scenario = plan.scenarios[0]
        assert scenario.executor == CONSTANT_CONCURRENCY
        assert scenario.duration_seconds == 3
        assert scenario.think_time == (1.0, 1.0)
        assert scenario.tags == {"test_type": "smoke"}
        assert plan.thresholds["http_req_duration{test_type:smoke}"] == ["p(95)<1000"]
        assert plan.payload.custom_name == "Fixture Pizza"
        assert plan.payload.excluded_ingredients == ["Pepperoni"]

    def test_load_valid_json(self):
        plan = load_plan(os.path.join(FIXTURES_DIR, "ramp-plan.json"))
        assert [s.name for s in plan.scenarios] == ["warm_up", "ramp"]
        ramp = plan.scenarios[1]
        assert ramp.executor == STAGED_RAMP
        assert ramp.vus == 0
        assert ramp.start_offset_seconds == 30
        assert [(s.duration_seconds, s.target) for s in ramp.stages] == [(60, 10), (120, 10), (30, 0)]
        assert ramp.think_time == (0.5, 1.5)
        assert plan.thresholds["http_req_failed"] == ["rate<0.1"]

    def test_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(tmpdir, {"scenarios": [{"name": "s", "duration": 10}]}, name="minimal.yaml")
            plan = load_plan(path)
        assert plan.name == "minimal"
        assert plan.workload == "order-mix"
        assert plan.scenarios[0].vus == 1
        assert plan.scenarios[0].think_time == (1.0, 3.0)
        assert plan.thresholds == {}


class TestPlanValidation:
    def test_missing_file(self):
        with pytest.raises(PlanValidationError, match="not found"):
            load_plan("/nonexistent/plan.yaml")

    def test_unsupported_extension(self):
        with tempfile.NamedTemporaryFile(suffix=".txt", delete=False) as f:
            f.write(b"scenarios: []")
            f.flush()
            try:
                with pytest.raises(PlanValidationError, match="unsupported"):
                    load_plan(f.name)
            finally:
                os.unlink(f.name)

    def test_unparseable_yaml(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "bad.yaml")
            with open(path, "w") as f:
                f.write("scenarios: [unclosed\n")
            with pytest.raises(PlanValidationError, match="failed to parse"):
                load_plan(path)

    def test_top_level_must_be_mapping(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(tmpdir, ["not", "a", "mapping"])
            with pytest.raises(PlanValidationError, match="mapping"):
                load_plan(path)

    def test_all_errors_reported_together(self):
        with pytest.raises(PlanValidationError) as excinfo:
            load_plan(os.path.join(FIXTURES_DIR, "invalid-plan.yaml"))
        message = str(excinfo.value)
        assert "'workload' must be one of" in message
        assert "unknown executor 'arrival-rate'" in message
        assert "staged-ramp needs at least one stage" in message
        assert "'vus' must be a non-negative integer" in message
        assert "invalid duration: 'soon'" in message
        assert "invalid threshold expression" in message

    def test_duplicate_scenario_names(self):
        data = {"scenarios": [{"name": "a", "duration": 1}, {"name": "a", "duration": 2}]}
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(PlanValidationError, match="duplicate scenario names: a"):
                load_plan(_write(tmpdir, data))

    def test_fixed_workload_needs_payload(self):
        data = {"workload": "fixed", "scenarios": [{"name": "a", "duration": 1}]}
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(PlanValidationError, match="'payload' is required"):
                load_plan(_write(tmpdir, data, name="plan.json"))

    def test_payload_types_checked(self):
        data = {
            "workload": "fixed",
            "scenarios": [{"name": "a", "duration": 1}],
            "payload": {"customName": "x", "maxCaloriesPerSlice": "lots"},
        }
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(PlanValidationError, match="payload.maxCaloriesPerSlice must be a number"):
                load_plan(_write(tmpdir, data))

    def test_constant_without_duration_or_iterations(self):
        data = {"scenarios": [{"name": "forever"}]}
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(PlanValidationError, match="needs a duration or iterations"):
                load_plan(_write(tmpdir, data))

    def test_bad_think_time(self):
        data = {"scenarios": [{"name": "s", "duration": 1, "think_time": [3, 1]}]}
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(PlanValidationError, match="think_time"):
                load_plan(_write(tmpdir, data))


class TestDurations:
    @pytest.mark.parametrize("raw,seconds", [
        (90, 90.0),
        (1.5, 1.5),
        ("45", 45.0),
        ("30s", 30.0),
        ("2m", 120.0),
        ("1h30m", 5400.0),
        ("500ms", 0.5),
        (" 1m30s ", 90.0),
    ])
    def test_parse(self, raw, seconds):
        assert parse_duration(raw) == pytest.approx(seconds)

    @pytest.mark.parametrize("raw", ["", "soon", "5 minutes", "m5", -1, True, None, "1x"])
    def test_parse_rejects(self, raw):
        with pytest.raises(ValueError):
            parse_duration(raw)

    def test_format(self):
        assert format_duration(0) == "0s"
        assert format_duration(45) == "45s"
        assert format_duration(120) == "2m"
        assert format_duration(5400) == "1h30m"
        assert format_duration(2.5) == "2.5s"
