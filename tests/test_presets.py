"""Tests for the built-in plans and plan serialization."""

import json
import os
import tempfile

import pytest

from pizza_perf.loader import load_plan
from pizza_perf.orchestrator import CONCURRENT, SEQUENTIAL, schedule_mode
from pizza_perf.presets import (
    PRESETS,
    get_preset,
    list_presets,
    plan_to_json,
    write_plan_yaml,
)
from pizza_perf.thresholds import parse_thresholds


class TestPresetCatalog:
    def test_names(self):
        assert list(PRESETS) == [
            "smoke", "load", "stress", "spike", "order-pizza", "performance", "simple", "functional", "boundary",
        ]
        assert all(description for _, description in list_presets())

    @pytest.mark.parametrize("name", list(PRESETS))
    def test_thresholds_parse(self, name):
        assert parse_thresholds(get_preset(name).thresholds)

    def test_unknown_preset(self):
        with pytest.raises(KeyError, match="unknown preset"):
            get_preset("soak")

    def test_presets_are_fresh_copies(self):
        first = get_preset("smoke")
        first.scenarios.clear()
        assert len(get_preset("smoke").scenarios) == 1


class TestPresetShapes:
    def test_smoke(self):
        scenario = get_preset("smoke").scenarios[0]
        assert scenario.vus == 1
        assert scenario.duration_seconds == 60
        assert scenario.tags == {"test_type": "smoke"}

    def test_spike_stages(self):
        stages = get_preset("spike").scenarios[0].stages
        assert [(s.duration_seconds, s.target) for s in stages] == [
            (60, 5), (60, 50), (180, 50), (60, 5), (60, 0),
        ]

    def test_order_pizza_runs_all_scenarios_together(self):
        plan = get_preset("order-pizza")
        assert [s.name for s in plan.scenarios] == ["smoke_test", "load_test", "stress_test", "spike_test"]
        assert schedule_mode(plan.scenarios) == CONCURRENT
        assert plan.thresholds["http_req_duration{test_type:spike}"] == ["p(95)<5000"]

    def test_performance_phases_are_back_to_back(self):
        plan = get_preset("performance")
        assert schedule_mode(plan.scenarios) == SEQUENTIAL
        offsets = [s.start_offset_seconds for s in plan.scenarios]
        assert offsets == [0, 300, 1440, 2040, 3300]
        assert plan.thresholds["http_req_failed{test_type:spike}"] == ["rate<0.15"]

    def test_suites_run_once(self):
        for name in ("functional", "boundary"):
            scenario = get_preset(name).scenarios[0]
            assert scenario.iterations == 1
            assert scenario.vus == 1


class TestSerialization:
    def test_yaml_export_loads_back(self):
        plan = get_preset("performance")
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "performance.yaml")
            write_plan_yaml(plan, path)
            loaded = load_plan(path)
        assert loaded.name == plan.name
        assert loaded.workload == plan.workload
        assert loaded.scenarios == plan.scenarios
        assert loaded.thresholds == plan.thresholds

    def test_json_export(self):
        parsed = json.loads(plan_to_json(get_preset("load")))
        assert parsed["scenarios"][0]["executor"] == "staged-ramp"
        assert parsed["scenarios"][0]["stages"][0] == {"duration": "2m", "target": 10}
