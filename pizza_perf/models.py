"""Data models for load plans, scenarios, samples, checks, and run reports."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple


CONSTANT_CONCURRENCY = "constant-concurrency"
STAGED_RAMP = "staged-ramp"
EXECUTOR_KINDS = (CONSTANT_CONCURRENCY, STAGED_RAMP)


def freeze_tags(tags: Optional[Mapping[str, Any]]) -> Mapping[str, str]:
    """Return a read-only copy of *tags* with string values."""
    return MappingProxyType({str(k): str(v) for k, v in (tags or {}).items()})


@dataclass(frozen=True)
class Stage:
    duration_seconds: float
    target: int

    def __post_init__(self):
        if self.duration_seconds < 0:
            raise ValueError(f"stage duration must be >= 0, got {self.duration_seconds}")
        if self.target < 0:
            raise ValueError(f"stage target must be >= 0, got {self.target}")


@dataclass
class ScenarioSpec:
    name: str
    executor: str = CONSTANT_CONCURRENCY
    vus: int = 1  # held concurrency, or the starting concurrency of a ramp
    duration_seconds: float = 0.0
    stages: List[Stage] = field(default_factory=list)
    start_offset_seconds: float = 0.0
    tags: Dict[str, str] = field(default_factory=dict)
    think_time: Tuple[float, float] = (1.0, 3.0)
    iterations: Optional[int] = None  # per-VU cap

    def __post_init__(self):
        if self.executor not in EXECUTOR_KINDS:
            raise ValueError(f"unknown executor {self.executor!r} for scenario {self.name!r}")
        if self.vus < 0:
            raise ValueError(f"scenario {self.name!r}: vus must be >= 0")
        if self.duration_seconds < 0:
            raise ValueError(f"scenario {self.name!r}: duration must be >= 0")
        if self.start_offset_seconds < 0:
            raise ValueError(f"scenario {self.name!r}: start offset must be >= 0")
        if self.executor == STAGED_RAMP and not self.stages:
            raise ValueError(f"scenario {self.name!r}: staged-ramp needs at least one stage")
        low, high = self.think_time
        if low < 0 or high < low:
            raise ValueError(f"scenario {self.name!r}: invalid think time {self.think_time}")
        if self.iterations is not None and self.iterations < 1:
            raise ValueError(f"scenario {self.name!r}: iterations must be >= 1")

    @property
    def planned_duration(self) -> Optional[float]:
        """Wall-clock length of the scenario, or None when it is iteration-bound."""
        if self.iterations is not None:
            return None
        if self.executor == STAGED_RAMP:
            return float(sum(stage.duration_seconds for stage in self.stages))
        return float(self.duration_seconds)


@dataclass
class OrderPizzaRequest:
    custom_name: str
    excluded_ingredients: List[str] = field(default_factory=list)
    excluded_tools: List[str] = field(default_factory=list)
    max_calories_per_slice: float = 300
    max_number_of_toppings: int = 5
    min_number_of_toppings: int = 2
    must_be_vegetarian: bool = False

    def to_json(self) -> dict:
        return {
            "customName": self.custom_name,
            "excludedIngredients": list(self.excluded_ingredients),
            "excludedTools": list(self.excluded_tools),
            "maxCaloriesPerSlice": self.max_calories_per_slice,
            "maxNumberOfToppings": self.max_number_of_toppings,
            "minNumberOfToppings": self.min_number_of_toppings,
            "mustBeVegetarian": self.must_be_vegetarian,
        }

    @classmethod
    def from_json(cls, raw: Mapping[str, Any]) -> "OrderPizzaRequest":
        return cls(
            custom_name=raw.get("customName", ""),
            excluded_ingredients=list(raw.get("excludedIngredients", [])),
            excluded_tools=list(raw.get("excludedTools", [])),
            max_calories_per_slice=raw.get("maxCaloriesPerSlice", 300),
            max_number_of_toppings=raw.get("maxNumberOfToppings", 5),
            min_number_of_toppings=raw.get("minNumberOfToppings", 2),
            must_be_vegetarian=bool(raw.get("mustBeVegetarian", False)),
        )

    def is_valid(self) -> bool:
        """Domain rules the API enforces; the load core never rejects on them."""
        return (
            self.custom_name.strip() != ""
            and self.max_calories_per_slice > 0
            and 0 <= self.min_number_of_toppings <= self.max_number_of_toppings
            and self.max_number_of_toppings >= 1
        )


@dataclass
class RequestTemplate:
    weight: float
    produce: Callable[[], OrderPizzaRequest]
    name: str = ""

    def __post_init__(self):
        if not self.weight > 0:
            raise ValueError(f"pattern weight must be positive, got {self.weight}")


@dataclass(frozen=True)
class CheckResult:
    name: str
    passed: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class Sample:
    timestamp: float
    duration_ms: float
    status_code: Optional[int]  # None when the request never got a response
    tags: Mapping[str, str] = field(default_factory=lambda: freeze_tags({}))
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status_code is None or self.status_code >= 400


@dataclass(frozen=True)
class ThresholdSpec:
    metric: str  # "http_req_duration", "http_req_failed", "checks", "http_reqs"
    aggregation: str  # "p(95)", "avg", "rate", ...
    comparator: str  # "<", "<=", ">", ">="
    limit: float
    tags: Tuple[Tuple[str, str], ...] = ()
    source: str = ""

    @property
    def selector(self) -> str:
        if not self.tags:
            return self.metric
        inner = ",".join(f"{k}:{v}" for k, v in self.tags)
        return f"{self.metric}{{{inner}}}"

    def __str__(self) -> str:
        return f"{self.selector} {self.aggregation}{self.comparator}{self.limit:g}"


@dataclass(frozen=True)
class ThresholdResult:
    spec: ThresholdSpec
    passed: bool
    actual: Optional[float] = None
    detail: str = ""

    @property
    def margin(self) -> Optional[float]:
        if self.actual is None:
            return None
        return self.actual - self.spec.limit


@dataclass(frozen=True)
class CheckTally:
    name: str
    passes: int = 0
    fails: int = 0

    @property
    def rate(self) -> Optional[float]:
        total = self.passes + self.fails
        return self.passes / total if total else None


@dataclass(frozen=True)
class MetricGroup:
    count: int = 0
    failures: int = 0
    error_rate: Optional[float] = None
    avg_ms: Optional[float] = None
    min_ms: Optional[float] = None
    max_ms: Optional[float] = None
    p50_ms: Optional[float] = None
    p90_ms: Optional[float] = None
    p95_ms: Optional[float] = None
    p99_ms: Optional[float] = None
    check_passes: int = 0
    check_total: int = 0
    check_rate: Optional[float] = None
    durations: Tuple[float, ...] = ()  # sorted, retained for p(N) lookups


@dataclass(frozen=True)
class ScenarioOutcome:
    name: str
    status: str  # "completed" or "aborted"
    iterations: int = 0
    vus_max: int = 0
    abort_reason: Optional[str] = None


@dataclass(frozen=True)
class RunReport:
    plan: str
    started_at: Optional[str]
    finished_at: Optional[str]
    duration_seconds: float
    overall: MetricGroup
    groups: Mapping[str, MetricGroup] = field(default_factory=dict)
    checks: Mapping[str, CheckTally] = field(default_factory=dict)
    scenarios: Tuple[ScenarioOutcome, ...] = ()
    thresholds: Tuple[ThresholdResult, ...] = ()
    success: bool = False

    def __post_init__(self):
        # read-only views keep the report immutable once built
        object.__setattr__(self, "groups", MappingProxyType(dict(self.groups)))
        object.__setattr__(self, "checks", MappingProxyType(dict(self.checks)))

    @property
    def aborted(self) -> List[str]:
        return [s.name for s in self.scenarios if s.status == "aborted"]

    @property
    def failed_thresholds(self) -> List[ThresholdResult]:
        return [t for t in self.thresholds if not t.passed]


@dataclass
class LoadPlan:
    name: str
    description: str = ""
    workload: str = "order-mix"
    scenarios: List[ScenarioSpec] = field(default_factory=list)
    thresholds: Dict[str, List[str]] = field(default_factory=dict)
    payload: Optional[OrderPizzaRequest] = None  # used by the "fixed" workload


@dataclass
class EvidenceEvent:
    ts: str
    plan: str
    base_url: str
    scenarios: List[str] = field(default_factory=list)
    success: bool = False
    failed_thresholds: List[str] = field(default_factory=list)
    outcome: str = "run-completed"
