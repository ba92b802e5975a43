"""Evaluate named checks against HTTP responses."""

import json
import logging
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Mapping, Optional

from pizza_perf.constants import (
    DEFAULT_RESPONSE_TIME_LIMIT_MS,
    HTTP_OK,
    RESPONSE_TIME_LIMITS_MS,
    SLICES_PER_PIZZA,
)
from pizza_perf.models import CheckResult, OrderPizzaRequest

logger = logging.getLogger(__name__)

_UNPARSED = object()

Predicate = Callable[["ResponseView"], bool]


class ResponseView:
    """Normalized response handed to every predicate.

    ``parsed_json`` is decoded once on first access; a body that is not valid
    JSON yields ``None`` instead of raising.
    """

    def __init__(
        self,
        status_code: Optional[int],
        duration_ms: float,
        body: str = "",
        headers: Optional[Mapping[str, str]] = None,
    ):
        self.status_code = status_code
        self.duration_ms = duration_ms
        self.body = body or ""
        self.headers = dict(headers or {})
        self._parsed = _UNPARSED

    @classmethod
    def from_httpx(cls, response, duration_ms: float) -> "ResponseView":
        return cls(
            status_code=response.status_code,
            duration_ms=duration_ms,
            body=response.text,
            headers=response.headers,
        )

    @property
    def parsed_json(self) -> Optional[Any]:
        if self._parsed is _UNPARSED:
            try:
                self._parsed = json.loads(self.body)
            except (ValueError, TypeError):
                self._parsed = None
        return self._parsed

    def __repr__(self) -> str:
        return f"ResponseView(status_code={self.status_code}, duration_ms={self.duration_ms:.1f})"


def evaluate(response: ResponseView, predicates: Mapping[str, Predicate]) -> List[CheckResult]:
    """Run every predicate against *response*.

    Args:
        response: The normalized response.
        predicates: Check name -> predicate, evaluated in mapping order.

    Returns:
        One CheckResult per predicate, in input order. A predicate that raises
        is recorded as failed and does not prevent the others from running.
    """
    results = []
    for name, predicate in predicates.items():
        try:
            passed = bool(predicate(response))
        except Exception as exc:
            logger.debug("check %r raised %s: %s", name, type(exc).__name__, exc)
            results.append(CheckResult(name=name, passed=False, error=f"{type(exc).__name__}: {exc}"))
            continue
        results.append(CheckResult(name=name, passed=passed))
    return results


# -- check sets ---------------------------------------------------------------


def status_checks(max_ms: float = 2000, prefix: str = "") -> Dict[str, Predicate]:
    return OrderedDict([
        (f"{prefix}status is 200", lambda r: r.status_code == HTTP_OK),
        (f"{prefix}response time < {max_ms:g}ms", lambda r: r.duration_ms < max_ms),
        (f"{prefix}response has body", lambda r: len(r.body) > 0),
    ])


def error_checks(max_ms: float = 2000, prefix: str = "") -> Dict[str, Predicate]:
    return OrderedDict([
        (f"{prefix}returns error status", lambda r: r.status_code is not None and 400 <= r.status_code < 500),
        (f"{prefix}fast error response", lambda r: r.duration_ms < max_ms),
        (f"{prefix}has error message", lambda r: len(r.body) > 0),
    ])


def order_body_checks(request: OrderPizzaRequest, prefix: str = "") -> Dict[str, Predicate]:
    """Structural and business-rule checks for a successful order response."""
    checks = OrderedDict([
        (f"{prefix}response has pizza", lambda r: isinstance(_body(r).get("pizza"), dict)),
        (f"{prefix}response has calories", lambda r: _number(_body(r).get("calories")) and _body(r)["calories"] > 0),
        (f"{prefix}response has vegetarian flag", lambda r: isinstance(_body(r).get("vegetarian"), bool)),
        (f"{prefix}pizza has valid ID", lambda r: _pizza(r)["id"] > 0),
        (f"{prefix}pizza has name", lambda r: len(_pizza(r)["name"]) > 0),
        (f"{prefix}pizza has dough", lambda r: _pizza(r).get("dough") is not None),
        (f"{prefix}pizza has ingredients", lambda r: isinstance(_pizza(r).get("ingredients"), list)),
    ])
    if request.must_be_vegetarian:
        checks[f"{prefix}vegetarian order returns vegetarian pizza"] = lambda r: _body(r).get("vegetarian") is True
    if _number(request.max_calories_per_slice) and request.max_calories_per_slice > 0:
        checks[f"{prefix}calories per slice within limit"] = (
            lambda r: _body(r)["calories"] / SLICES_PER_PIZZA <= request.max_calories_per_slice
        )
    if request.excluded_ingredients:
        excluded = set(request.excluded_ingredients)
        checks[f"{prefix}excluded ingredients not present"] = (
            lambda r: not excluded.intersection(i["name"] for i in _pizza(r)["ingredients"])
        )
    checks[f"{prefix}toppings count within range"] = lambda r: (
        request.min_number_of_toppings <= len(_pizza(r)["ingredients"]) <= request.max_number_of_toppings
    )
    return checks


def performance_checks(test_type: str) -> Dict[str, Predicate]:
    limit = RESPONSE_TIME_LIMITS_MS.get(test_type, DEFAULT_RESPONSE_TIME_LIMIT_MS)
    return OrderedDict([
        ("response received", lambda r: r.status_code is not None),
        ("status is success or client error", lambda r: r.status_code < 500),
        ("response time acceptable", lambda r: r.duration_ms < limit),
        ("no server errors", lambda r: r.status_code < 500),
    ])


def structure_checks() -> Dict[str, Predicate]:
    return OrderedDict([
        ("valid response structure", lambda r: bool(
            _body(r).get("pizza") and _body(r).get("calories") and isinstance(_body(r).get("vegetarian"), bool)
        )),
    ])


def check_order_response(
    request: OrderPizzaRequest,
    response: ResponseView,
    max_ms: float = 2000,
    error_max_ms: float = 2000,
    prefix: str = "",
) -> List[CheckResult]:
    """Apply the order-pizza check suite to one response.

    Valid requests get the status checks, then the body checks when the API
    answered 200. Invalid requests are expected to come back as 4xx.
    """
    if not request.is_valid():
        return evaluate(response, error_checks(error_max_ms, prefix))

    results = evaluate(response, status_checks(max_ms, prefix))
    if response.status_code == HTTP_OK:
        if response.parsed_json is None:
            results.append(CheckResult(name=f"{prefix}response is valid JSON", passed=False))
        else:
            results.extend(evaluate(response, order_body_checks(request, prefix)))
    return results


def check_performance_response(response: ResponseView, test_type: str) -> List[CheckResult]:
    results = evaluate(response, performance_checks(test_type))
    if response.status_code == HTTP_OK:
        results.extend(evaluate(response, structure_checks()))
    return results


# -- internal helpers ---------------------------------------------------------


def _body(response: ResponseView) -> dict:
    data = response.parsed_json
    return data if isinstance(data, dict) else {}


def _pizza(response: ResponseView) -> dict:
    return _body(response)["pizza"]


def _number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
