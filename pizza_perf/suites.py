"""Fixed request suites: functional cases and boundary/edge cases.

Each case pairs a request body with the checks its response must satisfy.
Bodies are either an OrderPizzaRequest or a raw string sent verbatim, which
lets the malformed-JSON cases reach the API untouched.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

from pizza_perf.assertions import (
    ResponseView,
    check_order_response,
    error_checks,
    evaluate,
)
from pizza_perf.models import CheckResult, OrderPizzaRequest

CaseChecks = Callable[[ResponseView], List[CheckResult]]


@dataclass
class OrderCase:
    name: str
    body: Union[OrderPizzaRequest, str, None]
    checks: CaseChecks
    group: str = ""

    @property
    def raw(self) -> bool:
        return not isinstance(self.body, OrderPizzaRequest)


def _order(name: str, **overrides) -> OrderPizzaRequest:
    fields = dict(
        custom_name=name,
        max_calories_per_slice=300,
        max_number_of_toppings=5,
        min_number_of_toppings=2,
    )
    fields.update(overrides)
    return OrderPizzaRequest(**fields)


def _prefixed(case: str, checks: "OrderedDict[str, Callable]") -> CaseChecks:
    named = OrderedDict((f"{case}: {name}", fn) for name, fn in checks.items())
    return lambda response: evaluate(response, named)


def _rejected(r: ResponseView) -> bool:
    return r.status_code is not None and r.status_code >= 400


def _handled(r: ResponseView) -> bool:
    return r.status_code is not None and (r.status_code == 200 or r.status_code >= 400)


# -- functional suite ---------------------------------------------------------


def functional_cases() -> List[OrderCase]:
    valid = OrderedDict([
        ("minimumValidOrder", _order("Simple Pizza", max_number_of_toppings=1, min_number_of_toppings=1)),
        ("maximumValidOrder", _order(
            "Supreme Loaded Pizza with Extra Everything",
            max_calories_per_slice=500, max_number_of_toppings=10, min_number_of_toppings=8,
        )),
        ("strictVegetarianOrder", _order(
            "Vegan Delight",
            excluded_ingredients=["Pepperoni", "Sausage", "Bacon", "Ham", "Italian Sausage", "Anchovies"],
            max_calories_per_slice=250, max_number_of_toppings=6, min_number_of_toppings=3,
            must_be_vegetarian=True,
        )),
        ("lowCalorieOrder", _order(
            "Diet Pizza", excluded_ingredients=["Cheese"],
            max_calories_per_slice=150, max_number_of_toppings=3, min_number_of_toppings=1,
            must_be_vegetarian=True,
        )),
        ("multipleExclusionsOrder", _order(
            "Allergy-Safe Pizza",
            excluded_ingredients=["Cheese", "Mushrooms", "Onions", "Green Peppers"],
            excluded_tools=["Scissors"],
            max_calories_per_slice=200, max_number_of_toppings=4, min_number_of_toppings=2,
        )),
    ])
    invalid = OrderedDict([
        ("emptyName", _order("")),
        ("negativeCalories", _order("Invalid Pizza", max_calories_per_slice=-100)),
        ("invalidToppingRange", _order("Invalid Range Pizza", max_number_of_toppings=2, min_number_of_toppings=5)),
        ("zeroToppings", _order("No Toppings Pizza", max_number_of_toppings=0, min_number_of_toppings=0)),
    ])

    cases = []
    for name, order in valid.items():
        cases.append(OrderCase(
            name=name,
            body=order,
            checks=lambda r, order=order, name=name: check_order_response(
                order, r, max_ms=3000, prefix=f"{name}: "
            ),
            group="valid",
        ))
    for name, order in invalid.items():
        cases.append(OrderCase(
            name=name, body=order, checks=_prefixed(name, error_checks(2000)), group="invalid",
        ))

    cases.append(OrderCase(
        name="largePayload",
        body=_order(
            "A" * 1000,
            excluded_ingredients=["Mushrooms"] * 50,
            excluded_tools=["Knife", "Pizza cutter", "Scissors"],
        ),
        checks=_prefixed("Large payload", OrderedDict([
            ("handled appropriately", _handled),
            ("reasonable response time", lambda r: r.duration_ms < 5000),
        ])),
        group="edge",
    ))
    cases.append(OrderCase(
        name="specialCharacters",
        body=_order("Pizza \U0001F355 with émojis & spëcial chârs", excluded_ingredients=["Jalapeño", "Piña"]),
        checks=_prefixed("Special chars", OrderedDict([
            ("handled correctly", lambda r: r.status_code in (200, 400)),
            ("response time acceptable", lambda r: r.duration_ms < 3000),
        ])),
        group="edge",
    ))
    return cases


# -- boundary suite -----------------------------------------------------------


def boundary_cases() -> List[OrderCase]:
    cases: List[OrderCase] = []

    for label, calories in [
        ("Zero Calories", 0), ("One Calorie", 1), ("Negative Calories", -1),
        ("Very High Calories", 10000), ("Maximum Integer", 2147483647), ("Float Value", 299.99),
    ]:
        if calories <= 0:
            checks = {"should reject non-positive calories": _rejected}
        elif calories >= 1000:
            checks = {"should handle high calorie requests": _handled}
        else:
            checks = {"should accept valid calories": lambda r: r.status_code == 200}
        cases.append(OrderCase(
            name=f"calorie-boundary-{label}",
            body=_order(f"{label} Pizza", max_calories_per_slice=calories),
            checks=_prefixed(label, OrderedDict(checks)),
            group="calories",
        ))

    for label, low, high in [
        ("Zero Toppings", 0, 0), ("One Topping", 1, 1), ("Min Greater Than Max", 5, 2),
        ("Negative Toppings", -1, 3), ("Very High Toppings", 50, 100), ("Equal Min Max", 3, 3),
    ]:
        if low > high or low < 0 or high < 0:
            checks = {"should reject invalid topping range": _rejected}
        else:
            checks = {"should handle valid topping range": _handled}
        cases.append(OrderCase(
            name=f"topping-boundary-{label}",
            body=_order(f"{label} Pizza", max_number_of_toppings=high, min_number_of_toppings=low),
            checks=_prefixed(label, OrderedDict(checks)),
            group="toppings",
        ))

    for label, value in [
        ("Empty Name", ""), ("Single Character", "A"), ("Very Long Name", "A" * 1000),
        ("Extremely Long Name", "A" * 10000), ("Only Spaces", "   "), ("Mixed Whitespace", "\t\n\r "),
    ]:
        if value.strip() == "":
            checks = {"should reject empty/whitespace names": _rejected}
        elif len(value) > 500:
            checks = {"should handle very long names": _handled}
        else:
            checks = {"should accept valid names": lambda r: r.status_code == 200}
        cases.append(OrderCase(
            name=f"name-boundary-{label}",
            body=_order(value),
            checks=_prefixed(label, OrderedDict(checks)),
            group="names",
        ))

    for label, order in [
        ("All Arrays Empty", _order("Empty Arrays Pizza")),
        ("Large Exclusion Lists", _order(
            "Many Exclusions Pizza",
            excluded_ingredients=["Mushrooms"] * 100,
            excluded_tools=["Knife"] * 50,
        )),
    ]:
        cases.append(OrderCase(
            name=f"empty-null-{label}",
            body=order,
            checks=_prefixed(label, OrderedDict([("handles empty/large arrays", _handled)])),
            group="arrays",
        ))

    for label, order in [
        ("All Maximum Values", _order(
            "X" * 500,
            excluded_ingredients=["Everything"] * 20,
            excluded_tools=["Knife", "Pizza cutter", "Scissors"],
            max_calories_per_slice=999999, max_number_of_toppings=999, min_number_of_toppings=998,
            must_be_vegetarian=True,
        )),
        ("Mixed Extreme Values", _order(
            "\U0001F355" * 100,
            excluded_ingredients=["Ingredient" * 50],
            excluded_tools=["Tool" * 30],
            max_calories_per_slice=1, max_number_of_toppings=1000, min_number_of_toppings=999,
        )),
    ]:
        cases.append(OrderCase(
            name=f"extreme-{label}",
            body=order,
            checks=_prefixed(label, OrderedDict([
                ("handles extreme values gracefully",
                 lambda r: r.status_code is not None and r.duration_ms < 10000),
            ])),
            group="extreme",
        ))

    for label, value in [
        ("Emoji Name", "\U0001F355\U0001F9C0\U0001F344\U0001F953"),
        ("Unicode Characters", "Pïzzä wïth üñïcödé"),
        ("HTML Tags", '<script>alert("xss")</script>'),
        ("SQL Injection Attempt", "'; DROP TABLE pizzas; --"),
        ("JSON Injection", '{"malicious": true}'),
        ("Newlines and Tabs", "Pizza\nwith\ttabs"),
        ("Backslashes", "Pizza\\with\\backslashes"),
    ]:
        cases.append(OrderCase(
            name=f"special-char-{label}",
            body=_order(value, excluded_ingredients=[value]),
            checks=_prefixed(label, OrderedDict([
                ("handles special characters safely", lambda r: r.status_code is not None),
                ("no server error", lambda r: r.status_code is not None and r.status_code < 500),
            ])),
            group="special",
        ))

    for label, raw in [
        ("Invalid JSON", '{"customName": "Test", invalid}'),
        ("Incomplete JSON", '{"customName": "Test"'),
        ("Empty JSON", "{}"),
        ("Array Instead of Object", '["not", "an", "object"]'),
        ("String Instead of JSON", "not json at all"),
        ("Null Body", None),
    ]:
        cases.append(OrderCase(
            name=f"malformed-{label}",
            body=raw,
            checks=_prefixed(label, OrderedDict([
                ("rejects malformed request", _rejected),
                ("quick response to malformed data", lambda r: r.duration_ms < 2000),
            ])),
            group="malformed",
        ))

    for label, raw in [
        ("String for Calories",
         '{"customName": "Type Test Pizza", "excludedIngredients": [], "excludedTools": [], '
         '"maxCaloriesPerSlice": "three hundred", "maxNumberOfToppings": 5, '
         '"minNumberOfToppings": 2, "mustBeVegetarian": false}'),
        ("Boolean for Toppings",
         '{"customName": "Type Test Pizza", "excludedIngredients": [], "excludedTools": [], '
         '"maxCaloriesPerSlice": 300, "maxNumberOfToppings": true, '
         '"minNumberOfToppings": false, "mustBeVegetarian": false}'),
    ]:
        cases.append(OrderCase(
            name=f"types-{label}",
            body=raw,
            checks=_prefixed(label, OrderedDict([("rejects invalid types", _rejected)])),
            group="types",
        ))

    for label, value in [
        ("Chinese Characters", "中国披萨"),
        ("Arabic Text", "بيتزا عربية"),
        ("Russian Text", "Русская пицца"),
        ("Mixed Scripts", "Pizza混合Script\U0001F355"),
    ]:
        cases.append(OrderCase(
            name=f"unicode-{label}",
            body=_order(value),
            checks=_prefixed(label, OrderedDict([
                ("handles unicode correctly", lambda r: r.status_code is not None),
            ])),
            group="unicode",
        ))

    return cases


def find_case(cases: List[OrderCase], name: str) -> Optional[OrderCase]:
    for case in cases:
        if case.name == name:
            return case
    return None
