"""Order payload generation: fixtures, random payloads, and weighted pattern selection."""

import bisect
import random
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from pizza_perf.constants import PIZZA_TOOLS, RANDOM_EXCLUSION_CATALOG
from pizza_perf.models import OrderPizzaRequest, RequestTemplate


VALID_ORDER = OrderPizzaRequest(
    custom_name="Delicious Margherita",
    max_calories_per_slice=300,
    max_number_of_toppings=5,
    min_number_of_toppings=2,
)

VEGETARIAN_ORDER = OrderPizzaRequest(
    custom_name="Veggie Supreme",
    excluded_ingredients=["Pepperoni", "Sausage", "Bacon"],
    max_calories_per_slice=250,
    max_number_of_toppings=6,
    min_number_of_toppings=3,
    must_be_vegetarian=True,
)

RESTRICTED_ORDER = OrderPizzaRequest(
    custom_name="Allergy-Friendly Pizza",
    excluded_ingredients=["Cheese", "Mushrooms", "Onions"],
    excluded_tools=["Scissors"],
    max_calories_per_slice=200,
    max_number_of_toppings=3,
    min_number_of_toppings=1,
)

# Deliberately broken: blank name, negative calories, min > max.
INVALID_ORDER = OrderPizzaRequest(
    custom_name="",
    max_calories_per_slice=-1,
    max_number_of_toppings=0,
    min_number_of_toppings=5,
)

SIMPLE_ORDER = OrderPizzaRequest(
    custom_name="Simple Test Pizza",
    max_calories_per_slice=300,
    max_number_of_toppings=5,
    min_number_of_toppings=2,
)


@dataclass(frozen=True)
class PayloadBounds:
    calories: Tuple[int, int] = (200, 500)
    max_toppings: Tuple[int, int] = (1, 5)
    excluded_count: Tuple[int, int] = (0, 3)
    name_number: Tuple[int, int] = (1, 1000)


def select_pattern(
    patterns: Sequence[RequestTemplate],
    rng: Optional[random.Random] = None,
) -> OrderPizzaRequest:
    """Pick a pattern with probability proportional to its weight and produce a payload.

    Args:
        patterns: Weighted templates, walked in definition order.
        rng: Random source; the module-level generator is used when omitted.

    Returns:
        The payload produced by the chosen template.

    Raises:
        ValueError: If *patterns* is empty.
    """
    cumulative = _cumulative_weights(patterns)
    draw = (rng or random).random() * cumulative[-1]
    return _pick(patterns, cumulative, draw).produce()


def select_by_iteration(patterns: Sequence[RequestTemplate], iteration: int) -> OrderPizzaRequest:
    """Deterministic selection: the draw is ``iteration % total_weight``.

    With weights summing to 100 this reproduces a fixed "first 70 of every 100
    iterations, next 15, ..." split.
    """
    cumulative = _cumulative_weights(patterns)
    draw = iteration % cumulative[-1]
    return _pick(patterns, cumulative, draw).produce()


def random_payload(
    bounds: PayloadBounds = PayloadBounds(),
    rng: Optional[random.Random] = None,
) -> OrderPizzaRequest:
    """Build a structurally valid order from independent uniform draws.

    The minimum topping count is drawn from ``[0, max]`` so min <= max always
    holds for generated payloads.
    """
    rng = rng or random
    max_toppings = rng.randint(*bounds.max_toppings)
    excluded_count = min(rng.randint(*bounds.excluded_count), len(RANDOM_EXCLUSION_CATALOG))
    return OrderPizzaRequest(
        custom_name=f"Custom Pizza {rng.randint(*bounds.name_number)}",
        excluded_ingredients=rng.sample(RANDOM_EXCLUSION_CATALOG, excluded_count),
        excluded_tools=[rng.choice(PIZZA_TOOLS)],
        max_calories_per_slice=rng.randint(*bounds.calories),
        max_number_of_toppings=max_toppings,
        min_number_of_toppings=rng.randint(0, max_toppings),
        must_be_vegetarian=rng.random() > 0.5,
    )


def order_mix_patterns(rng: Optional[random.Random] = None) -> List[RequestTemplate]:
    """Mostly random valid orders with a tail of fixtures, including an invalid one."""
    return [
        RequestTemplate(70, lambda: random_payload(rng=rng), name="random"),
        RequestTemplate(15, lambda: _copy(VEGETARIAN_ORDER), name="vegetarian"),
        RequestTemplate(10, lambda: _copy(RESTRICTED_ORDER), name="restricted"),
        RequestTemplate(5, lambda: _copy(INVALID_ORDER), name="invalid"),
    ]


def performance_patterns(vu: int, iteration: int, rng: Optional[random.Random] = None) -> List[RequestTemplate]:
    """Pattern set weighted toward cheap orders; names carry the VU and iteration."""
    suffix = f"{vu}-{iteration}"
    return [
        RequestTemplate(
            60,
            lambda: OrderPizzaRequest(
                custom_name=f"Quick Pizza {suffix}",
                max_calories_per_slice=300,
                max_number_of_toppings=3,
                min_number_of_toppings=1,
            ),
            name="quick",
        ),
        RequestTemplate(25, lambda: random_payload(rng=rng), name="random"),
        RequestTemplate(
            10,
            lambda: OrderPizzaRequest(
                custom_name=f"Complex Pizza {suffix}",
                excluded_ingredients=["Pepperoni", "Sausage", "Mushrooms"],
                excluded_tools=["Scissors"],
                max_calories_per_slice=200,
                max_number_of_toppings=8,
                min_number_of_toppings=4,
                must_be_vegetarian=True,
            ),
            name="complex",
        ),
        RequestTemplate(
            5,
            lambda: OrderPizzaRequest(
                custom_name=f"Edge Case Pizza {suffix}",
                excluded_ingredients=["Cheese", "Tomato Sauce", "Pepperoni", "Mushrooms", "Onions"],
                excluded_tools=["Knife", "Scissors"],
                max_calories_per_slice=150,
                max_number_of_toppings=10,
                min_number_of_toppings=6,
                must_be_vegetarian=True,
            ),
            name="edge",
        ),
    ]


# -- internal helpers ---------------------------------------------------------


def _cumulative_weights(patterns: Sequence[RequestTemplate]) -> List[float]:
    if not patterns:
        raise ValueError("pattern set must contain at least one template")
    cumulative = []
    total = 0.0
    for pattern in patterns:
        total += pattern.weight
        cumulative.append(total)
    return cumulative


def _pick(patterns: Sequence[RequestTemplate], cumulative: List[float], draw: float) -> RequestTemplate:
    index = bisect.bisect_right(cumulative, draw)
    if index < len(patterns):
        return patterns[index]
    if draw == cumulative[-1]:
        return patterns[-1]
    # draw above the total or NaN
    return patterns[0]


def _copy(order: OrderPizzaRequest) -> OrderPizzaRequest:
    return replace(
        order,
        excluded_ingredients=list(order.excluded_ingredients),
        excluded_tools=list(order.excluded_tools),
    )
