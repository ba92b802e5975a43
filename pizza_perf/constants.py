"""Shared constants: catalogs, HTTP statuses, and per-test-type tuning."""

from typing import Dict, List, Tuple

DEFAULT_BASE_URL = "http://localhost:3333"
ORDER_PATH = "/order-pizza"
HEALTH_PATH = "/health"

JSON_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}

HTTP_OK = 200

SLICES_PER_PIZZA = 8
SLOW_RESPONSE_MS = 3000

PIZZA_INGREDIENTS: List[str] = [
    "Tomato Sauce",
    "Cheese",
    "Pepperoni",
    "Mushrooms",
    "Onions",
    "Sausage",
    "Bacon",
    "Black Olives",
    "Green Peppers",
    "Pineapple",
    "Spinach",
    "Feta Cheese",
    "Anchovies",
    "Italian Sausage",
    "Ham",
    "Bell Peppers",
]

# Random payloads only exclude from the common toppings.
RANDOM_EXCLUSION_CATALOG: List[str] = PIZZA_INGREDIENTS[:12]

PIZZA_TOOLS: List[str] = ["Knife", "Pizza cutter", "Scissors"]

# Acceptable response time per test type for the performance checks.
RESPONSE_TIME_LIMITS_MS: Dict[str, float] = {
    "baseline": 1500,
    "ramp_up": 2000,
    "peak": 2500,
    "stress": 4000,
    "spike": 6000,
}
DEFAULT_RESPONSE_TIME_LIMIT_MS = 3000

# Think time range (seconds) per test type.
THINK_TIMES: Dict[str, Tuple[float, float]] = {
    "baseline": (1.0, 3.0),
    "ramp_up": (0.5, 2.0),
    "peak": (0.5, 1.5),
    "stress": (0.2, 0.7),
    "spike": (0.1, 0.4),
}
DEFAULT_THINK_TIME: Tuple[float, float] = (1.0, 3.0)

DEFAULT_THRESHOLDS: Dict[str, List[str]] = {
    "http_req_duration": ["p(95)<2000"],
    "http_req_failed": ["rate<0.1"],
    "checks": ["rate>0.95"],
}
