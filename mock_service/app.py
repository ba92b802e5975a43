"""In-process stand-in for the pizza ordering API.

Run with: uvicorn mock_service.app:app --port 3333 --reload
"""

import itertools
import json
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

app = FastAPI(title="Mock Pizza API")

SLICES = 8

DOUGH = {"name": "Thin", "caloriesPerSlice": 60}

# name -> (calories per slice, vegetarian)
INGREDIENTS = {
    "Tomato Sauce": (15, True),
    "Cheese": (60, True),
    "Pepperoni": (45, False),
    "Mushrooms": (5, True),
    "Onions": (8, True),
    "Sausage": (55, False),
    "Bacon": (50, False),
    "Black Olives": (12, True),
    "Green Peppers": (6, True),
    "Pineapple": (14, True),
    "Spinach": (4, True),
    "Feta Cheese": (40, True),
    "Anchovies": (25, False),
    "Italian Sausage": (58, False),
    "Ham": (35, False),
    "Bell Peppers": (6, True),
}

TOOLS = ["Knife", "Pizza cutter", "Scissors"]

_ids = itertools.count(1)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/order-pizza")
async def order_pizza(request: Request):
    body = await request.body()
    try:
        order = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _bad_request("request body must be valid JSON")
    if not isinstance(order, dict):
        return _bad_request("request body must be a JSON object")

    problem = validate_order(order)
    if problem:
        return _bad_request(problem)
    return build_pizza(order)


def validate_order(order: Dict[str, Any]) -> Optional[str]:
    """Return the first rule the order breaks, or None."""
    name = order.get("customName")
    if not isinstance(name, str) or not name.strip():
        return "customName must be a non-empty string"
    for key in ("excludedIngredients", "excludedTools"):
        value = order.get(key, [])
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            return f"{key} must be a list of strings"
    calories = order.get("maxCaloriesPerSlice")
    if not _is_number(calories) or calories <= 0:
        return "maxCaloriesPerSlice must be a positive number"
    low, high = order.get("minNumberOfToppings"), order.get("maxNumberOfToppings")
    if not _is_int(low) or not _is_int(high):
        return "minNumberOfToppings and maxNumberOfToppings must be integers"
    if low < 0 or high < 1 or low > high:
        return "topping range must satisfy 0 <= min <= max and max >= 1"
    if not isinstance(order.get("mustBeVegetarian", False), bool):
        return "mustBeVegetarian must be a boolean"
    return None


def build_pizza(order: Dict[str, Any]):
    """Pick the lightest toppings that satisfy the order, at least the minimum count."""
    excluded = set(order.get("excludedIngredients", []))
    vegetarian = bool(order.get("mustBeVegetarian", False))
    limit = order["maxCaloriesPerSlice"]
    low, high = order["minNumberOfToppings"], order["maxNumberOfToppings"]

    eligible = sorted(
        (name for name, (_, veg) in INGREDIENTS.items() if name not in excluded and (veg or not vegetarian)),
        key=lambda name: INGREDIENTS[name][0],
    )
    if len(eligible) < low:
        return _bad_request(f"only {len(eligible)} ingredient(s) fit the order, {low} required")
    per_slice = DOUGH["caloriesPerSlice"]
    chosen: List[str] = []
    for name in eligible[:high]:
        cost = INGREDIENTS[name][0]
        if len(chosen) >= low and per_slice + cost > limit:
            break
        chosen.append(name)
        per_slice += cost

    tools = [t for t in TOOLS if t not in set(order.get("excludedTools", []))]
    return {
        "pizza": {
            "id": next(_ids),
            "name": order["customName"],
            "dough": DOUGH,
            "ingredients": [
                {"name": name, "caloriesPerSlice": INGREDIENTS[name][0], "vegetarian": INGREDIENTS[name][1]}
                for name in chosen
            ],
            "tool": tools[0] if tools else None,
        },
        "calories": per_slice * SLICES,
        "vegetarian": all(INGREDIENTS[name][1] for name in chosen),
    }


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
