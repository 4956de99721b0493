"""Faker-based data generators for Locust load test scenarios.

Payloads match the field names of the coordination API's Pydantic request
schemas and only use station affinities the coordinator can resolve.
"""

import random
import uuid

from faker import Faker

fake = Faker()

FOOD_ITEMS = ["burger", "fries", "club-sandwich", "muffin", "croissant", "salad"]
DRINK_ITEMS = ["latte", "espresso", "flat-white", "iced-tea", "hot-chocolate"]


def line_item(affinity: str) -> dict:
    """One line item for the given affinity ("food" or "beverage")."""
    products = FOOD_ITEMS if affinity == "food" else DRINK_ITEMS
    return {
        "product_ref": random.choice(products),
        "quantity": random.randint(1, 3),
        "station_affinity": affinity,
    }


def order_data(food: int | None = None, drinks: int | None = None) -> dict:
    """Generate a SubmitOrderRequest payload.

    By default picks a random mix, always with at least one item.
    """
    if food is None and drinks is None:
        food, drinks = random.choice([(1, 0), (0, 1), (1, 1), (2, 1), (1, 2)])
    items = [line_item("food") for _ in range(food or 0)]
    items += [line_item("beverage") for _ in range(drinks or 0)]
    return {
        "items": items,
        "payment_reference": f"PAY-LT-{uuid.uuid4().hex[:8]}",
    }


def cancellation_data() -> dict:
    """Generate a CancelOrderRequest payload."""
    return {
        "idempotency_token": uuid.uuid4().hex,
        "reason": fake.sentence(nb_words=5)[:200],
    }
