"""User journeys walked by virtual users."""

import random
from collections.abc import Sequence
from dataclasses import dataclass, field


@dataclass(frozen=True)
class JourneyStep:
    """One HTTP call of a journey.

    Attributes:
        action: Name logged as the user action (e.g., "add_to_cart").
        path: Request path; ``{product_id}`` is filled with a random id.
        method: HTTP method.
        probability: Chance that an optional step is executed.
        think_min: Minimum seconds spent before the next step.
        think_max: Maximum seconds spent before the next step.
        body: JSON body sent with the request.
    """

    action: str
    path: str
    method: str = "GET"
    probability: float = 1.0
    think_min: float = 3.0
    think_max: float = 5.0
    body: dict | None = None


@dataclass(frozen=True)
class Journey:
    name: str
    weight: int
    steps: tuple[JourneyStep, ...] = field(default_factory=tuple)
    description: str = ""

    @property
    def purchases(self) -> bool:
        return any(step.action == "checkout" for step in self.steps)


def _step(action: str, path: str, think: tuple[float, float], **kwargs) -> JourneyStep:
    return JourneyStep(action, path, think_min=think[0], think_max=think[1], **kwargs)


_ORDER = {"items": [{"productId": 1, "quantity": 1}]}
_RESERVATION = {"name": "Virtual Guest", "partySize": 2}

DEFAULT_JOURNEYS: tuple[Journey, ...] = (
    Journey(
        "Quick Buyer",
        30,
        (
            _step("navigate", "/", (3, 8)),
            _step("navigate", "/api/products", (5, 10)),
            _step("add_to_cart", "/api/cart", (3, 5), method="POST", body=_ORDER),
            _step("add_to_cart", "/api/cart", (3, 5), method="POST", body=_ORDER, probability=0.7),
            _step("checkout", "/api/orders", (10, 20), method="POST", body=_ORDER),
        ),
        "Knows what they want and purchases quickly",
    ),
    Journey(
        "Browser",
        40,
        (
            _step("navigate", "/", (5, 10)),
            _step("navigate", "/api/products", (8, 15)),
            _step("browse", "/api/products", (15, 45)),
            _step("view_details", "/api/products/{product_id}", (8, 15)),
            _step("navigate", "/api/reservations", (5, 10)),
            _step("navigate", "/", (3, 5)),
        ),
        "Browses extensively before leaving",
    ),
    Journey(
        "Researcher",
        20,
        (
            _step("navigate", "/", (3, 5)),
            _step("navigate", "/api/products", (5, 10)),
            _step("view_details", "/api/products/{product_id}", (10, 20)),
            _step("view_details", "/api/products/{product_id}", (10, 20)),
            _step("view_details", "/api/products/{product_id}", (10, 20)),
            _step("add_to_cart", "/api/cart", (3, 5), method="POST", body=_ORDER, probability=0.5),
            _step("checkout", "/api/orders", (15, 25), method="POST", body=_ORDER, probability=0.3),
        ),
        "Researches thoroughly before deciding",
    ),
    Journey(
        "Reservation Maker",
        10,
        (
            _step("navigate", "/", (3, 5)),
            _step("navigate", "/api/reservations", (3, 5)),
            _step(
                "make_reservation",
                "/api/reservations",
                (15, 30),
                method="POST",
                body=_RESERVATION,
            ),
            _step("browse", "/api/products", (10, 20)),
        ),
        "Focused on making a reservation",
    ),
)

JOURNEY_PATTERNS = ("mixed", "buyers", "browsers", "researchers")


def filter_journeys(journeys: Sequence[Journey], pattern: str) -> list[Journey]:
    """Restrict ``journeys`` to a traffic pattern; unknown patterns mean mixed."""
    if pattern == "buyers":
        selected = [j for j in journeys if j.purchases or "buyer" in j.name.lower()]
    elif pattern == "browsers":
        selected = [j for j in journeys if not j.purchases]
    elif pattern == "researchers":
        selected = [
            j
            for j in journeys
            if "researcher" in j.name.lower()
            or sum(step.action == "view_details" for step in j.steps) > 1
        ]
    else:
        selected = list(journeys)
    return selected or list(journeys)


def select_weighted_journey(journeys: Sequence[Journey], rng: random.Random) -> Journey:
    """Pick a journey with probability proportional to its weight."""
    if not journeys:
        raise ValueError("no journeys to choose from")
    return rng.choices(list(journeys), weights=[j.weight for j in journeys], k=1)[0]


def think_time(step: JourneyStep, rng: random.Random, scale: float = 1.0) -> float:
    """Seconds a user pauses after ``step``, with 10-30% reading time added."""
    base = rng.uniform(step.think_min, step.think_max)
    return base * (1.1 + rng.random() * 0.2) * scale


def should_execute(step: JourneyStep, rng: random.Random) -> bool:
    return step.probability >= 1.0 or rng.random() < step.probability
