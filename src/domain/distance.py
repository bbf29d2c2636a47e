"""
Distance estimation between pickup and delivery postcodes.

Assumption
----------
We estimate road distance from the numeric gap between two Australian
postcodes (roughly 10 km per postcode step, never below 50 km) instead of a
real routing engine.  This keeps the project self-contained and runnable
locally without external API keys.  In production ``PostcodeDistanceEstimator``
would be replaced by a routing-service client implementing
``DistanceEstimator``; nothing downstream of the estimate changes.

Complexity: O(1) per call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from .errors import InvalidInput

KM_PER_POSTCODE_STEP = 10.0
MIN_DISTANCE_KM = 50.0


def parse_postcode(value: str, field_name: str = "postcode") -> int:
    """Return the numeric value of a postcode, rejecting blanks and non-digits."""
    cleaned = (value or "").strip()
    if not cleaned:
        raise InvalidInput(f"{field_name} is required")
    if not cleaned.isdigit():
        raise InvalidInput(f"{field_name} must be numeric, got {value!r}")
    return int(cleaned)


class DistanceEstimator(ABC):
    @abstractmethod
    def estimate_km(self, pickup_postcode: str, delivery_postcode: str) -> float: ...


class PostcodeDistanceEstimator(DistanceEstimator):
    def __init__(
        self,
        km_per_step: float = KM_PER_POSTCODE_STEP,
        min_distance_km: float = MIN_DISTANCE_KM,
    ):
        self.km_per_step = km_per_step
        self.min_distance_km = min_distance_km

    def estimate_km(self, pickup_postcode: str, delivery_postcode: str) -> float:
        p1 = parse_postcode(pickup_postcode, "pickup_postcode")
        p2 = parse_postcode(delivery_postcode, "delivery_postcode")
        return max(abs(p1 - p2) * self.km_per_step, self.min_distance_km)
