"""
Quote Pricing Engine  (Strategy Pattern)
========================================

Formula
-------
Base    = round(max(Distance x Base_Rate[vehicle] x Adjustments, Min_Base_Price))
Total   = Base + Add_Ons + GST,     GST = round(0.10 x (Base + Add_Ons))
Deposit = round(0.15 x Total),      Balance = Total - Deposit

* **Adjustments**: x1.3 when the vehicle is not running, x1.5 for enclosed
  transport.  Each one is a ``PriceAdjustment`` strategy.
* **Add-ons** are flat amounts; unknown add-on keys are ignored.
* Rounding is half-up to whole AUD.

The engine is pure: no I/O, no clock, no hidden state.  The same request
always yields the same breakdown, which is what makes stored quotes
auditable.

Complexity: O(1) per price calculation.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .distance import DistanceEstimator, PostcodeDistanceEstimator
from .enums import TransportType, VehicleType
from .errors import InvalidInput

# AUD per km
BASE_RATES: dict[VehicleType, float] = {
    VehicleType.SEDAN: 1.2,
    VehicleType.SUV: 1.5,
    VehicleType.UTE: 1.8,
    VehicleType.VAN: 2.0,
    VehicleType.LIGHT_TRUCK: 2.5,
    VehicleType.BIKE: 0.8,
}

ADD_ON_PRICES: dict[str, int] = {
    "insurance": 150,
    "expressDelivery": 40,
    "packaging": 15,
}

NON_RUNNING_MULTIPLIER = 1.3
ENCLOSED_MULTIPLIER = 1.5
MIN_BASE_PRICE = 300
GST_RATE = 0.10
DEPOSIT_RATE = 0.15


def round_half_up(value: float) -> int:
    """Round to the nearest whole unit, halves away from zero (positive amounts)."""
    return int(math.floor(value + 0.5))


def split_deposit(total: int, deposit_rate: float = DEPOSIT_RATE) -> tuple[int, int]:
    """Return ``(deposit, balance)``; the two always sum to *total*."""
    deposit = round_half_up(total * deposit_rate)
    return deposit, total - deposit


# ── ETA bands ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class EtaBand:
    min_days: int
    max_days: int
    label: str


# (upper distance bound in km, band); the last band has no upper bound
PICKUP_WINDOW_BANDS: tuple[tuple[Optional[float], EtaBand], ...] = (
    (100, EtaBand(1, 2, "1-2 business days")),
    (500, EtaBand(2, 3, "2-3 business days")),
    (1000, EtaBand(3, 5, "3-5 business days")),
    (None, EtaBand(5, 7, "5-7 business days")),
)

DELIVERY_TIMEFRAME_BANDS: tuple[tuple[Optional[float], EtaBand], ...] = (
    (100, EtaBand(0, 0, "Same day")),
    (500, EtaBand(1, 2, "1-2 days after pickup")),
    (1000, EtaBand(2, 3, "2-3 days after pickup")),
    (None, EtaBand(3, 5, "3-5 days after pickup")),
)


def _lookup_band(
    distance_km: float, bands: tuple[tuple[Optional[float], EtaBand], ...]
) -> EtaBand:
    for upper, band in bands:
        if upper is None or distance_km < upper:
            return band
    raise AssertionError("band table must end with an open-ended band")


def pickup_window_for(distance_km: float) -> EtaBand:
    return _lookup_band(distance_km, PICKUP_WINDOW_BANDS)


def delivery_timeframe_for(distance_km: float) -> EtaBand:
    return _lookup_band(distance_km, DELIVERY_TIMEFRAME_BANDS)


# ── Request / result ──────────────────────────────────────────────────


@dataclass(frozen=True)
class PricingRequest:
    pickup_postcode: str
    delivery_postcode: str
    vehicle_type: VehicleType | str
    is_running: bool = True
    transport_type: TransportType | str = TransportType.OPEN
    add_ons: Mapping[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class PriceBreakdown:
    distance_km: float
    base_price: int
    add_ons: dict[str, int]
    gst: int
    total_price: int
    deposit_amount: int
    balance_amount: int
    pickup_window: EtaBand
    delivery_timeframe: EtaBand

    @property
    def add_ons_total(self) -> int:
        return sum(self.add_ons.values())

    @property
    def subtotal(self) -> int:
        return self.base_price + self.add_ons_total

    @property
    def estimated_pickup_window(self) -> str:
        return self.pickup_window.label

    @property
    def estimated_delivery_timeframe(self) -> str:
        return self.delivery_timeframe.label

    def snapshot(self) -> dict[str, Any]:
        """JSON-safe copy stored on the quote for later audit."""
        return {
            "distance_km": self.distance_km,
            "base_price": self.base_price,
            "add_ons": dict(self.add_ons),
            "subtotal": self.subtotal,
            "gst": self.gst,
            "total_price": self.total_price,
            "deposit_amount": self.deposit_amount,
            "balance_amount": self.balance_amount,
            "estimated_pickup_window": self.estimated_pickup_window,
            "estimated_delivery_timeframe": self.estimated_delivery_timeframe,
        }


# ── Strategy hierarchy ────────────────────────────────────────────────


class PriceAdjustment(ABC):
    @abstractmethod
    def apply(
        self,
        price: float,
        *,
        is_running: bool,
        transport_type: TransportType,
    ) -> float: ...


class NonRunningSurcharge(PriceAdjustment):
    """Repair / special-handling surcharge for vehicles that cannot drive."""

    def __init__(self, multiplier: float = NON_RUNNING_MULTIPLIER):
        self.multiplier = multiplier

    def apply(self, price, *, is_running, transport_type):
        return price if is_running else price * self.multiplier


class EnclosedTransportSurcharge(PriceAdjustment):
    def __init__(self, multiplier: float = ENCLOSED_MULTIPLIER):
        self.multiplier = multiplier

    def apply(self, price, *, is_running, transport_type):
        if transport_type is TransportType.ENCLOSED:
            return price * self.multiplier
        return price


DEFAULT_ADJUSTMENTS: tuple[PriceAdjustment, ...] = (
    NonRunningSurcharge(),
    EnclosedTransportSurcharge(),
)


# ── Engine facade ─────────────────────────────────────────────────────


class PricingEngine:
    """High-level API used by the quote service and the estimate endpoint."""

    def __init__(
        self,
        distance_estimator: Optional[DistanceEstimator] = None,
        adjustments: tuple[PriceAdjustment, ...] = DEFAULT_ADJUSTMENTS,
        min_base_price: int = MIN_BASE_PRICE,
        gst_rate: float = GST_RATE,
        deposit_rate: float = DEPOSIT_RATE,
    ):
        self.distance_estimator = distance_estimator or PostcodeDistanceEstimator()
        self.adjustments = adjustments
        self.min_base_price = min_base_price
        self.gst_rate = gst_rate
        self.deposit_rate = deposit_rate

    @staticmethod
    def _vehicle_type(value: VehicleType | str) -> VehicleType:
        try:
            return VehicleType(value)
        except ValueError:
            raise InvalidInput(f"Unknown vehicle type: {value!r}") from None

    @staticmethod
    def _transport_type(value: TransportType | str) -> TransportType:
        try:
            return TransportType(value)
        except ValueError:
            raise InvalidInput(f"Unknown transport type: {value!r}") from None

    def base_price(
        self,
        distance_km: float,
        vehicle_type: VehicleType,
        is_running: bool,
        transport_type: TransportType,
    ) -> int:
        price = distance_km * BASE_RATES[vehicle_type]
        for adjustment in self.adjustments:
            price = adjustment.apply(
                price, is_running=is_running, transport_type=transport_type
            )
        return round_half_up(max(price, self.min_base_price))

    @staticmethod
    def price_add_ons(add_ons: Mapping[str, bool]) -> dict[str, int]:
        return {
            name: ADD_ON_PRICES[name]
            for name, enabled in add_ons.items()
            if enabled and name in ADD_ON_PRICES
        }

    def calculate(self, request: PricingRequest) -> PriceBreakdown:
        vehicle_type = self._vehicle_type(request.vehicle_type)
        transport_type = self._transport_type(request.transport_type)
        distance = self.distance_estimator.estimate_km(
            request.pickup_postcode, request.delivery_postcode
        )

        base = self.base_price(distance, vehicle_type, request.is_running, transport_type)
        add_ons = self.price_add_ons(request.add_ons or {})

        subtotal = base + sum(add_ons.values())
        gst = round_half_up(subtotal * self.gst_rate)
        total = subtotal + gst
        deposit, balance = split_deposit(total, self.deposit_rate)

        return PriceBreakdown(
            distance_km=distance,
            base_price=base,
            add_ons=add_ons,
            gst=gst,
            total_price=total,
            deposit_amount=deposit,
            balance_amount=balance,
            pickup_window=pickup_window_for(distance),
            delivery_timeframe=delivery_timeframe_for(distance),
        )
