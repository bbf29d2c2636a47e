"""Unit tests for the quote pricing engine."""

import pytest

from src.domain.distance import PostcodeDistanceEstimator, parse_postcode
from src.domain.enums import TransportType, VehicleType
from src.domain.errors import InvalidInput
from src.domain.pricing import (
    EnclosedTransportSurcharge,
    NonRunningSurcharge,
    PricingEngine,
    PricingRequest,
    delivery_timeframe_for,
    pickup_window_for,
    round_half_up,
    split_deposit,
)


def _request(**overrides) -> PricingRequest:
    fields = dict(
        pickup_postcode="2000",
        delivery_postcode="3000",
        vehicle_type=VehicleType.SEDAN,
        is_running=True,
        transport_type=TransportType.OPEN,
        add_ons={},
    )
    fields.update(overrides)
    return PricingRequest(**fields)


class TestDistanceEstimator:
    def test_ten_km_per_postcode_step(self):
        assert PostcodeDistanceEstimator().estimate_km("2000", "3000") == 10000.0

    def test_distance_is_symmetric(self):
        est = PostcodeDistanceEstimator()
        assert est.estimate_km("3000", "2000") == est.estimate_km("2000", "3000")

    def test_minimum_distance(self):
        assert PostcodeDistanceEstimator().estimate_km("2000", "2001") == 50.0

    def test_blank_postcode_rejected(self):
        with pytest.raises(InvalidInput):
            parse_postcode("  ", "pickup_postcode")

    def test_non_numeric_postcode_rejected(self):
        with pytest.raises(InvalidInput):
            parse_postcode("NSW1", "pickup_postcode")


class TestAdjustments:
    def test_non_running_surcharge(self):
        adj = NonRunningSurcharge()
        assert adj.apply(100.0, is_running=False, transport_type=TransportType.OPEN) == pytest.approx(130.0)
        assert adj.apply(100.0, is_running=True, transport_type=TransportType.OPEN) == 100.0

    def test_enclosed_surcharge(self):
        adj = EnclosedTransportSurcharge()
        assert adj.apply(100.0, is_running=True, transport_type=TransportType.ENCLOSED) == 150.0
        assert adj.apply(100.0, is_running=True, transport_type=TransportType.OPEN) == 100.0


class TestPricingEngine:
    def setup_method(self):
        self.engine = PricingEngine()

    def test_interstate_sedan(self):
        result = self.engine.calculate(_request())
        assert result.distance_km == 10000.0
        assert result.base_price == 12000
        assert result.gst == 1200
        assert result.total_price == 13200
        assert result.deposit_amount == 1980
        assert result.balance_amount == 11220
        assert result.estimated_pickup_window == "5-7 business days"
        assert result.estimated_delivery_timeframe == "3-5 days after pickup"

    def test_non_running_bike(self):
        result = self.engine.calculate(
            _request(vehicle_type=VehicleType.BIKE, is_running=False)
        )
        assert result.base_price == 10400
        assert result.gst == 1040
        assert result.total_price == 11440

    def test_short_hop_hits_price_floor(self):
        result = self.engine.calculate(_request(delivery_postcode="2010"))
        assert result.distance_km == 100.0
        assert result.base_price == 300
        assert result.gst == 30
        assert result.total_price == 330

    def test_enclosed_and_non_running_stack(self):
        result = self.engine.calculate(
            _request(
                vehicle_type=VehicleType.SUV,
                is_running=False,
                transport_type=TransportType.ENCLOSED,
            )
        )
        assert result.base_price == round_half_up(10000 * 1.5 * 1.3 * 1.5)

    def test_add_ons_priced_and_unknown_ignored(self):
        result = self.engine.calculate(
            _request(
                add_ons={
                    "insurance": True,
                    "expressDelivery": True,
                    "packaging": False,
                    "valet": True,
                }
            )
        )
        assert result.add_ons == {"insurance": 150, "expressDelivery": 40}
        assert result.subtotal == 12000 + 190
        assert result.gst == round_half_up(0.10 * 12190)

    def test_string_enum_values_accepted(self):
        result = self.engine.calculate(
            _request(vehicle_type="light-truck", transport_type="open")
        )
        assert result.base_price == 25000

    def test_unknown_vehicle_type_rejected(self):
        with pytest.raises(InvalidInput):
            self.engine.calculate(_request(vehicle_type="hovercraft"))

    def test_unknown_transport_type_rejected(self):
        with pytest.raises(InvalidInput):
            self.engine.calculate(_request(transport_type="airfreight"))

    def test_invalid_postcode_rejected(self):
        with pytest.raises(InvalidInput):
            self.engine.calculate(_request(pickup_postcode=""))

    def test_pricing_is_deterministic(self):
        req = _request(add_ons={"insurance": True})
        assert self.engine.calculate(req) == self.engine.calculate(req)

    @pytest.mark.parametrize("vehicle_type", list(VehicleType))
    @pytest.mark.parametrize("delivery", ["2000", "2001", "2010", "2600", "4000", "6000"])
    @pytest.mark.parametrize("is_running", [True, False])
    def test_totals_are_consistent(self, vehicle_type, delivery, is_running):
        result = self.engine.calculate(
            _request(
                delivery_postcode=delivery,
                vehicle_type=vehicle_type,
                is_running=is_running,
                add_ons={"insurance": True, "packaging": True},
            )
        )
        assert isinstance(result.base_price, int)
        assert result.base_price >= 300
        assert result.gst == round_half_up(0.10 * (result.base_price + result.add_ons_total))
        assert result.total_price == result.base_price + result.add_ons_total + result.gst
        assert result.deposit_amount + result.balance_amount == result.total_price

    def test_snapshot_is_json_safe(self):
        snap = self.engine.calculate(_request(add_ons={"insurance": True})).snapshot()
        assert snap["subtotal"] == 12150
        assert snap["add_ons"] == {"insurance": 150}
        assert snap["estimated_pickup_window"] == "5-7 business days"


class TestEtaBands:
    @pytest.mark.parametrize(
        "distance, label",
        [
            (50, "1-2 business days"),
            (100, "2-3 business days"),
            (499, "2-3 business days"),
            (500, "3-5 business days"),
            (1000, "5-7 business days"),
        ],
    )
    def test_pickup_window(self, distance, label):
        assert pickup_window_for(distance).label == label

    def test_delivery_same_day_for_short_hops(self):
        band = delivery_timeframe_for(60)
        assert (band.min_days, band.max_days, band.label) == (0, 0, "Same day")

    def test_delivery_long_haul(self):
        band = delivery_timeframe_for(2500)
        assert (band.min_days, band.max_days) == (3, 5)


class TestRounding:
    def test_half_rounds_up(self):
        assert round_half_up(49.5) == 50
        assert round_half_up(12.5) == 13

    def test_deposit_split(self):
        assert split_deposit(330) == (50, 280)
        assert split_deposit(13200) == (1980, 11220)
