"""
Reservation Normalizer Tests

Tests that CRM deals in any of their shapes become canonical reservations,
that bad deals are skipped without failing the batch, and that output order
is current -> upcoming -> past.

Run with: pytest tests/test_reservation_normalizer.py -v
"""
import pytest
import sys
from datetime import date, datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from loyalty import InvalidDealBatch, ReservationStatus, normalize, normalize_with_report
from loyalty.reservation_normalizer import (
    DUPLICATE_ID,
    MISSING_ID,
    NOT_A_MAPPING,
    infer_status,
    parse_date,
    parse_date_range,
    parse_deal_name,
)
from tests.scenarios import DEAL_SCENARIOS, REFERENCE_NOW, get_all_deal_names


def deal(deal_id, **properties):
    """HubSpot-shaped deal record"""
    return {"id": deal_id, "properties": properties}


# =============================================================================
# SCENARIOS
# =============================================================================

class TestDealScenarios:
    """Tests each scenario in tests/scenarios.py"""

    @pytest.mark.parametrize("name", get_all_deal_names())
    def test_scenario(self, name):
        scenario = DEAL_SCENARIOS[name]
        reservations = normalize([scenario.deal], REFERENCE_NOW)

        assert len(reservations) == 1
        reservation = reservations[0]
        expected = scenario.expected

        assert reservation.property_name == expected.property_name
        assert reservation.location == expected.location
        assert reservation.check_in == expected.check_in
        assert reservation.check_out == expected.check_out
        assert reservation.status.value == expected.status

    def test_all_scenarios_as_one_batch(self):
        raw = [s.deal for s in DEAL_SCENARIOS.values()]
        result = normalize_with_report(raw, REFERENCE_NOW)

        assert len(result.reservations) == len(raw)
        assert result.skipped_count == 0


# =============================================================================
# DEAL NAME PARSING
# =============================================================================

class TestParseDealName:
    """Tests for the composite deal-name convention"""

    @pytest.mark.parametrize("deal_name, expected", [
        ("Smith, Casa Bella, 7/1/24 - 7/8/24", ("Casa Bella", "")),
        ("Smith, Casa Bella, Aspen, 7/1/24 - 7/8/24", ("Casa Bella", "Aspen")),
        ("Smith, Casa Bella", ("Casa Bella", "")),
        ("Casa Bella", ("Casa Bella", "")),
        ("Smith, , Aspen", ("Smith", "Aspen")),
        ("", (None, "")),
        (None, (None, "")),
    ])
    def test_parts(self, deal_name, expected):
        assert parse_deal_name(deal_name) == expected

    def test_date_range(self):
        assert parse_date_range("Smith, Casa Bella, 7/1/24 - 7/8/24") == (
            date(2024, 7, 1), date(2024, 7, 8),
        )

    def test_date_range_without_spaces(self):
        assert parse_date_range("Casa Bella 12/30/2024-1/2/2025") == (
            date(2024, 12, 30), date(2025, 1, 2),
        )

    def test_no_date_range(self):
        assert parse_date_range("Smith, Casa Bella") == (None, None)


# =============================================================================
# DATE PARSING
# =============================================================================

class TestParseDate:
    """Tests for the date formats the CRM sends"""

    @pytest.mark.parametrize("value, expected", [
        ("7/1/24", date(2024, 7, 1)),
        ("07/01/2024", date(2024, 7, 1)),
        ("1/15/70", date(1970, 1, 15)),
        ("2024-07-01", date(2024, 7, 1)),
        ("2024-07-01T22:15:00Z", date(2024, 7, 1)),
        ("2024-07-01T10:00:00.000+00:00", date(2024, 7, 1)),
        ("1719792000000", date(2024, 7, 1)),
        (1719792000000, date(2024, 7, 1)),
        (datetime(2024, 7, 1, 9, 0), date(2024, 7, 1)),
        (date(2024, 7, 1), date(2024, 7, 1)),
    ])
    def test_valid(self, value, expected):
        assert parse_date(value) == expected

    @pytest.mark.parametrize("value", [None, "", "soon", "13/45/24", "2024-02-30", True])
    def test_invalid(self, value):
        assert parse_date(value) is None


# =============================================================================
# STATUS
# =============================================================================

class TestInferStatus:
    """Tests for status relative to today (both bounds inclusive)"""

    TODAY = date(2024, 7, 1)

    @pytest.mark.parametrize("check_in, check_out, expected", [
        (date(2024, 7, 1), date(2024, 7, 8), ReservationStatus.CURRENT),
        (date(2024, 6, 25), date(2024, 7, 1), ReservationStatus.CURRENT),
        (date(2024, 7, 2), date(2024, 7, 8), ReservationStatus.UPCOMING),
        (date(2024, 6, 1), date(2024, 6, 30), ReservationStatus.PAST),
        (None, None, ReservationStatus.UPCOMING),
        (date(2024, 8, 1), None, ReservationStatus.UPCOMING),
        (date(2024, 6, 1), None, ReservationStatus.UPCOMING),
        (None, date(2024, 6, 1), ReservationStatus.PAST),
        (None, date(2024, 8, 1), ReservationStatus.UPCOMING),
    ])
    def test_status(self, check_in, check_out, expected):
        assert infer_status(check_in, check_out, self.TODAY) is expected

    def test_time_of_day_is_ignored(self):
        """Late in the check-out day is still current"""
        reservations = normalize(
            [deal("1", check_in="2024-06-28", check_out="2024-07-01")],
            datetime(2024, 7, 1, 23, 59),
        )
        assert reservations[0].status is ReservationStatus.CURRENT

    def test_accepts_a_date(self):
        reservations = normalize([deal("1", dealname="A, B, 7/1/24 - 7/8/24")], date(2024, 7, 10))
        assert reservations[0].status is ReservationStatus.PAST


# =============================================================================
# FIELD HANDLING
# =============================================================================

class TestFieldHandling:
    """Tests for aliases, fallbacks and pass-through fields"""

    def test_field_dates_win_over_deal_name(self):
        reservation = normalize(
            [deal("1", dealname="Smith, Casa Bella, 6/1/24 - 6/5/24", check_in="2024-08-01")],
            REFERENCE_NOW,
        )[0]

        assert reservation.check_in == date(2024, 8, 1)
        assert reservation.check_out is None
        assert reservation.status is ReservationStatus.UPCOMING

    def test_property_name_without_deal_name(self):
        reservation = normalize([deal("9", property_name="Villa Azul")], REFERENCE_NOW)[0]

        assert reservation.property_name == "Villa Azul"
        assert reservation.location == ""
        assert reservation.check_in is None
        assert reservation.status is ReservationStatus.UPCOMING
        assert reservation.confirmation_number == "9"
        assert reservation.raw_fields == {}

    def test_blank_alias_falls_through(self):
        reservation = normalize(
            [deal("1", check_in="", checkin="2024-08-01", checkout="2024-08-03")],
            REFERENCE_NOW,
        )[0]
        assert reservation.check_in == date(2024, 8, 1)

    def test_unparseable_dates_fall_back_to_deal_name(self):
        reservation = normalize(
            [deal("1", dealname="Smith, Casa Bella, 7/10/24 - 7/12/24", check_in="TBD")],
            REFERENCE_NOW,
        )[0]
        assert reservation.check_in == date(2024, 7, 10)

    @pytest.mark.parametrize("amount, expected", [
        ("1,250.50", 1250.5),
        ("abc", 0.0),
        ("-5", 0.0),
        (None, 0.0),
    ])
    def test_amount_coerced(self, amount, expected):
        reservation = normalize([deal("1", amount=amount)], REFERENCE_NOW)[0]
        assert reservation.amount == expected

    def test_confirmation_falls_back_to_id(self):
        reservation = normalize([deal("555")], REFERENCE_NOW)[0]
        assert reservation.confirmation_number == "555"

    def test_confirmation_number_kept(self):
        reservation = normalize([deal("555", confirmation_number="CB-1001")], REFERENCE_NOW)[0]
        assert reservation.confirmation_number == "CB-1001"

    def test_unrecognized_fields_pass_through(self):
        reservation = normalize(
            [deal("1", dealname="Smith, Casa Bella", closedate="2024-05-01", pipeline="default")],
            REFERENCE_NOW,
        )[0]
        assert reservation.raw_fields == {"closedate": "2024-05-01", "pipeline": "default"}

    def test_deal_stage(self):
        reservation = normalize([deal("1", dealstage="closedwon")], REFERENCE_NOW)[0]
        assert reservation.deal_stage == "closedwon"

    def test_flat_record_with_hs_object_id(self):
        reservation = normalize(
            [{"hs_object_id": "77", "dealname": "Smith, Casa Bella"}], REFERENCE_NOW
        )[0]
        assert reservation.id == "77"
        assert reservation.property_name == "Casa Bella"

    def test_numeric_id_becomes_string(self):
        reservation = normalize([{"id": 42, "properties": {}}], REFERENCE_NOW)[0]
        assert reservation.id == "42"

    def test_to_dict(self):
        reservation = normalize(
            [deal("1", dealname="Smith, Casa Bella, 7/1/24 - 7/8/24", amount="900")], REFERENCE_NOW
        )[0]
        data = reservation.to_dict()

        assert data["status"] == "current"
        assert data["check_in"] == "2024-07-01"
        assert data["check_out"] == "2024-07-08"
        assert data["amount"] == 900.0


# =============================================================================
# ORDERING
# =============================================================================

class TestOrdering:
    """Tests for current -> upcoming -> past ordering"""

    def test_sorted_by_status(self):
        raw = [
            deal("past", check_in="2024-01-01", check_out="2024-01-05"),
            deal("upcoming", check_in="2024-09-01", check_out="2024-09-05"),
            deal("current", check_in="2024-06-30", check_out="2024-07-03"),
        ]
        reservations = normalize(raw, REFERENCE_NOW)
        assert [r.id for r in reservations] == ["current", "upcoming", "past"]

    def test_stable_within_status(self):
        """Input order is kept among reservations with the same status"""
        raw = [
            deal("u1", check_in="2024-12-01"),
            deal("p1", check_out="2024-01-05"),
            deal("u2", check_in="2024-08-01"),
            deal("p2", check_out="2023-01-05"),
            deal("u3"),
        ]
        reservations = normalize(raw, REFERENCE_NOW)
        assert [r.id for r in reservations] == ["u1", "u2", "u3", "p1", "p2"]

    def test_empty_batch(self):
        result = normalize_with_report([], REFERENCE_NOW)

        assert result.reservations == []
        assert result.skipped == []


# =============================================================================
# SKIPPED RECORDS
# =============================================================================

class TestSkippedRecords:
    """Tests that bad deals are reported and the rest still normalize"""

    def test_bad_records_skipped(self):
        raw = [
            "not a deal",
            deal("1", dealname="Smith, Casa Bella"),
            {"properties": {"dealname": "No Id"}},
            deal("1", dealname="Smith, Copy"),
            None,
            deal("2", dealname="Jones, Villa Azul"),
        ]
        result = normalize_with_report(raw, REFERENCE_NOW)

        assert [r.id for r in result.reservations] == ["1", "2"]
        assert result.reservations[0].property_name == "Casa Bella"
        assert [(s.index, s.reason) for s in result.skipped] == [
            (0, NOT_A_MAPPING),
            (2, MISSING_ID),
            (3, DUPLICATE_ID),
            (4, NOT_A_MAPPING),
        ]
        assert result.skipped[2].deal_id == "1"

    def test_blank_id_is_missing(self):
        result = normalize_with_report([{"id": "  ", "properties": {}}], REFERENCE_NOW)
        assert result.skipped[0].reason == MISSING_ID

    def test_hs_object_id_inside_properties(self):
        result = normalize_with_report([{"properties": {"hs_object_id": "9"}}], REFERENCE_NOW)

        assert result.skipped == []
        assert result.reservations[0].id == "9"

    def test_skipped_record_to_dict(self):
        result = normalize_with_report([42], REFERENCE_NOW)
        assert result.skipped[0].to_dict() == {"index": 0, "reason": NOT_A_MAPPING, "deal_id": None}

    @pytest.mark.parametrize("batch", [None, {"results": []}, "deals", 3])
    def test_non_list_batch_raises(self, batch):
        with pytest.raises(InvalidDealBatch):
            normalize(batch, REFERENCE_NOW)
