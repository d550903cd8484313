"""
Tests for activity point calculation.
"""

import pytest
from hypothesis import given, strategies as st

from swat_bot.utils.exceptions import InvalidInputError
from swat_bot.utils.point_calculator import ActivityType, DEFAULT_ACTIVITIES, PointCalculator


class TestBasePoints:

    def test_known_activity(self, calculator):
        assert calculator.base_points("patrol_30min") == 1
        assert calculator.base_points("gang_deployment") == 4

    def test_unknown_activity_is_zero(self, calculator):
        assert calculator.base_points("karaoke_night") == 0

    def test_tryouts_are_bonus_eligible(self, calculator):
        assert calculator.is_bonus_eligible("tet_private")
        assert calculator.is_bonus_eligible("tet_public")
        assert not calculator.is_bonus_eligible("attend_event")
        assert not calculator.is_bonus_eligible("karaoke_night")

    def test_activity_names_and_listing(self, calculator):
        assert calculator.activity_name("backup_request") == "Backup Request"
        assert calculator.activity_name("karaoke_night") == "karaoke_night"
        assert calculator.activity_types() == [a.key for a in DEFAULT_ACTIVITIES]


class TestTotalPoints:

    def test_single_event(self, calculator):
        assert calculator.total_points("attend_swat_event") == 3

    def test_quantity_multiplies(self, calculator):
        assert calculator.total_points("backup_request", quantity=4) == 12

    def test_booster_doubles_per_event_points(self, calculator):
        assert calculator.total_points("host_swat_event", quantity=2, booster_active=True) == 16

    def test_bonus_added_before_booster_and_quantity(self, calculator):
        # (2 base + 5 attendees) * 2 booster * 3 events
        assert calculator.total_points("tet_public", quantity=3, booster_active=True, bonus_units=5) == 42

    def test_breakdown_exposes_intermediate_values(self, calculator):
        breakdown = calculator.breakdown("tet_private", quantity=2, booster_active=False, bonus_units=3)
        assert breakdown.base_points == 1
        assert breakdown.bonus_points == 3
        assert breakdown.per_event_points == 4
        assert not breakdown.booster_applied
        assert breakdown.total == 8

    def test_custom_activity_table(self):
        calculator = PointCalculator([ActivityType("drill", "Drill", 7)])
        assert calculator.total_points("drill", quantity=2) == 14
        assert calculator.base_points("patrol_30min") == 0


class TestValidation:

    @pytest.mark.parametrize("quantity", [0, -1, 21])
    def test_quantity_out_of_range(self, calculator, quantity):
        with pytest.raises(InvalidInputError):
            calculator.total_points("patrol_30min", quantity=quantity)

    @pytest.mark.parametrize("bonus_units", [-1, 51])
    def test_bonus_out_of_range(self, calculator, bonus_units):
        with pytest.raises(InvalidInputError):
            calculator.total_points("tet_public", bonus_units=bonus_units)

    def test_bonus_on_non_eligible_type_rejected(self, calculator):
        with pytest.raises(InvalidInputError) as exc_info:
            calculator.total_points("attend_event", bonus_units=2)
        assert "attendee" in exc_info.value.reason

    def test_unknown_type_rejected(self, calculator):
        with pytest.raises(InvalidInputError):
            calculator.total_points("karaoke_night")

    def test_limits_are_inclusive(self, calculator):
        assert calculator.total_points("patrol_30min", quantity=20) == 20
        assert calculator.total_points("tet_private", bonus_units=50) == 51


class TestFormulaProperties:

    @given(
        activity=st.sampled_from([a.key for a in DEFAULT_ACTIVITIES]),
        quantity=st.integers(min_value=1, max_value=20),
        booster=st.booleans(),
    )
    def test_total_is_per_event_times_quantity(self, activity, quantity, booster):
        calculator = PointCalculator()
        single = calculator.total_points(activity, 1, booster)
        assert calculator.total_points(activity, quantity, booster) == single * quantity

    @given(
        activity=st.sampled_from([a.key for a in DEFAULT_ACTIVITIES]),
        quantity=st.integers(min_value=1, max_value=20),
    )
    def test_booster_is_exactly_double(self, activity, quantity):
        calculator = PointCalculator()
        assert (calculator.total_points(activity, quantity, True)
                == 2 * calculator.total_points(activity, quantity, False))
