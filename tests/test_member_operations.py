"""
Tests for record-level member operations: submissions, HR adjustments,
unit transfers, booster sync and deletion tombstones.
"""

from datetime import datetime, timedelta

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st

from swat_bot.database.models import LogCategory, Member
from swat_bot.operations.event_log import member_snapshot, read_details
from swat_bot.operations.member_operations import (
    AdjustmentAction, AdjustmentRequest, MemberOperations, SubmissionRequest
)
from swat_bot.utils.exceptions import InvalidInputError
from swat_bot.utils.ranks import Unit

HR_ID = 900000000000000001


def _submission(member, activity="attend_swat_event", quantity=1, **kwargs):
    return SubmissionRequest(discord_id=member.discord_id, activity_type=activity, quantity=quantity, **kwargs)


def _adjustment(member, action, amount=0, reason="Weekly audit correction"):
    return AdjustmentRequest(target_id=member.discord_id, action=action, amount=amount,
                             reason=reason, actor_id=HR_ID)


class TestNewMember:

    def test_starts_at_level_one_of_unit(self, member_ops):
        member = member_ops.new_member(1, "Medic", unit=Unit.CMU)

        assert member.unit is Unit.CMU
        assert member.rank_level == 1
        assert member.rank_name == "Responder In Training"
        assert member.weekly_quota == 10
        assert member.rank_points == member.weekly_points == member.all_time_points == 0
        assert list(member.promotion_history) == []

    def test_display_name_refresh(self, member_ops, make_member):
        member = make_member(display_name="old")
        assert member_ops.refresh_display_name(member, "new")
        assert not member_ops.refresh_display_name(member, "new")
        assert not member_ops.refresh_display_name(member, None)
        assert member.display_name == "new"


class TestSubmission:

    def test_first_submission(self, member_ops, make_member, now):
        member = make_member()

        outcome = member_ops.apply_submission(member, _submission(member, proof_reference="cdn/1.png"), now)

        assert outcome.points_awarded == 3
        assert member.rank_points == 3
        assert member.weekly_points == 3
        assert member.all_time_points == 3
        assert member.weekly_events == 1 and member.total_events == 1
        assert member.quota_completed is False
        assert not outcome.quota_completed_now
        assert outcome.next_rank.level == 2

        entry = outcome.log_entry
        assert entry.category is LogCategory.SUBMISSION
        assert entry.point_delta == 3
        assert entry.proof_reference == "cdn/1.png"
        assert entry.actor_id == member.discord_id
        assert read_details(entry)["after"]["weekly_points"] == 3

    def test_quota_completion_is_stamped(self, member_ops, make_member, now):
        member = make_member(weekly_points=8, all_time_points=8)

        outcome = member_ops.apply_submission(member, _submission(member), now)

        assert outcome.quota_completed_now
        assert member.quota_completed is True
        assert member.last_quota_completion == now

        again = member_ops.apply_submission(member, _submission(member), now)
        assert not again.quota_completed_now

    def test_reaching_threshold_sets_eligibility(self, member_ops, make_member, now):
        member = make_member(rank_points=62)

        outcome = member_ops.apply_submission(member, _submission(member), now)

        assert outcome.newly_eligible
        assert outcome.points_newly_met
        assert member.promotion_eligible is True

    def test_stored_booster_flag_used_by_default(self, member_ops, make_member, now):
        member = make_member(is_booster=True)

        outcome = member_ops.apply_submission(member, _submission(member, "gang_deployment"), now)
        assert outcome.points_awarded == 8
        assert "[2X BOOSTER]" in outcome.log_entry.description

        outcome = member_ops.apply_submission(member, _submission(member, "gang_deployment", booster_active=False), now)
        assert outcome.points_awarded == 4

    def test_tryout_bonus(self, member_ops, make_member, now):
        member = make_member()
        outcome = member_ops.apply_submission(member, _submission(member, "tet_public", bonus_units=4), now)
        assert outcome.points_awarded == 6
        assert outcome.breakdown.bonus_points == 4

    def test_hand_picked_tier_keeps_rank_points_pinned(self, member_ops, make_member, now):
        member = make_member(level=9)

        member_ops.apply_submission(member, _submission(member, "gang_deployment", quantity=5), now)

        assert member.rank_points == 0
        assert member.weekly_points == 20
        assert member.quota_completed is True

    @pytest.mark.parametrize("request_kwargs", [
        {"activity": "karaoke_night"},
        {"quantity": 0},
        {"quantity": 21},
        {"activity": "attend_event", "bonus_units": 3},
    ])
    def test_invalid_submission_changes_nothing(self, member_ops, make_member, now, request_kwargs):
        member = make_member(weekly_points=5, all_time_points=5, rank_points=5)
        before = member_snapshot(member)

        with pytest.raises(InvalidInputError):
            member_ops.apply_submission(member, _submission(member, **request_kwargs), now)

        assert member_snapshot(member) == before

    def test_daily_points_reset_on_new_day(self, member_ops, make_member, now):
        member = make_member(daily_points_today=10, last_daily_reset=now - timedelta(days=1))

        member_ops.apply_submission(member, _submission(member), now)
        assert member.daily_points_today == 3
        assert member.last_daily_reset == now

        member_ops.apply_submission(member, _submission(member), now + timedelta(hours=2))
        assert member.daily_points_today == 6

    def test_daily_boundary_follows_local_timezone(self, ladders, calculator, quota_engine,
                                                   promotion_engine, make_member):
        new_york = MemberOperations(ladders, calculator, quota_engine, promotion_engine,
                                    timezone="America/New_York")
        utc = MemberOperations(ladders, calculator, quota_engine, promotion_engine, timezone="UTC")
        # 03:00 UTC on June 2 is still 23:00 on June 1 in New York
        submitted_at = datetime(2025, 6, 2, 3, 0)
        earlier = datetime(2025, 6, 1, 5, 0)

        local_member = make_member(daily_points_today=5, last_daily_reset=earlier)
        new_york.apply_submission(local_member, _submission(local_member), submitted_at)
        assert local_member.daily_points_today == 8

        utc_member = make_member(daily_points_today=5, last_daily_reset=earlier)
        utc.apply_submission(utc_member, _submission(utc_member), submitted_at)
        assert utc_member.daily_points_today == 3


class TestAdjustPoints:

    def test_add_moves_all_three_counters(self, member_ops, make_member, now):
        member = make_member(weekly_points=5, all_time_points=50, rank_points=5)

        outcome = member_ops.adjust_points(member, _adjustment(member, AdjustmentAction.ADD, 10), now)

        assert (member.weekly_points, member.all_time_points, member.rank_points) == (15, 60, 15)
        assert outcome.point_delta == 10
        assert outcome.rank_point_delta == 10
        assert outcome.before["weekly_points"] == 5
        assert outcome.after["weekly_points"] == 15
        assert member.quota_completed is True
        assert outcome.log_entry.category is LogCategory.ADMIN_ADJUSTMENT

    def test_remove_floors_at_zero(self, member_ops, make_member, now):
        member = make_member(weekly_points=5, all_time_points=50, rank_points=3)

        outcome = member_ops.adjust_points(member, _adjustment(member, AdjustmentAction.REMOVE, 10), now)

        assert (member.weekly_points, member.all_time_points, member.rank_points) == (0, 40, 0)
        assert outcome.point_delta == -5

    def test_set_moves_rank_points_by_weekly_difference(self, member_ops, make_member, now):
        # Observed business rule: rank and all-time points move by (amount - old weekly points)
        member = make_member(weekly_points=20, all_time_points=100, rank_points=30)

        member_ops.adjust_points(member, _adjustment(member, AdjustmentAction.SET, 5), now)

        assert member.weekly_points == 5
        assert member.all_time_points == 85
        assert member.rank_points == 15

    def test_set_in_hand_picked_tier(self, member_ops, make_member, now):
        member = make_member(level=9, weekly_points=0, all_time_points=10)

        member_ops.adjust_points(member, _adjustment(member, AdjustmentAction.SET, 40), now)

        assert member.weekly_points == 40
        assert member.all_time_points == 50
        assert member.rank_points == 0

    def test_remove_all(self, member_ops, make_member, now):
        member = make_member(weekly_points=50, all_time_points=200, rank_points=40, quota_completed=True)

        outcome = member_ops.adjust_points(
            member, _adjustment(member, AdjustmentAction.REMOVE_ALL, reason="confirm cleanup"), now
        )

        assert (member.weekly_points, member.all_time_points, member.rank_points) == (0, 0, 0)
        assert member.quota_completed is False
        assert member.promotion_eligible is False
        assert outcome.log_entry.action == "remove_all"
        assert outcome.log_entry.point_delta == -50

    @pytest.mark.parametrize("reason", ["", "   ", "ok"])
    def test_remove_all_needs_reason(self, member_ops, make_member, now, reason):
        member = make_member(weekly_points=50, all_time_points=200)

        with pytest.raises(InvalidInputError):
            member_ops.adjust_points(member, _adjustment(member, AdjustmentAction.REMOVE_ALL, reason=reason), now)

        assert member.weekly_points == 50

    @pytest.mark.parametrize("action, amount", [
        (AdjustmentAction.ADD, -5),
        (AdjustmentAction.ADD, 0),
        (AdjustmentAction.REMOVE, 0),
        (AdjustmentAction.SET, -1),
    ])
    def test_bad_amounts_rejected(self, member_ops, make_member, now, action, amount):
        with pytest.raises(InvalidInputError):
            member_ops.adjust_points(make_member(), _adjustment(make_member(), action, amount), now)

    def test_eligibility_flag_follows_adjustment(self, member_ops, make_member, now):
        member = make_member(rank_points=60)

        added = member_ops.adjust_points(member, _adjustment(member, AdjustmentAction.ADD, 5), now)
        assert added.eligibility_changed
        assert member.promotion_eligible is True

        removed = member_ops.adjust_points(member, _adjustment(member, AdjustmentAction.REMOVE, 5), now)
        assert removed.eligibility_changed
        assert member.promotion_eligible is False

    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture], max_examples=75)
    @given(
        level=st.integers(min_value=1, max_value=8),
        weekly=st.integers(min_value=0, max_value=1000),
        all_time=st.integers(min_value=0, max_value=10000),
        rank_points=st.integers(min_value=0, max_value=500),
        amount=st.integers(min_value=1, max_value=1000),
    )
    def test_add_then_remove_restores_counters(self, member_ops, now, level, weekly, all_time, rank_points, amount):
        member = Member(discord_id=3, rank_level=level, weekly_points=weekly,
                        all_time_points=all_time, rank_points=rank_points)

        member_ops.adjust_points(member, _adjustment(member, AdjustmentAction.ADD, amount), now)
        member_ops.adjust_points(member, _adjustment(member, AdjustmentAction.REMOVE, amount), now)

        assert (member.weekly_points, member.all_time_points, member.rank_points) == (weekly, all_time, rank_points)


class TestUnitBoosterAndDeletion:

    def test_transfer_unit_keeps_level(self, member_ops, make_member, now):
        member = make_member(level=4, rank_points=30)

        outcome = member_ops.transfer_unit(member, Unit.CMU, HR_ID, "Moved to medical", now)

        assert member.unit is Unit.CMU
        assert member.rank_level == 4
        assert member.rank_name == "Senior Responder"
        assert member.rank_points == 0
        assert member.weekly_quota == 25
        assert outcome.rank_points_cleared == 30
        assert outcome.old_rank.name == "Senior Operator"

    def test_transfer_to_same_unit_rejected(self, member_ops, make_member, now):
        with pytest.raises(InvalidInputError):
            member_ops.transfer_unit(make_member(unit=Unit.SWAT), Unit.SWAT, HR_ID, "No-op", now)

    def test_booster_sync_logs_only_changes(self, member_ops, make_member, now):
        member = make_member()

        entry = member_ops.sync_booster(member, True, now)
        assert entry.category is LogCategory.SYNC
        assert member.is_booster is True
        assert member_ops.sync_booster(member, True, now) is None

    def test_tombstone(self, member_ops, make_member, now):
        member = make_member(weekly_points=12)

        entry = member_ops.tombstone(member, HR_ID, "Left the server", purged_logs=4, now=now)

        assert entry.category is LogCategory.DELETION
        assert entry.subject_id == member.discord_id
        assert read_details(entry)["purged_logs"] == 4

    def test_tombstone_requires_reason(self, member_ops, make_member, now):
        with pytest.raises(InvalidInputError):
            member_ops.tombstone(make_member(), HR_ID, "", now=now)
