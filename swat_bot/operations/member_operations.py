"""
Member Operations Module

Record-level mutations of a member's point, rank and quota state.

Every operation follows the same sequence on ONE member:
    mutate counters -> recompute quota -> refresh eligibility -> build log entry

Nothing here touches the database. Each operation returns an outcome that
carries the unsaved EventLog entry; the calling service saves the member and
the entry together, so a failed save leaves the caller free to retry with the
original input.

Key functionality:
- apply_submission(): award points for a validated activity submission
- adjust_points(): HR add / remove / set / remove_all
- transfer_unit(): move a member to the other unit's ladder at the same level
- sync_booster(): track the platform booster perk
- tombstone(): final DELETION entry for an administratively deleted member
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from swat_bot.config import Config
from swat_bot.database.models import EventLog, LogCategory, Member
from swat_bot.operations.event_log import SYSTEM_ACTOR_ID, build_log_entry, member_snapshot
from swat_bot.operations.promotion_engine import EligibilityChange, EligibilityResult, PromotionEngine
from swat_bot.operations.quota_engine import QuotaEngine
from swat_bot.utils.exceptions import InvalidInputError
from swat_bot.utils.logger import setup_logger
from swat_bot.utils.point_calculator import PointBreakdown, PointCalculator
from swat_bot.utils.ranks import Rank, RankLadders, Unit
from swat_bot.utils.time_utils import local_day_start, utcnow

logger = setup_logger(__name__)


class AdjustmentAction(Enum):
    ADD = "add"
    REMOVE = "remove"
    SET = "set"
    REMOVE_ALL = "remove_all"


@dataclass(frozen=True)
class SubmissionRequest:
    """A validated-by-shape activity submission from the command layer."""
    discord_id: int
    activity_type: str
    quantity: int = 1
    booster_active: Optional[bool] = None  # None: use the member's stored booster flag
    bonus_units: int = 0
    proof_reference: Optional[str] = None
    display_name: Optional[str] = None
    actor_id: Optional[int] = None  # None: the member submitted for themselves
    description: Optional[str] = None


@dataclass(frozen=True)
class AdjustmentRequest:
    target_id: int
    action: AdjustmentAction
    amount: int
    reason: str
    actor_id: int


@dataclass
class SubmissionOutcome:
    points_awarded: int
    breakdown: PointBreakdown
    quota_completed_now: bool
    newly_eligible: bool
    points_newly_met: bool
    next_rank: Optional[Rank]
    eligibility: EligibilityResult
    before: Dict[str, Any]
    after: Dict[str, Any]
    log_entry: EventLog
    member_created: bool = False


@dataclass(frozen=True)
class AdjustmentOutcome:
    action: AdjustmentAction
    amount: int
    point_delta: int
    rank_point_delta: int
    before: Dict[str, Any]
    after: Dict[str, Any]
    eligibility: EligibilityChange
    log_entry: EventLog

    @property
    def eligibility_changed(self) -> bool:
        return self.eligibility.changed


@dataclass(frozen=True)
class UnitTransferOutcome:
    old_rank: Rank
    new_rank: Rank
    rank_points_cleared: int
    eligibility: EligibilityChange
    log_entry: EventLog


class MemberOperations:
    """Pure record-level operations on Member state."""

    def __init__(
        self,
        ladders: RankLadders,
        calculator: PointCalculator,
        quota_engine: QuotaEngine,
        promotion_engine: PromotionEngine,
        timezone: str = None
    ):
        self.ladders = ladders
        self.calculator = calculator
        self.quota_engine = quota_engine
        self.promotion_engine = promotion_engine
        self.timezone = timezone or Config.TIMEZONE
        self.logger = logger

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _in_hand_picked_tier(self, member: Member) -> bool:
        return self.ladders.rank_for(member.unit, member.rank_level).hand_picked

    def _shift_rank_points(self, member: Member, delta: int) -> int:
        """Move rank points by `delta` (floored at 0). Returns the applied change."""
        if self._in_hand_picked_tier(member):
            member.rank_points = 0
            return 0
        old = member.rank_points
        member.rank_points = max(0, old + delta)
        return member.rank_points - old

    def _roll_daily_window(self, member: Member, now: datetime) -> None:
        day_start = local_day_start(now, self.timezone)
        if member.last_daily_reset is None or member.last_daily_reset < day_start:
            member.daily_points_today = 0
            member.last_daily_reset = now

    @staticmethod
    def _require_reason(reason: Optional[str], action: str) -> str:
        if not reason or not reason.strip():
            raise InvalidInputError(f"A reason is required to {action}")
        if len(reason.strip()) < Config.MIN_DESTRUCTIVE_REASON_LENGTH:
            raise InvalidInputError(
                f"Reason must be at least {Config.MIN_DESTRUCTIVE_REASON_LENGTH} characters to {action}"
            )
        return reason.strip()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def new_member(self, discord_id: int, display_name: str, unit: Optional[Unit] = None,
                   is_booster: bool = False) -> Member:
        """Fresh record at level 1 of the unit's ladder."""
        unit = unit or Unit(Config.DEFAULT_UNIT)
        first = self.ladders.for_unit(unit).first
        return Member(
            discord_id=discord_id,
            display_name=display_name or str(discord_id),
            unit=unit,
            rank_level=first.level,
            rank_name=first.name,
            weekly_quota=self.quota_engine.quota_for(first.level),
            is_booster=is_booster,
        )

    def refresh_display_name(self, member: Member, display_name: Optional[str]) -> bool:
        if not display_name or display_name == member.display_name:
            return False
        member.display_name = display_name
        return True

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    def apply_submission(self, member: Member, request: SubmissionRequest,
                         now: Optional[datetime] = None) -> SubmissionOutcome:
        """
        Award points for an activity submission.

        Validation happens before anything is mutated.

        Raises:
            InvalidInputError: Unknown activity type or out-of-range quantity/bonus
        """
        now = now or utcnow()
        booster_active = member.is_booster if request.booster_active is None else request.booster_active
        breakdown = self.calculator.breakdown(
            request.activity_type, request.quantity, booster_active, request.bonus_units
        )
        points = breakdown.total

        before = member_snapshot(member)
        before_eligibility = self.promotion_engine.check_eligibility(member, now)
        was_completed = member.quota_completed

        # 1. Counters
        self.refresh_display_name(member, request.display_name)
        self._roll_daily_window(member, now)
        member.weekly_points += points
        member.all_time_points += points
        member.daily_points_today += points
        member.weekly_events += request.quantity
        member.total_events += request.quantity
        self._shift_rank_points(member, points)

        # 2. Quota
        self.quota_engine.recompute_one(member)
        quota_completed_now = member.quota_completed and not was_completed
        if quota_completed_now:
            member.last_quota_completion = now

        # 3. Eligibility
        change = self.promotion_engine.refresh_eligibility(member, now)
        points_newly_met = change.result.points_met and not before_eligibility.points_met

        # 4. Log
        activity_name = self.calculator.activity_name(request.activity_type)
        description = request.description or f"{activity_name} x{request.quantity}"
        if breakdown.bonus_points:
            description += f" (+{breakdown.bonus_points} attendees)"
        if booster_active:
            description += " [2X BOOSTER]"

        entry = build_log_entry(
            actor_id=request.actor_id if request.actor_id is not None else member.discord_id,
            subject_id=member.discord_id,
            category=LogCategory.SUBMISSION,
            action=request.activity_type,
            point_delta=points,
            description=description,
            proof_reference=request.proof_reference,
            details={
                'quantity': request.quantity,
                'bonus_units': request.bonus_units,
                'booster': booster_active,
                'before': before,
                'after': member_snapshot(member),
            },
            now=now,
        )

        self.logger.info(
            f"SUBMISSION: {member.display_name} +{points} ({request.activity_type} x{request.quantity}) "
            f"- weekly {member.weekly_points}/{member.weekly_quota}, rank points {member.rank_points}"
        )

        return SubmissionOutcome(
            points_awarded=points,
            breakdown=breakdown,
            quota_completed_now=quota_completed_now,
            newly_eligible=change.newly_eligible,
            points_newly_met=points_newly_met,
            next_rank=change.result.next_rank,
            eligibility=change.result,
            before=before,
            after=member_snapshot(member),
            log_entry=entry,
        )

    # ------------------------------------------------------------------
    # HR adjustments
    # ------------------------------------------------------------------

    def _validate_adjustment(self, request: AdjustmentRequest) -> None:
        if request.action is AdjustmentAction.REMOVE_ALL:
            self._require_reason(request.reason, "remove all points")
            return
        if request.amount is None or request.amount < 0:
            raise InvalidInputError("Amount must be zero or greater")
        if request.action in (AdjustmentAction.ADD, AdjustmentAction.REMOVE) and request.amount == 0:
            raise InvalidInputError(f"Amount to {request.action.value} must be at least 1")

    def adjust_points(self, member: Member, request: AdjustmentRequest,
                      now: Optional[datetime] = None) -> AdjustmentOutcome:
        """
        Apply an HR point adjustment.

        Weekly, all-time and rank points move by the same signed delta
        (rank points stay pinned at 0 in the hand-picked tier):
        - add: +amount
        - remove: -amount, each counter floored at 0
        - set: weekly := amount, others move by (amount - old weekly)
        - remove_all: every counter to 0, requires a reason

        Raises:
            InvalidInputError: Negative amount or missing reason for remove_all
        """
        now = now or utcnow()
        self._validate_adjustment(request)

        before = member_snapshot(member)
        old_weekly = member.weekly_points
        old_rank_points = member.rank_points
        action = request.action

        # 1. Counters
        if action is AdjustmentAction.ADD:
            member.weekly_points += request.amount
            member.all_time_points += request.amount
            self._shift_rank_points(member, request.amount)
        elif action is AdjustmentAction.REMOVE:
            member.weekly_points = max(0, member.weekly_points - request.amount)
            member.all_time_points = max(0, member.all_time_points - request.amount)
            self._shift_rank_points(member, -request.amount)
        elif action is AdjustmentAction.SET:
            difference = request.amount - old_weekly
            member.weekly_points = request.amount
            member.all_time_points = max(0, member.all_time_points + difference)
            self._shift_rank_points(member, difference)
        else:
            member.weekly_points = 0
            member.all_time_points = 0
            member.rank_points = 0

        point_delta = member.weekly_points - old_weekly

        # 2. Quota, 3. Eligibility
        self.quota_engine.recompute_one(member)
        change = self.promotion_engine.refresh_eligibility(member, now)

        # 4. Log
        if action is AdjustmentAction.REMOVE_ALL:
            description = f"CRITICAL HR ACTION: ALL POINTS REMOVED - Reason: {request.reason}"
        else:
            description = f"HR Action: {action.value.upper()} {request.amount} points - Reason: {request.reason}"

        entry = build_log_entry(
            actor_id=request.actor_id,
            subject_id=member.discord_id,
            category=LogCategory.ADMIN_ADJUSTMENT,
            action=action.value,
            point_delta=point_delta,
            description=description,
            details={
                'amount': request.amount,
                'reason': request.reason,
                'before': before,
                'after': member_snapshot(member),
            },
            now=now,
        )

        self.logger.info(
            f"HR ADJUSTMENT: {request.actor_id} {action.value} {request.amount} for {member.display_name} "
            f"- weekly {old_weekly} → {member.weekly_points}, rank points {old_rank_points} → {member.rank_points}"
        )

        return AdjustmentOutcome(
            action=action,
            amount=request.amount,
            point_delta=point_delta,
            rank_point_delta=member.rank_points - old_rank_points,
            before=before,
            after=member_snapshot(member),
            eligibility=change,
            log_entry=entry,
        )

    # ------------------------------------------------------------------
    # Unit, booster and deletion
    # ------------------------------------------------------------------

    def transfer_unit(self, member: Member, unit: Unit, actor_id: int, reason: str,
                      now: Optional[datetime] = None) -> UnitTransferOutcome:
        """
        Move a member to another unit at the same level.

        Rank name is re-derived from the new ladder and rank points are
        cleared, as on every administrative rank change.

        Raises:
            InvalidInputError: Member is already in that unit
        """
        now = now or utcnow()
        if unit == member.unit:
            raise InvalidInputError(f"{member.display_name} is already in {unit.value}")

        before = member_snapshot(member)
        old_rank = self.ladders.rank_for(member.unit, member.rank_level)
        new_rank = self.ladders.rank_for(unit, member.rank_level)
        cleared = member.rank_points

        member.unit = unit
        member.rank_name = new_rank.name
        member.rank_points = 0

        self.quota_engine.recompute_one(member)
        change = self.promotion_engine.refresh_eligibility(member, now)

        entry = build_log_entry(
            actor_id=actor_id,
            subject_id=member.discord_id,
            category=LogCategory.ADMIN_ADJUSTMENT,
            action='unit_transfer',
            description=f"UNIT TRANSFER: {old_rank.name} ({old_rank.unit.value}) → "
                        f"{new_rank.name} ({new_rank.unit.value}) - Reason: {reason}",
            details={'before': before, 'after': member_snapshot(member), 'rank_points_cleared': cleared},
            now=now,
        )

        self.logger.info(f"UNIT TRANSFER: {member.display_name} {old_rank.unit.value} → {unit.value} by {actor_id}")
        return UnitTransferOutcome(
            old_rank=old_rank,
            new_rank=new_rank,
            rank_points_cleared=cleared,
            eligibility=change,
            log_entry=entry,
        )

    def sync_booster(self, member: Member, is_booster: bool,
                     now: Optional[datetime] = None) -> Optional[EventLog]:
        """Record the platform booster status. Returns None when nothing changed."""
        if bool(member.is_booster) == bool(is_booster):
            return None

        member.is_booster = bool(is_booster)
        status = 'gained' if is_booster else 'lost'
        self.logger.info(f"BOOSTER SYNC: {member.display_name} {status} booster status")
        return build_log_entry(
            actor_id=SYSTEM_ACTOR_ID,
            subject_id=member.discord_id,
            category=LogCategory.SYNC,
            action='booster_sync',
            description=f"Booster status {status}",
            details={'is_booster': member.is_booster},
            now=now,
        )

    def tombstone(self, member: Member, actor_id: int, reason: str, purged_logs: int = 0,
                  now: Optional[datetime] = None) -> EventLog:
        """
        Final log entry for a member about to be deleted.

        Raises:
            InvalidInputError: Missing or too-short reason
        """
        reason = self._require_reason(reason, "delete a member")
        return build_log_entry(
            actor_id=actor_id,
            subject_id=member.discord_id,
            category=LogCategory.DELETION,
            action='member_deleted',
            point_delta=-member.weekly_points,
            description=f"MEMBER DELETED: {member.display_name} ({member.rank_name}) - Reason: {reason}",
            details={
                'final_state': member_snapshot(member),
                'promotions': len(member.promotion_history),
                'purged_logs': purged_logs,
            },
            now=now,
        )
