"""
Promotion Engine

Decides where a member stands on the promotion ladder and applies the
administrative promotion actions.

Eligibility states, evaluated in this order:
- MAX_RANK: no rank above the current one
- LOCKED: rank lock still running (reported even when points are met, so HR
  can tell "ready but locked" from "not ready")
- HAND_PICKED_GATE: next rank can only be granted administratively
- ELIGIBLE / BELOW_THRESHOLD: rank points against the next threshold

The cached Member.promotion_eligible flag is refreshed by every operation that
can change it, but decisions are always made from check_eligibility().
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from swat_bot.database.models import EventLog, LogCategory, Member, PromotionRecord, PromotionType
from swat_bot.operations.event_log import build_log_entry, member_snapshot
from swat_bot.operations.quota_engine import BatchError, QuotaEngine, QuotaUpdate
from swat_bot.utils.exceptions import AlreadyAtMaxRankError, InvalidInputError, NotEligibleError
from swat_bot.utils.logger import setup_logger
from swat_bot.utils.ranks import Rank, RankLadders, Unit
from swat_bot.utils.time_utils import days_remaining, is_future, utcnow

logger = setup_logger(__name__)

MemberSink = Callable[[Member], None]


class EligibilityState(Enum):
    LOCKED = "locked"
    BELOW_THRESHOLD = "below_threshold"
    HAND_PICKED_GATE = "hand_picked_gate"
    ELIGIBLE = "eligible"
    MAX_RANK = "max_rank"


@dataclass(frozen=True)
class PointsProgress:
    current: int
    required: int

    @property
    def remaining(self) -> int:
        return max(0, self.required - self.current)

    @property
    def met(self) -> bool:
        return self.remaining == 0

    @property
    def percentage(self) -> int:
        if self.required <= 0:
            return 100
        return round(min(100.0, self.current / self.required * 100))


@dataclass(frozen=True)
class EligibilityResult:
    state: EligibilityState
    current_rank: Rank
    next_rank: Optional[Rank]
    progress: Optional[PointsProgress]
    reason: str
    lock_until: Optional[datetime] = None
    days_remaining: int = 0

    @property
    def is_eligible(self) -> bool:
        return self.state is EligibilityState.ELIGIBLE

    @property
    def points_met(self) -> bool:
        """Points satisfy a point-gated next rank (never true for hand-picked ranks)."""
        return (self.progress is not None and self.progress.met
                and self.next_rank is not None and not self.next_rank.hand_picked)

    @property
    def ready_but_locked(self) -> bool:
        return self.state is EligibilityState.LOCKED and self.points_met

    @property
    def is_reportable(self) -> bool:
        return self.is_eligible or self.ready_but_locked


@dataclass(frozen=True)
class EligibilityChange:
    was_eligible: bool
    result: EligibilityResult

    @property
    def is_eligible(self) -> bool:
        return self.result.is_eligible

    @property
    def newly_eligible(self) -> bool:
        return not self.was_eligible and self.result.is_eligible

    @property
    def lost_eligibility(self) -> bool:
        return self.was_eligible and not self.result.is_eligible

    @property
    def changed(self) -> bool:
        return self.was_eligible != self.result.is_eligible


@dataclass(frozen=True)
class PromotionOutcome:
    old_rank: Rank
    new_rank: Rank
    promotion_type: PromotionType
    record: PromotionRecord
    lock_days: int
    lock_until: Optional[datetime]
    quota_update: QuotaUpdate
    log_entry: EventLog

    @property
    def locked(self) -> bool:
        return self.lock_until is not None


@dataclass(frozen=True)
class LockBypassOutcome:
    cleared_lock_until: datetime
    days_remaining: int
    eligibility: EligibilityChange
    log_entry: EventLog


@dataclass(frozen=True)
class PromotionCandidate:
    discord_id: int
    display_name: str
    unit: Unit
    current_rank: Rank
    next_rank: Rank
    rank_points: int
    all_time_points: int
    is_rank_locked: bool
    lock_until: Optional[datetime]
    ready_since: Optional[datetime]


@dataclass
class EligibilityReport:
    candidates: List[PromotionCandidate] = field(default_factory=list)
    by_rank: Dict[str, List[PromotionCandidate]] = field(default_factory=dict)
    total_scanned: int = 0
    errors: List[BatchError] = field(default_factory=list)

    @property
    def total_eligible(self) -> int:
        return len(self.candidates)

    @property
    def counts_by_rank(self) -> Dict[str, int]:
        return {name: len(group) for name, group in self.by_rank.items()}


@dataclass
class EligibilityRefreshResult:
    total_checked: int = 0
    total_eligible: int = 0
    newly_eligible: List[EligibilityChange] = field(default_factory=list)
    errors: List[BatchError] = field(default_factory=list)


@dataclass(frozen=True)
class LockExpiryNotice:
    discord_id: int
    display_name: str
    current_rank: Rank
    next_rank: Optional[Rank]


@dataclass
class LockExpiryResult:
    expired: List[LockExpiryNotice] = field(default_factory=list)
    errors: List[BatchError] = field(default_factory=list)


@dataclass(frozen=True)
class RankProgress:
    percentage: int
    is_max_rank: bool = False
    is_hand_picked: bool = False
    current: int = 0
    required: int = 0
    remaining: int = 0


class PromotionEngine:
    """Eligibility state machine and promotion actions."""

    def __init__(self, ladders: RankLadders, quota_engine: QuotaEngine):
        self.ladders = ladders
        self.quota_engine = quota_engine
        self.logger = logger

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    def check_eligibility(self, member: Member, now: Optional[datetime] = None) -> EligibilityResult:
        now = now or utcnow()
        ladder = self.ladders.for_unit(member.unit)
        current_rank = ladder.get(member.rank_level)
        next_rank = ladder.next_rank(member.rank_level)

        if next_rank is None:
            return EligibilityResult(
                state=EligibilityState.MAX_RANK,
                current_rank=current_rank,
                next_rank=None,
                progress=None,
                reason='Already at maximum rank',
            )

        # Progress is always computed, even while locked
        progress = PointsProgress(current=member.rank_points, required=next_rank.points_required)

        if is_future(member.rank_lock_until, now):
            remaining_days = days_remaining(member.rank_lock_until, now)
            return EligibilityResult(
                state=EligibilityState.LOCKED,
                current_rank=current_rank,
                next_rank=next_rank,
                progress=progress,
                reason=f"Rank locked for {remaining_days} more day(s)",
                lock_until=member.rank_lock_until,
                days_remaining=remaining_days,
            )

        if next_rank.hand_picked:
            return EligibilityResult(
                state=EligibilityState.HAND_PICKED_GATE,
                current_rank=current_rank,
                next_rank=next_rank,
                progress=progress,
                reason=f"{next_rank.name} is hand-picked only",
            )

        if progress.met:
            return EligibilityResult(
                state=EligibilityState.ELIGIBLE,
                current_rank=current_rank,
                next_rank=next_rank,
                progress=progress,
                reason='Ready for promotion!',
            )

        return EligibilityResult(
            state=EligibilityState.BELOW_THRESHOLD,
            current_rank=current_rank,
            next_rank=next_rank,
            progress=progress,
            reason=f"Need {progress.remaining} more rank points",
        )

    def refresh_eligibility(self, member: Member, now: Optional[datetime] = None) -> EligibilityChange:
        """Recompute eligibility and store it in the cached flag."""
        now = now or utcnow()
        was_eligible = bool(member.promotion_eligible)
        result = self.check_eligibility(member, now)

        member.promotion_eligible = result.is_eligible
        member.last_promotion_check = now

        change = EligibilityChange(was_eligible=was_eligible, result=result)
        if change.newly_eligible:
            self.logger.info(f"PROMOTION ELIGIBLE: {member.display_name} is now eligible for {result.next_rank.name}")
        elif change.lost_eligibility:
            self.logger.info(f"PROMOTION LOST: {member.display_name} is no longer eligible ({result.reason})")
        return change

    def rank_progress(self, member: Member, now: Optional[datetime] = None) -> RankProgress:
        result = self.check_eligibility(member, now)
        if result.state is EligibilityState.MAX_RANK:
            return RankProgress(percentage=100, is_max_rank=True)
        if result.next_rank.hand_picked:
            return RankProgress(percentage=100, is_hand_picked=True)
        progress = result.progress
        return RankProgress(
            percentage=progress.percentage,
            current=progress.current,
            required=progress.required,
            remaining=progress.remaining,
        )

    # ------------------------------------------------------------------
    # Promotion actions
    # ------------------------------------------------------------------

    def apply_promotion(
        self,
        member: Member,
        actor_id: int,
        reason: str = 'Standard promotion',
        promotion_type: Optional[PromotionType] = None,
        force: bool = False,
        now: Optional[datetime] = None
    ) -> PromotionOutcome:
        """
        Promote a member one level.

        Accepted when a next rank exists and the member is ELIGIBLE, or is
        LOCKED with points already met (the lock is overridden and the
        promotion recorded as bypass_lock), or `force` is set.

        Raises:
            AlreadyAtMaxRankError: No rank above the current one
            NotEligibleError: Member does not qualify and force is not set
        """
        now = now or utcnow()
        eligibility = self.check_eligibility(member, now)

        if eligibility.state is EligibilityState.MAX_RANK:
            raise AlreadyAtMaxRankError(eligibility.current_rank.name)

        if force:
            if promotion_type is None:
                promotion_type = (PromotionType.HAND_PICKED if eligibility.next_rank.hand_picked
                                  else PromotionType.FORCE)
        elif eligibility.is_eligible:
            promotion_type = PromotionType.STANDARD
        elif eligibility.ready_but_locked:
            promotion_type = PromotionType.BYPASS_LOCK
        else:
            raise NotEligibleError(eligibility)

        return self._move_to_rank(member, eligibility.next_rank, actor_id, promotion_type, reason, now)

    def force_promotion(
        self,
        member: Member,
        target_level: int,
        actor_id: int,
        reason: str,
        unit_override: Optional[Unit] = None,
        now: Optional[datetime] = None
    ) -> PromotionOutcome:
        """
        Move a member to any rank, skipping every eligibility check.

        Used for hand-picked ranks and corrections (including demotions and
        unit changes). Rank points and lock follow the normal promotion rule.

        Raises:
            InvalidInputError: Unknown level, missing reason, or nothing would change
        """
        now = now or utcnow()
        if not reason or not reason.strip():
            raise InvalidInputError("A reason is required for force promotions")

        unit = unit_override or member.unit
        destination = self.ladders.rank_for(unit, target_level)

        if destination.level == member.rank_level and destination.unit == member.unit:
            raise InvalidInputError(f"{member.display_name} is already {destination.name}")

        promotion_type = PromotionType.HAND_PICKED if destination.hand_picked else PromotionType.FORCE
        return self._move_to_rank(member, destination, actor_id, promotion_type, reason, now)

    def _move_to_rank(
        self,
        member: Member,
        destination: Rank,
        actor_id: int,
        promotion_type: PromotionType,
        reason: str,
        now: datetime
    ) -> PromotionOutcome:
        old_rank = self.ladders.rank_for(member.unit, member.rank_level)
        before = member_snapshot(member)

        lock_until = now + timedelta(days=destination.lock_days) if destination.lock_days > 0 else None

        record = PromotionRecord(
            from_level=old_rank.level,
            from_name=old_rank.name,
            from_unit=old_rank.unit,
            to_level=destination.level,
            to_name=destination.name,
            to_unit=destination.unit,
            promoted_at=now,
            actor_id=actor_id,
            promotion_type=promotion_type,
            reason=reason,
            rank_points_at_promotion=member.rank_points,
            all_time_points_at_promotion=member.all_time_points,
            lock_days_applied=destination.lock_days if lock_until else 0,
            lock_until_applied=lock_until,
        )
        member.promotion_history.append(record)

        member.unit = destination.unit
        member.rank_level = destination.level
        member.rank_name = destination.name
        member.rank_points = 0
        member.promotion_eligible = False
        member.last_promotion_check = now
        member.rank_lock_until = lock_until
        member.rank_lock_notified = False

        quota_update = self.quota_engine.recompute_one(member)

        entry = build_log_entry(
            actor_id=actor_id,
            subject_id=member.discord_id,
            category=LogCategory.PROMOTION,
            action=f"promotion_{promotion_type.value}",
            description=f"PROMOTED: {old_rank.name} → {destination.name} ({promotion_type.value}) - {reason}",
            details={
                'before': before,
                'after': member_snapshot(member),
                'lock_days': record.lock_days_applied,
                'lock_until': lock_until,
            },
            now=now,
        )

        self.logger.info(
            f"PROMOTION: {member.display_name} {old_rank.name} → {destination.name} by {actor_id} "
            f"({promotion_type.value}) - Lock: {f'{destination.lock_days} days' if lock_until else 'none'}"
        )

        return PromotionOutcome(
            old_rank=old_rank,
            new_rank=destination,
            promotion_type=promotion_type,
            record=record,
            lock_days=record.lock_days_applied,
            lock_until=lock_until,
            quota_update=quota_update,
            log_entry=entry,
        )

    def bypass_lock(self, member: Member, actor_id: int, reason: str,
                    now: Optional[datetime] = None) -> LockBypassOutcome:
        """
        Clear an active rank lock without touching rank or points.

        Raises:
            InvalidInputError: Member has no active lock
        """
        now = now or utcnow()
        if not member.is_rank_locked(now):
            raise InvalidInputError(f"{member.display_name} is not currently rank locked")

        cleared_until = member.rank_lock_until
        remaining = days_remaining(cleared_until, now)

        member.rank_lock_until = None
        member.rank_lock_notified = False
        change = self.refresh_eligibility(member, now)

        entry = build_log_entry(
            actor_id=actor_id,
            subject_id=member.discord_id,
            category=LogCategory.LOCK_BYPASS,
            action='bypass_rank_lock',
            description=f"RANK LOCK BYPASSED - {remaining} days remaining - Reason: {reason}",
            details={'lock_until': cleared_until, 'days_remaining': remaining, 'reason': reason},
            now=now,
        )

        self.logger.info(f"RANK LOCK BYPASS: {member.display_name} by {actor_id} ({remaining} days remaining)")
        return LockBypassOutcome(
            cleared_lock_until=cleared_until,
            days_remaining=remaining,
            eligibility=change,
            log_entry=entry,
        )

    # ------------------------------------------------------------------
    # Member-wide scans
    # ------------------------------------------------------------------

    def eligibility_report(self, members: Iterable[Member], now: Optional[datetime] = None) -> EligibilityReport:
        """
        Members ready for promotion, including those held back only by a lock.

        Sorted by current rank level ascending, then all-time points
        descending, and grouped by destination rank name.
        """
        now = now or utcnow()
        report = EligibilityReport()

        for member in members:
            report.total_scanned += 1
            try:
                result = self.check_eligibility(member, now)
            except Exception as e:
                self.logger.error(f"Eligibility check failed for member {member.discord_id}: {e}", exc_info=True)
                report.errors.append(BatchError(member.discord_id, 'eligibility_report', str(e)))
                continue

            if result.state is EligibilityState.MAX_RANK or not result.is_reportable:
                continue

            report.candidates.append(PromotionCandidate(
                discord_id=member.discord_id,
                display_name=member.display_name,
                unit=member.unit,
                current_rank=result.current_rank,
                next_rank=result.next_rank,
                rank_points=member.rank_points,
                all_time_points=member.all_time_points,
                is_rank_locked=result.state is EligibilityState.LOCKED,
                lock_until=result.lock_until,
                ready_since=member.last_promotion_check,
            ))

        report.candidates.sort(key=lambda c: (c.current_rank.level, -c.all_time_points))
        for candidate in report.candidates:
            report.by_rank.setdefault(candidate.next_rank.name, []).append(candidate)

        self.logger.info(f"Eligibility report complete: {report.total_eligible} of {report.total_scanned} members ready")
        return report

    def refresh_all(self, members: Iterable[Member], save: MemberSink,
                    now: Optional[datetime] = None) -> EligibilityRefreshResult:
        """Refresh every member's cached eligibility flag (daily sweep)."""
        now = now or utcnow()
        result = EligibilityRefreshResult()

        for member in members:
            result.total_checked += 1
            try:
                change = self.refresh_eligibility(member, now)
                save(member)
            except Exception as e:
                self.logger.error(f"Eligibility refresh failed for member {member.discord_id}: {e}", exc_info=True)
                result.errors.append(BatchError(member.discord_id, 'eligibility_refresh', str(e)))
                continue

            if change.is_eligible:
                result.total_eligible += 1
            if change.newly_eligible:
                result.newly_eligible.append(change)

        self.logger.info(
            f"Bulk eligibility check complete: {result.total_checked} checked, "
            f"{result.total_eligible} eligible, {len(result.newly_eligible)} newly eligible"
        )
        return result

    def process_lock_expirations(self, members: Iterable[Member], save: MemberSink,
                                 now: Optional[datetime] = None) -> LockExpiryResult:
        """
        Flag members whose rank lock has run out and who were not told yet.

        Each member is returned once; rank_lock_notified suppresses repeats
        until the next lock is applied.
        """
        now = now or utcnow()
        result = LockExpiryResult()

        for member in members:
            if member.rank_lock_until is None or member.rank_lock_notified:
                continue
            if is_future(member.rank_lock_until, now):
                continue
            try:
                member.rank_lock_notified = True
                save(member)
                ladder = self.ladders.for_unit(member.unit)
                result.expired.append(LockExpiryNotice(
                    discord_id=member.discord_id,
                    display_name=member.display_name,
                    current_rank=ladder.get(member.rank_level),
                    next_rank=ladder.next_rank(member.rank_level),
                ))
            except Exception as e:
                self.logger.error(f"Lock expiry processing failed for member {member.discord_id}: {e}", exc_info=True)
                result.errors.append(BatchError(member.discord_id, 'lock_expiry', str(e)))

        self.logger.info(f"Rank locks expired: {len(result.expired)}")
        return result
