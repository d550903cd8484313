"""
Quota Engine

Derives each member's weekly quota from their rank, decides completion, and
runs the member-wide reconciliation jobs:

- recompute_all(): re-derive quota/completion after rank table changes or
  administrative fixes; per-record failures are collected, not fatal
- weekly_reset(): zero the weekly counters for everyone; any failure turns
  the whole run into a WeeklyResetError

Record-level methods are synchronous and pure apart from mutating the member
they are given. Bulk methods take `save` and `append` callables so the caller
decides how records and log entries are persisted.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from swat_bot.database.models import EventLog, LogCategory, Member
from swat_bot.operations.event_log import LogSink, SYSTEM_ACTOR_ID, build_log_entry, member_snapshot
from swat_bot.utils.exceptions import WeeklyResetError
from swat_bot.utils.logger import setup_logger
from swat_bot.utils.ranks import RankLadders
from swat_bot.utils.time_utils import utcnow

logger = setup_logger(__name__)

MemberSink = Callable[[Member], None]


@dataclass(frozen=True)
class BatchError:
    """One record that failed during a bulk run."""
    discord_id: Optional[int]
    operation: str
    error: str


@dataclass(frozen=True)
class QuotaUpdate:
    discord_id: int
    rank_level: int
    old_quota: int
    new_quota: int
    was_completed: bool
    now_completed: bool

    @property
    def quota_changed(self) -> bool:
        return self.old_quota != self.new_quota

    @property
    def completion_flipped(self) -> bool:
        return self.was_completed != self.now_completed

    @property
    def changed(self) -> bool:
        return self.quota_changed or self.completion_flipped


@dataclass
class QuotaRecomputeResult:
    total_scanned: int = 0
    changed: int = 0
    completion_flips: int = 0
    updates: List[QuotaUpdate] = field(default_factory=list)
    errors: List[BatchError] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.errors)


@dataclass(frozen=True)
class WeeklyResetOutcome:
    discord_id: int
    weekly_points_cleared: int
    quota_met: bool
    quota_streak: int
    log_entry: EventLog


@dataclass
class WeeklyResetResult:
    members_updated: int = 0
    quota_met_count: int = 0
    outcomes: List[WeeklyResetOutcome] = field(default_factory=list)

    def as_dict(self) -> Dict[str, int]:
        return {'members_updated': self.members_updated}


class QuotaEngine:
    """Weekly quota derivation and reconciliation."""

    def __init__(self, ladders: RankLadders):
        self.ladders = ladders
        self.logger = logger

    def quota_for(self, rank_level: int) -> int:
        """Weekly quota for a rank level. Identical for both units."""
        return self.ladders.requirement(rank_level).quota

    @staticmethod
    def is_completed(weekly_points: int, quota: int) -> bool:
        return weekly_points >= quota

    def recompute_one(self, member: Member) -> QuotaUpdate:
        """
        Re-derive weekly_quota and quota_completed in place.

        Idempotent: a second call with no intervening mutation reports
        no change.
        """
        old_quota = member.weekly_quota
        was_completed = member.quota_completed

        new_quota = self.quota_for(member.rank_level)
        now_completed = self.is_completed(member.weekly_points, new_quota)

        member.weekly_quota = new_quota
        member.quota_completed = now_completed

        return QuotaUpdate(
            discord_id=member.discord_id,
            rank_level=member.rank_level,
            old_quota=old_quota,
            new_quota=new_quota,
            was_completed=was_completed,
            now_completed=now_completed,
        )

    def recompute_all(
        self,
        members: Iterable[Member],
        save: MemberSink,
        append: LogSink,
        actor_id: int = SYSTEM_ACTOR_ID,
        now: Optional[datetime] = None
    ) -> QuotaRecomputeResult:
        """
        Recompute every member's quota. Members that fail are skipped and
        reported; the rest of the batch still runs.
        """
        now = now or utcnow()
        result = QuotaRecomputeResult()

        for member in members:
            result.total_scanned += 1
            update = None
            try:
                update = self.recompute_one(member)
                if not update.changed:
                    continue

                entry = build_log_entry(
                    actor_id=actor_id,
                    subject_id=member.discord_id,
                    category=LogCategory.SYNC,
                    action='quota_recompute',
                    description=(
                        f"Quota recalculated: {update.old_quota} → {update.new_quota} "
                        f"({'completed' if update.now_completed else 'in progress'})"
                    ),
                    details={'old_quota': update.old_quota, 'new_quota': update.new_quota,
                             'was_completed': update.was_completed,
                             'now_completed': update.now_completed},
                    now=now,
                )
                save(member)
                append(entry)

                result.changed += 1
                if update.completion_flipped:
                    result.completion_flips += 1
                result.updates.append(update)
            except Exception as e:
                if update is not None:
                    member.weekly_quota = update.old_quota
                    member.quota_completed = update.was_completed
                self.logger.error(f"Quota recompute failed for member {getattr(member, 'discord_id', None)}: {e}",
                                  exc_info=True)
                result.errors.append(BatchError(getattr(member, 'discord_id', None), 'quota_recompute', str(e)))

        self.logger.info(
            f"Bulk quota update complete: {result.total_scanned} scanned, {result.changed} updated, "
            f"{result.completion_flips} completion changes, {len(result.errors)} errors"
        )
        return result

    def reset_week(self, member: Member, now: Optional[datetime] = None,
                   actor_id: int = SYSTEM_ACTOR_ID) -> WeeklyResetOutcome:
        """
        Close the week for one member.

        Clears weekly counters and re-derives the quota. Rank points,
        all-time points, rank level and promotion history are not touched.
        """
        now = now or utcnow()
        before = member_snapshot(member)
        cleared = member.weekly_points
        quota_met = self.is_completed(member.weekly_points, self.quota_for(member.rank_level))

        member.quota_streak = member.quota_streak + 1 if quota_met else 0
        member.weekly_points = 0
        member.weekly_events = 0
        member.daily_points_today = 0
        member.last_daily_reset = now
        member.previous_weekly_points = 0
        member.weekly_quota = self.quota_for(member.rank_level)
        member.quota_completed = False

        entry = build_log_entry(
            actor_id=actor_id,
            subject_id=member.discord_id,
            category=LogCategory.ADMIN_ADJUSTMENT,
            action='weekly_reset',
            point_delta=-cleared,
            description=f"Weekly reset: {cleared} weekly points cleared, quota {'met' if quota_met else 'missed'}",
            details={'before': before, 'after': member_snapshot(member), 'quota_streak': member.quota_streak},
            now=now,
        )
        return WeeklyResetOutcome(
            discord_id=member.discord_id,
            weekly_points_cleared=cleared,
            quota_met=quota_met,
            quota_streak=member.quota_streak,
            log_entry=entry,
        )

    def weekly_reset(
        self,
        members: Iterable[Member],
        save: MemberSink,
        append: LogSink,
        actor_id: int = SYSTEM_ACTOR_ID,
        now: Optional[datetime] = None
    ) -> WeeklyResetResult:
        """
        Reset every member's week.

        Raises:
            WeeklyResetError: If any member could not be reset. The remaining
                members are still processed before raising.
        """
        now = now or utcnow()
        result = WeeklyResetResult()
        errors: List[BatchError] = []

        for member in members:
            try:
                outcome = self.reset_week(member, now=now, actor_id=actor_id)
                save(member)
                append(outcome.log_entry)
            except Exception as e:
                self.logger.error(f"Weekly reset failed for member {getattr(member, 'discord_id', None)}: {e}",
                                  exc_info=True)
                errors.append(BatchError(getattr(member, 'discord_id', None), 'weekly_reset', str(e)))
                continue

            result.members_updated += 1
            if outcome.quota_met:
                result.quota_met_count += 1
            result.outcomes.append(outcome)

        if errors:
            raise WeeklyResetError(result.members_updated, errors)

        self.logger.info(f"Weekly quota reset complete: {result.members_updated} members updated "
                         f"({result.quota_met_count} met quota)")
        return result

    def quota_statistics(self) -> Dict[str, Any]:
        """Per-level quota table summary."""
        by_level = {}
        total = 0
        ladder = self.ladders.for_unit(self.ladders.units[0])
        for rank in ladder.ranks:
            level = rank.level
            quota = self.quota_for(level)
            by_level[level] = {
                'quota': quota,
                'tier': rank.tier.value,
                'names': {unit.value: self.ladders.rank_for(unit, level).name for unit in self.ladders.units},
            }
            total += quota

        levels = len(by_level)
        return {
            'by_level': by_level,
            'total_levels': levels,
            'average_quota': round(total / levels) if levels else 0,
        }
