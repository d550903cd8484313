"""
Promotion Service

Database-backed promotion commands for HR (review, approve, force, bypass
lock, eligibility report) and the daily automation pass that flags expired
rank locks and refreshes every member's cached eligibility.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from swat_bot.operations.promotion_engine import (
    EligibilityRefreshResult, EligibilityReport, EligibilityResult,
    LockBypassOutcome, LockExpiryResult, PromotionEngine, PromotionOutcome
)
from swat_bot.services.base import BaseService
from swat_bot.utils.exceptions import MemberNotFoundError
from swat_bot.utils.ranks import Unit
from swat_bot.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class DailyCheckResult:
    lock_expiry: LockExpiryResult
    eligibility: EligibilityRefreshResult

    @property
    def has_failures(self) -> bool:
        return bool(self.lock_expiry.errors or self.eligibility.errors)


class PromotionService(BaseService):
    """Service for promotion review and approval."""

    def __init__(self, database, promotion_engine: PromotionEngine):
        super().__init__(database.session_factory)
        self.db = database
        self.engine = promotion_engine

    async def _require_member(self, session, discord_id: int):
        member = await self.db.find_member(discord_id, session)
        if member is None:
            raise MemberNotFoundError(discord_id)
        return member

    async def review(self, discord_id: int, now: Optional[datetime] = None) -> EligibilityResult:
        """Read-only eligibility check. Never changes the stored record."""
        async with self.get_session('promotion review', member_id=discord_id) as session:
            member = await self._require_member(session, discord_id)
            return self.engine.check_eligibility(member, now)

    async def approve(self, discord_id: int, actor_id: int, reason: str = 'Standard promotion',
                      now: Optional[datetime] = None) -> PromotionOutcome:
        """
        Promote a member who qualifies (or is only held back by a rank lock).

        Raises:
            MemberNotFoundError: No such member
            NotEligibleError: Member does not qualify
            AlreadyAtMaxRankError: Member is at the top of the ladder
        """
        async with self.get_session('promotion approval', member_id=discord_id) as session:
            member = await self._require_member(session, discord_id)
            outcome = self.engine.apply_promotion(member, actor_id, reason=reason, now=now)
            await self.db.save_member(member, session)
            await self.db.append_log(outcome.log_entry, session)
        return outcome

    async def force(self, discord_id: int, target_level: int, actor_id: int, reason: str,
                    unit_override: Optional[Unit] = None,
                    now: Optional[datetime] = None) -> PromotionOutcome:
        """Move a member to any rank (and optionally unit), skipping eligibility."""
        async with self.get_session('force promotion', member_id=discord_id) as session:
            member = await self._require_member(session, discord_id)
            outcome = self.engine.force_promotion(member, target_level, actor_id, reason,
                                                  unit_override=unit_override, now=now)
            await self.db.save_member(member, session)
            await self.db.append_log(outcome.log_entry, session)
        return outcome

    async def bypass_lock(self, discord_id: int, actor_id: int, reason: str,
                          now: Optional[datetime] = None) -> LockBypassOutcome:
        async with self.get_session('rank lock bypass', member_id=discord_id) as session:
            member = await self._require_member(session, discord_id)
            outcome = self.engine.bypass_lock(member, actor_id, reason, now)
            await self.db.save_member(member, session)
            await self.db.append_log(outcome.log_entry, session)
        return outcome

    async def eligibility_report(self, now: Optional[datetime] = None) -> EligibilityReport:
        async with self.get_session('eligibility report') as session:
            members = await self.db.find_members(session)
            return self.engine.eligibility_report(members, now)

    async def run_daily_checks(self, now: Optional[datetime] = None) -> DailyCheckResult:
        """
        Daily automation pass.

        1. Flag rank locks that expired since the last run
        2. Refresh every member's cached promotion_eligible flag
        """
        now = now or utcnow()
        logger.info("Starting daily promotion checks")

        async with self.get_session('daily promotion checks') as session:
            members = await self.db.find_members(session)
            lock_expiry = self.engine.process_lock_expirations(members, session.add, now)
            eligibility = self.engine.refresh_all(members, session.add, now)

        result = DailyCheckResult(lock_expiry=lock_expiry, eligibility=eligibility)
        logger.info(
            f"Daily promotion checks complete: {len(lock_expiry.expired)} locks expired, "
            f"{len(eligibility.newly_eligible)} newly eligible"
        )
        if result.has_failures:
            logger.warning(
                f"Daily promotion checks finished with "
                f"{len(lock_expiry.errors) + len(eligibility.errors)} member errors"
            )
        return result
