"""
Weekly Processing Service - manual and scheduled weekly quota cycle

This service closes out the week for every member and runs the member-wide
quota reconciliation used after rank-table changes or administrative fixes.

Key Features:
- Weekly reset of weekly points, events and daily points with quota streaks
- All-or-nothing semantics: one transaction, any member failure rolls back
  the whole reset and surfaces as WeeklyResetError
- Bulk quota recompute that skips and reports individual failures
- Quota completion summary for HR dashboards
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from swat_bot.database.models import Member
from swat_bot.operations.event_log import SYSTEM_ACTOR_ID
from swat_bot.operations.quota_engine import QuotaEngine, QuotaRecomputeResult
from swat_bot.services.base import BaseService

logger = logging.getLogger(__name__)

class WeeklyProcessingService(BaseService):
    """Service for the weekly quota cycle."""

    def __init__(self, database, quota_engine: QuotaEngine):
        super().__init__(database.session_factory)
        self.db = database
        self.quota_engine = quota_engine

    async def weekly_reset(self, actor_id: int = SYSTEM_ACTOR_ID,
                           now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Reset every member's week.

        This method:
        1. Records whether each member met quota (advancing or breaking the streak)
        2. Clears weekly points, weekly events and daily points
        3. Re-derives weekly quota from the member's current rank
        4. Writes one weekly_reset log entry per member

        Rank points, all-time points, rank level and promotion history are
        left untouched.

        Returns:
            {'members_updated': count}

        Raises:
            WeeklyResetError: Some member could not be reset; nothing was committed
            PersistenceError: The commit itself failed
        """
        async with self.get_session('weekly reset') as session:
            members = await self.db.find_members(session)
            logger.info(f"Weekly reset started by {actor_id} for {len(members)} members")
            result = self.quota_engine.weekly_reset(members, session.add, session.add,
                                                    actor_id=actor_id, now=now)

        logger.info(f"Weekly reset committed: {result.members_updated} members updated, "
                    f"{result.quota_met_count} met quota")
        return result.as_dict()

    async def recompute_all_quotas(self, actor_id: int = SYSTEM_ACTOR_ID,
                                   now: Optional[datetime] = None) -> QuotaRecomputeResult:
        """Re-derive quota and completion for everyone. Failed members are reported, not fatal."""
        async with self.get_session('quota recompute') as session:
            members = await self.db.find_members(session)
            result = self.quota_engine.recompute_all(members, session.add, session.add,
                                                     actor_id=actor_id, now=now)

        if result.has_failures:
            logger.warning(f"Quota recompute finished with {len(result.errors)} failed members")
        return result

    async def quota_summary(self) -> Dict[str, Any]:
        """Completion counts for the current week plus the per-level quota table."""
        async with self.get_session('quota summary') as session:
            total = await self.db.count_members(session)
            completed = await self.db.count_members(session, Member.quota_completed.is_(True))

        summary = self.quota_engine.quota_statistics()
        summary.update({
            'total_members': total,
            'completed': completed,
            'in_progress': total - completed,
            'completion_rate': round(completed / total * 100) if total else 0,
        })
        return summary
