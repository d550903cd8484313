"""
Leaderboard Service

Read-only standings derived from the member counters: the weekly board
(ordered by weekly points), the all-time board (ordered by all-time points)
and a single member's position on both. Positions use standard competition
ranking, so members with equal points share a position and the next one is
skipped (1, 1, 3).
"""

import logging
from datetime import datetime
from typing import Optional

from swat_bot.config import Config
from swat_bot.constants import LeaderboardConstants
from swat_bot.data_models.leaderboard import LeaderboardEntry, LeaderboardPage, MemberStanding
from swat_bot.database.models import Member
from swat_bot.services.base import BaseService
from swat_bot.utils.exceptions import InvalidInputError, MemberNotFoundError
from swat_bot.utils.time_utils import local_day_start, utcnow

logger = logging.getLogger(__name__)

BOARD_COLUMNS = {
    'weekly': Member.weekly_points,
    'all_time': Member.all_time_points,
}


class LeaderboardService(BaseService):
    """Service for weekly and all-time leaderboard queries."""

    def __init__(self, database, timezone: Optional[str] = None):
        super().__init__(database.session_factory)
        self.db = database
        self.timezone = timezone or Config.TIMEZONE

    @staticmethod
    def _column_for(board: str):
        if board not in BOARD_COLUMNS:
            raise InvalidInputError(f"Unknown leaderboard '{board}'; expected one of {', '.join(BOARD_COLUMNS)}")
        return BOARD_COLUMNS[board]

    async def get_page(self, board: str = 'weekly', page: int = 1,
                       page_size: int = LeaderboardConstants.DEFAULT_PAGE_SIZE) -> LeaderboardPage:
        """
        Get one page of a leaderboard, highest points first.

        Raises:
            InvalidInputError: Unknown board, or page / page_size out of range
        """
        column = self._column_for(board)
        if not isinstance(page, int) or page < 1:
            raise InvalidInputError("page must be a positive integer")
        if not isinstance(page_size, int) or not 1 <= page_size <= LeaderboardConstants.MAX_PAGE_SIZE:
            raise InvalidInputError(f"page_size must be between 1 and {LeaderboardConstants.MAX_PAGE_SIZE}")

        async with self.get_session(f'{board} leaderboard') as session:
            total = await self.db.count_members(session)
            offset = (page - 1) * page_size
            members = await self.db.get_top_members(session, column, limit=page_size, offset=offset)

            entries = []
            position = None
            previous_points = None
            for index, member in enumerate(members):
                points = getattr(member, column.key)
                if position is None:
                    # A page can open in the middle of a tie that started on the previous page
                    position = await self.db.get_member_position(session, column, points)
                elif points != previous_points:
                    position = offset + index + 1
                previous_points = points
                entries.append(LeaderboardEntry(
                    position=position,
                    discord_id=member.discord_id,
                    display_name=member.display_name,
                    rank_name=member.rank_name,
                    points=points,
                    weekly_events=member.weekly_events,
                    quota_completed=member.quota_completed,
                    is_booster=member.is_booster,
                ))

        return LeaderboardPage(
            entries=entries,
            board=board,
            current_page=page,
            total_pages=(total + page_size - 1) // page_size if total > 0 else 1,
            total_members=total,
        )

    async def get_position(self, discord_id: int, board: str = 'weekly') -> int:
        """A member's 1-based position on one board."""
        column = self._column_for(board)
        async with self.get_session(f'{board} position', member_id=discord_id) as session:
            member = await self.db.find_member(discord_id, session)
            if member is None:
                raise MemberNotFoundError(discord_id)
            return await self.db.get_member_position(session, column, getattr(member, column.key))

    async def get_standing(self, discord_id: int, now: Optional[datetime] = None) -> MemberStanding:
        """
        A member's position on both boards with this week's progress.

        Points today count only when the member's daily window started
        today in the configured timezone.

        Raises:
            MemberNotFoundError: No record for discord_id
        """
        now = now or utcnow()
        async with self.get_session('member standing', member_id=discord_id) as session:
            member = await self.db.find_member(discord_id, session)
            if member is None:
                raise MemberNotFoundError(discord_id)

            weekly_position = await self.db.get_member_position(session, Member.weekly_points,
                                                                member.weekly_points)
            all_time_position = await self.db.get_member_position(session, Member.all_time_points,
                                                                  member.all_time_points)

        day_start = local_day_start(now, self.timezone)
        fresh_today = member.last_daily_reset is not None and member.last_daily_reset >= day_start
        return MemberStanding(
            discord_id=member.discord_id,
            display_name=member.display_name,
            weekly_position=weekly_position,
            all_time_position=all_time_position,
            weekly_points=member.weekly_points,
            all_time_points=member.all_time_points,
            weekly_events=member.weekly_events,
            points_today=member.daily_points_today if fresh_today else 0,
            weekly_quota=member.weekly_quota,
            quota_completed=member.quota_completed,
            is_booster=member.is_booster,
        )
