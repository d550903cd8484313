"""
Leaderboard data models

Immutable data transfer objects for the weekly and all-time standings.
"""

from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class LeaderboardEntry:
    """Single leaderboard row. Tied members share a position."""
    position: int
    discord_id: int
    display_name: str
    rank_name: str
    points: int
    weekly_events: int
    quota_completed: bool
    is_booster: bool


@dataclass(frozen=True)
class LeaderboardPage:
    """Paginated leaderboard data."""
    entries: List[LeaderboardEntry]
    board: str
    current_page: int
    total_pages: int
    total_members: int


@dataclass(frozen=True)
class MemberStanding:
    """One member's place on both boards plus this week's progress."""
    discord_id: int
    display_name: str
    weekly_position: int
    all_time_position: int
    weekly_points: int
    all_time_points: int
    weekly_events: int
    points_today: int
    weekly_quota: int
    quota_completed: bool
    is_booster: bool

    @property
    def quota_percentage(self) -> int:
        if self.weekly_quota <= 0:
            return 100
        return min(100, self.weekly_points * 100 // self.weekly_quota)
