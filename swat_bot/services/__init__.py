"""
Services package for the SWAT bot.

Async, database-backed entry points used by the command layer.
"""

from .base import BaseService
from .leaderboard_service import LeaderboardService
from .member_service import MemberService
from .promotion_service import PromotionService
from .weekly_processing_service import WeeklyProcessingService

__all__ = ['BaseService', 'LeaderboardService', 'MemberService', 'PromotionService', 'WeeklyProcessingService']
