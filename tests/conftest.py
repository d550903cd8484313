"""
Pytest configuration and shared fixtures for SWAT bot tests.
"""

import os
import tempfile
from datetime import datetime

import pytest

# Keep test runs from writing daily log files into the working tree
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "swat_bot_test_logs"))

from swat_bot.database.database import Database
from swat_bot.database.models import Member
from swat_bot.operations.member_operations import MemberOperations
from swat_bot.operations.promotion_engine import PromotionEngine
from swat_bot.operations.quota_engine import QuotaEngine
from swat_bot.services.leaderboard_service import LeaderboardService
from swat_bot.services.member_service import MemberService
from swat_bot.services.promotion_service import PromotionService
from swat_bot.services.weekly_processing_service import WeeklyProcessingService
from swat_bot.utils.point_calculator import PointCalculator
from swat_bot.utils.ranks import RankLadders, Unit


@pytest.fixture
def now():
    """Fixed reference time (naive UTC, a Monday noon)."""
    return datetime(2025, 6, 2, 12, 0, 0)


@pytest.fixture
def ladders():
    return RankLadders.default()


@pytest.fixture
def calculator():
    return PointCalculator()


@pytest.fixture
def quota_engine(ladders):
    return QuotaEngine(ladders)


@pytest.fixture
def promotion_engine(ladders, quota_engine):
    return PromotionEngine(ladders, quota_engine)


@pytest.fixture
def member_ops(ladders, calculator, quota_engine, promotion_engine):
    return MemberOperations(ladders, calculator, quota_engine, promotion_engine, timezone="UTC")


@pytest.fixture
def make_member():
    """Factory for transient members; unspecified fields take model defaults."""
    counter = {"next_id": 1000}

    def _make(level=1, unit=Unit.SWAT, discord_id=None, **fields):
        if discord_id is None:
            counter["next_id"] += 1
            discord_id = counter["next_id"]
        fields.setdefault("display_name", f"operator_{discord_id}")
        return Member(discord_id=discord_id, unit=unit, rank_level=level, **fields)

    return _make


@pytest.fixture
async def database(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'swat_test.db'}")
    await db.initialize()
    yield db
    await db.close()


@pytest.fixture
def member_service(database, member_ops):
    return MemberService(database, member_ops)


@pytest.fixture
def promotion_service(database, promotion_engine):
    return PromotionService(database, promotion_engine)


@pytest.fixture
def weekly_service(database, quota_engine):
    return WeeklyProcessingService(database, quota_engine)


@pytest.fixture
def leaderboard_service(database):
    return LeaderboardService(database, timezone="UTC")
