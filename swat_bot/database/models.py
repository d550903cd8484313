from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Text,
    ForeignKey, BigInteger, Enum as SQLEnum, CheckConstraint, event
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
from datetime import datetime
from enum import Enum
from typing import Optional

from swat_bot.utils.ranks import RankLadders, Unit
from swat_bot.utils.time_utils import is_future, utcnow

Base = declarative_base()

class LogCategory(Enum):
    SUBMISSION = "submission"
    ADMIN_ADJUSTMENT = "admin_adjustment"
    PROMOTION = "promotion"
    LOCK_BYPASS = "lock_bypass"
    DELETION = "deletion"
    SYNC = "sync"

class PromotionType(Enum):
    STANDARD = "standard"
    FORCE = "force"
    BYPASS_LOCK = "bypass_lock"
    HAND_PICKED = "hand_picked"

class Member(Base):
    """
    Per-operator point, rank and quota state.

    Every column is default-initialized on construction, so a freshly built
    Member is complete before it ever reaches the database.
    """
    __tablename__ = 'members'

    id = Column(Integer, primary_key=True)
    discord_id = Column(BigInteger, unique=True, nullable=False, index=True)
    display_name = Column(String(100), nullable=False)
    unit = Column(SQLEnum(Unit), nullable=False, default=Unit.SWAT)

    # Rank progression
    rank_level = Column(Integer, nullable=False, default=1)
    rank_name = Column(String(100), nullable=False)
    rank_points = Column(Integer, nullable=False, default=0)  # Progress toward NEXT rank, resets on promotion
    rank_lock_until = Column(DateTime, nullable=True)
    rank_lock_notified = Column(Boolean, nullable=False, default=False)
    promotion_eligible = Column(Boolean, nullable=False, default=False)  # Cached hint, never authoritative
    last_promotion_check = Column(DateTime, nullable=True)

    # Leaderboard and quota counters
    weekly_points = Column(Integer, nullable=False, default=0)
    all_time_points = Column(Integer, nullable=False, default=0)
    weekly_quota = Column(Integer, nullable=False, default=10)
    quota_completed = Column(Boolean, nullable=False, default=False)
    daily_points_today = Column(Integer, nullable=False, default=0)
    last_daily_reset = Column(DateTime, nullable=True)
    quota_streak = Column(Integer, nullable=False, default=0)
    last_quota_completion = Column(DateTime, nullable=True)
    weekly_events = Column(Integer, nullable=False, default=0)
    total_events = Column(Integer, nullable=False, default=0)
    previous_weekly_points = Column(Integer, nullable=False, default=0)  # Trend baseline

    # Platform perk, doubles submitted points
    is_booster = Column(Boolean, nullable=False, default=False)

    # Metadata
    joined_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    promotion_history = relationship(
        "PromotionRecord",
        back_populates="member",
        cascade="all, delete-orphan",
        order_by="PromotionRecord.id",
        lazy="selectin"
    )

    __table_args__ = (
        CheckConstraint('rank_level >= 1', name='ck_member_rank_level_min'),
        CheckConstraint('rank_points >= 0', name='ck_member_rank_points_non_negative'),
        CheckConstraint('weekly_points >= 0', name='ck_member_weekly_points_non_negative'),
        CheckConstraint('all_time_points >= 0', name='ck_member_all_time_points_non_negative'),
    )

    _COUNTER_DEFAULTS = {
        'rank_level': 1,
        'rank_points': 0,
        'rank_lock_until': None,
        'rank_lock_notified': False,
        'promotion_eligible': False,
        'last_promotion_check': None,
        'weekly_points': 0,
        'all_time_points': 0,
        'daily_points_today': 0,
        'last_daily_reset': None,
        'quota_streak': 0,
        'last_quota_completion': None,
        'weekly_events': 0,
        'total_events': 0,
        'previous_weekly_points': 0,
        'is_booster': False,
    }

    def __init__(self, **kwargs):
        for key, value in self._COUNTER_DEFAULTS.items():
            kwargs.setdefault(key, value)
        kwargs.setdefault('unit', Unit.SWAT)
        kwargs.setdefault('display_name', str(kwargs.get('discord_id', 'unknown')))
        kwargs.setdefault('joined_at', utcnow())

        rank = RankLadders.default().rank_for(kwargs['unit'], kwargs['rank_level'])
        kwargs.setdefault('rank_name', rank.name)
        kwargs.setdefault('weekly_quota', rank.quota)
        kwargs.setdefault('quota_completed', kwargs['weekly_points'] >= kwargs['weekly_quota'])
        super().__init__(**kwargs)

    def is_rank_locked(self, now: Optional[datetime] = None) -> bool:
        return is_future(self.rank_lock_until, now or utcnow())

    def __repr__(self):
        return (f"<Member(discord_id={self.discord_id}, unit={self.unit.value if self.unit else None}, "
                f"rank='{self.rank_name}', rank_points={self.rank_points})>")

class PromotionRecord(Base):
    """Append-only promotion history entry."""
    __tablename__ = 'promotion_records'

    id = Column(Integer, primary_key=True)
    member_id = Column(Integer, ForeignKey('members.id', ondelete='CASCADE'), nullable=False, index=True)

    from_level = Column(Integer, nullable=False)
    from_name = Column(String(100), nullable=False)
    from_unit = Column(SQLEnum(Unit), nullable=False)
    to_level = Column(Integer, nullable=False)
    to_name = Column(String(100), nullable=False)
    to_unit = Column(SQLEnum(Unit), nullable=False)

    promoted_at = Column(DateTime, nullable=False)
    actor_id = Column(BigInteger, nullable=False)
    promotion_type = Column(SQLEnum(PromotionType), nullable=False, default=PromotionType.STANDARD)
    reason = Column(Text)

    # Snapshot at the moment of promotion
    rank_points_at_promotion = Column(Integer, nullable=False, default=0)
    all_time_points_at_promotion = Column(Integer, nullable=False, default=0)

    lock_days_applied = Column(Integer, nullable=False, default=0)
    lock_until_applied = Column(DateTime, nullable=True)

    member = relationship("Member", back_populates="promotion_history")

    def __repr__(self):
        return f"<PromotionRecord({self.from_name} -> {self.to_name}, type={self.promotion_type.value})>"

class EventLog(Base):
    """
    Audit trail of every point- or rank-affecting action.

    Rows are immutable once written. subject_id is the member's Discord id
    rather than a foreign key so tombstones outlive deleted members.
    """
    __tablename__ = 'event_logs'

    id = Column(Integer, primary_key=True)
    actor_id = Column(BigInteger, nullable=False, index=True)
    subject_id = Column(BigInteger, nullable=False, index=True)
    category = Column(SQLEnum(LogCategory), nullable=False, index=True)
    action = Column(String(50), nullable=False)  # e.g. "patrol_30min", "remove_all", "weekly_reset"
    point_delta = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=False)
    proof_reference = Column(String(500), nullable=True)
    details = Column(Text, nullable=True)  # JSON snapshot of before/after values
    created_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<EventLog(subject={self.subject_id}, category={self.category.value}, delta={self.point_delta})>"

# ============================================================================
# SQLAlchemy Event Listeners
# ============================================================================

@event.listens_for(EventLog, "before_update")
def _reject_event_log_update(mapper, connection, target):
    """Audit entries are written once and never modified"""
    raise ValueError(f"EventLog {target.id} is immutable")
