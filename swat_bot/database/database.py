from typing import Optional, List
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy import select, func
from contextlib import asynccontextmanager

from swat_bot.config import Config
from swat_bot.database.models import Base, Member, EventLog
from swat_bot.utils.logger import setup_logger

class Database:
    def __init__(self, database_url: Optional[str] = None):
        self.logger = setup_logger(__name__)
        self.database_url = database_url or Config.DATABASE_URL
        self.engine = None
        self.async_session = None

    async def initialize(self):
        """Initialize the database connection and create tables"""
        self.logger.info("Initializing database...")

        # Convert sqlite URL to async if needed
        database_url = self.database_url
        if database_url.startswith('sqlite:///'):
            database_url = database_url.replace('sqlite:///', 'sqlite+aiosqlite:///')

        self.engine = create_async_engine(
            database_url,
            echo=Config.DEBUG,
            future=True
        )

        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        # Create all tables
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.logger.info("Database initialized successfully")

    @property
    def session_factory(self):
        """Session factory handed to the service layer"""
        if self.async_session is None:
            raise RuntimeError("Database.initialize() must be awaited first")
        return self.async_session

    @asynccontextmanager
    async def get_session(self):
        """Get a database session"""
        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    @asynccontextmanager
    async def transaction(self):
        """
        Create a transaction boundary for atomic operations.

        All work done with the yielded session is committed together on
        success, or rolled back together on failure.

        Usage:
            async with db.transaction() as session:
                member = await db.find_member(discord_id, session=session)
                ...
                await db.save_member(member, session=session)
                await db.append_log(entry, session=session)
        """
        async with self.async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def close(self):
        """Close the database connection"""
        if self.engine:
            await self.engine.dispose()
            self.logger.info("Database connection closed")

    # Member store
    async def find_member(self, discord_id: int, session: AsyncSession) -> Optional[Member]:
        """Get a member by their Discord ID"""
        result = await session.execute(
            select(Member).where(Member.discord_id == discord_id)
        )
        return result.scalar_one_or_none()

    async def find_members(self, session: AsyncSession, *criteria) -> List[Member]:
        """All members matching the given SQLAlchemy criteria, in insertion order"""
        stmt = select(Member).order_by(Member.id)
        if criteria:
            stmt = stmt.where(*criteria)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def count_members(self, session: AsyncSession, *criteria) -> int:
        stmt = select(func.count(Member.id))
        if criteria:
            stmt = stmt.where(*criteria)
        result = await session.execute(stmt)
        return result.scalar()

    async def save_member(self, member: Member, session: AsyncSession) -> Member:
        session.add(member)
        await session.flush()
        return member

    async def append_log(self, entry: EventLog, session: AsyncSession) -> EventLog:
        session.add(entry)
        await session.flush()
        return entry

    async def get_logs_for_member(self, discord_id: int, session: AsyncSession,
                                  limit: Optional[int] = None) -> List[EventLog]:
        """Event log entries for a member, newest first"""
        stmt = (
            select(EventLog)
            .where(EventLog.subject_id == discord_id)
            .order_by(EventLog.created_at.desc(), EventLog.id.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    # Leaderboards
    async def get_top_members(self, session: AsyncSession, column, limit: int = 10,
                              offset: int = 0) -> List[Member]:
        """Members ordered by a points column, highest first; ties keep join order"""
        result = await session.execute(
            select(Member)
            .order_by(column.desc(), Member.id)
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def get_member_position(self, session: AsyncSession, column, points: int) -> int:
        """1-based standing for a points value: members strictly ahead plus one"""
        ahead = await session.scalar(select(func.count(Member.id)).where(column > points))
        return (ahead or 0) + 1
