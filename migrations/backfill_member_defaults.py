"""
Back-fill member defaults

Rows imported from older bot versions can hold NULL counters, a missing
unit, or a rank name/quota that no longer matches the rank table. This
migration fills every NULL with the schema default once and re-derives the
denormalized rank fields, so the engine can rely on complete records.
"""

import asyncio
from sqlalchemy import text
from swat_bot.database.database import Database
from swat_bot.utils.exceptions import InvalidInputError
from swat_bot.utils.logger import setup_logger
from swat_bot.utils.ranks import RankLadders, Unit

logger = setup_logger(__name__)

# column -> default written where the column is NULL
COLUMN_DEFAULTS = [
    ("unit", "'SWAT'"),
    ("rank_level", "1"),
    ("rank_points", "0"),
    ("rank_lock_notified", "0"),
    ("promotion_eligible", "0"),
    ("weekly_points", "0"),
    ("all_time_points", "0"),
    ("quota_completed", "0"),
    ("daily_points_today", "0"),
    ("quota_streak", "0"),
    ("weekly_events", "0"),
    ("total_events", "0"),
    ("previous_weekly_points", "0"),
    ("is_booster", "0"),
]


async def upgrade(session):
    """Fill NULL member fields and re-derive rank name, quota and completion."""

    for column_name, default_sql in COLUMN_DEFAULTS:
        result = await session.execute(text(
            f"UPDATE members SET {column_name} = {default_sql} WHERE {column_name} IS NULL"
        ))
        if result.rowcount:
            logger.info(f"Back-filled {result.rowcount} NULL values in {column_name}")

    ladders = RankLadders.default()
    rows = await session.execute(text(
        "SELECT id, unit, rank_level, rank_name, weekly_quota, weekly_points, rank_points, quota_completed "
        "FROM members"
    ))

    fixed = 0
    for (member_id, unit, rank_level, rank_name, weekly_quota,
         weekly_points, rank_points, quota_completed) in rows.fetchall():
        try:
            rank = ladders.rank_for(Unit(unit), rank_level)
        except (ValueError, InvalidInputError) as e:
            logger.warning(f"Member row {member_id} has an unusable rank ({unit}, {rank_level}): {e}")
            continue

        new_rank_points = 0 if rank.hand_picked else rank_points
        completed = weekly_points >= rank.quota
        current = (rank_name, weekly_quota, rank_points, bool(quota_completed))
        if current == (rank.name, rank.quota, new_rank_points, completed):
            continue

        await session.execute(
            text(
                "UPDATE members SET rank_name = :rank_name, weekly_quota = :quota, "
                "quota_completed = :completed, rank_points = :rank_points WHERE id = :id"
            ),
            {
                "rank_name": rank.name,
                "quota": rank.quota,
                "completed": 1 if completed else 0,
                "rank_points": new_rank_points,
                "id": member_id,
            }
        )
        fixed += 1

    await session.commit()
    logger.info(f"Member defaults back-fill completed ({fixed} rank fields re-derived)")


async def main():
    """Run the migration."""
    db = Database()
    await db.initialize()

    async with db.get_session() as session:
        await upgrade(session)

    await db.close()


if __name__ == "__main__":
    asyncio.run(main())
