"""
Tests for the member defaults back-fill migration.
"""

from sqlalchemy import update

from migrations.backfill_member_defaults import upgrade
from swat_bot.database.models import Member


async def _add_member(database, discord_id, **fields):
    async with database.transaction() as session:
        session.add(Member(discord_id=discord_id, **fields))


async def _force_columns(database, discord_id, **values):
    # Bypass the constructor to reproduce rows written by older bot versions
    async with database.transaction() as session:
        await session.execute(update(Member).where(Member.discord_id == discord_id).values(**values))


async def _run_upgrade(database):
    async with database.get_session() as session:
        await upgrade(session)


async def _reload(database, discord_id):
    async with database.get_session() as session:
        return await database.find_member(discord_id, session)


class TestBackfillMemberDefaults:

    async def test_completion_rederived_when_rank_fields_match(self, database):
        await _add_member(database, 1)
        await _force_columns(database, 1, weekly_points=50, quota_completed=False)

        await _run_upgrade(database)

        member = await _reload(database, 1)
        assert (member.weekly_points, member.weekly_quota) == (50, 10)
        assert member.quota_completed is True

    async def test_stale_completion_cleared(self, database):
        await _add_member(database, 2, rank_level=2)
        await _force_columns(database, 2, weekly_points=5, quota_completed=True)

        await _run_upgrade(database)

        assert (await _reload(database, 2)).quota_completed is False

    async def test_rank_name_and_quota_rederived(self, database):
        await _add_member(database, 3, rank_level=4, weekly_points=22)
        await _force_columns(database, 3, rank_name="Operator II", weekly_quota=10, quota_completed=True)

        await _run_upgrade(database)

        member = await _reload(database, 3)
        assert member.rank_name == "Senior Operator"
        assert member.weekly_quota == 25
        assert member.quota_completed is False

    async def test_hand_picked_rank_points_zeroed(self, database):
        await _add_member(database, 4, rank_level=9)
        await _force_columns(database, 4, rank_points=40)

        await _run_upgrade(database)

        assert (await _reload(database, 4)).rank_points == 0

    async def test_consistent_rows_left_alone(self, database):
        await _add_member(database, 5, rank_level=3, weekly_points=25, rank_points=12, all_time_points=80)

        await _run_upgrade(database)

        member = await _reload(database, 5)
        assert (member.rank_name, member.weekly_quota, member.quota_completed) == ("Experienced Operator", 20, True)
        assert (member.rank_points, member.all_time_points) == (12, 80)
