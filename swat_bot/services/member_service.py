"""
Member Service

Database-backed entry points for everything that mutates a single member:
activity submissions, HR point adjustments, unit transfers, booster sync and
deletion. Each call loads the member, runs the matching MemberOperations
method, and commits the member together with its log entry.
"""

import logging
from datetime import datetime
from typing import List, Optional
from sqlalchemy import delete

from swat_bot.constants import LogConstants
from swat_bot.database.models import EventLog, Member
from swat_bot.operations.member_operations import (
    AdjustmentOutcome, AdjustmentRequest, MemberOperations, SubmissionOutcome,
    SubmissionRequest, UnitTransferOutcome
)
from swat_bot.services.base import BaseService
from swat_bot.utils.exceptions import MemberNotFoundError
from swat_bot.utils.ranks import Unit

logger = logging.getLogger(__name__)

class MemberService(BaseService):
    """Service for per-member point and identity changes."""

    def __init__(self, database, operations: MemberOperations):
        super().__init__(database.session_factory)
        self.db = database
        self.operations = operations

    async def _require_member(self, session, discord_id: int) -> Member:
        member = await self.db.find_member(discord_id, session)
        if member is None:
            raise MemberNotFoundError(discord_id)
        return member

    async def submit_activity(self, request: SubmissionRequest,
                              now: Optional[datetime] = None) -> SubmissionOutcome:
        """
        Record an activity submission, creating the member on first submission.

        Raises:
            InvalidInputError: Submission rejected before any record was touched
            PersistenceError: Save failed; nothing was committed
        """
        # Reject bad input before opening a session
        self.operations.calculator.validate(request.activity_type, request.quantity, request.bonus_units)

        async with self.get_session('activity submission', member_id=request.discord_id) as session:
            member = await self.db.find_member(request.discord_id, session)
            created = member is None
            if created:
                member = self.operations.new_member(request.discord_id, request.display_name)
                logger.info(f"Created member record for {member.display_name} ({member.discord_id})")

            outcome = self.operations.apply_submission(member, request, now)
            outcome.member_created = created

            await self.db.save_member(member, session)
            await self.db.append_log(outcome.log_entry, session)

        return outcome

    async def adjust_points(self, request: AdjustmentRequest,
                            now: Optional[datetime] = None) -> AdjustmentOutcome:
        """
        Apply an HR point adjustment to an existing member.

        Raises:
            MemberNotFoundError: Target has no record
            InvalidInputError: Bad amount or missing remove_all reason
        """
        async with self.get_session('point adjustment', member_id=request.target_id) as session:
            member = await self._require_member(session, request.target_id)
            outcome = self.operations.adjust_points(member, request, now)
            await self.db.save_member(member, session)
            await self.db.append_log(outcome.log_entry, session)
        return outcome

    async def get_member(self, discord_id: int) -> Optional[Member]:
        async with self.get_session('member lookup', member_id=discord_id) as session:
            return await self.db.find_member(discord_id, session)

    async def transfer_unit(self, discord_id: int, unit: Unit, actor_id: int, reason: str,
                            now: Optional[datetime] = None) -> UnitTransferOutcome:
        async with self.get_session('unit transfer', member_id=discord_id) as session:
            member = await self._require_member(session, discord_id)
            outcome = self.operations.transfer_unit(member, unit, actor_id, reason, now)
            await self.db.save_member(member, session)
            await self.db.append_log(outcome.log_entry, session)
        return outcome

    async def sync_booster(self, discord_id: int, is_booster: bool, display_name: str = None,
                           now: Optional[datetime] = None) -> bool:
        """
        Store the member's current booster status.

        Members without a record are skipped. Returns True when the flag changed.
        """
        async with self.get_session('booster sync', member_id=discord_id) as session:
            member = await self.db.find_member(discord_id, session)
            if member is None:
                logger.debug(f"Booster sync skipped for unknown member {discord_id}")
                return False

            self.operations.refresh_display_name(member, display_name)
            entry = self.operations.sync_booster(member, is_booster, now)
            await self.db.save_member(member, session)
            if entry is None:
                return False
            await self.db.append_log(entry, session)
        return True

    async def delete_member(self, discord_id: int, actor_id: int, reason: str,
                            purge_logs: bool = False, now: Optional[datetime] = None) -> int:
        """
        Hard-delete a member and their promotion history.

        Event log entries are kept unless `purge_logs` is set; either way a
        DELETION tombstone is written last. Returns the number of purged entries.

        Raises:
            MemberNotFoundError: No such member
            InvalidInputError: Missing or too-short reason
        """
        async with self.get_session('member deletion', member_id=discord_id) as session:
            member = await self._require_member(session, discord_id)
            purged = 0
            if purge_logs:
                purged = len(await self.db.get_logs_for_member(discord_id, session))

            # Builds (and validates) the tombstone before anything is removed
            tombstone = self.operations.tombstone(member, actor_id, reason, purged, now)

            if purge_logs:
                await session.execute(delete(EventLog).where(EventLog.subject_id == discord_id))
            await session.delete(member)
            await self.db.append_log(tombstone, session)

        logger.warning(f"MEMBER DELETED: {discord_id} by {actor_id} ({purged} log entries purged) - {reason}")
        return purged

    async def get_logs(self, discord_id: int, limit: Optional[int] = LogConstants.DEFAULT_LOG_LIMIT) -> List[EventLog]:
        async with self.get_session('log lookup', member_id=discord_id) as session:
            return await self.db.get_logs_for_member(discord_id, session, limit=limit)
