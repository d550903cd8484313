"""
Event log entry construction.

Operations never persist entries themselves: they build an EventLog and hand
it back to the caller (or to an `append` sink during bulk runs), so a record
and its audit entry are saved together after all computation succeeded.
"""

import json
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from swat_bot.database.models import EventLog, LogCategory, Member
from swat_bot.utils.time_utils import utcnow

# Actor id recorded for automated, non-human actions
SYSTEM_ACTOR_ID = 0

LogSink = Callable[[EventLog], None]


def member_snapshot(member: Member) -> Dict[str, Any]:
    """Point and rank fields worth recording before/after a mutation."""
    return {
        'weekly_points': member.weekly_points,
        'all_time_points': member.all_time_points,
        'rank_points': member.rank_points,
        'rank_level': member.rank_level,
        'rank_name': member.rank_name,
        'unit': member.unit.value,
        'weekly_quota': member.weekly_quota,
        'quota_completed': member.quota_completed,
        'promotion_eligible': member.promotion_eligible,
    }


def _json_default(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, 'value'):
        return value.value
    raise TypeError(f"Cannot serialize {type(value).__name__}")


def build_log_entry(
    *,
    actor_id: int,
    subject_id: int,
    category: LogCategory,
    action: str,
    description: str,
    point_delta: int = 0,
    proof_reference: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None
) -> EventLog:
    """Create an unsaved, immutable audit entry."""
    return EventLog(
        actor_id=actor_id,
        subject_id=subject_id,
        category=category,
        action=action,
        point_delta=point_delta,
        description=description,
        proof_reference=proof_reference,
        details=json.dumps(details, default=_json_default) if details is not None else None,
        created_at=now or utcnow(),
    )


def read_details(entry: EventLog) -> Dict[str, Any]:
    return json.loads(entry.details) if entry.details else {}
