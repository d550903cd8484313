"""
Exceptions for the rank & quota engine with user-friendly error messages.

Every error carries an ErrorKind so the chat layer can tell apart
"your input was invalid", "you are not allowed to do that yet" and
"the system failed" without inspecting exception classes.
"""

from enum import Enum
from typing import List, Optional


class ErrorKind(Enum):
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    NOT_ALLOWED_YET = "not_allowed_yet"
    SYSTEM_FAILURE = "system_failure"


class SwatBotError(Exception):
    """Base exception for engine errors."""
    kind = ErrorKind.SYSTEM_FAILURE

    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message


class InvalidInputError(SwatBotError):
    """Raised when parameters are malformed or out of range. Nothing is mutated."""
    kind = ErrorKind.INVALID_INPUT

    def __init__(self, reason: str):
        super().__init__(f"Invalid input: {reason}", f"❌ {reason}")
        self.reason = reason


class MemberNotFoundError(SwatBotError):
    """Raised when an operation addresses a member that has no record."""
    kind = ErrorKind.NOT_FOUND

    def __init__(self, discord_id: int):
        super().__init__(
            f"Member {discord_id} not found",
            "❌ That operator is not in the database yet."
        )
        self.discord_id = discord_id


class NotEligibleError(SwatBotError):
    """Raised when a promotion is approved for a member who does not qualify."""
    kind = ErrorKind.NOT_ALLOWED_YET

    def __init__(self, eligibility):
        super().__init__(
            f"Member not eligible for promotion ({eligibility.state.value}): {eligibility.reason}",
            f"❌ Not eligible for promotion: {eligibility.reason}"
        )
        self.eligibility = eligibility
        self.state = eligibility.state


class AlreadyAtMaxRankError(SwatBotError):
    """Raised when a promotion is attempted with no rank above the current one."""
    kind = ErrorKind.NOT_ALLOWED_YET

    def __init__(self, rank_name: str):
        super().__init__(
            f"Already at maximum rank '{rank_name}'",
            f"❌ {rank_name} is the highest rank, there is nothing to promote to."
        )
        self.rank_name = rank_name


class PersistenceError(SwatBotError):
    """Raised when saving a record or log entry fails."""
    kind = ErrorKind.SYSTEM_FAILURE

    def __init__(self, operation: str, details: str = None, member_id: Optional[int] = None):
        target = f" for member {member_id}" if member_id is not None else ""
        super().__init__(
            f"Database error during {operation}{target}: {details}",
            "❌ Database error occurred. Please try again later."
        )
        self.operation = operation
        self.member_id = member_id


class WeeklyResetError(PersistenceError):
    """Raised when a weekly reset could not be applied to every member."""

    def __init__(self, members_updated: int, errors: List):
        super().__init__(
            "weekly reset",
            f"{len(errors)} member(s) failed, {members_updated} updated"
        )
        self.members_updated = members_updated
        self.errors = errors
