"""
Centralized error embeds for consistent error handling across the SWAT bot.

Maps the engine's error kinds onto distinct embeds so members can tell
"your input was invalid" from "not allowed yet" from "the system failed".
"""

import discord
from typing import Optional

from swat_bot.constants import UIConstants
from swat_bot.utils.exceptions import ErrorKind, SwatBotError


class ErrorEmbeds:
    """Centralized error embed factory for consistent error handling."""

    @staticmethod
    def invalid_input(message: str) -> discord.Embed:
        """Create embed for invalid user input."""
        return discord.Embed(
            title="Invalid Input",
            description=message,
            color=UIConstants.ERROR_COLOR
        )

    @staticmethod
    def member_not_found(member: Optional[discord.abc.User] = None) -> discord.Embed:
        """Create embed for when a member has no record yet."""
        if member:
            description = f"{member.mention} has no SWAT record yet!\n\nUse `/submit-event` to log a first activity."
        else:
            description = "This operator has no SWAT record yet!\n\nUse `/submit-event` to log a first activity."

        return discord.Embed(
            title="Operator Not Found",
            description=description,
            color=UIConstants.NOT_FOUND_COLOR
        )

    @staticmethod
    def not_eligible(message: str) -> discord.Embed:
        """Create embed for actions that are valid but not allowed yet."""
        return discord.Embed(
            title=f"{UIConstants.LOCK_EMOJI} Not Allowed Yet",
            description=message,
            color=UIConstants.NOT_READY_COLOR
        )

    @staticmethod
    def database_error() -> discord.Embed:
        """Create embed for database-related errors."""
        return discord.Embed(
            title="Database Error",
            description="A database error occurred. Please try again later or contact HR.",
            color=UIConstants.ERROR_COLOR
        )

    @staticmethod
    def permission_denied() -> discord.Embed:
        """Create embed for permission errors."""
        return discord.Embed(
            title="Permission Denied",
            description="Only HR can use this command!",
            color=UIConstants.ERROR_COLOR
        )

    @staticmethod
    def from_exception(error: Exception) -> discord.Embed:
        """Pick the embed matching an engine error's kind. Unknown errors render as system failures."""
        if not isinstance(error, SwatBotError):
            return ErrorEmbeds.database_error()

        if error.kind is ErrorKind.INVALID_INPUT:
            return ErrorEmbeds.invalid_input(error.user_message)
        if error.kind is ErrorKind.NOT_FOUND:
            return ErrorEmbeds.member_not_found()
        if error.kind is ErrorKind.NOT_ALLOWED_YET:
            return ErrorEmbeds.not_eligible(error.user_message)
        return ErrorEmbeds.database_error()
