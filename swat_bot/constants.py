"""
Bot-wide constants for the SWAT bot.

This module contains the magic numbers used outside the rank and point
tables, which live in swat_bot.utils.ranks and swat_bot.utils.point_calculator.
"""

class UIConstants:
    """Constants for Discord UI elements."""

    # Embed colors
    ERROR_COLOR = 0xff0000         # Red for invalid input and system failures
    NOT_READY_COLOR = 0xffaa00     # Amber for "not allowed yet"
    NOT_FOUND_COLOR = 0xff6600     # Orange, same as HR action embeds

    # Emoji for UI elements
    ERROR_EMOJI = "❌"
    LOCK_EMOJI = "🔒"

class LogConstants:
    """Constants for event log lookups."""

    # Entries returned by a member log lookup unless told otherwise
    DEFAULT_LOG_LIMIT = 25

class LeaderboardConstants:
    """Constants for leaderboard pages."""

    DEFAULT_PAGE_SIZE = 10
    MAX_PAGE_SIZE = 50
