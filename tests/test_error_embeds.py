"""
Tests for mapping engine errors onto chat embeds.
"""

import pytest

from swat_bot.constants import UIConstants
from swat_bot.utils.error_embeds import ErrorEmbeds
from swat_bot.utils.exceptions import (
    AlreadyAtMaxRankError, ErrorKind, InvalidInputError, MemberNotFoundError,
    NotEligibleError, PersistenceError, WeeklyResetError
)


class TestErrorKinds:

    def test_kinds_are_distinct_per_family(self):
        assert InvalidInputError("x").kind is ErrorKind.INVALID_INPUT
        assert MemberNotFoundError(1).kind is ErrorKind.NOT_FOUND
        assert AlreadyAtMaxRankError("SWAT Commander").kind is ErrorKind.NOT_ALLOWED_YET
        assert PersistenceError("save").kind is ErrorKind.SYSTEM_FAILURE
        assert WeeklyResetError(3, ["boom"]).kind is ErrorKind.SYSTEM_FAILURE

    def test_weekly_reset_error_is_a_persistence_error(self):
        error = WeeklyResetError(3, ["a", "b"])
        assert isinstance(error, PersistenceError)
        assert "2 member(s) failed" in str(error)


class TestFromException:

    def test_invalid_input(self):
        embed = ErrorEmbeds.from_exception(InvalidInputError("Quantity must be between 1 and 20!"))
        assert embed.title == "Invalid Input"
        assert embed.description == "❌ Quantity must be between 1 and 20!"
        assert embed.color.value == UIConstants.ERROR_COLOR

    def test_member_not_found(self):
        embed = ErrorEmbeds.from_exception(MemberNotFoundError(42))
        assert embed.title == "Operator Not Found"

    def test_not_eligible(self, promotion_engine, make_member, now):
        eligibility = promotion_engine.check_eligibility(make_member(rank_points=10), now)

        embed = ErrorEmbeds.from_exception(NotEligibleError(eligibility))

        assert embed.title == f"{UIConstants.LOCK_EMOJI} Not Allowed Yet"
        assert "55 more rank points" in embed.description
        assert embed.color.value == UIConstants.NOT_READY_COLOR

    def test_max_rank_is_not_allowed_yet(self):
        embed = ErrorEmbeds.from_exception(AlreadyAtMaxRankError("SWAT Commander"))
        assert embed.title.endswith("Not Allowed Yet")

    @pytest.mark.parametrize("error", [PersistenceError("save", "locked"), RuntimeError("unexpected")])
    def test_system_failures(self, error):
        assert ErrorEmbeds.from_exception(error).title == "Database Error"

    def test_permission_denied(self):
        assert ErrorEmbeds.permission_denied().title == "Permission Denied"
