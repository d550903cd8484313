from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from swat_bot.config import Config
from swat_bot.utils.exceptions import InvalidInputError


@dataclass(frozen=True)
class ActivityType:
    """One kind of in-game activity a member can submit proof for."""
    key: str
    name: str
    base_points: int
    bonus_eligible: bool = False  # Each qualifying attendee adds +1 per event


@dataclass(frozen=True)
class PointBreakdown:
    """Intermediate values of a point calculation, for confirmation messages."""
    activity_type: str
    base_points: int
    bonus_points: int
    per_event_points: int
    booster_applied: bool
    quantity: int
    total: int


DEFAULT_ACTIVITIES: Tuple[ActivityType, ...] = (
    ActivityType('patrol_30min', '30-Minute Patrol', 1),
    ActivityType('attend_event', 'Attending an Event', 2),
    ActivityType('attend_swat_event', 'Attending SWAT Event', 3),
    ActivityType('host_swat_event', 'Co-Hosting/Hosting SWAT Event', 4),
    ActivityType('backup_request', 'Backup Request', 3),
    ActivityType('ghost_protection_good', 'GHOST Protection [Good Rating]', 4),
    ActivityType('ghost_protection_bad', 'GHOST Protection [Bad Rating]', 2),
    ActivityType('tet_private', 'TET [Private Tryout]', 1, bonus_eligible=True),
    ActivityType('tet_public', 'TET [Public Tryout]', 2, bonus_eligible=True),
    ActivityType('slrpd_inspection', 'SLRPD Inspection Ceremony', 2),
    ActivityType('combat_training', 'Combat Training', 1),
    ActivityType('swat_inspection', 'SWAT Inspection Ceremony', 3),
    ActivityType('gang_deployment', 'Gang Deployment', 4),
)


class PointCalculator:
    """Maps activity submissions to point totals. Stateless apart from the activity table."""

    def __init__(self, activities: Iterable[ActivityType] = DEFAULT_ACTIVITIES):
        self._activities: Dict[str, ActivityType] = {a.key: a for a in activities}

    def base_points(self, activity_type: str) -> int:
        """
        Base point value of an activity.

        Returns 0 for unknown types; callers must treat 0 as an invalid
        type rather than a free activity.
        """
        activity = self._activities.get(activity_type)
        return activity.base_points if activity else 0

    def is_bonus_eligible(self, activity_type: str) -> bool:
        activity = self._activities.get(activity_type)
        return bool(activity and activity.bonus_eligible)

    def activity_name(self, activity_type: str) -> str:
        activity = self._activities.get(activity_type)
        return activity.name if activity else activity_type

    def activity_types(self) -> List[str]:
        return list(self._activities)

    def validate(self, activity_type: str, quantity: int, bonus_units: int = 0) -> None:
        """
        Reject submissions the calculator must never see.

        Raises:
            InvalidInputError: Unknown activity, quantity outside
                [MIN_QUANTITY, MAX_QUANTITY], bonus units outside
                [0, MAX_BONUS_UNITS], or bonus units on an activity that
                does not take them
        """
        if activity_type not in self._activities:
            raise InvalidInputError(f"Unknown activity type '{activity_type}'")
        if not Config.MIN_QUANTITY <= quantity <= Config.MAX_QUANTITY:
            raise InvalidInputError(
                f"Quantity must be between {Config.MIN_QUANTITY} and {Config.MAX_QUANTITY}!"
            )
        if not 0 <= bonus_units <= Config.MAX_BONUS_UNITS:
            raise InvalidInputError(
                f"Attendees passed must be between 0 and {Config.MAX_BONUS_UNITS}!"
            )
        if bonus_units and not self.is_bonus_eligible(activity_type):
            raise InvalidInputError(
                f"{self.activity_name(activity_type)} does not award attendee bonuses"
            )

    def breakdown(self, activity_type: str, quantity: int = 1,
                  booster_active: bool = False, bonus_units: int = 0) -> PointBreakdown:
        self.validate(activity_type, quantity, bonus_units)

        base = self.base_points(activity_type)
        bonus = bonus_units if self.is_bonus_eligible(activity_type) else 0
        per_event = base + bonus
        if booster_active:
            per_event *= Config.BOOSTER_MULTIPLIER

        return PointBreakdown(
            activity_type=activity_type,
            base_points=base,
            bonus_points=bonus,
            per_event_points=per_event,
            booster_applied=booster_active,
            quantity=quantity,
            total=per_event * quantity,
        )

    def total_points(self, activity_type: str, quantity: int = 1,
                     booster_active: bool = False, bonus_units: int = 0) -> int:
        """
        Total points for a submission.

        per_event = base + bonus (eligible types only), doubled for boosters,
        then multiplied by quantity.
        """
        return self.breakdown(activity_type, quantity, booster_active, bonus_units).total
