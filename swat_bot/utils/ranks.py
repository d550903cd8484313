"""
Rank ladders for the two SWAT units.

Both units share one numeric table (thresholds, locks, quotas, hand-picked
gates); only names and emoji differ. The per-unit ladders are generated from
that table plus a naming overlay so the numbers cannot drift apart.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from swat_bot.utils.exceptions import InvalidInputError


class Unit(Enum):
    SWAT = "SWAT"
    CMU = "CMU"


class RankTier(Enum):
    OPERATIONAL = "operational"
    SUPERVISOR = "supervisor"
    HAND_PICKED = "hand_picked"


@dataclass(frozen=True)
class RankRequirement:
    """Unit-agnostic rules for one rank level."""
    level: int
    points_required: int  # Rank points needed to be promoted INTO this level
    lock_days: int        # Lock applied on arrival, 0 means none
    quota: int            # Weekly point target while at this level
    hand_picked: bool = False
    tier: RankTier = RankTier.OPERATIONAL


DEFAULT_REQUIREMENTS: Tuple[RankRequirement, ...] = (
    RankRequirement(1, 0, 0, 10),
    RankRequirement(2, 65, 3, 20),
    RankRequirement(3, 65, 3, 20),
    RankRequirement(4, 85, 5, 25),
    RankRequirement(5, 100, 5, 25),
    RankRequirement(6, 120, 7, 30, tier=RankTier.SUPERVISOR),
    RankRequirement(7, 150, 7, 30, tier=RankTier.SUPERVISOR),
    RankRequirement(8, 180, 7, 30, tier=RankTier.SUPERVISOR),
    RankRequirement(9, 0, 0, 15, hand_picked=True, tier=RankTier.HAND_PICKED),
    RankRequirement(10, 0, 0, 15, hand_picked=True, tier=RankTier.HAND_PICKED),
)

# (name, emoji) per level, index 0 is level 1
UNIT_RANK_NAMES: Dict[Unit, Tuple[Tuple[str, str], ...]] = {
    Unit.SWAT: (
        ('Probationary Operator', ''),
        ('Junior Operator', ''),
        ('Experienced Operator', ''),
        ('Senior Operator', ''),
        ('Specialized Operator', ''),
        ('Elite Operator', '⚡'),
        ('Elite Operator I Class', '⚡⚡'),
        ('Elite Operator II Class', '⚡⚡⚡'),
        ('Executive Operator', '⭐'),
        ('SWAT Commander', '👑'),
    ),
    Unit.CMU: (
        ('Responder In Training', ''),
        ('Junior Responder', ''),
        ('Responder', ''),
        ('Senior Responder', ''),
        ('Specialist Responder', ''),
        ('Lead Responder', '⚕️'),
        ('Field Supervisor', '⚕️⚕️'),
        ('Senior Field Supervisor', '⚕️⚕️⚕️'),
        ('CMU Deputy Director', '⭐'),
        ('CMU Director', '👑'),
    ),
}


@dataclass(frozen=True)
class Rank:
    """A concrete rank: shared requirement plus the unit's name for it."""
    unit: Unit
    name: str
    emoji: str
    requirement: RankRequirement

    @property
    def level(self) -> int:
        return self.requirement.level

    @property
    def points_required(self) -> int:
        return self.requirement.points_required

    @property
    def lock_days(self) -> int:
        return self.requirement.lock_days

    @property
    def quota(self) -> int:
        return self.requirement.quota

    @property
    def hand_picked(self) -> bool:
        return self.requirement.hand_picked

    @property
    def tier(self) -> RankTier:
        return self.requirement.tier

    @property
    def display(self) -> str:
        return f"{self.emoji} {self.name}" if self.emoji else self.name


class RankLadder:
    """Ordered ranks of a single unit, indexed by level starting at 1."""

    def __init__(self, unit: Unit, ranks: Sequence[Rank]):
        self.unit = unit
        self._ranks: Tuple[Rank, ...] = tuple(ranks)

    @property
    def ranks(self) -> Tuple[Rank, ...]:
        return self._ranks

    @property
    def max_level(self) -> int:
        return len(self._ranks)

    @property
    def first(self) -> Rank:
        return self._ranks[0]

    def get(self, level: int) -> Rank:
        if not 1 <= level <= self.max_level:
            raise InvalidInputError(f"Rank level must be between 1 and {self.max_level}, got {level}")
        return self._ranks[level - 1]

    def next_rank(self, level: int) -> Optional[Rank]:
        """Rank above `level`, or None when `level` is the top of the ladder."""
        current = self.get(level)
        if current.level == self.max_level:
            return None
        return self._ranks[current.level]

    def by_name(self, name: str) -> Optional[Rank]:
        wanted = name.strip().lower()
        for rank in self._ranks:
            if rank.name.lower() == wanted:
                return rank
        return None


class RankLadders:
    """The per-unit ladders, generated once and shared by every engine."""

    def __init__(self, ladders: Dict[Unit, RankLadder]):
        self._ladders = dict(ladders)

    @classmethod
    def build(cls, requirements: Iterable[RankRequirement] = DEFAULT_REQUIREMENTS,
              names: Dict[Unit, Sequence[Tuple[str, str]]] = None) -> 'RankLadders':
        """
        Generate a ladder per unit from one requirement table and a name overlay.

        Raises:
            ValueError: If levels are not 1..N in order or an overlay has the
                wrong number of names
        """
        requirements = tuple(requirements)
        names = UNIT_RANK_NAMES if names is None else names

        expected_levels = list(range(1, len(requirements) + 1))
        if [r.level for r in requirements] != expected_levels:
            raise ValueError("Rank requirements must be ordered levels 1..N")

        ladders = {}
        for unit, overlay in names.items():
            if len(overlay) != len(requirements):
                raise ValueError(
                    f"{unit.value} ladder has {len(overlay)} names for {len(requirements)} levels"
                )
            ranks = [
                Rank(unit=unit, name=name, emoji=emoji, requirement=requirement)
                for requirement, (name, emoji) in zip(requirements, overlay)
            ]
            ladders[unit] = RankLadder(unit, ranks)
        return cls(ladders)

    @classmethod
    def default(cls) -> 'RankLadders':
        return _DEFAULT_LADDERS

    @property
    def units(self) -> List[Unit]:
        return list(self._ladders)

    def for_unit(self, unit: Unit) -> RankLadder:
        return self._ladders[unit]

    def rank_for(self, unit: Unit, level: int) -> Rank:
        return self.for_unit(unit).get(level)

    def next_rank(self, level: int, unit: Unit) -> Optional[Rank]:
        return self.for_unit(unit).next_rank(level)

    def requirement(self, level: int) -> RankRequirement:
        # Numeric rules are identical across units, any ladder answers
        return next(iter(self._ladders.values())).get(level).requirement

    def find_by_name(self, name: str) -> Optional[Rank]:
        for ladder in self._ladders.values():
            rank = ladder.by_name(name)
            if rank:
                return rank
        return None


_DEFAULT_LADDERS = RankLadders.build()
