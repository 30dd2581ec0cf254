"""
Cross-group ranking of third-placed teams.

Head-to-head is meaningless across groups, so entries are compared on the
global key only: points, goal difference, goals for.
"""

import copy
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .errors import ManualOverrideRejected
from .standings import GroupStandings, TeamStanding

THIRD_POSITION = 3


class ThirdPlaceEntry:
    """A group's third-placed team inside the global table."""

    def __init__(self, row: TeamStanding, from_group_needs_manual: bool = False):
        self.team_id = row.team_id
        self.group_code = row.group_code
        self.name = row.name
        self.is_placeholder = row.is_placeholder
        self.points = row.points
        self.goal_difference = row.goal_difference
        self.goals_for = row.goals_for
        self.goals_against = row.goals_against
        self.from_group_needs_manual = from_group_needs_manual
        self.global_rank: Optional[int] = None
        self.is_qualified = False
        self.needs_manual = False
        self.manual_override = False
        self.manual_reason: Optional[str] = None

    @property
    def key(self) -> Tuple[int, int, int]:
        return self.points, self.goal_difference, self.goals_for

    def copy(self) -> "ThirdPlaceEntry":
        return copy.copy(self)

    def to_dict(self) -> dict:
        return {
            "team_id": self.team_id,
            "group_code": self.group_code,
            "team_name": self.name,
            "is_placeholder": self.is_placeholder,
            "points": self.points,
            "goal_difference": self.goal_difference,
            "goals_for": self.goals_for,
            "goals_against": self.goals_against,
            "global_rank": self.global_rank,
            "is_qualified": self.is_qualified,
            "needs_manual": self.needs_manual,
            "manual_override": self.manual_override,
            "manual_reason": self.manual_reason,
            "from_group_needs_manual": self.from_group_needs_manual,
        }

    def __repr__(self):
        return f"3{self.group_code} {self.name or self.team_id}: {self.key}"


class ThirdPlaceRanking:
    """Ordered third-place table with its qualification cutoff."""

    def __init__(self, entries: List[ThirdPlaceEntry], quota: int, cutoff_key: Optional[Tuple] = None):
        self.entries = entries
        self.quota = quota
        self.cutoff_key = cutoff_key  # shared key of a tie spanning the cutoff
        self.final = False  # set by the caller once every group is complete

    @property
    def tie_block(self) -> List[ThirdPlaceEntry]:
        if self.cutoff_key is None:
            return []
        return [e for e in self.entries if e.key == self.cutoff_key]

    @property
    def tie_team_ids(self) -> Set[int]:
        return {e.team_id for e in self.tie_block}

    @property
    def locked(self) -> List[ThirdPlaceEntry]:
        """Entries that qualify no matter how the cutoff tie is settled."""
        if self.cutoff_key is None:
            return self.entries[:self.quota]
        tie_start = next(i for i, e in enumerate(self.entries) if e.key == self.cutoff_key)
        return self.entries[:tie_start]

    @property
    def open_slots(self) -> int:
        return self.quota - len(self.locked)

    @property
    def needs_manual_cut(self) -> bool:
        """A tie spans the cutoff and no manual decision covers it."""
        return any(e.needs_manual for e in self.tie_block)

    @property
    def qualified(self) -> List[ThirdPlaceEntry]:
        return [e for e in self.entries if e.is_qualified]

    def replace(self, entries: List[ThirdPlaceEntry]) -> "ThirdPlaceRanking":
        ranking = ThirdPlaceRanking(entries, self.quota, self.cutoff_key)
        ranking.final = self.final
        return ranking

    def to_dict(self) -> dict:
        return {
            "quota": self.quota,
            "needs_manual_cut": self.needs_manual_cut,
            "open_slots": self.open_slots,
            "final": self.final,
            "thirds": [e.to_dict() for e in self.entries],
        }


def rank_third_places(groups: Iterable[GroupStandings], quota: int) -> ThirdPlaceRanking:
    """
    Rank the third-placed team of every group and mark the qualifiers.

    The first ``quota`` entries qualify. When the entries either side of the
    cutoff share the same key, the whole block sharing that key is flagged
    ``needs_manual`` and none of it qualifies until an administrator decides.

    Args:
        groups: Ranked groups, in group-code order
        quota: Number of third-placed teams that advance

    Returns:
        ThirdPlaceRanking with global ranks assigned
    """
    groups = list(groups)
    entries = []
    for group in groups:
        if not group.standings:
            continue
        row = group.at_position(THIRD_POSITION)
        if row is not None:
            entries.append(ThirdPlaceEntry(row, from_group_needs_manual=row.needs_manual))

    entries.sort(key=lambda e: e.key, reverse=True)

    cutoff_key = None
    if 0 < quota < len(entries) and entries[quota - 1].key == entries[quota].key:
        cutoff_key = entries[quota - 1].key

    for index, entry in enumerate(entries):
        entry.global_rank = index + 1
        if cutoff_key is not None and entry.key == cutoff_key:
            entry.needs_manual = True
            entry.is_qualified = False
        else:
            entry.is_qualified = index < quota

    ranking = ThirdPlaceRanking(entries, quota, cutoff_key)
    ranking.final = bool(groups) and all(g.is_complete for g in groups)
    return ranking


def validate_manual_selection(ranking: ThirdPlaceRanking, qualified_team_ids: Sequence[int]) -> Set[int]:
    """
    Check an administrator's qualified set against the cutoff tie.

    Returns the selected ids inside the tie block. Raises
    ManualOverrideRejected with the first violated rule otherwise.
    """
    selected = list(qualified_team_ids)
    chosen = set(selected)

    if ranking.cutoff_key is None:
        raise ManualOverrideRejected("There is no tie at the qualification cutoff to resolve")

    if len(chosen) != len(selected):
        raise ManualOverrideRejected("qualified_team_ids contains duplicates")

    if len(selected) != ranking.quota:
        raise ManualOverrideRejected(f"qualified_team_ids must have exactly {ranking.quota} team ids")

    known = {e.team_id for e in ranking.entries}
    for team_id in selected:
        if team_id not in known:
            raise ManualOverrideRejected(f"team_id is not a third-placed team: {team_id}")

    for entry in ranking.locked:
        if entry.team_id not in chosen:
            raise ManualOverrideRejected(f"Cannot exclude fixed auto-qualified team_id: {entry.team_id}")

    locked_ids = {e.team_id for e in ranking.locked}
    tie_ids = ranking.tie_team_ids
    for team_id in selected:
        if team_id not in locked_ids and team_id not in tie_ids:
            raise ManualOverrideRejected(f"Invalid selection outside tie block: {team_id}")

    from_tie = chosen & tie_ids
    if len(from_tie) != ranking.open_slots:
        raise ManualOverrideRejected(
            f"Exactly {ranking.open_slots} team(s) must be selected from the tie block"
        )

    return from_tie
