"""
Group standings calculation based on confirmed match results.
"""

import copy
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import InvalidInput

POINTS_FOR_WIN = 3
POINTS_FOR_DRAW = 1


@dataclass
class MatchResult:
    """A match as supplied by the results collaborator."""
    home_team_id: int
    away_team_id: int
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    confirmed: bool = False
    group_code: Optional[str] = None
    phase: Optional[str] = None
    match_number: Optional[int] = None
    advance_team_id: Optional[int] = None  # knockout only, for level scores

    @property
    def counts_for_standings(self) -> bool:
        return self.confirmed and self.home_score is not None and self.away_score is not None


@dataclass
class RosterTeam:
    """A team entry of the season roster, possibly a placeholder."""
    team_id: int
    group_code: Optional[str] = None
    name: Optional[str] = None
    is_placeholder: bool = False
    placeholder_rule: Optional[str] = None
    reference: Optional[object] = None  # parsed placeholder reference


class TeamStanding:
    """Represents a team's standing in a group."""

    def __init__(self, team: RosterTeam, group_code: str):
        self.team_id = team.team_id
        self.group_code = group_code
        self.name = team.name
        self.is_placeholder = team.is_placeholder
        self.played = 0
        self.won = 0
        self.drawn = 0
        self.lost = 0
        self.goals_for = 0
        self.goals_against = 0
        self.points = 0
        self.position: Optional[int] = None
        self.needs_manual = False
        self.tie_block: Optional[int] = None  # shared by rows flagged together
        self.manual_override = False
        self.manual_reason: Optional[str] = None

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    @property
    def win_percentage(self) -> float:
        decided = self.won + self.lost
        return self.won / decided if decided else 0.0

    def record(self, scored: int, conceded: int):
        """Add one confirmed result to the row."""
        self.played += 1
        self.goals_for += scored
        self.goals_against += conceded

        if scored > conceded:
            self.won += 1
            self.points += POINTS_FOR_WIN
        elif scored < conceded:
            self.lost += 1
        else:
            self.drawn += 1
            self.points += POINTS_FOR_DRAW

    def copy(self) -> "TeamStanding":
        return copy.copy(self)

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "team_id": self.team_id,
            "group_code": self.group_code,
            "team_name": self.name,
            "is_placeholder": self.is_placeholder,
            "played": self.played,
            "won": self.won,
            "drawn": self.drawn,
            "lost": self.lost,
            "goals_for": self.goals_for,
            "goals_against": self.goals_against,
            "goal_difference": self.goal_difference,
            "points": self.points,
            "position": self.position,
            "needs_manual": self.needs_manual,
            "manual_override": self.manual_override,
            "manual_reason": self.manual_reason,
        }

    def __repr__(self):
        return f"{self.name or self.team_id}: {self.points}pts (GD: {self.goal_difference})"


class GroupStandings:
    """Ordered standings of one group plus its completeness report."""

    def __init__(
        self,
        group_code: str,
        standings: List[TeamStanding],
        confirmed_matches: int,
        expected_matches: int,
    ):
        self.group_code = group_code
        self.standings = standings
        self.confirmed_matches = confirmed_matches
        self.expected_matches = expected_matches

    @property
    def is_complete(self) -> bool:
        return self.expected_matches > 0 and self.confirmed_matches == self.expected_matches

    @property
    def needs_manual(self) -> bool:
        return any(row.needs_manual for row in self.standings)

    def at_position(self, position: int) -> Optional[TeamStanding]:
        """Return the row holding ``position``, or None if nobody holds it."""
        if not self.standings:
            raise InvalidInput(f"Group {self.group_code} has no teams")
        for row in self.standings:
            if row.position == position:
                return row
        return None

    def replace(self, standings: List[TeamStanding]) -> "GroupStandings":
        return GroupStandings(self.group_code, standings, self.confirmed_matches, self.expected_matches)

    def to_dict(self) -> dict:
        return {
            "group_code": self.group_code,
            "confirmed_matches": self.confirmed_matches,
            "expected_matches": self.expected_matches,
            "is_complete": self.is_complete,
            "needs_manual": self.needs_manual,
            "standings": [row.to_dict() for row in self.standings],
        }


def expected_matches(team_count: int) -> int:
    """Matches in a single round robin of ``team_count`` teams."""
    if team_count <= 1:
        return 0
    return team_count * (team_count - 1) // 2


def group_results(group_code: str, team_ids: Iterable[int], results: Iterable[MatchResult]) -> List[MatchResult]:
    """Confirmed results of a group where both sides belong to it."""
    members = set(team_ids)
    return [
        m for m in results
        if m.group_code == group_code
        and m.counts_for_standings
        and m.home_team_id in members
        and m.away_team_id in members
    ]


def build_group_table(
    group_code: str,
    teams: Sequence[RosterTeam],
    results: Iterable[MatchResult],
) -> Tuple[List[TeamStanding], List[MatchResult]]:
    """
    Aggregate confirmed results into one row per team of the group.

    Placeholder teams are legitimate competitors during group play and
    accumulate statistics like any other team.

    Args:
        group_code: Group being built
        teams: Roster entries of the group, in roster order
        results: Match results of the season (unfiltered)

    Returns:
        Tuple of (rows in roster order, results that were applied)
    """
    rows: Dict[int, TeamStanding] = {}
    for team in teams:
        rows[team.team_id] = TeamStanding(team, group_code)

    applied = group_results(group_code, rows.keys(), results)
    for match in applied:
        rows[match.home_team_id].record(match.home_score, match.away_score)
        rows[match.away_team_id].record(match.away_score, match.home_score)

    return list(rows.values()), applied


def build_tables(
    roster: Iterable[RosterTeam],
    results: Iterable[MatchResult],
) -> Dict[str, List[TeamStanding]]:
    """Build unranked tables for every group present in the roster."""
    results = list(results)
    by_group: Dict[str, List[RosterTeam]] = {}
    for team in roster:
        if team.group_code:
            by_group.setdefault(team.group_code, []).append(team)

    return {
        code: build_group_table(code, teams, results)[0]
        for code, teams in sorted(by_group.items())
    }


def partition(rows: Sequence, same: Callable) -> List[Tuple[int, int]]:
    """
    Split an ordered sequence into contiguous blocks.

    ``same(a, b)`` tells whether ``b`` is tied with ``a``, the first element of
    the current block. Returns ``(start, stop)`` index ranges covering ``rows``.
    """
    blocks = []
    start = 0
    while start < len(rows):
        stop = start + 1
        while stop < len(rows) and same(rows[start], rows[stop]):
            stop += 1
        blocks.append((start, stop))
        start = stop
    return blocks


def rank_group(
    group_code: str,
    teams: Sequence[RosterTeam],
    results: Iterable[MatchResult],
    resolver,
) -> GroupStandings:
    """
    Rank one group with the given tie-break strategy.

    Rows are sorted by the strategy's primary key, split into tied blocks and
    each block is resolved on its own. Positions 1..N are assigned in final
    order; rows the strategy could not separate keep a provisional position
    and are flagged ``needs_manual``, with one ``tie_block`` number per set of
    rows that are level with each other.
    """
    rows, applied = build_group_table(group_code, teams, results)
    base = sorted(rows, key=resolver.primary_key, reverse=True)

    ordered: List[TeamStanding] = []
    tie_blocks = 0
    for start, stop in partition(base, resolver.same_primary):
        block = base[start:stop]
        if len(block) == 1:
            ordered.extend(block)
            continue

        outcome = resolver.resolve(block, applied)
        for team_ids in outcome.blocks:
            tie_blocks += 1
            for row in outcome.ordered:
                if row.team_id in team_ids:
                    row.needs_manual = True
                    row.tie_block = tie_blocks
        ordered.extend(outcome.ordered)

    for index, row in enumerate(ordered):
        row.position = index + 1

    return GroupStandings(group_code, ordered, len(applied), expected_matches(len(rows)))


def rank_groups(
    roster: Iterable[RosterTeam],
    results: Iterable[MatchResult],
    resolver,
) -> List[GroupStandings]:
    """Rank every group of the roster, in group-code order."""
    results = list(results)
    by_group: Dict[str, List[RosterTeam]] = {}
    for team in roster:
        if team.group_code:
            by_group.setdefault(team.group_code, []).append(team)

    return [
        rank_group(code, teams, results, resolver)
        for code, teams in sorted(by_group.items())
    ]
