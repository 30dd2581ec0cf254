"""
Tie-break strategies for ordering teams level on the primary ranking key.

Both strategies share one interface: ``primary_key`` and ``same_primary`` drive
the initial split of a group into tied blocks, and ``resolve(block, matches)``
orders one block and reports the teams it could not separate.
"""

from fractions import Fraction
from typing import Dict, List, Sequence, Set, Tuple

from .errors import InvalidInput
from .sports import ROUND_ROBIN_POINTS, WIN_PERCENTAGE_SWEEP
from .standings import MatchResult, TeamStanding, partition


class TieBreakOutcome:
    """Total order of a tied block plus the sub-blocks still needing a decision."""

    def __init__(self, ordered: List[TeamStanding], blocks: List[Set[int]] = None):
        self.ordered = ordered
        self.blocks = blocks or []

    @property
    def unresolved(self) -> Set[int]:
        return set().union(*self.blocks)

    def __repr__(self):
        return f"TieBreakOutcome(ordered={self.ordered}, unresolved={sorted(self.unresolved)})"


def head_to_head_matches(team_ids: Set[int], matches: Sequence[MatchResult]) -> List[MatchResult]:
    return [m for m in matches if m.home_team_id in team_ids and m.away_team_id in team_ids]


class RoundRobinPoints:
    """
    Association-football ordering.

    Equal points are split by a head-to-head table (points, goal difference,
    goals for) restricted to the tied teams, re-applied to every sub-block that
    is still level. When head-to-head stops separating a block, global goal
    difference and then global goals for decide; whatever is still level after
    that needs an administrator.
    """

    name = ROUND_ROBIN_POINTS

    @staticmethod
    def primary_key(row: TeamStanding):
        return row.points

    @staticmethod
    def same_primary(a: TeamStanding, b: TeamStanding) -> bool:
        return a.points == b.points

    def resolve(self, block: Sequence[TeamStanding], matches: Sequence[MatchResult]) -> TieBreakOutcome:
        ordered, unresolved = self._order(list(block), matches)
        return TieBreakOutcome(ordered, unresolved)

    def head_to_head_table(self, team_ids: Set[int], matches: Sequence[MatchResult]) -> Dict[int, Tuple[int, int, int]]:
        """(points, goal difference, goals for) from matches among ``team_ids`` only."""
        stats = {team_id: [0, 0, 0] for team_id in team_ids}  # points, gf, ga

        for m in head_to_head_matches(team_ids, matches):
            home = stats[m.home_team_id]
            away = stats[m.away_team_id]
            home[1] += m.home_score
            home[2] += m.away_score
            away[1] += m.away_score
            away[2] += m.home_score

            if m.home_score > m.away_score:
                home[0] += 3
            elif m.home_score < m.away_score:
                away[0] += 3
            else:
                home[0] += 1
                away[0] += 1

        return {team_id: (pts, gf - ga, gf) for team_id, (pts, gf, ga) in stats.items()}

    def _order(self, block: List[TeamStanding], matches) -> Tuple[List[TeamStanding], List[Set[int]]]:
        if len(block) == 1:
            return block, []

        table = self.head_to_head_table({row.team_id for row in block}, matches)
        by_h2h = sorted(block, key=lambda row: table[row.team_id], reverse=True)
        blocks = partition(by_h2h, lambda a, b: table[a.team_id] == table[b.team_id])

        # Head-to-head made no progress on this block
        if len(blocks) == 1:
            return self._global_fallback(by_h2h)

        ordered: List[TeamStanding] = []
        unresolved: List[Set[int]] = []
        for start, stop in blocks:
            sub_ordered, sub_unresolved = self._order(by_h2h[start:stop], matches)
            ordered.extend(sub_ordered)
            unresolved.extend(sub_unresolved)
        return ordered, unresolved

    @staticmethod
    def _global_fallback(block: List[TeamStanding]) -> Tuple[List[TeamStanding], List[Set[int]]]:
        def key(row):
            return row.goal_difference, row.goals_for

        ordered = sorted(block, key=key, reverse=True)
        unresolved: List[Set[int]] = []
        for start, stop in partition(ordered, lambda a, b: key(a) == key(b)):
            if stop - start > 1:
                unresolved.append({row.team_id for row in ordered[start:stop]})
        return ordered, unresolved


class WinPercentageSweep:
    """
    Bat-and-ball ordering by win percentage.

    A tied block is first split by the sweep rule: a team that beat every other
    team of the block goes on top, a team that lost to all of them goes to the
    bottom, and the rest is resolved again. Without a sweep the runs-allowed
    quotient decides (lower is better).

    The quotient is an approximation of the runs-allowed-per-defensive-out
    statistic: recorded outs are not available, so every game is assumed to
    last ``OUTS_PER_GAME`` outs.
    """

    name = WIN_PERCENTAGE_SWEEP
    EPSILON = 1e-9
    OUTS_PER_GAME = 27

    @staticmethod
    def primary_key(row: TeamStanding):
        return row.win_percentage

    @classmethod
    def same_primary(cls, a: TeamStanding, b: TeamStanding) -> bool:
        return abs(a.win_percentage - b.win_percentage) < cls.EPSILON

    def resolve(self, block: Sequence[TeamStanding], matches: Sequence[MatchResult]) -> TieBreakOutcome:
        ordered, unresolved = self._order(list(block), matches)
        return TieBreakOutcome(ordered, unresolved)

    def head_to_head_records(self, team_ids: Set[int], matches: Sequence[MatchResult]) -> Dict[int, dict]:
        records = {
            team_id: {"won": 0, "lost": 0, "games": 0, "runs_allowed": 0, "opponents": set()}
            for team_id in team_ids
        }

        for m in head_to_head_matches(team_ids, matches):
            home = records[m.home_team_id]
            away = records[m.away_team_id]
            home["games"] += 1
            away["games"] += 1
            home["runs_allowed"] += m.away_score
            away["runs_allowed"] += m.home_score
            home["opponents"].add(m.away_team_id)
            away["opponents"].add(m.home_team_id)

            if m.home_score > m.away_score:
                home["won"] += 1
                away["lost"] += 1
            elif m.home_score < m.away_score:
                away["won"] += 1
                home["lost"] += 1

        return records

    def runs_allowed_quotient(self, record: dict):
        """Sort key: teams without head-to-head games go last."""
        if record["games"] == 0:
            return 1, Fraction(0)
        return 0, Fraction(record["runs_allowed"], record["games"] * self.OUTS_PER_GAME)

    def _order(self, block: List[TeamStanding], matches) -> Tuple[List[TeamStanding], List[Set[int]]]:
        if len(block) <= 1:
            return block, []

        records = self.head_to_head_records({row.team_id for row in block}, matches)
        others = len(block) - 1

        def met_everyone(row):
            return len(records[row.team_id]["opponents"]) == others

        sweepers = [
            row for row in block
            if met_everyone(row) and records[row.team_id]["won"] == records[row.team_id]["games"]
        ]
        swept = [
            row for row in block
            if met_everyone(row) and records[row.team_id]["lost"] == records[row.team_id]["games"]
        ]
        top = sweepers[0] if len(sweepers) == 1 else None
        bottom = swept[0] if len(swept) == 1 else None

        if top or bottom:
            middle = [row for row in block if row is not top and row is not bottom]
            ordered, unresolved = self._order(middle, matches)
            if top:
                ordered = [top] + ordered
            if bottom:
                ordered = ordered + [bottom]
            return ordered, unresolved

        def key(row):
            return self.runs_allowed_quotient(records[row.team_id])

        ordered = sorted(block, key=key)
        unresolved: List[Set[int]] = []
        for start, stop in partition(ordered, lambda a, b: key(a) == key(b)):
            if stop - start > 1:
                unresolved.append({row.team_id for row in ordered[start:stop]})
        return ordered, unresolved


RESOLVERS = {
    ROUND_ROBIN_POINTS: RoundRobinPoints,
    WIN_PERCENTAGE_SWEEP: WinPercentageSweep,
}


def get_resolver(convention: str):
    """Instantiate the tie-break strategy for a ranking convention."""
    try:
        return RESOLVERS[convention]()
    except KeyError:
        raise InvalidInput(f"Unknown ranking convention: {convention}") from None
