import pytest

from quiniela.errors import InvalidInput
from quiniela.sports import ROUND_ROBIN_POINTS, WIN_PERCENTAGE_SWEEP
from quiniela.standings import MatchResult, RosterTeam, TeamStanding, rank_group
from quiniela.tiebreak import RoundRobinPoints, WinPercentageSweep, get_resolver


def roster(*team_ids):
    return [RosterTeam(team_id=t, group_code="A", name=f"T{t}") for t in team_ids]


def result(home, away, hs, as_):
    return MatchResult(home, away, hs, as_, confirmed=True, group_code="A", phase="group_stage")


def order(group):
    return [r.team_id for r in group.standings]


def manual(group):
    return {r.team_id for r in group.standings if r.needs_manual}


# -- RoundRobinPoints -----------------------------------------------------------


def test_head_to_head_separates_teams_level_on_points():
    # X (1) and Y (2) finish on 6 points; X won their meeting 2-1.
    # Y has the better overall goal difference, so only head-to-head puts X first.
    results = [
        result(1, 2, 2, 1),
        result(3, 1, 1, 0),
        result(1, 4, 1, 0),
        result(2, 3, 2, 0),
        result(2, 4, 2, 0),
        result(3, 4, 0, 0),
    ]
    group = rank_group("A", roster(1, 2, 3, 4), results, RoundRobinPoints())

    assert [r.points for r in group.standings] == [6, 6, 4, 1]
    assert order(group) == [1, 2, 3, 4]
    assert manual(group) == set()


def test_head_to_head_is_reapplied_to_remaining_sub_block():
    # 1, 2 and 3 all on 6 points. In their mini-league 2 and 3 are level on
    # (3 pts, +1, 3 goals) and 1 is last; the 2-3 meeting then decides.
    results = [
        result(2, 3, 2, 0),
        result(1, 2, 2, 1),
        result(3, 1, 3, 0),
        result(1, 4, 1, 0),
        result(2, 4, 1, 0),
        result(3, 4, 1, 0),
    ]
    group = rank_group("A", roster(1, 2, 3, 4), results, RoundRobinPoints())

    assert order(group) == [2, 3, 1, 4]
    assert manual(group) == set()


def test_global_goal_difference_breaks_a_head_to_head_cycle():
    results = [
        result(1, 2, 1, 0),
        result(2, 3, 1, 0),
        result(3, 1, 1, 0),
        result(1, 4, 3, 0),
        result(2, 4, 2, 0),
        result(3, 4, 1, 0),
    ]
    group = rank_group("A", roster(1, 2, 3, 4), results, RoundRobinPoints())

    assert order(group) == [1, 2, 3, 4]
    assert manual(group) == set()


def test_identical_teams_need_manual_decision():
    results = [
        result(1, 2, 1, 0),
        result(2, 3, 1, 0),
        result(3, 1, 1, 0),
        result(1, 4, 1, 0),
        result(2, 4, 1, 0),
        result(3, 4, 1, 0),
    ]
    group = rank_group("A", roster(1, 2, 3, 4), results, RoundRobinPoints())

    assert manual(group) == {1, 2, 3}
    assert order(group) == [1, 2, 3, 4]
    assert group.standings[3].position == 4
    assert group.needs_manual


def test_ranking_is_deterministic():
    results = [
        result(1, 2, 1, 1),
        result(3, 4, 2, 2),
        result(1, 3, 0, 0),
        result(2, 4, 1, 1),
        result(1, 4, 2, 2),
        result(2, 3, 0, 0),
    ]
    teams = roster(1, 2, 3, 4)
    first = rank_group("A", teams, results, RoundRobinPoints())
    second = rank_group("A", teams, list(reversed(results)), RoundRobinPoints())

    assert order(first) == order(second)
    assert manual(first) == manual(second)


# -- WinPercentageSweep ---------------------------------------------------------


def test_win_percentage_ignores_draws():
    row = TeamStanding(RosterTeam(team_id=1), "A")
    row.won, row.lost, row.drawn = 1, 1, 5
    assert row.win_percentage == 0.5

    assert TeamStanding(RosterTeam(team_id=2), "A").win_percentage == 0.0


def test_sweep_rule_orders_tied_block():
    # 1, 2 and 3 all finish at .667. 1 beat both others and 3 lost to both.
    # The runs-allowed quotient alone would have put 3 first.
    results = [
        result(1, 2, 10, 9),
        result(1, 3, 1, 0),
        result(2, 3, 1, 0),
        result(5, 1, 4, 2),
        result(2, 5, 3, 1),
    ] + [result(3, 5, 6, 1) for _ in range(4)]
    group = rank_group("A", roster(1, 2, 3, 5), results, WinPercentageSweep())

    assert order(group) == [1, 2, 3, 5]
    assert manual(group) == set()


def test_runs_allowed_quotient_without_sweep():
    # Three-way cycle: 1 allowed 3 runs, 3 allowed 5, 2 allowed 7.
    results = [
        result(1, 2, 3, 2),
        result(2, 3, 5, 4),
        result(3, 1, 1, 0),
    ]
    group = rank_group("A", roster(1, 2, 3), results, WinPercentageSweep())

    assert order(group) == [1, 3, 2]
    assert manual(group) == set()


def test_identical_quotient_needs_manual_decision():
    results = [
        result(1, 2, 1, 0),
        result(2, 3, 1, 0),
        result(3, 1, 1, 0),
    ]
    group = rank_group("A", roster(1, 2, 3), results, WinPercentageSweep())

    assert manual(group) == {1, 2, 3}
    assert sorted(r.position for r in group.standings) == [1, 2, 3]


def test_team_without_head_to_head_games_sorts_last():
    resolver = WinPercentageSweep()
    records = resolver.head_to_head_records({1, 2}, [])
    assert resolver.runs_allowed_quotient(records[1]) > resolver.runs_allowed_quotient(
        {"games": 1, "runs_allowed": 50}
    )


def test_get_resolver():
    assert isinstance(get_resolver(ROUND_ROBIN_POINTS), RoundRobinPoints)
    assert isinstance(get_resolver(WIN_PERCENTAGE_SWEEP), WinPercentageSweep)
    with pytest.raises(InvalidInput):
        get_resolver("cricket")
