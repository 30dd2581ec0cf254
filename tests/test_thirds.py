import pytest

from quiniela.errors import ManualOverrideRejected
from quiniela.standings import GroupStandings, RosterTeam, TeamStanding
from quiniela.thirds import rank_third_places, validate_manual_selection


def make_group(code, third, complete=True, size=4):
    """Group whose third-placed team has ``third`` = (points, goals_for, goals_against)."""
    rows = []
    for position in range(1, size + 1):
        row = TeamStanding(RosterTeam(team_id=ord(code) * 10 + position, name=f"{code}{position}"), code)
        row.position = position
        if position == 3:
            row.points, row.goals_for, row.goals_against = third
        rows.append(row)
    return GroupStandings(code, rows, 6 if complete else 5, 6)


def team(code):
    return ord(code) * 10 + 3


# Nine groups; H and I share (3 pts, 0 GD, 2 GF) across the cutoff of 8.
CUTOFF_TIE = {
    "A": (7, 5, 1),
    "B": (6, 4, 2),
    "C": (6, 3, 2),
    "D": (5, 3, 3),
    "E": (4, 4, 3),
    "F": (4, 2, 2),
    "G": (3, 3, 2),
    "H": (3, 2, 2),
    "I": (3, 2, 2),
}


def cutoff_ranking(quota=8):
    return rank_third_places([make_group(c, s) for c, s in CUTOFF_TIE.items()], quota)


def test_global_order_and_ranks():
    ranking = rank_third_places([make_group("A", (3, 2, 2)), make_group("B", (4, 1, 1)), make_group("C", (3, 4, 2))], 2)

    assert [e.group_code for e in ranking.entries] == ["B", "C", "A"]
    assert [e.global_rank for e in ranking.entries] == [1, 2, 3]
    assert [e.is_qualified for e in ranking.entries] == [True, True, False]
    assert not ranking.needs_manual_cut
    assert ranking.final


def test_cutoff_tie_is_flagged():
    ranking = cutoff_ranking()

    assert ranking.needs_manual_cut
    assert ranking.tie_team_ids == {team("H"), team("I")}
    assert len(ranking.locked) == 7
    assert ranking.open_slots == 1
    assert len(ranking.qualified) == 7
    assert all(not e.is_qualified and e.needs_manual for e in ranking.tie_block)


def test_tie_wholly_above_cutoff_is_not_flagged():
    groups = [make_group("A", (3, 2, 2)), make_group("B", (3, 2, 2)), make_group("C", (1, 0, 2))]
    ranking = rank_third_places(groups, 2)

    assert not ranking.needs_manual_cut
    assert {e.team_id for e in ranking.qualified} == {team("A"), team("B")}


def test_tie_block_can_straddle_several_ranks():
    stats = dict(CUTOFF_TIE, G=(3, 2, 2))
    ranking = rank_third_places([make_group(c, s) for c, s in stats.items()], 8)

    assert len(ranking.tie_block) == 3
    assert len(ranking.locked) == 6
    assert ranking.open_slots == 2


def test_groups_without_third_place_and_final_flag():
    groups = [make_group("A", (3, 2, 2)), make_group("B", (0, 0, 0), size=2), make_group("C", (1, 1, 1), complete=False)]
    ranking = rank_third_places(groups, 1)

    assert [e.group_code for e in ranking.entries] == ["A", "C"]
    assert not ranking.final


def test_selection_missing_a_locked_team_is_rejected():
    ranking = cutoff_ranking()
    locked = [e.team_id for e in ranking.locked]
    selection = locked[1:] + [team("H"), team("I")]

    with pytest.raises(ManualOverrideRejected, match="fixed auto-qualified"):
        validate_manual_selection(ranking, selection)


def test_valid_selection_returns_tie_picks():
    ranking = cutoff_ranking()
    selection = [e.team_id for e in ranking.locked] + [team("I")]

    assert validate_manual_selection(ranking, selection) == {team("I")}


@pytest.mark.parametrize("mutate, message", [
    (lambda locked: locked + [team("H"), team("I")], "exactly 8"),
    (lambda locked: locked[:-1] + [locked[0], team("H")], "duplicates"),
    (lambda locked: locked + [999], "not a third-placed team"),
])
def test_invalid_selections(mutate, message):
    ranking = cutoff_ranking()
    with pytest.raises(ManualOverrideRejected, match=message):
        validate_manual_selection(ranking, mutate([e.team_id for e in ranking.locked]))


def test_selection_without_cutoff_tie_is_rejected():
    ranking = rank_third_places([make_group("A", (3, 2, 2)), make_group("B", (1, 2, 2))], 1)
    with pytest.raises(ManualOverrideRejected, match="no tie"):
        validate_manual_selection(ranking, [team("A")])
