import pytest

from quiniela.placeholders import (
    LOSER,
    WINNER,
    BracketSlot,
    GroupPosition,
    MatchOutcome,
    ThirdPlaceCombo,
    allocate_third_places,
    build_slots,
    decode_reference,
    parse_placeholder_rule,
    resolve_slots,
    slot_assignments,
)
from quiniela.standings import GroupStandings, MatchResult, RosterTeam, TeamStanding
from quiniela.thirds import rank_third_places


@pytest.mark.parametrize("text, expected", [
    ("1º Grupo A", GroupPosition("A", 1)),
    ("2do Grupo B", GroupPosition("B", 2)),
    ("1st Group C", GroupPosition("C", 1)),
    ("A1", GroupPosition("A", 1)),
    ("B-2", GroupPosition("B", 2)),
    ("1L", GroupPosition("L", 1)),
    ("Ganador Partido 73", MatchOutcome(73, WINNER)),
    ("Perdedor 101", MatchOutcome(101, LOSER)),
    ("Winner of Match 74", MatchOutcome(74, WINNER)),
    ("W73", MatchOutcome(73, WINNER)),
    ("L1", MatchOutcome(1, LOSER)),
    ("3º Grupo A/B/C/D/F", ThirdPlaceCombo(("A", "B", "C", "D", "F"))),
    ("3rd Group E/H/I", ThirdPlaceCombo(("E", "H", "I"))),
    ("3FDCBA", ThirdPlaceCombo(("A", "B", "C", "D", "F"))),
    ("Repechaje 1", None),
    ("", None),
])
def test_parse_placeholder_rule(text, expected):
    assert parse_placeholder_rule(text) == expected


def test_reference_codes():
    assert GroupPosition("A", 1).code == "G:A:1"
    assert MatchOutcome(73, WINNER).code == "M:73:W"
    assert ThirdPlaceCombo(("A", "B", "F")).code == "T:ABF"

    assert decode_reference("M:101:L") == MatchOutcome(101, LOSER)
    assert decode_reference("T:ABF") == ThirdPlaceCombo(("A", "B", "F"))
    assert decode_reference("G:x") is None
    assert decode_reference(None) is None


def placeholder(team_id, rule):
    return RosterTeam(team_id=team_id, name=rule, is_placeholder=True, placeholder_rule=rule,
                      reference=parse_placeholder_rule(rule))


def ko(number, home, away, hs=None, as_=None, advance=None, phase="round_of_32"):
    return MatchResult(home, away, hs, as_, confirmed=hs is not None, phase=phase,
                       match_number=number, advance_team_id=advance)


def by_key(result):
    return {slot.key: slot for slot in result.slots}


def test_match_outcome_fans_out_to_every_referencing_slot():
    roster = {t.team_id: t for t in [
        RosterTeam(1, name="Mexico"), RosterTeam(2, name="Canada"), RosterTeam(3, name="Japan"),
        placeholder(201, "W73"), placeholder(202, "L73"), placeholder(203, "Ganador Partido 73"),
        placeholder(204, "W73"),
    ]}
    matches = [
        ko(73, 1, 2, 2, 1),
        ko(89, 201, 3, phase="round_of_16"),
        ko(95, 3, 202, phase="round_of_16"),
        ko(100, 203, 3, phase="quarterfinal"),
        ko(101, 204, 2, phase="semifinal"),
    ]
    seeded = build_slots(matches, roster)
    forced = next(s for s in seeded if s.key == (101, "home"))
    forced.resolved_team_id = 3
    forced.manual_override = True
    forced.manual_reason = "Forfeit"

    result = resolve_slots(seeded, [], None, matches)
    slots = by_key(result)

    assert slots[(89, "home")].resolved_team_id == 1
    assert slots[(95, "away")].resolved_team_id == 2
    assert slots[(100, "home")].resolved_team_id == 1
    assert slots[(101, "home")].resolved_team_id == 3
    assert slots[(101, "home")].manual_reason == "Forfeit"
    assert result.changed_matches == {89, 95, 100}
    assert slot_assignments(result.slots)[95] == {"home": 3, "away": 2}


def test_chained_outcomes_resolve_in_one_pass():
    roster = {t.team_id: t for t in [
        RosterTeam(1), RosterTeam(2), RosterTeam(3), RosterTeam(4),
        placeholder(201, "W73"), placeholder(202, "W89"), placeholder(203, "L89"),
    ]}
    matches = [
        ko(73, 1, 2, 1, 1, advance=2),
        ko(89, 201, 3, 0, 2),
        ko(97, 202, 4),
        ko(98, 203, 4),
    ]
    slots = by_key(resolve_slots(build_slots(matches, roster), [], None, matches))

    assert slots[(89, "home")].resolved_team_id == 2
    assert slots[(97, "home")].resolved_team_id == 3
    assert slots[(98, "home")].resolved_team_id == 2


def test_level_score_without_advance_stays_pending():
    roster = {t.team_id: t for t in [RosterTeam(1), RosterTeam(2), RosterTeam(3), placeholder(201, "W73")]}
    matches = [ko(73, 1, 2, 0, 0), ko(89, 201, 3)]
    slot = by_key(resolve_slots(build_slots(matches, roster), [], None, matches))[(89, "home")]

    assert slot.needs_manual
    assert "level" in slot.pending_reason


def test_forward_reference_stays_pending():
    roster = {t.team_id: t for t in [RosterTeam(1), RosterTeam(2), RosterTeam(3), placeholder(201, "W85")]}
    matches = [ko(80, 201, 3), ko(85, 1, 2, 1, 0)]
    slot = by_key(resolve_slots(build_slots(matches, roster), [], None, matches))[(80, "home")]

    assert slot.resolved_team_id is None
    assert "not earlier" in slot.pending_reason


def test_manual_slot_is_never_touched():
    slot = BracketSlot("round_of_16", 89, "home", placeholder_rule="W73", reference=MatchOutcome(73, WINNER),
                       placeholder_team_id=201, resolved_team_id=3, manual_override=True, manual_reason="Forfeit")
    matches = [ko(73, 1, 2, 2, 0), ko(89, 201, 4)]
    result = resolve_slots([slot], [], None, matches)

    assert result.slots[0].resolved_team_id == 3
    assert result.slots[0].manual_reason == "Forfeit"
    assert result.changed_matches == set()


def test_withdrawn_team_does_not_feed_later_outcomes():
    # Match 89 still holds team 1 from an earlier pass, but match 73 lost its result
    slots = [
        BracketSlot("round_of_32", 73, "home", resolved_team_id=1),
        BracketSlot("round_of_32", 73, "away", resolved_team_id=2),
        BracketSlot("round_of_16", 89, "home", placeholder_rule="W73", reference=MatchOutcome(73, WINNER),
                    placeholder_team_id=201, resolved_team_id=1),
        BracketSlot("round_of_16", 89, "away", resolved_team_id=3),
        BracketSlot("quarterfinal", 97, "home", placeholder_rule="W89", reference=MatchOutcome(89, WINNER),
                    placeholder_team_id=202),
        BracketSlot("quarterfinal", 97, "away", resolved_team_id=4),
    ]
    matches = [
        ko(73, 1, 2),
        ko(89, 1, 3, 2, 0, phase="round_of_16"),
        ko(97, 202, 4, phase="quarterfinal"),
    ]
    result = resolve_slots(slots, [], None, matches)
    resolved = by_key(result)

    assert resolved[(89, "home")].resolved_team_id is None
    assert resolved[(97, "home")].resolved_team_id is None
    assert "not resolved" in resolved[(97, "home")].pending_reason
    assert result.changed_matches == {89}


def group(code, team_ids, complete=True, needs_manual=()):
    rows = []
    for position, team_id in enumerate(team_ids, start=1):
        row = TeamStanding(RosterTeam(team_id=team_id), code)
        row.position = position
        row.needs_manual = team_id in needs_manual
        rows.append(row)
    return GroupStandings(code, rows, 6 if complete else 4, 6)


def test_group_position_requires_complete_unambiguous_group():
    roster = {t.team_id: t for t in [
        placeholder(201, "1º Grupo A"), placeholder(202, "2º Grupo B"), placeholder(203, "1º Grupo C"),
    ]}
    matches = [ko(73, 201, 202), ko(74, 203, 201)]
    groups = [
        group("A", [11, 12, 13, 14]),
        group("B", [21, 22, 23, 24], needs_manual={22, 23}),
        group("C", [31, 32, 33, 34], complete=False),
    ]
    slots = by_key(resolve_slots(build_slots(matches, roster), groups, None, matches))

    assert slots[(73, "home")].resolved_team_id == 11
    assert slots[(74, "away")].resolved_team_id == 11
    assert slots[(73, "away")].needs_manual and "manual" in slots[(73, "away")].pending_reason
    assert slots[(74, "home")].needs_manual and "not complete" in slots[(74, "home")].pending_reason


def thirds_ranking(points_by_group, quota):
    groups = []
    for code, points in points_by_group.items():
        g = group(code, [ord(code) * 10 + p for p in range(1, 5)])
        g.standings[2].points = points
        groups.append(g)
    return rank_third_places(groups, quota)


def combo_slot(number, groups, resolved=None, manual=False):
    return BracketSlot("round_of_32", number, "away", placeholder_rule=f"3{groups}",
                       reference=ThirdPlaceCombo(tuple(groups)), resolved_team_id=resolved, manual_override=manual)


def third(code):
    return ord(code) * 10 + 3


def test_greedy_allocation_in_slot_order():
    ranking = thirds_ranking({"A": 9, "B": 7, "C": 5, "D": 1}, 3)
    slots = [combo_slot(80, "ABC"), combo_slot(74, "AB"), combo_slot(77, "BCD")]

    assignments = allocate_third_places(slots, ranking)

    assert assignments == {(74, "away"): third("A"), (77, "away"): third("B"), (80, "away"): third("C")}
    # Pure: the slots themselves are untouched
    assert all(s.resolved_team_id is None for s in slots)


def test_allocation_keeps_existing_assignments():
    ranking = thirds_ranking({"A": 9, "B": 7, "C": 5}, 2)
    slots = [combo_slot(74, "AB"), combo_slot(77, "AB", resolved=third("A"))]

    assert allocate_third_places(slots, ranking) == {(74, "away"): third("B")}


def test_third_place_slots_wait_for_final_ranking():
    ranking = thirds_ranking({"A": 9, "B": 7}, 1)
    ranking.final = False
    result = resolve_slots([combo_slot(74, "AB")], [], ranking, [])

    assert result.slots[0].needs_manual
    assert "not final" in result.slots[0].pending_reason

    ranking.final = True
    result = resolve_slots([combo_slot(74, "AB")], [], ranking, [])
    assert result.slots[0].resolved_team_id == third("A")
