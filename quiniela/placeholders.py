"""
Placeholder references and knockout slot resolution.

Placeholder teams carry free-form rules such as "1º Grupo A", "Ganador Partido
73" or "3º Grupo A/B/C/D/F". ``parse_placeholder_rule`` turns such text into a
tagged reference once, at data-entry time; resolution passes only ever work
with the parsed reference (or its canonical ``code``).
"""

import copy
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .standings import GroupStandings, MatchResult, RosterTeam
from .thirds import ThirdPlaceRanking

HOME = "home"
AWAY = "away"
SIDES = (HOME, AWAY)

WINNER = "winner"
LOSER = "loser"


@dataclass(frozen=True)
class GroupPosition:
    """Team finishing at ``position`` of group ``group_code``."""
    group_code: str
    position: int

    @property
    def code(self) -> str:
        return f"G:{self.group_code}:{self.position}"


@dataclass(frozen=True)
class MatchOutcome:
    """Winner or loser of knockout match ``match_number``."""
    match_number: int
    outcome: str

    @property
    def code(self) -> str:
        return f"M:{self.match_number}:{'W' if self.outcome == WINNER else 'L'}"


@dataclass(frozen=True)
class ThirdPlaceCombo:
    """A qualified third-placed team from one of ``allowed_groups``."""
    allowed_groups: Tuple[str, ...]

    @property
    def code(self) -> str:
        return "T:" + "".join(self.allowed_groups)


_GROUP_POSITION_PATTERNS = [
    # A1 / A-1 / A_1 / A:1
    (re.compile(r"^([A-Z])\s*[-_:]?\s*([12])$"), 1, 2),
    # 1A
    (re.compile(r"^([12])\s*([A-Z])$"), 2, 1),
    # 1º Grupo A / 2do Grupo B / 1er Grupo C / 1st Group D
    (re.compile(r"^([12])\s*(?:º|°|O|RO|DO|ER|ST|ND)?\.?\s*(?:LUGAR\s+)?(?:GRUPO|GROUP)\s*([A-Z])$"), 2, 1),
]

_MATCH_OUTCOME_PATTERNS = [
    # W73 / L101
    re.compile(r"^([WL])\s*(\d+)$"),
    # Ganador Partido 73 / Perdedor del Partido 101 / Winner of Match 73 / Loser 101
    re.compile(
        r"^(GANADOR|PERDEDOR|WINNER|LOSER)\s+(?:(?:DEL?|OF)\s+)?"
        r"(?:(?:PARTIDO|MATCH|JUEGO|GAME)\s*)?(?:#|NO\.?\s*)?(\d+)$"
    ),
]

_THIRD_COMBO_PATTERNS = [
    # 3º Grupo A/B/C/D/F / 3rd Group A/B/C
    re.compile(
        r"^3\s*(?:º|°|O|RO|ER|RD)?\.?\s*(?:LUGAR\s+)?(?:GRUPOS?|GROUPS?)\s*([A-Z](?:\s*/\s*[A-Z])*)$"
    ),
    # 3ABCDF
    re.compile(r"^3([A-Z]+)$"),
]


def parse_placeholder_rule(text: Optional[str]):
    """
    Parse placeholder text into a reference.

    Returns:
        GroupPosition, MatchOutcome or ThirdPlaceCombo, or None when the text
        is not a recognised rule
    """
    if not text:
        return None
    s = " ".join(text.strip().upper().split())

    for pattern in _THIRD_COMBO_PATTERNS:
        m = pattern.match(s)
        if m:
            groups = sorted(set(re.findall(r"[A-Z]", m.group(1))))
            return ThirdPlaceCombo(tuple(groups))

    # "W1" / "L2" read as match outcomes; write "1L" or "L-1" for group L
    for pattern in _MATCH_OUTCOME_PATTERNS:
        m = pattern.match(s)
        if m:
            word = m.group(1)
            outcome = WINNER if word in ("W", "GANADOR", "WINNER") else LOSER
            return MatchOutcome(int(m.group(2)), outcome)

    for pattern, group_index, position_index in _GROUP_POSITION_PATTERNS:
        m = pattern.match(s)
        if m:
            return GroupPosition(m.group(group_index), int(m.group(position_index)))

    return None


def decode_reference(code: Optional[str]):
    """Rebuild a reference from its canonical ``code``; None if malformed."""
    if not code:
        return None
    parts = code.split(":")
    try:
        if parts[0] == "G" and len(parts) == 3:
            return GroupPosition(parts[1], int(parts[2]))
        if parts[0] == "M" and len(parts) == 3 and parts[2] in ("W", "L"):
            return MatchOutcome(int(parts[1]), WINNER if parts[2] == "W" else LOSER)
        if parts[0] == "T" and len(parts) == 2 and parts[1].isalpha():
            return ThirdPlaceCombo(tuple(sorted(set(parts[1]))))
    except ValueError:
        return None
    return None


class BracketSlot:
    """One side of one knockout match."""

    def __init__(
        self,
        round: str,
        match_number: int,
        side: str,
        placeholder_rule: Optional[str] = None,
        reference=None,
        placeholder_team_id: Optional[int] = None,
        resolved_team_id: Optional[int] = None,
        manual_override: bool = False,
        manual_reason: Optional[str] = None,
        pending_reason: Optional[str] = None,
    ):
        self.round = round
        self.match_number = match_number
        self.side = side
        self.placeholder_rule = placeholder_rule
        self.reference = reference
        self.placeholder_team_id = placeholder_team_id
        self.resolved_team_id = resolved_team_id
        self.manual_override = manual_override
        self.manual_reason = manual_reason
        self.pending_reason = pending_reason

    @property
    def key(self) -> Tuple[int, str]:
        return self.match_number, self.side

    @property
    def needs_manual(self) -> bool:
        return self.resolved_team_id is None

    def copy(self) -> "BracketSlot":
        return copy.copy(self)

    def to_dict(self) -> dict:
        return {
            "round": self.round,
            "match_number": self.match_number,
            "side": self.side,
            "placeholder_rule": self.placeholder_rule,
            "reference": self.reference.code if self.reference else None,
            "team_id": self.resolved_team_id,
            "needs_manual": self.needs_manual,
            "manual_override": self.manual_override,
            "manual_reason": self.manual_reason,
            "pending_reason": self.pending_reason,
        }

    def __repr__(self):
        return f"BracketSlot({self.match_number}/{self.side} -> {self.resolved_team_id})"


def slot_order(slot: BracketSlot):
    return slot.match_number, SIDES.index(slot.side)


class ResolutionResult:
    """Slots after one resolution pass and the matches whose participants changed."""

    def __init__(self, slots: List[BracketSlot], changed_matches: Set[int]):
        self.slots = slots
        self.changed_matches = changed_matches

    @property
    def updated(self) -> int:
        return len(self.changed_matches)

    @property
    def pending(self) -> List[BracketSlot]:
        return [s for s in self.slots if s.needs_manual]


def build_slots(matches: Iterable[MatchResult], roster: Dict[int, RosterTeam]) -> List[BracketSlot]:
    """
    Seed two slots per knockout match.

    Sides held by a concrete team start resolved; sides held by a placeholder
    team carry its rule and parsed reference.
    """
    slots = []
    knockout = [m for m in matches if m.group_code is None and m.match_number is not None]
    for match in sorted(knockout, key=lambda m: m.match_number):
        for side, team_id in ((HOME, match.home_team_id), (AWAY, match.away_team_id)):
            team = roster.get(team_id) if team_id is not None else None

            if team is not None and team.is_placeholder:
                slots.append(BracketSlot(
                    match.phase, match.match_number, side,
                    placeholder_rule=team.placeholder_rule,
                    reference=team.reference,
                    placeholder_team_id=team.team_id,
                    pending_reason="Not resolved yet",
                ))
            elif team_id is not None:
                slots.append(BracketSlot(match.phase, match.match_number, side, resolved_team_id=team_id))
            else:
                slots.append(BracketSlot(
                    match.phase, match.match_number, side, pending_reason="No participant assigned",
                ))
    return slots


def allocate_third_places(slots: Sequence[BracketSlot], ranking: ThirdPlaceRanking) -> Dict[Tuple[int, str], int]:
    """
    Assign qualified third-placed teams to open third-place slots.

    Slots are served in ascending (match, side) order; each takes the
    best-ranked qualified entry from an allowed group that no other
    third-place slot holds. Slots that already hold a team keep it.

    Returns:
        Mapping of slot key to the team assigned in this call
    """
    combo_slots = sorted(
        (s for s in slots if isinstance(s.reference, ThirdPlaceCombo)),
        key=slot_order,
    )
    taken = {s.resolved_team_id for s in combo_slots if s.resolved_team_id is not None}
    eligible = sorted(ranking.qualified, key=lambda e: e.global_rank)

    assignments: Dict[Tuple[int, str], int] = {}
    for slot in combo_slots:
        if slot.resolved_team_id is not None or slot.manual_override:
            continue
        allowed = set(slot.reference.allowed_groups)
        pick = next((e for e in eligible if e.team_id not in taken and e.group_code in allowed), None)
        if pick is None:
            continue
        assignments[slot.key] = pick.team_id
        taken = taken | {pick.team_id}

    return assignments


def _resolve_group_position(ref: GroupPosition, groups: Dict[str, GroupStandings]):
    group = groups.get(ref.group_code)
    if group is None or not group.standings:
        return None, f"Group {ref.group_code} has no teams"
    if not group.is_complete:
        return None, f"Group {ref.group_code} is not complete"

    row = group.at_position(ref.position)
    if row is None:
        return None, f"Group {ref.group_code} has no position {ref.position}"
    if row.needs_manual:
        return None, f"Position {ref.position} of group {ref.group_code} needs a manual decision"
    if row.is_placeholder:
        return None, f"Position {ref.position} of group {ref.group_code} is held by a placeholder"
    return row.team_id, None


def _resolve_match_outcome(
    ref: MatchOutcome,
    slot: BracketSlot,
    matches: Dict[int, MatchResult],
    participants: Dict[int, Dict[str, Optional[int]]],
):
    n = ref.match_number
    if n >= slot.match_number:
        return None, f"Match {n} is not earlier than match {slot.match_number}"

    match = matches.get(n)
    if match is None:
        return None, f"Match {n} does not exist"
    if not match.counts_for_standings:
        return None, f"Match {n} has no confirmed result"

    home = participants[n][HOME]
    away = participants[n][AWAY]
    if home is None or away is None:
        return None, f"Participants of match {n} are not resolved"

    if match.home_score > match.away_score:
        winner, loser = home, away
    elif match.home_score < match.away_score:
        winner, loser = away, home
    elif match.advance_team_id in (home, away):
        winner = match.advance_team_id
        loser = away if winner == home else home
    else:
        return None, f"Match {n} ended level without an advance decision"

    return (winner if ref.outcome == WINNER else loser), None


def resolve_slots(
    slots: Sequence[BracketSlot],
    groups: Iterable[GroupStandings],
    thirds: Optional[ThirdPlaceRanking],
    matches: Iterable[MatchResult],
) -> ResolutionResult:
    """
    Resolve every slot that the available data allows, in one forward pass.

    Slots are visited in ascending match order so that a "winner of match N"
    slot sees the participants of N resolved earlier in the same pass. Every
    slot referencing N is updated together. Slots under a manual override are
    left exactly as they are.

    Args:
        slots: Current slots (not modified)
        groups: Ranked groups with manual overrides applied
        thirds: Third-place ranking, or None when the sport has none
        matches: All match results of the season

    Returns:
        ResolutionResult with new slot objects and the changed match numbers
    """
    groups_by_code = {g.group_code: g for g in groups}
    matches_by_number = {m.match_number: m for m in matches if m.match_number is not None}
    previous = {s.key: s.resolved_team_id for s in slots}

    placeholder_ids = {s.placeholder_team_id for s in slots if s.placeholder_team_id is not None}
    participants: Dict[int, Dict[str, Optional[int]]] = {}
    for number, match in matches_by_number.items():
        participants[number] = {
            HOME: None if match.home_team_id in placeholder_ids else match.home_team_id,
            AWAY: None if match.away_team_id in placeholder_ids else match.away_team_id,
        }

    ordered = sorted((s.copy() for s in slots), key=slot_order)

    thirds_ready = thirds is not None and thirds.final and not thirds.needs_manual_cut
    allocation = allocate_third_places(ordered, thirds) if thirds_ready else {}

    for slot in ordered:
        ref = slot.reference

        if slot.manual_override:
            pass
        elif isinstance(ref, ThirdPlaceCombo):
            if slot.resolved_team_id is None:
                slot.resolved_team_id = allocation.get(slot.key)
            if slot.resolved_team_id is not None:
                slot.pending_reason = None
            elif not thirds_ready:
                slot.pending_reason = "Third-place ranking is not final"
            else:
                slot.pending_reason = (
                    "No qualified third-placed team available for groups "
                    + "/".join(ref.allowed_groups)
                )
        elif isinstance(ref, GroupPosition):
            slot.resolved_team_id, slot.pending_reason = _resolve_group_position(ref, groups_by_code)
        elif isinstance(ref, MatchOutcome):
            slot.resolved_team_id, slot.pending_reason = _resolve_match_outcome(
                ref, slot, matches_by_number, participants,
            )
        elif slot.placeholder_team_id is not None or slot.placeholder_rule:
            slot.resolved_team_id = None
            slot.pending_reason = f"Unrecognized placeholder rule: {slot.placeholder_rule!r}"

        # Placeholder-backed sides follow the slot, even once it is pending again
        backed = slot.manual_override or slot.reference is not None or slot.placeholder_team_id is not None
        if slot.match_number in participants and (backed or slot.resolved_team_id is not None):
            participants[slot.match_number][slot.side] = slot.resolved_team_id

    changed = {s.match_number for s in ordered if s.resolved_team_id != previous[s.key]}
    return ResolutionResult(ordered, changed)


def slot_assignments(slots: Iterable[BracketSlot]) -> Dict[int, Dict[str, int]]:
    """Resolved participants per match number, for writing back to matches."""
    assignments: Dict[int, Dict[str, int]] = {}
    for slot in slots:
        if slot.resolved_team_id is not None:
            assignments.setdefault(slot.match_number, {})[slot.side] = slot.resolved_team_id
    return assignments
