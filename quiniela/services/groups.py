"""
Database-backed passes over the standings and bracket engine.

Every pass rebuilds the engine inputs from the tables, replays the recorded
manual decisions and, for mutating passes, writes the outcome back in a single
commit while holding the season lock.
"""

import logging
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlmodel import Session, select

from ..config import GROUP_STAGE_PHASE
from ..database import season_lock
from ..errors import GroupStageIncomplete, InvalidInput, ManualOverrideRejected, SeasonNotFound
from ..models import GroupStanding, Match, Season, Team
from ..models import BracketSlot as BracketSlotRecord
from ..models import ThirdPlaceRanking as ThirdPlaceRecord
from ..overrides import ManualOverrideLedger
from ..placeholders import (
    SIDES,
    BracketSlot,
    ResolutionResult,
    ThirdPlaceCombo,
    build_slots,
    decode_reference,
    resolve_slots,
    slot_assignments,
)
from ..sports import RankingConfig, get_ranking_config
from ..standings import GroupStandings, MatchResult, RosterTeam, rank_groups
from ..thirds import ThirdPlaceRanking, rank_third_places
from ..tiebreak import get_resolver

logger = logging.getLogger(__name__)


class SeasonData:
    """Engine inputs of one season, read from the tables."""

    def __init__(
        self,
        season: Season,
        config: RankingConfig,
        roster: List[RosterTeam],
        results: List[MatchResult],
    ):
        self.season = season
        self.config = config
        self.roster = roster
        self.roster_by_id = {team.team_id: team for team in roster}
        self.results = results

    @property
    def season_id(self) -> int:
        return self.season.id


def load_season(db: Session, season_id: int) -> SeasonData:
    season = db.get(Season, season_id)
    if season is None:
        raise SeasonNotFound(season_id)

    config = get_ranking_config(season.sport_slug, season.qualification_quota)

    teams = db.exec(select(Team).where(Team.season_id == season_id).order_by(Team.id)).all()
    roster = [
        RosterTeam(
            team_id=team.id,
            group_code=(team.group_code or "").strip().upper() or None,
            name=team.name,
            is_placeholder=team.is_placeholder,
            placeholder_rule=team.placeholder_rule,
            reference=decode_reference(team.placeholder_ref),
        )
        for team in teams
    ]

    matches = db.exec(
        select(Match).where(Match.season_id == season_id).order_by(Match.match_number, Match.id)
    ).all()
    results = []
    for match in matches:
        in_groups = match.phase == GROUP_STAGE_PHASE and match.group_code
        results.append(MatchResult(
            home_team_id=match.home_team_id,
            away_team_id=match.away_team_id,
            home_score=match.home_score,
            away_score=match.away_score,
            confirmed=match.result_confirmed,
            group_code=match.group_code.strip().upper() if in_groups else None,
            phase=match.phase,
            match_number=match.match_number,
            advance_team_id=match.advance_team_id,
        ))

    return SeasonData(season, config, roster, results)


def load_ledger(db: Session, season_id: int) -> ManualOverrideLedger:
    return ManualOverrideLedger.from_records(
        db.exec(select(GroupStanding).where(GroupStanding.season_id == season_id)).all(),
        db.exec(select(ThirdPlaceRecord).where(ThirdPlaceRecord.season_id == season_id)).all(),
        db.exec(select(BracketSlotRecord).where(BracketSlotRecord.season_id == season_id)).all(),
    )


def rank_raw_groups(data: SeasonData) -> List[GroupStandings]:
    """Groups as computed from results alone, without manual decisions."""
    resolver = get_resolver(data.config.ranking_convention)
    return rank_groups(data.roster, data.results, resolver)


def rank_season(
    data: SeasonData,
    ledger: ManualOverrideLedger,
) -> Tuple[List[GroupStandings], Optional[ThirdPlaceRanking]]:
    """Ranked groups and third-place table with every manual decision replayed."""
    groups = [ledger.apply_group_order(group) for group in rank_raw_groups(data)]

    thirds = None
    if data.config.third_place_enabled:
        ranking = rank_third_places(groups, data.config.qualification_quota)
        thirds = ledger.apply_third_place_selection(ranking)

    return groups, thirds


def groups_closed(db: Session, season_id: int) -> bool:
    return db.exec(select(GroupStanding.id).where(GroupStanding.season_id == season_id)).first() is not None


def season_meta(db: Session, data: SeasonData) -> Dict[str, Any]:
    meta = data.config.to_dict()
    meta["groups_closed"] = groups_closed(db, data.season_id)
    return meta


# -- persistence ----------------------------------------------------------------


def save_group_standings(db: Session, season_id: int, groups: Sequence[GroupStandings]) -> int:
    """Upsert one row per (group, team). Returns the number of rows written."""
    existing = {
        (row.group_code, row.team_id): row
        for row in db.exec(select(GroupStanding).where(GroupStanding.season_id == season_id)).all()
    }

    saved = 0
    for group in groups:
        for row in group.standings:
            record = existing.pop((group.group_code, row.team_id), None)
            if record is None:
                record = GroupStanding(season_id=season_id, group_code=group.group_code, team_id=row.team_id)
            record.played = row.played
            record.won = row.won
            record.drawn = row.drawn
            record.lost = row.lost
            record.goals_for = row.goals_for
            record.goals_against = row.goals_against
            record.goal_difference = row.goal_difference
            record.points = row.points
            record.position = row.position
            record.needs_manual = row.needs_manual
            record.manual_override = row.manual_override
            record.manual_reason = row.manual_reason
            record.updated_at = datetime.now(UTC)
            db.add(record)
            saved += 1

    # Teams moved out of a group since the last close
    for record in existing.values():
        db.delete(record)

    return saved


def save_third_places(db: Session, season_id: int, ranking: Optional[ThirdPlaceRanking]) -> int:
    existing = {
        row.team_id: row
        for row in db.exec(select(ThirdPlaceRecord).where(ThirdPlaceRecord.season_id == season_id)).all()
    }

    entries = ranking.entries if ranking is not None else []
    for entry in entries:
        record = existing.pop(entry.team_id, None)
        if record is None:
            record = ThirdPlaceRecord(season_id=season_id, team_id=entry.team_id, group_code=entry.group_code)
        record.group_code = entry.group_code
        record.points = entry.points
        record.goal_difference = entry.goal_difference
        record.goals_for = entry.goals_for
        record.goals_against = entry.goals_against
        record.global_rank = entry.global_rank
        record.is_qualified = entry.is_qualified
        record.needs_manual = entry.needs_manual
        record.manual_override = entry.manual_override
        record.manual_reason = entry.manual_reason
        record.updated_at = datetime.now(UTC)
        db.add(record)

    for record in existing.values():
        db.delete(record)

    return len(entries)


def load_slots(db: Session, data: SeasonData) -> Tuple[List[BracketSlot], int]:
    """
    Persisted slots of the season, seeding the knockout matches that have none.

    Returns:
        Tuple of (slots, number of slots seeded in this call)
    """
    records = db.exec(
        select(BracketSlotRecord).where(BracketSlotRecord.season_id == data.season_id)
    ).all()

    slots = [
        BracketSlot(
            record.round,
            record.match_number,
            record.side,
            placeholder_rule=record.placeholder_rule,
            reference=decode_reference(record.placeholder_ref),
            placeholder_team_id=record.placeholder_team_id,
            resolved_team_id=record.team_id,
            manual_override=record.manual_override,
            manual_reason=record.manual_reason,
            pending_reason=record.pending_reason,
        )
        for record in records
    ]

    known = {slot.key for slot in slots}
    seeded = [slot for slot in build_slots(data.results, data.roster_by_id) if slot.key not in known]
    return slots + seeded, len(seeded)


def save_slots(db: Session, season_id: int, slots: Sequence[BracketSlot]) -> int:
    existing = {
        (row.match_number, row.side): row
        for row in db.exec(select(BracketSlotRecord).where(BracketSlotRecord.season_id == season_id)).all()
    }

    for slot in slots:
        record = existing.get(slot.key)
        if record is None:
            record = BracketSlotRecord(season_id=season_id, round=slot.round, match_number=slot.match_number, side=slot.side)
        record.round = slot.round
        record.placeholder_rule = slot.placeholder_rule
        record.placeholder_ref = slot.reference.code if slot.reference else None
        record.placeholder_team_id = slot.placeholder_team_id
        record.team_id = slot.resolved_team_id
        record.needs_manual = slot.needs_manual
        record.manual_override = slot.manual_override
        record.manual_reason = slot.manual_reason
        record.pending_reason = slot.pending_reason
        record.updated_at = datetime.now(UTC)
        db.add(record)

    return len(slots)


def write_participants(db: Session, season_id: int, slots: Sequence[BracketSlot]) -> int:
    """
    Copy slot occupants onto the knockout match rows.

    Unresolved slots fall back to their placeholder team so a withdrawn
    decision does not leave a stale participant behind. Returns the number of
    match rows that changed.
    """
    resolved = slot_assignments(slots)
    fallback: Dict[int, Dict[str, int]] = {}
    for slot in slots:
        if slot.resolved_team_id is None and slot.placeholder_team_id is not None:
            fallback.setdefault(slot.match_number, {})[slot.side] = slot.placeholder_team_id

    numbers = set(resolved) | set(fallback)
    if not numbers:
        return 0

    matches = db.exec(
        select(Match).where(Match.season_id == season_id, Match.match_number.in_(sorted(numbers)))
    ).all()

    updated = 0
    for match in matches:
        targets = {**fallback.get(match.match_number, {}), **resolved.get(match.match_number, {})}
        changed = False
        for side in SIDES:
            team_id = targets.get(side)
            attr = f"{side}_team_id"
            if team_id is not None and getattr(match, attr) != team_id:
                setattr(match, attr, team_id)
                changed = True
        if changed:
            match.updated_at = datetime.now(UTC)
            db.add(match)
            updated += 1

    return updated


def run_resolution(
    db: Session,
    data: SeasonData,
    ledger: ManualOverrideLedger,
    groups: Sequence[GroupStandings],
    thirds: Optional[ThirdPlaceRanking],
) -> Tuple[ResolutionResult, int, int]:
    """
    Resolve the knockout slots and write the participants back.

    Slots are persisted for every sport so that a placeholder keeps its rule
    after its match row has been given a concrete team. Only sports with a
    bracket expose them for manual edits.

    Returns:
        Tuple of (resolution result, slots seeded, match rows updated)
    """
    slots, seeded = load_slots(db, data)
    result = resolve_slots(ledger.apply_slots(slots), groups, thirds, data.results)
    save_slots(db, data.season_id, result.slots)

    updated = write_participants(db, data.season_id, result.slots)
    return result, seeded, updated


# -- read passes ----------------------------------------------------------------


def compute_standings(db: Session, season_id: int) -> Dict[str, Any]:
    """Per-group standings with manual decisions applied."""
    data = load_season(db, season_id)
    groups, _ = rank_season(data, load_ledger(db, season_id))
    return {
        "season_id": season_id,
        "meta": season_meta(db, data),
        "groups": [group.to_dict() for group in groups],
    }


def compute_thirds(db: Session, season_id: int) -> Dict[str, Any]:
    """Cross-group third-place ranking; empty for sports without one."""
    data = load_season(db, season_id)
    _, thirds = rank_season(data, load_ledger(db, season_id))

    if thirds is None:
        body = {
            "quota": data.config.qualification_quota,
            "needs_manual_cut": False,
            "open_slots": 0,
            "final": False,
            "thirds": [],
        }
    else:
        body = thirds.to_dict()

    return {"season_id": season_id, "meta": season_meta(db, data), **body}


# -- mutating passes ------------------------------------------------------------


def close_groups(db: Session, season_id: int) -> Dict[str, Any]:
    """
    Freeze the group stage: persist standings and third places, then resolve
    the knockout placeholders that depend on them.

    Raises:
        GroupStageIncomplete: if any group still has unconfirmed matches
    """
    with season_lock(season_id):
        try:
            data = load_season(db, season_id)
            ledger = load_ledger(db, season_id)
            groups, thirds = rank_season(data, ledger)

            incomplete = [
                {
                    "group_code": g.group_code,
                    "confirmed_matches": g.confirmed_matches,
                    "expected_matches": g.expected_matches,
                }
                for g in groups if not g.is_complete
            ]
            if not groups or incomplete:
                raise GroupStageIncomplete(incomplete)

            saved_standings = save_group_standings(db, season_id, groups)
            saved_thirds = save_third_places(db, season_id, thirds)
            result, seeded, updated = run_resolution(db, data, ledger, groups, thirds)

            db.commit()
        except Exception:
            db.rollback()
            raise

    summary = {
        "season_id": season_id,
        "meta": data.config.to_dict(),
        "completeGroups": len(groups),
        "needs_manual_groups": [g.group_code for g in groups if g.needs_manual],
        "needs_manual_thirds_cut": bool(thirds and thirds.needs_manual_cut),
        "saved_standings": saved_standings,
        "saved_thirds": saved_thirds,
        "bracket_slots_seeded": seeded,
        "pending_slots": len(result.pending),
        "updated": updated,
    }
    logger.info(
        "Closed groups for season %s: %s standings, %s thirds, %s matches updated, manual groups %s",
        season_id, saved_standings, saved_thirds, updated, summary["needs_manual_groups"],
    )
    return summary


def resolve_ko_placeholders(db: Session, season_id: int) -> Dict[str, Any]:
    """Re-run placeholder resolution against the current results."""
    with season_lock(season_id):
        try:
            data = load_season(db, season_id)
            ledger = load_ledger(db, season_id)
            groups, thirds = rank_season(data, ledger)
            _, _, updated = run_resolution(db, data, ledger, groups, thirds)
            db.commit()
        except Exception:
            db.rollback()
            raise

    logger.info("Resolved knockout placeholders for season %s: %s matches updated", season_id, updated)
    return {"season_id": season_id, "updated": updated}


def set_manual_group_order(
    db: Session,
    season_id: int,
    group_code: str,
    ordered_team_ids: Sequence[int],
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    """Record the administrator's order for the ambiguous rows of one group."""
    code = (group_code or "").strip().upper()
    if not code:
        raise InvalidInput("group_code is required")

    with season_lock(season_id):
        try:
            data = load_season(db, season_id)
            ledger = load_ledger(db, season_id)

            raw = {g.group_code: g for g in rank_raw_groups(data)}
            group = raw.get(code)
            if group is None:
                raise InvalidInput(f"Unknown group: {code}")

            ledger.record_group_order(group, ordered_team_ids, reason)
            groups = [ledger.apply_group_order(g) for g in raw.values()]
            save_group_standings(db, season_id, groups)

            db.commit()
        except ManualOverrideRejected as exc:
            db.rollback()
            logger.info("Rejected manual order for group %s of season %s: %s", code, season_id, exc)
            raise
        except Exception:
            db.rollback()
            raise

    applied = next(g for g in groups if g.group_code == code)
    return {
        "season_id": season_id,
        "group_code": code,
        "manual_applied": True,
        "standings": [row.to_dict() for row in applied.standings],
    }


def set_manual_thirds(
    db: Session,
    season_id: int,
    qualified_team_ids: Sequence[int],
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    """Settle a tie at the third-place qualification cutoff."""
    with season_lock(season_id):
        try:
            data = load_season(db, season_id)
            if not data.config.third_place_enabled:
                raise ManualOverrideRejected(f"Sport {data.config.sport_slug} has no third-place ranking")

            ledger = load_ledger(db, season_id)
            groups = [ledger.apply_group_order(g) for g in rank_raw_groups(data)]
            ranking = rank_third_places(groups, data.config.qualification_quota)

            ledger.record_third_place_selection(ranking, qualified_team_ids, reason or "Manual thirds cut")
            applied = ledger.apply_third_place_selection(ranking)
            save_third_places(db, season_id, applied)

            db.commit()
        except ManualOverrideRejected as exc:
            db.rollback()
            logger.info("Rejected manual thirds for season %s: %s", season_id, exc)
            raise
        except Exception:
            db.rollback()
            raise

    return {
        "season_id": season_id,
        "manual_applied": True,
        "qualified_team_ids": [e.team_id for e in applied.qualified],
        "tie_count": len(applied.tie_block),
    }


def get_bracket_slots(db: Session, season_id: int) -> Dict[str, Any]:
    """Resolve what can be resolved, then list every slot and the eligible thirds."""
    with season_lock(season_id):
        try:
            data = load_season(db, season_id)
            if not data.config.bracket_enabled:
                return {
                    "season_id": season_id,
                    "meta": data.config.to_dict(),
                    "slots": [],
                    "eligible_thirds": [],
                    "auto_assigned": {"updated": 0, "pending": 0},
                }

            ledger = load_ledger(db, season_id)
            groups, thirds = rank_season(data, ledger)
            result, _, updated = run_resolution(db, data, ledger, groups, thirds)

            db.commit()
        except Exception:
            db.rollback()
            raise

    eligible = thirds.qualified if thirds is not None else []
    return {
        "season_id": season_id,
        "meta": data.config.to_dict(),
        "slots": [slot.to_dict() for slot in result.slots],
        "eligible_thirds": [entry.to_dict() for entry in eligible],
        "auto_assigned": {"updated": updated, "pending": len(result.pending)},
    }


def slot_candidates(slot: BracketSlot, data: SeasonData, thirds: Optional[ThirdPlaceRanking]) -> set:
    """Team ids an administrator may put into ``slot``."""
    if isinstance(slot.reference, ThirdPlaceCombo):
        if thirds is None:
            return set()
        allowed = set(slot.reference.allowed_groups)
        return {e.team_id for e in thirds.qualified if e.group_code in allowed}
    return {team.team_id for team in data.roster if not team.is_placeholder}


def set_bracket_slot_manual(
    db: Session,
    season_id: int,
    match_number: int,
    side: str,
    team_id: Optional[int],
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    """Force (or clear) the occupant of a pending slot and re-run resolution."""
    side = (side or "").strip().lower()
    if side not in SIDES:
        raise InvalidInput(f"side must be one of {', '.join(SIDES)}")

    with season_lock(season_id):
        try:
            data = load_season(db, season_id)
            if not data.config.bracket_enabled:
                raise ManualOverrideRejected(f"Sport {data.config.sport_slug} has no bracket")

            ledger = load_ledger(db, season_id)
            groups, thirds = rank_season(data, ledger)

            slots, _ = load_slots(db, data)
            current = resolve_slots(ledger.apply_slots(slots), groups, thirds, data.results).slots
            slot = next((s for s in current if s.key == (match_number, side)), None)
            if slot is None:
                raise InvalidInput(f"BracketSlot not found: {match_number}/{side}")

            ledger.record_slot(slot, team_id, slot_candidates(slot, data, thirds), current, reason)
            _, _, updated = run_resolution(db, data, ledger, groups, thirds)

            db.commit()
        except ManualOverrideRejected as exc:
            db.rollback()
            logger.info("Rejected manual slot %s/%s of season %s: %s", match_number, side, season_id, exc)
            raise
        except Exception:
            db.rollback()
            raise

    return {"ok": True, "season_id": season_id, "match_number": match_number, "side": side, "updated": updated}
