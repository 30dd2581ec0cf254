"""
Season import from CSV files.

teams.csv columns: ``name``, ``code``, ``group_code``.
matches.csv columns: ``match_number``, ``phase``, ``group_code``, ``home``,
``away``, ``home_score``, ``away_score``, ``result_confirmed``, ``advance``.
``home``, ``away`` and ``advance`` name a team by code, or by name for
placeholders.

Placeholder rules are parsed here, once, and stored as ``placeholder_ref``.
"""

import logging
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, Optional, Union

import pandas as pd
from sqlmodel import Session, select

from .config import GROUP_STAGE_PHASE
from .errors import InvalidInput, SeasonNotFound
from .models import Match, Season, Team
from .placeholders import parse_placeholder_rule

logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIXES = ("WINNER", "LOSER", "GANADOR", "PERDEDOR")
TRUE_VALUES = {"1", "TRUE", "YES", "SI", "SÍ", "Y", "S"}


def clean(value: Any) -> Optional[str]:
    """CSV cell as stripped text, None for blanks and NaN."""
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


def to_int(value: Any) -> Optional[int]:
    text = clean(value)
    if text is None:
        return None
    try:
        return int(float(text))
    except ValueError:
        raise InvalidInput(f"Not a number: {text!r}")


def to_bool(value: Any) -> bool:
    text = clean(value)
    return text is not None and text.upper() in TRUE_VALUES


def is_placeholder_name(name: str, code: Optional[str], group_code: Optional[str]) -> bool:
    """
    Decide whether a roster entry stands in for a team decided later.

    Entries without a code or a group are placeholders, as are names such as
    "1º Grupo A", "Repechaje 1" or "Ganador Partido 73".
    """
    upper = name.upper()
    return (
        not code
        or not group_code
        or "º" in name
        or "REPECHAJE" in upper
        or upper.startswith(PLACEHOLDER_PREFIXES)
    )


def get_or_create_season(
    db: Session,
    name: str,
    sport_slug: str = "futbol",
    qualification_quota: Optional[int] = None,
) -> Season:
    season = db.exec(select(Season).where(Season.name == name)).first()
    if season is None:
        season = Season(name=name, sport_slug=sport_slug, qualification_quota=qualification_quota)
        db.add(season)
        db.flush()
        logger.info("Created season %s (%s)", name, sport_slug)
    return season


def import_teams(db: Session, season_id: int, teams: pd.DataFrame) -> Dict[str, int]:
    """Upsert teams by code (placeholders by name). Returns created/updated counts."""
    existing = db.exec(select(Team).where(Team.season_id == season_id)).all()
    by_code = {t.code: t for t in existing if t.code}
    by_name = {t.name: t for t in existing if not t.code}

    created = updated = unparsed = 0
    for record in teams.to_dict(orient="records"):
        name = clean(record.get("name"))
        if not name:
            continue
        code = clean(record.get("code"))
        code = code.upper() if code else None
        group_code = clean(record.get("group_code"))
        group_code = group_code.upper() if group_code else None

        team = by_code.get(code) if code else by_name.get(name)
        if team is None:
            team = Team(season_id=season_id, name=name, code=code)
            created += 1
        else:
            updated += 1

        team.name = name
        team.group_code = group_code
        team.is_placeholder = is_placeholder_name(name, code, group_code)
        team.placeholder_rule = name if team.is_placeholder else None

        reference = parse_placeholder_rule(name) if team.is_placeholder else None
        team.placeholder_ref = reference.code if reference else None
        if team.is_placeholder and reference is None and not group_code:
            unparsed += 1
            logger.warning("Placeholder rule not recognised: %r", name)

        team.updated_at = datetime.now(UTC)
        db.add(team)
        if code:
            by_code[code] = team
        else:
            by_name[name] = team

    db.flush()
    return {"created": created, "updated": updated, "unparsed_rules": unparsed}


def import_matches(db: Session, season_id: int, matches: pd.DataFrame) -> Dict[str, int]:
    """Upsert matches by match_number. Returns created/updated counts."""
    teams = db.exec(select(Team).where(Team.season_id == season_id)).all()
    lookup: Dict[str, int] = {}
    for team in teams:
        lookup[team.name.upper()] = team.id
    for team in teams:
        if team.code:
            lookup[team.code.upper()] = team.id

    def team_id(value: Any, match_number: int) -> Optional[int]:
        text = clean(value)
        if text is None:
            return None
        found = lookup.get(text.upper())
        if found is None:
            raise InvalidInput(f"Unknown team {text!r} in match {match_number}")
        return found

    existing = {
        m.match_number: m
        for m in db.exec(select(Match).where(Match.season_id == season_id)).all()
    }

    created = updated = 0
    for record in matches.to_dict(orient="records"):
        match_number = to_int(record.get("match_number"))
        if match_number is None:
            logger.warning("Skipping match row without match_number: %s", record)
            continue

        match = existing.get(match_number)
        if match is None:
            match = Match(season_id=season_id, match_number=match_number)
            existing[match_number] = match
            created += 1
        else:
            updated += 1

        match.phase = clean(record.get("phase")) or GROUP_STAGE_PHASE
        group_code = clean(record.get("group_code"))
        match.group_code = group_code.upper() if group_code else None
        match.home_team_id = team_id(record.get("home"), match_number)
        match.away_team_id = team_id(record.get("away"), match_number)
        match.home_score = to_int(record.get("home_score"))
        match.away_score = to_int(record.get("away_score"))
        match.result_confirmed = to_bool(record.get("result_confirmed"))
        match.advance_team_id = team_id(record.get("advance"), match_number)
        match.updated_at = datetime.now(UTC)
        db.add(match)

    db.flush()
    return {"created": created, "updated": updated}


def import_season(
    db: Session,
    season_id: int,
    teams_csv: Union[str, Path],
    matches_csv: Union[str, Path, None] = None,
    dry_run: bool = False,
) -> Dict[str, Any]:
    """
    Import a season's teams and matches in one transaction.

    With ``dry_run`` everything is validated and counted, then rolled back.
    """
    if db.get(Season, season_id) is None:
        raise SeasonNotFound(season_id)

    try:
        summary = {"season_id": season_id, "dry_run": dry_run}
        summary["teams"] = import_teams(db, season_id, pd.read_csv(teams_csv, dtype=str))
        if matches_csv is not None:
            summary["matches"] = import_matches(db, season_id, pd.read_csv(matches_csv, dtype=str))

        if dry_run:
            db.rollback()
        else:
            db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Imported season %s: %s", season_id, summary)
    return summary
