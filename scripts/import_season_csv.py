#!/usr/bin/env python3
"""
Import a season's teams and matches from CSV files.

Usage:
    python scripts/import_season_csv.py --season "Mundial 2026" --teams teams.csv --matches matches.csv
    python scripts/import_season_csv.py --season "LMB 2026" --sport beisbol --teams teams.csv --dry-run

Exit codes:
    0: Success
    1: Input file missing
    2: Import rejected (unknown team, bad number, ...)
"""
import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlmodel import Session

from quiniela.config import LOG_LEVEL
from quiniela.database import engine, create_db_and_tables
from quiniela.errors import InvalidInput
from quiniela.importer import get_or_create_season, import_season


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Import a season from CSV files")
    parser.add_argument("--season", required=True, help="Season name (created if missing)")
    parser.add_argument("--sport", default="futbol", help="Sport slug for a new season")
    parser.add_argument("--quota", type=int, default=None, help="Best third-placed teams that advance")
    parser.add_argument("--teams", required=True, type=Path, help="teams.csv")
    parser.add_argument("--matches", type=Path, default=None, help="matches.csv")
    parser.add_argument("--dry-run", action="store_true", help="Validate and count without saving")
    args = parser.parse_args(argv)

    logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")

    for path in (args.teams, args.matches):
        if path is not None and not path.exists():
            print(f"Error: {path} not found.", file=sys.stderr)
            return 1

    create_db_and_tables()
    with Session(engine) as db:
        season = get_or_create_season(db, args.season, args.sport, args.quota)
        try:
            summary = import_season(db, season.id, args.teams, args.matches, dry_run=args.dry_run)
        except InvalidInput as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2

    print(f"Import {'checked' if args.dry_run else 'OK'}: {summary}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
