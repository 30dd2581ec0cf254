from datetime import datetime, UTC
from typing import Optional
from sqlmodel import SQLModel, Field, UniqueConstraint


class Match(SQLModel, table=True):
    __tablename__ = "matches"
    __table_args__ = (UniqueConstraint("season_id", "match_number", name="unique_season_match_number"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(foreign_key="seasons.id", index=True)
    match_number: Optional[int] = Field(default=None, index=True)  # 1-104
    phase: str = Field(default="group_stage", index=True)  # group_stage, round_of_32, ..., final
    group_code: Optional[str] = Field(default=None, index=True)  # For group stage only

    home_team_id: Optional[int] = Field(default=None, foreign_key="teams.id")
    away_team_id: Optional[int] = Field(default=None, foreign_key="teams.id")

    # Actual results (filled by admin)
    home_score: Optional[int] = Field(default=None)
    away_score: Optional[int] = Field(default=None)
    result_confirmed: bool = Field(default=False)
    advance_team_id: Optional[int] = Field(default=None, foreign_key="teams.id")  # Knockout draws (ET / penalties)

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
