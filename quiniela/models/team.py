from datetime import datetime, UTC
from typing import Optional
from sqlmodel import SQLModel, Field, UniqueConstraint


class Team(SQLModel, table=True):
    __tablename__ = "teams"
    __table_args__ = (UniqueConstraint("season_id", "code", name="unique_season_team_code"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(foreign_key="seasons.id", index=True)
    name: str = Field(index=True)
    code: Optional[str] = Field(default=None)  # e.g. "MEX"; None for most placeholders
    group_code: Optional[str] = Field(default=None, index=True)  # A-L

    # Placeholder entries stand in for a team decided later ("1º Grupo A", "Ganador Partido 73")
    is_placeholder: bool = Field(default=False)
    placeholder_rule: Optional[str] = Field(default=None)
    placeholder_ref: Optional[str] = Field(default=None)  # parsed rule, e.g. "G:A:1", "M:73:W", "T:ABCDF"

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
