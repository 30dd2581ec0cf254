from datetime import datetime, UTC
from typing import Optional
from sqlmodel import SQLModel, Field, UniqueConstraint


class GroupStanding(SQLModel, table=True):
    """Group standings persisted when the group stage is closed."""
    __tablename__ = "group_standings"
    __table_args__ = (
        UniqueConstraint("season_id", "group_code", "team_id", name="unique_season_group_team"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(foreign_key="seasons.id", index=True)
    group_code: str = Field(max_length=2)
    team_id: int = Field(foreign_key="teams.id")
    played: int = Field(default=0)
    won: int = Field(default=0)
    drawn: int = Field(default=0)
    lost: int = Field(default=0)
    goals_for: int = Field(default=0)
    goals_against: int = Field(default=0)
    goal_difference: int = Field(default=0)
    points: int = Field(default=0)
    position: Optional[int] = Field(default=None)

    needs_manual: bool = Field(default=False)
    manual_override: bool = Field(default=False)
    manual_reason: Optional[str] = Field(default=None)

    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
