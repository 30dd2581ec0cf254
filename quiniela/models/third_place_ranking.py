from datetime import datetime, UTC
from typing import Optional
from sqlmodel import SQLModel, Field, UniqueConstraint


class ThirdPlaceRanking(SQLModel, table=True):
    __tablename__ = "third_place_rankings"
    __table_args__ = (UniqueConstraint("season_id", "team_id", name="unique_season_third_team"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(foreign_key="seasons.id", index=True)
    team_id: int = Field(foreign_key="teams.id")
    group_code: str = Field(max_length=2)
    points: int = Field(default=0)
    goal_difference: int = Field(default=0)
    goals_for: int = Field(default=0)
    goals_against: int = Field(default=0)
    global_rank: Optional[int] = Field(default=None)  # 1-12, where 1-8 qualify

    is_qualified: bool = Field(default=False)
    needs_manual: bool = Field(default=False)
    manual_override: bool = Field(default=False)
    manual_reason: Optional[str] = Field(default=None)

    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
