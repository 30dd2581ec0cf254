from datetime import datetime, UTC
from typing import Optional
from sqlmodel import SQLModel, Field, UniqueConstraint


class BracketSlot(SQLModel, table=True):
    """One side of a knockout match and the team it resolved to."""
    __tablename__ = "bracket_slots"
    __table_args__ = (
        UniqueConstraint("season_id", "match_number", "side", name="unique_season_match_side"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(foreign_key="seasons.id", index=True)
    round: str = Field(index=True)  # phase of the match, e.g. round_of_32
    match_number: int = Field(index=True)
    side: str  # home, away

    placeholder_rule: Optional[str] = Field(default=None)
    placeholder_ref: Optional[str] = Field(default=None)
    placeholder_team_id: Optional[int] = Field(default=None, foreign_key="teams.id")
    team_id: Optional[int] = Field(default=None, foreign_key="teams.id")

    needs_manual: bool = Field(default=True)
    manual_override: bool = Field(default=False)
    manual_reason: Optional[str] = Field(default=None)
    pending_reason: Optional[str] = Field(default=None)

    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
