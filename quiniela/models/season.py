from datetime import datetime, UTC
from typing import Optional
from sqlmodel import SQLModel, Field


class Season(SQLModel, table=True):
    __tablename__ = "seasons"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    sport_slug: str = Field(default="futbol")  # futbol, beisbol, ...
    qualification_quota: Optional[int] = Field(default=None)  # best thirds that advance; None = default

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
