"""
Sport-dependent ranking configuration.

Each sport picks one ranking convention and decides whether the cross-group
third-place table and the knockout bracket apply to it.
"""

from dataclasses import dataclass
from typing import Optional

from .config import THIRD_PLACE_QUOTA

ROUND_ROBIN_POINTS = "round_robin_points"
WIN_PERCENTAGE_SWEEP = "win_percentage_sweep"


@dataclass(frozen=True)
class RankingConfig:
    sport_slug: str
    ranking_convention: str
    third_place_enabled: bool
    bracket_enabled: bool
    qualification_quota: int = THIRD_PLACE_QUOTA

    def to_dict(self) -> dict:
        return {
            "sport_slug": self.sport_slug,
            "ranking_convention": self.ranking_convention,
            "third_place_enabled": self.third_place_enabled,
            "bracket_enabled": self.bracket_enabled,
            "qualification_quota": self.qualification_quota,
        }


def get_ranking_config(sport_slug: Optional[str], quota: Optional[int] = None) -> RankingConfig:
    """
    Look up the ranking configuration for a sport.

    Football uses points with head-to-head tie-breaks, the best-thirds table and
    the bracket. Baseball ranks by win percentage with the sweep rule and has
    neither. Unknown sports rank like football but do not assume thirds or a
    bracket.
    """
    slug = (sport_slug or "").strip().lower()
    quota = quota if quota is not None else THIRD_PLACE_QUOTA

    if slug in ("futbol", "soccer", "football"):
        return RankingConfig(slug, ROUND_ROBIN_POINTS, True, True, quota)

    if slug in ("beisbol", "baseball"):
        return RankingConfig(slug, WIN_PERCENTAGE_SWEEP, False, False, quota)

    return RankingConfig(slug or "unknown", ROUND_ROBIN_POINTS, False, False, quota)
