from .season import Season
from .team import Team
from .match import Match
from .group_standing import GroupStanding
from .third_place_ranking import ThirdPlaceRanking
from .bracket_slot import BracketSlot

__all__ = [
    "Season",
    "Team",
    "Match",
    "GroupStanding",
    "ThirdPlaceRanking",
    "BracketSlot",
]
