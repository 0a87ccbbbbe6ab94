"""Import every model so ``Base.metadata`` knows all tables."""

from tourney.models.university import University
from tourney.models.team import Player, Team, TeamRole
from tourney.models.user import User
from tourney.models.tournament import Registration, Tournament
from tourney.models.match import Match, Schedule

__all__ = [
    "University",
    "Team",
    "TeamRole",
    "Player",
    "User",
    "Tournament",
    "Registration",
    "Match",
    "Schedule",
]
