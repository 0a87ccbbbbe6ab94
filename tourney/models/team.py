import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, func, text
from sqlalchemy.orm import relationship

from tourney.database import Base


class TeamRole(str, enum.Enum):
    leader = "Leader"
    member = "Member"


class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    university_id = Column(Integer, ForeignKey("universities.id"), nullable=False)
    created_at = Column(DateTime, default=func.now())

    university = relationship("University", back_populates="teams")
    players = relationship("Player", back_populates="team")


class Player(Base):
    """Membership of one user in one team."""

    __tablename__ = "players"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False, index=True)
    role = Column(String(10), nullable=False, default=TeamRole.member.value)
    image_url = Column(String(500))
    joined_at = Column(DateTime, default=func.now())

    user = relationship("User", back_populates="membership")
    team = relationship("Team", back_populates="players")

    __table_args__ = (
        # At most one leader per team.
        Index(
            "uq_players_team_leader",
            "team_id",
            unique=True,
            sqlite_where=text("role = 'Leader'"),
            postgresql_where=text("role = 'Leader'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Player user={self.user_id} team={self.team_id} role={self.role}>"
