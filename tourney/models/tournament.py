from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, func

from tourney.database import Base


class Tournament(Base):
    __tablename__ = "tournaments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False)
    start_date = Column(Date, nullable=False)
    location = Column(String(150))
    created_at = Column(DateTime, default=func.now())


class Registration(Base):
    __tablename__ = "registrations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False, index=True)
    # Set when the user signed up on behalf of their team.
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    registered_at = Column(DateTime, default=func.now())

    def __repr__(self) -> str:
        return f"<Registration user={self.user_id} tournament={self.tournament_id} team={self.team_id}>"
