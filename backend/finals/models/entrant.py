from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from finals.models.tournament import Tournament


class Entrant(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "display_name", name="uq_tournament_entrant_name"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    display_name: str

    # Qualifying metrics, used only for seeding order
    score: int = Field(default=0)  # primary: 2 per win, 1 per tie
    points: int = Field(default=0)  # secondary: round differential
    win_rounds: int = Field(default=0)  # tertiary: rounds won

    # Informational tallies from qualification
    matches_played: int = Field(default=0)
    wins: int = Field(default=0)
    ties: int = Field(default=0)
    losses: int = Field(default=0)
    loss_rounds: int = Field(default=0)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="entrants")
