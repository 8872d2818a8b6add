from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from finals.models.tournament import Tournament


class BracketMatch(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "match_number", name="uq_bracket_match_number"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    match_number: int  # 1..BRACKET_MATCH_COUNT, see services.bracket_topology
    round: str  # "winners_qf" | "winners_sf" | ... | "grand_final_reset"
    bracket_side: str  # "winners" | "losers" | "grand_final"

    # Player slots: null until seeded or advanced into; never cleared
    player1_id: Optional[int] = Field(default=None, foreign_key="entrant.id")
    player2_id: Optional[int] = Field(default=None, foreign_key="entrant.id")

    score1: int = Field(default=0)
    score2: int = Field(default=0)
    completed: bool = Field(default=False)
    winner_id: Optional[int] = Field(default=None, foreign_key="entrant.id")
    completed_at: Optional[datetime] = Field(default=None)

    # Bumped on every write; callers pass it back as expected_version
    version: int = Field(default=1)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="matches")
