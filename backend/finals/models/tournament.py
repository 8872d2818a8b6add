from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from finals.models.bracket_match import BracketMatch
    from finals.models.entrant import Entrant


class GrandFinalState(str, Enum):
    NOT_PLAYED = "NOT_PLAYED"
    GRAND_FINAL_PLAYED = "GRAND_FINAL_PLAYED"  # losers finalist won; reset pending
    COMPLETE = "COMPLETE"


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    notes: Optional[str] = None

    # Grand final / reset pair state for this tournament's finals bracket
    finals_state: GrandFinalState = Field(
        default=GrandFinalState.NOT_PLAYED, sa_column=Column(String, nullable=False)
    )
    champion_id: Optional[int] = Field(default=None)  # entrant id once finals_state is COMPLETE

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column_kwargs={"onupdate": lambda: datetime.now(timezone.utc)},
    )

    # Relationships
    entrants: List["Entrant"] = Relationship(back_populates="tournament")
    matches: List["BracketMatch"] = Relationship(back_populates="tournament")
