from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from finals.database import get_session
from finals.errors import BracketError
from finals.models.entrant import Entrant
from finals.models.tournament import GrandFinalState, Tournament
from finals.services.qualification_ranking import load_candidates, order_entrants
from finals.services.qualification_stats import DEFAULT_REQUIRED_WINS, QualificationResult, apply_entrant_stats
from finals.utils.http_errors import to_http_exception

router = APIRouter()


class TournamentCreate(BaseModel):
    name: str
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()


class TournamentResponse(BaseModel):
    id: int
    name: str
    notes: Optional[str]
    finals_state: GrandFinalState
    champion_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class EntrantCreate(BaseModel):
    display_name: str
    score: int = 0
    points: int = 0
    win_rounds: int = 0

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v):
        if not v or not v.strip():
            raise ValueError("display_name is required")
        return v.strip()


class EntrantResponse(BaseModel):
    id: int
    tournament_id: int
    display_name: str
    score: int
    points: int
    win_rounds: int
    matches_played: int
    wins: int
    ties: int
    losses: int
    loss_rounds: int

    class Config:
        from_attributes = True


class StandingRow(BaseModel):
    rank: int
    entrant_id: int
    display_name: str
    score: int
    points: int
    win_rounds: int


class QualificationResultIn(BaseModel):
    player1_id: int
    player2_id: int
    score1: int = Field(ge=0)
    score2: int = Field(ge=0)


class QualificationResultsPayload(BaseModel):
    results: List[QualificationResultIn]
    required_wins: int = Field(default=DEFAULT_REQUIRED_WINS, ge=1)


def _get_tournament_or_404(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(session: Session = Depends(get_session)):
    """List all tournaments"""
    return session.exec(select(Tournament)).all()


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    """Create a new tournament"""
    tournament = Tournament(**tournament_data.model_dump())
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Get a tournament by ID, including finals state and champion"""
    return _get_tournament_or_404(session, tournament_id)


@router.post("/tournaments/{tournament_id}/entrants", response_model=EntrantResponse, status_code=201)
def create_entrant(tournament_id: int, entrant_data: EntrantCreate, session: Session = Depends(get_session)):
    """Register an entrant with qualifying metrics"""
    _get_tournament_or_404(session, tournament_id)
    entrant = Entrant(tournament_id=tournament_id, **entrant_data.model_dump())
    session.add(entrant)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(
            status_code=409,
            detail=f"Entrant '{entrant_data.display_name}' already exists in this tournament",
        )
    session.refresh(entrant)
    return entrant


@router.get("/tournaments/{tournament_id}/standings", response_model=List[StandingRow])
def get_standings(tournament_id: int, session: Session = Depends(get_session)):
    """Full qualification order (best first) with 1-based ranks"""
    _get_tournament_or_404(session, tournament_id)
    try:
        ordered = order_entrants(load_candidates(session, tournament_id))
    except BracketError as e:
        raise to_http_exception(e)
    return [
        StandingRow(
            rank=i + 1,
            entrant_id=e.id,
            display_name=e.display_name,
            score=e.score,
            points=e.points,
            win_rounds=e.win_rounds,
        )
        for i, e in enumerate(ordered)
    ]


@router.post("/tournaments/{tournament_id}/qualification/results", response_model=List[EntrantResponse])
def submit_qualification_results(
    tournament_id: int,
    payload: QualificationResultsPayload,
    session: Session = Depends(get_session),
):
    """Recompute every entrant's qualifying metrics from the full set of qualification results"""
    _get_tournament_or_404(session, tournament_id)
    results = [QualificationResult(**r.model_dump()) for r in payload.results]
    try:
        apply_entrant_stats(session, tournament_id, results, payload.required_wins)
    except BracketError as e:
        raise to_http_exception(e)
    return load_candidates(session, tournament_id)
