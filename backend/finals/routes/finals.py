"""
Finals bracket endpoints: create from standings, read grouped, record results.
When a result is recorded, the advancement service fills downstream player slots
and the grand final handler decides completion.
"""
import os
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlmodel import Session

from finals.database import get_session
from finals.errors import BracketError
from finals.models.bracket_match import BracketMatch
from finals.models.tournament import GrandFinalState
from finals.services.advancement_service import record_result
from finals.services.bracket_topology import build_topology
from finals.services.finals_setup import create_finals_bracket, get_bracket_view
from finals.services.qualification_ranking import FINALS_SIZE
from finals.services.qualification_stats import DEFAULT_REQUIRED_WINS
from finals.utils.http_errors import to_http_exception

router = APIRouter()

FINALS_REQUIRED_WINS = int(os.getenv("FINALS_REQUIRED_WINS", str(DEFAULT_REQUIRED_WINS)))


class FinalsCreate(BaseModel):
    top_n: int = FINALS_SIZE


class MatchResultUpdate(BaseModel):
    score1: int = Field(ge=0)
    score2: int = Field(ge=0)
    required_wins: int = Field(default=FINALS_REQUIRED_WINS, ge=1)
    expected_version: Optional[int] = None


class FinalsMatchState(BaseModel):
    id: int
    tournament_id: int
    match_number: int
    round: str
    bracket_side: str
    player1_id: Optional[int] = None
    player2_id: Optional[int] = None
    score1: int
    score2: int
    completed: bool
    winner_id: Optional[int] = None
    completed_at: Optional[datetime] = None
    version: int

    class Config:
        from_attributes = True


class SlotRefOut(BaseModel):
    match_number: int
    position: int


class BracketStructureRow(BaseModel):
    match_number: int
    bracket_side: str
    round: str
    position_tag: str
    player1_seed: Optional[int] = None
    player2_seed: Optional[int] = None
    winner_to: Optional[SlotRefOut] = None
    loser_to: Optional[SlotRefOut] = None
    bye: bool = False


class SeedOut(BaseModel):
    seed: int
    entrant_id: int
    display_name: str
    qualifying_score: int
    qualifying_points: int


class FinalsCreateResponse(BaseModel):
    message: str
    seeded: List[SeedOut]
    matches: List[FinalsMatchState]


class FinalsBracketResponse(BaseModel):
    tournament_id: int
    finals_state: GrandFinalState
    champion_id: Optional[int] = None
    winners: List[FinalsMatchState]
    losers: List[FinalsMatchState]
    grand_final: List[FinalsMatchState]
    structure: List[BracketStructureRow]
    round_names: Dict[str, str]


class MatchResultResponse(BaseModel):
    match: FinalsMatchState
    winner_id: int
    loser_id: int
    is_complete: bool
    champion_id: Optional[int] = None
    advanced_count: int = 0


def _match_state(m: BracketMatch) -> FinalsMatchState:
    return FinalsMatchState.model_validate(m)


def _structure() -> List[BracketStructureRow]:
    rows = []
    for s in build_topology():
        rows.append(BracketStructureRow(
            match_number=s.match_number,
            bracket_side=s.bracket_side,
            round=s.round,
            position_tag=s.position_tag,
            bye=s.bye,
            player1_seed=s.player1_seed,
            player2_seed=s.player2_seed,
            winner_to=SlotRefOut(match_number=s.winner_to.match_number, position=s.winner_to.position)
            if s.winner_to else None,
            loser_to=SlotRefOut(match_number=s.loser_to.match_number, position=s.loser_to.position)
            if s.loser_to else None,
        ))
    return rows


@router.post("/tournaments/{tournament_id}/finals", response_model=FinalsCreateResponse, status_code=201)
def create_finals(
    tournament_id: int,
    payload: FinalsCreate,
    session: Session = Depends(get_session),
) -> FinalsCreateResponse:
    """Seed the top entrants into a fresh double-elimination bracket (replaces any existing one)."""
    try:
        ranked, matches = create_finals_bracket(session, tournament_id, payload.top_n)
    except BracketError as e:
        raise to_http_exception(e)

    return FinalsCreateResponse(
        message="Finals bracket created",
        seeded=[
            SeedOut(
                seed=r.rank,
                entrant_id=r.entrant_id,
                display_name=r.display_name,
                qualifying_score=r.qualifying_score,
                qualifying_points=r.qualifying_points,
            )
            for r in ranked
        ],
        matches=[_match_state(m) for m in matches],
    )


@router.get("/tournaments/{tournament_id}/finals", response_model=FinalsBracketResponse)
def get_finals(tournament_id: int, session: Session = Depends(get_session)) -> FinalsBracketResponse:
    """Finals matches grouped by bracket side, plus the static bracket structure."""
    try:
        view = get_bracket_view(session, tournament_id)
    except BracketError as e:
        raise to_http_exception(e)

    has_matches = bool(view.winners or view.losers or view.grand_final)
    return FinalsBracketResponse(
        tournament_id=view.tournament_id,
        finals_state=view.finals_state,
        champion_id=view.champion_id,
        winners=[_match_state(m) for m in view.winners],
        losers=[_match_state(m) for m in view.losers],
        grand_final=[_match_state(m) for m in view.grand_final],
        structure=_structure() if has_matches else [],
        round_names=view.round_names,
    )


@router.put(
    "/tournaments/{tournament_id}/finals/matches/{match_id}",
    response_model=MatchResultResponse,
)
def update_finals_match(
    tournament_id: int,
    match_id: int,
    payload: MatchResultUpdate,
    session: Session = Depends(get_session),
) -> MatchResultResponse:
    """Record a finals result. Winner/loser advance; grand final results may complete the tournament."""
    try:
        result = record_result(
            session,
            match_id,
            payload.score1,
            payload.score2,
            payload.required_wins,
            tournament_id=tournament_id,
            expected_version=payload.expected_version,
        )
    except BracketError as e:
        raise to_http_exception(e)

    return MatchResultResponse(
        match=_match_state(result.match),
        winner_id=result.winner_id,
        loser_id=result.loser_id,
        is_complete=result.is_complete,
        champion_id=result.champion_id,
        advanced_count=len(result.advanced),
    )
