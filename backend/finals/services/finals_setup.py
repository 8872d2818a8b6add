"""
Finals bracket setup and read model.

create_finals_bracket seeds a fresh bracket from qualification standings,
replacing any existing finals matches for the tournament.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlmodel import Session, select

from finals.errors import NotFoundError
from finals.models.bracket_match import BracketMatch
from finals.models.tournament import GrandFinalState, Tournament
from finals.services.bracket_topology import (
    SIDE_GRAND_FINAL,
    SIDE_LOSERS,
    SIDE_WINNERS,
    BracketMatchSpec,
    generate_bracket,
    round_names,
    validate_topology,
)
from finals.services.qualification_ranking import FINALS_SIZE, RankedEntrant, load_candidates, rank_entrants

logger = logging.getLogger(__name__)


@dataclass
class BracketView:
    tournament_id: int
    finals_state: GrandFinalState
    champion_id: Optional[int] = None
    winners: List[BracketMatch] = field(default_factory=list)
    losers: List[BracketMatch] = field(default_factory=list)
    grand_final: List[BracketMatch] = field(default_factory=list)
    round_names: Dict[str, str] = field(default_factory=dict)


def _get_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise NotFoundError(f"Tournament {tournament_id} not found")
    return tournament


def create_finals_bracket(
    session: Session, tournament_id: int, top_n: int = FINALS_SIZE
) -> Tuple[List[RankedEntrant], List[BracketMatch]]:
    """
    Rank entrants, generate the bracket and persist one row per match.

    Existing finals matches for the tournament are deleted first and the
    grand final state is reset to NOT_PLAYED.

    Raises:
        NotFoundError: tournament missing
        ValidationError: unsupported size or not enough entrants
    """
    tournament = _get_tournament(session, tournament_id)

    ranked = rank_entrants(load_candidates(session, tournament_id), top_n)
    specs: List[BracketMatchSpec] = generate_bracket(ranked)
    validate_topology(specs)

    existing = session.exec(
        select(BracketMatch).where(BracketMatch.tournament_id == tournament_id)
    ).all()
    for m in existing:
        session.delete(m)
    if existing:
        logger.info("Tournament %d: replaced %d existing finals matches", tournament_id, len(existing))
    session.flush()

    matches: List[BracketMatch] = []
    for spec in specs:
        m = BracketMatch(
            tournament_id=tournament_id,
            match_number=spec.match_number,
            round=spec.round,
            bracket_side=spec.bracket_side,
            player1_id=spec.player1_entrant_id,
            player2_id=spec.player2_entrant_id,
        )
        session.add(m)
        matches.append(m)

    tournament.finals_state = GrandFinalState.NOT_PLAYED.value
    tournament.champion_id = None
    tournament.updated_at = datetime.now(timezone.utc)
    session.add(tournament)

    session.commit()
    for m in matches:
        session.refresh(m)

    logger.info(
        "Tournament %d: finals bracket created with %d matches, seeds %s",
        tournament_id, len(matches), [r.entrant_id for r in ranked],
    )
    return ranked, matches


def get_bracket_view(session: Session, tournament_id: int) -> BracketView:
    """Finals matches grouped by bracket side, ordered by match number."""
    tournament = _get_tournament(session, tournament_id)
    matches = session.exec(
        select(BracketMatch)
        .where(BracketMatch.tournament_id == tournament_id)
        .order_by(BracketMatch.match_number)
    ).all()

    view = BracketView(
        tournament_id=tournament_id,
        finals_state=GrandFinalState(tournament.finals_state),
        champion_id=tournament.champion_id,
        round_names=dict(round_names),
    )
    groups = {SIDE_WINNERS: view.winners, SIDE_LOSERS: view.losers, SIDE_GRAND_FINAL: view.grand_final}
    for m in matches:
        groups[m.bracket_side].append(m)
    return view
