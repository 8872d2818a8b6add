"""
Grand final / reset handling and completion detection.

State per tournament (Tournament.finals_state):

    NOT_PLAYED --GF, winners finalist wins--> COMPLETE
    NOT_PLAYED --GF, losers finalist wins---> GRAND_FINAL_PLAYED (reset populated)
    GRAND_FINAL_PLAYED --reset played-------> COMPLETE

The winners-bracket finalist is whoever sits in the grand final slot fed by
the Winners Final, read from the topology. Match history is never re-derived
from scores.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from sqlmodel import Session, select

from finals.errors import NotFoundError, StructuralError, ValidationError
from finals.models.bracket_match import BracketMatch
from finals.models.tournament import GrandFinalState, Tournament
from finals.services.bracket_topology import (
    BRACKET_MATCH_COUNT,
    GRAND_FINAL_MATCH,
    GRAND_FINAL_RESET_MATCH,
    ROUND_GRAND_FINAL,
    ROUND_GRAND_FINAL_RESET,
    ROUND_WINNERS_FINAL,
    BracketMatchSpec,
    build_topology,
)

logger = logging.getLogger(__name__)


@dataclass
class GrandFinalTransition:
    state: GrandFinalState
    champion_id: Optional[int] = None
    # (position 1, position 2) for the reset match, when one is required
    reset_pairing: Optional[Tuple[int, int]] = None

    @property
    def is_complete(self) -> bool:
        return self.state == GrandFinalState.COMPLETE


@dataclass
class CompletionResult:
    is_complete: bool
    champion_id: Optional[int] = None


def winners_finalist_position(topology: Sequence[BracketMatchSpec]) -> int:
    """Grand final position (1 or 2) fed by the Winners Final winner."""
    for spec in topology:
        if spec.round == ROUND_WINNERS_FINAL:
            dest = spec.winner_to
            if dest is None or dest.match_number != GRAND_FINAL_MATCH:
                raise StructuralError("Winners Final does not feed the Grand Final")
            return dest.position
    raise StructuralError("Topology has no Winners Final")


def resolve_grand_final(
    state: GrandFinalState,
    player1_id: int,
    player2_id: int,
    winner_id: int,
    winners_position: int = 1,
) -> GrandFinalTransition:
    """Pure transition for a completed grand final."""
    if state != GrandFinalState.NOT_PLAYED:
        raise ValidationError(f"Grand final already played (state {state.value})")
    if winner_id not in (player1_id, player2_id):
        raise ValidationError(f"Winner {winner_id} is not a grand final player")

    winners_finalist = player1_id if winners_position == 1 else player2_id
    losers_finalist = player2_id if winners_position == 1 else player1_id

    if winner_id == winners_finalist:
        return GrandFinalTransition(state=GrandFinalState.COMPLETE, champion_id=winner_id)

    return GrandFinalTransition(
        state=GrandFinalState.GRAND_FINAL_PLAYED,
        reset_pairing=(losers_finalist, winners_finalist),
    )


def resolve_reset(state: GrandFinalState, winner_id: int) -> GrandFinalTransition:
    """Pure transition for a completed reset match. The reset always decides."""
    if state != GrandFinalState.GRAND_FINAL_PLAYED:
        raise ValidationError(f"Grand final reset not pending (state {state.value})")
    return GrandFinalTransition(state=GrandFinalState.COMPLETE, champion_id=winner_id)


def _require_full_bracket(session: Session, tournament_id: int) -> Dict[int, BracketMatch]:
    rows: List[BracketMatch] = list(
        session.exec(select(BracketMatch).where(BracketMatch.tournament_id == tournament_id)).all()
    )
    by_number = {m.match_number: m for m in rows}
    if len(rows) != BRACKET_MATCH_COUNT or set(by_number) != set(range(1, BRACKET_MATCH_COUNT + 1)):
        logger.error(
            "Tournament %d finals bracket has %d matches, expected %d",
            tournament_id, len(rows), BRACKET_MATCH_COUNT,
        )
        raise StructuralError(
            f"Finals bracket for tournament {tournament_id} has {len(rows)} matches, "
            f"expected {BRACKET_MATCH_COUNT}"
        )
    return by_number


def apply_grand_final_result(
    session: Session,
    match: BracketMatch,
    winner_id: int,
) -> GrandFinalTransition:
    """
    Apply a completed grand final or reset to the tournament state.

    Writes reset slots and the tournament state/champion but does not commit;
    the caller commits together with the match result.
    """
    tournament = session.get(Tournament, match.tournament_id)
    if not tournament:
        raise NotFoundError(f"Tournament {match.tournament_id} not found")

    by_number = _require_full_bracket(session, match.tournament_id)
    state = GrandFinalState(tournament.finals_state or GrandFinalState.NOT_PLAYED)

    if match.round == ROUND_GRAND_FINAL and match.match_number == GRAND_FINAL_MATCH:
        transition = resolve_grand_final(
            state,
            match.player1_id,
            match.player2_id,
            winner_id,
            winners_finalist_position(build_topology()),
        )
        if transition.reset_pairing is not None:
            reset = by_number[GRAND_FINAL_RESET_MATCH]
            _populate_reset(reset, transition.reset_pairing)
            session.add(reset)
    elif match.round == ROUND_GRAND_FINAL_RESET and match.match_number == GRAND_FINAL_RESET_MATCH:
        transition = resolve_reset(state, winner_id)
    else:
        raise StructuralError(
            f"Match {match.match_number} ({match.round}) is not part of the grand final pair"
        )

    tournament.finals_state = transition.state.value
    tournament.champion_id = transition.champion_id
    tournament.updated_at = datetime.now(timezone.utc)
    session.add(tournament)

    logger.info(
        "Tournament %d grand final: %s -> %s (champion=%s)",
        tournament.id, state.value, transition.state.value, transition.champion_id,
    )
    return transition


def _populate_reset(reset: BracketMatch, pairing: Tuple[int, int]) -> None:
    for position, entrant_id in zip((1, 2), pairing):
        attr = f"player{position}_id"
        current = getattr(reset, attr)
        if current is not None and current != entrant_id:
            raise StructuralError(
                f"Reset match slot {position} already holds entrant {current}"
            )
        setattr(reset, attr, entrant_id)
    reset.version += 1


def completion_status(session: Session, tournament_id: int) -> CompletionResult:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise NotFoundError(f"Tournament {tournament_id} not found")
    return CompletionResult(
        is_complete=tournament.finals_state == GrandFinalState.COMPLETE,
        champion_id=tournament.champion_id,
    )
