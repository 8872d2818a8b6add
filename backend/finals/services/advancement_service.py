"""
Finals advancement: record one match result and push winner/loser into their
statically wired destination slots.

Only the completed match and its (at most two) destination matches are
touched, plus the onward slot when a destination is a bye, so matches may
complete in any order. Slots only go from null to filled. Grand final and
reset results are handed to the grand final handler.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlmodel import Session, select

from finals.errors import NotFoundError, StaleVersionError, StructuralError, ValidationError
from finals.models.bracket_match import BracketMatch
from finals.services.bracket_topology import SIDE_GRAND_FINAL, BracketMatchSpec, SlotRef, topology_by_number
from finals.services.grand_final import apply_grand_final_result

logger = logging.getLogger(__name__)

ROLE_WINNER = "WINNER"
ROLE_LOSER = "LOSER"


@dataclass
class AdvancementResult:
    match: BracketMatch
    winner_id: int
    loser_id: int
    is_complete: bool = False
    champion_id: Optional[int] = None
    # (role, destination) for every slot written by this result
    advanced: List[Tuple[str, SlotRef]] = field(default_factory=list)


def determine_winner(
    match: BracketMatch, score1: int, score2: int, required_wins: int
) -> Tuple[int, int]:
    """
    Resolve (winner_id, loser_id) from the scores.

    Exactly one side must have reached required_wins.
    """
    p1_done = score1 >= required_wins
    p2_done = score2 >= required_wins
    if p1_done == p2_done:
        raise ValidationError(
            f"Match {match.match_number} has no winner: score {score1}-{score2}, "
            f"first to {required_wins} required"
        )
    if p1_done:
        return match.player1_id, match.player2_id
    return match.player2_id, match.player1_id


def _validate_scores(score1, score2, required_wins) -> None:
    for name, value in (("score1", score1), ("score2", score2), ("required_wins", required_wins)):
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValidationError(f"{name} must be an integer, got {value!r}")
    if score1 < 0 or score2 < 0:
        raise ValidationError(f"Scores must be non-negative, got {score1}-{score2}")
    if required_wins < 1:
        raise ValidationError(f"required_wins must be >= 1, got {required_wins}")


def _destination(
    session: Session, tournament_id: int, source_number: int, dest: SlotRef, entrant_id: int
) -> Optional[BracketMatch]:
    """
    Destination row for a slot write, or None if it already holds entrant_id.

    Raises StructuralError if the row is missing or the slot holds someone else.
    """
    down = session.exec(
        select(BracketMatch).where(
            BracketMatch.tournament_id == tournament_id,
            BracketMatch.match_number == dest.match_number,
        )
    ).first()
    if down is None:
        logger.error(
            "Tournament %d: match %d routes to missing match %d",
            tournament_id, source_number, dest.match_number,
        )
        raise StructuralError(
            f"Destination match {dest.match_number} for match {source_number} not found"
        )

    current = getattr(down, f"player{dest.position}_id")
    if current is None:
        return down
    if current == entrant_id:
        return None
    logger.error(
        "Tournament %d: slot %d/%d holds entrant %d, refusing to overwrite with %d",
        tournament_id, dest.match_number, dest.position, current, entrant_id,
    )
    raise StructuralError(
        f"Slot {dest.position} of match {dest.match_number} already holds entrant {current}"
    )


def _plan_slot_writes(
    session: Session,
    match: BracketMatch,
    role: str,
    dest: Optional[SlotRef],
    entrant_id: int,
    topology: Dict[int, BracketMatchSpec],
) -> List[Tuple[str, SlotRef, int, BracketMatch, bool]]:
    """
    Slot writes for one entrant leaving `match`, following a bye to its onward slot.

    Each entry is (role, destination, entrant_id, row, completes_bye).
    """
    writes = []
    source_number = match.match_number
    while dest is not None:
        down = _destination(session, match.tournament_id, source_number, dest, entrant_id)
        if down is None:
            break
        dest_spec = topology.get(dest.match_number)
        if dest_spec is None:
            raise StructuralError(f"Match number {dest.match_number} is not part of the bracket")
        writes.append((role, dest, entrant_id, down, dest_spec.bye))
        if not dest_spec.bye:
            break
        source_number, dest = dest.match_number, dest_spec.winner_to
    return writes


def record_result(
    session: Session,
    match_id: int,
    score1: int,
    score2: int,
    required_wins: int,
    tournament_id: Optional[int] = None,
    expected_version: Optional[int] = None,
) -> AdvancementResult:
    """
    Record a finals match result and advance its players.

    Steps: validate, resolve winner/loser, plan destination writes, then write
    score + completed + both destination slots and commit once. Nothing is
    written if any check fails.

    Not idempotent: a second submission for a completed match is rejected.
    Callers that race on one match should pass expected_version.

    Raises:
        NotFoundError: match missing or not in tournament_id
        ValidationError: bad scores, no winner, incomplete pairing, already completed
        StaleVersionError: expected_version does not match
        StructuralError: bracket rows inconsistent with the topology
    """
    match = session.get(BracketMatch, match_id)
    if not match or (tournament_id is not None and match.tournament_id != tournament_id):
        raise NotFoundError(f"Finals match {match_id} not found")

    _validate_scores(score1, score2, required_wins)

    if expected_version is not None and match.version != expected_version:
        raise StaleVersionError(
            f"Version mismatch for match {match_id}: expected {expected_version}, got {match.version}",
            current_version=match.version,
        )
    if match.completed:
        raise ValidationError(f"Match {match.match_number} is already completed")
    if match.player1_id is None or match.player2_id is None:
        raise ValidationError(f"Match {match.match_number} does not have both players yet")

    winner_id, loser_id = determine_winner(match, score1, score2, required_wins)

    topology = topology_by_number()
    spec = topology.get(match.match_number)
    if spec is None:
        raise StructuralError(f"Match number {match.match_number} is not part of the bracket")
    if spec.round != match.round:
        raise StructuralError(
            f"Match {match.match_number} is stored as {match.round}, topology says {spec.round}"
        )

    # Plan all slot writes before mutating anything
    plan: List[Tuple[str, SlotRef, int, BracketMatch, bool]] = []
    for role, dest, entrant_id in (
        (ROLE_WINNER, spec.winner_to, winner_id),
        (ROLE_LOSER, spec.loser_to, loser_id),
    ):
        plan.extend(_plan_slot_writes(session, match, role, dest, entrant_id, topology))

    result = AdvancementResult(match=match, winner_id=winner_id, loser_id=loser_id)
    try:
        match.score1 = score1
        match.score2 = score2
        match.completed = True
        match.winner_id = winner_id
        now = datetime.now(timezone.utc)
        match.completed_at = now
        match.version += 1
        session.add(match)

        for role, dest, entrant_id, down, completes_bye in plan:
            setattr(down, f"player{dest.position}_id", entrant_id)
            if completes_bye:
                down.completed = True
                down.winner_id = entrant_id
                down.completed_at = now
            down.version += 1
            session.add(down)
            result.advanced.append((role, dest))
            logger.debug(
                "Match %d %s %d -> match %d slot %d",
                match.match_number, role.lower(), entrant_id, dest.match_number, dest.position,
            )

        if spec.bracket_side == SIDE_GRAND_FINAL:
            transition = apply_grand_final_result(session, match, winner_id)
            result.is_complete = transition.is_complete
            result.champion_id = transition.champion_id

        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(match)
    logger.info(
        "Tournament %d match %d (%s) recorded %d-%d: winner=%d loser=%d complete=%s",
        match.tournament_id, match.match_number, match.round, score1, score2,
        winner_id, loser_id, result.is_complete,
    )
    return result
