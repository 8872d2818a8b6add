"""
Qualification stat aggregation.

Folds completed qualification results into the metrics that
qualification_ranking sorts on:
  score      = 2 * wins + ties
  points     = win_rounds - loss_rounds
  win_rounds = rounds won across all results
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List

from sqlmodel import Session

from finals.errors import NotFoundError, ValidationError
from finals.services.qualification_ranking import load_candidates

DEFAULT_REQUIRED_WINS = 3


@dataclass
class QualificationResult:
    player1_id: int
    player2_id: int
    score1: int
    score2: int


@dataclass
class EntrantStats:
    entrant_id: int
    matches_played: int = 0
    wins: int = 0
    ties: int = 0
    losses: int = 0
    win_rounds: int = 0
    loss_rounds: int = 0

    @property
    def score(self) -> int:
        return self.wins * 2 + self.ties

    @property
    def points(self) -> int:
        return self.win_rounds - self.loss_rounds


def _outcome(own: int, other: int, required_wins: int) -> str:
    if own >= required_wins and other < required_wins:
        return "win"
    if other >= required_wins and own < required_wins:
        return "loss"
    return "tie"


def aggregate_entrant_stats(
    results: Iterable[QualificationResult],
    entrant_id: int,
    required_wins: int = DEFAULT_REQUIRED_WINS,
) -> EntrantStats:
    """Aggregate one entrant's stats across the results they played in."""
    if required_wins < 1:
        raise ValidationError(f"required_wins must be >= 1, got {required_wins}")

    stats = EntrantStats(entrant_id=entrant_id)
    for r in results:
        if r.player1_id == entrant_id:
            own, other = r.score1, r.score2
        elif r.player2_id == entrant_id:
            own, other = r.score2, r.score1
        else:
            continue
        if own < 0 or other < 0:
            raise ValidationError(f"Negative score in result {r}")

        stats.matches_played += 1
        stats.win_rounds += own
        stats.loss_rounds += other
        outcome = _outcome(own, other, required_wins)
        if outcome == "win":
            stats.wins += 1
        elif outcome == "loss":
            stats.losses += 1
        else:
            stats.ties += 1
    return stats


def apply_entrant_stats(
    session: Session,
    tournament_id: int,
    results: List[QualificationResult],
    required_wins: int = DEFAULT_REQUIRED_WINS,
) -> Dict[int, EntrantStats]:
    """
    Recompute qualifying metrics for every entrant in the tournament and persist them.

    Results must only reference entrants of this tournament.
    """
    entrants = load_candidates(session, tournament_id)
    by_id = {e.id: e for e in entrants}

    for r in results:
        for pid in (r.player1_id, r.player2_id):
            if pid not in by_id:
                raise NotFoundError(f"Entrant {pid} not found in tournament {tournament_id}")

    out: Dict[int, EntrantStats] = {}
    for entrant in entrants:
        stats = aggregate_entrant_stats(results, entrant.id, required_wins)
        entrant.matches_played = stats.matches_played
        entrant.wins = stats.wins
        entrant.ties = stats.ties
        entrant.losses = stats.losses
        entrant.win_rounds = stats.win_rounds
        entrant.loss_rounds = stats.loss_rounds
        entrant.score = stats.score
        entrant.points = stats.points
        session.add(entrant)
        out[entrant.id] = stats

    session.commit()
    return out
