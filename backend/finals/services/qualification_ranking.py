"""
Qualification ranking for finals seeding.

Deterministic rules for ordering qualified entrants:
score desc, points desc, win_rounds desc, then input order.
Only an 8-entrant finals selection is supported.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Sequence

from sqlmodel import Session, select

from finals.errors import ValidationError
from finals.models.entrant import Entrant

FINALS_SIZE = 8

_METRICS = ("score", "points", "win_rounds")


@dataclass(frozen=True)
class RankedEntrant:
    entrant_id: int
    display_name: str
    rank: int  # 1-based seed
    qualifying_score: int
    qualifying_points: int


def ranking_key(candidate: Any) -> tuple:
    """
    Return sort key for qualification ranking. Lower = better.

    Input order is the final tiebreak; sorted() is stable so it needs no key part.
    """
    return (-candidate.score, -candidate.points, -candidate.win_rounds)


def _validate_candidates(candidates: Sequence[Any]) -> None:
    seen = set()
    for idx, c in enumerate(candidates):
        entrant_id = getattr(c, "id", None)
        if entrant_id is None:
            raise ValidationError(f"Candidate at index {idx} has no id")
        if entrant_id in seen:
            raise ValidationError(f"Duplicate candidate id {entrant_id}")
        seen.add(entrant_id)
        for metric in _METRICS:
            value = getattr(c, metric, None)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValidationError(
                    f"Candidate {entrant_id} has invalid {metric}: {value!r}"
                )


def order_entrants(candidates: Sequence[Any]) -> List[Any]:
    """Full qualification order, best first. Does not truncate."""
    _validate_candidates(candidates)
    return sorted(candidates, key=ranking_key)


def rank_entrants(candidates: Sequence[Any], top_n: int = FINALS_SIZE) -> List[RankedEntrant]:
    """
    Select and rank the finals seeds.

    Raises:
        ValidationError: top_n is not 8, fewer than top_n candidates,
            or a candidate is malformed.
    """
    if top_n != FINALS_SIZE:
        raise ValidationError(
            f"Unsupported bracket size {top_n}: only {FINALS_SIZE}-entrant finals are supported"
        )
    if len(candidates) < top_n:
        raise ValidationError(
            f"Not enough qualified entrants: required {top_n}, found {len(candidates)}"
        )

    ordered = order_entrants(candidates)
    return [
        RankedEntrant(
            entrant_id=c.id,
            display_name=getattr(c, "display_name", "") or "",
            rank=i + 1,
            qualifying_score=c.score,
            qualifying_points=c.points,
        )
        for i, c in enumerate(ordered[:top_n])
    ]


def load_candidates(session: Session, tournament_id: int) -> List[Entrant]:
    """Snapshot of a tournament's entrants in insertion order."""
    return list(
        session.exec(
            select(Entrant).where(Entrant.tournament_id == tournament_id).order_by(Entrant.id)
        ).all()
    )
