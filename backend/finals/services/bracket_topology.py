"""
Double-elimination bracket topology for an 8-entrant finals stage.

Every match carries its own winner/loser destination, computed once here.
Advancement only follows these references; it never searches the bracket
for "the next open match in round X".

Layout (match numbers):
    Winners:  QF 1-4  -> SF 5-6  -> Final 7
    Losers:   R1 8-9  -> R2 10-11 -> R3 12-13 -> SF 14 -> Final 15
    Grand Final 16, Grand Final Reset 17 (populated only if needed)

Losers R3 matches are byes: each is fed by a single Losers R2 winner and
completes as soon as that entrant arrives, forwarding them to the Losers SF.

Seeding pairs ranks (1,8), (4,5), (2,7), (3,6) into QF 1-4 so seeds 1
and 2 can only meet in the Winners Final.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence, Tuple

from finals.errors import StructuralError, ValidationError

BRACKET_SIZE = 8

SIDE_WINNERS = "winners"
SIDE_LOSERS = "losers"
SIDE_GRAND_FINAL = "grand_final"

ROUND_WINNERS_QF = "winners_qf"
ROUND_WINNERS_SF = "winners_sf"
ROUND_WINNERS_FINAL = "winners_final"
ROUND_LOSERS_R1 = "losers_r1"
ROUND_LOSERS_R2 = "losers_r2"
ROUND_LOSERS_R3 = "losers_r3"
ROUND_LOSERS_SF = "losers_sf"
ROUND_LOSERS_FINAL = "losers_final"
ROUND_GRAND_FINAL = "grand_final"
ROUND_GRAND_FINAL_RESET = "grand_final_reset"

round_names: Dict[str, str] = {
    ROUND_WINNERS_QF: "Winners Quarter Final",
    ROUND_WINNERS_SF: "Winners Semi Final",
    ROUND_WINNERS_FINAL: "Winners Final",
    ROUND_LOSERS_R1: "Losers Round 1",
    ROUND_LOSERS_R2: "Losers Round 2",
    ROUND_LOSERS_R3: "Losers Round 3",
    ROUND_LOSERS_SF: "Losers Semi Final",
    ROUND_LOSERS_FINAL: "Losers Final",
    ROUND_GRAND_FINAL: "Grand Final",
    ROUND_GRAND_FINAL_RESET: "Grand Final Reset",
}

# Seed ranks per Winners QF, in match order.
SEED_PAIRS: List[Tuple[int, int]] = [(1, 8), (4, 5), (2, 7), (3, 6)]

GRAND_FINAL_MATCH = 16
GRAND_FINAL_RESET_MATCH = 17
BRACKET_MATCH_COUNT = 17


@dataclass(frozen=True)
class SlotRef:
    """Destination slot: player position (1 or 2) in a match."""

    match_number: int
    position: int


@dataclass(frozen=True)
class SeededEntrant:
    entrant_id: int
    display_name: str


@dataclass(frozen=True)
class BracketMatchSpec:
    match_number: int
    bracket_side: str
    round: str
    position_tag: str
    winner_to: Optional[SlotRef] = None
    loser_to: Optional[SlotRef] = None
    player1_seed: Optional[int] = None
    player2_seed: Optional[int] = None
    player1_entrant_id: Optional[int] = None
    player2_entrant_id: Optional[int] = None
    # Single-entrant match: completes on arrival and forwards its entrant
    bye: bool = False

    @property
    def round_name(self) -> str:
        return round_names[self.round]


def _spec(number, side, rnd, tag, winner_to=None, loser_to=None, seeds=None, bye=False) -> BracketMatchSpec:
    return BracketMatchSpec(
        match_number=number,
        bracket_side=side,
        round=rnd,
        position_tag=tag,
        winner_to=SlotRef(*winner_to) if winner_to else None,
        loser_to=SlotRef(*loser_to) if loser_to else None,
        player1_seed=seeds[0] if seeds else None,
        player2_seed=seeds[1] if seeds else None,
        bye=bye,
    )


@lru_cache(maxsize=1)
def _topology() -> Tuple[BracketMatchSpec, ...]:
    specs: List[BracketMatchSpec] = []

    # Winners QF 1-4: pairs feed SF 5 (QF1, QF2) and SF 6 (QF3, QF4);
    # losers pair up the same way in Losers R1 8-9.
    for i, seeds in enumerate(SEED_PAIRS):
        number = i + 1
        specs.append(_spec(
            number, SIDE_WINNERS, ROUND_WINNERS_QF, f"W-QF{number}",
            winner_to=(5 + i // 2, i % 2 + 1),
            loser_to=(8 + i // 2, i % 2 + 1),
            seeds=seeds,
        ))

    # Winners SF 5-6: losers cross halves into Losers R2 to avoid a rematch
    # with the Losers R1 winner from their own half.
    specs.append(_spec(5, SIDE_WINNERS, ROUND_WINNERS_SF, "W-SF1", winner_to=(7, 1), loser_to=(11, 2)))
    specs.append(_spec(6, SIDE_WINNERS, ROUND_WINNERS_SF, "W-SF2", winner_to=(7, 2), loser_to=(10, 2)))

    specs.append(_spec(
        7, SIDE_WINNERS, ROUND_WINNERS_FINAL, "W-F",
        winner_to=(GRAND_FINAL_MATCH, 1), loser_to=(15, 2),
    ))

    # Losers bracket: every loss here is a second loss, so no loser_to.
    specs.append(_spec(8, SIDE_LOSERS, ROUND_LOSERS_R1, "L-R1-1", winner_to=(10, 1)))
    specs.append(_spec(9, SIDE_LOSERS, ROUND_LOSERS_R1, "L-R1-2", winner_to=(11, 1)))
    specs.append(_spec(10, SIDE_LOSERS, ROUND_LOSERS_R2, "L-R2-1", winner_to=(12, 1)))
    specs.append(_spec(11, SIDE_LOSERS, ROUND_LOSERS_R2, "L-R2-2", winner_to=(13, 1)))
    specs.append(_spec(12, SIDE_LOSERS, ROUND_LOSERS_R3, "L-R3-1", winner_to=(14, 1), bye=True))
    specs.append(_spec(13, SIDE_LOSERS, ROUND_LOSERS_R3, "L-R3-2", winner_to=(14, 2), bye=True))
    specs.append(_spec(14, SIDE_LOSERS, ROUND_LOSERS_SF, "L-SF", winner_to=(15, 1)))
    specs.append(_spec(15, SIDE_LOSERS, ROUND_LOSERS_FINAL, "L-F", winner_to=(GRAND_FINAL_MATCH, 2)))

    # Grand final pair: routed by the grand final handler, not statically.
    specs.append(_spec(GRAND_FINAL_MATCH, SIDE_GRAND_FINAL, ROUND_GRAND_FINAL, "GF"))
    specs.append(_spec(GRAND_FINAL_RESET_MATCH, SIDE_GRAND_FINAL, ROUND_GRAND_FINAL_RESET, "GF-RESET"))

    return tuple(specs)


def build_topology() -> List[BracketMatchSpec]:
    """Seed-only bracket specs (no entrants), ordered by match_number."""
    return list(_topology())


def topology_by_number() -> Dict[int, BracketMatchSpec]:
    return {s.match_number: s for s in _topology()}


def validate_topology(specs: Sequence[BracketMatchSpec]) -> None:
    """
    Check structural invariants of a bracket.

    Raises StructuralError on:
    - match numbers not exactly 1..BRACKET_MATCH_COUNT
    - a destination pointing at itself, at a missing match, or at a bad position
    - winner and loser destinations that coincide
    - a winners/losers match with no winner destination
    - two sources writing the same destination slot
    - a bye that is seeded, has a loser destination, feeds another bye,
      or is not fed through exactly slot 1
    """
    numbers = [s.match_number for s in specs]
    if sorted(numbers) != list(range(1, BRACKET_MATCH_COUNT + 1)):
        raise StructuralError(
            f"Bracket must have match numbers 1..{BRACKET_MATCH_COUNT}, got {sorted(numbers)}"
        )

    known = set(numbers)
    filled: Dict[SlotRef, int] = {}
    for s in specs:
        if s.bracket_side != SIDE_GRAND_FINAL and s.winner_to is None:
            raise StructuralError(f"Match {s.match_number} has no winner destination")
        if s.winner_to is not None and s.winner_to == s.loser_to:
            raise StructuralError(f"Match {s.match_number} sends winner and loser to the same slot")
        for dest in (s.winner_to, s.loser_to):
            if dest is None:
                continue
            if dest.match_number == s.match_number:
                raise StructuralError(f"Match {s.match_number} routes into itself")
            if dest.match_number not in known:
                raise StructuralError(
                    f"Match {s.match_number} routes to missing match {dest.match_number}"
                )
            if dest.position not in (1, 2):
                raise StructuralError(f"Match {s.match_number} routes to invalid position {dest.position}")
            if dest in filled:
                raise StructuralError(
                    f"Slot {dest.match_number}/{dest.position} fed by both match "
                    f"{filled[dest]} and match {s.match_number}"
                )
            filled[dest] = s.match_number

    by_number = {s.match_number: s for s in specs}
    for s in specs:
        if not s.bye:
            continue
        feeds = sorted(d.position for d in filled if d.match_number == s.match_number)
        if s.player1_seed is not None or s.loser_to is not None or feeds != [1]:
            raise StructuralError(f"Bye match {s.match_number} must be fed through slot 1 only")
        if by_number[s.winner_to.match_number].bye:
            raise StructuralError(f"Bye match {s.match_number} feeds another bye")


def _seeded_id(entrant: Any, idx: int) -> int:
    entrant_id = getattr(entrant, "entrant_id", None)
    if entrant_id is None:
        raise ValidationError(f"Seeded entrant at index {idx} has no entrant_id")
    return entrant_id


def generate_bracket(seeded_entrants: Sequence[Any]) -> List[BracketMatchSpec]:
    """
    Build the full bracket from an ordered seed list (index 0 = seed 1).

    Entrants may be SeededEntrant, RankedEntrant, or any object with
    entrant_id. Pure: no randomness, no I/O.

    Raises:
        ValidationError: not exactly 8 entrants, or missing/duplicate ids.
    """
    if len(seeded_entrants) != BRACKET_SIZE:
        raise ValidationError(
            f"Unsupported bracket size {len(seeded_entrants)}: "
            f"only {BRACKET_SIZE}-entrant brackets are supported"
        )

    by_seed: Dict[int, int] = {}
    for idx, entrant in enumerate(seeded_entrants):
        entrant_id = _seeded_id(entrant, idx)
        if entrant_id in by_seed.values():
            raise ValidationError(f"Entrant {entrant_id} is seeded more than once")
        by_seed[idx + 1] = entrant_id

    specs = []
    for s in _topology():
        if s.player1_seed is not None:
            s = replace(
                s,
                player1_entrant_id=by_seed[s.player1_seed],
                player2_entrant_id=by_seed[s.player2_seed],
            )
        specs.append(s)
    return specs
