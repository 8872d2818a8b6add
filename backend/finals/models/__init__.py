from finals.models.bracket_match import BracketMatch
from finals.models.entrant import Entrant
from finals.models.tournament import GrandFinalState, Tournament

__all__ = [
    "Tournament",
    "GrandFinalState",
    "Entrant",
    "BracketMatch",
]
