# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from finals.models.bracket_match import BracketMatch  # noqa: F401
from finals.models.entrant import Entrant  # noqa: F401
from finals.models.tournament import Tournament  # noqa: F401
