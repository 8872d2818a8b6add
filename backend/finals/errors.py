"""
Error taxonomy for the finals bracket engine.

Services raise these; routes translate them to HTTP responses.
Nothing in the engine retries or swallows them.
"""


class BracketError(Exception):
    """Base exception for finals bracket errors"""
    pass


class ValidationError(BracketError):
    """Malformed input, unsupported bracket size, or a score state with no winner"""
    pass


class StaleVersionError(ValidationError):
    """Match record changed since the caller last read it"""

    def __init__(self, message: str, current_version: int):
        super().__init__(message)
        self.current_version = current_version


class NotFoundError(BracketError):
    """Referenced match, tournament or entrant does not exist"""
    pass


class StructuralError(BracketError):
    """Persisted bracket does not match the generated topology"""
    pass
