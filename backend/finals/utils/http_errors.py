"""
Translate bracket engine errors into HTTP errors.

Status mapping:
- ValidationError   -> 400
- StaleVersionError -> 409 (detail carries current_version)
- NotFoundError     -> 404
- StructuralError   -> 409
"""

from fastapi import HTTPException

from finals.errors import BracketError, NotFoundError, StaleVersionError, StructuralError, ValidationError


def to_http_exception(exc: BracketError) -> HTTPException:
    if isinstance(exc, StaleVersionError):
        return HTTPException(
            status_code=409,
            detail={"message": str(exc), "current_version": exc.current_version},
        )
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, StructuralError):
        return HTTPException(status_code=409, detail=f"BRACKET_STRUCTURE_INVALID: {exc}")
    return HTTPException(status_code=500, detail=str(exc))
