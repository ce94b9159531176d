from fastapi import HTTPException

from errors import (
    CatalogUnavailable,
    InvalidArgument,
    RotationConflict,
    RotationError,
    StateUnavailable,
)


def to_http(e: RotationError) -> HTTPException:
    """Map rotation errors onto HTTP status codes (400 / 409 / 503)."""
    if isinstance(e, InvalidArgument):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, RotationConflict):
        return HTTPException(status_code=409, detail="rotation state changed concurrently; retry")
    if isinstance(e, (CatalogUnavailable, StateUnavailable)):
        return HTTPException(status_code=503, detail="question store unavailable")
    return HTTPException(status_code=500, detail="rotation error")
