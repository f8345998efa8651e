from fastapi import HTTPException

from damage_review.core.utils.logger import get_logger
from damage_review.domain.errors import ConfirmationRequired, NotFound, StoreUnavailable


logger = get_logger("api_errors")


def http_error(e: Exception) -> HTTPException:
    """Map a use case failure to the HTTP status the routers answer with."""
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, NotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ConfirmationRequired):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, StoreUnavailable):
        logger.error("Store unavailable: %s", e)
        return HTTPException(status_code=503, detail=f"Damage store unavailable: {e}")
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    logger.error("Unexpected error: %s", e)
    return HTTPException(status_code=500, detail=f"Unexpected error: {e}")
