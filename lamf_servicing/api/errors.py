"""Translate domain exceptions into HTTP errors"""

import logging

from fastapi import HTTPException

from lamf_servicing.domain.exceptions import (
    DomainException,
    NotFoundError,
    PolicyError,
    TransientStoreError,
    ValidationError,
)


def to_http_exception(error: DomainException, request_id: str) -> HTTPException:
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ValidationError):
        logging.warning(f"Rejected request: {error}", extra={"request_id": request_id})
        return HTTPException(status_code=422, detail=str(error))
    if isinstance(error, PolicyError):
        logging.warning(f"Policy error: {error}", extra={"request_id": request_id})
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, TransientStoreError):
        logging.error(f"Store error: {error}", extra={"request_id": request_id})
        return HTTPException(status_code=503, detail="Storage temporarily unavailable")

    logging.error(f"Unexpected domain error: {error}", extra={"request_id": request_id})
    return HTTPException(status_code=500, detail="Internal server error")
