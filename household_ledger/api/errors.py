"""Mapping of domain exceptions to HTTP errors"""

import logging

from fastapi import HTTPException

from household_ledger.domain.exceptions import (
    ConcurrentModificationError,
    DomainException,
    NotFoundError,
    StoreError,
    ValidationError,
)


def to_http_exception(error: DomainException, request_id: str) -> HTTPException:
    """Translate a domain error; store failures keep their cause out of the response"""
    if isinstance(error, ValidationError):
        logging.warning(f"Validation error: {error}", extra={"request_id": request_id})
        return HTTPException(status_code=422, detail=str(error))

    if isinstance(error, NotFoundError):
        logging.info(f"Not found: {error}", extra={"request_id": request_id})
        return HTTPException(status_code=404, detail=str(error))

    if isinstance(error, ConcurrentModificationError):
        logging.warning(f"Concurrent modification: {error}", extra={"request_id": request_id})
        return HTTPException(status_code=409, detail=str(error))

    if isinstance(error, StoreError):
        logging.error(f"Store error: {error}", extra={"request_id": request_id})
        return HTTPException(status_code=503, detail=str(error))

    logging.error(f"Unexpected domain error: {error}", extra={"request_id": request_id})
    return HTTPException(status_code=500, detail="Internal server error")
