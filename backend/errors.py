"""
Domain error taxonomy and the FastAPI handlers that render it.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DomainError(Exception):
    kind = "domain_error"
    status_code = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFound(DomainError):
    kind = "not_found"
    status_code = 404


class InvalidTransition(DomainError):
    kind = "invalid_transition"
    status_code = 409


class ValidationFailed(DomainError):
    kind = "validation"
    status_code = 422


class StorageFailure(DomainError):
    kind = "storage_error"
    status_code = 500


async def _domain_error_handler(_request: Request, exc: DomainError) -> JSONResponse:
    if isinstance(exc, InvalidTransition):
        logger.info("Rejected transition: %s", exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "kind": exc.kind},
    )


async def _request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(exc.errors()), "kind": ValidationFailed.kind},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, _domain_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
