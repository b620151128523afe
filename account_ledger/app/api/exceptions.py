from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..core.errors import LedgerError
from ..models import ErrorResponse


logger = logging.getLogger(__name__)


def error_response(status_code: int, detail: str, message: str) -> JSONResponse:
    body = ErrorResponse(status=status_code, detail=detail, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _describe_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        text = error.get("msg", "invalid value")
        parts.append(f"{location}: {text}" if location else text)
    return "; ".join(parts) or "The request could not be understood or was missing required parameters."


def register_exception_handlers(app: FastAPI) -> None:
    # Every failure the core reports is a client error here, not-found
    # included.
    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
        return error_response(status.HTTP_400_BAD_REQUEST, exc.detail, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.debug("request.rejected", extra={"path": request.url.path})
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            "bad_request",
            _describe_validation_error(exc),
        )
