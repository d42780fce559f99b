"""
Civilla error types and FastAPI exception handlers.

Domain code raises CivillaError subclasses; the handlers below turn them
into JSON responses shaped like the HTTPException details used by the
routers: {"detail": {"error": <code>, "message": <text>}}.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CivillaError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_detail(self) -> dict:
        return {"error": self.code, "message": self.message}


class CaseNotFoundError(CivillaError):
    """Case does not exist or is not owned by the requesting user."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "case_not_found"

    def __init__(self, case_id: str):
        super().__init__(f"Case {case_id} not found")
        self.case_id = case_id


class SearchRequestError(CivillaError):
    """The search endpoint could not be reached or answered with an error."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "search_failed"

    def __init__(self, message: str = "Search failed", status_code: int | None = None):
        super().__init__(message)
        self.upstream_status = status_code


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


async def civilla_error_handler(request: Request, exc: CivillaError) -> JSONResponse:
    logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    headers = {}
    request_id = _request_id(request)
    if request_id:
        headers["X-Request-Id"] = request_id
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.to_detail()},
        headers=headers,
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    headers = {}
    request_id = _request_id(request)
    if request_id:
        headers["X-Request-Id"] = request_id
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": {"error": "internal_error", "message": "Something went wrong"}},
        headers=headers,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register Civilla exception handlers on the app."""
    app.add_exception_handler(CivillaError, civilla_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
