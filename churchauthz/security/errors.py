from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from churchauthz.authz.errors import AuthzError, StoreUnavailable

logger = logging.getLogger(__name__)


async def authz_error_handler(request: Request, exc: AuthzError) -> JSONResponse:
    """Map engine errors to ``{"detail", "reason"}`` with the error's status code."""

    if isinstance(exc, StoreUnavailable):
        logger.error("Store unavailable path=%s method=%s", request.url.path, request.method)
    else:
        logger.debug("Request rejected status=%s reason=%s path=%s", exc.status_code, exc.reason, request.url.path)

    headers = {"Retry-After": "1"} if exc.retryable else None
    if exc.status_code == 401:
        headers = {"WWW-Authenticate": "Bearer"}

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "reason": exc.reason},
        headers=headers,
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthzError, authz_error_handler)
