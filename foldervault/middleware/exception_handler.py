"""Exception handler middleware for structured error responses."""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from ..core.logging_config import redact
from ..exceptions import VaultException

logger = logging.getLogger(__name__)


async def vault_exception_handler(request: Request, exc: VaultException) -> JSONResponse:
    """
    Handle custom exceptions and return structured JSON responses.

    Server-side failures are logged at ERROR, caller mistakes at WARNING.

    Args:
        request: FastAPI request object
        exc: VaultException instance

    Returns:
        JSONResponse with error details
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"VaultException: {exc.error_code.value}",
        extra={
            "error_code": exc.error_code.value,
            "path": redact(request.url.path),
            "method": request.method,
            "details": exc.details,
            "status_code": exc.status_code
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )
