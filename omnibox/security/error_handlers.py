"""
Error Handlers

Every error leaves the API as {"error": "<message>"}. Unexpected exceptions
are logged in full and reported with a generic message.
"""

import logging
import traceback
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorHandler:
    """Turns exceptions into the API's JSON error shape"""

    def __init__(self, debug_mode: bool = False):
        """
        Args:
            debug_mode: Whether to log tracebacks for unexpected errors (dev only)
        """
        self.debug_mode = debug_mode

    async def handle_http_exception(self, request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Routes raise HTTPException with the message meant for the caller"""
        status_code = exc.status_code
        client_ip = self._get_client_ip(request)
        logger.warning(
            f"HTTP {status_code} error: {request.method} {request.url.path} "
            f"from {client_ip} - {str(exc.detail)}"
        )

        content = exc.detail if isinstance(exc.detail, dict) else {"error": str(exc.detail)}
        return JSONResponse(
            status_code=status_code,
            content=content,
            headers=getattr(exc, "headers", None)
        )

    async def handle_validation_error(self, request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed request bodies and query strings are client errors (400)"""
        client_ip = self._get_client_ip(request)
        logger.warning(
            f"Validation error: {request.method} {request.url.path} "
            f"from {client_ip} - {len(exc.errors())} errors"
        )

        details = []
        for error in exc.errors():
            details.append({
                "field": ".".join(str(loc) for loc in error.get("loc", [])),
                "message": error.get("msg", "")
            })

        return JSONResponse(
            status_code=400,
            content={
                "error": "Invalid request data",
                "details": details[:10]  # Limit to 10 errors
            }
        )

    async def handle_internal_error(self, request: Request, exc: Exception) -> JSONResponse:
        client_ip = self._get_client_ip(request)
        logger.error(
            f"Internal server error: {request.method} {request.url.path} "
            f"from {client_ip} - {type(exc).__name__}: {str(exc)}"
        )
        if self.debug_mode:
            logger.error(f"Traceback: {traceback.format_exc()}")

        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"}
        )

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP address from request"""
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(',')[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"


error_handler = ErrorHandler(debug_mode=False)
