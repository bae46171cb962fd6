from fastapi import Request
from fastapi.responses import JSONResponse
import asyncio
import logging
import asyncpg
from typing import Dict, Any
from app.core.logging import log_request_context

logger = logging.getLogger(__name__)

class APIError(Exception):
    """Base API exception"""

    def __init__(self, message: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class AuthenticationError(APIError):
    """Authentication related errors"""

    def __init__(self, message: str = "Authentication required", details: Dict[str, Any] = None):
        super().__init__(message, 401, details)

class ValidationError(APIError):
    """Client-side validation failure, raised before any network call"""

    def __init__(self, message: str = "Validation failed", details: Dict[str, Any] = None):
        super().__init__(message, 400, details)

class NotFoundError(APIError):
    """Event, profile or row missing"""

    def __init__(self, message: str = "Not found", details: Dict[str, Any] = None):
        super().__init__(message, 404, details)

class ServerRejectedError(APIError):
    """Mutation rejected by the backend (RLS denial, conflict, constraint)"""

    def __init__(self, message: str = "Request rejected by server", status_code: int = 400, details: Dict[str, Any] = None):
        super().__init__(message, status_code, details)

class TransportError(APIError):
    """Network or connection failure talking to the backend"""

    def __init__(self, message: str = "Backend unavailable", details: Dict[str, Any] = None):
        super().__init__(message, 502, details)


def translate_db_error(exc: Exception) -> APIError:
    """Map asyncpg / connection exceptions onto the API error taxonomy"""
    if isinstance(exc, APIError):
        return exc

    if isinstance(exc, asyncpg.InsufficientPrivilegeError):
        return ServerRejectedError("Not allowed", 403, {"reason": "rls"})

    if isinstance(exc, (asyncpg.UniqueViolationError, asyncpg.ExclusionViolationError)):
        return ServerRejectedError(str(exc) or "Conflict", 409, {"reason": "conflict"})

    if isinstance(exc, asyncpg.ForeignKeyViolationError):
        return NotFoundError(str(exc) or "Referenced row not found")

    if isinstance(exc, asyncpg.PostgresError):
        return ServerRejectedError(str(exc) or "Database rejected the request", 400)

    if isinstance(exc, (asyncpg.InterfaceError, OSError, asyncio.TimeoutError)):
        return TransportError(str(exc) or "Database connection failed")

    return APIError(str(exc) or "Internal server error", 500)


def _request_context(request: Request) -> Dict[str, Any]:
    session = getattr(request.state, 'session_context', None)
    params = request.path_params
    return log_request_context(
        user_id=getattr(session, 'user_id', None),
        event_id=params.get('event_id'),
        flow_id=params.get('flow_id')
    )


async def api_exception_handler(request: Request, exc: APIError):
    """Handle custom API exceptions with logging"""

    context = _request_context(request)
    context.update({
        "error_type": exc.__class__.__name__,
        "status_code": exc.status_code,
        "path": str(request.url.path),
        "method": request.method
    })

    if exc.status_code >= 500:
        logger.error(f"API Error: {exc.message}", extra={"context": context})
    else:
        logger.warning(f"API Error: {exc.message}", extra={"context": context})

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": True,
            "message": exc.message,
            "details": exc.details,
            "timestamp": context["timestamp"]
        }
    )

async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""

    context = _request_context(request)
    context.update({
        "error_type": exc.__class__.__name__,
        "path": str(request.url.path),
        "method": request.method
    })

    logger.error(f"Unexpected error: {str(exc)}", extra={"context": context}, exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": True,
            "message": "Internal server error",
            "timestamp": context["timestamp"]
        }
    )
