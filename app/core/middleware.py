import logging
import time
from typing import Optional, Dict, Any
from fastapi import Request
from app.core.security import get_session_from_request, get_client_ip

logger = logging.getLogger(__name__)

class SessionContext:
    """Session context object"""
    def __init__(self, session_data: Optional[Dict[str, Any]] = None):
        if session_data:
            self.user_id = session_data['user_id']
            self.email = session_data['email']
            self.role = session_data['role']
            self.expires_at = session_data['expires_at']
            self.access_token = session_data['access_token']
            self.is_valid = True
        else:
            self.user_id = None
            self.email = None
            self.role = None
            self.expires_at = None
            self.access_token = None
            self.is_valid = False


async def session_validation_middleware(request: Request, call_next):
    """
    Middleware to read the bearer token for every request.
    Sets request.state.session_context for use in endpoints; endpoints
    decide whether authentication is required.
    """
    path = request.url.path
    public_endpoints = ['/docs', '/openapi.json', '/health']

    if path == '/' or any(path.startswith(endpoint) for endpoint in public_endpoints):
        request.state.session_context = SessionContext()
        return await call_next(request)

    try:
        session_data = get_session_from_request(request)
        request.state.session_context = SessionContext(session_data)
    except Exception as e:
        logger.warning(f"Session validation error for path {path}: {e}")
        request.state.session_context = SessionContext()

    return await call_next(request)

def get_session_context(request: Request) -> SessionContext:
    """Helper function to get session context from request"""
    return getattr(request.state, 'session_context', SessionContext())

async def request_logging_middleware(request: Request, call_next):
    """Simple request logging middleware"""
    start_time = time.time()

    method = request.method
    path = request.url.path

    response = await call_next(request)

    duration = round((time.time() - start_time) * 1000, 2)

    session_context = getattr(request.state, 'session_context', None)
    user_id = getattr(session_context, 'user_id', None) or 'anonymous'
    logger.info(f"{method} {path} | {response.status_code} | {duration}ms | {user_id} | {get_client_ip(request)}")

    return response
