import jwt
import logging
from fastapi import Request
from app.config import settings
from app.core.exceptions import AuthenticationError
from typing import Optional

logger = logging.getLogger(__name__)

def get_bearer_token(request: Request) -> Optional[str]:
    """Extract the Supabase access token from the Authorization header"""
    auth_header = request.headers.get("authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def validate_access_token(token: str) -> dict:
    """Validate a Supabase access token and return its claims"""
    try:
        payload = jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=["HS256"],
            audience=settings.supabase_jwt_audience
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")

    if not payload.get("sub"):
        raise AuthenticationError("Token has no subject")
    return payload


def get_session_from_request(request: Request) -> Optional[dict]:
    """
    Get session data from the request's bearer token.
    Returns None when no token is present or it does not validate.
    """
    token = get_bearer_token(request)
    if not token:
        return None

    try:
        claims = validate_access_token(token)
    except AuthenticationError as e:
        logger.info(f"Rejected access token: {e.message}")
        return None

    return {
        'user_id': claims['sub'],
        'email': claims.get('email'),
        'role': claims.get('role', 'authenticated'),
        'expires_at': claims.get('exp'),
        'access_token': token
    }


def get_client_ip(request: Request) -> Optional[str]:
    """Get client IP address from request headers"""
    forwarded_for = request.headers.get('x-forwarded-for')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    return request.client.host if request.client else None
