from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from storefront.core.errors import Unauthenticated
from storefront.store.session_store import SessionStore

security = HTTPBearer(auto_error=False)

def request_token(request: Request, creds: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """A `Bearer <token>` header wins over the auth cookie."""
    if creds and creds.credentials:
        return creds.credentials
    cookie_name = request.app.state.settings.AUTH_COOKIE_NAME
    return request.cookies.get(cookie_name) or None

def _sessions(request: Request) -> SessionStore:
    return request.app.state.sessions

def require_session(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    token = request_token(request, creds)
    if not token:
        raise Unauthenticated("Authentication required")
    if not _sessions(request).validate(token):
        raise Unauthenticated("Invalid or expired session")
    return token

def optional_session(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    token = request_token(request, creds)
    if token and _sessions(request).validate(token):
        return token
    return None
