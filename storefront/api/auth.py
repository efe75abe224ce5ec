from fastapi import APIRouter, Depends, Request, Response, status
from typing import Optional

from storefront.api.deps import get_admin, get_sessions, get_settings
from storefront.core.auth import optional_session, require_session
from storefront.core.config import Settings
from storefront.core.errors import Unauthenticated
from storefront.schemas import AuthStatus, LoginPayload, LoginResponse, Message
from storefront.security.utils import AdminAccount
from storefront.store.session_store import SessionStore

router = APIRouter()  # main.py mounts at /api/auth


def _is_secure(request: Request) -> bool:
    return request.url.scheme == "https" or request.headers.get("x-forwarded-proto", "").lower() == "https"


def _cookie_attrs(request: Request) -> dict:
    # cross-origin HTTPS needs SameSite=None, which browsers only accept with Secure
    secure = _is_secure(request)
    return {"path": "/", "secure": secure, "httponly": True, "samesite": "none" if secure else "lax"}


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginPayload,
    request: Request,
    response: Response,
    admin: AdminAccount = Depends(get_admin),
    sessions: SessionStore = Depends(get_sessions),
    settings: Settings = Depends(get_settings),
) -> LoginResponse:
    if not admin.verify(payload.username, payload.password):
        raise Unauthenticated("Invalid credentials")

    token, _ = sessions.issue()
    max_age = int(sessions.ttl.total_seconds())
    response.set_cookie(settings.AUTH_COOKIE_NAME, token, max_age=max_age, **_cookie_attrs(request))
    return LoginResponse(token=token, expires_in=max_age)


@router.post("/logout", response_model=Message)
def logout(
    request: Request,
    response: Response,
    token: str = Depends(require_session),
    sessions: SessionStore = Depends(get_sessions),
    settings: Settings = Depends(get_settings),
) -> Message:
    sessions.revoke(token)
    response.delete_cookie(settings.AUTH_COOKIE_NAME, **_cookie_attrs(request))
    return Message(message="Logged out successfully")


@router.get("/check", response_model=AuthStatus)
def check(response: Response, token: Optional[str] = Depends(optional_session)) -> AuthStatus:
    if token is None:
        response.status_code = status.HTTP_401_UNAUTHORIZED
        return AuthStatus(authenticated=False)
    return AuthStatus(authenticated=True)
