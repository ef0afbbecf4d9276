"""Session endpoints.

Endpoints:
- GET /v1/auth/callback/google: complete an OAuth login, issue a session cookie
- GET /v1/auth/me: current user, primary tenant and tenant access list
- POST /v1/auth/logout: delete the session and clear the cookie

SECURITY:
- The callback only ever answers with a redirect; login failures land on
  /login?error=<reason> and never carry a cookie
- /me needs a live session but no tenant context
- Logout always clears the cookie, even if the session row cannot be deleted
"""

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from xpt_api.auth.identity import IdentityVerifier
from xpt_api.auth.login import complete_login, delete_session, describe_session_user
from xpt_api.auth.session_auth import get_gate_repository, require_session
from xpt_api.auth.session_cookie import clear_session_cookie, set_session_cookie
from xpt_api.config.env import SESSION_COOKIE_NAME
from xpt_api.db.models import User, UserSession
from xpt_api.db.repository import GateRepository
from xpt_api.errors import IdentityVerificationError, LoginRejectedError, StoreError
from xpt_api.schemas import LogoutResponse, MeResponse

router = APIRouter(prefix="/v1/auth", tags=["auth"])
logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"


def _login_error_redirect(reason: str) -> RedirectResponse:
    return RedirectResponse(url=f"{LOGIN_PATH}?{urlencode({'error': reason})}", status_code=302)


def _client_ip(request: Request) -> Optional[str]:
    """First X-Forwarded-For hop (set by the edge proxy), else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


@router.get("/callback/google", include_in_schema=False)
def google_callback(
    request: Request,
    code: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    repo: GateRepository = Depends(get_gate_repository),
) -> Response:
    """OAuth redirect target.

    Flow:
    1. Provider error or missing code -> /login?error=...
    2. IdentityVerifier.verify(code) -> VerifiedIdentity
    3. complete_login (user + fresh session + landing page)
    4. Set the session cookie and redirect to the landing page
    """
    if error:
        logger.warning("auth.callback.provider_error", extra={"provider_error": error})
        return _login_error_redirect(error)
    if not code:
        return _login_error_redirect("missing_code")

    verifier: Optional[IdentityVerifier] = getattr(request.app.state, "identity_verifier", None)
    if verifier is None:
        logger.error("auth.callback.verifier_not_configured")
        return _login_error_redirect("server_error")

    try:
        identity = verifier.verify(code)
        session, redirect_to = complete_login(
            repo,
            identity,
            user_agent=request.headers.get("user-agent"),
            ip_address=_client_ip(request),
        )
    except (IdentityVerificationError, LoginRejectedError) as e:
        logger.info("auth.callback.rejected", extra={"reason": e.reason})
        return _login_error_redirect(e.reason)
    except StoreError:
        return _login_error_redirect("server_error")

    response = RedirectResponse(url=redirect_to, status_code=302)
    set_session_cookie(response, session.token)
    logger.info("auth.callback.completed", extra={"session_id": session.id})
    return response


@router.get("/me", response_model=MeResponse)
def get_me(
    session_user: tuple[UserSession, User] = Depends(require_session),
    repo: GateRepository = Depends(get_gate_repository),
) -> MeResponse:
    _session, user = session_user
    return MeResponse(user=describe_session_user(repo, user))


@router.post("/logout", response_model=LogoutResponse)
def logout(
    request: Request,
    repo: GateRepository = Depends(get_gate_repository),
) -> Response:
    """End the session.

    Returns JSON for API callers (Accept: application/json), otherwise
    redirects the browser to /login.
    """
    deleted = delete_session(repo, request.cookies.get(SESSION_COOKIE_NAME))
    logger.info("auth.logout", extra={"session_deleted": deleted})

    if "application/json" in request.headers.get("accept", ""):
        response: Response = JSONResponse(LogoutResponse(success=True).model_dump())
    else:
        response = RedirectResponse(url=LOGIN_PATH, status_code=302)

    clear_session_cookie(response)
    return response
