"""Session cookie transport.

Cookie `session`: HttpOnly, SameSite=Lax, Path=/, Max-Age=30 days.
Secure + Domain only in production.
"""

from starlette.responses import Response

from xpt_api.config.env import (
    SESSION_COOKIE_NAME,
    get_session_cookie_domain,
    get_session_ttl_days,
    is_production_env,
)


def session_max_age_seconds() -> int:
    return get_session_ttl_days() * 24 * 60 * 60


def set_session_cookie(response: Response, token: str) -> None:
    """Attach a freshly issued session token to the response."""
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=session_max_age_seconds(),
        path="/",
        domain=get_session_cookie_domain(),
        secure=is_production_env(),
        httponly=True,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    """Expire the session cookie immediately (Max-Age=0)."""
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
        domain=get_session_cookie_domain(),
        secure=is_production_env(),
        httponly=True,
        samesite="lax",
    )
