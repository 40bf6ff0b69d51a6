"""Caller identity for API routes.

Authentication happens upstream (identity proxy / edge). The proxy forwards the
authenticated user id in ``X-User-Id``; this module only turns that header into
an ``AuthenticatedUser`` and never verifies credentials itself.
"""

from dataclasses import dataclass

from fastapi import Header, HTTPException, Request


@dataclass(frozen=True)
class AuthenticatedUser:
    """User identity forwarded by the upstream proxy."""

    user_id: str


async def require_user(
    request: Request,
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> AuthenticatedUser:
    """FastAPI dependency returning the forwarded caller identity.

    Usage::

        @router.get("/protected")
        async def protected(user: AuthenticatedUser = Depends(require_user)):
            ...
    """
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")

    user_id = x_user_id.strip()
    request.state.user_id = user_id
    return AuthenticatedUser(user_id=user_id)
