from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from fastapi import Request, Response
from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

COOKIE_NAME = "tm_token"
JWT_ALGORITHM = "HS256"
TOKEN_TTL = timedelta(days=7)
COOKIE_MAX_AGE = int(TOKEN_TTL.total_seconds())


# PUBLIC_INTERFACE
class TokenClaims(BaseModel):
    """Identity asserted by a verified token."""

    sub: str
    email: str
    name: str
    iat: Optional[int] = None
    exp: Optional[int] = None

    @property
    def user_id(self) -> str:
        return self.sub


# PUBLIC_INTERFACE
class TokenService:
    """
    Issue and verify signed, time-limited identity tokens (HS256 JWT).

    Tokens are self-contained: nothing is stored server-side, so a token stays
    valid until it expires even after the client drops its cookie.
    """

    def __init__(self, secret: str, ttl: timedelta = TOKEN_TTL) -> None:
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        self._secret = secret
        self._ttl = ttl

    def issue(self, claims: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> str:
        """
        Sign ``{sub, email, name}`` with issued-at and expiry.

        Accepts either a mapping (``sub`` or ``user_id`` for the owner id) or
        the same keys as keyword arguments.
        """
        data = dict(claims or {}, **kwargs)
        sub = data.get("sub", data.get("user_id"))
        if not sub or not data.get("email") or "name" not in data:
            raise ValueError("Token claims require an owner id, email and name")

        now = datetime.now(timezone.utc)
        to_encode = {
            "sub": str(sub),
            "email": data["email"],
            "name": data["name"],
            "iat": now,
            "exp": now + self._ttl,
        }
        return jwt.encode(to_encode, self._secret, algorithm=JWT_ALGORITHM)

    def verify(self, token: Optional[str]) -> Optional[TokenClaims]:
        """Return the claims of a valid token, or None for anything else."""
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[JWT_ALGORITHM],
                options={"require_exp": True, "require_iat": True},
            )
        except JWTError:
            return None
        try:
            return TokenClaims.model_validate(payload)
        except ValidationError:
            return None


def read_token(request: Request) -> Optional[str]:
    return request.cookies.get(COOKIE_NAME) or None


def set_token_cookie(response: Response, token: str, secure: bool) -> None:
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        max_age=COOKIE_MAX_AGE,
        path="/",
        secure=secure,
        httponly=True,
        samesite="strict",
    )


def clear_token_cookie(response: Response, secure: bool) -> None:
    # Transport-level logout only; the signed value itself is not revoked.
    response.set_cookie(
        key=COOKIE_NAME,
        value="",
        max_age=0,
        path="/",
        secure=secure,
        httponly=True,
        samesite="strict",
    )
