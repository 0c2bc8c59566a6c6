from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.types import ASGIApp

from .tokens import TokenClaims, TokenService, read_token

LOGIN_PATH = "/login"
HOME_PATH = "/dashboard"

PUBLIC_PREFIXES: Tuple[str, ...] = (
    "/login",
    "/register",
    "/auth",
    "/health",
    "/static",
    "/favicon.ico",
    "/docs",
    "/redoc",
    "/openapi.json",
)
AUTH_PAGES: Tuple[str, ...] = ("/login", "/register")
API_PREFIXES: Tuple[str, ...] = ("/tasks",)


def _under(path: str, prefix: str) -> bool:
    """True when path is prefix itself or a subpath of it, on a segment boundary."""
    base = prefix.rstrip("/")
    return path == base or path.startswith(base + "/")


class GateDecision(str, enum.Enum):
    PASS = "pass"
    REDIRECT_LOGIN = "redirect_login"
    REDIRECT_HOME = "redirect_home"
    UNAUTHORIZED = "unauthorized"


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class AccessGate:
    """
    Route-level access policy evaluated before any handler runs.

    This is a UX layer: handlers verify the token again on their own.
    """

    public_prefixes: Tuple[str, ...] = PUBLIC_PREFIXES
    auth_pages: Tuple[str, ...] = AUTH_PAGES
    api_prefixes: Tuple[str, ...] = API_PREFIXES
    login_path: str = LOGIN_PATH
    home_path: str = HOME_PATH

    def is_public(self, path: str) -> bool:
        return any(_under(path, p) for p in self.public_prefixes)

    def is_auth_page(self, path: str) -> bool:
        return path.rstrip("/") in self.auth_pages

    def is_api(self, path: str) -> bool:
        return any(_under(path, p) for p in self.api_prefixes)

    def decide(self, path: str, claims: Optional[TokenClaims]) -> GateDecision:
        if claims is not None and self.is_auth_page(path):
            return GateDecision.REDIRECT_HOME
        if self.is_public(path):
            return GateDecision.PASS
        if claims is None:
            if self.is_api(path):
                return GateDecision.UNAUTHORIZED
            return GateDecision.REDIRECT_LOGIN
        return GateDecision.PASS


class AccessGateMiddleware(BaseHTTPMiddleware):
    """Starlette middleware applying an AccessGate to every HTTP request."""

    def __init__(self, app: ASGIApp, tokens: TokenService, gate: Optional[AccessGate] = None) -> None:
        super().__init__(app)
        self._tokens = tokens
        self._gate = gate or AccessGate()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS":
            # CORS preflight carries no cookies
            return await call_next(request)

        path = request.url.path
        claims = self._tokens.verify(read_token(request))
        decision = self._gate.decide(path, claims)

        if decision is GateDecision.REDIRECT_LOGIN:
            return RedirectResponse(url=self._gate.login_path, status_code=307)
        if decision is GateDecision.REDIRECT_HOME:
            return RedirectResponse(url=self._gate.home_path, status_code=307)
        if decision is GateDecision.UNAUTHORIZED:
            return JSONResponse(
                status_code=401,
                content={"error": "AuthenticationError", "message": "Unauthorized"},
            )
        return await call_next(request)
