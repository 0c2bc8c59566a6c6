from __future__ import annotations

from fastapi import Depends, Request

from .credentials import CredentialStore
from .errors import AuthenticationError
from .repositories import TaskRepository
from .settings import Settings
from .tokens import TokenClaims, TokenService, read_token

# Everything here is built once in create_app() and kept on app.state;
# these dependencies only hand the shared instances to route handlers.


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def get_credential_store(request: Request) -> CredentialStore:
    return request.app.state.credentials


def get_task_repository(request: Request) -> TaskRepository:
    return request.app.state.tasks


# PUBLIC_INTERFACE
def get_current_user(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
) -> TokenClaims:
    """
    Verify the identity cookie for this request.

    Runs independently of the access gate middleware, so a route is protected
    even when mounted behind a different gate or none at all.

    Raises:
        AuthenticationError(401) if the cookie is missing, tampered with or expired.
    """
    claims = tokens.verify(read_token(request))
    if claims is None:
        raise AuthenticationError("Unauthorized")
    return claims
