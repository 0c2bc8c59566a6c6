from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from ..credentials import CredentialStore
from ..deps import get_app_settings, get_credential_store, get_current_user, get_token_service
from ..models import UserEntity
from ..schemas import AuthResponse, LoginRequest, MeResponse, MessageResponse, RegisterRequest, UserOut
from ..settings import Settings
from ..tokens import TokenClaims, TokenService, clear_token_cookie, set_token_cookie

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)


def _user_out(user: UserEntity) -> UserOut:
    return UserOut(id=user["id"], name=user["name"], email=user["email"])


def _start_session(response: Response, user: UserEntity, tokens: TokenService, settings: Settings) -> None:
    token = tokens.issue(sub=user["id"], email=user["email"], name=user["name"])
    set_token_cookie(response, token, secure=settings.secure_cookies)


# PUBLIC_INTERFACE
@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register",
    description="Create a user account and start a session (sets the identity cookie).",
    responses={
        201: {"description": "User registered"},
        400: {"description": "Validation error"},
        409: {"description": "Email already registered"},
    },
)
def register(
    payload: RegisterRequest,
    response: Response,
    credentials: CredentialStore = Depends(get_credential_store),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_app_settings),
) -> AuthResponse:
    """
    Register a new user.
    """
    user = credentials.register(payload.name, payload.email, payload.password)
    _start_session(response, user, tokens, settings)
    return AuthResponse(message="Registration successful", user=_user_out(user))


# PUBLIC_INTERFACE
@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Login",
    description="Check email and password and start a session (sets the identity cookie).",
    responses={
        200: {"description": "Login successful"},
        400: {"description": "Validation error"},
        401: {"description": "Invalid credentials"},
    },
)
def login(
    payload: LoginRequest,
    response: Response,
    credentials: CredentialStore = Depends(get_credential_store),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_app_settings),
) -> AuthResponse:
    user = credentials.authenticate(payload.email, payload.password)
    _start_session(response, user, tokens, settings)
    return AuthResponse(message="Login successful", user=_user_out(user))


# PUBLIC_INTERFACE
@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Logout",
    description="Clear the identity cookie. The token itself is not revoked server-side.",
)
def logout(response: Response, settings: Settings = Depends(get_app_settings)) -> MessageResponse:
    clear_token_cookie(response, secure=settings.secure_cookies)
    return MessageResponse(message="Logged out")


# PUBLIC_INTERFACE
@router.get(
    "/me",
    response_model=MeResponse,
    summary="Current user",
    description="Return the identity carried by the session cookie.",
    responses={401: {"description": "Not authenticated"}},
)
def me(claims: TokenClaims = Depends(get_current_user)) -> MeResponse:
    return MeResponse(user=UserOut(id=claims.sub, name=claims.name, email=claims.email))
