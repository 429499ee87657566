from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from stockledger.core.api_docs import error_responses
from stockledger.core.config import settings
from stockledger.core.deps import get_db
from stockledger.core.errors import AuthenticationError
from stockledger.core.rate_limit import LoginRateLimiter
from stockledger.core.security import create_access_token
from stockledger.core.security_current import get_current_user
from stockledger.models.user import User
from stockledger.schemas.auth import LoginIn, RegisterIn, TokenOut, UserProfileOut
from stockledger.services import account_service

router = APIRouter(prefix="/auth", tags=["auth"])

TOKEN_RESPONSE = {
    200: {
        "description": "Bearer access token",
        "content": {"application/json": {"example": {"access_token": "eyJhbGciOi...", "token_type": "bearer"}}},
    }
}

login_rate_limiter = LoginRateLimiter(
    max_attempts=settings.auth_rate_limit_max_attempts,
    window_seconds=settings.auth_rate_limit_window_seconds,
    lock_seconds=settings.auth_rate_limit_lock_seconds,
)


def _throttle_key(identifier: str, request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    client = forwarded.split(",")[0].strip() or (request.client.host if request.client else "") or "unknown"
    return f"{identifier.strip().lower()}@{client}"


def _issue_token(user: User) -> TokenOut:
    return TokenOut(access_token=create_access_token(user.id, user.role))


def _login(db: Session, request: Request, identifier: str, password: str) -> TokenOut:
    key = _throttle_key(identifier, request)
    wait = login_rate_limiter.retry_after(key)
    if wait > 0:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many failed attempts. Try again later.",
            headers={"Retry-After": str(wait)},
        )

    try:
        user = account_service.authenticate(db, identifier=identifier, password=password)
    except AuthenticationError as exc:
        remaining = login_rate_limiter.record_failure(key)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
            headers={"X-Login-Attempts-Remaining": str(remaining)},
        ) from exc

    login_rate_limiter.reset(key)
    return _issue_token(user)


@router.post(
    "/register",
    response_model=TokenOut,
    summary="Register a user",
    description="The first account becomes an admin; later accounts are staff.",
    responses={**TOKEN_RESPONSE, **error_responses(409, 422, 500)},
)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    user = account_service.register_account(
        db,
        email=payload.email,
        full_name=payload.full_name,
        password=payload.password,
        username=payload.username,
    )
    return _issue_token(user)


@router.post(
    "/login",
    response_model=TokenOut,
    summary="Login with JSON",
    description="`identifier` is an email or a username.",
    responses={**TOKEN_RESPONSE, **error_responses(401, 422, 429, 500)},
)
def login(payload: LoginIn, request: Request, db: Session = Depends(get_db)):
    return _login(db, request, payload.identifier, payload.password)


@router.post(
    "/token",
    response_model=TokenOut,
    summary="OAuth2 password flow (Swagger Authorize)",
    description="Form login; put an email or username in `username`.",
    responses={**TOKEN_RESPONSE, **error_responses(401, 422, 429, 500)},
)
def token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    return _login(db, request, form_data.username, form_data.password)


@router.get(
    "/me",
    response_model=UserProfileOut,
    summary="Current user profile",
    responses=error_responses(401, 500),
)
def me(user: User = Depends(get_current_user)):
    return UserProfileOut.model_validate(user)
