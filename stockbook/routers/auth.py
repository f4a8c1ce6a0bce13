from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from stockbook.core.api_docs import error_responses
from stockbook.core.deps import get_db
from stockbook.core.errors import AuthenticationError
from stockbook.core.google_auth import verify_google_identity_token
from stockbook.core.observability import log_event
from stockbook.core.rate_limit import login_rate_limiter
from stockbook.core.security import IssuedTokens
from stockbook.core.security_current import get_current_business, get_current_user
from stockbook.models.business import Business
from stockbook.models.user import User
from stockbook.schemas.auth import (
    ChangePasswordIn,
    GoogleAuthIn,
    LoginIn,
    LogoutIn,
    RefreshIn,
    RegisterIn,
    TokenOut,
    UpdateProfileIn,
    UserProfileOut,
)
from stockbook.services import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])
TOKEN_PAIR_RESPONSE = {
    200: {
        "description": "Access and refresh tokens",
        "content": {
            "application/json": {
                "example": {
                    "access_token": "access-token",
                    "refresh_token": "refresh-token",
                    "token_type": "bearer",
                }
            }
        },
    }
}


def _client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for", "")
    if forwarded_for.strip():
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client and request.client.host else "unknown"


def _token_out(tokens: IssuedTokens) -> TokenOut:
    return TokenOut(access_token=tokens.access_token, refresh_token=tokens.refresh_token)


def _profile_out(user: User, business: Business) -> UserProfileOut:
    return UserProfileOut(
        id=user.id,
        email=user.email,
        username=user.username,
        full_name=user.full_name,
        business_name=business.name,
        base_currency=business.base_currency,
        last_login_at=user.last_login_at,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _password_login(db: Session, request: Request, identifier: str, password: str) -> TokenOut:
    client_ip = _client_ip(request)
    key = login_rate_limiter.key_for(identifier, client_ip)
    retry_after = login_rate_limiter.retry_after(key)
    if retry_after:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many failed sign-in attempts. Try again later.",
            headers={"Retry-After": str(retry_after)},
        )

    try:
        user = auth_service.authenticate(db, identifier, password)
    except AuthenticationError:
        login_rate_limiter.register_failure(key)
        log_event("login_failed", client_ip=client_ip)
        raise

    login_rate_limiter.register_success(key)
    tokens = auth_service.start_session(db, user, client_ip=client_ip)
    db.commit()
    return _token_out(tokens)


@router.post(
    "/register",
    response_model=TokenOut,
    summary="Register an owner",
    description="Creates the owner account and their business, then signs them in.",
    responses={**TOKEN_PAIR_RESPONSE, **error_responses(400, 422, 500)},
)
def register(payload: RegisterIn, request: Request, db: Session = Depends(get_db)):
    try:
        user = auth_service.register_owner(
            db,
            email=payload.email,
            password=payload.password,
            full_name=payload.full_name,
            username=payload.username,
            business_name=payload.business_name,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    tokens = auth_service.start_session(db, user, client_ip=_client_ip(request))
    db.commit()
    return _token_out(tokens)


@router.post(
    "/login",
    response_model=TokenOut,
    summary="Login with JSON",
    description="Sign in with email or username and password.",
    responses={**TOKEN_PAIR_RESPONSE, **error_responses(401, 422, 429, 500)},
)
def login(payload: LoginIn, request: Request, db: Session = Depends(get_db)):
    return _password_login(db, request, payload.identifier, payload.password)


@router.post(
    "/token",
    response_model=TokenOut,
    summary="OAuth2 password token (Swagger Authorize)",
    description="Form-data sign-in used by Swagger Authorize. Put the email or username in `username`.",
    responses={**TOKEN_PAIR_RESPONSE, **error_responses(401, 422, 429, 500)},
)
def login_for_swagger(
    request: Request,
    db: Session = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends(),
):
    return _password_login(db, request, form_data.username, form_data.password)


@router.post(
    "/google",
    response_model=TokenOut,
    summary="Sign in with Google",
    description="Verifies a Google ID token, creating the owner and business on first use.",
    responses={**TOKEN_PAIR_RESPONSE, **error_responses(400, 401, 422, 500)},
)
def google_auth(payload: GoogleAuthIn, request: Request, db: Session = Depends(get_db)):
    try:
        identity = verify_google_identity_token(payload.id_token)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    user = auth_service.sign_in_with_google(
        db,
        identity,
        business_name=payload.business_name,
        username=payload.username,
    )
    tokens = auth_service.start_session(db, user, client_ip=_client_ip(request))
    db.commit()
    return _token_out(tokens)


@router.get(
    "/me",
    response_model=UserProfileOut,
    summary="Get current owner profile",
    responses=error_responses(401, 404, 500),
)
def get_my_profile(
    user: User = Depends(get_current_user),
    biz: Business = Depends(get_current_business),
):
    return _profile_out(user, biz)


@router.patch(
    "/me",
    response_model=UserProfileOut,
    summary="Update current owner profile",
    description="Updates full name, username, business name and/or base currency.",
    responses=error_responses(400, 401, 404, 422, 500),
)
def update_my_profile(
    payload: UpdateProfileIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    biz: Business = Depends(get_current_business),
):
    try:
        auth_service.update_profile(
            db, user, biz, payload.model_dump(exclude_unset=True, exclude_none=True)
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    db.commit()
    db.refresh(user)
    db.refresh(biz)
    return _profile_out(user, biz)


@router.post(
    "/refresh",
    response_model=TokenOut,
    summary="Refresh access token",
    description="Trades a live refresh token for a new pair. The old refresh token stops working.",
    responses={**TOKEN_PAIR_RESPONSE, **error_responses(401, 422, 500)},
)
def refresh_tokens(payload: RefreshIn, request: Request, db: Session = Depends(get_db)):
    tokens = auth_service.rotate_refresh_token(
        db, payload.refresh_token, client_ip=_client_ip(request)
    )
    db.commit()
    return _token_out(tokens)


@router.post(
    "/logout",
    summary="Logout (revoke refresh token)",
    responses=error_responses(422, 500),
)
def logout(payload: LogoutIn, db: Session = Depends(get_db)):
    auth_service.revoke_refresh_token(db, payload.refresh_token)
    db.commit()
    return {"ok": True}


@router.post(
    "/change-password",
    summary="Change password",
    description="Changes the password and signs out every open session.",
    responses=error_responses(400, 401, 422, 500),
)
def change_password(
    payload: ChangePasswordIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    biz: Business = Depends(get_current_business),
):
    try:
        revoked = auth_service.change_password(
            db,
            user,
            biz,
            current_password=payload.current_password,
            new_password=payload.new_password,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    db.commit()
    return {"ok": True, "sessions_revoked": revoked}
