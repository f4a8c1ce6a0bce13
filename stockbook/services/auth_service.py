import re
from datetime import datetime, timezone

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from stockbook.core.config import settings
from stockbook.core.errors import AuthenticationError
from stockbook.core.google_auth import GoogleIdentity
from stockbook.core.id_utils import random_token, new_id
from stockbook.core.observability import log_event
from stockbook.core.security import (
    REFRESH_TOKEN_TYPE,
    IssuedTokens,
    TokenValidationError,
    decode_token,
    hash_password,
    issue_tokens,
    verify_password,
)
from stockbook.models.business import Business
from stockbook.models.refresh_token import RefreshToken
from stockbook.models.user import User
from stockbook.services.audit_service import log_audit_event

DEFAULT_BUSINESS_NAME = "My Business"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def slugify_username(seed: str) -> str:
    cleaned = re.sub(r"[^a-z0-9_]+", "_", seed.strip().lower())
    cleaned = re.sub(r"_+", "_", cleaned).strip("_")
    return cleaned[:30] or "owner"


def username_taken(db: Session, username: str, exclude_user_id: str | None = None) -> bool:
    stmt = select(User.id).where(func.lower(User.username) == username.lower())
    if exclude_user_id:
        stmt = stmt.where(User.id != exclude_user_id)
    return db.execute(stmt).first() is not None


def unique_username(db: Session, preferred: str | None, fallback_seed: str) -> str:
    base = slugify_username(preferred or fallback_seed)
    candidate = base
    while username_taken(db, candidate):
        candidate = f"{base[:22]}_{random_token(6).lower()}"
    return candidate


def find_user_by_identifier(db: Session, identifier: str) -> User | None:
    normalized = identifier.strip().lower()
    return db.execute(
        select(User).where(
            or_(func.lower(User.email) == normalized, func.lower(User.username) == normalized)
        )
    ).scalar_one_or_none()


def provision_business(db: Session, user_id: str, business_name: str | None) -> Business:
    """Each owner keeps exactly one set of books; reuse it when it already exists."""
    business = db.execute(
        select(Business).where(Business.owner_user_id == user_id)
    ).scalar_one_or_none()
    if business is not None:
        return business

    business = Business(
        id=new_id(),
        owner_user_id=user_id,
        name=(business_name or "").strip() or DEFAULT_BUSINESS_NAME,
        base_currency=settings.default_currency,
    )
    db.add(business)
    db.flush()
    return business


def start_session(db: Session, user: User, *, client_ip: str | None) -> IssuedTokens:
    tokens = issue_tokens(user.id)
    db.add(
        RefreshToken(
            id=new_id(),
            user_id=user.id,
            token_jti=tokens.refresh_jti,
            expires_at=tokens.refresh_expires_at,
            issued_ip=client_ip,
        )
    )
    user.last_login_at = _utcnow()
    return tokens


def register_owner(
    db: Session,
    *,
    email: str,
    password: str,
    full_name: str,
    username: str | None,
    business_name: str | None,
) -> User:
    normalized_email = email.strip().lower()
    if find_user_by_identifier(db, normalized_email) is not None:
        raise ValueError("Email already registered")

    user = User(
        email=normalized_email,
        username=unique_username(db, username, normalized_email.split("@")[0]),
        full_name=full_name,
        hashed_password=hash_password(password),
    )
    db.add(user)
    db.flush()
    provision_business(db, user.id, business_name)
    log_event("owner_registered", user_id=user.id)
    return user


def authenticate(db: Session, identifier: str, password: str) -> User:
    user = find_user_by_identifier(db, identifier)
    if user is None or not user.is_active or not verify_password(password, user.hashed_password):
        raise AuthenticationError("Invalid credentials")
    return user


def sign_in_with_google(
    db: Session,
    identity: GoogleIdentity,
    *,
    business_name: str | None,
    username: str | None,
) -> User:
    """Find the owner by Google subject, then by email, linking or creating the account as needed."""
    user = db.execute(select(User).where(User.google_sub == identity.sub)).scalar_one_or_none()
    if user is None:
        user = db.execute(
            select(User).where(func.lower(User.email) == identity.email.lower())
        ).scalar_one_or_none()

    if user is not None and user.google_sub and user.google_sub != identity.sub:
        raise AuthenticationError("Google account mismatch")

    if user is None:
        user = User(
            email=identity.email,
            username=unique_username(db, username, identity.email.split("@")[0]),
            full_name=identity.full_name,
            google_sub=identity.sub,
            # Never used for sign-in; Google accounts can set a real password later.
            hashed_password=hash_password(random_token(24)),
        )
        db.add(user)
        db.flush()
        log_event("owner_registered", user_id=user.id, via="google")
    else:
        user.google_sub = user.google_sub or identity.sub
        user.full_name = user.full_name or identity.full_name

    if not user.is_active:
        raise AuthenticationError("Account is disabled")

    fallback_name = f"{identity.full_name}'s Business" if identity.full_name else None
    provision_business(db, user.id, business_name or fallback_name)
    return user


def _load_refresh_row(db: Session, raw_token: str) -> RefreshToken | None:
    try:
        claims = decode_token(raw_token, expected_type=REFRESH_TOKEN_TYPE)
    except TokenValidationError:
        return None
    return db.execute(
        select(RefreshToken).where(
            RefreshToken.token_jti == claims.jti,
            RefreshToken.user_id == claims.subject,
        )
    ).scalar_one_or_none()


def rotate_refresh_token(db: Session, raw_token: str, *, client_ip: str | None) -> IssuedTokens:
    """Trade a live refresh token for a new pair; the presented token cannot be used again."""
    row = _load_refresh_row(db, raw_token)
    now = _utcnow()
    if row is None or row.revoked_at is not None or _as_utc(row.expires_at) <= now:
        raise AuthenticationError("Refresh token is invalid or expired")

    user = db.get(User, row.user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("Account not found or disabled")

    tokens = start_session(db, user, client_ip=client_ip)
    row.revoked_at = now
    row.revoke_reason = "rotated"
    row.replaced_by_jti = tokens.refresh_jti
    return tokens


def revoke_refresh_token(db: Session, raw_token: str) -> bool:
    """Logout. Unknown or already revoked tokens are not an error."""
    row = _load_refresh_row(db, raw_token)
    if row is None or row.revoked_at is not None:
        return False
    row.revoked_at = _utcnow()
    row.revoke_reason = "logout"
    return True


def change_password(
    db: Session,
    user: User,
    business: Business,
    *,
    current_password: str,
    new_password: str,
) -> int:
    """Set a new password and end every open session. Returns the number of sessions ended."""
    if not verify_password(current_password, user.hashed_password):
        raise AuthenticationError("Current password is incorrect")
    if current_password == new_password:
        raise ValueError("New password must be different")

    user.hashed_password = hash_password(new_password)
    result = db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user.id, RefreshToken.revoked_at.is_(None))
        .values(revoked_at=_utcnow(), revoke_reason="password_change")
    )
    log_audit_event(
        db,
        business_id=business.id,
        actor_user_id=user.id,
        action="account.password_change",
        target_type="account",
        target_id=user.id,
        metadata_json={"sessions_revoked": result.rowcount},
    )
    return result.rowcount


def update_profile(db: Session, user: User, business: Business, changes: dict) -> None:
    """Apply owner and business profile fields; `changes` holds only the fields the caller sent."""
    if "username" in changes:
        username = slugify_username(changes["username"])
        if username_taken(db, username, exclude_user_id=user.id):
            raise ValueError("Username already taken")
        user.username = username
    if "full_name" in changes:
        user.full_name = changes["full_name"]
    if "business_name" in changes:
        business.name = changes["business_name"]
    if "base_currency" in changes:
        business.base_currency = changes["base_currency"]

    log_audit_event(
        db,
        business_id=business.id,
        actor_user_id=user.id,
        action="account.update",
        target_type="account",
        target_id=user.id,
        metadata_json={"updated_fields": sorted(changes)},
    )
