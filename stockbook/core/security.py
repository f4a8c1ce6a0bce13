from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import bcrypt
from jose import JWTError, jwt

from stockbook.core.config import settings

ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenValidationError(ValueError):
    pass


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    token_type: str
    jti: str
    expires_at: datetime


@dataclass(frozen=True)
class IssuedTokens:
    access_token: str
    refresh_token: str
    refresh_jti: str
    refresh_expires_at: datetime


def hash_password(password: str) -> str:
    # bcrypt only looks at the first 72 bytes of the utf-8 encoding.
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def _encode(subject: str, token_type: str, lifetime: timedelta) -> tuple[str, TokenClaims]:
    issued_at = datetime.now(timezone.utc)
    claims = TokenClaims(
        subject=subject,
        token_type=token_type,
        jti=str(uuid4()),
        expires_at=(issued_at + lifetime).replace(microsecond=0),
    )
    token = jwt.encode(
        {
            "sub": claims.subject,
            "type": claims.token_type,
            "jti": claims.jti,
            "iat": int(issued_at.timestamp()),
            "exp": int(claims.expires_at.timestamp()),
        },
        settings.secret_key,
        algorithm=ALGORITHM,
    )
    return token, claims


def decode_token(token: str, *, expected_type: str) -> TokenClaims:
    """Verify signature, expiry and token type; every failure is a TokenValidationError."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise TokenValidationError("Invalid token") from exc

    if payload.get("type") != expected_type:
        raise TokenValidationError("Invalid token type")
    for claim in ("sub", "jti", "exp"):
        if not payload.get(claim):
            raise TokenValidationError(f"Token is missing '{claim}'")

    return TokenClaims(
        subject=str(payload["sub"]),
        token_type=expected_type,
        jti=str(payload["jti"]),
        expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
    )


def issue_tokens(user_id: str) -> IssuedTokens:
    access_token, _ = _encode(
        user_id,
        ACCESS_TOKEN_TYPE,
        timedelta(minutes=settings.access_token_expire_minutes),
    )
    refresh_token, refresh_claims = _encode(
        user_id,
        REFRESH_TOKEN_TYPE,
        timedelta(days=settings.refresh_token_expire_days),
    )
    return IssuedTokens(
        access_token=access_token,
        refresh_token=refresh_token,
        refresh_jti=refresh_claims.jti,
        refresh_expires_at=refresh_claims.expires_at,
    )
