from dataclasses import dataclass

from google.auth.exceptions import GoogleAuthError
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token

from stockbook.core.config import settings


@dataclass(frozen=True)
class GoogleIdentity:
    sub: str
    email: str
    full_name: str | None


def _identity_from_claims(claims: dict) -> GoogleIdentity:
    sub = claims.get("sub")
    email = claims.get("email")
    if not sub or not email:
        raise ValueError("Google token does not identify an account")
    if claims.get("email_verified") is not True:
        raise ValueError("Google email is not verified")
    if settings.google_hosted_domain and claims.get("hd") != settings.google_hosted_domain:
        raise ValueError("Google account is outside the allowed domain")

    name = str(claims.get("name") or "").strip() or " ".join(
        str(part).strip() for part in (claims.get("given_name"), claims.get("family_name")) if part
    )
    return GoogleIdentity(
        sub=str(sub),
        email=str(email).strip().lower(),
        full_name=name or None,
    )


def verify_google_identity_token(raw_id_token: str) -> GoogleIdentity:
    """Check a Google Sign-In ID token against our client id.

    Every rejection is a ValueError; the auth router answers it with a 400.
    """
    if not settings.google_client_id:
        raise ValueError("Google sign-in is not configured")

    try:
        claims = google_id_token.verify_oauth2_token(
            raw_id_token,
            google_requests.Request(),
            settings.google_client_id,
        )
    except (GoogleAuthError, ValueError) as exc:
        raise ValueError("Invalid Google ID token") from exc
    return _identity_from_claims(claims)
