"""Verification of Clerk session tokens (networkless, against the instance public key)."""
from typing import Optional

from jose import JWTError, jwt

from transcript_annotator.config import settings

ALGORITHMS = ["RS256"]
SESSION_COOKIE = "__session"


class InvalidSessionToken(Exception):
    pass


def extract_token(authorization: Optional[str], session_cookie: Optional[str]) -> Optional[str]:
    """Bearer header wins over the session cookie, matching Clerk's own middleware."""
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
    if session_cookie and session_cookie.strip():
        return session_cookie.strip()
    return None


def verify_session_token(token: str) -> dict:
    """
    Decode and validate a session token.

    Checks signature, expiry and not-before via python-jose, then the
    optional issuer and authorized-party allow-list from settings.

    Raises:
        InvalidSessionToken: if the token cannot be trusted.
    """
    key = settings.clerk_public_key
    if not key:
        raise InvalidSessionToken("Clerk JWT key is not configured")

    try:
        claims = jwt.decode(
            token,
            key,
            algorithms=ALGORITHMS,
            issuer=settings.CLERK_ISSUER or None,
            options={"verify_aud": False},
        )
    except JWTError as e:
        raise InvalidSessionToken(str(e)) from e

    allowed_parties = settings.authorized_parties_list
    azp = claims.get("azp")
    if allowed_parties and azp and azp not in allowed_parties:
        raise InvalidSessionToken(f"Unexpected authorized party: {azp}")

    if not claims.get("sub"):
        raise InvalidSessionToken("Token has no subject")
    return claims
