"""Bearer token verification for tokens issued by the external auth provider.

The service never handles passwords or sessions; it only checks the token
signature and expiry and reads the subject and profile claims.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from advisorhub.config import get_settings


def decode_token(token: str) -> dict | None:
    """Return the token claims, or None if the token is invalid or expired."""
    settings = get_settings()
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError:
        return None


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Sign a token the way the auth provider does. Used by tests and local tooling."""
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire, "type": "access"})
    if settings.jwt_audience and "aud" not in to_encode:
        to_encode["aud"] = settings.jwt_audience
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)
