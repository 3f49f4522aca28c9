"""
JWT verification for tokens issued by the identity provider.
"""
from jose import JWTError, jwt

from obligation_registry.config import Settings


def decode_access_token(token: str, settings: Settings) -> dict:
    """
    Decode and verify a JWT.
    Raises JWTError on invalid / expired tokens.
    """
    return jwt.decode(
        token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
    )


# Re-export so callers can catch the right exception.
__all__ = ["decode_access_token", "JWTError"]
