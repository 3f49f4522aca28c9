"""
Bearer-token scheme and rate limiter shared across the app.
"""
from fastapi.security import OAuth2PasswordBearer
from slowapi import Limiter
from slowapi.util import get_remote_address

# Tokens are issued by the external identity provider; tokenUrl only feeds the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=True)

limiter = Limiter(key_func=get_remote_address)
