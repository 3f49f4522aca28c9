"""
Shared FastAPI dependencies.

Components are built once in ``main.create_app`` and kept on ``app.state``;
these helpers hand them to the routes.
"""
from fastapi import Depends, HTTPException, Request

from obligation_registry.config import Settings
from obligation_registry.core.security import oauth2_scheme
from obligation_registry.core.jwt_handler import decode_access_token, JWTError
from obligation_registry.services.status_store import StatusStore
from obligation_registry.services.supabase_storage import SupabaseBlobStore


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> StatusStore:
    return request.app.state.store


def get_blob_store(request: Request) -> SupabaseBlobStore:
    return request.app.state.blob_store


def get_current_user(
    token: str = Depends(oauth2_scheme),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    """Decode JWT and return user info.  Used as a dependency for protected endpoints."""
    try:
        payload = decode_access_token(token, settings)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    subject = payload.get("sub")
    if subject is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    user_id = payload.get("user_id") or subject
    return {
        "user_id": str(user_id),
        "email": payload.get("email", subject),
        "name": payload.get("name", ""),
    }
