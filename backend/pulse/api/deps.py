"""Dependency injection for FastAPI routes."""

import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.api.auth import AuthContext, hash_token
from pulse.config import Settings, get_settings
from pulse.database import get_db
from pulse.repositories import PostgresUserRepository

# Type aliases for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_settings)]

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    db: DbSession,
    settings: AppSettings,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> AuthContext:
    """Resolve the bearer token to a user."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = credentials.credentials
    if settings.admin_bootstrap_token and secrets.compare_digest(token, settings.admin_bootstrap_token):
        return AuthContext.bootstrap()

    user = await PostgresUserRepository(db).get_by_token_hash(hash_token(token))
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or revoked token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return AuthContext.for_user(user)


CurrentUser = Annotated[AuthContext, Depends(get_current_user)]


def require_permission(key: str):
    """Dependency factory: 403 unless the caller holds ``key`` (admins always pass)."""

    async def checker(auth: CurrentUser) -> AuthContext:
        if not auth.has_permission(key):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {key}",
            )
        return auth

    return checker
