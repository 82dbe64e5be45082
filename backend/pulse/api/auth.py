"""Bearer token authentication and permission checks.

Users authenticate with an API token issued when the user is created (or
rotated). Only the SHA-256 hash of the token is stored.
"""

import hashlib
import secrets
from dataclasses import dataclass, field

from fastapi import HTTPException, status

from pulse.models import User

ADMIN_ROLE = "admin"


def generate_token() -> str:
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def effective_permissions(user: User) -> set[str]:
    """Role permissions with the user's grants added and revokes removed."""
    permissions = {perm.key for role in user.roles for perm in role.permissions}
    for override in user.permission_overrides:
        if override.granted:
            permissions.add(override.permission.key)
        else:
            permissions.discard(override.permission.key)
    return permissions


@dataclass
class AuthContext:
    """The caller of a request."""
    user: User | None
    is_admin: bool = False
    permissions: set[str] = field(default_factory=set)
    account_ids: set[str] = field(default_factory=set)

    @classmethod
    def for_user(cls, user: User) -> "AuthContext":
        return cls(
            user=user,
            is_admin=any(role.name == ADMIN_ROLE for role in user.roles),
            permissions=effective_permissions(user),
            account_ids={link.account_id for link in user.accounts},
        )

    @classmethod
    def bootstrap(cls) -> "AuthContext":
        """Admin context for the configured bootstrap token."""
        return cls(user=None, is_admin=True)

    def has_permission(self, key: str) -> bool:
        return self.is_admin or key in self.permissions

    def can_access_account(self, account_id: str | None) -> bool:
        if self.is_admin or account_id is None:
            return True
        return account_id in self.account_ids

    def require_account(self, account_id: str | None) -> None:
        if not self.can_access_account(account_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have access to this account",
            )
