"""SQLAlchemy models."""

from pulse.models.account import Account, Location
from pulse.models.link_plan import LinkPlan
from pulse.models.page import Page
from pulse.models.prompt import Prompt
from pulse.models.schema import PageSchema, SchemaTemplate
from pulse.models.site import Site
from pulse.models.usage import AIUsageLog
from pulse.models.user import (
    Permission,
    Role,
    RolePermission,
    User,
    UserAccount,
    UserPermissionOverride,
    UserRole,
)

__all__ = [
    "Account",
    "Location",
    "Site",
    "Page",
    "PageSchema",
    "SchemaTemplate",
    "Prompt",
    "AIUsageLog",
    "LinkPlan",
    "User",
    "Role",
    "Permission",
    "RolePermission",
    "UserRole",
    "UserAccount",
    "UserPermissionOverride",
]
