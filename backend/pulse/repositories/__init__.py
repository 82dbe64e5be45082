"""Repository implementations for data access."""

from pulse.repositories.postgres import (
    PostgresAccountRepository,
    PostgresLinkPlanRepository,
    PostgresLocationRepository,
    PostgresPageRepository,
    PostgresPageSchemaRepository,
    PostgresPermissionRepository,
    PostgresPromptRepository,
    PostgresRoleRepository,
    PostgresSchemaTemplateRepository,
    PostgresSiteRepository,
    PostgresUsageLogRepository,
    PostgresUserRepository,
)

__all__ = [
    "PostgresAccountRepository",
    "PostgresLinkPlanRepository",
    "PostgresLocationRepository",
    "PostgresPageRepository",
    "PostgresPageSchemaRepository",
    "PostgresPermissionRepository",
    "PostgresPromptRepository",
    "PostgresRoleRepository",
    "PostgresSchemaTemplateRepository",
    "PostgresSiteRepository",
    "PostgresUsageLogRepository",
    "PostgresUserRepository",
]
