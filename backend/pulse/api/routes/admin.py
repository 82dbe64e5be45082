"""Admin routes: users, roles, permissions, prompts, schema tiers and AI usage."""

import csv
import io
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field

from pulse.api.auth import AuthContext, effective_permissions, generate_token, hash_token
from pulse.api.deps import DbSession, require_permission
from pulse.models import Prompt, User, UserAccount, UserPermissionOverride
from pulse.page_types import SchemaTier
from pulse.repositories import (
    PostgresAccountRepository,
    PostgresPermissionRepository,
    PostgresPromptRepository,
    PostgresRoleRepository,
    PostgresSchemaTemplateRepository,
    PostgresUsageLogRepository,
    PostgresUserRepository,
)
from pulse.services.llm_client import is_supported_model

logger = logging.getLogger(__name__)

router = APIRouter()

USAGE_CSV_COLUMNS = [
    "created_at", "action", "provider", "model", "input_tokens", "output_tokens",
    "input_cost_cents", "output_cost_cents", "request_duration_ms", "success",
    "page_url", "error_message",
]


# Users

class UserResponse(BaseModel):
    id: str
    email: str
    full_name: str | None = None
    is_active: bool
    roles: list[str]
    account_ids: list[str]
    permissions: list[str]
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            is_active=user.is_active,
            roles=sorted(role.name for role in user.roles),
            account_ids=sorted(link.account_id for link in user.accounts),
            permissions=sorted(effective_permissions(user)),
            created_at=user.created_at,
        )


class CreateUserRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    full_name: str | None = None
    role_ids: list[str] = []
    account_ids: list[str] = []


class UpdateUserRequest(BaseModel):
    full_name: str | None = None
    is_active: bool | None = None
    role_ids: list[str] | None = None
    account_ids: list[str] | None = None


class UserTokenResponse(BaseModel):
    """Returned once when a token is issued; only its hash is stored."""

    user: UserResponse
    token: str


async def get_user_or_404(db: DbSession, user_id: str) -> User:
    user = await PostgresUserRepository(db).get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


async def _assign_roles(db: DbSession, user: User, role_ids: list[str]) -> None:
    roles = await PostgresRoleRepository(db).get_by_ids(role_ids) if role_ids else []
    if len(roles) != len(set(role_ids)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown role id")
    user.roles = roles


async def _assign_accounts(db: DbSession, user: User, account_ids: list[str]) -> None:
    wanted = set(account_ids)
    if wanted:
        found = await PostgresAccountRepository(db).get_all(account_ids=list(wanted))
        if len(found) != len(wanted):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown account id")

    kept = [link for link in user.accounts if link.account_id in wanted]
    existing = {link.account_id for link in kept}
    user.accounts = kept + [UserAccount(account_id=a) for a in sorted(wanted - existing)]


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("users.read"))],
) -> list[UserResponse]:
    users = await PostgresUserRepository(db).get_all()
    return [UserResponse.from_user(u) for u in users]


@router.post("/users", response_model=UserTokenResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    request: CreateUserRequest,
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("users.write"))],
) -> UserTokenResponse:
    user_repo = PostgresUserRepository(db)
    if await user_repo.get_by_email(request.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A user with this email already exists")

    token = generate_token()
    user = User(email=request.email, full_name=request.full_name, token_hash=hash_token(token))
    user.roles = []
    user.accounts = []
    user.permission_overrides = []
    await _assign_roles(db, user, request.role_ids)
    await _assign_accounts(db, user, request.account_ids)
    await user_repo.save(user)

    logger.info(f"Created user {user.email}")
    return UserTokenResponse(user=UserResponse.from_user(user), token=token)


@router.patch("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    request: UpdateUserRequest,
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("users.write"))],
) -> UserResponse:
    user = await get_user_or_404(db, user_id)
    if request.full_name is not None:
        user.full_name = request.full_name
    if request.is_active is not None:
        user.is_active = request.is_active
    if request.role_ids is not None:
        await _assign_roles(db, user, request.role_ids)
    if request.account_ids is not None:
        await _assign_accounts(db, user, request.account_ids)
    await PostgresUserRepository(db).save(user)
    return UserResponse.from_user(user)


@router.post("/users/{user_id}/token", response_model=UserTokenResponse)
async def rotate_user_token(
    user_id: str,
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("users.write"))],
) -> UserTokenResponse:
    """Issue a new token; the previous one stops working immediately."""
    user = await get_user_or_404(db, user_id)
    token = generate_token()
    user.token_hash = hash_token(token)
    await PostgresUserRepository(db).save(user)
    return UserTokenResponse(user=UserResponse.from_user(user), token=token)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("users.write"))],
) -> None:
    if auth.user is not None and auth.user.id == user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete yourself")
    await get_user_or_404(db, user_id)
    await PostgresUserRepository(db).delete(user_id)


# Roles and permissions

class PermissionResponse(BaseModel):
    id: str
    key: str
    description: str | None = None
    category: str | None = None

    class Config:
        from_attributes = True


class RoleResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    permissions: list[PermissionResponse]

    class Config:
        from_attributes = True


class RolePermissionsRequest(BaseModel):
    permission_ids: list[str]


class OverrideItem(BaseModel):
    permission_id: str
    granted: bool


class OverrideResponse(BaseModel):
    permission_id: str
    key: str
    granted: bool


@router.get("/roles", response_model=list[RoleResponse])
async def list_roles(
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("roles.read"))],
) -> list[RoleResponse]:
    roles = await PostgresRoleRepository(db).get_all()
    return [RoleResponse.model_validate(r) for r in roles]


@router.put("/roles/{role_id}/permissions", response_model=RoleResponse)
async def replace_role_permissions(
    role_id: str,
    request: RolePermissionsRequest,
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("roles.write"))],
) -> RoleResponse:
    role_repo = PostgresRoleRepository(db)
    role = await role_repo.get_by_id(role_id)
    if not role:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")

    wanted = set(request.permission_ids)
    permissions = await PostgresPermissionRepository(db).get_by_ids(list(wanted)) if wanted else []
    if len(permissions) != len(wanted):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown permission id")

    role.permissions = permissions
    await role_repo.save(role)
    logger.info(f"Role {role.name} now has {len(permissions)} permissions")
    return RoleResponse.model_validate(role)


@router.get("/permissions", response_model=list[PermissionResponse])
async def list_permissions(
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("roles.read"))],
) -> list[PermissionResponse]:
    permissions = await PostgresPermissionRepository(db).get_all()
    return [PermissionResponse.model_validate(p) for p in permissions]


@router.get("/users/{user_id}/overrides", response_model=list[OverrideResponse])
async def get_user_overrides(
    user_id: str,
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("users.read"))],
) -> list[OverrideResponse]:
    user = await get_user_or_404(db, user_id)
    return [
        OverrideResponse(permission_id=o.permission_id, key=o.permission.key, granted=o.granted)
        for o in user.permission_overrides
    ]


@router.put("/users/{user_id}/overrides", response_model=list[OverrideResponse])
async def replace_user_overrides(
    user_id: str,
    overrides: list[OverrideItem],
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("users.write"))],
) -> list[OverrideResponse]:
    """Replace a user's grants and revokes."""
    user = await get_user_or_404(db, user_id)
    wanted = {item.permission_id: item.granted for item in overrides}
    permissions = await PostgresPermissionRepository(db).get_by_ids(list(wanted)) if wanted else []
    if len(permissions) != len(wanted):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown permission id")

    by_permission = {o.permission_id: o for o in user.permission_overrides}
    updated = []
    for permission in permissions:
        override = by_permission.get(permission.id) or UserPermissionOverride(permission_id=permission.id)
        override.permission = permission
        override.granted = wanted[permission.id]
        updated.append(override)
    user.permission_overrides = updated
    await PostgresUserRepository(db).save(user)

    return [
        OverrideResponse(permission_id=o.permission_id, key=o.permission.key, granted=o.granted)
        for o in updated
    ]


# Prompts

class PromptRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    system_prompt: str | None = None
    user_prompt_template: str | None = Field(default=None, min_length=1)
    default_model: str | None = None


class PromptResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    system_prompt: str | None = None
    user_prompt_template: str
    default_model: str | None = None
    updated_at: datetime

    class Config:
        from_attributes = True


def _check_model(model: str | None) -> None:
    if model and not is_supported_model(model):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unsupported model: {model}")


async def get_prompt_or_404(db: DbSession, prompt_id: str) -> Prompt:
    prompt = await PostgresPromptRepository(db).get_by_id(prompt_id)
    if not prompt:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prompt not found")
    return prompt


@router.get("/prompts", response_model=list[PromptResponse])
async def list_prompts(
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("prompts.read"))],
) -> list[PromptResponse]:
    prompts = await PostgresPromptRepository(db).get_all()
    return [PromptResponse.model_validate(p) for p in prompts]


@router.post("/prompts", response_model=PromptResponse, status_code=status.HTTP_201_CREATED)
async def create_prompt(
    request: PromptRequest,
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("prompts.write"))],
) -> PromptResponse:
    if not request.name or not request.user_prompt_template:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="name and user_prompt_template are required",
        )
    _check_model(request.default_model)

    prompt_repo = PostgresPromptRepository(db)
    if await prompt_repo.get_by_name(request.name):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A prompt with this name already exists")

    prompt = Prompt(**request.model_dump(exclude_unset=True))
    await prompt_repo.save(prompt)
    return PromptResponse.model_validate(prompt)


@router.get("/prompts/{prompt_id}", response_model=PromptResponse)
async def get_prompt(
    prompt_id: str,
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("prompts.read"))],
) -> PromptResponse:
    return PromptResponse.model_validate(await get_prompt_or_404(db, prompt_id))


@router.patch("/prompts/{prompt_id}", response_model=PromptResponse)
async def update_prompt(
    prompt_id: str,
    request: PromptRequest,
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("prompts.write"))],
) -> PromptResponse:
    """Edit a prompt; workers pick the change up at their next task."""
    prompt_repo = PostgresPromptRepository(db)
    prompt = await get_prompt_or_404(db, prompt_id)
    updates = request.model_dump(exclude_unset=True)
    _check_model(updates.get("default_model"))

    if updates.get("name") and updates["name"] != prompt.name:
        if await prompt_repo.get_by_name(updates["name"]):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A prompt with this name already exists")
    for name, value in updates.items():
        if name in ("name", "user_prompt_template") and not value:
            continue
        setattr(prompt, name, value)

    await prompt_repo.save(prompt)
    return PromptResponse.model_validate(prompt)


@router.delete("/prompts/{prompt_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_prompt(
    prompt_id: str,
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("prompts.write"))],
) -> None:
    await get_prompt_or_404(db, prompt_id)
    await PostgresPromptRepository(db).delete(prompt_id)


# Schema tiers

class SchemaTierResponse(BaseModel):
    id: str
    schema_type: str
    page_type: str | None = None
    tier: str
    tier_reason: str | None = None
    description: str | None = None
    required_fields: list[str] | None = None
    optional_fields: list[str] | None = None
    data_sources: dict[str, Any] | None = None

    class Config:
        from_attributes = True


class UpdateSchemaTierRequest(BaseModel):
    tier: SchemaTier | None = None
    tier_reason: str | None = None
    description: str | None = None
    required_fields: list[str] | None = None
    optional_fields: list[str] | None = None
    data_sources: dict[str, Any] | None = None


@router.get("/schema-tiers", response_model=list[SchemaTierResponse])
async def list_schema_tiers(
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("meta.read"))],
) -> list[SchemaTierResponse]:
    templates = await PostgresSchemaTemplateRepository(db).get_all()
    return [SchemaTierResponse.model_validate(t) for t in templates]


@router.patch("/schema-tiers/{template_id}", response_model=SchemaTierResponse)
async def update_schema_tier(
    template_id: str,
    request: UpdateSchemaTierRequest,
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("meta.write"))],
) -> SchemaTierResponse:
    template_repo = PostgresSchemaTemplateRepository(db)
    template = await template_repo.get_by_id(template_id)
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Schema template not found")

    for name, value in request.model_dump(exclude_unset=True).items():
        if name == "tier":
            if value is None:
                continue
            value = SchemaTier(value).value
        setattr(template, name, value)

    await template_repo.save(template)
    logger.info(f"Schema tier for {template.page_type or template.schema_type} set to {template.tier}")
    return SchemaTierResponse.model_validate(template)


# AI usage

class UsageLogResponse(BaseModel):
    id: str
    action: str
    page_id: str | None = None
    page_url: str | None = None
    provider: str
    model: str
    input_tokens: int
    output_tokens: int
    input_cost_cents: float
    output_cost_cents: float
    total_cost_cents: float
    request_duration_ms: int | None = None
    success: bool
    error_message: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class UsageSummaryRow(BaseModel):
    key: str | None
    requests: int
    input_tokens: int
    output_tokens: int
    cost_cents: float


class UsageSummaryResponse(BaseModel):
    group_by: str
    rows: list[UsageSummaryRow]
    total_requests: int
    total_cost_cents: float


def date_range(start_date: date | None, end_date: date | None) -> tuple[datetime | None, datetime | None]:
    """Inclusive calendar dates to a half-open UTC datetime range."""
    start = datetime.combine(start_date, time.min, tzinfo=timezone.utc) if start_date else None
    end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc) if end_date else None
    if start and end and start >= end:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="start_date must not be after end_date")
    return start, end


UsageReader = Annotated[AuthContext, Depends(require_permission("usage.read"))]


@router.get("/usage", response_model=list[UsageLogResponse])
async def list_usage(
    db: DbSession,
    auth: UsageReader,
    start_date: date | None = None,
    end_date: date | None = None,
    provider: str | None = None,
    action: str | None = None,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[UsageLogResponse]:
    start, end = date_range(start_date, end_date)
    logs = await PostgresUsageLogRepository(db).find(
        start=start, end=end, provider=provider, action=action, limit=limit, offset=offset
    )
    return [UsageLogResponse.model_validate(log) for log in logs]


@router.get("/usage/summary", response_model=UsageSummaryResponse)
async def usage_summary(
    db: DbSession,
    auth: UsageReader,
    start_date: date | None = None,
    end_date: date | None = None,
    group_by: Literal["model", "provider", "action"] = "model",
) -> UsageSummaryResponse:
    """Token and cost totals for the dashboard."""
    start, end = date_range(start_date, end_date)
    rows = await PostgresUsageLogRepository(db).summary(start=start, end=end, group_by=group_by)
    return UsageSummaryResponse(
        group_by=group_by,
        rows=[UsageSummaryRow(**row) for row in rows],
        total_requests=sum(row["requests"] for row in rows),
        total_cost_cents=round(sum(row["cost_cents"] for row in rows), 4),
    )


@router.get("/usage/export")
async def export_usage(
    db: DbSession,
    auth: UsageReader,
    start_date: date | None = None,
    end_date: date | None = None,
    provider: str | None = None,
    action: str | None = None,
) -> Response:
    """All matching usage rows as CSV."""
    start, end = date_range(start_date, end_date)
    logs = await PostgresUsageLogRepository(db).find(
        start=start, end=end, provider=provider, action=action, limit=None
    )

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(USAGE_CSV_COLUMNS)
    for log in logs:
        writer.writerow([
            log.created_at.isoformat() if log.created_at else "",
            log.action,
            log.provider,
            log.model,
            log.input_tokens,
            log.output_tokens,
            log.input_cost_cents,
            log.output_cost_cents,
            log.request_duration_ms if log.request_duration_ms is not None else "",
            log.success,
            log.page_url or "",
            log.error_message or "",
        ])

    filename = f"ai-usage-{datetime.now(timezone.utc).strftime('%Y%m%d')}.csv"
    return Response(
        content=buffer.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
