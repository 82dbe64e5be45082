"""PostgreSQL repository implementations used by the API routes."""

from datetime import date, datetime

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pulse.models import (
    Account,
    AIUsageLog,
    LinkPlan,
    Location,
    Page,
    PageSchema,
    Permission,
    Prompt,
    Role,
    SchemaTemplate,
    Site,
    User,
    UserPermissionOverride,
)


class PostgresSiteRepository:
    """PostgreSQL implementation of site repository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, site_id: str) -> Site | None:
        result = await self.session.execute(select(Site).where(Site.id == site_id))
        return result.scalar_one_or_none()

    async def get_by_domain(self, domain: str) -> Site | None:
        """Get a site by domain (globally unique)."""
        result = await self.session.execute(select(Site).where(Site.domain == domain))
        return result.scalar_one_or_none()

    async def get_all(self, account_id: str | None = None, crawl_status: str | None = None) -> list[Site]:
        query = select(Site).order_by(Site.created_at.desc())
        if account_id:
            query = query.where(Site.account_id == account_id)
        if crawl_status:
            query = query.where(Site.crawl_status == crawl_status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def save(self, site: Site) -> Site:
        self.session.add(site)
        await self.session.flush()
        return site

    async def delete(self, site_id: str) -> bool:
        result = await self.session.execute(delete(Site).where(Site.id == site_id))
        return result.rowcount > 0


class PostgresPageRepository:
    """PostgreSQL implementation of page repository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, page_id: str) -> Page | None:
        result = await self.session.execute(select(Page).where(Page.id == page_id))
        return result.scalar_one_or_none()

    def _filtered(
        self,
        query,
        site_id: str | None,
        page_type: str | None,
        schema_status: str | list[str] | None,
        search: str | None,
    ):
        if site_id:
            query = query.where(Page.site_id == site_id)
        if page_type:
            query = query.where(Page.page_type == page_type)
        if isinstance(schema_status, list):
            query = query.where(Page.schema_status.in_(schema_status))
        elif schema_status:
            query = query.where(Page.schema_status == schema_status)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Page.path.ilike(pattern), Page.title.ilike(pattern)))
        return query

    async def find(
        self,
        site_id: str | None = None,
        page_type: str | None = None,
        schema_status: str | list[str] | None = None,
        search: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[Page], int]:
        """Return one page of rows plus the total matching count."""
        query = self._filtered(select(Page), site_id, page_type, schema_status, search)
        count_query = self._filtered(select(func.count(Page.id)), site_id, page_type, schema_status, search)

        total = (await self.session.execute(count_query)).scalar_one()
        result = await self.session.execute(query.order_by(Page.path).limit(limit).offset(offset))
        return list(result.scalars().all()), total

    async def count_by(self, site_id: str, column) -> dict[str | None, int]:
        result = await self.session.execute(
            select(column, func.count(Page.id)).where(Page.site_id == site_id).group_by(column)
        )
        return {value: count for value, count in result.all()}

    async def save(self, page: Page) -> Page:
        self.session.add(page)
        await self.session.flush()
        return page


class PostgresPageSchemaRepository:
    """Generated schema entities per page."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_page(self, page_id: str) -> list[PageSchema]:
        result = await self.session.execute(
            select(PageSchema).where(PageSchema.page_id == page_id).order_by(PageSchema.schema_type)
        )
        return list(result.scalars().all())


class PostgresAccountRepository:
    """PostgreSQL implementation of account repository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, account_id: str) -> Account | None:
        result = await self.session.execute(
            select(Account).options(selectinload(Account.locations)).where(Account.id == account_id)
        )
        return result.scalar_one_or_none()

    async def get_all(self, account_ids: list[str] | None = None) -> list[Account]:
        """All accounts, or only ``account_ids`` when given."""
        query = select(Account).options(selectinload(Account.locations)).order_by(Account.account_name)
        if account_ids is not None:
            query = query.where(Account.id.in_(account_ids))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def save(self, account: Account) -> Account:
        self.session.add(account)
        await self.session.flush()
        return account

    async def delete(self, account_id: str) -> bool:
        result = await self.session.execute(delete(Account).where(Account.id == account_id))
        return result.rowcount > 0


class PostgresLocationRepository:
    """PostgreSQL implementation of location repository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, location_id: str) -> Location | None:
        result = await self.session.execute(select(Location).where(Location.id == location_id))
        return result.scalar_one_or_none()

    async def get_by_account(self, account_id: str) -> list[Location]:
        result = await self.session.execute(
            select(Location)
            .where(Location.account_id == account_id)
            .order_by(Location.is_primary.desc(), Location.location_name)
        )
        return list(result.scalars().all())

    async def clear_primary(self, account_id: str, keep_id: str | None = None) -> None:
        """Unset is_primary on every other location of the account."""
        for location in await self.get_by_account(account_id):
            if location.id != keep_id and location.is_primary:
                location.is_primary = False

    async def save(self, location: Location) -> Location:
        self.session.add(location)
        await self.session.flush()
        return location

    async def delete(self, location_id: str) -> bool:
        result = await self.session.execute(delete(Location).where(Location.id == location_id))
        return result.rowcount > 0


class PostgresUserRepository:
    """Users with their roles, permissions and overrides eagerly loaded."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _with_access(self, query):
        return query.options(
            selectinload(User.roles).selectinload(Role.permissions),
            selectinload(User.accounts),
            selectinload(User.permission_overrides).selectinload(UserPermissionOverride.permission),
        )

    async def get_by_id(self, user_id: str) -> User | None:
        result = await self.session.execute(self._with_access(select(User)).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        result = await self.session.execute(select(User).where(func.lower(User.email) == email.lower()))
        return result.scalar_one_or_none()

    async def get_by_token_hash(self, token_hash: str) -> User | None:
        result = await self.session.execute(
            self._with_access(select(User)).where(User.token_hash == token_hash, User.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def get_all(self) -> list[User]:
        result = await self.session.execute(self._with_access(select(User)).order_by(User.email))
        return list(result.scalars().all())

    async def count(self) -> int:
        return (await self.session.execute(select(func.count(User.id)))).scalar_one()

    async def save(self, user: User) -> User:
        self.session.add(user)
        await self.session.flush()
        return user

    async def delete(self, user_id: str) -> bool:
        result = await self.session.execute(delete(User).where(User.id == user_id))
        return result.rowcount > 0


class PostgresRoleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, role_id: str) -> Role | None:
        result = await self.session.execute(
            select(Role).options(selectinload(Role.permissions)).where(Role.id == role_id)
        )
        return result.scalar_one_or_none()

    async def get_by_ids(self, role_ids: list[str]) -> list[Role]:
        result = await self.session.execute(
            select(Role).options(selectinload(Role.permissions)).where(Role.id.in_(role_ids))
        )
        return list(result.scalars().all())

    async def get_all(self) -> list[Role]:
        result = await self.session.execute(
            select(Role).options(selectinload(Role.permissions)).order_by(Role.name)
        )
        return list(result.scalars().all())

    async def save(self, role: Role) -> Role:
        self.session.add(role)
        await self.session.flush()
        return role


class PostgresPermissionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_all(self) -> list[Permission]:
        result = await self.session.execute(select(Permission).order_by(Permission.category, Permission.key))
        return list(result.scalars().all())

    async def get_by_ids(self, permission_ids: list[str]) -> list[Permission]:
        result = await self.session.execute(select(Permission).where(Permission.id.in_(permission_ids)))
        return list(result.scalars().all())


class PostgresPromptRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, prompt_id: str) -> Prompt | None:
        result = await self.session.execute(select(Prompt).where(Prompt.id == prompt_id))
        return result.scalar_one_or_none()

    async def get_by_name(self, name: str) -> Prompt | None:
        result = await self.session.execute(select(Prompt).where(Prompt.name == name))
        return result.scalar_one_or_none()

    async def get_all(self) -> list[Prompt]:
        result = await self.session.execute(select(Prompt).order_by(Prompt.name))
        return list(result.scalars().all())

    async def save(self, prompt: Prompt) -> Prompt:
        self.session.add(prompt)
        await self.session.flush()
        return prompt

    async def delete(self, prompt_id: str) -> bool:
        result = await self.session.execute(delete(Prompt).where(Prompt.id == prompt_id))
        return result.rowcount > 0


class PostgresSchemaTemplateRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, template_id: str) -> SchemaTemplate | None:
        result = await self.session.execute(select(SchemaTemplate).where(SchemaTemplate.id == template_id))
        return result.scalar_one_or_none()

    async def get_all(self) -> list[SchemaTemplate]:
        result = await self.session.execute(
            select(SchemaTemplate).order_by(SchemaTemplate.tier, SchemaTemplate.page_type)
        )
        return list(result.scalars().all())

    async def save(self, template: SchemaTemplate) -> SchemaTemplate:
        self.session.add(template)
        await self.session.flush()
        return template


class PostgresUsageLogRepository:
    """AI usage log queries for the cost dashboard."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _filtered(self, query, start: datetime | None, end: datetime | None, provider: str | None, action: str | None):
        if start:
            query = query.where(AIUsageLog.created_at >= start)
        if end:
            query = query.where(AIUsageLog.created_at < end)
        if provider:
            query = query.where(AIUsageLog.provider == provider)
        if action:
            query = query.where(AIUsageLog.action == action)
        return query

    async def find(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        provider: str | None = None,
        action: str | None = None,
        limit: int | None = 100,
        offset: int = 0,
    ) -> list[AIUsageLog]:
        query = self._filtered(select(AIUsageLog), start, end, provider, action)
        query = query.order_by(AIUsageLog.created_at.desc()).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def summary(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        group_by: str = "model",
    ) -> list[dict]:
        """Totals grouped by ``model``, ``provider`` or ``action``."""
        column = {
            "model": AIUsageLog.model,
            "provider": AIUsageLog.provider,
            "action": AIUsageLog.action,
        }[group_by]
        query = self._filtered(
            select(
                column.label("key"),
                func.count(AIUsageLog.id),
                func.coalesce(func.sum(AIUsageLog.input_tokens), 0),
                func.coalesce(func.sum(AIUsageLog.output_tokens), 0),
                func.coalesce(func.sum(AIUsageLog.input_cost_cents + AIUsageLog.output_cost_cents), 0),
            ),
            start, end, None, None,
        ).group_by(column).order_by(column)
        result = await self.session.execute(query)
        return [
            {
                "key": key,
                "requests": requests,
                "input_tokens": int(input_tokens),
                "output_tokens": int(output_tokens),
                "cost_cents": round(float(cost), 4),
            }
            for key, requests, input_tokens, output_tokens, cost in result.all()
        ]

    async def save_many(self, logs: list[AIUsageLog]) -> None:
        self.session.add_all(logs)
        await self.session.flush()


class PostgresLinkPlanRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, link_id: str) -> LinkPlan | None:
        result = await self.session.execute(select(LinkPlan).where(LinkPlan.id == link_id))
        return result.scalar_one_or_none()

    async def find(
        self,
        account_id: str | None = None,
        status: str | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[LinkPlan]:
        """Link plan rows, optionally limited to target months in [start, end)."""
        query = select(LinkPlan).order_by(LinkPlan.target_month, LinkPlan.created_at)
        if account_id:
            query = query.where(LinkPlan.account_id == account_id)
        if status:
            query = query.where(LinkPlan.status == status)
        if start:
            query = query.where(LinkPlan.target_month >= start)
        if end:
            query = query.where(LinkPlan.target_month < end)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def save(self, link: LinkPlan) -> LinkPlan:
        self.session.add(link)
        await self.session.flush()
        return link

    async def delete(self, link_id: str) -> bool:
        result = await self.session.execute(delete(LinkPlan).where(LinkPlan.id == link_id))
        return result.rowcount > 0
