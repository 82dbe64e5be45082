"""Link plan routes: monthly backlink placements per account."""

from datetime import date, datetime
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from pulse.api.auth import AuthContext
from pulse.api.deps import DbSession, require_permission
from pulse.models import LinkPlan
from pulse.repositories import PostgresAccountRepository, PostgresLinkPlanRepository

router = APIRouter()

LinkStatus = Literal["planned", "ordered", "in_progress", "live", "rejected"]

LinksReader = Annotated[AuthContext, Depends(require_permission("links.read"))]
LinksWriter = Annotated[AuthContext, Depends(require_permission("links.write"))]


def quarter_bounds(year: int, quarter: int) -> tuple[date, date]:
    """First day of the quarter and first day of the next one."""
    if quarter not in (1, 2, 3, 4):
        raise ValueError(f"Quarter must be 1-4, got {quarter}")
    start = date(year, 3 * (quarter - 1) + 1, 1)
    end = date(year + 1, 1, 1) if quarter == 4 else date(year, 3 * quarter + 1, 1)
    return start, end


def month_start(value: date) -> date:
    return value.replace(day=1)


class LinkPlanRequest(BaseModel):
    account_id: str | None = None
    target_month: date | None = None
    link_type: str | None = None
    publisher: str | None = None
    publisher_da: int | None = Field(default=None, ge=0, le=100)
    destination_url: str | None = None
    destination_page_id: str | None = None
    anchor_text: str | None = None
    live_url: str | None = None
    status: LinkStatus | None = None
    notes: str | None = None


class LinkPlanResponse(BaseModel):
    id: str
    account_id: str
    target_month: date
    link_type: str | None = None
    publisher: str | None = None
    publisher_da: int | None = None
    destination_url: str | None = None
    destination_page_id: str | None = None
    anchor_text: str | None = None
    live_url: str | None = None
    status: str
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


async def get_link_or_404(db: DbSession, link_id: str, auth: AuthContext) -> LinkPlan:
    link = await PostgresLinkPlanRepository(db).get_by_id(link_id)
    if not link:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Link plan not found")
    auth.require_account(link.account_id)
    return link


@router.get("", response_model=list[LinkPlanResponse])
async def list_link_plans(
    db: DbSession,
    auth: LinksReader,
    account_id: str | None = None,
    link_status: Annotated[LinkStatus | None, Query(alias="status")] = None,
    year: int | None = None,
    quarter: int | None = None,
) -> list[LinkPlanResponse]:
    """Link plans, optionally limited to one account, status or quarter."""
    if account_id:
        auth.require_account(account_id)

    start = end = None
    if quarter is not None:
        if year is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="quarter requires year")
        try:
            start, end = quarter_bounds(year, quarter)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    elif year is not None:
        start, end = date(year, 1, 1), date(year + 1, 1, 1)

    links = await PostgresLinkPlanRepository(db).find(
        account_id=account_id, status=link_status, start=start, end=end
    )
    return [LinkPlanResponse.model_validate(link) for link in links if auth.can_access_account(link.account_id)]


@router.post("", response_model=LinkPlanResponse, status_code=status.HTTP_201_CREATED)
async def create_link_plan(request: LinkPlanRequest, db: DbSession, auth: LinksWriter) -> LinkPlanResponse:
    if not request.account_id or not request.target_month:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="account_id and target_month are required",
        )
    auth.require_account(request.account_id)
    if not await PostgresAccountRepository(db).get_by_id(request.account_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Account not found")

    link = LinkPlan(**request.model_dump(exclude_unset=True, exclude={"target_month"}))
    link.target_month = month_start(request.target_month)
    link.status = request.status or "planned"
    await PostgresLinkPlanRepository(db).save(link)
    return LinkPlanResponse.model_validate(link)


@router.get("/{link_id}", response_model=LinkPlanResponse)
async def get_link_plan(link_id: str, db: DbSession, auth: LinksReader) -> LinkPlanResponse:
    return LinkPlanResponse.model_validate(await get_link_or_404(db, link_id, auth))


@router.patch("/{link_id}", response_model=LinkPlanResponse)
async def update_link_plan(
    link_id: str,
    request: LinkPlanRequest,
    db: DbSession,
    auth: LinksWriter,
) -> LinkPlanResponse:
    link = await get_link_or_404(db, link_id, auth)
    updates = request.model_dump(exclude_unset=True)
    if updates.get("account_id") and updates["account_id"] != link.account_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Link plans cannot move between accounts")
    updates.pop("account_id", None)

    for name, value in updates.items():
        if name in ("target_month", "status") and value is None:
            continue
        if name == "target_month":
            value = month_start(value)
        setattr(link, name, value)

    await PostgresLinkPlanRepository(db).save(link)
    return LinkPlanResponse.model_validate(link)


@router.delete("/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_link_plan(link_id: str, db: DbSession, auth: LinksWriter) -> None:
    await get_link_or_404(db, link_id, auth)
    await PostgresLinkPlanRepository(db).delete(link_id)
