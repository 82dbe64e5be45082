"""Account (client practice) and location routes."""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from pulse.api.auth import AuthContext
from pulse.api.deps import DbSession, require_permission
from pulse.models import Account, Location
from pulse.repositories import PostgresAccountRepository, PostgresLocationRepository

logger = logging.getLogger(__name__)

router = APIRouter()

AccountsReader = Annotated[AuthContext, Depends(require_permission("accounts.read"))]
AccountsWriter = Annotated[AuthContext, Depends(require_permission("accounts.write"))]


class LocationRequest(BaseModel):
    location_name: str | None = None
    street: str | None = None
    city: str | None = None
    state: str | None = None
    postal: str | None = None
    country: str | None = None
    phone_number: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    hours: list[dict] | None = None
    areas_served: list[str] | None = None
    url: str | None = None
    gbp_url: str | None = None
    business_description: str | None = None
    is_primary: bool | None = None
    page_id: str | None = None


class LocationResponse(BaseModel):
    id: str
    account_id: str
    location_name: str | None = None
    street: str | None = None
    city: str | None = None
    state: str | None = None
    postal: str | None = None
    country: str | None = None
    phone_number: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    hours: list[dict] | None = None
    areas_served: list[str] | None = None
    url: str | None = None
    gbp_url: str | None = None
    business_description: str | None = None
    is_primary: bool
    page_id: str | None = None

    class Config:
        from_attributes = True


class AccountRequest(BaseModel):
    account_name: str | None = Field(default=None, min_length=1, max_length=255)
    website_url: str | None = None
    provider_name: str | None = None
    legal_name: str | None = None
    business_type: str | None = None
    default_phone: str | None = None
    default_email: str | None = None
    logo_url: str | None = None


class AccountResponse(BaseModel):
    id: str
    account_name: str
    website_url: str | None = None
    provider_name: str | None = None
    legal_name: str | None = None
    business_type: str | None = None
    default_phone: str | None = None
    default_email: str | None = None
    logo_url: str | None = None
    created_at: datetime
    locations: list[LocationResponse] = []

    class Config:
        from_attributes = True


async def get_account_or_404(db: DbSession, account_id: str, auth: AuthContext) -> Account:
    auth.require_account(account_id)
    account = await PostgresAccountRepository(db).get_by_id(account_id)
    if not account:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    return account


async def get_location_or_404(db: DbSession, account_id: str, location_id: str) -> Location:
    location = await PostgresLocationRepository(db).get_by_id(location_id)
    if not location or location.account_id != account_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")
    return location


@router.get("", response_model=list[AccountResponse])
async def list_accounts(db: DbSession, auth: AccountsReader) -> list[AccountResponse]:
    account_ids = None if auth.is_admin else list(auth.account_ids)
    accounts = await PostgresAccountRepository(db).get_all(account_ids=account_ids)
    return [AccountResponse.model_validate(a) for a in accounts]


@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def create_account(request: AccountRequest, db: DbSession, auth: AccountsWriter) -> AccountResponse:
    if not auth.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins can create accounts")
    if not request.account_name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="account_name is required")

    account = Account(**request.model_dump(exclude_unset=True))
    account.locations = []
    await PostgresAccountRepository(db).save(account)
    logger.info(f"Created account {account.account_name}")
    return AccountResponse.model_validate(account)


@router.get("/{account_id}", response_model=AccountResponse)
async def get_account(account_id: str, db: DbSession, auth: AccountsReader) -> AccountResponse:
    return AccountResponse.model_validate(await get_account_or_404(db, account_id, auth))


@router.patch("/{account_id}", response_model=AccountResponse)
async def update_account(
    account_id: str,
    request: AccountRequest,
    db: DbSession,
    auth: AccountsWriter,
) -> AccountResponse:
    account = await get_account_or_404(db, account_id, auth)
    for name, value in request.model_dump(exclude_unset=True).items():
        if name == "account_name" and not value:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="account_name cannot be empty")
        setattr(account, name, value)
    await PostgresAccountRepository(db).save(account)
    return AccountResponse.model_validate(account)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(account_id: str, db: DbSession, auth: AccountsWriter) -> None:
    if not auth.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins can delete accounts")
    await get_account_or_404(db, account_id, auth)
    await PostgresAccountRepository(db).delete(account_id)


@router.get("/{account_id}/locations", response_model=list[LocationResponse])
async def list_locations(account_id: str, db: DbSession, auth: AccountsReader) -> list[LocationResponse]:
    await get_account_or_404(db, account_id, auth)
    locations = await PostgresLocationRepository(db).get_by_account(account_id)
    return [LocationResponse.model_validate(loc) for loc in locations]


@router.post(
    "/{account_id}/locations",
    response_model=LocationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_location(
    account_id: str,
    request: LocationRequest,
    db: DbSession,
    auth: AccountsWriter,
) -> LocationResponse:
    """Add a location; the account's first location becomes primary."""
    location_repo = PostgresLocationRepository(db)
    account = await get_account_or_404(db, account_id, auth)

    location = Location(account_id=account_id, **request.model_dump(exclude_unset=True))
    if not account.locations:
        location.is_primary = True
    location.is_primary = bool(location.is_primary)
    await location_repo.save(location)

    if location.is_primary:
        await location_repo.clear_primary(account_id, keep_id=location.id)
    return LocationResponse.model_validate(location)


@router.patch("/{account_id}/locations/{location_id}", response_model=LocationResponse)
async def update_location(
    account_id: str,
    location_id: str,
    request: LocationRequest,
    db: DbSession,
    auth: AccountsWriter,
) -> LocationResponse:
    location_repo = PostgresLocationRepository(db)
    await get_account_or_404(db, account_id, auth)
    location = await get_location_or_404(db, account_id, location_id)

    for name, value in request.model_dump(exclude_unset=True).items():
        setattr(location, name, value)
    location.is_primary = bool(location.is_primary)
    await location_repo.save(location)

    if location.is_primary:
        await location_repo.clear_primary(account_id, keep_id=location.id)
    return LocationResponse.model_validate(location)


@router.delete("/{account_id}/locations/{location_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_location(account_id: str, location_id: str, db: DbSession, auth: AccountsWriter) -> None:
    await get_account_or_404(db, account_id, auth)
    await get_location_or_404(db, account_id, location_id)
    await PostgresLocationRepository(db).delete(location_id)
