"""Pydantic schemas for customer API payloads.

Models accept and emit camelCase names but report validation locations with
their attribute names; the error layer translates those back for clients.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
POSTAL_CODE_PATTERN = r"^[0-9A-Za-z][0-9A-Za-z -]{1,8}[0-9A-Za-z]$"


class ApiModel(BaseModel):
    """Base for request and response payloads."""

    model_config = ConfigDict(populate_by_name=True, loc_by_alias=False)


class AddressPayload(ApiModel):
    """Postal address of a customer."""

    street: str = Field(alias="streetName", min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    postal_code: str = Field(alias="postalCode", pattern=POSTAL_CODE_PATTERN)


class CustomerCreate(ApiModel):
    """Payload to register a customer."""

    first_name: str = Field(alias="firstName", min_length=1, max_length=100)
    last_name: str = Field(alias="lastName", min_length=1, max_length=100)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=320)
    age: int = Field(gt=0, lt=150)
    address: AddressPayload = Field(alias="postalAddress")


class Customer(ApiModel):
    """Customer response payload."""

    id: UUID
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    email: str
    age: int
    address: AddressPayload = Field(alias="postalAddress")
    created_at: datetime = Field(alias="createdAt")


class CustomerListResponse(ApiModel):
    """List response envelope for customers."""

    items: list[Customer]
    limit: int
    offset: int


class CustomerImportResult(ApiModel):
    """Outcome of a bulk CSV import."""

    imported: int
    ids: list[UUID]
