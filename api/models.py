"""
API request and response models for the Devices API REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in inventory/models.py,
which own the internal domain representation. Route handlers map between the
two via the from_* factory methods colocated with each response model.

Every response is wrapped in the envelope built by api/responses.py; the
models here describe the "data" member only.
"""

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from inventory.models import AuthToken, Customer, Device, Site

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CustomerRequest(BaseModel):
    """Request body for POST /customers and PUT /customers/{id}."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)


class SiteRequest(BaseModel):
    """Request body for POST /customers/{id}/sites and PUT /sites/{id}."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)


class DeviceRequest(BaseModel):
    """Request body for device create and update.

    Update overwrites every field, so omitted optional fields are cleared.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    device_serial_number: str = Field(min_length=1, max_length=255)
    gateway: str = Field(default="", max_length=255)
    controller: str = Field(default="", max_length=255)
    controller_serial_number: str = Field(default="", max_length=255)
    device_type: str = Field(default="", max_length=255)
    device_name: str = Field(default="", max_length=255)
    building_url: str = Field(default="", max_length=2048)
    auth_token: str = Field(default="", max_length=4096)


class AuthenticateRequest(BaseModel):
    """Request body for POST /authenticate."""

    model_config = ConfigDict(str_strip_whitespace=True)

    token: str = Field(min_length=1)


class GenerateTokenRequest(BaseModel):
    """Request body for POST /admin/generate-token.

    The action allow-list is configuration, so it is checked by the route
    against the TokenService rather than by a static enum here.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    customer_id: str = Field(min_length=1)
    action: str = Field(min_length=1, max_length=50)
    with_expiry: bool = False

    @field_validator("customer_id")
    @classmethod
    def normalize_customer_id(cls, value: str) -> str:
        """Parse and canonicalize the UUID so lookups match stored ids."""
        try:
            return str(uuid.UUID(value))
        except ValueError as exc:
            raise ValueError("Invalid Customer ID") from exc


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class CustomerResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str

    @classmethod
    def from_customer(cls, customer: Customer) -> "CustomerResponse":
        return cls(id=customer.id, name=customer.name)


class SiteResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    customer_id: str
    customer_name: str

    @classmethod
    def from_site(cls, site: Site) -> "SiteResponse":
        return cls(id=site.id, name=site.name, customer_id=site.customer_id, customer_name=site.customer_name)


class DeviceResponse(BaseModel):
    """Device with its ownership chain flattened in.

    deleted_at is reported because GET /devices/{serial} also returns
    soft-deleted devices.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    customer_id: str
    customer_name: str
    site_id: str
    site_name: str
    gateway: str
    controller: str
    controller_serial_number: str
    device_type: str
    device_name: str
    device_serial_number: str
    building_url: str
    auth_token: str
    deleted_at: Optional[str] = None

    @classmethod
    def from_device(cls, device: Device) -> "DeviceResponse":
        return cls(
            id=device.id,
            customer_id=device.customer_id,
            customer_name=device.customer_name,
            site_id=device.site_id,
            site_name=device.site_name,
            gateway=device.gateway,
            controller=device.controller,
            controller_serial_number=device.controller_serial_number,
            device_type=device.device_type,
            device_name=device.device_name,
            device_serial_number=device.device_serial_number,
            building_url=device.building_url,
            auth_token=device.auth_token,
            deleted_at=device.deleted_at,
        )


class AuthTokenResponse(BaseModel):
    """A persisted user token with its customer preloaded."""

    model_config = ConfigDict(frozen=True)

    id: str
    customer_id: str
    customer: CustomerResponse
    action: str
    token: str
    created_at: str
    updated_at: str

    @classmethod
    def from_auth_token(cls, auth_token: AuthToken) -> "AuthTokenResponse":
        return cls(
            id=auth_token.id,
            customer_id=auth_token.customer_id,
            customer=CustomerResponse(id=auth_token.customer_id, name=auth_token.customer_name),
            action=auth_token.action,
            token=auth_token.token,
            created_at=auth_token.created_at,
            updated_at=auth_token.updated_at,
        )


class ErrorDetail(BaseModel):
    """Detail payload carried by HTTPException; rendered into the envelope."""

    model_config = ConfigDict(frozen=True)

    message: str
    error: Optional[str] = None
