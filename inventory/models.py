"""
inventory/models.py -- Domain dataclasses for the device inventory.

These are pure data containers with zero logic. Soft-delete and restore rules
live in inventory/store.py; ownership checks live in api/access.py.

Every entity carries a deleted_at marker. None means the row is active; an
ISO 8601 timestamp means it was soft-deleted and may be restored.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Customer:
    """Top of the ownership chain. A user token's subject is a customer id."""

    name: str
    id: str = ""  # UUID, set by store on insert
    created_at: str = ""
    updated_at: str = ""
    deleted_at: Optional[str] = None


@dataclass
class Site:
    """A physical location belonging to exactly one customer.

    customer_name is filled in by the store's join so responses do not need a
    second lookup per row.
    """

    name: str
    customer_id: str
    id: str = ""
    customer_name: str = ""
    created_at: str = ""
    updated_at: str = ""
    deleted_at: Optional[str] = None


@dataclass
class Device:
    """A controller installed at a site, keyed by its serial number.

    device_serial_number is unique across all rows, soft-deleted or not, so
    a deleted device can always be found again by serial.
    """

    site_id: str
    device_serial_number: str
    gateway: str = ""
    controller: str = ""
    controller_serial_number: str = ""
    device_type: str = ""
    device_name: str = ""
    building_url: str = ""
    auth_token: str = ""
    id: str = ""
    # Denormalized from the site/customer join
    site_name: str = ""
    customer_id: str = ""
    customer_name: str = ""
    created_at: str = ""
    updated_at: str = ""
    deleted_at: Optional[str] = None


@dataclass
class DeviceStatus:
    device_id: str
    status: str
    detail: Optional[str] = None
    id: str = ""
    created_at: str = ""
    updated_at: str = ""
    deleted_at: Optional[str] = None


@dataclass
class AuthToken:
    """Persisted record of a non-admin token issued by /admin/generate-token.

    The signed JWT alone is not enough for a user session: the row must also
    exist and be active. Revoking the row ends every session using the token.
    """

    customer_id: str
    action: str
    token: str
    id: str = ""
    customer_name: str = ""
    created_at: str = ""
    updated_at: str = ""
    deleted_at: Optional[str] = None
