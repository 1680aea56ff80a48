"""
api/access.py -- Shared "validate, fetch, check owner, mutate" steps for resource routes.

Every customer/site/device handler walks the same path:

  1. parse the identifier from the path               -> 400 on a bad UUID
  2. load the row                                     -> 404 when missing
  3. compare the row's owning customer to the caller  -> 403 for non-admins
  4. create, restore, update or delete

ResourceKind captures what differs between resources (labels, loader, how to
find the owning customer) so the handlers in api/routes/v1/ stay a few lines
each and all of them raise identical error envelopes.

create_or_restore() implements the natural-key lifecycle: a name or serial
that belongs to an active row is a conflict; one that belongs to a
soft-deleted row brings that row back with its original id; otherwise a new
row is inserted.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Optional, TypeVar

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError

from api.models import ErrorDetail
from auth.models import Identity
from inventory.store import InventoryStore

T = TypeVar("T")


@dataclass(frozen=True)
class ResourceKind:
    """Describes one resource type for the generic access helpers.

    label:         "Customer", "Site", "Device" -- used in every message.
    loader:        (store, key) -> row or None.
    owner_of:      row -> owning customer id.
    key_label:     how the key is described in 404s ("ID", "serial number").
    uuid_key:      True when the path key must parse as a UUID.
    key_is_owner:  True when the key itself is the owning customer id, so
                   ownership can be decided before touching the database.
    global_key:    True when the natural key is unique across deleted rows
                   too, so a deleted row that cannot be restored still blocks
                   a fresh insert.
    forbidden:     default 403 error text.
    """

    label: str
    loader: Callable[[InventoryStore, str], Optional[Any]]
    owner_of: Callable[[Any], str]
    key_label: str = "ID"
    uuid_key: bool = True
    key_is_owner: bool = False
    global_key: bool = False
    forbidden: str = "Unauthorized access"


CUSTOMER = ResourceKind(
    label="Customer",
    loader=lambda store, key: store.get_customer(key),
    owner_of=lambda customer: customer.id,
    key_is_owner=True,
)

SITE = ResourceKind(
    label="Site",
    loader=lambda store, key: store.get_site(key),
    owner_of=lambda site: site.customer_id,
    forbidden="You are not authorized to access this site",
)

# Serial lookup ignores soft-delete; callers that need an active device check
# deleted_at themselves.
DEVICE = ResourceKind(
    label="Device",
    loader=lambda store, key: store.get_device_by_serial(key),
    owner_of=lambda device: device.customer_id,
    key_label="serial number",
    uuid_key=False,
    global_key=True,
    forbidden="You are not authorized to access this customer's devices",
)


# ---------------------------------------------------------------------------
# Error builders
# ---------------------------------------------------------------------------


def bad_request(message: str, error: str) -> HTTPException:
    return HTTPException(status_code=400, detail=ErrorDetail(message=message, error=error).model_dump())


def not_found(kind: ResourceKind) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail=ErrorDetail(
            message=f"{kind.label} not found",
            error=f"No {kind.label.lower()} found with the given {kind.key_label}",
        ).model_dump(),
    )


def forbidden(error: str) -> HTTPException:
    return HTTPException(status_code=403, detail=ErrorDetail(message="Forbidden", error=error).model_dump())


def conflict(kind: ResourceKind, natural_key: str) -> HTTPException:
    return bad_request(
        f"{kind.label} already exists",
        f"A {kind.label.lower()} with this {natural_key} already exists",
    )


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def parse_id(raw: str, kind: ResourceKind) -> str:
    """Return the canonical lowercase UUID string or raise 400."""
    try:
        return str(uuid.UUID(raw))
    except (ValueError, AttributeError, TypeError) as exc:
        raise bad_request(f"Invalid {kind.label.lower()} ID", "Invalid UUID format") from exc


def fetch_or_404(kind: ResourceKind, store: InventoryStore, key: str) -> Any:
    row = kind.loader(store, key)
    if row is None:
        raise not_found(kind)
    return row


def ensure_access(identity: Identity, owner_id: str, error: str) -> None:
    """Raise 403 unless the caller is an admin or owns owner_id."""
    if not identity.owns(owner_id):
        raise forbidden(error)


def resolve_resource(
    kind: ResourceKind,
    store: InventoryStore,
    identity: Identity,
    raw_key: str,
    forbidden_error: Optional[str] = None,
) -> Any:
    """Validate the key, load the row and check ownership, in that order.

    When the key is itself the owning customer id, ownership is checked
    before the lookup so a non-admin cannot probe which customer ids exist.
    """
    error = forbidden_error or kind.forbidden
    key = parse_id(raw_key, kind) if kind.uuid_key else raw_key
    if kind.key_is_owner:
        ensure_access(identity, key, error)
    row = fetch_or_404(kind, store, key)
    ensure_access(identity, kind.owner_of(row), error)
    return row


def create_or_restore(
    kind: ResourceKind,
    natural_key: str,
    existing: Iterable[T],
    create: Callable[[], T],
    restore: Callable[[T], T],
    restorable: Callable[[T], bool] = lambda row: True,
) -> tuple[int, str, T]:
    """Apply the natural-key lifecycle and return (status, message, row).

    existing holds every row sharing the natural key, soft-deleted included.
    """
    rows = list(existing)
    if any(row.deleted_at is None for row in rows):
        raise conflict(kind, natural_key)
    for row in rows:
        if restorable(row):
            return 200, f"{kind.label} restored", restore(row)
    if kind.global_key and rows:
        raise conflict(kind, natural_key)
    try:
        created = create()
    except IntegrityError as exc:
        # Lost a race with a concurrent insert of the same key.
        raise conflict(kind, natural_key) from exc
    return 201, f"{kind.label} created", created
