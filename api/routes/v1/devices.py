"""
api/routes/v1/devices.py -- Device routes for the Devices API.

Routes:
  POST   /customers/{customer_id}/sites/{site_id}/devices -- create or restore by serial (admin)
  GET    /devices                                         -- all devices (admin) or the caller's own
  GET    /customers/{customer_id}/devices                 -- a customer's devices (owner or admin)
  GET    /sites/{site_id}/devices                         -- a site's devices (owner or admin)
  GET    /devices/{device_serial_number}                  -- fetch one, soft-deleted included
  PUT    /devices/{device_serial_number}                  -- overwrite fields (admin)
  DELETE /devices/{device_serial_number}                  -- soft-delete (admin)

The serial number identifies a device for its whole life: it is unique across
deleted rows too, and the single-device GET answers for deleted devices with
deleted_at set. A deleted device can only be restored under the site it was
created in.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError

from api.access import (
    CUSTOMER,
    DEVICE,
    SITE,
    conflict,
    create_or_restore,
    ensure_access,
    fetch_or_404,
    forbidden,
    not_found,
    parse_id,
    resolve_resource,
)
from api.models import DeviceRequest, DeviceResponse
from api.responses import envelope
from auth.dependencies import get_identity, get_store, require_admin
from auth.models import Identity
from inventory.models import Device
from inventory.store import InventoryStore

router = APIRouter(dependencies=[Depends(get_identity)])


def _active_device(store: InventoryStore, serial_number: str) -> Device:
    device = store.get_device_by_serial(serial_number)
    if device is None or device.deleted_at is not None or store.get_site(device.site_id) is None:
        raise not_found(DEVICE)
    return device


def _device_list(devices: list[Device]) -> list[DeviceResponse]:
    return [DeviceResponse.from_device(d) for d in devices]


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


@router.post("/customers/{customer_id}/sites/{site_id}/devices", status_code=201)
def create_device(
    customer_id: str,
    site_id: str,
    body: DeviceRequest,
    _admin: Identity = Depends(require_admin),
    store: InventoryStore = Depends(get_store),
):
    """Create a device under a site, or restore a deleted one with the same serial."""
    customer_key = parse_id(customer_id, CUSTOMER)
    site_key = parse_id(site_id, SITE)
    customer = fetch_or_404(CUSTOMER, store, customer_key)
    site = fetch_or_404(SITE, store, site_key)
    if site.customer_id != customer.id:
        raise forbidden("There is no site with the given ID for the given customer")

    existing = store.get_device_by_serial(body.device_serial_number)
    status, message, device = create_or_restore(
        DEVICE,
        "serial number",
        [existing] if existing is not None else [],
        create=lambda: store.create_device(Device(site_id=site.id, **body.model_dump())),
        restore=lambda row: store.restore_device(row.id),
        restorable=lambda row: row.site_id == site.id,
    )
    return envelope(status, message, DeviceResponse.from_device(device))


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


@router.get("/devices")
def list_devices(
    identity: Identity = Depends(get_identity),
    store: InventoryStore = Depends(get_store),
):
    """Admins see every device; users see only their own customer's."""
    if identity.is_admin:
        devices = store.list_devices()
    else:
        devices = store.list_devices(customer_id=identity.subject_id)
    return envelope(200, "Devices fetched", _device_list(devices))


@router.get("/customers/{customer_id}/devices")
def list_customer_devices(
    customer_id: str,
    identity: Identity = Depends(get_identity),
    store: InventoryStore = Depends(get_store),
):
    customer = fetch_or_404(CUSTOMER, store, parse_id(customer_id, CUSTOMER))
    ensure_access(identity, customer.id, DEVICE.forbidden)
    return envelope(200, "Devices fetched", _device_list(store.list_devices(customer_id=customer.id)))


@router.get("/sites/{site_id}/devices")
def list_site_devices(
    site_id: str,
    identity: Identity = Depends(get_identity),
    store: InventoryStore = Depends(get_store),
):
    site = fetch_or_404(SITE, store, parse_id(site_id, SITE))
    ensure_access(identity, site.customer_id, DEVICE.forbidden)
    return envelope(200, "Devices fetched", _device_list(store.list_devices(site_id=site.id)))


# ---------------------------------------------------------------------------
# Single device
# ---------------------------------------------------------------------------


@router.get("/devices/{device_serial_number}")
def get_device(
    device_serial_number: str,
    identity: Identity = Depends(get_identity),
    store: InventoryStore = Depends(get_store),
):
    device = resolve_resource(DEVICE, store, identity, device_serial_number)
    return envelope(200, "Device fetched", DeviceResponse.from_device(device))


@router.put("/devices/{device_serial_number}")
def update_device(
    device_serial_number: str,
    body: DeviceRequest,
    _admin: Identity = Depends(require_admin),
    store: InventoryStore = Depends(get_store),
):
    """Overwrite every mutable field. site_id never changes.

    Changing the serial onto one held by any other row, deleted or not, is a
    conflict.
    """
    device = _active_device(store, device_serial_number)
    fields = body.model_dump()
    new_serial = fields["device_serial_number"]
    if new_serial != device.device_serial_number and store.get_device_by_serial(new_serial) is not None:
        raise conflict(DEVICE, "serial number")
    try:
        store.update_device(device.id, **fields)
    except IntegrityError as exc:
        # Another request took the serial between the check and the write.
        raise conflict(DEVICE, "serial number") from exc
    return envelope(200, "Device updated", DeviceResponse.from_device(store.get_device_by_serial(new_serial)))


@router.delete("/devices/{device_serial_number}")
def delete_device(
    device_serial_number: str,
    _admin: Identity = Depends(require_admin),
    store: InventoryStore = Depends(get_store),
):
    device = _active_device(store, device_serial_number)
    store.soft_delete_device(device.id)
    return envelope(200, "Device deleted")
