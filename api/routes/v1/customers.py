"""
api/routes/v1/customers.py -- Customer routes for the Devices API.

Routes:
  POST   /customers                  -- create or restore by name (admin)
  GET    /customers                  -- list active customers (admin)
  GET    /customers/{customer_id}    -- fetch one (owner or admin)
  PUT    /customers/{customer_id}    -- rename (admin)
  DELETE /customers/{customer_id}    -- soft-delete (admin)

Every route requires a session; the router-level dependency binds it.
"""

from fastapi import APIRouter, Depends

from api.access import CUSTOMER, conflict, create_or_restore, fetch_or_404, not_found, parse_id, resolve_resource
from api.models import CustomerRequest, CustomerResponse
from api.responses import envelope
from auth.dependencies import get_identity, get_store, require_admin
from auth.models import Identity
from inventory.store import InventoryStore

router = APIRouter(dependencies=[Depends(get_identity)])


@router.post("/customers", status_code=201)
def create_customer(
    body: CustomerRequest,
    _admin: Identity = Depends(require_admin),
    store: InventoryStore = Depends(get_store),
):
    """Create a customer, or bring back a soft-deleted one with the same name."""
    status, message, customer = create_or_restore(
        CUSTOMER,
        "name",
        store.find_customers_by_name(body.name),
        create=lambda: store.create_customer(body.name),
        restore=lambda row: store.restore_customer(row.id),
    )
    return envelope(status, message, CustomerResponse.from_customer(customer))


@router.get("/customers")
def list_customers(
    _admin: Identity = Depends(require_admin),
    store: InventoryStore = Depends(get_store),
):
    customers = [CustomerResponse.from_customer(c) for c in store.list_customers()]
    return envelope(200, "Customers fetched", customers)


@router.get("/customers/{customer_id}")
def get_customer(
    customer_id: str,
    identity: Identity = Depends(get_identity),
    store: InventoryStore = Depends(get_store),
):
    customer = resolve_resource(CUSTOMER, store, identity, customer_id)
    return envelope(200, "Customer fetched", CustomerResponse.from_customer(customer))


@router.put("/customers/{customer_id}")
def update_customer(
    customer_id: str,
    body: CustomerRequest,
    _admin: Identity = Depends(require_admin),
    store: InventoryStore = Depends(get_store),
):
    """Rename a customer. The new name may not belong to another active customer."""
    key = parse_id(customer_id, CUSTOMER)
    customer = fetch_or_404(CUSTOMER, store, key)
    if any(c.id != customer.id and c.deleted_at is None for c in store.find_customers_by_name(body.name)):
        raise conflict(CUSTOMER, "name")
    store.rename_customer(customer.id, body.name)
    return envelope(200, "Customer updated", CustomerResponse.from_customer(store.get_customer(customer.id)))


@router.delete("/customers/{customer_id}")
def delete_customer(
    customer_id: str,
    _admin: Identity = Depends(require_admin),
    store: InventoryStore = Depends(get_store),
):
    key = parse_id(customer_id, CUSTOMER)
    if not store.soft_delete_customer(key):
        raise not_found(CUSTOMER)
    return envelope(200, "Customer deleted")
