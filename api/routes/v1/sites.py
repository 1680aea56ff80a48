"""
api/routes/v1/sites.py -- Site routes for the Devices API.

Routes:
  POST   /customers/{customer_id}/sites  -- create or restore by name (admin)
  GET    /customers/{customer_id}/sites  -- list a customer's sites (owner or admin)
  GET    /sites                          -- list every active site (admin)
  GET    /sites/{site_id}                -- fetch one (owner or admin)
  PUT    /sites/{site_id}                -- rename (admin)
  DELETE /sites/{site_id}                -- soft-delete (admin)

Site names are unique among active sites. A soft-deleted site is only brought
back by a create under the customer it belonged to; a deleted site of some
other customer does not stop a fresh site from taking the name.
"""

from fastapi import APIRouter, Depends

from api.access import (
    CUSTOMER,
    SITE,
    conflict,
    create_or_restore,
    ensure_access,
    fetch_or_404,
    not_found,
    parse_id,
    resolve_resource,
)
from api.models import SiteRequest, SiteResponse
from api.responses import envelope
from auth.dependencies import get_identity, get_store, require_admin
from auth.models import Identity
from inventory.store import InventoryStore

router = APIRouter(dependencies=[Depends(get_identity)])


@router.post("/customers/{customer_id}/sites", status_code=201)
def create_site(
    customer_id: str,
    body: SiteRequest,
    _admin: Identity = Depends(require_admin),
    store: InventoryStore = Depends(get_store),
):
    customer = fetch_or_404(CUSTOMER, store, parse_id(customer_id, CUSTOMER))
    status, message, site = create_or_restore(
        SITE,
        "name",
        store.find_sites_by_name(body.name),
        create=lambda: store.create_site(customer.id, body.name),
        restore=lambda row: store.restore_site(row.id),
        restorable=lambda row: row.customer_id == customer.id,
    )
    return envelope(status, message, SiteResponse.from_site(site))


@router.get("/customers/{customer_id}/sites")
def list_customer_sites(
    customer_id: str,
    identity: Identity = Depends(get_identity),
    store: InventoryStore = Depends(get_store),
):
    customer = fetch_or_404(CUSTOMER, store, parse_id(customer_id, CUSTOMER))
    ensure_access(identity, customer.id, "You are not authorized to access this customer's sites")
    sites = [SiteResponse.from_site(s) for s in store.list_sites(customer_id=customer.id)]
    return envelope(200, "Sites fetched", sites)


@router.get("/sites")
def list_sites(
    _admin: Identity = Depends(require_admin),
    store: InventoryStore = Depends(get_store),
):
    sites = [SiteResponse.from_site(s) for s in store.list_sites()]
    return envelope(200, "Sites fetched", sites)


@router.get("/sites/{site_id}")
def get_site(
    site_id: str,
    identity: Identity = Depends(get_identity),
    store: InventoryStore = Depends(get_store),
):
    site = resolve_resource(SITE, store, identity, site_id)
    return envelope(200, "Site fetched", SiteResponse.from_site(site))


@router.put("/sites/{site_id}")
def update_site(
    site_id: str,
    body: SiteRequest,
    _admin: Identity = Depends(require_admin),
    store: InventoryStore = Depends(get_store),
):
    """Rename a site. customer_id never changes."""
    site = fetch_or_404(SITE, store, parse_id(site_id, SITE))
    if any(s.id != site.id and s.deleted_at is None for s in store.find_sites_by_name(body.name)):
        raise conflict(SITE, "name")
    store.rename_site(site.id, body.name)
    return envelope(200, "Site updated", SiteResponse.from_site(store.get_site(site.id)))


@router.delete("/sites/{site_id}")
def delete_site(
    site_id: str,
    _admin: Identity = Depends(require_admin),
    store: InventoryStore = Depends(get_store),
):
    if not store.soft_delete_site(parse_id(site_id, SITE)):
        raise not_found(SITE)
    return envelope(200, "Site deleted")
