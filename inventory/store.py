"""
inventory/store.py -- SQLAlchemy-backed persistence layer for the device inventory.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in inventory/models.py
remain the authoritative domain representation. Swapping SQLite for PostgreSQL
is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. InventoryStore is the repository (one clean
interface per entity). The _row_to_* functions are the mappers. Route handlers
never touch SQL directly.

Soft delete:
  Every table carries a deleted_at column. Default reads filter on
  deleted_at IS NULL. Natural-key lookups (find_*_by_name,
  get_device_by_serial) see soft-deleted rows too, so create handlers can
  restore a row instead of inserting a duplicate. Restoring clears deleted_at
  and refreshes created_at/updated_at; the id never changes.

  Deleting a customer does not cascade. Its sites, devices and auth tokens
  keep their own deleted_at but drop out of every active read until the
  customer is restored; a deleted site hides its devices the same way.
  get_device_by_serial is the exception and reports the row regardless.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = InventoryStore()                               # SQLite default
    store = InventoryStore("postgresql://user:pw@host/db") # PostgreSQL
    customer = store.create_customer("Acme Co")
    site = store.create_site(customer.id, "Plant 1")
    store.soft_delete_site(site.id)
    store.close()
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    ForeignKey,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    inspect,
    select,
)
from sqlalchemy.engine import Engine

from core.config import get_settings
from inventory.models import AuthToken, Customer, Device, DeviceStatus, Site

logger = logging.getLogger("devicesapi.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()


def _timestamps() -> list[Column]:
    return [
        Column("created_at", String(32), nullable=False),
        Column("updated_at", String(32), nullable=False),
        Column("deleted_at", String(32), index=True),  # NULL = active
    ]


_customers = Table(
    "customers",
    metadata,
    Column("id", String(36), primary_key=True),
    # Soft-unique: enforced in code so deleted rows do not block reuse
    Column("name", String(255), nullable=False, index=True),
    *_timestamps(),
)

_sites = Table(
    "sites",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False, index=True),
    Column("customer_id", String(36), ForeignKey("customers.id"), nullable=False, index=True),
    *_timestamps(),
)

_devices = Table(
    "devices",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("site_id", String(36), ForeignKey("sites.id"), nullable=False, index=True),
    Column("gateway", String(255), nullable=False, server_default=""),
    Column("controller", String(255), nullable=False, server_default=""),
    Column("controller_serial_number", String(255), nullable=False, server_default=""),
    Column("device_type", String(255), nullable=False, server_default=""),
    Column("device_name", String(255), nullable=False, server_default=""),
    Column("device_serial_number", String(255), nullable=False, unique=True),
    Column("building_url", Text, nullable=False, server_default=""),
    Column("auth_token", Text, nullable=False, server_default=""),
    *_timestamps(),
)

_device_statuses = Table(
    "device_statuses",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("device_id", String(36), ForeignKey("devices.id"), nullable=False, index=True),
    Column("status", String(50), nullable=False),
    Column("detail", Text),
    *_timestamps(),
)

_auth_tokens = Table(
    "auth_tokens",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("customer_id", String(36), ForeignKey("customers.id"), nullable=False, index=True),
    Column("action", String(50), nullable=False),
    Column("token", String(2048), nullable=False, unique=True),
    *_timestamps(),
)

# Order in which ensure_schema() reports tables.
TABLE_NAMES: tuple[str, ...] = ("auth_tokens", "customers", "sites", "devices", "device_statuses")


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. SQLite ignores REFERENCES clauses unless
    foreign_keys is switched on.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


def _site_select():
    return select(_sites, _customers.c.name.label("customer_name")).join(
        _customers, _sites.c.customer_id == _customers.c.id
    )


def _device_select():
    return select(
        _devices,
        _sites.c.name.label("site_name"),
        _sites.c.customer_id.label("customer_id"),
        _customers.c.name.label("customer_name"),
    ).select_from(
        _devices.join(_sites, _devices.c.site_id == _sites.c.id).join(
            _customers, _sites.c.customer_id == _customers.c.id
        )
    )


def _auth_token_select():
    # A deleted customer takes its tokens out of service with it.
    return (
        select(_auth_tokens, _customers.c.name.label("customer_name"))
        .join(_customers, _auth_tokens.c.customer_id == _customers.c.id)
        .where(_customers.c.deleted_at.is_(None))
    )


# Device columns a caller may overwrite through update_device().
_DEVICE_MUTABLE_FIELDS: frozenset[str] = frozenset(
    {
        "gateway",
        "controller",
        "controller_serial_number",
        "device_type",
        "device_name",
        "device_serial_number",
        "building_url",
        "auth_token",
    }
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class InventoryStore:
    """Repository for Customer, Site, Device, DeviceStatus and AuthToken rows."""

    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        self.created_tables, self.existing_tables = self.ensure_schema()

    def ensure_schema(self) -> tuple[list[str], list[str]]:
        """Create missing tables. Returns (created, already_present) table names.

        metadata.create_all() is idempotent; the inspector call beforehand is
        only there so startup can report which tables are new.
        """
        present = set(inspect(self.engine).get_table_names())
        metadata.create_all(self.engine)
        created = [name for name in TABLE_NAMES if name not in present]
        existing = [name for name in TABLE_NAMES if name in present]
        return created, existing

    # ------------------------------------------------------------------
    # Generic soft-delete helpers
    # ------------------------------------------------------------------

    def _soft_delete(self, table: Table, row_id: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(
                table.update()
                .where((table.c.id == row_id) & (table.c.deleted_at.is_(None)))
                .values(deleted_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def _restore(self, table: Table, row_id: str) -> bool:
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                table.update()
                .where((table.c.id == row_id) & (table.c.deleted_at.is_not(None)))
                .values(deleted_at=None, created_at=now, updated_at=now)
            )
            conn.commit()
        if result.rowcount:
            logger.debug("Restored %s row %s", table.name, row_id)
        return result.rowcount > 0

    def _insert(self, table: Table, **values) -> str:
        now = _now_iso()
        row_id = _new_id()
        with self.engine.connect() as conn:
            conn.execute(table.insert().values(id=row_id, created_at=now, updated_at=now, **values))
            conn.commit()
        return row_id

    def _update(self, table: Table, row_id: str, **values) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(
                table.update()
                .where((table.c.id == row_id) & (table.c.deleted_at.is_(None)))
                .values(updated_at=_now_iso(), **values)
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    def create_customer(self, name: str) -> Customer:
        customer_id = self._insert(_customers, name=name)
        return self._get_customer(customer_id, include_deleted=False)

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        """Look up an active customer by id. Returns None if missing or deleted."""
        return self._get_customer(customer_id, include_deleted=False)

    def _get_customer(self, customer_id: str, include_deleted: bool) -> Optional[Customer]:
        query = _customers.select().where(_customers.c.id == customer_id)
        if not include_deleted:
            query = query.where(_customers.c.deleted_at.is_(None))
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_customer(row) if row is not None else None

    def find_customers_by_name(self, name: str) -> list[Customer]:
        """Return every customer with this exact name, soft-deleted rows included.

        Active rows sort first, then the most recently deleted.
        """
        with self.engine.connect() as conn:
            rows = conn.execute(
                _customers.select()
                .where(_customers.c.name == name)
                .order_by(_customers.c.deleted_at.is_not(None), _customers.c.deleted_at.desc())
            ).fetchall()
        return [_row_to_customer(r) for r in rows]

    def list_customers(self) -> list[Customer]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _customers.select().where(_customers.c.deleted_at.is_(None)).order_by(_customers.c.name)
            ).fetchall()
        return [_row_to_customer(r) for r in rows]

    def rename_customer(self, customer_id: str, name: str) -> bool:
        return self._update(_customers, customer_id, name=name)

    def soft_delete_customer(self, customer_id: str) -> bool:
        return self._soft_delete(_customers, customer_id)

    def restore_customer(self, customer_id: str) -> Optional[Customer]:
        self._restore(_customers, customer_id)
        return self.get_customer(customer_id)

    # ------------------------------------------------------------------
    # Sites
    # ------------------------------------------------------------------

    def create_site(self, customer_id: str, name: str) -> Site:
        site_id = self._insert(_sites, name=name, customer_id=customer_id)
        return self.get_site(site_id)

    def get_site(self, site_id: str) -> Optional[Site]:
        """Look up an active site of an active customer, joined with the customer's name."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _site_select().where(
                    (_sites.c.id == site_id) & _sites.c.deleted_at.is_(None) & _customers.c.deleted_at.is_(None)
                )
            ).fetchone()
        return _row_to_site(row) if row is not None else None

    def find_sites_by_name(self, name: str) -> list[Site]:
        """Return every site with this exact name across all customers, soft-deleted rows included."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _site_select()
                .where(_sites.c.name == name)
                .order_by(_sites.c.deleted_at.is_not(None), _sites.c.deleted_at.desc())
            ).fetchall()
        return [_row_to_site(r) for r in rows]

    def list_sites(self, customer_id: Optional[str] = None) -> list[Site]:
        """Return active sites of active customers, optionally for one customer."""
        query = _site_select().where(_sites.c.deleted_at.is_(None) & _customers.c.deleted_at.is_(None))
        if customer_id is not None:
            query = query.where(_sites.c.customer_id == customer_id)
        with self.engine.connect() as conn:
            rows = conn.execute(query.order_by(_customers.c.name, _sites.c.name)).fetchall()
        return [_row_to_site(r) for r in rows]

    def rename_site(self, site_id: str, name: str) -> bool:
        return self._update(_sites, site_id, name=name)

    def soft_delete_site(self, site_id: str) -> bool:
        return self._soft_delete(_sites, site_id)

    def restore_site(self, site_id: str) -> Optional[Site]:
        self._restore(_sites, site_id)
        return self.get_site(site_id)

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    def create_device(self, device: Device) -> Device:
        """Insert a new device and return it with site/customer names filled in.

        Raises sqlalchemy.exc.IntegrityError if the serial number is already
        taken by any row, deleted or not.
        """
        self._insert(
            _devices,
            site_id=device.site_id,
            gateway=device.gateway,
            controller=device.controller,
            controller_serial_number=device.controller_serial_number,
            device_type=device.device_type,
            device_name=device.device_name,
            device_serial_number=device.device_serial_number,
            building_url=device.building_url,
            auth_token=device.auth_token,
        )
        return self.get_device_by_serial(device.device_serial_number)

    def get_device_by_serial(self, serial_number: str) -> Optional[Device]:
        """Look up a device by serial number, INCLUDING soft-deleted rows.

        This is the one lookup that ignores deleted_at: the serial number is
        the device's identity for its whole life, and callers check
        device.deleted_at themselves when they need an active row.
        """
        with self.engine.connect() as conn:
            row = conn.execute(_device_select().where(_devices.c.device_serial_number == serial_number)).fetchone()
        return _row_to_device(row) if row is not None else None

    def list_devices(self, customer_id: Optional[str] = None, site_id: Optional[str] = None) -> list[Device]:
        """Return active devices whose site and customer are also active."""
        query = _device_select().where(
            _devices.c.deleted_at.is_(None) & _sites.c.deleted_at.is_(None) & _customers.c.deleted_at.is_(None)
        )
        if customer_id is not None:
            query = query.where(_sites.c.customer_id == customer_id)
        if site_id is not None:
            query = query.where(_devices.c.site_id == site_id)
        with self.engine.connect() as conn:
            rows = conn.execute(query.order_by(_devices.c.device_serial_number)).fetchall()
        return [_row_to_device(r) for r in rows]

    def update_device(self, device_id: str, **fields) -> bool:
        """Overwrite mutable fields on an active device.

        Only keys in _DEVICE_MUTABLE_FIELDS are accepted; site_id is immutable.
        Unknown keys raise ValueError rather than being silently ignored.
        """
        unknown = set(fields) - _DEVICE_MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown device fields: {sorted(unknown)!r}")
        return self._update(_devices, device_id, **fields)

    def soft_delete_device(self, device_id: str) -> bool:
        return self._soft_delete(_devices, device_id)

    def restore_device(self, device_id: str) -> Optional[Device]:
        self._restore(_devices, device_id)
        with self.engine.connect() as conn:
            row = conn.execute(_device_select().where(_devices.c.id == device_id)).fetchone()
        return _row_to_device(row) if row is not None else None

    # ------------------------------------------------------------------
    # Device statuses
    # ------------------------------------------------------------------

    def record_device_status(self, device_id: str, status: str, detail: Optional[str] = None) -> DeviceStatus:
        status_id = self._insert(_device_statuses, device_id=device_id, status=status, detail=detail)
        with self.engine.connect() as conn:
            row = conn.execute(_device_statuses.select().where(_device_statuses.c.id == status_id)).fetchone()
        return _row_to_device_status(row)

    def list_device_statuses(self, device_id: str) -> list[DeviceStatus]:
        """Return active status records for a device, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _device_statuses.select()
                .where((_device_statuses.c.device_id == device_id) & (_device_statuses.c.deleted_at.is_(None)))
                .order_by(_device_statuses.c.created_at.desc())
            ).fetchall()
        return [_row_to_device_status(r) for r in rows]

    # ------------------------------------------------------------------
    # Auth tokens
    # ------------------------------------------------------------------

    def create_auth_token(self, customer_id: str, action: str, token: str) -> AuthToken:
        token_id = self._insert(_auth_tokens, customer_id=customer_id, action=action, token=token)
        return self.get_auth_token(token_id)

    def get_auth_token(self, token_id: str) -> Optional[AuthToken]:
        with self.engine.connect() as conn:
            row = conn.execute(
                _auth_token_select().where((_auth_tokens.c.id == token_id) & (_auth_tokens.c.deleted_at.is_(None)))
            ).fetchone()
        return _row_to_auth_token(row) if row is not None else None

    def list_auth_tokens(self, customer_id: Optional[str] = None) -> list[AuthToken]:
        """Return active auth tokens, newest first, optionally for one customer."""
        query = _auth_token_select().where(_auth_tokens.c.deleted_at.is_(None))
        if customer_id is not None:
            query = query.where(_auth_tokens.c.customer_id == customer_id)
        with self.engine.connect() as conn:
            rows = conn.execute(query.order_by(_auth_tokens.c.created_at.desc())).fetchall()
        return [_row_to_auth_token(r) for r in rows]

    def find_live_token(self, token: str) -> Optional[AuthToken]:
        """Return the active AuthToken row holding exactly this JWT string."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _auth_token_select().where((_auth_tokens.c.token == token) & (_auth_tokens.c.deleted_at.is_(None)))
            ).fetchone()
        return _row_to_auth_token(row) if row is not None else None

    def is_token_live(self, customer_id: str, action: str, token: str) -> bool:
        """True if an active AuthToken row matches (customer, action, token)."""
        live = self.find_live_token(token)
        return live is not None and live.customer_id == customer_id and live.action == action

    def revoke_auth_token(self, token_id: str) -> bool:
        """Soft-delete a token row. Sessions using it fail on their next request."""
        return self._soft_delete(_auth_tokens, token_id)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_customer(row) -> Customer:
    return Customer(
        id=row.id,
        name=row.name,
        created_at=row.created_at,
        updated_at=row.updated_at,
        deleted_at=row.deleted_at,
    )


def _row_to_site(row) -> Site:
    return Site(
        id=row.id,
        name=row.name,
        customer_id=row.customer_id,
        customer_name=row.customer_name,
        created_at=row.created_at,
        updated_at=row.updated_at,
        deleted_at=row.deleted_at,
    )


def _row_to_device(row) -> Device:
    return Device(
        id=row.id,
        site_id=row.site_id,
        gateway=row.gateway,
        controller=row.controller,
        controller_serial_number=row.controller_serial_number,
        device_type=row.device_type,
        device_name=row.device_name,
        device_serial_number=row.device_serial_number,
        building_url=row.building_url,
        auth_token=row.auth_token,
        site_name=row.site_name,
        customer_id=row.customer_id,
        customer_name=row.customer_name,
        created_at=row.created_at,
        updated_at=row.updated_at,
        deleted_at=row.deleted_at,
    )


def _row_to_device_status(row) -> DeviceStatus:
    return DeviceStatus(
        id=row.id,
        device_id=row.device_id,
        status=row.status,
        detail=row.detail,
        created_at=row.created_at,
        updated_at=row.updated_at,
        deleted_at=row.deleted_at,
    )


def _row_to_auth_token(row) -> AuthToken:
    return AuthToken(
        id=row.id,
        customer_id=row.customer_id,
        customer_name=row.customer_name,
        action=row.action,
        token=row.token,
        created_at=row.created_at,
        updated_at=row.updated_at,
        deleted_at=row.deleted_at,
    )
