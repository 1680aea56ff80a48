"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Three gates:
  1. get_identity()        -- session binding from the "Authorization" cookie.
  2. require_admin()       -- role gate on top of get_identity() (403).
  3. require_admin_secret() -- shared-secret header gate for /admin/*. It is
     independent of the cookie: those endpoints are where sessions come from.

Service lookups (get_store, get_token_service) read app.state so tests and
alternative deployments can swap the implementations without touching routes.

Errors are raised as HTTPException with a {"message", "error"} detail dict;
api/main.py renders them into the response envelope.

Layer rule: auth/ does not import from api/. The store class is imported for
annotations only; the instance always comes from app.state.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import Depends, HTTPException, Request

from auth.models import Identity
from auth.tokens import COOKIE_NAME, InvalidTokenError, TokenConfigError, TokenService
from inventory.store import InventoryStore

logger = logging.getLogger("devicesapi.auth")

ADMIN_SECRET_HEADER = "Admin-Secret"


def _unauthorized(message: str, error: str) -> HTTPException:
    return HTTPException(status_code=401, detail={"message": message, "error": error})


# ---------------------------------------------------------------------------
# Service lookups
# ---------------------------------------------------------------------------


def get_store(request: Request) -> InventoryStore:
    return request.app.state.store


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


# ---------------------------------------------------------------------------
# Session binding
# ---------------------------------------------------------------------------


def get_identity(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
    store: InventoryStore = Depends(get_store),
) -> Identity:
    """Require a valid session cookie. Raises HTTP 401 otherwise.

    Admin tokens are trusted on signature alone. User tokens must also be
    backed by an active AuthToken row for the same (customer, action): a
    revoked row kills the session even though the JWT still verifies.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_identity)): ...
    """
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise _unauthorized("Unauthorized", "Please authenticate first")

    try:
        claims = tokens.validate_token(token)
    except TokenConfigError as exc:
        raise HTTPException(
            status_code=500,
            detail={"message": "Token service misconfigured", "error": str(exc)},
        ) from exc
    except InvalidTokenError as exc:
        logger.info("Rejected session token: %s", exc)
        raise _unauthorized("Unauthorized", "Invalid token") from exc

    identity = Identity(
        subject_id=claims["sub"],
        role=claims["role"],
        action=claims["action"],
        display_name=claims.get("name", ""),
    )
    if not identity.is_admin and not store.is_token_live(identity.subject_id, identity.action, token):
        raise _unauthorized("Unauthorized", "Token not found")

    request.state.identity = identity
    return identity


def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    """Require admin role. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin."""
    if not identity.is_admin:
        raise HTTPException(
            status_code=403,
            detail={"message": "Forbidden", "error": "Only admins can perform this action"},
        )
    return identity


# ---------------------------------------------------------------------------
# Admin secret
# ---------------------------------------------------------------------------


def require_admin_secret(request: Request) -> None:
    """Require the Admin-Secret header to match the configured secret.

    hmac.compare_digest keeps the comparison constant-time so the secret
    cannot be recovered byte-by-byte from response timing.
    """
    expected: str = request.app.state.admin_secret
    presented = request.headers.get(ADMIN_SECRET_HEADER, "")
    if not expected or not presented or not hmac.compare_digest(presented.encode(), expected.encode()):
        raise _unauthorized("Unauthorized", "Invalid admin secret")
