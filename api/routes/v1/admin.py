"""
api/routes/v1/admin.py -- Token administration routes, gated by the Admin-Secret header.

Routes:
  POST   /admin/generate-admin-token  -- mint an admin session token
  POST   /admin/generate-token        -- mint and persist a user token for a customer
  GET    /admin/tokens                -- list live user tokens (?customer_id= filter)
  DELETE /admin/tokens/{token_id}     -- revoke a user token

These endpoints are where sessions come from, so they cannot sit behind the
session cookie. The shared secret is checked by a router-level dependency and
the routes are rate-limited against secret guessing.

Admin tokens are not persisted: the signature is the whole proof. User tokens
are stored as AuthToken rows and only stay usable while their row is live.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from api.access import CUSTOMER, bad_request, parse_id
from api.limiter import admin_limit, limiter
from api.models import AuthTokenResponse, ErrorDetail, GenerateTokenRequest
from api.responses import envelope
from auth.dependencies import get_store, get_token_service, require_admin_secret
from auth.tokens import TokenConfigError, TokenIssueError, TokenService
from core.config import ADMIN_ACTION
from inventory.store import InventoryStore

logger = logging.getLogger("devicesapi.api")

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin_secret)])

_ADMIN_DISPLAY_NAME = "Admin"


def _issue_failed(exc: Exception, status_code: int) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail=ErrorDetail(message="Failed to generate token", error=str(exc)).model_dump(),
    )


# ---------------------------------------------------------------------------
# POST /admin/generate-admin-token
# ---------------------------------------------------------------------------


@router.post("/generate-admin-token")
@limiter.limit(admin_limit)
def generate_admin_token(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
):
    """Mint an admin token with a throwaway subject id and no expiry."""
    try:
        token = tokens.issue_token(str(uuid.uuid4()), _ADMIN_DISPLAY_NAME, "admin", ADMIN_ACTION)
    except (TokenConfigError, TokenIssueError) as exc:
        raise _issue_failed(exc, 500) from exc
    logger.info("Admin token issued")
    return envelope(200, "Token generated successfully", token)


# ---------------------------------------------------------------------------
# POST /admin/generate-token
# ---------------------------------------------------------------------------


@router.post("/generate-token")
@limiter.limit(admin_limit)
def generate_token(
    request: Request,
    body: GenerateTokenRequest,
    tokens: TokenService = Depends(get_token_service),
    store: InventoryStore = Depends(get_store),
):
    """Mint a user token scoped to one customer and action, and persist it.

    The customer's name becomes the token's display name, so a customer
    whose name falls outside [A-Za-z0-9_ ]{3,20} cannot be issued a token.
    """
    if body.action not in tokens.allowed_actions:
        raise bad_request("Invalid request body", "Action not allowed")

    customer = store.get_customer(body.customer_id)
    if customer is None:
        raise HTTPException(
            status_code=404,
            detail=ErrorDetail(message="Customer not found", error="Customer does not exist").model_dump(),
        )

    try:
        token = tokens.issue_token(customer.id, customer.name, "user", body.action, with_expiry=body.with_expiry)
    except TokenIssueError as exc:
        raise _issue_failed(exc, 400) from exc
    except TokenConfigError as exc:
        raise _issue_failed(exc, 500) from exc

    auth_token = store.create_auth_token(customer.id, body.action, token)
    logger.info("User token %s issued for customer %s (action=%s)", auth_token.id, customer.id, body.action)
    return envelope(200, "Token generated successfully", AuthTokenResponse.from_auth_token(auth_token))


# ---------------------------------------------------------------------------
# Token inventory
# ---------------------------------------------------------------------------


@router.get("/tokens")
@limiter.limit(admin_limit)
def list_tokens(
    request: Request,
    customer_id: Optional[str] = None,
    store: InventoryStore = Depends(get_store),
):
    if customer_id is not None:
        customer_id = parse_id(customer_id, CUSTOMER)
    auth_tokens = [AuthTokenResponse.from_auth_token(t) for t in store.list_auth_tokens(customer_id=customer_id)]
    return envelope(200, "Tokens fetched", auth_tokens)


@router.delete("/tokens/{token_id}")
@limiter.limit(admin_limit)
def revoke_token(
    request: Request,
    token_id: str,
    store: InventoryStore = Depends(get_store),
):
    """Revoke a user token. Sessions holding it fail on their next request."""
    try:
        key = str(uuid.UUID(token_id))
    except ValueError as exc:
        raise bad_request("Invalid token ID", "Invalid UUID format") from exc
    if not store.revoke_auth_token(key):
        raise HTTPException(
            status_code=404,
            detail=ErrorDetail(message="Token not found", error="No token found with the given ID").model_dump(),
        )
    logger.info("User token %s revoked", key)
    return envelope(200, "Token revoked")
