"""
api/routes/v1/authenticate.py -- Session login and logout.

Routes:
  POST /authenticate  -- exchange a token for the session cookie
  POST /logout        -- clear the session cookie

/authenticate is the only unauthenticated entry point that accepts a
credential, so it carries a per-IP rate limit. Admin tokens are accepted on
signature alone; user tokens must also match a live AuthToken row, the same
check the session dependency repeats on every request.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from api.limiter import authenticate_limit, limiter
from api.models import AuthenticateRequest, ErrorDetail
from api.responses import envelope
from auth.dependencies import get_store, get_token_service
from auth.tokens import InvalidTokenError, TokenConfigError, TokenService, clear_auth_cookie, set_auth_cookie
from inventory.store import InventoryStore

logger = logging.getLogger("devicesapi.auth")

router = APIRouter()


def _invalid_token(error: str) -> HTTPException:
    return HTTPException(status_code=401, detail=ErrorDetail(message="Invalid token", error=error).model_dump())


@router.post("/authenticate")
@limiter.limit(authenticate_limit)
def authenticate(
    request: Request,
    body: AuthenticateRequest,
    tokens: TokenService = Depends(get_token_service),
    store: InventoryStore = Depends(get_store),
):
    """Validate a token and set it as the session cookie."""
    try:
        claims = tokens.validate_token(body.token)
    except TokenConfigError as exc:
        raise HTTPException(
            status_code=500,
            detail=ErrorDetail(message="Token service misconfigured", error=str(exc)).model_dump(),
        ) from exc
    except InvalidTokenError as exc:
        logger.info("Login rejected: %s", exc)
        raise _invalid_token(str(exc)) from exc

    if claims["role"] != "admin" and not store.is_token_live(claims["sub"], claims["action"], body.token):
        raise _invalid_token("Token not found")

    response = envelope(200, "Token validated")
    set_auth_cookie(response, body.token)
    logger.info("Session started for %s (role=%s)", claims["sub"], claims["role"])
    return response


@router.post("/logout")
def logout():
    response = envelope(200, "Logged out")
    clear_auth_cookie(response)
    return response
