"""
auth/tokens.py -- JWT issuance/validation and the session cookie helpers.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry the subject id (a customer UUID
       for user tokens, a throwaway UUID for admin tokens), display name,
       role, action, issuer and issued-at. Expiry is optional: tokens handed
       to devices and integrations are long-lived by default, and a user
       token's real lifetime is bounded by its AuthToken row (revocable).

  Algorithm check: the header's alg is inspected before verification and
       anything outside the HMAC family is rejected outright, so a token
       claiming "none" or an RSA algorithm never reaches the verifier.

  Secret: TokenService receives the signing secret from Settings at startup.
       An empty secret does not crash the process; every issue/validate call
       raises TokenConfigError and the route layer turns that into a 500.

Layer rule: no imports from api/ or inventory/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from core.config import get_settings

logger = logging.getLogger("devicesapi.auth")

ROLES: frozenset[str] = frozenset({"admin", "user"})

_ALGORITHM = "HS256"
_HMAC_ALGORITHMS = ["HS256", "HS384", "HS512"]
_DISPLAY_NAME_RE = re.compile(r"^[A-Za-z0-9_ ]{3,20}$")

COOKIE_NAME = "Authorization"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TokenError(Exception):
    """Base class for every token service failure."""


class TokenIssueError(TokenError, ValueError):
    """An argument to issue_token() failed validation."""


class InvalidTokenError(TokenError):
    """A presented token is malformed, forged, expired or uses the wrong algorithm."""


class TokenConfigError(TokenError):
    """The signing secret is not available."""


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def is_valid_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def is_valid_display_name(value: str) -> bool:
    return bool(_DISPLAY_NAME_RE.match(value or ""))


# ---------------------------------------------------------------------------
# Token service
# ---------------------------------------------------------------------------


class TokenService:
    """Issues and validates signed session/action tokens.

    Usage:
        tokens = TokenService(secret, allowed_actions=["ADMIN", "READ"])
        token = tokens.issue_token(customer_id, "Acme Co", "user", "READ")
        claims = tokens.validate_token(token)   # raises InvalidTokenError
    """

    def __init__(
        self,
        secret: str,
        allowed_actions: Iterable[str],
        issuer: str = "Rubicon BMS",
        expire_days: int = 30,
    ) -> None:
        self._secret = secret
        self.allowed_actions: frozenset[str] = frozenset(allowed_actions)
        self.issuer = issuer
        self.expire_days = expire_days

    @classmethod
    def from_settings(cls) -> "TokenService":
        settings = get_settings()
        return cls(
            secret=settings.jwt_secret,
            allowed_actions=settings.allowed_actions,
            issuer=settings.token_issuer,
            expire_days=settings.token_expire_days,
        )

    def _require_secret(self) -> str:
        if not self._secret:
            raise TokenConfigError("JWT signing secret is not configured")
        return self._secret

    def issue_token(
        self,
        subject_id: str,
        display_name: str,
        role: str,
        action: str,
        with_expiry: bool = False,
    ) -> str:
        """Encode a signed JWT after validating every claim.

        Args:
            subject_id:   UUID of the customer (user tokens) or a fresh UUID
                          (admin tokens).
            display_name: Human-readable name, 3-20 chars of [A-Za-z0-9_ ].
            role:         "admin" or "user".
            action:       Must be in the configured allow-list.
            with_expiry:  Add an exp claim expire_days from now.
        """
        if not is_valid_uuid(subject_id):
            raise TokenIssueError("invalid user ID")
        if not is_valid_display_name(display_name):
            raise TokenIssueError("invalid username")
        if role not in ROLES:
            raise TokenIssueError("invalid role")
        if action not in self.allowed_actions:
            raise TokenIssueError("invalid action")
        secret = self._require_secret()

        now = datetime.now(timezone.utc)
        payload: dict = {
            "sub": str(subject_id),
            "name": display_name,
            "role": role,
            "action": action,
            "iss": self.issuer,
            "iat": int(now.timestamp()),
        }
        if with_expiry:
            payload["exp"] = now + timedelta(days=self.expire_days)
        return jwt.encode(payload, secret, algorithm=_ALGORITHM)

    def validate_token(self, token: str) -> dict:
        """Verify signature, algorithm and expiry; return the claims.

        Raises InvalidTokenError on any verification failure and
        TokenConfigError when the secret is missing.
        """
        secret = self._require_secret()
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise InvalidTokenError(f"malformed token: {exc}") from exc
        if header.get("alg") not in _HMAC_ALGORITHMS:
            raise InvalidTokenError("invalid signing method")
        try:
            claims = jwt.decode(token, secret, algorithms=_HMAC_ALGORITHMS)
        except JWTError as exc:
            raise InvalidTokenError(str(exc)) from exc
        for required in ("sub", "role", "action"):
            if not claims.get(required):
                raise InvalidTokenError(f"missing {required} claim")
        if claims["role"] not in ROLES:
            raise InvalidTokenError("unknown role")
        return claims


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation.
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    """
    settings = get_settings()
    response.set_cookie(
        COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=settings.cookie_max_age_seconds,
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(COOKIE_NAME)
