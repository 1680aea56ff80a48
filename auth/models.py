"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond a convenience
property). Mirrors the approach in inventory/models.py.

Layer rule: no imports from api/ or inventory/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """The caller bound to a request by the session dependency.

    subject_id is the customer id for user tokens and a random UUID for admin
    tokens. action is the scope the token was issued for.
    """

    subject_id: str
    role: str  # "admin" | "user"
    action: str
    display_name: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def owns(self, customer_id: str) -> bool:
        """True if this caller may see resources belonging to customer_id."""
        return self.is_admin or self.subject_id == customer_id
