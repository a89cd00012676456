"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in care/models.py -- dataclasses own domain shape; stores and routes do the
work.

Layer rule: no imports from api/, care/, or notify/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered person. Coordinator and carer are not account types.

    Roles are memberships on individual patients: the same user can coordinate
    one patient and care for another. Those memberships live in care/store.py,
    never on this record.

    email is stored lower-cased so lookups are case-insensitive. A user may
    not log in until is_confirmed is set by redeeming the emailed
    confirmation token.
    """

    email: str
    first_name: str
    last_name: str
    id: int | None = None
    hashed_password: str | None = None
    is_confirmed: bool = False
    created_at: str | None = None
    last_login: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
