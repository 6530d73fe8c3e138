"""
Acting user for audit attribution
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ActingUser:
    user_id: int
    username: str
    role: str = "Staff"


class IdentityProvider:
    """Supplies the acting user's id and role to the ledgers"""

    def __init__(self, user: Optional[ActingUser] = None):
        self._user = user

    @property
    def current_user(self) -> Optional[ActingUser]:
        return self._user

    @property
    def user_id(self) -> Optional[int]:
        return self._user.user_id if self._user else None

    @property
    def username(self) -> Optional[str]:
        return self._user.username if self._user else None

    @property
    def role(self) -> Optional[str]:
        return self._user.role if self._user else None

    def sign_in(self, user: ActingUser):
        self._user = user

    def sign_out(self):
        self._user = None
