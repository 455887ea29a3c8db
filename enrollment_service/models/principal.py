from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated JWT.

    Carried through the request via FastAPI's dependency system and passed
    explicitly into every core call; there is no ambient "current user".

        user_id: subject from JWT
        roles:   student | instructor | admin | payments
    """

    user_id: str
    roles: frozenset[str]

    @property
    def uid(self) -> UUID:
        return UUID(self.user_id)

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: set[str]) -> bool:
        return bool(self.roles & roles)

    def is_admin(self) -> bool:
        return "admin" in self.roles

    def acts_for(self, user_id: UUID) -> bool:
        """True when the caller is that user, or an admin acting on their behalf."""
        return self.is_admin() or self.user_id == str(user_id)
