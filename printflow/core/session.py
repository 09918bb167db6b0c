from __future__ import annotations

from pydantic import BaseModel

from printflow.domain.pipeline import Role


class SessionContext(BaseModel):
    """The acting role and, for clients, the customer the login is linked to."""

    role: Role
    user_id: str
    customer_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role in (Role.ADMIN, Role.SUPERADMIN)

    def acts_for(self, customer_id: str) -> bool:
        """Staff act for any customer; a client only for its linked one."""
        return self.role != Role.CLIENT or (self.customer_id is not None and self.customer_id == customer_id)
