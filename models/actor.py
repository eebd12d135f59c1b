from typing import Optional

from pydantic import BaseModel

ROLE_ADMIN    = "ADMIN"
ROLE_MANAGER  = "MANAGER"
ROLE_EMPLOYEE = "EMPLOYEE"
ALL_ROLES     = {ROLE_ADMIN, ROLE_MANAGER, ROLE_EMPLOYEE}
ORDER_ROLES   = {ROLE_ADMIN, ROLE_MANAGER}


class Actor(BaseModel):
    """
    The authenticated user performing a request.
    restaurant_id scopes what a MANAGER may see; ADMIN sees everything.
    """
    id: int
    role: str
    restaurant_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def can_manage_orders(self) -> bool:
        return self.role in ORDER_ROLES
