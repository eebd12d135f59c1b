"""
Staff management: restaurant assignment and the manager role.

New accounts start as EMPLOYEE without a restaurant.  An ADMIN attaches them
to a restaurant and promotes or demotes managers; order scoping relies on
exactly these two fields.
"""
import logging
from typing import Any, Optional

from models.actor import Actor, ROLE_ADMIN, ROLE_EMPLOYEE, ROLE_MANAGER
from models.catalog import User
from .database import Database
from .errors import ForbiddenError, NotFoundError, ValidationError
from .validator import is_db_id

logger = logging.getLogger(__name__)


def ensure_user_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise ForbiddenError("Only ADMIN can manage users")


class UserService:
    """ADMIN-only operations on back-office accounts."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def list_unassigned(self, actor: Actor) -> list[User]:
        """Employees not yet attached to any restaurant."""
        ensure_user_admin(actor)
        return [User(**row) for row in self.db.list_unassigned_users(ROLE_EMPLOYEE)]

    def assign_restaurant(self, actor: Actor, user_id: int, restaurant_id: Any) -> User:
        ensure_user_admin(actor)
        if not is_db_id(restaurant_id):
            raise ValidationError("restaurantId must be a positive integer")
        self._get_user(user_id)
        self._ensure_restaurant(restaurant_id)

        self.db.update_user(user_id, {"restaurant_id": restaurant_id})
        logger.info("User %d assigned to restaurant %d by user %s", user_id, restaurant_id, actor.id)
        return self._get_user(user_id)

    def update_manager_role(
        self,
        actor: Actor,
        user_id: int,
        is_manager: Any,
        restaurant_id: Optional[Any] = None,
    ) -> User:
        """
        Promote (is_manager=True) or demote a user.

        restaurant_id, when given, is assigned in the same step.  A manager
        must end up with a restaurant.  ADMIN accounts keep their role.
        """
        ensure_user_admin(actor)
        if not isinstance(is_manager, bool):
            raise ValidationError("isManager must be a boolean")
        if restaurant_id is not None and not is_db_id(restaurant_id):
            raise ValidationError("restaurantId must be a positive integer")

        user = self._get_user(user_id)
        if user.role == ROLE_ADMIN:
            raise ValidationError("Cannot change the role of an ADMIN")

        changes: dict = {"role": ROLE_MANAGER if is_manager else ROLE_EMPLOYEE}
        if restaurant_id is not None:
            self._ensure_restaurant(restaurant_id)
            changes["restaurant_id"] = restaurant_id
        if is_manager and changes.get("restaurant_id", user.restaurant_id) is None:
            raise ValidationError("User must be assigned to a restaurant")

        self.db.update_user(user_id, changes)
        logger.info("User %d role set to %s by user %s", user_id, changes["role"], actor.id)
        return self._get_user(user_id)

    def _get_user(self, user_id: int) -> User:
        row = self.db.get_user(user_id) if is_db_id(user_id) else None
        if row is None:
            raise NotFoundError("User not found")
        return User(**row)

    def _ensure_restaurant(self, restaurant_id: int) -> None:
        if self.db.get_restaurant(restaurant_id) is None:
            raise NotFoundError("Restaurant not found")
