"""Tenant access guard.

Every fulfillment operation builds a :class:`Scope` for the caller before it
touches the store. The scope decides two things:

* how list queries are narrowed (``Scope.apply``), and
* whether a single resource may be seen or mutated (``Scope.visible`` and
  ``Scope.authorize``).

Reads of a resource outside the caller's scope fail with ``NotFoundError`` so
that its existence is not observable; mutations fail with ``ForbiddenError``.
"""
import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy import false

from courier.core.errors import ForbiddenError, NotFoundError, UnauthenticatedError
from courier.models.user import RoleCode

logger = logging.getLogger(__name__)

UNRESTRICTED_ROLES = frozenset({RoleCode.SUPER_ADMIN, RoleCode.PLATFORM_SUPPORT})


@dataclass(frozen=True)
class Actor:
    id: UUID
    operator_id: Optional[UUID]
    role: RoleCode

    @property
    def is_customer(self) -> bool:
        return self.role == RoleCode.CUSTOMER


class Scope:
    def __init__(self, actor: Actor):
        if actor is None:
            raise UnauthenticatedError("Authentication required")
        self.actor = actor
        self.unrestricted = actor.role in UNRESTRICTED_ROLES
        self.operator_id = None if self.unrestricted else actor.operator_id
        self.customer_id = actor.id if actor.is_customer else None
        # Staff without an operator have nothing to see
        self.empty = not self.unrestricted and not actor.is_customer and actor.operator_id is None

    @classmethod
    def for_actor(cls, actor: Actor) -> "Scope":
        return cls(actor)

    def predicates(self, operator_column, customer_column=None) -> list:
        """Filter predicates narrowing a query to this scope."""
        if self.empty:
            return [false()]
        clauses = []
        if self.operator_id is not None:
            clauses.append(operator_column == self.operator_id)
        if self.customer_id is not None and customer_column is not None:
            clauses.append(customer_column == self.customer_id)
        return clauses

    def apply(self, query, operator_column, customer_column=None):
        for clause in self.predicates(operator_column, customer_column):
            query = query.where(clause)
        return query

    def covers(self, operator_id, customer_id=None) -> bool:
        if self.empty:
            return False
        if self.operator_id is not None and operator_id != self.operator_id:
            return False
        if self.customer_id is not None and customer_id != self.customer_id:
            return False
        return True

    def require_staff(self, action: str):
        if self.actor.is_customer:
            logger.warning(f"Forbidden: customer {self.actor.id} tried to {action}")
            raise ForbiddenError(f"Customers cannot {action}")

    def visible(self, resource, label: str, owner=None):
        """Return ``resource`` if this scope may read it, else raise NotFoundError.

        ``owner`` is the entity carrying operator_id/customer_id when the
        resource itself does not (assignments and tracking events use their order).
        """
        owner = owner if owner is not None else resource
        if resource is None or not self.covers(owner.operator_id, getattr(owner, "customer_id", None)):
            raise NotFoundError(f"{label} not found")
        return resource

    def authorize(self, resource, action: str, owner=None):
        owner = owner if owner is not None else resource
        if not self.covers(owner.operator_id, getattr(owner, "customer_id", None)):
            logger.warning(
                f"Forbidden: user {self.actor.id} ({self.actor.role.value}) tried to {action} "
                f"resource of operator {owner.operator_id}"
            )
            raise ForbiddenError(f"You do not have permission to {action}")
        return resource
