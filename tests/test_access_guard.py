import uuid
import pytest
from types import SimpleNamespace
from sqlalchemy import select
from courier.core.errors import ForbiddenError, NotFoundError, UnauthenticatedError
from courier.models.order import Order
from courier.models.user import RoleCode
from courier.services.access_guard import Actor, Scope

SWIFT = uuid.uuid4()
RAPID = uuid.uuid4()


def make_actor(role, operator_id=None):
    return Actor(id=uuid.uuid4(), operator_id=operator_id, role=role)


def resource(operator_id, customer_id=None):
    return SimpleNamespace(operator_id=operator_id, customer_id=customer_id or uuid.uuid4())


def test_missing_actor_is_unauthenticated():
    with pytest.raises(UnauthenticatedError):
        Scope.for_actor(None)


@pytest.mark.parametrize("role", [RoleCode.SUPER_ADMIN, RoleCode.PLATFORM_SUPPORT])
def test_platform_roles_see_every_operator(role):
    scope = Scope.for_actor(make_actor(role, operator_id=SWIFT))
    assert scope.unrestricted
    assert scope.covers(RAPID)
    assert scope.predicates(Order.operator_id, Order.customer_id) == []


def test_operator_staff_limited_to_own_operator():
    scope = Scope.for_actor(make_actor(RoleCode.DISPATCHER, operator_id=SWIFT))
    assert scope.covers(SWIFT)
    assert not scope.covers(RAPID)
    clauses = scope.predicates(Order.operator_id, Order.customer_id)
    assert len(clauses) == 1


def test_read_outside_scope_is_not_found_but_mutation_is_forbidden():
    scope = Scope.for_actor(make_actor(RoleCode.OPERATOR_ADMIN, operator_id=SWIFT))
    foreign = resource(RAPID)
    with pytest.raises(NotFoundError):
        scope.visible(foreign, "Order")
    with pytest.raises(ForbiddenError):
        scope.authorize(foreign, "update this order")


def test_customer_limited_to_own_resources():
    customer = make_actor(RoleCode.CUSTOMER)
    scope = Scope.for_actor(customer)
    assert scope.covers(SWIFT, customer.id)
    assert not scope.covers(SWIFT, uuid.uuid4())
    # A resource with no customer is never a customer's own
    assert not scope.covers(SWIFT)


def test_customer_with_operator_gets_both_restrictions():
    customer = make_actor(RoleCode.CUSTOMER, operator_id=SWIFT)
    scope = Scope.for_actor(customer)
    assert scope.covers(SWIFT, customer.id)
    assert not scope.covers(RAPID, customer.id)
    assert len(scope.predicates(Order.operator_id, Order.customer_id)) == 2


def test_staff_without_operator_sees_nothing():
    scope = Scope.for_actor(make_actor(RoleCode.DISPATCHER))
    assert scope.empty
    assert not scope.covers(SWIFT)
    query = scope.apply(select(Order), Order.operator_id, Order.customer_id)
    where = str(query.whereclause.compile()).lower()
    assert where in ("false", "0", "0 = 1")


def test_customers_cannot_act_as_staff():
    scope = Scope.for_actor(make_actor(RoleCode.CUSTOMER))
    with pytest.raises(ForbiddenError):
        scope.require_staff("assign orders")
    Scope.for_actor(make_actor(RoleCode.DISPATCHER, SWIFT)).require_staff("assign orders")


def test_visible_uses_owner_for_child_resources():
    scope = Scope.for_actor(make_actor(RoleCode.DISPATCHER, operator_id=SWIFT))
    assignment = SimpleNamespace(id=uuid.uuid4())
    assert scope.visible(assignment, "Order assignment", owner=resource(SWIFT)) is assignment
    with pytest.raises(NotFoundError):
        scope.visible(assignment, "Order assignment", owner=resource(RAPID))
