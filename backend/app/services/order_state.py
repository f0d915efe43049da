# Overview: Order state machine; one transition table consulted by every mutating operation.

"""
Order Lifecycle State Machine

================================================================================
PURPOSE: Single source of truth for which status changes are legal, who may
request them, and for which payment methods.
================================================================================

STATE MACHINE:
    Received -> Invoice Generated -> Payment Confirmed            (online card)
                                  -> Payment Pending               (bank transfer, pay on delivery)
    Payment Pending  -> Payment Review                             (bank transfer, owner uploads proof)
    Payment Review   -> Payment Confirmed | Payment Pending        (admin verifies)
    Payment Confirmed -> Order Approved                            (admin, deducts stock)
    Payment Pending  -> Order Approved                             (pay on delivery, flag-gated)
    Order Approved -> Packed -> Dispatched -> Delivered            (logistics, one step at a time)
    Cancelled: terminal, reserved (no operation produces it yet)

RULES:
1. Only edges in TRANSITIONS are legal. Everything else is rejected.
2. Same-state "transitions" are never legal (replays are rejected).
3. Delivered and Cancelled are terminal.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import InvalidStateError, InvalidTransitionError, PermissionDeniedError
from ..models import OrderStatus, PaymentMethod, UserRole


ACTION_CREATE = "create"
ACTION_SUBMIT_PROOF = "submit_proof"
ACTION_VERIFY_PAYMENT = "verify_payment"
ACTION_APPROVE = "approve"
ACTION_LOGISTICS = "logistics"

ALL_METHODS = frozenset(PaymentMethod)
STAFF_LOGISTICS = frozenset({UserRole.LOGISTICS, UserRole.ADMIN})
ADMIN_ONLY = frozenset({UserRole.ADMIN})

# Buyer-initiated transitions are gated on ownership, not role
OWNER = None


@dataclass(frozen=True)
class TransitionRule:
    action: str
    roles: frozenset | None
    methods: frozenset = ALL_METHODS
    # Name of a config flag that must be on for the edge to be usable
    requires_flag: str | None = None


S = OrderStatus
M = PaymentMethod

TRANSITIONS: dict[tuple[OrderStatus, OrderStatus], TransitionRule] = {
    (S.RECEIVED, S.INVOICE_GENERATED): TransitionRule(ACTION_CREATE, frozenset()),
    (S.INVOICE_GENERATED, S.PAYMENT_CONFIRMED): TransitionRule(
        ACTION_CREATE, frozenset(), frozenset({M.ONLINE_CARD})
    ),
    (S.INVOICE_GENERATED, S.PAYMENT_PENDING): TransitionRule(
        ACTION_CREATE, frozenset(), frozenset({M.BANK_TRANSFER, M.PAY_ON_DELIVERY})
    ),
    (S.PAYMENT_PENDING, S.PAYMENT_REVIEW): TransitionRule(
        ACTION_SUBMIT_PROOF, OWNER, frozenset({M.BANK_TRANSFER})
    ),
    (S.PAYMENT_REVIEW, S.PAYMENT_CONFIRMED): TransitionRule(
        ACTION_VERIFY_PAYMENT, ADMIN_ONLY, frozenset({M.BANK_TRANSFER})
    ),
    (S.PAYMENT_REVIEW, S.PAYMENT_PENDING): TransitionRule(
        ACTION_VERIFY_PAYMENT, ADMIN_ONLY, frozenset({M.BANK_TRANSFER})
    ),
    (S.PAYMENT_CONFIRMED, S.ORDER_APPROVED): TransitionRule(ACTION_APPROVE, ADMIN_ONLY),
    (S.PAYMENT_PENDING, S.ORDER_APPROVED): TransitionRule(
        ACTION_APPROVE, ADMIN_ONLY, frozenset({M.PAY_ON_DELIVERY}), requires_flag="POD_DIRECT_APPROVAL"
    ),
    (S.ORDER_APPROVED, S.PACKED): TransitionRule(ACTION_LOGISTICS, STAFF_LOGISTICS),
    (S.PACKED, S.DISPATCHED): TransitionRule(ACTION_LOGISTICS, STAFF_LOGISTICS),
    (S.DISPATCHED, S.DELIVERED): TransitionRule(ACTION_LOGISTICS, STAFF_LOGISTICS),
}

TERMINAL_STATUSES = frozenset({S.DELIVERED, S.CANCELLED})

LOGISTICS_SEQUENCE = (S.ORDER_APPROVED, S.PACKED, S.DISPATCHED, S.DELIVERED)

# Reserved edges; no operation requests them yet
CANCELLABLE_STATUSES = frozenset({
    S.RECEIVED,
    S.INVOICE_GENERATED,
    S.PAYMENT_PENDING,
    S.PAYMENT_REVIEW,
    S.PAYMENT_CONFIRMED,
})


def roles_for_action(action: str) -> frozenset | None:
    """Union of roles allowed by every edge carrying this action (None = owner-gated)."""
    rules = [rule for rule in TRANSITIONS.values() if rule.action == action]
    if any(rule.roles is OWNER for rule in rules):
        return OWNER
    allowed = frozenset()
    for rule in rules:
        allowed |= rule.roles
    return allowed


def is_terminal(status: OrderStatus) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES


def get_rule(from_status: OrderStatus, to_status: OrderStatus) -> TransitionRule | None:
    return TRANSITIONS.get((OrderStatus(from_status), OrderStatus(to_status)))


def can_transition(
    from_status: OrderStatus,
    to_status: OrderStatus,
    *,
    method: PaymentMethod | None = None,
    flags: dict | None = None,
) -> bool:
    """
    Check if an edge exists and is usable for the given payment method.

    flags: config values consulted for flag-gated edges (missing flag = off).
    """
    rule = get_rule(from_status, to_status)
    if rule is None:
        return False
    if method is not None and PaymentMethod(method) not in rule.methods:
        return False
    if rule.requires_flag and not (flags or {}).get(rule.requires_flag, False):
        return False
    return True


def require_transition(
    from_status: OrderStatus,
    to_status: OrderStatus,
    *,
    method: PaymentMethod | None = None,
    flags: dict | None = None,
    order_id: str | None = None,
) -> TransitionRule:
    """
    Return the rule for an edge or raise InvalidStateError.

    Logistics edges raise InvalidTransitionError instead (see
    require_logistics_step) so callers asking for a skipped step get the
    more specific error.
    """
    if not can_transition(from_status, to_status, method=method, flags=flags):
        label = f"Order {order_id}" if order_id else "Order"
        raise InvalidStateError(
            f"{label} cannot move from '{OrderStatus(from_status).value}' "
            f"to '{OrderStatus(to_status).value}'",
            details={
                "current_status": OrderStatus(from_status).value,
                "requested_status": OrderStatus(to_status).value,
            },
        )
    return TRANSITIONS[(OrderStatus(from_status), OrderStatus(to_status))]


def require_action_role(action: str, role: UserRole) -> None:
    """Raise PermissionDeniedError if role may not perform the action."""
    allowed = roles_for_action(action)
    if allowed is OWNER:
        return
    if UserRole(role) not in allowed:
        raise PermissionDeniedError(
            f"Role '{UserRole(role).value}' cannot perform '{action}'",
            details={"allowed_roles": sorted(r.value for r in allowed)},
        )


def next_logistics_status(current: OrderStatus) -> OrderStatus | None:
    """The single valid next logistics status, or None if not in fulfillment."""
    current = OrderStatus(current)
    if current not in LOGISTICS_SEQUENCE:
        return None
    idx = LOGISTICS_SEQUENCE.index(current)
    if idx + 1 >= len(LOGISTICS_SEQUENCE):
        return None
    return LOGISTICS_SEQUENCE[idx + 1]


def require_logistics_step(
    current: OrderStatus,
    target: OrderStatus,
    *,
    order_id: str | None = None,
) -> TransitionRule:
    """
    Validate a fulfillment step.

    - order already in the target status (replay) -> InvalidStateError
    - order not yet approved, or terminal -> InvalidStateError
    - target is not exactly the next step -> InvalidTransitionError
    """
    current = OrderStatus(current)
    target = OrderStatus(target)
    label = f"Order {order_id}" if order_id else "Order"

    if target == current:
        raise InvalidStateError(
            f"{label} is already '{current.value}'",
            details={"current_status": current.value, "requested_status": target.value},
        )

    expected = next_logistics_status(current)
    if expected is None:
        raise InvalidStateError(
            f"{label} is '{current.value}' and has no fulfillment step available",
            details={"current_status": current.value, "requested_status": target.value},
        )
    if target != expected:
        raise InvalidTransitionError(
            f"{label} cannot move from '{current.value}' to '{target.value}'; "
            f"next step is '{expected.value}'",
            details={
                "current_status": current.value,
                "requested_status": target.value,
                "expected_status": expected.value,
            },
        )
    return TRANSITIONS[(current, target)]
