# Overview: Order lifecycle engine; creates, pays, verifies, approves and fulfills orders.

"""
Order Lifecycle Engine

WHY: The order is the only document in the storefront with real invariants.
This module is the sole owner of Order.status and the sole caller of
catalog_service.try_settle(), i.e. the only place stock is ever reduced.

DESIGN PRINCIPLES:
- Every status change is validated against services/order_state.TRANSITIONS.
- Each operation is one unit of work: validate, mutate, commit. Any failure
  rolls back the whole unit, so callers never see partial mutation.
- Inventory is deducted exactly once, at approval, for all lines together.
- Replays are rejected: an order already past the requested step raises
  InvalidStateError (a retried approval cannot deduct stock twice).
- Audit entries and notifications are written after commit and can never
  undo a committed transition.

CONCURRENCY:
- keyed_lock("order:<id>") serializes operations on one order in-process.
- Order.version_id makes a lost race across processes flush zero rows,
  raising StaleDataError; run_with_retry re-reads and re-validates.
- Stock uses a conditional decrement per product (no read-modify-write).
"""

from __future__ import annotations

import logging
import secrets
import time
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import (
    BelowMinimumOrderQuantityError,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    PaymentNotSettledError,
    PermissionDeniedError,
    ValidationError,
)
from ..extensions import db
from ..models import Order, OrderItem, OrderStatus, OrderTimelineEntry, PaymentMethod, User, UserRole
from app.time_utils import today, utcnow
from . import audit_service, catalog_service, notification_service, order_state, user_service
from .concurrency import keyed_lock, lock_for_update, run_with_retry


logger = logging.getLogger(__name__)

BUYER_ROLES = frozenset({UserRole.PUBLIC, UserRole.WHOLESALE})
STAFF_ROLES = frozenset({UserRole.ADMIN, UserRole.LOGISTICS})

# Statuses from which an approval attempt means "not paid yet"
AWAITING_PAYMENT = frozenset({
    OrderStatus.RECEIVED,
    OrderStatus.INVOICE_GENERATED,
    OrderStatus.PAYMENT_PENDING,
    OrderStatus.PAYMENT_REVIEW,
})

ORDER_ID_ATTEMPTS = 5

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


@dataclass(frozen=True)
class LineRequest:
    """A requested cart line: product and quantity."""
    product_id: str
    quantity: int


# =============================================================================
# INTERNAL HELPERS
# =============================================================================

def _base36(n: int) -> str:
    out = ""
    while n:
        n, r = divmod(n, 36)
        out = _BASE36[r] + out
    return out or "0"


def generate_order_id() -> str:
    """Human-readable, time-derived id with a random suffix, e.g. ORD-2026-MGV1K2Q83F9A0C1D."""
    millis = int(time.time() * 1000)
    return f"ORD-{today().year}-{_base36(millis)}{secrets.token_hex(4).upper()}"


def _engine_flags() -> dict:
    return {"POD_DIRECT_APPROVAL": bool(current_app.config.get("POD_DIRECT_APPROVAL", True))}


def _order_key(order_id: str) -> str:
    return f"order:{order_id}"


def _coerce_lines(items: Iterable) -> list[LineRequest]:
    """Accept LineRequest objects or mappings with product_id/quantity."""
    lines: list[LineRequest] = []
    for raw in items or []:
        if isinstance(raw, LineRequest):
            line = raw
        elif isinstance(raw, Mapping):
            line = LineRequest(product_id=raw.get("product_id") or raw.get("id"), quantity=raw.get("quantity"))
        else:
            raise ValidationError("Each item must have product_id and quantity")

        if not line.product_id:
            raise ValidationError("product_id is required for every item")
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int):
            raise ValidationError(
                "quantity must be an integer",
                details={"product_id": line.product_id, "quantity": line.quantity},
            )
        if line.quantity <= 0:
            raise ValidationError(
                "quantity must be positive",
                details={"product_id": line.product_id, "quantity": line.quantity},
            )
        lines.append(line)

    if not lines:
        raise ValidationError("An order needs at least one item")
    return lines


def _aggregate(pairs) -> "OrderedDict[str, int]":
    """Sum quantities per product, keyed in sorted product id order."""
    totals: dict[str, int] = {}
    for product_id, quantity in pairs:
        totals[product_id] = totals.get(product_id, 0) + quantity
    return OrderedDict(sorted(totals.items()))


def _parse_payment_method(value) -> PaymentMethod:
    if isinstance(value, PaymentMethod):
        return value
    try:
        return PaymentMethod(value)
    except ValueError:
        pass
    # Also accept enum names ("BANK_TRANSFER") from API clients
    try:
        return PaymentMethod[str(value).upper()]
    except KeyError:
        raise ValidationError(
            f"Unknown payment method '{value}'",
            details={"allowed": [m.value for m in PaymentMethod]},
        )


def parse_status(value) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        pass
    try:
        return OrderStatus[str(value).upper()]
    except KeyError:
        raise ValidationError(
            f"Unknown order status '{value}'",
            details={"allowed": [s.value for s in OrderStatus]},
        )


def _append_timeline(order: Order, status: OrderStatus) -> None:
    """Set status and record it; the timeline's last entry always mirrors status."""
    seq = len(order.timeline) + 1
    order.timeline.append(OrderTimelineEntry(seq=seq, status=status.value, occurred_at=utcnow()))
    order.status = status.value


def _load_order_for_update(order_id: str) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
    return order


def _require_actor(user_id: str, action: str) -> User:
    actor = user_service.lookup_user(user_id)
    if not actor.is_active:
        raise PermissionDeniedError("Account is not active", details={"user_id": user_id})
    order_state.require_action_role(action, actor.role_enum)
    return actor


def _after_commit(action: str, actor_label: str, order_id: str, details: str,
                  notify_user_id: str | None = None, message: str | None = None) -> None:
    audit_service.append_entry(action=action, performed_by=actor_label, target_id=order_id, details=details)
    if notify_user_id and message:
        notification_service.notify(notify_user_id, message)


# =============================================================================
# ORDER CREATION
# =============================================================================

def create_order(
    user_id: str,
    items: Iterable,
    shipping_address: str,
    payment_method,
    *,
    total_amount=None,
) -> Order:
    """
    Create an order from cart lines and branch on payment method.

    Timeline on success:
        Order Received -> Invoice Generated -> Payment Confirmed   (online card)
        Order Received -> Invoice Generated -> Payment Pending     (bank transfer, pay on delivery)

    total_amount is the caller's cart total. The stored total is always the
    server-side sum of price_at_purchase * quantity; a mismatch is logged.

    Raises:
        ValidationError: bad input, or payment method disabled
        NotFoundError: unknown user or product
        PermissionDeniedError: inactive account or non-buyer role
        InsufficientStockError: a product cannot cover its requested quantity
        BelowMinimumOrderQuantityError: wholesale line below product MOQ
    """
    method = _parse_payment_method(payment_method)
    if method == PaymentMethod.PAY_ON_DELIVERY and not current_app.config.get("PAY_ON_DELIVERY_ENABLED", True):
        raise ValidationError("Pay on Delivery is not available")
    if not shipping_address or not str(shipping_address).strip():
        raise ValidationError("shipping_address is required")
    lines = _coerce_lines(items)

    buyer = user_service.lookup_user(user_id)
    if not buyer.is_active:
        raise PermissionDeniedError("Account pending verification. Please contact Admin.")
    if buyer.role_enum not in BUYER_ROLES:
        raise PermissionDeniedError(f"Role '{buyer.role}' cannot place orders")

    def _op(order_id: str):
        products = catalog_service.products_by_id(line.product_id for line in lines)
        missing = sorted({line.product_id for line in lines} - set(products))
        if missing:
            raise NotFoundError(f"Product {missing[0]} not found", details={"product_ids": missing})

        requested = _aggregate((line.product_id, line.quantity) for line in lines)
        short = [
            {
                "product_id": pid,
                "name": products[pid].name,
                "requested_quantity": qty,
                "on_hand": products[pid].stock,
            }
            for pid, qty in requested.items()
            if products[pid].stock < qty
        ]
        if short:
            raise InsufficientStockError(
                f"Insufficient stock for {short[0]['name']}",
                details={"items": short},
            )

        if buyer.is_wholesale:
            below = [
                {
                    "product_id": line.product_id,
                    "name": products[line.product_id].name,
                    "quantity": line.quantity,
                    "min_order_quantity": products[line.product_id].min_order_quantity,
                }
                for line in lines
                if line.quantity < products[line.product_id].min_order_quantity
            ]
            if below:
                first = below[0]
                raise BelowMinimumOrderQuantityError(
                    f"MOQ for {first['name']} is {first['min_order_quantity']} units for wholesale.",
                    details={"items": below},
                )

        order = Order(
            id=order_id,
            user_id=buyer.id,
            user_name=buyer.name,
            order_date=today(),
            shipping_address=str(shipping_address).strip(),
            payment_method=method.value,
            total_amount=Decimal("0"),
        )

        total = Decimal("0")
        for line in lines:
            price = products[line.product_id].unit_price_for(buyer.is_wholesale)
            order.items.append(OrderItem(
                product_id=line.product_id,
                quantity=line.quantity,
                price_at_purchase=price,
            ))
            total += price * line.quantity
        order.total_amount = total

        _append_timeline(order, OrderStatus.RECEIVED)

        # Invoice generation is an unconditional stamp
        order_state.require_transition(OrderStatus.RECEIVED, OrderStatus.INVOICE_GENERATED, method=method)
        order.invoice_ref = f"#generated-invoice-{order_id}"
        _append_timeline(order, OrderStatus.INVOICE_GENERATED)

        branch = (
            OrderStatus.PAYMENT_CONFIRMED if method == PaymentMethod.ONLINE_CARD else OrderStatus.PAYMENT_PENDING
        )
        order_state.require_transition(OrderStatus.INVOICE_GENERATED, branch, method=method)
        _append_timeline(order, branch)

        db.session.add(order)
        db.session.commit()
        return order

    for attempt in range(ORDER_ID_ATTEMPTS):
        order_id = generate_order_id()
        try:
            order = run_with_retry(lambda: _op(order_id))
            break
        except IntegrityError:
            # run_with_retry already rolled back; only an id clash is retried
            if attempt == ORDER_ID_ATTEMPTS - 1 or db.session.get(Order, order_id) is None:
                raise
            logger.warning("Order id %s already taken; generating a new one", order_id)

    if total_amount is not None:
        try:
            supplied = Decimal(str(total_amount))
        except ArithmeticError:
            supplied = None
        if supplied is None or supplied != order.total_amount:
            logger.warning(
                "Cart total %s differs from computed total %s for %s; using computed",
                total_amount, order.total_amount, order.id,
            )

    if method == PaymentMethod.ONLINE_CARD:
        message = f"Payment received via Paystack. Order #{order.id} confirmed."
    elif method == PaymentMethod.PAY_ON_DELIVERY:
        message = f"Order #{order.id} placed (Pay on Delivery). Awaiting Admin confirmation."
    else:
        message = f"Invoice generated. Please upload proof of payment for Order #{order.id}."

    _after_commit("CREATE_ORDER", buyer.email, order.id, f"Order created via {method.value}", buyer.id, message)
    return order


# =============================================================================
# PAYMENT HANDLING
# =============================================================================

def submit_payment_proof(order_id: str, user_id: str, proof_ref: str) -> Order:
    """
    Attach a payment proof reference to a bank-transfer order (Payment Pending -> Payment Review).

    Only the buyer who owns the order may submit. A previously rejected proof
    is overwritten by the new reference.
    """
    if not proof_ref or not str(proof_ref).strip():
        raise ValidationError("proof reference is required")

    actor = _require_actor(user_id, order_state.ACTION_SUBMIT_PROOF)

    def _op():
        order = _load_order_for_update(order_id)
        if order.user_id != actor.id:
            raise PermissionDeniedError("Only the buyer can submit payment proof for this order")

        if order.status_enum != OrderStatus.PAYMENT_PENDING:
            raise InvalidStateError(
                f"Order {order_id} is not awaiting payment",
                details={"current_status": order.status},
            )
        order_state.require_transition(
            order.status_enum, OrderStatus.PAYMENT_REVIEW,
            method=order.payment_method_enum, order_id=order_id,
        )

        order.payment_proof_ref = str(proof_ref).strip()
        _append_timeline(order, OrderStatus.PAYMENT_REVIEW)
        db.session.commit()
        return order

    with keyed_lock(_order_key(order_id)):
        order = run_with_retry(_op)

    _after_commit("UPLOAD_PROOF", actor.email, order.id, "Payment proof uploaded")
    return order


def verify_payment(order_id: str, admin_id: str, approved: bool) -> Order:
    """
    Admin decision on a submitted proof.

    approved=True  -> Payment Confirmed
    approved=False -> Payment Pending (proof reference kept; buyer must resubmit)
    """
    actor = _require_actor(admin_id, order_state.ACTION_VERIFY_PAYMENT)
    target = OrderStatus.PAYMENT_CONFIRMED if approved else OrderStatus.PAYMENT_PENDING

    def _op():
        order = _load_order_for_update(order_id)
        if order.status_enum != OrderStatus.PAYMENT_REVIEW:
            raise InvalidStateError(
                f"Order {order_id} has no payment awaiting review",
                details={"current_status": order.status},
            )
        order_state.require_transition(
            order.status_enum, target, method=order.payment_method_enum, order_id=order_id,
        )
        _append_timeline(order, target)
        db.session.commit()
        return order

    with keyed_lock(_order_key(order_id)):
        order = run_with_retry(_op)

    if approved:
        message = f"Payment verified for Order #{order.id}."
    else:
        message = f"Payment proof rejected for Order #{order.id}."
    _after_commit(
        "VERIFY_PAYMENT", actor.email, order.id,
        "Approved" if approved else "Rejected",
        order.user_id, message,
    )
    return order


# =============================================================================
# APPROVAL & INVENTORY SYNC
# =============================================================================

def approve_order(order_id: str, admin_id: str) -> Order:
    """
    Approve an order and deduct stock for every line (-> Order Approved).

    Eligible from Payment Confirmed, or from Payment Pending for pay-on-delivery
    orders when POD_DIRECT_APPROVAL is on.

    Stock is settled per product with a conditional decrement inside the same
    transaction as the status change. If any product is short, the whole
    transaction rolls back: no stock moves and the order keeps its status.

    Raises:
        NotFoundError, PermissionDeniedError
        InvalidStateError: already approved (or later), or cancelled
        PaymentNotSettledError: payment not confirmed yet
        InsufficientStockError: one or more products cannot cover the order
    """
    actor = _require_actor(admin_id, order_state.ACTION_APPROVE)
    flags = _engine_flags()

    def _op():
        order = _load_order_for_update(order_id)
        current = order.status_enum
        method = order.payment_method_enum

        if not order_state.can_transition(current, OrderStatus.ORDER_APPROVED, method=method, flags=flags):
            if current in AWAITING_PAYMENT:
                raise PaymentNotSettledError(
                    "Payment must be confirmed before approval (except Pay on Delivery).",
                    details={"current_status": current.value, "payment_method": method.value},
                )
            raise InvalidStateError(
                f"Order {order_id} cannot be approved from '{current.value}'",
                details={"current_status": current.value},
            )

        requested = _aggregate((item.product_id, item.quantity) for item in order.items)
        short = []
        for product_id, quantity in requested.items():
            if not catalog_service.try_settle(product_id, quantity):
                short.append({"product_id": product_id, "requested_quantity": quantity})

        if short:
            for entry in short:
                found = catalog_service.products_by_id([entry["product_id"]], refresh=True)
                product = found.get(entry["product_id"])
                entry["on_hand"] = product.stock if product else 0
                entry["name"] = product.name if product else None
            label = short[0]["name"] or short[0]["product_id"]
            raise InsufficientStockError(
                f"Insufficient stock for product {label}",
                details={"items": short},
            )

        _append_timeline(order, OrderStatus.ORDER_APPROVED)
        db.session.commit()
        return order

    with keyed_lock(_order_key(order_id)):
        order = run_with_retry(_op)

    _after_commit(
        "APPROVE_ORDER", actor.email, order.id, "Inventory synced. Order Approved.",
        order.user_id, f"Order #{order.id} approved and sent to logistics.",
    )
    return order


# =============================================================================
# LOGISTICS
# =============================================================================

def advance_logistics(order_id: str, staff_id: str, target_status) -> Order:
    """
    Move an approved order one fulfillment step forward.

    Order Approved -> Packed -> Dispatched -> Delivered; the target must be
    exactly the next step. Notifies the buyer on delivery.
    """
    target = parse_status(target_status)
    actor = _require_actor(staff_id, order_state.ACTION_LOGISTICS)

    def _op():
        order = _load_order_for_update(order_id)
        order_state.require_logistics_step(order.status_enum, target, order_id=order_id)
        _append_timeline(order, target)
        db.session.commit()
        return order

    with keyed_lock(_order_key(order_id)):
        order = run_with_retry(_op)

    message = None
    if target == OrderStatus.DELIVERED:
        message = f"Order #{order.id} has been delivered. Thank you!"
    _after_commit(
        "LOGISTICS_UPDATE", actor.email, order.id, f"Status updated to {target.value}",
        order.user_id, message,
    )
    return order


# =============================================================================
# QUERIES
# =============================================================================

def get_order(order_id: str, *, viewer: User | None = None) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
    if viewer is not None and viewer.role_enum in BUYER_ROLES and order.user_id != viewer.id:
        raise PermissionDeniedError("You can only view your own orders")
    return order


def list_orders(
    *,
    viewer: User | None = None,
    status=None,
    limit: int = 200,
) -> list[Order]:
    """Buyers see their own orders; staff see everything. Newest first."""
    q = db.session.query(Order)
    if viewer is not None and viewer.role_enum in BUYER_ROLES:
        q = q.filter(Order.user_id == viewer.id)
    if status is not None:
        q = q.filter(Order.status == parse_status(status).value)
    return q.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()
