from __future__ import annotations

import enum

from ..extensions import db
from app.time_utils import to_utc_z


class OrderStatus(str, enum.Enum):
    RECEIVED = "Order Received"
    INVOICE_GENERATED = "Invoice Generated"
    PAYMENT_PENDING = "Payment Pending"
    PAYMENT_REVIEW = "Payment Review"
    PAYMENT_CONFIRMED = "Payment Confirmed"
    ORDER_APPROVED = "Order Approved"
    PACKED = "Packed"
    DISPATCHED = "Dispatched"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class PaymentMethod(str, enum.Enum):
    ONLINE_CARD = "Paystack (Online)"
    BANK_TRANSFER = "Bank Transfer"
    PAY_ON_DELIVERY = "Pay on Delivery"


class Order(db.Model):
    """
    Checkout order document.

    LIFECYCLE: see services/order_state.py for the transition table.
    Orders are never deleted; Cancelled is a terminal status.

    INVARIANTS:
    - timeline is non-empty and its last entry's status equals status
    - total_amount is computed once at creation from price_at_purchase
    - version_id is bumped on every update; a concurrent writer that read
      an older version flushes zero rows and gets StaleDataError
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        db.Index("ix_orders_status_created", "status", "created_at"),
    )

    # Human-readable, time-derived (e.g., "ORD-2026-LZ4K9Q3F")
    id = db.Column(db.String(64), primary_key=True)

    user_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False, index=True)
    user_name = db.Column(db.String(255), nullable=False)

    total_amount = db.Column(db.Numeric(14, 2), nullable=False)
    status = db.Column(db.String(32), nullable=False, index=True)

    order_date = db.Column(db.Date, nullable=False)
    shipping_address = db.Column(db.Text, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)

    # Opaque references; no file storage behind them
    payment_proof_ref = db.Column(db.String(1024), nullable=True)
    invoice_ref = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy="selectin",
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )
    timeline = db.relationship(
        "OrderTimelineEntry",
        backref="order",
        lazy="selectin",
        order_by="OrderTimelineEntry.seq",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def status_enum(self) -> OrderStatus:
        return OrderStatus(self.status)

    @property
    def payment_method_enum(self) -> PaymentMethod:
        return PaymentMethod(self.payment_method)

    def __repr__(self) -> str:
        return f"<Order id={self.id!r} status={self.status!r} v={self.version_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "items": [item.to_dict() for item in self.items],
            "total_amount": str(self.total_amount),
            "status": self.status,
            "date": self.order_date.isoformat() if self.order_date else None,
            "shipping_address": self.shipping_address,
            "payment_method": self.payment_method,
            "payment_proof_ref": self.payment_proof_ref,
            "invoice_ref": self.invoice_ref,
            "timeline": [entry.to_dict() for entry in self.timeline],
            "version_id": self.version_id,
        }


class OrderItem(db.Model):
    """Line item; price_at_purchase is captured at creation and never changes."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(64), db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price_at_purchase = db.Column(db.Numeric(12, 2), nullable=False)

    product = db.relationship("Product")

    @property
    def line_total(self):
        return self.price_at_purchase * self.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price_at_purchase": str(self.price_at_purchase),
        }


class OrderTimelineEntry(db.Model):
    """Append-only (status, timestamp) history; seq is 1-based per order."""
    __tablename__ = "order_timeline"
    __table_args__ = (
        db.UniqueConstraint("order_id", "seq", name="uq_order_timeline_order_seq"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(64), db.ForeignKey("orders.id"), nullable=False, index=True)
    seq = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(32), nullable=False)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "timestamp": to_utc_z(self.occurred_at),
        }
