from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from app.time_utils import to_utc_z


class Product(db.Model):
    """
    Catalog product record.

    STOCK INVARIANT: stock >= 0 at all times. The only writer is the order
    engine's approval step, which uses a conditional decrement
    (see catalog_service.try_settle). The CHECK constraint is the last line
    of defence if anything else ever writes the column.

    PRICING:
    - price is the retail (Public) price
    - wholesale_price applies to Wholesale buyers
    - min_order_quantity applies to Wholesale buyers only
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("min_order_quantity >= 1", name="ck_products_moq_positive"),
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_category_name", "category", "name"),
    )

    id = db.Column(db.String(64), primary_key=True)
    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    pack_size = db.Column(db.String(64), nullable=True)

    price = db.Column(db.Numeric(12, 2), nullable=False)
    wholesale_price = db.Column(db.Numeric(12, 2), nullable=False)

    stock = db.Column(db.Integer, nullable=False, default=0)
    requires_prescription = db.Column(db.Boolean, nullable=False, default=False)
    min_order_quantity = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id!r} sku={self.sku!r} stock={self.stock}>"

    def unit_price_for(self, is_wholesale: bool) -> Decimal:
        return Decimal(self.wholesale_price if is_wholesale else self.price)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "pack_size": self.pack_size,
            "price": str(self.price),
            "wholesale_price": str(self.wholesale_price),
            "stock": self.stock,
            "requires_prescription": self.requires_prescription,
            "min_order_quantity": self.min_order_quantity,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
