# Overview: Service-layer operations for the catalog store; lookups and atomic stock settlement.

"""
Catalog Store

Invariants:
- Product.stock >= 0 at all times.
- The only stock writer is try_settle(), called by the order engine's
  approval step. It is a single conditional UPDATE, so concurrent callers
  can never interleave a read and a write on the same row.
- try_settle() does not commit; the caller owns the transaction so several
  settlements can succeed or fail together.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import update

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Product


logger = logging.getLogger(__name__)


def lookup_product(product_id: str) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def list_products(*, category: str | None = None, search: str | None = None) -> list[Product]:
    q = db.session.query(Product)
    if category:
        q = q.filter(Product.category == category)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(db.or_(Product.name.ilike(like), Product.sku.ilike(like), Product.category.ilike(like)))
    return q.order_by(Product.name.asc()).all()


def products_by_id(product_ids, *, refresh: bool = False) -> dict[str, Product]:
    """
    Bulk lookup used for price capture at order creation.

    refresh=True overwrites rows already in the session with database values,
    needed after try_settle() since it bypasses the identity map.
    """
    ids = set(product_ids)
    if not ids:
        return {}
    q = db.session.query(Product).filter(Product.id.in_(ids))
    if refresh:
        q = q.populate_existing()
    return {p.id: p for p in q.all()}


def try_settle(product_id: str, quantity: int) -> bool:
    """
    Atomically decrement stock by quantity if, and only if, enough is on hand.

    Returns True when the row was decremented, False when stock was short
    (or the product does not exist). Runs inside the caller's transaction.
    """
    if quantity <= 0:
        raise ValidationError("Settlement quantity must be positive", details={"quantity": quantity})

    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    settled = result.rowcount == 1
    if not settled:
        logger.info("Stock settlement refused for %s (requested %d)", product_id, quantity)
    return settled


def create_product(
    *,
    product_id: str,
    sku: str,
    name: str,
    category: str,
    price,
    wholesale_price,
    stock: int = 0,
    requires_prescription: bool = False,
    min_order_quantity: int = 1,
    description: str | None = None,
    pack_size: str | None = None,
) -> Product:
    """Catalog seeding. Not used by the order engine."""
    if stock < 0:
        raise ValidationError("stock cannot be negative")
    if min_order_quantity < 1:
        raise ValidationError("min_order_quantity must be at least 1")

    product = Product(
        id=product_id,
        sku=sku,
        name=name,
        category=category,
        description=description,
        pack_size=pack_size,
        price=Decimal(str(price)),
        wholesale_price=Decimal(str(wholesale_price)),
        stock=stock,
        requires_prescription=requires_prescription,
        min_order_quantity=min_order_quantity,
    )
    db.session.add(product)
    db.session.commit()
    return product
