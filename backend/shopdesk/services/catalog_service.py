# Overview: Service-layer access to the product catalog used by the sales engine.

"""
Catalog Service - product reads and stock adjustments

STOCK WRITES: adjust_stock is a single UPDATE ... SET stock = stock + :delta.
It never reads the value first, so two sales of the same product cannot lose
each other's decrement. It also bumps version_id, so an ORM write holding an
older copy of the product fails its version check. It runs in whatever
transaction the caller has open and becomes visible only when that
transaction commits.

READ-YOUR-WRITES: get_product always refreshes from the database, so a read
after adjust_stock in the same transaction sees the new stock.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from flask import current_app
from sqlalchemy import update

from ..errors import InsufficientStock
from ..extensions import db
from ..models import Product
from .identity_service import EntityRef, identity_filter, parse_ref


def get_product(ref: Any) -> Product | None:
    """Product by native id, legacy id or literal id; None if absent."""
    product_ref = parse_ref(ref)
    return (
        db.session.query(Product)
        .filter(identity_filter(Product, product_ref))
        .populate_existing()
        .first()
    )


def adjust_stock(ref: EntityRef | str | int, delta: Decimal, *, require_available: bool = False) -> Decimal | None:
    """
    Atomically add `delta` to a product's stock.

    No-op for untracked stock (NULL) and unknown products; returns the stock
    after the change, or None when nothing was tracked.

    require_available: for decrements, only apply while stock >= -delta and
    raise InsufficientStock otherwise (the caller's transaction then rolls
    back as a whole).
    """
    product_ref = parse_ref(ref)
    criteria = [identity_filter(Product, product_ref), Product.stock.isnot(None)]
    if require_available and delta < 0:
        criteria.append(Product.stock >= -delta)

    stmt = (
        update(Product)
        .where(*criteria)
        .values(stock=Product.stock + delta, version_id=Product.version_id + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)

    product = get_product(product_ref)
    if result.rowcount == 0:
        if require_available and product is not None and product.tracks_stock:
            raise InsufficientStock(
                f"Insufficient stock for {product.name}",
                details={
                    "product_id": product.id,
                    "requested_quantity": -delta,
                    "on_hand": product.stock,
                },
            )
        return None

    if product is not None and product.stock is not None and product.stock < 0:
        current_app.logger.warning(
            "Oversell on product %s (%s): stock is now %s",
            product.id, product.name, product.stock,
        )
    return product.stock if product is not None else None
