# Overview: Service-layer operations for sales; encapsulates business logic and database work.

"""
Sales Service - atomic multi-line sale creation

FLOW:
1. Validate and price every cart line (no writes, first failure wins)
2. Compute totals and the initial credit position
3. One unit of work: insert the sale with its embedded lines and decrement
   stock for every product line. Commit or roll back as a whole.

A sale is never edited afterwards except by the credit ledger
(payment_service.record_payment).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable

from flask import current_app
from sqlalchemy import and_, func, or_

from ..errors import EmptyCart, InsufficientStock, InvalidAmount, SaleTooLarge, ValidationError
from ..extensions import db
from ..models import Sale
from ..models.sales import SALE_STATUS_PAID, SALE_STATUS_PARTIALLY_PAID, SALE_STATUS_PENDING
from ..time_utils import end_of_day, parse_iso_datetime, utcnow
from ..validation import MAX_MONEY, MAX_QTY, quantize_money, to_decimal
from . import catalog_service, customer_service
from .concurrency import unit_of_work
from .identity_service import (
    EntityRef,
    entity_ref,
    identity_filter,
    join_ref,
    parse_optional_ref,
    parse_ref,
    ref_filter,
    split_ref,
)
from .pricing_service import CartEntry, LineItemPricer, PricedLine


ZERO = Decimal("0.00")


def get_pricer() -> LineItemPricer:
    """Pricer built by create_app from the configured cost policy."""
    return current_app.extensions["shopdesk.pricer"]


def derive_status(paid_amount: Decimal, outstanding_amount: Decimal) -> str:
    """
    Payment status from the balance.

    - paid: nothing outstanding
    - partially_paid: something paid, something outstanding
    - pending: nothing paid yet
    """
    if outstanding_amount <= 0:
        return SALE_STATUS_PAID
    if paid_amount > 0:
        return SALE_STATUS_PARTIALLY_PAID
    return SALE_STATUS_PENDING


def _validate_on_hand(priced: list[PricedLine]) -> None:
    """Advisory check of the summed quantity per product (duplicate lines)."""
    requested: dict[str, Decimal] = {}
    products = {}
    for p in priced:
        if p.product is None or not p.product.tracks_stock:
            continue
        requested[p.product.id] = requested.get(p.product.id, ZERO) + p.line.qty
        products[p.product.id] = p.product

    insufficient = []
    for product_id, qty in requested.items():
        on_hand = products[product_id].stock
        if on_hand < qty:
            insufficient.append({
                "product_id": product_id,
                "requested_quantity": qty,
                "on_hand": on_hand,
            })

    if insufficient:
        raise InsufficientStock(
            "Insufficient stock to complete sale",
            details={"items": insufficient},
        )


def create_sale(
    cart: Iterable[Any] | None,
    *,
    customer_ref: Any = None,
    on_credit: bool = False,
    initial_paid_amount: Any = 0,
    pricer: LineItemPricer | None = None,
    strict_stock: bool | None = None,
) -> Sale:
    """
    Create a sale from a cart and decrement stock, atomically.

    Args:
        cart: CartEntry objects or API dicts {id, qty, unit_price?, type?}
        customer_ref: optional customer reference (native or legacy id)
        on_credit: leave the unpaid part as an outstanding balance
        initial_paid_amount: amount paid up front on a credit sale (capped at total)
        pricer: overrides the application's pricer (cost policy)
        strict_stock: overrides STRICT_STOCK_DECREMENT

    Raises:
        EmptyCart, InvalidQuantity, InvalidPrice, InvalidAmount, SaleTooLarge, ProductNotFound,
        InsufficientStock: before anything is written
        TransactionAborted: storage failure, fully rolled back
    """
    if not cart or isinstance(cart, (str, bytes, dict)):
        raise EmptyCart("Cart is empty")
    entries = [e if isinstance(e, CartEntry) else CartEntry.from_payload(e) for e in cart]
    if not entries:
        raise EmptyCart("Cart is empty")

    initial_paid = to_decimal(
        initial_paid_amount if initial_paid_amount is not None else 0,
        "initial_paid_amount",
        error=InvalidAmount,
    )
    if initial_paid < 0 or initial_paid > MAX_MONEY:
        raise InvalidAmount(
            "Initial paid amount must be between 0 and the largest storable amount",
            details={"initial_paid_amount": str(initial_paid_amount)},
        )

    pricer = pricer or get_pricer()
    priced = [pricer.price(entry) for entry in entries]
    _validate_on_hand(priced)

    total = quantize_money(sum((p.line.line_total for p in priced), ZERO))
    total_items = sum((p.line.qty for p in priced), Decimal("0"))
    if total > MAX_MONEY or total_items > MAX_QTY:
        raise SaleTooLarge(
            "Sale total or item count is too large",
            details={"total": str(total), "total_items": str(total_items)},
        )

    on_credit = bool(on_credit)
    if on_credit:
        paid_amount = min(quantize_money(initial_paid), total)
        outstanding_amount = max(ZERO, total - paid_amount)
    else:
        paid_amount = total
        outstanding_amount = ZERO

    customer = parse_optional_ref(customer_ref)
    customer_native, customer_legacy = split_ref(customer)

    if strict_stock is None:
        strict_stock = bool(current_app.config.get("STRICT_STOCK_DECREMENT", False))

    now = utcnow()
    with unit_of_work("create_sale"):
        sale = Sale(
            items=[p.line.to_document() for p in priced],
            customer_ref=customer_native,
            legacy_customer_id=customer_legacy,
            total=total,
            total_items=total_items,
            paid_amount=paid_amount,
            outstanding_amount=outstanding_amount,
            on_credit=on_credit,
            status=derive_status(paid_amount, outstanding_amount),
            created_at=now,
            updated_at=now,
        )
        db.session.add(sale)
        db.session.flush()

        for p in priced:
            if p.product is not None:
                catalog_service.adjust_stock(
                    entity_ref(p.product),
                    -p.line.qty,
                    require_available=strict_stock,
                )

    current_app.logger.info(
        "Sale %s created: %d lines, total=%s, on_credit=%s, status=%s",
        sale.id, len(priced), sale.total, sale.on_credit, sale.status,
    )
    return sale


def get_sale(ref: Any) -> Sale | None:
    """Sale by native id, legacy id or literal id; None if absent."""
    sale_ref = parse_ref(ref)
    return db.session.query(Sale).filter(identity_filter(Sale, sale_ref)).first()


def sale_customer_ref(sale: Sale) -> EntityRef | None:
    return join_ref(sale.customer_ref, sale.legacy_customer_id)


def serialize_sale(sale: Sale) -> dict:
    """Sale with its lines and, best effort, its customer."""
    data = sale.to_dict()
    customer = customer_service.find_customer(sale_customer_ref(sale))
    data["customer"] = customer.to_dict() if customer else None
    return data


def customer_clause(ref: EntityRef, native_col, legacy_col):
    """
    Match a customer reference held in (native_col, legacy_col).

    When the directory knows the customer, both of its ids match, so a sale
    recorded with the legacy key is found by the native id and vice versa.
    """
    customer = customer_service.find_customer(ref)
    if customer is None:
        return ref_filter(ref, native_col, legacy_col)
    clauses = [native_col == customer.id]
    if customer.legacy_id is not None:
        clauses.append(legacy_col == customer.legacy_id)
    return or_(*clauses)


def _parse_bound(value: Any, field: str, *, end: bool = False) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        parsed = parse_iso_datetime(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date", details={"field": field, "value": value})
    # Date-only upper bound includes the whole day
    if end and parsed is not None and len(str(value).strip()) == 10:
        return end_of_day(parsed)
    return parsed


def list_sales(
    *,
    date_from: Any = None,
    date_to: Any = None,
    limit: int = 100,
    offset: int = 0,
    customer_ref: Any = None,
    credit_only: bool = False,
) -> list[Sale]:
    """
    Sales newest first.

    credit_only keeps credit sales that still have an outstanding balance.
    """
    query = db.session.query(Sale)

    start = _parse_bound(date_from, "from")
    stop = _parse_bound(date_to, "to", end=True)
    if start is not None:
        query = query.filter(Sale.created_at >= start)
    if stop is not None:
        query = query.filter(Sale.created_at <= stop)

    customer = parse_optional_ref(customer_ref)
    if customer is not None:
        query = query.filter(customer_clause(customer, Sale.customer_ref, Sale.legacy_customer_id))

    if credit_only:
        query = query.filter(and_(Sale.on_credit.is_(True), Sale.outstanding_amount > 0))

    return (
        query.order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def get_customer_outstanding(customer_ref: Any) -> dict:
    """Open credit of a customer: summed outstanding and number of open sales."""
    customer = parse_ref(customer_ref)
    total_outstanding, pending_sales = (
        db.session.query(
            func.coalesce(func.sum(Sale.outstanding_amount), 0),
            func.count(Sale.id),
        )
        .filter(
            customer_clause(customer, Sale.customer_ref, Sale.legacy_customer_id),
            Sale.on_credit.is_(True),
            Sale.outstanding_amount > 0,
        )
        .one()
    )
    return {
        "customer_ref": str(customer),
        "total_outstanding": quantize_money(Decimal(str(total_outstanding))),
        "pending_sales": int(pending_sales),
    }
