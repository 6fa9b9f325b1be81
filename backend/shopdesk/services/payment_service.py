# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Service - credit ledger

WHY: Credit sales are settled over time. Each payment lowers the sale's
outstanding balance and leaves an immutable Payment record behind.

DESIGN PRINCIPLES:
- Payments are separate from sales (many-to-one relationship)
- Only sales opened on credit accept payments
- A payment never exceeds what is still owed, so paid_amount <= total
- A paid sale is closed: further payments are refused
- The sale is re-read under lock inside the transaction, so two concurrent
  payments against one sale are applied one after the other
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from flask import current_app
from sqlalchemy import or_

from ..errors import (
    InvalidAmount,
    NotOnCredit,
    PaymentAlreadyRecorded,
    PaymentExceedsBalance,
    SaleAlreadyPaid,
    SaleNotFound,
    ValidationError,
)
from ..extensions import db
from ..models import Payment, Sale
from ..models.sales import SALE_STATUS_PAID
from ..time_utils import utcnow
from ..validation import MAX_MONEY, optional_text, quantize_money, to_decimal
from . import customer_service
from .concurrency import lock_for_update, unit_of_work
from .identity_service import (
    EntityRef,
    LegacyRef,
    entity_ref,
    identity_filter,
    join_ref,
    parse_optional_ref,
    parse_ref,
    ref_filter,
    split_ref,
)
from .sales_service import customer_clause, derive_status, get_sale, sale_customer_ref


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def _validate_amount(amount: Any) -> Decimal:
    value = to_decimal(amount, "amount", error=InvalidAmount)
    if value <= 0 or value > MAX_MONEY:
        raise InvalidAmount("Payment amount must be positive", details={"amount": str(amount)})
    value = quantize_money(value)
    if value <= 0:
        raise InvalidAmount("Payment amount is below the smallest currency unit", details={"amount": str(amount)})
    return value


def _apply_payment(sale: Sale, amount: Decimal) -> None:
    """
    Move `amount` from outstanding to paid and recompute the status.

    STATE MACHINE: pending -> partially_paid -> paid (terminal)
    """
    outstanding = Decimal(sale.outstanding_amount or 0)
    if sale.status == SALE_STATUS_PAID or outstanding <= 0:
        raise SaleAlreadyPaid(
            f"Sale {sale.id} is already paid",
            details={"sale_id": sale.id},
        )
    if amount > outstanding:
        raise PaymentExceedsBalance(
            "Payment exceeds the outstanding balance",
            details={"sale_id": sale.id, "amount": amount, "outstanding_amount": outstanding},
        )

    sale.paid_amount = quantize_money(Decimal(sale.paid_amount or 0) + amount)
    sale.outstanding_amount = max(Decimal("0.00"), quantize_money(outstanding - amount))
    sale.status = derive_status(sale.paid_amount, sale.outstanding_amount)
    sale.updated_at = utcnow()


def _migrated_payment_key(legacy_id: Any) -> int | None:
    """Validate the relational-store key of a payment being imported."""
    ref = parse_optional_ref(legacy_id)
    if ref is None:
        return None
    if not isinstance(ref, LegacyRef):
        raise ValidationError(
            "legacy_id must be a non-negative integer",
            details={"legacy_id": str(legacy_id)},
        )
    existing = db.session.query(Payment).filter(Payment.legacy_id == ref.value).first()
    if existing is not None:
        raise PaymentAlreadyRecorded(
            f"Payment with legacy id {ref.value} already recorded",
            details={"legacy_id": ref.value, "payment_id": existing.id},
        )
    return ref.value


def record_payment(
    sale_ref: Any,
    amount: Any,
    note: str | None = None,
    *,
    customer_ref: Any = None,
    legacy_id: Any = None,
) -> tuple[Payment, Sale]:
    """
    Apply a payment to a credit sale.

    Args:
        sale_ref: sale reference (native or legacy id)
        amount: amount paid, > 0 and <= outstanding
        note: optional free text
        customer_ref: payer; defaults to the sale's customer
        legacy_id: key of a payment migrated from the relational store

    Returns:
        (payment, refreshed sale)

    Raises:
        InvalidAmount, ValidationError, SaleNotFound, NotOnCredit, SaleAlreadyPaid,
        PaymentExceedsBalance, PaymentAlreadyRecorded, TransactionAborted
    """
    value = _validate_amount(amount)
    note = optional_text(note, "note")
    payment_key = _migrated_payment_key(legacy_id)

    ref = parse_ref(sale_ref)
    sale = get_sale(ref)
    if sale is None:
        raise SaleNotFound(f"Sale not found (id={ref})", details={"id": str(ref)})
    if not sale.on_credit:
        raise NotOnCredit(f"Sale {sale.id} is not on credit", details={"sale_id": sale.id})

    payer = parse_optional_ref(customer_ref) or sale_customer_ref(sale)
    payer_native, payer_legacy = split_ref(payer)
    sale_id = sale.id

    with unit_of_work("record_payment"):
        # Re-read under lock; the snapshot above may already be stale
        sale = lock_for_update(db.session.query(Sale).filter(Sale.id == sale_id)).first()
        if sale is None:
            raise SaleNotFound(f"Sale not found (id={ref})", details={"id": str(ref)})
        if not sale.on_credit:
            raise NotOnCredit(f"Sale {sale.id} is not on credit", details={"sale_id": sale.id})

        _apply_payment(sale, value)

        payment = Payment(
            legacy_id=payment_key,
            sale_ref=sale.id,
            legacy_sale_id=sale.legacy_id,
            customer_ref=payer_native,
            legacy_customer_id=payer_legacy,
            amount=value,
            note=note,
            created_at=utcnow(),
        )
        db.session.add(payment)
        db.session.flush()

    current_app.logger.info(
        "Payment %s of %s recorded on sale %s: outstanding=%s status=%s",
        payment.id, payment.amount, sale.id, sale.outstanding_amount, sale.status,
    )
    return payment, sale


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

def get_payment(ref: Any) -> Payment | None:
    """Payment by native id or migrated payment key."""
    payment_ref = parse_ref(ref)
    return db.session.query(Payment).filter(identity_filter(Payment, payment_ref)).first()


def payment_sale(payment: Payment) -> Sale | None:
    ref = join_ref(payment.sale_ref, payment.legacy_sale_id)
    return get_sale(ref) if ref is not None else None


def payment_customer_ref(payment: Payment) -> EntityRef | None:
    return join_ref(payment.customer_ref, payment.legacy_customer_id)


def serialize_payment(payment: Payment) -> dict:
    """Payment plus sale total / credit flag and customer name, best effort."""
    data = payment.to_dict()
    sale = payment_sale(payment)
    customer = customer_service.find_customer(payment_customer_ref(payment))
    data["sale_total"] = sale.total if sale else None
    data["sale_on_credit"] = sale.on_credit if sale else None
    data["customer_name"] = customer.name if customer else None
    return data


def _sale_clause(ref: EntityRef):
    sale = get_sale(ref)
    if sale is None:
        return ref_filter(ref, Payment.sale_ref, Payment.legacy_sale_id)
    clauses = [Payment.sale_ref == sale.id]
    if sale.legacy_id is not None:
        clauses.append(Payment.legacy_sale_id == sale.legacy_id)
    return or_(*clauses)


def list_payments(
    *,
    sale_ref: Any = None,
    customer_ref: Any = None,
    legacy_id: Any = None,
    limit: int = 200,
    offset: int = 0,
) -> list[Payment]:
    """Payments newest first, optionally for one sale and/or one customer."""
    query = db.session.query(Payment)

    sale = parse_optional_ref(sale_ref)
    if sale is not None:
        query = query.filter(_sale_clause(sale))

    customer = parse_optional_ref(customer_ref)
    if customer is not None:
        query = query.filter(customer_clause(customer, Payment.customer_ref, Payment.legacy_customer_id))

    return (
        query.order_by(Payment.created_at.desc(), Payment.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def get_sale_payments(sale: Sale) -> list[Payment]:
    """All payments of a sale, oldest first."""
    return (
        db.session.query(Payment)
        .filter(_sale_clause(entity_ref(sale)))
        .order_by(Payment.created_at.asc(), Payment.id.asc())
        .all()
    )
