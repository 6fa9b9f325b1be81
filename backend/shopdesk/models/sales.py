from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..services.identity_service import new_native_id
from ..time_utils import to_utc_z, utcnow


ITEM_TYPE_PRODUCT = "product"
ITEM_TYPE_SERVICE = "service"

SALE_STATUS_PENDING = "pending"
SALE_STATUS_PARTIALLY_PAID = "partially_paid"
SALE_STATUS_PAID = "paid"


@dataclass(frozen=True)
class SaleLine:
    """
    One embedded line of a sale.

    Lines have no table of their own: they are stored inside the sale's
    `items` JSON array and are written exactly once, with the sale.
    Exactly one of the product/service reference pairs is used.
    """
    item_type: str
    qty: Decimal
    unit_price: Decimal
    unit_cost: Decimal
    line_total: Decimal
    product_ref: str | None = None
    legacy_product_id: int | None = None
    service_ref: str | None = None
    legacy_service_id: int | None = None
    created_at: datetime = field(default_factory=utcnow)

    def to_document(self) -> dict:
        """JSON-safe form for the `items` column (decimals as strings)."""
        return {
            "item_type": self.item_type,
            "product_ref": self.product_ref,
            "legacy_product_id": self.legacy_product_id,
            "service_ref": self.service_ref,
            "legacy_service_id": self.legacy_service_id,
            "qty": str(self.qty),
            "unit_price": str(self.unit_price),
            "unit_cost": str(self.unit_cost),
            "line_total": str(self.line_total),
            "created_at": to_utc_z(self.created_at),
        }

    @classmethod
    def from_document(cls, doc: dict) -> "SaleLine":
        created = doc.get("created_at")
        return cls(
            item_type=doc["item_type"],
            product_ref=doc.get("product_ref"),
            legacy_product_id=doc.get("legacy_product_id"),
            service_ref=doc.get("service_ref"),
            legacy_service_id=doc.get("legacy_service_id"),
            qty=Decimal(doc["qty"]),
            unit_price=Decimal(doc["unit_price"]),
            unit_cost=Decimal(doc["unit_cost"]),
            line_total=Decimal(doc["line_total"]),
            created_at=datetime.fromisoformat(created.replace("Z", "+00:00")).replace(tzinfo=None) if created else None,
        )

    def to_dict(self) -> dict:
        return {
            "item_type": self.item_type,
            "product_ref": self.product_ref,
            "legacy_product_id": self.legacy_product_id,
            "service_ref": self.service_ref,
            "legacy_service_id": self.legacy_service_id,
            "qty": self.qty,
            "unit_price": self.unit_price,
            "unit_cost": self.unit_cost,
            "line_total": self.line_total,
            "created_at": to_utc_z(self.created_at),
        }


class Sale(db.Model):
    """
    Sale document with embedded line items.

    WHY: A sale and its lines are one unit. They are created together in a
    single transaction and lines are never edited afterwards.

    BALANCE: paid_amount / outstanding_amount / status are only changed by
    the credit ledger (payment_service.record_payment). version_id gives
    optimistic locking on top of the row lock taken there.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_created", "created_at"),
        db.Index("ix_sales_customer_ref", "customer_ref"),
        db.Index("ix_sales_legacy_customer", "legacy_customer_id"),
        db.Index("ix_sales_credit_outstanding", "on_credit", "outstanding_amount"),
    )

    id = db.Column(db.String(24), primary_key=True, default=new_native_id)
    legacy_id = db.Column(db.Integer, nullable=True, unique=True, index=True)

    items = db.Column(db.JSON, nullable=False, default=list)

    # Customer reference: native/raw id or legacy key (at most one set)
    customer_ref = db.Column(db.String(64), nullable=True)
    legacy_customer_id = db.Column(db.Integer, nullable=True)

    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_items = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    outstanding_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    on_credit = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_PENDING, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def lines(self) -> list[SaleLine]:
        return [SaleLine.from_document(doc) for doc in (self.items or [])]

    def __repr__(self) -> str:
        return f"<Sale id={self.id} total={self.total} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "legacy_id": self.legacy_id,
            "items": [line.to_dict() for line in self.lines],
            "customer_ref": self.customer_ref,
            "legacy_customer_id": self.legacy_customer_id,
            "total": self.total,
            "total_items": self.total_items,
            "paid_amount": self.paid_amount,
            "outstanding_amount": self.outstanding_amount,
            "on_credit": self.on_credit,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class Payment(db.Model):
    """
    Payment applied to a credit sale.

    IMMUTABLE: one row per successful payment, never updated afterwards.
    The sale is referenced by native id and, for migrated sales, also by its
    legacy key so either scheme finds it.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_created", "created_at"),
    )

    id = db.Column(db.String(24), primary_key=True, default=new_native_id)
    # Migrated payment key
    legacy_id = db.Column(db.Integer, nullable=True, unique=True, index=True)

    sale_ref = db.Column(db.String(64), nullable=True, index=True)
    legacy_sale_id = db.Column(db.Integer, nullable=True, index=True)

    customer_ref = db.Column(db.String(64), nullable=True, index=True)
    legacy_customer_id = db.Column(db.Integer, nullable=True, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "legacy_id": self.legacy_id,
            "sale_ref": self.sale_ref,
            "legacy_sale_id": self.legacy_sale_id,
            "customer_ref": self.customer_ref,
            "legacy_customer_id": self.legacy_customer_id,
            "amount": self.amount,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
