from __future__ import annotations

from ..extensions import db
from ..services.identity_service import new_native_id
from ..time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer directory entry.

    Read-only from the sales engine's point of view: sales and payments only
    reference customers and attach the display name for convenience.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
    )

    id = db.Column(db.String(24), primary_key=True, default=new_native_id)
    legacy_id = db.Column(db.Integer, nullable=True, unique=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True, index=True)
    phone = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "legacy_id": self.legacy_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
