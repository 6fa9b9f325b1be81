from __future__ import annotations

from ..extensions import db
from ..services.identity_service import new_native_id
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data.

    IDENTITY: `id` is the native 24-hex document id. Rows migrated from the
    old relational store keep their integer key in `legacy_id`, which is what
    older clients still send.

    STOCK: NULL means the product is not stock-tracked. Sales never touch the
    stock of an untracked product. Stock is only changed through
    catalog_service.adjust_stock (atomic increment inside the caller's
    transaction).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
    )

    id = db.Column(db.String(24), primary_key=True, default=new_native_id)
    legacy_id = db.Column(db.Integer, nullable=True, unique=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    brand = db.Column(db.String(120), nullable=True)
    category = db.Column(db.String(120), nullable=True, index=True)

    price = db.Column(db.Numeric(12, 2), nullable=True)
    cost = db.Column(db.Numeric(12, 2), nullable=True)
    stock = db.Column(db.Numeric(12, 3), nullable=True)

    # Free-form expiry marker (ISO date or text), read by the alerts scanner
    expires_on = db.Column(db.String(32), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def tracks_stock(self) -> bool:
        return self.stock is not None

    def __repr__(self) -> str:
        return f"<Product id={self.id} legacy_id={self.legacy_id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "legacy_id": self.legacy_id,
            "name": self.name,
            "brand": self.brand,
            "category": self.category,
            "price": self.price,
            "cost": self.cost,
            "stock": self.stock,
            "expires_on": self.expires_on,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
