# Overview: Line-item pricing and validation for new sales.

"""
Pricing Service - turns cart entries into validated sale lines

One entry -> one SaleLine plus the resolved product (for the stock
decrement that follows). Validation happens against the catalog as it is
right now, outside any write lock: the stock check here is advisory, the
authoritative protection is the atomic decrement in catalog_service.

COST POLICY: products without a stored cost get either 0 or the selling
price as unit cost. The policy is fixed when the pricer is built.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping

from ..errors import InsufficientStock, InvalidPrice, InvalidQuantity, ProductNotFound, ValidationError
from ..models import Product, SaleLine
from ..models.sales import ITEM_TYPE_PRODUCT, ITEM_TYPE_SERVICE
from ..validation import MAX_MONEY, MAX_QTY, quantize_money, quantize_qty, to_decimal
from . import catalog_service
from .identity_service import EntityRef, parse_ref, split_ref


VALID_ITEM_TYPES = (ITEM_TYPE_PRODUCT, ITEM_TYPE_SERVICE)

# Unit price override; older clients send `precio`
PRICE_KEYS = ("unit_price", "price", "precio")


class CostPolicy(str, enum.Enum):
    ZERO = "zero"
    SELL_PRICE = "sell_price"

    @classmethod
    def from_flag(cls, use_sell_price_as_cost: bool) -> "CostPolicy":
        return cls.SELL_PRICE if use_sell_price_as_cost else cls.ZERO


@dataclass(frozen=True)
class CartEntry:
    ref: EntityRef
    qty: Any
    unit_price_override: Any = None
    item_type: str = ITEM_TYPE_PRODUCT

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CartEntry":
        """
        Build from an API cart entry: {id, qty, unit_price?, type?}.

        `price` and `precio` are accepted as aliases of `unit_price`.
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("Cart entries must be objects")

        item_type = str(payload.get("type") or ITEM_TYPE_PRODUCT).strip().lower()
        if item_type not in VALID_ITEM_TYPES:
            raise ValidationError(
                f"Invalid item type: {item_type}. Must be one of {list(VALID_ITEM_TYPES)}",
                details={"type": item_type},
            )

        raw_id = payload.get("id")
        if raw_id is None or (isinstance(raw_id, str) and not raw_id.strip()):
            raise ValidationError("Cart entry id is required", details={"entry": dict(payload)})

        override = None
        for key in PRICE_KEYS:
            if payload.get(key) is not None:
                override = payload.get(key)
                break

        return cls(
            ref=parse_ref(raw_id),
            qty=payload.get("qty"),
            unit_price_override=override,
            item_type=item_type,
        )


@dataclass(frozen=True)
class PricedLine:
    line: SaleLine
    product: Product | None


class LineItemPricer:
    def __init__(self, cost_policy: CostPolicy = CostPolicy.ZERO):
        self.cost_policy = cost_policy

    def price(self, entry: CartEntry) -> PricedLine:
        qty = self._quantity(entry)

        product = None
        if entry.item_type == ITEM_TYPE_PRODUCT:
            product = catalog_service.get_product(entry.ref)
            if product is None:
                raise ProductNotFound(
                    f"Product not found (id={entry.ref})",
                    details={"id": str(entry.ref)},
                )
            if product.tracks_stock and product.stock < qty:
                raise InsufficientStock(
                    f"Insufficient stock for {product.name}",
                    details={
                        "product_id": product.id,
                        "requested_quantity": qty,
                        "on_hand": product.stock,
                    },
                )

        unit_price = self._unit_price(entry, product)
        unit_cost = self._unit_cost(product, unit_price)

        if product is not None:
            refs = {"product_ref": product.id, "legacy_product_id": product.legacy_id}
        else:
            service_ref, legacy_service_id = split_ref(entry.ref)
            refs = {"service_ref": service_ref, "legacy_service_id": legacy_service_id}

        line = SaleLine(
            item_type=entry.item_type,
            qty=qty,
            unit_price=unit_price,
            unit_cost=unit_cost,
            line_total=quantize_money(qty * unit_price),
            **refs,
        )
        return PricedLine(line=line, product=product)

    def _quantity(self, entry: CartEntry) -> Decimal:
        qty = to_decimal(entry.qty, "qty", error=InvalidQuantity)
        if qty <= 0 or qty > MAX_QTY or quantize_qty(qty) <= 0:
            raise InvalidQuantity(
                f"Invalid quantity for item id={entry.ref}",
                details={"id": str(entry.ref), "qty": str(entry.qty)},
            )
        return quantize_qty(qty)

    def _unit_price(self, entry: CartEntry, product: Product | None) -> Decimal:
        if entry.unit_price_override is not None:
            raw = entry.unit_price_override
        elif product is not None and product.price is not None:
            raw = product.price
        else:
            raw = 0

        price = to_decimal(raw, "unit_price", error=InvalidPrice)
        if price < 0 or price > MAX_MONEY:
            raise InvalidPrice(
                f"Invalid price for item id={entry.ref}",
                details={"id": str(entry.ref), "unit_price": str(raw)},
            )
        return quantize_money(price)

    def _unit_cost(self, product: Product | None, unit_price: Decimal) -> Decimal:
        if product is not None and product.cost is not None:
            return quantize_money(Decimal(product.cost))
        if self.cost_policy is CostPolicy.SELL_PRICE:
            return unit_price
        return Decimal("0.00")
