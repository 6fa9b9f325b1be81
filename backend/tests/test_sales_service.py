# Overview: Pytest coverage for atomic sale creation and sale queries.

"""
Sale Transaction Tests

Covers:
- Totals, per-line amounts and the initial credit position
- Stock decrement for tracked products only
- All-or-nothing behavior: a failed sale leaves stock and sales untouched
- Strict vs advisory stock decrement under a concurrent sale
- Sale listing and customer outstanding balance
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from shopdesk.errors import (
    EmptyCart,
    InsufficientStock,
    InvalidAmount,
    InvalidQuantity,
    ProductNotFound,
    SaleTooLarge,
    TransactionAborted,
    ValidationError,
)
from shopdesk.extensions import db
from shopdesk.models import Product, Sale
from shopdesk.services import catalog_service, sales_service
from shopdesk.services.pricing_service import CartEntry, LineItemPricer, PricedLine


def _stock(ref):
    return catalog_service.get_product(ref).stock


def _sale_count(db_session):
    return db_session.query(Sale).count()


class RacingPricer(LineItemPricer):
    """Prices against a snapshot, then lets another sale drain the stock to 1."""

    def price(self, entry):
        priced = super().price(entry)
        snapshot = SimpleNamespace(
            id=priced.product.id,
            name=priced.product.name,
            stock=priced.product.stock,
            tracks_stock=True,
        )
        db.session.execute(
            update(Product).where(Product.id == snapshot.id).values(stock=Decimal("1"))
        )
        db.session.commit()
        return PricedLine(line=priced.line, product=snapshot)


class TestCreateSale:

    def test_cash_sale(self, db_session, product_p):
        """3 units at 5 paid in full: stock 10 -> 7."""
        sale = sales_service.create_sale([{"id": product_p.id, "qty": 3}])

        assert sale.total == Decimal("15.00")
        assert sale.total_items == Decimal("3")
        assert sale.paid_amount == Decimal("15.00")
        assert sale.outstanding_amount == Decimal("0.00")
        assert sale.on_credit is False
        assert sale.status == "paid"
        assert _stock(product_p.id) == Decimal("7")

    def test_credit_sale_with_initial_payment(self, db_session, product_p):
        sale = sales_service.create_sale(
            [{"id": product_p.id, "qty": 3}], on_credit=True, initial_paid_amount=5
        )

        assert sale.total == Decimal("15.00")
        assert sale.paid_amount == Decimal("5.00")
        assert sale.outstanding_amount == Decimal("10.00")
        assert sale.status == "partially_paid"
        assert _stock(product_p.id) == Decimal("7")

    def test_credit_sale_nothing_paid(self, db_session, product_p):
        sale = sales_service.create_sale([{"id": product_p.id, "qty": 1}], on_credit=True)
        assert sale.paid_amount == Decimal("0.00")
        assert sale.outstanding_amount == Decimal("5.00")
        assert sale.status == "pending"

    def test_initial_payment_capped_at_total(self, db_session, product_p):
        sale = sales_service.create_sale(
            [{"id": product_p.id, "qty": 1}], on_credit=True, initial_paid_amount=50
        )
        assert sale.paid_amount == Decimal("5.00")
        assert sale.outstanding_amount == Decimal("0.00")
        assert sale.status == "paid"

    def test_initial_payment_ignored_for_cash_sale(self, db_session, product_p):
        sale = sales_service.create_sale([{"id": product_p.id, "qty": 2}], initial_paid_amount=1)
        assert sale.paid_amount == sale.total == Decimal("10.00")

    def test_negative_initial_payment(self, db_session, product_p):
        with pytest.raises(InvalidAmount):
            sales_service.create_sale(
                [{"id": product_p.id, "qty": 1}], on_credit=True, initial_paid_amount=-1
            )
        assert _sale_count(db_session) == 0

    def test_mixed_cart_totals(self, db_session, product_p, legacy_product, untracked_product):
        """total = sum of line totals, total_items = sum of quantities."""
        sale = sales_service.create_sale([
            {"id": product_p.id, "qty": 2},
            {"id": "7", "qty": "1.5", "unit_price": "3.00"},
            {"id": untracked_product.id, "qty": 1},
            {"id": 55, "qty": 1, "type": "service", "unit_price": 20},
        ])

        lines = sale.lines
        assert len(lines) == 4
        assert [l.line_total for l in lines] == [
            Decimal("10.00"), Decimal("4.50"), Decimal("12.00"), Decimal("20.00"),
        ]
        assert sale.total == sum(l.line_total for l in lines) == Decimal("46.50")
        assert sale.total_items == sum(l.qty for l in lines) == Decimal("5.5")

        assert _stock(product_p.id) == Decimal("8")
        assert _stock(7) == Decimal("2.5")
        assert _stock(untracked_product.id) is None

    def test_lines_keep_both_product_keys(self, db_session, legacy_product):
        sale = sales_service.create_sale([{"id": 7, "qty": 1}])
        line = sale.lines[0]
        assert line.product_ref == legacy_product.id
        assert line.legacy_product_id == 7
        assert line.unit_price == Decimal("3.50")

    def test_customer_reference_stored(self, db_session, product_p, customer):
        sale = sales_service.create_sale([{"id": product_p.id, "qty": 1}], customer_ref="12")
        assert sale.legacy_customer_id == 12
        assert sale.customer_ref is None

        data = sales_service.serialize_sale(sale)
        assert data["customer"]["name"] == "Ana Torres"

    def test_unknown_customer_kept_as_reference(self, db_session, product_p):
        sale = sales_service.create_sale([{"id": product_p.id, "qty": 1}], customer_ref=404)
        assert sale.legacy_customer_id == 404
        assert sales_service.serialize_sale(sale)["customer"] is None

    def test_accepts_cart_entries(self, db_session, product_p):
        entry = CartEntry.from_payload({"id": product_p.id, "qty": 2})
        sale = sales_service.create_sale([entry])
        assert sale.total == Decimal("10.00")

    def test_precio_override(self, db_session, product_p):
        sale = sales_service.create_sale([{"id": product_p.id, "qty": 2, "precio": "4.50"}])
        assert sale.total == Decimal("9.00")
        assert sale.lines[0].unit_price == Decimal("4.50")

    def test_stock_decrement_bumps_product_version(self, db_session, product_p):
        before = catalog_service.get_product(product_p.id).version_id
        sales_service.create_sale([{"id": product_p.id, "qty": 1}])
        assert catalog_service.get_product(product_p.id).version_id == before + 1


class TestCreateSaleFailures:
    """A failed sale writes nothing."""

    @pytest.mark.parametrize("cart", [[], None, {}, "abc"])
    def test_empty_cart(self, db_session, cart):
        with pytest.raises(EmptyCart):
            sales_service.create_sale(cart)

    def test_insufficient_stock(self, db_session, product_p):
        """qty 5 against stock 2: refused, stock stays 2."""
        db_session.execute(update(Product).where(Product.id == product_p.id).values(stock=Decimal("2")))
        db_session.commit()

        with pytest.raises(InsufficientStock):
            sales_service.create_sale([{"id": product_p.id, "qty": 5}])

        assert _stock(product_p.id) == Decimal("2")
        assert _sale_count(db_session) == 0

    def test_duplicate_lines_checked_together(self, db_session, product_p):
        with pytest.raises(InsufficientStock) as exc_info:
            sales_service.create_sale([
                {"id": product_p.id, "qty": 6},
                {"id": product_p.id, "qty": 6},
            ])
        assert exc_info.value.details["items"][0]["requested_quantity"] == Decimal("12")
        assert _stock(product_p.id) == Decimal("10")

    def test_first_invalid_line_wins(self, db_session, product_p):
        with pytest.raises(InvalidQuantity):
            sales_service.create_sale([
                {"id": product_p.id, "qty": 1},
                {"id": product_p.id, "qty": 0},
                {"id": "sku-missing", "qty": 1},
            ])
        assert _stock(product_p.id) == Decimal("10")

    def test_unknown_product_after_valid_lines(self, db_session, product_p, legacy_product):
        before = [p.to_dict() for p in db_session.query(Product).order_by(Product.id)]

        with pytest.raises(ProductNotFound):
            sales_service.create_sale([
                {"id": product_p.id, "qty": 1},
                {"id": 7, "qty": 1},
                {"id": 999, "qty": 1},
            ])

        after = [p.to_dict() for p in db_session.query(Product).order_by(Product.id).populate_existing()]
        assert after == before
        assert _sale_count(db_session) == 0

    def test_invalid_item_type(self, db_session, product_p):
        with pytest.raises(ValidationError):
            sales_service.create_sale([{"id": product_p.id, "qty": 1, "type": "gift"}])

    def test_storage_failure_rolls_back_everything(self, db_session, monkeypatch, product_p, legacy_product):
        """The second decrement fails: the first one and the sale are undone."""
        real_adjust = catalog_service.adjust_stock
        calls = []

        def failing_adjust(ref, delta, **kwargs):
            calls.append(ref)
            if len(calls) == 2:
                raise OperationalError("UPDATE products", {}, Exception("database is locked"))
            return real_adjust(ref, delta, **kwargs)

        monkeypatch.setattr(catalog_service, "adjust_stock", failing_adjust)

        with pytest.raises(TransactionAborted):
            sales_service.create_sale([
                {"id": product_p.id, "qty": 3},
                {"id": 7, "qty": 1},
            ])

        assert len(calls) == 2
        assert _stock(product_p.id) == Decimal("10")
        assert _stock(7) == Decimal("4")
        assert _sale_count(db_session) == 0


    def test_huge_quantity_rejected(self, db_session, product_p):
        with pytest.raises(InvalidQuantity):
            sales_service.create_sale([{"id": product_p.id, "qty": "1e30"}])
        assert _stock(product_p.id) == Decimal("10")

    def test_huge_initial_payment_rejected(self, db_session, product_p):
        with pytest.raises(InvalidAmount):
            sales_service.create_sale(
                [{"id": product_p.id, "qty": 1}], on_credit=True, initial_paid_amount="1e30"
            )
        assert _sale_count(db_session) == 0

    def test_total_beyond_storable_amount(self, db_session):
        """Each line is in range but the sale total is not."""
        with pytest.raises(SaleTooLarge):
            sales_service.create_sale(
                [{"id": 55, "qty": 999999999, "type": "service", "unit_price": "9999999999.99"}],
                on_credit=True,
                initial_paid_amount=1,
            )
        assert _sale_count(db_session) == 0

    def test_item_count_beyond_storable_quantity(self, db_session):
        with pytest.raises(SaleTooLarge):
            sales_service.create_sale([
                {"id": 55, "qty": 999999999, "type": "service"},
                {"id": 56, "qty": 999999999, "type": "service"},
            ])
        assert _sale_count(db_session) == 0

    def test_largest_storable_total_keeps_balance(self, db_session):
        sale = sales_service.create_sale(
            [{"id": 55, "qty": 1, "type": "service", "unit_price": "9999999999.99"}],
            on_credit=True,
            initial_paid_amount=1,
        )
        sale = sales_service.get_sale(sale.id)
        assert sale.total == Decimal("9999999999.99")
        assert sale.paid_amount + sale.outstanding_amount == sale.total


class TestConcurrentStock:
    """Another sale drains the stock between validation and the decrement."""

    def test_strict_mode_refuses(self, db_session, product_p):
        with pytest.raises(InsufficientStock):
            sales_service.create_sale(
                [{"id": product_p.id, "qty": 3}],
                pricer=RacingPricer(),
                strict_stock=True,
            )

        assert _stock(product_p.id) == Decimal("1")
        assert _sale_count(db_session) == 0

    def test_advisory_mode_oversells_and_logs(self, db_session, product_p, caplog):
        with caplog.at_level(logging.WARNING):
            sale = sales_service.create_sale(
                [{"id": product_p.id, "qty": 3}],
                pricer=RacingPricer(),
                strict_stock=False,
            )

        assert sale.status == "paid"
        assert _stock(product_p.id) == Decimal("-2")
        assert "Oversell" in caplog.text

    def test_strict_adjust_stock(self, db_session, product_p):
        with pytest.raises(InsufficientStock):
            catalog_service.adjust_stock(product_p.id, Decimal("-11"), require_available=True)
        db_session.rollback()
        assert _stock(product_p.id) == Decimal("10")

    def test_adjust_untracked_is_noop(self, db_session, untracked_product):
        assert catalog_service.adjust_stock(untracked_product.id, Decimal("-1"), require_available=True) is None
        db_session.rollback()


class TestSaleQueries:

    def test_get_sale_by_native_and_legacy_id(self, db_session, product_p):
        created = sales_service.create_sale([{"id": product_p.id, "qty": 1}])
        migrated = Sale(legacy_id=501, items=[], total=Decimal("20.00"), paid_amount=Decimal("20.00"),
                        outstanding_amount=Decimal("0.00"), status="paid")
        db_session.add(migrated)
        db_session.commit()

        assert sales_service.get_sale(created.id).id == created.id
        assert sales_service.get_sale("501").id == migrated.id
        assert sales_service.get_sale(migrated.id).legacy_id == 501
        assert sales_service.get_sale("nope") is None

    def test_list_sales_newest_first(self, db_session, product_p):
        first = sales_service.create_sale([{"id": product_p.id, "qty": 1}])
        second = sales_service.create_sale([{"id": product_p.id, "qty": 1}])
        first.created_at = datetime(2026, 1, 1, 10, 0)
        second.created_at = datetime(2026, 1, 2, 10, 0)
        db_session.commit()

        assert [s.id for s in sales_service.list_sales()] == [second.id, first.id]
        assert [s.id for s in sales_service.list_sales(limit=1, offset=1)] == [first.id]

    def test_list_sales_date_range(self, db_session, product_p):
        old = sales_service.create_sale([{"id": product_p.id, "qty": 1}])
        new = sales_service.create_sale([{"id": product_p.id, "qty": 1}])
        old.created_at = datetime(2026, 1, 1, 10, 0)
        new.created_at = datetime(2026, 1, 5, 18, 30)
        db_session.commit()

        assert [s.id for s in sales_service.list_sales(date_to="2026-01-01")] == [old.id]
        assert [s.id for s in sales_service.list_sales(date_from="2026-01-02")] == [new.id]
        assert [s.id for s in sales_service.list_sales(date_from="2026-01-05", date_to="2026-01-05")] == [new.id]

    def test_list_sales_bad_date(self, db_session):
        with pytest.raises(ValidationError):
            sales_service.list_sales(date_from="yesterday")

    def test_list_sales_by_customer_any_scheme(self, db_session, product_p, customer):
        by_legacy = sales_service.create_sale([{"id": product_p.id, "qty": 1}], customer_ref=12)
        by_native = sales_service.create_sale([{"id": product_p.id, "qty": 1}], customer_ref=customer.id)
        sales_service.create_sale([{"id": product_p.id, "qty": 1}])

        found = {s.id for s in sales_service.list_sales(customer_ref=customer.id)}
        assert found == {by_legacy.id, by_native.id}
        assert {s.id for s in sales_service.list_sales(customer_ref="12")} == found

    def test_list_sales_credit_only(self, db_session, product_p):
        open_credit = sales_service.create_sale([{"id": product_p.id, "qty": 1}], on_credit=True)
        sales_service.create_sale([{"id": product_p.id, "qty": 1}], on_credit=True, initial_paid_amount=5)
        sales_service.create_sale([{"id": product_p.id, "qty": 1}])

        assert [s.id for s in sales_service.list_sales(credit_only=True)] == [open_credit.id]

    def test_customer_outstanding(self, db_session, product_p, customer):
        sales_service.create_sale([{"id": product_p.id, "qty": 3}], customer_ref=12,
                                  on_credit=True, initial_paid_amount=5)
        sales_service.create_sale([{"id": product_p.id, "qty": 1}], customer_ref=customer.id, on_credit=True)
        sales_service.create_sale([{"id": product_p.id, "qty": 1}], customer_ref=12)

        summary = sales_service.get_customer_outstanding(customer.id)
        assert summary["total_outstanding"] == Decimal("15.00")
        assert summary["pending_sales"] == 2

    def test_customer_outstanding_none(self, db_session, customer):
        summary = sales_service.get_customer_outstanding(12)
        assert summary == {"customer_ref": "12", "total_outstanding": Decimal("0.00"), "pending_sales": 0}

    def test_derive_status(self):
        assert sales_service.derive_status(Decimal("0"), Decimal("5")) == "pending"
        assert sales_service.derive_status(Decimal("1"), Decimal("4")) == "partially_paid"
        assert sales_service.derive_status(Decimal("5"), Decimal("0")) == "paid"
