# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/shopdesk/routes/sales.py
"""
Sales API routes

- POST /api/sales: create a sale from a cart (stock is decremented atomically)
- GET /api/sales: list sales (date range, customer, open credit)
- GET /api/sales/<ref>: sale detail, by native or legacy id
- GET /api/sales/customers/<ref>/outstanding: open credit of a customer

Aborted transactions are retried here, by the caller, as a whole.
"""

from flask import Blueprint, jsonify, request

from ..decorators import handle_engine_errors
from ..errors import SaleNotFound, ValidationError
from ..services import sales_service
from ..services.concurrency import run_with_configured_retry
from ..validation import coerce_flag, coerce_page


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _first(data: dict, *keys):
    """First present key; older clients send camelCase."""
    for key in keys:
        if data.get(key) is not None:
            return data.get(key)
    return None


@sales_bp.post("")
@handle_engine_errors("create sale")
def create_sale_route():
    """
    Create a sale.

    Request body:
    {
        "cart": [{"id": "<product id or legacy id>", "qty": 3, "unit_price": 5.0, "type": "product"}],
        "customer_id": 12,  (optional)
        "on_credit": true,  (optional)
        "paid_amount": 5  (optional, up-front payment on a credit sale)
    }

    Returns:
        201: Sale created
        400: Invalid input (empty cart, bad quantity/price/amount)
        404: Product not found
        409: Insufficient stock
        503: Storage failure after retries
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON body required")

    cart = data.get("cart")
    customer_ref = _first(data, "customer_id", "customerId")
    on_credit = coerce_flag(_first(data, "on_credit", "onCredit"))
    paid_amount = _first(data, "paid_amount", "paidAmount")

    sale = run_with_configured_retry(lambda: sales_service.create_sale(
        cart,
        customer_ref=customer_ref,
        on_credit=on_credit,
        initial_paid_amount=paid_amount if paid_amount is not None else 0,
    ))

    return jsonify({"sale": sales_service.serialize_sale(sale)}), 201


@sales_bp.get("")
@handle_engine_errors("list sales")
def list_sales_route():
    """
    List sales, newest first.

    Query params:
    - from, to: ISO dates (to is inclusive)
    - customer_id: native or legacy customer id
    - credit_only: only credit sales with an outstanding balance
    - limit (default 100), offset (default 0)
    """
    args = request.args
    sales = sales_service.list_sales(
        date_from=args.get("from"),
        date_to=args.get("to"),
        limit=coerce_page(args.get("limit"), "limit", 100),
        offset=coerce_page(args.get("offset"), "offset", 0, maximum=10**9),
        customer_ref=_first(args, "customer_id", "customerId"),
        credit_only=coerce_flag(_first(args, "credit_only", "creditOnly")),
    )
    return jsonify({
        "items": [sales_service.serialize_sale(s) for s in sales],
        "count": len(sales),
    }), 200


@sales_bp.get("/<ref>")
@handle_engine_errors("get sale")
def get_sale_route(ref: str):
    sale = sales_service.get_sale(ref)
    if sale is None:
        raise SaleNotFound(f"Sale not found (id={ref})", details={"id": ref})
    return jsonify({"sale": sales_service.serialize_sale(sale)}), 200


@sales_bp.get("/customers/<ref>/outstanding")
@handle_engine_errors("get customer outstanding")
def customer_outstanding_route(ref: str):
    return jsonify(sales_service.get_customer_outstanding(ref)), 200
