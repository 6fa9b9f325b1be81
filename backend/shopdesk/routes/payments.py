# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/shopdesk/routes/payments.py
"""
Payments API routes

- POST /api/payments: record a payment against a credit sale
- GET /api/payments: list payments (by sale and/or customer)
- GET /api/payments/<ref>: payment detail, by native or legacy id
"""

from flask import Blueprint, jsonify, request

from ..decorators import handle_engine_errors
from ..errors import PaymentNotFound, ValidationError
from ..services import payment_service, sales_service
from ..services.concurrency import run_with_configured_retry
from ..validation import coerce_page


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("")
@handle_engine_errors("record payment")
def record_payment_route():
    """
    Record a payment.

    Request body:
    {
        "sale_id": "<sale id or legacy id>",
        "amount": 10,
        "note": "cash at counter",  (optional)
        "customer_id": 12,  (optional, defaults to the sale's customer)
        "legacy_id": 900  (optional, key of a migrated payment)
    }

    Returns:
        201: {"payment": ..., "sale": ...}
        400: Missing/invalid sale_id or amount
        404: Sale not found
        409: Sale not on credit, already paid, amount exceeds balance,
             or legacy_id already recorded
        503: Storage failure after retries
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON body required")

    sale_ref = data.get("sale_id", data.get("saleId"))
    amount = data.get("amount")
    if sale_ref is None or sale_ref == "" or amount is None:
        raise ValidationError("sale_id and amount required")

    payment, sale = run_with_configured_retry(lambda: payment_service.record_payment(
        sale_ref,
        amount,
        data.get("note"),
        customer_ref=data.get("customer_id", data.get("customerId")),
        legacy_id=data.get("legacy_id", data.get("oldPaymentId")),
    ))

    return jsonify({
        "payment": payment_service.serialize_payment(payment),
        "sale": sales_service.serialize_sale(sale),
    }), 201


@payments_bp.get("")
@handle_engine_errors("list payments")
def list_payments_route():
    args = request.args
    payments = payment_service.list_payments(
        sale_ref=args.get("sale_id") or args.get("saleId"),
        customer_ref=args.get("customer_id") or args.get("customerId"),
        limit=coerce_page(args.get("limit"), "limit", 200),
        offset=coerce_page(args.get("offset"), "offset", 0, maximum=10**9),
    )
    return jsonify({
        "items": [payment_service.serialize_payment(p) for p in payments],
        "count": len(payments),
    }), 200


@payments_bp.get("/<ref>")
@handle_engine_errors("get payment")
def get_payment_route(ref: str):
    payment = payment_service.get_payment(ref)
    if payment is None:
        raise PaymentNotFound(f"Payment not found (id={ref})", details={"id": ref})
    return jsonify({"payment": payment_service.serialize_payment(payment)}), 200
