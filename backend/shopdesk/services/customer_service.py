# Overview: Read-only customer directory lookups for the sales engine.

from __future__ import annotations

from typing import Any

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Customer
from .identity_service import EntityRef, identity_filter, parse_ref


def get_customer(ref: Any) -> Customer | None:
    """Customer by native id, legacy id or literal id; None if absent."""
    customer_ref = parse_ref(ref)
    return db.session.query(Customer).filter(identity_filter(Customer, customer_ref)).first()


def find_customer(ref: EntityRef | None) -> Customer | None:
    """
    Best-effort lookup used to decorate sales and payments.

    Directory failures never fail the caller: they are logged and reported
    as "no customer".
    """
    if ref is None:
        return None
    try:
        return get_customer(ref)
    except SQLAlchemyError:
        current_app.logger.warning("Customer lookup failed for %s", ref, exc_info=True)
        return None
