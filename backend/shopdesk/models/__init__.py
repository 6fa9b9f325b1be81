from .inventory import Product
from .customers import Customer
from .sales import Sale, SaleLine, Payment

__all__ = [
    'Product',
    'Customer',
    'Sale', 'SaleLine', 'Payment',
]
