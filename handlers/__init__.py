"""Bill handler package.

This package contains the parsers that turn OCR text from restaurant bills
into line items and bill metadata. Each handler implements the
BaseBillHandler interface.
"""

from .base_handler import BaseBillHandler
from .restaurant_bill_handler import (
    RestaurantBillHandler,
    is_likely_bill_item,
    parse_bill_text
)

__all__ = [
    'BaseBillHandler',
    'RestaurantBillHandler',
    'is_likely_bill_item',
    'parse_bill_text'
]
