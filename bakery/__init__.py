"""
Bakery Ledger

This package provides:
- Customers with a running balance (positive = owes the bakery)
- Batch order creation that raises balances in one transaction
- Payments that lower balances and settle pending orders once paid off
- Dashboard and daily report views
"""

from .models import (
    OrderStatus,
    Customer,
    Order,
    Payment,
    CustomerDetail,
)
from .db import Database
from .service import (
    LedgerService,
    LedgerServiceError,
    ValidationError,
    NotFoundError,
    CustomerNotFoundError,
    ConflictError,
    TransactionFailure,
)

__all__ = [
    "OrderStatus",
    "Customer",
    "Order",
    "Payment",
    "CustomerDetail",
    "Database",
    "LedgerService",
    "LedgerServiceError",
    "ValidationError",
    "NotFoundError",
    "CustomerNotFoundError",
    "ConflictError",
    "TransactionFailure",
]
