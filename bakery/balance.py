"""
Balance rules applied by the order and payment transactions.

Orders raise a customer's balance by their total, payments lower it by their
amount. Once a payment leaves the balance at zero or below, every pending
order of that customer is settled at once; there is no per-order or
oldest-first settlement.
"""

from decimal import Decimal
from typing import Union

from .models import OrderStatus

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
# Largest value a Numeric(12, 2) column holds
MAX_MONEY = Decimal("9999999999.99")


def _money(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def order_balance_delta(total_price: Number) -> Decimal:
    return _money(total_price)


def payment_balance_delta(amount: Number) -> Decimal:
    return -_money(amount)


def should_settle(balance: Number) -> bool:
    return _money(balance) <= 0


def settled_status(status: OrderStatus, balance: Number) -> OrderStatus:
    """Status an order takes after a payment leaves the customer at `balance`.

    Paid orders never go back to pending.
    """
    if status == OrderStatus.PENDING and should_settle(balance):
        return OrderStatus.PAID
    return status


def is_money(value: Number) -> bool:
    """True when `value` is stored exactly by a Numeric(12, 2) column."""
    amount = _money(value)
    if not amount.is_finite() or abs(amount) > MAX_MONEY:
        return False
    return amount == amount.quantize(CENT)


def total_matches(quantity: int, unit_price: Number, total_price: Number) -> bool:
    return _money(unit_price) * quantity == _money(total_price)
