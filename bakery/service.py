import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .balance import is_money, order_balance_delta, payment_balance_delta, settled_status, total_matches
from .db import CustomerRow, Database, OrderRow, PaymentRow
from .models import (
    OrderStatus,
    Customer,
    CustomerDetail,
    Order,
    Payment,
    CreateCustomerRequest,
    UpdateCustomerRequest,
    CreateOrderRequest,
    CreatePaymentRequest,
    OrderBatchResponse,
    MessageResponse,
    Dashboard,
    ReportRow,
)

logger = logging.getLogger(__name__)


class LedgerServiceError(Exception):
    pass


class ValidationError(LedgerServiceError):
    pass


class NotFoundError(LedgerServiceError):
    pass


class CustomerNotFoundError(NotFoundError):
    def __init__(self, customer_id: Any):
        super().__init__(f"Customer {customer_id} not found")
        self.customer_id = customer_id


class ConflictError(LedgerServiceError):
    pass


class TransactionFailure(LedgerServiceError):
    pass


def _clean_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Customer name is required")
    return cleaned


class LedgerService:
    """Customer ledger for the bakery.

    Order batches and payments each run in a single transaction on the
    injected Database. Customer balances always equal the sum of their order
    totals minus the sum of their payments once a transaction has committed.
    """

    def __init__(self, db: Database, strict_totals: bool = False):
        self.db = db
        self.strict_totals = strict_totals

    # Customers

    def list_customers(self) -> list[Customer]:
        with self._read("list customers") as session:
            rows = session.scalars(select(CustomerRow).order_by(CustomerRow.name.asc(), CustomerRow.id.asc()))
            return [Customer.model_validate(r) for r in rows]

    def create_customer(self, request: CreateCustomerRequest) -> Customer:
        name = _clean_name(request.name)
        with self._write("create customer") as session:
            row = CustomerRow(name=name, phone=request.phone or None, current_balance=Decimal("0.00"))
            session.add(row)
            session.flush()
            customer = Customer.model_validate(row)
        logger.info("Created customer %s (%s)", customer.id, customer.name)
        return customer

    def update_customer(self, customer_id: int, request: UpdateCustomerRequest) -> Customer:
        name = _clean_name(request.name)
        with self._write("update customer") as session:
            row = session.get(CustomerRow, customer_id)
            if row is None:
                raise CustomerNotFoundError(customer_id)
            row.name = name
            row.phone = request.phone or None
            session.flush()
            return Customer.model_validate(row)

    def delete_customer(self, customer_id: int) -> MessageResponse:
        with self._write("delete customer") as session:
            if self._count(session, OrderRow, customer_id) > 0:
                raise ConflictError(
                    f"Customer {customer_id} has orders; remove them before deleting the customer"
                )
            if self._count(session, PaymentRow, customer_id) > 0:
                raise ConflictError(
                    f"Customer {customer_id} has payments; remove them before deleting the customer"
                )
            result = session.execute(delete(CustomerRow).where(CustomerRow.id == customer_id))
            if result.rowcount == 0:
                raise CustomerNotFoundError(customer_id)
        logger.info("Deleted customer %s", customer_id)
        return MessageResponse(message="Customer deleted")

    def get_customer_detail(self, customer_id: int) -> CustomerDetail:
        with self._read("load customer") as session:
            row = session.get(CustomerRow, customer_id)
            if row is None:
                raise CustomerNotFoundError(customer_id)
            orders = session.scalars(
                select(OrderRow)
                .where(OrderRow.customer_id == customer_id)
                .order_by(OrderRow.order_date.desc(), OrderRow.id.desc())
            )
            payments = session.scalars(
                select(PaymentRow)
                .where(PaymentRow.customer_id == customer_id)
                .order_by(PaymentRow.payment_date.desc(), PaymentRow.id.desc())
            )
            return CustomerDetail(
                customer=Customer.model_validate(row),
                orders=[Order.model_validate(o) for o in orders],
                payments=[Payment.model_validate(p) for p in payments],
            )

    # Balance-consistency protocol

    def create_orders(self, orders: Sequence[Any]) -> OrderBatchResponse:
        entries = self._parse_order_batch(orders)

        with self._write("create orders") as session:
            ids = []
            for entry in entries:
                self._require_customer(session, entry.customer_id)
                row = OrderRow(
                    customer_id=entry.customer_id,
                    quantity=entry.quantity,
                    unit_price=entry.unit_price,
                    total_price=entry.total_price,
                    status=OrderStatus.PENDING,
                    order_group_id=entry.order_group_id or None,
                )
                session.add(row)
                session.flush()
                ids.append(row.id)
                self._adjust_balance(session, entry.customer_id, order_balance_delta(entry.total_price))

        logger.info("Created %d orders: %s", len(ids), ids)
        return OrderBatchResponse(count=len(ids), ids=ids, message=f"{len(ids)} orders recorded")

    def create_payment(self, request: CreatePaymentRequest) -> Payment:
        if not request.customer_id or not request.amount:
            raise ValidationError("customer_id and amount are required")
        if request.amount < 0:
            raise ValidationError("Payment amount must be positive")
        if not is_money(request.amount):
            raise ValidationError("Payment amount must have at most two decimal places")

        customer_id = request.customer_id
        with self._write("create payment") as session:
            self._require_customer(session, customer_id)
            row = PaymentRow(customer_id=customer_id, amount=request.amount, note=request.note or None)
            session.add(row)
            session.flush()
            self._adjust_balance(session, customer_id, payment_balance_delta(request.amount))

            balance = session.scalar(
                select(CustomerRow.current_balance).where(CustomerRow.id == customer_id)
            )
            settled = 0
            if settled_status(OrderStatus.PENDING, balance) == OrderStatus.PAID:
                settled = self._settle_pending_orders(session, customer_id)
            payment = Payment.model_validate(row)

        logger.info(
            "Recorded payment %s of %s for customer %s (balance %s, %d orders settled)",
            payment.id, payment.amount, customer_id, balance, settled,
        )
        return payment

    # Read views

    def dashboard(self, today: Optional[date] = None) -> Dashboard:
        start = datetime.combine(today or date.today(), time.min)
        with self._read("build dashboard") as session:
            quantity, revenue, customers = session.execute(
                select(
                    func.coalesce(func.sum(OrderRow.quantity), 0),
                    func.coalesce(func.sum(OrderRow.total_price), 0),
                    func.count(func.distinct(OrderRow.customer_id)),
                ).where(OrderRow.order_date >= start)
            ).one()
            debt = session.scalar(
                select(func.coalesce(func.sum(CustomerRow.current_balance), 0))
                .where(CustomerRow.current_balance > 0)
            )
        return Dashboard(
            today_quantity=int(quantity),
            today_revenue=Decimal(str(revenue)),
            today_customer_count=int(customers),
            total_debt=Decimal(str(debt)),
        )

    def report(self, day: date) -> list[ReportRow]:
        start = datetime.combine(day, time.min)
        end = start + timedelta(days=1)
        stmt = (
            select(OrderRow, CustomerRow.name, CustomerRow.current_balance)
            .join(CustomerRow, CustomerRow.id == OrderRow.customer_id)
            .where(OrderRow.order_date >= start, OrderRow.order_date < end)
            .order_by(CustomerRow.name.asc(), OrderRow.id.asc())
        )
        with self._read("build report") as session:
            return [
                ReportRow(
                    id=order.id,
                    customer_id=order.customer_id,
                    quantity=order.quantity,
                    unit_price=order.unit_price,
                    total_price=order.total_price,
                    status=order.status,
                    order_date=order.order_date,
                    order_group_id=order.order_group_id,
                    customer_name=name,
                    current_balance=balance,
                )
                for order, name, balance in session.execute(stmt)
            ]

    # Internals

    @contextmanager
    def _write(self, operation: str) -> Iterator[Session]:
        try:
            with self.db.transaction() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error("Failed to %s: %s", operation, e, exc_info=True)
            raise TransactionFailure(f"Failed to {operation}") from e
        except LedgerServiceError as e:
            logger.warning("Rejected %s: %s", operation, e)
            raise

    @contextmanager
    def _read(self, operation: str) -> Iterator[Session]:
        try:
            with self.db.session() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error("Failed to %s: %s", operation, e, exc_info=True)
            raise TransactionFailure(f"Failed to {operation}") from e

    def _parse_order_batch(self, orders: Any) -> list[CreateOrderRequest]:
        if not isinstance(orders, (list, tuple)) or not orders:
            raise ValidationError("A non-empty list of orders is required")

        entries = []
        for index, item in enumerate(orders):
            try:
                if isinstance(item, CreateOrderRequest):
                    entry = item
                elif isinstance(item, Mapping):
                    entry = CreateOrderRequest.model_validate(dict(item))
                else:
                    raise ValidationError(f"Order #{index + 1} must be an object")
            except PydanticValidationError as e:
                raise ValidationError(f"Order #{index + 1} is invalid: {e.errors()[0]['msg']}") from e

            for field in ("unit_price", "total_price"):
                if not is_money(getattr(entry, field)):
                    raise ValidationError(f"Order #{index + 1}: {field} must have at most two decimal places")

            if self.strict_totals and not total_matches(entry.quantity, entry.unit_price, entry.total_price):
                raise ValidationError(
                    f"Order #{index + 1}: total_price {entry.total_price} does not equal "
                    f"quantity x unit_price ({entry.quantity} x {entry.unit_price})"
                )
            entries.append(entry)
        return entries

    def _require_customer(self, session: Session, customer_id: int) -> None:
        if session.get(CustomerRow, customer_id) is None:
            raise CustomerNotFoundError(customer_id)

    def _adjust_balance(self, session: Session, customer_id: int, delta: Decimal) -> None:
        result = session.execute(
            update(CustomerRow)
            .where(CustomerRow.id == customer_id)
            .values(current_balance=CustomerRow.current_balance + delta)
        )
        if result.rowcount == 0:
            raise CustomerNotFoundError(customer_id)

    def _settle_pending_orders(self, session: Session, customer_id: int) -> int:
        result = session.execute(
            update(OrderRow)
            .where(OrderRow.customer_id == customer_id, OrderRow.status == OrderStatus.PENDING)
            .values(status=OrderStatus.PAID)
        )
        if result.rowcount:
            logger.info("Settled %d pending orders for customer %s", result.rowcount, customer_id)
        return result.rowcount

    @staticmethod
    def _count(session: Session, table: type, customer_id: int) -> int:
        return session.scalar(
            select(func.count()).select_from(table).where(table.customer_id == customer_id)
        )

