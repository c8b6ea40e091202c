"""
Ledger store: the relational schema and the store handle.

Customers own orders and payments; both foreign keys restrict deletion of
the customer. Balances are kept on the customer row and only changed inside
the transactions run by LedgerService.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterator, Optional

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import OrderStatus

logger = logging.getLogger(__name__)

MONEY = Numeric(12, 2)


class Base(DeclarativeBase):
    pass


class CustomerRow(Base):
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    current_balance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0.00"))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)


class OrderRow(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, name="order_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=OrderStatus.PENDING,
    )
    order_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)
    order_group_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)


class PaymentRow(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    payment_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Store handle with an explicit open/close lifecycle."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self._engine: Optional[Engine] = None
        self._sessions: Optional[sessionmaker[Session]] = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database is not open")
        return self._engine

    def open(self) -> "Database":
        if self._engine is not None:
            return self

        kwargs: dict = {"echo": self.echo}
        is_sqlite = self.url.startswith("sqlite")
        if is_sqlite:
            kwargs["connect_args"] = {"check_same_thread": False}
            if self.url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_pre_ping"] = True

        engine = create_engine(self.url, **kwargs)
        if is_sqlite:
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)

        Base.metadata.create_all(engine)
        self._engine = engine
        self._sessions = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        logger.info("Opened ledger store at %s", engine.url.render_as_string(hide_password=True))
        return self

    def close(self) -> None:
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._sessions = None
        logger.info("Closed ledger store")

    def __enter__(self) -> "Database":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield a session bound to one transaction: commit on success, roll back on error."""
        if self._sessions is None:
            raise RuntimeError("Database is not open")
        with self._sessions.begin() as session:
            yield session

    @contextmanager
    def session(self) -> Iterator[Session]:
        if self._sessions is None:
            raise RuntimeError("Database is not open")
        with self._sessions() as session:
            yield session
