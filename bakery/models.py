from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class CreateCustomerRequest(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {"name": "Ayşe Fırın", "phone": "0532 000 00 00"}
    })


class UpdateCustomerRequest(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None


class CreateOrderRequest(BaseModel):
    customer_id: int
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    order_group_id: Optional[str] = Field(default=None, max_length=36)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "customer_id": 1,
            "quantity": 10,
            "unit_price": 5.00,
            "total_price": 50.00,
            "order_group_id": "2026-10-18-morning"
        }
    })


class CreatePaymentRequest(BaseModel):
    customer_id: Optional[int] = None
    amount: Optional[Decimal] = None
    note: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {"customer_id": 1, "amount": 50.00, "note": "Cash"}
    })


class Customer(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None
    current_balance: Decimal
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Order(BaseModel):
    id: int
    customer_id: int
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    status: OrderStatus
    order_date: datetime
    order_group_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class Payment(BaseModel):
    id: int
    customer_id: int
    amount: Decimal
    payment_date: datetime
    note: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CustomerDetail(BaseModel):
    customer: Customer
    orders: list[Order]
    payments: list[Payment]


class OrderBatchResponse(BaseModel):
    count: int
    ids: list[int]
    message: str


class MessageResponse(BaseModel):
    message: str


class Dashboard(BaseModel):
    today_quantity: int
    today_revenue: Decimal
    today_customer_count: int
    total_debt: Decimal

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_serializer("today_revenue", "total_debt")
    def serialize_money(self, value: Decimal) -> float:
        return float(value)


class ReportRow(BaseModel):
    id: int
    customer_id: int
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    status: OrderStatus
    order_date: datetime
    order_group_id: Optional[str] = None
    customer_name: str
    current_balance: Decimal

    model_config = ConfigDict(from_attributes=True)
