import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings
from .db import Database
from .models import (
    CreateCustomerRequest, UpdateCustomerRequest, CreatePaymentRequest,
    Customer, CustomerDetail, Payment, OrderBatchResponse, MessageResponse,
    Dashboard, ReportRow,
)
from .service import (
    LedgerService, ValidationError, NotFoundError, ConflictError, TransactionFailure,
)


def _failure(e: TransactionFailure) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


def get_service(request: Request) -> LedgerService:
    return request.app.state.ledger_service


def create_app(settings: Optional[Settings] = None, root_path: str = "") -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = Database(settings.database_url, echo=settings.sql_echo).open()
        app.state.db = db
        app.state.ledger_service = LedgerService(db, strict_totals=settings.strict_totals)
        try:
            yield
        finally:
            db.close()

    app = FastAPI(
        title="Bakery Ledger API",
        description="Customers, daily bulk orders and payments against a running balance",
        version="1.0.0",
        lifespan=lifespan,
        root_path=root_path,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "healthy", "service": "bakery-ledger"}

    @app.get("/customers", response_model=list[Customer], tags=["Customers"])
    def list_customers(service: LedgerService = Depends(get_service)) -> list[Customer]:
        try:
            return service.list_customers()
        except TransactionFailure as e:
            raise _failure(e)

    @app.post("/customers", response_model=Customer, status_code=status.HTTP_201_CREATED, tags=["Customers"])
    def create_customer(
        request: CreateCustomerRequest, service: LedgerService = Depends(get_service)
    ) -> Customer:
        try:
            return service.create_customer(request)
        except ValidationError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        except TransactionFailure as e:
            raise _failure(e)

    @app.get("/customers/{customer_id}", response_model=CustomerDetail, tags=["Customers"])
    def get_customer(customer_id: int, service: LedgerService = Depends(get_service)) -> CustomerDetail:
        try:
            return service.get_customer_detail(customer_id)
        except NotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        except TransactionFailure as e:
            raise _failure(e)

    @app.put("/customers/{customer_id}", response_model=Customer, tags=["Customers"])
    def update_customer(
        customer_id: int, request: UpdateCustomerRequest, service: LedgerService = Depends(get_service)
    ) -> Customer:
        try:
            return service.update_customer(customer_id, request)
        except ValidationError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        except NotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        except TransactionFailure as e:
            raise _failure(e)

    @app.delete("/customers/{customer_id}", response_model=MessageResponse, tags=["Customers"])
    def delete_customer(customer_id: int, service: LedgerService = Depends(get_service)) -> MessageResponse:
        try:
            return service.delete_customer(customer_id)
        except ConflictError as e:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
        except NotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        except TransactionFailure as e:
            raise _failure(e)

    @app.post("/orders", response_model=OrderBatchResponse, status_code=status.HTTP_201_CREATED, tags=["Orders"])
    def create_orders(payload: Any = Body(...), service: LedgerService = Depends(get_service)) -> OrderBatchResponse:
        # Accepts the bare array or {"orders": [...]}
        if isinstance(payload, dict) and "orders" in payload:
            payload = payload["orders"]
        try:
            return service.create_orders(payload)
        except ValidationError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        except NotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        except TransactionFailure as e:
            raise _failure(e)

    @app.post("/payments", response_model=Payment, status_code=status.HTTP_201_CREATED, tags=["Payments"])
    def create_payment(request: CreatePaymentRequest, service: LedgerService = Depends(get_service)) -> Payment:
        try:
            return service.create_payment(request)
        except ValidationError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        except NotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        except TransactionFailure as e:
            raise _failure(e)

    @app.get("/dashboard", response_model=Dashboard, tags=["Reports"])
    def get_dashboard(service: LedgerService = Depends(get_service)) -> Dashboard:
        try:
            return service.dashboard()
        except TransactionFailure as e:
            raise _failure(e)

    @app.get("/reports", response_model=list[ReportRow], tags=["Reports"])
    def get_report(
        day: Optional[str] = Query(default=None, alias="date", description="YYYY-MM-DD"),
        service: LedgerService = Depends(get_service),
    ) -> list[ReportRow]:
        if not day:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="date query parameter is required (YYYY-MM-DD)")
        try:
            parsed = date.fromisoformat(day)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid date: {day}")
        try:
            return service.report(parsed)
        except TransactionFailure as e:
            raise _failure(e)

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
