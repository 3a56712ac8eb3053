"""Customer API routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from sqlalchemy.orm import Session

from registry.api.dependencies import require_content_type
from registry.db.base import get_db_session
from registry.schemas.customer import Customer
from registry.schemas.customer import CustomerCreate
from registry.schemas.customer import CustomerImportResult
from registry.schemas.customer import CustomerListResponse
from registry.services.customer_import import parse_customer_csv
from registry.services.customers import create_customer_service
from registry.services.customers import get_customer_service
from registry.services.customers import import_customers_service
from registry.services.customers import list_customers_service

router = APIRouter(prefix="/api/v1", tags=["customers"])


@router.post("/customers", response_model=Customer, status_code=201)
def create_customer_endpoint(
    payload: CustomerCreate,
    session: Session = Depends(get_db_session),
) -> Customer:
    """Register a customer."""
    return create_customer_service(session, payload)


@router.get("/customers", response_model=CustomerListResponse)
def list_customers_endpoint(
    limit: int = 50,
    offset: int = 0,
    session: Session = Depends(get_db_session),
) -> CustomerListResponse:
    """List customers, newest first."""
    items = list_customers_service(session, limit=limit, offset=offset)
    return CustomerListResponse(items=items, limit=limit, offset=offset)


@router.get("/customers/{customer_id}", response_model=Customer)
def get_customer_endpoint(
    customer_id: UUID,
    session: Session = Depends(get_db_session),
) -> Customer:
    """Get a single customer by id."""
    return get_customer_service(session, customer_id)


@router.post(
    "/customers/import",
    response_model=CustomerImportResult,
    status_code=201,
    dependencies=[Depends(require_content_type("text/csv"))],
)
def import_customers_endpoint(
    csv_text: str = Body(..., media_type="text/csv"),
    session: Session = Depends(get_db_session),
) -> CustomerImportResult:
    """Bulk-register customers from a CSV export."""
    payloads = parse_customer_csv(csv_text)
    ids = import_customers_service(session, payloads)
    return CustomerImportResult(imported=len(ids), ids=ids)
