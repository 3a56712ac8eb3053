"""Service helpers for customer API operations."""

from __future__ import annotations

from collections.abc import Sequence
import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from registry.core.exceptions import BusinessValidationError
from registry.core.exceptions import DuplicateResourceError
from registry.core.exceptions import ResourceNotFoundError
from registry.core.exceptions import ServiceError
from registry.db.models.customer import Customer as CustomerRow
from registry.db.repository.customers import create_customer
from registry.db.repository.customers import get_customer
from registry.db.repository.customers import list_customers
from registry.schemas.customer import AddressPayload
from registry.schemas.customer import Customer
from registry.schemas.customer import CustomerCreate
from registry.schemas.error import FieldError

logger = logging.getLogger(__name__)

MINIMUM_AGE = 18
MAX_PAGE_SIZE = 100
BLOCKED_EMAIL_DOMAINS = frozenset({"example.invalid", "mailinator.com"})


def to_customer_schema(row: CustomerRow) -> Customer:
    """Map an ORM row to its response payload."""
    return Customer(
        id=row.id,
        first_name=row.first_name,
        last_name=row.last_name,
        email=row.email,
        age=row.age,
        address=AddressPayload(street=row.street, city=row.city, postal_code=row.postal_code),
        created_at=row.created_at,
    )


def business_rule_errors(payload: CustomerCreate, *, path_prefix: str = "") -> list[FieldError]:
    """Check rules a well-formed customer payload must still satisfy."""
    errors: list[FieldError] = []
    if payload.age < MINIMUM_AGE:
        errors.append(
            FieldError(field="age", message=f"must be at least {MINIMUM_AGE}", path=f"{path_prefix}age")
        )
    domain = payload.email.rsplit("@", 1)[-1].lower()
    if domain in BLOCKED_EMAIL_DOMAINS:
        errors.append(
            FieldError(field="email", message=f"domain '{domain}' is not accepted", path=f"{path_prefix}email")
        )
    return errors


def _add_customer(session: Session, payload: CustomerCreate) -> CustomerRow:
    return create_customer(
        session,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email.lower(),
        age=payload.age,
        street=payload.address.street,
        city=payload.address.city,
        postal_code=payload.address.postal_code,
    )


def _persist(session: Session, payloads: Sequence[CustomerCreate]) -> list[CustomerRow]:
    try:
        rows = [_add_customer(session, payload) for payload in payloads]
        session.commit()
        return rows
    except IntegrityError as exc:
        session.rollback()
        raise DuplicateResourceError("A customer with this email already exists") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to persist %d customer(s)", len(payloads))
        raise ServiceError("Customer could not be saved", error_code="customer_persist_failed") from exc


def create_customer_service(session: Session, payload: CustomerCreate) -> Customer:
    """Validate business rules, then create and persist a customer."""
    errors = business_rule_errors(payload)
    if errors:
        raise BusinessValidationError("Customer rejected by business rules", errors=errors)
    (row,) = _persist(session, [payload])
    return to_customer_schema(row)


def import_customers_service(session: Session, payloads: Sequence[CustomerCreate]) -> list[UUID]:
    """Persist a batch of customers atomically; any rule failure rejects the batch."""
    errors: list[FieldError] = []
    for index, payload in enumerate(payloads):
        errors.extend(business_rule_errors(payload, path_prefix=f"{index}."))
    if errors:
        raise BusinessValidationError("Import rejected by business rules", errors=errors)
    rows = _persist(session, payloads)
    logger.info("Imported %d customer(s)", len(rows))
    return [row.id for row in rows]


def list_customers_service(session: Session, *, limit: int, offset: int) -> list[Customer]:
    """List customers within the allowed page bounds."""
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValueError(f"limit must be between 1 and {MAX_PAGE_SIZE}, got {limit}")
    if offset < 0:
        raise ValueError(f"offset must not be negative, got {offset}")
    return [to_customer_schema(row) for row in list_customers(session, limit=limit, offset=offset)]


def get_customer_service(session: Session, customer_id: UUID) -> Customer:
    """Fetch a customer or raise not found."""
    row = get_customer(session, customer_id)
    if row is None:
        raise ResourceNotFoundError(f"Customer {customer_id} not found")
    return to_customer_schema(row)
