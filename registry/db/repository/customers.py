"""Repository primitives for customer entities."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from registry.db.models.customer import Customer


def create_customer(
    session: Session,
    *,
    first_name: str,
    last_name: str,
    email: str,
    age: int,
    street: str,
    city: str,
    postal_code: str,
) -> Customer:
    """Create and return a customer row."""
    customer = Customer(
        first_name=first_name,
        last_name=last_name,
        email=email,
        age=age,
        street=street,
        city=city,
        postal_code=postal_code,
    )
    session.add(customer)
    session.flush()
    session.refresh(customer)
    return customer


def get_customer(session: Session, customer_id: UUID) -> Customer | None:
    """Fetch a customer by id."""
    return session.get(Customer, customer_id)


def list_customers(session: Session, *, limit: int = 50, offset: int = 0) -> list[Customer]:
    """List customers, newest first."""
    stmt = select(Customer).order_by(Customer.created_at.desc()).limit(limit).offset(offset)
    return list(session.scalars(stmt))
