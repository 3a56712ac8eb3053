"""Model module imports for SQLAlchemy metadata registration."""

from registry.db.models.customer import Base
from registry.db.models.customer import Customer

__all__ = [
    "Base",
    "Customer",
]
