"""Reshape CSV customer exports into ``CustomerCreate`` payloads."""

from __future__ import annotations

import csv
import io

from registry.core.exceptions import TransformError
from registry.schemas.customer import CustomerCreate

REQUIRED_COLUMNS = (
    "firstName",
    "lastName",
    "email",
    "age",
    "streetName",
    "city",
    "postalCode",
)


def _nest_row(row: dict[str, str]) -> dict[str, object]:
    return {
        "firstName": row["firstName"],
        "lastName": row["lastName"],
        "email": row["email"],
        "age": row["age"],
        "postalAddress": {
            "streetName": row["streetName"],
            "city": row["city"],
            "postalCode": row["postalCode"],
        },
    }


def parse_customer_csv(text: str) -> list[CustomerCreate]:
    """Parse CSV text into validated payloads.

    Structural problems (missing header columns, ragged rows) raise
    ``TransformError``; values that break model constraints raise pydantic's
    ``ValidationError`` unchanged.
    """
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    header = reader.fieldnames
    if not header:
        raise TransformError("CSV input has no header row")

    missing = [column for column in REQUIRED_COLUMNS if column not in header]
    if missing:
        raise TransformError(f"CSV header is missing required columns: {', '.join(missing)}")

    payloads: list[CustomerCreate] = []
    for row in reader:
        if None in row:
            raise TransformError(f"CSV line {reader.line_num} has more values than header columns")
        if any(row[column] is None for column in REQUIRED_COLUMNS):
            raise TransformError(f"CSV line {reader.line_num} has fewer values than header columns")
        payloads.append(CustomerCreate.model_validate(_nest_row(row)))
    return payloads
