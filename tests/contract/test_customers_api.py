"""Contract tests for customer endpoints and their error envelope."""

from __future__ import annotations

import logging
from typing import Any
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from registry.core.reporting import InMemoryFaultReporter

API_PREFIX = "/api/v1"
CSV_HEADER = "firstName,lastName,email,age,streetName,city,postalCode"


def _customer_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "firstName": "Ada",
        "lastName": "Lovelace",
        "email": "ada@example.com",
        "age": 36,
        "postalAddress": {"streetName": "12 St James Sq", "city": "London", "postalCode": "SW1Y 4JH"},
    }
    payload.update(overrides)
    return payload


def _assert_error_envelope(payload: dict, *, with_errors: bool) -> None:
    assert set(payload) == {"message", "details", "errors"}
    assert isinstance(payload["message"], str) and payload["message"]
    assert isinstance(payload["details"], str)
    if with_errors:
        assert isinstance(payload["errors"], list) and payload["errors"]
        for item in payload["errors"]:
            assert set(item) == {"field", "message", "path"}
            assert item["path"].rsplit(".", 1)[-1] == item["field"]
    else:
        assert payload["errors"] is None


def test_create_and_fetch_customer(client: TestClient) -> None:
    created = client.post(f"{API_PREFIX}/customers", json=_customer_payload())

    assert created.status_code == 201
    body = created.json()
    uuid.UUID(body["id"])
    assert body["firstName"] == "Ada"
    assert body["postalAddress"]["postalCode"] == "SW1Y 4JH"
    assert created.headers["X-Request-ID"]

    fetched = client.get(f"{API_PREFIX}/customers/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["email"] == "ada@example.com"


def test_inbound_request_id_is_echoed_on_success(client: TestClient) -> None:
    response = client.get("/health", headers={"X-Request-ID": "trace-123"})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "trace-123"


def test_missing_customer_is_404(client: TestClient, reporter: InMemoryFaultReporter) -> None:
    missing_id = uuid.uuid4()

    response = client.get(f"{API_PREFIX}/customers/{missing_id}", headers={"X-Request-ID": "trace-404"})

    assert response.status_code == 404
    payload = response.json()
    _assert_error_envelope(payload, with_errors=False)
    assert payload["message"] == f"Customer {missing_id} not found"
    assert payload["details"] == f"uri={API_PREFIX}/customers/{missing_id}"
    assert response.headers["X-Request-ID"] == "trace-404"
    assert [request_id for _, request_id in reporter.captured] == ["trace-404"]


def test_duplicate_email_is_409(client: TestClient) -> None:
    assert client.post(f"{API_PREFIX}/customers", json=_customer_payload()).status_code == 201

    response = client.post(f"{API_PREFIX}/customers", json=_customer_payload(email="ADA@example.com"))

    assert response.status_code == 409
    _assert_error_envelope(response.json(), with_errors=False)


def test_business_rules_reject_with_422(client: TestClient) -> None:
    response = client.post(f"{API_PREFIX}/customers", json=_customer_payload(age=16, email="kid@mailinator.com"))

    assert response.status_code == 422
    payload = response.json()
    _assert_error_envelope(payload, with_errors=True)
    assert payload["errors"] == [
        {"field": "age", "message": "must be at least 18", "path": "age"},
        {"field": "email", "message": "domain 'mailinator.com' is not accepted", "path": "email"},
    ]


def test_schema_violations_use_external_field_paths(client: TestClient) -> None:
    payload = _customer_payload(firstName="")
    payload["postalAddress"] = {"city": "London", "postalCode": "!"}

    response = client.post(f"{API_PREFIX}/customers", json=payload)

    assert response.status_code == 400
    body = response.json()
    _assert_error_envelope(body, with_errors=True)
    assert body["message"] == "Validation failed."
    assert sorted(error["path"] for error in body["errors"]) == [
        "firstName",
        "postalAddress.postalCode",
        "postalAddress.streetName",
    ]


def test_malformed_json_is_400_without_errors(client: TestClient) -> None:
    response = client.post(
        f"{API_PREFIX}/customers",
        content=b'{"firstName": "Ada",',
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    _assert_error_envelope(response.json(), with_errors=False)


def test_undecodable_body_is_400_with_decoder_cause(
    client: TestClient,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.WARNING, logger="registry.core.errors")

    response = client.post(
        f"{API_PREFIX}/customers",
        content=b'{"firstName": "\xff"}',
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    payload = response.json()
    _assert_error_envelope(payload, with_errors=False)
    assert payload["message"].startswith("Malformed request body: 'utf-8' codec can't decode byte 0xff")
    (record,) = [record for record in caplog.records if record.name == "registry.core.errors"]
    assert record.getMessage().startswith("HTTP message not readable")
    assert "firstName" in record.getMessage()


def test_out_of_range_limit_is_malformed_argument(client: TestClient) -> None:
    response = client.get(f"{API_PREFIX}/customers", params={"limit": 0})

    assert response.status_code == 400
    payload = response.json()
    _assert_error_envelope(payload, with_errors=False)
    assert payload["message"] == "limit must be between 1 and 100, got 0"


def test_non_integer_limit_is_bean_validation(client: TestClient) -> None:
    response = client.get(f"{API_PREFIX}/customers", params={"limit": "ten"})

    assert response.status_code == 400
    (error,) = response.json()["errors"]
    assert error["path"] == "limit"


def test_list_returns_created_customers(client: TestClient) -> None:
    client.post(f"{API_PREFIX}/customers", json=_customer_payload())
    client.post(f"{API_PREFIX}/customers", json=_customer_payload(email="grace@example.com", firstName="Grace"))

    response = client.get(f"{API_PREFIX}/customers", params={"limit": 10})

    assert response.status_code == 200
    body = response.json()
    assert body["limit"] == 10
    assert {item["email"] for item in body["items"]} == {"ada@example.com", "grace@example.com"}


def test_unsupported_method_is_405(client: TestClient) -> None:
    response = client.delete(f"{API_PREFIX}/customers")

    assert response.status_code == 405
    _assert_error_envelope(response.json(), with_errors=False)
    assert response.headers["X-Request-ID"]


def test_csv_import_creates_customers(client: TestClient) -> None:
    text = (
        f"{CSV_HEADER}\n"
        "Ada,Lovelace,ada@example.com,36,12 St James Sq,London,SW1Y 4JH\n"
        "Grace,Hopper,grace@example.com,45,1 Navy Yard,Arlington,22202\n"
    )

    response = client.post(f"{API_PREFIX}/customers/import", content=text, headers={"Content-Type": "text/csv"})

    assert response.status_code == 201
    body = response.json()
    assert body["imported"] == 2
    assert len(body["ids"]) == 2


def test_csv_import_rejects_other_media_types(client: TestClient) -> None:
    response = client.post(f"{API_PREFIX}/customers/import", json={"rows": []})

    assert response.status_code == 415
    payload = response.json()
    _assert_error_envelope(payload, with_errors=False)
    assert "text/csv" in payload["message"]


def test_csv_import_with_missing_columns_is_transform_failure(client: TestClient) -> None:
    response = client.post(
        f"{API_PREFIX}/customers/import",
        content="firstName,lastName\nAda,Lovelace\n",
        headers={"Content-Type": "text/csv; charset=utf-8"},
    )

    assert response.status_code == 500
    assert response.json()["message"].startswith("CSV header is missing required columns")


def test_csv_import_with_invalid_row_is_constraint_violation(client: TestClient) -> None:
    text = f"{CSV_HEADER}\nAda,Lovelace,ada@example.com,-4,Main St,London,SW1Y 4JH\n"

    response = client.post(f"{API_PREFIX}/customers/import", content=text, headers={"Content-Type": "text/csv"})

    assert response.status_code == 400
    payload = response.json()
    _assert_error_envelope(payload, with_errors=False)
    assert payload["message"].startswith("1 constraint violation(s)")


def test_csv_import_rule_failures_are_reported_per_row(client: TestClient) -> None:
    text = (
        f"{CSV_HEADER}\n"
        "Ada,Lovelace,ada@example.com,36,Main St,London,SW1Y 4JH\n"
        "Tim,Young,tim@example.com,12,Main St,London,SW1Y 4JH\n"
    )

    response = client.post(f"{API_PREFIX}/customers/import", content=text, headers={"Content-Type": "text/csv"})

    assert response.status_code == 422
    assert response.json()["errors"] == [{"field": "age", "message": "must be at least 18", "path": "1.age"}]


def test_database_failure_is_service_error_logged_once(
    client: TestClient,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.WARNING)

    def _fail(*_: Any, **__: Any) -> None:
        raise OperationalError("INSERT INTO customers", {}, Exception("disk I/O error"))

    monkeypatch.setattr("registry.services.customers.create_customer", _fail)

    response = client.post(f"{API_PREFIX}/customers", json=_customer_payload())

    assert response.status_code == 500
    assert response.json()["message"] == "Customer could not be saved"
    assert [record.name for record in caplog.records if record.levelno >= logging.WARNING] == [
        "registry.services.customers"
    ]
