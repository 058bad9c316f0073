"""
HTTP-level tests for the FastAPI application
"""

from unittest.mock import AsyncMock

from sqlalchemy.exc import IntegrityError, OperationalError

from main import app, get_identity_service
from services.exceptions import InvariantViolation, StoreError


def failing_service(service, exc):
    service.identify_contact = AsyncMock(side_effect=exc)
    app.dependency_overrides[get_identity_service] = lambda: service


def store_error(cause):
    try:
        raise StoreError("store failed") from cause
    except StoreError as e:
        return e


class TestIdentifyEndpoint:

    async def test_new_contact(self, client):
        response = await client.post("/identify", json={"email": "a@x.com", "phoneNumber": "123456"})

        assert response.status_code == 200
        contact = response.json()["contact"]
        assert contact["emails"] == ["a@x.com"]
        assert contact["phoneNumbers"] == ["123456"]
        assert contact["secondaryContactIds"] == []
        assert isinstance(contact["primaryContactId"], int)

    async def test_linking_across_requests(self, client):
        first = await client.post("/identify", json={"email": "lorraine@hillvalley.edu", "phoneNumber": "123456"})
        second = await client.post("/identify", json={"email": "mcfly@hillvalley.edu", "phoneNumber": 123456})

        primary_id = first.json()["contact"]["primaryContactId"]
        contact = second.json()["contact"]
        assert contact["primaryContactId"] == primary_id
        assert contact["emails"] == ["lorraine@hillvalley.edu", "mcfly@hillvalley.edu"]
        assert contact["phoneNumbers"] == ["123456"]
        assert len(contact["secondaryContactIds"]) == 1

        by_phone = await client.post("/identify", json={"email": None, "phoneNumber": "123456"})
        assert by_phone.json() == second.json()

    async def test_missing_identifiers_return_400(self, client):
        response = await client.post("/identify", json={"email": "null", "phoneNumber": None})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "ValidationError"
        assert body["details"]["errors"]

    async def test_malformed_email_returns_400(self, client):
        response = await client.post("/identify", json={"email": "not-an-email"})

        assert response.status_code == 400

    async def test_store_connection_error_returns_503(self, client, service):
        failing_service(service, store_error(OperationalError("SELECT 1", {}, ConnectionError("down"))))

        response = await client.post("/identify", json={"email": "a@x.com"})

        assert response.status_code == 503
        assert response.json()["detail"]["error"] == "DatabaseConnectionError"

    async def test_other_store_error_returns_500(self, client, service):
        failing_service(service, store_error(IntegrityError("INSERT", {}, Exception("constraint"))))

        response = await client.post("/identify", json={"email": "a@x.com"})

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "DatabaseError"

    async def test_invariant_violation_returns_distinct_500(self, client, service):
        failing_service(service, InvariantViolation("no primary"))

        response = await client.post("/identify", json={"phoneNumber": "123456"})

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "InvariantViolation"


class TestServiceEndpoints:

    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["message"] == "Identity Reconciliation API is running"

    async def test_health_reports_database(self, client):
        response = await client.get("/health")

        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"]["status"] == "connected"

    async def test_debug_contacts_lists_recent(self, client):
        await client.post("/identify", json={"email": "a@x.com"})
        await client.post("/identify", json={"email": "a@x.com", "phoneNumber": "999"})

        response = await client.get("/debug/contacts")

        body = response.json()
        assert body["total_contacts"] == 2
        assert [c["link_precedence"] for c in body["recent_contacts"]] == ["secondary", "primary"]
