"""API test fixtures: app wired to an in-memory ledger, log and key-holder."""

from unittest.mock import Mock

import pytest
from starlette.testclient import TestClient

from core.services.invoice_service import InvoiceService
from core.services.payment_service import PaymentService
from main import build_app
from wallet.middleware import SESSION_COOKIE


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def history():
    mock = Mock()
    mock.fetch_transactions.return_value = []
    return mock


@pytest.fixture
def invoice_service(ledger, invoice_log, key_holder, random_bytes):
    return InvoiceService(ledger, invoice_log, key_holder, random_bytes=random_bytes)


@pytest.fixture
def payment_service(history, invoice_log, invoice_service):
    return PaymentService(history, invoice_log, invoice_service)


@pytest.fixture
def services(invoice_service, payment_service, invoice_log):
    return {
        "invoice": invoice_service,
        "payment": payment_service,
        "invoice_log": invoice_log,
    }


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(services, registry, key_holder):
    """FastAPI app with session middleware, error handlers, and all routes."""
    return build_app(services, registry, key_holder.public_key_base64)


def _client(app, token: str | None = None) -> TestClient:
    # https base URL so Secure cookies set by /session/connect are sent back
    client = TestClient(app, base_url="https://testserver", raise_server_exceptions=False)
    if token:
        client.cookies.set(SESSION_COOKIE, token)
    return client


@pytest.fixture
def issuer_client(app, issuer_session):
    return _client(app, issuer_session.token)


@pytest.fixture
def receiver_client(app, receiver_session):
    return _client(app, receiver_session.token)


@pytest.fixture
def unauthed_client(app):
    return _client(app)


@pytest.fixture
def issue_invoice(issuer_client, receiver_public_key):
    """Issue the reference invoice through the API and return the response data."""

    def issue(**invoice):
        payload = {
            "title": "A",
            "vat": "8.1",
            "lineItems": [{"text": "x", "preis": "100"}],
            **invoice,
        }
        response = issuer_client.post("/api/actions", json={
            "domain": "invoice",
            "action": "issue",
            "data": {"receiverPublicKey": receiver_public_key, "invoice": payload},
        })
        assert response.status_code == 200, response.text
        return response.json()["data"]

    return issue
