"""Tests for the /session challenge, connect and disconnect routes."""

import base64

import pytest

from core.exceptions import SessionExpiredError
from wallet.middleware import SESSION_COOKIE


@pytest.fixture
def client(unauthed_client):
    return unauthed_client


def connect(client, account, signer, address=None, **extra):
    """Challenge, sign and connect as a wallet front end would."""
    address = address or account.address
    challenge = client.post("/session/challenge", json={"address": address})
    assert challenge.status_code == 200, challenge.text
    signature = signer(account, challenge.json()["data"]["message"])
    return client.post("/session/connect", json={
        "address": address, "signature": signature, **extra,
    })


class TestChallenge:

    def test_returns_message(self, client, issuer_address):
        response = client.post("/session/challenge", json={"address": issuer_address.lower()})

        assert response.status_code == 200
        assert issuer_address in response.json()["data"]["message"]

    def test_invalid_address(self, client):
        response = client.post("/session/challenge", json={"address": "nobody"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"


class TestConnect:

    def test_fetches_key_from_wallet(
        self, client, receiver_account, wallet_signature, receiver_public_key
    ):
        response = connect(
            client, receiver_account, wallet_signature, address=receiver_account.address.lower()
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["address"] == receiver_account.address
        assert data["encryptionPublicKey"] == receiver_public_key
        assert SESSION_COOKIE in response.cookies

    def test_explicit_key_used(self, client, issuer_account, wallet_signature):
        response = connect(
            client, issuer_account, wallet_signature, encryptionPublicKey="0x" + "11" * 32
        )

        assert response.status_code == 200
        assert response.json()["data"]["encryptionPublicKey"] == base64.b64encode(b"\x11" * 32).decode()

    def test_wallet_refuses_key(self, client, stranger_account, wallet_signature):
        response = connect(client, stranger_account, wallet_signature)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "DECRYPTION_DENIED"

    def test_cookie_opens_api(self, client, receiver_account, wallet_signature):
        connect(client, receiver_account, wallet_signature)

        response = client.get("/api/data", params={"type": "received"})

        assert response.status_code == 200
        assert response.json()["data"] == []

    def test_missing_signature(self, client, issuer_address):
        client.post("/session/challenge", json={"address": issuer_address})
        response = client.post("/session/connect", json={"address": issuer_address})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestForgedConnect:

    def test_signed_by_other_wallet(
        self, client, issuer_account, stranger_account, wallet_signature, registry
    ):
        challenge = client.post("/session/challenge", json={"address": issuer_account.address})
        forged = wallet_signature(stranger_account, challenge.json()["data"]["message"])

        response = client.post("/session/connect", json={
            "address": issuer_account.address,
            "signature": forged,
            "encryptionPublicKey": "0x" + "11" * 32,
        })

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "NOT_AUTHENTICATED"
        assert SESSION_COOKIE not in response.cookies
        assert len(registry) == 0
        assert client.get("/api/data", params={"type": "local"}).status_code == 401

    def test_without_challenge(self, client, issuer_account, wallet_signature):
        response = client.post("/session/connect", json={
            "address": issuer_account.address,
            "signature": wallet_signature(issuer_account, "Sign in to Invoice Vault"),
        })

        assert response.status_code == 401
        assert "challenge" in response.json()["error"]["message"]

    def test_garbage_signature(self, client, issuer_address):
        client.post("/session/challenge", json={"address": issuer_address})
        response = client.post("/session/connect", json={
            "address": issuer_address, "signature": "0x1234",
        })

        assert response.status_code == 401


class TestDisconnect:

    def test_ends_session(self, issuer_client, registry, issuer_session):
        response = issuer_client.post("/session/disconnect")

        assert response.json()["data"] == {"disconnected": True}
        with pytest.raises(SessionExpiredError):
            registry.get(issuer_session.token)

    def test_without_session(self, client):
        response = client.post("/session/disconnect")
        assert response.status_code == 200


class TestHealth:

    def test_public(self, client):
        assert client.get("/health").json() == {"status": "ok"}
