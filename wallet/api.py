"""HTTP routes for wallet challenge, connect and disconnect."""

from typing import Callable

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel, Field

from api.base import success_response
from wallet.middleware import SESSION_COOKIE
from wallet.session import SessionRegistry


class ChallengeRequest(BaseModel):
    address: str


class ConnectRequest(BaseModel):
    """Wallet connect payload. The public key is fetched from the wallet when omitted."""

    address: str
    signature: str = Field(..., min_length=1, description="personal_sign over the challenge message")
    encryption_public_key: str | None = Field(None, alias="encryptionPublicKey")

    model_config = {"populate_by_name": True}


def create_session_router(
    registry: SessionRegistry,
    public_key_source: Callable[[str], str] | None = None,
) -> APIRouter:
    """Create session router.

    Args:
        registry: Live sessions and pending challenges
        public_key_source: Called with the address to obtain its encryption
            key when the client does not send one (e.g. WalletClient.get_encryption_public_key)
    """
    router = APIRouter(tags=["session"])

    @router.post("/challenge")
    def challenge(body: ChallengeRequest, request: Request):
        """Message the wallet must sign before /connect."""
        message = registry.challenge(body.address)
        request_id = getattr(request.state, "request_id", None)
        return success_response({"message": message}, request_id).model_dump(mode="json")

    @router.post("/connect")
    def connect(body: ConnectRequest, request: Request, response: Response):
        """Start a wallet session from a signed challenge. Sets session_token cookie."""
        session = registry.connect(
            body.address,
            body.signature,
            body.encryption_public_key,
            public_key_source=public_key_source,
        )

        response.set_cookie(
            key=SESSION_COOKIE,
            value=session.token,
            httponly=True,
            secure=True,
            samesite="lax",
            max_age=int((session.expires_at - session.created_at).total_seconds()),
        )

        request_id = getattr(request.state, "request_id", None)
        return success_response({
            "address": session.address,
            "encryptionPublicKey": session.encryption_public_key,
            "expiresAt": session.expires_at.isoformat(),
        }, request_id).model_dump(mode="json")

    @router.post("/disconnect")
    def disconnect(request: Request, response: Response):
        """End the session and forget decrypted invoices."""
        token = request.cookies.get(SESSION_COOKIE)
        if token:
            registry.disconnect(token)

        response.delete_cookie(key=SESSION_COOKIE, httponly=True, secure=True, samesite="lax")
        request_id = getattr(request.state, "request_id", None)
        return success_response({"disconnected": True}, request_id).model_dump(mode="json")

    return router
