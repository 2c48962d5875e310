"""POST /api/actions: unified mutation endpoint."""

from fastapi import APIRouter, Request
from pydantic import BaseModel

from api.base import success_response
from api.data import record_to_dict
from core.models import InvoiceDraft
from wallet.session import WalletSession


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "invoice": InvoiceHandler(services["invoice"]),
        "payment": PaymentHandler(services["payment"]),
    }

    @router.post("/actions")
    def perform_action(request: Request, body: ActionRequest):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        method = getattr(handler, f"_handle_{body.action}")
        result = method(request.state.session, body.data)
        request_id = getattr(request.state, "request_id", None)
        return success_response(result, request_id).model_dump(mode="json")

    return router


def _require(data: dict, field: str) -> str:
    value = data.get(field)
    if not isinstance(value, str) or not value:
        raise ValueError(f"'{field}' is required")
    return value


# =============================================================================
# HANDLER CLASSES
# =============================================================================


class InvoiceHandler:
    ALLOWED_ACTIONS = {"issue", "open", "verify"}

    def __init__(self, service):
        self.service = service

    def _handle_issue(self, session: WalletSession, data: dict):
        receiver_key = _require(data, "receiverPublicKey")
        draft = InvoiceDraft(**data.get("invoice", {}))
        issued = self.service.issue(session, draft, receiver_key)
        return {
            "invoice": issued.invoice.to_wire(),
            "integrityHash": issued.envelope.integrity_hash_hex,
            "receiverKeyId": issued.envelope.receiver_key_id_hex,
            "txHash": issued.receipt.tx_hash,
            "blockNumber": issued.receipt.block_number,
        }

    def _handle_open(self, session: WalletSession, data: dict):
        opened = self.service.open(session, _require(data, "id"))
        return {
            "record": record_to_dict(opened.record),
            "invoice": opened.invoice.to_wire(),
            "integrityVerified": opened.integrity_verified,
        }

    def _handle_verify(self, session: WalletSession, data: dict):
        verified = self.service.verify(
            session, _require(data, "id"), _require(data, "plaintext")
        )
        return {"verified": verified}


class PaymentHandler:
    ALLOWED_ACTIONS = {"request"}

    def __init__(self, service):
        self.service = service

    def _handle_request(self, session: WalletSession, data: dict):
        return self.service.payment_request(session, _require(data, "id"))
