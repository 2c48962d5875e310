"""GET /api/data: unified read endpoint."""

from fastapi import APIRouter, Query, Request

from api.base import success_response
from core.models import (
    InvoicePaymentStatus,
    LedgerInvoiceRecord,
    LocalInvoiceEntry,
)


VALID_TYPES = {"sent", "received", "payments", "local"}


def record_to_dict(record: LedgerInvoiceRecord) -> dict:
    """Ledger record as JSON (ciphertext is the UTF-8 envelope text)."""
    return {
        "id": record.id,
        "sender": record.sender,
        "receiverKeyId": record.receiver_key_id,
        "ciphertext": record.ciphertext.decode("utf-8", errors="replace"),
        "integrityHash": record.integrity_hash,
        "createdAt": record.created_at.isoformat(),
    }


def status_to_dict(status: InvoicePaymentStatus) -> dict:
    return {
        "invoiceReference": status.invoice_reference,
        "amountDue": str(status.amount_due),
        "amountPaid": str(status.amount_paid),
        "outstanding": str(status.outstanding),
        "paymentDueDate": status.payment_due_date.isoformat() if status.payment_due_date else None,
        "status": status.status.value,
        "payments": [
            {
                "txHash": p.tx_hash,
                "from": p.from_address,
                "amount": str(p.amount),
                "timestamp": p.timestamp.isoformat(),
                "ambiguous": p.ambiguous,
            }
            for p in status.payments
        ],
    }


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    invoice_svc = services["invoice"]
    payment_svc = services["payment"]
    invoice_log = services["invoice_log"]

    @router.get("/data")
    def get_data(
        request: Request,
        type: str | None = Query(None),
        limit: int = Query(50, ge=1, le=500),
        offset: int = Query(0, ge=0),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        session = request.state.session
        request_id = getattr(request.state, "request_id", None)

        if type == "sent":
            records = invoice_svc.list_sent(session)
            data = [record_to_dict(r) for r in records[offset:offset + limit]]

        elif type == "received":
            records = invoice_svc.list_received(session)
            data = [record_to_dict(r) for r in records[offset:offset + limit]]

        elif type == "payments":
            data = [status_to_dict(s) for s in payment_svc.statuses(session)]

        else:
            entries: list[LocalInvoiceEntry] = invoice_log.list_entries(session.address)
            data = [e.to_record() for e in entries[offset:offset + limit]]

        return success_response(data, request_id).model_dump(mode="json")

    return router
