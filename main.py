"""Application entry point.

    uvicorn main:create_app --factory

Endpoints and credentials come from Vault; see clients.vault_client.
"""

import logging
from typing import Callable

from dotenv import load_dotenv
from fastapi import FastAPI

from api.actions import create_actions_router
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from clients.explorer_client import ExplorerClient
from clients.ledger_client import LedgerClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import (
    get_explorer_config,
    get_ledger_config,
    get_valkey_url,
    get_wallet_rpc_url,
)
from clients.wallet_client import WalletClient
from core.config import InvoiceVaultConfig
from core.invoice_log import LocalInvoiceLog
from core.services.invoice_service import InvoiceService
from core.services.payment_service import PaymentService
from wallet.api import create_session_router
from wallet.middleware import SessionMiddleware
from wallet.session import SessionRegistry

logger = logging.getLogger(__name__)


def build_app(
    services: dict,
    registry: SessionRegistry,
    public_key_source: Callable[[str], str] | None = None,
) -> FastAPI:
    """Assemble middleware, error handlers and routes around ready services."""
    app = FastAPI(title="Invoice Vault")
    app.add_middleware(SessionMiddleware, registry=registry)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(create_session_router(registry, public_key_source), prefix="/session")
    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")

    return app


def create_app(config: InvoiceVaultConfig | None = None) -> FastAPI:
    """Wire Vault-configured clients into services and build the app."""
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = config or InvoiceVaultConfig()

    ledger_cfg = get_ledger_config()
    ledger = LedgerClient(
        ledger_cfg["rpc_url"],
        ledger_cfg["contract_address"],
        chain_id=int(ledger_cfg["chain_id"]),
        config=config,
    )

    explorer_cfg = get_explorer_config()
    explorer = ExplorerClient(explorer_cfg["api_url"], explorer_cfg["api_key"], config=config)

    wallet = WalletClient(get_wallet_rpc_url(), config=config)
    invoice_log = LocalInvoiceLog(ValkeyClient(get_valkey_url()))

    invoice_service = InvoiceService(ledger, invoice_log, wallet, config=config)
    payment_service = PaymentService(explorer, invoice_log, invoice_service)

    services = {
        "invoice": invoice_service,
        "payment": payment_service,
        "invoice_log": invoice_log,
    }

    logger.info("Invoice vault application configured")
    return build_app(services, SessionRegistry(config), wallet.get_encryption_public_key)
