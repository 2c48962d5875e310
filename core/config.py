"""Invoice vault configuration.

Tunables only. Endpoints and credentials come from Vault
(see clients.vault_client).
"""

from pydantic import BaseModel, Field


class InvoiceVaultConfig(BaseModel):
    """
    Application configuration.

    Durations are in their natural units (seconds for network calls, hours
    for sessions).
    """

    # Ledger
    ledger_page_size: int = Field(
        default=20,
        description="Invoices fetched per ledger read call",
        ge=1,
        le=100,
    )
    ledger_max_pages: int = Field(
        default=50,
        description="Upper bound on pages walked when listing invoices",
        ge=1,
    )
    ledger_read_attempts: int = Field(
        default=3,
        description="Attempts per ledger read before giving up (writes are never retried)",
        ge=1,
        le=10,
    )
    ledger_receipt_timeout_seconds: int = Field(
        default=120,
        description="How long to wait for a submitted invoice to be mined",
        ge=1,
    )

    # Transaction history feed
    explorer_page_size: int = Field(
        default=1000,
        description="Transactions requested per history page",
        ge=1,
        le=10000,
    )
    explorer_max_pages: int = Field(
        default=10,
        description="Upper bound on history pages per reconciliation pass",
        ge=1,
    )
    http_timeout_seconds: int = Field(
        default=15,
        description="Timeout for explorer and wallet HTTP calls",
        ge=1,
        le=120,
    )

    # Sessions
    session_expiry_hours: int = Field(
        default=12,
        description="Wallet session lifetime in hours",
        ge=1,
        le=168,
    )

    connect_challenge_seconds: int = Field(
        default=300,
        description="How long a connect challenge stays valid for signing",
        ge=10,
        le=3600,
    )
