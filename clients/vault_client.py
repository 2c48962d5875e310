"""
HashiCorp Vault client for invoice vault endpoints and credentials.

Uses AppRole authentication. Fails fast on missing configuration.
All paths scoped to 'invoice_vault/' prefix - no escape to other secrets.
"""

import os
import logging
from typing import Dict, Iterable

import hvac
from hvac.exceptions import InvalidPath, Unauthorized, Forbidden

logger = logging.getLogger(__name__)

# Project scope - all secrets under this path
_SECRET_PREFIX = "invoice_vault"

# Singleton instance and cache
_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, str] = {}


def _ensure_vault_client() -> "VaultClient":
    global _vault_client_instance
    if _vault_client_instance is None:
        _vault_client_instance = VaultClient()
    return _vault_client_instance


class VaultError(PermissionError):
    """Secrets unreachable or denied. The app cannot wire its ledger, explorer or wallet without them."""


class VaultClient:
    """Vault client with AppRole auth, env-based config, and fail-fast behavior."""

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_namespace: str | None = None,
        client: hvac.Client | None = None,
    ):
        """Initialize with environment variables. Fails fast on missing config."""
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        self.vault_role_id = os.getenv("VAULT_ROLE_ID")
        self.vault_secret_id = os.getenv("VAULT_SECRET_ID")

        if not self.vault_addr:
            raise ValueError("VAULT_ADDR environment variable is required")

        if not self.vault_role_id or not self.vault_secret_id:
            raise ValueError(
                "VAULT_ROLE_ID and VAULT_SECRET_ID environment variables are required"
            )

        if client is None:
            client_kwargs = {"url": self.vault_addr}
            if self.vault_namespace:
                client_kwargs["namespace"] = self.vault_namespace
            client = hvac.Client(**client_kwargs)

        self.client = client
        self._authenticate_approle()

        if not self.client.is_authenticated():
            raise VaultError("Vault authentication failed")

        logger.info(f"Vault client initialized: {self.vault_addr}")

    def _authenticate_approle(self) -> None:
        """Authenticate using AppRole credentials."""
        try:
            auth_response = self.client.auth.approle.login(
                role_id=self.vault_role_id,
                secret_id=self.vault_secret_id,
            )
            self.client.token = auth_response["auth"]["client_token"]
            logger.info("AppRole authentication successful")
        except Exception as e:
            logger.error(f"AppRole authentication failed: {e}")
            raise VaultError(f"AppRole authentication failed: {e}")

    def get_secret(self, path: str, field: str) -> str:
        """
        Retrieve single field from KV v2 secret.

        Path is automatically scoped to 'invoice_vault/' prefix.
        Caller passes 'ledger', we access 'invoice_vault/ledger'.

        Args:
            path: Secret path relative to invoice_vault/ (e.g., 'ledger', 'explorer')
            field: Field name within secret (e.g., 'rpc_url')

        Returns:
            Field value as string.

        Raises:
            VaultError: Path not accessible or doesn't exist.
            KeyError: Field not found in secret.
        """
        full_path = f"{_SECRET_PREFIX}/{path}"

        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath:
            logger.error(f"Secret path not found: {full_path}")
            raise VaultError(f"Secret path '{full_path}' not found in Vault")
        except (Unauthorized, Forbidden) as e:
            logger.error(f"Access denied to secret {full_path}: {e}")
            raise VaultError(f"Access denied to secret '{full_path}': {e}")

        secret_data = response["data"]["data"]
        if field not in secret_data:
            available = list(secret_data.keys())
            raise KeyError(
                f"Field '{field}' not found in secret '{full_path}'. "
                f"Available: {', '.join(available)}"
            )

        return secret_data[field]


# Convenience functions


def _get_fields(path: str, fields: Iterable[str]) -> Dict[str, str]:
    """Read several fields of one secret, caching each."""
    result = {}

    for field in fields:
        cache_key = f"{_SECRET_PREFIX}/{path}/{field}"
        if cache_key not in _secret_cache:
            _secret_cache[cache_key] = _ensure_vault_client().get_secret(path, field)
        result[field] = _secret_cache[cache_key]

    return result


def get_ledger_config() -> Dict[str, str]:
    """
    Get ledger connection settings from Vault.

    Returns:
        Dict with keys: rpc_url, contract_address, chain_id
    """
    return _get_fields("ledger", ["rpc_url", "contract_address", "chain_id"])


def get_explorer_config() -> Dict[str, str]:
    """
    Get transaction history feed settings from Vault.

    Returns:
        Dict with keys: api_url, api_key
    """
    return _get_fields("explorer", ["api_url", "api_key"])


def get_wallet_rpc_url() -> str:
    """Get the key-holder wallet's JSON-RPC endpoint from Vault."""
    return _get_fields("wallet", ["rpc_url"])["rpc_url"]


def get_valkey_url() -> str:
    """Get Valkey (Redis) connection URL for the local invoice log."""
    return _get_fields("valkey", ["url"])["url"]
