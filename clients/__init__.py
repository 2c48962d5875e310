# Infrastructure clients
from clients.vault_client import (
    VaultClient,
    VaultError,
    get_explorer_config,
    get_ledger_config,
    get_valkey_url,
    get_wallet_rpc_url,
)
from clients.valkey_client import ValkeyClient
from clients.ledger_client import LedgerClient
from clients.explorer_client import ExplorerClient
from clients.wallet_client import WalletClient, WalletRPCError
from clients.local_key_holder import LocalKeyHolder
