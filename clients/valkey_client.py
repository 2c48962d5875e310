"""
Valkey (Redis-compatible) client for the issuer's local invoice log.

Thin wrapper around redis-py. Fail-fast: raises on connection failure,
never returns fallback values.
"""

import json
import logging
from typing import Any

import redis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Redis-compatible client for Valkey.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0")
        client.append_json("invoice_log:0xabc", {"invoiceReference": "0x01"})
        entries = client.range_json("invoice_log:0xabc")
    """

    def __init__(self, url: str, connection: redis.Redis | None = None):
        """
        Initialize Valkey connection.

        Args:
            url: Redis-compatible connection URL (e.g., redis://localhost:6379/0)
            connection: Pre-built redis connection (skips from_url)

        Raises:
            redis.ConnectionError: If connection fails
        """
        self._client = connection or redis.from_url(url, decode_responses=True)
        # Verify connectivity immediately (fail-fast)
        self._client.ping()
        logger.info("ValkeyClient connected")

    def ping(self) -> bool:
        """
        Health check.

        Returns True if Valkey responds.
        Raises redis.ConnectionError if unreachable.
        """
        self._client.ping()
        return True

    def append_json(self, key: str, value: dict | list) -> int:
        """
        Append a JSON-serialized value to the list at key.

        Returns:
            New length of the list
        """
        return self._client.rpush(key, json.dumps(value, separators=(",", ":")))

    def range_json(self, key: str, start: int = 0, end: int = -1) -> list[Any]:
        """
        Read and deserialize list items in insertion order.

        Returns an empty list if key doesn't exist.
        Raises ValueError if an item is not valid JSON.
        """
        items = self._client.lrange(key, start, end)
        result = []
        for position, item in enumerate(items, start=start):
            try:
                result.append(json.loads(item))
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON at '{key}'[{position}]: {e}")
        return result

    def close(self) -> None:
        """Close the connection."""
        self._client.close()
        logger.info("ValkeyClient closed")
