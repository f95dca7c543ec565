"""Block timestamp lookup for snackshack-deployments."""

from typing import Dict

import requests

from .exceptions import ReadError


def get_block_timestamp(
    block_number: int, network: str, rpc_url: str, cache: Dict[str, Dict[str, int]]
) -> int:
    """
    Get block timestamp, using cache or fetching via RPC.

    Args:
        block_number: Block number to get timestamp for
        network: Network name ("mainnet" or "rinkeby")
        rpc_url: RPC endpoint URL
        cache: Timestamp cache (will be updated if RPC call is made)

    Returns:
        Unix timestamp of the block

    Raises:
        ReadError: If the RPC call fails or the response is malformed
    """
    # Convert block number to string for cache key (JSON requirement)
    block_key = str(block_number)

    if network in cache and block_key in cache[network]:
        return cache[network][block_key]

    try:
        response = requests.post(
            rpc_url,
            json={
                "jsonrpc": "2.0",
                "method": "eth_getBlockByNumber",
                "params": [hex(block_number), False],  # Block number as hex, no full txs
                "id": 1,
            },
            timeout=30,
        )
    except requests.RequestException as e:
        raise ReadError(f"Network error during RPC call: {e}") from e

    if response.status_code != 200:
        raise ReadError(f"RPC request failed with status {response.status_code}")

    try:
        result = response.json()
    except ValueError as e:
        raise ReadError(f"RPC returned invalid JSON: {e}") from e

    if "error" in result:
        raise ReadError(f"RPC error: {result['error']}")

    block = result.get("result")
    if not block or "timestamp" not in block:
        raise ReadError(f"Block {block_number} not found on {network}")

    timestamp = int(block["timestamp"], 16)
    cache.setdefault(network, {})[block_key] = timestamp
    return timestamp


def make_timestamp_lookup(network: str, rpc_url: str):
    """
    Build a block number -> timestamp function backed by a private cache.

    Args:
        network: Network name used as the cache key
        rpc_url: RPC endpoint URL
    """
    cache: Dict[str, Dict[str, int]] = {}

    def timestamp_lookup(block_number: int) -> int:
        return get_block_timestamp(block_number, network, rpc_url, cache)

    return timestamp_lookup
