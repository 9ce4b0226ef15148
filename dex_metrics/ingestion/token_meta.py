import logging
from functools import lru_cache
from typing import Dict, Optional

import backoff
from web3 import HTTPProvider, Web3
from web3.exceptions import Web3Exception

from dex_metrics.pipeline.types import Pool, Token

log = logging.getLogger(__name__)

ERC20_META_ABI = [
    {"constant": True, "inputs": [], "name": "decimals",
     "outputs": [{"name": "", "type": "uint8"}], "type": "function"},
    {"constant": True, "inputs": [], "name": "symbol",
     "outputs": [{"name": "", "type": "string"}], "type": "function"},
    {"constant": True, "inputs": [], "name": "name",
     "outputs": [{"name": "", "type": "string"}], "type": "function"},
    {"constant": True, "inputs": [], "name": "totalSupply",
     "outputs": [{"name": "", "type": "uint256"}], "type": "function"},
]

# Cache of Web3 clients per RPC URL
_web3_clients: Dict[str, Web3] = {}


@backoff.on_exception(backoff.expo, Exception, max_tries=5, jitter=None)
def _create_web3_client(rpc_url: str) -> Web3:
    log.info("Connecting to RPC: %s", rpc_url)
    w3 = Web3(HTTPProvider(rpc_url, request_kwargs={"timeout": 10}))

    if not w3.is_connected():
        raise ConnectionError(f"Failed to connect to RPC: {rpc_url}")

    log.info("Connected to %s ✅", rpc_url)
    return w3


def get_web3_client(rpc_url: str) -> Web3:
    """Returns a cached or newly created Web3 client for a given RPC URL."""
    if rpc_url not in _web3_clients:
        _web3_clients[rpc_url] = _create_web3_client(rpc_url)
    return _web3_clients[rpc_url]


@lru_cache(maxsize=None)
@backoff.on_exception(backoff.expo, Exception, max_tries=3)
def fetch_token_meta(w3: Web3, token_address: str) -> Dict:
    token = w3.eth.contract(address=Web3.to_checksum_address("0x" + token_address), abi=ERC20_META_ABI)
    return {
        "decimals": token.functions.decimals().call(),
        "symbol":   token.functions.symbol().call(),
        "name":     token.functions.name().call(),
        "total_supply": token.functions.totalSupply().call(),
    }


def _filled(w3: Web3, token: Token) -> Optional[Token]:
    try:
        meta = fetch_token_meta(w3, token.address)
    except Web3Exception as e:
        # left without decimals, the pool is skipped when it is mapped
        log.warning("token %s metadata unavailable: %s", token.address, e)
        return None
    return token._replace(
        name=meta["name"],
        symbol=meta["symbol"],
        decimals=int(meta["decimals"]),
        total_supply=int(meta["total_supply"]),
    )


def fill_token_meta(pool: Pool, w3: Web3) -> Pool:
    """Fill name/symbol/decimals/supply of any token the decoder left without decimals."""
    updates = {}
    for side in ("token0", "token1"):
        token = getattr(pool, side)
        if token.decimals is not None:
            continue
        filled = _filled(w3, token)
        if filled is not None:
            updates[side] = filled
    if not updates:
        return pool
    return pool._replace(**updates)
