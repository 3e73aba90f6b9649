from __future__ import annotations

import os
from decimal import Decimal, InvalidOperation, localcontext
from functools import lru_cache
from typing import Any, Dict, Optional, Union

from web3 import Web3
from web3.providers.rpc import HTTPProvider

from errors import UnknownDecimals, UnsupportedChain

CHAIN_ID_BY_NAME: Dict[str, int] = {
    "sepolia": 11155111,
    "mainnet": 1,
    "base": 8453,
}

EXPLORER_TX_URL: Dict[str, str] = {
    "sepolia": "https://sepolia.etherscan.io/tx/",
    "base": "https://basescan.org/tx/",
    "mainnet": "https://etherscan.io/tx/",
}

# Decimals for tokens the intent backend is known to return, per chain id.
KNOWN_DECIMALS: Dict[int, Dict[str, int]] = {
    11155111: {
        "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238": 6,  # testnet USDC
        "0x08210F9170F89Ab7658F0B5E3fF39b0E03C594D4": 6,  # testnet EURC
        "0xB4F1737Af37711e9A5890D9510c9bB60e170CB0D": 18,  # cowswap test DAI
        "0xbe72E441BF55620febc26715db68d3494213D8Cb": 18,  # cowswap test USDC
    },
    1: {
        "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2": 18,  # WETH
        "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48": 6,  # USDC
        "0x6B175474E89094C44Da98b954EedeAC495271d0F": 18,  # DAI
    },
}

MAX_UINT256 = 2**256 - 1

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "symbol",
        "outputs": [{"name": "", "type": "string"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [{"name": "spender", "type": "address"}, {"name": "value", "type": "uint256"}],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "from", "type": "address"},
            {"indexed": True, "name": "to", "type": "address"},
            {"indexed": False, "name": "amount", "type": "uint256"},
        ],
        "name": "Transfer",
        "type": "event",
    },
]


def chain_id_for(chain: str) -> int:
    c = (chain or "").strip().lower()
    if c in CHAIN_ID_BY_NAME:
        return CHAIN_ID_BY_NAME[c]
    raise UnsupportedChain("Unsupported chain")


def _env(name: str) -> Optional[str]:
    v = os.getenv(name)
    if v is None:
        return None
    v = v.strip()
    return v or None


def rpc_url_for(chain: str) -> str:
    """
    Resolve RPC URL for a chain.

    Env precedence (chain=sepolia -> SEPOLIA):
    - EVM_RPC_URL_<CHAIN>
    - RPC_URL_<CHAIN>
    """
    c = (chain or "").strip().lower()
    key = c.upper()
    url = _env(f"EVM_RPC_URL_{key}") or _env(f"RPC_URL_{key}")
    if not url:
        raise ValueError(
            f"Missing RPC URL for chain '{chain}'. Set EVM_RPC_URL_{key} (or RPC_URL_{key})."
        )
    return url


def _http_timeout() -> float:
    return float(_env("HTTP_TIMEOUT_SEC") or "10")


@lru_cache(maxsize=16)
def get_web3(chain: str) -> Web3:
    """
    Connected Web3 for a supported chain; switching chains means asking for another one.
    """
    chain_id_for(chain)
    url = rpc_url_for(chain)
    w3 = Web3(HTTPProvider(url, request_kwargs={"timeout": _http_timeout()}))
    if not w3.is_connected():
        raise ValueError(f"RPC not reachable for chain '{chain}' ({url})")
    return w3


@lru_cache(maxsize=1)
def get_ens_web3() -> Web3:
    url = _env("ENS_RPC_URL") or "https://rpc.ankr.com/eth"
    return Web3(HTTPProvider(url, request_kwargs={"timeout": _http_timeout()}))


def known_decimals(chain: str, token_address: str) -> int:
    chain_id = chain_id_for(chain)
    chain_decimals = KNOWN_DECIMALS.get(chain_id)
    if chain_decimals is None:
        raise UnknownDecimals(f"No decimals for chain: {chain}")
    wanted = (token_address or "").strip().lower()
    for addr, decimals in chain_decimals.items():
        if addr.lower() == wanted:
            return decimals
    raise UnknownDecimals(f"No decimals for token: {token_address}")


def erc20_decimals(w3: Web3, token_address: str) -> int:
    addr = w3.to_checksum_address(token_address)
    c = w3.eth.contract(address=addr, abi=ERC20_ABI)
    d = int(c.functions.decimals().call())
    if d < 0 or d > 255:
        raise ValueError("Invalid ERC20 decimals()")
    return d


def token_decimals(chain: str, token_address: str, *, w3: Web3 | None = None) -> int:
    """
    Decimals for `token_address` on `chain`.

    The static registry wins. With ONCHAIN_DECIMALS_FALLBACK=true and a `w3`,
    unknown tokens are asked for decimals() instead of failing.
    """
    try:
        return known_decimals(chain, token_address)
    except UnknownDecimals:
        fallback = (_env("ONCHAIN_DECIMALS_FALLBACK") or "false").lower() in {"1", "true", "yes", "on"}
        if not fallback or w3 is None:
            raise
        return erc20_decimals(w3, token_address)


def to_atomic(amount: Union[str, int, float, Decimal], decimals: int) -> int:
    """
    Convert a human amount into integer base units, exactly.

    More fractional digits than `decimals` is an error, not a rounding.
    """
    if decimals < 0 or decimals > 255:
        raise ValueError("decimals out of range")
    try:
        d = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e
    if not d.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    if d <= 0:
        raise ValueError("amount must be > 0")
    with localcontext() as dctx:
        # uint256 needs 78 significant digits.
        dctx.prec = 80
        scaled = d.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"amount {amount} has more than {decimals} decimal places")
    return int(scaled)


def is_hex_address(s: str) -> bool:
    v = (s or "").strip()
    if not (v.startswith("0x") and len(v) == 42):
        return False
    try:
        int(v[2:], 16)
        return True
    except ValueError:
        return False


def abbreviate_tx_hash(tx_hash: str) -> str:
    if not tx_hash:
        return ""
    return f"{tx_hash[:6]}...{tx_hash[-4:]}"


def explorer_link(chain: str, tx_hash: str) -> Optional[str]:
    base = EXPLORER_TX_URL.get((chain or "").strip().lower())
    if not base or not tx_hash:
        return None
    return f"{base}{tx_hash}"


def send_raw_transaction(w3: Web3, raw_tx: bytes) -> str:
    tx_hash = w3.eth.send_raw_transaction(raw_tx)
    # tx_hash is HexBytes
    return w3.to_hex(tx_hash)


def sign_and_send(w3: Web3, signer: Any, contract_call: Any, *, chain_id: int) -> str:
    """
    Build a contract call for the wallet (web3 fills gas and fee fields), sign it, broadcast it.
    """
    owner = w3.to_checksum_address(signer.get_address())
    tx = contract_call.build_transaction(
        {
            "from": owner,
            "nonce": w3.eth.get_transaction_count(owner, "pending"),
            "chainId": chain_id,
        }
    )
    signed = signer.sign_transaction(tx, chain_id=chain_id)
    return send_raw_transaction(w3, signed.raw_transaction)
