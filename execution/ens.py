from __future__ import annotations

from typing import Optional

from web3 import Web3

from errors import EnsNotResolved

from .evm import get_ens_web3, is_hex_address


def resolve_recipient(recipient: str, *, w3: Optional[Web3] = None) -> str:
    """
    Hex addresses pass through (checksummed); anything else is looked up as an ENS name on mainnet.
    """
    value = (recipient or "").strip()
    if is_hex_address(value):
        return Web3.to_checksum_address(value)
    ens_w3 = w3 or get_ens_web3()
    resolved = ens_w3.ens.address(value)
    if resolved is None:
        raise EnsNotResolved("Could not resolve ENS name")
    return str(resolved)
