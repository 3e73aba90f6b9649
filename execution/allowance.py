from __future__ import annotations

from typing import Any, Optional

from web3 import Web3

from errors import TransactionReverted
from observability import log_event
from signing import Signer

from .evm import ERC20_ABI, MAX_UINT256, sign_and_send


def ensure_allowance(
    w3: Web3,
    signer: Signer,
    token_address: str,
    spender: str,
    required: int,
    *,
    chain_id: int,
    timeout: float = 600,
    ctx: Optional[dict] = None,
) -> Optional[Any]:
    """
    Make sure `spender` may pull at least `required` of the wallet's token.

    An insufficient allowance is replaced by an unlimited approval, and we wait for it to be mined.
    Returns the approval receipt, or None when the existing allowance already covers `required`.
    """
    owner = w3.to_checksum_address(signer.get_address())
    spender_cs = w3.to_checksum_address(spender)
    token = w3.eth.contract(address=w3.to_checksum_address(token_address), abi=ERC20_ABI)

    existing = int(token.functions.allowance(owner, spender_cs).call())
    if existing >= int(required):
        log_event("allowance_sufficient", ctx=ctx, data={"token": token_address, "allowance": str(existing)})
        return None

    log_event("approval_sending", ctx=ctx, data={"token": token_address, "spender": spender_cs})
    tx_hash = sign_and_send(w3, signer, token.functions.approve(spender_cs, MAX_UINT256), chain_id=chain_id)
    receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
    if int(receipt["status"]) != 1:
        raise TransactionReverted(tx_hash)
    log_event("approval_finalized", ctx=ctx, data={"tx_hash": tx_hash, "block": int(receipt["blockNumber"])})
    return receipt
