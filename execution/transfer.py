from __future__ import annotations

import time
from decimal import Decimal
from typing import Any, Optional, Union

from web3 import Web3

from errors import TransactionReverted, WalletNotConnected
from observability import log_event
from signing import Signer

from .ens import resolve_recipient
from .evm import ERC20_ABI, chain_id_for, get_web3, sign_and_send, to_atomic, token_decimals


def send_transfer(
    signer: Optional[Signer],
    receiver: str,
    amount: Union[str, Decimal],
    chain: str,
    token_address: str,
    *,
    ens_w3: Optional[Web3] = None,
    ctx: Optional[dict] = None,
) -> str:
    """
    Send `amount` of the ERC-20 at `token_address` to `receiver` (hex address or ENS name).

    Returns the transaction hash once it is broadcast; confirmation is `wait_for_transfer`.
    """
    if signer is None:
        raise WalletNotConnected("No wallet is connected!")

    chain_id = chain_id_for(chain)
    w3 = get_web3(chain)

    decimals = token_decimals(chain, token_address, w3=w3)
    amount_atomic = to_atomic(amount, decimals)

    receiver_address = resolve_recipient(receiver, w3=ens_w3)

    token = w3.eth.contract(address=w3.to_checksum_address(token_address), abi=ERC20_ABI)
    log_event(
        "transfer_sending",
        ctx=ctx,
        data={"chain": chain, "token": token_address, "to": receiver_address, "amount_atomic": str(amount_atomic)},
    )
    return sign_and_send(w3, signer, token.functions.transfer(receiver_address, amount_atomic), chain_id=chain_id)


def wait_for_transfer(chain: str, tx_hash: str, *, confirmations: int = 1, timeout: float = 600) -> Any:
    """
    Block until the transfer is mined and has `confirmations` blocks on top (the mining block counts).
    """
    w3 = get_web3(chain)
    receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
    if int(receipt["status"]) != 1:
        raise TransactionReverted(tx_hash)
    if confirmations > 1:
        _wait_for_block(w3, int(receipt["blockNumber"]) + confirmations - 1, timeout=timeout)
    return receipt


def _wait_for_block(w3: Web3, target: int, *, timeout: float, poll: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while int(w3.eth.block_number) < target:
        if time.monotonic() >= deadline:
            raise TimeoutError(f"Block {target} not reached within {timeout}s")
        time.sleep(poll)
