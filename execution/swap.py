from __future__ import annotations

import time
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Callable, Optional, Union

from errors import WalletNotConnected
from observability import log_event
from signing import Signer

from .allowance import ensure_allowance
from .cow import VAULT_RELAYER_ADDRESS, OrderBookApi, OrderStatus, SigningScheme, build_order_typed_data
from .evm import chain_id_for, get_web3, to_atomic, token_decimals


def apply_slippage(buy_amount: Union[str, int], slippage: float) -> str:
    """Shave `slippage` (a fraction) off a quoted buy amount, rounding half up to whole units."""
    with localcontext() as dctx:
        dctx.prec = 80
        scaled = Decimal(str(buy_amount)) * (Decimal(1) - Decimal(str(slippage)))
    return str(int(scaled.to_integral_value(rounding=ROUND_HALF_UP)))


def send_order(
    signer: Optional[Signer],
    chain: str,
    from_asset: str,
    to_asset: str,
    amount: Union[str, Decimal],
    *,
    slippage: float = 0.05,
    order_book: Optional[OrderBookApi] = None,
    ctx: Optional[dict] = None,
) -> str:
    """
    Sell `amount` of `from_asset` for `to_asset` through a CoW Protocol order. Returns the order uid.

    The vault relayer is approved first when the current allowance is too small.
    """
    chain_id = chain_id_for(chain)
    if signer is None:
        raise WalletNotConnected("No wallet is connected!")

    w3 = get_web3(chain)
    owner = w3.to_checksum_address(signer.get_address())

    decimals = token_decimals(chain, from_asset, w3=w3)
    amount_atomic = str(to_atomic(amount, decimals))

    quote_request = {
        "sellToken": from_asset,
        "buyToken": to_asset,
        "from": owner,
        "receiver": owner,
        "sellAmountBeforeFee": amount_atomic,
        "kind": "sell",
    }

    ensure_allowance(w3, signer, from_asset, VAULT_RELAYER_ADDRESS, int(amount_atomic), chain_id=chain_id, ctx=ctx)

    api = order_book or OrderBookApi(chain_id)
    quoted = api.get_quote(quote_request)

    # Zero-fee order that sells the full amount.
    order = dict(quoted.quote)
    order["feeAmount"] = "0"
    order["sellAmount"] = amount_atomic
    order["buyAmount"] = apply_slippage(order["buyAmount"], slippage)
    order["receiver"] = owner

    signature = signer.sign_typed_data(build_order_typed_data(order, chain_id))

    order.update(
        {
            "signature": signature,
            "signingScheme": SigningScheme.EIP712.value,
            "quoteId": quoted.quote_id,
            "from": owner,
        }
    )
    uid = api.send_order(order)
    log_event("order_sent", ctx=ctx, data={"chain": chain, "uid": uid, "buy_amount": order["buyAmount"]})
    return uid


def wait_for_order_status(
    uid: str,
    chain: str,
    *,
    interval: float = 3.0,
    order_book: Optional[OrderBookApi] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> OrderStatus:
    """
    Poll the order every `interval` seconds while it is open and return the first other status.
    """
    api = order_book or OrderBookApi.for_chain(chain)
    status = OrderStatus.OPEN
    while status == OrderStatus.OPEN:
        sleep(interval)
        status = api.get_order_status(uid)
    return status
