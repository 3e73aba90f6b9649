from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import requests
from eth_utils import keccak

from errors import OrderBookError

from .evm import chain_id_for

# Same deployment address on every supported chain.
VAULT_RELAYER_ADDRESS = "0xC92E8bdf79f0507f65a392b0ab4667716BFE0110"
SETTLEMENT_ADDRESS = "0x9008D19f58AAbD9eD0D60971565AA8510560ab41"

ZERO_APP_DATA = "0x" + "00" * 32

_NETWORK_BY_CHAIN_ID: Dict[int, str] = {
    1: "mainnet",
    11155111: "sepolia",
    8453: "base",
}

ORDER_TYPES = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "Order": [
        {"name": "sellToken", "type": "address"},
        {"name": "buyToken", "type": "address"},
        {"name": "receiver", "type": "address"},
        {"name": "sellAmount", "type": "uint256"},
        {"name": "buyAmount", "type": "uint256"},
        {"name": "validTo", "type": "uint32"},
        {"name": "appData", "type": "bytes32"},
        {"name": "feeAmount", "type": "uint256"},
        {"name": "kind", "type": "string"},
        {"name": "partiallyFillable", "type": "bool"},
        {"name": "sellTokenBalance", "type": "string"},
        {"name": "buyTokenBalance", "type": "string"},
    ],
}


class OrderStatus(str, Enum):
    PRESIGNATURE_PENDING = "presignaturePending"
    OPEN = "open"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class SigningScheme(str, Enum):
    EIP712 = "eip712"
    ETHSIGN = "ethsign"


@dataclass
class Quote:
    """A quote as returned by the order book: the order body plus its quote id."""

    quote: Dict[str, Any]
    quote_id: Optional[int]
    raw: Dict[str, Any]


def app_data_hash(quote: Dict[str, Any]) -> str:
    """
    The bytes32 appData to sign: the quote's hash when given as one, else keccak of the JSON document.
    """
    if quote.get("appDataHash"):
        return str(quote["appDataHash"])
    app_data = str(quote.get("appData") or "")
    if not app_data:
        return ZERO_APP_DATA
    if app_data.startswith("0x") and len(app_data) == 66:
        return app_data
    return "0x" + keccak(text=app_data).hex()


def build_order_typed_data(order: Dict[str, Any], chain_id: int) -> Dict[str, Any]:
    message = {
        "sellToken": order["sellToken"],
        "buyToken": order["buyToken"],
        "receiver": order["receiver"],
        "sellAmount": int(order["sellAmount"]),
        "buyAmount": int(order["buyAmount"]),
        "validTo": int(order["validTo"]),
        "appData": app_data_hash(order),
        "feeAmount": int(order["feeAmount"]),
        "kind": str(order["kind"]),
        "partiallyFillable": bool(order.get("partiallyFillable", False)),
        "sellTokenBalance": str(order.get("sellTokenBalance") or "erc20"),
        "buyTokenBalance": str(order.get("buyTokenBalance") or "erc20"),
    }
    return {
        "types": ORDER_TYPES,
        "primaryType": "Order",
        "domain": {
            "name": "Gnosis Protocol",
            "version": "v2",
            "chainId": int(chain_id),
            "verifyingContract": SETTLEMENT_ADDRESS,
        },
        "message": message,
    }


class OrderBookApi:
    """
    Minimal client for the CoW Protocol order book REST API (v1).
    """

    BASE_URL = "https://api.cow.fi"

    def __init__(self, chain_id: int, *, base_url: Optional[str] = None, session: Optional[requests.Session] = None):
        network = _NETWORK_BY_CHAIN_ID.get(int(chain_id))
        if network is None:
            raise ValueError(f"CoW order book not available for chain id {chain_id}")
        self.chain_id = int(chain_id)
        root = (base_url or os.getenv("COW_API_BASE_URL") or self.BASE_URL).rstrip("/")
        self.api_url = f"{root}/{network}/api/v1"
        self._session = session or requests.Session()

    @classmethod
    def for_chain(cls, chain: str, **kwargs: Any) -> "OrderBookApi":
        return cls(chain_id_for(chain), **kwargs)

    def _timeout(self) -> float:
        return float((os.getenv("HTTP_TIMEOUT_SEC") or "").strip() or "10")

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = self._session.request(method, f"{self.api_url}{path}", timeout=self._timeout(), **kwargs)
        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            raise OrderBookError(
                status_code=response.status_code,
                error_type=str(body.get("errorType") or "HttpError"),
                description=str(body.get("description") or response.text or response.reason),
            )
        return response.json()

    def get_quote(self, request: Dict[str, Any]) -> Quote:
        data = self._request("POST", "/quote", json=request)
        return Quote(quote=dict(data["quote"]), quote_id=data.get("id"), raw=data)

    def send_order(self, order: Dict[str, Any]) -> str:
        return str(self._request("POST", "/orders", json=order))

    def get_order(self, uid: str) -> Dict[str, Any]:
        return self._request("GET", f"/orders/{uid}")

    def get_order_status(self, uid: str) -> OrderStatus:
        return OrderStatus(self.get_order(uid)["status"])
