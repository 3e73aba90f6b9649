from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .base import SignedTx, Signer


@dataclass(frozen=True)
class _RemoteSignedTx(SignedTx):
    """
    Wire-compatible SignedTx wrapper for remote signing responses.
    """

    raw_transaction: bytes


def _strip_0x(value: str) -> str:
    value = value.strip()
    return value[2:] if value.startswith("0x") else value


class RemoteSigner(Signer):
    """
    Wallet that lives behind an HTTP signing service (sidecar, KMS/HSM proxy,
    or an embedded-wallet provider's server API).

    Protocol (HTTP JSON):
    GET  {SIGNER_REMOTE_URL}/address          -> {"address": "0x..."}
    POST {SIGNER_REMOTE_URL}/sign_transaction {"tx": {...}, "chain_id": 1}
                                              -> {"rawTransactionHex": "0x..."}
    POST {SIGNER_REMOTE_URL}/sign_typed_data  {"typed_data": {...}}
                                              -> {"signature": "0x..."}
    """

    def __init__(self, url_env: str = "SIGNER_REMOTE_URL") -> None:
        url = (os.getenv(url_env) or "").strip()
        if not url:
            raise ValueError(f"{url_env} environment variable not set")
        self._base_url = url.rstrip("/")
        self._cached_address: Optional[str] = None

    def _timeout(self) -> float:
        return float((os.getenv("HTTP_TIMEOUT_SEC") or "").strip() or "10")

    def get_address(self) -> str:
        if self._cached_address:
            return self._cached_address
        r = requests.get(f"{self._base_url}/address", timeout=self._timeout())
        r.raise_for_status()
        addr = str(r.json().get("address") or "").strip()
        if not addr:
            raise ValueError("Remote signer returned empty address")
        self._cached_address = addr
        return addr

    def sign_transaction(self, tx: Dict[str, Any], *, chain_id: int | None = None) -> SignedTx:
        payload = {"tx": tx, "chain_id": chain_id}
        r = requests.post(f"{self._base_url}/sign_transaction", json=payload, timeout=self._timeout())
        r.raise_for_status()
        data = r.json()
        raw_hex: Optional[str] = data.get("rawTransactionHex") or data.get("raw_transaction_hex")
        if not raw_hex:
            raise ValueError("Remote signer did not return rawTransactionHex")
        return _RemoteSignedTx(raw_transaction=bytes.fromhex(_strip_0x(str(raw_hex))))

    def sign_typed_data(self, typed_data: Dict[str, Any]) -> str:
        r = requests.post(
            f"{self._base_url}/sign_typed_data",
            json={"typed_data": typed_data},
            timeout=self._timeout(),
        )
        r.raise_for_status()
        sig = str(r.json().get("signature") or "").strip()
        if not sig:
            raise ValueError("Remote signer did not return a signature")
        return "0x" + _strip_0x(sig)
