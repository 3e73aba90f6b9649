from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Protocol


class SignedTx(Protocol):
    raw_transaction: bytes


class Signer(ABC):
    """
    The wallet: one EVM account that can sign transactions and EIP-712 payloads.
    """

    @abstractmethod
    def get_address(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def sign_transaction(self, tx: Dict[str, Any], *, chain_id: int | None = None) -> SignedTx:
        raise NotImplementedError

    @abstractmethod
    def sign_typed_data(self, typed_data: Dict[str, Any]) -> str:
        """Sign a full EIP-712 message (`types`, `domain`, `primaryType`, `message`); returns 0x-hex."""
        raise NotImplementedError


def signature_hex(signature: bytes) -> str:
    return "0x" + bytes(signature).hex()
