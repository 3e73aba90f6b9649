from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

import requests
from web3.exceptions import ContractLogicError, TimeExhausted


@dataclass
class AppError(Exception):
    code: str
    message: str
    data: Dict[str, Any]


class WalletNotConnected(ValueError):
    pass


class UnsupportedChain(ValueError):
    pass


class UnknownDecimals(ValueError):
    pass


class EnsNotResolved(ValueError):
    pass


class TransactionReverted(RuntimeError):
    def __init__(self, tx_hash: str) -> None:
        self.tx_hash = tx_hash
        super().__init__(f"Transaction reverted: {tx_hash}")


class IntentBackendError(RuntimeError):
    pass


class UnsupportedIntent(ValueError):
    def __init__(self, transaction_type: Any) -> None:
        self.transaction_type = transaction_type
        super().__init__(f"Unsupported transaction_type: {transaction_type!r}")


@dataclass
class OrderBookError(Exception):
    status_code: int
    error_type: str
    description: str

    def __str__(self) -> str:
        return f"{self.error_type}: {self.description} (HTTP {self.status_code})"


def classify_exception(e: Exception) -> AppError:
    """
    Map workflow / network issues into stable error codes.
    """
    from signing.policy import SignerPolicyViolation

    if isinstance(e, AppError):
        return e
    if isinstance(e, SignerPolicyViolation):
        return AppError(f"signer_policy_{e.code}", e.message, dict(e.data))
    if isinstance(e, WalletNotConnected):
        return AppError("wallet_not_connected", str(e), {})
    if isinstance(e, UnsupportedChain):
        return AppError("unsupported_chain", str(e), {})
    if isinstance(e, UnknownDecimals):
        return AppError("unknown_decimals", str(e), {})
    if isinstance(e, EnsNotResolved):
        return AppError("ens_unresolved", str(e), {})
    if isinstance(e, UnsupportedIntent):
        return AppError("unsupported_intent", str(e), {"transaction_type": e.transaction_type})
    if isinstance(e, IntentBackendError):
        return AppError("intent_backend_error", str(e), {})
    if isinstance(e, OrderBookError):
        return AppError(
            "order_book_error",
            e.description,
            {"error_type": e.error_type, "status_code": e.status_code},
        )
    if isinstance(e, TransactionReverted):
        return AppError("tx_reverted", str(e), {"tx_hash": e.tx_hash})
    if isinstance(e, TimeExhausted):
        return AppError("tx_timeout", str(e), {})
    if isinstance(e, ContractLogicError):
        return AppError("contract_error", str(e), {})
    if isinstance(e, requests.Timeout):
        return AppError("network_timeout", str(e), {})
    if isinstance(e, requests.RequestException):
        return AppError("network_error", str(e), {})

    return AppError("unknown_error", str(e), {})
