from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set

from .base import SignedTx, Signer


@dataclass
class SignerPolicyViolation(Exception):
    code: str
    message: str
    data: Dict[str, Any]


def _parse_csv_set(value: Optional[str]) -> Set[str]:
    if not value:
        return set()
    return {v.strip().lower() for v in value.split(",") if v.strip()}


def _parse_int_set(value: Optional[str]) -> Set[int]:
    out: Set[int] = set()
    for part in (value or "").split(","):
        s = part.strip()
        if not s:
            continue
        try:
            out.add(int(s, 0))
        except ValueError:
            continue
    return out


def _env_int(name: str) -> Optional[int]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return None
    try:
        return int(raw, 0)
    except ValueError:
        return None


@dataclass(frozen=True)
class SignerPolicyConfig:
    allowed_chain_ids: Set[int]
    allowed_contracts: Set[str]
    max_gas_price_wei: Optional[int]

    def has_rules(self) -> bool:
        return bool(self.allowed_chain_ids or self.allowed_contracts or self.max_gas_price_wei is not None)


def policy_config_from_env() -> SignerPolicyConfig:
    """
    Signer-side guardrails. All rules are opt-in.

    - SIGNER_ALLOWED_CHAIN_IDS: chains the wallet may sign for (tx chainId or EIP-712 domain chainId)
    - SIGNER_ALLOWED_CONTRACTS: token contracts a transaction may target
    - SIGNER_MAX_GAS_PRICE_WEI: ceiling on gasPrice / maxFeePerGas
    """
    return SignerPolicyConfig(
        allowed_chain_ids=_parse_int_set(os.getenv("SIGNER_ALLOWED_CHAIN_IDS")),
        allowed_contracts=_parse_csv_set(os.getenv("SIGNER_ALLOWED_CONTRACTS")),
        max_gas_price_wei=_env_int("SIGNER_MAX_GAS_PRICE_WEI"),
    )


def _check_chain(chain_id: Any, cfg: SignerPolicyConfig) -> None:
    if not cfg.allowed_chain_ids or chain_id is None:
        return
    if int(chain_id) not in cfg.allowed_chain_ids:
        raise SignerPolicyViolation(
            "chain_id_not_allowed",
            "Chain is not allowlisted by signer policy.",
            {"chain_id": int(chain_id), "allowed_chain_ids": sorted(cfg.allowed_chain_ids)},
        )


def validate_tx_against_policy(tx: Dict[str, Any], *, chain_id: int | None, cfg: SignerPolicyConfig) -> None:
    if not tx.get("to"):
        raise SignerPolicyViolation(
            "contract_creation_not_allowed",
            "Contract creation tx (missing 'to') is never signed by this wallet.",
            {},
        )

    _check_chain(chain_id if chain_id is not None else tx.get("chainId"), cfg)

    to = str(tx["to"]).strip().lower()
    if cfg.allowed_contracts and to not in cfg.allowed_contracts:
        raise SignerPolicyViolation(
            "contract_not_allowed",
            "Transaction target is not allowlisted by signer policy.",
            {"to": str(tx["to"]), "allowed_contracts": sorted(cfg.allowed_contracts)},
        )

    if cfg.max_gas_price_wei is not None:
        gp = int(tx.get("gasPrice") or tx.get("maxFeePerGas") or 0)
        if gp > cfg.max_gas_price_wei:
            raise SignerPolicyViolation(
                "gas_price_too_large",
                "Transaction gas price exceeds signer policy limit.",
                {"gas_price_wei": gp, "max_gas_price_wei": cfg.max_gas_price_wei},
            )


def validate_typed_data_against_policy(typed_data: Dict[str, Any], *, cfg: SignerPolicyConfig) -> None:
    domain = typed_data.get("domain") or {}
    _check_chain(domain.get("chainId"), cfg)


class PolicyEnforcedSigner(Signer):
    """
    Wrap a wallet with local policy enforcement.
    """

    def __init__(self, inner: Signer, cfg: SignerPolicyConfig) -> None:
        self._inner = inner
        self._cfg = cfg

    def get_address(self) -> str:
        return self._inner.get_address()

    def sign_transaction(self, tx: Dict[str, Any], *, chain_id: int | None = None) -> SignedTx:
        validate_tx_against_policy(tx, chain_id=chain_id, cfg=self._cfg)
        return self._inner.sign_transaction(tx, chain_id=chain_id)

    def sign_typed_data(self, typed_data: Dict[str, Any]) -> str:
        validate_typed_data_against_policy(typed_data, cfg=self._cfg)
        return self._inner.sign_typed_data(typed_data)


def maybe_wrap_signer(signer: Signer) -> Signer:
    """
    Wrap signer with policy if SIGNER_POLICY_ENABLED is set or any rule is configured.
    """
    cfg = policy_config_from_env()
    enabled = (os.getenv("SIGNER_POLICY_ENABLED") or "").strip().lower() in {"1", "true", "yes", "on"}
    if not (enabled or cfg.has_rules()):
        return signer
    return PolicyEnforcedSigner(signer, cfg)
