from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from errors import UnknownDecimals, UnsupportedChain
from execution.evm import (
    abbreviate_tx_hash,
    chain_id_for,
    explorer_link,
    is_hex_address,
    known_decimals,
    rpc_url_for,
    sign_and_send,
    to_atomic,
    token_decimals,
)

SEPOLIA_USDC = "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238"
TX_HASH = "0x" + "ab" * 31 + "cdef"


def test_chain_ids():
    assert chain_id_for("sepolia") == 11155111
    assert chain_id_for("Mainnet") == 1
    assert chain_id_for("base") == 8453
    with pytest.raises(UnsupportedChain, match="Unsupported chain"):
        chain_id_for("polygon")


def test_to_atomic_is_exact():
    assert to_atomic("1.5", 6) == 1_500_000
    assert to_atomic("0.000001", 6) == 1
    assert to_atomic(Decimal("2"), 18) == 2 * 10**18
    assert to_atomic(0.1, 18) == 10**17


@pytest.mark.parametrize("bad", ["0", "-1", "abc", "NaN", "Infinity", ""])
def test_to_atomic_rejects_invalid_amounts(bad):
    with pytest.raises(ValueError):
        to_atomic(bad, 6)


def test_to_atomic_rejects_excess_precision():
    with pytest.raises(ValueError, match="decimal places"):
        to_atomic("0.0000001", 6)


def test_known_decimals_is_case_insensitive():
    assert known_decimals("sepolia", SEPOLIA_USDC.lower()) == 6
    assert known_decimals("mainnet", "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2") == 18


def test_known_decimals_errors():
    with pytest.raises(UnknownDecimals, match="No decimals for chain: base"):
        known_decimals("base", SEPOLIA_USDC)
    with pytest.raises(UnknownDecimals, match="No decimals for token: 0xdead"):
        known_decimals("sepolia", "0xdead")


def test_token_decimals_onchain_fallback_is_opt_in(monkeypatch):
    token = "0x000000000000000000000000000000000000bEEF"
    w3 = MagicMock()
    w3.to_checksum_address.side_effect = lambda a: a
    w3.eth.contract.return_value.functions.decimals.return_value.call.return_value = 8

    monkeypatch.delenv("ONCHAIN_DECIMALS_FALLBACK", raising=False)
    with pytest.raises(UnknownDecimals):
        token_decimals("sepolia", token, w3=w3)

    monkeypatch.setenv("ONCHAIN_DECIMALS_FALLBACK", "true")
    assert token_decimals("sepolia", token, w3=w3) == 8


def test_rpc_url_env_precedence(monkeypatch):
    monkeypatch.setenv("RPC_URL_SEPOLIA", "http://fallback")
    monkeypatch.setenv("EVM_RPC_URL_SEPOLIA", "http://primary")
    assert rpc_url_for("sepolia") == "http://primary"
    monkeypatch.delenv("EVM_RPC_URL_SEPOLIA")
    assert rpc_url_for("sepolia") == "http://fallback"
    monkeypatch.delenv("RPC_URL_SEPOLIA")
    with pytest.raises(ValueError, match="EVM_RPC_URL_SEPOLIA"):
        rpc_url_for("sepolia")


def test_hex_address_detection():
    assert is_hex_address(SEPOLIA_USDC)
    assert not is_hex_address("vitalik.eth")
    assert not is_hex_address("0x1234")


def test_abbreviate_and_explorer_link():
    assert abbreviate_tx_hash(TX_HASH) == "0xabab...cdef"
    assert explorer_link("sepolia", TX_HASH) == f"https://sepolia.etherscan.io/tx/{TX_HASH}"
    assert explorer_link("base", TX_HASH) == f"https://basescan.org/tx/{TX_HASH}"
    assert explorer_link("mainnet", TX_HASH) == f"https://etherscan.io/tx/{TX_HASH}"
    assert explorer_link("polygon", TX_HASH) is None


def test_sign_and_send_builds_signs_and_broadcasts():
    w3 = MagicMock()
    w3.to_checksum_address.side_effect = lambda a: a
    w3.eth.get_transaction_count.return_value = 3
    w3.eth.send_raw_transaction.return_value = b"\xab\xcd"
    w3.to_hex.side_effect = lambda b: "0x" + bytes(b).hex()

    signer = MagicMock()
    signer.get_address.return_value = "0xme"
    signer.sign_transaction.return_value = MagicMock(raw_transaction=b"\x01\x02")

    call = MagicMock()
    call.build_transaction.return_value = {"to": SEPOLIA_USDC, "data": "0x", "chainId": 11155111}

    tx_hash = sign_and_send(w3, signer, call, chain_id=11155111)

    assert tx_hash == "0xabcd"
    call.build_transaction.assert_called_once_with({"from": "0xme", "nonce": 3, "chainId": 11155111})
    w3.eth.get_transaction_count.assert_called_once_with("0xme", "pending")
    signer.sign_transaction.assert_called_once_with(call.build_transaction.return_value, chain_id=11155111)
    w3.eth.send_raw_transaction.assert_called_once_with(b"\x01\x02")
