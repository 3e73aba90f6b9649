import json
from unittest.mock import MagicMock, patch

import pytest
from web3.exceptions import TimeExhausted

from app.core.container import global_container
from app.tools.intents import (
    MSG_GENERIC_FAILURE,
    MSG_ORDER_FILLED,
    MSG_QUERY_FAILED,
    MSG_TRANSFER_CONFIRMED,
    get_intent,
    run_intent_job,
    submit_intent,
)
from errors import IntentBackendError, TransactionReverted, WalletNotConnected
from execution.cow import OrderStatus
from intent_client import IntentClient, SwapIntent, TransferIntent
from job_store import IntentStatus

TX_HASH = "0x" + "ab" * 32


def _transfer_intent():
    return TransferIntent.model_validate(
        {
            "recipientAddress": "vitalik.eth",
            "amount": "10",
            "token": "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
            "chain": "sepolia",
        }
    )


def _swap_intent():
    return SwapIntent.model_validate(
        {
            "fromAsset": "0xB4F1737Af37711e9A5890D9510c9bB60e170CB0D",
            "toAsset": "0xbe72E441BF55620febc26715db68d3494213D8Cb",
            "amount": "1",
            "chain": "sepolia",
        }
    )


@pytest.fixture
def intent_client():
    client = MagicMock()
    with patch.object(global_container, "intent_client", client), patch.object(
        global_container, "wallet", return_value=MagicMock()
    ):
        yield client


def _submit(owner="u1", text="send 10 USDC to vitalik.eth"):
    body = json.loads(submit_intent(owner, text))
    assert body["ok"] is True
    return body["data"]["job"]["job_id"]


def test_submit_rejects_empty_and_in_flight(job_store):
    assert json.loads(submit_intent("u1", "   "))["error"]["code"] == "empty_intent"
    job_id = _submit()
    body = json.loads(submit_intent("u1", "again"))
    assert body["error"]["code"] == "job_in_flight"
    assert body["error"]["data"]["job_id"] == job_id


def test_get_intent_is_owner_scoped(job_store):
    job_id = _submit()
    assert json.loads(get_intent("u1", job_id))["data"]["job"]["status"] == "idle"
    assert json.loads(get_intent("u2", job_id))["error"]["code"] == "job_not_found"


def test_transfer_job_reaches_confirmed(job_store, intent_client):
    intent_client.query.return_value = _transfer_intent()
    job_id = _submit()

    with patch("app.tools.intents.send_transfer", return_value=TX_HASH) as send, patch(
        "app.tools.intents.wait_for_transfer", return_value={"transactionHash": bytes.fromhex("ab" * 32)}
    ):
        run_intent_job(job_id)

    job = job_store.get(job_id)
    assert job.status == IntentStatus.CONFIRMED
    assert job.message == MSG_TRANSFER_CONFIRMED
    assert job.kind == "transfer"
    assert job.tx_hash == TX_HASH
    assert job.explorer_url == f"https://sepolia.etherscan.io/tx/{TX_HASH}"
    intent_client.query.assert_called_once_with("send 10 USDC to vitalik.eth")
    assert send.call_args.args[1:] == ("vitalik.eth", "10", "sepolia", "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238")


def test_swap_job_reaches_filled(job_store, intent_client):
    intent_client.query.return_value = _swap_intent()
    job_id = _submit(text="swap 1 DAI for USDC")

    with patch("app.tools.intents.send_order", return_value="0xuid"), patch(
        "app.tools.intents.wait_for_order_status", return_value=OrderStatus.FULFILLED
    ):
        run_intent_job(job_id)

    job = job_store.get(job_id)
    assert job.status == IntentStatus.FILLED
    assert job.message == MSG_ORDER_FILLED
    assert job.order_id == "0xuid"
    assert job.order_status == "fulfilled"


def test_swap_job_not_filled(job_store, intent_client):
    intent_client.query.return_value = _swap_intent()
    job_id = _submit(text="swap 1 DAI for USDC")

    with patch("app.tools.intents.send_order", return_value="0xuid"), patch(
        "app.tools.intents.wait_for_order_status", return_value=OrderStatus.CANCELLED
    ):
        run_intent_job(job_id)

    job = job_store.get(job_id)
    assert job.status == IntentStatus.ERROR
    assert job.message == "Uh oh! Something went wrong! Order status: cancelled"
    assert job.error_code == "order_not_filled"


def test_query_failure(job_store, intent_client):
    intent_client.query.side_effect = IntentBackendError("Network response was not ok!")
    job_id = _submit()

    run_intent_job(job_id)

    job = job_store.get(job_id)
    assert job.status == IntentStatus.ERROR
    assert job.message == MSG_QUERY_FAILED
    assert job.error_code == "intent_backend_error"


def test_execution_failure_is_classified(job_store, intent_client):
    intent_client.query.return_value = _transfer_intent()
    job_id = _submit()

    with patch("app.tools.intents.send_transfer", side_effect=WalletNotConnected("No wallet is connected!")):
        run_intent_job(job_id)

    job = job_store.get(job_id)
    assert job.status == IntentStatus.ERROR
    assert job.message == MSG_GENERIC_FAILURE
    assert job.error_code == "wallet_not_connected"
    assert job.tx_hash is None


def test_finished_jobs_are_audited(job_store, intent_client, tmp_path):
    from observability import AuditLog

    audit = AuditLog(str(tmp_path / "audit.db"))
    intent_client.query.side_effect = IntentBackendError("down")
    job_id = _submit()

    with patch.object(global_container, "audit_log", audit):
        run_intent_job(job_id)

    rows = audit.recent()
    assert len(rows) == 1
    assert rows[0]["job_id"] == job_id
    assert rows[0]["status"] == "error"
    assert rows[0]["ok"] is False
    assert rows[0]["error_code"] == "intent_backend_error"


def test_audit_failure_does_not_break_job(job_store, intent_client, tmp_path):
    from observability import AuditLog

    broken = AuditLog(str(tmp_path / "missing_dir" / "audit.db"))
    intent_client.query.side_effect = IntentBackendError("down")
    job_id = _submit()

    with patch.object(global_container, "audit_log", broken), patch("app.tools.intents.log_event") as log:
        run_intent_job(job_id)

    job = job_store.get(job_id)
    assert job.status == IntentStatus.ERROR
    assert job.error_code == "intent_backend_error"
    events = [c.args[0] for c in log.call_args_list]
    assert "audit_append_failed" in events
    assert events[-1] == "intent_finished"


@pytest.mark.parametrize(
    "exc,code",
    [(TransactionReverted(TX_HASH), "tx_reverted"), (TimeExhausted("receipt not found"), "tx_timeout")],
)
def test_failure_after_submission_keeps_tx_hash(job_store, intent_client, exc, code):
    intent_client.query.return_value = _transfer_intent()
    job_id = _submit()

    with patch("app.tools.intents.send_transfer", return_value=TX_HASH), patch(
        "app.tools.intents.wait_for_transfer", side_effect=exc
    ):
        run_intent_job(job_id)

    job = job_store.get(job_id)
    assert job.status == IntentStatus.ERROR
    assert job.message == MSG_GENERIC_FAILURE
    assert job.error_code == code
    assert job.tx_hash == TX_HASH
    assert job.explorer_url == f"https://sepolia.etherscan.io/tx/{TX_HASH}"


def test_unknown_transaction_type_ends_in_error(job_store):
    session = MagicMock()
    session.post.return_value = MagicMock(ok=True)
    session.post.return_value.json.return_value = {"transaction_type": "bridge", "response": {}}
    job_id = _submit(text="bridge 1 ETH to base")

    with patch.object(global_container, "intent_client", IntentClient("http://backend/", session=session)):
        run_intent_job(job_id)

    job = job_store.get(job_id)
    assert job.status == IntentStatus.ERROR
    assert job.message == MSG_QUERY_FAILED
    assert job.error_code == "unsupported_intent"


def test_wallet_is_none_when_not_connected():
    with patch("app.core.container.get_signer", side_effect=WalletNotConnected("No wallet is connected!")):
        assert global_container.wallet() is None


def test_swap_checks_chain_before_wallet(job_store):
    client = MagicMock()
    client.query.return_value = SwapIntent.model_validate(
        {"fromAsset": "0xB4F1", "toAsset": "0xbe72", "amount": "1", "chain": "polygon"}
    )
    job_id = _submit(text="swap 1 DAI for USDC on polygon")

    with patch.object(global_container, "intent_client", client), patch(
        "app.core.container.get_signer", side_effect=WalletNotConnected("No wallet is connected!")
    ):
        run_intent_job(job_id)

    job = job_store.get(job_id)
    assert job.status == IntentStatus.ERROR
    assert job.error_code == "unsupported_chain"


def test_transfer_without_wallet(job_store):
    client = MagicMock()
    client.query.return_value = _transfer_intent()
    job_id = _submit()

    with patch.object(global_container, "intent_client", client), patch(
        "app.core.container.get_signer", side_effect=WalletNotConnected("No wallet is connected!")
    ):
        run_intent_job(job_id)

    job = job_store.get(job_id)
    assert job.status == IntentStatus.ERROR
    assert job.message == MSG_GENERIC_FAILURE
    assert job.error_code == "wallet_not_connected"
