import json
from typing import Any, Dict

from web3 import Web3

from app.core.container import global_container
from app.core.settings import settings
from errors import classify_exception
from execution.cow import OrderStatus
from execution.evm import explorer_link
from execution.swap import send_order, wait_for_order_status
from execution.transfer import send_transfer, wait_for_transfer
from intent_client import SwapIntent, TransferIntent
from job_store import IntentJob, IntentStatus, JobInFlight
from observability import build_log_context, log_event, now_ms

MSG_QUERY_FAILED = "Failed to query intent due to an error!"
MSG_TRANSFER_SENT = "Transfer sent! Awaiting Confirmation ⌛"
MSG_TRANSFER_CONFIRMED = "Transfer confirmed! 🎉"
MSG_ORDER_SENT = "Order sent! Your order is being filled ⌛"
MSG_ORDER_FILLED = "Order filled! 🎉"
MSG_GENERIC_FAILURE = "Oops! Something went wrong"


def _json_ok(data: Dict[str, Any] | None = None) -> str:
    payload = {"ok": True, "data": data or {}}
    return json.dumps(payload, indent=2, sort_keys=True)

def _json_err(code: str, message: str, data: Dict[str, Any] | None = None) -> str:
    payload = {"ok": False, "error": {"code": code, "message": message, "data": data or {}}}
    return json.dumps(payload, indent=2, sort_keys=True)


def submit_intent(owner: str, text: str) -> str:
    """Register a new intent job for `owner`; the caller schedules `run_intent_job`."""
    text = (text or "").strip()
    if not text:
        return _json_err("empty_intent", "Enter your heart's desire first.")
    try:
        job = global_container.job_store.create(owner=owner, text=text)
    except JobInFlight as e:
        return _json_err("job_in_flight", str(e), {"job_id": e.job_id})
    global_container.metrics.inc("intents_submitted")
    return _json_ok({"job": job.to_dict()})


def get_intent(owner: str, job_id: str) -> str:
    job = global_container.job_store.get(job_id)
    if job is None or job.owner != owner:
        return _json_err("job_not_found", "Unknown job_id", {"job_id": job_id})
    return _json_ok({"job": job.to_dict()})


def _finish(job: IntentJob, status: IntentStatus, ctx: Dict[str, Any], **fields: Any) -> None:
    job = global_container.job_store.transition(job.job_id, status, **fields)
    ok = status != IntentStatus.ERROR
    global_container.metrics.inc(f"intents_{status.value}")
    try:
        global_container.audit_log.append(
            ts_ms=now_ms(),
            job_id=job.job_id,
            owner=job.owner,
            kind=job.kind,
            status=status.value,
            ok=ok,
            error_code=job.error_code,
            chain=job.chain,
            summary={"tx_hash": job.tx_hash, "order_id": job.order_id, "order_status": job.order_status},
        )
    except Exception as e:
        log_event("audit_append_failed", ctx=ctx, data={"error": type(e).__name__, "message": str(e)}, level="warning")
    log_event(
        "intent_finished",
        ctx=ctx,
        data={"status": status.value, "error_code": job.error_code},
        level="info" if ok else "warning",
    )


def _fail(job: IntentJob, e: Exception, message: str, ctx: Dict[str, Any]) -> None:
    err = classify_exception(e)
    log_event("intent_failed", ctx=ctx, data={"code": err.code, "message": err.message}, level="error")
    _finish(job, IntentStatus.ERROR, ctx, message=message, error_code=err.code)


def _run_transfer(job: IntentJob, intent: TransferIntent, ctx: Dict[str, Any]) -> None:
    store = global_container.job_store
    try:
        tx_hash = send_transfer(
            global_container.wallet(),
            intent.recipient_address,
            intent.amount,
            intent.chain,
            intent.token,
            ctx=ctx,
        )
        store.transition(
            job.job_id,
            IntentStatus.SUBMITTED,
            message=MSG_TRANSFER_SENT,
            tx_hash=tx_hash,
            explorer_url=explorer_link(intent.chain, tx_hash),
        )
        receipt = wait_for_transfer(
            intent.chain,
            tx_hash,
            confirmations=settings.TX_CONFIRMATIONS,
            timeout=settings.TX_RECEIPT_TIMEOUT_SEC,
        )
    except Exception as e:
        _fail(job, e, MSG_GENERIC_FAILURE, ctx)
        return

    confirmed_hash = Web3.to_hex(receipt["transactionHash"])
    _finish(
        job,
        IntentStatus.CONFIRMED,
        ctx,
        message=MSG_TRANSFER_CONFIRMED,
        tx_hash=confirmed_hash,
        explorer_url=explorer_link(intent.chain, confirmed_hash),
    )


def _run_swap(job: IntentJob, intent: SwapIntent, ctx: Dict[str, Any]) -> None:
    store = global_container.job_store
    try:
        uid = send_order(
            global_container.wallet(),
            intent.chain,
            intent.from_asset,
            intent.to_asset,
            intent.amount,
            slippage=settings.SWAP_SLIPPAGE,
            ctx=ctx,
        )
        store.transition(job.job_id, IntentStatus.SUBMITTED, message=MSG_ORDER_SENT, order_id=uid)
        status = wait_for_order_status(uid, intent.chain, interval=settings.ORDER_POLL_INTERVAL_SEC)
    except Exception as e:
        _fail(job, e, MSG_GENERIC_FAILURE, ctx)
        return

    if status == OrderStatus.FULFILLED:
        _finish(job, IntentStatus.FILLED, ctx, message=MSG_ORDER_FILLED, order_status=status.value)
    else:
        _finish(
            job,
            IntentStatus.ERROR,
            ctx,
            message=f"Uh oh! Something went wrong! Order status: {status.value}",
            order_status=status.value,
            error_code="order_not_filled",
        )


def run_intent_job(job_id: str) -> None:
    """
    Drive one job through idle -> loading -> submitted -> confirmed/filled, or to error.

    Never raises: every failure ends up on the job as an error status and message.
    """
    job = global_container.job_store.get(job_id)
    if job is None:
        return
    ctx = build_log_context(tool="intent", job_id=job_id)
    global_container.job_store.transition(job_id, IntentStatus.LOADING)

    try:
        intent = global_container.intent_client.query(job.text)
    except Exception as e:
        _fail(job, e, MSG_QUERY_FAILED, ctx)
        return

    global_container.job_store.transition(job_id, IntentStatus.LOADING, kind=intent.kind, chain=intent.chain)
    log_event("intent_classified", ctx=ctx, data={"kind": intent.kind, "chain": intent.chain})

    if isinstance(intent, TransferIntent):
        _run_transfer(job, intent, ctx)
    else:
        _run_swap(job, intent, ctx)
