from __future__ import annotations

import json
import logging
import os
import secrets
from typing import Any, Dict, Optional

_LOGGER_NAME = "txt2tx"
_configured = False


def _level() -> int:
    raw = (os.getenv("TXT2TX_LOG_LEVEL") or "info").strip().upper()
    return getattr(logging, raw, logging.INFO)


def get_logger() -> logging.Logger:
    """
    Return the service logger, configuring a single JSON-lines handler on first use.
    """
    global _configured
    logger = logging.getLogger(_LOGGER_NAME)
    if not _configured:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.setLevel(_level())
        logger.propagate = False
        _configured = True
    return logger


def build_log_context(*, request_id: Optional[str] = None, **fields: Any) -> Dict[str, Any]:
    ctx: Dict[str, Any] = {"request_id": request_id or secrets.token_hex(8)}
    ctx.update({k: v for k, v in fields.items() if v is not None})
    return ctx


def log_event(
    event: str,
    *,
    ctx: Optional[Dict[str, Any]] = None,
    data: Optional[Dict[str, Any]] = None,
    level: str = "info",
) -> None:
    """
    Emit one structured event as a JSON line.

    Never pass secrets in `data`: it is written verbatim.
    """
    payload: Dict[str, Any] = {
        "event": event,
        "service": (os.getenv("TXT2TX_SERVICE_NAME") or "txt2tx").strip(),
    }
    if ctx:
        payload.update(ctx)
    if data:
        payload["data"] = data
    lvl = getattr(logging, level.upper(), logging.INFO)
    get_logger().log(lvl, json.dumps(payload, sort_keys=True, default=str))
