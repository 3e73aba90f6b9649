from __future__ import annotations

import os
from typing import Any, Literal, Optional, Union

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from errors import IntentBackendError, UnsupportedIntent


class _IntentModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    chain: str
    amount: str

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_as_text(cls, v: Any) -> str:
        if isinstance(v, bool) or v is None:
            raise ValueError("amount must be a number")
        return str(v).strip()

    @field_validator("chain", mode="before")
    @classmethod
    def _chain_lower(cls, v: Any) -> str:
        return str(v).strip().lower()


class TransferIntent(_IntentModel):
    kind: Literal["transfer"] = "transfer"
    recipient_address: str = Field(alias="recipientAddress")
    token: str


class SwapIntent(_IntentModel):
    kind: Literal["swap"] = "swap"
    from_asset: str = Field(alias="fromAsset")
    to_asset: str = Field(alias="toAsset")


Intent = Union[TransferIntent, SwapIntent]


def parse_intent(payload: Any) -> Intent:
    """
    Turn the backend's `{"transaction_type": ..., "response": {...}}` into a typed intent.
    """
    if not isinstance(payload, dict):
        raise IntentBackendError("Intent backend returned a non-object body")
    kind = payload.get("transaction_type")
    body = payload.get("response") or {}
    try:
        if kind == "transfer":
            return TransferIntent.model_validate(body)
        if kind == "swap":
            return SwapIntent.model_validate(body)
    except ValidationError as e:
        raise IntentBackendError(f"Malformed {kind} intent: {e.error_count()} invalid field(s)") from e
    raise UnsupportedIntent(kind)


class IntentClient:
    """
    Client for the external intent backend that classifies free text.

    POST {BACKEND_URL}answer/  body: {"question": "<text>"}
    """

    def __init__(self, backend_url: Optional[str] = None, *, session: Optional[requests.Session] = None) -> None:
        url = (backend_url or os.getenv("BACKEND_URL") or "http://localhost:8000/").strip()
        self.backend_url = url if url.endswith("/") else url + "/"
        self._session = session or requests.Session()

    def query(self, question: str) -> Intent:
        timeout = float((os.getenv("HTTP_TIMEOUT_SEC") or "").strip() or "10")
        response = self._session.post(
            f"{self.backend_url}answer/",
            json={"question": question},
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )
        if not response.ok:
            raise IntentBackendError("Network response was not ok!")
        try:
            payload = response.json()
        except ValueError as e:
            raise IntentBackendError("Intent backend returned invalid JSON") from e
        return parse_intent(payload)
