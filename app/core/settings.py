"""
txt2tx settings.

Every knob the server reads from the environment (or a local .env file) lives here,
parsed once at import and checked before the app starts serving.

Usage:
    from app.core.settings import settings

    client = IntentClient(settings.BACKEND_URL)
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Callable, TypeVar

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

_N = TypeVar("_N", int, float)

_SECRET_MARKERS = ("SECRET", "PASSWORD", "KEY", "TOKEN")


class SignerType(Enum):
    """Where the wallet's key material comes from."""

    ENV_PRIVATE_KEY = "env_private_key"
    KEYSTORE = "keystore"
    REMOTE = "remote"


class SettingsValidationError(Exception):
    """Raised when settings validation fails."""

    def __init__(self, field: str, value: Any, message: str):
        self.field = field
        self.value = value
        super().__init__(f"Invalid configuration for {field}={value!r}: {message}")


def _env(name: str, default: str | None = None) -> str | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _env_flag(name: str, default: bool = False) -> bool:
    raw = _env(name)
    if raw is None:
        return default
    return raw.lower() in ("true", "1", "yes", "on")


def _env_number(name: str, default: _N, cast: Callable[[str], _N]) -> _N:
    """Unset or unparsable values fall back to `default`."""
    raw = _env(name)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError:
        return default


def _int0(raw: str) -> int:
    return int(raw, 0)


def _signer_type() -> SignerType:
    try:
        return SignerType((_env("SIGNER_TYPE") or SignerType.ENV_PRIVATE_KEY.value).lower())
    except ValueError:
        return SignerType.ENV_PRIVATE_KEY


def _backend_url() -> str:
    url = _env("BACKEND_URL", "http://localhost:8000/") or ""
    # Requests are sent to f"{BACKEND_URL}answer/".
    return url if url.endswith("/") else url + "/"


def _project_version() -> str:
    pyproject = Path(__file__).resolve().parents[2] / "pyproject.toml"
    try:
        with open(pyproject, "rb") as f:
            return str(tomllib.load(f).get("project", {}).get("version", "0.0.0"))
    except (OSError, tomllib.TOMLDecodeError):
        return "0.0.0"


@dataclass
class Settings:
    """
    Typed view of the environment, validated on construction.

    Bad values raise SettingsValidationError at startup; risky-but-legal ones
    (no session key, DEV_MODE) only warn.
    """

    PROJECT_NAME: str = "Txt-2-Tx"
    VERSION: str = field(default_factory=_project_version)

    DEV_MODE: bool = field(default_factory=lambda: _env_flag("DEV_MODE"))

    # Intent backend
    BACKEND_URL: str = field(default_factory=_backend_url)

    # API server settings
    API_PORT: int = field(default_factory=lambda: _env_number("API_PORT", 3000, _int0))
    API_HOST: str = field(default_factory=lambda: _env("API_HOST", "127.0.0.1"))

    # Session auth (tokens are issued by the auth provider; we only verify them)
    AUTH_APP_ID: str | None = field(default_factory=lambda: _env("AUTH_APP_ID"))
    AUTH_VERIFICATION_KEY: str | None = field(default_factory=lambda: _env("AUTH_VERIFICATION_KEY"))
    AUTH_ISSUER: str = field(default_factory=lambda: _env("AUTH_ISSUER", "privy.io"))
    AUTH_COOKIE_NAME: str = field(default_factory=lambda: _env("AUTH_COOKIE_NAME", "privy-token"))
    AUTH_LOGIN_URL: str | None = field(default_factory=lambda: _env("AUTH_LOGIN_URL"))

    # Wallet
    SIGNER_TYPE: SignerType = field(default_factory=_signer_type)
    PRIVATE_KEY: str | None = field(default_factory=lambda: _env("PRIVATE_KEY"))
    KEYSTORE_PATH: str | None = field(default_factory=lambda: _env("KEYSTORE_PATH"))
    KEYSTORE_PASSWORD: str | None = field(default_factory=lambda: _env("KEYSTORE_PASSWORD"))
    SIGNER_REMOTE_URL: str | None = field(default_factory=lambda: _env("SIGNER_REMOTE_URL"))

    # Chain access
    ENS_RPC_URL: str = field(default_factory=lambda: _env("ENS_RPC_URL", "https://rpc.ankr.com/eth"))
    HTTP_TIMEOUT_SEC: int = field(default_factory=lambda: _env_number("HTTP_TIMEOUT_SEC", 10, _int0))

    # Workflows
    SWAP_SLIPPAGE: float = field(default_factory=lambda: _env_number("SWAP_SLIPPAGE", 0.05, float))
    ORDER_POLL_INTERVAL_SEC: float = field(default_factory=lambda: _env_number("ORDER_POLL_INTERVAL_SEC", 3.0, float))
    TX_CONFIRMATIONS: int = field(default_factory=lambda: _env_number("TX_CONFIRMATIONS", 1, _int0))
    TX_RECEIPT_TIMEOUT_SEC: int = field(default_factory=lambda: _env_number("TX_RECEIPT_TIMEOUT_SEC", 600, _int0))

    # Persistence paths
    AUDIT_DB_PATH: str | None = field(default_factory=lambda: _env("AUDIT_DB_PATH"))

    # Observability
    TXT2TX_LOG_LEVEL: str = field(default_factory=lambda: (_env("TXT2TX_LOG_LEVEL", "info") or "info").lower())
    TXT2TX_SERVICE_NAME: str = field(default_factory=lambda: _env("TXT2TX_SERVICE_NAME", "txt2tx"))

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        """Raise on unusable values; warn about insecure ones."""
        import warnings

        errors: list[str] = []

        if self.DEV_MODE:
            warnings.warn(
                "DEV_MODE=true: Session verification disabled. Do NOT use in production!",
                UserWarning,
                stacklevel=3,
            )
        elif not self.AUTH_VERIFICATION_KEY:
            warnings.warn(
                "AUTH_VERIFICATION_KEY not set: every session will be rejected. Set it or enable DEV_MODE.",
                UserWarning,
                stacklevel=3,
            )

        if not (0.0 <= self.SWAP_SLIPPAGE < 1.0):
            errors.append(f"SWAP_SLIPPAGE must be in [0, 1), got {self.SWAP_SLIPPAGE}")

        if self.ORDER_POLL_INTERVAL_SEC <= 0:
            errors.append(f"ORDER_POLL_INTERVAL_SEC must be > 0, got {self.ORDER_POLL_INTERVAL_SEC}")

        if self.TX_CONFIRMATIONS < 1:
            errors.append(f"TX_CONFIRMATIONS must be >= 1, got {self.TX_CONFIRMATIONS}")

        if not (1 <= self.API_PORT <= 65535):
            errors.append(f"API_PORT must be between 1 and 65535, got {self.API_PORT}")

        if not self.BACKEND_URL.startswith(("http://", "https://")):
            errors.append(f"BACKEND_URL must be an http(s) URL, got {self.BACKEND_URL}")

        if errors:
            raise SettingsValidationError("MULTIPLE", None, "; ".join(errors))

    @property
    def auth_enabled(self) -> bool:
        return not self.DEV_MODE

    def to_dict(self) -> dict[str, Any]:
        """Settings as plain values, secrets replaced by a marker."""
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if any(marker in f.name for marker in _SECRET_MARKERS):
                out[f.name] = "***REDACTED***" if value else None
            elif isinstance(value, Enum):
                out[f.name] = value.value
            else:
                out[f.name] = value
        return out


# Global settings instance
settings = Settings()
