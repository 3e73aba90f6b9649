from __future__ import annotations

import os
from functools import lru_cache

from errors import WalletNotConnected

from .base import Signer
from .encrypted_keystore import EncryptedKeystoreSigner
from .env_private_key import EnvPrivateKeySigner
from .policy import maybe_wrap_signer
from .remote_signer import RemoteSigner


def _build(signer_type: str) -> Signer:
    if signer_type == "env_private_key":
        return EnvPrivateKeySigner()
    if signer_type == "keystore":
        return EncryptedKeystoreSigner()
    if signer_type == "remote":
        return RemoteSigner()
    raise ValueError(f"Unsupported SIGNER_TYPE: {signer_type}")


@lru_cache(maxsize=1)
def get_signer() -> Signer:
    """
    Select the wallet based on SIGNER_TYPE.

    Supported:
    - env_private_key (default): uses PRIVATE_KEY env var
    - keystore: uses KEYSTORE_PATH + KEYSTORE_PASSWORD
    - remote: uses SIGNER_REMOTE_URL

    A backend whose key material is missing means no wallet is connected.
    """
    signer_type = os.getenv("SIGNER_TYPE", "env_private_key").strip().lower()
    try:
        signer = _build(signer_type)
    except ValueError as e:
        raise WalletNotConnected("No wallet is connected!") from e
    return maybe_wrap_signer(signer)
