from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict

from eth_account import Account

from .base import SignedTx, Signer, signature_hex


class EncryptedKeystoreSigner(Signer):
    """
    Wallet backed by an Ethereum keystore JSON file, decrypted once at startup.

    Env vars:
    - KEYSTORE_PATH: path to keystore json file
    - KEYSTORE_PASSWORD: passphrase
    """

    def __init__(self, keystore_path_env: str = "KEYSTORE_PATH", password_env: str = "KEYSTORE_PASSWORD") -> None:  # nosec B107
        path_raw = os.getenv(keystore_path_env)
        password = os.getenv(password_env)
        if not path_raw:
            raise ValueError(f"{keystore_path_env} environment variable not set")
        if not password:
            raise ValueError(f"{password_env} environment variable not set")

        path = Path(path_raw).expanduser()
        if not path.exists():
            raise ValueError(f"Keystore file not found: {path}")

        keystore = json.loads(path.read_text())
        self._account = Account.from_key(Account.decrypt(keystore, password))

    def get_address(self) -> str:
        return self._account.address

    def sign_transaction(self, tx: Dict[str, Any], *, chain_id: int | None = None) -> SignedTx:
        if chain_id is not None:
            tx = {**tx, "chainId": chain_id}
        return Account.sign_transaction(tx, self._account.key)

    def sign_typed_data(self, typed_data: Dict[str, Any]) -> str:
        return signature_hex(Account.sign_typed_data(self._account.key, full_message=typed_data).signature)
