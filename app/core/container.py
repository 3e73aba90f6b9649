from typing import Optional

from app.core.auth import SessionVerifier
from app.core.settings import settings
from errors import WalletNotConnected
from intent_client import IntentClient
from job_store import IntentJobStore
from observability import AuditLog, Metrics
from signing import Signer, get_signer


class Container:
    def __init__(self):
        # Observability
        self.metrics = Metrics()
        self.audit_log = AuditLog(settings.AUDIT_DB_PATH)

        # Stores
        self.job_store = IntentJobStore()

        # External services
        self.intent_client = IntentClient(settings.BACKEND_URL)
        self.session_verifier = SessionVerifier.from_settings(settings)

    def wallet(self) -> Optional[Signer]:
        """
        The connected wallet, or None. Resolved per use; the workflows decide
        when a missing wallet is an error ("No wallet is connected!").
        """
        try:
            return get_signer()
        except WalletNotConnected:
            return None


global_container = Container()
