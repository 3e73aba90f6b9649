from __future__ import annotations

from typing import Any, Dict, Optional

import jwt

from observability import log_event

DEV_USER = "dev-user"


class SessionVerifier:
    """
    Verifies the auth provider's session cookie (an ES256 JWT).

    Tokens are issued by the provider; we only check signature, issuer, audience and expiry.
    """

    def __init__(
        self,
        *,
        app_id: Optional[str],
        verification_key: Optional[str],
        issuer: str = "privy.io",
        dev_mode: bool = False,
    ) -> None:
        self.app_id = app_id
        self.verification_key = (verification_key or "").replace("\\n", "\n").strip() or None
        self.issuer = issuer
        self.dev_mode = dev_mode

    @classmethod
    def from_settings(cls, s: Any) -> "SessionVerifier":
        return cls(
            app_id=s.AUTH_APP_ID,
            verification_key=s.AUTH_VERIFICATION_KEY,
            issuer=s.AUTH_ISSUER,
            dev_mode=s.DEV_MODE,
        )

    def verify(self, token: Optional[str]) -> Optional[Dict[str, Any]]:
        """Claims for a valid token, else None."""
        if not token:
            return None
        if self.dev_mode:
            return {"sub": DEV_USER}
        if not self.verification_key or not self.app_id:
            return None
        try:
            claims = jwt.decode(
                token,
                self.verification_key,
                algorithms=["ES256"],
                issuer=self.issuer,
                audience=self.app_id,
                options={"require": ["sub", "exp"]},
            )
        except jwt.PyJWTError as e:
            log_event("session_rejected", data={"reason": type(e).__name__}, level="warning")
            return None
        log_event("session_verified", data={"sub": claims.get("sub")})
        return claims
