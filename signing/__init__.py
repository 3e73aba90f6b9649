from .base import SignedTx, Signer, signature_hex
from .encrypted_keystore import EncryptedKeystoreSigner
from .env_private_key import EnvPrivateKeySigner
from .factory import get_signer
from .policy import PolicyEnforcedSigner, SignerPolicyConfig, SignerPolicyViolation, maybe_wrap_signer
from .remote_signer import RemoteSigner

__all__ = [
    "Signer",
    "SignedTx",
    "signature_hex",
    "get_signer",
    "EnvPrivateKeySigner",
    "EncryptedKeystoreSigner",
    "RemoteSigner",
    "PolicyEnforcedSigner",
    "SignerPolicyConfig",
    "SignerPolicyViolation",
    "maybe_wrap_signer",
]
