# models/__init__.py
from .credential import CredentialRecord, CredentialState, FINGERPRINT_FIELDS, build_credential_metadata
from .issuer import IssuerRecord
from .notification import Notification
from .session import Role, Session, SessionMode
from .verification import (
    STATUS_INFO, VerificationCacheEntry, VerificationResult, VerificationStatus
)

__all__ = [
    "CredentialRecord",
    "CredentialState",
    "FINGERPRINT_FIELDS",
    "IssuerRecord",
    "Notification",
    "Role",
    "STATUS_INFO",
    "Session",
    "SessionMode",
    "VerificationCacheEntry",
    "VerificationResult",
    "VerificationStatus",
    "build_credential_metadata",
]
