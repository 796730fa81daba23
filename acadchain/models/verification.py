# models/verification.py
import time
from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Dict, Any, Optional

from .credential import CredentialRecord


class VerificationStatus(str, Enum):
    VERIFIED = "verified"
    INVALID = "invalid"
    REVOKED = "revoked"
    NOT_FOUND = "not_found"
    ERROR = "error"


# Display hints for each status, consumed by the dashboard
STATUS_INFO = {
    VerificationStatus.VERIFIED: {
        "message": "Credential Verified",
        "description": "This credential has been verified on the blockchain.",
        "color": "success",
        "icon": "check-circle",
    },
    VerificationStatus.INVALID: {
        "message": "Invalid Credential",
        "description": "This credential could not be verified.",
        "color": "error",
        "icon": "x-circle",
    },
    VerificationStatus.REVOKED: {
        "message": "Credential Revoked",
        "description": "This credential has been revoked by the issuer.",
        "color": "error",
        "icon": "ban",
    },
    VerificationStatus.NOT_FOUND: {
        "message": "Not Found",
        "description": "No credential found with this identifier.",
        "color": "warning",
        "icon": "search",
    },
    VerificationStatus.ERROR: {
        "message": "Verification Error",
        "description": "An unexpected error occurred during verification.",
        "color": "error",
        "icon": "alert-triangle",
    },
}


@dataclass(frozen=True)
class VerificationResult:
    """Reconciled answer to a verification request"""
    fingerprint: str
    status: VerificationStatus
    valid: bool = False
    record: Optional[CredentialRecord] = None
    content: Any = None
    content_url: Optional[str] = None
    issuer_name: Optional[str] = None
    on_chain: bool = False
    from_cache: bool = False
    local_only: bool = False
    message: Optional[str] = None
    verified_at: float = field(default_factory=time.time)

    @property
    def found(self) -> bool:
        return self.record is not None

    def status_info(self) -> Dict[str, str]:
        return dict(STATUS_INFO[self.status])

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["record"] = self.record.to_dict() if self.record else None
        if isinstance(self.content, bytes):
            data["content"] = None
        return data

    @classmethod
    def not_found(cls, fingerprint: str) -> 'VerificationResult':
        return cls(
            fingerprint=fingerprint,
            status=VerificationStatus.NOT_FOUND,
            message="Credential not found on blockchain or in cache.",
        )


@dataclass(frozen=True)
class VerificationCacheEntry:
    fingerprint: str
    result: VerificationResult
    cached_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at
