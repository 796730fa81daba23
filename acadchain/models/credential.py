# models/credential.py
from datetime import datetime, timezone
from dataclasses import dataclass, asdict, replace
from enum import Enum
from typing import Dict, Any, Optional

# Fields that determine a credential fingerprint, shared by every tier
FINGERPRINT_FIELDS = (
    "issuer_address",
    "student_identifier",
    "student_name",
    "course_name",
    "issued_at",
)


class CredentialState(str, Enum):
    """Lifecycle of a credential from collection of inputs to revocation"""
    DRAFT = "draft"
    CONTENT_UPLOADED = "content_uploaded"
    LEDGER_CONFIRMED = "ledger_confirmed"
    LOCAL_ONLY = "local_only"
    VALID = "valid"
    REVOKED = "revoked"


@dataclass(frozen=True)
class CredentialRecord:
    """An issued academic credential, keyed by its fingerprint"""
    fingerprint: str
    issuer_address: str
    student_identifier: str
    student_name: str
    course_name: str
    content_id: str
    issued_at: int
    is_revoked: bool = False
    ledger_tx_id: Optional[str] = None
    block_height: Optional[int] = None
    is_local_only: bool = False

    @property
    def is_valid(self) -> bool:
        return not self.is_revoked

    @property
    def state(self) -> CredentialState:
        return CredentialState.REVOKED if self.is_revoked else CredentialState.VALID

    def revoked(self) -> 'CredentialRecord':
        """Returns the revoked copy of this record"""
        return replace(self, is_revoked=True)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["is_valid"] = self.is_valid
        data["state"] = self.state.value
        return data


def build_credential_metadata(issuer_address: str, issuer_name: str, student_identifier: str,
                              student_name: str, course_name: str, issued_at: int,
                              network: str) -> Dict[str, Any]:
    """
    Builds the canonical metadata document pinned to the content store.

    Args:
        issuer_address: Address of the issuing institution
        issuer_name: Display name of the issuer
        student_identifier: Wallet address or custodial DID of the student
        student_name: Full name of the student
        course_name: Title of the credential
        issued_at: Issuance time in UNIX seconds
        network: Name of the network the session targets

    Returns:
        dict: JSON-serialisable metadata document
    """
    return {
        "version": "1.0",
        "type": "academic_credential",
        "studentDID": student_identifier,
        "studentName": student_name,
        "issuer": {
            "address": issuer_address,
            "name": issuer_name,
        },
        "credential": {
            "type": "certificate",
            "title": course_name,
            "issuedDate": datetime.fromtimestamp(issued_at, tz=timezone.utc).isoformat(),
        },
        "metadata": {
            "createdAt": issued_at,
            "network": network,
        },
    }
