# models/session.py
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional


class Role(str, Enum):
    ISSUER = "issuer"
    AUTHORITY = "authority"
    HOLDER = "holder"
    VERIFIER = "verifier"


class SessionMode(str, Enum):
    LEDGER = "ledger"
    LOCAL = "local"


@dataclass(frozen=True)
class Session:
    """
    Identity and capabilities of the caller, as provided by the identity
    collaborator. The coordinator derives its mode from it exactly once.
    """
    identity: str
    role: Role
    signer_available: bool = False
    wallet_address: Optional[str] = None
    demo: bool = False

    @classmethod
    def from_claims(cls, identity: str, claims: Dict[str, Any]) -> 'Session':
        """Builds a session from JWT claims"""
        return cls(
            identity=identity,
            role=Role(claims.get("role", Role.VERIFIER.value)),
            signer_available=bool(claims.get("signer_available", False)),
            wallet_address=claims.get("wallet_address"),
            demo=bool(claims.get("demo", False)),
        )
