# models/issuer.py
from dataclasses import dataclass, asdict, replace
from typing import Dict, Any, Optional


@dataclass(frozen=True)
class IssuerRecord:
    """An accredited issuing institution"""
    address: str
    display_name: str
    is_authorized: bool = True
    registered_at: Optional[int] = None

    def deauthorized(self) -> 'IssuerRecord':
        return replace(self, is_authorized=False)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
