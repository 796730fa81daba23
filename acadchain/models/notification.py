# models/notification.py
import time
from dataclasses import dataclass, asdict, field
from typing import Dict, Any


@dataclass(frozen=True)
class Notification:
    """User-facing event emitted by the coordinator"""
    id: int
    title: str
    message: str
    severity: str = "info"
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
