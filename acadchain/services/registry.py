# services/registry.py
import logging
from typing import Dict, Optional

from ..blockchain import LedgerClient
from ..models import Session
from .credential_service import AdmissionSwitch, CredentialCoordinator
from .ipfs_service import LocalContentStore, PinataContentStore
from .verification_cache import VerificationCache


class CoordinatorRegistry:
    """
    Keeps one coordinator per authenticated identity. Collaborators that hold
    no per-session state (ledger client, content store, verification cache,
    pause switch) are shared between coordinators.
    """

    def __init__(self, content_store, ledger: Optional[LedgerClient] = None,
                 verification_cache: Optional[VerificationCache] = None, notification_limit: int = 10):
        self.logger = logging.getLogger("CoordinatorRegistry")
        self.content_store = content_store
        self.ledger = ledger
        self.verification_cache = verification_cache or VerificationCache()
        self.admission = AdmissionSwitch()
        self.notification_limit = notification_limit
        self._coordinators: Dict[str, CredentialCoordinator] = {}

    @classmethod
    def from_config(cls, config) -> 'CoordinatorRegistry':
        ledger = LedgerClient.from_config(config) if config.CONTRACT_ADDRESS else None

        if config.PINATA_JWT:
            content_store = PinataContentStore.from_config(config)
        else:
            logging.getLogger("CoordinatorRegistry").warning(
                "PINATA_JWT not configured - credential metadata is kept in memory only"
            )
            content_store = LocalContentStore()

        return cls(
            content_store=content_store,
            ledger=ledger,
            verification_cache=VerificationCache(ttl=config.VERIFICATION_CACHE_TTL),
            notification_limit=config.NOTIFICATION_LIMIT,
        )

    async def get(self, session: Session) -> CredentialCoordinator:
        """
        Returns the identity's coordinator, creating it on first use. A
        session keeps the mode it started with even if later claims differ.
        """
        coordinator = self._coordinators.get(session.identity)
        if coordinator is not None:
            return coordinator

        coordinator = CredentialCoordinator(
            session=session,
            content_store=self.content_store,
            ledger=self.ledger,
            verification_cache=self.verification_cache,
            admission=self.admission,
            notification_limit=self.notification_limit,
        )
        self._coordinators = {**self._coordinators, session.identity: coordinator}
        await coordinator.connect()
        return coordinator
