from __future__ import annotations

import asyncio
from dataclasses import replace
from decimal import Decimal

import pytest

from acadchain.blockchain import LedgerLookup, LedgerReceipt, LedgerStatus
from acadchain.exceptions import LedgerWriteError
from acadchain.models import IssuerRecord, Role, Session
from acadchain.services.credential_service import AdmissionSwitch, CredentialCoordinator
from acadchain.services.ipfs_service import LocalContentStore
from acadchain.services.verification_cache import VerificationCache

T0 = 1_700_000_000

ISSUER_ADDRESS = "0x" + "ab" * 20
OTHER_ISSUER_ADDRESS = "0x" + "cd" * 20


class FakeClock:
    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLedger:
    """In-memory stand-in for LedgerClient with the same async surface."""

    is_configured = True
    can_sign = True

    def __init__(self, signer_address: str = ISSUER_ADDRESS, authorized=()) -> None:
        self.signer_address = signer_address
        self.authorized = {a.lower(): "Test University" for a in authorized}
        self.available = True
        self.credentials = {}
        self.writes: list[tuple[str, str]] = []
        self.fail_issue_for: set[str] = set()
        self.fail_revoke = False
        self.block = 100
        self.in_flight = 0
        self.max_in_flight = 0

    def _receipt(self) -> LedgerReceipt:
        self.block += 1
        return LedgerReceipt(tx_id="0x" + f"{self.block:064x}", block_height=self.block)

    async def is_authorized_issuer(self, address: str) -> bool:
        return self.available and address.lower() in self.authorized

    async def get_issuer_info(self, address: str):
        name = self.authorized.get(address.lower())
        if name is None:
            return None
        return IssuerRecord(address=address, display_name=name, is_authorized=True, registered_at=T0)

    async def issue_credential(self, record) -> LedgerReceipt:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            self.writes.append(("issue", record.fingerprint))
            if record.student_name in self.fail_issue_for:
                raise LedgerWriteError(f"issueCredential({record.fingerprint}) failed: execution reverted")
            if record.fingerprint in self.credentials:
                raise LedgerWriteError("Credential already exists")
            self.credentials[record.fingerprint] = replace(record, ledger_tx_id=None, block_height=None)
            return self._receipt()
        finally:
            self.in_flight -= 1

    async def revoke_credential(self, fingerprint: str) -> LedgerReceipt:
        self.writes.append(("revoke", fingerprint))
        if self.fail_revoke:
            raise LedgerWriteError(f"revokeCredential({fingerprint}) failed: network down")
        if fingerprint not in self.credentials:
            raise LedgerWriteError("Credential does not exist")
        self.credentials[fingerprint] = self.credentials[fingerprint].revoked()
        return self._receipt()

    async def authorize_issuer(self, address: str, name: str) -> LedgerReceipt:
        self.writes.append(("authorize", address))
        self.authorized[address.lower()] = name
        return self._receipt()

    async def revoke_issuer(self, address: str) -> LedgerReceipt:
        self.writes.append(("revoke_issuer", address))
        if address.lower() not in self.authorized:
            raise LedgerWriteError("Issuer not authorized")
        del self.authorized[address.lower()]
        return self._receipt()

    async def verify_credential(self, fingerprint: str) -> LedgerLookup:
        if not self.available:
            return LedgerLookup(LedgerStatus.UNAVAILABLE, reason="connection refused")
        record = self.credentials.get(fingerprint)
        if record is None:
            return LedgerLookup(LedgerStatus.NOT_FOUND, reason="Credential not found on blockchain")
        return LedgerLookup(LedgerStatus.FOUND, record=record)

    async def get_network_info(self):
        return {"chain_id": 80002, "name": "amoy"}

    async def get_block_height(self):
        return self.block

    async def get_balance(self, address: str):
        return Decimal("1.5")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def content_store() -> LocalContentStore:
    return LocalContentStore()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger(authorized=[ISSUER_ADDRESS])


@pytest.fixture
def admission() -> AdmissionSwitch:
    return AdmissionSwitch()


@pytest.fixture
def make_coordinator(clock, content_store, admission):
    """Factory building coordinators that share the store, clock and pause switch."""

    def _make(role: Role = Role.ISSUER, *, ledger=None, signer: bool = False,
              wallet: str | None = ISSUER_ADDRESS, demo: bool = False, identity: str | None = None,
              cache: VerificationCache | None = None) -> CredentialCoordinator:
        session = Session(
            identity=identity or f"{role.value}-session",
            role=role,
            signer_available=signer,
            wallet_address=wallet,
            demo=demo,
        )
        return CredentialCoordinator(
            session=session,
            content_store=content_store,
            ledger=ledger,
            verification_cache=cache or VerificationCache(clock=clock),
            admission=admission,
            clock=clock,
        )

    return _make
