# services/credential_service.py
"""
Credential coordinator: the only component that combines the ledger, the
content store and the local caches.

A coordinator serves exactly one session. Its mode (ledger-backed or local)
is decided once at construction; every write operation checks role, pause
state and input before touching any remote tier.
"""
import asyncio
import itertools
import logging
import re
import time
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..blockchain import LedgerClient, LedgerStatus
from ..exceptions import (
    AlreadyRevokedError, AuthorizationError, AvailabilityError, CredentialError, CredentialNotFoundError,
    DuplicateCredentialError, LedgerUnavailableError, StateError, SystemPausedError, ValidationError
)
from ..models import (
    CredentialRecord, CredentialState, IssuerRecord, Notification, Role, Session, SessionMode,
    VerificationResult, VerificationStatus, build_credential_metadata
)
from .verification_cache import VerificationCache

FINGERPRINT_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")


class AdmissionSwitch:
    """Global pause flag; may be shared by several coordinators"""

    def __init__(self, paused: bool = False):
        self.paused = paused

    def toggle(self) -> bool:
        self.paused = not self.paused
        return self.paused


@dataclass(frozen=True)
class BatchIssueResult:
    index: int
    record: Optional[CredentialRecord] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.record is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "ok": self.ok,
            "record": self.record.to_dict() if self.record else None,
            "error": self.error,
        }


class CredentialCoordinator:
    def __init__(self, session: Session, content_store, ledger: Optional[LedgerClient] = None,
                 verification_cache: Optional[VerificationCache] = None,
                 admission: Optional[AdmissionSwitch] = None, notification_limit: int = 10,
                 network: Optional[str] = None, clock: Callable[[], float] = time.time):
        """
        Args:
            session: Caller identity, role and signer availability
            content_store: PinataContentStore or LocalContentStore
            ledger: Ledger client, None when no ledger is reachable at all
            verification_cache: Shared verification memo, a private one when omitted
            admission: Shared pause switch, a private one when omitted
            notification_limit: Number of notifications retained
            network: Network name written in credential metadata
            clock: Time source in UNIX seconds
        """
        self.logger = logging.getLogger("CredentialCoordinator")
        self.session = session
        self.content_store = content_store
        self.ledger = ledger
        self.verification_cache = verification_cache or VerificationCache(clock=clock)
        self._admission = admission or AdmissionSwitch()
        self._clock = clock

        self._mode = self._select_mode(session, ledger)
        self.network = network or ("polygon" if self._mode is SessionMode.LEDGER else "local")

        # Replaced wholesale on every write, never mutated in place
        self._credentials: Dict[str, CredentialRecord] = {}
        self._issuers: Dict[str, IssuerRecord] = {}

        self._notifications = deque(maxlen=notification_limit)
        self._notification_ids = itertools.count(1)

        self.logger.info(f"Session {session.identity} ({session.role.value}) running in {self._mode.value} mode")
        if self._mode is SessionMode.LOCAL:
            self.notify(
                'Demo Mode',
                f"Logged in as {session.role.value}. On-chain operations require a real wallet.",
                'warning',
            )

    @staticmethod
    def _select_mode(session: Session, ledger: Optional[LedgerClient]) -> SessionMode:
        if session.demo or not session.signer_available:
            return SessionMode.LOCAL
        if ledger is None or not ledger.is_configured or not ledger.can_sign:
            return SessionMode.LOCAL
        return SessionMode.LEDGER

    # --- Session state ---

    @property
    def mode(self) -> SessionMode:
        return self._mode

    @property
    def is_paused(self) -> bool:
        return self._admission.paused

    @property
    def notifications(self) -> List[Notification]:
        return list(self._notifications)

    def can_perform_on_chain_ops(self) -> bool:
        return self._mode is SessionMode.LEDGER

    def is_demo_mode(self) -> bool:
        return self._mode is SessionMode.LOCAL

    def notify(self, title: str, message: str, severity: str = 'info') -> Notification:
        notification = Notification(
            id=next(self._notification_ids),
            title=title,
            message=message,
            severity=severity,
            timestamp=self._clock(),
        )
        self._notifications.appendleft(notification)
        return notification

    async def connect(self) -> None:
        """Loads the session wallet's issuer accreditation from the ledger"""
        if self._mode is not SessionMode.LEDGER or not self.session.wallet_address:
            return

        issuer = await self.ledger.get_issuer_info(self.session.wallet_address)
        if issuer and issuer.is_authorized:
            self._put_issuer(issuer)
        wallet = self.session.wallet_address
        self.notify('Wallet Connected', f"Connected to {wallet[:6]}...{wallet[-4:]} on {self.network}", 'success')

    # --- Guards ---

    def _require_role(self, *roles: Role, action: str) -> None:
        if self.session.role not in roles:
            allowed = " or ".join(role.value for role in roles)
            raise AuthorizationError(f"Unauthorized: only {allowed} sessions can {action}")

    def _require_not_paused(self) -> None:
        if self._admission.paused:
            raise SystemPausedError()

    @staticmethod
    def validate_fingerprint(fingerprint) -> str:
        """Returns the normalised fingerprint or raises ValidationError"""
        if not isinstance(fingerprint, str) or not FINGERPRINT_PATTERN.match(fingerprint):
            raise ValidationError(f"Malformed credential fingerprint: {fingerprint!r}")
        return fingerprint.lower()

    @staticmethod
    def _require_fields(**fields) -> None:
        missing = [name for name, value in fields.items() if not isinstance(value, str) or not value.strip()]
        if missing:
            raise ValidationError(f"Missing required field(s): {', '.join(missing)}")

    def _transition(self, fingerprint: str, state: CredentialState) -> None:
        """Logs a lifecycle step; the order is whatever the caller does, nothing is checked here"""
        self.logger.debug(f"{fingerprint or 'credential'} -> {state.value}")

    # --- Cache writes ---

    def _store_credential(self, record: CredentialRecord) -> CredentialRecord:
        existing = self._credentials.get(record.fingerprint)
        # Revocation is one-way whatever the source of the newer copy
        if existing is not None and existing.is_revoked and not record.is_revoked:
            record = record.revoked()
        self._credentials = {**self._credentials, record.fingerprint: record}
        return record

    def _put_issuer(self, issuer: IssuerRecord) -> IssuerRecord:
        self._issuers = {**self._issuers, issuer.address.lower(): issuer}
        return issuer

    def _get_issuer(self, address: Optional[str]) -> Optional[IssuerRecord]:
        if not address:
            return None
        return self._issuers.get(address.lower())

    # --- Issuance ---

    async def issue_credential(self, issuer_address: str, student_identifier: str,
                               student_name: str, course_name: str) -> CredentialRecord:
        """
        Issues one credential: computes the fingerprint, uploads the
        metadata and, in ledger mode, anchors it on-chain.

        Nothing is cached as valid unless every step for the session's mode
        succeeded.

        Returns:
            CredentialRecord: the valid record
        """
        self._require_role(Role.ISSUER, action="issue credentials")
        self._require_not_paused()
        self._require_fields(
            issuer_address=issuer_address,
            student_identifier=student_identifier,
            student_name=student_name,
            course_name=course_name,
        )
        issuer_address = issuer_address.strip()

        if self._mode is SessionMode.LEDGER:
            signer = self.ledger.signer_address
            if signer and issuer_address.lower() != signer.lower():
                raise AuthorizationError("Issuer address does not match the connected signer")
        else:
            wallet = self.session.wallet_address
            if wallet and issuer_address.lower() != wallet.lower():
                raise AuthorizationError("Issuer address does not match the session wallet")
            known = self._get_issuer(issuer_address)
            if known is not None and not known.is_authorized:
                raise AuthorizationError(f"Issuer {issuer_address} is not authorized")

        issued_at = int(self._clock())
        fingerprint = LedgerClient.compute_fingerprint({
            "issuer_address": issuer_address,
            "student_identifier": student_identifier,
            "student_name": student_name,
            "course_name": course_name,
            "issued_at": issued_at,
        })
        if fingerprint in self._credentials:
            raise DuplicateCredentialError(fingerprint)
        self._transition(fingerprint, CredentialState.DRAFT)

        issuer = self._get_issuer(issuer_address)
        metadata = build_credential_metadata(
            issuer_address=issuer_address,
            issuer_name=issuer.display_name if issuer else 'Authorized Issuer',
            student_identifier=student_identifier,
            student_name=student_name,
            course_name=course_name,
            issued_at=issued_at,
            network=self.network,
        )

        try:
            content_id = await self.content_store.put(metadata, name=f"credential-{student_identifier}-{issued_at}")
            self._transition(fingerprint, CredentialState.CONTENT_UPLOADED)

            record = CredentialRecord(
                fingerprint=fingerprint,
                issuer_address=issuer_address,
                student_identifier=student_identifier,
                student_name=student_name,
                course_name=course_name,
                content_id=content_id,
                issued_at=issued_at,
            )

            if self._mode is SessionMode.LEDGER:
                if not await self.ledger.is_authorized_issuer(issuer_address):
                    raise AuthorizationError(
                        "Your wallet is not authorized as an issuer on the blockchain. Contact government admin."
                    )
                receipt = await self.ledger.issue_credential(record)
                record = replace(record, ledger_tx_id=receipt.tx_id, block_height=receipt.block_height)
                self._transition(fingerprint, CredentialState.LEDGER_CONFIRMED)
            else:
                record = replace(record, is_local_only=True)
                self._transition(fingerprint, CredentialState.LOCAL_ONLY)
        except CredentialError as e:
            self.notify('Issue Failed', e.reason, 'error')
            raise

        record = self._store_credential(record)
        if self._mode is SessionMode.LOCAL and issuer is None:
            self._put_issuer(IssuerRecord(
                address=issuer_address,
                display_name='Demo Issuer',
                is_authorized=True,
                registered_at=issued_at,
            ))
        self._transition(fingerprint, CredentialState.VALID)

        if record.ledger_tx_id:
            self.notify('Credential Issued On-Chain', f"TX: {record.ledger_tx_id[:10]}...", 'success')
        else:
            self.notify('Credential Issued (Demo)', f"IPFS CID: {content_id[:15]}...", 'success')
        self.logger.info(f"Credential {fingerprint} issued ({self._mode.value} mode)")
        return record

    async def batch_issue_credentials(self, records: Iterable[Mapping]) -> List[BatchIssueResult]:
        """
        Issues credentials strictly one after another, in input order.

        Ledger transactions from one signer must be submitted in nonce order,
        so items are never dispatched concurrently. A failing item is reported
        in its own result; earlier items stay issued and later ones are still
        attempted.
        """
        self._require_role(Role.ISSUER, action="issue credentials")
        self._require_not_paused()

        results = []
        for index, item in enumerate(records):
            if not isinstance(item, Mapping):
                results.append(BatchIssueResult(index=index, error="Malformed batch entry"))
                continue
            try:
                record = await self.issue_credential(
                    item.get("issuer_address") or self.session.wallet_address,
                    item.get("student_identifier"),
                    item.get("student_name"),
                    item.get("course_name"),
                )
            except CredentialError as e:
                self.logger.warning(f"Batch item {index} failed: {e.reason}")
                results.append(BatchIssueResult(index=index, error=e.reason))
            else:
                results.append(BatchIssueResult(index=index, record=record))

        issued = sum(1 for result in results if result.ok)
        self.logger.info(f"Batch issuance finished: {issued}/{len(results)} issued")
        return results

    # --- Verification ---

    def _ledger_readable(self) -> bool:
        return self.ledger is not None and self.ledger.is_configured

    async def verify_credential(self, fingerprint: str) -> VerificationResult:
        """
        Resolves a fingerprint through the verification cache, the ledger
        and the local credential cache, in that order.

        Raises:
            ValidationError: only for a malformed fingerprint; an unknown
            credential yields a NOT_FOUND result
        """
        fingerprint = self.validate_fingerprint(fingerprint)

        cached = self.verification_cache.lookup(fingerprint)
        if cached is not None:
            return cached

        if self._ledger_readable():
            lookup = await self.ledger.verify_credential(fingerprint)
            if lookup.found:
                record = self._reconcile_ledger_record(lookup.record)
                result = await self._build_result(record, on_chain=True)
                # The cache is shared between sessions; only the ledger's own answer goes in
                if record.is_revoked == lookup.record.is_revoked:
                    self.verification_cache.store(fingerprint, result)
                return result
            if lookup.status is LedgerStatus.UNAVAILABLE:
                self.logger.warning(f"Ledger unavailable, falling back to local cache: {lookup.reason}")

        record = self._credentials.get(fingerprint)
        if record is not None:
            return await self._build_result(record, on_chain=False)

        return VerificationResult.not_found(fingerprint)

    def _reconcile_ledger_record(self, ledger_record: CredentialRecord) -> CredentialRecord:
        """Merges the ledger copy with the session's copy; the ledger wins on state"""
        local = self._credentials.get(ledger_record.fingerprint)
        if local is None:
            return self._store_credential(ledger_record)

        merged = replace(
            ledger_record,
            issued_at=local.issued_at,
            ledger_tx_id=local.ledger_tx_id,
            block_height=local.block_height,
        )
        return self._store_credential(merged)

    async def _build_result(self, record: CredentialRecord, on_chain: bool) -> VerificationResult:
        content = None
        try:
            content = await self.content_store.get(record.content_id)
        except AvailabilityError as e:
            self.logger.warning(f"Could not fetch from IPFS: {e.reason}")

        issuer = self._get_issuer(record.issuer_address)
        if issuer is not None:
            issuer_name = issuer.display_name
        else:
            issuer_name = record.issuer_address if on_chain else "Unknown Issuer"

        return VerificationResult(
            fingerprint=record.fingerprint,
            status=VerificationStatus.VERIFIED if record.is_valid else VerificationStatus.REVOKED,
            valid=record.is_valid,
            record=record,
            content=content,
            content_url=self.content_store.url_for(record.content_id),
            issuer_name=issuer_name,
            on_chain=on_chain,
            local_only=record.is_local_only,
            message="Credential is valid" if record.is_valid else "Credential has been revoked",
            verified_at=self._clock(),
        )

    async def batch_verify_credentials(self, fingerprints: Iterable[str]) -> List[VerificationResult]:
        """Verifies independent fingerprints concurrently; results keep input order"""
        normalised = [self.validate_fingerprint(fp) for fp in fingerprints]
        return list(await asyncio.gather(*(self.verify_credential(fp) for fp in normalised)))

    def clear_verification_cache(self) -> None:
        self._require_role(Role.AUTHORITY, action="clear the verification cache")
        self.verification_cache.clear()
        self.notify('Cache Cleared', 'Cached verification results were discarded.', 'info')

    # --- Revocation ---

    def _check_revoker(self, record: CredentialRecord) -> None:
        if self.session.role is not Role.ISSUER:
            return
        wallet = self.session.wallet_address
        if not wallet or record.issuer_address.lower() != wallet.lower():
            raise AuthorizationError("Only the original issuer or an authority can revoke this credential")

    async def revoke_credential(self, fingerprint: str) -> CredentialRecord:
        """
        Revokes a credential. In ledger mode the ledger write comes first
        and the local flag only flips once it succeeded. A credential the
        session has not seen is read from the ledger first so ownership can
        be checked; when that read fails LedgerUnavailableError is raised.
        Local sessions can only revoke credentials that were issued locally.
        """
        self._require_role(Role.ISSUER, Role.AUTHORITY, action="revoke credentials")
        self._require_not_paused()
        fingerprint = self.validate_fingerprint(fingerprint)

        record = self._credentials.get(fingerprint)
        if record is not None:
            if record.is_revoked:
                raise AlreadyRevokedError(fingerprint)
            self._check_revoker(record)

        if self._mode is SessionMode.LEDGER:
            if record is None:
                lookup = await self.ledger.verify_credential(fingerprint)
                if lookup.status is LedgerStatus.NOT_FOUND:
                    raise CredentialNotFoundError(fingerprint)
                if not lookup.found:
                    raise LedgerUnavailableError(f"Cannot read credential {fingerprint} from the ledger: {lookup.reason}")
                record = lookup.record
                if record.is_revoked:
                    self._store_credential(record)
                    raise AlreadyRevokedError(fingerprint)
                self._check_revoker(record)

            try:
                receipt = await self.ledger.revoke_credential(fingerprint)
            except CredentialError as e:
                self.notify('Revocation Failed', e.reason, 'error')
                raise
            self.notify('Credential Revoked On-Chain', f"TX: {receipt.tx_id[:10]}...", 'warning')
        elif record is None:
            raise CredentialNotFoundError(fingerprint)
        elif not record.is_local_only:
            raise StateError(f"Credential {fingerprint} is anchored on the ledger; revoking it needs a ledger session")

        revoked = self._store_credential(record.revoked())
        self.verification_cache.invalidate(fingerprint)

        self.notify('Credential Revoked', 'The credential has been revoked.', 'warning')
        self.logger.info(f"Credential {fingerprint} revoked ({self._mode.value} mode)")
        return revoked

    # --- Issuers ---

    async def authorize_issuer(self, address: str, name: str) -> IssuerRecord:
        """Accredits an issuer; the issuer cache is updated in both modes"""
        self._require_role(Role.AUTHORITY, action="authorize issuers")
        self._require_not_paused()
        self._require_fields(address=address, name=name)
        address = address.strip()

        if self._mode is SessionMode.LEDGER:
            try:
                receipt = await self.ledger.authorize_issuer(address, name)
            except CredentialError as e:
                self.notify('Authorization Failed', e.reason, 'error')
                raise
            self.notify('Issuer Authorized On-Chain', f"TX: {receipt.tx_id[:10]}...", 'success')

        existing = self._get_issuer(address)
        issuer = self._put_issuer(IssuerRecord(
            address=address,
            display_name=name,
            is_authorized=True,
            registered_at=existing.registered_at if existing else int(self._clock()),
        ))

        self.notify('Issuer Authorized', f"{name} has been authorized as an issuer.", 'success')
        return issuer

    async def deauthorize_issuer(self, address: str) -> IssuerRecord:
        """Withdraws an issuer's accreditation; already-issued credentials are untouched"""
        self._require_role(Role.AUTHORITY, action="de-authorize issuers")
        self._require_not_paused()
        self._require_fields(address=address)
        address = address.strip()

        existing = self._get_issuer(address)
        if existing is not None and not existing.is_authorized:
            raise StateError(f"Issuer {address} is not authorized")
        if existing is None and self._mode is SessionMode.LOCAL:
            raise StateError(f"Issuer {address} is not authorized")

        if self._mode is SessionMode.LEDGER:
            try:
                receipt = await self.ledger.revoke_issuer(address)
            except CredentialError as e:
                self.notify('De-authorization Failed', e.reason, 'error')
                raise
            self.notify('Issuer Revoked On-Chain', f"TX: {receipt.tx_id[:10]}...", 'warning')

        if existing is None:
            existing = IssuerRecord(address=address, display_name=address)
        issuer = self._put_issuer(existing.deauthorized())

        self.notify('Issuer Revoked', f"{issuer.display_name} is no longer an authorized issuer.", 'warning')
        return issuer

    # --- Admission control ---

    def toggle_pause(self) -> bool:
        self._require_role(Role.AUTHORITY, action="pause the system")
        paused = self._admission.toggle()
        if paused:
            self.notify('System Paused', 'Issuance and revocation are disabled.', 'warning')
        else:
            self.notify('System Resumed', 'Issuance and revocation are enabled again.', 'info')
        self.logger.info(f"Admission switch toggled by {self.session.identity}: paused={paused}")
        return paused

    # --- Getters ---

    def get_credential(self, fingerprint: str) -> Optional[CredentialRecord]:
        return self._credentials.get(self.validate_fingerprint(fingerprint))

    def get_issued_credentials(self) -> List[CredentialRecord]:
        wallet = (self.session.wallet_address or "").lower()
        return [c for c in self._credentials.values() if c.issuer_address.lower() == wallet]

    def get_my_credentials(self) -> List[CredentialRecord]:
        owners = {self.session.identity}
        if self.session.wallet_address:
            owners.add(self.session.wallet_address)
        return [c for c in self._credentials.values() if c.student_identifier in owners]

    def get_all_issuers(self) -> List[IssuerRecord]:
        return list(self._issuers.values())

    async def get_network_status(self) -> Dict[str, Any]:
        status = {
            "mode": self._mode.value,
            "paused": self.is_paused,
            "contract_ready": self._ledger_readable(),
            "network": None,
            "block_height": None,
        }
        if self._ledger_readable():
            status["network"] = await self.ledger.get_network_info()
            status["block_height"] = await self.ledger.get_block_height()
        return status

    async def get_wallet_balance(self) -> Decimal:
        if self._mode is not SessionMode.LEDGER or not self.session.wallet_address:
            return Decimal("0")
        balance = await self.ledger.get_balance(self.session.wallet_address)
        return balance if balance is not None else Decimal("0")
