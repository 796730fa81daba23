#!/usr/bin/env python3
"""
Client for the CredentialRegistry smart contract: deterministic credential
fingerprints plus every read and write against the authoritative ledger.

Reads degrade to "ledger unavailable" instead of raising, so callers can fall
back to their caches. Writes never degrade: any revert or network failure is
raised as LedgerWriteError.
"""
import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from web3 import AsyncWeb3, Web3
from web3.middleware import ExtraDataToPOAMiddleware

from .exceptions import LedgerWriteError, ValidationError
from .models import CredentialRecord, FINGERPRINT_FIELDS, IssuerRecord

CONTRACT_JSON_PATH = os.path.join(os.path.dirname(__file__), "contracts", "CredentialRegistry.json")


class LedgerStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class LedgerLookup:
    """Outcome of a ledger read for one fingerprint"""
    status: LedgerStatus
    record: Optional[CredentialRecord] = None
    reason: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.status is LedgerStatus.FOUND

    @property
    def available(self) -> bool:
        return self.status is not LedgerStatus.UNAVAILABLE


@dataclass(frozen=True)
class LedgerReceipt:
    tx_id: str
    block_height: int


class LedgerClient:
    """Async client for the CredentialRegistry contract"""

    def __init__(self, rpc_url: str = "http://127.0.0.1:8545", contract_address: Optional[str] = None,
                 private_key: Optional[str] = None, gas_limit: int = 300000, tx_timeout: float = 120,
                 chain_names: Optional[Dict[int, str]] = None, web3: Optional[AsyncWeb3] = None):
        """
        Args:
            rpc_url: JSON-RPC endpoint of the ledger node
            contract_address: Address of the deployed CredentialRegistry, None for no contract
            private_key: Signer key used for write transactions, None for read-only access
            gas_limit: Gas limit attached to every transaction
            tx_timeout: Seconds to wait for a transaction receipt
            chain_names: Map of chain id to human-readable network name
            web3: Pre-built AsyncWeb3 instance, mainly for tests
        """
        self.logger = logging.getLogger("LedgerClient")
        self.rpc_url = rpc_url
        self.gas_limit = gas_limit
        self.tx_timeout = tx_timeout
        self.chain_names = dict(chain_names or {})

        if web3 is None:
            web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
            # Polygon and other PoA chains carry extra data in block headers
            web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        self.web3 = web3

        self.account = self.web3.eth.account.from_key(private_key) if private_key else None

        self.contract_address = None
        self.contract = None
        if contract_address:
            self.contract_address = Web3.to_checksum_address(contract_address)
            self.contract = self._load_contract(self.contract_address)
            self.logger.info(f"CredentialRegistry loaded at {self.contract_address} via {rpc_url}")
        else:
            self.logger.warning("Contract address not configured - ledger features disabled")

    @classmethod
    def from_config(cls, config) -> 'LedgerClient':
        return cls(
            rpc_url=config.LEDGER_RPC_URL,
            contract_address=config.CONTRACT_ADDRESS,
            private_key=config.LEDGER_PRIVATE_KEY,
            gas_limit=config.LEDGER_GAS_LIMIT,
            tx_timeout=config.LEDGER_TX_TIMEOUT,
            chain_names=config.CHAIN_NAMES,
        )

    def _load_contract(self, contract_address):
        """Loads the contract ABI shipped with the package"""
        with open(CONTRACT_JSON_PATH) as f:
            contract_abi = json.load(f)["abi"]
        return self.web3.eth.contract(address=contract_address, abi=contract_abi)

    @property
    def is_configured(self) -> bool:
        return self.contract is not None

    @property
    def can_sign(self) -> bool:
        return self.account is not None

    @property
    def signer_address(self) -> Optional[str]:
        return self.account.address if self.account else None

    # --- Fingerprints ---

    @staticmethod
    def compute_fingerprint(record) -> str:
        """
        Computes the content fingerprint shared by the ledger, the content
        store and the caches.

        The canonical form is compact JSON with sorted keys over the
        fingerprint fields only, so the result never depends on the order in
        which the fields were supplied.

        Args:
            record: Mapping or object exposing issuer_address, student_identifier,
                student_name, course_name and issued_at

        Returns:
            str: Keccak-256 digest, 0x-prefixed hex
        """
        try:
            if isinstance(record, Mapping):
                fields = {name: record[name] for name in FINGERPRINT_FIELDS}
            else:
                fields = {name: getattr(record, name) for name in FINGERPRINT_FIELDS}
        except (KeyError, AttributeError) as e:
            raise ValidationError(f"Missing fingerprint field: {e}") from e

        canonical = json.dumps(fields, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
        return Web3.to_hex(Web3.keccak(text=canonical))

    @staticmethod
    def _to_bytes32(fingerprint: str) -> bytes:
        return Web3.to_bytes(hexstr=fingerprint)

    # --- Reads (soft-fail) ---

    async def is_connected(self) -> bool:
        try:
            return await self.web3.is_connected()
        except Exception as e:
            self.logger.warning(f"Ledger connectivity check failed: {e}")
            return False

    async def is_authorized_issuer(self, address: str) -> bool:
        """Returns True when the address is an authorized issuer, False on any failure"""
        issuer = await self.get_issuer_info(address)
        return bool(issuer and issuer.is_authorized)

    async def get_issuer_info(self, address: str) -> Optional[IssuerRecord]:
        if self.contract is None:
            return None

        try:
            name, is_authorized, registered_at = await self.contract.functions.authorizedIssuers(
                Web3.to_checksum_address(address)
            ).call()
        except Exception as e:
            self.logger.warning(f"Issuer lookup failed for {address}: {e}")
            return None

        return IssuerRecord(
            address=address,
            display_name=name,
            is_authorized=is_authorized,
            registered_at=registered_at or None,
        )

    async def verify_credential(self, fingerprint: str) -> LedgerLookup:
        """
        Looks up a credential on the ledger.

        Returns:
            LedgerLookup: FOUND with the record (valid or revoked), NOT_FOUND when
            the ledger has no such fingerprint, UNAVAILABLE when it cannot be read
        """
        if self.contract is None:
            return LedgerLookup(LedgerStatus.UNAVAILABLE, reason="Smart contract not configured")

        try:
            raw = await self.contract.functions.getCredential(self._to_bytes32(fingerprint)).call()
        except Exception as e:
            self.logger.warning(f"Credential lookup failed for {fingerprint}: {e}")
            return LedgerLookup(LedgerStatus.UNAVAILABLE, reason=str(e))

        record = self._parse_credential(fingerprint, raw)
        if record is None:
            return LedgerLookup(LedgerStatus.NOT_FOUND, reason="Credential not found on blockchain")
        return LedgerLookup(LedgerStatus.FOUND, record=record)

    def _parse_credential(self, fingerprint: str, raw) -> Optional[CredentialRecord]:
        """Converts the getCredential struct into a record, None when it does not exist"""
        issuer, student_name, student_did, course_name, _cred_hash, ipfs_cid, timestamp, _is_valid, is_revoked = raw

        # Unset mappings come back zeroed
        if timestamp == 0:
            return None

        return CredentialRecord(
            fingerprint=fingerprint,
            issuer_address=issuer,
            student_identifier=student_did,
            student_name=student_name,
            course_name=course_name,
            content_id=ipfs_cid,
            issued_at=int(timestamp),
            is_revoked=bool(is_revoked),
        )

    async def get_all_credential_hashes(self) -> List[str]:
        if self.contract is None:
            return []

        try:
            hashes = await self.contract.functions.getAllCredentialHashes().call()
        except Exception as e:
            self.logger.warning(f"Error retrieving credential hashes: {e}")
            return []
        return [Web3.to_hex(h) for h in hashes]

    async def get_network_info(self) -> Optional[Dict[str, Any]]:
        try:
            chain_id = await self.web3.eth.chain_id
        except Exception as e:
            self.logger.warning(f"Network info unavailable: {e}")
            return None
        return {"chain_id": chain_id, "name": self.chain_names.get(chain_id, "unknown")}

    async def get_block_height(self) -> Optional[int]:
        try:
            return await self.web3.eth.block_number
        except Exception as e:
            self.logger.warning(f"Block height unavailable: {e}")
            return None

    async def get_balance(self, address: str) -> Optional[Decimal]:
        """Returns the native-currency balance of an address, in ether units"""
        try:
            balance = await self.web3.eth.get_balance(Web3.to_checksum_address(address))
        except Exception as e:
            self.logger.warning(f"Balance unavailable for {address}: {e}")
            return None
        return Web3.from_wei(balance, "ether")

    # --- Writes (fail hard) ---

    async def issue_credential(self, record: CredentialRecord) -> LedgerReceipt:
        """
        Anchors a credential on the ledger. The caller must already have
        checked that the signer is an authorized issuer.
        """
        fn = self._require_contract().functions.issueCredential(
            record.student_name,
            record.student_identifier,
            record.course_name,
            record.content_id,
            self._to_bytes32(record.fingerprint),
        )
        receipt = await self._send_transaction(fn, f"issueCredential({record.fingerprint})")
        self.logger.info(f"Credential {record.fingerprint} issued in block {receipt.block_height}")
        return receipt

    async def revoke_credential(self, fingerprint: str) -> LedgerReceipt:
        fn = self._require_contract().functions.revokeCredential(self._to_bytes32(fingerprint))
        receipt = await self._send_transaction(fn, f"revokeCredential({fingerprint})")
        self.logger.info(f"Credential {fingerprint} revoked in block {receipt.block_height}")
        return receipt

    async def authorize_issuer(self, address: str, name: str) -> LedgerReceipt:
        fn = self._require_contract().functions.authorizeIssuer(Web3.to_checksum_address(address), name)
        receipt = await self._send_transaction(fn, f"authorizeIssuer({address})")
        self.logger.info(f"Issuer {address} ({name}) authorized in block {receipt.block_height}")
        return receipt

    async def revoke_issuer(self, address: str) -> LedgerReceipt:
        fn = self._require_contract().functions.revokeIssuer(Web3.to_checksum_address(address))
        receipt = await self._send_transaction(fn, f"revokeIssuer({address})")
        self.logger.info(f"Issuer {address} de-authorized in block {receipt.block_height}")
        return receipt

    def _require_contract(self):
        if self.contract is None:
            raise LedgerWriteError("Smart contract address not configured. Please deploy contract first.")
        if self.account is None:
            raise LedgerWriteError("No signer key configured for ledger transactions")
        return self.contract

    async def _send_transaction(self, contract_function, action: str) -> LedgerReceipt:
        """Builds, signs, sends and awaits one transaction from the signer account"""
        address = self.account.address

        try:
            nonce = await self.web3.eth.get_transaction_count(address, "pending")
            txn = await contract_function.build_transaction({
                'from': address,
                'gas': self.gas_limit,
                'nonce': nonce,
            })
            signed_txn = self.account.sign_transaction(txn)
            txn_hash = await self.web3.eth.send_raw_transaction(signed_txn.raw_transaction)
            txn_receipt = await self.web3.eth.wait_for_transaction_receipt(txn_hash, timeout=self.tx_timeout)
        except Exception as e:
            self.logger.error(f"{action} failed: {e}")
            raise LedgerWriteError(f"{action} failed: {e}") from e

        tx_id = Web3.to_hex(txn_hash)
        if txn_receipt["status"] != 1:
            self.logger.error(f"{action} reverted in transaction {tx_id}")
            raise LedgerWriteError(f"{action} reverted in transaction {tx_id}")

        return LedgerReceipt(tx_id=tx_id, block_height=txn_receipt["blockNumber"])
