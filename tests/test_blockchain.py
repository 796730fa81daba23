import re
from unittest.mock import AsyncMock, MagicMock

import pytest

from acadchain.blockchain import LedgerClient, LedgerStatus
from acadchain.exceptions import LedgerWriteError, ValidationError
from acadchain.models import CredentialRecord

ISSUER = "0x" + "11" * 20
FIELDS = {
    "issuer_address": ISSUER,
    "student_identifier": "did:x:1",
    "student_name": "Jane Doe",
    "course_name": "B.Sc. CS",
    "issued_at": 1_700_000_000,
}


def _client(private_key=None):
    web3 = MagicMock()
    client = LedgerClient(web3=web3, private_key=private_key)
    client.contract = MagicMock()
    return client, web3


def _awaitable(value):
    async def _value():
        return value
    return _value()


class TestFingerprint:
    def test_format_and_determinism(self):
        fingerprint = LedgerClient.compute_fingerprint(FIELDS)

        assert re.fullmatch(r"0x[0-9a-f]{64}", fingerprint)
        assert LedgerClient.compute_fingerprint(dict(FIELDS)) == fingerprint

    def test_independent_of_field_order(self):
        reordered = dict(reversed(list(FIELDS.items())))
        assert LedgerClient.compute_fingerprint(reordered) == LedgerClient.compute_fingerprint(FIELDS)

    def test_record_and_mapping_agree(self):
        record = CredentialRecord(fingerprint="", content_id="bafy", **FIELDS)
        assert LedgerClient.compute_fingerprint(record) == LedgerClient.compute_fingerprint(FIELDS)

    def test_ignores_non_fingerprint_fields(self):
        extended = {**FIELDS, "content_id": "bafy", "is_revoked": True}
        assert LedgerClient.compute_fingerprint(extended) == LedgerClient.compute_fingerprint(FIELDS)

    @pytest.mark.parametrize("field", sorted(FIELDS))
    def test_every_field_contributes(self, field):
        changed = {**FIELDS, field: FIELDS[field] + 1 if field == "issued_at" else FIELDS[field] + "x"}
        assert LedgerClient.compute_fingerprint(changed) != LedgerClient.compute_fingerprint(FIELDS)

    def test_missing_field(self):
        incomplete = {k: v for k, v in FIELDS.items() if k != "course_name"}
        with pytest.raises(ValidationError):
            LedgerClient.compute_fingerprint(incomplete)


class TestReads:
    @pytest.mark.asyncio
    async def test_issuer_lookup(self):
        client, _ = _client()
        client.contract.functions.authorizedIssuers.return_value.call = AsyncMock(
            return_value=("Test University", True, 1_700_000_000)
        )

        issuer = await client.get_issuer_info(ISSUER)

        assert issuer.display_name == "Test University"
        assert issuer.registered_at == 1_700_000_000
        assert await client.is_authorized_issuer(ISSUER) is True

    @pytest.mark.asyncio
    async def test_issuer_lookup_failure_reads_as_unauthorized(self):
        client, _ = _client()
        client.contract.functions.authorizedIssuers.return_value.call = AsyncMock(
            side_effect=ConnectionError("connection refused")
        )

        assert await client.is_authorized_issuer(ISSUER) is False

    @pytest.mark.asyncio
    async def test_verify_found(self):
        client, _ = _client()
        fingerprint = LedgerClient.compute_fingerprint(FIELDS)
        client.contract.functions.getCredential.return_value.call = AsyncMock(return_value=(
            ISSUER, "Jane Doe", "did:x:1", "B.Sc. CS", bytes.fromhex(fingerprint[2:]), "bafycid",
            1_700_000_123, False, True,
        ))

        lookup = await client.verify_credential(fingerprint)

        assert lookup.status is LedgerStatus.FOUND
        assert lookup.record.fingerprint == fingerprint
        assert lookup.record.content_id == "bafycid"
        assert lookup.record.issued_at == 1_700_000_123
        assert lookup.record.is_revoked

    @pytest.mark.asyncio
    async def test_verify_zeroed_struct_is_not_found(self):
        client, _ = _client()
        client.contract.functions.getCredential.return_value.call = AsyncMock(return_value=(
            "0x" + "00" * 20, "", "", "", b"\x00" * 32, "", 0, False, False,
        ))

        lookup = await client.verify_credential(LedgerClient.compute_fingerprint(FIELDS))

        assert lookup.status is LedgerStatus.NOT_FOUND
        assert lookup.available

    @pytest.mark.asyncio
    async def test_verify_failure_is_unavailable(self):
        client, _ = _client()
        client.contract.functions.getCredential.return_value.call = AsyncMock(side_effect=TimeoutError())

        lookup = await client.verify_credential(LedgerClient.compute_fingerprint(FIELDS))

        assert lookup.status is LedgerStatus.UNAVAILABLE
        assert not lookup.available

    @pytest.mark.asyncio
    async def test_no_contract(self):
        client = LedgerClient(web3=MagicMock())

        assert not client.is_configured
        assert (await client.verify_credential(LedgerClient.compute_fingerprint(FIELDS))).status \
            is LedgerStatus.UNAVAILABLE
        assert await client.get_all_credential_hashes() == []

    @pytest.mark.asyncio
    async def test_network_info(self):
        web3 = MagicMock()
        web3.eth.chain_id = _awaitable(80002)
        client = LedgerClient(web3=web3, chain_names={80002: "amoy"})

        assert await client.get_network_info() == {"chain_id": 80002, "name": "amoy"}


class TestWrites:
    def _signing_client(self):
        client, web3 = _client(private_key="0x" + "01" * 32)
        client.account.address = ISSUER
        client.contract.functions.revokeCredential.return_value.build_transaction = AsyncMock(
            return_value={"to": "0xcontract", "nonce": 7}
        )
        web3.eth.get_transaction_count = AsyncMock(return_value=7)
        web3.eth.send_raw_transaction = AsyncMock(return_value=b"\x12" * 32)
        return client, web3

    @pytest.mark.asyncio
    async def test_revoke_returns_receipt(self):
        client, web3 = self._signing_client()
        web3.eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": 1, "blockNumber": 42})

        receipt = await client.revoke_credential(LedgerClient.compute_fingerprint(FIELDS))

        assert receipt.tx_id == "0x" + "12" * 32
        assert receipt.block_height == 42
        web3.eth.get_transaction_count.assert_awaited_once_with(ISSUER, "pending")
        client.contract.functions.revokeCredential.return_value.build_transaction.assert_awaited_once_with(
            {"from": ISSUER, "gas": 300000, "nonce": 7}
        )

    @pytest.mark.asyncio
    async def test_reverted_transaction_raises(self):
        client, web3 = self._signing_client()
        web3.eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": 0, "blockNumber": 42})

        with pytest.raises(LedgerWriteError, match="reverted"):
            await client.revoke_credential(LedgerClient.compute_fingerprint(FIELDS))

    @pytest.mark.asyncio
    async def test_network_failure_raises(self):
        client, web3 = self._signing_client()
        web3.eth.send_raw_transaction = AsyncMock(side_effect=ConnectionError("connection refused"))

        with pytest.raises(LedgerWriteError, match="connection refused"):
            await client.revoke_credential(LedgerClient.compute_fingerprint(FIELDS))

    @pytest.mark.asyncio
    async def test_write_without_signer_raises(self):
        client, _ = _client()

        assert not client.can_sign
        with pytest.raises(LedgerWriteError):
            await client.revoke_credential(LedgerClient.compute_fingerprint(FIELDS))
