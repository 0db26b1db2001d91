"""Tests for ledger schemas, gateways and the audit recorder."""

import asyncio
import hashlib
import json
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from epochi.intents import IntentKind, parse_title
from epochi.ledger import (
    IntentStatus,
    JsonlLedgerGateway,
    LedgerAuditRecorder,
    LedgerRecordNotFoundError,
    MemoryLedgerGateway,
    ProofStatus,
    ReputationTier,
    ScheduledIntentRecord,
    SchemaKind,
    TransactionStatus,
    UserStatsRecord,
    build_transaction_record,
    canonical_amount,
    create_intent_id,
    create_verification_hash,
    format_time_delta,
    record_key,
    reputation_tier,
    success_rate,
    was_on_time,
)

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)
OWNER = "0x" + "a" * 40


def _stats(total: int, success: int) -> UserStatsRecord:
    return UserStatsRecord(
        owner_address=OWNER,
        total_tx=total,
        success_tx=success,
        failed_tx=total - success,
        first_activity_at=NOW,
        last_activity_at=NOW,
    )


def _intent_record(intent_id: str = "intent-1") -> ScheduledIntentRecord:
    return ScheduledIntentRecord(
        scheduled_time=NOW + timedelta(minutes=5),
        intent_id=intent_id,
        owner_address=OWNER,
        kind=IntentKind.SWAP,
        from_asset="ETH",
        to_asset="USDC",
        amount=Decimal("0.1"),
        description="Swap 0.1 ETH to USDC",
        created_at=NOW,
    )


class TestRecordKey:
    """Tests for record_key."""

    def test_hashes_natural_keys(self):
        expected = "0x" + hashlib.sha256(b"evt-1").hexdigest()
        assert record_key("evt-1") == expected

    def test_passes_through_hex_ids(self):
        key = "0x" + "ab" * 32
        assert record_key(key) == key

    def test_address_is_hashed(self):
        # 20-byte addresses are not 32-byte ids
        assert record_key(OWNER) != OWNER


class TestPureHelpers:
    """Tests for the stats and proof helpers."""

    @pytest.mark.parametrize(
        "seconds,expected",
        [
            (0, "+0s"),
            (42, "+42s"),
            (-42, "-42s"),
            (180, "+3m"),
            (-200, "-3m"),
            (7200, "+2h"),
            (-3600, "-1h"),
        ],
    )
    def test_format_time_delta(self, seconds, expected):
        assert format_time_delta(seconds) == expected

    def test_was_on_time(self):
        assert was_on_time(60) is True
        assert was_on_time(-60) is True
        assert was_on_time(61) is False
        assert was_on_time(100, window_seconds=120) is True

    def test_success_rate(self):
        assert success_rate(_stats(0, 0)) == 0.0
        assert success_rate(_stats(4, 3)) == 75.0

    def test_canonical_amount(self):
        assert canonical_amount("1.50") == "1.5"
        assert canonical_amount(Decimal("100")) == "100"
        assert canonical_amount("250.0") == "250"

    def test_verification_hash_uses_canonical_amount(self):
        assert create_verification_hash("i", "0xabc", "1.50") == create_verification_hash(
            "i", "0xabc", Decimal("1.5")
        )

    def test_verification_hash_binds_all_fields(self):
        base = create_verification_hash("i", "0xabc", "1")
        assert base != create_verification_hash("j", "0xabc", "1")
        assert base != create_verification_hash("i", "0xabd", "1")
        assert base != create_verification_hash("i", "0xabc", "2")


class TestReputationTier:
    """Tests for reputation_tier."""

    @pytest.mark.parametrize("success", [0, 1, 3])
    def test_newcomer_regardless_of_success(self, success):
        assert reputation_tier(_stats(3, success)) == ReputationTier.NEWCOMER

    def test_active_trader(self):
        # 23 of 25 = 92%
        assert reputation_tier(_stats(25, 23)) == ReputationTier.ACTIVE_TRADER

    def test_rising_star(self):
        assert reputation_tier(_stats(10, 9)) == ReputationTier.RISING_STAR

    def test_diamond_hands(self):
        assert reputation_tier(_stats(100, 99)) == ReputationTier.DIAMOND_HANDS

    def test_needs_improvement(self):
        assert reputation_tier(_stats(10, 4)) == ReputationTier.NEEDS_IMPROVEMENT

    def test_regular(self):
        assert reputation_tier(_stats(10, 7)) == ReputationTier.REGULAR
        assert reputation_tier(_stats(60, 54)) == ReputationTier.REGULAR


class TestTransactions:
    """Tests for transaction audit records."""

    def _record(self, event_id: str = "evt-1", owner: str = OWNER, **kwargs):
        intent = parse_title("Swap 0.1 ETH to USDC", NOW, event_id)
        return build_transaction_record(
            intent,
            namespace="primary",
            owner_address=owner,
            status=kwargs.pop("status", TransactionStatus.EXECUTED),
            amount_received=Decimal("250"),
            chain_tx_ref="0x" + "c" * 64,
            timestamp=NOW,
            **kwargs,
        )

    def test_build_transaction_record(self):
        record = self._record()

        assert record.id == f"primary-evt-1-{int(NOW.timestamp())}"
        assert record.kind == IntentKind.SWAP
        assert record.from_asset == "ETH"
        assert record.to_asset == "USDC"
        assert record.amount == Decimal("0.1")

    @pytest.mark.asyncio
    async def test_record_and_get(self, recorder):
        ref = await recorder.record_transaction(self._record())

        assert ref.startswith("0x")
        stored = await recorder.get_transaction("evt-1")
        assert stored == self._record()

    @pytest.mark.asyncio
    async def test_get_missing(self, recorder):
        assert await recorder.get_transaction("nope") is None

    @pytest.mark.asyncio
    async def test_latest_attempt_wins(self, recorder):
        await recorder.record_transaction(
            self._record(status=TransactionStatus.FAILED, notes="retry")
        )
        await recorder.record_transaction(self._record())

        stored = await recorder.get_transaction("evt-1")
        assert stored.status == TransactionStatus.EXECUTED
        assert len(await recorder.list_transactions()) == 2

    @pytest.mark.asyncio
    async def test_list_filtered_by_owner(self, recorder):
        other = "0x" + "b" * 40
        await recorder.record_transaction(self._record("evt-1"))
        await recorder.record_transaction(self._record("evt-2", owner=other))

        records = await recorder.list_transactions(owner_address=other.upper())
        assert [r.source_event_id for r in records] == ["evt-2"]

    @pytest.mark.asyncio
    async def test_stored_under_record_key(self, recorder, ledger):
        await recorder.record_transaction(self._record())

        payload = await ledger.get_by_key(
            SchemaKind.TRANSACTION, ledger.publisher, record_key("evt-1")
        )
        assert payload["amount"] == "0.1"


class TestIntents:
    """Tests for announced intents."""

    def test_create_intent_id(self):
        intent_id = create_intent_id(OWNER, NOW, "evt-1")
        assert intent_id == f"intent-{OWNER[:10]}-{int(NOW.timestamp())}-evt-1"

    @pytest.mark.asyncio
    async def test_announce_and_get(self, recorder):
        await recorder.announce_intent(_intent_record())

        stored = await recorder.get_intent("intent-1")
        assert stored.status == IntentStatus.SCHEDULED
        assert stored.amount == Decimal("0.1")

    @pytest.mark.asyncio
    async def test_update_status_appends(self, recorder, ledger):
        await recorder.announce_intent(_intent_record())
        await recorder.update_intent_status("intent-1", IntentStatus.COMPLETED)

        stored = await recorder.get_intent("intent-1")
        assert stored.status == IntentStatus.COMPLETED
        raw = await ledger.get_all_by_owner(SchemaKind.INTENT, ledger.publisher)
        assert [r["status"] for r in raw] == ["scheduled", "completed"]

    @pytest.mark.asyncio
    async def test_update_missing_intent_raises(self, recorder):
        with pytest.raises(LedgerRecordNotFoundError):
            await recorder.update_intent_status("missing", IntentStatus.FAILED)

    @pytest.mark.asyncio
    async def test_list_intents_returns_current_state(self, recorder):
        await recorder.announce_intent(_intent_record("intent-1"))
        await recorder.announce_intent(_intent_record("intent-2"))
        await recorder.update_intent_status("intent-1", IntentStatus.FAILED)

        intents = await recorder.list_intents()
        assert [(i.intent_id, i.status) for i in intents] == [
            ("intent-1", IntentStatus.FAILED),
            ("intent-2", IntentStatus.SCHEDULED),
        ]


class TestUserStats:
    """Tests for the read-modify-append stats update."""

    @pytest.mark.asyncio
    async def test_first_update_creates_snapshot(self, recorder):
        await recorder.update_user_stats(OWNER, True, Decimal("2"), IntentKind.SWAP)

        stats = await recorder.get_user_stats(OWNER)
        assert stats.total_tx == 1
        assert stats.success_tx == 1
        assert stats.failed_tx == 0
        assert stats.total_volume == Decimal("2")
        assert stats.most_used_kind == IntentKind.SWAP
        assert stats.first_activity_at == NOW

    @pytest.mark.asyncio
    async def test_volume_counts_successes_only(self, recorder):
        await recorder.update_user_stats(OWNER, True, Decimal("2"), IntentKind.SWAP)
        await recorder.update_user_stats(OWNER, False, Decimal("5"), IntentKind.SWAP)

        stats = await recorder.get_user_stats(OWNER)
        assert stats.total_tx == 2
        assert stats.failed_tx == 1
        assert stats.total_volume == Decimal("2")

    @pytest.mark.asyncio
    async def test_most_used_kind_tracks_counts(self, recorder):
        await recorder.update_user_stats(OWNER, True, Decimal("1"), IntentKind.TRANSFER)
        await recorder.update_user_stats(OWNER, True, Decimal("1"), IntentKind.TRANSFER)
        await recorder.update_user_stats(OWNER, True, Decimal("1"), IntentKind.SWAP)

        stats = await recorder.get_user_stats(OWNER)
        assert stats.most_used_kind == IntentKind.TRANSFER
        assert stats.kind_counts == {"transfer": 2, "swap": 1}

    @pytest.mark.asyncio
    async def test_owner_lookup_is_case_insensitive(self, recorder):
        await recorder.update_user_stats(OWNER, True, Decimal("1"), IntentKind.SWAP)
        assert await recorder.get_user_stats(OWNER.upper()) is not None

    @pytest.mark.asyncio
    async def test_concurrent_updates_are_not_lost(self, recorder):
        await asyncio.gather(
            *(
                recorder.update_user_stats(OWNER, True, Decimal("1"), IntentKind.SWAP)
                for _ in range(10)
            )
        )

        stats = await recorder.get_user_stats(OWNER)
        assert stats.total_tx == 10
        assert stats.total_volume == Decimal("10")

    @pytest.mark.asyncio
    async def test_last_activity_moves_forward(self, recorder, clock):
        await recorder.update_user_stats(OWNER, True, Decimal("1"), IntentKind.SWAP)
        clock.advance(minutes=5)
        await recorder.update_user_stats(OWNER, True, Decimal("1"), IntentKind.SWAP)

        stats = await recorder.get_user_stats(OWNER)
        assert stats.first_activity_at == NOW
        assert stats.last_activity_at == NOW + timedelta(minutes=5)


class TestExecutionProofs:
    """Tests for execution proofs."""

    async def _create(self, recorder, delay_seconds: int = 12):
        return await recorder.create_execution_proof(
            intent_id="intent-1",
            chain_tx_ref="0x" + "d" * 64,
            scheduled_time=NOW,
            expected_amount=Decimal("0.1"),
            actual_amount=Decimal("250.0"),
            success=True,
            actual_time=NOW + timedelta(seconds=delay_seconds),
        )

    @pytest.mark.asyncio
    async def test_create_proof(self, recorder):
        proof, ref = await self._create(recorder)

        assert proof.proof_id == f"proof-intent-1-{int(NOW.timestamp()) + 12}"
        assert proof.time_delta_seconds == 12
        assert proof.status == ProofStatus.SUCCESS
        assert proof.verification_hash == create_verification_hash(
            "intent-1", "0x" + "d" * 64, "250"
        )
        assert ref.startswith("0x")

    @pytest.mark.asyncio
    async def test_verify_valid_on_time(self, recorder):
        proof, _ = await self._create(recorder)

        verification = await recorder.verify_execution_proof(proof.proof_id)

        assert verification.valid is True
        assert verification.on_time is True
        assert verification.time_delta == 12

    @pytest.mark.asyncio
    async def test_verify_late(self, recorder):
        proof, _ = await self._create(recorder, delay_seconds=300)

        verification = await recorder.verify_execution_proof(proof.proof_id)

        assert verification.valid is True
        assert verification.on_time is False

    @pytest.mark.asyncio
    async def test_tampered_amount_fails_verification(self, recorder, ledger):
        proof, _ = await self._create(recorder)
        tampered = proof.model_copy(update={"actual_amount": Decimal("999")})
        await ledger.append(
            SchemaKind.PROOF, record_key(proof.proof_id), tampered.model_dump(mode="json")
        )

        verification = await recorder.verify_execution_proof(proof.proof_id)

        assert verification.valid is False

    @pytest.mark.asyncio
    async def test_missing_proof(self, recorder):
        verification = await recorder.verify_execution_proof("proof-missing")

        assert verification.valid is False
        assert verification.proof is None


class TestMemoryLedgerGateway:
    """Tests for the in-memory gateway."""

    @pytest.mark.asyncio
    async def test_owner_scoping(self):
        gateway = MemoryLedgerGateway(publisher="alice")
        await gateway.append("intent", "0x01", {"n": 1})

        assert await gateway.get_by_key("intent", "bob", "0x01") is None
        assert await gateway.get_all_by_owner("intent", "bob") == []
        assert await gateway.get_all_by_owner("intent", "alice") == [{"n": 1}]

    @pytest.mark.asyncio
    async def test_refs_are_unique(self):
        gateway = MemoryLedgerGateway()
        first = await gateway.append("intent", "0x01", {"n": 1})
        second = await gateway.append("intent", "0x01", {"n": 2})
        assert first != second


class TestJsonlLedgerGateway:
    """Tests for the file-backed gateway."""

    @pytest.mark.asyncio
    async def test_append_and_read(self, tmp_path):
        gateway = JsonlLedgerGateway(tmp_path / "ledger", publisher="epochi")
        await gateway.append("intent", "0x01", {"n": 1})
        await gateway.append("intent", "0x01", {"n": 2})
        await gateway.append("intent", "0x02", {"n": 3})

        assert await gateway.get_by_key("intent", "epochi", "0x01") == {"n": 2}
        assert await gateway.get_all_by_owner("intent", "epochi") == [
            {"n": 1},
            {"n": 2},
            {"n": 3},
        ]
        assert (tmp_path / "ledger" / "intent.jsonl").exists()

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        first = JsonlLedgerGateway(tmp_path, publisher="epochi")
        await first.append("stats", "0x01", {"total": 1})

        second = JsonlLedgerGateway(tmp_path, publisher="epochi")
        assert await second.get_by_key("stats", "epochi", "0x01") == {"total": 1}

    @pytest.mark.asyncio
    async def test_missing_file_reads_empty(self, tmp_path):
        gateway = JsonlLedgerGateway(tmp_path)
        assert await gateway.get_all_by_owner("proof", "epochi") == []
        assert await gateway.get_by_key("proof", "epochi", "0x01") is None

    @pytest.mark.asyncio
    async def test_skips_invalid_lines(self, tmp_path):
        gateway = JsonlLedgerGateway(tmp_path)
        await gateway.append("intent", "0x01", {"n": 1})
        with (tmp_path / "intent.jsonl").open("a") as f:
            f.write("not json\n")
            f.write(json.dumps({"missing": "fields"}) + "\n")

        assert await gateway.get_all_by_owner("intent", "epochi") == [{"n": 1}]

    @pytest.mark.asyncio
    async def test_recorder_round_trip(self, tmp_path):
        recorder = LedgerAuditRecorder(JsonlLedgerGateway(tmp_path))
        await recorder.announce_intent(_intent_record())
        await recorder.update_intent_status("intent-1", IntentStatus.EXECUTING)

        reloaded = LedgerAuditRecorder(JsonlLedgerGateway(tmp_path))
        stored = await reloaded.get_intent("intent-1")
        assert stored.status == IntentStatus.EXECUTING
        assert stored.scheduled_time == NOW + timedelta(minutes=5)
