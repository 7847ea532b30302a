"""Tests for the mint submitter."""

import pytest

from relaybridge.bridge.submitter import MintSubmitter
from relaybridge.bridge.types import (
    BridgeTransaction,
    MintJobPayload,
    Network,
    OperationType,
    TransactionStatus,
)
from relaybridge.errors import ConfigurationError, JobError, RelayError

USER = "0x00000000000000000000000000000000000000A1"
OPTIMISM_CONTRACT = "0x2222222222222222222222222222222222222222"


def pending_mint(store, originator="0xAAA"):
    return store.create(
        BridgeTransaction(
            user=USER,
            network=Network.OPTIMISM,
            operation_type=OperationType.MINT,
            amount="10.0",
            tx_hash_originator=originator,
        )
    )


@pytest.fixture
def payload():
    return MintJobPayload(USER, "10.0", Network.OPTIMISM, "0xAAA")


@pytest.fixture
def submitter(bindings, relay, store):
    return MintSubmitter(bindings, relay, store)


class TestMintSubmission:
    """Test a successful mint submission."""

    @pytest.mark.asyncio
    async def test_submits_and_marks_processing(self, submitter, payload, store, relay, chains):
        """Test submitting a mint marks the record processing."""
        record = pending_mint(store)

        task_id = await submitter.handle(payload)

        assert task_id == "task-1"
        expected_data = f"0xmint:{USER.lower()}:{10 * 10**18}"
        assert relay.calls == [(11155420, OPTIMISM_CONTRACT, expected_data)]
        assert chains[Network.OPTIMISM].signed == [(OPTIMISM_CONTRACT, expected_data, None)]

        loaded = store.get(record.id)
        assert loaded.status == TransactionStatus.PROCESSING
        assert loaded.relay_task_id == "task-1"
        assert loaded.tx_hash is None

    @pytest.mark.asyncio
    async def test_gas_limit_override(self, bindings, relay, store, payload, chains):
        """Test overriding the gas limit."""
        pending_mint(store)
        await MintSubmitter(bindings, relay, store, gas_limit=250000).handle(payload)
        assert chains[Network.OPTIMISM].signed[0][2] == 250000


class TestMintFailures:
    """Test failures propagate for the queue to retry."""

    @pytest.mark.asyncio
    async def test_relay_failure_propagates(self, submitter, payload, store, relay):
        """Test relay failures propagate."""
        record = pending_mint(store)
        relay.submit_error = RelayError("HTTP 503", status_code=503)

        with pytest.raises(RelayError):
            await submitter.handle(payload)
        assert store.get(record.id).status == TransactionStatus.PENDING

    @pytest.mark.asyncio
    async def test_unknown_network(self, relay, store, payload, bindings):
        """Test an unknown target network fails."""
        only_arbitrum = {Network.ARBITRUM: bindings[Network.ARBITRUM]}
        pending_mint(store)
        with pytest.raises(ConfigurationError):
            await MintSubmitter(only_arbitrum, relay, store).handle(payload)
        assert relay.calls == []

    @pytest.mark.asyncio
    async def test_missing_record(self, submitter, payload, relay):
        """Test a job without a record fails."""
        with pytest.raises(JobError):
            await submitter.handle(payload)
        assert relay.calls == []


class TestRedelivery:
    """Test a redelivered job does not submit twice."""

    @pytest.mark.asyncio
    async def test_already_processing(self, submitter, payload, store, relay):
        """Test a processing record is not submitted again."""
        pending_mint(store)
        await submitter.handle(payload)
        assert await submitter.handle(payload) == "task-1"
        assert len(relay.calls) == 1

    @pytest.mark.asyncio
    async def test_already_failed(self, submitter, payload, store, relay):
        """Test a failed record is not submitted again."""
        pending_mint(store)
        store.update_by_originator_hash("0xAAA", status=TransactionStatus.FAILED)
        assert await submitter.handle(payload) is None
        assert relay.calls == []
