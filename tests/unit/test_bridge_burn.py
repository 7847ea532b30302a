"""Tests for the signed burn service and balance lookup."""

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from relaybridge.bridge.burn import BurnService, burn_message_hash, recover_signer
from relaybridge.bridge.types import Network, OperationType, TransactionStatus
from relaybridge.errors import ChainRPCError, ValidationError

ARBITRUM_CONTRACT = "0x1111111111111111111111111111111111111111"
USER_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"


@pytest.fixture
def account():
    return Account.from_key(USER_KEY)


@pytest.fixture
def service(bindings, store):
    return BurnService(bindings, store)


def sign_burn(account, amount_units, contract=ARBITRUM_CONTRACT):
    message = encode_defunct(primitive=burn_message_hash(contract, amount_units))
    return Web3.to_hex(account.sign_message(message).signature)


class TestSignatures:
    """Test burn authorization hashing and recovery."""

    def test_recover_signer(self, account):
        """Test recovering the signer."""
        signature = sign_burn(account, 10 * 10**18)
        digest = burn_message_hash(ARBITRUM_CONTRACT, 10 * 10**18)
        assert len(digest) == 32
        assert recover_signer(digest, signature) == account.address

    def test_hash_depends_on_amount(self):
        """Test the message hash depends on the amount."""
        assert burn_message_hash(ARBITRUM_CONTRACT, 1) != burn_message_hash(ARBITRUM_CONTRACT, 2)

    def test_garbage_signature(self):
        """Test an unparseable signature is rejected."""
        with pytest.raises(ValidationError):
            recover_signer(b"\x00" * 32, "0x1234")


class TestBurn:
    """Test the synchronous burn path."""

    @pytest.mark.asyncio
    async def test_burn_records_completed_burn(self, service, account, chains, store):
        """Test a burn is recorded as completed."""
        signature = sign_burn(account, 10 * 10**18)

        result = await service.burn(account.address, "10.0", "arbitrum", signature)

        assert result == {"success": True, "txHash": "0xburn1"}
        assert chains[Network.ARBITRUM].burns == [(account.address, 10 * 10**18)]
        records = store.find_by_tx_hash_either_side("0xburn1")
        assert len(records) == 1
        assert records[0].operation_type == OperationType.BURN
        assert records[0].status == TransactionStatus.COMPLETED
        assert records[0].network == Network.ARBITRUM
        assert records[0].amount == "10.0"

    @pytest.mark.asyncio
    async def test_signature_from_other_account(self, service, chains, store, account):
        """Test a signature from another account is rejected."""
        other = Account.create()
        signature = sign_burn(other, 10 * 10**18)
        with pytest.raises(ValidationError):
            await service.burn(account.address, "10.0", "arbitrum", signature)
        assert chains[Network.ARBITRUM].burns == []
        assert store.find_by_user(account.address) == []

    @pytest.mark.asyncio
    async def test_signature_for_other_amount(self, service, account, chains):
        """Test a signature for another amount is rejected."""
        signature = sign_burn(account, 5 * 10**18)
        with pytest.raises(ValidationError):
            await service.burn(account.address, "10.0", "arbitrum", signature)
        assert chains[Network.ARBITRUM].burns == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"amount": "-1"},
            {"amount": "ten"},
            {"network": "polygon"},
            {"user": "not-an-address"},
            {"contract_address": "0x9999999999999999999999999999999999999999"},
        ],
    )
    async def test_invalid_requests(self, service, account, kwargs):
        """Test invalid burn requests are rejected."""
        request = {
            "user": account.address,
            "amount": "10.0",
            "network": "arbitrum",
            "signature": sign_burn(account, 10 * 10**18),
        }
        request.update(kwargs)
        with pytest.raises(ValidationError):
            await service.burn(**request)

    @pytest.mark.asyncio
    async def test_chain_failure_propagates(self, service, account, chains, store):
        """Test chain failures propagate without a record."""
        chains[Network.ARBITRUM].error = ChainRPCError("reverted", retryable=False)
        with pytest.raises(ChainRPCError):
            await service.burn(account.address, "10.0", "arbitrum", sign_burn(account, 10 * 10**18))
        assert store.find_by_user(account.address) == []


class TestBalances:
    """Test balance lookup across networks."""

    @pytest.mark.asyncio
    async def test_balances(self, service, chains, account):
        """Test balances on every network."""
        chains[Network.ARBITRUM].balances[account.address.lower()] = 25 * 10**17
        balances = await service.get_user_balance(account.address)
        assert balances == {"arbitrumBalance": "2.5", "optimismBalance": "0.0"}

    @pytest.mark.asyncio
    async def test_invalid_address(self, service):
        """Test an invalid address is rejected."""
        with pytest.raises(ValidationError):
            await service.get_user_balance("0x123")
