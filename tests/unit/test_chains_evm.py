"""Tests for the web3 chain client.

Nothing here talks to a node: the client is given either a real ``Web3``
object with its RPC methods patched, or a ``MagicMock`` standing in for it.
"""

from unittest.mock import MagicMock

import pytest
from eth_account import Account
from web3 import Web3

from relaybridge.bridge.types import Network
from relaybridge.chains import BURN_EVENT_TOPIC, ChainBinding, EvmChainClient, build_bindings
from relaybridge.config import NetworkConfig
from relaybridge.errors import ChainRPCError

OPERATOR_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
CONTRACT = "0x2222222222222222222222222222222222222222"
USER = "0x90F8bf6A479f320ead074411a4B0e7944Ea8c9C1"
MINT_SELECTOR = "0x40c10f19"


@pytest.fixture
def network_config():
    return NetworkConfig(
        network=Network.OPTIMISM,
        rpc_url="http://127.0.0.1:1",
        contract_address=CONTRACT,
        chain_id=11155420,
    )


@pytest.fixture
def offline_client(network_config):
    w3 = Web3(Web3.HTTPProvider(network_config.rpc_url))
    return EvmChainClient(network_config, OPERATOR_KEY, web3=w3)


@pytest.fixture
def mocked_w3():
    return MagicMock()


@pytest.fixture
def mocked_client(network_config, mocked_w3):
    return EvmChainClient(network_config, OPERATOR_KEY, web3=mocked_w3)


def burn_log(user, amount, tx_hash=b"\xab" * 32, block=42, index=3):
    return {
        "address": CONTRACT,
        "topics": [
            Web3.to_bytes(hexstr=BURN_EVENT_TOPIC),
            b"\x00" * 12 + Web3.to_bytes(hexstr=user),
        ],
        "data": amount.to_bytes(32, "big"),
        "blockHash": b"\x01" * 32,
        "blockNumber": block,
        "transactionHash": tx_hash,
        "transactionIndex": 0,
        "logIndex": index,
    }


class TestEncoding:
    """Test calldata encoding against the token ABI."""

    def test_encode_mint(self, offline_client):
        """Test encoding mint calldata."""
        data = offline_client.encode_mint(USER.lower(), 10**18)
        assert data.startswith(MINT_SELECTOR)
        assert USER[2:].lower() in data
        assert data.endswith(format(10**18, "064x"))

    def test_operator_and_chain(self, offline_client):
        """Test operator address and chain id."""
        assert offline_client.operator_address == Account.from_key(OPERATOR_KEY).address
        assert offline_client.chain_id == 11155420
        assert offline_client.contract_address == Web3.to_checksum_address(CONTRACT)


class TestBurnEvents:
    """Test burn log retrieval and decoding."""

    @pytest.mark.asyncio
    async def test_decodes_logs(self, offline_client, monkeypatch):
        """Test decoding burn logs."""
        queries = []

        def get_logs(params):
            queries.append(params)
            return [burn_log(USER, 5 * 10**18)]

        monkeypatch.setattr(offline_client.w3.eth, "get_logs", get_logs)

        events = await offline_client.get_burn_events(10, 20)

        assert queries[0]["fromBlock"] == 10
        assert queries[0]["toBlock"] == 20
        assert queries[0]["topics"] == [BURN_EVENT_TOPIC]
        assert len(events) == 1
        event = events[0]
        assert event.network == Network.OPTIMISM
        assert event.user == USER
        assert event.amount == 5 * 10**18
        assert event.tx_hash == "0x" + "ab" * 32
        assert event.block_number == 42
        assert event.log_index == 3

    @pytest.mark.asyncio
    async def test_rpc_failure_is_wrapped(self, mocked_client, mocked_w3):
        """Test RPC failures are wrapped in ChainRPCError."""
        mocked_w3.eth.get_logs.side_effect = ValueError("query returned more than 10000 results")
        with pytest.raises(ChainRPCError) as exc_info:
            await mocked_client.get_burn_events(0, 100000)
        assert exc_info.value.network == "optimism"
        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value.cause, ValueError)

    @pytest.mark.asyncio
    async def test_block_number(self, mocked_client, mocked_w3):
        """Test reading the block number."""
        mocked_w3.eth.block_number = 1234
        assert await mocked_client.get_block_number() == 1234


class TestSigning:
    """Test operator-signed transactions."""

    @pytest.mark.asyncio
    async def test_sign_call(self, mocked_client, mocked_w3):
        """Test signing a call from the operator account."""
        mocked_w3.eth.get_transaction_count.return_value = 7
        mocked_w3.eth.gas_price = 10**9

        raw = await mocked_client.sign_call(CONTRACT, MINT_SELECTOR + "00" * 64)

        assert raw.startswith("0x")
        assert Account.recover_transaction(raw) == mocked_client.operator_address
        mocked_w3.eth.get_transaction_count.assert_called_once_with(
            mocked_client.operator_address
        )


class TestBurnFrom:
    """Test the operator-sent burn transaction."""

    def prepare(self, mocked_w3, status):
        tx = {
            "to": Web3.to_checksum_address(CONTRACT),
            "data": "0x79cc6790",
            "value": 0,
            "gas": 100000,
            "gasPrice": 10**9,
            "nonce": 1,
            "chainId": 11155420,
        }
        contract = mocked_w3.eth.contract.return_value
        contract.functions.burnFrom.return_value.build_transaction.return_value = tx
        mocked_w3.eth.send_raw_transaction.return_value = b"\x12" * 32
        mocked_w3.eth.wait_for_transaction_receipt.return_value = {"status": status}
        return contract

    @pytest.mark.asyncio
    async def test_successful_burn(self, network_config, mocked_w3):
        """Test a mined burn returns its hash."""
        contract = self.prepare(mocked_w3, status=1)
        client = EvmChainClient(network_config, OPERATOR_KEY, web3=mocked_w3)

        tx_hash = await client.burn_from(USER.lower(), 10**18)

        assert tx_hash == "0x" + "12" * 32
        contract.functions.burnFrom.assert_called_once_with(USER, 10**18)
        mocked_w3.eth.send_raw_transaction.assert_called_once()

    @pytest.mark.asyncio
    async def test_reverted_burn(self, network_config, mocked_w3):
        """Test a reverted burn raises ChainRPCError."""
        self.prepare(mocked_w3, status=0)
        client = EvmChainClient(network_config, OPERATOR_KEY, web3=mocked_w3)

        with pytest.raises(ChainRPCError) as exc_info:
            await client.burn_from(USER, 10**18)
        assert exc_info.value.retryable is False


class TestBindings:
    def test_build_bindings(self, network_config):
        """Test building bindings from network configs."""
        other = NetworkConfig(
            network=Network.ARBITRUM,
            rpc_url="http://127.0.0.1:2",
            contract_address="0x1111111111111111111111111111111111111111",
            chain_id=421614,
        )
        bindings = build_bindings(
            {Network.OPTIMISM: network_config, Network.ARBITRUM: other}, OPERATOR_KEY
        )

        assert set(bindings) == {Network.OPTIMISM, Network.ARBITRUM}
        binding = bindings[Network.ARBITRUM]
        assert isinstance(binding, ChainBinding)
        assert isinstance(binding.client, EvmChainClient)
        assert binding.network == Network.ARBITRUM
        assert binding.chain_id == 421614
        assert binding.contract_address == other.contract_address
