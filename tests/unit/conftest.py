"""Shared fixtures: temporary SQLite database and in-memory chain / relay fakes."""

from typing import Dict, List, Optional

import pytest

from relaybridge.bridge.types import BurnEvent, Network
from relaybridge.chains.evm import ChainBinding
from relaybridge.config import BridgeConfig, NetworkConfig, RelayConfig
from relaybridge.errors import ChainRPCError, RelayError
from relaybridge.logging import LogConfig, LogLevel, MemoryHandler, setup_logging, shutdown_logging
from relaybridge.queue import JobQueue
from relaybridge.relay import RelayTaskState, RelayTaskStatus
from relaybridge.service import RelayBridgeService
from relaybridge.storage import DatabaseConfig, SQLiteBackend, TransactionStore

ARBITRUM_CONTRACT = "0x1111111111111111111111111111111111111111"
OPTIMISM_CONTRACT = "0x2222222222222222222222222222222222222222"


class FakeChainClient:
    """In-memory stand-in for :class:`EvmChainClient`."""

    def __init__(self, network: Network, head: int = 100):
        self.network = network
        self.head = head
        self.events: List[BurnEvent] = []
        self.error: Optional[Exception] = None
        self.log_queries: List[tuple] = []
        self.signed: List[tuple] = []
        self.burns: List[tuple] = []
        self.balances: Dict[str, int] = {}
        self.operator_address = "0x00000000000000000000000000000000000000FF"
        # largest block range get_burn_events accepts, like a provider getLogs cap
        self.max_range: Optional[int] = None

    async def get_block_number(self) -> int:
        if self.error:
            raise self.error
        return self.head

    async def get_burn_events(self, from_block: int, to_block: int) -> List[BurnEvent]:
        if self.error:
            raise self.error
        self.log_queries.append((from_block, to_block))
        if self.max_range is not None and to_block - from_block + 1 > self.max_range:
            raise ChainRPCError(
                f"block range {from_block}-{to_block} exceeds {self.max_range}",
                network=self.network.value,
            )
        return [e for e in self.events if from_block <= e.block_number <= to_block]

    def encode_mint(self, user: str, amount: int) -> str:
        return f"0xmint:{user.lower()}:{amount}"

    async def sign_call(self, to: str, data: str, gas_limit=None) -> str:
        self.signed.append((to, data, gas_limit))
        return "0xsigned"

    async def balance_of(self, address: str) -> int:
        if self.error:
            raise self.error
        return self.balances.get(address.lower(), 0)

    async def burn_from(self, user: str, amount: int) -> str:
        if self.error:
            raise self.error
        self.burns.append((user, amount))
        return f"0xburn{len(self.burns)}"

    def add_burn(self, user: str, amount: int, tx_hash: str, block_number: int, log_index: int = 0):
        event = BurnEvent(
            network=self.network,
            user=user,
            amount=amount,
            tx_hash=tx_hash,
            block_number=block_number,
            log_index=log_index,
        )
        self.events.append(event)
        return event


class FakeRelay:
    """Records sponsored calls and answers task status from a table."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.statuses: Dict[str, object] = {}
        self.submit_error: Optional[Exception] = None
        self.closed = False

    async def sponsored_call(self, chain_id: int, target: str, data: str) -> str:
        if self.submit_error:
            raise self.submit_error
        self.calls.append((chain_id, target, data))
        return f"task-{len(self.calls)}"

    async def get_task_status(self, task_id: str) -> RelayTaskStatus:
        status = self.statuses.get(task_id)
        if isinstance(status, Exception):
            raise status
        if status is None:
            raise RelayError(f"Unknown task {task_id}", task_id=task_id, status_code=404)
        return status

    def set_status(self, task_id: str, state: RelayTaskState, tx_hash: Optional[str] = None):
        self.statuses[task_id] = RelayTaskStatus(task_id, state, tx_hash)

    async def close(self) -> None:
        self.closed = True


def make_network_config(network: Network) -> NetworkConfig:
    contract = ARBITRUM_CONTRACT if network == Network.ARBITRUM else OPTIMISM_CONTRACT
    chain_id = 421614 if network == Network.ARBITRUM else 11155420
    return NetworkConfig(
        network=network,
        rpc_url=f"http://{network.value}.invalid",
        contract_address=contract,
        chain_id=chain_id,
    )


@pytest.fixture
def backend(tmp_path):
    """Connected SQLite backend in a temporary directory."""
    db = SQLiteBackend(DatabaseConfig(database_path=str(tmp_path / "relay.db")))
    db.connect()
    yield db
    db.disconnect()


@pytest.fixture
def store(backend):
    return TransactionStore(backend)


@pytest.fixture
def queue(backend):
    return JobQueue(backend, name="mint-queue")


@pytest.fixture
def chains():
    return {
        Network.ARBITRUM: FakeChainClient(Network.ARBITRUM, head=100),
        Network.OPTIMISM: FakeChainClient(Network.OPTIMISM, head=200),
    }


@pytest.fixture
def bindings(chains):
    return {
        network: ChainBinding(config=make_network_config(network), client=client)
        for network, client in chains.items()
    }


@pytest.fixture
def relay():
    return FakeRelay()


@pytest.fixture
def log_capture():
    """Route all relaybridge logging into a memory handler."""
    manager = setup_logging(LogConfig(level=LogLevel.DEBUG))
    manager.remove_handler("console")
    memory = MemoryHandler()
    manager.add_handler("memory", memory)
    yield memory
    shutdown_logging()


@pytest.fixture
def bridge_config(tmp_path):
    return BridgeConfig(
        networks={network: make_network_config(network) for network in Network},
        private_key="4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318",
        relay=RelayConfig(api_key="sponsor-key"),
        database_path=str(tmp_path / "service.db"),
    )


@pytest.fixture
def service(bridge_config, bindings, relay):
    """Fully wired service over the chain and relay fakes; not started."""
    return RelayBridgeService(bridge_config, bindings=bindings, relay=relay)
