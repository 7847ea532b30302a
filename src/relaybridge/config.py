"""Configuration for the relay.

Settings are plain dataclasses. ``BridgeConfig.from_env`` builds them from
the process environment after loading an optional ``.env`` file.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

from .bridge.types import Network
from .errors import ConfigurationError

DEFAULT_CHAIN_IDS = {
    Network.ARBITRUM: 421614,  # Arbitrum Sepolia
    Network.OPTIMISM: 11155420,  # Optimism Sepolia
}


@dataclass
class NetworkConfig:
    """One supported network."""

    network: Network
    rpc_url: str
    contract_address: str
    chain_id: int
    mint_target: Optional[Network] = None
    request_timeout: float = 30.0
    mint_gas_limit: int = 500000
    max_log_range: int = 10000


@dataclass
class RelayConfig:
    """Relay / sponsorship service settings."""

    api_key: str = ""
    base_url: str = "https://api.gelato.digital"
    timeout: float = 30.0


@dataclass
class QueueConfig:
    """Mint job queue settings."""

    name: str = "mint-queue"
    attempts: int = 3
    backoff_delay: float = 5.0
    poll_interval: float = 1.0
    concurrency: int = 1
    lease_timeout: float = 300.0


@dataclass
class SchedulerConfig:
    """Intervals of the periodic loops, in seconds."""

    poll_interval: float = 15.0
    reconcile_interval: float = 10.0
    audit_interval: float = 300.0
    stale_after: float = 3600.0
    persist_cursors: bool = False


@dataclass
class ApiConfig:
    host: str = "0.0.0.0"
    port: int = 3000


@dataclass
class BridgeConfig:
    """Complete relay configuration."""

    networks: Dict[Network, NetworkConfig]
    private_key: str
    relay: RelayConfig = field(default_factory=RelayConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    database_path: str = "relaybridge.db"
    log_level: str = "info"
    log_format: str = "json"

    def __post_init__(self):
        self.private_key = normalize_private_key(self.private_key)

    def target_network(self, source: Network) -> Network:
        """The network a burn on ``source`` is minted on."""
        config = self.networks.get(source)
        if config is None:
            raise ConfigurationError(f"Network {source.value} is not configured")
        if config.mint_target is not None:
            return config.mint_target

        others = [network for network in self.networks if network != source]
        if len(others) != 1:
            raise ConfigurationError(
                f"Network {source.value} needs an explicit mint target",
                setting="mint_target",
            )
        return others[0]

    def validate(self) -> None:
        """Raise ConfigurationError describing the first problem found."""
        if len(self.networks) < 2:
            raise ConfigurationError("At least two networks must be configured")

        for network, config in self.networks.items():
            if not config.rpc_url:
                raise ConfigurationError(
                    f"Missing RPC URL for {network.value}",
                    setting=f"{network.name}_RPC",
                )
            if not config.contract_address:
                raise ConfigurationError(
                    f"Contract address is missing for {network.value}",
                    setting=f"{network.name}_CONTRACT",
                )
            if config.max_log_range < 1:
                raise ConfigurationError(
                    "MAX_LOG_RANGE must be at least 1", setting="MAX_LOG_RANGE"
                )
            target = self.target_network(network)
            if target == network or target not in self.networks:
                raise ConfigurationError(
                    f"Mint target {target.value} for {network.value} is not a "
                    "different configured network",
                    setting="mint_target",
                )

        if len(self.private_key) <= 2:
            raise ConfigurationError("PRIVATE_KEY is not set", setting="PRIVATE_KEY")

        if not self.relay.api_key:
            raise ConfigurationError("GELATO_API_KEY is not set", setting="GELATO_API_KEY")

        intervals = {
            "POLL_INTERVAL": self.scheduler.poll_interval,
            "RECONCILE_INTERVAL": self.scheduler.reconcile_interval,
            "AUDIT_INTERVAL": self.scheduler.audit_interval,
            "QUEUE_POLL_INTERVAL": self.queue.poll_interval,
            "JOB_LEASE_TIMEOUT": self.queue.lease_timeout,
        }
        for name, value in intervals.items():
            if value <= 0:
                raise ConfigurationError(f"{name} must be positive", setting=name)

        if self.queue.attempts < 1:
            raise ConfigurationError("JOB_ATTEMPTS must be at least 1", setting="JOB_ATTEMPTS")
        if self.queue.concurrency < 1:
            raise ConfigurationError(
                "WORKER_CONCURRENCY must be at least 1", setting="WORKER_CONCURRENCY"
            )

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        env_file: Optional[str] = None,
    ) -> "BridgeConfig":
        """Build configuration from environment variables."""
        if env is None:
            load_dotenv(env_file)
            env = os.environ

        networks: Dict[Network, NetworkConfig] = {}
        for network in Network:
            prefix = network.name
            rpc_url = env.get(f"{prefix}_RPC", "")
            contract = env.get(f"{prefix}_CONTRACT", "")
            if not rpc_url and not contract:
                continue
            target = env.get(f"{prefix}_MINT_TARGET")
            networks[network] = NetworkConfig(
                network=network,
                rpc_url=rpc_url,
                contract_address=contract,
                chain_id=_int(env, f"{prefix}_CHAIN_ID", DEFAULT_CHAIN_IDS[network]),
                mint_target=Network.parse(target) if target else None,
                request_timeout=_float(env, "RPC_TIMEOUT", 30.0),
                max_log_range=_int(env, "MAX_LOG_RANGE", 10000),
            )

        return cls(
            networks=networks,
            private_key=env.get("PRIVATE_KEY", ""),
            relay=RelayConfig(
                api_key=env.get("GELATO_API_KEY", ""),
                base_url=env.get("GELATO_API_URL", RelayConfig.base_url),
                timeout=_float(env, "RELAY_TIMEOUT", 30.0),
            ),
            queue=QueueConfig(
                name=env.get("MINT_QUEUE_NAME", QueueConfig.name),
                attempts=_int(env, "JOB_ATTEMPTS", 3),
                backoff_delay=_float(env, "JOB_BACKOFF_DELAY", 5.0),
                poll_interval=_float(env, "QUEUE_POLL_INTERVAL", 1.0),
                concurrency=_int(env, "WORKER_CONCURRENCY", 1),
                lease_timeout=_float(env, "JOB_LEASE_TIMEOUT", 300.0),
            ),
            scheduler=SchedulerConfig(
                poll_interval=_float(env, "POLL_INTERVAL", 15.0),
                reconcile_interval=_float(env, "RECONCILE_INTERVAL", 10.0),
                audit_interval=_float(env, "AUDIT_INTERVAL", 300.0),
                stale_after=_float(env, "STALE_AFTER", 3600.0),
                persist_cursors=_bool(env, "PERSIST_CURSORS", False),
            ),
            api=ApiConfig(
                host=env.get("API_HOST", ApiConfig.host),
                port=_int(env, "API_PORT", ApiConfig.port),
            ),
            database_path=env.get("DATABASE_PATH", "relaybridge.db"),
            log_level=env.get("LOG_LEVEL", "info"),
            log_format=env.get("LOG_FORMAT", "json"),
        )


def normalize_private_key(private_key: str) -> str:
    """Ensure the key carries a ``0x`` prefix."""
    key = (private_key or "").strip()
    if not key:
        return key
    return key if key.startswith("0x") else f"0x{key}"


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value in (None, ""):
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}", setting=name)


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    value = env.get(name)
    if value in (None, ""):
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}", setting=name)


def _bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value in (None, ""):
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")
