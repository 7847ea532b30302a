"""Service wiring: builds every component once and runs the periodic loops."""

import asyncio
from typing import Any, Dict, Optional

from .bridge.audit import StalenessAuditor
from .bridge.burn import BurnService
from .bridge.cursor import EventCursorTracker
from .bridge.poller import BurnEventPoller
from .bridge.reconciler import RelayTaskReconciler
from .bridge.scheduler import PeriodicScheduler
from .bridge.submitter import MintSubmitter
from .bridge.types import JobKind, Network
from .chains import build_bindings
from .config import BridgeConfig
from .errors import BackoffStrategy
from .logging import get_logger
from .queue import JobOptions, JobQueue, JobWorker
from .relay import GelatoRelayClient
from .storage import CursorStore, DatabaseConfig, SQLiteBackend, TransactionStore

logger = get_logger(__name__)


class RelayBridgeService:
    """The relay process: poller, worker, reconciler and audit over one database.

    Chain bindings and the relay client are built from ``config`` unless
    supplied, which is how tests substitute fakes.
    """

    def __init__(
        self,
        config: BridgeConfig,
        bindings: Optional[Dict[Network, Any]] = None,
        relay: Any = None,
        sleep=asyncio.sleep,
    ):
        self.config = config
        self.bindings = bindings if bindings is not None else build_bindings(
            config.networks, config.private_key
        )
        self.relay = relay if relay is not None else GelatoRelayClient(config.relay)

        self.backend = SQLiteBackend(DatabaseConfig(database_path=config.database_path))
        self.store = TransactionStore(self.backend)
        self.queue = JobQueue(self.backend, name=config.queue.name)
        self.job_options = JobOptions(
            attempts=config.queue.attempts,
            backoff=BackoffStrategy("exponential", base_delay=config.queue.backoff_delay),
        )

        cursor_store = CursorStore(self.backend) if config.scheduler.persist_cursors else None
        self.cursor = EventCursorTracker(cursor_store)
        self.poller = BurnEventPoller(
            self.bindings,
            {network: config.target_network(network) for network in self.bindings},
            self.cursor,
            self.store,
            self.queue,
            self.job_options,
        )
        self.submitter = MintSubmitter(self.bindings, self.relay, self.store)
        self.worker = JobWorker(
            self.queue,
            {JobKind.MINT: self.submitter.handle},
            concurrency=config.queue.concurrency,
            poll_interval=config.queue.poll_interval,
            lease_timeout=config.queue.lease_timeout,
            sleep=sleep,
        )
        self.reconciler = RelayTaskReconciler(self.relay, self.store)
        self.auditor = StalenessAuditor(self.store, stale_after=config.scheduler.stale_after)
        self.burns = BurnService(self.bindings, self.store)

        self.scheduler = PeriodicScheduler(sleep=sleep)
        self.scheduler.add_task("poller", config.scheduler.poll_interval, self.poller.poll_once)
        self.scheduler.add_task(
            "reconciler", config.scheduler.reconcile_interval, self.reconciler.reconcile_once
        )
        self.scheduler.add_task(
            "audit", config.scheduler.audit_interval, self.auditor.audit_once, run_immediately=False
        )
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            logger.warning("Relay service is already running")
            return

        self.backend.connect()
        self.queue.recover_stalled()
        await self.poller.initialize()
        await self.scheduler.start()
        await self.worker.start()
        self._running = True
        logger.info(
            f"Relay service started for {', '.join(n.value for n in self.bindings)}"
        )

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False

        await self.scheduler.stop()
        await self.worker.stop()
        await self.relay.close()
        self.backend.disconnect()
        logger.info("Relay service stopped")

    def status(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            "networks": [network.value for network in self.bindings],
            "cursors": {n.value: block for n, block in self.cursor.snapshot().items()},
            "queue": self.queue.counts(),
            "tasks": self.scheduler.task_names(),
        }
