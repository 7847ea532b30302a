"""HTTP client for the Gelato relay (sponsored calls and task status)."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import aiohttp

from ..config import RelayConfig
from ..errors import RelayError
from ..logging import LogContext, get_logger

logger = get_logger(__name__)


class RelayTaskState(Enum):
    """Task states reported by the relay."""

    CHECK_PENDING = "CheckPending"
    EXEC_PENDING = "ExecPending"
    WAITING_FOR_CONFIRMATION = "WaitingForConfirmation"
    EXEC_SUCCESS = "ExecSuccess"
    EXEC_REVERTED = "ExecReverted"
    CANCELLED = "Cancelled"
    BLACKLISTED = "Blacklisted"
    NOT_FOUND = "NotFound"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "RelayTaskState":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class RelayTaskStatus:
    """Status of one relay task."""

    task_id: str
    state: RelayTaskState
    transaction_hash: Optional[str] = None


class GelatoRelayClient:
    """Submits sponsored calls and queries task status."""

    def __init__(self, config: RelayConfig, session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        self.session = session
        self._owns_session = session is None

    async def _request(
        self, method: str, path: str, json_body: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        url = f"{self.config.base_url.rstrip('/')}{path}"
        try:
            if self.session is None:
                self.session = aiohttp.ClientSession()

            async with self.session.request(
                method,
                url,
                json=json_body,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
            ) as response:
                if response.status != 200:
                    body = await response.text()
                    raise RelayError(
                        f"Relay returned HTTP {response.status}: {body}",
                        endpoint=url,
                        status_code=response.status,
                        retryable=response.status >= 500,
                    )
                data = await response.json()
        except RelayError:
            raise
        except Exception as e:
            raise RelayError(f"Relay request to {url} failed: {e}", endpoint=url, cause=e)

        if not isinstance(data, dict):
            raise RelayError(f"Unexpected relay response: {data!r}", endpoint=url)
        return data

    async def sponsored_call(self, chain_id: int, target: str, data: str) -> str:
        """Submit ``data`` to ``target`` with gas paid by the sponsor key; return the task id."""
        response = await self._request(
            "POST",
            "/relays/v2/sponsored-call",
            {
                "chainId": str(chain_id),
                "target": target,
                "data": data,
                "sponsorApiKey": self.config.api_key,
            },
        )
        task_id = response.get("taskId")
        if not task_id:
            raise RelayError(f"Relay response has no taskId: {response!r}")

        logger.info(
            f"Relay accepted sponsored call on chain {chain_id}",
            context=LogContext(component="relay", task_id=task_id),
        )
        return task_id

    async def get_task_status(self, task_id: str) -> RelayTaskStatus:
        response = await self._request("GET", f"/tasks/status/{task_id}")
        task = response.get("task")
        if not isinstance(task, dict):
            raise RelayError(
                f"Relay status for {task_id} has no task: {response!r}", task_id=task_id
            )

        return RelayTaskStatus(
            task_id=task.get("taskId", task_id),
            state=RelayTaskState.parse(task.get("taskState")),
            transaction_hash=task.get("transactionHash"),
        )

    async def close(self) -> None:
        if self.session and self._owns_session:
            await self.session.close()
        self.session = None
