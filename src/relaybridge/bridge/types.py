"""Domain types for the burn-to-mint relay."""

import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, localcontext
from enum import Enum
from typing import Any, Dict, Optional

from ..errors import JobError, ValidationError

TOKEN_DECIMALS = 18

# uint256 has 78 decimal digits
_DECIMAL_PRECISION = 100


class Network(Enum):
    """Supported networks."""

    ARBITRUM = "arbitrum"
    OPTIMISM = "optimism"

    @classmethod
    def parse(cls, value: Any) -> "Network":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                f"Unsupported network: {value}", field="network", value=value
            )


class OperationType(Enum):
    """Which leg of the bridge a record represents."""

    BURN = "burn"
    MINT = "mint"


class TransactionStatus(Enum):
    """Bridge transaction states."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TransactionStatus.COMPLETED, TransactionStatus.FAILED)

    def can_transition_to(self, target: "TransactionStatus") -> bool:
        if target == self:
            return True
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    TransactionStatus.PENDING: {
        TransactionStatus.PROCESSING,
        TransactionStatus.FAILED,
    },
    TransactionStatus.PROCESSING: {
        TransactionStatus.COMPLETED,
        TransactionStatus.FAILED,
    },
    TransactionStatus.COMPLETED: set(),
    TransactionStatus.FAILED: set(),
}


def to_base_units(amount: str, decimals: int = TOKEN_DECIMALS) -> int:
    """Convert a decimal string such as ``"10.5"`` into integer base units."""
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {amount!r}", field="amount", value=amount)

    if not value.is_finite() or value <= 0:
        raise ValidationError(
            f"Amount must be a positive number: {amount!r}", field="amount", value=amount
        )

    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PRECISION
        scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValidationError(
            f"Amount has more than {decimals} fractional digits: {amount!r}",
            field="amount",
            value=amount,
        )
    return int(scaled)


def from_base_units(value: int, decimals: int = TOKEN_DECIMALS) -> str:
    """Format integer base units the way ether amounts are displayed (``"10.0"``)."""
    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PRECISION
        text = format(Decimal(int(value)).scaleb(-decimals).normalize(), "f")
    if "." not in text:
        text = f"{text}.0"
    return text


@dataclass
class BridgeTransaction:
    """One leg of a cross-chain operation."""

    user: str
    network: Network
    operation_type: OperationType
    amount: str
    tx_hash: Optional[str] = None
    tx_hash_originator: Optional[str] = None
    relay_task_id: Optional[str] = None
    status: TransactionStatus = TransactionStatus.PENDING
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: float = field(default_factory=time.time)
    updated_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user": self.user,
            "network": self.network.value,
            "type": self.operation_type.value,
            "amount": self.amount,
            "txHash": self.tx_hash,
            "txHashOriginator": self.tx_hash_originator,
            "relayTaskId": self.relay_task_id,
            "status": self.status.value,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class BurnEvent:
    """A decoded ``TokensBurned`` log entry."""

    network: Network
    user: str
    amount: int
    tx_hash: str
    block_number: int
    log_index: int = 0

    @property
    def formatted_amount(self) -> str:
        return from_base_units(self.amount)


class JobKind(Enum):
    """Kinds of queued work."""

    MINT = "gelatoMintJob"


@dataclass
class MintJobPayload:
    """Everything the worker needs to submit one mint."""

    user: str
    amount: str
    target_network: Network
    tx_hash_originator: str

    kind = JobKind.MINT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user": self.user,
            "amount": self.amount,
            "targetNetwork": self.target_network.value,
            "txHashOriginator": self.tx_hash_originator,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MintJobPayload":
        try:
            return cls(
                user=data["user"],
                amount=str(data["amount"]),
                target_network=Network.parse(data["targetNetwork"]),
                tx_hash_originator=data["txHashOriginator"],
            )
        except KeyError as e:
            raise JobError(f"Mint job payload missing field {e}")


_PAYLOAD_TYPES = {
    JobKind.MINT: MintJobPayload,
}


def decode_job_payload(name: str, data: Dict[str, Any]) -> MintJobPayload:
    """Decode a queued job into its tagged payload type."""
    try:
        kind = JobKind(name)
    except ValueError:
        raise JobError(f"Unknown job kind: {name}")
    return _PAYLOAD_TYPES[kind].from_dict(data)
