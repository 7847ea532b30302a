"""Durable job queue backed by the relay's SQLite database.

Delivery is at-least-once: a job is claimed (``waiting`` -> ``active``)
inside an immediate transaction, so exactly one consumer holds it at a time.
A failed attempt puts the job back to ``waiting`` with an exponential delay
until its attempt budget is spent, after which it is ``failed``.
"""

import json
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from ..errors import BackoffStrategy, JobError, RetryPolicy
from ..logging import LogContext, get_logger
from ..storage.database import SQLiteBackend

logger = get_logger(__name__)


class JobState(Enum):
    """Job lifecycle states."""

    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class JobOptions:
    """Per-job retry settings."""

    attempts: int = 3
    backoff: BackoffStrategy = field(default_factory=BackoffStrategy)


@dataclass
class Job:
    """A queued unit of work."""

    id: str
    queue: str
    name: str
    payload: Dict[str, Any]
    state: JobState
    attempts_made: int
    max_attempts: int
    backoff: BackoffStrategy
    run_at: float
    created_at: float
    updated_at: float
    last_error: Optional[str] = None

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=self.max_attempts, backoff=self.backoff)

    @property
    def is_final_attempt(self) -> bool:
        """True while processing the attempt after which no retry remains."""
        return self.attempts_made + 1 >= self.max_attempts

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Job":
        return cls(
            id=row["id"],
            queue=row["queue"],
            name=row["name"],
            payload=json.loads(row["payload"]),
            state=JobState(row["state"]),
            attempts_made=int(row["attempts_made"]),
            max_attempts=int(row["max_attempts"]),
            backoff=BackoffStrategy.from_dict(json.loads(row["backoff"])),
            run_at=float(row["run_at"]),
            created_at=float(row["created_at"]),
            updated_at=float(row["updated_at"]),
            last_error=row["last_error"],
        )


_JOB_COLUMNS = (
    "id, queue, name, payload, state, attempts_made, max_attempts, backoff, "
    "run_at, last_error, created_at, updated_at"
)


class JobQueue:
    """Named durable queue."""

    def __init__(self, backend: SQLiteBackend, name: str = "mint-queue"):
        self.backend = backend
        self.name = name

    def enqueue(
        self,
        name: str,
        payload: Dict[str, Any],
        options: Optional[JobOptions] = None,
        job_id: Optional[str] = None,
        now: Optional[float] = None,
    ) -> Job:
        """Add a job. A job id that already exists is not enqueued twice."""
        options = options or JobOptions()
        if options.attempts < 1:
            raise JobError("Job must allow at least one attempt")

        now = time.time() if now is None else now
        job_id = job_id or str(uuid.uuid4())

        with self.backend.transaction() as connection:
            existing = connection.execute(
                f"SELECT {_JOB_COLUMNS} FROM jobs WHERE id = ?", (job_id,)
            ).fetchone()
            if existing is not None:
                logger.debug(
                    f"Job {job_id} already queued, not adding it again",
                    context=LogContext(component="queue", job_id=job_id),
                )
                return Job.from_row(dict(existing))

            connection.execute(
                f"INSERT INTO jobs ({_JOB_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, 0, ?, ?, ?, NULL, ?, ?)",
                (
                    job_id,
                    self.name,
                    name,
                    json.dumps(payload),
                    JobState.WAITING.value,
                    options.attempts,
                    json.dumps(options.backoff.to_dict()),
                    now,
                    now,
                    now,
                ),
            )

        return Job(
            id=job_id,
            queue=self.name,
            name=name,
            payload=payload,
            state=JobState.WAITING,
            attempts_made=0,
            max_attempts=options.attempts,
            backoff=options.backoff,
            run_at=now,
            created_at=now,
            updated_at=now,
        )

    def claim_next(self, now: Optional[float] = None) -> Optional[Job]:
        """Move the oldest due waiting job to ``active`` and return it."""
        now = time.time() if now is None else now
        with self.backend.transaction() as connection:
            row = connection.execute(
                f"SELECT {_JOB_COLUMNS} FROM jobs "
                "WHERE queue = ? AND state = ? AND run_at <= ? "
                "ORDER BY run_at, created_at, rowid LIMIT 1",
                (self.name, JobState.WAITING.value, now),
            ).fetchone()
            if row is None:
                return None

            connection.execute(
                "UPDATE jobs SET state = ?, updated_at = ? WHERE id = ?",
                (JobState.ACTIVE.value, now, row["id"]),
            )

        job = Job.from_row(dict(row))
        job.state = JobState.ACTIVE
        job.updated_at = now
        return job

    def complete(self, job: Job, now: Optional[float] = None) -> None:
        now = time.time() if now is None else now
        self.backend.execute(
            "UPDATE jobs SET state = ?, attempts_made = attempts_made + 1, "
            "updated_at = ? WHERE id = ?",
            (JobState.COMPLETED.value, now, job.id),
        )
        job.state = JobState.COMPLETED
        job.attempts_made += 1

    def fail(self, job: Job, error: BaseException, now: Optional[float] = None) -> JobState:
        """Record a failed attempt; schedule a retry or mark permanently failed."""
        now = time.time() if now is None else now
        attempts_made = job.attempts_made + 1
        policy = job.retry_policy

        if policy.should_retry(attempts_made):
            state = JobState.WAITING
            run_at = now + policy.get_delay(attempts_made)
        else:
            state = JobState.FAILED
            run_at = job.run_at

        self.backend.execute(
            "UPDATE jobs SET state = ?, attempts_made = ?, run_at = ?, "
            "last_error = ?, updated_at = ? WHERE id = ?",
            (state.value, attempts_made, run_at, repr(error), now, job.id),
        )

        job.state = state
        job.attempts_made = attempts_made
        job.run_at = run_at
        job.last_error = repr(error)
        return state

    def recover_stalled(
        self,
        now: Optional[float] = None,
        claimed_before: Optional[float] = None,
        exclude: Iterable[str] = (),
    ) -> int:
        """Return ``active`` jobs to ``waiting``.

        Without ``claimed_before`` every active job is recovered, which is
        what a starting process wants. A running worker passes the lease
        cutoff and the ids it still holds, so only jobs whose outcome was
        never recorded come back.
        """
        now = time.time() if now is None else now
        query = (
            "UPDATE jobs SET state = ?, run_at = ?, updated_at = ? "
            "WHERE queue = ? AND state = ?"
        )
        params: List[Any] = [
            JobState.WAITING.value, now, now, self.name, JobState.ACTIVE.value
        ]
        if claimed_before is not None:
            query += " AND updated_at < ?"
            params.append(claimed_before)
        held = list(exclude)
        if held:
            query += f" AND id NOT IN ({', '.join('?' for _ in held)})"
            params.extend(held)

        count = self.backend.execute(query, params)
        if count:
            logger.warning(
                f"Recovered {count} stalled job(s) on queue {self.name}",
                context=LogContext(component="queue"),
            )
        return count

    def get(self, job_id: str) -> Optional[Job]:
        row = self.backend.fetch_one(
            f"SELECT {_JOB_COLUMNS} FROM jobs WHERE id = ?", (job_id,)
        )
        return Job.from_row(row) if row else None

    def counts(self) -> Dict[str, int]:
        rows = self.backend.fetch_all(
            "SELECT state, COUNT(*) AS total FROM jobs WHERE queue = ? GROUP BY state",
            (self.name,),
        )
        counts = {state.value: 0 for state in JobState}
        for row in rows:
            counts[row["state"]] = int(row["total"])
        return counts

    def next_run_at(self) -> Optional[float]:
        row = self.backend.fetch_one(
            "SELECT MIN(run_at) AS run_at FROM jobs WHERE queue = ? AND state = ?",
            (self.name, JobState.WAITING.value),
        )
        if row is None or row["run_at"] is None:
            return None
        return float(row["run_at"])
