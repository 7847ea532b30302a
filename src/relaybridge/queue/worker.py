"""Queue consumer that dispatches claimed jobs to typed handlers."""

import asyncio
import json
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from ..bridge.types import JobKind, decode_job_payload
from ..errors import JobError
from ..logging import LogContext, get_logger
from .jobs import Job, JobQueue, JobState

logger = get_logger(__name__)

JobHandler = Callable[[Any], Awaitable[Any]]


class JobWorker:
    """Consume jobs from a :class:`JobQueue` with bounded concurrency.

    A handler exception is handed to the queue, which applies the job's
    retry policy. On the last failed attempt the payload is logged verbatim
    so the operation can be triaged by hand.

    While running, the loop also requeues jobs left ``active`` longer than
    ``lease_timeout`` that it no longer holds, which happens when recording a
    job outcome failed.
    """

    def __init__(
        self,
        queue: JobQueue,
        handlers: Dict[JobKind, JobHandler],
        concurrency: int = 1,
        poll_interval: float = 1.0,
        lease_timeout: float = 300.0,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.queue = queue
        self.handlers = dict(handlers)
        self.concurrency = concurrency
        self.poll_interval = poll_interval
        self.lease_timeout = lease_timeout
        self._clock = clock
        self._sleep = sleep
        self._running = False
        self._loop_task: Optional[asyncio.Task] = None
        self._in_flight: Set[asyncio.Task] = set()
        self._held: Set[str] = set()
        self._next_reclaim = 0.0

    @property
    def is_running(self) -> bool:
        return self._running

    async def process(self, job: Job) -> JobState:
        """Run one claimed job to completion or failure."""
        context = LogContext(component="worker", job_id=job.id)
        logger.info(
            f"Processing {job.name} job {job.id}: {json.dumps(job.payload)}",
            context=context,
        )

        try:
            payload = decode_job_payload(job.name, job.payload)
            handler = self.handlers.get(payload.kind)
            if handler is None:
                raise JobError(
                    f"No handler registered for {payload.kind.value}", job_id=job.id
                )
            await handler(payload)
        except Exception as e:
            state = self.queue.fail(job, e, now=self._clock())
            logger.error(
                f"Job {job.id} failed on attempt {job.attempts_made}/{job.max_attempts}: {e}",
                context=context,
                exception=e,
            )
            if state == JobState.FAILED:
                logger.error(
                    f"Job {job.id} permanently failed after {job.attempts_made} attempts",
                    context=context,
                )
                logger.error(
                    f"Failed job payload: {json.dumps(job.payload)}",
                    context=context,
                    extra={"payload": job.payload, "last_error": job.last_error},
                )
            else:
                logger.info(
                    f"Retrying job {job.id} (attempt {job.attempts_made + 1}) "
                    f"in {job.run_at - self._clock():.1f}s",
                    context=context,
                )
            return state

        self.queue.complete(job, now=self._clock())
        logger.info(f"Job {job.id} completed", context=context)
        return JobState.COMPLETED

    async def run_once(self) -> Optional[Job]:
        """Claim and process a single due job, if any."""
        job = self.queue.claim_next(now=self._clock())
        if job is None:
            return None
        self._held.add(job.id)
        try:
            await self.process(job)
        finally:
            self._held.discard(job.id)
        return job

    async def run_pending(self) -> int:
        """Process due jobs until none is left; return how many ran."""
        processed = 0
        while await self.run_once() is not None:
            processed += 1
        return processed

    async def start(self) -> None:
        if self._running:
            logger.warning("Job worker is already running")
            return
        self._running = True
        self._next_reclaim = self._clock() + self.lease_timeout
        self._loop_task = asyncio.create_task(self._run_loop())
        logger.info(
            f"Job worker started on queue {self.queue.name} "
            f"(concurrency {self.concurrency})"
        )

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False

        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)
        logger.info("Job worker stopped")

    def reclaim_expired(self) -> int:
        """Requeue expired active jobs that this worker no longer holds."""
        now = self._clock()
        return self.queue.recover_stalled(
            now=now, claimed_before=now - self.lease_timeout, exclude=self._held
        )

    async def _run_loop(self) -> None:
        while self._running:
            try:
                if self._clock() >= self._next_reclaim:
                    self._next_reclaim = self._clock() + self.lease_timeout
                    self.reclaim_expired()
                claimed = self._fill_slots()
            except Exception as e:
                logger.error(f"Error claiming jobs: {e}", exception=e)
                claimed = 0

            if not claimed:
                await self._sleep(self.poll_interval)
            else:
                await asyncio.sleep(0)

    def _fill_slots(self) -> int:
        claimed = 0
        while len(self._in_flight) < self.concurrency:
            job = self.queue.claim_next(now=self._clock())
            if job is None:
                break
            self._held.add(job.id)
            task = asyncio.create_task(self._process_logged(job))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
            claimed += 1
        return claimed

    async def _process_logged(self, job: Job) -> None:
        try:
            await self.process(job)
        except Exception as e:
            # queue bookkeeping failed; the job stays active until its lease expires
            logger.error(
                f"Error recording outcome of job {job.id}: {e}",
                context=LogContext(component="worker", job_id=job.id),
                exception=e,
            )
        finally:
            self._held.discard(job.id)
