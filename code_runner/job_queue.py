"""Single-worker job queue in front of a runner.

Submissions return a run id immediately; one worker task drains the queue
in FIFO order and writes every status transition (queued, running,
done/error) through the run store. Only one job executes at a time, and a
job that blows up is recorded as an error without stopping the worker.
Direct runs (``run_now``) skip the queue but leave the same record trail.
"""

from __future__ import annotations

import asyncio
import logging

from code_runner.engine import Runner
from code_runner.models import ExecutionRequest, ExecutionResult, Job, RunRecord, RunStatus
from code_runner.storage import RunStore

logger = logging.getLogger(__name__)


class JobQueue:
    def __init__(self, runner: Runner, store: RunStore) -> None:
        self.runner = runner
        self.store = store
        self._queue: asyncio.Queue[Job] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def submit(
        self,
        owner_id: str | None,
        language: str,
        source_code: str,
        stdin: str = "",
    ) -> str:
        run_id = await self.store.create(owner_id, language, stdin, source_code)
        job = Job(
            run_id=run_id,
            request=ExecutionRequest(language=language, source_code=source_code, stdin=stdin),
        )
        self._queue.put_nowait(job)
        logger.info(
            "run %s queued (%s, %d pending)",
            run_id,
            language,
            self.pending,
            extra={"run_id": run_id, "language": language},
        )
        return run_id

    async def run_now(
        self,
        owner_id: str | None,
        language: str,
        source_code: str,
        stdin: str = "",
    ) -> tuple[str, ExecutionResult]:
        """Execute right away, outside the queue, recording the run like a queued one.

        Runner exceptions are recorded as an error and then re-raised.
        """
        run_id = await self.store.create(owner_id, language, stdin, source_code)
        request = ExecutionRequest(language=language, source_code=source_code, stdin=stdin)
        result = await self._execute(run_id, request, propagate=True)
        assert result is not None
        return run_id, result

    async def get_status(self, run_id: str) -> RunRecord:
        return await self.store.get(run_id)

    def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self.run_forever(), name="code-runner-worker")

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

    async def join(self) -> None:
        """Wait until every submitted job has been processed."""
        await self._queue.join()

    async def run_forever(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self.process(job)
            except Exception:
                logger.exception(
                    "run %s could not be recorded", job.run_id, extra={"run_id": job.run_id}
                )
            finally:
                self._queue.task_done()

    async def process(self, job: Job) -> None:
        await self._execute(job.run_id, job.request, propagate=False)

    async def _execute(
        self, run_id: str, request: ExecutionRequest, *, propagate: bool
    ) -> ExecutionResult | None:
        context = {"run_id": run_id, "language": request.language}
        await self.store.update(run_id, RunStatus.running)
        logger.info("run %s started", run_id, extra=context)
        try:
            result = await self.runner.run(
                request.language, request.source_code, request.stdin
            )
        except Exception as exc:
            logger.exception("run %s failed before producing a result", run_id, extra=context)
            await self.store.update(run_id, RunStatus.error, stdout="", stderr=str(exc))
            if propagate:
                raise
            return None

        status = RunStatus.done if result.ok else RunStatus.error
        await self.store.update(
            run_id,
            status,
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.exit_code,
        )
        logger.info("run %s finished: %s", run_id, status.value, extra=context)
        return result
