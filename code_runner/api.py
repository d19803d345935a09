from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from code_runner.container_runner import ContainerRunner
from code_runner.engine import Runner, build_runner, build_store
from code_runner.errors import SpawnError
from code_runner.job_queue import JobQueue
from code_runner.models import ExecutionResult, Language, RunRecord, RunStatus
from code_runner.storage import RunStore

logger = logging.getLogger(__name__)

API_DESCRIPTION = """
Code Runner - compile and run python, java, c, cpp and javascript snippets.

`POST /run` executes and waits for the result; the run is recorded and
its id returned alongside the output. `POST /runs` queues the execution
and returns a run id; poll `GET /runs/{run_id}` until its status
is `done` or `error`. Queued runs execute one at a time.

Standard input is supplied once, up front, in the `stdin` field. It is
handed to the program when it prints something that looks like a prompt,
or after a short delay if it never does.
"""


class RunRequest(BaseModel):
    language: Language
    code: str = Field(min_length=1)
    stdin: str = ""
    owner_id: str | None = None


class RunResponse(ExecutionResult):
    run_id: str


class SubmitResponse(BaseModel):
    run_id: str
    status: RunStatus = RunStatus.queued


def create_app(runner: Runner | None = None, store: RunStore | None = None) -> FastAPI:
    runner = runner or build_runner()
    queue = JobQueue(runner, store or build_store())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        queue.start()
        logger.info("%s backend ready", runner.name)
        try:
            yield
        finally:
            await queue.stop()

    app = FastAPI(
        title="Code Runner",
        version="0.1.0",
        description=API_DESCRIPTION,
        lifespan=lifespan,
    )
    app.state.runner = runner
    app.state.queue = queue

    @app.get("/health")
    async def health():
        body = {"status": "ok", "backend": runner.name, "pending": queue.pending}
        if isinstance(runner, ContainerRunner):
            body["docker"] = await runner.available()
        return body

    @app.post("/run", response_model=RunResponse)
    async def run(req: RunRequest) -> RunResponse:
        try:
            run_id, result = await queue.run_now(
                req.owner_id, req.language, req.code, req.stdin
            )
        except SpawnError as exc:
            logger.error("spawn failed for %s: %s", req.language, exc)
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return RunResponse(run_id=run_id, **result.model_dump())

    @app.post("/runs", response_model=SubmitResponse, status_code=202)
    async def submit(req: RunRequest) -> SubmitResponse:
        run_id = await queue.submit(req.owner_id, req.language, req.code, req.stdin)
        return SubmitResponse(run_id=run_id)

    @app.get("/runs", response_model=list[RunRecord])
    async def history(
        owner_id: str, limit: int = Query(default=20, gt=0, le=100)
    ) -> list[RunRecord]:
        return await queue.store.list_for_owner(owner_id, limit=limit)

    @app.get("/runs/{run_id}", response_model=RunRecord)
    async def status(run_id: str) -> RunRecord:
        try:
            return await queue.get_status(run_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="run not found") from exc

    return app


app = create_app()
