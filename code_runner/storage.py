from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Protocol
from uuid import uuid4

from code_runner.models import RunRecord, RunStatus

# records keep a prefix of the submitted source, not the whole thing
STORED_CODE_LIMIT = 10_000


class RunStore(Protocol):
    """Where run records live. The engine only creates and updates them."""

    async def create(
        self, owner_id: str | None, language: str, stdin: str = "", code: str = ""
    ) -> str: ...

    async def update(
        self,
        run_id: str,
        status: RunStatus,
        *,
        stdout: str | None = None,
        stderr: str | None = None,
        exit_code: int | None = None,
    ) -> RunRecord: ...

    async def get(self, run_id: str) -> RunRecord: ...

    async def list_for_owner(self, owner_id: str, limit: int = 20) -> list[RunRecord]: ...


def transition(
    record: RunRecord,
    status: RunStatus,
    *,
    stdout: str | None = None,
    stderr: str | None = None,
    exit_code: int | None = None,
) -> RunRecord:
    updates: dict[str, object] = {"status": status}
    if status == RunStatus.running:
        updates["started_at"] = now()
    if status.is_terminal:
        updates["finished_at"] = now()
    if stdout is not None:
        updates["stdout"] = stdout
    if stderr is not None:
        updates["stderr"] = stderr
    if exit_code is not None:
        updates["exit_code"] = exit_code
    return record.model_copy(update=updates)


def new_record(owner_id: str | None, language: str, stdin: str, code: str = "") -> RunRecord:
    return RunRecord(
        id=uuid4().hex,
        owner_id=owner_id,
        language=language,
        code=code[:STORED_CODE_LIMIT],
        stdin=stdin,
        status=RunStatus.queued,
        created_at=now(),
    )


def now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryRunStore:
    """In-memory run record store."""

    def __init__(self) -> None:
        self._runs: dict[str, RunRecord] = {}
        self._lock = asyncio.Lock()

    async def create(
        self, owner_id: str | None, language: str, stdin: str = "", code: str = ""
    ) -> str:
        record = new_record(owner_id, language, stdin, code)
        async with self._lock:
            self._runs[record.id] = record
        return record.id

    async def get(self, run_id: str) -> RunRecord:
        async with self._lock:
            record = self._runs.get(run_id)
        if record is None:
            raise KeyError(run_id)
        return record

    async def update(
        self,
        run_id: str,
        status: RunStatus,
        *,
        stdout: str | None = None,
        stderr: str | None = None,
        exit_code: int | None = None,
    ) -> RunRecord:
        async with self._lock:
            record = self._runs.get(run_id)
            if record is None:
                raise KeyError(run_id)
            record = transition(
                record, status, stdout=stdout, stderr=stderr, exit_code=exit_code
            )
            self._runs[run_id] = record
            return record

    async def list_for_owner(self, owner_id: str, limit: int = 20) -> list[RunRecord]:
        async with self._lock:
            owned = [r for r in self._runs.values() if r.owner_id == owner_id]
        owned.sort(key=lambda r: r.created_at, reverse=True)
        return owned[:limit]
