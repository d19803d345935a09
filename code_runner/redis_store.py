from __future__ import annotations

import redis.asyncio as redis

from code_runner.models import RunRecord, RunStatus
from code_runner.redis_client import get_redis
from code_runner.storage import new_record, transition


class RedisRunStore:
    """Redis-backed run record store.

    Records are JSON blobs under ``run:<id>``; each owner has a sorted set
    of run ids scored by creation time for history listing.
    """

    def __init__(self, client: redis.Redis | None = None) -> None:
        self.redis = client or get_redis()
        self.key_prefix = "run:"
        self.owner_prefix = "runs:owner:"

    def _key(self, run_id: str) -> str:
        return f"{self.key_prefix}{run_id}"

    def _owner_key(self, owner_id: str) -> str:
        return f"{self.owner_prefix}{owner_id}"

    async def create(
        self, owner_id: str | None, language: str, stdin: str = "", code: str = ""
    ) -> str:
        record = new_record(owner_id, language, stdin, code)
        await self.redis.set(self._key(record.id), record.model_dump_json())
        if owner_id is not None:
            await self.redis.zadd(
                self._owner_key(owner_id), {record.id: record.created_at.timestamp()}
            )
        return record.id

    async def get(self, run_id: str) -> RunRecord:
        raw = await self.redis.get(self._key(run_id))
        if raw is None:
            raise KeyError(run_id)
        return RunRecord.model_validate_json(raw)

    async def update(
        self,
        run_id: str,
        status: RunStatus,
        *,
        stdout: str | None = None,
        stderr: str | None = None,
        exit_code: int | None = None,
    ) -> RunRecord:
        record = await self.get(run_id)
        record = transition(record, status, stdout=stdout, stderr=stderr, exit_code=exit_code)
        await self.redis.set(self._key(run_id), record.model_dump_json())
        return record

    async def list_for_owner(self, owner_id: str, limit: int = 20) -> list[RunRecord]:
        run_ids = await self.redis.zrevrange(self._owner_key(owner_id), 0, limit - 1)
        records: list[RunRecord] = []
        for run_id in run_ids:
            try:
                records.append(await self.get(run_id))
            except KeyError:
                continue
        return records
