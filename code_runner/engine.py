from __future__ import annotations

from typing import Protocol

from code_runner.container_runner import ContainerRunner
from code_runner.input_policy import policy_from_name
from code_runner.models import ExecutionResult
from code_runner.process_runner import ProcessRunner
from code_runner.redis_store import RedisRunStore
from code_runner.settings import Settings, get_settings
from code_runner.storage import MemoryRunStore, RunStore


class Runner(Protocol):
    name: str

    async def run(self, language: str, source_code: str, stdin: str = "") -> ExecutionResult:
        """Compile if needed, run, and return the terminal result."""
        ...


def build_runner(settings: Settings | None = None) -> Runner:
    settings = settings or get_settings()
    if settings.backend == "container":
        return ContainerRunner(
            timeout=settings.container_timeout,
            memory=settings.container_memory,
            memory_swap=settings.container_memory_swap,
            docker_context=settings.docker_context,
        )
    return ProcessRunner(
        scratch_dir=settings.scratch_dir,
        compile_timeout=settings.compile_timeout,
        run_timeout=settings.run_timeout,
        input_policy=policy_from_name(settings.stdin_policy),
    )


def build_store(settings: Settings | None = None) -> RunStore:
    settings = settings or get_settings()
    if settings.run_store == "redis":
        return RedisRunStore()
    return MemoryRunStore()
