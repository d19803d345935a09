from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Language = Literal["python", "java", "c", "cpp", "javascript"]


class FailureKind(str, Enum):
    compile = "compile"
    runtime = "runtime"
    timeout = "timeout"


class RunStatus(str, Enum):
    queued = "queued"
    running = "running"
    done = "done"
    error = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.done, RunStatus.error)


class ExecutionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    language: str
    source_code: str
    stdin: str = ""


class ExecutionResult(BaseModel):
    """Terminal outcome of one execution, identical for every backend."""

    stdout: str = ""
    stderr: str = ""
    status: Literal["done", "error"]
    exit_code: int | None = None
    failure: FailureKind | None = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.status == "done"

    @classmethod
    def from_exit_code(
        cls,
        exit_code: int,
        stdout: str,
        stderr: str,
        duration_ms: int = 0,
        fallback_message: str | None = None,
    ) -> ExecutionResult:
        if exit_code == 0:
            return cls(
                stdout=stdout,
                stderr=stderr,
                status="done",
                exit_code=0,
                duration_ms=duration_ms,
            )
        return cls(
            stdout=stdout,
            stderr=stderr or fallback_message or f"exited with code {exit_code}",
            status="error",
            exit_code=exit_code,
            failure=FailureKind.runtime,
            duration_ms=duration_ms,
        )

    @classmethod
    def timed_out(
        cls,
        message: str,
        stdout: str = "",
        exit_code: int | None = None,
        duration_ms: int = 0,
    ) -> ExecutionResult:
        return cls(
            stdout=stdout,
            stderr=message,
            status="error",
            exit_code=exit_code,
            failure=FailureKind.timeout,
            duration_ms=duration_ms,
        )

    @classmethod
    def compile_failed(cls, message: str, duration_ms: int = 0) -> ExecutionResult:
        return cls(
            stderr=message,
            status="error",
            failure=FailureKind.compile,
            duration_ms=duration_ms,
        )


class ContainerOutcome(BaseModel):
    """Raw container result: the exit code as reported by the engine."""

    stdout: str = ""
    stderr: str = ""
    exit_code: int
    timed_out: bool = False
    duration_ms: int = 0


class RunRecord(BaseModel):
    id: str
    owner_id: str | None = None
    language: str
    code: str = ""
    stdin: str = ""
    status: RunStatus = RunStatus.queued
    stdout: str | None = None
    stderr: str | None = None
    exit_code: int | None = None
    created_at: datetime
    started_at: datetime | None = None
    finished_at: datetime | None = None


class Job(BaseModel):
    model_config = ConfigDict(frozen=True)

    run_id: str
    request: ExecutionRequest
    enqueued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
