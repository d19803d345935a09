from __future__ import annotations


class CodeRunnerError(Exception):
    """Base class for failures that abort an execution outright."""


class SpawnError(CodeRunnerError):
    """The compiler, program, or container could not be started at all."""

    def __init__(self, message: str, *, command: list[str] | None = None) -> None:
        super().__init__(message)
        self.command = command or []
