from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Invalid number for {name}: {value}")


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y"}


@dataclass(frozen=True)
class Settings:
    scratch_dir: str = field(
        default_factory=lambda: os.getenv(
            "CODE_RUNNER_SCRATCH_DIR",
            os.path.join(tempfile.gettempdir(), "code-runner"),
        )
    )
    backend: str = field(
        default_factory=lambda: os.getenv("CODE_RUNNER_BACKEND", "process").lower()
    )
    stdin_policy: str = field(
        default_factory=lambda: os.getenv("CODE_RUNNER_STDIN_POLICY", "heuristic").lower()
    )
    compile_timeout: float = field(
        default_factory=lambda: _env_float("CODE_RUNNER_COMPILE_TIMEOUT", 10.0)
    )
    run_timeout: float = field(
        default_factory=lambda: _env_float("CODE_RUNNER_RUN_TIMEOUT", 15.0)
    )
    container_timeout: float = field(
        default_factory=lambda: _env_float("CODE_RUNNER_CONTAINER_TIMEOUT", 10.0)
    )
    container_memory: str = field(
        default_factory=lambda: os.getenv("CODE_RUNNER_CONTAINER_MEMORY", "256m")
    )
    container_memory_swap: str = field(
        default_factory=lambda: os.getenv("CODE_RUNNER_CONTAINER_MEMORY_SWAP", "512m")
    )
    docker_context: str | None = field(
        default_factory=lambda: os.getenv("DOCKER_CONTEXT") or None
    )
    run_store: str = field(
        default_factory=lambda: os.getenv("CODE_RUNNER_RUN_STORE", "memory").lower()
    )
    redis_url: str = field(
        default_factory=lambda: os.getenv("REDIS_URL", "redis://localhost:6379/0")
    )
    use_fake_redis: bool = field(default_factory=lambda: _env_bool("FAKE_REDIS"))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    def __post_init__(self) -> None:
        if self.backend not in {"process", "container"}:
            raise ValueError(
                f"Invalid CODE_RUNNER_BACKEND: {self.backend}. Use 'process' or 'container'."
            )
        if self.run_store not in {"memory", "redis"}:
            raise ValueError(
                f"Invalid CODE_RUNNER_RUN_STORE: {self.run_store}. Use 'memory' or 'redis'."
            )


def get_settings() -> Settings:
    return Settings()
