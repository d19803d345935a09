import json
import logging

import pytest

from code_runner.container_runner import ContainerRunner
from code_runner.engine import build_runner, build_store
from code_runner.input_policy import STRICT
from code_runner.log_config import JsonFormatter
from code_runner.process_runner import ProcessRunner
from code_runner.settings import Settings
from code_runner.storage import MemoryRunStore


def test_defaults(monkeypatch):
    for name in ("CODE_RUNNER_BACKEND", "CODE_RUNNER_RUN_TIMEOUT", "CODE_RUNNER_RUN_STORE"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings()
    assert settings.backend == "process"
    assert settings.run_timeout == 15.0
    assert settings.compile_timeout == 10.0
    assert settings.container_memory == "256m"
    assert settings.container_memory_swap == "512m"
    assert isinstance(build_store(settings), MemoryRunStore)


def test_process_backend_from_env(monkeypatch, scratch_dir):
    monkeypatch.setenv("CODE_RUNNER_RUN_TIMEOUT", "2.5")
    monkeypatch.setenv("CODE_RUNNER_STDIN_POLICY", "STRICT")

    runner = build_runner(Settings())

    assert isinstance(runner, ProcessRunner)
    assert runner.run_timeout == 2.5
    assert runner.input_policy is STRICT
    assert runner.scratch_dir == str(scratch_dir)


def test_container_backend_from_env(monkeypatch):
    monkeypatch.setenv("CODE_RUNNER_BACKEND", "container")
    monkeypatch.setenv("CODE_RUNNER_CONTAINER_MEMORY", "128m")
    monkeypatch.setenv("DOCKER_CONTEXT", "remote")

    runner = build_runner(Settings())

    assert isinstance(runner, ContainerRunner)
    assert runner.memory == "128m"
    assert runner.docker_context == "remote"


@pytest.mark.parametrize(
    "name,value",
    [
        ("CODE_RUNNER_BACKEND", "vm"),
        ("CODE_RUNNER_RUN_STORE", "sqlite"),
        ("CODE_RUNNER_RUN_TIMEOUT", "soon"),
    ],
)
def test_invalid_values_rejected(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        Settings()


def test_json_log_lines():
    record = logging.LogRecord(
        "code_runner.process_runner", logging.INFO, __file__, 1, "run %s done", ("abc",), None
    )
    payload = json.loads(JsonFormatter().format(record))
    assert payload["level"] == "INFO"
    assert payload["message"] == "run abc done"
    assert payload["logger"] == "code_runner.process_runner"
    assert "run_id" not in payload


def test_json_log_lines_carry_run_context(caplog):
    logger = logging.getLogger("code_runner.job_queue")
    with caplog.at_level(logging.INFO, logger="code_runner.job_queue"):
        logger.info("run %s started", "abc", extra={"run_id": "abc", "language": "c"})

    payload = json.loads(JsonFormatter().format(caplog.records[-1]))
    assert payload["run_id"] == "abc"
    assert payload["language"] == "c"
    assert "execution_id" not in payload
    assert payload["ts"].endswith("+00:00")
