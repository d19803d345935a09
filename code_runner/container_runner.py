"""Run snippets inside throwaway docker containers.

Each execution starts a fresh container with networking disabled, a memory
ceiling and a larger swap ceiling, and ``--rm`` so docker removes it on
exit. The source travels base64-encoded inside the container command, so
nothing is written on the host. The docker CLI is driven as an asyncio
subprocess; stdin is handed over once and closed.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import shlex
import time
import uuid

from code_runner.errors import SpawnError
from code_runner.languages import LanguageSpec, resolve
from code_runner.models import ContainerOutcome, ExecutionResult

logger = logging.getLogger(__name__)

MANAGED_LABEL = "code_runner.managed=true"
DOCKER_FAILURE_EXIT = 125
TIMEOUT_EXIT = -1


def build_script(spec: LanguageSpec, source_code: str) -> str:
    """Shell pipeline that materializes the source and compiles/runs it."""
    encoded = base64.b64encode(source_code.encode("utf-8")).decode("ascii")
    return (
        f"printf '%s' '{encoded}' | base64 -d > {spec.source_filename}"
        f" && {spec.container_command}"
    )


class ContainerRunner:
    name = "container"

    def __init__(
        self,
        timeout: float = 10.0,
        memory: str = "256m",
        memory_swap: str = "512m",
        docker_context: str | None = None,
        docker_binary: str = "docker",
        stop_timeout: float = 5.0,
    ) -> None:
        self.timeout = timeout
        self.memory = memory
        self.memory_swap = memory_swap
        self.docker_context = docker_context
        self.docker_binary = docker_binary
        self.stop_timeout = stop_timeout

    async def run(self, language: str, source_code: str, stdin: str = "") -> ExecutionResult:
        spec = resolve(language)
        outcome = await self.run_raw(spec.name, source_code, stdin)
        if outcome.timed_out:
            return ExecutionResult.timed_out(
                outcome.stderr,
                stdout=outcome.stdout,
                exit_code=outcome.exit_code,
                duration_ms=outcome.duration_ms,
            )
        return ExecutionResult.from_exit_code(
            outcome.exit_code,
            outcome.stdout,
            outcome.stderr,
            duration_ms=outcome.duration_ms,
            fallback_message=f"{spec.name} execution failed with code {outcome.exit_code}",
        )

    async def run_raw(self, language: str, source_code: str, stdin: str = "") -> ContainerOutcome:
        """Execute in a container and report the container's own exit code."""
        spec = resolve(language)
        container_name = f"code-runner-{uuid.uuid4().hex[:12]}"
        command = self.build_command(spec, build_script(spec, source_code), container_name)
        started = time.perf_counter()
        context = {"container": container_name, "language": spec.name}
        logger.info(
            "container %s: %s on %s",
            container_name,
            spec.name,
            spec.container_image,
            extra=context,
        )

        process = await self._spawn(command)
        stdout_parts: list[bytes] = []
        stderr_parts: list[bytes] = []

        async def pump(stream: asyncio.StreamReader, sink: list[bytes]) -> None:
            while True:
                chunk = await stream.read(4096)
                if not chunk:
                    break
                sink.append(chunk)

        async def feed(stream: asyncio.StreamWriter) -> None:
            try:
                if stdin:
                    payload = stdin if stdin.endswith("\n") else stdin + "\n"
                    stream.write(payload.encode())
                    await stream.drain()
                stream.close()
            except (BrokenPipeError, ConnectionResetError):
                logger.debug("container %s closed stdin early", container_name, extra=context)

        async def complete() -> int:
            # output is drained while stdin is still being written
            await asyncio.gather(
                feed(process.stdin),
                pump(process.stdout, stdout_parts),
                pump(process.stderr, stderr_parts),
            )
            return await process.wait()

        completion = asyncio.create_task(complete())
        deadline = asyncio.create_task(asyncio.sleep(self.timeout))
        try:
            done, _ = await asyncio.wait(
                {completion, deadline}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            completion.cancel()
            await self._teardown(container_name, process)
            raise
        finally:
            deadline.cancel()

        stdout = _decode(stdout_parts)
        stderr = _decode(stderr_parts)
        duration_ms = int((time.perf_counter() - started) * 1000)

        if completion not in done:
            logger.warning(
                "container %s exceeded %ss", container_name, self.timeout, extra=context
            )
            completion.cancel()
            await self._teardown(container_name, process)
            message = f"Execution timeout ({self.timeout:g} seconds)"
            return ContainerOutcome(
                stdout=stdout,
                stderr=f"{stderr}\n{message}".strip(),
                exit_code=TIMEOUT_EXIT,
                timed_out=True,
                duration_ms=duration_ms,
            )

        exit_code = completion.result()
        if exit_code == DOCKER_FAILURE_EXIT and "docker:" in stderr:
            raise SpawnError(f"docker could not start the container: {stderr}", command=command)
        logger.info(
            "container %s exited with code %s", container_name, exit_code, extra=context
        )
        return ContainerOutcome(
            stdout=stdout, stderr=stderr, exit_code=exit_code, duration_ms=duration_ms
        )

    def build_command(self, spec: LanguageSpec, script: str, container_name: str) -> list[str]:
        return self._docker_cmd(
            [
                "run",
                "-i",
                "--rm",
                "--name",
                container_name,
                "--network",
                "none",
                "--memory",
                self.memory,
                "--memory-swap",
                self.memory_swap,
                "--label",
                MANAGED_LABEL,
                spec.container_image,
                "sh",
                "-c",
                script,
            ]
        )

    async def available(self) -> bool:
        """Probe the docker daemon with ``docker info``."""
        try:
            process = await asyncio.create_subprocess_exec(
                *self._docker_cmd(["info"]),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except (FileNotFoundError, PermissionError):
            return False
        return await process.wait() == 0

    async def _spawn(self, command: list[str]) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as exc:
            raise SpawnError(
                "Docker CLI was not found. Install Docker and ensure it is on PATH.",
                command=command,
            ) from exc

    async def _teardown(self, container_name: str, process: asyncio.subprocess.Process) -> None:
        stopped = await self._docker(["stop", "-t", "1", container_name])
        if not stopped:
            logger.warning("docker stop failed for %s", container_name)
        await self._docker(["rm", "-f", container_name])
        if process.returncode is None:
            process.kill()
            await process.wait()

    async def _docker(self, args: list[str]) -> bool:
        command = self._docker_cmd(args)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as exc:
            logger.warning("%s failed: %s", shlex.join(command), exc)
            return False
        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.stop_timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.warning("%s did not finish in %ss", shlex.join(command), self.stop_timeout)
            return False
        if process.returncode != 0:
            logger.debug("%s: %s", shlex.join(command), stderr.decode(errors="replace").strip())
            return False
        return True

    def _docker_cmd(self, args: list[str]) -> list[str]:
        cmd = [self.docker_binary]
        if self.docker_context:
            cmd.extend(["--context", self.docker_context])
        cmd.extend(args)
        return cmd


def _decode(parts: list[bytes]) -> str:
    return b"".join(parts).decode(errors="replace").strip()
