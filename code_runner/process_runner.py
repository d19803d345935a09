from __future__ import annotations

import asyncio
import codecs
import logging
import os
import shutil
import signal
import tempfile
import time
import uuid
from pathlib import Path

from code_runner import config
from code_runner.errors import SpawnError
from code_runner.input_policy import HEURISTIC, InputPolicy, StdinInjector
from code_runner.languages import LanguageSpec, resolve
from code_runner.models import ExecutionResult

logger = logging.getLogger(__name__)

READ_CHUNK = 4096


class ProcessRunner:
    """Compile and run snippets as local child processes.

    Every execution gets its own scratch directory under the scratch root,
    so concurrent runs of the same language never share files. The
    directory is removed before ``run`` returns, whatever the outcome.
    """

    name = "process"

    def __init__(
        self,
        scratch_dir: str | Path | None = None,
        compile_timeout: float = 10.0,
        run_timeout: float = 15.0,
        input_policy: InputPolicy = HEURISTIC,
        kill_grace: float = 1.0,
    ) -> None:
        self.scratch_dir = scratch_dir
        self.compile_timeout = compile_timeout
        self.run_timeout = run_timeout
        self.input_policy = input_policy
        self.kill_grace = kill_grace

    async def run(self, language: str, source_code: str, stdin: str = "") -> ExecutionResult:
        spec = resolve(language)
        execution_id = uuid.uuid4().hex
        started = time.perf_counter()
        workdir = self._prepare_workdir(execution_id)
        logger.info(
            "execution %s: %s, %d chars of source",
            execution_id,
            spec.name,
            len(source_code),
            extra={"execution_id": execution_id, "language": spec.name},
        )
        try:
            (workdir / spec.source_filename).write_text(source_code, encoding="utf-8")
            if spec.compiled:
                failure = await self._compile(spec, workdir)
                if failure is not None:
                    return failure.model_copy(update={"duration_ms": _elapsed_ms(started)})
            result = await self._execute(spec, workdir, stdin)
            return result.model_copy(update={"duration_ms": _elapsed_ms(started)})
        finally:
            self._cleanup(workdir)

    def _prepare_workdir(self, execution_id: str) -> Path:
        root = config.scratch_root(self.scratch_dir)
        return Path(tempfile.mkdtemp(prefix=f"run-{execution_id[:12]}-", dir=root))

    async def _compile(self, spec: LanguageSpec, workdir: Path) -> ExecutionResult | None:
        argv = spec.compile_argv(workdir)
        logger.debug("compiling %s: %s", spec.name, argv)
        process = await self._spawn(argv, workdir, stdin=asyncio.subprocess.DEVNULL)
        try:
            _, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.compile_timeout
            )
        except asyncio.TimeoutError:
            _kill(process)
            await process.wait()
            logger.warning("%s compilation exceeded %ss", spec.name, self.compile_timeout)
            return ExecutionResult.compile_failed(f"{spec.name} compilation timeout")
        except asyncio.CancelledError:
            _kill(process)
            raise

        if process.returncode != 0:
            diagnostic = stderr.decode(errors="replace").strip()
            logger.info("%s compilation failed with code %s", spec.name, process.returncode)
            return ExecutionResult.compile_failed(
                f"{spec.name} compilation failed: {diagnostic}"
            )
        return None

    async def _execute(self, spec: LanguageSpec, workdir: Path, stdin: str) -> ExecutionResult:
        argv = spec.run_argv(workdir)
        env = {**os.environ, **spec.run_env} if spec.run_env else None
        process = await self._spawn(argv, workdir, env=env)
        assert process.stdin is not None
        assert process.stdout is not None
        assert process.stderr is not None

        injector = StdinInjector(process.stdin, stdin, self.input_policy, label=spec.name)
        stdout_parts: list[str] = []
        stderr_parts: list[str] = []

        async def pump(stream: asyncio.StreamReader, sink: list[str], watch: bool) -> None:
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            while True:
                chunk = await stream.read(READ_CHUNK)
                if not chunk:
                    break
                text = decoder.decode(chunk)
                sink.append(text)
                if watch and text:
                    injector.observe(text)
            sink.append(decoder.decode(b"", final=True))

        async def drain() -> None:
            await asyncio.gather(
                pump(process.stdout, stdout_parts, True),
                pump(process.stderr, stderr_parts, False),
            )

        async def complete() -> int:
            streams = asyncio.create_task(drain())
            exited = asyncio.create_task(process.wait())
            try:
                await asyncio.wait({streams, exited}, return_when=asyncio.FIRST_COMPLETED)
                returncode = await exited
                # anything still holding the pipes is a leftover child of the program
                _kill(process)
                await self._settle(streams)
                return returncode
            finally:
                streams.cancel()
                exited.cancel()

        injector.start()
        completion = asyncio.create_task(complete())
        deadline = asyncio.create_task(asyncio.sleep(self.run_timeout))
        try:
            done, _ = await asyncio.wait(
                {completion, deadline}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            _kill(process)
            completion.cancel()
            raise
        finally:
            injector.cancel()
            deadline.cancel()

        if completion in done:
            returncode = completion.result()
        else:
            # the leader may have exited while a child kept its pipes open
            finished = process.returncode
            _kill(process)
            await self._settle(completion)
            if finished is None:
                logger.warning(
                    "%s run exceeded %ss, process killed", spec.name, self.run_timeout
                )
                return ExecutionResult.timed_out(
                    f"Execution timeout: {spec.name} code took too long to run",
                    stdout=_clean_output(spec, "".join(stdout_parts)),
                )
            logger.info("%s run left processes behind, killed them", spec.name)
            returncode = finished

        logger.info("%s run finished with code %s", spec.name, returncode)
        return ExecutionResult.from_exit_code(
            returncode,
            _clean_output(spec, "".join(stdout_parts)),
            _clean_output(spec, "".join(stderr_parts)),
            fallback_message=f"{spec.name} execution failed with code {returncode}",
        )

    async def _settle(self, task: asyncio.Task) -> None:
        """Give a task ``kill_grace`` seconds to finish after the session was killed."""
        try:
            await asyncio.wait_for(task, timeout=self.kill_grace)
        except asyncio.TimeoutError:
            logger.warning("output streams still open %ss after kill", self.kill_grace)

    async def _spawn(
        self,
        argv: list[str],
        workdir: Path,
        env: dict[str, str] | None = None,
        stdin: int = asyncio.subprocess.PIPE,
    ) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(workdir),
                stdin=stdin,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                start_new_session=True,
            )
        except (FileNotFoundError, PermissionError) as exc:
            raise SpawnError(f"failed to start {argv[0]}: {exc}", command=argv) from exc

    @staticmethod
    def _cleanup(workdir: Path) -> None:
        try:
            shutil.rmtree(workdir)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("cleanup of %s failed: %s", workdir, exc)


def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill everything in the process's session, including after the leader exited."""
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError:
        if process.returncode is None:
            process.kill()


def _clean_output(spec: LanguageSpec, text: str) -> str:
    if spec.name == "java":
        text = "\n".join(
            line
            for line in text.split("\n")
            if "JAVA_TOOL_OPTIONS" not in line and not line.strip().startswith("Picked up")
        )
    return text.strip()


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
