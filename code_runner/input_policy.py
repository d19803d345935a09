"""Deciding when pre-supplied stdin is handed to a running program.

Programs never receive keystrokes: the whole stdin text is delivered once.
An :class:`InputPolicy` decides *when*, by watching stdout for something
that looks like a prompt and, optionally, by sending anyway after a
fallback delay so programs that read without prompting still progress.

The default heuristic is deliberately loose. Ordinary output that contains
one of the watched markers (a URL prints ``:``) triggers an early send, and
a prompt that appears after the fallback fired finds stdin already
delivered. ``STRICT`` only reacts to explicit prompt phrases and never
falls back; ``EAGER`` sends at start-up.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Coroutine

logger = logging.getLogger(__name__)

PROMPT_PHRASES = (
    "enter your name",
    "enter name",
    "input",
    "please enter",
    "enter value",
    "provide input",
    "enter data",
)


@dataclass(frozen=True)
class InputPolicy:
    name: str
    phrases: tuple[str, ...] = PROMPT_PHRASES
    markers: tuple[str, ...] = (":", ">", "?")
    keywords: tuple[str, ...] = ("enter",)
    settle_delay: float = 0.1
    fallback_after: float | None = 1.5

    def is_prompt(self, chunk: str) -> bool:
        lowered = chunk.lower()
        if any(phrase in lowered for phrase in self.phrases):
            return True
        if any(marker in chunk for marker in self.markers):
            return True
        return any(keyword in lowered for keyword in self.keywords)


HEURISTIC = InputPolicy(name="heuristic")
STRICT = InputPolicy(name="strict", markers=(), keywords=(), fallback_after=None)
EAGER = InputPolicy(name="eager", phrases=(), markers=(), keywords=(), fallback_after=0.0)

POLICIES = {policy.name: policy for policy in (HEURISTIC, STRICT, EAGER)}


def policy_from_name(name: str) -> InputPolicy:
    try:
        return POLICIES[name.strip().lower()]
    except KeyError:
        raise ValueError(
            f"Unknown stdin policy: {name}. Use one of {', '.join(sorted(POLICIES))}."
        ) from None


class StdinInjector:
    """Delivers one payload to one process's stdin, exactly once."""

    def __init__(
        self,
        stream: asyncio.StreamWriter,
        stdin: str,
        policy: InputPolicy = HEURISTIC,
        label: str = "",
    ) -> None:
        self._stream = stream
        self._payload = stdin if not stdin or stdin.endswith("\n") else stdin + "\n"
        self._policy = policy
        self._label = label
        self._prompted = False
        self._sent = False
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def sent(self) -> bool:
        return self._sent

    def start(self) -> None:
        """Arm the fallback timer, if the policy has one."""
        if self._policy.fallback_after is not None:
            self._spawn(self._deliver_after(self._policy.fallback_after, "fallback"))

    def observe(self, chunk: str) -> None:
        if self._sent or self._prompted:
            return
        if self._policy.is_prompt(chunk):
            self._prompted = True
            logger.debug("prompt detected in %s output", self._label)
            self._spawn(self._deliver_after(self._policy.settle_delay, "prompt"))

    async def deliver(self, reason: str = "explicit") -> None:
        if self._sent:
            return
        self._sent = True
        logger.debug(
            "delivering stdin to %s (%s, %d bytes)", self._label, reason, len(self._payload)
        )
        try:
            if self._payload:
                self._stream.write(self._payload.encode())
                await self._stream.drain()
            self._stream.close()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("%s exited before stdin was delivered", self._label)

    def cancel(self) -> None:
        for task in list(self._tasks):
            task.cancel()

    async def _deliver_after(self, delay: float, reason: str) -> None:
        await asyncio.sleep(delay)
        await self.deliver(reason)

    def _spawn(self, coro: Coroutine[None, None, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
