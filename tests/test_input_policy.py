import asyncio

import pytest

from code_runner.input_policy import (
    EAGER,
    HEURISTIC,
    STRICT,
    InputPolicy,
    StdinInjector,
    policy_from_name,
)


class FakeWriter:
    def __init__(self, broken: bool = False):
        self.data = b""
        self.writes = 0
        self.closed = False
        self.broken = broken

    def write(self, data: bytes) -> None:
        if self.broken:
            raise BrokenPipeError()
        self.writes += 1
        self.data += data

    async def drain(self) -> None:
        return None

    def close(self) -> None:
        self.closed = True


@pytest.mark.parametrize(
    "chunk",
    ["Enter your name", "Please enter a number", "Value: ", ">>> ", "ready?", "ENTER"],
)
def test_heuristic_detects_prompts(chunk):
    assert HEURISTIC.is_prompt(chunk)


def test_heuristic_ignores_plain_output():
    assert not HEURISTIC.is_prompt("Hello, world\n")


def test_heuristic_triggers_on_urls():
    # ordinary output with a colon looks like a prompt to the heuristic
    assert HEURISTIC.is_prompt("see https://example.com\n")
    assert not STRICT.is_prompt("see https://example.com\n")


def test_strict_only_matches_phrases():
    assert STRICT.is_prompt("Please enter a number")
    assert not STRICT.is_prompt("Value: ")
    assert STRICT.fallback_after is None


def test_policy_from_name():
    assert policy_from_name("Heuristic") is HEURISTIC
    assert policy_from_name("strict") is STRICT
    assert policy_from_name("eager") is EAGER
    with pytest.raises(ValueError):
        policy_from_name("sometimes")


def test_prompt_triggers_single_delivery():
    async def scenario():
        writer = FakeWriter()
        policy = InputPolicy(name="test", settle_delay=0.01, fallback_after=0.2)
        injector = StdinInjector(writer, "Alice", policy)
        injector.start()
        injector.observe("Enter your name: ")
        injector.observe("Enter your name again: ")
        await asyncio.sleep(0.4)
        injector.cancel()
        return writer

    writer = asyncio.run(scenario())
    assert writer.data == b"Alice\n"
    assert writer.writes == 1
    assert writer.closed


def test_fallback_delivers_without_prompt():
    async def scenario():
        writer = FakeWriter()
        policy = InputPolicy(name="test", fallback_after=0.05)
        injector = StdinInjector(writer, "42\n", policy)
        injector.start()
        injector.observe("computing\n")
        await asyncio.sleep(0.2)
        return writer, injector

    writer, injector = asyncio.run(scenario())
    assert injector.sent
    assert writer.data == b"42\n"


def test_empty_stdin_only_closes():
    async def scenario():
        writer = FakeWriter()
        injector = StdinInjector(writer, "", InputPolicy(name="test", fallback_after=0.0))
        injector.start()
        await asyncio.sleep(0.05)
        return writer

    writer = asyncio.run(scenario())
    assert writer.writes == 0
    assert writer.closed


def test_strict_never_falls_back():
    async def scenario():
        writer = FakeWriter()
        injector = StdinInjector(writer, "x", STRICT)
        injector.start()
        injector.observe("Result: 3\n")
        await asyncio.sleep(0.3)
        injector.cancel()
        return injector

    assert not asyncio.run(scenario()).sent


def test_delivery_to_exited_process_is_tolerated():
    async def scenario():
        injector = StdinInjector(FakeWriter(broken=True), "data", HEURISTIC)
        await injector.deliver()
        return injector

    assert asyncio.run(scenario()).sent
