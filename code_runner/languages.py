"""Static registry of the languages the engine can compile and run."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class LanguageSpec:
    name: str
    source_filename: str
    file_extension: str
    run_command: tuple[str, ...]
    container_image: str
    container_command: str
    compile_command: tuple[str, ...] | None = None
    artifact_filename: str | None = None
    run_env: dict[str, str] = field(default_factory=dict)

    @property
    def compiled(self) -> bool:
        return self.compile_command is not None

    def compile_argv(self, workdir: Path) -> list[str]:
        if self.compile_command is None:
            return []
        return self._render(self.compile_command, workdir)

    def run_argv(self, workdir: Path) -> list[str]:
        return self._render(self.run_command, workdir)

    def _render(self, template: tuple[str, ...], workdir: Path) -> list[str]:
        values = {
            "source": str(workdir / self.source_filename),
            "binary": str(workdir / (self.artifact_filename or "")),
            "workdir": str(workdir),
        }
        return [part.format(**values) for part in template]


PYTHON = LanguageSpec(
    name="python",
    source_filename="main.py",
    file_extension=".py",
    run_command=(sys.executable, "-u", "{source}"),
    container_image="python:3.9-alpine",
    container_command="python3 -u main.py",
)

JAVA = LanguageSpec(
    name="java",
    source_filename="Main.java",
    file_extension=".java",
    compile_command=("javac", "{source}"),
    run_command=("java", "-cp", "{workdir}", "Main"),
    container_image="openjdk:11-jdk-slim",
    container_command="javac Main.java && java Main",
    artifact_filename="Main.class",
    run_env={"JAVA_TOOL_OPTIONS": ""},
)

C = LanguageSpec(
    name="c",
    source_filename="main.c",
    file_extension=".c",
    compile_command=("gcc", "{source}", "-o", "{binary}"),
    run_command=("{binary}",),
    container_image="gcc:latest",
    container_command="gcc main.c -o main && ./main",
    artifact_filename="main",
)

CPP = LanguageSpec(
    name="cpp",
    source_filename="main.cpp",
    file_extension=".cpp",
    compile_command=("g++", "{source}", "-o", "{binary}"),
    run_command=("{binary}",),
    container_image="gcc:latest",
    container_command="g++ main.cpp -o main && ./main",
    artifact_filename="main",
)

JAVASCRIPT = LanguageSpec(
    name="javascript",
    source_filename="script.js",
    file_extension=".js",
    run_command=("node", "{source}"),
    container_image="node:16-alpine",
    container_command="node script.js",
)

REGISTRY: dict[str, LanguageSpec] = {
    spec.name: spec for spec in (PYTHON, JAVA, C, CPP, JAVASCRIPT)
}
SUPPORTED_LANGUAGES = tuple(REGISTRY)
DEFAULT_LANGUAGE = PYTHON


def resolve(language: str | None) -> LanguageSpec:
    """Look up a language, falling back to python for anything unknown.

    Callers that need strict validation should check ``is_supported`` first.
    """
    if not language:
        return DEFAULT_LANGUAGE
    return REGISTRY.get(language.strip().lower(), DEFAULT_LANGUAGE)


def is_supported(language: str | None) -> bool:
    return bool(language) and language.strip().lower() in REGISTRY
