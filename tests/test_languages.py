import sys
from pathlib import Path

import pytest

from code_runner.languages import (
    SUPPORTED_LANGUAGES,
    is_supported,
    resolve,
)


@pytest.mark.parametrize(
    "language,filename",
    [
        ("python", "main.py"),
        ("java", "Main.java"),
        ("c", "main.c"),
        ("cpp", "main.cpp"),
        ("javascript", "script.js"),
    ],
)
def test_resolve_known_languages(language, filename):
    spec = resolve(language)
    assert spec.name == language
    assert spec.source_filename == filename
    assert spec.source_filename.endswith(spec.file_extension)


def test_resolve_is_case_insensitive():
    assert resolve("  CPP ").name == "cpp"


@pytest.mark.parametrize("language", ["ruby", "", None, "pyth0n"])
def test_unknown_language_falls_back_to_python(language):
    assert resolve(language).name == "python"


def test_is_supported():
    assert SUPPORTED_LANGUAGES == ("python", "java", "c", "cpp", "javascript")
    assert is_supported("Java")
    assert not is_supported("ruby")
    assert not is_supported(None)


def test_only_compiled_languages_have_compile_step():
    compiled = {name for name in SUPPORTED_LANGUAGES if resolve(name).compiled}
    assert compiled == {"java", "c", "cpp"}


def test_command_rendering(tmp_path: Path):
    c = resolve("c")
    assert c.compile_argv(tmp_path) == [
        "gcc",
        str(tmp_path / "main.c"),
        "-o",
        str(tmp_path / "main"),
    ]
    assert c.run_argv(tmp_path) == [str(tmp_path / "main")]

    java = resolve("java")
    assert java.run_argv(tmp_path) == ["java", "-cp", str(tmp_path), "Main"]
    assert java.run_env == {"JAVA_TOOL_OPTIONS": ""}

    python = resolve("python")
    assert python.compile_argv(tmp_path) == []
    assert python.run_argv(tmp_path) == [sys.executable, "-u", str(tmp_path / "main.py")]


def test_container_images():
    assert resolve("python").container_image == "python:3.9-alpine"
    assert resolve("java").container_image == "openjdk:11-jdk-slim"
    assert resolve("c").container_image == resolve("cpp").container_image == "gcc:latest"
    assert resolve("javascript").container_image == "node:16-alpine"
