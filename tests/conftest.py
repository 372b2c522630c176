"""Shared fixtures for the cpr test suite."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable, Iterable

import pytest

from cpr.config.services import ServiceConfig
from cpr.core.errors import QuestionValidationError
from cpr.core.models import QuestionSpec


# ---------------------------------------------------------------------------
# Scripted prompting
# ---------------------------------------------------------------------------


class ScriptedPrompter:
    """Replays a fixed list of raw answers; ``None`` means the user cancelled."""

    def __init__(self, answers: Iterable[str | None] = ()) -> None:
        self.answers = list(answers)
        self.asked: list[str] = []
        self.rejected: list[tuple[str, str]] = []

    def ask(self, spec: QuestionSpec) -> str | None:
        self.asked.append(spec.name)
        if not self.answers:
            raise AssertionError(f"no scripted answer left for {spec.name!r}")
        return self.answers.pop(0)

    def reject(self, spec: QuestionSpec, error: QuestionValidationError) -> None:
        self.rejected.append((spec.name, error.raw))


@pytest.fixture
def prompter_factory() -> Callable[..., ScriptedPrompter]:
    def factory(*answers: str | None) -> ScriptedPrompter:
        return ScriptedPrompter(answers)

    return factory


# ---------------------------------------------------------------------------
# Template trees
# ---------------------------------------------------------------------------


def write_tree(root: Path, files: dict[str, str | bytes]) -> Path:
    """Create ``files`` under ``root``; keys ending in ``/`` are empty directories."""
    root.mkdir(parents=True, exist_ok=True)
    for rel, content in files.items():
        path = root / rel
        if rel.endswith("/"):
            path.mkdir(parents=True, exist_ok=True)
            continue
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(textwrap.dedent(content), encoding="utf-8")
    return root


def snapshot(root: Path) -> dict[str, bytes | None]:
    """Map every path under ``root`` to its bytes (None for directories)."""
    result: dict[str, bytes | None] = {}
    for path in sorted(root.rglob("*")):
        rel = path.relative_to(root).as_posix()
        result[rel] = None if path.is_dir() else path.read_bytes()
    return result


SAMPLE_MANIFEST = """\
[[questions]]
name = "project_name"
prompt = "Project name"
kind = "string"
default = "demo"
name_like = true

[[questions]]
name = "license"
prompt = "License"
kind = "choice"
choices = ["MIT", "Apache-2.0", "None"]
default = "MIT"

[[questions]]
name = "with_tests"
prompt = "Add tests?"
kind = "bool"
default = true

[[questions]]
name = "cxx_standard"
prompt = "C++ standard"
kind = "int"
default = 20

[variables]
platforms = ["linux", "macos"]

[paths]
"tests" = "with_tests"
"LICENSE" = "license != 'None'"
"""


@pytest.fixture
def sample_template(tmp_path: Path) -> Path:
    """A small C++ style template exercising names, conditions and loops."""
    return write_tree(
        tmp_path / "template-src",
        {
            "cpr.toml": SAMPLE_MANIFEST,
            "CMakeLists.txt": """\
                project({{ project_name.snake }})
                set(CMAKE_CXX_STANDARD {{ cxx_standard }})
                {%- for platform in platforms %}
                # platform: {{ platform }}
                {%- endfor %}
            """,
            "LICENSE": '{% if license == "MIT" %}MIT License{% else %}Proprietary{% endif %}\n',
            "include/{{ project_name.snake }}/{{ project_name.snake }}.hpp": (
                "namespace {{ project_name.snake }} {}\n"
            ),
            "src/main.cpp": "int main() { return 0; }\n",
            "tests/test_{{ project_name.snake }}.cpp": "// tests for {{ project_name.pascal }}\n",
            "assets/logo.bin": b"\x89PNG\r\n\x1a\n\x00\x00{{ project_name }}",
        },
    )


@pytest.fixture
def service_config() -> ServiceConfig:
    return ServiceConfig.model_validate(
        {
            "default_service": "gh",
            "services": {
                "gh": {"url": "https://github.com/{{ repo }}.git"},
                "gl": {"url": "https://gitlab.com/{{repo}}.git"},
            },
        }
    )


@pytest.fixture
def make_tree() -> Callable[[Path, dict[str, str | bytes]], Path]:
    return write_tree


@pytest.fixture
def tree_snapshot() -> Callable[[Path], dict[str, bytes | None]]:
    return snapshot
