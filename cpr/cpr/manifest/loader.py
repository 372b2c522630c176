"""Load and validate the ``cpr.toml`` question manifest."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path, PurePosixPath
from typing import Any

from pydantic import ValidationError

from ..core.errors import ManifestError, ManifestProblem, TemplateSyntaxError
from ..core.models import Manifest, QuestionSpec
from ..rendering.context import BUILTIN_NAMES
from ..rendering.engine import referenced_names

logger = logging.getLogger(__name__)

MANIFEST_NAME = "cpr.toml"
RESERVED_NAMES = frozenset({MANIFEST_NAME, ".git"})

_TOP_LEVEL_KEYS = {"template", "questions", "variables", "paths"}


def load(root: Path) -> tuple[Manifest, Path]:
    """Read ``root/cpr.toml`` and return the manifest with the template body root.

    A missing manifest yields an empty manifest whose body is ``root``.

    Raises:
        ManifestError: the manifest exists but is invalid
    """
    path = root / MANIFEST_NAME
    if not path.exists():
        logger.info("No %s in template; continuing without questions", MANIFEST_NAME)
        return Manifest(), root

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
        raise ManifestError(path, ManifestProblem.PARSE_ERROR, str(exc)) from exc
    except OSError as exc:
        raise ManifestError(path, ManifestProblem.MISSING_FILE, str(exc)) from exc

    manifest = parse_manifest(data, path)
    body_root = _body_root(root, manifest.body, path)
    logger.info("Loaded %d question(s) from %s", len(manifest.questions), path.name)
    return manifest, body_root


def parse_manifest(data: dict[str, Any], path: Path) -> Manifest:
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise ManifestError(
            path, ManifestProblem.PARSE_ERROR, f"unknown section(s): {sorted(unknown)}"
        )

    template = _table(data, "template", path)
    variables = _table(data, "variables", path)
    paths = _table(data, "paths", path)
    raw_questions = data.get("questions", [])
    if not isinstance(raw_questions, list):
        raise ManifestError(
            path, ManifestProblem.PARSE_ERROR, "'questions' must be an array of tables"
        )

    questions = _parse_questions(raw_questions, path)
    _check_question_conditions(questions, variables, path)

    path_conditions: dict[str, str] = {}
    known = {q.name for q in questions} | set(variables) | BUILTIN_NAMES
    for raw_path, expr in paths.items():
        if not isinstance(expr, str):
            raise ManifestError(
                path, ManifestProblem.PARSE_ERROR, f"condition for {raw_path!r} must be a string"
            )
        key = _normalize_entry_path(raw_path, path)
        _check_references(expr, known, f"paths.{raw_path!r}", path)
        path_conditions[key] = expr

    body = template.get("body", "")
    if not isinstance(body, str):
        raise ManifestError(path, ManifestProblem.PARSE_ERROR, "template.body must be a string")

    return Manifest(
        questions=tuple(questions),
        variables=variables,
        path_conditions=path_conditions,
        body=body,
    )


def _table(data: dict[str, Any], key: str, path: Path) -> dict[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, dict):
        raise ManifestError(path, ManifestProblem.PARSE_ERROR, f"'{key}' must be a table")
    return value


def _parse_questions(raw_questions: list[Any], path: Path) -> list[QuestionSpec]:
    questions: list[QuestionSpec] = []
    seen: set[str] = set()
    for index, raw in enumerate(raw_questions):
        if not isinstance(raw, dict):
            raise ManifestError(
                path, ManifestProblem.PARSE_ERROR, f"questions[{index}] must be a table"
            )
        name = raw.get("name")
        if isinstance(name, str) and name in seen:
            raise ManifestError(path, ManifestProblem.DUPLICATE_QUESTION_NAME, name)
        try:
            spec = QuestionSpec.model_validate(raw)
        except ValidationError as exc:
            raise ManifestError(
                path, ManifestProblem.INVALID_QUESTION, f"questions[{index}]: {_describe(exc)}"
            ) from exc
        problem = spec.default_problem()
        if problem:
            raise ManifestError(
                path, ManifestProblem.INVALID_DEFAULT_TYPE, f"{spec.name}: {problem}"
            )
        seen.add(spec.name)
        questions.append(spec)
    return questions


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


def _check_question_conditions(
    questions: list[QuestionSpec], variables: dict[str, Any], path: Path
) -> None:
    """Question conditions may only look backwards: earlier answers, variables, builtins."""
    available = set(variables) | BUILTIN_NAMES
    for spec in questions:
        if spec.skip_if is not None:
            _check_references(spec.skip_if, available, f"questions.{spec.name}", path)
        available.add(spec.name)


def _check_references(expr: str, known: set[str] | frozenset[str], owner: str, path: Path) -> None:
    try:
        names = referenced_names(expr)
    except TemplateSyntaxError as exc:
        raise ManifestError(
            path, ManifestProblem.PARSE_ERROR, f"{owner}: cannot parse {expr!r}: {exc.message}"
        ) from exc
    unknown = sorted(names - set(known))
    if unknown:
        raise ManifestError(
            path,
            ManifestProblem.INVALID_CONDITION_REFERENCE,
            f"{owner} references {', '.join(unknown)} which is not defined before it",
        )


def _normalize_entry_path(raw_path: str, path: Path) -> str:
    parts = PurePosixPath(raw_path.replace("\\", "/")).parts
    if not parts or parts[0] == "/" or ".." in parts:
        raise ManifestError(
            path, ManifestProblem.PARSE_ERROR, f"invalid entry path {raw_path!r}"
        )
    normalized = "/".join(part for part in parts if part != ".")
    if not normalized:
        raise ManifestError(
            path, ManifestProblem.PARSE_ERROR, f"invalid entry path {raw_path!r}"
        )
    return normalized


def _body_root(root: Path, body: str, path: Path) -> Path:
    if not body:
        return root
    body_root = (root / body).resolve()
    if not body_root.is_relative_to(root.resolve()) or not body_root.is_dir():
        raise ManifestError(
            path, ManifestProblem.PARSE_ERROR, f"template.body {body!r} is not a directory in the template"
        )
    return body_root
