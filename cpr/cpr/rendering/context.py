"""Build the immutable rendering context from answers and builtin variables."""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Sequence

from ..core.errors import ContextCollisionError
from ..core.models import QuestionKind, QuestionSpec
from . import casing

logger = logging.getLogger(__name__)

BUILTIN_NAMES = frozenset({"now", "cpr", "target"})

RenderContext = Mapping[str, Any]


class NameValue(str):
    """A name-like answer exposing precomputed case variants.

    Renders as the original text; ``{{ project_name.snake }}`` renders the
    snake_case variant.
    """

    @property
    def snake(self) -> str:
        return casing.snake(self)

    @property
    def kebab(self) -> str:
        return casing.kebab(self)

    @property
    def pascal(self) -> str:
        return casing.pascal(self)

    @property
    def camel(self) -> str:
        return casing.camel(self)


class ChoiceValue(str):
    """A choice answer that also carries the ordered option list."""

    options: tuple[str, ...]

    def __new__(cls, value: str, options: Sequence[str]) -> "ChoiceValue":
        obj = super().__new__(cls, value)
        obj.options = tuple(options)
        return obj


def freeze(value: Any) -> Any:
    """Recursively convert mappings and lists into read-only equivalents."""
    if isinstance(value, Mapping):
        return MappingProxyType({str(k): freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def builtin_vars(
    *,
    target_name: str = "",
    template: str = "",
    url: str = "",
    version: str = "",
    now: dt.datetime | None = None,
) -> dict[str, Any]:
    """Compute the builtin variables once per generation run."""
    return {
        "now": now or dt.datetime.now().astimezone(),
        "cpr": freeze({"version": version, "template": template, "url": url}),
        "target": NameValue(target_name),
    }


def wrap_answer(spec: QuestionSpec, value: Any) -> Any:
    if value is None:
        return None
    if spec.kind is QuestionKind.CHOICE:
        return ChoiceValue(value, spec.choices or ())
    if spec.kind is QuestionKind.STRING and spec.name_like:
        return NameValue(value)
    return value


def check_names(
    questions: Sequence[QuestionSpec],
    variables: Mapping[str, Any],
    builtin: Mapping[str, Any],
) -> None:
    """Fail before prompting when a question or variable would shadow another name."""
    question_names = {spec.name for spec in questions}
    for key in sorted(question_names | set(variables)):
        if key in builtin:
            raise ContextCollisionError(key)
    for key in variables:
        if key in question_names:
            raise ContextCollisionError(key)


def build(
    answers: Mapping[str, Any],
    builtin: Mapping[str, Any],
    *,
    questions: Sequence[QuestionSpec] = (),
    variables: Mapping[str, Any] | None = None,
) -> RenderContext:
    """Merge static variables, answers and builtins into one read-only mapping.

    Raises:
        ContextCollisionError: an answer or variable uses a builtin name, or a
            variable shares a name with a question
    """
    specs = {spec.name: spec for spec in questions}
    check_names(questions, variables or {}, builtin)
    merged: dict[str, Any] = {}

    for key, value in (variables or {}).items():
        merged[key] = freeze(value)

    for key, value in answers.items():
        if key in builtin:
            raise ContextCollisionError(key)
        spec = specs.get(key)
        merged[key] = wrap_answer(spec, value) if spec is not None else freeze(value)

    merged.update(builtin)
    logger.debug("Built rendering context with keys: %s", sorted(merged))
    return MappingProxyType(merged)
