"""Ask manifest questions in order and coerce the answers to their declared kinds."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Protocol, Sequence

from ..core.errors import GenerationCancelled, QuestionValidationError
from ..core.models import AnswerValue, QuestionKind, QuestionSpec
from ..rendering.engine import evaluate_condition

logger = logging.getLogger(__name__)

_INT_PATTERN = re.compile(r"^[+-]?\d+$")
_TRUE_VALUES = {"y", "yes", "true", "1", "on"}
_FALSE_VALUES = {"n", "no", "false", "0", "off"}


class Prompter(Protocol):
    """Presents one question and returns the raw text, or None to cancel."""

    def ask(self, spec: QuestionSpec) -> str | None: ...

    def reject(self, spec: QuestionSpec, error: QuestionValidationError) -> None: ...


def _parse_bool(spec: QuestionSpec, raw: str) -> bool:
    value_lower = raw.strip().lower()
    if value_lower in _TRUE_VALUES:
        return True
    if value_lower in _FALSE_VALUES:
        return False
    raise QuestionValidationError(spec.name, raw, f"{raw!r} is not yes or no")


def _parse_int(spec: QuestionSpec, raw: str) -> int:
    if not _INT_PATTERN.match(raw):
        raise QuestionValidationError(spec.name, raw, f"{raw!r} is not an integer")
    return int(raw)


def _parse_choice(spec: QuestionSpec, raw: str) -> str:
    choices = spec.choices or ()
    if raw in choices:
        return raw
    if raw.isdigit() and 1 <= int(raw) <= len(choices):
        return choices[int(raw) - 1]
    raise QuestionValidationError(
        spec.name, raw, f"{raw!r} is not one of: {', '.join(choices)}"
    )


def empty_value(kind: QuestionKind) -> AnswerValue:
    if kind is QuestionKind.STRING:
        return ""
    if kind is QuestionKind.BOOL:
        return False
    return None


def coerce(spec: QuestionSpec, raw: str) -> AnswerValue:
    """Turn raw input into a typed answer.

    Empty input falls back to the default, then to the kind's empty value
    when the question is optional.

    Raises:
        QuestionValidationError: the input does not fit the question
    """
    text = raw.strip()
    if not text:
        if spec.default is not None:
            return spec.default
        if spec.required:
            raise QuestionValidationError(spec.name, raw, "an answer is required")
        return empty_value(spec.kind)

    kind = spec.kind
    if kind is QuestionKind.STRING:
        return text
    if kind is QuestionKind.BOOL:
        return _parse_bool(spec, text)
    if kind is QuestionKind.INT:
        return _parse_int(spec, text)
    if kind is QuestionKind.CHOICE:
        return _parse_choice(spec, text)
    raise AssertionError(f"unhandled question kind: {kind!r}")


def ask_one(spec: QuestionSpec, prompter: Prompter) -> AnswerValue:
    """Prompt until ``spec`` receives a valid answer."""
    while True:
        raw = prompter.ask(spec)
        if raw is None:
            raise GenerationCancelled(spec.name)
        try:
            return coerce(spec, raw)
        except QuestionValidationError as exc:
            logger.debug("Rejected answer for %s: %s", spec.name, exc.reason)
            prompter.reject(spec, exc)


def ask_all(
    questions: Sequence[QuestionSpec],
    prompter: Prompter,
    *,
    scope: Mapping[str, Any] | None = None,
) -> Mapping[str, AnswerValue]:
    """Ask each question in manifest order.

    Questions whose ``skip_if`` condition evaluates false are not asked and
    get no entry; later conditions see them as None. ``scope`` supplies the
    non-answer names such conditions may read (static variables and builtins).
    """
    answers: dict[str, AnswerValue] = {}
    skipped: dict[str, None] = {}
    for spec in questions:
        if spec.skip_if is not None:
            visible = dict(scope or {})
            visible.update(skipped)
            visible.update(answers)
            if not evaluate_condition(spec.skip_if, visible):
                logger.debug("Skipping question %s (%s is false)", spec.name, spec.skip_if)
                skipped[spec.name] = None
                continue
        answers[spec.name] = ask_one(spec, prompter)
    logger.info("Collected %d answer(s)", len(answers))
    return MappingProxyType(answers)
