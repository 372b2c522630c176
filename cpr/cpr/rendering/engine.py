"""Template rendering engine."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from functools import lru_cache
from typing import Any

import jinja2
from jinja2 import Environment, StrictUndefined, meta

from ..core.errors import TemplateSyntaxError, UndefinedVariableError
from .casing import CASE_FILTERS

logger = logging.getLogger(__name__)

_UNDEFINED_NAME = re.compile(r"'([^']+)' is undefined")
_UNDEFINED_ATTR = re.compile(r"has no attribute '([^']+)'")


@lru_cache(maxsize=2)
def get_environment(newline: str = "\n") -> Environment:
    """Return the shared Jinja2 environment for one line-ending convention.

    The lexer rewrites every line break to ``newline_sequence``, so CRLF
    templates need their own environment to keep their line endings.
    """
    env = Environment(
        undefined=StrictUndefined,
        autoescape=False,
        keep_trailing_newline=True,
        newline_sequence=newline,
    )
    env.filters.update(CASE_FILTERS)
    return env


def _undefined_name(exc: jinja2.UndefinedError) -> str:
    message = str(exc.message or exc)
    for pattern in (_UNDEFINED_NAME, _UNDEFINED_ATTR):
        match = pattern.search(message)
        if match:
            return match.group(1)
    return message


def line_ending(text: str) -> str:
    return "\r\n" if "\r\n" in text else "\n"


def render(template_text: str, context: Mapping[str, Any]) -> str:
    """Render ``template_text`` against ``context``.

    Raises:
        TemplateSyntaxError: malformed ``{{ }}``/``{% %}`` syntax
        UndefinedVariableError: a referenced variable or attribute is missing
    """
    env = get_environment(line_ending(template_text))
    try:
        template = env.from_string(template_text)
        return template.render(context)
    except jinja2.TemplateSyntaxError as exc:
        raise TemplateSyntaxError(exc.message or str(exc), position=exc.lineno) from exc
    except jinja2.UndefinedError as exc:
        raise UndefinedVariableError(_undefined_name(exc)) from exc


def evaluate_condition(expr: str, context: Mapping[str, Any]) -> bool:
    """Evaluate a boolean expression such as ``license == "MIT"``."""
    env = get_environment()
    try:
        compiled = env.compile_expression(expr, undefined_to_none=False)
        result = compiled(**context)
        return bool(result)
    except jinja2.TemplateSyntaxError as exc:
        raise TemplateSyntaxError(exc.message or str(exc), position=exc.lineno) from exc
    except jinja2.UndefinedError as exc:
        raise UndefinedVariableError(_undefined_name(exc)) from exc


def referenced_names(expr: str) -> set[str]:
    """Return the top-level variable names an expression reads.

    Raises:
        TemplateSyntaxError: when the expression does not parse
    """
    env = get_environment()
    try:
        ast = env.parse("{{ (" + expr + ") }}")
    except jinja2.TemplateSyntaxError as exc:
        raise TemplateSyntaxError(exc.message or str(exc), position=exc.lineno) from exc
    return set(meta.find_undeclared_variables(ast))


def has_markup(text: str) -> bool:
    return "{{" in text or "{%" in text or "{#" in text
