"""Case conversions for name-like answers and template filters."""

from __future__ import annotations

import re

_BOUNDARY = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")


def split_words(value: str) -> list[str]:
    """Split ``value`` on separators and case boundaries.

    ``"MyHTTPServer v2"`` -> ``["My", "HTTP", "Server", "v", "2"]``
    """
    return _BOUNDARY.findall(str(value))


def snake(value: str) -> str:
    return "_".join(word.lower() for word in split_words(value))


def kebab(value: str) -> str:
    return "-".join(word.lower() for word in split_words(value))


def pascal(value: str) -> str:
    return "".join(word.capitalize() for word in split_words(value))


def camel(value: str) -> str:
    result = pascal(value)
    return result[:1].lower() + result[1:]


def lower(value: str) -> str:
    return " ".join(word.lower() for word in split_words(value))


def upper(value: str) -> str:
    return " ".join(word.upper() for word in split_words(value))


def title(value: str) -> str:
    return " ".join(word.capitalize() for word in split_words(value))


# lower, upper and title replace the Jinja builtins of the same name.
CASE_FILTERS = {
    "snake": snake,
    "kebab": kebab,
    "pascal": pascal,
    "camel": camel,
    "lower": lower,
    "upper": upper,
    "title": title,
}
