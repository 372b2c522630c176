"""Domain models for template references, manifests and generation results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

AnswerValue = Union[str, bool, int, None]


class TemplateRef(BaseModel):
    """A ``prefix:owner/name`` template reference."""

    model_config = ConfigDict(frozen=True)

    prefix: str = Field(..., min_length=1, description="Service prefix (e.g. gh)")
    repo_path: str = Field(..., min_length=1, description="Repository path (e.g. cpr-rs/cpp)")

    @property
    def project_name(self) -> str:
        name = self.repo_path.rstrip("/").rsplit("/", 1)[-1]
        return name[: -len(".git")] if name.endswith(".git") else name

    def __str__(self) -> str:
        return f"{self.prefix}:{self.repo_path}"


class QuestionKind(str, Enum):
    STRING = "string"
    BOOL = "bool"
    CHOICE = "choice"
    INT = "int"


class QuestionSpec(BaseModel):
    """A single question declared in a template manifest."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    prompt: str = ""
    kind: QuestionKind = QuestionKind.STRING
    default: AnswerValue = None
    choices: tuple[str, ...] | None = None
    required: bool = True
    name_like: bool = False
    skip_if: str | None = None

    @field_validator("name")
    @classmethod
    def _name_is_identifier(cls, value: str) -> str:
        if not value.isidentifier():
            raise ValueError(f"question name {value!r} is not a valid identifier")
        return value

    @model_validator(mode="after")
    def _check_choices(self) -> "QuestionSpec":
        if self.kind is QuestionKind.CHOICE:
            if not self.choices:
                raise ValueError(f"question {self.name!r} of kind 'choice' needs choices")
            if len(set(self.choices)) != len(self.choices):
                raise ValueError(f"question {self.name!r} has duplicate choices")
        elif self.choices is not None:
            raise ValueError(
                f"question {self.name!r} declares choices but is of kind {self.kind.value!r}"
            )
        if self.name_like and self.kind is not QuestionKind.STRING:
            raise ValueError(f"question {self.name!r} is name_like but not a string")
        return self

    @property
    def label(self) -> str:
        return self.prompt or self.name

    def default_problem(self) -> str | None:
        """Describe why ``default`` does not match ``kind``, or return None."""
        value = self.default
        if value is None:
            return None
        if self.kind is QuestionKind.BOOL:
            ok = isinstance(value, bool)
        elif self.kind is QuestionKind.INT:
            ok = isinstance(value, int) and not isinstance(value, bool)
        elif self.kind is QuestionKind.CHOICE:
            if not isinstance(value, str):
                ok = False
            elif value not in (self.choices or ()):
                return f"default {value!r} is not one of {list(self.choices or ())}"
            else:
                ok = True
        else:
            ok = isinstance(value, str)
        if ok:
            return None
        return f"default {value!r} is not a valid {self.kind.value}"


class Manifest(BaseModel):
    """Parsed ``cpr.toml``: questions in prompt order plus template-level settings."""

    model_config = ConfigDict(frozen=True)

    questions: tuple[QuestionSpec, ...] = ()
    variables: dict[str, Any] = Field(default_factory=dict)
    path_conditions: dict[str, str] = Field(default_factory=dict)
    body: str = ""


@dataclass(frozen=True)
class FetchedTemplate:
    """A local, disposable copy of a template source tree."""

    root: Path
    source: str


@dataclass(frozen=True)
class GenerationResult:
    target: Path
    written: tuple[Path, ...] = ()
    skipped: tuple[str, ...] = field(default_factory=tuple)
