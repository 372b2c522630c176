"""Error taxonomy for template resolution and rendering."""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class CprError(Exception):
    """Base class for every error surfaced by the generation pipeline."""


class UnknownServiceError(CprError, KeyError):
    """Raised when a template prefix has no configured service."""

    def __init__(self, prefix: str) -> None:
        self.prefix = prefix
        super().__init__(prefix)

    def __str__(self) -> str:
        return f"Unknown service prefix: {self.prefix!r}"


class ConfigError(CprError):
    """Raised when the service configuration cannot be read or is invalid."""

    def __init__(self, path: Path | None, reason: str) -> None:
        self.path = path
        self.reason = reason
        where = f" ({path})" if path is not None else ""
        super().__init__(f"Invalid configuration{where}: {reason}")


class FetchFailure(str, Enum):
    NOT_FOUND = "not_found"
    AUTH_REQUIRED = "auth_required"
    NETWORK_FAILURE = "network_failure"
    OTHER = "other"


class FetchError(CprError):
    """Raised when a template source cannot be obtained."""

    def __init__(self, url: str, reason: FetchFailure, detail: str = "") -> None:
        self.url = url
        self.reason = reason
        self.detail = detail
        message = f"Failed to fetch {url} ({reason.value})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ManifestProblem(str, Enum):
    MISSING_FILE = "missing_file"
    PARSE_ERROR = "parse_error"
    DUPLICATE_QUESTION_NAME = "duplicate_question_name"
    INVALID_DEFAULT_TYPE = "invalid_default_type"
    INVALID_CONDITION_REFERENCE = "invalid_condition_reference"
    INVALID_QUESTION = "invalid_question"


class ManifestError(CprError):
    """Raised when a template manifest is unreadable or inconsistent."""

    def __init__(self, path: Path, reason: ManifestProblem, detail: str = "") -> None:
        self.path = path
        self.reason = reason
        self.detail = detail
        message = f"Invalid manifest {path} ({reason.value})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class QuestionValidationError(CprError, ValueError):
    """Raised when a raw answer cannot be coerced; recovered by re-prompting."""

    def __init__(self, question: str, raw: str, reason: str) -> None:
        self.question = question
        self.raw = raw
        self.reason = reason
        super().__init__(reason)


class GenerationCancelled(CprError):
    """Raised when the user aborts interactive prompting."""

    def __init__(self, question: str | None = None) -> None:
        self.question = question
        super().__init__("Generation cancelled by user")


class ContextCollisionError(CprError):
    """Raised when a question or variable name shadows a builtin variable."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Context variable {key!r} collides with a builtin variable")


class ProjectDirExistsError(CprError, FileExistsError):
    """Raised when ``new`` targets a directory that already exists."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Project directory already exists: {path}")


class TemplateRenderError(CprError):
    """Base class for failures raised while materializing a template tree.

    ``completed`` lists the output paths fully written before the failure.
    The tree walker fills it in; the rendering engine leaves it empty.
    """

    completed: tuple[Path, ...] = ()

    def __init__(self, message: str, file: str | None = None) -> None:
        self.file = file
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        if self.file:
            return f"{self.file}: {self.message}"
        return self.message


class TemplateSyntaxError(TemplateRenderError):
    def __init__(
        self, message: str, position: int | None = None, file: str | None = None
    ) -> None:
        self.position = position
        super().__init__(message, file)

    def __str__(self) -> str:
        where = self.file or "<template>"
        if self.position is not None:
            where = f"{where}:{self.position}"
        return f"{where}: syntax error: {self.message}"


class UndefinedVariableError(TemplateRenderError):
    def __init__(self, variable: str, file: str | None = None) -> None:
        self.variable = variable
        super().__init__(f"undefined variable {variable!r}", file)


class PathCollisionError(TemplateRenderError):
    def __init__(self, path: Path, sources: tuple[str, ...] = ()) -> None:
        self.path = path
        self.sources = sources
        detail = f" (from {', '.join(sources)})" if sources else ""
        super().__init__(f"output path rendered more than once: {path}{detail}")


class InvalidEntryNameError(TemplateRenderError):
    def __init__(self, rendered: str, file: str) -> None:
        self.rendered = rendered
        super().__init__(f"entry name renders to an invalid path component {rendered!r}", file)


class MaterializeIOError(TemplateRenderError):
    def __init__(self, path: Path, cause: OSError) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"I/O error on {path}: {cause}")
