"""Terminal prompting backed by typer."""

from __future__ import annotations

import typer

from ..core.errors import QuestionValidationError
from ..core.models import QuestionKind, QuestionSpec


def _format_default(spec: QuestionSpec) -> str | None:
    if spec.default is None:
        return None
    if spec.kind is QuestionKind.BOOL:
        return "yes" if spec.default else "no"
    return str(spec.default)


class TerminalPrompter:
    """Asks one question at a time on the terminal.

    Returns None when the user interrupts (Ctrl-C) or input ends (EOF).
    """

    def ask(self, spec: QuestionSpec) -> str | None:
        if spec.kind is QuestionKind.CHOICE:
            for index, option in enumerate(spec.choices or (), start=1):
                typer.echo(f"  {index}) {option}")
        label = spec.label
        if spec.kind is QuestionKind.BOOL:
            label = f"{label} [y/n]"
        try:
            raw = typer.prompt(
                label,
                default=_format_default(spec) or "",
                show_default=spec.default is not None,
            )
        except typer.Abort:
            return None
        return str(raw)

    def reject(self, spec: QuestionSpec, error: QuestionValidationError) -> None:
        typer.secho(f"Invalid answer for {spec.label}: {error.reason}", fg=typer.colors.RED, err=True)
