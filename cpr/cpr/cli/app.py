"""Main CLI application."""

from __future__ import annotations

import logging
import shutil
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

import typer
from typing_extensions import Annotated

from .. import __version__, pipeline
from ..config.services import ServiceConfig, load_or_init_config, write_config
from ..config.settings import get_settings
from ..core.errors import CprError, GenerationCancelled, TemplateRenderError
from ..core.models import QuestionKind, QuestionSpec
from ..questions.engine import ask_one
from ..questions.prompter import TerminalPrompter
from .parsers import parse_dir_name, parse_prefix, parse_repo_ref, project_dir_name

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="cpr",
    help="A simple git-based project manager aimed at C/C++.",
    no_args_is_help=True,
)
services_app = typer.Typer(help="Manage git services.", no_args_is_help=True)
app.add_typer(services_app, name="services")


@dataclass
class CliState:
    config_path: Path
    git: str = "git"


def configure_logging(verbose: bool, level: str) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.WARNING),
        format="[%(levelname)s] %(message)s",
    )


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"cpr {__version__}")
        raise typer.Exit()


def _load_config(state: CliState) -> ServiceConfig:
    config, created = load_or_init_config(state.config_path)
    if created:
        typer.echo(f"Created default configuration at {state.config_path}")
    return config


@contextmanager
def reporting_errors() -> Iterator[None]:
    """Turn pipeline errors into a red message and a non-zero exit code."""
    try:
        yield
    except GenerationCancelled as exc:
        typer.secho(str(exc), fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(130) from exc
    except CprError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        if isinstance(exc, TemplateRenderError) and exc.completed:
            typer.echo("Completed before the failure:", err=True)
            for path in exc.completed:
                typer.echo(f"  {path}", err=True)
        raise typer.Exit(1) from exc


@app.callback()
def main_options(
    ctx: typer.Context,
    config: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Global configuration file path.",
            metavar="PATH",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose logging.",
        ),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show the version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """A simple git-based project manager aimed at C/C++."""
    settings = get_settings()
    configure_logging(verbose, settings.log_level)
    ctx.obj = CliState(
        config_path=(config or settings.config_path).expanduser(),
        git=settings.git_executable,
    )


@app.command()
def init(
    ctx: typer.Context,
    directory: Annotated[
        Path,
        typer.Argument(help="Directory to target (ex. ./my_project)."),
    ],
    repo_path: Annotated[
        str,
        typer.Argument(
            help="Repository path optionally including prefix (ex. gh:cpr-rs/cpp, cpr-rs/cpp).",
            callback=parse_repo_ref,
        ),
    ],
) -> None:
    """Initialize a directory with a template."""
    state: CliState = ctx.obj
    with reporting_errors():
        config = _load_config(state)
        result = pipeline.generate(
            repo_path,
            directory,
            config=config,
            prompter=TerminalPrompter(),
            git=state.git,
        )
    typer.secho(
        f"Initialized {result.target} ({len(result.written)} path(s) written)",
        fg=typer.colors.GREEN,
    )


@app.command()
def new(
    ctx: typer.Context,
    repo_path: Annotated[
        str,
        typer.Argument(
            help="Repository path optionally including prefix (ex. gh:cpr-rs/cpp, cpr-rs/cpp).",
            callback=parse_repo_ref,
        ),
    ],
    name: Annotated[
        Optional[str],
        typer.Argument(help="Project directory name (default: the repository name)."),
    ] = None,
) -> None:
    """Create a new project with a template."""
    state: CliState = ctx.obj
    with reporting_errors():
        config = _load_config(state)
        dir_name = name if name is not None else project_dir_name(repo_path, config)
        target = Path.cwd() / parse_dir_name(dir_name)
        existed = target.exists()
        try:
            result = pipeline.generate(
                repo_path,
                target,
                config=config,
                prompter=TerminalPrompter(),
                create=True,
                git=state.git,
            )
        except CprError:
            if not existed and target.exists():
                logger.info("Removing partially generated project %s", target)
                shutil.rmtree(target)
            raise
    typer.secho(
        f"Created {result.target} ({len(result.written)} path(s) written)",
        fg=typer.colors.GREEN,
    )


@services_app.command("add")
def services_add(
    ctx: typer.Context,
    prefix: Annotated[
        str, typer.Argument(help="Prefix for the service (ex. gh).", callback=parse_prefix)
    ],
    url: Annotated[
        str,
        typer.Argument(
            help="URL format for the git server (ex. https://github.com/{{ repo }}.git). "
            "The `{{ repo }}` placeholder is replaced with the repository path."
        ),
    ],
) -> None:
    """Add a new service."""
    state: CliState = ctx.obj
    with reporting_errors():
        config = _load_config(state).add_service(prefix, url)
        write_config(state.config_path, config)
    typer.echo(f"Added service `{prefix}`")


@services_app.command("remove")
def services_remove(
    ctx: typer.Context,
    prefix: Annotated[str, typer.Argument(help="Prefix for the service (ex. gh).")],
) -> None:
    """Remove a service."""
    state: CliState = ctx.obj
    with reporting_errors():
        config = _load_config(state).remove_service(prefix)
        write_config(state.config_path, config)
    typer.echo(f"Removed service `{prefix}`")


@services_app.command("list")
def services_list(ctx: typer.Context) -> None:
    """List available services."""
    state: CliState = ctx.obj
    with reporting_errors():
        config = _load_config(state)
    for prefix, base_url in sorted(config.services.items()):
        marker = " (default)" if prefix == config.default_service else ""
        typer.echo(f"`{prefix}`: {base_url.url}{marker}")


@services_app.command("default")
def services_default(
    ctx: typer.Context,
    prefix: Annotated[
        Optional[str],
        typer.Argument(help="Prefix for the service (ex. gh); prompts when omitted."),
    ] = None,
) -> None:
    """Set the default service, used when a reference has no prefix."""
    state: CliState = ctx.obj
    with reporting_errors():
        config = _load_config(state)
        if prefix is None:
            question = QuestionSpec(
                name="service",
                prompt="Select the default service",
                kind=QuestionKind.CHOICE,
                choices=tuple(sorted(config.services)),
                default=config.default_service,
            )
            prefix = str(ask_one(question, TerminalPrompter()))
        config = config.set_default_service(prefix)
        write_config(state.config_path, config)
    typer.echo(f"Default service set to `{prefix}`")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
