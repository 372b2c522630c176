"""CLI argument parsers and validators."""

from __future__ import annotations

from pathlib import Path

import typer

from ..config.services import ServiceConfig, local_template_path, parse_template_ref


def parse_repo_ref(value: str) -> str:
    """Validate a template reference argument (``prefix:owner/name`` or a path)."""
    text = value.strip()
    if not text or text.endswith(":"):
        raise typer.BadParameter(f"Expected prefix:owner/name, got: {value!r}")
    return text


def parse_prefix(value: str) -> str:
    prefix = value.strip()
    if not prefix or ":" in prefix or "/" in prefix:
        raise typer.BadParameter(f"Invalid service prefix: {value!r}")
    return prefix


def project_dir_name(raw_ref: str, config: ServiceConfig) -> str:
    """Default directory name for ``cpr new``: the template's repository name."""
    local = local_template_path(raw_ref)
    if local is not None:
        return local.name
    try:
        return parse_template_ref(raw_ref, config.default_service).project_name
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


def parse_dir_name(value: str) -> Path:
    name = value.strip()
    if not name or name in (".", "..") or "/" in name:
        raise typer.BadParameter(f"Invalid project directory name: {value!r}")
    return Path(name)
