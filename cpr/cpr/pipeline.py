"""Template resolution and rendering pipeline.

resolve -> fetch -> load manifest -> ask questions -> build context -> walk tree
"""

from __future__ import annotations

import logging
from pathlib import Path

from . import __version__
from .config.services import ServiceConfig, local_template_path, parse_template_ref, resolve
from .core.errors import MaterializeIOError, ProjectDirExistsError
from .core.models import GenerationResult
from .fetching.git import fetch
from .manifest import loader
from .questions.engine import Prompter, ask_all
from .rendering import context as render_context
from .rendering.walker import materialize

logger = logging.getLogger(__name__)


def resolve_location(raw_ref: str, config: ServiceConfig) -> tuple[str, bool]:
    """Return ``(location, is_local)`` for a user-supplied template reference."""
    local = local_template_path(raw_ref)
    if local is not None:
        logger.debug("Using local template directory %s", local)
        return str(local), True
    ref = parse_template_ref(raw_ref, config.default_service)
    return resolve(ref, config), False


def generate(
    raw_ref: str,
    target: Path,
    *,
    config: ServiceConfig,
    prompter: Prompter,
    scratch_root: Path | None = None,
    create: bool = False,
    git: str = "git",
) -> GenerationResult:
    """Generate a project from ``raw_ref`` into ``target``.

    With ``create=True`` the target must not exist yet. The scratch copy of
    the template is removed on every exit path.
    """
    if create and target.exists():
        raise ProjectDirExistsError(target)

    location, is_local = resolve_location(raw_ref, config)
    logger.info("Resolved %s -> %s", raw_ref, location)

    with fetch(location, local=is_local, scratch_root=scratch_root, git=git) as fetched:
        manifest, body_root = loader.load(fetched.root)

        builtin = render_context.builtin_vars(
            target_name=target.resolve().name,
            template=raw_ref,
            url=location,
            version=__version__,
        )
        render_context.check_names(manifest.questions, manifest.variables, builtin)
        scope = dict(builtin)
        scope.update(
            (key, render_context.freeze(value)) for key, value in manifest.variables.items()
        )
        answers = ask_all(manifest.questions, prompter, scope=scope)
        context = render_context.build(
            answers,
            builtin,
            questions=manifest.questions,
            variables=manifest.variables,
        )

        if create:
            try:
                target.mkdir(parents=True)
            except OSError as exc:
                raise MaterializeIOError(target, exc) from exc
        return materialize(
            body_root,
            target,
            context,
            path_conditions=manifest.path_conditions,
            reserved=loader.RESERVED_NAMES if body_root == fetched.root else (),
        )
