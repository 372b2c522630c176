"""Obtain a disposable local copy of a template source."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
)

from ..core.errors import FetchError, FetchFailure
from ..core.models import FetchedTemplate

logger = logging.getLogger(__name__)

CLONE_ATTEMPTS = 2

_NOT_FOUND_MARKERS = (
    "repository not found",
    "does not exist",
    "not found",
    "could not read username",
    "does not appear to be a git repository",
)
_AUTH_MARKERS = (
    "authentication failed",
    "permission denied",
    "invalid username or password",
    "access denied",
)
_NETWORK_MARKERS = (
    "could not resolve host",
    "connection timed out",
    "connection refused",
    "network is unreachable",
    "early eof",
    "the remote end hung up",
    "operation timed out",
    "failed to connect",
)


def run_git(cmd: Iterable[str]) -> subprocess.CompletedProcess[str]:
    """Run git without terminal prompts; raises CalledProcessError on failure."""
    env = dict(os.environ)
    env["GIT_TERMINAL_PROMPT"] = "0"
    return subprocess.run(
        list(cmd),
        capture_output=True,
        text=True,
        check=True,
        env=env,
    )


def classify_git_error(message: str) -> FetchFailure:
    lowered = message.lower()
    # Network markers first: "not found" also appears in some DNS failures.
    if any(marker in lowered for marker in _NETWORK_MARKERS):
        return FetchFailure.NETWORK_FAILURE
    if any(marker in lowered for marker in _AUTH_MARKERS):
        return FetchFailure.AUTH_REQUIRED
    if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
        return FetchFailure.NOT_FOUND
    return FetchFailure.OTHER


def _is_network_failure(exc: BaseException) -> bool:
    return isinstance(exc, FetchError) and exc.reason is FetchFailure.NETWORK_FAILURE


def _log_clone_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        "git clone: retrying after network failure (attempt %d/%d)",
        retry_state.attempt_number,
        CLONE_ATTEMPTS,
    )


@retry(
    reraise=True,
    retry=retry_if_exception(_is_network_failure),
    stop=stop_after_attempt(CLONE_ATTEMPTS),
    before_sleep=_log_clone_retry,
)
def clone(url: str, dest: Path, *, git: str = "git") -> Path:
    """Shallow-clone ``url`` into ``dest`` (replaced if a previous attempt left it)."""
    if dest.exists():
        shutil.rmtree(dest)
    logger.debug("cloning %s into %s", url, dest)
    try:
        run_git([git, "clone", "--depth", "1", "--quiet", url, str(dest)])
    except FileNotFoundError as exc:
        raise FetchError(url, FetchFailure.OTHER, f"git executable not found: {git}") from exc
    except subprocess.CalledProcessError as exc:
        message = ((exc.stderr or "") + (exc.output or "")).strip()
        reason = classify_git_error(message)
        raise FetchError(url, reason, message.splitlines()[-1] if message else "") from exc
    return dest


def copy_local(source: Path, dest: Path) -> Path:
    logger.debug("copying local template %s into %s", source, dest)
    if not source.is_dir():
        raise FetchError(str(source), FetchFailure.NOT_FOUND, "not a directory")
    try:
        shutil.copytree(
            source, dest, symlinks=True, ignore=shutil.ignore_patterns(".git")
        )
    except OSError as exc:
        raise FetchError(str(source), FetchFailure.OTHER, str(exc)) from exc
    return dest


@contextmanager
def fetch(
    location: str | Path,
    *,
    local: bool = False,
    scratch_root: Path | None = None,
    git: str = "git",
) -> Iterator[FetchedTemplate]:
    """Yield a scratch copy of the template at ``location``.

    ``local=True`` copies a directory instead of cloning. The scratch
    directory is removed when the block exits, whatever the outcome.
    """
    if scratch_root is not None:
        scratch_root.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(
        prefix="cpr-", dir=str(scratch_root) if scratch_root else None
    ) as scratch:
        dest = Path(scratch) / "template"
        if local:
            root = copy_local(Path(location), dest)
        else:
            root = clone(str(location), dest, git=git)
        logger.info("Fetched template %s", location)
        yield FetchedTemplate(root=root, source=str(location))
    logger.debug("removed scratch directory %s", scratch)
