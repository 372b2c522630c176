"""Walk a template tree and materialize the rendered output tree."""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from ..core.errors import (
    InvalidEntryNameError,
    MaterializeIOError,
    PathCollisionError,
    TemplateRenderError,
)
from ..core.models import GenerationResult
from . import engine
from .io import atomic_write_bytes, atomic_write_text, is_binary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TreeEntry:
    """One template file or directory with its resolved output location."""

    source: Path
    rel: str
    output: Path

    @property
    def is_symlink(self) -> bool:
        return self.source.is_symlink()

    @property
    def is_dir(self) -> bool:
        return not self.is_symlink and self.source.is_dir()


class TreeWalker:
    """Materializes ``body_root`` into ``target`` against one render context.

    Entries are visited depth-first in lexicographic order of their template
    names using an explicit stack. A false condition in ``path_conditions``
    prunes the entry with its whole subtree.
    """

    def __init__(
        self,
        body_root: Path,
        target: Path,
        context: Mapping[str, Any],
        *,
        path_conditions: Mapping[str, str] | None = None,
        reserved: Iterable[str] = (),
    ) -> None:
        self.body_root = body_root
        self.target = target
        self.context = context
        self.path_conditions = dict(path_conditions or {})
        self.reserved = frozenset(reserved)
        self.written: list[Path] = []
        self.skipped: list[str] = []

    def run(self) -> GenerationResult:
        current: Path = self.target
        try:
            self.target.mkdir(parents=True, exist_ok=True)
            stack = list(reversed(self._children(self.body_root, "", self.target)))
            while stack:
                entry = stack.pop()
                current = entry.output
                if entry.is_symlink:
                    self._link(entry)
                elif entry.is_dir:
                    self._mkdir(entry)
                    stack.extend(reversed(self._children(entry.source, entry.rel, entry.output)))
                else:
                    self._write(entry)
        except TemplateRenderError as exc:
            exc.completed = tuple(self.written)
            raise
        except OSError as exc:
            error = MaterializeIOError(current, exc)
            error.completed = tuple(self.written)
            raise error from exc

        logger.info(
            "Rendered %d entr%s into %s (%d skipped)",
            len(self.written),
            "y" if len(self.written) == 1 else "ies",
            self.target,
            len(self.skipped),
        )
        return GenerationResult(
            target=self.target,
            written=tuple(self.written),
            skipped=tuple(self.skipped),
        )

    def _children(self, directory: Path, rel: str, out_dir: Path) -> list[TreeEntry]:
        """Resolve the included children of ``directory``.

        All sibling names are rendered and checked for collisions before any
        of them is written.
        """
        entries: list[TreeEntry] = []
        claimed: dict[str, str] = {}
        for source in sorted(directory.iterdir(), key=lambda p: p.name):
            name = source.name
            child_rel = f"{rel}/{name}" if rel else name
            if not rel and name in self.reserved:
                continue
            condition = self.path_conditions.get(child_rel)
            if condition is not None and not self._evaluate(condition, child_rel):
                logger.debug("Skipping %s (%s is false)", child_rel, condition)
                self.skipped.append(child_rel)
                continue
            rendered = self._render_name(name, child_rel)
            if not rendered:
                logger.debug("Skipping %s (name renders empty)", child_rel)
                self.skipped.append(child_rel)
                continue
            if rendered in claimed:
                raise PathCollisionError(out_dir / rendered, (claimed[rendered], child_rel))
            claimed[rendered] = child_rel
            entries.append(TreeEntry(source=source, rel=child_rel, output=out_dir / rendered))
        return entries

    def _evaluate(self, condition: str, rel: str) -> bool:
        try:
            return engine.evaluate_condition(condition, self.context)
        except TemplateRenderError as exc:
            exc.file = rel
            raise

    def _render_name(self, name: str, rel: str) -> str:
        if not engine.has_markup(name):
            return name
        try:
            rendered = engine.render(name, self.context).strip()
        except TemplateRenderError as exc:
            exc.file = rel
            raise
        if rendered in (".", "..") or "/" in rendered or os.sep in rendered:
            raise InvalidEntryNameError(rendered, rel)
        return rendered

    def _mkdir(self, entry: TreeEntry) -> None:
        if entry.output.exists() and not entry.output.is_dir():
            raise FileExistsError(f"not a directory: {entry.output}")
        entry.output.mkdir(exist_ok=True)
        self.written.append(entry.output)

    def _write(self, entry: TreeEntry) -> None:
        data = entry.source.read_bytes()
        mode = stat.S_IMODE(entry.source.stat().st_mode)
        if entry.output.exists():
            logger.warning("Overwriting existing file %s", entry.output)
        text = None if is_binary(data) else data.decode("utf-8")
        if text is None or not engine.has_markup(text):
            logger.debug("Copying %s -> %s", entry.rel, entry.output)
            atomic_write_bytes(entry.output, data, mode=mode)
        else:
            try:
                text = engine.render(text, self.context)
            except TemplateRenderError as exc:
                exc.file = entry.rel
                raise
            logger.debug("Rendered %s -> %s", entry.rel, entry.output)
            atomic_write_text(entry.output, text, mode=mode)
        self.written.append(entry.output)

    def _link(self, entry: TreeEntry) -> None:
        link_target = os.readlink(entry.source)
        if entry.output.is_symlink() or entry.output.exists():
            logger.warning("Replacing existing path %s with a symlink", entry.output)
            entry.output.unlink()
        entry.output.symlink_to(link_target)
        self.written.append(entry.output)


def materialize(
    body_root: Path,
    target: Path,
    context: Mapping[str, Any],
    *,
    path_conditions: Mapping[str, str] | None = None,
    reserved: Iterable[str] = (),
) -> GenerationResult:
    """Render every included entry under ``body_root`` into ``target``.

    Raises:
        TemplateRenderError: the first rendering or I/O failure; its
            ``completed`` attribute lists the outputs written before it
    """
    walker = TreeWalker(
        body_root,
        target,
        context,
        path_conditions=path_conditions,
        reserved=reserved,
    )
    return walker.run()
