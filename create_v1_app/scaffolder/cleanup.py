"""Compensating actions for partially generated projects.

Every component that is about to perform an undoable side effect records a
:data:`CleanupTask` first.  When a command fails or is interrupted the
driver runs the log once, best effort: a task that fails to undo is
reported and the remaining tasks still run.
"""

from __future__ import annotations

import os
import re
import shutil
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from create_v1_app.config import CleanupOrder
from create_v1_app.scaffolder.manifest import unregister_workspace
from create_v1_app.scaffolder.workspace import PACKAGES_DIR, service_dest_path
from create_v1_app.utils import print_debug, print_error

SOURCE_EXTENSIONS = frozenset({".ts", ".tsx", ".js", ".jsx"})

# Scope under which generated packages import each other.
PACKAGE_SCOPE = "@v1"


@dataclass(frozen=True)
class RemoveDirectory:
    """Remove a directory tree created by the generator.

    With ``keep_root`` only the contents go; the directory itself was
    there before the generator ran and survives.
    """

    path: Path
    keep_root: bool = False


@dataclass(frozen=True)
class RemoveService:
    """Undo adding a service: its package, workspace entry and imports."""

    project_dir: Path
    service_name: str


CleanupTask = Union[RemoveDirectory, RemoveService]


class CleanupManager:
    """Append-only log of compensating actions, consumed once by :meth:`run`.

    Tasks run newest first by default so children are removed before the
    directories that contain them.  ``CleanupOrder.FIFO`` replays them in
    recording order instead.
    """

    def __init__(self, order: CleanupOrder = CleanupOrder.LIFO) -> None:
        self.order = CleanupOrder(order)
        self._tasks: list[CleanupTask] = []
        self._lock = threading.Lock()
        self._consumed = False

    @property
    def tasks(self) -> tuple[CleanupTask, ...]:
        with self._lock:
            return tuple(self._tasks)

    def record(self, task: CleanupTask) -> None:
        """Append *task*; call this before performing the side effect."""
        with self._lock:
            if self._consumed:
                raise RuntimeError("Cleanup has already run; no further tasks can be recorded")
            self._tasks.append(task)

    def run(self) -> list[CleanupTask]:
        """Execute every recorded task once.

        Returns:
            The tasks that failed to execute.  A second call does nothing
            and returns an empty list.
        """
        with self._lock:
            if self._consumed:
                return []
            self._consumed = True
            tasks = list(self._tasks)

        if self.order is CleanupOrder.LIFO:
            tasks.reverse()

        print_debug("Starting cleanup...")
        failed: list[CleanupTask] = []
        for task in tasks:
            try:
                _execute(task)
            except (OSError, ValueError) as exc:
                failed.append(task)
                print_error(f"Cleanup step failed ({_describe(task)}): {exc}")
        print_debug("Cleanup completed.")
        return failed


# ---------------------------------------------------------------------------
# Task execution
# ---------------------------------------------------------------------------


def _execute(task: CleanupTask) -> None:
    if isinstance(task, RemoveDirectory):
        _remove_directory(task.path, keep_root=task.keep_root)
    elif isinstance(task, RemoveService):
        remove_service(task.project_dir, task.service_name)
    else:
        raise TypeError(f"Unknown cleanup task: {task!r}")


def _describe(task: CleanupTask) -> str:
    if isinstance(task, RemoveDirectory):
        action = "clear" if task.keep_root else "remove"
        return f"{action} directory {task.path}"
    return f"remove service {task.service_name} from {task.project_dir}"


def _remove_directory(path: Path, keep_root: bool = False) -> None:
    if not path.exists():
        return
    if not keep_root:
        shutil.rmtree(path)
        print_debug(f"Removed directory: {path}")
        return
    for entry in sorted(path.iterdir()):
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
    print_debug(f"Cleared directory: {path}")


def remove_service(project_dir: str | Path, service_name: str) -> None:
    """Remove every trace of *service_name* from a project.

    Deletes ``packages/<service>``, drops it from the root manifest's
    ``workspaces`` list and strips ``@v1/<service>`` imports from JS/TS
    sources.  Missing pieces are skipped silently.

    Raises:
        OSError: If a file or directory cannot be removed or rewritten.
    """
    project_dir = Path(project_dir)
    print_debug(f"Removing service {service_name} from {project_dir}")

    _remove_directory(service_dest_path(project_dir, service_name))
    unregister_workspace(project_dir, f"{PACKAGES_DIR}/{service_name}")
    remove_service_references(project_dir, service_name)


def remove_service_references(project_dir: Path, service_name: str) -> list[Path]:
    """Strip lines importing ``@v1/<service>`` from generated sources.

    Returns:
        The files that were rewritten.
    """
    module = re.escape(f"{PACKAGE_SCOPE}/{service_name}")
    target = rf"[\"']{module}(?:/[^\"']*)?[\"']"
    import_line = re.compile(rf"^[ \t]*import\b[^\n]*?(?:from\s+)?{target}[^\n]*\n?", re.M)

    updated: list[Path] = []
    for path in _iter_sources(project_dir):
        try:
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            continue
        new_content = import_line.sub("", content)
        if new_content != content:
            path.write_text(new_content, encoding="utf-8")
            updated.append(path)
            print_debug(f"Updated file: {path}")
    return updated


def _iter_sources(project_dir: Path) -> list[Path]:
    """JS/TS source files under *project_dir*, skipping ``node_modules``."""
    sources: list[Path] = []
    for root, dirnames, filenames in os.walk(project_dir):
        dirnames[:] = sorted(d for d in dirnames if d != "node_modules")
        for filename in sorted(filenames):
            path = Path(root) / filename
            if path.suffix in SOURCE_EXTENSIONS:
                sources.append(path)
    return sources
