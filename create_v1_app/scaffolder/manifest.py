"""Root manifest (``package.json``) workspace bookkeeping."""

from __future__ import annotations

from fnmatch import fnmatch
from pathlib import Path

from create_v1_app.config import MANIFEST_NAME
from create_v1_app.utils import load_json, print_debug, write_json


def register_workspace(project_dir: str | Path, workspace: str) -> bool:
    """Add *workspace* to the root manifest's ``workspaces`` list.

    Nothing changes when the manifest has no ``workspaces`` list (pnpm keeps
    them in ``pnpm-workspace.yaml``) or when an existing entry, glob
    patterns included, already covers *workspace*.

    Returns:
        ``True`` if the manifest was rewritten.

    Raises:
        OSError: If the manifest cannot be read or written.
        ValueError: If the manifest is not valid JSON.
    """
    manifest_path = Path(project_dir) / MANIFEST_NAME
    manifest = load_json(manifest_path)
    workspaces = manifest.get("workspaces")
    if not isinstance(workspaces, list):
        return False
    if any(isinstance(entry, str) and fnmatch(workspace, entry) for entry in workspaces):
        return False

    manifest["workspaces"] = [*workspaces, workspace]
    write_json(manifest, manifest_path)
    print_debug(f"Registered workspace {workspace} in {manifest_path}")
    return True


def unregister_workspace(project_dir: str | Path, workspace: str) -> bool:
    """Drop *workspace* from the root manifest's ``workspaces`` list.

    A missing or unparsable manifest is left alone.

    Returns:
        ``True`` if the manifest was rewritten.
    """
    manifest_path = Path(project_dir) / MANIFEST_NAME
    if not manifest_path.is_file():
        return False
    try:
        manifest = load_json(manifest_path)
    except ValueError:
        return False

    workspaces = manifest.get("workspaces")
    if not isinstance(workspaces, list) or workspace not in workspaces:
        return False

    manifest["workspaces"] = [w for w in workspaces if w != workspace]
    write_json(manifest, manifest_path)
    print_debug(f"Updated root {MANIFEST_NAME}")
    return True
