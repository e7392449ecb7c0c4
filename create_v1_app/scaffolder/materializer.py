"""Workspace materialization.

Turns one :class:`~create_v1_app.scaffolder.workspace.Workspace` plus a
render context into files on disk: templates are routed through the variant
selector and rendered, everything else is copied byte for byte.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from create_v1_app.config import RenderContext
from create_v1_app.errors import FilesystemError
from create_v1_app.scaffolder.templates import TemplateRenderer
from create_v1_app.scaffolder.variants import (
    VariantSelection,
    group_templates,
    is_blank,
    is_template,
    select_variant,
)
from create_v1_app.scaffolder.workspace import Workspace
from create_v1_app.utils import print_debug


class Materializer:
    """Materializes workspaces from a shared :class:`TemplateRenderer`.

    Files are processed in sorted order, so the same tree and context always
    produce the same output.  Any I/O or render failure is raised and aborts
    the workspace; nothing already written is rolled back here, that is the
    job of the cleanup log.
    """

    def __init__(self, renderer: TemplateRenderer) -> None:
        self.renderer = renderer

    def materialize(self, workspace: Workspace, context: RenderContext) -> list[Path]:
        """Materialize *workspace* and return the paths written.

        Raises:
            FilesystemError: A source could not be read or a destination
                could not be created, written or copied.
            RenderError: A selected template failed to evaluate.
        """
        print_debug(f"Processing workspace: {workspace.name}")

        by_dir: dict[Path, list[str]] = {}
        for relative in self._source_files(workspace):
            by_dir.setdefault(relative.parent, []).append(relative.name)

        written: list[Path] = []
        for rel_dir in sorted(by_dir):
            names = sorted(by_dir[rel_dir])

            for name in names:
                if not is_template(name):
                    written.append(self._copy(workspace, rel_dir / name))

            for logical_name, candidates in group_templates(names).items():
                selection = select_variant(
                    candidates, context.package_manager, workspace.is_root
                )
                if selection is None:
                    print_debug(f"Skipping template group: {rel_dir / logical_name}")
                    continue
                output = self._render(workspace, rel_dir, selection, context)
                if output is not None:
                    written.append(output)

        return written

    # -- Internals ----------------------------------------------------------

    def _source_files(self, workspace: Workspace) -> list[Path]:
        """Relative paths of every file the workspace owns.

        The root workspace owns only its immediate children; every other
        workspace owns its whole subtree.
        """
        source = workspace.source_path
        if not source.is_dir():
            raise FilesystemError(source, "Template source directory not found")
        try:
            if workspace.is_root:
                files = [p for p in source.iterdir() if p.is_file()]
            else:
                files = [p for p in source.rglob("*") if p.is_file()]
        except OSError as exc:
            raise FilesystemError(source, f"Failed to read directory ({exc})") from exc
        return sorted(p.relative_to(source) for p in files)

    def _render(
        self,
        workspace: Workspace,
        rel_dir: Path,
        selection: VariantSelection,
        context: RenderContext,
    ) -> Path | None:
        template_path = workspace.source_path / rel_dir / selection.chosen_name
        template_name = self.renderer.template_name_for(template_path)
        rendered = self.renderer.render(template_name, context)

        # Templates suppress themselves by rendering nothing.
        if is_blank(rendered):
            print_debug(f"Skipping empty template: {template_name}")
            return None

        dest = workspace.dest_path / rel_dir / selection.destination_name
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_text(rendered, encoding="utf-8")
        except OSError as exc:
            raise FilesystemError(dest, f"Failed to write file ({exc})") from exc

        print_debug(f"Rendered template: {template_name} -> {dest}")
        return dest

    def _copy(self, workspace: Workspace, relative: Path) -> Path:
        source = workspace.source_path / relative
        dest = workspace.dest_path / relative
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy(source, dest)
        except OSError as exc:
            raise FilesystemError(dest, f"Failed to copy file from {source} ({exc})") from exc

        print_debug(f"Copied file: {source} -> {dest}")
        return dest
