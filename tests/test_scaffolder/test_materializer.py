"""Tests for workspace materialization.

Covers:
- Root workspace depth limit (immediate children only)
- Variant selection end to end for every package manager
- Byte-for-byte copies of static files
- Empty-render suppression
- Determinism
- Error mapping (FilesystemError / RenderError)
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from create_v1_app.config import PackageManager
from create_v1_app.errors import FilesystemError, RenderError
from create_v1_app.scaffolder.materializer import Materializer
from create_v1_app.scaffolder.templates import TemplateRenderer
from create_v1_app.scaffolder.workspace import Workspace, resolve_workspaces

pytestmark = pytest.mark.unit


def _root(template_tree: Path, project: Path) -> Workspace:
    return Workspace(name="root", source_path=template_tree, dest_path=project, is_root=True)


def _tree(root: Path) -> dict[str, bytes]:
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


# ---------------------------------------------------------------------------
# Root workspace
# ---------------------------------------------------------------------------


class TestRootWorkspace:
    def test_depth_limit(self, materializer: Materializer, template_tree: Path, tmp_path: Path,
                         make_context):
        project = tmp_path / "acme"
        materializer.materialize(_root(template_tree, project), make_context())

        children = sorted(p.name for p in project.iterdir())
        assert children == ["package.json", "turbo.json"]
        assert not (project / "apps").exists()
        assert not (project / "services").exists()

    @pytest.mark.parametrize(
        "manager,package_manager_field",
        [
            (PackageManager.NPM, "npm@1.0.0"),
            (PackageManager.YARN, "yarn@1.0.0"),
            (PackageManager.PNPM, "pnpm@9.0.0"),
            (PackageManager.BUN, "bun@1.1.0"),
        ],
    )
    def test_exactly_one_manifest(self, materializer: Materializer, template_tree: Path,
                                  tmp_path: Path, make_context, manager, package_manager_field):
        project = tmp_path / "acme"
        materializer.materialize(_root(template_tree, project), make_context(manager))

        manifests = [p.name for p in project.iterdir() if p.name.startswith("package.json")]
        assert manifests == ["package.json"]
        data = json.loads((project / "package.json").read_text(encoding="utf-8"))
        assert data["packageManager"] == package_manager_field
        assert data["name"] == "acme"

    def test_pnpm_only_files(self, materializer: Materializer, template_tree: Path,
                             tmp_path: Path, make_context):
        npm_project = tmp_path / "npm"
        pnpm_project = tmp_path / "pnpm"
        materializer.materialize(_root(template_tree, npm_project), make_context("npm"))
        materializer.materialize(_root(template_tree, pnpm_project), make_context("pnpm"))

        assert not (npm_project / "pnpm-workspace.yaml").exists()
        assert (pnpm_project / "pnpm-workspace.yaml").is_file()
        # .npmrc.j2 renders blank for npm, so nothing is written.
        assert not (npm_project / ".npmrc").exists()
        assert (pnpm_project / ".npmrc").read_text(encoding="utf-8") == "auto-install-peers=true\n"

    def test_returns_written_paths(self, materializer: Materializer, template_tree: Path,
                                   tmp_path: Path, make_context):
        project = tmp_path / "acme"
        written = materializer.materialize(_root(template_tree, project), make_context("pnpm"))
        assert sorted(p.name for p in written) == sorted(p.name for p in project.iterdir())


# ---------------------------------------------------------------------------
# Sub-workspaces
# ---------------------------------------------------------------------------


class TestSubWorkspace:
    def test_full_subtree(self, materializer: Materializer, template_tree: Path,
                          tmp_path: Path, make_context):
        dest = tmp_path / "acme" / "apps" / "web"
        workspace = Workspace(name="web", source_path=template_tree / "apps" / "web", dest_path=dest)
        materializer.materialize(workspace, make_context(services=("email",)))

        assert json.loads((dest / "package.json").read_text(encoding="utf-8")) == {"name": "@v1/web"}
        page = (dest / "src" / "page.tsx").read_text(encoding="utf-8")
        assert 'import { resend } from "@v1/email";' in page
        assert not (dest / "src" / "page.tsx.j2").exists()

    def test_conditional_content(self, materializer: Materializer, template_tree: Path,
                                 tmp_path: Path, make_context):
        dest = tmp_path / "web"
        workspace = Workspace(name="web", source_path=template_tree / "apps" / "web", dest_path=dest)
        materializer.materialize(workspace, make_context())
        assert "@v1/email" not in (dest / "src" / "page.tsx").read_text(encoding="utf-8")

    def test_binary_copied_byte_for_byte(self, materializer: Materializer, template_tree: Path,
                                         tmp_path: Path, make_context):
        dest = tmp_path / "ui"
        workspace = Workspace(name="ui", source_path=template_tree / "packages" / "ui", dest_path=dest)
        materializer.materialize(workspace, make_context())
        assert (dest / "logo.png").read_bytes() == (template_tree / "packages" / "ui" / "logo.png").read_bytes()

    def test_tagged_manifest_not_written_outside_root(self, tmp_path: Path, write_files,
                                                      make_context):
        root = write_files(tmp_path / "t", {
            "pkg/package.json.base.j2": '{"name": "base"}\n',
            "pkg/package.json.pnpm.j2": '{"name": "pnpm"}\n',
            "pkg/index.ts": "export {};\n",
        })
        dest = tmp_path / "out"
        workspace = Workspace(name="pkg", source_path=root / "pkg", dest_path=dest)
        Materializer(TemplateRenderer(root)).materialize(workspace, make_context("pnpm"))
        assert sorted(p.name for p in dest.iterdir()) == ["index.ts"]

    def test_untagged_manifest_not_rendered_outside_root(self, tmp_path: Path, write_files,
                                                         make_context):
        root = write_files(tmp_path / "t", {
            "pkg/package.json.j2": '{"name": "{{ project_name }}"}\n',
            "pkg/index.ts": "export {};\n",
        })
        dest = tmp_path / "out"
        workspace = Workspace(name="pkg", source_path=root / "pkg", dest_path=dest)
        Materializer(TemplateRenderer(root)).materialize(workspace, make_context("npm"))
        assert sorted(p.name for p in dest.iterdir()) == ["index.ts"]

    def test_static_manifest_copied_outside_root(self, tmp_path: Path, write_files,
                                                 make_context):
        root = write_files(tmp_path / "t", {
            "pkg/package.json": '{"name": "@v1/pkg"}\n',
        })
        dest = tmp_path / "out"
        workspace = Workspace(name="pkg", source_path=root / "pkg", dest_path=dest)
        Materializer(TemplateRenderer(root)).materialize(workspace, make_context("bun"))
        assert (dest / "package.json").read_text(encoding="utf-8") == '{"name": "@v1/pkg"}\n'

    def test_existing_files_overwritten(self, materializer: Materializer, template_tree: Path,
                                        tmp_path: Path, make_context):
        dest = tmp_path / "api"
        dest.mkdir()
        (dest / "package.json").write_text("stale", encoding="utf-8")
        workspace = Workspace(name="api", source_path=template_tree / "apps" / "api", dest_path=dest)
        materializer.materialize(workspace, make_context())
        assert (dest / "package.json").read_text(encoding="utf-8") == '{"name": "@v1/api"}\n'


# ---------------------------------------------------------------------------
# Determinism
# ---------------------------------------------------------------------------


class TestDeterminism:
    @pytest.mark.parametrize("manager", list(PackageManager))
    def test_same_input_same_output(self, materializer: Materializer, template_tree: Path,
                                    tmp_path: Path, make_context, manager):
        context = make_context(manager, services=("email", "kv"))
        trees = []
        for run in ("first", "second"):
            project = tmp_path / run / "acme"
            for workspace in resolve_workspaces(template_tree, project, ["email", "kv"]):
                materializer.materialize(workspace, context)
            trees.append(_tree(project))
        assert trees[0] == trees[1]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    def test_missing_source(self, materializer: Materializer, template_tree: Path,
                            tmp_path: Path, make_context):
        workspace = Workspace(name="ghost", source_path=template_tree / "ghost", dest_path=tmp_path / "x")
        with pytest.raises(FilesystemError, match="Template source directory not found"):
            materializer.materialize(workspace, make_context())

    def test_render_failure(self, tmp_path: Path, write_files, make_context):
        root = write_files(tmp_path / "t", {"svc/index.ts.j2": "{{ missing_variable }}"})
        workspace = Workspace(name="svc", source_path=root / "svc", dest_path=tmp_path / "out")
        with pytest.raises(RenderError, match="svc/index.ts.j2"):
            Materializer(TemplateRenderer(root)).materialize(workspace, make_context())

    def test_unwritable_destination(self, materializer: Materializer, template_tree: Path,
                                    tmp_path: Path, make_context):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory", encoding="utf-8")
        workspace = Workspace(
            name="api", source_path=template_tree / "apps" / "api", dest_path=blocker / "api"
        )
        with pytest.raises(FilesystemError):
            materializer.materialize(workspace, make_context())
