"""Shared pytest fixtures for the create-v1-app test suite.

Provides reusable fixtures for:
- Miniature template trees written into ``tmp_path``
- Render contexts for each package manager
- Renderers and materializers bound to those trees
- Mock subprocess helpers
"""

from __future__ import annotations

import json
import textwrap
from pathlib import Path
from typing import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from create_v1_app.config import DEFAULT_TEMPLATE_DIR, PackageManager, RenderContext
from create_v1_app.scaffolder.materializer import Materializer
from create_v1_app.scaffolder.templates import TemplateRenderer
from create_v1_app.utils import set_verbose


@pytest.fixture(autouse=True)
def _quiet_console():
    """Keep verbose output off between tests."""
    set_verbose(False)
    yield
    set_verbose(False)


# ---------------------------------------------------------------------------
# Template trees
# ---------------------------------------------------------------------------

ROOT_MANIFEST_BASE = textwrap.dedent("""\
    {
      "name": "{{ project_name }}",
      "packageManager": "{{ package_manager }}@1.0.0",
      "workspaces": ["apps/*", "packages/*"]
    }
""")

ROOT_MANIFEST_PNPM = textwrap.dedent("""\
    {
      "name": "{{ project_name }}",
      "packageManager": "pnpm@9.0.0"
    }
""")

ROOT_MANIFEST_BUN = textwrap.dedent("""\
    {
      "name": "{{ project_name }}",
      "packageManager": "bun@1.1.0",
      "workspaces": ["apps/*", "packages/*"],
      "trustedDependencies": []
    }
""")


def write_tree(root: Path, files: dict[str, str | bytes]) -> Path:
    """Write ``{relative_path: content}`` under *root* and return *root*."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def write_files() -> Callable[[Path, dict[str, str | bytes]], Path]:
    """Expose :func:`write_tree` to tests that build their own trees."""
    return write_tree


@pytest.fixture
def template_tree(tmp_path: Path) -> Path:
    """A small but complete template tree.

    Layout::

        package.json.base.j2 / .pnpm.j2 / .bun.j2
        pnpm-workspace.yaml.j2
        .npmrc.j2                   (blank unless pnpm)
        turbo.json                  (static)
        apps/web/package.json       (static; sub-workspace manifests are never templates)
        apps/web/src/page.tsx.j2
        apps/api/package.json
        packages/ui/package.json
        packages/ui/logo.png        (binary)
        services/email/package.json
        services/email/src/index.ts
        services/kv/package.json
    """
    root = tmp_path / "templates"
    return write_tree(
        root,
        {
            "package.json.base.j2": ROOT_MANIFEST_BASE,
            "package.json.pnpm.j2": ROOT_MANIFEST_PNPM,
            "package.json.bun.j2": ROOT_MANIFEST_BUN,
            "pnpm-workspace.yaml.j2": 'packages:\n  - "apps/*"\n  - "packages/*"\n',
            ".npmrc.j2": "{% if package_manager == 'pnpm' %}\nauto-install-peers=true\n{% endif %}\n",
            "turbo.json": '{"tasks": {}}\n',
            "apps/web/package.json": '{"name": "@v1/web"}\n',
            "apps/web/src/page.tsx.j2": (
                "{% if 'email' in services %}\n"
                'import { resend } from "@v1/email";\n'
                "{% endif %}\n"
                "export const title = \"{{ project_name }}\";\n"
            ),
            "apps/api/package.json": '{"name": "@v1/api"}\n',
            "packages/ui/package.json": '{"name": "@v1/ui"}\n',
            "packages/ui/logo.png": b"\x89PNG\r\n\x1a\n\x00\x01\x02\xff",
            "services/email/package.json": '{"name": "@v1/email"}\n',
            "services/email/src/index.ts": "export const resend = {};\n",
            "services/kv/package.json": '{"name": "@v1/kv"}\n',
        },
    )


@pytest.fixture
def bundled_template_dir() -> Path:
    """The template tree shipped with the package."""
    return DEFAULT_TEMPLATE_DIR


@pytest.fixture
def renderer(template_tree: Path) -> TemplateRenderer:
    return TemplateRenderer(template_tree)


@pytest.fixture
def materializer(renderer: TemplateRenderer) -> Materializer:
    return Materializer(renderer)


@pytest.fixture
def make_context() -> Callable[..., RenderContext]:
    """Factory for render contexts.

    Usage:
        def test_x(make_context):
            ctx = make_context(PackageManager.PNPM, services=("email",))
    """

    def factory(
        package_manager: PackageManager | str = PackageManager.NPM,
        project_name: str = "acme",
        services: tuple[str, ...] = (),
    ) -> RenderContext:
        return RenderContext(
            project_name=project_name,
            package_manager=PackageManager(str(package_manager)),
            services=services,
        )

    return factory


# ---------------------------------------------------------------------------
# Existing projects
# ---------------------------------------------------------------------------


@pytest.fixture
def existing_project(tmp_path: Path) -> Path:
    """An already generated npm project with a ``workspaces`` list."""
    project = tmp_path / "existing"
    project.mkdir()
    manifest = {
        "name": "existing",
        "private": True,
        "packageManager": "npm@10.8.2",
        "workspaces": ["apps/web", "packages/ui"],
    }
    (project / "package.json").write_text(json.dumps(manifest, indent=2) + "\n", encoding="utf-8")
    (project / "apps" / "web").mkdir(parents=True)
    (project / "packages" / "ui").mkdir(parents=True)
    return project


# ---------------------------------------------------------------------------
# Mock subprocess
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", return_value=proc):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.terminate = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory
