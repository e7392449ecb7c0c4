"""create-v1-app scaffolder -- materializes monorepo workspaces from templates.

Quick usage::

    from create_v1_app.config import PackageManager, RenderContext
    from create_v1_app.scaffolder import Materializer, TemplateRenderer, resolve_workspaces

    renderer = TemplateRenderer()
    materializer = Materializer(renderer)
    context = RenderContext(project_name="acme", package_manager=PackageManager.PNPM)
    for workspace in resolve_workspaces(renderer.template_dir, "acme", ["email"]):
        materializer.materialize(workspace, context)
"""

from create_v1_app.scaffolder.cleanup import (
    CleanupManager,
    CleanupTask,
    RemoveDirectory,
    RemoveService,
)
from create_v1_app.scaffolder.materializer import Materializer
from create_v1_app.scaffolder.templates import TemplateRenderer
from create_v1_app.scaffolder.variants import VariantSelection, select_variant
from create_v1_app.scaffolder.workspace import (
    Workspace,
    resolve_service_workspaces,
    resolve_workspaces,
)

__all__ = [
    "CleanupManager",
    "CleanupTask",
    "Materializer",
    "RemoveDirectory",
    "RemoveService",
    "TemplateRenderer",
    "VariantSelection",
    "Workspace",
    "resolve_service_workspaces",
    "resolve_workspaces",
    "select_variant",
]
