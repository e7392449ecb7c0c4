"""Top-level create-v1-app commands.

:class:`V1App` drives the two commands the tool offers:

``create``        -- resolve workspaces, materialize them one by one, then
                     install dependencies concurrently.
``add_services``  -- materialize service workspaces into an existing project.

Both record compensating actions in a :class:`CleanupManager` before every
undoable side effect.  :func:`execute` runs a command to completion and,
when it fails or is interrupted, runs that log and maps the failure to an
exit status.
"""

from __future__ import annotations

import asyncio
import time
import traceback
from pathlib import Path
from typing import Any, Coroutine, Iterable

from rich.panel import Panel

from create_v1_app.config import (
    GeneratorConfig,
    PackageManager,
    RenderContext,
    Service,
    load_manifest,
    parse_package_manager,
    parse_services,
)
from create_v1_app.errors import AggregateInstallError, ConfigError, FilesystemError, V1AppError
from create_v1_app.installer import ConcurrentInstaller, InstallOutcome
from create_v1_app.scaffolder.cleanup import CleanupManager, RemoveDirectory, RemoveService
from create_v1_app.scaffolder.manifest import register_workspace
from create_v1_app.scaffolder.materializer import Materializer
from create_v1_app.scaffolder.templates import TemplateRenderer
from create_v1_app.scaffolder.workspace import (
    PACKAGES_DIR,
    Workspace,
    resolve_service_workspaces,
    resolve_workspaces,
    service_dest_path,
)
from create_v1_app.utils import (
    console,
    format_duration,
    is_verbose,
    print_error,
    print_step,
    print_success,
    print_warning,
)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


class V1App:
    """Generator front end shared by the CLI and programmatic callers.

    Attributes:
        config: Generator configuration.
        cleanup: Compensating-action log for this invocation.
        installer: Runner for the post-generation install phase.
    """

    def __init__(
        self,
        config: GeneratorConfig | None = None,
        cleanup: CleanupManager | None = None,
        installer: ConcurrentInstaller | None = None,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.config = config or GeneratorConfig()
        self.cleanup = cleanup or CleanupManager(self.config.cleanup_order)
        self.installer = installer or ConcurrentInstaller(
            max_concurrency=self.config.max_parallel_installs,
            timeout=self.config.install_timeout,
        )
        self._renderer = renderer
        self._materializer: Materializer | None = None

    @property
    def renderer(self) -> TemplateRenderer:
        """Template registry, built on first use and shared afterwards."""
        if self._renderer is None:
            self._renderer = TemplateRenderer(self.config.template_dir)
        return self._renderer

    @property
    def materializer(self) -> Materializer:
        if self._materializer is None:
            self._materializer = Materializer(self.renderer)
        return self._materializer

    # ------------------------------------------------------------------
    # create
    # ------------------------------------------------------------------

    async def create(
        self,
        name: str | Path,
        services: Iterable[Service | str] = (),
        package_manager: PackageManager | str | None = None,
        install: bool | None = None,
    ) -> Path:
        """Generate a new project at *name*.

        Args:
            name: Project directory; its final component is the project name.
            services: Optional services to add under ``packages/``.
            package_manager: Target package manager (config default if omitted).
            install: Run the install phase (config default if omitted).

        Returns:
            The project root.

        Raises:
            ConfigError: Invalid input or a non-empty destination.
            RenderError: A template failed to evaluate.
            FilesystemError: Writing the tree failed.
            AggregateInstallError: The tree was generated but at least one
                workspace failed to install.
        """
        start = time.monotonic()
        manager = parse_package_manager(package_manager or self.config.default_package_manager)
        requested = parse_services(services)
        install = self.config.install if install is None else install

        project_root = Path(name)
        project_name = project_root.name
        if not project_name or project_name in {".", ".."}:
            raise ConfigError(f"Invalid project name: '{name}'")
        if project_root.exists() and (not project_root.is_dir() or any(project_root.iterdir())):
            raise ConfigError(f"Destination already exists and is not empty: {project_root}")

        # Pure resolution first: bad input fails before anything is written.
        workspaces = resolve_workspaces(self.renderer.template_dir, project_root, requested)
        context = RenderContext(
            project_name=project_name,
            package_manager=manager,
            services=tuple(s.value for s in requested),
        )

        console.print(f"Using package manager: [bold]{manager.value}[/bold]")

        # An empty directory that was already there is emptied, never removed.
        self.cleanup.record(RemoveDirectory(project_root, keep_root=project_root.exists()))
        try:
            project_root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FilesystemError(project_root, f"Failed to create project directory ({exc})") from exc

        total_steps = len(workspaces) + (1 if install else 0)
        for step, workspace in enumerate(workspaces, start=1):
            if workspace.name in context.services:
                self.cleanup.record(RemoveService(project_root, workspace.name))
            print_step(step, total_steps, f"Processing workspace: {workspace.name}")
            await asyncio.to_thread(self.materializer.materialize, workspace, context)

        if install:
            print_step(total_steps, total_steps, "Installing dependencies...")
            await self.installer.install_all(workspaces, manager)

        print_success(
            f"V1 app created successfully in {project_root} "
            f"({format_duration(time.monotonic() - start)})"
        )
        return project_root

    # ------------------------------------------------------------------
    # add service
    # ------------------------------------------------------------------

    async def add_services(
        self,
        project_dir: str | Path,
        services: Iterable[Service | str],
        install: bool | None = None,
    ) -> list[Workspace]:
        """Add services to the existing project in *project_dir*.

        The project's ``package.json`` supplies the project name and the
        package manager.  Each service is registered in the manifest's
        ``workspaces`` list (when it keeps one) and materialized into
        ``packages/<service>``.

        Returns:
            The service workspaces that were added.

        Raises:
            ConfigError: Missing/malformed manifest, unknown service, or a
                service that is already present.
            RenderError: A template failed to evaluate.
            FilesystemError: Writing the tree failed.
            AggregateInstallError: At least one service failed to install.
        """
        project_dir = Path(project_dir)
        manifest = load_manifest(project_dir)
        manager = manifest.manager
        requested = parse_services(services)
        install = self.config.install if install is None else install
        if not requested:
            raise ConfigError("No services requested")

        for service in requested:
            if service_dest_path(project_dir, service).exists():
                raise ConfigError(f"Service {service.value} already exists in {project_dir}")

        workspaces = resolve_service_workspaces(self.renderer.template_dir, project_dir, requested)
        context = RenderContext(
            project_name=manifest.name,
            package_manager=manager,
            services=tuple(s.value for s in requested),
        )

        for workspace in workspaces:
            self.cleanup.record(RemoveService(project_dir, workspace.name))
            console.print(f"Adding service: [bold]{workspace.name}[/bold]")
            try:
                register_workspace(project_dir, f"{PACKAGES_DIR}/{workspace.name}")
            except OSError as exc:
                raise FilesystemError(project_dir / "package.json", f"Failed to update ({exc})") from exc
            except ValueError as exc:
                raise ConfigError(f"Malformed package.json in {project_dir}: {exc}") from exc
            await asyncio.to_thread(self.materializer.materialize, workspace, context)

        if install:
            console.print("Installing dependencies...")
            await self.installer.install_all(workspaces, manager)

        print_success(f"Added {', '.join(ws.name for ws in workspaces)} to {manifest.name}")
        return workspaces


# ---------------------------------------------------------------------------
# Execution with cleanup
# ---------------------------------------------------------------------------


def execute(command: Coroutine[Any, Any, Any], cleanup: CleanupManager) -> int:
    """Run *command* to completion and return the process exit status.

    Fatal errors and interrupts run the cleanup log before returning.
    Install failures leave the generated tree in place and report one line
    per failed workspace.
    """
    try:
        asyncio.run(command)
    except (KeyboardInterrupt, asyncio.CancelledError):
        print_warning("Interrupted -- rolling back changes...")
        cleanup.run()
        return EXIT_INTERRUPTED
    except AggregateInstallError as exc:
        report_install_failures(exc.outcomes)
        print_error(str(exc))
        return EXIT_FAILURE
    except V1AppError as exc:
        print_error(f"Error: {exc}")
        cleanup.run()
        return EXIT_FAILURE
    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        console.print(f"[dim]{traceback.format_exc()}[/dim]")
        cleanup.run()
        return EXIT_FAILURE
    return EXIT_OK


def report_install_failures(outcomes: Iterable[InstallOutcome]) -> None:
    """Print one line per failed install; full output only when verbose."""
    for outcome in outcomes:
        if outcome.success:
            continue
        summary = outcome.detail.splitlines()[0] if outcome.detail else "unknown error"
        print_error(f"Installation failed in {outcome.workspace_path}: {summary}")
        if is_verbose() and outcome.detail:
            console.print(Panel(outcome.detail, title=str(outcome.workspace_path), border_style="red"))
