"""Workspace resolution.

A workspace pairs a template subtree with the destination subtree it is
materialized into.  Resolution is pure path computation: nothing here
touches the destination.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from create_v1_app.config import Service, parse_services
from create_v1_app.errors import ConfigError

# Conventional application and shared-package directories, in processing order.
BASE_WORKSPACES: tuple[tuple[str, str], ...] = (
    ("web", "apps/web"),
    ("api", "apps/api"),
    ("app", "apps/app"),
    ("ui", "packages/ui"),
    ("logger", "packages/logger"),
)

SERVICES_DIR = "services"
PACKAGES_DIR = "packages"


@dataclass(frozen=True)
class Workspace:
    """One unit of template materialization.

    The root workspace only materializes the immediate children of its
    source directory; nested directories belong to other workspaces.
    """

    name: str
    source_path: Path
    dest_path: Path
    is_root: bool = False


def service_dest_path(project_root: str | Path, service: Service | str) -> Path:
    """Destination directory of *service* inside a project."""
    return Path(project_root) / PACKAGES_DIR / str(service)


def resolve_workspaces(
    template_root: str | Path,
    project_root: str | Path,
    requested_services: Iterable[Service | str] = (),
) -> list[Workspace]:
    """Return the ordered workspaces for a new project.

    The root workspace comes first, followed by every conventional
    application/package directory present under *template_root*, followed by
    one workspace per requested service.

    Raises:
        ConfigError: If a service identifier is unknown or its template
            directory does not exist.
    """
    template_root = Path(template_root)
    project_root = Path(project_root)

    # Validate services before computing anything else.
    service_workspaces = resolve_service_workspaces(
        template_root, project_root, requested_services
    )

    workspaces = [
        Workspace(
            name="root",
            source_path=template_root,
            dest_path=project_root,
            is_root=True,
        )
    ]
    for name, relative in BASE_WORKSPACES:
        source = template_root / relative
        if source.is_dir():
            workspaces.append(
                Workspace(name=name, source_path=source, dest_path=project_root / relative)
            )

    workspaces.extend(service_workspaces)
    return workspaces


def resolve_service_workspaces(
    template_root: str | Path,
    project_root: str | Path,
    requested_services: Iterable[Service | str],
) -> list[Workspace]:
    """Return one workspace per requested service, in request order.

    Raises:
        ConfigError: If a service identifier is unknown or its template
            directory does not exist.
    """
    template_root = Path(template_root)
    workspaces: list[Workspace] = []
    for service in parse_services(requested_services):
        source = template_root / SERVICES_DIR / service.value
        if not source.is_dir():
            raise ConfigError(f"Service template not found for: {service.value}")
        workspaces.append(
            Workspace(
                name=service.value,
                source_path=source,
                dest_path=service_dest_path(project_root, service),
            )
        )
    return workspaces
