"""create-v1-app configuration and input models.

Typed configuration for the generator plus the small value types that flow
through it: supported package managers, optional services, the render
context handed to every template and the project manifest read back from an
existing project.  All models use Pydantic v2 so they validate at
construction time.
"""

from __future__ import annotations

import json
import os
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from create_v1_app.errors import ConfigError
from create_v1_app.utils import load_json

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

MANIFEST_NAME = "package.json"


class PackageManager(str, Enum):
    """Package managers a generated project can target."""

    NPM = "npm"
    YARN = "yarn"
    PNPM = "pnpm"
    BUN = "bun"

    def __str__(self) -> str:
        return self.value


class Service(str, Enum):
    """Optional service bundles materialized into ``packages/<service>``."""

    ANALYTICS = "analytics"
    EMAIL = "email"
    JOBS = "jobs"
    KV = "kv"
    MONITORING = "monitoring"

    def __str__(self) -> str:
        return self.value

    @property
    def description(self) -> str:
        return SERVICE_DESCRIPTIONS[self]


SERVICE_DESCRIPTIONS: dict[Service, str] = {
    Service.ANALYTICS: "Product analytics with OpenPanel",
    Service.EMAIL: "Transactional email with React Email and Resend",
    Service.JOBS: "Background jobs with Trigger.dev",
    Service.KV: "Key-value store and rate limiting with Upstash",
    Service.MONITORING: "Error monitoring with Sentry",
}


class CleanupOrder(str, Enum):
    """Order in which recorded compensating actions are executed."""

    LIFO = "lifo"
    FIFO = "fifo"


def parse_package_manager(value: str | PackageManager) -> PackageManager:
    """Validate a package manager name.

    Raises:
        ConfigError: If *value* is not a supported package manager.
    """
    try:
        return PackageManager(str(value).strip().lower())
    except ValueError:
        supported = ", ".join(pm.value for pm in PackageManager)
        raise ConfigError(
            f"Unsupported package manager '{value}' (expected one of: {supported})"
        ) from None


def parse_services(values: Iterable[str | Service]) -> list[Service]:
    """Validate service identifiers, keeping request order and dropping repeats.

    Raises:
        ConfigError: On the first unknown identifier.
    """
    services: list[Service] = []
    for value in values:
        name = str(value).strip().lower()
        if not name:
            continue
        try:
            service = Service(name)
        except ValueError:
            known = ", ".join(s.value for s in Service)
            raise ConfigError(
                f"Unknown service '{value}' (expected one of: {known})"
            ) from None
        if service not in services:
            services.append(service)
    return services


# ---------------------------------------------------------------------------
# Render context
# ---------------------------------------------------------------------------


class RenderContext(BaseModel):
    """Immutable variables shared by every render call of one command."""

    model_config = ConfigDict(frozen=True)

    project_name: str
    package_manager: PackageManager
    services: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        """Return the plain mapping handed to the template engine."""
        return {
            "project_name": self.project_name,
            "package_manager": self.package_manager.value,
            "services": list(self.services),
        }


# ---------------------------------------------------------------------------
# Project manifest
# ---------------------------------------------------------------------------


class ProjectManifest(BaseModel):
    """The fields of a generated project's ``package.json`` the tool relies on."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str = Field(..., min_length=1)
    package_manager: str = Field(..., alias="packageManager", min_length=1)

    @property
    def manager(self) -> PackageManager:
        """Package manager named by ``packageManager`` with any ``@version`` dropped."""
        return parse_package_manager(self.package_manager.split("@", 1)[0])


def load_manifest(project_dir: str | Path) -> ProjectManifest:
    """Read and validate ``<project_dir>/package.json``.

    Raises:
        ConfigError: If the file is missing, is not valid JSON, lacks a
            ``name`` or ``packageManager`` field, or names an unsupported
            package manager.
    """
    path = Path(project_dir) / MANIFEST_NAME
    try:
        data = load_json(path)
    except FileNotFoundError:
        raise ConfigError(f"No {MANIFEST_NAME} found in {Path(project_dir)}") from None
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc

    try:
        manifest = ProjectManifest.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise ConfigError(f"Malformed {path}: invalid or missing field(s) {fields}") from exc

    # Unsupported managers fail here rather than at first use.
    parse_package_manager(manifest.package_manager.split("@", 1)[0])
    return manifest


# ---------------------------------------------------------------------------
# Generator configuration
# ---------------------------------------------------------------------------


class GeneratorConfig(BaseModel):
    """Global create-v1-app configuration.

    Created once by the CLI entry point (usually through :meth:`from_env`)
    and passed to :class:`~create_v1_app.app.V1App`.
    """

    template_dir: Path = Field(default=DEFAULT_TEMPLATE_DIR)
    install: bool = Field(default=True, description="Run the install phase after generation")
    max_parallel_installs: int | None = Field(
        default=None, ge=1, description="Cap on concurrent installs (None = one per workspace)"
    )
    install_timeout: float | None = Field(
        default=None, gt=0, description="Per-workspace install timeout in seconds"
    )
    cleanup_order: CleanupOrder = Field(default=CleanupOrder.LIFO)
    default_package_manager: PackageManager = Field(default=PackageManager.NPM)
    verbose: bool = Field(default=False)

    @classmethod
    def from_env(cls) -> "GeneratorConfig":
        """Build a ``GeneratorConfig`` from environment variables.

        Recognised variables (all optional):
            V1_TEMPLATE_DIR, V1_INSTALL, V1_MAX_PARALLEL_INSTALLS,
            V1_INSTALL_TIMEOUT, V1_CLEANUP_ORDER, V1_PACKAGE_MANAGER,
            V1_VERBOSE.

        Raises:
            ConfigError: If a variable holds an invalid value.
        """
        try:
            return cls(**_env_kwargs())
        except (ValueError, ValidationError) as exc:
            raise ConfigError(f"Invalid environment configuration: {exc}") from exc


def _env_kwargs() -> dict[str, Any]:
    kwargs: dict[str, Any] = {}
    if os.environ.get("V1_TEMPLATE_DIR"):
        kwargs["template_dir"] = Path(os.environ["V1_TEMPLATE_DIR"])
    if os.environ.get("V1_INSTALL"):
        kwargs["install"] = _env_flag(os.environ["V1_INSTALL"])
    if os.environ.get("V1_MAX_PARALLEL_INSTALLS"):
        kwargs["max_parallel_installs"] = int(os.environ["V1_MAX_PARALLEL_INSTALLS"])
    if os.environ.get("V1_INSTALL_TIMEOUT"):
        kwargs["install_timeout"] = float(os.environ["V1_INSTALL_TIMEOUT"])
    if os.environ.get("V1_CLEANUP_ORDER"):
        kwargs["cleanup_order"] = os.environ["V1_CLEANUP_ORDER"].strip().lower()
    if os.environ.get("V1_PACKAGE_MANAGER"):
        kwargs["default_package_manager"] = os.environ["V1_PACKAGE_MANAGER"].strip().lower()
    if os.environ.get("V1_VERBOSE"):
        kwargs["verbose"] = _env_flag(os.environ["V1_VERBOSE"])
    return kwargs


def _env_flag(value: str) -> bool:
    return value.strip().lower() not in {"0", "false", "no", "off", ""}
