"""Error taxonomy for create-v1-app.

Every failure the generator reports derives from :class:`V1AppError`.  The
hierarchy is closed: the top-level driver handles each member explicitly and
decides whether cleanup runs and which exit status the process returns.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from create_v1_app.installer import InstallOutcome


class V1AppError(Exception):
    """Base class for every error raised by the generator."""


class ConfigError(V1AppError):
    """Raised for invalid user input or a malformed project manifest.

    Covers unknown services, unsupported package managers, missing or
    malformed ``package.json`` fields and an already populated destination.
    """


class RenderError(V1AppError):
    """Raised when a template cannot be evaluated against the context."""

    def __init__(self, template_name: str, message: str) -> None:
        self.template_name = template_name
        super().__init__(f"Failed to render template {template_name}: {message}")


class FilesystemError(V1AppError):
    """Raised when creating, writing, copying or removing a path fails."""

    def __init__(self, path: str | Path, message: str) -> None:
        self.path = Path(path)
        super().__init__(f"{message}: {self.path}")


class InstallError(V1AppError):
    """A single workspace failed to install its dependencies."""

    def __init__(self, workspace_path: str | Path, detail: str) -> None:
        self.workspace_path = Path(workspace_path)
        self.detail = detail
        super().__init__(f"Installation failed in {self.workspace_path}: {detail}")


class AggregateInstallError(V1AppError):
    """At least one workspace install failed.

    Carries every outcome (successful ones included) so callers can report
    each failure individually.
    """

    def __init__(self, outcomes: list[InstallOutcome]) -> None:
        self.outcomes = list(outcomes)
        failed = len(self.failures)
        super().__init__(
            f"{failed} of {len(self.outcomes)} workspace installation(s) failed"
        )

    @property
    def failures(self) -> list[InstallError]:
        """One :class:`InstallError` per failed outcome, in submission order."""
        return [
            InstallError(outcome.workspace_path, outcome.detail)
            for outcome in self.outcomes
            if not outcome.success
        ]
