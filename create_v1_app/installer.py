"""Concurrent dependency installation for generated workspaces.

Runs ``<package-manager> install`` once per workspace, all at the same time,
and waits for every job before judging the result.  A failing workspace
never cancels or alters its siblings; failures are aggregated into a single
:class:`~create_v1_app.errors.AggregateInstallError`.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from create_v1_app.config import PackageManager, parse_package_manager
from create_v1_app.errors import AggregateInstallError
from create_v1_app.scaffolder.workspace import Workspace
from create_v1_app.utils import create_progress, print_debug, run_command

INSTALL_COMMAND = "install"
DEPENDENCY_DIR = "node_modules"

# Longest diagnostic kept per failed workspace.
MAX_DETAIL_CHARS = 4000


@dataclass(frozen=True)
class InstallJob:
    """Install request for one workspace directory."""

    workspace_path: Path
    package_manager: PackageManager


@dataclass(frozen=True)
class InstallOutcome:
    """Result of one :class:`InstallJob`."""

    workspace_path: Path
    success: bool
    detail: str = ""


class ConcurrentInstaller:
    """Fork/join runner for per-workspace install commands.

    Args:
        max_concurrency: Optional cap on simultaneous installs.  ``None``
            runs one job per workspace at once.
        timeout: Optional per-job timeout in seconds.
        artifact_dir: Directory every successful install must leave behind
            in the workspace.
    """

    def __init__(
        self,
        max_concurrency: int | None = None,
        timeout: float | None = None,
        artifact_dir: str = DEPENDENCY_DIR,
    ) -> None:
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency
        self.timeout = timeout
        self.artifact_dir = artifact_dir

    async def install_all(
        self,
        workspaces: Iterable[Workspace],
        package_manager: PackageManager | str,
    ) -> list[InstallOutcome]:
        """Install every workspace concurrently.

        Returns:
            One outcome per workspace, in input order, when all succeeded.

        Raises:
            AggregateInstallError: If any job failed.  Every job has still
                run to completion.
            ConfigError: If *package_manager* is not supported.
        """
        manager = parse_package_manager(package_manager)
        jobs = [InstallJob(workspace_path=ws.dest_path, package_manager=manager) for ws in workspaces]
        if not jobs:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrency or len(jobs))

        with create_progress() as progress:

            async def _run(job: InstallJob) -> InstallOutcome:
                async with semaphore:
                    task_id = progress.add_task(f"Installing {job.workspace_path}", total=None)
                    try:
                        return await self.install_one(job)
                    finally:
                        progress.remove_task(task_id)

            outcomes = await asyncio.gather(*(_run(job) for job in jobs))

        if any(not outcome.success for outcome in outcomes):
            raise AggregateInstallError(outcomes)
        return list(outcomes)

    async def install_one(self, job: InstallJob) -> InstallOutcome:
        """Run one install job and classify its outcome.

        Never raises for an install failure; only cancellation propagates
        (after the child process has been terminated).
        """
        cmd = [job.package_manager.value, INSTALL_COMMAND]
        print_debug(f"Running {' '.join(cmd)} in {job.workspace_path}")

        try:
            returncode, stdout, stderr = await run_command(
                cmd, cwd=job.workspace_path, timeout=self.timeout
            )
        except OSError as exc:
            return InstallOutcome(
                workspace_path=job.workspace_path,
                success=False,
                detail=f"Could not run {' '.join(cmd)}: {exc}",
            )

        if returncode != 0:
            return InstallOutcome(
                workspace_path=job.workspace_path,
                success=False,
                detail=_truncate(
                    f"{' '.join(cmd)} exited with status {returncode}\n"
                    f"Stdout: {stdout}\nStderr: {stderr}"
                ),
            )

        if not (job.workspace_path / self.artifact_dir).is_dir():
            return InstallOutcome(
                workspace_path=job.workspace_path,
                success=False,
                detail=f"{self.artifact_dir} not created in {job.workspace_path}",
            )

        print_debug(f"Installed {job.workspace_path}")
        return InstallOutcome(workspace_path=job.workspace_path, success=True)


def _truncate(text: str) -> str:
    if len(text) <= MAX_DETAIL_CHARS:
        return text
    return text[:MAX_DETAIL_CHARS] + "\n... (truncated)"
