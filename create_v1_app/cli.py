"""Command line entry point for create-v1-app.

Usage::

    create-v1-app                                   # interactive dialogue
    create-v1-app new my-app --package-manager pnpm --services email,jobs
    create-v1-app add service analytics             # inside an existing project
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Iterable, Sequence

from rich.prompt import Confirm, Prompt

from create_v1_app import __version__
from create_v1_app.app import EXIT_FAILURE, EXIT_INTERRUPTED, V1App, execute
from create_v1_app.config import (
    GeneratorConfig,
    PackageManager,
    Service,
    parse_package_manager,
    parse_services,
)
from create_v1_app.errors import V1AppError
from create_v1_app.utils import console, print_error, print_warning, set_verbose

DEFAULT_PROJECT_NAME = "my-v1-app"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="create-v1-app",
        description="Create a new V1 monorepo or add services to an existing one",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  create-v1-app new my-app\n"
            "  create-v1-app new my-app --package-manager pnpm --services email,jobs\n"
            "  create-v1-app add service analytics\n"
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Print every file operation")
    parser.add_argument(
        "--templates",
        type=Path,
        default=None,
        help="Template directory (default: bundled templates)",
    )
    parser.add_argument(
        "--no-install",
        dest="install",
        action="store_false",
        default=None,
        help="Skip installing dependencies after generation",
    )

    commands = parser.add_subparsers(dest="command")

    new = commands.add_parser("new", help="Create a new V1 app")
    new.add_argument("name", help="The name of the new project")
    new.add_argument(
        "--services",
        nargs="*",
        default=[],
        help="Services to add to the project (space- or comma-separated)",
    )
    new.add_argument(
        "--package-manager",
        default=None,
        help="The package manager to use for the project "
        f"({', '.join(pm.value for pm in PackageManager)})",
    )

    add = commands.add_parser("add", help="Add a service to an existing V1 app")
    add_commands = add.add_subparsers(dest="add_command", required=True)
    service = add_commands.add_parser("service", help="Add a service to an existing V1 app")
    service.add_argument("service_names", nargs="+", help="The service(s) to add")
    service.add_argument(
        "--project-dir",
        type=Path,
        default=Path("."),
        help="Root of the existing project (default: current directory)",
    )

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse *argv*, run the selected command and return its exit status."""
    args = build_parser().parse_args(argv)

    try:
        config = GeneratorConfig.from_env()
        overrides: dict[str, object] = {}
        if args.templates is not None:
            overrides["template_dir"] = args.templates
        if args.install is not None:
            overrides["install"] = args.install
        if args.verbose:
            overrides["verbose"] = True
        config = config.model_copy(update=overrides)
        set_verbose(config.verbose)

        app = V1App(config)
        if args.command == "new":
            command = app.create(
                args.name,
                services=parse_services(split_list(args.services)),
                package_manager=parse_package_manager(
                    args.package_manager or config.default_package_manager
                ),
            )
        elif args.command == "add":
            command = app.add_services(
                args.project_dir, parse_services(split_list(args.service_names))
            )
        else:
            try:
                name, services, package_manager = run_interactive_dialogue(config)
            except KeyboardInterrupt:
                print_warning("Interrupted")
                return EXIT_INTERRUPTED
            command = app.create(name, services=services, package_manager=package_manager)
    except V1AppError as exc:
        print_error(f"Error: {exc}")
        return EXIT_FAILURE

    return execute(command, app.cleanup)


def run_interactive_dialogue(
    config: GeneratorConfig,
) -> tuple[str, list[Service], PackageManager]:
    """Ask for the project name, package manager and services."""
    name = Prompt.ask(
        "What is the name of your project?", default=DEFAULT_PROJECT_NAME, console=console
    )
    package_manager = Prompt.ask(
        "Select a package manager",
        choices=[pm.value for pm in PackageManager],
        default=config.default_package_manager.value,
        console=console,
    )

    services: list[Service] = []
    if Confirm.ask("Do you want to add any services?", default=True, console=console):
        for service in Service:
            console.print(f"  [bold]{service.value}[/bold]: {service.description}")
        answer = Prompt.ask("Services to add (comma-separated)", default="", console=console)
        services = parse_services(split_list([answer]))

    return name.strip(), services, parse_package_manager(package_manager)


def split_list(values: Iterable[str]) -> list[str]:
    """Flatten ``["a,b", "c"]`` into ``["a", "b", "c"]``."""
    return [item.strip() for value in values for item in value.split(",") if item.strip()]


def main() -> None:
    """CLI entry point for ``create-v1-app`` and ``python -m create_v1_app``."""
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
