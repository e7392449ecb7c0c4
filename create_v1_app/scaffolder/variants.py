"""Package-manager variant selection.

One logical file may exist in the template tree in several physical forms,
one per package manager plus an optional ``base`` fallback::

    package.json.base.j2
    package.json.pnpm.j2
    package.json.bun.j2

This module decides which single candidate of such a group (if any) is
rendered, and under which destination name.  It is the only place that
branches on the package manager.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from create_v1_app.config import MANIFEST_NAME, PackageManager
from create_v1_app.scaffolder.templates import TEMPLATE_SUFFIX

BASE_VARIANT = "base"

VARIANT_TAGS: frozenset[str] = frozenset({BASE_VARIANT, *(pm.value for pm in PackageManager)})

PNPM_WORKSPACE_FILE = "pnpm-workspace.yaml"


@dataclass(frozen=True)
class TemplateName:
    """A template file name split into its logical name and variant tag."""

    file_name: str
    logical_name: str
    variant: str | None = None


@dataclass(frozen=True)
class VariantSelection:
    """The candidate chosen from a group and the file name it is written as."""

    chosen_name: str
    destination_name: str


def is_template(file_name: str) -> bool:
    return file_name.endswith(TEMPLATE_SUFFIX) and len(file_name) > len(TEMPLATE_SUFFIX)


def parse_template_name(file_name: str) -> TemplateName | None:
    """Split ``<logical>[.<variant>].j2`` into its parts.

    Returns ``None`` for names that are not templates.  A trailing segment
    only counts as a variant when it is ``base`` or a supported package
    manager, so ``README.md.j2`` has the logical name ``README.md``.
    """
    if not is_template(file_name):
        return None
    stem = file_name[: -len(TEMPLATE_SUFFIX)]
    head, dot, tail = stem.rpartition(".")
    if dot and head and tail in VARIANT_TAGS:
        return TemplateName(file_name=file_name, logical_name=head, variant=tail)
    return TemplateName(file_name=file_name, logical_name=stem)


def group_templates(file_names: Iterable[str]) -> dict[str, set[str]]:
    """Group template file names of one directory by logical name.

    Non-template names are ignored.  Keys are returned in sorted order.
    """
    groups: dict[str, set[str]] = {}
    for file_name in file_names:
        parsed = parse_template_name(file_name)
        if parsed is not None:
            groups.setdefault(parsed.logical_name, set()).add(file_name)
    return {key: groups[key] for key in sorted(groups)}


def select_variant(
    candidate_names: Iterable[str],
    package_manager: PackageManager | str,
    is_root: bool,
) -> VariantSelection | None:
    """Pick the candidate of a template group to materialize.

    Rules, in order:

    * ``pnpm-workspace.yaml`` only exists for pnpm projects.
    * ``package.json`` templates only apply to the root workspace; other
      workspaces ship their manifest as a static file.
    * A candidate tagged with the active package manager wins, then one
      tagged ``base``, then an untagged candidate.  With none of these the
      group produces no output.

    Returns:
        The selection, or ``None`` when the group is skipped.  Skipping is
        expected and never an error.
    """
    parsed = sorted(
        (p for p in map(parse_template_name, candidate_names) if p is not None),
        key=lambda p: p.file_name,
    )
    if not parsed:
        return None

    manager = str(package_manager)
    logical_name = parsed[0].logical_name
    if any(p.logical_name != logical_name for p in parsed):
        raise ValueError(f"Candidates do not share a logical name: {[p.file_name for p in parsed]}")

    if logical_name == PNPM_WORKSPACE_FILE and manager != PackageManager.PNPM.value:
        return None

    if logical_name == MANIFEST_NAME and not is_root:
        return None

    by_variant = {p.variant: p for p in parsed if p.variant is not None}
    untagged = [p for p in parsed if p.variant is None]

    chosen = by_variant.get(manager) or by_variant.get(BASE_VARIANT)
    if chosen is None and untagged:
        chosen = untagged[0]
    if chosen is None:
        return None

    return VariantSelection(chosen_name=chosen.file_name, destination_name=chosen.logical_name)


def is_blank(rendered: str) -> bool:
    """True when rendered output is whitespace only and must not be written."""
    return not rendered.strip()
