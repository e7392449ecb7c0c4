"""Jinja2 template rendering for workspace materialization.

Provides the TemplateRenderer class which indexes every ``.j2`` file under a
template root once, at construction, and renders them by name with a
:class:`~create_v1_app.config.RenderContext`.  The name registry is frozen
after construction so the renderer can be shared freely.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Mapping

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from create_v1_app.config import DEFAULT_TEMPLATE_DIR, RenderContext
from create_v1_app.errors import ConfigError, RenderError

TEMPLATE_SUFFIX = ".j2"


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders Jinja2 templates for project scaffolding.

    Template names are POSIX paths relative to the template root, e.g.
    ``"apps/web/package.json.j2"``.  Undefined variables are errors, so a
    template that references something missing from the context fails loudly
    instead of rendering an empty string.
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir).resolve()
        if not self.template_dir.is_dir():
            raise ConfigError(f"Template directory not found: {self.template_dir}")

        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["slugify"] = _slugify_filter
        self.env.filters["pascal_case"] = _pascal_case_filter

        self._names = frozenset(
            p.relative_to(self.template_dir).as_posix()
            for p in self.template_dir.rglob(f"*{TEMPLATE_SUFFIX}")
            if p.is_file()
        )

    def list_template_names(self) -> frozenset[str]:
        """Return every registered template name."""
        return self._names

    def template_name_for(self, path: Path) -> str:
        """Map a template file on disk to its registry name.

        Raises:
            ConfigError: If *path* lies outside the template root.
        """
        try:
            return Path(path).resolve().relative_to(self.template_dir).as_posix()
        except ValueError:
            raise ConfigError(
                f"{path} is outside the template directory {self.template_dir}"
            ) from None

    def render(self, template_name: str, context: RenderContext | Mapping[str, Any]) -> str:
        """Render a single template with the provided context.

        Raises:
            RenderError: If the template is unknown or fails to evaluate.
        """
        if template_name not in self._names:
            raise RenderError(template_name, "template not found")

        variables = context.as_dict() if isinstance(context, RenderContext) else dict(context)
        try:
            template = self.env.get_template(template_name)
            return template.render(**variables)
        except TemplateError as exc:
            raise RenderError(template_name, str(exc)) from exc
        except Exception as exc:
            # Runtime failures inside a template, or a file that is not UTF-8.
            raise RenderError(template_name, f"{type(exc).__name__}: {exc}") from exc


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------


def _slugify_filter(value: str) -> str:
    """Convert a string to a package-name-safe slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower().strip())
    return slug.strip("-")


def _pascal_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``SomeThing``."""
    parts = re.split(r"[-_\s]+", value)
    return "".join(word.capitalize() for word in parts if word)
