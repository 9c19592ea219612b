"""Jinja2 template rendering for generated unit files.

Built-in templates ship inside this package. An operator may shadow any of
them by placing a file with the same relative name under the configured
``templates_dir``.
"""
from __future__ import annotations

import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
)

BUILTIN_TEMPLATES_DIR = Path(__file__).resolve().parent


class TemplateRenderError(RuntimeError):
    """Raised when a template cannot be loaded or rendered."""


def systemd_escape(value: object) -> str:
    """Quote *value* for use inside a double-quoted unit-file argument.

    Backslashes and double quotes are backslash-escaped and ``%`` is doubled
    so systemd does not expand it as a specifier.
    """
    text = str(value)
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("%", "%%")


@dataclass(slots=True)
class TemplateEngine:
    """Render templates with strict variables."""

    environment: Environment

    @classmethod
    def with_overrides(cls, override_dir: Path | None) -> TemplateEngine:
        """Build an engine whose search path prefers *override_dir*."""
        loaders = []
        if override_dir is not None and Path(override_dir).is_dir():
            loaders.append(FileSystemLoader(str(override_dir)))
        loaders.append(FileSystemLoader(str(BUILTIN_TEMPLATES_DIR)))
        environment = Environment(
            loader=ChoiceLoader(loaders),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )
        environment.filters["systemd_escape"] = systemd_escape
        return cls(environment=environment)

    def render_to_string(self, name: str, context: Mapping[str, object]) -> str:
        """Render template *name* with *context*."""
        try:
            template = self.environment.get_template(name)
            return template.render(**context)
        except TemplateError as exc:
            raise TemplateRenderError(f"Failed to render template {name}: {exc}") from exc

    def render_to_path(
        self,
        name: str,
        destination: Path,
        context: Mapping[str, object],
        *,
        mode: int = 0o644,
    ) -> bool:
        """Render *name* into *destination*; return ``False`` if unchanged.

        The file is written atomically through a temporary sibling. ``OSError``
        propagates to the caller.
        """
        content = self.render_to_string(name, context)
        if destination.exists() and destination.read_text(encoding="utf-8") == content:
            return False

        destination.parent.mkdir(parents=True, exist_ok=True)
        tmp_fd, tmp_name = tempfile.mkstemp(
            dir=str(destination.parent),
            prefix=f".{destination.name}.",
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, destination)
        finally:
            tmp_path.unlink(missing_ok=True)
        return True


__all__ = [
    "BUILTIN_TEMPLATES_DIR",
    "TemplateEngine",
    "TemplateRenderError",
    "systemd_escape",
]
