"""Jinja2-based template rendering for brandsentry reports.

Templates ship inside the package (``reports/templates``) so installed
copies render without a checkout; pass ``templates_dir`` to use edited ones.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound, select_autoescape

DEFAULT_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


class TemplateEngine:
    """Load and render Jinja2 templates.

    Args:
        templates_dir: Directory where templates live (default: the packaged templates).
    """

    def __init__(self, templates_dir: Optional[Path | str] = None) -> None:
        self.templates_dir = Path(templates_dir) if templates_dir else DEFAULT_TEMPLATES_DIR
        self.env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=select_autoescape(enabled_extensions=("html", "xml")),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    def list_templates(self) -> List[str]:
        """Return the template names available in the templates directory."""

        return sorted(self.env.list_templates())

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        """Render a named template with the provided context.

        Raises:
            FileNotFoundError: If the template does not exist.
        """

        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound as e:
            raise FileNotFoundError(f"Template not found: {template_name}") from e
        return template.render(**context)


__all__ = ["DEFAULT_TEMPLATES_DIR", "TemplateEngine"]
