"""Jinja2 renderer for complaint notification email bodies."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from complaints_service_libs.logging_utils import create_service_logger
from jinja2 import Environment, FileSystemLoader, select_autoescape

from services.complaint_service.protocols import EmailTemplateRendererProtocol

logger = create_service_logger("complaint_service.template_renderer")


class JinjaEmailTemplateRenderer(EmailTemplateRendererProtocol):
    """Renders ``templates/<template_id>.html.j2`` with autoescaping."""

    def __init__(self, template_path: str = "templates") -> None:
        service_root = Path(__file__).parent.parent
        self.template_dir = service_root / template_path

        logger.info(f"Initializing Jinja2 renderer with template directory: {self.template_dir}")

        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape(["html", "xml", "j2"]),
        )

    def render(self, template_id: str, variables: dict[str, Any]) -> str:
        template = self.env.get_template(f"{template_id}.html.j2")
        return template.render(**variables)
