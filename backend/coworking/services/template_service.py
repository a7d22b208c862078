# backend/coworking/services/template_service.py
"""
Jinja2 rendering for the email bodies under ``coworking/templates``.

Templates get three filters (``currency``, ``format_date`` and
``format_time``) plus brand and support details merged into every context.
"""

from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional, Union

from jinja2 import Environment, FileSystemLoader, TemplateNotFound
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import BRAND_NAME
from .base import BaseService

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

Moment = Union[datetime, str]


def currency(value: Union[Decimal, float, int, str, None]) -> str:
    return f"${float(value or 0):,.2f}"


def format_date(value: Moment, format_str: str = "%B %d, %Y") -> str:
    return value if isinstance(value, str) else value.strftime(format_str)


def format_time(value: Moment, format_str: str = "%H:%M") -> str:
    return value if isinstance(value, str) else value.strftime(format_str)


def build_environment(template_dir: Path = TEMPLATE_DIR) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        autoescape=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters.update(currency=currency, format_date=format_date, format_time=format_time)
    return env


class TemplateService(BaseService):
    def __init__(self, db: Session, env: Optional[Environment] = None):
        super().__init__(db)
        self.env = env or build_environment()

    def shared_context(self) -> Dict[str, Any]:
        return {
            "brand_name": BRAND_NAME,
            "current_year": datetime.now().year,
            "frontend_url": settings.frontend_url,
            "support_email": settings.from_email,
        }

    @BaseService.measure_operation("render_template")
    def render_template(
        self, template_name: str, context: Optional[Dict[str, Any]] = None, **extra: Any
    ) -> str:
        """
        Render ``template_name``; ``context`` and ``extra`` override the shared values.

        Raises:
            TemplateNotFound: no such file under the template directory
        """
        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound:
            self.logger.error(f"Missing email template {template_name}")
            raise
        return template.render({**self.shared_context(), **(context or {}), **extra})
