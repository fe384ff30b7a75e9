from __future__ import annotations

import logging
import re

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wa_compliance.models.message_template import MessageTemplate
from wa_compliance.services.compliance.errors import storage_errors
from wa_compliance.services.compliance.types import TemplateStatus

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{\s*\d+\s*\}\}")
WHITESPACE_RE = re.compile(r"\s+")


class TemplateExistsError(ValueError):
    pass


class TemplateRegistry:
    """Message templates a company may send outside the 24-hour window once approved."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_template(self, company_id: int, name: str) -> MessageTemplate | None:
        with storage_errors(self.db, "get_template"):
            return (
                self.db.query(MessageTemplate)
                .filter(MessageTemplate.company_id == company_id, MessageTemplate.name == name.strip())
                .first()
            )

    def register_template(
        self,
        company_id: int,
        name: str,
        content: str,
        *,
        category: str = "utility",
        language: str = "es",
        status: TemplateStatus | str = TemplateStatus.PENDING,
    ) -> MessageTemplate:
        name = (name or "").strip()
        if not name:
            raise ValueError("template name is required")

        template = MessageTemplate(
            company_id=company_id,
            name=name,
            content=content,
            category=category,
            language=language,
            status=TemplateStatus(status).value,
        )
        with storage_errors(self.db, "register_template"):
            self.db.add(template)
            try:
                self.db.commit()
            except IntegrityError as exc:
                self.db.rollback()
                raise TemplateExistsError(f"template {name!r} already exists") from exc
            self.db.refresh(template)
        logger.info("template registered company=%s name=%s status=%s", company_id, name, template.status)
        return template

    def set_status(self, company_id: int, name: str, status: TemplateStatus | str) -> MessageTemplate | None:
        template = self.get_template(company_id, name)
        if template is None:
            return None
        with storage_errors(self.db, "set_template_status"):
            template.status = TemplateStatus(status).value
            self.db.commit()
            self.db.refresh(template)
        logger.info("template status company=%s name=%s status=%s", company_id, template.name, template.status)
        return template

    def list_templates(self, company_id: int, status: TemplateStatus | str | None = None) -> list[MessageTemplate]:
        with storage_errors(self.db, "list_templates"):
            query = self.db.query(MessageTemplate).filter(MessageTemplate.company_id == company_id)
            if status is not None:
                query = query.filter(MessageTemplate.status == TemplateStatus(status).value)
            return query.order_by(MessageTemplate.name.asc()).all()

    def approved_template_for(self, company_id: int, name: str | None, text: str | None) -> MessageTemplate | None:
        """Return the approved template ``text`` was rendered from, or ``None``."""
        if not name or not name.strip():
            return None
        template = self.get_template(company_id, name)
        if template is None or template.status != TemplateStatus.APPROVED.value:
            return None
        if not matches_template(template.content, text):
            logger.info("template body mismatch company=%s name=%s", company_id, template.name)
            return None
        return template


def _collapse(value: str) -> str:
    return WHITESPACE_RE.sub(" ", value).strip()


def matches_template(content: str, text: str | None) -> bool:
    """True when ``text`` is ``content`` with each ``{{n}}`` filled by a non-empty value."""
    if not text or not text.strip():
        return False
    parts = [re.escape(_collapse(part)) for part in PLACEHOLDER_RE.split(content or "")]
    pattern = r"\s*(\S.*?)\s*".join(parts)
    return re.fullmatch(pattern, _collapse(text), flags=re.DOTALL) is not None
