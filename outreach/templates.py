"""
Template Personalizer for manual WhatsApp outreach.

Templates are authored by the operator and use {{placeholder}} markers:

    Ciao {{nome}}, ecco il preventivo per {{interesse}}: {{prezzo}} EUR

Lead attributes are always available (name, interest, phone, email and
their Italian aliases); anything else must be declared as an extra field.
Extra field names may contain any character except braces.
"""

import json
import logging
import re
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Union

from .errors import ValidationError
from .models import Lead

logger = logging.getLogger(__name__)

PLACEHOLDER_REGEX = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")

ATTACHMENT_LINE = "\n\n📎 *Allegato:* {url}"

# Template attribute -> whatsapp_templates column
TEMPLATE_COLUMNS = {
    "name": "nome",
    "body": "template",
    "category": "categoria",
    "description": "descrizione",
    "extra_fields": "campi_extra",
    "supports_attachment": "supporta_allegato",
    "active": "attivo",
}


@dataclass(frozen=True)
class ExtraFieldSpec:
    """An input the operator must fill before using a template."""
    name: str
    label: str = ""
    placeholder: str = ""


def parse_extra_fields(raw: Any, template_id: Any = None) -> List[ExtraFieldSpec]:
    """
    Parse stored campi_extra (a list or its JSON text).

    Malformed payloads and entries without a name are skipped with a warning.
    """
    if isinstance(raw, str):
        if not raw.strip():
            return []
        try:
            raw = json.loads(raw)
        except ValueError as e:
            logger.warning("Template %s: unreadable extra fields: %s", template_id, e)
            return []

    if not raw:
        return []
    if not isinstance(raw, list):
        logger.warning("Template %s: extra fields are not a list", template_id)
        return []

    specs = []
    for item in raw:
        if isinstance(item, ExtraFieldSpec):
            specs.append(item)
        elif isinstance(item, dict) and str(item.get("name") or "").strip():
            specs.append(ExtraFieldSpec(
                name=str(item["name"]).strip(),
                label=item.get("label") or "",
                placeholder=item.get("placeholder") or "",
            ))
        else:
            logger.warning("Template %s: skipping extra field %r", template_id, item)
    return specs


@dataclass
class Template:
    """A reusable message skeleton."""
    name: str
    body: str
    id: Optional[Any] = None
    category: Optional[str] = None
    description: Optional[str] = None
    extra_fields: List[ExtraFieldSpec] = field(default_factory=list)
    supports_attachment: bool = False
    active: bool = True

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Template":
        """Build a Template from a `whatsapp_templates` row."""
        return cls(
            id=row.get("id"),
            name=row.get("nome", ""),
            body=row.get("template", ""),
            category=row.get("categoria"),
            description=row.get("descrizione"),
            extra_fields=parse_extra_fields(row.get("campi_extra"), row.get("id")),
            supports_attachment=bool(row.get("supporta_allegato")),
            active=row.get("attivo", True) is not False,
        )

    def to_row(self) -> Dict[str, Any]:
        """Serialize to `whatsapp_templates` columns, without id."""
        row = {column: getattr(self, attr) for attr, column in TEMPLATE_COLUMNS.items()}
        row["campi_extra"] = [asdict(spec) for spec in self.extra_fields]
        return row

    @property
    def needs_form(self) -> bool:
        """Whether the operator must be asked for input before preview."""
        return bool(self.extra_fields) or self.supports_attachment


def validate_template(template: Template) -> Template:
    """
    Normalize an operator-authored template.

    Name and body are trimmed; extra fields given as dicts are parsed.

    Raises:
        ValidationError: If name or body is blank
    """
    name = (template.name or "").strip()
    body = (template.body or "").strip()
    if not name or not body:
        raise ValidationError("Nome e corpo sono obbligatori")

    return replace(
        template,
        name=name,
        body=body,
        category=(template.category or "").strip() or None,
        description=(template.description or "").strip() or None,
        extra_fields=parse_extra_fields(template.extra_fields, template.id),
    )


def _lead_values(lead: Union[Lead, Mapping[str, Any]]) -> Dict[str, str]:
    if isinstance(lead, Lead):
        return lead.placeholder_values()
    return {key: "" if value is None else str(value) for key, value in lead.items()}


def personalize(
    template: Union[Template, str],
    lead: Union[Lead, Mapping[str, Any]],
    extra_fields: Optional[Mapping[str, Any]] = None,
    attachment_ref: Optional[str] = None,
) -> str:
    """
    Fill a template's placeholders.

    Lead values take precedence over extra fields with the same name.
    Placeholders with no value are left as they are. Required extra fields
    are not checked here; call validate_extra_fields first.

    Args:
        template: Template or raw template text
        lead: Lead, or a mapping of placeholder name to value
        extra_fields: Values for the template's extra fields
        attachment_ref: Public URL of an attachment to reference

    Returns:
        The personalized message
    """
    text = template.body if isinstance(template, Template) else template

    values: Dict[str, str] = {
        key: "" if value is None else str(value)
        for key, value in (extra_fields or {}).items()
    }
    values.update(_lead_values(lead))

    def replace(match: "re.Match[str]") -> str:
        return values.get(match.group(1), match.group(0))

    result = PLACEHOLDER_REGEX.sub(replace, text)

    if attachment_ref:
        result += ATTACHMENT_LINE.format(url=attachment_ref)

    return result


def validate_extra_fields(template: Template, values: Optional[Mapping[str, Any]]) -> List[str]:
    """Names of required extra fields left blank, in declaration order."""
    values = values or {}
    return [
        spec.name
        for spec in template.extra_fields
        if not str(values.get(spec.name) or "").strip()
    ]
