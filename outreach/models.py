"""
Domain model for the lead outreach engine.

Field names are English; the mapping to the Supabase columns (which follow
the original Italian schema) lives in the from_row/to_row helpers so the
rest of the engine never touches raw column names.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class LeadState(str, Enum):
    """Approval lifecycle of a lead."""
    NEW = "new"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"

    @classmethod
    def parse(cls, value: Optional[str]) -> "LeadState":
        """Parse a stored state, accepting the legacy Italian values."""
        if isinstance(value, cls):
            return value
        normalized = (value or "").strip().lower()
        normalized = _LEGACY_STATES.get(normalized, normalized)
        return cls(normalized or cls.NEW.value)

    @classmethod
    def from_stored(cls, value: Optional[str]) -> "LeadState":
        """Like parse, but an unknown stored state reads as NEW."""
        try:
            return cls.parse(value)
        except ValueError:
            logger.warning("Unknown lead state %r, reading it as %s", value, cls.NEW.value)
            return cls.NEW

    @property
    def stored_values(self) -> List[str]:
        """Every value a row in this state may hold in the stato column."""
        return [self.value] + [legacy for legacy, value in _LEGACY_STATES.items() if value == self.value]


_LEGACY_STATES = {
    "nuovo": "new",
    "in_attesa_approvazione": "pending_approval",
    "approvato": "approved",
}


class Channel(str, Enum):
    """Contact medium preferred by a lead."""
    WHATSAPP = "whatsapp"
    EMAIL = "email"
    BOTH = "both"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Channel":
        """
        Parse a channel name.

        Blank values default to WhatsApp; "entrambi" is accepted as an alias
        of BOTH. Raises ValueError for anything else.
        """
        if isinstance(value, cls):
            return value
        normalized = (value or "").strip().lower() or cls.WHATSAPP.value
        if normalized == "entrambi":
            normalized = cls.BOTH.value
        return cls(normalized)

    @classmethod
    def from_stored(cls, value: Optional[str]) -> "Channel":
        """Like parse, but an unknown stored channel reads as WhatsApp."""
        try:
            return cls.parse(value)
        except ValueError:
            logger.warning("Unknown channel %r, reading it as %s", value, cls.WHATSAPP.value)
            return cls.WHATSAPP


class Tone(str, Enum):
    """Stylistic variant of a generated message."""
    FORMAL = "formal"
    CORDIAL = "cordial"
    URGENT = "urgent"

    @property
    def slot_suffix(self) -> str:
        """Suffix of the proposal column holding this tone."""
        return _TONE_SUFFIXES[self]


_TONE_SUFFIXES = {
    Tone.FORMAL: "1_formale",
    Tone.CORDIAL: "2_cordiale",
    Tone.URGENT: "3_urgenza",
}


class EventAction(str, Enum):
    """Action tags recorded in the lifecycle log."""
    MESSAGE_APPROVED = "message_approved"
    REGENERATION_REQUESTED = "regeneration_requested"
    LEAD_MODIFIED = "lead_modified"
    LEAD_CREATED = "lead_created"
    TEMPLATE_USED = "template_used"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp as returned by PostgREST."""
    if value is None or isinstance(value, datetime):
        return value
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


# Lead attribute -> leads column
LEAD_COLUMNS = {
    "name": "nome",
    "phone": "telefono",
    "email": "email",
    "interest": "interesse",
    "notes": "note",
    "details": "dettagli_claude",
    "context": "contesto_aggiuntivo",
    "channel": "canale_preferito",
    "state": "stato",
    "feedback": "feedback_rigenerazione",
    "sequence": "row_number",
    "approved_message": "messaggio_approvato",
    "approved_variant": "variante_approvata",
    "email_subject": "email_oggetto",
    "email_body": "email_body",
    "email_sent": "email_inviata",
}


@dataclass
class Lead:
    """A prospective customer and where it stands in the approval flow."""
    name: str
    phone: str
    id: Optional[Any] = None
    email: Optional[str] = None
    interest: Optional[str] = None
    notes: Optional[str] = None
    details: Optional[str] = None
    context: Optional[str] = None
    channel: Channel = Channel.WHATSAPP
    state: LeadState = LeadState.NEW
    feedback: Optional[str] = None
    sequence: Optional[int] = None
    approved_message: Optional[str] = None
    approved_variant: Optional[str] = None
    email_subject: Optional[str] = None
    email_body: Optional[str] = None
    email_sent: bool = False
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Lead":
        """Build a Lead from a `leads` table row."""
        values = {attr: row.get(column) for attr, column in LEAD_COLUMNS.items()}
        values["name"] = values["name"] or ""
        values["phone"] = str(values["phone"] or "")
        values["channel"] = Channel.from_stored(values["channel"])
        values["state"] = LeadState.from_stored(values["state"])
        values["email_sent"] = bool(values["email_sent"])
        return cls(id=row.get("id"), created_at=parse_timestamp(row.get("created_at")), **values)

    def to_row(self) -> Dict[str, Any]:
        """Serialize to `leads` columns, without id and timestamps."""
        row = {column: getattr(self, attr) for attr, column in LEAD_COLUMNS.items()}
        row["canale_preferito"] = self.channel.value
        row["stato"] = self.state.value
        return row

    def placeholder_values(self) -> Dict[str, str]:
        """Values available to template placeholders."""
        values = {
            "name": self.name,
            "interest": self.interest or "",
            "phone": self.phone,
            "email": self.email or "",
        }
        values.update({
            "nome": values["name"],
            "interesse": values["interest"],
            "telefono": values["phone"],
        })
        return values


@dataclass(frozen=True)
class LifecycleEvent:
    """An immutable entry of the lead activity log."""
    lead_id: Any
    action: str
    detail: str = ""
    id: Optional[Any] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "LifecycleEvent":
        return cls(
            id=row.get("id"),
            lead_id=row.get("lead_id"),
            action=row.get("azione", ""),
            detail=row.get("dettagli") or "",
            created_at=parse_timestamp(row.get("created_at")),
        )


@dataclass
class ProposalSet:
    """
    One generation cycle of candidate messages for a lead.

    Slots are kept as raw column values ("whatsapp_2_cordiale" -> text);
    interpreting them is the resolver's job.
    """
    lead_id: Any
    id: Optional[Any] = None
    created_at: Optional[datetime] = None
    slots: Dict[str, Optional[str]] = field(default_factory=dict)

    SLOT_PREFIXES = ("messaggio", "whatsapp", "email")

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ProposalSet":
        slots = {
            key: value
            for key, value in row.items()
            if key.split("_", 1)[0] in cls.SLOT_PREFIXES and key != "lead_id"
        }
        return cls(
            id=row.get("id"),
            lead_id=row.get("lead_id"),
            created_at=parse_timestamp(row.get("created_at")),
            slots=slots,
        )

    def slot(self, prefix: str, tone: Tone) -> Optional[str]:
        """Return the populated value of a slot, or None when blank."""
        value = self.slots.get(f"{prefix}_{tone.slot_suffix}")
        if value is None or not str(value).strip():
            return None
        return value
