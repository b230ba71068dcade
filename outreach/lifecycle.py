"""
Lead Lifecycle Controller - the approval state machine.

    new --(generator writes proposals)--> pending_approval --approve--> approved
     ^                                                                     |
     +------------------------ request_regeneration ----------------------+

The pending_approval transition belongs to the external generator. Every
other state change, and every lifecycle log entry, goes through this
controller.

Usage:
    controller = LeadLifecycleController(get_client())

    controller.approve(lead_id, "Ciao Mario!", "whatsapp")
    controller.request_regeneration(lead_id, "Più breve, meno formale")
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import NotFound, ValidationError
from .launchers import whatsapp_link
from .models import LEAD_COLUMNS, Channel, EventAction, Lead, LeadState, LifecycleEvent, Tone
from .proposals import ProposalResolver, match_tone, resolve
from .templates import TEMPLATE_COLUMNS, Template, personalize, validate_extra_fields, validate_template

logger = logging.getLogger(__name__)

NO_FEEDBACK = "Nessun feedback fornito"

# Fields an operator may set on manual entry or edit
EDITABLE_FIELDS = ("name", "phone", "email", "interest", "notes", "details", "context", "channel")


@dataclass(frozen=True)
class TemplateMessage:
    """A personalized template ready to be sent."""
    text: str
    whatsapp_url: str
    template_id: Any


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    text = str(value).strip()
    return text or None


def validate_lead_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize operator-entered lead fields.

    Strips text values, turns blanks into None and parses the channel.

    Raises:
        ValidationError: If name or phone is blank, or the channel is unknown
    """
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown lead fields: {', '.join(sorted(unknown))}")

    cleaned: Dict[str, Any] = {key: _clean(value) for key, value in fields.items()}

    errors = []
    if not cleaned.get("name"):
        errors.append("Nome mancante")
    if not cleaned.get("phone"):
        errors.append("Telefono mancante")

    try:
        cleaned["channel"] = Channel.parse(cleaned.get("channel"))
    except ValueError:
        errors.append(f"Canale non valido: {fields.get('channel')}")

    if errors:
        raise ValidationError("Nome e telefono sono obbligatori" if len(errors) > 1 else errors[0], errors)

    return cleaned


def _to_columns(fields: Dict[str, Any]) -> Dict[str, Any]:
    row = {}
    for attr, value in fields.items():
        if isinstance(value, (Channel, LeadState)):
            value = value.value
        row[LEAD_COLUMNS[attr]] = value
    return row


class LeadLifecycleController:
    """
    Owns lead state transitions and the activity log.

    Operations are single store calls or short cascades; the controller
    holds no state between calls and takes no locks.
    """

    def __init__(self, store, resolver: Optional[ProposalResolver] = None):
        """
        Args:
            store: Lead store (see database.LeadStore)
            resolver: Proposal resolver; built over the same store if None
        """
        self.store = store
        self.resolver = resolver or ProposalResolver(store)

    # ==========================================
    # READS
    # ==========================================

    def get_lead(self, lead_id) -> Lead:
        """
        Raises:
            NotFound: If the lead does not exist
        """
        row = self.store.get_lead(lead_id)
        if row is None:
            raise NotFound("lead", lead_id)
        return Lead.from_row(row)

    def list_leads(self, state: Optional[LeadState] = None) -> List[Lead]:
        """Leads newest first, optionally only those in one state."""
        rows = self.store.list_leads(LeadState.parse(state).stored_values if state else None)
        return [Lead.from_row(row) for row in rows]

    def events(self, lead_id) -> List[LifecycleEvent]:
        return [LifecycleEvent.from_row(row) for row in self.store.list_events(lead_id)]

    # ==========================================
    # TRANSITIONS
    # ==========================================

    def _update(self, lead_id, data: Dict[str, Any]) -> Lead:
        row = self.store.update_lead(lead_id, data)
        if row is None:
            raise NotFound("lead", lead_id)
        return Lead.from_row(row)

    def _log(self, lead_id, action: EventAction, detail: str) -> LifecycleEvent:
        row = self.store.append_event(lead_id, action.value, detail)
        return LifecycleEvent.from_row(row) if row else LifecycleEvent(
            lead_id=lead_id, action=action.value, detail=detail
        )

    def approve(self, lead_id, message: str, channel, tone: Optional[Tone] = None) -> Lead:
        """
        Approve a message for a lead.

        Stores the exact text and the channel/tone it came from. When no
        tone is given it is looked up in the current proposal set; messages
        edited by the operator are tagged "<channel>_custom".

        Args:
            lead_id: Lead to approve
            message: Message text as it will be sent
            channel: "whatsapp" or "email"
            tone: Tone the message was chosen from, if known

        Returns:
            The updated lead

        Raises:
            NotFound: If the lead does not exist
            ValidationError: If the message is blank or the channel is not
                a single sending channel
        """
        lead = self.get_lead(lead_id)

        if not (message or "").strip():
            raise ValidationError("Messaggio vuoto")

        try:
            channel = Channel.parse(channel)
        except ValueError as e:
            raise ValidationError(f"Canale non valido: {channel}") from e
        if channel is Channel.BOTH:
            raise ValidationError("Approve one channel at a time: whatsapp or email")

        if tone is None:
            proposals = resolve(channel, self.resolver.current_proposal_set(lead.id))
            tone = match_tone(proposals, channel, message)
        variant = f"{channel.value}_{tone.value if tone else 'custom'}"

        updated = self._update(lead_id, _to_columns({
            "state": LeadState.APPROVED,
            "approved_message": message,
            "approved_variant": variant,
        }))
        self._log(lead_id, EventAction.MESSAGE_APPROVED, f"Variant: {variant}")

        logger.info("Lead %s approved (%s)", lead_id, variant)
        return updated

    def request_regeneration(self, lead_id, feedback: Optional[str] = None) -> Lead:
        """
        Send a lead back to the generator.

        Blank feedback is accepted and recorded as NO_FEEDBACK. Existing
        proposal sets are kept; the generator's next set supersedes them.
        Calls are not deduplicated: each one may trigger a new generation
        cycle.

        Raises:
            NotFound: If the lead does not exist
        """
        feedback = _clean(feedback) or NO_FEEDBACK

        updated = self._update(lead_id, _to_columns({
            "state": LeadState.NEW,
            "feedback": feedback,
        }))
        self._log(lead_id, EventAction.REGENERATION_REQUESTED, feedback)

        logger.info("Regeneration requested for lead %s", lead_id)
        return updated

    def edit(self, lead_id, fields: Dict[str, Any]) -> Lead:
        """
        Update a lead's contact fields.

        Fields not given keep their current value.

        Raises:
            NotFound: If the lead does not exist
            ValidationError: If name or phone would be blank, or the channel
                is unknown
        """
        current = self.get_lead(lead_id)
        merged = {attr: getattr(current, attr) for attr in EDITABLE_FIELDS}
        merged.update(fields)

        cleaned = validate_lead_fields(merged)
        changes = {attr: cleaned[attr] for attr in fields}

        updated = self._update(lead_id, _to_columns(changes))
        self._log(lead_id, EventAction.LEAD_MODIFIED, f"Modified: {updated.name}")

        logger.info("Lead %s modified: %s", lead_id, ", ".join(sorted(changes)))
        return updated

    def delete(self, lead_id):
        """
        Delete a lead with its log entries and proposal sets.

        Children go first so no foreign key is left dangling.

        Raises:
            NotFound: If the lead does not exist
        """
        self.get_lead(lead_id)

        self.store.delete_events(lead_id)
        self.store.delete_proposal_sets(lead_id)
        self.store.delete_lead(lead_id)

        logger.info("Lead %s deleted", lead_id)

    def create_lead(self, fields: Dict[str, Any]) -> Lead:
        """
        Create a lead from manual entry.

        The lead starts in state new with the next free sequence number.

        Raises:
            ValidationError: If name or phone is blank, or the channel is
                unknown
        """
        cleaned = validate_lead_fields(fields)
        cleaned["state"] = LeadState.NEW
        cleaned["sequence"] = self.store.max_sequence() + 1

        rows = self.store.insert_leads([_to_columns(cleaned)])
        lead = Lead.from_row(rows[0])
        self._log(lead.id, EventAction.LEAD_CREATED, f"Created: {lead.name}")

        logger.info("Lead %s created (sequence %s)", lead.id, lead.sequence)
        return lead

    # ==========================================
    # GENERATED EMAILS
    # ==========================================

    def list_generated_emails(self, sent: Optional[bool] = None) -> List[Lead]:
        """
        Leads with a generated email, newest first.

        Args:
            sent: True for emails already sent, False for those still to
                send, None for both
        """
        return [Lead.from_row(row) for row in self.store.list_generated_emails(sent)]

    def mark_email_sent(self, lead_id) -> Lead:
        """
        Record that a lead's generated email went out.

        Raises:
            NotFound: If the lead does not exist
        """
        updated = self._update(lead_id, _to_columns({"email_sent": True}))

        logger.info("Email for lead %s marked as sent", lead_id)
        return updated

    # ==========================================
    # TEMPLATES
    # ==========================================

    def get_template(self, template_id) -> Template:
        row = self.store.get_template(template_id)
        if row is None:
            raise NotFound("template", template_id)
        return Template.from_row(row)

    def list_templates(self, active_only: bool = True) -> List[Template]:
        return [Template.from_row(row) for row in self.store.list_templates(active_only)]

    def create_template(self, template: Template) -> Template:
        """
        Save a new template.

        Raises:
            ValidationError: If name or body is blank
        """
        template = validate_template(template)
        row = self.store.insert_template(template.to_row())

        created = Template.from_row(row) if row else template
        logger.info("Template %s created: %s", created.id, created.name)
        return created

    def update_template(self, template_id, fields: Dict[str, Any]) -> Template:
        """
        Change some attributes of a template.

        Fields not given keep their current value.

        Raises:
            NotFound: If the template does not exist
            ValidationError: If a field is unknown, or name or body would be blank
        """
        unknown = set(fields) - set(TEMPLATE_COLUMNS)
        if unknown:
            raise ValidationError(f"Unknown template fields: {', '.join(sorted(unknown))}")

        template = validate_template(replace(self.get_template(template_id), **fields))
        row = self.store.update_template(template_id, template.to_row())
        if row is None:
            raise NotFound("template", template_id)

        logger.info("Template %s updated: %s", template_id, ", ".join(sorted(fields)))
        return Template.from_row(row)

    def delete_template(self, template_id):
        """
        Raises:
            NotFound: If the template does not exist
        """
        self.get_template(template_id)
        self.store.delete_template(template_id)

        logger.info("Template %s deleted", template_id)

    def use_template(
        self,
        lead_id,
        template_id,
        extra_fields: Optional[Dict[str, Any]] = None,
        attachment_url: Optional[str] = None,
    ) -> TemplateMessage:
        """
        Personalize a template for a lead and log its use.

        Raises:
            NotFound: If the lead or template does not exist
            ValidationError: If required extra fields are blank
        """
        lead = self.get_lead(lead_id)
        template = self.get_template(template_id)

        missing = validate_extra_fields(template, extra_fields)
        if missing:
            raise ValidationError(f"Compila tutti i campi richiesti: {', '.join(missing)}", missing)

        text = personalize(template, lead, extra_fields, attachment_url)

        detail = f"Template ID: {template.id}"
        if attachment_url:
            detail += " - with attachment"
        self._log(lead.id, EventAction.TEMPLATE_USED, detail)

        return TemplateMessage(text=text, whatsapp_url=whatsapp_link(lead.phone, text), template_id=template.id)
