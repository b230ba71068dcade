"""
Proposal Resolver - picks the message variants valid for a lead.

The generator writes up to nine optional slots per generation cycle:

    messaggio_{1_formale,2_cordiale,3_urgenza}   legacy single-channel slots
    whatsapp_{...}                               WhatsApp plain text
    email_{...}                                  JSON {"oggetto", "corpo"}

Resolution turns those into ResolvedVariants values tagged with the slot
family they came from, so the fallback order lives in one place.

Usage:
    resolver = ProposalResolver(store)
    result = resolver.resolve_lead(lead_id)

    if result.status is ResolutionStatus.NOT_GENERATED:
        ...
    print(result.whatsapp.cordial)
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from .errors import NotFound, ParseError
from .models import Channel, Lead, ProposalSet, Tone

logger = logging.getLogger(__name__)


class SlotSource(str, Enum):
    """Slot family a set of variants was read from."""
    WHATSAPP = "whatsapp"
    EMAIL = "email"
    LEGACY = "messaggio"


class ResolutionStatus(str, Enum):
    RESOLVED = "resolved"
    NOT_GENERATED = "not_generated"


@dataclass(frozen=True)
class EmailMessage:
    """Structured email proposal."""
    subject: str
    body: str

    @classmethod
    def from_json(cls, raw: str, field_name: str) -> "EmailMessage":
        """
        Parse a stored email payload.

        Raises:
            ParseError: If the payload is not a JSON object with a body
        """
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise ParseError(field_name, str(e)) from e

        if not isinstance(data, dict):
            raise ParseError(field_name, "payload is not a JSON object")

        body = data.get("corpo", data.get("body"))
        if body is None:
            raise ParseError(field_name, "missing body")

        subject = data.get("oggetto", data.get("subject")) or ""
        return cls(subject=str(subject), body=str(body))


@dataclass(frozen=True)
class ResolvedVariants:
    """
    The three tones of one channel.

    A tone is None when its slot is empty or could not be parsed; parse
    failures are listed in `errors` keyed by tone.
    """
    source: SlotSource
    formal: Optional[Any] = None
    cordial: Optional[Any] = None
    urgent: Optional[Any] = None
    errors: Dict[Tone, str] = field(default_factory=dict)

    def get(self, tone: Tone) -> Optional[Any]:
        return getattr(self, tone.name.lower())

    def items(self) -> Iterable[Tuple[Tone, Optional[Any]]]:
        return ((tone, self.get(tone)) for tone in Tone)

    @property
    def available(self) -> Tuple[Tone, ...]:
        return tuple(tone for tone, value in self.items() if value is not None)


@dataclass(frozen=True)
class ResolvedProposals:
    """Outcome of resolving a lead's current proposal set."""
    status: ResolutionStatus
    channel: Channel
    whatsapp: Optional[ResolvedVariants] = None
    email: Optional[ResolvedVariants] = None
    proposal_set_id: Optional[Any] = None

    @classmethod
    def not_generated(cls, channel: Channel) -> "ResolvedProposals":
        return cls(status=ResolutionStatus.NOT_GENERATED, channel=channel)

    @property
    def is_generated(self) -> bool:
        return self.status is ResolutionStatus.RESOLVED

    def text_for(self, channel: Channel, tone: Tone) -> Optional[str]:
        """Message text that would be sent for a channel/tone pair."""
        variants = self.whatsapp if channel is Channel.WHATSAPP else self.email
        if variants is None:
            return None
        value = variants.get(tone)
        if isinstance(value, EmailMessage):
            return value.body
        return value


def select_current(proposal_sets: Iterable[ProposalSet]) -> Optional[ProposalSet]:
    """Return the set with the latest created_at, or None when empty."""
    current = None
    for proposal_set in proposal_sets:
        if current is None:
            current = proposal_set
        elif proposal_set.created_at is not None and (
            current.created_at is None or proposal_set.created_at > current.created_at
        ):
            current = proposal_set
    return current


def _has_slots(proposal_set: ProposalSet, prefix: str) -> bool:
    return any(proposal_set.slot(prefix, tone) is not None for tone in Tone)


def _text_variants(proposal_set: ProposalSet, source: SlotSource) -> ResolvedVariants:
    values = {tone.name.lower(): proposal_set.slot(source.value, tone) for tone in Tone}
    return ResolvedVariants(source=source, **values)


def _email_variants(proposal_set: ProposalSet, source: SlotSource) -> ResolvedVariants:
    values: Dict[str, Optional[EmailMessage]] = {}
    errors: Dict[Tone, str] = {}

    for tone in Tone:
        raw = proposal_set.slot(source.value, tone)
        if raw is None:
            values[tone.name.lower()] = None
            continue
        field_name = f"{source.value}_{tone.slot_suffix}"
        try:
            values[tone.name.lower()] = EmailMessage.from_json(raw, field_name)
        except ParseError as e:
            logger.warning("Proposal set %s: %s", proposal_set.id, e)
            values[tone.name.lower()] = None
            errors[tone] = e.message

    return ResolvedVariants(source=source, errors=errors, **values)


def resolve_whatsapp(proposal_set: ProposalSet) -> Optional[ResolvedVariants]:
    """WhatsApp slots, falling back to the legacy slots."""
    if _has_slots(proposal_set, SlotSource.WHATSAPP.value):
        return _text_variants(proposal_set, SlotSource.WHATSAPP)
    if _has_slots(proposal_set, SlotSource.LEGACY.value):
        return _text_variants(proposal_set, SlotSource.LEGACY)
    return None


def resolve_email(proposal_set: ProposalSet) -> Optional[ResolvedVariants]:
    """Email slots, falling back to the legacy slots parsed as JSON."""
    if _has_slots(proposal_set, SlotSource.EMAIL.value):
        return _email_variants(proposal_set, SlotSource.EMAIL)
    if _has_slots(proposal_set, SlotSource.LEGACY.value):
        return _email_variants(proposal_set, SlotSource.LEGACY)
    return None


def resolve(channel: Channel, proposal_set: Optional[ProposalSet]) -> ResolvedProposals:
    """
    Resolve the variants of a proposal set for a channel preference.

    Pure: the same inputs always yield an equal result.
    """
    channel = Channel.parse(channel)
    if proposal_set is None:
        return ResolvedProposals.not_generated(channel)

    whatsapp = None
    email = None
    if channel in (Channel.WHATSAPP, Channel.BOTH):
        whatsapp = resolve_whatsapp(proposal_set)
    if channel in (Channel.EMAIL, Channel.BOTH):
        email = resolve_email(proposal_set)

    return ResolvedProposals(
        status=ResolutionStatus.RESOLVED,
        channel=channel,
        whatsapp=whatsapp,
        email=email,
        proposal_set_id=proposal_set.id,
    )


def match_tone(resolved: ResolvedProposals, channel: Channel, text: str) -> Optional[Tone]:
    """Find which tone produced a message, comparing trimmed text."""
    wanted = (text or "").strip()
    for tone in Tone:
        candidate = resolved.text_for(channel, tone)
        if candidate is not None and candidate.strip() == wanted:
            return tone
    return None


class ProposalResolver:
    """Reads leads and their current proposal set through the store."""

    def __init__(self, store):
        self.store = store

    def current_proposal_set(self, lead_id) -> Optional[ProposalSet]:
        row = self.store.latest_proposal_set(lead_id)
        return ProposalSet.from_row(row) if row else None

    def resolve_lead(self, lead_id) -> ResolvedProposals:
        """
        Resolve the variants for a stored lead.

        Raises:
            NotFound: If the lead does not exist
        """
        row = self.store.get_lead(lead_id)
        if row is None:
            raise NotFound("lead", lead_id)
        lead = Lead.from_row(row)
        return resolve(lead.channel, self.current_proposal_set(lead_id))
