"""
Lead outreach workflow engine.

Approval lifecycle, proposal resolution and template personalization for
leads contacted over WhatsApp and email.
"""

from .errors import (
    OutreachError,
    NotFound,
    ValidationError,
    ParseError,
    UpstreamError
)
from .models import Channel, EventAction, Lead, LeadState, LifecycleEvent, ProposalSet, Tone
from .proposals import (
    EmailMessage,
    ProposalResolver,
    ResolutionStatus,
    ResolvedProposals,
    ResolvedVariants,
    SlotSource,
    resolve,
    select_current
)
from .templates import ExtraFieldSpec, Template, personalize, validate_extra_fields, validate_template
from .lifecycle import NO_FEEDBACK, LeadLifecycleController, TemplateMessage

__all__ = [
    "OutreachError",
    "NotFound",
    "ValidationError",
    "ParseError",
    "UpstreamError",
    "Channel",
    "EventAction",
    "Lead",
    "LeadState",
    "LifecycleEvent",
    "ProposalSet",
    "Tone",
    "EmailMessage",
    "ProposalResolver",
    "ResolutionStatus",
    "ResolvedProposals",
    "ResolvedVariants",
    "SlotSource",
    "resolve",
    "select_current",
    "ExtraFieldSpec",
    "Template",
    "personalize",
    "validate_extra_fields",
    "validate_template",
    "NO_FEEDBACK",
    "LeadLifecycleController",
    "TemplateMessage"
]
