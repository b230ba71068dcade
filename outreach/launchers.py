"""
Outbound channel launchers.

Builds the links that hand a message to WhatsApp or the mail client. No
network calls: the operator opens the link to actually send.
"""

import re
from typing import Optional
from urllib.parse import quote

# Characters encodeURIComponent leaves alone
_URI_COMPONENT_SAFE = "-_.!~*'()"

WHATSAPP_BASE_URL = "https://wa.me"


def encode_component(value: Optional[str]) -> str:
    """Percent-encode a string the way browsers' encodeURIComponent does."""
    return quote(value or "", safe=_URI_COMPONENT_SAFE)


def phone_digits(phone: Optional[str]) -> str:
    """Strip everything but digits from a phone number."""
    return re.sub(r"\D", "", phone or "")


def whatsapp_link(phone: str, message: str) -> str:
    """wa.me deep link opening a chat with the message pre-filled."""
    return f"{WHATSAPP_BASE_URL}/{phone_digits(phone)}?text={encode_component(message)}"


def mailto_link(email: Optional[str], subject: str, body: str) -> str:
    """mailto: link with subject and body pre-filled."""
    return (
        f"mailto:{email or ''}"
        f"?subject={encode_component(subject)}"
        f"&body={encode_component(body)}"
    )
