"""
utils/whatsapp_utils.py

Purpose: WhatsApp identifier helpers

- Phone extraction from attendee names and ids
- Contact name / group detection from Unipile provider ids
- Chat lookups by phone
"""

import re
from typing import Optional, Dict, Any, Tuple

WHATSAPP_USER_SUFFIX = "@s.whatsapp.net"
WHATSAPP_GROUP_SUFFIX = "@g.us"
UNKNOWN_CONTACT = "Unknown Contact"

_PHONE_PATTERN = re.compile(r"\+?[\d\s\-\(\)]+")
_PROVIDER_DIGITS = re.compile(r"(\d+)@")


def normalize_phone(raw: str) -> str:
    """
    Strips spacing/punctuation and ensures a leading +.

    Example:
        "44 7863 (992) 555" -> "+447863992555"
    """
    phone = re.sub(r"[\s\-\(\)]", "", raw)
    if not phone.startswith("+"):
        phone = f"+{phone}"
    return phone


def extract_phone_number(text: Optional[str]) -> Optional[str]:
    """
    Finds the first phone-like run in free text (attendee or contact name).

    Returns:
        Normalized phone, or None when the text holds no digits
    """
    if not text:
        return None

    for match in _PHONE_PATTERN.finditer(text):
        candidate = match.group(0)
        if re.search(r"\d", candidate):
            return normalize_phone(candidate.strip())

    return None


def phone_from_attendee_id(attendee_id: Optional[str]) -> Optional[str]:
    """
    "447863992555@s.whatsapp.net" -> "+447863992555"
    """
    if not attendee_id or not attendee_id.endswith(WHATSAPP_USER_SUFFIX):
        return None
    digits = attendee_id[: -len(WHATSAPP_USER_SUFFIX)]
    if not digits.isdigit():
        return None
    return normalize_phone(digits)


def sender_phone(sender: Optional[Dict[str, Any]], contact_name: Optional[str] = None) -> Optional[str]:
    """
    Best-effort phone for a message sender.

    Order: attendee id, then attendee name, then the chat's contact name.
    """
    sender = sender or {}
    return (
        phone_from_attendee_id(sender.get("attendee_id"))
        or extract_phone_number(sender.get("attendee_name"))
        or extract_phone_number(contact_name)
    )


def parse_provider_chat(chat: Dict[str, Any]) -> Tuple[str, str, bool]:
    """
    Derives contact details from a Unipile chat item.

    Args:
        chat: Unipile chat payload (uses name, provider_id, attendee_provider_id)

    Returns:
        (contact_name, contact_phone, is_group)
    """
    name = chat.get("name")
    provider_id = chat.get("provider_id") or chat.get("attendee_provider_id") or ""

    if provider_id.endswith(WHATSAPP_GROUP_SUFFIX):
        return name or "Group Chat", "", True

    contact_phone = ""
    match = _PROVIDER_DIGITS.search(provider_id)
    if match:
        contact_phone = f"+{match.group(1)}"

    contact_name = name or contact_phone or UNKNOWN_CONTACT
    return contact_name, contact_phone, False


def chat_matches_phone(chat: Dict[str, Any], phone: str) -> bool:
    """
    True when the chat's contact name contains the phone or its id
    contains the phone's digits.
    """
    digits = phone.replace("+", "")
    contact_name = chat.get("contact_name") or ""
    contact_phone = chat.get("contact_phone") or ""
    return (
        phone in contact_name
        or (bool(contact_phone) and contact_phone == phone)
        or (bool(digits) and digits in (chat.get("chat_id") or ""))
    )
