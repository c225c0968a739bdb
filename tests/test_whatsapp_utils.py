import pytest

from utils.whatsapp_utils import (
    chat_matches_phone,
    extract_phone_number,
    normalize_phone,
    parse_provider_chat,
    phone_from_attendee_id,
    sender_phone,
)


@pytest.mark.parametrize("text,expected", [
    ("+44 7700 900123", "+447700900123"),
    ("Dana (447700900123)", "+447700900123"),
    ("Dana", None),
    ("", None),
    (None, None),
])
def test_extract_phone_number(text, expected):
    assert extract_phone_number(text) == expected


def test_normalize_phone_adds_plus():
    assert normalize_phone("44-7700-900123") == "+447700900123"


def test_phone_from_attendee_id():
    assert phone_from_attendee_id("447700900123@s.whatsapp.net") == "+447700900123"
    assert phone_from_attendee_id("120363@g.us") is None
    assert phone_from_attendee_id("abc@s.whatsapp.net") is None
    assert phone_from_attendee_id(None) is None


def test_sender_phone_prefers_attendee_id():
    sender = {"attendee_id": "447700900123@s.whatsapp.net", "attendee_name": "+1 555 0100"}
    assert sender_phone(sender) == "+447700900123"


def test_sender_phone_falls_back_to_name_then_chat():
    assert sender_phone({"attendee_id": "x", "attendee_name": "+1 555 0100"}) == "+15550100"
    assert sender_phone({"attendee_name": "Dana"}, contact_name="+44 7700 900123") == "+447700900123"
    assert sender_phone(None, contact_name="Dana") is None


def test_parse_provider_chat_individual():
    chat = {"name": "Dana", "provider_id": "447700900123@s.whatsapp.net"}
    assert parse_provider_chat(chat) == ("Dana", "+447700900123", False)


def test_parse_provider_chat_unnamed_individual_uses_phone():
    chat = {"provider_id": "447700900123@s.whatsapp.net"}
    assert parse_provider_chat(chat) == ("+447700900123", "+447700900123", False)


def test_parse_provider_chat_group():
    assert parse_provider_chat({"provider_id": "120363@g.us"}) == ("Group Chat", "", True)
    assert parse_provider_chat({"name": "Family", "provider_id": "120363@g.us"}) == ("Family", "", True)


def test_parse_provider_chat_without_provider_id():
    assert parse_provider_chat({}) == ("Unknown Contact", "", False)


def test_chat_matches_phone():
    assert chat_matches_phone({"contact_name": "+447700900123"}, "+447700900123")
    assert chat_matches_phone({"chat_id": "447700900123@s.whatsapp.net"}, "+447700900123")
    assert chat_matches_phone({"contact_phone": "+447700900123"}, "+447700900123")
    assert not chat_matches_phone({"contact_name": "Dana", "chat_id": "abc"}, "+447700900123")
