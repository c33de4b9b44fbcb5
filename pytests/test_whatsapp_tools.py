from __future__ import annotations

import json

import pytest

from api.services import whatsapp_service as wa
from api.services.errors import InvalidPayloadError, RecordNotFoundError
from models.relationships import Relationship
from models.transaction_lines import TransactionLine
from tool_servers.whatsapp import server


def _call(name, **arguments):
    result = server.call_tool(name, arguments)
    text = result.content[0]["text"]
    assert not result.isError, text
    return json.loads(text)


@pytest.fixture()
def thread(org_id):
    customer = _call(
        "whatsapp.upsert_customer",
        organization_id=org_id,
        phone_number="+971501234567",
        display_name="Aisha Rahman",
    )
    conv = _call(
        "whatsapp.create_conversation",
        organization_id=org_id,
        customer_id=customer["customer_id"],
        phone_number="+971501234567",
    )
    return {"customer_id": customer["customer_id"], "thread_id": conv["thread_id"]}


def test_upsert_customer_is_keyed_by_phone(org_id):
    first = _call(
        "whatsapp.upsert_customer", organization_id=org_id, phone_number="+15550001", display_name="Sam"
    )
    second = _call(
        "whatsapp.upsert_customer", organization_id=org_id, phone_number="+15550001", display_name="Sam K."
    )

    assert first["created"] is True
    assert second["created"] is False
    assert second["customer_id"] == first["customer_id"]
    assert second["customer"]["entity_name"] == "Sam K."
    assert second["customer"]["entity_type"] == "CUSTOMER"


def test_conversation_metadata(org_id, thread):
    listed = _call("whatsapp.list_conversations", organization_id=org_id)
    conv = listed["conversations"][0]
    assert conv["id"] == thread["thread_id"]
    assert conv["status"] == "open"
    assert conv["metadata"]["channel"] == "whatsapp"
    assert conv["contact_name"] == "Aisha Rahman"
    assert conv["last_message"] is None


def test_messages_are_numbered_and_update_thread(org_id, thread, db_session):
    m1 = _call(
        "whatsapp.post_message",
        organization_id=org_id,
        thread_id=thread["thread_id"],
        direction="inbound",
        text="Hi, can I book for Saturday?",
    )
    m2 = _call(
        "whatsapp.post_message",
        organization_id=org_id,
        thread_id=thread["thread_id"],
        direction="outbound",
        text="Of course!",
    )
    note = _call(
        "whatsapp.add_note",
        organization_id=org_id,
        thread_id=thread["thread_id"],
        text="VIP client",
    )

    assert [m1["line_number"], m2["line_number"], note["line_number"]] == [1, 2, 3]

    conv = _call("whatsapp.list_conversations", organization_id=org_id)["conversations"][0]
    assert [m["text"] for m in conv["messages"]] == ["Hi, can I book for Saturday?", "Of course!"]
    assert conv["last_message"]["direction"] == "outbound"
    assert conv["unread_count"] == 1
    assert conv["metadata"]["last_message_preview"] == "Of course!"
    # channel survives the metadata merge
    assert conv["metadata"]["channel"] == "whatsapp"

    note_line = db_session.get(TransactionLine, note["note_id"])
    assert note_line.line_type == "INTERNAL_NOTE"
    assert note_line.smart_code == "HERA.WHATSAPP.NOTE.INTERNAL.v1"


def test_post_message_validation(org_id, thread, db_session):
    result = server.call_tool(
        "whatsapp.post_message",
        {"organization_id": org_id, "thread_id": thread["thread_id"], "direction": "sideways", "text": "x"},
    )
    assert result.isError

    with pytest.raises(InvalidPayloadError):
        wa.post_message(db_session, org_id, thread_id=thread["thread_id"], direction="inbound")

    with pytest.raises(RecordNotFoundError):
        wa.post_message(db_session, org_id, thread_id="missing", direction="inbound", text="x")


def test_assign_records_line_and_metadata(org_id, thread):
    agent = _call(
        "whatsapp.upsert_customer", organization_id=org_id, phone_number="+15550009", display_name="Agent"
    )["customer_id"]
    out = _call(
        "whatsapp.assign_conversation",
        organization_id=org_id,
        thread_id=thread["thread_id"],
        assignee_entity_id=agent,
    )
    assert out["line_number"] == 1

    conv = _call("whatsapp.list_conversations", organization_id=org_id)["conversations"][0]
    assert conv["metadata"]["assignee_entity_id"] == agent
    assert conv["messages"] == []


def test_link_thread_relates_contact_to_entity(org_id, thread, db_session):
    order = _call(
        "whatsapp.upsert_customer", organization_id=org_id, phone_number="+15550010", display_name="Other"
    )["customer_id"]

    out = _call(
        "whatsapp.link_thread", organization_id=org_id, thread_id=thread["thread_id"], entity_id=order
    )

    rel = db_session.get(Relationship, out["relationship_id"])
    assert rel.from_entity_id == thread["customer_id"]
    assert rel.to_entity_id == order
    assert rel.relationship_type == "THREAD_TO_ENTITY"
    assert rel.relationship_data["thread_id"] == thread["thread_id"]

    missing = server.call_tool(
        "whatsapp.link_thread",
        {"organization_id": org_id, "thread_id": thread["thread_id"], "entity_id": "nope"},
    )
    assert missing.isError


def test_pin_archive_and_filters(org_id, thread):
    _call(
        "whatsapp.post_message",
        organization_id=org_id,
        thread_id=thread["thread_id"],
        direction="inbound",
        text="Where is my order?",
    )

    assert _call("whatsapp.toggle_pin", organization_id=org_id, thread_id=thread["thread_id"]) == {
        "thread_id": thread["thread_id"],
        "is_pinned": True,
    }
    conv = _call("whatsapp.list_conversations", organization_id=org_id)["conversations"][0]
    assert conv["is_pinned"] is True
    assert conv["metadata"]["pinned_at"]

    assert _call("whatsapp.list_conversations", organization_id=org_id, search="order")[
        "total_conversations"
    ] == 1
    assert _call("whatsapp.list_conversations", organization_id=org_id, search="refund")[
        "total_conversations"
    ] == 0
    assert _call("whatsapp.list_conversations", organization_id=org_id, status="resolved")[
        "total_conversations"
    ] == 0

    _call("whatsapp.toggle_archive", organization_id=org_id, thread_id=thread["thread_id"])
    assert _call("whatsapp.list_conversations", organization_id=org_id)["total_conversations"] == 0
    archived = _call("whatsapp.list_conversations", organization_id=org_id, include_archived=True)
    assert archived["conversations"][0]["is_archived"] is True
    assert archived["total_messages"] == 1

    _call(
        "whatsapp.toggle_archive", organization_id=org_id, thread_id=thread["thread_id"], archived=False
    )
    assert _call("whatsapp.list_conversations", organization_id=org_id)["total_conversations"] == 1


def test_analytics(org_id, thread):
    second = _call(
        "whatsapp.upsert_customer", organization_id=org_id, phone_number="+15550002", display_name="Omar"
    )["customer_id"]
    other_thread = _call(
        "whatsapp.create_conversation", organization_id=org_id, customer_id=second, phone_number="+15550002"
    )["thread_id"]

    for direction, text in (("inbound", "a"), ("outbound", "b"), ("inbound", "c")):
        _call(
            "whatsapp.post_message",
            organization_id=org_id,
            thread_id=thread["thread_id"],
            direction=direction,
            text=text,
        )
    _call(
        "whatsapp.post_message",
        organization_id=org_id,
        thread_id=other_thread,
        direction="inbound",
        text="hello?",
    )

    stats = _call("whatsapp.analytics", organization_id=org_id)
    assert stats["total_messages"] == 4
    assert stats["unique_contacts"] == 2
    assert stats["engagement_rate"] == 50
    assert stats["top_contacts"][0] == {
        "contact_id": thread["customer_id"],
        "name": "Aisha Rahman",
        "message_count": 3,
    }
    assert sum(slot["count"] for slot in stats["popular_time_slots"]) == 4

    old = _call(
        "whatsapp.analytics", organization_id=org_id, start_date="2020-01-01", end_date="2020-02-01"
    )
    assert old["total_messages"] == 0
    assert old["engagement_rate"] == 0


def test_analytics_rejects_inverted_window(org_id):
    result = server.call_tool(
        "whatsapp.analytics",
        {"organization_id": org_id, "start_date": "2024-02-01", "end_date": "2024-01-01"},
    )
    assert result.isError
