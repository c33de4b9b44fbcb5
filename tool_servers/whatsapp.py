"""WhatsApp inbox MCP tool server.

Run over stdio:

    python -m tool_servers.whatsapp
"""

from __future__ import annotations

import argparse
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from api.services import whatsapp_service
from logging_utils import configure_app_logging
from tool_servers.server import OrgScopedArgs, ToolServer

server = ToolServer("hera-whatsapp", "1.0.0")


class UpsertCustomerArgs(OrgScopedArgs):
    phone_number: str = Field(min_length=3, description="E.164 phone number")
    display_name: str = Field(min_length=1)


class CreateConversationArgs(OrgScopedArgs):
    customer_id: str
    phone_number: str
    agent_queue_id: Optional[str] = None


class PostMessageArgs(OrgScopedArgs):
    thread_id: str
    direction: Literal["inbound", "outbound"]
    text: Optional[str] = None
    media: Optional[List[Dict[str, Any]]] = Field(default=None, description="[{url, mime}]")
    interactive: Optional[Dict[str, Any]] = None
    channel_msg_id: Optional[str] = None
    cost: float = Field(default=0.0, ge=0)


class AssignConversationArgs(OrgScopedArgs):
    thread_id: str
    assignee_entity_id: str


class AddNoteArgs(OrgScopedArgs):
    thread_id: str
    text: str = Field(min_length=1)
    author_entity_id: Optional[str] = None


class LinkThreadArgs(OrgScopedArgs):
    thread_id: str
    entity_id: str


class ListConversationsArgs(OrgScopedArgs):
    status: Optional[Literal["open", "pending", "resolved"]] = None
    search: Optional[str] = None
    include_archived: bool = False


class AnalyticsArgs(OrgScopedArgs):
    start_date: Optional[str] = Field(default=None, description="ISO date; default 30 days ago")
    end_date: Optional[str] = Field(default=None, description="ISO date; default now")


class TogglePinArgs(OrgScopedArgs):
    thread_id: str
    pinned: bool = True


class ToggleArchiveArgs(OrgScopedArgs):
    thread_id: str
    archived: bool = True


@server.tool("whatsapp.upsert_customer", "Create or rename the customer for a phone number.", UpsertCustomerArgs)
def upsert_customer(session, args: UpsertCustomerArgs):
    return whatsapp_service.upsert_customer(
        session, args.org(), phone_number=args.phone_number, display_name=args.display_name
    )


@server.tool("whatsapp.create_conversation", "Open a conversation thread with a customer.", CreateConversationArgs)
def create_conversation(session, args: CreateConversationArgs):
    return whatsapp_service.create_conversation(
        session,
        args.org(),
        customer_id=args.customer_id,
        phone_number=args.phone_number,
        agent_queue_id=args.agent_queue_id,
    )


@server.tool("whatsapp.post_message", "Append an inbound or outbound message to a thread.", PostMessageArgs)
def post_message(session, args: PostMessageArgs):
    return whatsapp_service.post_message(
        session,
        args.org(),
        thread_id=args.thread_id,
        direction=args.direction,
        text=args.text,
        media=args.media,
        interactive=args.interactive,
        channel_msg_id=args.channel_msg_id,
        cost=args.cost,
    )


@server.tool("whatsapp.assign_conversation", "Assign a thread to an agent.", AssignConversationArgs)
def assign_conversation(session, args: AssignConversationArgs):
    return whatsapp_service.assign_conversation(
        session, args.org(), thread_id=args.thread_id, assignee_entity_id=args.assignee_entity_id
    )


@server.tool("whatsapp.add_note", "Add an internal note to a thread.", AddNoteArgs)
def add_note(session, args: AddNoteArgs):
    return whatsapp_service.add_note(
        session,
        args.org(),
        thread_id=args.thread_id,
        text=args.text,
        author_entity_id=args.author_entity_id,
    )


@server.tool("whatsapp.link_thread", "Link a thread's contact to another entity.", LinkThreadArgs)
def link_thread(session, args: LinkThreadArgs):
    return whatsapp_service.link_thread(
        session, args.org(), thread_id=args.thread_id, entity_id=args.entity_id
    )


@server.tool("whatsapp.list_conversations", "List threads with messages and unread counts.", ListConversationsArgs)
def list_conversations(session, args: ListConversationsArgs):
    return whatsapp_service.list_conversations(
        session,
        args.org(),
        status=args.status,
        search=args.search,
        include_archived=args.include_archived,
    )


@server.tool("whatsapp.analytics", "Message volume, engagement and top contacts over a window.", AnalyticsArgs)
def analytics(session, args: AnalyticsArgs):
    return whatsapp_service.analytics(
        session, args.org(), start_date=args.start_date, end_date=args.end_date
    )


@server.tool("whatsapp.toggle_pin", "Pin or unpin a thread.", TogglePinArgs)
def toggle_pin(session, args: TogglePinArgs):
    return whatsapp_service.toggle_pin(session, args.org(), thread_id=args.thread_id, pinned=args.pinned)


@server.tool("whatsapp.toggle_archive", "Archive or restore a thread.", ToggleArchiveArgs)
def toggle_archive(session, args: ToggleArchiveArgs):
    return whatsapp_service.toggle_archive(
        session, args.org(), thread_id=args.thread_id, archived=args.archived
    )


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="HERA WhatsApp inbox MCP server (stdio).")
    p.add_argument("--log-level", default="INFO")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_app_logging(args.log_level)
    server.serve()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
