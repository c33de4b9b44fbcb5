"""WhatsApp inbox on the six tables.

- customer: CUSTOMER entity keyed by phone number (entity_code)
- conversation: MESSAGE_THREAD transaction; `metadata` holds channel,
  phone number, status and pin/archive flags
- message / assignment / internal note: lines of the thread, numbered in order
- thread link: THREAD_TO_ENTITY relationship from the thread's contact
"""

from __future__ import annotations

from collections import Counter
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from api.services.errors import InvalidPayloadError, RecordNotFoundError
from logging_utils import get_logger
from models.entities import Entity
from models.relationships import Relationship
from models.serialization import row_to_dict
from models.transaction_lines import TransactionLine
from models.transactions import Transaction
from utils.time_utils import isoformat, parse_datetime, utcnow

logger = get_logger(__name__)

MESSAGE_THREAD = "MESSAGE_THREAD"
CUSTOMER = "CUSTOMER"

SMART_CODES = {
    "thread": "HERA.WHATSAPP.INBOX.THREAD.v1",
    "assign": "HERA.WHATSAPP.INBOX.ASSIGN.v1",
    "message_text": "HERA.WHATSAPP.MESSAGE.TEXT.v1",
    "message_media": "HERA.WHATSAPP.MESSAGE.MEDIA.v1",
    "message_interactive": "HERA.WHATSAPP.MESSAGE.INTERACTIVE.v1",
    "note": "HERA.WHATSAPP.NOTE.INTERNAL.v1",
    "thread_link": "HERA.WHATSAPP.REL.THREAD_TO_ENTITY.v1",
    "customer": "HERA.CRM.CUSTOMER.WHATSAPP.v1",
}

DEFAULT_ANALYTICS_DAYS = 30
TOP_N = 5


def _thread(session: Session, org_id: str, thread_id: str) -> Transaction:
    row = (
        session.query(Transaction)
        .filter(
            Transaction.organization_id == org_id,
            Transaction.id == thread_id,
            Transaction.transaction_type == MESSAGE_THREAD,
        )
        .one_or_none()
    )
    if row is None:
        raise RecordNotFoundError(f"Conversation {thread_id} not found")
    return row


def _next_line_number(session: Session, org_id: str, thread_id: str) -> int:
    current = (
        session.query(func.max(TransactionLine.line_number))
        .filter(
            TransactionLine.organization_id == org_id,
            TransactionLine.transaction_id == thread_id,
        )
        .scalar()
    )
    return int(current or 0) + 1


def _update_metadata(thread: Transaction, **changes: Any) -> None:
    # JSON columns only persist on reassignment.
    thread.metadata_ = {**(thread.metadata_ or {}), **changes}


def _add_line(
    session: Session, org_id: str, thread: Transaction, **columns: Any
) -> TransactionLine:
    line = TransactionLine(
        organization_id=org_id,
        transaction_id=thread.id,
        line_number=_next_line_number(session, org_id, thread.id),
        **columns,
    )
    session.add(line)
    return line


def upsert_customer(
    session: Session, org_id: str, *, phone_number: str, display_name: str
) -> Dict[str, Any]:
    customer = (
        session.query(Entity)
        .filter(
            Entity.organization_id == org_id,
            Entity.entity_type == CUSTOMER,
            Entity.entity_code == phone_number,
        )
        .one_or_none()
    )
    created = customer is None
    if created:
        customer = Entity(
            organization_id=org_id,
            entity_type=CUSTOMER,
            entity_code=phone_number,
            smart_code=SMART_CODES["customer"],
            status="active",
        )
        session.add(customer)

    customer.entity_name = display_name
    customer.business_rules = {"msisdn": phone_number, "channel": "whatsapp"}
    session.commit()
    session.refresh(customer)
    logger.info("customer %s phone=%s created=%s", customer.id, phone_number, created)
    return {"customer_id": customer.id, "created": created, "customer": row_to_dict(customer)}


def create_conversation(
    session: Session,
    org_id: str,
    *,
    customer_id: str,
    phone_number: str,
    agent_queue_id: Optional[str] = None,
) -> Dict[str, Any]:
    thread = Transaction(
        organization_id=org_id,
        transaction_type=MESSAGE_THREAD,
        smart_code=SMART_CODES["thread"],
        transaction_date=utcnow(),
        source_entity_id=customer_id,
        target_entity_id=agent_queue_id,
        status="open",
        metadata_={"channel": "whatsapp", "phone_number": phone_number, "status": "open"},
    )
    session.add(thread)
    session.commit()
    session.refresh(thread)
    return {"thread_id": thread.id, "thread": row_to_dict(thread)}


def post_message(
    session: Session,
    org_id: str,
    *,
    thread_id: str,
    direction: str,
    text: Optional[str] = None,
    media: Optional[List[Dict[str, Any]]] = None,
    interactive: Optional[Dict[str, Any]] = None,
    channel_msg_id: Optional[str] = None,
    cost: float = 0.0,
) -> Dict[str, Any]:
    if direction not in ("inbound", "outbound"):
        raise InvalidPayloadError("direction must be 'inbound' or 'outbound'")
    if not (text or media or interactive):
        raise InvalidPayloadError("A message needs text, media or interactive content")

    thread = _thread(session, org_id, thread_id)

    smart_code = SMART_CODES["message_text"]
    if media:
        smart_code = SMART_CODES["message_media"]
    if interactive:
        smart_code = SMART_CODES["message_interactive"]

    now = isoformat(utcnow())
    line = _add_line(
        session,
        org_id,
        thread,
        line_type="MESSAGE",
        description=text[:255] if text else "WhatsApp Message",
        line_amount=float(cost or 0.0),
        smart_code=smart_code,
        line_data={
            "direction": direction,
            "channel_msg_id": channel_msg_id,
            "text": text,
            "media": media,
            "interactive": interactive,
            "status": "sent" if direction == "outbound" else "received",
            "timestamp": now,
        },
    )
    _update_metadata(
        thread,
        last_message_at=now,
        last_message_direction=direction,
        last_message_preview=text[:100] if text else None,
    )
    session.commit()
    return {"message_id": line.id, "line_number": line.line_number}


def assign_conversation(
    session: Session, org_id: str, *, thread_id: str, assignee_entity_id: str
) -> Dict[str, Any]:
    thread = _thread(session, org_id, thread_id)
    line = _add_line(
        session,
        org_id,
        thread,
        line_type="INBOX_ACTION",
        description="Assigned conversation",
        smart_code=SMART_CODES["assign"],
        line_data={"assignee_entity_id": assignee_entity_id, "assigned_at": isoformat(utcnow())},
    )
    _update_metadata(thread, assignee_entity_id=assignee_entity_id)
    session.commit()
    return {"assignment_id": line.id, "line_number": line.line_number}


def add_note(
    session: Session,
    org_id: str,
    *,
    thread_id: str,
    text: str,
    author_entity_id: Optional[str] = None,
) -> Dict[str, Any]:
    thread = _thread(session, org_id, thread_id)
    line = _add_line(
        session,
        org_id,
        thread,
        line_type="INTERNAL_NOTE",
        description=text[:255],
        smart_code=SMART_CODES["note"],
        line_data={
            "text": text,
            "author_entity_id": author_entity_id,
            "created_at": isoformat(utcnow()),
        },
    )
    session.commit()
    return {"note_id": line.id, "line_number": line.line_number}


def link_thread(
    session: Session, org_id: str, *, thread_id: str, entity_id: str
) -> Dict[str, Any]:
    """THREAD_TO_ENTITY relationship from the thread's contact to `entity_id`."""

    thread = _thread(session, org_id, thread_id)
    if not thread.source_entity_id:
        raise InvalidPayloadError(f"Conversation {thread_id} has no contact to link from")

    target = (
        session.query(Entity.id)
        .filter(Entity.organization_id == org_id, Entity.id == entity_id)
        .first()
    )
    if target is None:
        raise RecordNotFoundError(f"Entity {entity_id} not found")

    rel = Relationship(
        organization_id=org_id,
        from_entity_id=thread.source_entity_id,
        to_entity_id=entity_id,
        relationship_type="THREAD_TO_ENTITY",
        smart_code=SMART_CODES["thread_link"],
        relationship_data={
            "channel": "whatsapp",
            "thread_id": thread.id,
            "created_at": isoformat(utcnow()),
        },
    )
    session.add(rel)
    session.commit()
    return {"relationship_id": rel.id}


def _threads_with_lines(session: Session, org_id: str, threads: List[Transaction]):
    ids = [t.id for t in threads]
    by_thread: Dict[str, List[TransactionLine]] = {tid: [] for tid in ids}
    if ids:
        lines = (
            session.query(TransactionLine)
            .filter(
                TransactionLine.organization_id == org_id,
                TransactionLine.transaction_id.in_(ids),
            )
            .order_by(TransactionLine.line_number)
            .all()
        )
        for line in lines:
            by_thread[line.transaction_id].append(line)
    return by_thread


def list_conversations(
    session: Session,
    org_id: str,
    *,
    status: Optional[str] = None,
    search: Optional[str] = None,
    include_archived: bool = False,
) -> Dict[str, Any]:
    threads = (
        session.query(Transaction)
        .filter(
            Transaction.organization_id == org_id,
            Transaction.transaction_type == MESSAGE_THREAD,
        )
        .order_by(Transaction.created_at.desc())
        .all()
    )

    # Status/search live inside JSON metadata; filter in Python for portability.
    def keep(t: Transaction) -> bool:
        meta = t.metadata_ or {}
        if status and meta.get("status") != status:
            return False
        if meta.get("is_archived") and not include_archived:
            return False
        if search:
            needle = search.lower()
            hay = f"{meta.get('phone_number') or ''} {meta.get('last_message_preview') or ''}"
            if needle not in hay.lower():
                return False
        return True

    threads = [t for t in threads if keep(t)]
    lines_by_thread = _threads_with_lines(session, org_id, threads)

    contact_names = {}
    contact_ids = {t.source_entity_id for t in threads if t.source_entity_id}
    if contact_ids:
        contact_names = dict(
            session.query(Entity.id, Entity.entity_name).filter(Entity.id.in_(contact_ids)).all()
        )

    conversations = []
    for t in threads:
        meta = t.metadata_ or {}
        messages = [line for line in lines_by_thread[t.id] if line.line_type == "MESSAGE"]
        last = messages[-1] if messages else None
        unread = sum(
            1
            for m in messages
            if (m.line_data or {}).get("direction") == "inbound"
            and (m.line_data or {}).get("status") != "read"
        )
        conversations.append(
            {
                "id": t.id,
                "contact_id": t.source_entity_id,
                "contact_name": contact_names.get(t.source_entity_id)
                or meta.get("phone_number")
                or "Unknown",
                "phone_number": meta.get("phone_number"),
                "status": meta.get("status"),
                "metadata": meta,
                "last_message": (
                    {
                        "id": last.id,
                        "text": (last.line_data or {}).get("text"),
                        "direction": (last.line_data or {}).get("direction"),
                        "created_at": isoformat(last.created_at),
                    }
                    if last
                    else None
                ),
                "messages": [
                    {
                        "id": m.id,
                        "line_number": m.line_number,
                        "text": (m.line_data or {}).get("text"),
                        "type": "media" if (m.line_data or {}).get("media") else "text",
                        "direction": (m.line_data or {}).get("direction"),
                        "status": (m.line_data or {}).get("status"),
                        "created_at": isoformat(m.created_at),
                    }
                    for m in messages
                ],
                "unread_count": unread,
                "is_pinned": bool(meta.get("is_pinned")),
                "is_archived": bool(meta.get("is_archived")),
                "updated_at": isoformat(last.created_at if last else t.created_at),
            }
        )

    return {
        "conversations": conversations,
        "total_conversations": len(conversations),
        "total_messages": sum(len(c["messages"]) for c in conversations),
    }


def analytics(
    session: Session,
    org_id: str,
    *,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> Dict[str, Any]:
    """Message volume and engagement for threads created inside the window.

    The window defaults to the last 30 days. Engagement is the share of
    threads with at least one outbound message, as a rounded percentage.
    """

    end = parse_datetime(end_date) or utcnow()
    start = parse_datetime(start_date) or end - timedelta(days=DEFAULT_ANALYTICS_DAYS)
    if start > end:
        raise InvalidPayloadError("start_date must be before end_date")

    threads = (
        session.query(Transaction)
        .filter(
            Transaction.organization_id == org_id,
            Transaction.transaction_type == MESSAGE_THREAD,
            Transaction.created_at >= start,
            Transaction.created_at <= end,
        )
        .all()
    )
    lines_by_thread = _threads_with_lines(session, org_id, threads)

    hours: Counter = Counter()
    per_contact: Counter = Counter()
    total_messages = 0
    responded = 0
    for t in threads:
        messages = [line for line in lines_by_thread[t.id] if line.line_type == "MESSAGE"]
        total_messages += len(messages)
        if t.source_entity_id:
            per_contact[t.source_entity_id] += len(messages)
        if any((m.line_data or {}).get("direction") == "outbound" for m in messages):
            responded += 1
        for m in messages:
            if m.created_at is not None:
                hours[m.created_at.hour] += 1

    top = per_contact.most_common(TOP_N)
    names = {}
    if top:
        names = dict(
            session.query(Entity.id, Entity.entity_name)
            .filter(Entity.id.in_([cid for cid, _ in top]))
            .all()
        )

    return {
        "total_messages": total_messages,
        "unique_contacts": len({t.source_entity_id for t in threads if t.source_entity_id}),
        "engagement_rate": round(responded / len(threads) * 100) if threads else 0,
        "popular_time_slots": [
            {"hour": hour, "count": count} for hour, count in hours.most_common(TOP_N)
        ],
        "top_contacts": [
            {"contact_id": cid, "name": names.get(cid, "Unknown"), "message_count": count}
            for cid, count in top
        ],
        "window": {"start": isoformat(start), "end": isoformat(end)},
    }


def toggle_pin(session: Session, org_id: str, *, thread_id: str, pinned: bool) -> Dict[str, Any]:
    thread = _thread(session, org_id, thread_id)
    _update_metadata(
        thread, is_pinned=pinned, pinned_at=isoformat(utcnow()) if pinned else None
    )
    session.commit()
    return {"thread_id": thread.id, "is_pinned": pinned}


def toggle_archive(
    session: Session, org_id: str, *, thread_id: str, archived: bool
) -> Dict[str, Any]:
    thread = _thread(session, org_id, thread_id)
    _update_metadata(
        thread, is_archived=archived, archived_at=isoformat(utcnow()) if archived else None
    )
    session.commit()
    return {"thread_id": thread.id, "is_archived": archived}
