#!/usr/bin/env python3
"""Seed a WhatsApp inbox demo: customers, threads, messages, notes and a pinned thread.

Prints the analytics summary for the seeded organization at the end.

Usage:
    python scripts/seed_whatsapp_demo.py
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

import db
from api.services import whatsapp_service as wa
from logging_utils import get_logger
from scripts.seed_common import ensure_organization, ensure_schema, seed_entity

logger = get_logger(__name__)

CUSTOMERS = [
    ("+971501234567", "Aisha Rahman"),
    ("+971502345678", "Omar Haddad"),
    ("+971503456789", "Layla Nasser"),
]

# (customer index, [(direction, text), ...])
CONVERSATIONS = [
    (0, [("inbound", "Hi, can I book a haircut for Saturday?"),
         ("outbound", "Of course! We have 11:00 or 14:30 available."),
         ("inbound", "14:30 please")]),
    (1, [("inbound", "Do you sell gift cards?"),
         ("outbound", "Yes, from 100 AED. Shall I send a payment link?")]),
    (2, [("inbound", "Is the salon open on Fridays?")]),
]


def seed(session, *, org_name: str, org_code: str) -> dict:
    org_id = ensure_organization(session, name=org_name, code=org_code, industry="salon")

    agent_id = seed_entity(
        session,
        org_id,
        entity_type="EMPLOYEE",
        name="Front Desk Agent",
        code="AGENT-001",
        smart_code="HERA.SALON.EMPLOYEE.AGENT.FRONTDESK.v1",
    )

    customer_ids = []
    for phone, name in CUSTOMERS:
        customer_ids.append(
            wa.upsert_customer(session, org_id, phone_number=phone, display_name=name)["customer_id"]
        )

    threads = []
    for customer_index, messages in CONVERSATIONS:
        phone = CUSTOMERS[customer_index][0]
        thread_id = wa.create_conversation(
            session, org_id, customer_id=customer_ids[customer_index], phone_number=phone
        )["thread_id"]
        threads.append(thread_id)
        for direction, text in messages:
            wa.post_message(session, org_id, thread_id=thread_id, direction=direction, text=text)

    wa.assign_conversation(session, org_id, thread_id=threads[0], assignee_entity_id=agent_id)
    wa.add_note(
        session,
        org_id,
        thread_id=threads[0],
        text="Regular client, prefers senior stylist.",
        author_entity_id=agent_id,
    )
    wa.toggle_pin(session, org_id, thread_id=threads[0], pinned=True)

    summary = wa.analytics(session, org_id)
    logger.info("WhatsApp demo seeded org=%s threads=%d", org_id, len(threads))
    return summary


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Seed WhatsApp inbox demo data.")
    p.add_argument("--org-name", default="Demo Salon")
    p.add_argument("--org-code", default="DEMO-SALON")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    ensure_schema()
    with db.SessionLocal() as session:
        summary = seed(session, org_name=args.org_name, org_code=args.org_code)
    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
