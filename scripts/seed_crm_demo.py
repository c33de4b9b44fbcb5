#!/usr/bin/env python3
"""Seed a CRM demo: accounts, contacts, account->contact links and opportunities.

Usage:
    python scripts/seed_crm_demo.py
    python scripts/seed_crm_demo.py --org-code DEMO-CRM --org-name "Demo CRM Co"
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

import db
from logging_utils import get_logger
from models.relationships import Relationship
from models.transactions import Transaction
from scripts.seed_common import ensure_organization, ensure_schema, seed_entity

logger = get_logger(__name__)

ACCOUNTS = [
    {
        "code": "ACC-TECHVANTAGE",
        "name": "TechVantage Solutions",
        "fields": {"industry": "Software", "annual_revenue": 12500000, "website": "techvantage.example"},
    },
    {
        "code": "ACC-GLOBALRETAIL",
        "name": "Global Retail Partners",
        "fields": {"industry": "Retail", "annual_revenue": 48000000, "website": "globalretail.example"},
    },
    {
        "code": "ACC-HEALTHFIRST",
        "name": "HealthFirst Clinics",
        "fields": {"industry": "Healthcare", "annual_revenue": 7300000, "website": "healthfirst.example"},
    },
]

CONTACTS = [
    {"code": "CON-SCHEN", "name": "Sarah Chen", "account": "ACC-TECHVANTAGE",
     "fields": {"email": "sarah.chen@techvantage.example", "title": "CTO", "phone": "+1-415-555-0101"}},
    {"code": "CON-MJOHNSON", "name": "Marcus Johnson", "account": "ACC-GLOBALRETAIL",
     "fields": {"email": "marcus@globalretail.example", "title": "VP Operations", "phone": "+1-212-555-0144"}},
    {"code": "CON-APATEL", "name": "Anita Patel", "account": "ACC-HEALTHFIRST",
     "fields": {"email": "apatel@healthfirst.example", "title": "COO", "phone": "+1-617-555-0190"}},
]

OPPORTUNITIES = [
    {"code": "OPP-1001", "account": "ACC-TECHVANTAGE", "amount": 85000.0, "stage": "proposal", "probability": 60},
    {"code": "OPP-1002", "account": "ACC-GLOBALRETAIL", "amount": 240000.0, "stage": "negotiation", "probability": 75},
    {"code": "OPP-1003", "account": "ACC-HEALTHFIRST", "amount": 42000.0, "stage": "qualification", "probability": 25},
]


def seed(session, *, org_name: str, org_code: str) -> dict[str, int]:
    org_id = ensure_organization(session, name=org_name, code=org_code, industry="crm")

    account_ids = {}
    for a in ACCOUNTS:
        account_ids[a["code"]] = seed_entity(
            session,
            org_id,
            entity_type="ACCOUNT",
            name=a["name"],
            code=a["code"],
            smart_code="HERA.CRM.ACCOUNT.ENTERPRISE.ACTIVE.v1",
            fields=a["fields"],
            field_smart_code="HERA.CRM.ACCOUNT.FIELD.PROFILE.v1",
        )

    links = 0
    for c in CONTACTS:
        contact_id = seed_entity(
            session,
            org_id,
            entity_type="CONTACT",
            name=c["name"],
            code=c["code"],
            smart_code="HERA.CRM.CONTACT.PERSON.PRIMARY.v1",
            fields=c["fields"],
            field_smart_code="HERA.CRM.CONTACT.FIELD.PROFILE.v1",
        )
        account_id = account_ids[c["account"]]
        exists = (
            session.query(Relationship.id)
            .filter(
                Relationship.organization_id == org_id,
                Relationship.from_entity_id == account_id,
                Relationship.to_entity_id == contact_id,
                Relationship.relationship_type == "HAS_CONTACT",
            )
            .first()
        )
        if exists is None:
            session.add(
                Relationship(
                    organization_id=org_id,
                    from_entity_id=account_id,
                    to_entity_id=contact_id,
                    relationship_type="HAS_CONTACT",
                    smart_code="HERA.CRM.REL.ACCOUNT_CONTACT.PRIMARY.v1",
                    relationship_data={"role": "primary"},
                )
            )
            links += 1

    opportunities = 0
    for o in OPPORTUNITIES:
        exists = (
            session.query(Transaction.id)
            .filter(
                Transaction.organization_id == org_id,
                Transaction.transaction_type == "OPPORTUNITY",
                Transaction.transaction_code == o["code"],
            )
            .first()
        )
        if exists is not None:
            continue
        session.add(
            Transaction(
                organization_id=org_id,
                transaction_type="OPPORTUNITY",
                transaction_code=o["code"],
                source_entity_id=account_ids[o["account"]],
                total_amount=o["amount"],
                currency="USD",
                status=o["stage"],
                smart_code="HERA.CRM.OPPORTUNITY.PIPELINE.DEAL.v1",
                metadata_={"probability": o["probability"]},
            )
        )
        opportunities += 1

    session.commit()
    summary = {
        "accounts": len(ACCOUNTS),
        "contacts": len(CONTACTS),
        "relationships": links,
        "opportunities": opportunities,
    }
    logger.info("CRM demo seeded org=%s %s", org_id, summary)
    return summary


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Seed CRM demo data.")
    p.add_argument("--org-name", default="Demo CRM Co")
    p.add_argument("--org-code", default="DEMO-CRM")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    ensure_schema()
    with db.SessionLocal() as session:
        summary = seed(session, org_name=args.org_name, org_code=args.org_code)
    print(f"Seeded CRM demo: {summary}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
