#!/usr/bin/env python3
"""Seed a procure-to-pay demo by driving the P2P tool server in-process.

Creates a supplier, a purchase order and a goods receipt. With a configured
EDGE_FUNCTION_BASE_URL it also matches an invoice and pays it.

Usage:
    python scripts/seed_p2p_demo.py
    python scripts/seed_p2p_demo.py --skip-edge
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
from config import get_setting
from logging_utils import get_logger
from scripts.seed_common import ensure_organization, ensure_schema
from tool_servers.p2p import server

logger = get_logger(__name__)


class SeedStepFailed(RuntimeError):
    pass


def _call(name: str, arguments: dict) -> dict:
    result = server.call_tool(name, arguments)
    text = result.content[0]["text"] if result.content else ""
    if result.isError:
        raise SeedStepFailed(f"{name}: {text}")
    print(f"✓ {name}")
    return json.loads(text)


def seed(org_id: str, *, with_edge: bool) -> dict:
    supplier = _call(
        "p2p.create_supplier",
        {
            "organization_id": org_id,
            "name": "Acme Office Supplies",
            "code": "SUP-ACME",
            "tax_id": "US-47-1234567",
            "email": "ap@acme-supplies.example",
            "payment_terms": "NET30",
            "currency": "USD",
        },
    )
    po = _call(
        "p2p.create_po",
        {
            "organization_id": org_id,
            "supplier_id": supplier["id"],
            "lines": [
                {"description": "Laptop stand", "quantity": 10, "unit_price": 45.0},
                {"description": "USB-C dock", "quantity": 5, "unit_price": 129.99},
            ],
        },
    )
    grn = _call("p2p.post_grn", {"organization_id": org_id, "po_id": po["id"]})

    out = {"supplier_id": supplier["id"], "po_id": po["id"], "grn_id": grn["id"]}

    if with_edge:
        invoice = _call(
            "p2p.match_invoice",
            {
                "organization_id": org_id,
                "supplier_id": supplier["id"],
                "po_id": po["id"],
                "invoice_number": "INV-ACME-0001",
                "amount": po["total_amount"],
            },
        )
        payment = _call(
            "p2p.execute_payment", {"organization_id": org_id, "invoice_id": invoice["id"]}
        )
        out.update({"invoice_id": invoice["id"], "payment_id": payment["id"]})

    out["supplier_status"] = _call(
        "p2p.get_supplier_status", {"organization_id": org_id, "supplier_id": supplier["id"]}
    )
    return out


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Seed procure-to-pay demo data through the P2P tools.")
    p.add_argument("--org-name", default="Demo Procurement Co")
    p.add_argument("--org-code", default="DEMO-P2P")
    p.add_argument(
        "--skip-edge",
        action="store_true",
        help="Skip invoice matching and payment (they need the edge functions).",
    )
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    ensure_schema()
    with db.SessionLocal() as session:
        org_id = ensure_organization(
            session, name=args.org_name, code=args.org_code, industry="procurement"
        )

    with_edge = not args.skip_edge and bool(get_setting("EDGE_FUNCTION_BASE_URL"))
    if not args.skip_edge and not with_edge:
        logger.warning("EDGE_FUNCTION_BASE_URL not set; skipping invoice matching and payment")

    try:
        summary = seed(org_id, with_edge=with_edge)
    except SeedStepFailed as e:
        print(f"Seed failed: {e}")
        return 1
    print(json.dumps(summary, indent=2, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
