"""Procure-to-pay MCP tool server.

Run over stdio:

    python -m tool_servers.p2p
"""

from __future__ import annotations

import argparse
from typing import List, Optional

from pydantic import BaseModel, Field

from api.services import p2p_service
from logging_utils import configure_app_logging
from tool_servers.server import OrgScopedArgs, ToolServer

server = ToolServer("hera-p2p", "1.0.0")


class CreateSupplierArgs(OrgScopedArgs):
    name: str = Field(min_length=1, description="Supplier legal name")
    code: Optional[str] = Field(default=None, description="Supplier code, unique per organization")
    tax_id: Optional[str] = None
    email: Optional[str] = None
    payment_terms: Optional[str] = Field(default=None, description="e.g. NET30")
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


class PoLine(BaseModel):
    description: Optional[str] = None
    quantity: float = Field(gt=0)
    unit_price: float = Field(ge=0)
    product_id: Optional[str] = None


class CreatePoArgs(OrgScopedArgs):
    supplier_id: str
    lines: List[PoLine] = Field(min_length=1)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    reference: Optional[str] = None


class ReceivedLine(BaseModel):
    line_number: int = Field(ge=1)
    quantity: float = Field(ge=0)


class PostGrnArgs(OrgScopedArgs):
    po_id: str
    received: Optional[List[ReceivedLine]] = Field(
        default=None, description="Omit to receive every ordered line in full"
    )


class MatchInvoiceArgs(OrgScopedArgs):
    supplier_id: str
    po_id: str
    invoice_number: str = Field(min_length=1)
    amount: float = Field(ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)


class ExecutePaymentArgs(OrgScopedArgs):
    invoice_id: str
    amount: Optional[float] = Field(default=None, gt=0, description="Defaults to the invoice total")
    method: str = "bank_transfer"


class SupplierStatusArgs(OrgScopedArgs):
    supplier_id: str


class DetectAnomaliesArgs(OrgScopedArgs):
    supplier_id: Optional[str] = None
    since: Optional[str] = Field(default=None, description="ISO date lower bound")


class PaymentBatchArgs(OrgScopedArgs):
    due_before: Optional[str] = Field(default=None, description="ISO date")
    max_total: Optional[float] = Field(default=None, gt=0)
    dry_run: bool = True


@server.tool("p2p.create_supplier", "Create a supplier with tax, contact and payment terms.", CreateSupplierArgs)
def create_supplier(session, args: CreateSupplierArgs):
    return p2p_service.create_supplier(
        session,
        args.org(),
        name=args.name,
        code=args.code,
        tax_id=args.tax_id,
        email=args.email,
        payment_terms=args.payment_terms,
        currency=args.currency,
    )


@server.tool("p2p.create_po", "Create a purchase order for a supplier.", CreatePoArgs)
def create_po(session, args: CreatePoArgs):
    return p2p_service.create_po(
        session,
        args.org(),
        supplier_id=args.supplier_id,
        lines=[line.model_dump() for line in args.lines],
        currency=args.currency,
        reference=args.reference,
    )


@server.tool("p2p.post_grn", "Post a goods receipt against a purchase order.", PostGrnArgs)
def post_grn(session, args: PostGrnArgs):
    received = [r.model_dump() for r in args.received] if args.received is not None else None
    return p2p_service.post_grn(session, args.org(), po_id=args.po_id, received=received)


@server.tool(
    "p2p.match_invoice",
    "Record a supplier invoice and run three-way matching against its PO.",
    MatchInvoiceArgs,
)
def match_invoice(session, args: MatchInvoiceArgs):
    return p2p_service.match_invoice(
        session,
        args.org(),
        supplier_id=args.supplier_id,
        po_id=args.po_id,
        invoice_number=args.invoice_number,
        amount=args.amount,
        currency=args.currency,
    )


@server.tool("p2p.execute_payment", "Pay a supplier invoice.", ExecutePaymentArgs)
def execute_payment(session, args: ExecutePaymentArgs):
    return p2p_service.execute_payment(
        session, args.org(), invoice_id=args.invoice_id, amount=args.amount, method=args.method
    )


@server.tool(
    "p2p.get_supplier_status",
    "Supplier profile with transaction counts and totals by type.",
    SupplierStatusArgs,
)
def get_supplier_status(session, args: SupplierStatusArgs):
    return p2p_service.get_supplier_status(session, args.org(), supplier_id=args.supplier_id)


@server.tool(
    "p2p.detect_anomalies",
    "Scan procurement activity for anomalies (duplicate invoices, price spikes).",
    DetectAnomaliesArgs,
    needs_session=False,
)
def detect_anomalies(args: DetectAnomaliesArgs):
    return p2p_service.detect_anomalies(args.org(), supplier_id=args.supplier_id, since=args.since)


@server.tool(
    "p2p.run_payment_batch",
    "Select due invoices and build a payment batch.",
    PaymentBatchArgs,
    needs_session=False,
)
def run_payment_batch(args: PaymentBatchArgs):
    return p2p_service.run_payment_batch(
        args.org(), due_before=args.due_before, max_total=args.max_total, dry_run=args.dry_run
    )


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="HERA procure-to-pay MCP server (stdio).")
    p.add_argument("--log-level", default="INFO")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_app_logging(args.log_level)
    server.serve()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
