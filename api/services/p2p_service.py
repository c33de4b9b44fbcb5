"""Procure-to-pay flows on the six tables.

Suppliers are SUPPLIER entities; purchase orders, goods receipts, supplier
invoices and payments are transactions whose lines carry the item detail.
Invoice matching, anomaly detection and payment batching are delegated to
edge functions (`utils.edge_functions`).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from api.services.errors import InvalidPayloadError, RecordNotFoundError
from api.services.procedures import call_procedure, dynamic_fields_for
from logging_utils import get_logger
from models.entities import Entity
from models.serialization import row_to_dict
from models.transaction_lines import TransactionLine
from models.transactions import Transaction
from utils import edge_functions

logger = get_logger(__name__)

SUPPLIER = "SUPPLIER"
PURCHASE_ORDER = "PURCHASE_ORDER"
GOODS_RECEIPT = "GOODS_RECEIPT"
SUPPLIER_INVOICE = "SUPPLIER_INVOICE"
PAYMENT = "PAYMENT"

SMART_CODES = {
    "supplier": "HERA.P2P.SUPPLIER.ENTITY.v1",
    "supplier_field": "HERA.P2P.SUPPLIER.FIELD.v1",
    "po": "HERA.P2P.PO.TXN.v1",
    "po_line": "HERA.P2P.PO.LINE.v1",
    "grn": "HERA.P2P.GRN.TXN.v1",
    "grn_line": "HERA.P2P.GRN.LINE.v1",
    "invoice": "HERA.P2P.INVOICE.TXN.v1",
    "payment": "HERA.P2P.PAYMENT.TXN.v1",
}

SUPPLIER_FIELDS = ("tax_id", "email", "payment_terms", "currency")


def _supplier(session: Session, org_id: str, supplier_id: str) -> Entity:
    row = (
        session.query(Entity)
        .filter(
            Entity.organization_id == org_id,
            Entity.id == supplier_id,
            Entity.entity_type == SUPPLIER,
        )
        .one_or_none()
    )
    if row is None:
        raise RecordNotFoundError(f"Supplier {supplier_id} not found")
    return row


def _transaction(session: Session, org_id: str, txn_id: str, txn_type: str) -> Transaction:
    row = (
        session.query(Transaction)
        .filter(
            Transaction.organization_id == org_id,
            Transaction.id == txn_id,
            Transaction.transaction_type == txn_type,
        )
        .one_or_none()
    )
    if row is None:
        label = txn_type.replace("_", " ").lower()
        raise RecordNotFoundError(f"{label} {txn_id} not found")
    return row


def _lines(session: Session, txn_id: str) -> List[TransactionLine]:
    return (
        session.query(TransactionLine)
        .filter(TransactionLine.transaction_id == txn_id)
        .order_by(TransactionLine.line_number)
        .all()
    )


def _with_lines(session: Session, txn: Transaction) -> Dict[str, Any]:
    out = row_to_dict(txn)
    out["lines"] = [row_to_dict(line) for line in _lines(session, txn.id)]
    return out


def _next_code(session: Session, org_id: str, txn_type: str, prefix: str) -> str:
    count = (
        session.query(func.count(Transaction.id))
        .filter(Transaction.organization_id == org_id, Transaction.transaction_type == txn_type)
        .scalar()
        or 0
    )
    return f"{prefix}-{int(count) + 1:05d}"


def create_supplier(
    session: Session,
    org_id: str,
    *,
    name: str,
    code: Optional[str] = None,
    **fields: Any,
) -> Dict[str, Any]:
    """SUPPLIER entity plus one dynamic field per provided attribute."""

    entity = call_procedure(
        session,
        "hera_entity_upsert_v1",
        organization_id=org_id,
        entity_type=SUPPLIER,
        entity_name=name,
        entity_code=code,
        smart_code=SMART_CODES["supplier"],
    )
    for field_name in SUPPLIER_FIELDS:
        value = fields.get(field_name)
        if value is None:
            continue
        call_procedure(
            session,
            "hera_dynamic_data_set_v1",
            organization_id=org_id,
            entity_id=entity["id"],
            field_name=field_name,
            field_type="text",
            field_value=value,
            smart_code=SMART_CODES["supplier_field"],
        )

    entity["dynamic_data"] = dynamic_fields_for(session, org_id, [entity["id"]])[entity["id"]]
    logger.info("supplier created id=%s org=%s", entity["id"], org_id)
    return entity


def create_po(
    session: Session,
    org_id: str,
    *,
    supplier_id: str,
    lines: List[Dict[str, Any]],
    currency: str = "USD",
    reference: Optional[str] = None,
) -> Dict[str, Any]:
    """PURCHASE_ORDER header + lines; total is the sum of quantity * unit_price."""

    _supplier(session, org_id, supplier_id)
    if not lines:
        raise InvalidPayloadError("A purchase order needs at least one line")

    po = Transaction(
        organization_id=org_id,
        transaction_type=PURCHASE_ORDER,
        transaction_code=_next_code(session, org_id, PURCHASE_ORDER, "PO"),
        reference_number=reference,
        source_entity_id=supplier_id,
        currency=currency,
        status="open",
        smart_code=SMART_CODES["po"],
    )
    session.add(po)
    session.flush()

    total = 0.0
    for number, line in enumerate(lines, start=1):
        quantity = float(line["quantity"])
        unit_price = float(line["unit_price"])
        amount = round(quantity * unit_price, 2)
        total += amount
        session.add(
            TransactionLine(
                organization_id=org_id,
                transaction_id=po.id,
                line_number=number,
                line_type="ITEM",
                line_entity_id=line.get("product_id"),
                description=line.get("description"),
                quantity=quantity,
                unit_price=unit_price,
                line_amount=amount,
                smart_code=SMART_CODES["po_line"],
            )
        )

    po.total_amount = round(total, 2)
    session.commit()
    logger.info("PO created id=%s code=%s total=%.2f", po.id, po.transaction_code, po.total_amount)
    return _with_lines(session, po)


def post_grn(
    session: Session,
    org_id: str,
    *,
    po_id: str,
    received: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """GOODS_RECEIPT against a PO.

    `received` is ``[{line_number, quantity}]``; omitted means everything
    ordered arrived. The PO becomes ``received`` or ``partially_received``.
    """

    po = _transaction(session, org_id, po_id, PURCHASE_ORDER)
    po_lines = {line.line_number: line for line in _lines(session, po.id)}

    if received is None:
        received = [{"line_number": n, "quantity": line.quantity} for n, line in po_lines.items()]

    grn = Transaction(
        organization_id=org_id,
        transaction_type=GOODS_RECEIPT,
        transaction_code=_next_code(session, org_id, GOODS_RECEIPT, "GRN"),
        reference_number=po.transaction_code,
        source_entity_id=po.source_entity_id,
        currency=po.currency,
        status="posted",
        smart_code=SMART_CODES["grn"],
        metadata_={"po_id": po.id},
    )
    session.add(grn)
    session.flush()

    total = 0.0
    fully_received = True
    received_by_line = {}
    for number, item in enumerate(received, start=1):
        po_line = po_lines.get(int(item["line_number"]))
        if po_line is None:
            raise InvalidPayloadError(
                f"PO {po.transaction_code} has no line {item['line_number']}"
            )
        quantity = float(item["quantity"])
        received_by_line[po_line.line_number] = quantity
        amount = round(quantity * float(po_line.unit_price or 0), 2)
        total += amount
        session.add(
            TransactionLine(
                organization_id=org_id,
                transaction_id=grn.id,
                line_number=number,
                line_type="RECEIPT",
                line_entity_id=po_line.line_entity_id,
                description=po_line.description,
                quantity=quantity,
                unit_price=po_line.unit_price,
                line_amount=amount,
                smart_code=SMART_CODES["grn_line"],
                line_data={"po_line_number": po_line.line_number},
            )
        )

    for number, po_line in po_lines.items():
        if received_by_line.get(number, 0.0) < float(po_line.quantity or 0):
            fully_received = False

    grn.total_amount = round(total, 2)
    po.status = "received" if fully_received else "partially_received"
    session.commit()
    logger.info("GRN posted id=%s po=%s po_status=%s", grn.id, po.id, po.status)
    return _with_lines(session, grn)


def match_invoice(
    session: Session,
    org_id: str,
    *,
    supplier_id: str,
    po_id: str,
    invoice_number: str,
    amount: float,
    currency: str = "USD",
) -> Dict[str, Any]:
    """Record a SUPPLIER_INVOICE and hand matching to the p2p-match edge function.

    The invoice is committed before the edge call; when the call fails the
    invoice stays ``pending_match`` and the error propagates.
    """

    _supplier(session, org_id, supplier_id)
    po = _transaction(session, org_id, po_id, PURCHASE_ORDER)

    invoice = Transaction(
        organization_id=org_id,
        transaction_type=SUPPLIER_INVOICE,
        transaction_code=invoice_number,
        reference_number=po.transaction_code,
        source_entity_id=supplier_id,
        total_amount=float(amount),
        currency=currency,
        status="pending_match",
        smart_code=SMART_CODES["invoice"],
        metadata_={"po_id": po.id},
    )
    session.add(invoice)
    session.commit()

    match = edge_functions.match_invoice(
        {"organization_id": org_id, "invoice_id": invoice.id, "po_id": po.id}
    )

    invoice.status = str(match.get("status") or "matched")
    invoice.metadata_ = {**(invoice.metadata_ or {}), "match_result": match}
    session.commit()
    logger.info("invoice %s match status=%s", invoice.id, invoice.status)
    return row_to_dict(invoice)


def execute_payment(
    session: Session,
    org_id: str,
    *,
    invoice_id: str,
    amount: Optional[float] = None,
    method: str = "bank_transfer",
) -> Dict[str, Any]:
    """PAYMENT against an invoice; the invoice is marked ``paid``."""

    invoice = _transaction(session, org_id, invoice_id, SUPPLIER_INVOICE)
    if invoice.status == "paid":
        raise InvalidPayloadError(f"Invoice {invoice.transaction_code} is already paid")

    payment = Transaction(
        organization_id=org_id,
        transaction_type=PAYMENT,
        transaction_code=_next_code(session, org_id, PAYMENT, "PAY"),
        reference_number=invoice.transaction_code,
        source_entity_id=invoice.source_entity_id,
        total_amount=float(amount if amount is not None else invoice.total_amount),
        currency=invoice.currency,
        status="completed",
        smart_code=SMART_CODES["payment"],
        metadata_={"invoice_id": invoice.id, "method": method},
    )
    session.add(payment)
    invoice.status = "paid"
    session.commit()
    logger.info("payment %s settled invoice %s", payment.id, invoice.id)
    return row_to_dict(payment)


def get_supplier_status(session: Session, org_id: str, *, supplier_id: str) -> Dict[str, Any]:
    supplier = _supplier(session, org_id, supplier_id)

    rows = (
        session.query(
            Transaction.transaction_type,
            func.count(Transaction.id),
            func.coalesce(func.sum(Transaction.total_amount), 0.0),
        )
        .filter(
            Transaction.organization_id == org_id,
            Transaction.source_entity_id == supplier_id,
        )
        .group_by(Transaction.transaction_type)
        .all()
    )
    open_invoices = (
        session.query(func.count(Transaction.id))
        .filter(
            Transaction.organization_id == org_id,
            Transaction.source_entity_id == supplier_id,
            Transaction.transaction_type == SUPPLIER_INVOICE,
            Transaction.status != "paid",
        )
        .scalar()
        or 0
    )

    return {
        "supplier": row_to_dict(supplier),
        "dynamic_data": dynamic_fields_for(session, org_id, [supplier.id])[supplier.id],
        "transactions": {
            txn_type: {"count": int(count), "total": round(float(total), 2)}
            for txn_type, count, total in rows
        },
        "open_invoices": int(open_invoices),
    }


def detect_anomalies(
    org_id: str, *, supplier_id: Optional[str] = None, since: Optional[str] = None
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"organization_id": org_id}
    if supplier_id:
        payload["supplier_id"] = supplier_id
    if since:
        payload["since"] = since
    return edge_functions.detect_anomalies(payload)


def run_payment_batch(
    org_id: str,
    *,
    due_before: Optional[str] = None,
    max_total: Optional[float] = None,
    dry_run: bool = True,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"organization_id": org_id, "dry_run": dry_run}
    if due_before:
        payload["due_before"] = due_before
    if max_total is not None:
        payload["max_total"] = max_total
    return edge_functions.run_payment_batch(payload)
