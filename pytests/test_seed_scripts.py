from __future__ import annotations

from sqlalchemy import inspect

import utils.edge_functions as edge
from models.dynamic_data import DynamicData
from models.entities import Entity
from models.organizations import Organization
from models.relationships import Relationship
from models.transactions import Transaction
from scripts import recreate_db, seed_crm_demo, seed_p2p_demo, seed_whatsapp_demo
from scripts.seed_common import ensure_organization, seed_entity


def test_ensure_organization_is_idempotent(db_session):
    a = ensure_organization(db_session, name="Demo", code="DEMO")
    b = ensure_organization(db_session, name="Demo again", code="DEMO")
    assert a == b
    assert db_session.query(Organization).count() == 1


def test_seed_entity_updates_in_place(db_session, org_id):
    first = seed_entity(
        db_session,
        org_id,
        entity_type="PRODUCT",
        name="Beans",
        code="P-1",
        smart_code="HERA.INV.PRODUCT.ENTITY.ITEM.v1",
        fields={"price": 9.5, "organic": True},
    )
    second = seed_entity(
        db_session,
        org_id,
        entity_type="PRODUCT",
        name="Beans 1kg",
        code="P-1",
        smart_code="HERA.INV.PRODUCT.ENTITY.ITEM.v1",
        fields={"price": 11},
    )

    assert first == second
    assert db_session.get(Entity, first).entity_name == "Beans 1kg"
    price = db_session.query(DynamicData).filter(DynamicData.field_name == "price").one()
    assert price.field_type == "number"
    assert price.field_value_number == 11.0
    organic = db_session.query(DynamicData).filter(DynamicData.field_name == "organic").one()
    assert organic.field_value_boolean is True


def test_crm_seed_is_rerunnable(db_session):
    first = seed_crm_demo.seed(db_session, org_name="CRM", org_code="CRM-T")
    second = seed_crm_demo.seed(db_session, org_name="CRM", org_code="CRM-T")

    assert first == {"accounts": 3, "contacts": 3, "relationships": 3, "opportunities": 3}
    assert second["relationships"] == 0
    assert second["opportunities"] == 0
    assert db_session.query(Entity).count() == 6
    assert db_session.query(Relationship).count() == 3
    assert db_session.query(Transaction).count() == 3


def test_crm_seed_main(db_session, capsys):
    assert seed_crm_demo.main(["--org-code", "CRM-MAIN"]) == 0
    assert "Seeded CRM demo" in capsys.readouterr().out
    assert db_session.query(Organization).filter(Organization.organization_code == "CRM-MAIN").count() == 1


def test_whatsapp_seed_builds_inbox(db_session):
    summary = seed_whatsapp_demo.seed(db_session, org_name="Salon", org_code="SALON-T")

    assert summary["total_messages"] == 6
    assert summary["unique_contacts"] == 3
    assert summary["engagement_rate"] == 67
    assert db_session.query(Transaction).filter(Transaction.transaction_type == "MESSAGE_THREAD").count() == 3


def test_p2p_seed_without_edge(org_id):
    out = seed_p2p_demo.seed(org_id, with_edge=False)

    assert "invoice_id" not in out
    status = out["supplier_status"]
    assert status["transactions"]["PURCHASE_ORDER"]["count"] == 1
    assert status["transactions"]["GOODS_RECEIPT"]["count"] == 1
    assert status["dynamic_data"]["payment_terms"]["value"] == "NET30"


def test_p2p_seed_with_edge(org_id, monkeypatch):
    monkeypatch.setattr(edge, "invoke_edge_function", lambda name, payload, **kw: {"status": "matched"})

    out = seed_p2p_demo.seed(org_id, with_edge=True)

    assert out["payment_id"]
    assert out["supplier_status"]["open_invoices"] == 0


def test_p2p_seed_main_reports_failure(db_session, monkeypatch, capsys):
    monkeypatch.setenv("EDGE_FUNCTION_BASE_URL", "https://edge.example.test")

    def boom(name, payload, **kw):
        raise edge.EdgeFunctionError("Edge function 'p2p-match' unreachable")

    monkeypatch.setattr(edge, "invoke_edge_function", boom)

    assert seed_p2p_demo.main([]) == 1
    assert "Seed failed" in capsys.readouterr().out


def test_recreate_drops_rows_and_keeps_tables(db_session, org_id):
    tables = recreate_db.recreate()

    assert set(tables) >= {"core_entities", "core_organizations", "universal_transactions"}
    assert inspect(db_session.get_bind()).has_table("core_dynamic_data")
    assert db_session.query(Organization).count() == 0


def test_recreate_main_with_yes(db_session, capsys):
    assert recreate_db.main(["--yes"]) == 0
    assert "Recreated tables (6)" in capsys.readouterr().out
