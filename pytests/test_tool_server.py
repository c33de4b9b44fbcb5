from __future__ import annotations

import io
import json

from tool_servers import p2p, whatsapp
from tool_servers.server import PROTOCOL_VERSION


def _rpc(server, method, params=None, msg_id=1):
    msg = {"jsonrpc": "2.0", "id": msg_id, "method": method}
    if params is not None:
        msg["params"] = params
    return server.handle_message(msg)


def test_initialize_reports_server_info():
    resp = _rpc(p2p.server, "initialize", {"protocolVersion": PROTOCOL_VERSION})
    assert resp["id"] == 1
    assert resp["result"]["protocolVersion"] == PROTOCOL_VERSION
    assert resp["result"]["serverInfo"]["name"] == "hera-p2p"
    assert "tools" in resp["result"]["capabilities"]


def test_tools_list_advertises_every_p2p_tool():
    tools = _rpc(p2p.server, "tools/list")["result"]["tools"]
    assert [t["name"] for t in tools] == [
        "p2p.create_supplier",
        "p2p.create_po",
        "p2p.post_grn",
        "p2p.match_invoice",
        "p2p.execute_payment",
        "p2p.get_supplier_status",
        "p2p.detect_anomalies",
        "p2p.run_payment_batch",
    ]
    create_po = next(t for t in tools if t["name"] == "p2p.create_po")
    assert set(create_po["inputSchema"]["required"]) == {"supplier_id", "lines"}
    assert "organization_id" in create_po["inputSchema"]["properties"]


def test_whatsapp_server_has_ten_tools():
    names = whatsapp.server.tool_names
    assert len(names) == 10
    assert "whatsapp.analytics" in names
    assert "whatsapp.toggle_archive" in names


def test_notifications_get_no_reply():
    assert p2p.server.handle_message({"jsonrpc": "2.0", "method": "notifications/initialized"}) is None


def test_protocol_errors():
    assert p2p.server.handle_message({"id": 1, "method": "ping"})["error"]["code"] == -32600
    assert _rpc(p2p.server, "resources/list")["error"]["code"] == -32601
    assert _rpc(p2p.server, "tools/call", {})["error"]["code"] == -32602
    assert _rpc(p2p.server, "ping")["result"] == {}


def test_unknown_tool_and_bad_arguments_are_tool_errors():
    missing = _rpc(p2p.server, "tools/call", {"name": "p2p.nope", "arguments": {}})["result"]
    assert missing["isError"] is True
    assert "Tool not found" in missing["content"][0]["text"]

    bad = p2p.server.call_tool("p2p.create_po", {"supplier_id": "s", "lines": []})
    assert bad.isError
    assert "Invalid arguments" in bad.content[0]["text"]


def test_missing_organization_is_a_tool_error(db_session):
    result = p2p.server.call_tool("p2p.create_supplier", {"name": "Acme"})
    assert result.isError
    assert "organization_id is required" in result.content[0]["text"]


def test_default_organization_setting_is_used(db_session, org_id, monkeypatch):
    monkeypatch.setenv("DEFAULT_ORGANIZATION_ID", org_id)
    result = p2p.server.call_tool("p2p.create_supplier", {"name": "Acme"})
    assert not result.isError
    assert json.loads(result.content[0]["text"])["organization_id"] == org_id


def test_serve_reads_lines_and_writes_responses():
    stdin = io.StringIO(
        "\n".join(
            [
                json.dumps({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}}),
                json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"}),
                "",
                "{not json",
                json.dumps({"jsonrpc": "2.0", "id": 2, "method": "tools/list"}),
            ]
        )
        + "\n"
    )
    stdout = io.StringIO()

    whatsapp.server.serve(stdin, stdout)

    replies = [json.loads(line) for line in stdout.getvalue().splitlines()]
    assert [r.get("id") for r in replies] == [1, None, 2]
    assert replies[1]["error"]["code"] == -32700
    assert len(replies[2]["result"]["tools"]) == 10
