import json
from typing import Any, Dict

from conftest import FakeEngine
from print_agent import create_app
from print_agent.core.errors import DeliveryError
from print_agent.printing.pipeline import RenderPipeline
from print_agent.printing.raster import Rasterizer


def _client(render_config, engine=None):
    pipeline = RenderPipeline(render_config, rasterizer=Rasterizer(engine=engine or FakeEngine(), config=render_config))
    app = create_app(pipeline=pipeline)
    app.config.update(TESTING=True)
    return app.test_client()


def _post(client, url: str, payload: Dict[str, Any]):
    return client.post(url, data=json.dumps(payload), headers={"Content-Type": "application/json"})


def test_render_returns_printer_bytes(render_config, ticket_content):
    client = _client(render_config)
    r = _post(client, "/api/v1/render", {"type": "ticket", "content": ticket_content})
    assert r.status_code == 200, r.get_data(as_text=True)
    assert r.mimetype == "application/octet-stream"
    body = r.get_data()
    assert body.startswith(b"\x1b@")
    assert body.endswith(b"\x1dVA\x10")


def test_render_rejects_bad_content(render_config):
    client = _client(render_config)
    r = _post(client, "/api/v1/render", {"type": "bill", "content": {"items": []}})
    assert r.status_code == 400
    body = r.get_json()
    assert body["ok"] is False
    assert body["kind"] == "content"
    assert "fallback" not in body


def test_render_rejects_unknown_profile(render_config, ticket_content):
    client = _client(render_config)
    r = _post(client, "/api/v1/render", {"type": "ticket", "paper_width_profile": "A4", "content": ticket_content})
    assert r.status_code == 400
    assert r.get_json()["kind"] == "configuration"


def test_render_failure_suggests_text_fallback(render_config, ticket_content):
    client = _client(render_config, FakeEngine(fail=RuntimeError("chromium crashed")))
    r = _post(client, "/api/v1/render", {"type": "ticket", "render_mode": "image", "content": ticket_content})
    assert r.status_code == 502
    body = r.get_json()
    assert body["kind"] == "render"
    assert body["fallback"] == "text"


def test_render_requires_json(render_config):
    client = _client(render_config)
    r = client.post("/api/v1/render", data="hello", headers={"Content-Type": "text/plain"})
    assert r.status_code == 415


def test_print_sends_to_printer(render_config, ticket_content, monkeypatch):
    import print_agent.web.api as api

    sent: Dict[str, Any] = {}

    def _fake_send(data, host, port, timeout):
        sent.update(data=data, host=host, port=port)
        return len(data)

    monkeypatch.setattr(api, "send_raw", _fake_send)
    client = _client(render_config)
    payload = {"type": "ticket", "content": ticket_content, "printer": {"ipAddress": "192.168.1.50"}}
    r = _post(client, "/api/v1/print", payload)
    assert r.status_code == 200, r.get_data(as_text=True)
    body = r.get_json()
    assert body["ok"] is True
    assert body["bytes"] == len(sent["data"])
    assert (sent["host"], sent["port"]) == ("192.168.1.50", 9100)


def test_print_requires_printer(render_config, ticket_content):
    client = _client(render_config)
    r = _post(client, "/api/v1/print", {"type": "ticket", "content": ticket_content})
    assert r.status_code == 400
    assert "printer" in r.get_json()["error"]


def test_print_without_printer_does_not_render(render_config, ticket_content):
    engine = FakeEngine()
    client = _client(render_config, engine)
    r = _post(client, "/api/v1/print", {"type": "ticket", "render_mode": "image", "content": ticket_content})
    assert r.status_code == 400
    assert r.get_json()["ok"] is False
    assert engine.calls == []


def test_print_delivery_failure(render_config, ticket_content, monkeypatch):
    import print_agent.web.api as api

    def _fail(*a, **kw):
        raise DeliveryError("Could not connect to printer at 10.0.0.9:9100: refused")

    monkeypatch.setattr(api, "send_raw", _fail)
    client = _client(render_config)
    r = _post(client, "/api/v1/print", {"type": "ticket", "content": ticket_content, "printer": {"host": "10.0.0.9"}})
    assert r.status_code == 503
    assert r.get_json()["kind"] == "delivery"


def test_profiles_endpoint(render_config):
    client = _client(render_config)
    r = client.get("/api/v1/profiles")
    assert r.status_code == 200
    body = r.get_json()
    assert body["MM_58"]["pixel_width"] == 384
    assert body["MM_80"]["chars_per_line"] == 48


def test_cache_clear_and_healthz(render_config, ticket_content):
    engine = FakeEngine()
    client = _client(render_config, engine)
    job = {"type": "ticket", "render_mode": "image", "content": ticket_content}
    assert _post(client, "/api/v1/render", job).status_code == 200

    health = client.get("/healthz").get_json()
    assert health["status"] == "ok"
    assert health["cache"]["durable_entries"] == 1
    assert "MM_76" in health["profiles"]

    r = client.post("/api/v1/cache/clear")
    assert r.get_json() == {"ok": True, "removed": 1}

    assert _post(client, "/api/v1/render", job).status_code == 200
    assert len(engine.calls) == 2
