import json
import logging

from worktrack.core.logging import JsonLogFormatter
from worktrack.middlewares import principal_ctx_var, request_id_ctx_var


def _record(message="hello", **extra):
    record = logging.LogRecord("worktrack.test", logging.WARNING, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_emits_context_and_extra_data():
    id_token = request_id_ctx_var.set("req-42")
    principal_token = principal_ctx_var.set("mrossi")
    try:
        line = JsonLogFormatter().format(_record("Riepilogo", extra_data={"rows": 3}))
    finally:
        request_id_ctx_var.reset(id_token)
        principal_ctx_var.reset(principal_token)

    payload = json.loads(line)
    assert payload["level"] == "warning"
    assert payload["msg"] == "Riepilogo"
    assert payload["request_id"] == "req-42"
    assert payload["principal"] == "mrossi"
    assert payload["rows"] == 3
    assert payload["ts"].endswith("Z")


def test_formatter_omits_unset_context():
    payload = json.loads(JsonLogFormatter().format(_record()))
    assert "request_id" not in payload
    assert "principal" not in payload


def test_access_log_records_pages_but_not_assets(client, caplog):
    with caplog.at_level(logging.INFO, logger="worktrack.access"):
        client.get("/")
        client.get("/static/app.css")

    lines = [record for record in caplog.records if record.name == "worktrack.access"]
    assert len(lines) == 1
    data = lines[0].extra_data
    assert data["path"] == "/"
    assert data["status"] == 302
    assert data["location"].startswith("/auth")
