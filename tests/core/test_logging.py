"""Tests for JSON logging and secret masking."""

import json
import logging

from storeprofit.core.config import Settings
from storeprofit.core.logging import JsonFormatter, mask_secrets, set_request_id, setup_logging


def _format(msg: str, **extra) -> dict:
    record = logging.LogRecord("storeprofit.test", logging.INFO, __file__, 1, msg, None, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return json.loads(JsonFormatter().format(record))


def test_tokens_in_message_are_masked():
    payload = _format("calling with shpat_0123456789abcdef0123 and access_token=EAAsecretsecret")

    assert "shpat_0123456789abcdef0123" not in payload["msg"]
    assert "shp***" in payload["msg"]
    assert "access_token=***" in payload["msg"]


def test_sensitive_extra_keys_are_masked():
    payload = _format("request", headers={"X-Shopify-Access-Token": "shpat_x", "Accept": "json"}, store_id=3)

    assert payload["extra"]["headers"]["X-Shopify-Access-Token"] == "***"
    assert payload["extra"]["headers"]["Accept"] == "json"
    assert payload["extra"]["store_id"] == 3


def test_mask_secrets_walks_nested_values():
    masked = mask_secrets({"accounts": [{"token": "abc"}, "EAA" + "x" * 24], "count": 2})

    assert masked == {"accounts": [{"token": "***"}, "EAA***"], "count": 2}


def test_request_id_is_attached():
    assert set_request_id("req-42") == "req-42"
    assert _format("x")["request_id"] == "req-42"

    generated = set_request_id()
    assert _format("x")["request_id"] == generated


def test_setup_logging_writes_json_file(tmp_path):
    log_file = tmp_path / "logs" / "app.jsonl"
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        setup_logging(Settings(log_level="debug", log_file_path=str(log_file)))
        logging.getLogger("storeprofit.test").info("file_line", extra={"store_id": 1})
        for handler in root.handlers:
            handler.flush()

        line = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
        assert line["msg"] == "file_line"
        assert line["extra"] == {"store_id": 1}
        assert root.level == logging.DEBUG
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)
