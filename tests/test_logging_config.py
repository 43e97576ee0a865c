import json
import logging

import pytest

from refcache.logging_config import _sanitize, log_call


def test_sanitize_drops_secrets_and_dumps_models():
    from refcache.schemas.reference import Warehouse

    cleaned = _sanitize({
        "access_token": "abc",
        "password": "hunter2",
        "rows": [Warehouse(id=1, name="Main")],
        "payload": b"\x00\x01",
    })
    assert "access_token" not in cleaned
    assert "password" not in cleaned
    assert cleaned["rows"][0]["name"] == "Main"
    assert cleaned["payload"] == "<binary 2 bytes>"


@pytest.mark.asyncio
async def test_log_call_waits_for_coroutines(caplog):
    @log_call
    async def lookup(key):
        return [key]

    with caplog.at_level(logging.DEBUG, logger="refcache"):
        assert await lookup("users_all") == ["users_all"]

    events = [json.loads(record.getMessage()) for record in caplog.records if record.name == "refcache"]
    assert [event["event"] for event in events] == ["call_start", "call_end"]
    assert events[1]["result"] == ["users_all"]
