from __future__ import annotations

from offlinerelay._redact import redact_for_log


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "type": "message",
        "content": {"text": "hi", "token": "abc", "nested": {"Authorization": "Bearer x"}},
        "password": "pw",
    }

    redacted = redact_for_log(payload)
    assert redacted["type"] == "message"
    assert redacted["password"] == "<redacted>"
    assert redacted["content"]["token"] == "<redacted>"
    assert redacted["content"]["nested"]["Authorization"] == "<redacted>"
    assert redacted["content"]["text"] == "hi"


def test_redact_for_log_truncates_long_strings_and_bytes() -> None:
    redacted = redact_for_log({"value": "x" * 600, "blob": b"\x00" * 8}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]
    assert redacted["blob"] == "<bytes:8b>"


def test_redact_for_log_handles_lists_and_scalars() -> None:
    redacted = redact_for_log([{"Cookie": "sid=1", "n": 3}, None, True, 1.5, ("a", "b")])
    assert redacted == [{"Cookie": "<redacted>", "n": 3}, None, True, 1.5, ["a", "b"]]
