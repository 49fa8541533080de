from __future__ import annotations

import pytest

from offlinerelay.cli import build_parser, config_from_args, main


def test_args_override_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RELAY_ORIGIN", "https://env.example.com")
    monkeypatch.setenv("RELAY_ASSETS", "/a.js,/b.js")
    monkeypatch.setenv("RELAY_LISTEN_PORT", "9000")

    args = build_parser().parse_args(
        ["--origin", "http://localhost:5000", "--asset", "/x.js", "--asset", "/y.css", "--port", "8181"]
    )
    config = config_from_args(args)

    assert config.origin == "http://localhost:5000"
    assert config.assets == ("/x.js", "/y.css")
    assert config.listen_port == 8181
    assert config.relay_url == "ws://localhost:5000"


def test_environment_fills_missing_args(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RELAY_ORIGIN", "https://env.example.com")
    monkeypatch.setenv("RELAY_RECONNECT_DELAY", "1.5")

    config = config_from_args(build_parser().parse_args([]))

    assert config.origin == "https://env.example.com"
    assert config.reconnect_delay == 1.5
    assert config.cache_name == "v1"


def test_main_exits_on_missing_origin(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("RELAY_ORIGIN", raising=False)

    with pytest.raises(SystemExit) as excinfo:
        main([])

    assert excinfo.value.code == 1
