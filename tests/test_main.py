"""Tests for the console front end and command-line flags."""

import asyncio

import pytest

from quickrun.__main__ import parse_argv
from quickrun.addons.parse import Item
from quickrun.main import ConsoleDisplay, build, run_query, _pick
from quickrun.addons.dispatch import PRIMARY, SECONDARY


def test_parse_argv():
    assert parse_argv(["-config", "/tmp/q.yaml", "-print-only", "-query", "ff"]) == {
        "config": "/tmp/q.yaml", "print_only": True, "query": "ff"}
    assert parse_argv([]) == {}


def test_parse_argv_rejects_unknown_flag():
    with pytest.raises(SystemExit):
        parse_argv(["--verbose"])
    with pytest.raises(SystemExit):
        parse_argv(["-config"])


def test_console_display_strips_markup():
    lines = []
    display = ConsoleDisplay(out=lines.append)
    display.display([Item("Paris", subtitle='<span color="green">+1h</span>', degraded=True)])
    assert lines == ["   1. Paris  -- +1h  [stale]"]
    display.display([])
    assert lines[-1] == "  (no results)"


def _write_config(tmp_path):
    path = tmp_path / "quickrun.yaml"
    path.write_text(
        "general:\n"
        "  default_script_shell: sh\n"
        "hello:\n"
        "  description: Hello\n"
        "  script: echo hello\n"
    )
    return str(path)


def test_build_applies_flags(tmp_path):
    async def go():
        return build({"config": _write_config(tmp_path), "no_icons": True,
                      "shell": "dash", "print_only": True}, out=lambda s: None)

    d = asyncio.run(go())
    assert d.icons is None
    assert d.shell == "dash"
    assert d.executor.print_only


def test_run_query_and_pick(tmp_path):
    lines = []
    options = {"config": _write_config(tmp_path), "no_icons": True, "print_only": True}

    async def go():
        d = build(options, display=ConsoleDisplay(lines.append), out=lines.append)
        d.on_input_changed("hel")
        await d.wait_idle()
        return d

    d = asyncio.run(go())
    assert lines == ["   1. Hello"]
    item, gesture = _pick(d, ":1")
    assert gesture == PRIMARY
    assert _pick(d, "::1")[1] == SECONDARY
    assert _pick(d, ":9") is None
    assert _pick(d, ":x") is None
    d.on_activate(item)
    assert lines[-1] == "#!/usr/bin/env -S sh\necho hello"


def test_run_query_prints_calculation(tmp_path, capsys):
    asyncio.run(run_query({"config": _write_config(tmp_path), "no_icons": True}, "2+2"))
    assert "2+2 = 4" in capsys.readouterr().out
