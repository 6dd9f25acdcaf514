"""Tests for script-filter invocation, output mapping and staleness."""

import asyncio
import json

from quickrun.addons import script_filter
from quickrun.addons.parse import Parse, COPY, SHELL
from quickrun.addons.script_filter import (
    ScriptFilterSpec, ScriptFilterRunner, parse_output, match_keyword, strip_markup,
)

SPEC = ScriptFilterSpec(name="tz", keyword="tz", command="tzfilter", args=("-j",),
                        icon="clock")


def _output(*items):
    return json.dumps({"items": list(items)}).encode()


class FakeSpawn:
    """Returns canned (stdout, status); can hold a call until released."""

    def __init__(self, stdout=b'{"items": []}', status=0):
        self.stdout = stdout
        self.status = status
        self.calls = []
        self.cancelled = []
        self.gates = {}

    def hold(self, query):
        self.gates[query] = asyncio.Event()
        return self.gates[query]

    async def __call__(self, argv, cwd):
        self.calls.append(argv)
        gate = self.gates.get(argv[-1])
        try:
            if gate is not None:
                await gate.wait()
        except asyncio.CancelledError:
            self.cancelled.append(argv[-1])
            raise
        return self.stdout, self.status


def test_match_keyword():
    assert match_keyword("tz paris", "tz") == "paris"
    assert match_keyword("tz   new york ", "tz") == "new york"
    assert match_keyword("tz", "tz") == ""
    assert match_keyword("tzdata", "tz") is None
    assert match_keyword("paris", "tz") is None


def test_strip_markup():
    assert strip_markup('<span color="red">-5h</span> behind') == "-5h behind"
    assert strip_markup(None) == ""


def test_parse_output_maps_fields():
    items = parse_output(_output(
        {"title": "Paris", "subtitle": "+1h", "arg": "Europe/Paris", "icon": "flag"},
        {"title": "Tokyo"},
    ), SPEC)
    assert [i.title for i in items] == ["Paris", "Tokyo"]
    assert items[0].value == "Europe/Paris"
    assert items[0].icon == "flag"
    assert items[1].value == "Tokyo"
    assert items[1].icon == "clock"
    assert items[0].action.kind == COPY
    assert items[0].action.payload == "Europe/Paris"
    assert items[0].secondary is None


def test_parse_output_skips_items_without_title():
    items = parse_output(_output({"subtitle": "x"}, {"title": 5}, {"title": "ok"}), SPEC)
    assert [i.title for i in items] == ["ok"]


def test_parse_output_malformed():
    assert parse_output(b"not json", SPEC) == []
    assert parse_output(b'{"items": "nope"}', SPEC) == []
    assert parse_output(b"[1, 2]", SPEC) == []


def test_action_templates_are_shell_quoted():
    spec = ScriptFilterSpec(name="tz", keyword="tz", command="tzfilter",
                            action="wl-copy {value}", secondary_action="notify-send {value}")
    item = parse_output(_output({"title": "x", "arg": "it's 5pm"}), spec)[0]
    assert item.action.kind == SHELL
    assert item.action.payload == "wl-copy 'it'\"'\"'s 5pm'"
    assert item.secondary.payload == "notify-send 'it'\"'\"'s 5pm'"


def test_run_passes_query_as_last_argument():
    spawn = FakeSpawn(_output({"title": "Paris"}))
    runner = ScriptFilterRunner(spawn=spawn)

    async def go():
        token = runner.issue(SPEC)
        return await runner.run(SPEC, "par", token)

    items = asyncio.run(go())
    assert spawn.calls == [["tzfilter", "-j", "par"]]
    assert [i.title for i in items] == ["Paris"]


def test_nonzero_exit_gives_empty_list():
    runner = ScriptFilterRunner(spawn=FakeSpawn(_output({"title": "x"}), status=1))

    async def go():
        return await runner.run(SPEC, "q", runner.issue(SPEC))

    assert asyncio.run(go()) == []


def test_missing_program_gives_empty_list():
    async def spawn(argv, cwd):
        raise FileNotFoundError(argv[0])

    runner = ScriptFilterRunner(spawn=spawn)

    async def go():
        return await runner.run(SPEC, "q", runner.issue(SPEC))

    assert asyncio.run(go()) == []


def test_stale_result_is_dropped():
    spawn = FakeSpawn(_output({"title": "x"}))
    runner = ScriptFilterRunner(spawn=spawn)

    async def go():
        old = runner.issue(SPEC)
        runner.issue(SPEC)
        return await runner.run(SPEC, "q", old)

    assert asyncio.run(go()) is None


def test_new_invocation_terminates_previous():
    spawn = FakeSpawn(_output({"title": "x"}))
    runner = ScriptFilterRunner(spawn=spawn)

    async def go():
        spawn.hold("pa")
        first = asyncio.ensure_future(runner.run(SPEC, "pa", runner.issue(SPEC)))
        await asyncio.sleep(0)
        second = await runner.run(SPEC, "par", runner.issue(SPEC))
        await asyncio.gather(first, return_exceptions=True)
        return first, second

    first, second = asyncio.run(go())
    assert first.cancelled()
    assert spawn.cancelled == ["pa"]
    assert [i.title for i in second] == ["x"]


def test_handle_uses_parse_args():
    spawn = FakeSpawn(_output({"title": "x"}))
    runner = ScriptFilterRunner(spawn=spawn)
    p = Parse("run_filter", {"spec": SPEC, "query": "lon"})

    async def go():
        return await script_filter.handle(p, runner, runner.issue(SPEC))

    assert [i.title for i in asyncio.run(go())] == ["x"]
    assert spawn.calls[0][-1] == "lon"


def test_run_process_real_child():
    stdout, status = asyncio.run(script_filter.run_process(
        ["sh", "-c", 'echo \'{"items": [{"title": "hi"}]}\'']))
    assert status == 0
    assert parse_output(stdout, SPEC)[0].title == "hi"
