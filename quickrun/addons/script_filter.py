"""Script-filter addon: dynamic items produced by an external helper program.

A script filter is declared in the config with a keyword:

    - name: Timezones
      keyword: tz
      command: batz
      args: ["-j"]
      action: "wl-copy {value}"
      secondary_action: "xdg-open {value}"

Typing "tz paris" runs `batz -j paris` and expects JSON on stdout:

    {"items": [{"title": "...", "subtitle": "...", "arg": "...", "icon": "..."}]}

Every invocation gets a generation token. Issuing a new one for the same
filter makes the previous one stale: its process is terminated if still
running, and its output is dropped if it arrives anyway. A non-zero exit or
malformed JSON yields no items; it never breaks input handling.
"""

import asyncio
import itertools
import json
import re
import shlex
import sys
from dataclasses import dataclass

from quickrun.addons.parse import Parse, Item, Action, COPY, SHELL

_MARKUP = re.compile(r"<[^>]*>")


def _log(msg):
    print(msg, file=sys.stderr, flush=True)


@dataclass(frozen=True)
class ScriptFilterSpec:
    name: str
    keyword: str
    command: str
    args: tuple = ()
    icon: str = None
    action: str = None              # shell template, "{value}" placeholder
    secondary_action: str = None


def strip_markup(text):
    """Drop <span ...> style color markup from a subtitle."""
    return _MARKUP.sub("", text or "")


# --- Keyword matching ---

def match_keyword(text, keyword):
    """Return the query after `keyword` if text starts with that token."""
    if not text.startswith(keyword):
        return None
    rest = text[len(keyword):]
    if rest and not rest[0].isspace():
        return None
    return rest.strip()


def parse(text, specs):
    for spec in specs:
        query = match_keyword(text, spec.keyword)
        if query is not None:
            return Parse(command="run_filter", args={"spec": spec, "query": query})
    return None


# --- Output mapping ---

def _template_action(template, value):
    if not template:
        return None
    return Action(SHELL, template.replace("{value}", shlex.quote(value)))


def parse_output(data, spec):
    """Map the helper's JSON output to Items. Bad output -> []."""
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    try:
        doc = json.loads(data)
    except ValueError as e:
        _log(f"  [{spec.name}] malformed JSON: {e}")
        return []
    raw_items = doc.get("items") if isinstance(doc, dict) else None
    if not isinstance(raw_items, list):
        _log(f"  [{spec.name}] output has no items list")
        return []

    items = []
    for raw in raw_items:
        if not isinstance(raw, dict) or not isinstance(raw.get("title"), str):
            continue
        title = raw["title"]
        arg = raw.get("arg")
        value = str(arg) if arg is not None else title
        subtitle = raw.get("subtitle")
        icon = raw.get("icon")
        items.append(Item(
            title=title,
            subtitle=subtitle if isinstance(subtitle, str) else "",
            value=value,
            icon=icon if isinstance(icon, str) and icon else spec.icon,
            action=_template_action(spec.action, value) or Action(COPY, value),
            secondary=_template_action(spec.secondary_action, value),
            kind="script_filter",
        ))
    return items


# --- Process runner ---

async def run_process(argv, cwd=None):
    """Run argv, returning (stdout_bytes, exit_status).

    Cancelling the awaiting task kills the child process.
    """
    proc = await asyncio.create_subprocess_exec(
        *argv, cwd=cwd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL)
    try:
        stdout, _ = await proc.communicate()
    except asyncio.CancelledError:
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        raise
    return stdout, proc.returncode


class ScriptFilterRunner:
    """Issues script-filter invocations and discards superseded results."""

    def __init__(self, spawn=None, cwd=None):
        self.spawn = spawn or run_process
        self.cwd = cwd
        self._tokens = itertools.count(1)
        self._latest = {}     # spec name -> latest issued token
        self._tasks = {}      # spec name -> task running the latest invocation

    def issue(self, spec):
        """Start a new generation for spec; earlier ones become stale."""
        token = next(self._tokens)
        self._latest[spec.name] = token
        return token

    def is_current(self, spec, token):
        return self._latest.get(spec.name) == token

    async def run(self, spec, query, token):
        """Run one invocation. Returns Items, or None if it was superseded."""
        argv = [spec.command, *spec.args, query]
        current = asyncio.current_task()
        previous = self._tasks.get(spec.name)
        if previous is not None and previous is not current and not previous.done():
            previous.cancel()
        self._tasks[spec.name] = current

        try:
            stdout, status = await self.spawn(argv, self.cwd)
        except OSError as e:
            _log(f"  [{spec.name}] cannot run {spec.command}: {e}")
            stdout, status = b"", None
        finally:
            if self._tasks.get(spec.name) is current:
                del self._tasks[spec.name]

        if not self.is_current(spec, token):
            _log(f"  [{spec.name}] dropping stale result #{token}")
            return None
        if status != 0:
            if status is not None:
                _log(f"  [{spec.name}] exited with status {status}")
            return []
        return parse_output(stdout, spec)


async def handle(p, runner, token):
    """Resolve a script-filter Parse. None means superseded."""
    return await runner.run(p.args["spec"], p.args["query"], token)
