"""Dispatcher: turns each input change into a displayed item list.

On every keystroke the addons are tried in fixed order:

    calculator -> currency -> script_filter -> web_search -> file_browser
    -> fuzzy match over the configured entries

The first addon whose parse() matches owns the result list. Addons that
need to wait (script filters, currency rates that must be fetched) run as
asyncio tasks tagged with the input's generation number; whatever they
produce is shown only if no newer input arrived meanwhile. Until then the
previous list stays on screen.

States:
    idle      fuzzy results over entries (or nothing typed yet)
    addon     an addon owns the list (detail: addon name)
    pending   waiting on an async addon (detail: generation token)
"""

import asyncio
import os
import sys
from dataclasses import dataclass
from datetime import datetime

from quickrun import fuzzy
from quickrun.actions import ActionExecutor
from quickrun.addons import ALL_ADDONS
from quickrun.addons import calculator, currency, script_filter, web_search, file_browser
from quickrun.addons.currency import RateCache
from quickrun.addons.parse import Item, Action, LAUNCH, COPY
from quickrun.addons.script_filter import ScriptFilterRunner
from quickrun.entries import visible_entries, command_line

IDLE = "idle"
ADDON = "addon"
PENDING = "pending"

PRIMARY = "primary"
SECONDARY = "secondary"

ENTRIES = "entries"


def _log(msg):
    print(msg, file=sys.stderr, flush=True)


def addon_name(module):
    return module.__name__.split(".")[-1]


CALCULATOR = addon_name(calculator)
CURRENCY = addon_name(currency)
SCRIPT_FILTER = addon_name(script_filter)
WEB_SEARCH = addon_name(web_search)
FILE_BROWSER = addon_name(file_browser)


def addon_parsers(config, env=None):
    """addon name -> parse(text) bound to that addon's settings."""
    addons = config.addons

    def parse_calculator(text):
        if not addons.calculator.enabled:
            return None
        return calculator.parse(text)

    return {
        CALCULATOR: parse_calculator,
        CURRENCY: lambda text: currency.parse(text, addons.currency),
        SCRIPT_FILTER: lambda text: script_filter.parse(text, addons.script_filters),
        WEB_SEARCH: lambda text: web_search.parse(text, addons.web_searches),
        FILE_BROWSER: lambda text: file_browser.parse(text, addons.file_browser, env),
    }


def first_parse(text, config, env=None):
    """The winning Parse for text (addon set), or None for plain entry search."""
    parsers = addon_parsers(config, env)
    for module in ALL_ADDONS:
        name = addon_name(module)
        p = parsers[name](text)
        if p is not None:
            p.addon = name
            return p
    return None


@dataclass
class State:
    name: str = IDLE
    detail: object = None


class Dispatcher:
    """Reactive core: on_input_changed() in, display()/notify() out.

    `display` is any object with display(items) and notify(outcome).
    on_input_changed() must be called from a running event loop.
    """

    def __init__(self, config, display, executor=None, icons=None, rates=None,
                 runner=None, env=None, exists=None, log_path=None):
        self.config = config
        self.display = display
        self.shell = config.general.default_script_shell
        self.executor = executor or ActionExecutor(default_shell=self.shell)
        self.icons = icons
        self.rates = rates or RateCache()
        self.runner = runner or ScriptFilterRunner()
        self.env = os.environ if env is None else env
        self.entries = visible_entries(config.entries, self.env, exists, self.shell)
        self._parsers = addon_parsers(config, self.env)
        self.log_path = log_path

        self.state = State()
        self.text = ""
        self.items = []
        self._generation = 0
        self._tasks = set()

    # --- Input ---

    @property
    def generation(self):
        return self._generation

    def on_input_changed(self, text):
        """Re-resolve for new input. Results reach display() now or later."""
        self.text = text
        self._generation += 1
        self._cancel_pending()
        self._resolve(text, self._generation, 0)

    def _stages(self):
        return [addon_name(m) for m in ALL_ADDONS] + [ENTRIES]

    def _resolve(self, text, token, first_stage):
        stages = self._stages()
        for index in range(first_stage, len(stages)):
            stage = stages[index]
            result = getattr(self, f"_try_{stage}")(text)
            if result is None:
                continue
            if asyncio.iscoroutine(result):
                self.state = State(PENDING, token)
                self._start(self._await_stage(result, text, token, index, stage))
            else:
                self._apply(token, stage, text, result)
            return

    async def _await_stage(self, pending, text, token, index, stage):
        try:
            items = await pending
        except asyncio.CancelledError:
            raise
        except Exception as e:
            _log(f"  [{stage}] failed: {e!r}")
            items = []
        if token != self._generation:
            return
        if items is None:
            if stage == SCRIPT_FILTER:
                return          # superseded invocation
            self._resolve(text, token, index + 1)
            return
        self._apply(token, stage, text, items)

    # --- Stages, in priority order ---

    def _try_calculator(self, text):
        p = self._parsers[CALCULATOR](text)
        if p is None:
            return None
        return calculator.handle(p)

    def _try_currency(self, text):
        p = self._parsers[CURRENCY](text)
        if p is None:
            return None
        items = currency.handle_cached(p, self.rates)
        if items is not None:
            return items
        return currency.handle(p, self.rates)

    def _try_script_filter(self, text):
        p = self._parsers[SCRIPT_FILTER](text)
        if p is None:
            return None
        token = self.runner.issue(p.args["spec"])
        return script_filter.handle(p, self.runner, token)

    def _try_web_search(self, text):
        p = self._parsers[WEB_SEARCH](text)
        if p is None:
            return None
        return web_search.handle(p)

    def _try_file_browser(self, text):
        p = self._parsers[FILE_BROWSER](text)
        if p is None:
            return None
        return file_browser.handle(p, self.config.addons.file_browser)

    def _try_entries(self, text):
        return [self._entry_item(entry) for entry, _ in fuzzy.rank(text, self.entries)]

    def _entry_item(self, entry):
        return Item(title=entry.title,
                    subtitle=entry.binary or "",
                    value=entry.title,
                    icon=entry.icon_name,
                    action=Action(LAUNCH, entry),
                    secondary=Action(COPY, command_line(entry, self.shell)),
                    kind="entry")

    # --- Display ---

    def _apply(self, token, stage, text, items):
        self.state = State(IDLE) if stage == ENTRIES else State(ADDON, stage)
        self._log_request(text, stage, items)
        self._show(token, items)

    def _show(self, token, items):
        self.items = items
        missing = self._fill_icons(items)
        self.display.display(items)
        if missing:
            self._start(self._resolve_icons(token, items, missing))

    def _fill_icons(self, items):
        """Copy cached icon paths onto items; return names still unknown."""
        if self.icons is None:
            return []
        missing = []
        for item in items:
            if not item.icon:
                continue
            known, path = self.icons.cached(item.icon)
            if known:
                item.icon_path = path
            elif item.icon not in missing:
                missing.append(item.icon)
        return missing

    async def _resolve_icons(self, token, items, names):
        await asyncio.gather(*(self.icons.resolve(n) for n in names))
        if token != self._generation or self.items is not items:
            return
        self._fill_icons(items)
        self.display.display(items)

    # --- Activation ---

    def on_activate(self, item, gesture=PRIMARY):
        """Run exactly one action for item and report the outcome."""
        if gesture == SECONDARY:
            action = item.secondary_action()
        else:
            action = item.action or Action(COPY, item.value)
        outcome = self.executor.execute(action)
        self._log_activation(item, gesture, outcome)
        self.display.notify(outcome)
        return outcome

    def refresh_icon_cache(self):
        if self.icons is not None:
            self.icons.refresh()

    # --- Task bookkeeping ---

    def _start(self, coro):
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _cancel_pending(self):
        for task in list(self._tasks):
            task.cancel()

    async def wait_idle(self):
        """Wait until no addon or icon work is outstanding."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # --- Request log ---

    def _write_log(self, lines):
        if not self.log_path:
            return
        try:
            os.makedirs(os.path.dirname(self.log_path) or ".", exist_ok=True)
            with open(self.log_path, "a") as f:
                f.write("\n".join(lines) + "\n")
        except OSError:
            pass

    def _log_request(self, text, stage, items):
        """Append a compact 2-line entry to the log file."""
        ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        first = f", first={items[0].title!r}" if items else ""
        self._write_log([f"{ts} [input]  {text}",
                         f"  -> {stage}, items={len(items)}{first}"])

    def _log_activation(self, item, gesture, outcome):
        ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        status = "ok" if outcome.ok else "FAILED"
        self._write_log([f"{ts} [{gesture}]  {item.title}",
                         f"  -> {status}: {outcome.message}"])
