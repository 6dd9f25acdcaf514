"""quickrun console front end.

Reads lines from stdin and feeds them to the dispatcher as if each line were
the current contents of the search box.

    firefox      any other text re-runs resolution for that text
    :3           activate item 3
    ::3          secondary gesture on item 3 (usually copy)
    :r           forget cached icon lookups
    :q           quit

Usage:
    python -m quickrun [-config PATH] [-print-only] [-no-icons] [-shell SHELL]
"""

import asyncio
import sys
import time

from quickrun.actions import ActionExecutor
from quickrun.addons.dispatch import Dispatcher, PRIMARY, SECONDARY
from quickrun.addons.script_filter import strip_markup
from quickrun.config import load_config, ConfigError
from quickrun.icons import IconResolver, default_icon_dirs

_PROMPT = "quickrun> "


def log(msg):
    print(msg, file=sys.stderr, flush=True)


class ConsoleDisplay:
    """Prints item lists and outcomes to stdout."""

    def __init__(self, out=None):
        self.out = out or print
        self.items = []

    def display(self, items):
        self.items = list(items)
        if not items:
            self.out("  (no results)")
            return
        for n, item in enumerate(items, 1):
            line = f"  {n:2d}. {strip_markup(item.title)}"
            if item.subtitle:
                line += f"  -- {strip_markup(item.subtitle)}"
            if item.degraded:
                line += "  [stale]"
            self.out(line)

    def notify(self, outcome):
        if outcome.ok:
            log(f"  {outcome.message}")
        else:
            log(f"  error: {outcome.message}")


def build(options, display=None, out=None):
    """Load config and wire up a Dispatcher from parsed command-line options."""
    config = load_config(options.get("config"))
    general = config.general
    if options.get("shell"):
        general.default_script_shell = options["shell"]
    if options.get("no_icons"):
        general.no_icons = True

    icons = None
    if not general.no_icons:
        icons = IconResolver(general.icon_dirs + default_icon_dirs())
        if options.get("refresh_cache"):
            icons.refresh()

    executor = ActionExecutor(default_shell=general.default_script_shell,
                              print_only=options.get("print_only", False),
                              out=out)
    display = display or ConsoleDisplay(out)
    return Dispatcher(config, display, executor=executor, icons=icons,
                      log_path=general.log_file)


def _pick(dispatcher, spec):
    """':3' -> (item, gesture), or None for a bad index."""
    gesture = PRIMARY
    spec = spec[1:]
    if spec.startswith(":"):
        gesture = SECONDARY
        spec = spec[1:]
    try:
        n = int(spec)
    except ValueError:
        return None
    if not 1 <= n <= len(dispatcher.items):
        return None
    return dispatcher.items[n - 1], gesture


async def run_query(options, text):
    """Resolve one query, print the items, and return."""
    dispatcher = build(options)
    dispatcher.on_input_changed(text)
    await dispatcher.wait_idle()
    return dispatcher


async def run_console(options):
    t0 = time.time()
    dispatcher = build(options)
    log(f"quickrun ready: {len(dispatcher.entries)} entries ({time.time() - t0:.2f}s)")
    dispatcher.on_input_changed("")
    await dispatcher.wait_idle()

    while True:
        try:
            line = await asyncio.to_thread(input, _PROMPT)
        except EOFError:
            break
        line = line.rstrip("\n")

        if line == ":q":
            break
        if line == ":r":
            dispatcher.refresh_icon_cache()
            log("  icon cache cleared")
            continue
        if line.startswith(":") and len(line) > 1:
            picked = _pick(dispatcher, line)
            if picked is None:
                log(f"  no such item: {line[1:].lstrip(':')}")
                continue
            item, gesture = picked
            outcome = dispatcher.on_activate(item, gesture)
            if outcome.ok and gesture == PRIMARY:
                break
            continue

        dispatcher.on_input_changed(line)
        await dispatcher.wait_idle()


def main(options=None):
    options = options or {}
    try:
        if options.get("query") is not None:
            asyncio.run(run_query(options, options["query"]))
        else:
            asyncio.run(run_console(options))
    except ConfigError as e:
        log(f"config error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        log("\nbye")


if __name__ == "__main__":
    main()
