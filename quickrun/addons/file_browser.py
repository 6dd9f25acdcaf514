"""File-browser addon: type a path, pick a file or directory.

Handles:
    "/"            -> children of /
    "~/Doc"        -> children of $HOME starting with "Doc"
    "~/.conf"      -> hidden children are listed once the prefix starts with "."

Directories come first, then files, each group sorted case-insensitively.
Primary action opens the path, secondary copies it.
"""

import os
import sys

from quickrun.addons.parse import Parse, Item, Action, OPEN, COPY

MAX_ITEMS = 50


def _log(msg):
    print(msg, file=sys.stderr, flush=True)


def parse(text, settings, env=None):
    if not settings.enabled:
        return None
    if not (text.startswith("/") or text.startswith("~")):
        return None
    env = os.environ if env is None else env
    path = text
    if path == "~":
        path = env.get("HOME", "") + "/"
    elif path.startswith("~/"):
        path = env.get("HOME", "") + path[1:]
    elif path.startswith("~"):
        return None      # ~user is not supported
    directory, prefix = os.path.split(path)
    return Parse(command="browse",
                 args={"directory": directory or "/", "prefix": prefix})


def _list_dir(directory):
    with os.scandir(directory) as it:
        return [(e.name, e.is_dir(follow_symlinks=True)) for e in it]


def handle(p, settings):
    directory = p.args["directory"]
    prefix = p.args["prefix"]
    try:
        children = _list_dir(directory)
    except OSError as e:
        _log(f"  [files] cannot list {directory}: {e}")
        return []

    show_hidden = settings.show_hidden or prefix.startswith(".")
    lowered = prefix.lower()
    matches = [(name, is_dir) for name, is_dir in children
               if name.lower().startswith(lowered)
               and (show_hidden or not name.startswith("."))]
    matches.sort(key=lambda c: (not c[1], c[0].lower()))

    items = []
    for name, is_dir in matches[:MAX_ITEMS]:
        full = os.path.join(directory, name)
        items.append(Item(title=name + ("/" if is_dir else ""),
                          subtitle=full,
                          value=full,
                          icon="folder" if is_dir else "text-x-generic",
                          action=Action(OPEN, full),
                          secondary=Action(COPY, full),
                          kind="file_browser"))
    return items
