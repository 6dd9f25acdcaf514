"""Icon name -> file path resolution, cached for the life of the process.

Lookup order for a name:
    1. an absolute path that exists is returned as-is
    2. each icon directory in order, trying "<name>" then "<name>.png",
       "<name>.svg", "<name>.xpm"; the first hit wins

Negative results are cached too. refresh() drops every cached result and lets later
lookups repopulate lazily. Concurrent lookups of the same name share one
filesystem search, which runs in a worker thread.
"""

import asyncio
import os

EXTENSIONS = ("png", "svg", "xpm")

# Largest first: a 48px render looks best from a big source
_THEME_SIZES = ("scalable", "512x512", "256x256", "128x128", "96x96",
                "64x64", "48x48", "32x32")

_NOT_FOUND = object()


def default_icon_dirs(env=None):
    """XDG icon directories: data home first, then the system data dirs."""
    env = os.environ if env is None else env
    home = env.get("HOME", "")
    data_home = env.get("XDG_DATA_HOME") or f"{home}/.local/share"
    data_dirs = env.get("XDG_DATA_DIRS") or "/usr/local/share:/usr/share"

    dirs = []
    for base in [data_home, *data_dirs.split(":")]:
        if not base:
            continue
        base = base.rstrip("/")
        for size in _THEME_SIZES:
            dirs.append(f"{base}/icons/hicolor/{size}/apps")
        dirs.append(f"{base}/icons")
        dirs.append(f"{base}/pixmaps")
    return dirs


def search_icon(name, dirs, extensions=EXTENSIONS):
    """Blocking filesystem search. Returns a path or None."""
    if os.path.isabs(name):
        return name if os.path.isfile(name) else None
    candidates = [name] + [f"{name}.{ext}" for ext in extensions]
    for d in dirs:
        for c in candidates:
            path = os.path.join(d, c)
            if os.path.isfile(path):
                return path
    return None


class IconResolver:
    """Memoizing, coalescing icon resolver."""

    def __init__(self, dirs=None, search=None):
        self.dirs = list(dirs) if dirs is not None else default_icon_dirs()
        self.search = search or search_icon
        self._cache = {}       # name -> path or _NOT_FOUND
        self._inflight = {}    # name -> asyncio.Task
        self._epoch = 0        # bumped by refresh()

    def cached(self, name):
        """(known, path) without searching."""
        hit = self._cache.get(name)
        if hit is None:
            return False, None
        return True, (None if hit is _NOT_FOUND else hit)

    async def resolve(self, name):
        """Resolve name to a path (or None), searching at most once per key."""
        if not name:
            return None
        known, path = self.cached(name)
        if known:
            return path

        task = self._inflight.get(name)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._search(name, self._epoch))
            self._inflight[name] = task
            task.add_done_callback(lambda t: self._search_done(name, t))
        return await asyncio.shield(task)

    def _search_done(self, name, task):
        if self._inflight.get(name) is task:
            del self._inflight[name]
        if not task.cancelled():
            task.exception()  # mark retrieved

    async def _search(self, name, epoch):
        path = await asyncio.to_thread(self.search, name, self.dirs)
        # A refresh during the search means this result may be outdated
        if epoch == self._epoch:
            self._cache[name] = path if path is not None else _NOT_FOUND
        return path

    def refresh(self):
        """Forget every cached resolution. Nothing is re-resolved eagerly.

        A search already running keeps serving lookups of its name, so one
        name never has two searches at once, but its result is not cached.
        """
        self._cache.clear()
        self._epoch += 1
