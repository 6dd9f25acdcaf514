"""Currency addon: convert amounts using cached exchange rates.

Handles (with the default "$" trigger and USD default currency):
    "$10 to eur"          -> 10 USD -> EUR
    "$10 eur"             -> same, bare-space separator
    "$25.5 gbp to usd"    -> explicit source currency
    "$10 usd in jpy"
    "$10"                 -> one item per configured currency, if any

Rates are fetched per base currency and kept for an hour. A stale table is
refetched on next use; if that fetch fails, the stale rate is still used and
the item is marked degraded. With no rate at all the addon declines.
"""

import asyncio
import json
import re
import sys
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from datetime import datetime

from quickrun.addons.parse import Parse, Item, Action, COPY

RATE_TTL = 3600  # seconds

_RATES_URL = "https://api.frankfurter.app/latest?from={base}"
_FETCH_TIMEOUT = 10


def _log(msg):
    print(msg, file=sys.stderr, flush=True)


class RateFetchError(RuntimeError):
    """Rates could not be fetched for a base currency."""


# --- Rate table ---

@dataclass
class RateTable:
    rates: dict = field(default_factory=dict)   # (source, target) -> rate
    fetched_at: float = 0.0

    def is_stale(self, now, ttl=RATE_TTL):
        return now - self.fetched_at >= ttl

    def get(self, source, target):
        return self.rates.get((source, target))


def fetch_rates(base):
    """Fetch {target: rate} for a base currency. Blocking; run in a thread."""
    url = _RATES_URL.format(base=base)
    try:
        with urllib.request.urlopen(url, timeout=_FETCH_TIMEOUT) as resp:
            data = json.loads(resp.read())
    except (urllib.error.URLError, OSError, ValueError) as e:
        raise RateFetchError(f"cannot fetch {base} rates: {e}") from e
    rates = data.get("rates") if isinstance(data, dict) else None
    if not isinstance(rates, dict):
        raise RateFetchError(f"unexpected rate response for {base}")
    return {str(k).upper(): float(v) for k, v in rates.items()}


class RateCache:
    """Process-lifetime cache of RateTables, one per base currency.

    Concurrent lookups that find a table missing or stale share a single
    in-flight fetch. The table is swapped in on the event loop once the
    fetch completes.
    """

    def __init__(self, fetcher=None, clock=None, ttl=RATE_TTL):
        self.fetcher = fetcher or fetch_rates
        self.clock = clock or time.time
        self.ttl = ttl
        self._tables = {}      # base -> RateTable
        self._inflight = {}    # base -> asyncio.Task

    def seed(self, base, rates, fetched_at):
        """Install a table directly (used at startup and in tests)."""
        base = base.upper()
        self._tables[base] = RateTable(
            {(base, k.upper()): float(v) for k, v in rates.items()}, fetched_at)

    def lookup(self, source, target):
        """Cached answer without fetching: (rate, fresh) or (None, False)."""
        if source == target:
            return 1.0, True
        table = self._tables.get(source)
        if table is None:
            return None, False
        return table.get(source, target), not table.is_stale(self.clock(), self.ttl)

    def fetched_at(self, base):
        table = self._tables.get(base)
        return table.fetched_at if table else None

    async def get_rate(self, source, target):
        """Return (rate, degraded). rate is None when nothing is available."""
        rate, fresh = self.lookup(source, target)
        if rate is not None and fresh:
            return rate, False
        if source == target:
            return 1.0, False

        try:
            await self._refresh(source)
        except RateFetchError as e:
            _log(f"  [currency] {e}")
            if rate is not None:
                return rate, True
            return None, False

        rate, _ = self.lookup(source, target)
        return rate, False

    async def _refresh(self, base):
        task = self._inflight.get(base)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._fetch(base))
            self._inflight[base] = task
            task.add_done_callback(lambda t: self._fetch_done(base, t))
        # A superseded caller may be cancelled; the shared fetch keeps going
        await asyncio.shield(task)

    async def _fetch(self, base):
        try:
            rates = await asyncio.to_thread(self.fetcher, base)
        except RateFetchError:
            raise
        except Exception as e:
            raise RateFetchError(f"cannot fetch {base} rates: {e}") from e
        self.seed(base, rates, self.clock())

    def _fetch_done(self, base, task):
        self._inflight.pop(base, None)
        if not task.cancelled():
            task.exception()  # mark retrieved


# --- Parsing ---

def _pattern(trigger):
    return re.compile(
        rf"^{re.escape(trigger)}\s*(\d+(?:\.\d+)?)"
        r"(?:\s*([a-z]{3})\b)?"
        r"(?:\s+(?:(?:to|in)\s+)?([a-z]{3}))?\s*$",
        re.IGNORECASE)


def parse(text, settings):
    """Recognize a conversion query. Returns Parse or None."""
    if not settings.enabled:
        return None
    m = _pattern(settings.trigger).match(text.strip())
    if not m:
        return None

    amount = float(m.group(1))
    source, target = m.group(2), m.group(3)
    if source and not target:
        # a single code is the target: "$10 eur"
        source, target = None, source
    source = (source or settings.default_currency).upper()
    if target:
        targets = [target.upper()]
    else:
        targets = [c for c in settings.currencies if c != source]
        if not targets:
            return None
    return Parse(command="convert",
                 args={"amount": amount, "source": source, "targets": targets})


# --- Formatting ---

def format_amount(amount):
    return f"{amount:,.2f}"


def _make_item(amount, source, target, rate, degraded, fetched_at=None):
    converted = amount * rate
    result_text = f"{converted:.2f} {target}"
    subtitle = f"1 {source} = {rate:.4f} {target}"
    if degraded:
        when = datetime.fromtimestamp(fetched_at).strftime("%H:%M") if fetched_at else "?"
        subtitle += f" (stale rate from {when})"
    return Item(title=f"{format_amount(amount)} {source} = {format_amount(converted)} {target}",
                subtitle=subtitle,
                value=result_text,
                icon="accessories-calculator",
                action=Action(COPY, result_text),
                kind="currency",
                degraded=degraded)


def handle_cached(p, rates):
    """Items from fresh cached rates only, or None if any rate needs a fetch."""
    args = p.args
    items = []
    for target in args["targets"]:
        rate, fresh = rates.lookup(args["source"], target)
        if rate is None or not fresh:
            return None
        items.append(_make_item(args["amount"], args["source"], target, rate, False))
    return items


async def handle(p, rates):
    """Resolve rates (fetching if needed). None means decline."""
    args = p.args
    items = []
    for target in args["targets"]:
        rate, degraded = await rates.get_rate(args["source"], target)
        if rate is None:
            continue
        items.append(_make_item(args["amount"], args["source"], target, rate, degraded,
                                rates.fetched_at(args["source"])))
    return items or None
