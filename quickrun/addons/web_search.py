"""Web-search addon: "<keyword> <query>" opens a search URL.

Handles (for a config entry {keyword: ddg, url: "https://duckduckgo.com/?q={query}"}):
    "ddg rust traits"   -> https://duckduckgo.com/?q=rust%20traits
"""

from dataclasses import dataclass
from urllib.parse import quote

from quickrun.addons.parse import Parse, Item, Action, OPEN
from quickrun.addons.script_filter import match_keyword


@dataclass(frozen=True)
class WebSearchSpec:
    name: str
    keyword: str
    url: str           # "{query}" placeholder
    icon: str = None


def encode_query(query):
    """Percent-encode everything except unreserved characters."""
    return quote(query, safe="")


def build_url(template, query):
    return template.replace("{query}", encode_query(query))


def parse(text, specs):
    for spec in specs:
        query = match_keyword(text, spec.keyword)
        if query:
            return Parse(command="search", args={"spec": spec, "query": query})
    return None


def handle(p):
    spec = p.args["spec"]
    query = p.args["query"]
    url = build_url(spec.url, query)
    return [Item(title=f"Search {spec.name} for \"{query}\"",
                 subtitle=url,
                 value=url,
                 icon=spec.icon or "web-browser",
                 action=Action(OPEN, url),
                 kind="web_search")]
