"""Configuration loading: YAML file -> entries + addon settings.

Layout of the config file:

    general:
      default_script_shell: zsh
      no_icons: false
    addons:
      calculator: {enabled: true}
      currency: {trigger: "$", default_currency: USD, currencies: [EUR, GBP]}
      file_browser: {show_hidden: false}
      script_filters:
        - {name: Timezones, keyword: tz, command: batz, args: ["-j"]}
      web_searches:
        - {name: DuckDuckGo, keyword: ddg, url: "https://duckduckgo.com/?q={query}"}
    firefox:
      binary: firefox
      description: Firefox browser
      ifenvset: WAYLAND_DISPLAY

Every top-level mapping other than `general` and `addons` is an entry.
Path-like fields expand `~/` and `${VAR}`; inline `script` bodies do not.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from quickrun.entries import (
    Condition, Entry, EXISTS, ENV_SET, ENV_NOT_SET, ENV_EQUALS,
)
from quickrun.addons.script_filter import ScriptFilterSpec
from quickrun.addons.web_search import WebSearchSpec

DEFAULT_CONFIG_PATH = "~/.config/quickrun/quickrun.yaml"

_RESERVED_KEYS = ("general", "addons")

# config key -> condition kind
_CONDITION_KEYS = {
    "ifexist": EXISTS,
    "ifenvset": ENV_SET,
    "ifenvnotset": ENV_NOT_SET,
    "ifenveq": ENV_EQUALS,
}

_ENTRY_KEYS = {"binary", "script", "args", "icon", "description", "disabled",
               *_CONDITION_KEYS}


class ConfigError(ValueError):
    """Raised once at load time for a malformed config file or entry."""


@dataclass
class GeneralConfig:
    default_script_shell: str = "bash"
    no_icons: bool = False
    icon_dirs: list = field(default_factory=list)
    log_file: str = None


@dataclass
class CalculatorSettings:
    enabled: bool = True


@dataclass
class CurrencySettings:
    enabled: bool = True
    trigger: str = "$"
    default_currency: str = "USD"
    currencies: list = field(default_factory=list)


@dataclass
class FileBrowserSettings:
    enabled: bool = True
    show_hidden: bool = False


@dataclass
class AddonsConfig:
    calculator: CalculatorSettings = field(default_factory=CalculatorSettings)
    currency: CurrencySettings = field(default_factory=CurrencySettings)
    file_browser: FileBrowserSettings = field(default_factory=FileBrowserSettings)
    script_filters: list = field(default_factory=list)
    web_searches: list = field(default_factory=list)


@dataclass
class ParsedConfig:
    general: GeneralConfig = field(default_factory=GeneralConfig)
    addons: AddonsConfig = field(default_factory=AddonsConfig)
    entries: list = field(default_factory=list)


# --- Expansion ---

_ENV_REF = re.compile(r"\$\{([^}]*)\}")


def expand_tilde(s, env=None):
    """Expand a leading `~/` to $HOME. Anything else passes through."""
    env = os.environ if env is None else env
    if s.startswith("~/"):
        return f"{env.get('HOME', '')}/{s[2:]}"
    return s


def expand_env_vars(s, env=None):
    """Replace `${VAR}` with its value; unset variables become ''."""
    env = os.environ if env is None else env
    return _ENV_REF.sub(lambda m: env.get(m.group(1), ""), s)


def expand_config_value(s, env=None):
    """Expand both `~/` and `${VAR}` in a config value."""
    if s is None:
        return None
    return expand_env_vars(expand_tilde(s, env), env)


# --- Parsing ---

def _as_str(value, where):
    if value is None:
        return None
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    raise ConfigError(f"{where}: expected a string, got {type(value).__name__}")


def _as_list(value, where):
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"{where}: expected a list")
    return [_as_str(v, where) for v in value]


def _as_bool(value, where, default):
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"{where}: expected true or false")
    return value


def _as_mapping(value, where):
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{where}: expected a mapping")
    return value


def _parse_condition(name, data, env):
    present = [k for k in _CONDITION_KEYS if data.get(k) is not None]
    if not present:
        return None
    if len(present) > 1:
        raise ConfigError(
            f"entry {name!r}: only one condition allowed, got {', '.join(present)}")
    key = present[0]
    kind = _CONDITION_KEYS[key]
    if kind == ENV_EQUALS:
        pair = _as_list(data[key], f"entry {name!r} {key}")
        if len(pair) != 2:
            raise ConfigError(f"entry {name!r}: ifenveq needs [NAME, VALUE]")
        return Condition(kind, pair[0], pair[1])
    target = _as_str(data[key], f"entry {name!r} {key}")
    if kind == EXISTS:
        target = expand_config_value(target, env)
    return Condition(kind, target)


def parse_entry(name, data, env=None):
    """Build an Entry from one top-level mapping of the config file."""
    where = f"entry {name!r}"
    data = _as_mapping(data, where)
    unknown = set(data) - _ENTRY_KEYS
    if unknown:
        raise ConfigError(f"{where}: unknown keys {', '.join(sorted(unknown))}")

    binary = expand_config_value(_as_str(data.get("binary"), where), env)
    script = _as_str(data.get("script"), where)
    description = _as_str(data.get("description"), where)
    from_description = False
    if script is None and binary is None:
        if description is None:
            raise ConfigError(f"{where}: needs a binary, a script or a description")
        binary = description
        from_description = True

    return Entry(
        name=str(name),
        binary=binary,
        script=script,
        args=tuple(expand_config_value(a, env)
                   for a in _as_list(data.get("args"), f"{where} args")),
        icon=expand_config_value(_as_str(data.get("icon"), where), env),
        description=description,
        disabled=_as_bool(data.get("disabled"), f"{where} disabled", False),
        condition=_parse_condition(name, data, env),
        binary_from_description=from_description,
    )


def _parse_script_filter(data, env):
    data = _as_mapping(data, "script filter")
    for key in ("name", "keyword", "command"):
        if not data.get(key):
            raise ConfigError(f"script filter: missing {key!r}")
    where = f"script filter {data['name']!r}"
    return ScriptFilterSpec(
        name=_as_str(data["name"], where),
        keyword=_as_str(data["keyword"], where),
        command=expand_config_value(_as_str(data["command"], where), env),
        args=tuple(_as_list(data.get("args"), f"{where} args")),
        icon=expand_config_value(_as_str(data.get("icon"), where), env),
        action=expand_config_value(_as_str(data.get("action"), where), env),
        secondary_action=expand_config_value(
            _as_str(data.get("secondary_action"), where), env),
    )


def _parse_web_search(data, env):
    data = _as_mapping(data, "web search")
    for key in ("name", "keyword", "url"):
        if not data.get(key):
            raise ConfigError(f"web search: missing {key!r}")
    where = f"web search {data['name']!r}"
    return WebSearchSpec(
        name=_as_str(data["name"], where),
        keyword=_as_str(data["keyword"], where),
        url=expand_config_value(_as_str(data["url"], where), env),
        icon=expand_config_value(_as_str(data.get("icon"), where), env),
    )


def _parse_addons(data, env):
    data = _as_mapping(data, "addons")

    calc = _as_mapping(data.get("calculator"), "addons.calculator")
    cur = _as_mapping(data.get("currency"), "addons.currency")
    fb = _as_mapping(data.get("file_browser"), "addons.file_browser")

    currency = CurrencySettings(
        enabled=_as_bool(cur.get("enabled"), "addons.currency.enabled", True),
        trigger=_as_str(cur.get("trigger"), "addons.currency.trigger") or "$",
        default_currency=(_as_str(cur.get("default_currency"),
                                  "addons.currency.default_currency") or "USD").upper(),
        currencies=[c.upper() for c in
                    _as_list(cur.get("currencies"), "addons.currency.currencies")],
    )

    filters = data.get("script_filters") or []
    searches = data.get("web_searches") or []
    if not isinstance(filters, list) or not isinstance(searches, list):
        raise ConfigError("addons: script_filters and web_searches must be lists")

    return AddonsConfig(
        calculator=CalculatorSettings(
            enabled=_as_bool(calc.get("enabled"), "addons.calculator.enabled", True)),
        currency=currency,
        file_browser=FileBrowserSettings(
            enabled=_as_bool(fb.get("enabled"), "addons.file_browser.enabled", True),
            show_hidden=_as_bool(fb.get("show_hidden"),
                                 "addons.file_browser.show_hidden", False)),
        script_filters=[_parse_script_filter(sf, env) for sf in filters],
        web_searches=[_parse_web_search(ws, env) for ws in searches],
    )


def _parse_general(data, env):
    data = _as_mapping(data, "general")
    return GeneralConfig(
        default_script_shell=_as_str(data.get("default_script_shell"),
                                     "general.default_script_shell") or "bash",
        no_icons=_as_bool(data.get("no_icons"), "general.no_icons", False),
        icon_dirs=[expand_config_value(d, env)
                   for d in _as_list(data.get("icon_dirs"), "general.icon_dirs")],
        log_file=expand_config_value(
            _as_str(data.get("log_file"), "general.log_file"), env),
    )


def parse_config(data, env=None):
    """Turn the loaded YAML document into a ParsedConfig.

    Entries keep file order. Non-mapping top-level values are ignored so
    YAML anchors and scalars can live alongside entries.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    entries = []
    for name, value in data.items():
        if name in _RESERVED_KEYS or not isinstance(value, dict):
            continue
        entries.append(parse_entry(name, value, env))

    return ParsedConfig(
        general=_parse_general(data.get("general"), env),
        addons=_parse_addons(data.get("addons"), env),
        entries=entries,
    )


def load_config(path=None, env=None):
    """Read and parse a config file. Raises ConfigError on any problem."""
    path = Path(expand_config_value(path or DEFAULT_CONFIG_PATH, env))
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot open config file {path}: {e}") from e
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"cannot parse config file {path}: {e}") from e
    return parse_config(data, env)
