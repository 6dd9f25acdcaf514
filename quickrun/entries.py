"""Configured launcher entries and their visibility conditions.

An entry is either a binary (with optional args) or an inline script run
through a shell. It may carry at most one condition:

    ifexist: "~/bin/tool"        -> exists
    ifenvset: WAYLAND_DISPLAY    -> env_set
    ifenvnotset: SSH_TTY         -> env_not_set
    ifenveq: [DESKTOP, sway]     -> env_equals

Conditions never raise. Anything that goes wrong while reading the
environment or the filesystem counts as "not satisfied" and hides the entry.
"""

import os
import shlex
import sys
from dataclasses import dataclass

EXISTS = "exists"
ENV_SET = "env_set"
ENV_NOT_SET = "env_not_set"
ENV_EQUALS = "env_equals"

CONDITION_KINDS = (EXISTS, ENV_SET, ENV_NOT_SET, ENV_EQUALS)


def _log(msg):
    print(msg, file=sys.stderr, flush=True)


@dataclass(frozen=True)
class Condition:
    kind: str             # one of CONDITION_KINDS
    target: str           # path/binary for exists, variable name otherwise
    value: str = None     # only used by env_equals


@dataclass(frozen=True)
class Entry:
    name: str                       # unique key from the config file
    binary: str = None
    script: str = None              # inline shell body, never expanded
    args: tuple = ()
    icon: str = None
    description: str = None
    disabled: bool = False
    condition: Condition = None
    binary_from_description: bool = False   # no binary or script given

    @property
    def title(self):
        """Text shown in the list: description, else binary, else the key."""
        return self.description or self.binary or self.name

    @property
    def icon_name(self):
        """Icon to resolve: explicit icon, else the binary name."""
        if self.icon:
            return self.icon
        return os.path.basename(self.binary) if self.binary else None


# --- Binary lookup ---

def binary_exists(target, env=None):
    """True if target is an existing path or a program on $PATH."""
    env = os.environ if env is None else env
    if not target:
        return False
    if "/" in target:
        return os.path.exists(os.path.expanduser(target))
    for d in (env.get("PATH") or "").split(os.pathsep):
        if d and os.path.isfile(os.path.join(d, target)):
            return True
    return False


# --- Condition evaluation ---

def evaluate(condition, env=None, exists=None):
    """Evaluate a single condition. Returns False instead of raising.

    Args:
        condition: Condition, or None (always satisfied).
        env: mapping-like environment accessor (defaults to os.environ).
        exists: callable(path_or_binary) -> bool (defaults to binary_exists).
    """
    if condition is None:
        return True
    env = os.environ if env is None else env
    if exists is None:
        exists = lambda target: binary_exists(target, env)

    try:
        if condition.kind == EXISTS:
            return bool(exists(condition.target))
        if condition.kind == ENV_SET:
            return env.get(condition.target) is not None
        if condition.kind == ENV_NOT_SET:
            return env.get(condition.target) is None
        if condition.kind == ENV_EQUALS:
            # unset compares as the empty string
            return env.get(condition.target, "") == condition.value
    except Exception as e:
        _log(f"  condition {condition.kind}({condition.target}) failed: {e}")
        return False

    _log(f"  unknown condition kind: {condition.kind}")
    return False


def launcher_binary(entry, default_shell="bash"):
    """The program that actually gets executed for this entry."""
    if entry.script is not None:
        return entry.binary or default_shell
    return entry.binary


def is_visible(entry, env=None, exists=None, default_shell="bash"):
    """Disabled flag, launch binary presence, then the condition.

    An entry whose binary was taken from its description skips the
    presence check.
    """
    if entry.disabled:
        return False
    env = os.environ if env is None else env
    if exists is None:
        exists = lambda target: binary_exists(target, env)
    try:
        if not entry.binary_from_description and not exists(
                launcher_binary(entry, default_shell)):
            return False
    except Exception as e:
        _log(f"  cannot check binary for {entry.name}: {e}")
        return False
    return evaluate(entry.condition, env, exists)


def visible_entries(entries, env=None, exists=None, default_shell="bash"):
    """Filter entries down to the ones shown for this process run.

    Order is preserved so ranking ties fall back to configuration order.
    """
    return [e for e in entries if is_visible(e, env, exists, default_shell)]


# --- Command construction ---

def build_argv(entry, default_shell="bash"):
    """Argument vector used to launch an entry.

    Scripts run as `shell -c script shell args...` so the script sees its
    arguments as $1, $2, ...
    """
    if entry.script is not None:
        shell = launcher_binary(entry, default_shell)
        argv = [shell, "-c", entry.script]
        if entry.args:
            argv.append(shell)
            argv.extend(entry.args)
        return argv
    return [entry.binary, *entry.args]


def command_line(entry, default_shell="bash"):
    """Printable form of the entry's command (used by print-only mode)."""
    if entry.script is not None:
        interpreter = " ".join([launcher_binary(entry, default_shell), *entry.args])
        return f"#!/usr/bin/env -S {interpreter}\n{entry.script}"
    return " ".join(shlex.quote(a) for a in [entry.binary, *entry.args])
