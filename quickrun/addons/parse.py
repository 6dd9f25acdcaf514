"""Parse, Item and Action objects for the addon system.

Each addon module's parse(text, ...) returns a Parse (or None when the
input is not for that addon). The dispatcher hands the winning Parse to the
same module's handle(), which turns it into display Items. Every Item
carries the Action(s) that run when it is activated.
"""

from dataclasses import dataclass, field

# Action kinds understood by quickrun.actions.ActionExecutor
LAUNCH = "launch"   # payload: Entry
SHELL = "shell"     # payload: command line for `sh -c`
COPY = "copy"       # payload: text for the clipboard
OPEN = "open"       # payload: URL or path for xdg-open


@dataclass
class Parse:
    command: str          # e.g. "evaluate", "convert", "run_filter"
    args: dict = field(default_factory=dict)
    addon: str = None     # addon name, set by the dispatcher


@dataclass(frozen=True)
class Action:
    kind: str
    payload: object = None

    def describe(self):
        """Short human-readable form, used in logs and notifications."""
        if self.kind == LAUNCH:
            return f"launch {getattr(self.payload, 'name', self.payload)}"
        return f"{self.kind} {self.payload}"


@dataclass
class Item:
    title: str
    subtitle: str = ""           # may contain <span> color markup
    value: str = None            # text substituted into action templates
    icon: str = None             # icon name or path, resolved before display
    action: Action = None
    secondary: Action = None     # None -> copy value
    kind: str = "entry"          # entry | calculator | currency | script_filter | ...
    degraded: bool = False       # built from stale data (e.g. old rates)
    icon_path: str = None        # filled in by the dispatcher

    def __post_init__(self):
        if self.value is None:
            self.value = self.title

    def secondary_action(self):
        """Action for the secondary gesture, falling back to copy."""
        return self.secondary or Action(COPY, self.value)
