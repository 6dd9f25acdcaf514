"""Action execution: launch entries, run shell templates, copy, open.

Failures are never raised to the caller. execute() always returns an
Outcome, and the dispatcher forwards it to the display's notify().
"""

import shutil
import subprocess
from dataclasses import dataclass

from quickrun.addons.parse import LAUNCH, SHELL, COPY, OPEN
from quickrun.entries import build_argv, command_line

# Tried in order; the first one found on $PATH is used
CLIPBOARD_COMMANDS = [
    ["wl-copy"],
    ["xclip", "-selection", "clipboard"],
    ["xsel", "--clipboard", "--input"],
    ["pbcopy"],
]

_CLIPBOARD_TIMEOUT = 5


@dataclass
class Outcome:
    ok: bool
    message: str
    action: object = None


class ActionExecutor:
    def __init__(self, default_shell="bash", print_only=False,
                 popen=None, run=None, which=None, out=None):
        self.default_shell = default_shell
        self.print_only = print_only
        self.popen = popen or subprocess.Popen
        self.run = run or subprocess.run
        self.which = which or shutil.which
        self.out = out or print

    def execute(self, action):
        """Run one action and report how it went."""
        if action is None:
            return Outcome(False, "nothing to run")
        handler = {
            LAUNCH: self._launch,
            SHELL: self._shell,
            COPY: self._copy,
            OPEN: self._open,
        }.get(action.kind)
        if handler is None:
            return Outcome(False, f"unknown action {action.kind!r}", action)
        try:
            message = handler(action.payload)
        except (OSError, subprocess.SubprocessError) as e:
            return Outcome(False, f"{action.describe()} failed: {e}", action)
        return Outcome(True, message, action)

    def _spawn(self, argv):
        self.popen(argv,
                   stdin=subprocess.DEVNULL,
                   stdout=subprocess.DEVNULL,
                   stderr=subprocess.DEVNULL,
                   start_new_session=True)

    def _launch(self, entry):
        if self.print_only:
            self.out(command_line(entry, self.default_shell))
            return f"printed {entry.name}"
        self._spawn(build_argv(entry, self.default_shell))
        return f"launched {entry.title}"

    def _shell(self, command):
        if self.print_only:
            self.out(command)
            return "printed command"
        self._spawn(["sh", "-c", command])
        return f"ran {command}"

    def _open(self, target):
        if self.print_only:
            self.out(target)
            return "printed target"
        self._spawn(["xdg-open", target])
        return f"opened {target}"

    def clipboard_command(self):
        for cmd in CLIPBOARD_COMMANDS:
            if self.which(cmd[0]):
                return cmd
        return None

    def _copy(self, text):
        text = str(text)
        if self.print_only:
            self.out(text)
            return "printed value"
        cmd = self.clipboard_command()
        if cmd is None:
            raise OSError("no clipboard tool found (wl-copy, xclip, xsel, pbcopy)")
        self.run(cmd, input=text.encode("utf-8"), check=True,
                 timeout=_CLIPBOARD_TIMEOUT,
                 stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        return f"copied {text}"
