"""Tests for action execution with injected process launchers."""

import subprocess

from quickrun.actions import ActionExecutor
from quickrun.addons.parse import Action, LAUNCH, SHELL, COPY, OPEN
from quickrun.entries import Entry


class Recorder:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def __call__(self, argv, **kwargs):
        self.calls.append((argv, kwargs))
        if self.error is not None:
            raise self.error


def _executor(**kwargs):
    popen = kwargs.pop("popen", Recorder())
    run = kwargs.pop("run", Recorder())
    which = kwargs.pop("which", lambda name: name == "xclip")
    printed = []
    executor = ActionExecutor(popen=popen, run=run, which=which,
                              out=printed.append, **kwargs)
    return executor, popen, run, printed


def test_launch_binary():
    executor, popen, _, _ = _executor()
    outcome = executor.execute(Action(LAUNCH, Entry("fx", binary="firefox", args=("-P",))))
    assert outcome.ok
    argv, kwargs = popen.calls[0]
    assert argv == ["firefox", "-P"]
    assert kwargs["start_new_session"] is True


def test_launch_script_uses_default_shell():
    executor, popen, _, _ = _executor(default_shell="zsh")
    executor.execute(Action(LAUNCH, Entry("s", script="echo hi")))
    assert popen.calls[0][0] == ["zsh", "-c", "echo hi"]


def test_shell_action():
    executor, popen, _, _ = _executor()
    executor.execute(Action(SHELL, "wl-copy 'x'"))
    assert popen.calls[0][0] == ["sh", "-c", "wl-copy 'x'"]


def test_open_action():
    executor, popen, _, _ = _executor()
    executor.execute(Action(OPEN, "https://example.com"))
    assert popen.calls[0][0] == ["xdg-open", "https://example.com"]


def test_copy_uses_first_available_tool():
    executor, _, run, _ = _executor()
    outcome = executor.execute(Action(COPY, "4"))
    assert outcome.ok
    argv, kwargs = run.calls[0]
    assert argv == ["xclip", "-selection", "clipboard"]
    assert kwargs["input"] == b"4"


def test_copy_without_tool_fails_softly():
    executor, _, run, _ = _executor(which=lambda name: None)
    outcome = executor.execute(Action(COPY, "4"))
    assert not outcome.ok
    assert "clipboard" in outcome.message
    assert run.calls == []


def test_launch_failure_becomes_outcome():
    executor, _, _, _ = _executor(popen=Recorder(FileNotFoundError("firefox")))
    outcome = executor.execute(Action(LAUNCH, Entry("fx", binary="firefox")))
    assert not outcome.ok
    assert "launch fx failed" in outcome.message


def test_copy_tool_error_becomes_outcome():
    error = subprocess.CalledProcessError(1, ["xclip"])
    executor, _, _, _ = _executor(run=Recorder(error))
    assert not executor.execute(Action(COPY, "x")).ok


def test_print_only_prints_instead_of_spawning():
    executor, popen, run, printed = _executor(print_only=True)
    executor.execute(Action(LAUNCH, Entry("fx", binary="firefox")))
    executor.execute(Action(LAUNCH, Entry("s", binary="python3", script="print(1)")))
    executor.execute(Action(COPY, "42"))
    assert printed == ["firefox", "#!/usr/bin/env -S python3\nprint(1)", "42"]
    assert popen.calls == []
    assert run.calls == []


def test_unknown_and_missing_action():
    executor, _, _, _ = _executor()
    assert not executor.execute(None).ok
    assert not executor.execute(Action("teleport", "x")).ok
