"""Tests for the file-browser addon."""

from quickrun.addons import file_browser
from quickrun.addons.parse import OPEN, COPY
from quickrun.config import FileBrowserSettings


def _tree(tmp_path):
    (tmp_path / "docs").mkdir()
    (tmp_path / "Downloads").mkdir()
    (tmp_path / "diary.txt").write_text("")
    (tmp_path / ".dotfile").write_text("")
    (tmp_path / "notes.md").write_text("")
    return tmp_path


def _titles(text, settings=None, env=None):
    settings = settings or FileBrowserSettings()
    p = file_browser.parse(text, settings, env or {})
    return [i.title for i in file_browser.handle(p, settings)]


def test_parse_paths():
    settings = FileBrowserSettings()
    env = {"HOME": "/home/u"}
    assert file_browser.parse("/usr/lo", settings, env).args == {
        "directory": "/usr", "prefix": "lo"}
    assert file_browser.parse("/", settings, env).args == {"directory": "/", "prefix": ""}
    assert file_browser.parse("~/", settings, env).args == {
        "directory": "/home/u", "prefix": ""}
    assert file_browser.parse("firefox", settings, env) is None
    assert file_browser.parse("/x", FileBrowserSettings(enabled=False), env) is None


def test_directories_first_then_files(tmp_path):
    root = _tree(tmp_path)
    assert _titles(f"{root}/") == ["docs/", "Downloads/", "diary.txt", "notes.md"]


def test_prefix_filter_is_case_insensitive(tmp_path):
    root = _tree(tmp_path)
    assert _titles(f"{root}/d") == ["docs/", "Downloads/", "diary.txt"]


def test_hidden_files(tmp_path):
    root = _tree(tmp_path)
    assert ".dotfile" not in _titles(f"{root}/")
    assert _titles(f"{root}/.") == [".dotfile"]
    assert ".dotfile" in _titles(f"{root}/", FileBrowserSettings(show_hidden=True))


def test_tilde_uses_home(tmp_path):
    root = _tree(tmp_path)
    assert _titles("~/no", env={"HOME": str(root)}) == ["notes.md"]


def test_missing_directory_is_empty(tmp_path):
    assert _titles(f"{tmp_path}/nope/x") == []


def test_item_actions(tmp_path):
    root = _tree(tmp_path)
    settings = FileBrowserSettings()
    item = file_browser.handle(file_browser.parse(f"{root}/no", settings, {}), settings)[0]
    assert item.action.kind == OPEN
    assert item.action.payload == str(root / "notes.md")
    assert item.secondary.kind == COPY
    assert item.kind == "file_browser"
