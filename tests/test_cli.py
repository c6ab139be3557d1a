"""
Tests for the command-line verbs and option parsing.
"""

import logging
import sys
from pathlib import Path

import pytest
from textual.logging import TextualHandler

import aaprof
from aaprof import (
    CommandFailed,
    Mode,
    ProfileController,
    cmd_edit,
    cmd_list,
    cmd_reload,
    cmd_set_mode,
    parse_options,
)

from conftest import STATUS_AFTER, STATUS_BEFORE, FakeRunner


class TestParseOptions:
    def test_defaults(self):
        config, rest = parse_options(["list"])
        assert rest == ["list"]
        assert config.editor == "vim"
        assert config.policy_dir == Path("/etc/apparmor.d")
        assert config.debug is False

    def test_overrides(self):
        config, rest = parse_options(
            ["--editor", "nano", "edit", "/usr/bin/foo", "--policy-dir", "/tmp/aa", "--debug"]
        )
        assert rest == ["edit", "/usr/bin/foo"]
        assert config.editor == "nano"
        assert config.policy_dir == Path("/tmp/aa")
        assert config.debug is True

    def test_missing_value_exits(self, capsys):
        with pytest.raises(SystemExit) as exc:
            parse_options(["--editor"])
        assert exc.value.code == 1
        assert "Usage" in capsys.readouterr().out


class TestCommands:
    def test_list(self, make_controller, capsys):
        ctl, _ = make_controller(STATUS_BEFORE)
        capsys.readouterr()
        cmd_list(ctl)
        out = capsys.readouterr().out
        assert "/usr/bin/foo" in out
        assert "{structured-hash-id}" in out
        assert "(1234)" not in out

    def test_list_empty(self, make_controller, capsys):
        ctl, _ = make_controller("")
        cmd_list(ctl)
        assert "No profiles found." in capsys.readouterr().out

    def test_set_mode(self, make_controller, capsys):
        ctl, runner = make_controller(STATUS_BEFORE, STATUS_AFTER)
        cmd_set_mode(ctl, Mode.COMPLAIN, "/usr/bin/foo")
        assert ["sudo", "aa-complain", "/usr/bin/foo"] in runner.calls
        out = capsys.readouterr().out
        assert "complain" in out
        assert "still" not in out

    def test_set_mode_not_applied(self, make_controller, capsys):
        ctl, _ = make_controller(STATUS_BEFORE)
        cmd_set_mode(ctl, Mode.ENFORCE, "/usr/bin/bar")
        assert "still in complain mode" in capsys.readouterr().out

    def test_set_mode_unlisted(self, make_controller, capsys):
        ctl, _ = make_controller(STATUS_BEFORE)
        cmd_set_mode(ctl, Mode.ENFORCE, "/opt/unknown")
        assert "not listed" in capsys.readouterr().out

    def test_set_mode_failure_propagates(self, make_controller):
        ctl, _ = make_controller(STATUS_BEFORE, returncodes={"aa-audit": 1})
        with pytest.raises(CommandFailed):
            cmd_set_mode(ctl, Mode.AUDIT, "/usr/bin/foo")

    def test_reload(self, make_controller, capsys):
        ctl, runner = make_controller(STATUS_BEFORE, STATUS_AFTER)
        cmd_reload(ctl)
        assert runner.programs()[1:] == ["systemctl", "aa-status"]
        assert "4 profiles" in capsys.readouterr().out

    def test_edit(self, make_controller, tmp_path, capsys):
        ctl, runner = make_controller(STATUS_BEFORE)
        cmd_edit(ctl, "/usr/bin/bar")
        assert ["sudo", "vim", str(tmp_path / "usr.bin.bar")] in runner.calls
        assert "usr.bin.bar" in capsys.readouterr().out


class TestMain:
    def test_help(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["aaprof", "help"])
        aaprof.main()
        assert "aaprof enforce <profile>" in capsys.readouterr().out

    def test_unknown_verb(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["aaprof", "frobnicate"])
        with pytest.raises(SystemExit) as exc:
            aaprof.main()
        assert exc.value.code == 1
        assert "Unknown command: frobnicate" in capsys.readouterr().out

    def test_mode_verb_needs_profile(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["aaprof", "enforce"])
        with pytest.raises(SystemExit):
            aaprof.main()
        assert "Usage: aaprof enforce <profile>" in capsys.readouterr().out

    def test_kill_is_not_a_verb(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["aaprof", "kill", "/usr/bin/foo"])
        with pytest.raises(SystemExit):
            aaprof.main()
        assert "Unknown command: kill" in capsys.readouterr().out

    def test_initial_load_failure_is_fatal(self, monkeypatch, capsys):
        runner = FakeRunner(returncodes={"aa-status": 4})
        monkeypatch.setattr(aaprof, "ProfileController",
                            lambda config: ProfileController(config, run=runner))
        launched = []
        monkeypatch.setattr(aaprof.AAProfApp, "run", lambda self: launched.append(self))
        monkeypatch.setattr(sys, "argv", ["aaprof"])
        with pytest.raises(SystemExit) as exc:
            aaprof.main()
        assert exc.value.code == 1
        assert "aa-status exited with status 4" in capsys.readouterr().out
        assert launched == []
        assert runner.calls == [["aa-status"]]

    def test_initial_load_starts_tui(self, monkeypatch):
        runner = FakeRunner(STATUS_BEFORE)
        monkeypatch.setattr(aaprof, "ProfileController",
                            lambda config: ProfileController(config, run=runner))
        launched = []
        monkeypatch.setattr(aaprof.AAProfApp, "run", lambda self: launched.append(self))
        monkeypatch.setattr(sys, "argv", ["aaprof"])
        aaprof.main()
        assert len(launched) == 1
        assert len(launched[0].registry) == 4


class TestDebugLogging:
    """--debug routes records to the Textual devtools console."""

    def _capture_config(self, monkeypatch):
        configured = []
        monkeypatch.setattr(aaprof.logging, "basicConfig", lambda **kw: configured.append(kw))
        return configured

    def test_debug_installs_textual_handler(self, monkeypatch):
        configured = self._capture_config(monkeypatch)
        monkeypatch.setattr(sys, "argv", ["aaprof", "--debug", "help"])
        aaprof.main()
        assert len(configured) == 1
        assert configured[0]["level"] == logging.DEBUG
        handlers = configured[0]["handlers"]
        assert len(handlers) == 1
        assert isinstance(handlers[0], TextualHandler)

    def test_no_logging_config_without_debug(self, monkeypatch):
        configured = self._capture_config(monkeypatch)
        monkeypatch.setattr(sys, "argv", ["aaprof", "help"])
        aaprof.main()
        assert configured == []
