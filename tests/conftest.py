"""
Shared fixtures: a fake subprocess runner standing in for aa-status,
sudo and the mode tools.
"""

import subprocess

import pytest

from aaprof import Config, ProfileController


STATUS_BEFORE = """apparmor module is loaded.
4 profiles are loaded.
2 profiles are in enforce mode.
   /usr/bin/foo
   /usr/sbin/cupsd
2 profiles are in complain mode.
   /usr/bin/bar
   {structured-hash-id}
0 profiles are in kill mode.
0 profiles are in unconfined mode.
1 processes have profiles defined.
1 processes are in enforce mode.
   /usr/sbin/cupsd (1234)
0 processes are in complain mode.
0 processes are unconfined but have a profile defined.
"""

STATUS_AFTER = """apparmor module is loaded.
4 profiles are loaded.
1 profiles are in enforce mode.
   /usr/sbin/cupsd
3 profiles are in complain mode.
   /usr/bin/bar
   /usr/bin/foo
   {structured-hash-id}
0 profiles are in kill mode.
"""


class FakeRunner:
    """Records argv lists and plays back aa-status snapshots.

    Each aa-status call consumes the next snapshot; the last one repeats.
    ``returncodes`` maps a program name (argv[1] under sudo, else argv[0])
    to the exit status it should report. ``missing`` names programs that
    fail to start. ``stderr`` is what aa-status writes to stderr.
    """

    def __init__(self, *snapshots, returncodes=None, missing=(), stderr=b""):
        self.stderr = stderr
        self.snapshots = list(snapshots) or [""]
        self.returncodes = dict(returncodes or {})
        self.missing = set(missing)
        self.calls = []

    def _program(self, argv):
        if argv[0] == "sudo" and len(argv) > 1:
            return argv[1]
        return argv[0]

    def __call__(self, argv, capture_output=False):
        self.calls.append(list(argv))
        prog = self._program(argv)
        if prog in self.missing:
            raise FileNotFoundError(2, "No such file or directory", prog)
        rc = self.returncodes.get(prog, 0)
        if prog == "aa-status":
            text = self.snapshots.pop(0) if len(self.snapshots) > 1 else self.snapshots[0]
            stdout = text if isinstance(text, bytes) else text.encode()
            return subprocess.CompletedProcess(argv, rc, stdout=stdout, stderr=self.stderr)
        return subprocess.CompletedProcess(argv, rc)

    def status_calls(self):
        return [c for c in self.calls if c[0] == "aa-status"]

    def programs(self):
        return [self._program(c) for c in self.calls]


@pytest.fixture
def make_controller(tmp_path):
    """Build a controller over a FakeRunner, already loaded once."""

    def _make(*snapshots, **runner_kwargs):
        runner = FakeRunner(*snapshots, **runner_kwargs)
        ctl = ProfileController(Config(policy_dir=tmp_path), run=runner)
        ctl.refresh()
        return ctl, runner

    return _make
