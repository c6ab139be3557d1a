#!/usr/bin/env python3
"""
aaprof — AppArmor Profile Dashboard
A terminal UI and CLI for inspecting and switching AppArmor profile modes.

Usage:
    aaprof                                 Interactive TUI
    aaprof list                            List profiles and their modes
    aaprof enforce <profile>               Put a profile in enforce mode
    aaprof complain <profile>              Put a profile in complain mode
    aaprof audit <profile>                 Put a profile in audit mode
    aaprof disable <profile>               Disable a profile
    aaprof reload                          Reload the apparmor service
    aaprof edit <profile>                  Edit a policy file, then reload
    aaprof help                            Show help

Options:
    --editor <prog>                        Editor used for policy files
    --policy-dir <dir>                     Policy directory root
    --debug                                Log to the Textual devtools console
"""

import logging
import re
import shlex
import subprocess
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from textual.app import App, ComposeResult, SuspendNotSupported
from textual.binding import Binding
from textual.containers import ScrollableContainer, Vertical
from textual.logging import TextualHandler
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.theme import Theme
from textual.widgets import OptionList, Static
from textual.widgets.option_list import Option
from rich.style import Style
from rich.text import Text

logger = logging.getLogger(__name__)

# ── Commands & paths ──────────────────────────────────────────────────

STATUS_COMMAND = "aa-status"
ELEVATE_COMMAND = "sudo"
SERVICE_MANAGER = "systemctl"
SERVICE_NAME = "apparmor"
POLICY_DIR = Path("/etc/apparmor.d")
DEFAULT_EDITOR = "vim"
STATUS_TTL = 5  # seconds a footer status message stays visible

Runner = Callable[..., subprocess.CompletedProcess]


@dataclass
class Config:
    status_command: str = STATUS_COMMAND
    elevate_command: str = ELEVATE_COMMAND
    service_manager: str = SERVICE_MANAGER
    service_name: str = SERVICE_NAME
    policy_dir: Path = POLICY_DIR
    editor: str = DEFAULT_EDITOR
    debug: bool = False


# ── Data ──────────────────────────────────────────────────────────────


class Mode(Enum):
    ENFORCE = "enforce"
    COMPLAIN = "complain"
    AUDIT = "audit"
    DISABLE = "disable"
    KILL = "kill"

    @property
    def label(self) -> str:
        return self.value


# Mode -> mode tool. KILL is imposed by the kernel and has no tool.
MODE_TOOLS: Dict[Mode, Optional[str]] = {
    Mode.ENFORCE: "aa-enforce",
    Mode.COMPLAIN: "aa-complain",
    Mode.AUDIT: "aa-audit",
    Mode.DISABLE: "aa-disable",
    Mode.KILL: None,
}


@dataclass(frozen=True)
class Profile:
    name: str
    mode: Mode


# ── Errors ────────────────────────────────────────────────────────────


class CommandError(Exception):
    """An external command did not complete successfully."""

    def __init__(self, argv: Sequence[str], message: str):
        super().__init__(message)
        self.argv = list(argv)


class CommandNotStarted(CommandError):
    def __init__(self, argv: Sequence[str], reason: str):
        super().__init__(argv, f"Could not run {argv[0]}: {reason}")
        self.reason = reason


class CommandFailed(CommandError):
    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = ""):
        message = f"{shlex.join(argv)} exited with status {returncode}"
        if stderr:
            message = f"{message}: {stderr}"
        super().__init__(argv, message)
        self.returncode = returncode
        self.stderr = stderr


def run_command(argv: List[str], run: Runner = subprocess.run,
                capture: bool = False) -> subprocess.CompletedProcess:
    """Run *argv* to completion and raise a CommandError unless it exits 0.

    With *capture*, stdout/stderr are collected as bytes; otherwise the
    command inherits the terminal (needed for sudo prompts and editors).
    """
    logger.debug("Running %s", shlex.join(argv))
    try:
        if capture:
            result = run(argv, capture_output=True)
        else:
            result = run(argv)
    except OSError as e:
        logger.warning("Could not start %s: %s", argv[0], e)
        raise CommandNotStarted(argv, e.strerror or str(e)) from e
    if result.returncode != 0:
        logger.warning("%s exited with status %d", shlex.join(argv), result.returncode)
        stderr = ""
        if capture:
            stderr = (result.stderr or b"").decode("utf-8", errors="replace").strip()
        raise CommandFailed(argv, result.returncode, stderr)
    return result


# ── Status parser ─────────────────────────────────────────────────────

# Matched by containment so that leading counts ("12 profiles are ...") pass.
# The disable wording is provisional: aa-status has not been seen to print it.
SECTION_HEADERS: List[Tuple[str, Mode]] = [
    ("profiles are in enforce mode.", Mode.ENFORCE),
    ("profiles are in complain mode.", Mode.COMPLAIN),
    ("profiles are in kill mode.", Mode.KILL),
    ("profiles are in audit mode.", Mode.AUDIT),
    ("profiles are in disable mode.", Mode.DISABLE),
]

# Any other aa-status summary line ("3 processes are in enforce mode.",
# "0 profiles are in prompt mode.") ends the current section.
_SUMMARY_RE = re.compile(r"^\d+ (?:profiles|processes) ")


def _section_mode(line: str) -> Optional[Mode]:
    for marker, mode in SECTION_HEADERS:
        if marker in line:
            return mode
    return None


def parse_status(text: str) -> List[Profile]:
    """Parse aa-status text output into profiles in display order.

    Each identifier line (starting with ``/`` or ``{``) takes the mode of
    the nearest section header above it. Identifiers outside a known
    profile section are dropped rather than given a guessed mode, and a
    repeated identifier keeps its first position. Summary lines such as
    "2 profiles are loaded." or "1 processes are in enforce mode." close
    the current section.
    """
    profiles: List[Profile] = []
    seen = set()
    mode: Optional[Mode] = None
    for line in text.splitlines():
        stripped = line.strip()
        header = _section_mode(stripped)
        if header is not None:
            mode = header
            continue
        if _SUMMARY_RE.match(stripped):
            mode = None
            continue
        if not stripped.startswith(("/", "{")):
            continue
        if mode is None or stripped in seen:
            continue
        seen.add(stripped)
        profiles.append(Profile(stripped, mode))
    return profiles


def query_status(config: Config, run: Runner = subprocess.run) -> str:
    """Run the status tool and return its stdout, decoded leniently."""
    result = run_command([config.status_command], run, capture=True)
    return (result.stdout or b"").decode("utf-8", errors="replace")


# ── Profile registry ──────────────────────────────────────────────────


class ProfileRegistry:
    """Ordered snapshot of profiles plus the selected index."""

    def __init__(self):
        self.profiles: List[Profile] = []
        self.selected: Optional[int] = None

    def __len__(self) -> int:
        return len(self.profiles)

    def __iter__(self):
        return iter(self.profiles)

    def load(self, profiles: Sequence[Profile]):
        """Replace the snapshot, keeping the selection on the same profile.

        Falls back to the first row when the previously selected profile
        is gone, and clears the selection when the snapshot is empty.
        """
        prev = self.current()
        self.profiles = list(profiles)
        if not self.profiles:
            self.selected = None
            return
        self.selected = 0
        if prev is not None:
            for i, p in enumerate(self.profiles):
                if p.name == prev.name:
                    self.selected = i
                    break

    def select(self, index: int):
        if not self.profiles:
            self.selected = None
            return
        self.selected = max(0, min(index, len(self.profiles) - 1))

    def select_next(self):
        if not self.profiles:
            return
        if self.selected is None:
            self.selected = 0
        else:
            self.selected = (self.selected + 1) % len(self.profiles)

    def select_previous(self):
        if not self.profiles:
            return
        if self.selected is None:
            self.selected = 0
        else:
            self.selected = (self.selected - 1) % len(self.profiles)

    def current(self) -> Optional[Profile]:
        if self.selected is None or self.selected >= len(self.profiles):
            return None
        return self.profiles[self.selected]

    def find(self, name: str) -> Optional[Profile]:
        return next((p for p in self.profiles if p.name == name), None)

    def counts(self) -> Dict[Mode, int]:
        out = {m: 0 for m in Mode}
        for p in self.profiles:
            out[p.mode] += 1
        return out


# ── Command dispatcher ────────────────────────────────────────────────


def policy_path(name: str, policy_dir: Path = POLICY_DIR) -> Path:
    """Map a profile identifier to its policy file.

    ``/usr/bin/foo`` -> ``<policy_dir>/usr.bin.foo``; structured names
    such as ``{hash}`` are used as the file name unchanged.
    """
    if name.startswith("/"):
        return Path(policy_dir) / name[1:].replace("/", ".")
    return Path(policy_dir) / name


class CommandDispatcher:
    def __init__(self, config: Config, run: Runner = subprocess.run):
        self.config = config
        self._run = run

    def _elevated(self, *args: str) -> List[str]:
        if self.config.elevate_command:
            return [self.config.elevate_command, *args]
        return list(args)

    def mode_argv(self, mode: Mode, name: str) -> Optional[List[str]]:
        tool = MODE_TOOLS[mode]
        if tool is None:
            return None
        return self._elevated(tool, name)

    def reload_argv(self) -> List[str]:
        return self._elevated(self.config.service_manager, "reload", self.config.service_name)

    def edit_argv(self, name: str) -> List[str]:
        return self._elevated(self.config.editor, str(policy_path(name, self.config.policy_dir)))

    def set_mode(self, mode: Mode, name: str) -> bool:
        """Run the mode tool for *name*. Returns False if *mode* has no tool."""
        argv = self.mode_argv(mode, name)
        if argv is None:
            return False
        run_command(argv, self._run)
        return True

    def reload(self):
        run_command(self.reload_argv(), self._run)

    def edit(self, name: str):
        run_command(self.edit_argv(name), self._run)


# ── Reconciliation controller ─────────────────────────────────────────


class ProfileController:
    """Runs mutating commands, then re-reads aa-status into the registry.

    The registry is only ever replaced by a fresh parse; a requested mode
    is never written into it directly. Any CommandError propagates with
    the registry left exactly as it was.
    """

    def __init__(self, config: Optional[Config] = None,
                 registry: Optional[ProfileRegistry] = None,
                 run: Runner = subprocess.run):
        self.config = config or Config()
        self.registry = registry if registry is not None else ProfileRegistry()
        self.dispatcher = CommandDispatcher(self.config, run)
        self._run = run

    def refresh(self) -> List[Profile]:
        profiles = parse_status(query_status(self.config, self._run))
        self.registry.load(profiles)
        logger.info("Reconciled %d profiles from %s", len(profiles), self.config.status_command)
        return profiles

    def _target(self, name: Optional[str]) -> Optional[str]:
        if name is not None:
            return name
        p = self.registry.current()
        return p.name if p else None

    def change_mode(self, mode: Mode, name: Optional[str] = None) -> bool:
        """Move *name* (default: the selected profile) to *mode*.

        Returns True when a command ran and the registry was reconciled,
        False when there was nothing to do (no selection, or KILL).
        """
        target = self._target(name)
        if target is None:
            return False
        if not self.dispatcher.set_mode(mode, target):
            return False
        self.refresh()
        return True

    def reload_all(self) -> bool:
        self.dispatcher.reload()
        self.refresh()
        return True

    def edit_profile(self, name: Optional[str] = None) -> bool:
        target = self._target(name)
        if target is None:
            return False
        self.dispatcher.edit(target)
        return self.reload_all()


# ── Textual Theme ─────────────────────────────────────────────────────

AAPROF_THEME = Theme(
    name="aaprof-dark",
    primary="#00cccc",
    secondary="#cc00cc",
    warning="#cc0000",
    success="#00cc00",
    accent="#00cccc",
    dark=True,
    variables={
        "header-color": "#00ffff",
        "dim-color": "#888888",
        "status-color": "#00ff00",
        "warn-color": "#ff4444",
        "accent-color": "#00cccc",
        "mode-enforce": "#00cc00",
        "mode-complain": "#ffff00",
        "mode-audit": "#00cccc",
        "mode-disable": "#888888",
        "mode-kill": "#ff4444",
    },
)

_THEME_COLORS = {AAPROF_THEME.name: dict(AAPROF_THEME.variables)}

_MODE_FALLBACK = {
    Mode.ENFORCE: "#00cc00",
    Mode.COMPLAIN: "#ffff00",
    Mode.AUDIT: "#00cccc",
    Mode.DISABLE: "#888888",
    Mode.KILL: "#ff4444",
}


def _tc(app, role: str, fallback: str = "") -> str:
    """Return the hex color for *role* in the active theme, or *fallback*."""
    colors = _THEME_COLORS.get(getattr(app, "theme", ""), {})
    return colors.get(role, fallback)


def mode_style(app, mode: Mode) -> Style:
    return Style(color=_tc(app, f"mode-{mode.value}", _MODE_FALLBACK[mode]))


# ── Default CSS ───────────────────────────────────────────────────────

DEFAULT_CSS = """
Screen {
    background: $surface;
}

#header {
    height: 5;
    dock: top;
    padding: 0 1;
    border: heavy $accent;
    background: $surface;
}

ProfileListWidget {
    height: 1fr;
    border: heavy $accent;
    scrollbar-size: 1 1;
}

ProfileListWidget > .option-list--option-highlighted {
    background: $accent-darken-3;
    color: $text;
    text-style: bold reverse;
}

#footer {
    height: 1;
    dock: bottom;
    background: $surface;
    padding: 0 1;
}
"""


# ── Widget classes ────────────────────────────────────────────────────


class HeaderBox(Static):
    """Header showing title, per-mode counts, and key hints."""

    counts = reactive(dict)
    total = reactive(0)
    hints = reactive("")

    def render(self) -> Text:
        tc = lambda role, fb="": _tc(self.app, role, fb)
        text = Text()

        title = " ◆ aaprof — AppArmor Profiles "
        text.append(title, style=Style(color=tc("header-color", "#00ffff"), bold=True))
        text.append("\n")

        n = self.total
        text.append(f"{n} profile{'s' if n != 1 else ''}", style=Style(color=tc("accent-color", "#00cccc")))
        for mode in Mode:
            count = self.counts.get(mode, 0)
            if not count:
                continue
            text.append("  ·  ", style=Style(color=tc("dim-color", "#888888")))
            text.append(f"{count} {mode.label}", style=mode_style(self.app, mode))
        text.append("\n")

        text.append(self.hints, style=Style(color=tc("dim-color", "#888888")))
        return text


def build_profile_row(app, p: Profile) -> Text:
    """Build a Rich Text row for a profile in the option list."""
    style = mode_style(app, p.mode)
    text = Text()
    text.append(f" {p.mode.label:<9s}", style=style + Style(bold=True))
    text.append(p.name, style=style)
    return text


class ProfileListWidget(OptionList):
    """Scrollable profile list with mode-colored rows."""

    # Disable built-in OptionList bindings — all key routing done in AAProfApp.on_key
    BINDINGS = []

    def rebuild(self, profiles: Sequence[Profile]):
        self.clear_options()
        self.add_options([Option(build_profile_row(self.app, p), id=p.name) for p in profiles])


class FooterBar(Static):
    """Single-line status bar at the bottom of the screen."""

    status = reactive("")
    is_error = reactive(False)
    position = reactive("")

    def render(self) -> Text:
        tc = lambda role, fb="": _tc(self.app, role, fb)
        text = Text()

        if self.status:
            color = tc("warn-color", "#ff4444") if self.is_error else tc("status-color", "#00ff00")
            text.append(f" {self.status} ", style=Style(color=color, bold=True))
        else:
            text.append(" aaprof ", style=Style(color=tc("dim-color", "#888888")))
            text.append("? help", style=Style(color=tc("dim-color", "#888888")))

        if self.position:
            text.append("  ")
            text.append(self.position, style=Style(color=tc("dim-color", "#888888")))
        return text


# ── Modal Screens ────────────────────────────────────────────────────


class HelpScroll(ScrollableContainer, inherit_bindings=False):
    """Help text container without scroll bindings, so every key reaches HelpModal."""


class HelpModal(ModalScreen):
    """Help overlay showing keyboard shortcuts."""

    DEFAULT_CSS = """
    HelpModal {
        align: center middle;
    }
    #help-box {
        width: 60;
        max-height: 90%;
        border: heavy $accent;
        background: $surface;
        padding: 1 2;
        overflow-y: auto;
    }
    """

    def compose(self) -> ComposeResult:
        with HelpScroll(id="help-box"):
            yield Static(id="help-text")

    def on_mount(self):
        tc = lambda role, fb="": _tc(self.app, role, fb)
        hdr = Style(color=tc("header-color", "#00ffff"), bold=True)
        dim = Style(color=tc("dim-color", "#888888"))
        text = Text()

        text.append("Profiles\n\n", style=Style(bold=True))
        text.append("Navigation\n", style=hdr)
        text.append("  ↑ / k          Move up\n")
        text.append("  ↓ / j          Move down\n")
        text.append("  g / G          Jump to first / last\n\n")
        text.append("Modes\n", style=hdr)
        text.append("  e              Enforce\n", style=mode_style(self.app, Mode.ENFORCE))
        text.append("  c              Complain\n", style=mode_style(self.app, Mode.COMPLAIN))
        text.append("  a              Audit\n", style=mode_style(self.app, Mode.AUDIT))
        text.append("  d              Disable (asks first)\n\n", style=mode_style(self.app, Mode.DISABLE))
        text.append("Policy\n", style=hdr)
        text.append("  v              Edit policy file, then reload\n")
        text.append("  R              Reload apparmor service\n")
        text.append("  r              Refresh from aa-status\n\n")
        text.append("Other\n", style=hdr)
        text.append("  q / Ctrl-C     Quit\n")

        text.append("\nPress any key to close", style=dim)
        self.query_one("#help-text", Static).update(text)

    def on_key(self, event):
        event.stop()
        self.dismiss()


class ConfirmModal(ModalScreen[bool]):
    """Yes/No confirmation dialog with arrow-key navigation."""

    DEFAULT_CSS = """
    ConfirmModal {
        align: center middle;
    }
    #confirm-box {
        width: 56;
        height: auto;
        border: heavy $warning;
        background: $surface;
        padding: 1 2;
    }
    #confirm-buttons { text-align: center; height: auto; }
    #confirm-hints { text-align: center; margin-top: 1; }
    """

    def __init__(self, title: str, message: str, detail: str = ""):
        super().__init__()
        self.title_text = title
        self.message_text = message
        self.detail_text = detail
        self.sel = 1  # 0=Yes, 1=No (default No)

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-box"):
            yield Static(id="confirm-message")
            yield Static(id="confirm-buttons")
            yield Static(id="confirm-hints")

    def on_mount(self):
        tc = lambda role, fb="": _tc(self.app, role, fb)
        text = Text()
        text.append(f"{self.title_text}\n\n", style=Style(color=tc("warn-color", "#ff4444"), bold=True))
        text.append(self.message_text, style=Style(color=tc("warn-color", "#ff4444")))
        if self.detail_text:
            text.append(f"\n\n{self.detail_text}", style=Style(color=tc("dim-color", "#888888")))
        self.query_one("#confirm-message", Static).update(text)
        hints = Text("←/→ Select  ·  ⏎/y Confirm  ·  Esc/n Cancel",
                     style=Style(color=tc("dim-color", "#888888")), justify="center")
        self.query_one("#confirm-hints", Static).update(hints)
        self._render_buttons()

    def _render_buttons(self):
        tc = lambda role, fb="": _tc(self.app, role, fb)
        sel_style = Style(color=tc("warn-color", "#ff4444"), bold=True, reverse=True)
        dim_style = Style(color=tc("dim-color", "#888888"))
        text = Text(justify="center")
        text.append("  Yes (y)  ", style=sel_style if self.sel == 0 else dim_style)
        text.append("    ")
        text.append("  No (n/Esc)  ", style=sel_style if self.sel == 1 else dim_style)
        self.query_one("#confirm-buttons", Static).update(text)

    def on_key(self, event):
        key = event.key
        event.stop()
        event.prevent_default()
        if key in ("y", "Y"):
            self.dismiss(True)
        elif key in ("n", "N", "escape"):
            self.dismiss(False)
        elif key in ("enter", "return"):
            self.dismiss(self.sel == 0)
        elif key in ("left", "h", "right", "l"):
            self.sel = 1 - self.sel
            self._render_buttons()


# ── App ───────────────────────────────────────────────────────────────

MODE_KEYS = {
    "e": Mode.ENFORCE,
    "c": Mode.COMPLAIN,
    "a": Mode.AUDIT,
    "d": Mode.DISABLE,
}


class AAProfApp(App):
    """Textual TUI over a loaded ProfileController."""

    CSS = DEFAULT_CSS

    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit", show=False, priority=True),
    ]

    def __init__(self, controller: ProfileController):
        super().__init__()
        self.register_theme(AAPROF_THEME)
        self.theme = AAPROF_THEME.name
        self.controller = controller
        self.registry = controller.registry
        self._status_timer = None

    def compose(self) -> ComposeResult:
        yield HeaderBox(id="header")
        yield ProfileListWidget(id="profile-list")
        yield FooterBar(id="footer")

    def on_mount(self):
        self._rebuild_list()
        self._update_header()
        self.query_one("#profile-list", ProfileListWidget).focus()

    # -- View updates ------------------------------------------------------

    def _rebuild_list(self):
        sl = self.query_one("#profile-list", ProfileListWidget)
        sl.rebuild(self.registry.profiles)
        self._sync_highlight()

    def _sync_highlight(self):
        sl = self.query_one("#profile-list", ProfileListWidget)
        sl.highlighted = self.registry.selected
        self._update_footer()

    def _update_header(self):
        header = self.query_one("#header", HeaderBox)
        header.counts = self.registry.counts()
        header.total = len(self.registry)
        header.hints = (
            "j/k nav · e enforce · c complain · a audit · d disable"
            " · v edit · r refresh · R reload · ? help"
        )

    def _update_footer(self):
        footer = self.query_one("#footer", FooterBar)
        if self.registry.selected is not None:
            footer.position = f"{self.registry.selected + 1}/{len(self.registry)}"
        else:
            footer.position = ""

    def _set_status(self, msg, ttl=STATUS_TTL, error=False):
        footer = self.query_one("#footer", FooterBar)
        footer.status = msg
        footer.is_error = error
        if self._status_timer:
            self._status_timer.stop()
        self._status_timer = self.set_timer(ttl, self._clear_status)

    def _clear_status(self):
        footer = self.query_one("#footer", FooterBar)
        footer.status = ""
        footer.is_error = False

    # -- External commands -------------------------------------------------

    def _run_suspended(self, fn, *args):
        """Call *fn* with the terminal handed back to child processes."""
        try:
            with self.suspend():
                return fn(*args)
        except SuspendNotSupported:
            return fn(*args)

    def _perform(self, label: str, fn, *args, suspend: bool = True) -> bool:
        """Run one controller action; report failures in the footer.

        On failure the registry is untouched, so only the status changes.
        """
        try:
            if suspend:
                self._run_suspended(fn, *args)
            else:
                fn(*args)
        except CommandError as e:
            logger.debug("%s failed: %s", label, e)
            self._set_status(f"{label} failed: {e}", error=True)
            return False
        self._rebuild_list()
        self._update_header()
        return True

    # -- Events ------------------------------------------------------------

    def on_option_list_option_highlighted(self, event: OptionList.OptionHighlighted):
        # Read the widget, not the event: queued events may be stale
        sl = event.option_list
        if sl.id == "profile-list" and sl.highlighted is not None:
            self.registry.select(sl.highlighted)
            self._update_footer()

    def on_key(self, event) -> None:
        """Central key handler."""
        if isinstance(self.screen, ModalScreen):
            return
        key = event.key
        event.stop()
        event.prevent_default()

        if key == "q":
            self.exit()
        elif key in ("question_mark", "?"):
            self.push_screen(HelpModal())
        elif key in ("down", "j"):
            self.action_cursor_down()
        elif key in ("up", "k"):
            self.action_cursor_up()
        elif key == "g":
            self.action_cursor_first()
        elif key == "G":
            self.action_cursor_last()
        elif key in MODE_KEYS:
            self.action_set_mode(MODE_KEYS[key])
        elif key == "r":
            self.action_refresh()
        elif key == "R":
            self.action_reload()
        elif key == "v":
            self.action_edit()

    # -- Actions -----------------------------------------------------------

    def action_cursor_down(self):
        self.registry.select_next()
        self._sync_highlight()

    def action_cursor_up(self):
        self.registry.select_previous()
        self._sync_highlight()

    def action_cursor_first(self):
        self.registry.select(0)
        self._sync_highlight()

    def action_cursor_last(self):
        self.registry.select(len(self.registry) - 1)
        self._sync_highlight()

    def action_refresh(self):
        if self._perform("Refresh", self.controller.refresh, suspend=False):
            self._set_status("Refreshed from aa-status")

    def action_reload(self):
        if self._perform("Reload", self.controller.reload_all):
            self._set_status(f"Reloaded {self.controller.config.service_name}")

    def action_set_mode(self, mode: Mode):
        p = self.registry.current()
        if p is None:
            return
        if mode is Mode.DISABLE:
            def on_result(confirmed):
                if confirmed:
                    self._apply_mode(mode, p.name)

            self.push_screen(
                ConfirmModal("Disable", f"Disable '{p.name}'?",
                             "The profile is unloaded and its process runs unconfined."),
                on_result,
            )
            return
        self._apply_mode(mode, p.name)

    def _apply_mode(self, mode: Mode, name: str):
        if not self._perform(mode.label.capitalize(), self.controller.change_mode, mode, name):
            return
        now = self.registry.find(name)
        if now is None:
            self._set_status(f"{name} is no longer listed by aa-status")
        elif now.mode is not mode:
            self._set_status(f"{name} is still in {now.mode.label} mode", error=True)
        else:
            self._set_status(f"{name} → {mode.label}")

    def action_edit(self):
        p = self.registry.current()
        if p is None:
            return
        if self._perform("Edit", self.controller.edit_profile, p.name):
            self._set_status(f"Edited {policy_path(p.name, self.controller.config.policy_dir)}")


# ── CLI commands ─────────────────────────────────────────────────────

_ANSI_MODE = {
    Mode.ENFORCE: "32",
    Mode.COMPLAIN: "33",
    Mode.AUDIT: "36",
    Mode.DISABLE: "2",
    Mode.KILL: "31",
}


def _fail(msg: str):
    print(f"\033[31m{msg}\033[0m")
    sys.exit(1)


def cmd_help():
    print("""\033[1;36m◆ aaprof — AppArmor Profile Dashboard\033[0m

\033[1mUsage:\033[0m
  aaprof                                 Interactive TUI
  aaprof list                            List profiles and their modes
  aaprof enforce <profile>               Put a profile in enforce mode
  aaprof complain <profile>              Put a profile in complain mode
  aaprof audit <profile>                 Put a profile in audit mode
  aaprof disable <profile>               Disable a profile
  aaprof reload                          Reload the apparmor service
  aaprof edit <profile>                  Edit a policy file, then reload
  aaprof help                            Show this help

\033[1mOptions:\033[0m
  --editor <prog>                        Editor for policy files (default: vim)
  --policy-dir <dir>                     Policy directory (default: /etc/apparmor.d)
  --debug                                Log to the Textual devtools console

\033[2mPress ? in the TUI for keybindings help.\033[0m""")


def cmd_list(ctl: ProfileController):
    ctl.refresh()
    if not len(ctl.registry):
        print("No profiles found.")
        return
    for p in ctl.registry:
        color = _ANSI_MODE[p.mode]
        print(f"  \033[{color}m{p.mode.label:<9s}\033[0m {p.name}")


def cmd_set_mode(ctl: ProfileController, mode: Mode, name: str):
    ctl.change_mode(mode, name)
    now = ctl.registry.find(name)
    if now is None:
        print(f"\033[1;33m◆\033[0m {name} is not listed by aa-status")
    elif now.mode is not mode:
        print(f"\033[1;33m◆\033[0m {name} is still in {now.mode.label} mode")
    else:
        print(f"\033[1;36m◆\033[0m {name} \033[{_ANSI_MODE[mode]}m{mode.label}\033[0m")


def cmd_reload(ctl: ProfileController):
    ctl.reload_all()
    print(f"\033[1;36m◆\033[0m Reloaded {ctl.config.service_name} ({len(ctl.registry)} profiles)")


def cmd_edit(ctl: ProfileController, name: str):
    ctl.edit_profile(name)
    print(f"\033[1;36m◆\033[0m Edited {policy_path(name, ctl.config.policy_dir)} and reloaded")


def parse_options(args: List[str]) -> Tuple[Config, List[str]]:
    """Split --editor/--policy-dir/--debug out of *args*."""
    config = Config()
    rest: List[str] = []
    i = 0
    while i < len(args):
        if args[i] == "--editor":
            if i + 1 >= len(args):
                _fail("Usage: aaprof --editor <prog>")
            config.editor = args[i + 1]
            i += 2
        elif args[i] == "--policy-dir":
            if i + 1 >= len(args):
                _fail("Usage: aaprof --policy-dir <dir>")
            config.policy_dir = Path(args[i + 1])
            i += 2
        elif args[i] == "--debug":
            config.debug = True
            i += 1
        else:
            rest.append(args[i])
            i += 1
    return config, rest


# ── Main ─────────────────────────────────────────────────────────────


def main():
    config, args = parse_options(sys.argv[1:])
    if config.debug:
        logging.basicConfig(level=logging.DEBUG, handlers=[TextualHandler()])
    ctl = ProfileController(config)

    if not args:
        # Nothing to show without an initial snapshot
        try:
            ctl.refresh()
        except CommandError as e:
            _fail(str(e))
        AAProfApp(ctl).run()
        return

    verb = args[0]
    modes = {m.label: m for m in Mode if MODE_TOOLS[m] is not None}

    try:
        if verb in ("help", "-h", "--help"):
            cmd_help()

        elif verb == "list":
            cmd_list(ctl)

        elif verb in modes:
            if len(args) < 2:
                _fail(f"Usage: aaprof {verb} <profile>")
            cmd_set_mode(ctl, modes[verb], args[1])

        elif verb == "reload":
            cmd_reload(ctl)

        elif verb == "edit":
            if len(args) < 2:
                _fail("Usage: aaprof edit <profile>")
            cmd_edit(ctl, args[1])

        else:
            print(f"\033[31mUnknown command: {verb}\033[0m")
            print("Run 'aaprof help' for usage information.")
            sys.exit(1)
    except CommandError as e:
        _fail(str(e))


if __name__ == "__main__":
    main()
