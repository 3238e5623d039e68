"""Control of the monitor's start-up service and running processes."""

from __future__ import annotations

import os
import signal
import subprocess
from contextlib import suppress
from pathlib import Path

from lxsysmon.layout import InstallError, InstallLayout

MAX_RUN_STATE = 6
ACTIVE_RUN_STATES = frozenset({3, 4, 5})


def _layout(layout: InstallLayout | None) -> InstallLayout:
    return layout if layout is not None else InstallLayout()


def _run(command: list[str]) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(command, check=False)
    except OSError as exc:
        raise InstallError(f"cannot run {command[0]}: {exc}") from exc


def _run_state_links(layout: InstallLayout, run_state: int) -> tuple[Path, Path]:
    if not 0 <= run_state <= MAX_RUN_STATE:
        raise ValueError(f"run state must be between 0 and {MAX_RUN_STATE}")
    rc_dir = Path(layout.rc_dir_format.format(run_state))
    return (
        rc_dir / f"{layout.start_prefix}{layout.initd_service}",
        rc_dir / f"{layout.kill_prefix}{layout.initd_service}",
    )


def set_run_state(run_state: int, running: bool, layout: InstallLayout | None = None) -> None:
    """Make the init.d service run, or not run, in ``run_state`` (0-6)."""
    layout = _layout(layout)
    start_link, kill_link = _run_state_links(layout, run_state)
    stale, wanted = (kill_link, start_link) if running else (start_link, kill_link)
    with suppress(OSError):
        stale.unlink()
    try:
        wanted.symlink_to(layout.initd_script)
    except OSError as exc:
        raise InstallError(f"cannot create {wanted}: {exc}") from exc


def uninstall(layout: InstallLayout | None = None) -> None:
    """Disable the systemd or init.d service."""
    layout = _layout(layout)
    if layout.systemd_dir.is_dir():
        with suppress(InstallError):
            _run([layout.systemctl, "disable", layout.systemd_service])
    elif layout.initd_dir.is_dir():
        for run_state in range(MAX_RUN_STATE + 1):
            with suppress(InstallError):
                set_run_state(run_state, False, layout)


def stop_service(layout: InstallLayout | None = None) -> bool:
    """Stop the installed service.

    Returns False when no service is installed.
    """
    layout = _layout(layout)
    if layout.systemd_unit.exists():
        _run([layout.systemctl, "stop", layout.systemd_service])
        return True
    if layout.initd_script.exists():
        _run([str(layout.initd_script), "stop"])
        return True
    return False


def start_service(layout: InstallLayout | None = None, running_as_service: bool = False) -> bool:
    """Replace this process with the service start command.

    Returns True at once when already running as the service, and False
    when no service is installed.
    """
    if running_as_service:
        return True
    layout = _layout(layout)
    try:
        if layout.systemd_unit.exists():
            os.execvp(layout.systemctl, [layout.systemctl, "start", layout.systemd_service])
        elif layout.initd_script.exists():
            script = str(layout.initd_script)
            os.execv(script, [script, "start"])
    except OSError as exc:
        raise InstallError(f"cannot start service: {exc}") from exc
    return False


def sysmon_search(sig: int | None = None, layout: InstallLayout | None = None) -> bool:
    """Find other monitor processes and optionally signal them.

    With ``sig`` None or negative, returns True if one is running. Otherwise
    every one found is sent ``sig`` and True is returned if any was found.
    """
    layout = _layout(layout)
    own_pid = os.getpid()
    names = {layout.binary_name, f"{layout.binary_name} (deleted)"}
    try:
        entries = sorted(os.listdir(layout.proc_dir))
    except OSError:
        return False

    signalled = False
    for entry in entries:
        if not (entry.isascii() and entry.isdigit()):
            continue
        pid = int(entry)
        if pid == own_pid:
            continue
        try:
            target = os.readlink(layout.proc_dir / entry / "exe")
        except OSError:
            continue
        if "/" not in target or target.rsplit("/", 1)[1] not in names:
            continue
        if sig is None or sig < 0:
            return True
        with suppress(OSError):
            os.kill(pid, sig)
        signalled = True
    return signalled


def kill_other_sysmon(force: bool = False, layout: InstallLayout | None = None) -> None:
    """Terminate other monitor processes, killing them outright if ``force``."""
    sysmon_search(signal.SIGTERM, layout)
    if force:
        sysmon_search(signal.SIGKILL, layout)


def sysmon_is_running(layout: InstallLayout | None = None) -> bool:
    """True if another monitor process is running."""
    return sysmon_search(None, layout)


def signal_config_change(layout: InstallLayout | None = None) -> None:
    """Tell running monitor processes to reload their configuration."""
    sysmon_search(signal.SIGHUP, layout)