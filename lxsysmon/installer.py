"""Installation of the monitor's files and storage of its start-up settings."""

from __future__ import annotations

import os
import struct
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager, suppress
from pathlib import Path

from lxsysmon.layout import InstallError, InstallLayout
from lxsysmon.service import ACTIVE_RUN_STATES, MAX_RUN_STATE, set_run_state

KERNEL_OBJECTS = (
    "sysmonEBPFkern4.15.o",
    "sysmonEBPFkern4.16.o",
    "sysmonEBPFkern4.17-5.1.o",
    "sysmonEBPFkern5.2.o",
    "sysmonEBPFkern5.3-5.5.o",
    "sysmonEBPFkern5.6-.o",
    "sysmonEBPFkern4.15_core.o",
    "sysmonEBPFkern4.16_core.o",
    "sysmonEBPFkern4.17-5.1_core.o",
    "sysmonEBPFkern5.2_core.o",
    "sysmonEBPFkern5.3-5.5_core.o",
    "sysmonEBPFkern5.6-_core.o",
)
LOGVIEW_RESOURCE = "sysmonLogView"
SYSTEMD_RESOURCE = "sysmon.service"
INITD_RESOURCE = "sysmon.d"

DIR_MODE = 0o700
FILE_MODE = 0o600
EXE_FILE_MODE = 0o700
SYSTEMD_FILE_MODE = 0o644
SERVICE_FILE_MODE = 0o755

EMPTY_CONFIG = (
    b'<Sysmon schemaversion="4.22">\n<EventFiltering>\n</EventFiltering>\n</Sysmon>\n'
)

_ARGC = struct.Struct("=i")
_CONFIG_SWITCHES = ("-i", "-c")


def _layout(layout: InstallLayout | None) -> InstallLayout:
    return layout if layout is not None else InstallLayout()


@contextmanager
def _umask(mask: int) -> Iterator[None]:
    previous = os.umask(mask)
    try:
        yield
    finally:
        os.umask(previous)


def _write_new(path: Path, data: bytes, mode: int) -> None:
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
    except OSError as exc:
        raise InstallError(f"cannot write {path}: {exc}") from exc


def _drop_file(path: Path, data: bytes, force: bool, mode: int) -> None:
    """Write ``data`` to ``path`` with ``mode``; keep an existing file unless ``force``."""
    if path.exists() and not force:
        return
    with suppress(FileNotFoundError):
        path.unlink()
    _write_new(path, data, mode)
    try:
        os.chmod(path, mode)
    except OSError as exc:
        raise InstallError(f"cannot set mode of {path}: {exc}") from exc


def _resource(resources: Mapping[str, bytes], name: str) -> bytes:
    try:
        return bytes(resources[name])
    except KeyError:
        raise InstallError(f"missing resource {name!r}") from None


def _run(command: list[str]) -> None:
    import subprocess

    try:
        subprocess.run(command, check=False)
    except OSError as exc:
        raise InstallError(f"cannot run {command[0]}: {exc}") from exc


def install_files(
    resources: Mapping[str, bytes],
    force: bool = False,
    layout: InstallLayout | None = None,
) -> None:
    """Write the monitor, its kernel objects and start-up service to disk.

    ``resources`` maps the names in ``KERNEL_OBJECTS``, ``LOGVIEW_RESOURCE``,
    ``SYSTEMD_RESOURCE`` and ``INITD_RESOURCE`` to file contents. Existing
    files are kept unless ``force`` is true.
    """
    layout = _layout(layout)
    with _umask(0o022):
        try:
            layout.install_dir.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        except OSError as exc:
            raise InstallError(
                "Cannot create sysmon directory. Make sure you are root or sudo."
            ) from exc

        try:
            executable = layout.exe_path.read_bytes()
        except OSError as exc:
            raise InstallError(f"cannot read own executable: {exc}") from exc
        _drop_file(layout.binary_path, executable, force, EXE_FILE_MODE)

        for name in KERNEL_OBJECTS:
            _drop_file(layout.install_path(name), _resource(resources, name), force, FILE_MODE)

        _drop_file(
            layout.install_path(layout.logview_name),
            _resource(resources, LOGVIEW_RESOURCE),
            force,
            EXE_FILE_MODE,
        )

        if layout.systemd_dir.is_dir():
            _drop_file(
                layout.systemd_unit,
                _resource(resources, SYSTEMD_RESOURCE),
                force,
                SYSTEMD_FILE_MODE,
            )
            _run([layout.systemctl, "daemon-reload"])
            _run([layout.systemctl, "enable", layout.systemd_service])
        elif layout.initd_dir.is_dir():
            _drop_file(
                layout.initd_script,
                _resource(resources, INITD_RESOURCE),
                force,
                SERVICE_FILE_MODE,
            )
            for run_state in range(MAX_RUN_STATE + 1):
                with suppress(InstallError):
                    set_run_state(run_state, run_state in ACTIVE_RUN_STATES, layout)


def copy_config_file(config_file, layout: InstallLayout | None = None) -> Path:
    """Copy ``config_file`` into the install directory and return its new path."""
    if config_file is None:
        raise ValueError("copyConfigFile invalid params")
    layout = _layout(layout)
    source = Path(config_file)
    if not source.is_file():
        raise InstallError(f"config file {source} does not exist")
    target = layout.config_file
    if os.path.realpath(source) == str(target):
        return target
    try:
        data = source.read_bytes()
    except OSError as exc:
        raise InstallError(f"cannot read {source}: {exc}") from exc
    _drop_file(target, data, True, FILE_MODE)
    return target


def create_empty_config_file(layout: InstallLayout | None = None) -> Path:
    """Write a configuration with no filtering rules and return its path."""
    layout = _layout(layout)
    target = layout.config_file
    _write_new(target, EMPTY_CONFIG + b"\x00", FILE_MODE)
    return target


def write_argv(argv: Sequence[str], layout: InstallLayout | None = None) -> None:
    """Store the command-line arguments for later start-ups."""
    if argv is None:
        raise ValueError("writeArgv invalid params")
    layout = _layout(layout)
    encoded = [os.fsencode(arg) for arg in argv]
    if any(b"\x00" in arg for arg in encoded):
        raise ValueError("arguments must not contain NUL characters")

    with suppress(OSError):
        layout.argc_file.unlink()
    _write_new(layout.argc_file, _ARGC.pack(len(encoded)), FILE_MODE)

    with suppress(OSError):
        layout.argv_file.unlink()
    _write_new(layout.argv_file, b"".join(arg + b"\x00" for arg in encoded), FILE_MODE)


def read_argv(layout: InstallLayout | None = None) -> tuple[list[str], str | None]:
    """Read the stored arguments.

    An argument following ``-i`` or ``-c`` that is not itself a switch is
    replaced by the installed configuration file; the original is returned
    as the second item (None when there is none).
    """
    layout = _layout(layout)
    try:
        raw_argc = layout.argc_file.read_bytes()
        raw_argv = layout.argv_file.read_bytes()
    except OSError as exc:
        raise InstallError(f"cannot read stored arguments: {exc}") from exc
    if len(raw_argc) < _ARGC.size:
        raise InstallError("stored argument count is truncated")
    (argc,) = _ARGC.unpack_from(raw_argc)
    if argc < 0:
        raise InstallError("stored argument count is negative")

    stored = raw_argv.split(b"\x00")
    if len(stored) - 1 < argc:
        raise InstallError("stored arguments are truncated")

    special = str(layout.config_file)
    config_file: str | None = None
    argv: list[str] = []
    saw_switch = False
    for raw in stored[:argc]:
        arg = os.fsdecode(raw)
        if saw_switch and not arg.startswith("-"):
            config_file = arg
            arg = special
        argv.append(arg)
        saw_switch = arg.lower() in _CONFIG_SWITCHES
    return argv, config_file


def get_command_line(layout: InstallLayout | None = None) -> str | None:
    """The stored command line joined by spaces, or None if none is stored."""
    try:
        argv, _ = read_argv(layout)
    except InstallError:
        return None
    if not argv:
        return None
    return " ".join(argv)


def write_field_sizes(field_sizes: str | None, layout: InstallLayout | None = None) -> None:
    """Store the FieldSizes setting; None just removes any stored one."""
    layout = _layout(layout)
    with suppress(OSError):
        layout.field_sizes_file.unlink()
    if field_sizes is None:
        return
    _write_new(layout.field_sizes_file, field_sizes.encode() + b"\x00", FILE_MODE)


def read_field_sizes(layout: InstallLayout | None = None) -> str | None:
    """The stored FieldSizes setting, or None if none is stored."""
    layout = _layout(layout)
    try:
        data = layout.field_sizes_file.read_bytes()
    except OSError:
        return None
    return data.split(b"\x00", 1)[0].decode()