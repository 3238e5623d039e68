"""Where an installation keeps its files and how its service is managed."""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path


class InstallError(Exception):
    """An installation or service-management step failed."""


@dataclass(frozen=True)
class InstallLayout:
    """File locations and service names used by an installation.

    Every location can be overridden, which lets the same code manage an
    installation rooted somewhere other than the system directories.
    """

    install_dir: Path = Path("/opt/sysmon")
    binary_name: str = "sysmon"
    logview_name: str = "sysmonLogView"
    config_name: str = "config.xml"
    argc_name: str = "argc"
    argv_name: str = "argv"
    field_sizes_name: str = "fieldsizes"
    systemd_dir: Path = Path("/etc/systemd/system")
    systemd_service: str = "sysmon.service"
    initd_dir: Path = Path("/etc/init.d")
    initd_service: str = "sysmon"
    rc_dir_format: str = "/etc/rc{}.d"
    start_prefix: str = "S99"
    kill_prefix: str = "K99"
    systemctl: str = "systemctl"
    proc_dir: Path = Path("/proc")

    def __post_init__(self) -> None:
        for spec in fields(self):
            if spec.type in (Path, "Path"):
                object.__setattr__(self, spec.name, Path(getattr(self, spec.name)))

    def install_path(self, name: str) -> Path:
        """Path of the file ``name`` inside the install directory."""
        if not name or "/" in name or name in (".", ".."):
            raise ValueError(f"invalid install file name: {name!r}")
        return self.install_dir / name

    @property
    def config_file(self) -> Path:
        """The installed configuration file."""
        return self.install_path(self.config_name)

    @property
    def argc_file(self) -> Path:
        """File holding the stored argument count."""
        return self.install_path(self.argc_name)

    @property
    def argv_file(self) -> Path:
        """File holding the stored command-line arguments."""
        return self.install_path(self.argv_name)

    @property
    def field_sizes_file(self) -> Path:
        """File holding the stored FieldSizes setting."""
        return self.install_path(self.field_sizes_name)

    @property
    def binary_path(self) -> Path:
        """The installed monitor executable."""
        return self.install_path(self.binary_name)

    @property
    def systemd_unit(self) -> Path:
        """The systemd unit file."""
        return self.systemd_dir / self.systemd_service

    @property
    def initd_script(self) -> Path:
        """The init.d start-up script."""
        return self.initd_dir / self.initd_service

    @property
    def exe_path(self) -> Path:
        """The link to the running process's own executable."""
        return self.proc_dir / "self" / "exe"