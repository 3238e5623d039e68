# lxsysmon

Building blocks for a Linux system monitor: turning raw TCP state
changes, `accept()` results and UDP traffic into network events,
throttling repeated UDP reports, and installing, starting, stopping and
signalling the monitor service.

## Install

```
pip install lxsysmon
```

For running the tests:

```
pip install "lxsysmon[test]"
pytest
```

## Modules

- `lxsysmon.hexdump`: `format_hexdump(data)` returns a debugging hex dump
  with 16 bytes per line (a full line ends with its printable
  characters), and `hexdump(data, file=None)` writes one to `file` or to
  standard output. Passing `None` raises `ValueError`.
- `lxsysmon.tcp`: `TcpState`, `AddressFamily`, `TcpStateChange` and
  `NetworkEvent` (with `source_ip` and `destination_ip` properties).
  `should_report_transition(old_state, new_state)` keeps only
  connections that are being opened, completed or closed.
  `build_connection_event(change, pid, event_time)` builds an event from
  a state change, or returns `None` when the change is filtered out
  (uninteresting transition, non-IP family or non-TCP protocol). When a
  change carries no family, IPv4 is assumed if its IPv4 source address
  is set. `parse_sockaddr(data, socklen)` decodes a `sockaddr_in` or
  `sockaddr_in6`, and
  `build_accept_event(pid, sock_id, sockaddr, socklen, event_time)`
  builds an inbound-connection event (`None` when `sock_id` is -1).
- `lxsysmon.udp`: `parse_outbound_packet(frame, network_header)` pulls
  the addresses and ports out of an outbound Ethernet frame carrying UDP
  over IPv4 or IPv6 as a `PacketAddrs`, returns `None` for other
  traffic, and raises `ValueError` for truncated frames.
  `ReportAgeTracker(interval)` decides with `should_report(key, now)`
  whether a key has gone at least `interval` without a report;
  `mark_tcp(key)` silences a key for good. `build_send_event(addrs, pid,
  event_time)` and `build_recv_event(pid, fd, event_time)` build the
  events.
- `lxsysmon.layout`: `InstallLayout` holds every path and service name
  the monitor uses (install directory, configuration and stored-argument
  files, systemd and init.d locations, `/proc`), all overridable;
  `install_path(name)` gives a file inside the install directory.
  `InstallError` is raised when an installation step fails.
- `lxsysmon.service`: `set_run_state`, `uninstall`, `stop_service` and
  `start_service` manage the systemd or init.d service (`start_service`
  replaces the current process with the start command).
  `sysmon_search`, `kill_other_sysmon`, `sysmon_is_running` and
  `signal_config_change` find other running monitor processes through
  `/proc` and signal them.
- `lxsysmon.installer`: `install_files(resources, force, layout)` writes
  the running executable, the kernel objects and log viewer given in
  `resources`, and the start-up service. `copy_config_file` and
  `create_empty_config_file` put a configuration in place.
  `write_argv`/`read_argv`/`get_command_line` store and reload the
  command line, replacing the argument after `-i` or `-c` with the
  installed configuration file. `write_field_sizes`/`read_field_sizes`
  store the FieldSizes setting.

## Example

```python
from lxsysmon.tcp import TcpState, should_report_transition

should_report_transition(TcpState.SYN_SENT, TcpState.ESTABLISHED)  # True
should_report_transition(TcpState.ESTABLISHED, TcpState.FIN_WAIT1)  # False
```

Everything under `lxsysmon.service` and `lxsysmon.installer` takes an
`InstallLayout`. Point one at a scratch directory to try things out
without root.

## What it does not do

The package does not attach to the kernel or capture traffic itself: the
event builders work on data handed to them. It has no command-line tool,
does not parse monitor configuration files, and does not write events to
a log; it also does not carry the kernel objects or log viewer that
`install_files` installs, which the caller must supply.