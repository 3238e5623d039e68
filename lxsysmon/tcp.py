"""TCP connection and accept events built from kernel tracepoint data."""

from __future__ import annotations

import ipaddress
import struct
from dataclasses import dataclass, field
from enum import IntEnum

_ADDR_LEN = 16
_IPV4_LEN = 4
_SOCKADDR_IN_SIZE = 16
_SOCKADDR_IN6_SIZE = 28
_IPPROTO_TCP = 6


class TcpState(IntEnum):
    """Kernel TCP socket states."""

    ESTABLISHED = 1
    SYN_SENT = 2
    SYN_RECV = 3
    FIN_WAIT1 = 4
    FIN_WAIT2 = 5
    TIME_WAIT = 6
    CLOSE = 7
    CLOSE_WAIT = 8
    LAST_ACK = 9
    LISTEN = 10
    CLOSING = 11
    NEW_SYN_RECV = 12


class AddressFamily(IntEnum):
    """Socket address families reported for TCP/IP."""

    INET = 2
    INET6 = 10


def _pad_address(raw: bytes) -> bytes:
    return bytes(raw).ljust(_ADDR_LEN, b"\x00")


@dataclass
class NetworkEvent:
    """A network event as reported to the event consumer."""

    pid: int
    event_time: int
    is_tcp: bool
    sock_id: int
    old_state: int = 0
    new_state: int = 0
    src_port: int = 0
    dst_port: int = 0
    addr_is_ipv4: bool = True
    src_addr: bytes = field(default=bytes(_ADDR_LEN))
    dst_addr: bytes = field(default=bytes(_ADDR_LEN))

    def __post_init__(self) -> None:
        self.src_addr = _pad_address(self.src_addr)
        self.dst_addr = _pad_address(self.dst_addr)
        if len(self.src_addr) != _ADDR_LEN or len(self.dst_addr) != _ADDR_LEN:
            raise ValueError("addresses must be at most 16 bytes")

    def _ip(self, raw: bytes):
        if self.addr_is_ipv4:
            return ipaddress.IPv4Address(raw[:_IPV4_LEN])
        return ipaddress.IPv6Address(raw)

    @property
    def source_ip(self):
        """The source address as an ``ipaddress`` object."""
        return self._ip(self.src_addr)

    @property
    def destination_ip(self):
        """The destination address as an ``ipaddress`` object."""
        return self._ip(self.dst_addr)


@dataclass(frozen=True)
class TcpStateChange:
    """Fields of a TCP state-change tracepoint.

    ``family`` and ``protocol`` are None for kernels whose tracepoint
    does not carry them; the address family is then inferred from
    whether the IPv4 source address is set.
    """

    skaddr: int
    old_state: int
    new_state: int
    sport: int
    dport: int
    saddr: bytes = bytes(4)
    daddr: bytes = bytes(4)
    saddr_v6: bytes = bytes(16)
    daddr_v6: bytes = bytes(16)
    family: int | None = None
    protocol: int | None = None

    def __post_init__(self) -> None:
        if len(self.saddr) != 4 or len(self.daddr) != 4:
            raise ValueError("IPv4 addresses must be 4 bytes")
        if len(self.saddr_v6) != 16 or len(self.daddr_v6) != 16:
            raise ValueError("IPv6 addresses must be 16 bytes")


def should_report_transition(old_state: int, new_state: int) -> bool:
    """True for connections being initiated, connected or closed."""
    return (
        new_state == TcpState.SYN_SENT
        or (old_state == TcpState.SYN_SENT and new_state == TcpState.ESTABLISHED)
        or (old_state == TcpState.SYN_RECV and new_state == TcpState.ESTABLISHED)
        or new_state == TcpState.CLOSE
    )


def build_connection_event(
    change: TcpStateChange, pid: int, event_time: int
) -> NetworkEvent | None:
    """Build the event for a TCP state change, or None if it is filtered out."""
    if not should_report_transition(change.old_state, change.new_state):
        return None

    if change.family is None:
        is_ipv4 = any(change.saddr)
    else:
        if change.family not in (AddressFamily.INET, AddressFamily.INET6):
            return None
        if change.protocol != _IPPROTO_TCP:
            return None
        is_ipv4 = change.family == AddressFamily.INET

    if is_ipv4:
        src, dst = change.saddr, change.daddr
    else:
        src, dst = change.saddr_v6, change.daddr_v6

    return NetworkEvent(
        pid=pid,
        event_time=event_time,
        is_tcp=True,
        sock_id=change.skaddr,
        old_state=change.old_state,
        new_state=change.new_state,
        src_port=change.sport,
        dst_port=change.dport,
        addr_is_ipv4=is_ipv4,
        src_addr=src,
        dst_addr=dst,
    )


def parse_sockaddr(data: bytes, socklen: int) -> tuple[bool, bytes, int]:
    """Decode a sockaddr_in or sockaddr_in6 chosen by ``socklen``.

    Returns ``(is_ipv4, address padded to 16 bytes, port in host order)``.
    """
    raw = bytes(data)
    if socklen <= _SOCKADDR_IN_SIZE:
        if len(raw) < 8:
            raise ValueError("sockaddr_in data too short")
        (port,) = struct.unpack_from(">H", raw, 2)
        return True, _pad_address(raw[4:8]), port
    if len(raw) < 24:
        raise ValueError("sockaddr_in6 data too short")
    (port,) = struct.unpack_from(">H", raw, 2)
    return False, raw[8:24], port


def build_accept_event(
    pid: int, sock_id: int, sockaddr: bytes, socklen: int, event_time: int
) -> NetworkEvent | None:
    """Build the event for an accepted inbound connection.

    ``sock_id`` is the value accept() returned; -1 means it failed and
    nothing is reported.
    """
    if sock_id == -1:
        return None
    is_ipv4, address, port = parse_sockaddr(sockaddr, socklen)
    return NetworkEvent(
        pid=pid,
        event_time=event_time,
        is_tcp=True,
        sock_id=sock_id,
        old_state=TcpState.LISTEN,
        new_state=TcpState.ESTABLISHED,
        src_port=port,
        dst_port=0,
        addr_is_ipv4=is_ipv4,
        src_addr=address,
        dst_addr=bytes(_ADDR_LEN),
    )