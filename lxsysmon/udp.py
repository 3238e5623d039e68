"""UDP send and receive events with per-address report throttling."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable

from lxsysmon.tcp import NetworkEvent

_ETHERNET_HEADER_LEN = 14
_ETHERTYPE_IPV4 = 0x0800
_ETHERTYPE_IPV6 = 0x86DD
_IPPROTO_UDP = 17
_IPV6_HEADER_LEN = 40
_ADDR_LEN = 16
_TCP_MARK = object()


@dataclass(frozen=True)
class PacketAddrs:
    """Addresses and ports of an outbound UDP packet.

    Addresses are held as 16 bytes; IPv4 addresses fill the first four.
    Instances are hashable so they can key a report tracker.
    """

    ipv4: bool
    src_port: int
    dst_port: int
    src_addr: bytes
    dst_addr: bytes

    def __post_init__(self) -> None:
        for name in ("src_addr", "dst_addr"):
            raw = bytes(getattr(self, name))
            if len(raw) > _ADDR_LEN:
                raise ValueError("addresses must be at most 16 bytes")
            object.__setattr__(self, name, raw.ljust(_ADDR_LEN, b"\x00"))


def _need(buffer: bytes, end: int) -> None:
    if len(buffer) < end:
        raise ValueError("packet data truncated")


def parse_outbound_packet(frame: bytes, network_header: int) -> PacketAddrs | None:
    """Extract UDP addresses from an Ethernet frame leaving the host.

    ``network_header`` is the socket buffer's network header offset, so
    the IP header starts two bytes before it within ``frame``. Returns
    None for frames that are not UDP over IPv4 or IPv6; raises
    ValueError when the frame is too short to hold what it claims.
    """
    data = bytes(frame)
    _need(data, network_header + 5)

    frame_type = (data[12] << 8) | data[13]
    if frame_type == _ETHERTYPE_IPV4:
        is_ipv4 = True
        header_size = (data[network_header - 2] & 0xF) * 4
        plen = (data[network_header] << 8) | data[network_header + 1]
    elif frame_type == _ETHERTYPE_IPV6:
        if data[network_header + 4] != _IPPROTO_UDP:
            return None
        is_ipv4 = False
        header_size = _IPV6_HEADER_LEN
        plen = ((data[network_header + 2] << 8) | data[network_header + 3]) + _IPV6_HEADER_LEN
    else:
        return None

    packet = data[_ETHERNET_HEADER_LEN:_ETHERNET_HEADER_LEN + plen]

    if is_ipv4:
        _need(packet, 10)
        if packet[9] != _IPPROTO_UDP:
            return None

    _need(packet, header_size + 4)
    src_port = (packet[header_size] << 8) | packet[header_size + 1]
    dst_port = (packet[header_size + 2] << 8) | packet[header_size + 3]

    if is_ipv4:
        _need(packet, 20)
        src_addr, dst_addr = packet[12:16], packet[16:20]
    else:
        _need(packet, 40)
        src_addr, dst_addr = packet[8:24], packet[24:40]

    return PacketAddrs(
        ipv4=is_ipv4,
        src_port=src_port,
        dst_port=dst_port,
        src_addr=src_addr,
        dst_addr=dst_addr,
    )


class ReportAgeTracker:
    """Remembers when each key was last reported, to throttle reports.

    A key is reported the first time it is seen and again once at least
    ``interval`` has passed since its last report. Keys marked as TCP
    are never reported.
    """

    def __init__(self, interval: int) -> None:
        if interval < 0:
            raise ValueError("interval must not be negative")
        self.interval = interval
        self._last: dict[Hashable, object] = {}

    def should_report(self, key: Hashable, now: int) -> bool:
        """Decide whether ``key`` is reported at ``now``, recording it if so."""
        last = self._last.get(key)
        if last is _TCP_MARK:
            return False
        if last is not None and now - last < self.interval:
            return False
        self._last[key] = now
        return True

    def mark_tcp(self, key: Hashable) -> None:
        """Record ``key`` as belonging to a TCP socket, so it is never reported."""
        self._last[key] = _TCP_MARK

    def __contains__(self, key: Hashable) -> bool:
        return key in self._last

    def __len__(self) -> int:
        return len(self._last)


def build_send_event(addrs: PacketAddrs, pid: int, event_time: int) -> NetworkEvent:
    """Build the network event for an outbound UDP packet."""
    return NetworkEvent(
        pid=pid,
        event_time=event_time,
        is_tcp=False,
        sock_id=0,
        addr_is_ipv4=addrs.ipv4,
        src_port=addrs.src_port,
        dst_port=addrs.dst_port,
        src_addr=addrs.src_addr,
        dst_addr=addrs.dst_addr,
    )


def build_recv_event(pid: int, fd: int, event_time: int) -> NetworkEvent:
    """Build the network event for data received on a UDP socket ``fd``."""
    return NetworkEvent(
        pid=pid,
        event_time=event_time,
        is_tcp=False,
        sock_id=fd & 0xFFFFFFFF,
        src_port=0,
        dst_port=0,
        src_addr=bytes(_ADDR_LEN),
        dst_addr=bytes(_ADDR_LEN),
    )