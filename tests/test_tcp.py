import ipaddress
import socket
import struct

import pytest

from lxsysmon.tcp import (
    AddressFamily,
    NetworkEvent,
    TcpState,
    TcpStateChange,
    build_accept_event,
    build_connection_event,
    parse_sockaddr,
    should_report_transition,
)


def test_state_values_match_kernel():
    assert TcpState(1) is TcpState.ESTABLISHED
    assert TcpState(7) is TcpState.CLOSE
    assert TcpState(10) is TcpState.LISTEN
    assert AddressFamily(socket.AF_INET) is AddressFamily.INET
    # raw kernel numbers: SYN_SENT (2) -> ESTABLISHED (1), ESTABLISHED -> CLOSE (7)
    assert should_report_transition(2, 1) is True
    assert should_report_transition(1, 7) is True
    assert should_report_transition(10, 1) is False


@pytest.mark.parametrize(
    "old, new, expected",
    [
        (TcpState.CLOSE, TcpState.SYN_SENT, True),
        (TcpState.SYN_SENT, TcpState.ESTABLISHED, True),
        (TcpState.SYN_RECV, TcpState.ESTABLISHED, True),
        (TcpState.ESTABLISHED, TcpState.CLOSE, True),
        (TcpState.ESTABLISHED, TcpState.FIN_WAIT1, False),
        (TcpState.LISTEN, TcpState.ESTABLISHED, False),
        (TcpState.CLOSE, TcpState.LISTEN, False),
    ],
)
def test_should_report_transition(old, new, expected):
    assert should_report_transition(old, new) is expected


def _v4_change(**overrides):
    fields = dict(
        skaddr=0x1000,
        old_state=TcpState.SYN_SENT,
        new_state=TcpState.ESTABLISHED,
        sport=40000,
        dport=443,
        saddr=ipaddress.IPv4Address("10.0.0.1").packed,
        daddr=ipaddress.IPv4Address("10.0.0.2").packed,
        family=AddressFamily.INET,
        protocol=6,
    )
    fields.update(overrides)
    return TcpStateChange(**fields)


def test_ipv4_connection_event():
    event = build_connection_event(_v4_change(), pid=42, event_time=7)
    assert event.is_tcp is True
    assert event.addr_is_ipv4 is True
    assert event.pid == 42
    assert event.event_time == 7
    assert event.sock_id == 0x1000
    assert event.src_port == 40000 and event.dst_port == 443
    assert event.source_ip == ipaddress.IPv4Address("10.0.0.1")
    assert event.destination_ip == ipaddress.IPv4Address("10.0.0.2")
    assert len(event.src_addr) == 16
    assert event.src_addr[4:] == bytes(12)


def test_ipv6_connection_event():
    src = ipaddress.IPv6Address("fe80::1")
    dst = ipaddress.IPv6Address("2001:db8::2")
    change = _v4_change(
        family=AddressFamily.INET6,
        saddr=bytes(4),
        daddr=bytes(4),
        saddr_v6=src.packed,
        daddr_v6=dst.packed,
    )
    event = build_connection_event(change, pid=1, event_time=0)
    assert event.addr_is_ipv4 is False
    assert event.source_ip == src
    assert event.destination_ip == dst


def test_non_tcp_protocol_filtered():
    assert build_connection_event(_v4_change(protocol=33), 1, 0) is None


def test_unknown_family_filtered():
    assert build_connection_event(_v4_change(family=1), 1, 0) is None


def test_uninteresting_transition_filtered():
    change = _v4_change(old_state=TcpState.ESTABLISHED, new_state=TcpState.FIN_WAIT1)
    assert build_connection_event(change, 1, 0) is None


def test_old_kernel_infers_family_from_ipv4_address():
    change = _v4_change(family=None, protocol=None)
    event = build_connection_event(change, 1, 0)
    assert event.addr_is_ipv4 is True
    assert event.source_ip == ipaddress.IPv4Address("10.0.0.1")

    src6 = ipaddress.IPv6Address("::1")
    change6 = _v4_change(
        family=None, protocol=None, saddr=bytes(4), saddr_v6=src6.packed
    )
    event6 = build_connection_event(change6, 1, 0)
    assert event6.addr_is_ipv4 is False
    assert event6.source_ip == src6


def test_state_change_rejects_bad_address_lengths():
    with pytest.raises(ValueError):
        TcpStateChange(skaddr=0, old_state=1, new_state=7, sport=0, dport=0, saddr=b"\x01")
    with pytest.raises(ValueError):
        TcpStateChange(skaddr=0, old_state=1, new_state=7, sport=0, dport=0, saddr_v6=b"\x01")


def test_network_event_rejects_long_address():
    with pytest.raises(ValueError):
        NetworkEvent(pid=1, event_time=0, is_tcp=True, sock_id=0, src_addr=bytes(17))


def _sockaddr_in(host, port):
    return struct.pack(">HH4s8x", socket.AF_INET, port, ipaddress.IPv4Address(host).packed)


def _sockaddr_in6(host, port):
    return struct.pack(
        ">HHI16sI", socket.AF_INET6, port, 0, ipaddress.IPv6Address(host).packed, 0
    )


def test_parse_sockaddr_ipv4_round_trip():
    data = _sockaddr_in("192.168.1.5", 8080)
    is_ipv4, addr, port = parse_sockaddr(data, len(data))
    assert is_ipv4 is True
    assert port == 8080
    assert ipaddress.IPv4Address(addr[:4]) == ipaddress.IPv4Address("192.168.1.5")
    assert addr[4:] == bytes(12)


def test_parse_sockaddr_ipv6_round_trip():
    data = _sockaddr_in6("2001:db8::7", 22)
    is_ipv4, addr, port = parse_sockaddr(data, len(data))
    assert is_ipv4 is False
    assert port == 22
    assert ipaddress.IPv6Address(addr) == ipaddress.IPv6Address("2001:db8::7")


def test_parse_sockaddr_short_data():
    with pytest.raises(ValueError):
        parse_sockaddr(b"\x02\x00", 16)
    with pytest.raises(ValueError):
        parse_sockaddr(bytes(10), 28)


def test_accept_event():
    data = _sockaddr_in("127.0.0.1", 5555)
    event = build_accept_event(pid=9, sock_id=4, sockaddr=data, socklen=16, event_time=3)
    assert event.is_tcp is True
    assert event.old_state == TcpState.LISTEN
    assert event.new_state == TcpState.ESTABLISHED
    assert event.src_port == 5555
    assert event.dst_port == 0
    assert event.sock_id == 4
    assert event.source_ip == ipaddress.IPv4Address("127.0.0.1")
    assert event.dst_addr == bytes(16)


def test_failed_accept_not_reported():
    data = _sockaddr_in("127.0.0.1", 5555)
    assert build_accept_event(1, -1, data, 16, 0) is None