"""Watch network traffic on an interface and flag floods and DDoS patterns."""

from __future__ import annotations

import ipaddress
import json
import socket
import sys
import threading
import time
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

import psutil

IpAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

ETHERNET_HEADER_LEN = 14
IPV4_MIN_HEADER_LEN = 20
IPV6_HEADER_LEN = 40
TCP_MIN_HEADER_LEN = 20
UDP_HEADER_LEN = 8

ETHERTYPE_IPV4 = 0x0800
ETHERTYPE_IPV6 = 0x86DD
PROTOCOL_TCP = 6
PROTOCOL_UDP = 17

TCP_SYN = 0x002
TCP_ACK = 0x010

ETH_P_ALL = 0x0003
STATISTICS_PERIOD = 5.0


class AlertLevel(Enum):
    HIGH = "HIGH"


class AlertType(Enum):
    SYS = "SYS"


@dataclass(frozen=True)
class Alert:
    """A single network alert."""

    alert_level: AlertLevel
    alert_type: AlertType
    description: str


class AlertHandler(ABC):
    """Receives network alerts and delivers them somewhere."""

    @abstractmethod
    def handle_alert(self, alert: Alert) -> None:
        """Deliver one alert; may raise to signal failure."""


def _format_alert(alert: Alert) -> str:
    return (
        "========\nALERT\n"
        f"LEVEL: {alert.alert_level.value}\n"
        f"ALERT TYPE: {alert.alert_type.value}\n"
        f"DESCRIPTION: {json.dumps(alert.description, ensure_ascii=False)}\n"
        "========"
    )


class ConsoleAlertHandler(AlertHandler):
    """Prints alerts to standard output."""

    def handle_alert(self, alert: Alert) -> None:
        print(_format_alert(alert), flush=True)


def _duration(seconds: float) -> str:
    if float(seconds).is_integer():
        return f"{int(seconds)}s"
    return f"{seconds}s"


@dataclass
class PacketStats:
    """Running packet counters."""

    total_packets: int = 0
    ipv4_packets: int = 0
    ipv6_packets: int = 0
    tcp_packets: int = 0
    udp_packets: int = 0
    syn_packets: int = 0
    time_stamp: float = field(default_factory=time.monotonic)


class AttackDetector:
    """Counts packets per source address and alerts when limits are passed."""

    def __init__(self) -> None:
        self.syn_collection: Counter[IpAddress] = Counter()
        self.packet_collection: Counter[IpAddress] = Counter()
        self.udp_collection: Counter[IpAddress] = Counter()
        self.syn_limit = 1000
        self.ddos_limit = 10000
        self.udp_limit = 10000
        self.time_limit = 10.0
        self.start_time_limit = time.monotonic()
        self.alert_handlers: list[AlertHandler] = [ConsoleAlertHandler()]

    def send_alerts(self, alert: Alert) -> None:
        """Pass an alert to every handler, reporting handler failures once."""
        self._dispatch(alert, report_errors=True)

    def _dispatch(self, alert: Alert, report_errors: bool) -> None:
        for handler in list(self.alert_handlers):
            try:
                handler.handle_alert(alert)
            except Exception as exc:  # a failing handler must not stop the others
                if report_errors:
                    self._dispatch(
                        Alert(
                            AlertLevel.HIGH,
                            AlertType.SYS,
                            f"Error in sending the Alert!! {exc!r}",
                        ),
                        report_errors=False,
                    )
                else:
                    print(f"Error in sending the Alert!! {exc!r}", file=sys.stderr)

    def reset_values(self) -> None:
        """Start a new counting window for SYN and per-address packet counts."""
        self.syn_collection.clear()
        self.packet_collection.clear()
        self.start_time_limit = time.monotonic()

    def can_reset(self) -> bool:
        return time.monotonic() - self.start_time_limit >= self.time_limit

    def _count(self, counts: Counter, ip: IpAddress, limit: int, label: str) -> bool:
        counts[ip] += 1
        if counts[ip] > limit:
            self.send_alerts(
                Alert(
                    AlertLevel.HIGH,
                    AlertType.SYS,
                    f"{label} {ip} in time :: {_duration(self.time_limit)}",
                )
            )
            return True
        return False

    def is_udp_flood(self, ip: IpAddress) -> bool:
        return self._count(self.udp_collection, ip, self.udp_limit, "UDP Flood detected from ::")

    def is_syn_flood(self, ip: IpAddress) -> bool:
        return self._count(self.syn_collection, ip, self.syn_limit, "Syn Flood detected from ::")

    def is_ddos(self, ip: IpAddress) -> bool:
        return self._count(
            self.packet_collection, ip, self.ddos_limit, "Ddos Attack detected by IP ::"
        )


def _is_loopback_interface(name: str) -> bool:
    addresses = psutil.net_if_addrs().get(name, [])
    for entry in addresses:
        if entry.family in (socket.AF_INET, socket.AF_INET6):
            try:
                if ipaddress.ip_address(entry.address.split("%")[0]).is_loopback:
                    return True
            except ValueError:
                continue
    return False


class NetworkMonitor:
    """Parses captured frames, keeps statistics and runs attack detection."""

    INTERFACE_NAME = "en0"

    def __init__(self) -> None:
        self.packet_stats = PacketStats()
        self.detector = AttackDetector()
        self.alert_handlers: list[AlertHandler] = [ConsoleAlertHandler()]
        self._stats_lock = threading.Lock()
        self._detector_lock = threading.Lock()

    def get_interface(self) -> Optional[str]:
        """Return the monitored interface name if it is up and not loopback."""
        stats = psutil.net_if_stats().get(self.INTERFACE_NAME)
        if stats is None or not stats.isup:
            return None
        if _is_loopback_interface(self.INTERFACE_NAME):
            return None
        return self.INTERFACE_NAME

    def start_scanning_network(self) -> None:
        """Start periodic statistics and capture on the default interface."""
        print("Welcome to network scan center!!")
        self.show_alerts()
        interface = self.get_interface()
        if interface is None:
            message = "WARNING :: No interface found !!"
            print(f"Error in getting the interfaces :: {json.dumps(message)}")
            raise RuntimeError(message)
        print("::: INTERFACE FOUND :::")
        print(f"interface name :: {json.dumps(interface)}")
        print(f"interface description :: {json.dumps('')}")
        self.start_monitoring(interface)

    def process_udp_packet(self, ip: IpAddress) -> None:
        with self._stats_lock:
            self.packet_stats.udp_packets += 1
        with self._detector_lock:
            self.detector.is_udp_flood(ip)

    def process_tcp_packet(self, flags: int, ip: IpAddress) -> None:
        """Count a TCP segment with the given flag bits; SYN without ACK is tracked."""
        with self._stats_lock:
            self.packet_stats.tcp_packets += 1
            is_syn = bool(flags & TCP_SYN) and not flags & TCP_ACK
            if is_syn:
                self.packet_stats.syn_packets += 1
        if is_syn:
            with self._detector_lock:
                self.detector.is_syn_flood(ip)

    def _record_ip_packet(self, ip: IpAddress) -> None:
        with self._stats_lock:
            self.packet_stats.total_packets += 1
            self.packet_stats.ipv4_packets += 1
            self.packet_stats.time_stamp = time.monotonic()
        with self._detector_lock:
            if self.detector.can_reset():
                self.detector.reset_values()
            self.detector.is_ddos(ip)

    def _process_transport(self, protocol: int, payload: bytes, ip: IpAddress) -> None:
        if protocol == PROTOCOL_TCP:
            if len(payload) >= TCP_MIN_HEADER_LEN:
                flags = ((payload[12] & 0x01) << 8) | payload[13]
                self.process_tcp_packet(flags, ip)
        elif protocol == PROTOCOL_UDP:
            if len(payload) >= UDP_HEADER_LEN:
                self.process_udp_packet(ip)

    def process_ipv4_packet(self, data: bytes) -> None:
        """Handle one IPv4 packet; raises ValueError if it is too short."""
        if len(data) < IPV4_MIN_HEADER_LEN:
            raise ValueError("IPv4 packet shorter than its minimum header")
        source = ipaddress.IPv4Address(bytes(data[12:16]))
        self._record_ip_packet(source)
        header_len = (data[0] & 0x0F) * 4
        total_len = int.from_bytes(data[2:4], "big")
        start = min(header_len, len(data))
        end = min(max(total_len, start), len(data))
        self._process_transport(data[9], bytes(data[start:end]), source)

    def process_ipv6_packet(self, data: bytes) -> None:
        """Handle one IPv6 packet; raises ValueError if it is too short."""
        if len(data) < IPV6_HEADER_LEN:
            raise ValueError("IPv6 packet shorter than its fixed header")
        source = ipaddress.IPv6Address(bytes(data[8:24]))
        self._record_ip_packet(source)
        payload_len = int.from_bytes(data[4:6], "big")
        payload = bytes(data[IPV6_HEADER_LEN : IPV6_HEADER_LEN + payload_len])
        self._process_transport(data[6], payload, source)

    def process_packet(self, frame: bytes) -> None:
        """Handle one Ethernet frame; frames that do not parse are ignored."""
        if len(frame) < ETHERNET_HEADER_LEN:
            return
        ethertype = int.from_bytes(frame[12:14], "big")
        payload = bytes(frame[ETHERNET_HEADER_LEN:])
        if ethertype == ETHERTYPE_IPV4 and len(payload) >= IPV4_MIN_HEADER_LEN:
            self.process_ipv4_packet(payload)
        elif ethertype == ETHERTYPE_IPV6 and len(payload) >= IPV6_HEADER_LEN:
            self.process_ipv6_packet(payload)

    def start_monitoring(self, interface: str) -> None:
        """Capture frames from an interface forever."""
        print("Network scanning in progress!!")
        print("press ctrl+c to stop!!")
        family = getattr(socket, "AF_PACKET", None)
        if family is None:
            raise RuntimeError("An error occurred: raw packet capture is not supported here")
        try:
            sock = socket.socket(family, socket.SOCK_RAW, socket.ntohs(ETH_P_ALL))
        except OSError as exc:
            raise RuntimeError(f"An error occurred: {exc}") from exc
        with sock:
            try:
                sock.bind((interface, 0))
            except OSError as exc:
                raise RuntimeError(f"An error occurred: {exc}") from exc
            while True:
                try:
                    frame = sock.recv(65535)
                except OSError as exc:
                    print(f"Error in receiving packets !! {exc}", file=sys.stderr)
                    continue
                self.process_packet(frame)

    def statistics_alert(self) -> Alert:
        """Build an alert summarising the current packet counters."""
        with self._stats_lock:
            stats = self.packet_stats
            description = (
                "\n Statistics from last 5 Seconds :: \n"
                f"Total Packets :: {stats.total_packets}\n"
                f"IPV4 Packets :: {stats.ipv4_packets}\n"
                f"IPV6 Packets :: {stats.ipv6_packets}\n"
                f"TCP Packets :: {stats.tcp_packets}\n"
                f"UDP Packets :: {stats.udp_packets}\n"
                f"SYN Packets :: {stats.syn_packets}\n"
                f"{'--' * 30}\n"
            )
        return Alert(AlertLevel.HIGH, AlertType.SYS, description)

    def show_alerts(self) -> threading.Thread:
        """Start a background thread reporting statistics every few seconds."""

        def report() -> None:
            while True:
                time.sleep(STATISTICS_PERIOD)
                alert = self.statistics_alert()
                for handler in list(self.alert_handlers):
                    try:
                        handler.handle_alert(alert)
                    except Exception as exc:  # keep reporting despite a bad handler
                        print(f"Error is here!!!! : {exc!r}", file=sys.stderr)

        thread = threading.Thread(target=report, name="network-statistics", daemon=True)
        thread.start()
        return thread