"""
Network collector: DHCP leases, connection tracking, ARP and routing tables.

Sources that merely do not exist (inactive subsystems) produce empty results;
the routing tables are required and propagate the OS error.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional

from .context import RpcdContext
from .netaddr import hex6addr, hexaddr
from .response import Response
from .textparse import atoi, split_fields

logger = logging.getLogger(__name__)

RTF_UP = 0x0001

Record = Dict[str, Any]


def _expires(ts: str, now: int) -> int:
    return atoi(ts) - now


def parse_lease(line: str, now: int) -> Optional[Record]:
    """dnsmasq IPv4 lease: ``<expiry> <mac> <ip> <hostname> [<client-id>]``."""
    fields = split_fields(line)
    if len(fields) < 4:
        return None
    ts, mac, addr, name = fields[:4]
    if ":" in addr:
        return None
    record = {"expires": _expires(ts, now), "macaddr": mac, "ipaddr": addr}
    if name != "*":
        record["hostname"] = name
    return record


def parse_relay_lease6(line: str, now: int) -> Optional[Record]:
    """Relay daemon host file: ``# <iface> <duid> <iaid> <hostname> <expiry> <id> <length> <addr>``."""
    if not line.startswith("# "):
        return None
    fields = split_fields(line[2:])
    if len(fields) < 8:
        return None
    _iface, duid, _iaid, name, ts, _id, _length, addr = fields[:8]
    record = {"expires": _expires(ts, now), "duid": duid, "ip6addr": addr}
    if name != "-":
        record["hostname"] = name
    return record


def parse_dnsmasq_lease6(line: str, now: int) -> Optional[Record]:
    """dnsmasq unified lease file, IPv6 rows: ``<expiry> <iaid> <ip6> <hostname> <duid>``."""
    fields = split_fields(line)
    if len(fields) < 5:
        return None
    ts, mac, addr, name, duid = fields[:5]
    if ":" not in addr:
        return None
    record = {"expires": _expires(ts, now), "macaddr": mac, "ip6addr": addr}
    if name != "*":
        record["hostname"] = name
    if duid != "*":
        record["duid"] = duid
    return record


def parse_conntrack_line(line: str) -> Optional[Record]:
    """One /proc/net/nf_conntrack entry.

    The first ``packets=``/``bytes=`` pair is the original (rx) direction,
    later ones the reply (tx) direction. Bracketed flags such as
    ``[ASSURED]`` are ignored.
    """
    fields = split_fields(line)
    if len(fields) < 5:
        return None

    entry: Record = {
        "ipv6": fields[0] == "ipv6",
        "protocol": atoi(fields[3]),
        "expires": atoi(fields[4]),
    }
    for token in fields[5:]:
        if token.startswith("["):
            continue
        key, sep, value = token.partition("=")
        if not sep:
            continue
        if key in ("src", "dst"):
            entry.setdefault("src" if key == "src" else "dest", value)
        elif key in ("sport", "dport"):
            entry.setdefault(key, atoi(value))
        elif key in ("packets", "bytes"):
            rx = f"rx_{key}"
            entry[rx if rx not in entry else f"tx_{key}"] = atoi(value)
    return entry


def parse_arp_line(line: str) -> Optional[Record]:
    """/proc/net/arp: IP, HW type, flags, HW address, mask, device."""
    fields = split_fields(line)
    if len(fields) < 6:
        return None
    return {"ipaddr": fields[0], "macaddr": fields[3], "device": fields[5]}


def parse_route_line(line: str) -> Optional[Record]:
    """/proc/net/route: Iface Destination Gateway Flags RefCnt Use Metric Mask ..."""
    fields = split_fields(line)
    if len(fields) < 8:
        return None
    device, dst, gateway, _flags, _ref, _use, metric, mask = fields[:8]
    return {
        "target": hexaddr(dst, mask),
        "nexthop": hexaddr(gateway),
        "metric": atoi(metric),
        "device": device,
    }


def parse_route6_line(line: str) -> Optional[Record]:
    """/proc/net/ipv6_route; only entries with the RTF_UP flag are kept."""
    fields = split_fields(line)
    if len(fields) < 10:
        return None
    dst, dst_len, src, src_len, nexthop, metric, _ref, _use, flags, device = fields[:10]
    if not atoi(flags, 16) & RTF_UP:
        return None
    return {
        "target": hex6addr(dst, dst_len),
        "source": hex6addr(src, src_len),
        "nexthop": hex6addr(nexthop),
        "metric": atoi(metric, 16),
        "device": device,
    }


def _read_first_int(path: Path) -> Optional[int]:
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            line = f.readline()
    except OSError as e:
        logger.debug(f"{path} unavailable: {e}")
        return None
    return atoi(line) if line else None


def _soft_lines(path: Path) -> Iterator[str]:
    """Lines of ``path``, or nothing at all if it cannot be opened."""
    try:
        f = open(path, "r", encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug(f"{path} unavailable: {e}")
        return
    with f:
        yield from f


def _emit(resp: Response, lines, parser: Callable[[str], Optional[Record]], source: Path) -> None:
    for line in lines:
        try:
            record = parser(line)
        except ValueError as e:
            logger.debug(f"Malformed line in {source} skipped: {e}")
            continue
        if record is not None:
            resp.add(None, record)


class NetworkCollector:
    def __init__(self, context: RpcdContext):
        self.context = context

    @property
    def paths(self):
        return self.context.paths

    def dnsmasq_leasefile(self) -> Optional[Path]:
        leasefile = self.context.config.get("dhcp", "dnsmasq", "leasefile")
        return Path(leasefile) if leasefile else None

    # --- Connection tracking ---

    def conntrack_count(self) -> Dict[str, Any]:
        resp = Response()
        count = _read_first_int(self.paths.conntrack_count_file)
        if count is not None:
            resp.add("count", count)
        limit = _read_first_int(self.paths.conntrack_max_file)
        if limit is not None:
            resp.add("limit", limit)
        return resp.result()

    def conntrack_table(self) -> Dict[str, Any]:
        source = self.paths.conntrack_table_file
        resp = Response()
        with resp.array("entries"):
            _emit(resp, _soft_lines(source), parse_conntrack_line, source)
        return resp.result()

    # --- Neighbours ---

    def arp_table(self) -> Dict[str, Any]:
        source = self.paths.arp_file
        lines = _soft_lines(source)
        next(lines, None)  # header

        resp = Response()
        with resp.array("entries"):
            _emit(resp, lines, parse_arp_line, source)
        return resp.result()

    # --- DHCP ---

    def dhcp_leases(self) -> Dict[str, Any]:
        now = int(time.time())
        resp = Response()
        with resp.array("leases"):
            leasefile = self.dnsmasq_leasefile()
            if leasefile is not None:
                _emit(resp, _soft_lines(leasefile), lambda line: parse_lease(line, now), leasefile)
        return resp.result()

    def dhcp6_leases(self) -> Dict[str, Any]:
        now = int(time.time())
        resp = Response()
        with resp.array("leases"):
            relay = self.paths.relay_hosts_file
            try:
                f = open(relay, "r", encoding="utf-8", errors="replace")
            except OSError as e:
                logger.debug(f"{relay} unavailable ({e}), falling back to dnsmasq leases")
                leasefile = self.dnsmasq_leasefile()
                if leasefile is not None:
                    _emit(resp, _soft_lines(leasefile),
                          lambda line: parse_dnsmasq_lease6(line, now), leasefile)
            else:
                with f:
                    _emit(resp, f, lambda line: parse_relay_lease6(line, now), relay)
        return resp.result()

    # --- Routing ---

    def routes(self) -> Dict[str, Any]:
        source = self.paths.route_file
        with open(source, "r", encoding="utf-8", errors="replace") as f:
            f.readline()  # header
            resp = Response()
            with resp.array("routes"):
                _emit(resp, f, parse_route_line, source)
        return resp.result()

    def routes6(self) -> Dict[str, Any]:
        source = self.paths.route6_file
        with open(source, "r", encoding="utf-8", errors="replace") as f:
            resp = Response()
            with resp.array("routes"):
                _emit(resp, f, parse_route6_line, source)
        return resp.result()
