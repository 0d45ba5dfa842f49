from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Mapping, Optional, Tuple

from .permissions import PermissionManager
from .uci import UciConfig

ENV_PREFIX = "RPCD_"


@dataclass(frozen=True)
class Paths:
    """Filesystem sources and commands read by the collectors."""

    config_dir: Path = Path("/etc/config")
    init_dir: Path = Path("/etc/init.d")
    rc_dir: Path = Path("/etc/rc.d")
    sshkeys_file: Path = Path("/etc/dropbear/authorized_keys")
    default_log_file: Path = Path("/var/log/messages")
    relay_hosts_file: Path = Path("/tmp/hosts/6relayd")
    conntrack_count_file: Path = Path("/proc/sys/net/netfilter/nf_conntrack_count")
    conntrack_max_file: Path = Path("/proc/sys/net/netfilter/nf_conntrack_max")
    conntrack_table_file: Path = Path("/proc/net/nf_conntrack")
    arp_file: Path = Path("/proc/net/arp")
    route_file: Path = Path("/proc/net/route")
    route6_file: Path = Path("/proc/net/ipv6_route")
    logread_cmd: Tuple[str, ...] = ("logread",)
    dmesg_cmd: Tuple[str, ...] = ("dmesg",)
    top_cmd: Tuple[str, ...] = ("/bin/busybox", "top", "-bn1")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Paths":
        """Defaults overridden by ``RPCD_<FIELD>`` variables (e.g. ``RPCD_ARP_FILE``)."""
        environ = os.environ if environ is None else environ
        overrides = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if not raw:
                continue
            if f.name.endswith("_cmd"):
                overrides[f.name] = tuple(shlex.split(raw))
            else:
                overrides[f.name] = Path(raw)
        return replace(cls(), **overrides)


@dataclass
class RpcdContext:
    """Holds shared components for rpcd handlers."""

    state_dir: Path
    paths: Paths = field(default_factory=Paths)
    config: Optional[UciConfig] = None
    permission_manager: Optional[PermissionManager] = None

    def __post_init__(self) -> None:
        if self.config is None:
            self.config = UciConfig(self.paths.config_dir)
