from __future__ import annotations

from pathlib import Path

import pytest

from rpcd_lite.context import Paths, RpcdContext
from rpcd_lite.rpc import RpcHandler


@pytest.fixture
def root(tmp_path: Path) -> Path:
    root = tmp_path / "root"
    for sub in ("etc/config", "etc/init.d", "etc/rc.d", "etc/dropbear", "var/log", "tmp/hosts", "proc", "out"):
        (root / sub).mkdir(parents=True)
    return root


@pytest.fixture
def paths(root: Path) -> Paths:
    return Paths(
        config_dir=root / "etc/config",
        init_dir=root / "etc/init.d",
        rc_dir=root / "etc/rc.d",
        sshkeys_file=root / "etc/dropbear/authorized_keys",
        default_log_file=root / "var/log/messages",
        relay_hosts_file=root / "tmp/hosts/6relayd",
        conntrack_count_file=root / "proc/nf_conntrack_count",
        conntrack_max_file=root / "proc/nf_conntrack_max",
        conntrack_table_file=root / "proc/nf_conntrack",
        arp_file=root / "proc/arp",
        route_file=root / "proc/route",
        route6_file=root / "proc/ipv6_route",
        logread_cmd=("cat", str(root / "out/logread")),
        dmesg_cmd=("cat", str(root / "out/dmesg")),
        top_cmd=("cat", str(root / "out/top")),
    )


@pytest.fixture
def context(tmp_path: Path, paths: Paths) -> RpcdContext:
    return RpcdContext(state_dir=tmp_path / "state", paths=paths)


@pytest.fixture
def handler(context: RpcdContext) -> RpcHandler:
    return RpcHandler(context)
