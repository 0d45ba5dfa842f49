"""
System collector/actuator: logs, processes, init scripts and SSH keys.
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import psutil

from .context import RpcdContext
from .decorators import audit
from .exceptions import InvalidArgumentError, NotFoundError, PermissionDeniedError
from .response import Response
from .spawn import command_output, spawn_detached
from .textparse import MAX_LOGSIZE, atoi, read_log, split_fields

logger = logging.getLogger(__name__)

INIT_ACTIONS = ("start", "stop", "reload", "restart", "enable", "disable")
RC_COMMON_MARKER = "/etc/rc.common"

_PSUTIL_STATES = {
    psutil.STATUS_RUNNING: "R",
    psutil.STATUS_SLEEPING: "S",
    psutil.STATUS_DISK_SLEEP: "D",
    psutil.STATUS_STOPPED: "T",
    psutil.STATUS_TRACING_STOP: "t",
    psutil.STATUS_ZOMBIE: "Z",
    psutil.STATUS_DEAD: "X",
    psutil.STATUS_IDLE: "I",
}


def parse_top_line(line: str) -> Optional[Dict[str, Any]]:
    """Parse one ``busybox top -bn1`` process line, ``None`` for anything else.

    Columns: PID PPID USER STAT VSZ %VSZ %CPU COMMAND
    """
    fields = split_fields(line.rstrip("\r\n"), " \t", maxsplit=7)
    if not fields or not fields[0][:1].isdigit():
        return None
    if len(fields) < 8:
        return None
    pid, ppid, user, state, vsz, pvsz, pcpu, command = fields
    command = command.strip()
    if not command:
        return None
    return {
        "pid": atoi(pid),
        "ppid": atoi(ppid),
        "user": user,
        "stat": state[:3].ljust(3),
        "vsize": atoi(vsz) * 1024,
        "vsize_percent": atoi(pvsz),
        "cpu_percent": atoi(pcpu),
        "command": command,
    }


def parse_init_priorities(lines: Iterable[str]) -> Tuple[Optional[int], Optional[int]]:
    """Scan init script lines for ``START=``/``STOP=``; stops at the first STOP."""
    start = stop = None
    for line in lines:
        tokens = split_fields(line, "= \t\r\n")
        if len(tokens) < 2:
            continue
        if tokens[0] == "START":
            start = atoi(tokens[1])
        elif tokens[0] == "STOP":
            stop = atoi(tokens[1])
            break
    return start, stop


def _user_executable(path: Path) -> bool:
    try:
        st = os.stat(path)
    except OSError:
        return False
    return bool(st.st_mode & stat.S_IXUSR)


class SystemCollector:
    def __init__(self, context: RpcdContext):
        self.context = context

    @property
    def paths(self):
        return self.context.paths

    # --- Logs ---

    def syslog(self) -> Dict[str, Any]:
        sections = self.context.config.load("system")
        if sections is None:
            raise NotFoundError("Configuration package 'system' not found")

        system = next((s for s in sections if s.type == "system"), None)
        log_type = system.get("log_type") if system else None

        resp = Response()
        if log_type == "file":
            logfile = Path(system.get("log_file") or self.paths.default_log_file)
            size = os.stat(logfile).st_size
            with open(logfile, "rb") as log:
                resp.add("log", read_log(log, size))
        else:
            log_size = system.get("log_size") if system else None
            size = atoi(log_size) * 1024
            with command_output(self.paths.logread_cmd) as log:
                resp.add("log", read_log(log, size))
        return resp.result()

    def dmesg(self) -> Dict[str, Any]:
        resp = Response()
        with command_output(self.paths.dmesg_cmd) as log:
            resp.add("log", read_log(log, MAX_LOGSIZE))
        return resp.result()

    # --- Processes ---

    def process_list(self) -> Dict[str, Any]:
        resp = Response()
        with resp.array("processes"):
            try:
                with command_output(self.paths.top_cmd) as top:
                    for raw in top:
                        record = parse_top_line(raw.decode("utf-8", errors="replace"))
                        if record is not None:
                            resp.add(None, record)
            except FileNotFoundError:
                logger.info(f"{self.paths.top_cmd[0]} not available, using psutil snapshot")
                for record in self._psutil_snapshot():
                    resp.add(None, record)
        return resp.result()

    def _psutil_snapshot(self) -> List[Dict[str, Any]]:
        total = psutil.virtual_memory().total or 1
        records = []
        attrs = ["pid", "ppid", "username", "status", "memory_info", "cpu_percent", "cmdline", "name"]
        for p in psutil.process_iter(attrs):
            info = p.info
            mem = info.get("memory_info")
            vms = mem.vms if mem else 0
            cmdline = info.get("cmdline")
            command = " ".join(cmdline) if cmdline else f"[{info.get('name') or p.pid}]"
            records.append({
                "pid": info["pid"],
                "ppid": info.get("ppid") or 0,
                "user": info.get("username") or "",
                "stat": _PSUTIL_STATES.get(info.get("status"), "?").ljust(3),
                "vsize": vms,
                "vsize_percent": int(vms * 100 / total),
                "cpu_percent": int(info.get("cpu_percent") or 0),
                "command": command,
            })
        return records

    @audit("system.process_signal")
    def process_signal(self, pid: int, signal: int) -> Dict[str, Any]:
        if pid <= 0:
            # 0 and negative pids address process groups
            raise InvalidArgumentError(f"Invalid pid: {pid}", details={"pid": pid})
        try:
            os.kill(pid, signal)
        except (OverflowError, ValueError) as e:
            raise InvalidArgumentError(str(e), details={"pid": pid, "signal": signal}, cause=e)
        return Response().result()

    # --- Init scripts ---

    def init_list(self) -> Dict[str, Any]:
        init_dir = self.paths.init_dir
        names = sorted(os.listdir(init_dir))

        resp = Response()
        with resp.array("initscripts"):
            for name in names:
                path = init_dir / name
                try:
                    st = os.stat(path)
                except OSError:
                    continue
                if not stat.S_ISREG(st.st_mode) or not st.st_mode & stat.S_IXUSR:
                    continue

                try:
                    with open(path, "r", encoding="utf-8", errors="replace") as script:
                        first = script.readline()
                        if RC_COMMON_MARKER not in first:
                            continue
                        start, stop = parse_init_priorities(script)
                except OSError as e:
                    logger.debug(f"Skipping init script {name}: {e}")
                    continue

                with resp.table():
                    resp.add("name", name)
                    if start is not None:
                        resp.add("start", start)
                    if stop is not None:
                        resp.add("stop", stop)
                    if start is not None and start >= 0:
                        link = self.paths.rc_dir / f"S{start:02d}{name}"
                        resp.add("enabled", _user_executable(link))
                    else:
                        resp.add("enabled", False)
        return resp.result()

    @audit("system.init_action")
    def init_action(self, name: str, action: str) -> Dict[str, Any]:
        if action not in INIT_ACTIONS:
            raise InvalidArgumentError(
                f"Invalid action: {action}",
                details={"valid_actions": list(INIT_ACTIONS)},
            )
        if not name or "/" in name or "\0" in name or name in (".", ".."):
            raise InvalidArgumentError(f"Invalid init script name: {name!r}")

        path = self.paths.init_dir / name
        st = os.stat(path)
        if not st.st_mode & stat.S_IXUSR:
            raise PermissionDeniedError(f"Init script {name} is not executable")

        spawn_detached([str(path), action])
        return Response().result()

    # --- SSH keys ---

    def sshkeys_get(self) -> Dict[str, Any]:
        resp = Response()
        with open(self.paths.sshkeys_file, "r", encoding="utf-8", errors="replace") as f:
            with resp.array("keys"):
                for line in f:
                    key = line.strip()
                    if key:
                        resp.add(None, key)
        return resp.result()

    @audit("system.sshkeys_set")
    def sshkeys_set(self, keys: List[Any]) -> Dict[str, Any]:
        with open(self.paths.sshkeys_file, "w", encoding="utf-8") as f:
            for key in keys:
                if not isinstance(key, str):
                    continue
                f.write(key)
                f.write("\n")
        return Response().result()
