"""
Process spawning for collectors (read a command's output) and actions
(fire-and-forget detached children).
"""

from __future__ import annotations

import logging
import subprocess
from contextlib import contextmanager
from typing import BinaryIO, Iterator, Sequence

logger = logging.getLogger(__name__)


@contextmanager
def command_output(argv: Sequence[str]) -> Iterator[BinaryIO]:
    """Spawn ``argv`` and yield its stdout; the child is reaped on exit.

    Raises ``OSError`` (usually ``FileNotFoundError``) if the command cannot
    be started.
    """
    proc = subprocess.Popen(
        list(argv),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.DEVNULL,
    )
    logger.debug(f"Spawned {argv[0]} (pid {proc.pid})")
    try:
        yield proc.stdout
    finally:
        proc.stdout.close()
        status = proc.wait()
        if status:
            logger.debug(f"{argv[0]} exited with status {status}")


def spawn_detached(argv: Sequence[str]) -> int:
    """Start ``argv`` in its own session with null stdio and cwd ``/``.

    The child is not waited for and its outcome is never observed.
    """
    proc = subprocess.Popen(
        list(argv),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        cwd="/",
        close_fds=True,
        start_new_session=True,
    )
    logger.info(f"Detached {argv[0]} {' '.join(argv[1:])} (pid {proc.pid})")
    return proc.pid
