"""
Foreground process inspection for terminal devices.
"""

import asyncio
import logging
import os
import time
from typing import List, Optional

import psutil

from itermbridge.config import config
from itermbridge.terminal.errors import ProcessInspectionError
from itermbridge.terminal.types import ActiveProcess, ProcessMetrics

logger = logging.getLogger(__name__)


def _foreground_pgid(tty_path: str) -> Optional[int]:
    """Foreground process group of the tty, or None if the tty can't be opened."""
    try:
        fd = os.open(tty_path, os.O_RDONLY | os.O_NOCTTY | os.O_NONBLOCK)
    except OSError as e:
        logger.debug(f"Could not open {tty_path} to read its foreground group: {e}")
        return None
    try:
        return os.tcgetpgrp(fd)
    except OSError as e:
        logger.debug(f"tcgetpgrp failed for {tty_path}: {e}")
        return None
    finally:
        os.close(fd)


class ProcessActivityInspector:
    """
    Reports the foreground process running on a terminal device.

    The shell itself (the session leader) sitting at its prompt does not
    count as a foreground process.
    """

    def __init__(self, cpu_sample_interval: Optional[float] = None):
        self._cpu_sample_interval = (
            cpu_sample_interval if cpu_sample_interval is not None else config.CPU_SAMPLE_INTERVAL
        )

    async def get_active_process(self, tty_path: str) -> Optional[ActiveProcess]:
        return await asyncio.to_thread(self._inspect, tty_path)

    def _processes_on_tty(self, tty_path: str) -> List[psutil.Process]:
        matches = []
        for proc in psutil.process_iter(["pid", "terminal"]):
            if proc.info.get("terminal") == tty_path:
                matches.append(proc)
        return matches

    def _inspect(self, tty_path: str) -> Optional[ActiveProcess]:
        try:
            processes = self._processes_on_tty(tty_path)
        except psutil.Error as e:
            raise ProcessInspectionError(f"Failed to enumerate processes on {tty_path}: {e}") from e

        if not processes:
            return None

        foreground = self._select_foreground(tty_path, processes)
        if not foreground:
            return None

        for proc in foreground:
            try:
                proc.cpu_percent(interval=None)
            except psutil.Error:
                pass
        if self._cpu_sample_interval > 0:
            time.sleep(self._cpu_sample_interval)

        total_cpu = 0.0
        alive = []
        for proc in foreground:
            try:
                total_cpu += proc.cpu_percent(interval=None)
                alive.append(proc)
            except psutil.NoSuchProcess:
                continue
            except psutil.Error as e:
                raise ProcessInspectionError(f"Failed to sample CPU for pid {proc.pid}: {e}") from e

        if not alive:
            return None

        lead = alive[0]
        try:
            name = lead.name()
        except psutil.Error:
            name = "unknown"

        return ActiveProcess(
            pid=lead.pid,
            name=name,
            metrics=ProcessMetrics(total_cpu_percent=total_cpu, process_count=len(alive)),
        )

    def _select_foreground(self, tty_path: str, processes: List[psutil.Process]) -> List[psutil.Process]:
        session_leaders = set()
        for proc in processes:
            try:
                if os.getsid(proc.pid) == proc.pid:
                    session_leaders.add(proc.pid)
            except OSError:
                continue

        pgid = _foreground_pgid(tty_path)
        if pgid is not None:
            if pgid in session_leaders:
                return []
            members = []
            for proc in processes:
                try:
                    if os.getpgid(proc.pid) == pgid:
                        members.append(proc)
                except OSError:
                    continue
            return sorted(members, key=lambda p: p.pid)

        # Without the foreground group, anything besides the shell counts.
        return sorted((p for p in processes if p.pid not in session_leaders), key=lambda p: p.pid)
