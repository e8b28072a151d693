"""
Kernel process table access: PID listing, command lines, scheduler stats.
"""

import os
import logging
from collections import namedtuple

import psutil

from libvirt_exporter.errors import ProcfsUnavailableError, SchedStatNotFoundError

logger = logging.getLogger(__name__)

SchedStat = namedtuple('SchedStat', ['pid', 'cpu_time', 'runqueue_time', 'timeslices'])


class ProcessTable:
    """Reads processes from a procfs mount through psutil"""

    def __init__(self, procfs_path='/proc'):
        self.procfs_path = procfs_path
        # psutil resolves every /proc path through this module attribute
        psutil.PROCFS_PATH = procfs_path

    def check(self):
        """Fail fast when the procfs mount cannot be listed"""
        self.list_process_ids()

    def list_process_ids(self):
        try:
            return psutil.pids()
        except OSError as e:
            raise ProcfsUnavailableError(f"Cannot list processes under {self.procfs_path}: {e}", cause=e)

    def command_line(self, pid):
        """Command line of ``pid`` joined by spaces, or '' if it cannot be read"""
        try:
            return ' '.join(psutil.Process(pid).cmdline())
        except (psutil.Error, OSError) as e:
            logger.debug(f"Cannot read cmdline of pid {pid}: {e}")
            return ''

    def command_lines(self, process_ids=None):
        """
        Command line of every process, keyed by PID in listing order.

        Read once per scrape and shared by all domains of that scrape.
        """
        if process_ids is None:
            process_ids = self.list_process_ids()
        return {pid: self.command_line(pid) for pid in process_ids}

    def task_root(self, pid):
        return os.path.join(self.procfs_path, str(pid), 'task')

    def sched_stat(self, task_root, pid):
        """
        Parse ``<task_root>/<pid>/schedstat``.

        The file holds three integers: time spent on the CPU (ns), time spent
        waiting on a run queue (ns) and the number of timeslices run.
        """
        path = os.path.join(task_root, str(pid), 'schedstat')
        try:
            with open(path, 'r') as f:
                fields = f.read().split()
        except OSError as e:
            raise SchedStatNotFoundError(f"Cannot read {path}: {e}", cause=e)

        if len(fields) != 3:
            raise SchedStatNotFoundError(f"Malformed schedstat in {path}: {fields!r}")
        try:
            cpu_time, runqueue_time, timeslices = (int(v) for v in fields)
        except ValueError as e:
            raise SchedStatNotFoundError(f"Malformed schedstat in {path}: {e}", cause=e)

        return SchedStat(pid, cpu_time, runqueue_time, timeslices)
