"""
Correlates libvirt domains with host processes and estimates VCPU steal time.

libvirt reports ``vcpu.<n>.delay`` only from 7.2.0 on. For older daemons the
delay is taken from the run queue wait time of the VCPU's host thread, found
by matching the domain name against QEMU command lines and asking the QEMU
monitor for the VCPU thread IDs.
"""

import re
import logging

import libvirt
import libvirt_qemu

from libvirt_exporter.errors import (
    UnsupportedError, InvalidOperationError, SchedStatNotFoundError, from_libvirt_error,
)

logger = logging.getLogger(__name__)

THREAD_ID_RE = re.compile(r'thread_id=(\d+)')


class DomainProcessResolver:

    def resolve_domain_pid(self, domain_name, command_lines):
        """
        First process whose command line contains ``domain_name``.

        ``command_lines`` maps PID to command line, see
        ``ProcessTable.command_lines``.

        Plain substring match: a process for "vm-10" also matches "vm-1" when
        it is listed first.
        """
        for pid, cmdline in command_lines.items():
            if cmdline and domain_name in cmdline:
                return pid
        return None

    def resolve_vcpu_thread_ids(self, domain):
        """
        Host thread ID of each VCPU, in VCPU order.

        Runs ``info cpus`` on the HMP monitor, which answers with lines like
        ``* CPU #0: thread_id=151260``.
        """
        try:
            reply = libvirt_qemu.qemuMonitorCommand(
                domain, 'info cpus', libvirt_qemu.VIR_DOMAIN_QEMU_MONITOR_COMMAND_HMP)
        except libvirt.libvirtError as e:
            err = from_libvirt_error(e, 'qemuMonitorCommand info cpus')
            if isinstance(err, InvalidOperationError):
                raise UnsupportedError(str(err), cause=e) from e
            raise err from e
        return [int(tid) for tid in THREAD_ID_RE.findall(reply)]


class SchedStealEstimator:
    """Steal time of a VCPU from its host thread's schedstat"""

    def __init__(self, process_table):
        self.process_table = process_table

    def estimate(self, domain_pid, vcpu_thread_ids, vcpu_index):
        # The domain may run fewer VCPUs than its configured maximum
        if vcpu_index >= len(vcpu_thread_ids):
            return None
        if domain_pid is None:
            logger.debug(f"No host process for domain, skipping delay of vcpu {vcpu_index}")
            return None

        task_root = self.process_table.task_root(domain_pid)
        try:
            stat = self.process_table.sched_stat(task_root, vcpu_thread_ids[vcpu_index])
        except SchedStatNotFoundError as e:
            logger.error(f"Unable to collect vcpu delay metric: {e}")
            return None
        return stat.runqueue_time / 1e9
