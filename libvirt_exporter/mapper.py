"""
Maps one domain's libvirt statistics to metric records.

Input is a ``(virDomain, stats)`` pair from ``getAllDomainStats()``. The stats
dict is flat (``block.0.rd.bytes``, ``vcpu.1.delay`` ...) and every key is
optional: libvirt leaves out what the hypervisor, its version or the domain
state cannot provide, and a missing key means no series for that field.
"""

import logging
from collections import namedtuple

import libvirt

from libvirt_exporter import metrics as m
from libvirt_exporter.descriptor import DomainDescriptor
from libvirt_exporter.errors import (
    UnsupportedError, InvalidOperationError, ParseError, libvirt_call,
)

logger = logging.getLogger(__name__)

# Emulated CD-ROM drives carry no useful counters
SKIPPED_BLOCK_DEVICES = ('hdc', 'hda')

VcpuStats = namedtuple('VcpuStats', ['index', 'state', 'time', 'wait', 'delay'])
BlockStats = namedtuple('BlockStats', ['name', 'path', 'rd_bytes', 'rd_reqs', 'rd_times',
                                       'wr_bytes', 'wr_reqs', 'wr_times', 'fl_reqs', 'fl_times',
                                       'allocation', 'capacity', 'physical'])
InterfaceStats = namedtuple('InterfaceStats', ['name', 'rx_bytes', 'rx_pkts', 'rx_errs', 'rx_drop',
                                               'tx_bytes', 'tx_pkts', 'tx_errs', 'tx_drop'])
MemoryStats = namedtuple('MemoryStats', ['major_fault', 'minor_fault', 'unused', 'available',
                                         'actual_balloon', 'rss', 'usable', 'disk_caches'],
                         defaults=(0,) * 8)

# (stats field, descriptor, divisor)
BLOCK_COUNTERS = (
    ('rd_bytes', m.BLOCK_READ_BYTES, 1),
    ('rd_reqs', m.BLOCK_READ_REQUESTS, 1),
    ('rd_times', m.BLOCK_READ_TIME, 1e9),
    ('wr_bytes', m.BLOCK_WRITE_BYTES, 1),
    ('wr_reqs', m.BLOCK_WRITE_REQUESTS, 1),
    ('wr_times', m.BLOCK_WRITE_TIME, 1e9),
    ('fl_reqs', m.BLOCK_FLUSH_REQUESTS, 1),
    ('fl_times', m.BLOCK_FLUSH_TIME, 1e9),
    ('allocation', m.BLOCK_ALLOCATION, 1),
    ('capacity', m.BLOCK_CAPACITY, 1),
    ('physical', m.BLOCK_PHYSICAL, 1),
)

# blockIoTune() key -> descriptor
BLOCK_LIMITS = (
    ('total_bytes_sec', m.BLOCK_LIMIT_TOTAL_BYTES),
    ('read_bytes_sec', m.BLOCK_LIMIT_READ_BYTES),
    ('write_bytes_sec', m.BLOCK_LIMIT_WRITE_BYTES),
    ('total_iops_sec', m.BLOCK_LIMIT_TOTAL_REQUESTS),
    ('read_iops_sec', m.BLOCK_LIMIT_READ_REQUESTS),
    ('write_iops_sec', m.BLOCK_LIMIT_WRITE_REQUESTS),
    ('total_bytes_sec_max', m.BLOCK_BURST_TOTAL_BYTES),
    ('read_bytes_sec_max', m.BLOCK_BURST_READ_BYTES),
    ('write_bytes_sec_max', m.BLOCK_BURST_WRITE_BYTES),
    ('total_iops_sec_max', m.BLOCK_BURST_TOTAL_REQUESTS),
    ('read_iops_sec_max', m.BLOCK_BURST_READ_REQUESTS),
    ('write_iops_sec_max', m.BLOCK_BURST_WRITE_REQUESTS),
    ('total_bytes_sec_max_length', m.BLOCK_BURST_TOTAL_BYTES_LENGTH),
    ('read_bytes_sec_max_length', m.BLOCK_BURST_READ_BYTES_LENGTH),
    ('write_bytes_sec_max_length', m.BLOCK_BURST_WRITE_BYTES_LENGTH),
    ('total_iops_sec_max_length', m.BLOCK_BURST_TOTAL_REQUESTS_LENGTH),
    ('read_iops_sec_max_length', m.BLOCK_BURST_READ_REQUESTS_LENGTH),
    ('write_iops_sec_max_length', m.BLOCK_BURST_WRITE_REQUESTS_LENGTH),
    ('size_iops_sec', m.BLOCK_SIZE_IOPS),
)

INTERFACE_COUNTERS = (
    ('rx_bytes', m.INTERFACE_RX_BYTES),
    ('rx_pkts', m.INTERFACE_RX_PACKETS),
    ('rx_errs', m.INTERFACE_RX_ERRORS),
    ('rx_drop', m.INTERFACE_RX_DROPS),
    ('tx_bytes', m.INTERFACE_TX_BYTES),
    ('tx_pkts', m.INTERFACE_TX_PACKETS),
    ('tx_errs', m.INTERFACE_TX_ERRORS),
    ('tx_drop', m.INTERFACE_TX_DROPS),
)

# memoryStats() key -> MemoryStats field
MEMORY_KEYS = {
    'major_fault': 'major_fault',
    'minor_fault': 'minor_fault',
    'unused': 'unused',
    'available': 'available',
    'actual': 'actual_balloon',
    'rss': 'rss',
    'usable': 'usable',
    'disk_caches': 'disk_caches',
}


class DomainStats:
    """Typed view over the flat stats dict of one domain"""

    def __init__(self, raw):
        self.raw = raw
        self.vcpus = self._vcpus(raw)
        self.blocks = [self._block(raw, i) for i in range(raw.get('block.count', 0))]
        self.interfaces = [self._interface(raw, i) for i in range(raw.get('net.count', 0))]

    @staticmethod
    def _vcpus(raw):
        # Sized by the configured maximum; VCPUs beyond the current count
        # simply have no keys
        count = raw.get('vcpu.maximum', raw.get('vcpu.current', 0))
        return [VcpuStats(i,
                          raw.get(f'vcpu.{i}.state'),
                          raw.get(f'vcpu.{i}.time'),
                          raw.get(f'vcpu.{i}.wait'),
                          raw.get(f'vcpu.{i}.delay'))
                for i in range(count)]

    @staticmethod
    def _block(raw, i):
        p = f'block.{i}.'
        return BlockStats(
            name=raw.get(p + 'name', ''),
            path=raw.get(p + 'path'),
            rd_bytes=raw.get(p + 'rd.bytes'),
            rd_reqs=raw.get(p + 'rd.reqs'),
            rd_times=raw.get(p + 'rd.times'),
            wr_bytes=raw.get(p + 'wr.bytes'),
            wr_reqs=raw.get(p + 'wr.reqs'),
            wr_times=raw.get(p + 'wr.times'),
            fl_reqs=raw.get(p + 'fl.reqs'),
            fl_times=raw.get(p + 'fl.times'),
            allocation=raw.get(p + 'allocation'),
            capacity=raw.get(p + 'capacity'),
            physical=raw.get(p + 'physical'),
        )

    @staticmethod
    def _interface(raw, i):
        p = f'net.{i}.'
        return InterfaceStats(
            name=raw.get(p + 'name', ''),
            rx_bytes=raw.get(p + 'rx.bytes'),
            rx_pkts=raw.get(p + 'rx.pkts'),
            rx_errs=raw.get(p + 'rx.errs'),
            rx_drop=raw.get(p + 'rx.drop'),
            tx_bytes=raw.get(p + 'tx.bytes'),
            tx_pkts=raw.get(p + 'tx.pkts'),
            tx_errs=raw.get(p + 'tx.errs'),
            tx_drop=raw.get(p + 'tx.drop'),
        )


def memory_used_percent(available, usable):
    if not available or not usable:
        return 0.0
    return (available - usable) / (available / 100)


class MetricMapper:
    """
    Turns one domain into metric records.

    Errors that are not tolerated at their call site propagate to the
    caller, which abandons the rest of the scrape.
    """

    def __init__(self, resolver, estimator, deduplicator):
        self.resolver = resolver
        self.estimator = estimator
        self.deduplicator = deduplicator

    def map_domain(self, domain, raw_stats, command_lines):
        stats = DomainStats(raw_stats)
        name = libvirt_call('virDomainGetName', domain.name)
        uuid = libvirt_call('virDomainGetUUIDString', domain.UUIDString)

        domain_pid = self.resolver.resolve_domain_pid(name, command_lines)
        try:
            thread_ids = self.resolver.resolve_vcpu_thread_ids(domain)
        except UnsupportedError as e:
            logger.debug(f"No VCPU thread ids for {name}: {e}")
            thread_ids = []

        xml_desc = libvirt_call('virDomainGetXMLDesc', domain.XMLDesc, 0)
        try:
            desc = DomainDescriptor.decode(xml_desc)
        except ParseError as e:
            logger.warning(f"Cannot decode XML description of {name}: {e}")
            desc = DomainDescriptor()

        records = []
        records.extend(self._domain_info(domain, name, uuid, desc))
        records.extend(self._vcpus(domain, name, stats, domain_pid, thread_ids))
        for block in stats.blocks:
            if block.name in SKIPPED_BLOCK_DEVICES:
                continue
            records.extend(self._block(domain, name, block, desc))
        for iface in stats.interfaces:
            records.extend(self._interface(name, iface, desc))
        records.extend(self._memory(domain, name))
        return records

    def _domain_info(self, domain, name, uuid, desc):
        state, max_mem, memory, nr_virt_cpu, cpu_time = libvirt_call('virDomainGetInfo', domain.info)[:5]
        meta = desc.meta
        return [
            m.record(m.DOMAIN_META, 1, name, uuid, meta.instance_name, meta.flavor,
                     meta.user_name, meta.user_uuid, meta.project_name, meta.project_uuid,
                     meta.root_type, meta.root_uuid),
            m.record(m.DOMAIN_MAX_MEMORY, max_mem * 1024, name),
            m.record(m.DOMAIN_MEMORY_USAGE, memory * 1024, name),
            m.record(m.DOMAIN_VIRTUAL_CPUS, nr_virt_cpu, name),
            m.record(m.DOMAIN_CPU_TIME, cpu_time / 1e9, name),
            m.record(m.DOMAIN_STATE, state, name),
        ]

    def _vcpus(self, domain, name, stats, domain_pid, thread_ids):
        records = []
        try:
            vcpu_info = libvirt_call('virDomainGetVcpus', domain.vcpus)[0]
        except (UnsupportedError, InvalidOperationError) as e:
            logger.debug(f"No VCPU info for {name}: {e}")
            vcpu_info = []

        for number, state, cpu_time, cpu in vcpu_info:
            records.append(m.record(m.VCPU_STATE, state, name, number))
            records.append(m.record(m.VCPU_TIME, cpu_time / 1e9, name, number))
            records.append(m.record(m.VCPU_CPU, cpu, name, number))

        # vcpus() has no wait or delay and the batch stats have no physical
        # CPU, so both sources are needed
        for vcpu in stats.vcpus:
            if vcpu.wait is not None:
                records.append(m.record(m.VCPU_WAIT, vcpu.wait / 1e9, name, vcpu.index))
            if vcpu.delay is not None:
                delay = vcpu.delay / 1e9
            else:
                delay = self.estimator.estimate(domain_pid, thread_ids, vcpu.index)
            if delay is not None:
                records.append(m.record(m.VCPU_DELAY, delay, name, vcpu.index))
        return records

    def _block(self, domain, name, block, desc):
        disk = desc.disk(block.name)
        # libvirt leaves out block.<n>.path for network disks
        source = block.path if block.path is not None else disk.source_name
        records = [m.record(m.BLOCK_META, 1, name, block.name, source, disk.serial, disk.bus,
                            disk.disk_type, disk.driver_type, disk.cache, disk.discard)]

        for field, metric, divisor in BLOCK_COUNTERS:
            value = getattr(block, field)
            if value is not None:
                records.append(m.record(metric, value / divisor, name, block.name))

        try:
            limits = libvirt_call('virDomainGetBlockIoTune', domain.blockIoTune, block.name, 0)
        except UnsupportedError as e:
            self.deduplicator.report('blkiotune_unsupported', f"Unsupported operation GetBlockIoTune: {e}")
            return records
        except InvalidOperationError as e:
            logger.error(f"Invalid operation GetBlockIoTune: {e}")
            return records

        for key, metric in BLOCK_LIMITS:
            if key in limits:
                records.append(m.record(metric, limits[key], name, block.name))
        return records

    def _interface(self, name, iface, desc):
        records = []
        info = desc.interface(iface.name)
        if info.source_bridge or info.interface_id:
            records.append(m.record(m.INTERFACE_META, 1, name, info.source_bridge, iface.name,
                                    info.interface_id))
        for field, metric in INTERFACE_COUNTERS:
            value = getattr(iface, field)
            if value is not None:
                records.append(m.record(metric, value, name, iface.name))
        return records

    def _memory(self, domain, name):
        try:
            raw = domain.memoryStats()
        except libvirt.libvirtError as e:
            logger.debug(f"Memory stats unavailable for {name}: {e}")
            raw = {}
        mem = MemoryStats(**{field: raw[key] for key, field in MEMORY_KEYS.items() if key in raw})

        return [
            m.record(m.MEMORY_MAJOR_FAULT, mem.major_fault, name),
            m.record(m.MEMORY_MINOR_FAULT, mem.minor_fault, name),
            m.record(m.MEMORY_UNUSED, mem.unused * 1024, name),
            m.record(m.MEMORY_AVAILABLE, mem.available * 1024, name),
            m.record(m.MEMORY_ACTUAL_BALLOON, mem.actual_balloon * 1024, name),
            m.record(m.MEMORY_RSS, mem.rss * 1024, name),
            m.record(m.MEMORY_USABLE, mem.usable * 1024, name),
            m.record(m.MEMORY_DISK_CACHES, mem.disk_caches * 1024, name),
            m.record(m.MEMORY_USED_PERCENT, memory_used_percent(mem.available, mem.usable), name),
        ]
