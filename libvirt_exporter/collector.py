"""
Scrape orchestration and the prometheus_client collector.
"""

import logging
import threading
from collections import namedtuple
from contextlib import nullcontext

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily

from libvirt_exporter import metrics as m
from libvirt_exporter.errors import libvirt_call
from libvirt_exporter.hypervisor import HypervisorConnector
from libvirt_exporter.mapper import MetricMapper
from libvirt_exporter.resolver import DomainProcessResolver, SchedStealEstimator

logger = logging.getLogger(__name__)

# State that lives for exactly one scrape
ScrapeContext = namedtuple('ScrapeContext', ['command_lines'])


class ErrorDeduplicator:
    """Logs each named error once per process lifetime"""

    def __init__(self):
        self.seen = set()

    def report(self, name, message):
        if name in self.seen:
            return False
        self.seen.add(name)
        logger.error(message)
        return True


def map_pool(pool):
    libvirt_call('virStoragePoolRefresh', pool.refresh, 0)
    name = libvirt_call('virStoragePoolGetName', pool.name)
    _, capacity, allocation, available = libvirt_call('virStoragePoolGetInfo', pool.info)[:4]
    return [
        m.record(m.POOL_CAPACITY, capacity, name),
        m.record(m.POOL_ALLOCATION, allocation, name),
        m.record(m.POOL_AVAILABLE, available, name),
    ]


def _family(desc):
    cls = CounterMetricFamily if desc.kind == m.COUNTER else GaugeMetricFamily
    return cls(desc.name, desc.help, labels=list(desc.labels))


def to_families(records):
    """Group records into metric families, in order of first appearance"""
    families = {}
    for rec in records:
        family = families.get(rec.desc.name)
        if family is None:
            family = families[rec.desc.name] = _family(rec.desc)
        family.add_metric(list(rec.label_values), rec.value)
    return list(families.values())


class LibvirtCollector:
    """
    Collects a full snapshot of the libvirt host on every scrape.

    Scrapes are serialised: the error deduplicator is shared by all of them
    and a hung libvirt call would otherwise pile up connections.
    """

    def __init__(self, uri, process_table, connector_factory=HypervisorConnector,
                 scrape_duration=None, scrape_errors=None):
        self.uri = uri
        self.process_table = process_table
        self.connector_factory = connector_factory
        self.scrape_duration = scrape_duration
        self.scrape_errors = scrape_errors
        self.lock = threading.Lock()
        self.deduplicator = ErrorDeduplicator()
        self.mapper = MetricMapper(DomainProcessResolver(),
                                   SchedStealEstimator(process_table),
                                   self.deduplicator)

    def describe(self):
        for desc in m.CATALOGUE:
            yield _family(desc)

    def collect(self):
        records, _ = self.scrape()
        yield from to_families(records)

    def scrape(self):
        """
        Run one scrape.

        Returns ``(records, error)``. On failure the partial records are
        dropped and only ``libvirt_up 0`` is returned.
        """
        with self.lock:
            timer = self.scrape_duration.time() if self.scrape_duration else nullcontext()
            with timer:
                try:
                    records = self._collect_from_libvirt()
                except Exception as e:
                    logger.error(f"Failed to scrape metrics from {self.uri}: {e}")
                    if self.scrape_errors:
                        self.scrape_errors.inc()
                    return [m.record(m.UP, 0)], e
        records.append(m.record(m.UP, 1))
        return records, None

    def _collect_from_libvirt(self):
        with self.connector_factory(self.uri) as connector:
            versions = connector.get_versions()
            records = [m.record(m.VERSIONS_INFO, 1, versions.hypervisor, versions.libvirtd, versions.library)]

            context = ScrapeContext(self.process_table.command_lines())

            stats = connector.get_all_domain_stats()
            try:
                for domain, raw_stats in stats:
                    records.extend(self.mapper.map_domain(domain, raw_stats, context.command_lines))
            finally:
                stats.clear()

            pools = connector.list_active_pools()
            try:
                for pool in pools:
                    records.extend(map_pool(pool))
            finally:
                pools.clear()

        logger.debug(f"Collected {len(records)} records from {self.uri}")
        return records
