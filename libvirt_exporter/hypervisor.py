"""
libvirt connection handling.

One connection is opened per scrape and closed before the scrape returns.
"""

import logging
from collections import namedtuple

import libvirt

from libvirt_exporter.errors import HypervisorConnectionError, from_libvirt_error

logger = logging.getLogger(__name__)

VersionInfo = namedtuple('VersionInfo', ['hypervisor', 'libvirtd', 'library'])

DOMAIN_STATS = (libvirt.VIR_DOMAIN_STATS_STATE |
                libvirt.VIR_DOMAIN_STATS_CPU_TOTAL |
                libvirt.VIR_DOMAIN_STATS_INTERFACE |
                libvirt.VIR_DOMAIN_STATS_BALLOON |
                libvirt.VIR_DOMAIN_STATS_BLOCK |
                libvirt.VIR_DOMAIN_STATS_VCPU)
DOMAIN_STATS_FLAGS = (libvirt.VIR_CONNECT_GET_ALL_DOMAINS_STATS_RUNNING |
                      libvirt.VIR_CONNECT_GET_ALL_DOMAINS_STATS_SHUTOFF)


def format_version(number):
    """7002000 -> '7.2.0'"""
    return f"{number // 1000000 % 1000}.{number // 1000 % 1000}.{number % 1000}"


class HypervisorConnector:

    def __init__(self, uri):
        self.uri = uri
        self.conn = None

    def connect(self):
        # The HMP monitor command is refused on read-only connections
        try:
            self.conn = libvirt.open(self.uri)
        except libvirt.libvirtError as e:
            raise HypervisorConnectionError(f"Cannot connect to libvirt at {self.uri}: {e}", cause=e) from e
        if self.conn is None:
            raise HypervisorConnectionError(f"Cannot connect to libvirt at {self.uri}")
        logger.debug(f"Connected to {self.uri}")
        return self

    def close(self):
        if self.conn is None:
            return
        try:
            self.conn.close()
        except libvirt.libvirtError as e:
            logger.warning(f"Error closing connection to {self.uri}: {e}")
        finally:
            self.conn = None

    def __enter__(self):
        return self.connect()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def get_versions(self):
        try:
            hypervisor = self.conn.getVersion()
            libvirtd = self.conn.getLibVersion()
            library = libvirt.getVersion()
        except libvirt.libvirtError as e:
            raise from_libvirt_error(e, 'version query') from e
        return VersionInfo(format_version(hypervisor), format_version(libvirtd), format_version(library))

    def get_all_domain_stats(self):
        try:
            return self.conn.getAllDomainStats(DOMAIN_STATS, DOMAIN_STATS_FLAGS)
        except libvirt.libvirtError as e:
            raise from_libvirt_error(e, 'getAllDomainStats') from e

    def list_active_pools(self):
        try:
            return self.conn.listAllStoragePools(libvirt.VIR_CONNECT_LIST_STORAGE_POOLS_ACTIVE)
        except libvirt.libvirtError as e:
            raise from_libvirt_error(e, 'listAllStoragePools') from e
