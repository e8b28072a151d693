#!/usr/bin/env python3
"""
Prometheus libvirt exporter entry point.

Serves libvirt domain, VCPU, block, interface, memory and storage pool
metrics over HTTP. Configuration comes from the environment, see
``libvirt_exporter.config``.
"""

import os
import sys
import time
import signal
import logging

from prometheus_client import start_http_server, Counter, Info, Summary
from prometheus_client.core import CollectorRegistry

from libvirt_exporter import __version__, config
from libvirt_exporter.collector import LibvirtCollector
from libvirt_exporter.errors import ProcfsUnavailableError
from libvirt_exporter.procfs import ProcessTable

logger = logging.getLogger(__name__)


def setup_logging(level=None):
    logging.basicConfig(
        level=level or config.LOG_LEVEL,
        format='%(asctime)s - %(levelname)s - [%(name)s:%(funcName)s:%(lineno)d] %(message)s'
    )


class LibvirtExporter:
    def __init__(self, uri=None, procfs_path=None, port=None, address=None):
        self.uri = uri or config.LIBVIRT_URI
        self.port = port or config.EXPORTER_PORT
        self.address = address or config.EXPORTER_ADDRESS
        self.registry = CollectorRegistry()
        self.process_table = ProcessTable(procfs_path or config.PROCFS_PATH)
        self.running = False

        self._init_exporter_metrics()
        self.collector = LibvirtCollector(
            self.uri,
            self.process_table,
            scrape_duration=self.scrape_duration,
            scrape_errors=self.scrape_errors,
        )
        self.registry.register(self.collector)

        if self.uri not in config.KNOWN_URIS:
            logger.info(f"Using non-default libvirt URI {self.uri}")

    def _init_exporter_metrics(self):
        """Initialize exporter statistics"""
        self.exporter_info = Info('libvirt_exporter', 'Exporter information', registry=self.registry)
        self.scrape_duration = Summary('libvirt_exporter_scrape_duration_seconds',
                                       'Duration of a libvirt scrape', registry=self.registry)
        self.scrape_errors = Counter('libvirt_exporter_scrape_errors_total',
                                     'Scrapes that failed and reported libvirt_up 0',
                                     registry=self.registry)
        self.exporter_info.info({
            'version': __version__,
            'libvirt_uri': self.uri,
            'procfs_path': self.process_table.procfs_path,
        })

    def shutdown(self):
        """Clean shutdown"""
        logger.info("Shutting down exporter...")
        self.running = False

    def run(self):
        """Main loop"""
        start_http_server(self.port, addr=self.address, registry=self.registry)
        logger.info(f"Libvirt exporter {__version__} started on {self.address}:{self.port}")
        logger.info(f"Metrics available at http://{self.address}:{self.port}/metrics")
        logger.info(f"Collecting from {self.uri}, procfs at {self.process_table.procfs_path}")

        # Scrapes run in the HTTP server threads; this thread only waits
        self.running = True
        while self.running:
            try:
                time.sleep(1)
            except KeyboardInterrupt:
                break


def signal_handler(signum, frame):
    """Handle shutdown signals"""
    logger.info(f"Received signal {signum}")
    sys.exit(0)


def main():
    """Main entry point"""
    setup_logging()
    try:
        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        if os.geteuid() != 0:
            logger.warning("Not running as root. VCPU steal time may be unavailable.")

        exporter = LibvirtExporter()
        # Without procfs no domain can be matched to its process
        exporter.process_table.check()
        exporter.run()
        exporter.shutdown()

    except ProcfsUnavailableError as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Exporter stopped by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        raise


if __name__ == '__main__':
    main()
