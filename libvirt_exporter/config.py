"""
Exporter configuration, read from the environment at import time.
"""

import os

# Connection URIs known to work; anything else is handed to libvirt as is
QEMU_SYSTEM = 'qemu:///system'
QEMU_SESSION = 'qemu:///session'
XEN_SYSTEM = 'xen:///system'
TEST_DEFAULT = 'test:///default'
KNOWN_URIS = (QEMU_SYSTEM, QEMU_SESSION, XEN_SYSTEM, TEST_DEFAULT)


def _env_bool(name, default=''):
    return os.environ.get(name, default).lower() in ('true', '1', 'yes')


LIBVIRT_URI = os.environ.get('LIBVIRT_URI', QEMU_SYSTEM)
PROCFS_PATH = os.environ.get('PROCFS_PATH', '/proc')
EXPORTER_PORT = int(os.environ.get('EXPORTER_PORT', 9177))
EXPORTER_ADDRESS = os.environ.get('EXPORTER_ADDRESS', '0.0.0.0')
DEBUG_MODE = _env_bool('DEBUG_MODE')
LOG_LEVEL = 'DEBUG' if DEBUG_MODE else os.environ.get('LOG_LEVEL', 'INFO').upper()
