"""
Prometheus exporter for libvirt hosts.
"""

__version__ = '1.0.0'
