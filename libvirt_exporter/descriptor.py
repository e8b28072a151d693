"""
Domain XML description decoding.

Only the parts used as metric labels are kept: disk and interface attributes
keyed by target device name, and the OpenStack Nova instance metadata.
"""

import xml.etree.ElementTree as ET
from collections import namedtuple

from libvirt_exporter.errors import ParseError

NOVA_NAMESPACES = (
    'http://openstack.org/xmlns/libvirt/nova/1.1',
    'http://openstack.org/xmlns/libvirt/nova/1.0',
)

DiskInfo = namedtuple('DiskInfo', ['source_name', 'serial', 'bus', 'disk_type',
                                   'driver_type', 'cache', 'discard'],
                      defaults=('',) * 7)
InterfaceInfo = namedtuple('InterfaceInfo', ['source_bridge', 'interface_id'], defaults=('', ''))
InstanceMeta = namedtuple('InstanceMeta', ['instance_name', 'flavor', 'user_name', 'user_uuid',
                                           'project_name', 'project_uuid', 'root_type', 'root_uuid'],
                          defaults=('',) * 8)


def _attr(element, path, name):
    if element is None:
        return ''
    node = element.find(path) if path else element
    if node is None:
        return ''
    return node.get(name, '')


def _text(element, path):
    node = element.find(path)
    if node is None or node.text is None:
        return ''
    return node.text.strip()


def _disk_source(disk):
    source = disk.find('source')
    if source is None:
        return ''
    for name in ('file', 'dev', 'name', 'volume'):
        if source.get(name):
            return source.get(name)
    return ''


class DomainDescriptor:

    def __init__(self, disks=None, interfaces=None, meta=None):
        self.disks = disks or {}
        self.interfaces = interfaces or {}
        self.meta = meta or InstanceMeta()

    @classmethod
    def decode(cls, xml_text):
        try:
            root = ET.fromstring(xml_text)
        except ET.ParseError as e:
            raise ParseError(f"Malformed domain XML: {e}", cause=e)

        disks = {}
        for disk in root.findall('./devices/disk'):
            target = _attr(disk, 'target', 'dev')
            if not target or target in disks:
                continue
            disks[target] = DiskInfo(
                source_name=_disk_source(disk),
                serial=_text(disk, 'serial'),
                bus=_attr(disk, 'target', 'bus'),
                disk_type=disk.get('type', ''),
                driver_type=_attr(disk, 'driver', 'type'),
                cache=_attr(disk, 'driver', 'cache'),
                discard=_attr(disk, 'driver', 'discard'),
            )

        interfaces = {}
        for iface in root.findall('./devices/interface'):
            target = _attr(iface, 'target', 'dev')
            if not target or target in interfaces:
                continue
            interfaces[target] = InterfaceInfo(
                source_bridge=_attr(iface, 'source', 'bridge'),
                interface_id=_attr(iface, 'virtualport/parameters', 'interfaceid'),
            )

        return cls(disks, interfaces, cls._decode_nova_meta(root))

    @staticmethod
    def _decode_nova_meta(root):
        for ns in NOVA_NAMESPACES:
            instance = root.find(f'./metadata/{{{ns}}}instance')
            if instance is None:
                continue

            def q(tag):
                return f'{{{ns}}}{tag}'

            return InstanceMeta(
                instance_name=_text(instance, q('name')),
                flavor=_attr(instance, q('flavor'), 'name'),
                user_name=_text(instance, f"{q('owner')}/{q('user')}"),
                user_uuid=_attr(instance, f"{q('owner')}/{q('user')}", 'uuid'),
                project_name=_text(instance, f"{q('owner')}/{q('project')}"),
                project_uuid=_attr(instance, f"{q('owner')}/{q('project')}", 'uuid'),
                root_type=_attr(instance, q('root'), 'type'),
                root_uuid=_attr(instance, q('root'), 'uuid'),
            )
        return InstanceMeta()

    def disk(self, target_dev):
        return self.disks.get(target_dev, DiskInfo())

    def interface(self, target_dev):
        return self.interfaces.get(target_dev, InterfaceInfo())
