"""
Shared fakes for libvirt objects and a temporary procfs tree.
"""

import libvirt
import libvirt_qemu
import psutil
import pytest

from libvirt_exporter.hypervisor import VersionInfo
from libvirt_exporter.procfs import ProcessTable


def libvirt_error(code, message='libvirt error'):
    err = libvirt.libvirtError(message)
    err.err = (code, 0, message, 2, None, None, None, 0, 0)
    return err


DOMAIN_XML = """
<domain type='kvm'>
  <name>{name}</name>
  <metadata>
    <nova:instance xmlns:nova="http://openstack.org/xmlns/libvirt/nova/1.1">
      <nova:name>web-01</nova:name>
      <nova:flavor name="m1.small"/>
      <nova:owner>
        <nova:user uuid="u-1">alice</nova:user>
        <nova:project uuid="p-1">demo</nova:project>
      </nova:owner>
      <nova:root type="image" uuid="img-1"/>
    </nova:instance>
  </metadata>
  <devices>
    <disk type='file' device='disk'>
      <driver name='qemu' type='qcow2' cache='none' discard='unmap'/>
      <source file='/var/lib/libvirt/images/{name}.qcow2'/>
      <target dev='vda' bus='virtio'/>
      <serial>disk-serial-1</serial>
    </disk>
    <disk type='network' device='disk'>
      <driver name='qemu' type='raw' cache='writeback'/>
      <source protocol='rbd' name='volumes/volume-1'/>
      <target dev='vdb' bus='virtio'/>
    </disk>
    <disk type='file' device='cdrom'>
      <target dev='hdc' bus='ide'/>
    </disk>
    <interface type='bridge'>
      <source bridge='br-int'/>
      <virtualport type='openvswitch'>
        <parameters interfaceid='iface-uuid-1'/>
      </virtualport>
      <target dev='tap0'/>
    </interface>
    <interface type='network'>
      <source network='default'/>
      <target dev='vnet1'/>
    </interface>
  </devices>
</domain>
"""


class FakeDomain:
    """Stands in for libvirt.virDomain; ``errors`` maps method name to exception"""

    def __init__(self, name='vm-1', uuid=None, xml=None, info=None, vcpus=None,
                 block_io_tune=None, memory_stats=None, errors=None):
        self._name = name
        self._uuid = uuid or f'uuid-{name}'
        self._xml = xml if xml is not None else DOMAIN_XML.format(name=name)
        self._info = info or [1, 2097152, 1048576, 2, 12_000_000_000]
        self._vcpus = vcpus if vcpus is not None else [(0, 1, 3_000_000_000, 4), (1, 1, 2_000_000_000, 5)]
        self._block_io_tune = block_io_tune if block_io_tune is not None else {}
        self._memory_stats = memory_stats if memory_stats is not None else {}
        self.errors = errors or {}
        self.block_io_tune_calls = []

    def _maybe_fail(self, method):
        if method in self.errors:
            raise self.errors[method]

    def name(self):
        self._maybe_fail('name')
        return self._name

    def UUIDString(self):
        self._maybe_fail('UUIDString')
        return self._uuid

    def XMLDesc(self, flags=0):
        self._maybe_fail('XMLDesc')
        return self._xml

    def info(self):
        self._maybe_fail('info')
        return list(self._info)

    def vcpus(self):
        self._maybe_fail('vcpus')
        return (list(self._vcpus), [])

    def blockIoTune(self, disk, flags=0):
        self.block_io_tune_calls.append(disk)
        self._maybe_fail('blockIoTune')
        return dict(self._block_io_tune.get(disk, {}))

    def memoryStats(self):
        self._maybe_fail('memoryStats')
        return dict(self._memory_stats)


class FakePool:

    def __init__(self, name='default', capacity=100, allocation=40, available=60, error=None):
        self._name = name
        self._info = [2, capacity, allocation, available]
        self.error = error
        self.refreshed = False

    def refresh(self, flags=0):
        if self.error is not None:
            raise self.error
        self.refreshed = True
        return 0

    def name(self):
        return self._name

    def info(self):
        return list(self._info)


class FakeConnector:
    """Stands in for HypervisorConnector"""

    def __init__(self, domain_stats=None, pools=None, versions=None, errors=None):
        self.domain_stats = domain_stats or []
        self.pools = pools or []
        self.versions = versions or VersionInfo('7.2.0', '8.0.0', '8.0.0')
        self.errors = errors or {}
        self.opened = 0
        self.closed = 0

    def __call__(self, uri):
        self.uri = uri
        return self

    def __enter__(self):
        if 'connect' in self.errors:
            raise self.errors['connect']
        self.opened += 1
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed += 1
        return False

    def get_versions(self):
        return self.versions

    def get_all_domain_stats(self):
        if 'get_all_domain_stats' in self.errors:
            raise self.errors['get_all_domain_stats']
        return list(self.domain_stats)

    def list_active_pools(self):
        if 'list_active_pools' in self.errors:
            raise self.errors['list_active_pools']
        return list(self.pools)


class StubProcessTable(ProcessTable):
    """ProcessTable with a fixed process list; schedstat files stay real"""

    def __init__(self, procfs_path, cmdlines):
        super().__init__(procfs_path)
        self.cmdlines = cmdlines

    def list_process_ids(self):
        return list(self.cmdlines)

    def command_line(self, pid):
        return self.cmdlines.get(pid, '')


@pytest.fixture(autouse=True)
def restore_procfs_path():
    saved = psutil.PROCFS_PATH
    yield
    psutil.PROCFS_PATH = saved


class ProcfsTree:
    """A temporary procfs root"""

    def __init__(self, root):
        self.root = root
        self.path = str(root)

    def add_process(self, pid):
        (self.root / str(pid)).mkdir(exist_ok=True)

    def add_schedstat(self, pid, tid, content):
        task_dir = self.root / str(pid) / "task" / str(tid)
        task_dir.mkdir(parents=True, exist_ok=True)
        (task_dir / "schedstat").write_text(content)


@pytest.fixture
def procfs(tmp_path):
    root = tmp_path / "proc"
    root.mkdir()
    return ProcfsTree(root)


@pytest.fixture(autouse=True)
def qemu_monitor(monkeypatch):
    """
    Replies of the HMP ``info cpus`` command keyed by domain name.

    Domains without an entry behave like a domain that is not running.
    """
    replies = {}

    def fake_monitor_command(domain, command, flags):
        reply = replies.get(domain.name())
        if reply is None:
            raise libvirt_error(libvirt.VIR_ERR_OPERATION_INVALID, 'domain is not running')
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(libvirt_qemu, 'qemuMonitorCommand', fake_monitor_command)
    return replies


def samples(records, name):
    """label values -> value for every record of metric ``name``"""
    return {r.label_values: r.value for r in records if r.desc.name == name}
