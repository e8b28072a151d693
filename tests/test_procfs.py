import os

import psutil
import pytest

from libvirt_exporter.errors import ProcfsUnavailableError, SchedStatNotFoundError
from libvirt_exporter.procfs import ProcessTable, SchedStat


class FakeProcess:
    cmdlines = {}

    def __init__(self, pid):
        self.pid = pid

    def cmdline(self):
        value = self.cmdlines[self.pid]
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def fake_process(monkeypatch):
    FakeProcess.cmdlines = {}
    monkeypatch.setattr(psutil, 'Process', FakeProcess)
    return FakeProcess.cmdlines


def test_procfs_path_is_handed_to_psutil(procfs):
    ProcessTable(procfs.path)
    assert psutil.PROCFS_PATH == procfs.path


def test_list_process_ids(procfs):
    for pid in (300, 1, 42):
        procfs.add_process(pid)
    (procfs.root / 'self').mkdir()
    (procfs.root / 'meminfo').write_text('')

    table = ProcessTable(procfs.path)
    assert table.list_process_ids() == [1, 42, 300]


def test_missing_procfs_is_fatal(tmp_path):
    table = ProcessTable(str(tmp_path / 'missing'))
    with pytest.raises(ProcfsUnavailableError):
        table.list_process_ids()
    with pytest.raises(ProcfsUnavailableError):
        table.check()


def test_command_line_joined_by_spaces(procfs, fake_process):
    fake_process[100] = ['/usr/bin/qemu-system-x86_64', '-name', 'guest=vm-1']
    table = ProcessTable(procfs.path)
    assert table.command_line(100) == '/usr/bin/qemu-system-x86_64 -name guest=vm-1'


def test_unreadable_command_line_is_empty(procfs, fake_process):
    fake_process[100] = psutil.AccessDenied(100)
    fake_process[101] = psutil.NoSuchProcess(101)
    fake_process[102] = PermissionError('denied')
    table = ProcessTable(procfs.path)
    assert table.command_line(100) == ''
    assert table.command_line(101) == ''
    assert table.command_line(102) == ''


def test_task_root(procfs):
    table = ProcessTable(procfs.path)
    assert table.task_root(100) == os.path.join(procfs.path, '100', 'task')


def test_sched_stat(procfs):
    procfs.add_schedstat(100, 150, '123456 5000000000 42\n')
    table = ProcessTable(procfs.path)

    stat = table.sched_stat(table.task_root(100), 150)
    assert stat == SchedStat(150, 123456, 5000000000, 42)


def test_sched_stat_missing_file(procfs):
    procfs.add_process(100)
    table = ProcessTable(procfs.path)
    with pytest.raises(SchedStatNotFoundError):
        table.sched_stat(table.task_root(100), 150)


@pytest.mark.parametrize('content', ['', '1 2', '1 2 3 4', 'a b c'])
def test_sched_stat_malformed(procfs, content):
    procfs.add_schedstat(100, 150, content)
    table = ProcessTable(procfs.path)
    with pytest.raises(SchedStatNotFoundError):
        table.sched_stat(table.task_root(100), 150)


def test_command_lines_in_listing_order(procfs, fake_process):
    fake_process[300] = ['qemu', '-name', 'guest=vm-2']
    fake_process[1] = ['/sbin/init']
    fake_process[42] = psutil.NoSuchProcess(42)
    table = ProcessTable(procfs.path)

    lines = table.command_lines([300, 1, 42])
    assert list(lines) == [300, 1, 42]
    assert lines == {300: 'qemu -name guest=vm-2', 1: '/sbin/init', 42: ''}


def test_command_lines_lists_processes(procfs, fake_process):
    procfs.add_process(7)
    procfs.add_process(8)
    fake_process[7] = ['/sbin/init']
    fake_process[8] = ['qemu', '-name', 'guest=vm-1']
    table = ProcessTable(procfs.path)

    assert table.command_lines() == {7: '/sbin/init', 8: 'qemu -name guest=vm-1'}
