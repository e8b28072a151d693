"""
Metric catalogue.

Every metric the collector can emit is declared here once, at import time.
Label name sets never change between scrapes; only label values do.
"""

from collections import namedtuple

GAUGE = 'gauge'
COUNTER = 'counter'

MetricDesc = namedtuple('MetricDesc', ['name', 'kind', 'help', 'labels'])
MetricRecord = namedtuple('MetricRecord', ['desc', 'value', 'label_values'])


def record(desc, value, *label_values):
    """Build a MetricRecord, checking label arity against the descriptor"""
    if len(label_values) != len(desc.labels):
        raise ValueError(f"{desc.name} expects labels {desc.labels}, got {label_values}")
    return MetricRecord(desc, float(value), tuple(str(v) for v in label_values))


DOMAIN = ('domain',)
DOMAIN_VCPU = ('domain', 'vcpu')
DOMAIN_DEVICE = ('domain', 'target_device')
POOL = ('pool',)

# Status and versions
UP = MetricDesc('libvirt_up', GAUGE,
                "Whether scraping libvirt's metrics was successful.", ())
VERSIONS_INFO = MetricDesc('libvirt_versions_info', GAUGE,
                           'Versions of virtualization components',
                           ('hypervisor_running', 'libvirtd_running', 'libvirt_library'))

# Storage pools
POOL_CAPACITY = MetricDesc('libvirt_pool_info_capacity_bytes', GAUGE,
                           'Pool capacity, in bytes', POOL)
POOL_ALLOCATION = MetricDesc('libvirt_pool_info_allocation_bytes', GAUGE,
                             'Pool allocation, in bytes', POOL)
POOL_AVAILABLE = MetricDesc('libvirt_pool_info_available_bytes', GAUGE,
                            'Pool available, in bytes', POOL)

# Domain info
DOMAIN_META = MetricDesc('libvirt_domain_info_meta', GAUGE, 'Domain metadata',
                         ('domain', 'uuid', 'instance_name', 'flavor', 'user_name', 'user_uuid',
                          'project_name', 'project_uuid', 'root_type', 'root_uuid'))
DOMAIN_MAX_MEMORY = MetricDesc('libvirt_domain_info_maximum_memory_bytes', GAUGE,
                               'Maximum allowed memory of the domain, in bytes.', DOMAIN)
DOMAIN_MEMORY_USAGE = MetricDesc('libvirt_domain_info_memory_usage_bytes', GAUGE,
                                 'Memory usage of the domain, in bytes.', DOMAIN)
DOMAIN_VIRTUAL_CPUS = MetricDesc('libvirt_domain_info_virtual_cpus', GAUGE,
                                 'Number of virtual CPUs for the domain.', DOMAIN)
DOMAIN_CPU_TIME = MetricDesc('libvirt_domain_info_cpu_time_seconds_total', COUNTER,
                             'Amount of CPU time used by the domain, in seconds.', DOMAIN)
DOMAIN_STATE = MetricDesc('libvirt_domain_info_vstate', GAUGE,
                          'Virtual domain state. 0: no state, 1: the domain is running, '
                          '2: the domain is blocked on resource, 3: the domain is paused by user, '
                          '4: the domain is being shut down, 5: the domain is shut off, '
                          '6: the domain is crashed, 7: the domain is suspended by guest power management',
                          DOMAIN)

# VCPU
VCPU_STATE = MetricDesc('libvirt_domain_vcpu_state', GAUGE,
                        'VCPU state. 0: offline, 1: running, 2: blocked', DOMAIN_VCPU)
VCPU_TIME = MetricDesc('libvirt_domain_vcpu_time_seconds_total', COUNTER,
                       "Amount of CPU time used by the domain's VCPU, in seconds.", DOMAIN_VCPU)
VCPU_DELAY = MetricDesc('libvirt_domain_vcpu_delay_seconds_total', COUNTER,
                        "Vcpu's delay metric. Time the vcpu thread was enqueued by the host scheduler, "
                        'but was waiting in the queue instead of running. Exposed to the VM as a steal time.',
                        DOMAIN_VCPU)
VCPU_CPU = MetricDesc('libvirt_domain_vcpu_cpu', GAUGE,
                      'Real CPU number, or one of the values from virVcpuHostCpuState', DOMAIN_VCPU)
VCPU_WAIT = MetricDesc('libvirt_domain_vcpu_wait_seconds_total', COUNTER,
                       "Vcpu's wait_sum metric. CONFIG_SCHEDSTATS has to be enabled", DOMAIN_VCPU)

# Block devices
BLOCK_META = MetricDesc('libvirt_domain_block_meta', GAUGE,
                        'Block device metadata info. Device name, source file, serial.',
                        ('domain', 'target_device', 'source_file', 'serial', 'bus', 'disk_type',
                         'driver_type', 'cache', 'discard'))
BLOCK_READ_BYTES = MetricDesc('libvirt_domain_block_stats_read_bytes_total', COUNTER,
                              'Number of bytes read from a block device, in bytes.', DOMAIN_DEVICE)
BLOCK_READ_REQUESTS = MetricDesc('libvirt_domain_block_stats_read_requests_total', COUNTER,
                                 'Number of read requests from a block device.', DOMAIN_DEVICE)
BLOCK_READ_TIME = MetricDesc('libvirt_domain_block_stats_read_time_seconds_total', COUNTER,
                             'Total time spent on reads from a block device, in seconds.', DOMAIN_DEVICE)
BLOCK_WRITE_BYTES = MetricDesc('libvirt_domain_block_stats_write_bytes_total', COUNTER,
                               'Number of bytes written to a block device, in bytes.', DOMAIN_DEVICE)
BLOCK_WRITE_REQUESTS = MetricDesc('libvirt_domain_block_stats_write_requests_total', COUNTER,
                                  'Number of write requests to a block device.', DOMAIN_DEVICE)
BLOCK_WRITE_TIME = MetricDesc('libvirt_domain_block_stats_write_time_seconds_total', COUNTER,
                              'Total time spent on writes on a block device, in seconds', DOMAIN_DEVICE)
BLOCK_FLUSH_REQUESTS = MetricDesc('libvirt_domain_block_stats_flush_requests_total', COUNTER,
                                  'Total flush requests from a block device.', DOMAIN_DEVICE)
BLOCK_FLUSH_TIME = MetricDesc('libvirt_domain_block_stats_flush_time_seconds_total', COUNTER,
                              'Total time in seconds spent on cache flushing to a block device',
                              DOMAIN_DEVICE)
BLOCK_ALLOCATION = MetricDesc('libvirt_domain_block_stats_allocation', GAUGE,
                              'Offset of the highest written sector on a block device.', DOMAIN_DEVICE)
BLOCK_CAPACITY = MetricDesc('libvirt_domain_block_stats_capacity_bytes', GAUGE,
                            'Logical size in bytes of the block device backing image.', DOMAIN_DEVICE)
BLOCK_PHYSICAL = MetricDesc('libvirt_domain_block_stats_physicalsize_bytes', GAUGE,
                            'Physical size in bytes of the container of the backing image.', DOMAIN_DEVICE)

# Block I/O tune limits
BLOCK_LIMIT_TOTAL_BYTES = MetricDesc('libvirt_domain_block_stats_limit_total_bytes', GAUGE,
                                     'Total throughput limit in bytes per second', DOMAIN_DEVICE)
BLOCK_LIMIT_WRITE_BYTES = MetricDesc('libvirt_domain_block_stats_limit_write_bytes', GAUGE,
                                     'Write throughput limit in bytes per second', DOMAIN_DEVICE)
BLOCK_LIMIT_READ_BYTES = MetricDesc('libvirt_domain_block_stats_limit_read_bytes', GAUGE,
                                    'Read throughput limit in bytes per second', DOMAIN_DEVICE)
BLOCK_LIMIT_TOTAL_REQUESTS = MetricDesc('libvirt_domain_block_stats_limit_total_requests', GAUGE,
                                        'Total requests per second limit', DOMAIN_DEVICE)
BLOCK_LIMIT_WRITE_REQUESTS = MetricDesc('libvirt_domain_block_stats_limit_write_requests', GAUGE,
                                        'Write requests per second limit', DOMAIN_DEVICE)
BLOCK_LIMIT_READ_REQUESTS = MetricDesc('libvirt_domain_block_stats_limit_read_requests', GAUGE,
                                       'Read requests per second limit', DOMAIN_DEVICE)
BLOCK_BURST_TOTAL_BYTES = MetricDesc('libvirt_domain_block_stats_limit_burst_total_bytes', GAUGE,
                                     'Total throughput burst limit in bytes per second', DOMAIN_DEVICE)
BLOCK_BURST_WRITE_BYTES = MetricDesc('libvirt_domain_block_stats_limit_burst_write_bytes', GAUGE,
                                     'Write throughput burst limit in bytes per second', DOMAIN_DEVICE)
BLOCK_BURST_READ_BYTES = MetricDesc('libvirt_domain_block_stats_limit_burst_read_bytes', GAUGE,
                                    'Read throughput burst limit in bytes per second', DOMAIN_DEVICE)
BLOCK_BURST_TOTAL_REQUESTS = MetricDesc('libvirt_domain_block_stats_limit_burst_total_requests', GAUGE,
                                        'Total requests per second burst limit', DOMAIN_DEVICE)
BLOCK_BURST_WRITE_REQUESTS = MetricDesc('libvirt_domain_block_stats_limit_burst_write_requests', GAUGE,
                                        'Write requests per second burst limit', DOMAIN_DEVICE)
BLOCK_BURST_READ_REQUESTS = MetricDesc('libvirt_domain_block_stats_limit_burst_read_requests', GAUGE,
                                       'Read requests per second burst limit', DOMAIN_DEVICE)
BLOCK_BURST_TOTAL_BYTES_LENGTH = MetricDesc(
    'libvirt_domain_block_stats_limit_burst_total_bytes_length_seconds', GAUGE,
    'Total throughput burst time in seconds', DOMAIN_DEVICE)
BLOCK_BURST_WRITE_BYTES_LENGTH = MetricDesc(
    'libvirt_domain_block_stats_limit_burst_write_bytes_length_seconds', GAUGE,
    'Write throughput burst time in seconds', DOMAIN_DEVICE)
BLOCK_BURST_READ_BYTES_LENGTH = MetricDesc(
    'libvirt_domain_block_stats_limit_burst_read_bytes_length_seconds', GAUGE,
    'Read throughput burst time in seconds', DOMAIN_DEVICE)
BLOCK_BURST_TOTAL_REQUESTS_LENGTH = MetricDesc(
    'libvirt_domain_block_stats_limit_burst_length_total_requests_seconds', GAUGE,
    'Total requests per second burst time in seconds', DOMAIN_DEVICE)
BLOCK_BURST_WRITE_REQUESTS_LENGTH = MetricDesc(
    'libvirt_domain_block_stats_limit_burst_length_write_requests_seconds', GAUGE,
    'Write requests per second burst time in seconds', DOMAIN_DEVICE)
BLOCK_BURST_READ_REQUESTS_LENGTH = MetricDesc(
    'libvirt_domain_block_stats_limit_burst_length_read_requests_seconds', GAUGE,
    'Read requests per second burst time in seconds', DOMAIN_DEVICE)
BLOCK_SIZE_IOPS = MetricDesc('libvirt_domain_block_stats_size_iops_bytes', GAUGE,
                             'The size of IO operations per second permitted through a block device',
                             DOMAIN_DEVICE)

# Network interfaces
INTERFACE_META = MetricDesc('libvirt_domain_interface_meta', GAUGE,
                            'Interfaces metadata. Source bridge, target device, interface uuid',
                            ('domain', 'source_bridge', 'target_device', 'virtual_interface'))
INTERFACE_RX_BYTES = MetricDesc('libvirt_domain_interface_stats_receive_bytes_total', COUNTER,
                                'Number of bytes received on a network interface, in bytes.', DOMAIN_DEVICE)
INTERFACE_RX_PACKETS = MetricDesc('libvirt_domain_interface_stats_receive_packets_total', COUNTER,
                                  'Number of packets received on a network interface.', DOMAIN_DEVICE)
INTERFACE_RX_ERRORS = MetricDesc('libvirt_domain_interface_stats_receive_errors_total', COUNTER,
                                 'Number of packet receive errors on a network interface.', DOMAIN_DEVICE)
INTERFACE_RX_DROPS = MetricDesc('libvirt_domain_interface_stats_receive_drops_total', COUNTER,
                                'Number of packet receive drops on a network interface.', DOMAIN_DEVICE)
INTERFACE_TX_BYTES = MetricDesc('libvirt_domain_interface_stats_transmit_bytes_total', COUNTER,
                                'Number of bytes transmitted on a network interface, in bytes.', DOMAIN_DEVICE)
INTERFACE_TX_PACKETS = MetricDesc('libvirt_domain_interface_stats_transmit_packets_total', COUNTER,
                                  'Number of packets transmitted on a network interface.', DOMAIN_DEVICE)
INTERFACE_TX_ERRORS = MetricDesc('libvirt_domain_interface_stats_transmit_errors_total', COUNTER,
                                 'Number of packet transmit errors on a network interface.', DOMAIN_DEVICE)
INTERFACE_TX_DROPS = MetricDesc('libvirt_domain_interface_stats_transmit_drops_total', COUNTER,
                                'Number of packet transmit drops on a network interface.', DOMAIN_DEVICE)

# Memory stats
MEMORY_MAJOR_FAULT = MetricDesc('libvirt_domain_memory_stats_major_fault_total', COUNTER,
                                'Page faults occur when a process makes a valid access to virtual memory '
                                'that is not available. When servicing the page fault, if disk IO is '
                                'required, it is considered a major fault.', DOMAIN)
MEMORY_MINOR_FAULT = MetricDesc('libvirt_domain_memory_stats_minor_fault_total', COUNTER,
                                'Page faults occur when a process makes a valid access to virtual memory '
                                'that is not available. When servicing the page not fault, if disk IO is '
                                'required, it is considered a minor fault.', DOMAIN)
MEMORY_UNUSED = MetricDesc('libvirt_domain_memory_stats_unused_bytes', GAUGE,
                           'The amount of memory left completely unused by the system. Memory that is '
                           'available but used for reclaimable caches should NOT be reported as free. '
                           'This value is expressed in bytes.', DOMAIN)
MEMORY_AVAILABLE = MetricDesc('libvirt_domain_memory_stats_available_bytes', GAUGE,
                              'The total amount of usable memory as seen by the domain. This value may be '
                              'less than the amount of memory assigned to the domain if a balloon driver is '
                              'in use or if the guest OS does not initialize all assigned pages. This value '
                              'is expressed in bytes.', DOMAIN)
MEMORY_ACTUAL_BALLOON = MetricDesc('libvirt_domain_memory_stats_actual_balloon_bytes', GAUGE,
                                   'Current balloon value (in bytes).', DOMAIN)
MEMORY_RSS = MetricDesc('libvirt_domain_memory_stats_rss_bytes', GAUGE,
                        'Resident Set Size of the process running the domain. This value is in bytes',
                        DOMAIN)
MEMORY_USABLE = MetricDesc('libvirt_domain_memory_stats_usable_bytes', GAUGE,
                           'How much the balloon can be inflated without pushing the guest system to swap, '
                           "corresponds to 'Available' in /proc/meminfo", DOMAIN)
MEMORY_DISK_CACHES = MetricDesc('libvirt_domain_memory_stats_disk_cache_bytes', GAUGE,
                                'The amount of memory, that can be quickly reclaimed without additional I/O '
                                '(in bytes). Typically these pages are used for caching files from disk.',
                                DOMAIN)
MEMORY_USED_PERCENT = MetricDesc('libvirt_domain_memory_stats_used_percent', GAUGE,
                                 'The amount of memory in percent, that used by domain.', DOMAIN)

CATALOGUE = (
    UP, VERSIONS_INFO,
    POOL_CAPACITY, POOL_ALLOCATION, POOL_AVAILABLE,
    DOMAIN_META, DOMAIN_MAX_MEMORY, DOMAIN_MEMORY_USAGE, DOMAIN_VIRTUAL_CPUS, DOMAIN_CPU_TIME, DOMAIN_STATE,
    VCPU_STATE, VCPU_TIME, VCPU_DELAY, VCPU_CPU, VCPU_WAIT,
    BLOCK_META, BLOCK_READ_BYTES, BLOCK_READ_REQUESTS, BLOCK_READ_TIME, BLOCK_WRITE_BYTES,
    BLOCK_WRITE_REQUESTS, BLOCK_WRITE_TIME, BLOCK_FLUSH_REQUESTS, BLOCK_FLUSH_TIME,
    BLOCK_ALLOCATION, BLOCK_CAPACITY, BLOCK_PHYSICAL,
    BLOCK_LIMIT_TOTAL_BYTES, BLOCK_LIMIT_WRITE_BYTES, BLOCK_LIMIT_READ_BYTES,
    BLOCK_LIMIT_TOTAL_REQUESTS, BLOCK_LIMIT_WRITE_REQUESTS, BLOCK_LIMIT_READ_REQUESTS,
    BLOCK_BURST_TOTAL_BYTES, BLOCK_BURST_WRITE_BYTES, BLOCK_BURST_READ_BYTES,
    BLOCK_BURST_TOTAL_REQUESTS, BLOCK_BURST_WRITE_REQUESTS, BLOCK_BURST_READ_REQUESTS,
    BLOCK_BURST_TOTAL_BYTES_LENGTH, BLOCK_BURST_WRITE_BYTES_LENGTH, BLOCK_BURST_READ_BYTES_LENGTH,
    BLOCK_BURST_TOTAL_REQUESTS_LENGTH, BLOCK_BURST_WRITE_REQUESTS_LENGTH, BLOCK_BURST_READ_REQUESTS_LENGTH,
    BLOCK_SIZE_IOPS,
    INTERFACE_META, INTERFACE_RX_BYTES, INTERFACE_RX_PACKETS, INTERFACE_RX_ERRORS, INTERFACE_RX_DROPS,
    INTERFACE_TX_BYTES, INTERFACE_TX_PACKETS, INTERFACE_TX_ERRORS, INTERFACE_TX_DROPS,
    MEMORY_MAJOR_FAULT, MEMORY_MINOR_FAULT, MEMORY_UNUSED, MEMORY_AVAILABLE, MEMORY_ACTUAL_BALLOON,
    MEMORY_RSS, MEMORY_USABLE, MEMORY_DISK_CACHES, MEMORY_USED_PERCENT,
)
