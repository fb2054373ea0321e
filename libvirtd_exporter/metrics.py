from dataclasses import dataclass
from types import MappingProxyType

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily

COUNTER = "counter"
GAUGE = "gauge"

DOMAIN_LABELS = ("uuid",)
VCPU_LABELS = ("uuid", "vcpu")
NET_LABELS = ("uuid", "interface")
BLOCK_LABELS = ("uuid", "device", "path")
NOVA_LABELS = ("uuid", "instance_type", "user_id", "project_id")
INFO_LABELS = ("driver", "driver_version", "version")


@dataclass(frozen=True)
class MetricDescriptor:
    name: str
    kind: str
    help: str
    labels: tuple


@dataclass(frozen=True)
class MetricSample:
    name: str
    kind: str
    labels: tuple
    value: float


def _descriptors(*rows):
    return MappingProxyType({name: MetricDescriptor(name, kind, doc, labels) for name, kind, doc, labels in rows})


# name, kind, help, label names
CATALOG = _descriptors(
    ("libvirtd_info", COUNTER, "Version details for LibvirtD", INFO_LABELS),

    ("libvirtd_domain_seconds", COUNTER, "seconds since creation time", NOVA_LABELS),

    ("libvirtd_domain_domain_state", GAUGE, "state of the VM (virDomainState enum)", DOMAIN_LABELS),
    ("libvirtd_domain_domain_state_reason", GAUGE, "reason for entering given state (virDomain*Reason enum)",
     DOMAIN_LABELS),

    ("libvirtd_domain_cpu_time", COUNTER, "total cpu time spent for this domain in nanoseconds", DOMAIN_LABELS),
    ("libvirtd_domain_cpu_user", COUNTER, "user cpu time spent in nanoseconds", DOMAIN_LABELS),
    ("libvirtd_domain_cpu_system", COUNTER, "system cpu time spent in nanoseconds", DOMAIN_LABELS),

    ("libvirtd_domain_balloon_current", GAUGE, "the memory in kiB currently used", DOMAIN_LABELS),
    ("libvirtd_domain_balloon_maximum", GAUGE, "the maximum memory in kiB allowed", DOMAIN_LABELS),

    ("libvirtd_domain_vcpu_state", GAUGE, "state of the virtual CPU (virVcpuState enum)", VCPU_LABELS),
    ("libvirtd_domain_vcpu_time", COUNTER, "virtual cpu time spent", VCPU_LABELS),

    ("libvirtd_domain_net_rx_bytes", COUNTER, "bytes received", NET_LABELS),
    ("libvirtd_domain_net_rx_packets", COUNTER, "packets received", NET_LABELS),
    ("libvirtd_domain_net_rx_errors", COUNTER, "receive errors", NET_LABELS),
    ("libvirtd_domain_net_rx_drop", COUNTER, "receive packets dropped", NET_LABELS),
    ("libvirtd_domain_net_tx_bytes", COUNTER, "bytes transmitted", NET_LABELS),
    ("libvirtd_domain_net_tx_packets", COUNTER, "packets transmitted", NET_LABELS),
    ("libvirtd_domain_net_tx_errors", COUNTER, "transmission errors", NET_LABELS),
    # gauge, unlike net_rx_drop
    ("libvirtd_domain_net_tx_drop", GAUGE, "transmit packets dropped", NET_LABELS),

    ("libvirtd_domain_block_read_requests", COUNTER, "number of read requests", BLOCK_LABELS),
    ("libvirtd_domain_block_read_bytes", COUNTER, "number of read bytes", BLOCK_LABELS),
    ("libvirtd_domain_block_read_times", COUNTER, "total time (ns) spent on reads", BLOCK_LABELS),
    ("libvirtd_domain_block_write_requests", COUNTER, "number of written requests", BLOCK_LABELS),
    ("libvirtd_domain_block_write_bytes", COUNTER, "number of written bytes", BLOCK_LABELS),
    ("libvirtd_domain_block_write_times", COUNTER, "total time (ns) spent on writes", BLOCK_LABELS),
    ("libvirtd_domain_block_flush_requests", COUNTER, "total flush requests", BLOCK_LABELS),
    ("libvirtd_domain_block_flush_times", COUNTER, "total time (ns) spent on cache flushing", BLOCK_LABELS),
    ("libvirtd_domain_block_allocation", GAUGE, "offset of the highest written sector", BLOCK_LABELS),
    ("libvirtd_domain_block_capacity", GAUGE, "logical size in bytes of the block device backing image",
     BLOCK_LABELS),
    ("libvirtd_domain_block_physical", GAUGE, "physical size in bytes of the container of the backing image",
     BLOCK_LABELS),
)


def sample(name, value, *label_values, catalog=CATALOG):
    descriptor = catalog[name]
    if len(label_values) != len(descriptor.labels):
        raise ValueError(f"{name} expects labels {descriptor.labels}, got {label_values}")
    return MetricSample(name, descriptor.kind, tuple(str(v) for v in label_values), float(value))


def empty_family(descriptor):
    if descriptor.kind == COUNTER:
        return CounterMetricFamily(descriptor.name, descriptor.help, labels=descriptor.labels)
    return GaugeMetricFamily(descriptor.name, descriptor.help, labels=descriptor.labels)


def to_families(samples, catalog=CATALOG):
    """Group samples by metric name into prometheus_client metric families.

    Families come out in first-seen order so the exposition keeps the order in
    which the collector produced the samples.
    """
    families = {}
    for s in samples:
        family = families.get(s.name)
        if family is None:
            family = families[s.name] = empty_family(catalog[s.name])
        family.add_metric(list(s.labels), s.value)
    return list(families.values())
