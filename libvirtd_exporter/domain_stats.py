import logging
import time

import libvirt

from libvirtd_exporter.metrics import CATALOG, empty_family, sample, to_families
from libvirtd_exporter.nova import NovaMetadataError, read_metadata
from libvirtd_exporter.stats import STATS_CATEGORIES, decode

log = logging.getLogger("libvirtd_exporter")

NOVA_SECONDS = "libvirtd_domain_seconds"

STATE_METRICS = (
    ("libvirtd_domain_domain_state", "state"),
    ("libvirtd_domain_domain_state_reason", "reason"),
)
CPU_METRICS = (
    ("libvirtd_domain_cpu_time", "time"),
    ("libvirtd_domain_cpu_user", "user"),
    ("libvirtd_domain_cpu_system", "system"),
)
BALLOON_METRICS = (
    ("libvirtd_domain_balloon_current", "current"),
    ("libvirtd_domain_balloon_maximum", "maximum"),
)
VCPU_METRICS = (
    ("libvirtd_domain_vcpu_state", "state"),
    ("libvirtd_domain_vcpu_time", "time"),
)
NET_METRICS = (
    ("libvirtd_domain_net_rx_bytes", "rx_bytes"),
    ("libvirtd_domain_net_rx_packets", "rx_packets"),
    ("libvirtd_domain_net_rx_errors", "rx_errors"),
    ("libvirtd_domain_net_rx_drop", "rx_drop"),
    ("libvirtd_domain_net_tx_bytes", "tx_bytes"),
    ("libvirtd_domain_net_tx_packets", "tx_packets"),
    ("libvirtd_domain_net_tx_errors", "tx_errors"),
    ("libvirtd_domain_net_tx_drop", "tx_drop"),
)
BLOCK_METRICS = (
    ("libvirtd_domain_block_read_requests", "read_requests"),
    ("libvirtd_domain_block_read_bytes", "read_bytes"),
    ("libvirtd_domain_block_read_times", "read_times"),
    ("libvirtd_domain_block_write_requests", "write_requests"),
    ("libvirtd_domain_block_write_bytes", "write_bytes"),
    ("libvirtd_domain_block_write_times", "write_times"),
    ("libvirtd_domain_block_flush_requests", "flush_requests"),
    ("libvirtd_domain_block_flush_times", "flush_times"),
    ("libvirtd_domain_block_allocation", "allocation"),
    ("libvirtd_domain_block_capacity", "capacity"),
    ("libvirtd_domain_block_physical", "physical"),
)

DOMAIN_METRICS = STATE_METRICS + CPU_METRICS + BALLOON_METRICS + VCPU_METRICS + NET_METRICS + BLOCK_METRICS


def _fields(samples, table, stat, labels, catalog):
    for name, attr in table:
        value = getattr(stat, attr)
        if value is None:
            continue
        samples.append(sample(name, value, *labels, catalog=catalog))


def map_snapshot(uuid, snapshot, catalog=CATALOG):
    """Turn one decoded domain snapshot into metric samples.

    Pure: the same snapshot always yields the same samples in the same order.
    """
    samples = []
    if snapshot.state is not None:
        _fields(samples, STATE_METRICS, snapshot.state, (uuid,), catalog)
    if snapshot.cpu is not None:
        _fields(samples, CPU_METRICS, snapshot.cpu, (uuid,), catalog)
    if snapshot.balloon is not None:
        _fields(samples, BALLOON_METRICS, snapshot.balloon, (uuid,), catalog)
    for vcpu in snapshot.vcpus:
        _fields(samples, VCPU_METRICS, vcpu, (uuid, vcpu.index), catalog)
    for interface in snapshot.interfaces:
        _fields(samples, NET_METRICS, interface, (uuid, interface.name), catalog)
    for device in snapshot.block_devices:
        _fields(samples, BLOCK_METRICS, device, (uuid, device.index, device.path), catalog)
    return samples


class DomainStatsCollector:
    def __init__(self, connections, nova=False, catalog=CATALOG, clock=time.time):
        self.connections = connections
        self.nova = nova
        self.catalog = catalog
        self.clock = clock

    def metric_names(self):
        names = [NOVA_SECONDS] if self.nova else []
        return names + [name for name, _ in DOMAIN_METRICS]

    def describe(self):
        return [empty_family(self.catalog[name]) for name in self.metric_names()]

    def collect(self):
        return to_families(self.collect_samples(), self.catalog)

    def collect_samples(self):
        try:
            conn = self.connections.ensure_live()
        except libvirt.libvirtError as e:
            log.error(f"Failed to get a live libvirt connection: {e}")
            return []

        try:
            stats = conn.getAllDomainStats(STATS_CATEGORIES, libvirt.VIR_CONNECT_GET_ALL_DOMAINS_STATS_ACTIVE)
        except libvirt.libvirtError as e:
            log.error(f"Failed to get domain stats: {e}")
            return []

        samples = []
        try:
            for domain, raw in stats:
                try:
                    samples.extend(self._domain_samples(domain, raw))
                except Exception as e:
                    log.exception(f"Failed to collect stats for domain: {e}")
        finally:
            # dropping the last references frees the virDomain handles
            stats.clear()

        return samples

    def _domain_samples(self, domain, raw):
        try:
            uuid = domain.UUIDString()
        except libvirt.libvirtError as e:
            log.error(f"Failed to get domain UUID: {e}")
            return []

        samples = []
        if self.nova:
            samples.extend(self._nova_samples(uuid, domain))

        try:
            snapshot = decode(raw)
        except (TypeError, ValueError) as e:
            log.error(f"Failed to decode stats for domain {uuid}: {e}")
            return samples

        samples.extend(map_snapshot(uuid, snapshot, self.catalog))
        return samples

    def _nova_samples(self, uuid, domain):
        try:
            metadata = read_metadata(domain)
        except (libvirt.libvirtError, NovaMetadataError) as e:
            log.error(f"Failed to read nova metadata for domain {uuid}: {e}")
            return []

        return [sample(
            NOVA_SECONDS,
            metadata.age(self.clock()),
            uuid, metadata.flavor, metadata.user_id, metadata.project_id,
            catalog=self.catalog,
        )]
