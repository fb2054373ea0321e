import logging

import libvirt

from libvirtd_exporter.metrics import CATALOG, empty_family, sample, to_families

log = logging.getLogger("libvirtd_exporter")

INFO = "libvirtd_info"


def version_to_string(version):
    """Render libvirt's packed ``major * 1000000 + minor * 1000 + release`` as ``major.minor.release``."""
    major, rest = divmod(int(version), 1000000)
    minor, release = divmod(rest, 1000)
    return f"{major}.{minor}.{release}"


class VersionCollector:
    def __init__(self, connections, catalog=CATALOG):
        self.connections = connections
        self.catalog = catalog

    def describe(self):
        return [empty_family(self.catalog[INFO])]

    def collect(self):
        return to_families(self.collect_samples(), self.catalog)

    def collect_samples(self):
        try:
            conn = self.connections.ensure_live()
        except libvirt.libvirtError as e:
            log.error(f"Failed to get a live libvirt connection: {e}")
            return []

        try:
            driver = conn.getType()
            driver_version = conn.getVersion()
            library_version = conn.getLibVersion()
        except libvirt.libvirtError as e:
            log.error(f"Failed to get libvirt version details: {e}")
            return []

        return [sample(
            INFO, 1,
            driver, version_to_string(driver_version), version_to_string(library_version),
            catalog=self.catalog,
        )]
