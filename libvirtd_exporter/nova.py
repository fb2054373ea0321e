import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timezone

import libvirt

NOVA_NAMESPACE = "http://openstack.org/xmlns/libvirt/nova/1.0"
# Nova writes creationTime as "%Y-%m-%d %H:%M:%S" without a zone; read it as UTC
CREATION_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class NovaMetadataError(ValueError):
    pass


@dataclass(frozen=True)
class NovaMetadata:
    flavor: str
    user_id: str
    project_id: str
    created_at: datetime

    def age(self, now):
        return now - self.created_at.timestamp()


def _attr(root, path, name):
    element = root.find(path)
    if element is None:
        return ""
    return element.get(name, "")


def parse_metadata(data):
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise NovaMetadataError(f"malformed nova metadata: {e}") from e

    created = root.find("{*}creationTime")
    if created is None or not (created.text or "").strip():
        raise NovaMetadataError("nova metadata has no creationTime")
    try:
        created_at = datetime.strptime(created.text.strip(), CREATION_TIME_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError as e:
        raise NovaMetadataError(f"unparseable creationTime {created.text!r}") from e

    return NovaMetadata(
        flavor=_attr(root, "{*}flavor", "name"),
        user_id=_attr(root, "{*}owner/{*}user", "uuid"),
        project_id=_attr(root, "{*}owner/{*}project", "uuid"),
        created_at=created_at,
    )


def read_metadata(domain):
    data = domain.metadata(libvirt.VIR_DOMAIN_METADATA_ELEMENT, NOVA_NAMESPACE, libvirt.VIR_DOMAIN_AFFECT_LIVE)
    return parse_metadata(data)
