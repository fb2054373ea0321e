from dataclasses import dataclass
from os import getenv

DEFAULT_URI = "qemu:///system"
DEFAULT_LISTEN_ADDRESS = ":9474"
DEFAULT_METRICS_PATH = "/metrics"


def _flag(value):
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    libvirt_uri: str = DEFAULT_URI
    nova: bool = False
    listen_address: str = DEFAULT_LISTEN_ADDRESS
    metrics_path: str = DEFAULT_METRICS_PATH
    log_level: str = "INFO"

    @property
    def host(self):
        host, _, _ = self.listen_address.rpartition(":")
        return host or "0.0.0.0"

    @property
    def port(self):
        _, _, port = self.listen_address.rpartition(":")
        return int(port)


def load_settings():
    return Settings(
        libvirt_uri=getenv("LIBVIRT_URI", DEFAULT_URI),
        nova=_flag(getenv("LIBVIRT_NOVA", "false")),
        listen_address=getenv("LISTEN_ADDRESS", DEFAULT_LISTEN_ADDRESS),
        metrics_path=getenv("METRICS_PATH", DEFAULT_METRICS_PATH),
        log_level=getenv("LOG_LEVEL", "INFO").upper(),
    )
