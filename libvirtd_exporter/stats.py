"""Typed view over the flat parameter dictionaries returned by getAllDomainStats.

libvirt reports every category as dotted keys (``cpu.time``, ``net.0.rx.bytes``,
``block.1.path`` ...). ``decode`` turns one such dictionary into a
``DomainSnapshot``. A category with no keys at all decodes to ``None`` (or an
empty list for the per-device categories) so the mapping step can tell
"not reported" apart from "reported as zero". Fields missing inside a reported
category stay ``None`` for the same reason.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import libvirt

STATS_CATEGORIES = (
    libvirt.VIR_DOMAIN_STATS_STATE
    | libvirt.VIR_DOMAIN_STATS_CPU_TOTAL
    | libvirt.VIR_DOMAIN_STATS_BALLOON
    | libvirt.VIR_DOMAIN_STATS_VCPU
    | libvirt.VIR_DOMAIN_STATS_INTERFACE
    | libvirt.VIR_DOMAIN_STATS_BLOCK
)


@dataclass(frozen=True)
class StateStat:
    state: Optional[int] = None
    reason: Optional[int] = None


@dataclass(frozen=True)
class CPUStat:
    time: Optional[int] = None
    user: Optional[int] = None
    system: Optional[int] = None


@dataclass(frozen=True)
class BalloonStat:
    current: Optional[int] = None
    maximum: Optional[int] = None


@dataclass(frozen=True)
class VCPUStat:
    index: int
    state: Optional[int] = None
    time: Optional[int] = None


@dataclass(frozen=True)
class NetInterfaceStat:
    name: str
    rx_bytes: Optional[int] = None
    rx_packets: Optional[int] = None
    rx_errors: Optional[int] = None
    rx_drop: Optional[int] = None
    tx_bytes: Optional[int] = None
    tx_packets: Optional[int] = None
    tx_errors: Optional[int] = None
    tx_drop: Optional[int] = None


@dataclass(frozen=True)
class BlockDeviceStat:
    index: int
    path: str = ""
    read_requests: Optional[int] = None
    read_bytes: Optional[int] = None
    read_times: Optional[int] = None
    write_requests: Optional[int] = None
    write_bytes: Optional[int] = None
    write_times: Optional[int] = None
    flush_requests: Optional[int] = None
    flush_times: Optional[int] = None
    allocation: Optional[int] = None
    capacity: Optional[int] = None
    physical: Optional[int] = None


@dataclass(frozen=True)
class DomainSnapshot:
    state: Optional[StateStat] = None
    cpu: Optional[CPUStat] = None
    balloon: Optional[BalloonStat] = None
    vcpus: List[VCPUStat] = field(default_factory=list)
    interfaces: List[NetInterfaceStat] = field(default_factory=list)
    block_devices: List[BlockDeviceStat] = field(default_factory=list)


def _reported(raw, prefix):
    return any(key.startswith(prefix) for key in raw)


def _count(raw, prefix):
    if f"{prefix}.count" in raw:
        return int(raw[f"{prefix}.count"])
    indexes = [key.split(".")[1] for key in raw if key.startswith(f"{prefix}.")]
    return max((int(i) + 1 for i in indexes if i.isdigit()), default=0)


def _vcpus(raw):
    size = raw.get("vcpu.maximum", raw.get("vcpu.current"))
    if size is None:
        size = _count(raw, "vcpu")
    vcpus = []
    for n in range(int(size)):
        if not _reported(raw, f"vcpu.{n}."):
            continue
        vcpus.append(VCPUStat(index=n, state=raw.get(f"vcpu.{n}.state"), time=raw.get(f"vcpu.{n}.time")))
    return vcpus


def _interfaces(raw):
    interfaces = []
    for n in range(_count(raw, "net")):
        p = f"net.{n}."
        if not _reported(raw, p):
            continue
        interfaces.append(NetInterfaceStat(
            name=raw.get(p + "name", ""),
            rx_bytes=raw.get(p + "rx.bytes"),
            rx_packets=raw.get(p + "rx.pkts"),
            rx_errors=raw.get(p + "rx.errs"),
            rx_drop=raw.get(p + "rx.drop"),
            tx_bytes=raw.get(p + "tx.bytes"),
            tx_packets=raw.get(p + "tx.pkts"),
            tx_errors=raw.get(p + "tx.errs"),
            tx_drop=raw.get(p + "tx.drop"),
        ))
    return interfaces


def _block_devices(raw):
    devices = []
    for n in range(_count(raw, "block")):
        p = f"block.{n}."
        if not _reported(raw, p):
            continue
        devices.append(BlockDeviceStat(
            index=n,
            path=raw.get(p + "path", ""),
            read_requests=raw.get(p + "rd.reqs"),
            read_bytes=raw.get(p + "rd.bytes"),
            read_times=raw.get(p + "rd.times"),
            write_requests=raw.get(p + "wr.reqs"),
            write_bytes=raw.get(p + "wr.bytes"),
            write_times=raw.get(p + "wr.times"),
            flush_requests=raw.get(p + "fl.reqs"),
            flush_times=raw.get(p + "fl.times"),
            allocation=raw.get(p + "allocation"),
            capacity=raw.get(p + "capacity"),
            physical=raw.get(p + "physical"),
        ))
    return devices


def decode(raw):
    state = cpu = balloon = None
    if _reported(raw, "state."):
        state = StateStat(state=raw.get("state.state"), reason=raw.get("state.reason"))
    if _reported(raw, "cpu."):
        cpu = CPUStat(time=raw.get("cpu.time"), user=raw.get("cpu.user"), system=raw.get("cpu.system"))
    if _reported(raw, "balloon."):
        balloon = BalloonStat(current=raw.get("balloon.current"), maximum=raw.get("balloon.maximum"))

    return DomainSnapshot(
        state=state,
        cpu=cpu,
        balloon=balloon,
        vcpus=_vcpus(raw),
        interfaces=_interfaces(raw),
        block_devices=_block_devices(raw),
    )
