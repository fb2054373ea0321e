import libvirt
import pytest

from libvirtd_exporter.connection import ConnectionManager

UUID = "0f5b9c43-8e4e-4b8a-9a4c-7a3c2c7f6a11"
OTHER_UUID = "6c1d0b6e-2f2a-4b4f-a0c1-3b9d1e5f7c22"

NOVA_XML = """<nova:instance xmlns:nova="http://openstack.org/xmlns/libvirt/nova/1.0">
  <nova:package version="27.1.0"/>
  <nova:name>web-1</nova:name>
  <nova:creationTime>2023-01-01 00:00:00</nova:creationTime>
  <nova:flavor name="m1.small">
    <nova:memory>2048</nova:memory>
    <nova:vcpus>1</nova:vcpus>
  </nova:flavor>
  <nova:owner>
    <nova:user uuid="8a7e0e6bd2a94f0b8c1f1c2d3e4f5a6b">admin</nova:user>
    <nova:project uuid="3c4d5e6f7a8b9c0d1e2f3a4b5c6d7e8f">demo</nova:project>
  </nova:owner>
</nova:instance>
"""

# 2023-01-01 00:01:40 UTC
NOW = 1672531300.0


def full_stats():
    return {
        "state.state": 1,
        "state.reason": 5,
        "cpu.time": 9000000000,
        "cpu.user": 6000000000,
        "cpu.system": 2000000000,
        "balloon.current": 2097152,
        "balloon.maximum": 4194304,
        "vcpu.current": 2,
        "vcpu.maximum": 2,
        "vcpu.0.state": 1,
        "vcpu.0.time": 4000000000,
        "vcpu.1.state": 1,
        "vcpu.1.time": 3000000000,
        "net.count": 1,
        "net.0.name": "tap0",
        "net.0.rx.bytes": 1000,
        "net.0.rx.pkts": 10,
        "net.0.rx.errs": 0,
        "net.0.rx.drop": 1,
        "net.0.tx.bytes": 2000,
        "net.0.tx.pkts": 20,
        "net.0.tx.errs": 0,
        "net.0.tx.drop": 2,
        "block.count": 2,
        "block.0.name": "vda",
        "block.0.path": "/var/lib/nova/instances/disk",
        "block.0.rd.reqs": 100,
        "block.0.rd.bytes": 409600,
        "block.0.rd.times": 5000,
        "block.0.wr.reqs": 50,
        "block.0.wr.bytes": 204800,
        "block.0.wr.times": 7000,
        "block.0.fl.reqs": 5,
        "block.0.fl.times": 900,
        "block.0.allocation": 1048576,
        "block.0.capacity": 10737418240,
        "block.0.physical": 2097152,
        "block.1.name": "vdb",
        "block.1.path": "/var/lib/nova/instances/disk.config",
        "block.1.rd.reqs": 3,
        "block.1.rd.bytes": 1024,
        "block.1.rd.times": 10,
        "block.1.wr.reqs": 0,
        "block.1.wr.bytes": 0,
        "block.1.wr.times": 0,
        "block.1.fl.reqs": 0,
        "block.1.fl.times": 0,
        "block.1.allocation": 0,
        "block.1.capacity": 474112,
        "block.1.physical": 474112,
    }


class FakeDomain:
    def __init__(self, uuid=UUID, metadata=NOVA_XML):
        self.uuid = uuid
        self.metadata_xml = metadata

    def UUIDString(self):
        if self.uuid is None:
            raise libvirt.libvirtError("domain has no UUID")
        return self.uuid

    def metadata(self, type, uri, flags=0):
        if self.metadata_xml is None:
            raise libvirt.libvirtError("metadata not found")
        return self.metadata_xml


class FakeConnection:
    def __init__(self, uri="qemu:///system", stats=None, alive=True):
        self.uri = uri
        self.stats = stats if stats is not None else [(FakeDomain(), full_stats())]
        self.alive = alive
        self.closed = False
        self.alive_error = None
        self.uri_error = None
        self.stats_error = None
        self.errors = {}
        self.stats_calls = []
        self.returned_batches = []

    def isAlive(self):
        if self.alive_error:
            raise self.alive_error
        return 1 if self.alive and not self.closed else 0

    def getURI(self):
        if self.uri_error:
            raise self.uri_error
        return self.uri

    def close(self):
        self.closed = True
        return 0

    def getAllDomainStats(self, stats=0, flags=0):
        self.stats_calls.append((stats, flags))
        if self.stats_error:
            raise self.stats_error
        batch = list(self.stats)
        self.returned_batches.append(batch)
        return batch

    def _fail(self, call):
        if call in self.errors:
            raise self.errors[call]

    def getType(self):
        self._fail("getType")
        return "QEMU"

    def getVersion(self):
        self._fail("getVersion")
        return 8002000

    def getLibVersion(self):
        self._fail("getLibVersion")
        return 10000000


class Opener:
    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def __call__(self, uri):
        self.calls.append(uri)
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def conn():
    return FakeConnection()


@pytest.fixture
def manager(conn):
    return ConnectionManager(conn, opener=Opener())
