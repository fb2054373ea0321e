import logging
from threading import Lock

import libvirt

log = logging.getLogger("libvirtd_exporter")


class UnrecoverableConnectionError(Exception):
    """The connection is dead and its URI is gone, so there is nothing to reconnect to."""


class ConnectionManager:
    """Owns the single libvirt connection shared by every collector.

    ``ensure_live`` is the only way collectors get at the handle. The
    check-and-replace sequence runs under one lock so a collector never sees a
    half-replaced connection.
    """

    def __init__(self, connection, opener=libvirt.open):
        self._connection = connection
        self._opener = opener
        self._lock = Lock()
        # set while a dead connection is closed and the reopen has not succeeded yet
        self._pending_uri = None

    @classmethod
    def open(cls, uri, opener=libvirt.open):
        log.info(f"Connecting to {uri}")
        return cls(opener(uri), opener=opener)

    def ensure_live(self):
        with self._lock:
            if self._pending_uri is None:
                if self._connection.isAlive():
                    return self._connection
                self._pending_uri = self._discard_dead()

            log.info(f"Reconnecting to {self._pending_uri}")
            self._connection = self._opener(self._pending_uri)
            self._pending_uri = None
            return self._connection

    def _discard_dead(self):
        try:
            uri = self._connection.getURI()
        except libvirt.libvirtError as e:
            raise UnrecoverableConnectionError(f"connection is dead and its URI is unavailable: {e}") from e

        log.warning(f"Connection to {uri} is no longer alive")
        try:
            self._connection.close()
        except libvirt.libvirtError as e:
            log.warning(f"Closing dead connection to {uri} failed: {e}")
        return uri

    def close(self):
        with self._lock:
            if self._pending_uri is not None:
                return
            try:
                self._connection.close()
            except libvirt.libvirtError as e:
                log.warning(f"Closing connection failed: {e}")
