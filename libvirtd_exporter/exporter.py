import logging
import os
import signal
import time
from contextlib import asynccontextmanager

import libvirt
import uvicorn
from fastapi import FastAPI, Response
from fastapi.responses import HTMLResponse
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from libvirtd_exporter import __version__
from libvirtd_exporter.config import load_settings
from libvirtd_exporter.connection import ConnectionManager, UnrecoverableConnectionError
from libvirtd_exporter.domain_stats import DomainStatsCollector
from libvirtd_exporter.metrics import CATALOG
from libvirtd_exporter.version import VersionCollector

log = logging.getLogger("libvirtd_exporter")

LANDING_PAGE = """<html>
<head><title>LibvirtD Exporter</title></head>
<body>
<h1>LibvirtD Exporter</h1>
<p>Prometheus Exporter for LibvirtD</p>
<p>Version: {version}</p>
<ul><li><a href="{path}">Metrics</a></li></ul>
</body>
</html>
"""


def _libvirt_error_handler(ctx, err):
    # errors still reach us as libvirtError; this only stops libvirt printing them to stderr
    log.debug(f"libvirt: {err[2]}")


def _terminate():
    os.kill(os.getpid(), signal.SIGTERM)


def build_registry(connections, nova, catalog=CATALOG):
    registry = CollectorRegistry()
    registry.register(VersionCollector(connections, catalog=catalog))
    registry.register(DomainStatsCollector(connections, nova=nova, catalog=catalog))
    return registry


def create_app(settings=None, connections=None, terminate=_terminate):
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app):
        libvirt.registerErrorHandler(_libvirt_error_handler, None)
        if app.state.connections is None:
            app.state.connections = ConnectionManager.open(settings.libvirt_uri)
        app.state.registry = build_registry(app.state.connections, settings.nova)
        log.info(f"Serving metrics on {settings.metrics_path} (nova metadata: {settings.nova})")
        yield
        log.info("Closing libvirt connection")
        app.state.connections.close()

    app = FastAPI(title="LibvirtD Exporter", version=__version__, lifespan=lifespan)
    app.state.connections = connections
    app.state.registry = None

    def metrics():
        start = time.time()
        try:
            data = generate_latest(app.state.registry)
        except UnrecoverableConnectionError as e:
            log.critical(f"Cannot reconnect to libvirt, shutting down: {e}")
            terminate()
            return Response(content="libvirt connection lost\n", status_code=503, media_type="text/plain")

        log.debug(f"Metrics collected in {time.time() - start:.2f}s")
        return Response(content=data, media_type=CONTENT_TYPE_LATEST)

    app.add_api_route(settings.metrics_path, metrics, methods=["GET"])

    if settings.metrics_path not in ("/", ""):
        def landing():
            return HTMLResponse(LANDING_PAGE.format(version=__version__, path=settings.metrics_path))

        app.add_api_route("/", landing, methods=["GET"])

    return app


def main():
    settings = load_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    log.info(f"Starting libvirtd_exporter {__version__}")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
