"""Metric source registry and HTTP dispatch."""

import json
import logging
import sys
import threading
import traceback
import webbrowser
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, PlainTextResponse, Response

from pystatsview.charts import ChartSpec, render_page
from pystatsview.config import Settings, get_settings
from pystatsview.models import MetricPoint
from pystatsview.monitor import SnapshotStore, StatsScheduler
from pystatsview.sources import (
    GCCPUFractionSource,
    GCNumSource,
    GCPauseSource,
    HeapSource,
    MetricSource,
    StackSource,
    ThreadsSource,
)

logger = logging.getLogger(__name__)

GRACEFUL_SHUTDOWN_SECONDS = 1


class Viewers(list):
    """Ordered collection of metric sources; order is display order."""

    def register(self, *sources: MetricSource) -> None:
        self.extend(sources)


def default_viewers() -> Viewers:
    """Collection with every runtime metric source."""
    return Viewers(
        [
            ThreadsSource(),
            HeapSource(),
            StackSource(),
            GCNumSource(),
            GCPauseSource(),
            GCCPUFractionSource(),
        ]
    )


def empty_viewers() -> Viewers:
    return Viewers()


def encode_point(point: MetricPoint) -> bytes:
    """Serialize a point; raises ValueError for non-finite values."""
    return json.dumps(point.to_dict(), allow_nan=False).encode("utf-8")


def dump_threads() -> str:
    """Plain-text stack dump of every live thread."""
    names = {t.ident: t.name for t in threading.enumerate()}
    parts = []
    for ident, frame in sys._current_frames().items():
        parts.append(f"Thread {names.get(ident, '?')} ({ident}):")
        parts.append("".join(traceback.format_stack(frame)))
    return "\n".join(parts)


def command_line() -> str:
    """Process arguments separated by NUL bytes."""
    return "\x00".join(sys.argv)


# name -> (description, handler) for the /debug/pprof/ routes
PROFILES = {
    "cmdline": ("The command line invocation of the current program", command_line),
    "threads": ("Stack traces of all current threads", dump_threads),
}


def profile_index() -> str:
    """Plain-text listing of the available profiles."""
    lines = ["Profile Descriptions:", ""]
    for name, (description, _) in PROFILES.items():
        lines.append(f"/debug/pprof/{name}: {description}")
    return "\n".join(lines) + "\n"


class ViewManager:
    """
    Serves every registered metric source from one scheduler.

    All sources share one SnapshotStore and one activity deadline, so a pull
    on any chart keeps every chart fresh.
    """

    def __init__(
        self,
        viewers: list[MetricSource] | None = None,
        settings: Settings | None = None,
        scheduler: StatsScheduler | None = None,
    ) -> None:
        self.settings = settings if settings is not None else get_settings()
        self.views: list[MetricSource] = list(viewers if viewers is not None else default_viewers())
        self.scheduler = scheduler or StatsScheduler(SnapshotStore(), interval=self.settings.interval)
        self._server = None

        # Later registrations win on duplicate names
        self._routes: dict[str, MetricSource] = {}
        for view in self.views:
            view.bind(self.scheduler, self.settings)
            self._routes[view.name] = view

        self.charts: list[ChartSpec] = [view.chart(index=i) for i, view in enumerate(self.views)]
        self.app = self._build_app()

    @property
    def store(self) -> SnapshotStore:
        return self.scheduler.store

    def serve_route(self, route: str) -> Response:
        """Answer one pull for ``route``."""
        view = self._routes.get(route)
        if view is None:
            raise HTTPException(status_code=404, detail=f"unknown metric {route!r}")

        point = view.serve()
        try:
            body = encode_point(point)
        except (TypeError, ValueError) as exc:
            # A dropped point is fine; the next pull self-heals
            logger.debug("Dropping %s point: %s", route, exc)
            return Response(status_code=200, media_type="application/json")
        return Response(content=body, media_type="application/json")

    def _build_app(self) -> FastAPI:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            self.scheduler.start()
            try:
                yield
            finally:
                self.scheduler.stop()

        app = FastAPI(title="Statsview", lifespan=lifespan)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

        prefix = self.settings.prefix
        page = render_page(self.charts, self.settings)

        @app.get(prefix, response_class=HTMLResponse)
        def dashboard() -> str:
            """Serve the dashboard page."""
            return page

        @app.get(prefix + "/view/{route}")
        def view(route: str) -> Response:
            """Serve one data point of a metric."""
            return self.serve_route(route)

        @app.get("/debug/pprof/", response_class=PlainTextResponse)
        def profiles() -> str:
            """List the available profiles."""
            return profile_index()

        @app.get("/debug/pprof/{name}", response_class=PlainTextResponse)
        def profile(name: str) -> str:
            """Serve one plain-text profile."""
            if name not in PROFILES:
                raise HTTPException(status_code=404, detail=f"unknown profile {name!r}")
            _, handler = PROFILES[name]
            return handler()

        return app

    def start(self) -> None:
        """Run the HTTP server until stop() or an interrupt; blocks."""
        import uvicorn

        host, _, port = self.settings.listen_addr.rpartition(":")
        config = uvicorn.Config(
            self.app,
            host=host or "127.0.0.1",
            port=int(port),
            log_level="info",
            timeout_graceful_shutdown=GRACEFUL_SHUTDOWN_SECONDS,
        )
        self._server = uvicorn.Server(config)

        if self.settings.auto_open_browser:
            url = f"http://{self.settings.link_addr}{self.settings.prefix}"
            logger.info("Opening %s", url)
            webbrowser.open(url)

        logger.info("Serving statsview on http://%s%s", self.settings.listen_addr, self.settings.prefix)
        self._server.run()

    def stop(self) -> None:
        """Ask the server to shut down and stop sampling."""
        if self._server is not None:
            self._server.should_exit = True
        self.scheduler.stop()
