import asyncio
import logging
import ssl
import time
from pathlib import Path
from typing import Optional

from aiohttp import web

from ..configs import AppSettings, HTTPSettings
from ..core import TrackerSession
from ..errors import RenderError
from ..sinks import LogSink, page_visit_record

logger = logging.getLogger(__name__)

SESSION_KEY = web.AppKey("session", TrackerSession)
SETTINGS_KEY = web.AppKey("settings", AppSettings)
SINK_KEY = web.AppKey("sink", Optional[LogSink])

INDEX_FILE = "index.html"


def create_app(
    session: TrackerSession,
    settings: AppSettings,
    sink: Optional[LogSink] = None,
) -> web.Application:
    """Builds the query service around a running session."""
    app = web.Application()
    app[SESSION_KEY] = session
    app[SETTINGS_KEY] = settings
    app[SINK_KEY] = sink

    app.router.add_get("/current_heatmap.png", handle_heatmap)
    app.router.add_get("/check.json", handle_check)
    app.router.add_get("/check_fixation.json", handle_check_fixation)
    app.router.add_get("/{path:.*}", handle_static)
    return app


def _window_ms(request: web.Request) -> float:
    """`delta_millisecond` from the query string, or the configured default when absent or bad."""
    default = request.app[SETTINGS_KEY].default_window_ms
    raw = request.query.get("delta_millisecond")
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.debug(f"Ignoring invalid delta_millisecond '{raw}'.")
        return default
    return value if value >= 0 else default


async def handle_heatmap(request: web.Request) -> web.Response:
    session = request.app[SESSION_KEY]
    try:
        body = await asyncio.to_thread(session.heatmap_png)
    except RenderError as e:
        logger.error(f"Heat-map request failed: {e}")
        return web.Response(status=500, text="internal server error: create PNG failed.")
    return web.Response(body=body, content_type="image/png")


async def handle_check(request: web.Request) -> web.Response:
    session = request.app[SESSION_KEY]
    return web.json_response(session.check(_window_ms(request)))


async def handle_check_fixation(request: web.Request) -> web.Response:
    session = request.app[SESSION_KEY]
    result = await asyncio.to_thread(session.check_fixation, _window_ms(request))
    return web.json_response(result)


def _resolve_static(static_dir: Path, rel_path: str) -> Optional[Path]:
    root = static_dir.resolve()
    target = (root / rel_path.lstrip("/")).resolve()
    if target != root and root not in target.parents:
        return None
    if target.is_dir():
        target = target / INDEX_FILE
    return target if target.is_file() else None


async def handle_static(request: web.Request) -> web.StreamResponse:
    """Serves a file from the static directory, recording the visit in the log."""
    sink = request.app[SINK_KEY]
    if sink is not None:
        await sink.send(page_visit_record(request.path_qs, int(time.time())))

    static_dir = request.app[SETTINGS_KEY].http.static_dir
    path = _resolve_static(Path(static_dir), request.match_info["path"])
    if path is None:
        raise web.HTTPNotFound(text="file not found.")
    return web.FileResponse(path)


def _ssl_context(settings: HTTPSettings) -> Optional[ssl.SSLContext]:
    if settings.ssl_cert is None:
        return None
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    context.load_cert_chain(settings.ssl_cert, settings.ssl_key)
    return context


async def start_server(app: web.Application, settings: HTTPSettings) -> web.AppRunner:
    """Binds the app to the configured address. The caller owns `runner.cleanup()`."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, settings.host, settings.port, ssl_context=_ssl_context(settings))
    await site.start()
    scheme = "https" if settings.ssl_cert else "http"
    logger.info(f"HTTP service listening on {scheme}://{settings.host}:{settings.port}")
    return runner
