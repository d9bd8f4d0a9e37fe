import time

import pytest
from aiohttp.test_utils import TestClient, TestServer

from gaze_monitor.configs import AppSettings, CheckConfig, TargetRegion
from gaze_monitor.core import TrackerSession
from gaze_monitor.server import create_app
from gaze_monitor.server.app import _resolve_static
from conftest import MemorySink, make_frame

CHECK_CONFIG = CheckConfig(targets=[TargetRegion(x=0, y=0, width=50, height=50, name="logo")])


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    static = tmp_path / "static"
    static.mkdir()
    (static / "index.html").write_text("<h1>home</h1>", encoding="utf-8")
    (static / "a.html").write_text("<h1>page a</h1>", encoding="utf-8")
    (tmp_path / "secret.txt").write_text("secret", encoding="utf-8")
    return AppSettings(http={"static_dir": static})


@pytest.fixture
async def session(tracker):
    session = await TrackerSession.open("127.0.0.1", tracker.port, check_config=CHECK_CONFIG)
    yield session
    await session.close()


async def test_check_endpoints(session, settings):
    now = time.time()
    session.buffer.append(make_frame(20, 20, received_at=now - 20.2))
    session.buffer.append(make_frame(21, 20, received_at=now - 20.0))

    async with TestClient(TestServer(create_app(session, settings))) as client:
        resp = await client.get("/check.json")
        assert resp.status == 200
        assert await resp.json() == {"logo": False}

        resp = await client.get("/check.json?delta_millisecond=60000")
        assert await resp.json() == {"logo": True}

        resp = await client.get("/check.json?delta_millisecond=soon")
        assert await resp.json() == {"logo": False}

        resp = await client.get("/check_fixation.json?delta_millisecond=60000")
        assert await resp.json() == {"logo": True}


async def test_current_heatmap(session, settings):
    session.buffer.append(make_frame(20, 20))
    async with TestClient(TestServer(create_app(session, settings))) as client:
        resp = await client.get("/current_heatmap.png")
        assert resp.status == 200
        assert resp.content_type == "image/png"
        assert (await resp.read()).startswith(b"\x89PNG")


async def test_heatmap_failure_is_a_500(tracker, settings, tmp_path):
    session = await TrackerSession.open("127.0.0.1", tracker.port, brush_path=tmp_path / "missing.png")
    try:
        async with TestClient(TestServer(create_app(session, settings))) as client:
            resp = await client.get("/current_heatmap.png")
            assert resp.status == 500
            assert await resp.text() == "internal server error: create PNG failed."
    finally:
        await session.close()


async def test_static_files_log_page_visits(session, settings):
    sink = MemorySink()
    async with TestClient(TestServer(create_app(session, settings, sink))) as client:
        resp = await client.get("/a.html?ref=1")
        assert resp.status == 200
        assert await resp.text() == "<h1>page a</h1>"

        resp = await client.get("/")
        assert await resp.text() == "<h1>home</h1>"

        resp = await client.get("/missing.html")
        assert resp.status == 404

    assert [r["request path"] for r in sink.records] == ["/a.html?ref=1", "/", "/missing.html"]
    assert all(isinstance(r["unix time"], int) for r in sink.records)


def test_static_paths_cannot_escape_the_root(settings):
    static = settings.http.static_dir
    assert _resolve_static(static, "../secret.txt") is None
    assert _resolve_static(static, "a.html") == (static / "a.html").resolve()
    assert _resolve_static(static, "") == (static / "index.html").resolve()
