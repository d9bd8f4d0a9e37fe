import json
from datetime import datetime, timezone

import numpy as np
import pytest
from PIL import Image

from gaze_monitor.render import radial_brush
from gaze_monitor.replay import PageLog, load_image_map, parse_log, render_page_set, replay_log
from conftest import frame_message, make_frame


def frame_line(x, y, received_at):
    return json.dumps({**frame_message(x, y), "received_at": received_at})


def visit_line(path, unix_time):
    return json.dumps({"request path": path, "unix time": unix_time})


def test_parse_log_splits_pages_on_visits():
    lines = [
        frame_line(10, 10, 100.0),
        visit_line("/a.html", 101),
        frame_line(11, 11, 101.5),
        "{broken",
        frame_line(12, 12, 102.0),
        visit_line("/b.html", 103),
    ]
    pages = parse_log(lines)

    assert [p.url for p in pages] == ["UNKNOWN URL", "/a.html", "/b.html"]
    assert [len(p.frames) for p in pages] == [1, 2, 0]
    assert pages[1].unix_time == 101
    assert pages[1].frames[1].received_at == 102.0


def stamped_frame_line(x, y, stamp):
    message = frame_message(x, y)
    message["values"]["frame"]["GoTime"] = stamp
    return json.dumps(message)


def test_parse_log_reads_arrival_time_from_frame_stamp():
    visit_time = datetime(2015, 6, 1, 1, 0, 0, tzinfo=timezone.utc)
    lines = [
        visit_line("/a.html", int(visit_time.timestamp())),
        stamped_frame_line(10, 10, "2015-06-01T10:00:01.123456789+09:00"),
        stamped_frame_line(11, 11, "2015-06-01T01:00:02Z"),
        stamped_frame_line(12, 12, "yesterday"),
        frame_line(13, 13, visit_time.timestamp() + 3.0),
    ]
    pages = parse_log(lines)

    frames = pages[1].frames
    assert [f.avg.x for f in frames] == [10, 11, 13]
    assert frames[0].received_at == pytest.approx(visit_time.timestamp() + 1.123456)
    assert frames[1].received_at == visit_time.timestamp() + 2.0


def test_load_image_map(tmp_path):
    assert load_image_map(tmp_path / "missing.json") == {}

    bad = tmp_path / "bad.json"
    bad.write_text("[", encoding="utf-8")
    assert load_image_map(bad) == {}

    good = tmp_path / "good.json"
    good.write_text(json.dumps({"/a.html": "a.png"}), encoding="utf-8")
    assert load_image_map(good) == {"/a.html": "a.png"}


def test_cutoff_is_measured_from_the_visit(tmp_path):
    brush = np.zeros((3, 3, 4), dtype=np.uint8)
    brush[...] = (255, 0, 0, 255)
    page = PageLog(url="/a", unix_time=1000, frames=[
        make_frame(10, 10, received_at=1001.0),
        make_frame(30, 20, received_at=1010.0),
    ])

    names = render_page_set(page, tmp_path, "0", brush, 40, 30, cutoffs_s=[5, -1])
    assert names == ["0_5sec.png", "0_-1sec.png"]

    five = np.array(Image.open(tmp_path / "0_5sec.png"))
    assert five[10, 10, 3] == 255
    assert five[20, 30, 3] == 0

    everything = np.array(Image.open(tmp_path / "0_-1sec.png"))
    assert everything[20, 30, 3] == 255


def test_replay_log_end_to_end(tmp_path):
    log = tmp_path / "log.json"
    log.write_text("\n".join([
        frame_line(5, 5, 100.0),
        visit_line("/a.html", 100),
        frame_line(10, 10, 100.5),
        frame_line(12, 10, 101.0),
    ]) + "\n", encoding="utf-8")

    background = tmp_path / "a.png"
    Image.new("RGBA", (40, 30), (0, 0, 255, 255)).save(background)
    image_config = tmp_path / "imageConfig.json"
    image_config.write_text(json.dumps({"/a.html": str(background)}), encoding="utf-8")

    out = tmp_path / "out"
    pages = replay_log(log, out, radial_brush(8), image_config, width=40, height=30, cutoffs_s=[-1, 5])

    assert len(pages) == 2
    assert pages[0].image_files == ["0_-1sec.png", "0_5sec.png"]
    assert pages[1].image_files == ["1_-1sec.png", "1_bg_-1sec.png", "1_5sec.png", "1_bg_5sec.png"]
    for name in pages[0].image_files + pages[1].image_files:
        assert (out / name).is_file()

    with Image.open(out / "1_bg_-1sec.png") as img:
        assert img.getpixel((39, 29)) == (0, 0, 255, 255)

    index = (out / "index.html").read_text(encoding="utf-8")
    assert "/a.html" in index
    assert "UNKNOWN URL" in index
    assert 'src="1_bg_5sec.png"' in index
