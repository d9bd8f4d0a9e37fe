import json

from gaze_monitor.sinks import JsonlLogSink, PageVisit, page_visit_record


async def test_writes_one_document_per_line(tmp_path):
    path = tmp_path / "logs" / "log.json"
    sink = JsonlLogSink(path)
    await sink.start()
    for i in range(3):
        await sink.send({"category": "tracker", "values": {"frame": {"time": i}}, "received_at": 1.5 + i})
    await sink.close()

    lines = path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["values"]["frame"]["time"] for line in lines] == [0, 1, 2]
    assert sink.total_records == 3
    assert sink.total_dropped == 0


async def test_appends_to_an_existing_log(tmp_path):
    path = tmp_path / "log.json"
    path.write_text('{"request path":"/old","unix time":1}\n', encoding="utf-8")

    sink = JsonlLogSink(path)
    await sink.start()
    await sink.send(page_visit_record("/new", 2))
    await sink.close()

    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert json.loads(lines[1]) == {"request path": "/new", "unix time": 2}


async def test_drops_when_the_queue_is_full(tmp_path):
    sink = JsonlLogSink(tmp_path / "log.json", queue_size=1, drop_when_full=True)
    await sink.send({"n": 1})
    await sink.send({"n": 2})
    assert sink.total_dropped == 1


async def test_close_without_start(tmp_path):
    sink = JsonlLogSink(tmp_path / "log.json")
    await sink.close()
    assert not (tmp_path / "log.json").exists()


def test_page_visit_uses_the_log_key_names():
    visit = PageVisit.model_validate({"request path": "/index.html?a=1", "unix time": 1700000000})
    assert visit.request_path == "/index.html?a=1"
    assert visit.to_log_record() == {"request path": "/index.html?a=1", "unix time": 1700000000}
