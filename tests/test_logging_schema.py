import json
import threading
from pathlib import Path

from mixnet_parts.runtime.logging import JsonlLogger
from mixnet_parts.runtime.scheduler import FakeClock


def test_jsonl_logging_schema(tmp_path: Path) -> None:
    clock = FakeClock(start_ms=10)
    logger = JsonlLogger(tmp_path / "logs", "test_run", clock=clock)
    logger.log_server_start(":8080", 414, "ndf.json")
    clock.advance_ms(5)
    logger.log_event("part_accepted", {"sender": "abc", "bytes": 3, "completed": False})
    logger.close()

    path = tmp_path / "logs" / "test_run_server.jsonl"
    assert logger.path == path
    events = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert len(events) == 2
    for event in events:
        for field in ("ts_ms", "run_id", "event", "role"):
            assert field in event
    assert events[0]["event"] == "server_start"
    assert events[0]["max_fragment_size"] == 414
    assert events[1]["ts_ms"] == 15


def test_jsonl_logger_concurrent_writes_stay_line_delimited(tmp_path: Path) -> None:
    logger = JsonlLogger(tmp_path, "concurrent")

    def write(n: int) -> None:
        for i in range(50):
            logger.log_event("part_accepted", {"worker": n, "i": i})

    threads = [threading.Thread(target=write, args=(n,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    logger.close()
    lines = logger.path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 200
    assert all(json.loads(line)["event"] == "part_accepted" for line in lines)


def test_jsonl_logger_ignores_events_after_close(tmp_path: Path) -> None:
    logger = JsonlLogger(tmp_path, "closed", clock=FakeClock())
    logger.log_event("part_accepted", {"i": 0})
    logger.close()
    logger.log_event("part_accepted", {"i": 1})
    lines = logger.path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["i"] for line in lines] == [0]
