import queue

import pytest

from lognorm.registry import OffsetRegistry

COUCH_ACCESS_LINE = (
    "[notice] 2021-12-02T23:36:42.555157Z node@host <pid> tag "
    "127.0.0.1 1.2.3.4 user GET /path 201 ok 16"
)


@pytest.fixture
def couch_access_line():
    return COUCH_ACCESS_LINE


@pytest.fixture
def registry(tmp_path):
    return OffsetRegistry(str(tmp_path / "state" / "registry.json"))


@pytest.fixture
def out_queue():
    return queue.Queue()


def drain(q: queue.Queue) -> list:
    items = []
    while True:
        try:
            items.append(q.get_nowait())
        except queue.Empty:
            return items
