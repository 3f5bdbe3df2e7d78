"""RecordWriter: drains normalized records from the emission queue into JSON batch files.

A batch is written when it reaches ``batch_size`` records or when
``flush_interval`` seconds pass with records waiting. Each batch is one JSON
array in ``normalized_<YYYYmmdd_HHMMSS>_<seq>.json``, written to a temp file and
renamed into place so readers never see a partial batch.
"""

import json
import os
import time
import queue
import logging
from datetime import datetime
from threading import Thread

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.5


def _json_default(value):
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def batch_filename(seq: int, now: datetime | None = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"normalized_{stamp}_{seq:03d}.json"


class RecordWriter(Thread):
    def __init__(self, q: queue.Queue, output_dir: str, batch_size: int = 50,
                 flush_interval: float = 5.0):
        super().__init__(name="record-writer", daemon=True)
        self._queue = q
        self._output_dir = output_dir
        self._batch_size = max(batch_size, 1)
        self._flush_interval = flush_interval
        self._pending: list[dict] = []
        self._deadline: float | None = None
        self._stopping = False
        self._batch_count = 0
        self._total_records = 0

    @property
    def total_records(self) -> int:
        return self._total_records

    @property
    def batch_count(self) -> int:
        return self._batch_count

    def _write_batch(self, records: list[dict]) -> str:
        os.makedirs(self._output_dir, exist_ok=True)
        path = os.path.join(self._output_dir, batch_filename(self._batch_count + 1))
        tmp_path = path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(records, f, indent=2, default=_json_default)
        os.replace(tmp_path, path)
        self._batch_count += 1
        return path

    def flush(self):
        if not self._pending:
            return
        batch, self._pending = self._pending, []
        self._deadline = None
        path = self._write_batch(batch)
        self._total_records += len(batch)
        logger.info("Wrote %d records to %s (total: %d)",
                    len(batch), os.path.basename(path), self._total_records)

    def _accept(self, record: dict):
        if not self._pending:
            self._deadline = time.time() + self._flush_interval
        self._pending.append(record)
        if len(self._pending) >= self._batch_size:
            self.flush()

    def run(self):
        while not self._stopping:
            try:
                self._accept(self._queue.get(timeout=POLL_INTERVAL))
            except queue.Empty:
                pass
            if self._deadline is not None and time.time() >= self._deadline:
                self.flush()

    def stop(self):
        """Finish the current batch, write out whatever is still queued, and exit."""
        self._stopping = True
        if self.is_alive():
            self.join(timeout=5)
        while True:
            try:
                self._accept(self._queue.get_nowait())
            except queue.Empty:
                break
        self.flush()
