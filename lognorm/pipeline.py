"""Per-source normalization pipelines and the router that feeds them.

Every tailed file gets its own SourcePipeline (stitch -> extract -> modify)
running on its own SourceWorker thread, so record order within a file is kept
and no mutable state is shared between files. Workers hand finished records
to one bounded queue; when it is full only the worker trying to emit waits.
"""

import logging
import os
import queue
import threading
import time

from lognorm.apps.catalog import get_integration
from lognorm.apps.common import Integration
from lognorm.config import Config
from lognorm.harvester import path_matches
from lognorm.models import PAYLOAD, SOURCE_FILE, TIMESTAMP
from lognorm.modifier import FieldModifier
from lognorm.stitcher import DEFAULT_MAX_LINES, MultilineStitcher

logger = logging.getLogger(__name__)

_STOP = object()


class SourcePipeline:
    def __init__(self, integration: Integration, source: str = "",
                 max_lines: int = DEFAULT_MAX_LINES):
        self.integration = integration
        self.source = source
        self._stitcher = (
            MultilineStitcher(integration.multiline_rules, max_lines)
            if integration.multiline_rules else None
        )
        self._extractor = integration.make_extractor()
        self._modifier = FieldModifier(integration.modifiers)
        self.records_out = 0
        self.unmatched = 0

    @property
    def pending(self) -> bool:
        return self._stitcher is not None and self._stitcher.pending

    def normalize(self, text: str) -> dict:
        """Turn one logical record into a normalized record."""
        result = self._extractor.extract(text)
        if not result.matched:
            self.unmatched += 1
        record = {PAYLOAD: result.fields}
        if result.timestamp is not None:
            record[TIMESTAMP] = result.timestamp
        if self.source:
            record[SOURCE_FILE] = self.source
        self.records_out += 1
        return self._modifier.apply(record)

    def process_line(self, line: str) -> list[dict]:
        """Feed one physical line; return the records it completed."""
        if self._stitcher is None:
            return [self.normalize(line)]
        return [self.normalize(text) for text in self._stitcher.feed(line)]

    def flush(self) -> list[dict]:
        """Close and normalize the pending logical record, if any."""
        if self._stitcher is None:
            return []
        return [self.normalize(text) for text in self._stitcher.flush()]


class SourceWorker(threading.Thread):
    """Runs one SourcePipeline; lines are processed strictly in arrival order."""

    def __init__(self, pipeline: SourcePipeline, out: queue.Queue,
                 flush_timeout: float = 1.0, poll_interval: float = 0.2):
        super().__init__(name=f"source:{pipeline.source}", daemon=True)
        self.pipeline = pipeline
        self._inbox: queue.Queue = queue.Queue()
        self._out = out
        self._flush_timeout = flush_timeout
        self._poll_interval = min(poll_interval, flush_timeout) if flush_timeout > 0 else poll_interval
        self._last_line = time.time()
        self.failures = 0

    def submit(self, line: str) -> None:
        self._inbox.put(line)

    def _emit(self, records: list[dict]) -> None:
        for record in records:
            self._out.put(record)

    def _guarded(self, step, *args) -> None:
        """Run one pipeline step; a failing record is logged and dropped, the worker lives on."""
        try:
            self._emit(step(*args))
        except Exception:
            self.failures += 1
            logger.exception("Pipeline for %s failed on a record, skipping it", self.pipeline.source)

    def run(self):
        while True:
            try:
                item = self._inbox.get(timeout=self._poll_interval)
            except queue.Empty:
                idle = time.time() - self._last_line
                if self.pipeline.pending and idle >= self._flush_timeout:
                    logger.debug("Flushing idle record for %s", self.pipeline.source)
                    self._guarded(self.pipeline.flush)
                continue
            if item is _STOP:
                break
            self._last_line = time.time()
            self._guarded(self.pipeline.process_line, item)

        self._guarded(self.pipeline.flush)
        logger.debug("Worker for %s stopped after %d records",
                     self.pipeline.source, self.pipeline.records_out)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Process everything already submitted, flush, and wait for exit."""
        self._inbox.put(_STOP)
        if self.is_alive():
            self.join(timeout=timeout)


class PipelineRouter:
    """Maps tailed file paths to per-source workers, creating them lazily."""

    def __init__(self, integrations: list[Integration], out: queue.Queue,
                 flush_timeout: float = 1.0, max_lines: int = DEFAULT_MAX_LINES):
        self._integrations = list(integrations)
        self._out = out
        self._flush_timeout = flush_timeout
        self._max_lines = max_lines
        self._workers: dict[str, SourceWorker] = {}
        self._lock = threading.Lock()
        self._stopped = False

    @property
    def include_paths(self) -> list[str]:
        return [p for integration in self._integrations for p in integration.include_paths]

    @property
    def workers(self) -> dict[str, SourceWorker]:
        with self._lock:
            return dict(self._workers)

    def integration_for(self, path: str) -> Integration | None:
        """Return the first configured integration whose globs match *path*."""
        abs_path = os.path.abspath(path)
        for integration in self._integrations:
            for pattern in integration.include_paths:
                if path_matches(abs_path, pattern):
                    return integration
        return None

    def _worker_for(self, path: str) -> SourceWorker | None:
        with self._lock:
            if self._stopped:
                return None
            worker = self._workers.get(path)
            if worker is not None:
                return worker
            integration = self.integration_for(path)
            if integration is None:
                return None
            pipeline = SourcePipeline(integration, path, self._max_lines)
            worker = SourceWorker(pipeline, self._out, self._flush_timeout)
            self._workers[path] = worker
            worker.start()
            logger.info("Started %s pipeline for %s", integration.type, path)
            return worker

    def route(self, path: str, line: str) -> None:
        worker = self._worker_for(os.path.abspath(path))
        if worker is None:
            logger.debug("No pipeline for %s, dropping line", path)
            return
        worker.submit(line)

    def forget(self, path: str) -> bool:
        """Retire the worker of a source that went away, flushing its pending record."""
        with self._lock:
            worker = self._workers.pop(os.path.abspath(path), None)
        if worker is None:
            return False
        worker.stop()
        logger.info("Stopped %s pipeline for %s", worker.pipeline.integration.type, path)
        return True

    def stop(self) -> None:
        """Stop every worker, flushing each source's pending record."""
        with self._lock:
            self._stopped = True
            workers = list(self._workers.values())
        for worker in workers:
            worker.stop()
        logger.info("Stopped %d source pipeline(s)", len(workers))


def resolve_integrations(config: Config) -> list[Integration]:
    """Build and validate every configured integration.

    Raises ConfigError before any pipeline runs if a rule set is invalid.
    """
    integrations = []
    for entry in config.integrations:
        integration = get_integration(entry.type).with_include_paths(entry.include_paths)
        # Compile every rule once so bad patterns fail at startup.
        SourcePipeline(integration, max_lines=config.max_lines)
        integrations.append(integration)
        logger.info("Integration %s: %s", integration.type, ", ".join(integration.include_paths))
    return integrations


def build_router(config: Config, out: queue.Queue) -> PipelineRouter:
    return PipelineRouter(
        resolve_integrations(config),
        out,
        flush_timeout=config.multiline_flush_timeout,
        max_lines=config.max_lines,
    )
