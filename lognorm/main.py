#!/usr/bin/env python3
"""lognorm: application log normalization agent, entry point."""

import sys
import os
import time
import signal
import queue
import argparse
import logging

from watchdog.observers import Observer

from lognorm.apps.catalog import AppType
from lognorm.config import load_yaml_config, load_config
from lognorm.errors import ConfigError
from lognorm.harvester import LogHarvester
from lognorm.pipeline import build_router
from lognorm.registry import OffsetRegistry
from lognorm.writer import RecordWriter

logger = logging.getLogger(__name__)

_running = True


def _signal_handler(sig, frame):
    global _running
    logger.info("Shutdown signal received, stopping...")
    _running = False


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Application log normalizer")
    parser.add_argument(
        "--config", default=None,
        help="Path to YAML config file listing integrations",
    )
    parser.add_argument(
        "--integration", dest="integrations", action="append",
        choices=[t.value for t in AppType],
        help="Enable an integration with its default log paths (repeatable)",
    )
    parser.add_argument(
        "--output-dir", default=None,
        help="Directory for normalized JSON output (default: normalized_logs/)",
    )
    return parser


def main(argv=None) -> int:
    args = build_cli_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [LOGNORM] %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_config(args, load_yaml_config(args.config))
        logging.getLogger().setLevel(config.log_level)
        out: queue.Queue = queue.Queue(maxsize=config.queue_size)
        router = build_router(config, out)
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    logger.info("Config: %d integration(s), batch_size=%d, flush_interval=%.1f",
                len(config.integrations), config.batch_size, config.flush_interval)

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    registry = OffsetRegistry(config.registry_file)
    harvester = LogHarvester(router.include_paths, router.route, registry,
                             on_deleted=router.forget)
    writer = RecordWriter(out, config.output_dir, config.batch_size, config.flush_interval)
    writer.start()

    harvester.startup_read()

    observer = Observer()
    for dir_path, recursive in harvester.get_watch_targets():
        if not os.path.isdir(dir_path):
            logger.warning("Directory %s does not exist, not watching it", dir_path)
            continue
        observer.schedule(harvester, dir_path, recursive=recursive)
        logger.info("Watching directory: %s", dir_path)
    observer.start()

    logger.info("lognorm running. Press Ctrl+C to stop.")

    try:
        while _running:
            time.sleep(1)
    except KeyboardInterrupt:
        pass

    logger.info("Shutting down...")
    observer.stop()
    observer.join(timeout=5)
    router.stop()
    writer.stop()
    harvester.close_all()
    registry.save()

    unmatched = sum(w.pipeline.unmatched for w in router.workers.values())
    logger.info("Stats: %d records written in %d batches, %d unmatched, %d source(s)",
                writer.total_records, writer.batch_count, unmatched, len(router.workers))
    logger.info("lognorm stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
