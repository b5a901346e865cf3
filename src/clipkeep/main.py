#!/usr/bin/env python3

import argparse
import dataclasses
import json
import logging
import signal
import sys
import time
from pathlib import Path
from typing import Optional

from clipkeep.config import AppConfig
from clipkeep.exceptions import ConfigurationError
from clipkeep.models.items import ClipboardItem
from clipkeep.models.results import CommandResult
from clipkeep.services import CLIPBOARD_UPDATED, DATA_CHANGED, IP_DETECTED, CommandService

logger = logging.getLogger(__name__)


class ClipKeepApp:

    def __init__(self, config: AppConfig):
        self.config = config
        self.commands: Optional[CommandService] = None
        self.running = False

    def _on_clipboard_updated(self, item: ClipboardItem):
        preview = item.content.strip().replace("\n", " ")[:60]
        print(f"[clipboard] {item.id} ({item.size} bytes, used {item.access_count}x): {preview}")

    def _on_ip_detected(self, ip: str):
        print(f"[ip] {ip}")

    def _on_data_changed(self, payload: dict):
        logger.debug(f"Data changed: {payload.get('operation')}")

    def start(self) -> bool:
        if self.running:
            return True

        print(f"Starting ClipKeep - data directory: {self.config.data_dir}")
        self.commands = CommandService(self.config)
        self.commands.subscribe(CLIPBOARD_UPDATED, self._on_clipboard_updated)
        self.commands.subscribe(IP_DETECTED, self._on_ip_detected)
        self.commands.subscribe(DATA_CHANGED, self._on_data_changed)

        result = self.commands.initialize()
        if not result.ok:
            logger.error(f"Error starting: {result.error}")
            self.commands.shutdown()
            return False

        self.running = True
        status = result.value
        if status["data_source"] != "primary":
            print(f"Data loaded from {status['data_source']} copy")
        if status["monitoring"]:
            print("ClipKeep running. Press Ctrl+C to stop")
        else:
            print("Clipboard monitoring is off. Press Ctrl+C to stop")
        return True

    def stop(self):
        if not self.running:
            return

        self.running = False
        if self.commands:
            result = self.commands.shutdown()
            if not result.ok:
                logger.warning(f"Shutdown incomplete: {result.error}")

        print("ClipKeep stopped")

    def run_forever(self):
        if not self.start():
            return

        try:
            while self.running:
                time.sleep(1.0)
        except KeyboardInterrupt:
            print("\nStopping...")
        finally:
            self.stop()

    def report(self, name: str) -> int:
        """Print the result of a read-only command as JSON."""
        commands = CommandService(dataclasses.replace(self.config, monitor_clipboard=False))
        try:
            result = commands.initialize()
            if result.ok:
                result = getattr(commands, name)()
            _print_result(result)
            return 0 if result.ok else 1
        finally:
            commands.shutdown()


def _print_result(result: CommandResult):
    if result.ok:
        print(json.dumps(result.value, indent=2, default=str))
    else:
        print(f"{result.kind.value}: {result.error}", file=sys.stderr)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="ClipKeep - Clipboard history with bookmarks and IP tracking"
    )

    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory for the data file and log (default: ~/.clipkeep)"
    )

    parser.add_argument(
        "-i", "--poll-interval",
        type=float,
        default=None,
        help="Clipboard polling interval in seconds (default: 0.25)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose debug logging"
    )

    parser.add_argument(
        "--no-monitor",
        action="store_true",
        help="Do not watch the clipboard"
    )

    report = parser.add_mutually_exclusive_group()
    report.add_argument(
        "--stats",
        action="store_true",
        help="Print history statistics as JSON and exit"
    )
    report.add_argument(
        "--diagnostics",
        action="store_true",
        help="Print a diagnostic report as JSON and exit"
    )

    return parser.parse_args(argv)


def build_config(args) -> AppConfig:
    config = AppConfig.from_env()
    overrides = {}
    if args.data_dir is not None:
        overrides["data_dir"] = args.data_dir.expanduser()
    if args.poll_interval is not None:
        overrides["poll_interval"] = args.poll_interval
        overrides["max_poll_interval"] = max(config.max_poll_interval, args.poll_interval)
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    if args.no_monitor:
        overrides["monitor_clipboard"] = False
    return dataclasses.replace(config, **overrides)


def main(argv=None):
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s: %(message)s',
    )

    try:
        config = build_config(args)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(2)

    app = ClipKeepApp(config)

    if args.stats:
        sys.exit(app.report("get_stats"))
    if args.diagnostics:
        sys.exit(app.report("get_diagnostics"))

    def signal_handler(signum, frame):
        app.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        app.run_forever()
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
