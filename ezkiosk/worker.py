from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
import time

from dotenv import load_dotenv

from .config import DEFAULT_TIMEZONE, SCHEMA_PATH_DEFAULT, SETTINGS_PATH_DEFAULT, cfg, load_settings
from .drive.service import GoogleDriveService
from .infrastructure.error_handling import ConfigurationError
from .infrastructure.scheduler import TASKS, run_all, run_task, start_background_scheduler, stop_background_scheduler
from .infrastructure.supabase_helpers import get_supabase_client
from .integrations.slack import notify

logger = logging.getLogger(__name__)


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    noise_levels = {
        "httpx": logging.WARNING,
        "httpcore": logging.WARNING,
        "urllib3": logging.WARNING,
        "hpack": logging.WARNING,
        "supabase": logging.WARNING,
        "postgrest": logging.WARNING,
        "stripe": logging.WARNING,
    }
    for name, noise_level in noise_levels.items():
        logging.getLogger(name).setLevel(noise_level)


def main() -> None:
    parser = argparse.ArgumentParser(description="EZ Kiosk - Google Drive upload and folder sync worker")
    parser.add_argument("--settings", default=SETTINGS_PATH_DEFAULT)
    parser.add_argument("--schema", default=SCHEMA_PATH_DEFAULT)
    parser.add_argument("--task", choices=["all"] + list(TASKS), default="all")
    parser.add_argument("--once", action="store_true", help="run the selected task(s) a single time and exit")
    parser.add_argument("--background", action="store_true", help="run continuously with the built-in scheduler")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    load_dotenv()
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        settings = load_settings(args.settings, args.schema)
    except ValueError as exc:
        notify(f"❌ Configuration invalid: {exc}", severity="error")
        print("Fatal configuration error. Exiting.", file=sys.stderr)
        sys.exit(1)

    try:
        client = get_supabase_client()
    except ConfigurationError as exc:
        print(f"Fatal configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    timezone = cfg(settings, "timezone") or os.getenv("TIMEZONE") or DEFAULT_TIMEZONE
    service = GoogleDriveService(client, timezone=timezone)

    if args.background and not args.once:
        notify("🤖 Starting background scheduler mode")
        start_background_scheduler(service, settings)

        def signal_handler(sig, frame):
            notify("🛑 Background scheduler stopping...")
            stop_background_scheduler()
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)
        try:
            while True:
                time.sleep(60)
        except KeyboardInterrupt:
            stop_background_scheduler()
        return

    if args.task == "all":
        results = run_all(service)
    else:
        results = {args.task: run_task(service, args.task)}
    logger.info(json.dumps(results, indent=2, default=str))
    if any(result is None for result in results.values()):
        sys.exit(1)


if __name__ == "__main__":
    main()
