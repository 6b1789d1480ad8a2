"""Entrypoint for the GIST academic notice sync service."""

from __future__ import annotations

import argparse
import logging
import sys
import threading

from .config import get_settings
from .errors import PersistenceError
from .ingest import run_ingestion_cycle
from .notifier import NotificationDispatcher
from .reminder import run_reminder_cycle
from .scheduler import build_scheduler
from .store import JsonNoticeStore

LOGGER = logging.getLogger(__name__)


def _parse_args(argv):
    parser = argparse.ArgumentParser(prog="gist-notice-sync")
    parser.add_argument(
        "command",
        nargs="?",
        default="serve",
        choices=("serve", "ingest", "remind"),
        help="serve runs both jobs on their timers; ingest/remind run one cycle",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Run the requested workflow."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )
    args = _parse_args(argv)

    try:
        settings = get_settings()
    except ValueError as exc:
        LOGGER.error("Configuration error: %s", exc)
        return 1

    try:
        store = JsonNoticeStore(settings.store_path)
    except PersistenceError as exc:
        LOGGER.error("Failed to open notice store: %s", exc)
        return 1

    dispatcher = NotificationDispatcher(settings.fcm_credentials_path)

    try:
        if args.command == "ingest":
            created = run_ingestion_cycle(store, settings)
            LOGGER.info("새 공지 %d개 저장 완료", created)
            return 0

        if args.command == "remind":
            run_reminder_cycle(store, dispatcher, settings)
            return 0

        scheduler = build_scheduler(settings, store, dispatcher)
        scheduler.start()
        try:
            threading.Event().wait()
        except KeyboardInterrupt:
            LOGGER.info("Interrupted, shutting down")
        finally:
            scheduler.shutdown()
        return 0
    finally:
        dispatcher.shutdown(wait=True)


if __name__ == "__main__":
    sys.exit(main())
