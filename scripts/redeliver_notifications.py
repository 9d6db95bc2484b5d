"""Retry notification deliveries that are still pending or failed.

Run (e.g. from cron):
  PYTHONPATH=backend python scripts/redeliver_notifications.py --limit 200
"""

from __future__ import annotations

import argparse
import logging

from app.db.session import SessionLocal
from app.services.notifications import NotificationDispatcher

logger = logging.getLogger("redeliver_notifications")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--limit", type=int, default=100)
    parser.add_argument("--max-attempts", type=int, default=5)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    with SessionLocal() as session:
        delivered = NotificationDispatcher(session).redeliver_pending(
            limit=args.limit,
            max_attempts=args.max_attempts,
        )
    logger.info("Delivered %d notification(s)", delivered)


if __name__ == "__main__":
    main()
