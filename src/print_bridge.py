"""
Print bridge: drains the print queue of one event.

Runs next to the receipt printer. Each job's payload is already the final
receipt text; the bridge only shows it and marks it printed.
"""

import argparse
import asyncio
import sys
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.panel import Panel

import db.crud as crud
from db.models import PrintJob
from register.errors import PersistenceError
from utils import config
from utils.logger import get_logger

_logger = get_logger(__name__)


async def drain_once(event_id: str, console: Optional[Console] = None) -> Optional[PrintJob]:
    """Print the oldest queued job. Returns it, or None when the queue is empty."""
    console = console or Console()
    job = await crud.next_queued_print_job(event_id)
    if job is None:
        _logger.debug("Print queue empty")
        return None

    console.print(Panel(job.payload, title=f"Job {job.id}", expand=False))
    if await crud.mark_print_job_printed(job.id, datetime.now().replace(microsecond=0)):
        _logger.info(f"Printed job {job.id} (order {job.order_id})")
    else:
        _logger.warning(f"Job {job.id} was no longer queued")
    return job


async def run(event_id: str, interval: float, once: bool, console: Optional[Console] = None) -> None:
    console = console or Console()
    _logger.info(f"Print bridge for event {event_id} started")
    while True:
        try:
            # drain everything that is waiting before sleeping
            while await drain_once(event_id, console) is not None:
                pass
        except PersistenceError as e:
            _logger.error(f"Print queue unavailable: {e.message}")
        if once:
            return
        await asyncio.sleep(interval)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Festkassa print bridge")
    parser.add_argument(
        "--interval", type=float, default=3.0, help="seconds between polls (default: 3)"
    )
    parser.add_argument(
        "--once", action="store_true", help="drain the queue once and exit"
    )
    parser.add_argument(
        "--event", default=config.EVENT_ID, help="event id (default: FESTKASSA_EVENT_ID)"
    )
    args = parser.parse_args(argv)
    if args.interval <= 0:
        parser.error("--interval must be positive")

    try:
        asyncio.run(run(args.event, args.interval, args.once))
    except KeyboardInterrupt:
        _logger.info("Print bridge stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
