#!/usr/bin/env python3
"""
Clear expired order locks.

Run with:
  python -m scripts.clear_expired_order_locks              # one sweep (cron)
  python -m scripts.clear_expired_order_locks --limit 100  # look at no more than 100 locks
  python -m scripts.clear_expired_order_locks --loop       # sweep every ORDER_LOCK_SWEEP_INTERVAL_SECONDS
"""

import argparse
import asyncio
import json
import signal

from fundflow.db.client import close_db_pool
from fundflow.jobs.expired_locks import ClearExpiredOrderLocksJob
from fundflow.logging_setup import configure_logging


def _install_signal_handlers(job: ClearExpiredOrderLocksJob) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda: asyncio.create_task(job.shutdown()))
        except NotImplementedError:
            signal.signal(sig, lambda *_: asyncio.create_task(job.shutdown()))


async def main(limit: int | None, loop: bool) -> int:
    configure_logging()
    job = ClearExpiredOrderLocksJob()
    try:
        if loop:
            _install_signal_handlers(job)
            await job.run_forever()
        else:
            stats = await job.run(limit=limit)
            print(json.dumps(stats))
    finally:
        await close_db_pool()
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Clear expired order locks")
    parser.add_argument("--limit", type=int, default=None, help="Maximum expired locks to look at in one sweep")
    parser.add_argument("--loop", action="store_true", help="Keep sweeping until SIGINT or SIGTERM")
    args = parser.parse_args()
    raise SystemExit(asyncio.run(main(args.limit, args.loop)))
