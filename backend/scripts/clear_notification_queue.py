#!/usr/bin/env python3
"""
Completely clear the notification work queue (notification_jobs). Fast (TRUNCATE).
Run with the service stopped so no worker holds claimed rows:
  cd backend && python scripts/clear_notification_queue.py
"""
import asyncio
import sys
from pathlib import Path

# backend/scripts/ -> backend/
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import text

from community_push.db.session import engine
from community_push.db.tables import QUEUE_TABLE_NAMES


async def main():
    tables = ", ".join(QUEUE_TABLE_NAMES)
    print(f"Connecting to DB and truncating {tables} ...")
    async with engine.begin() as conn:
        await conn.execute(text(f"TRUNCATE TABLE {tables} RESTART IDENTITY"))
    await engine.dispose()
    print("Done. Notification queue is empty.")


if __name__ == "__main__":
    asyncio.run(main())
