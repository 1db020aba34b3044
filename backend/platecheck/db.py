"""
SQLite database layer for PlateCheck.

Stores:
- vehicle_lookups: the most recent merged vehicle record per registration plate

Uses aiosqlite for async SQLite access. The database file lives at
backend/data/platecheck.db by default and is auto-created on first startup.
"""

import logging
from pathlib import Path

import aiosqlite

from platecheck.config import settings

logger = logging.getLogger(__name__)

DB_PATH = Path(settings.database_path)

_db: aiosqlite.Connection | None = None


async def get_db() -> aiosqlite.Connection:
    """Get or create the database connection."""
    global _db
    if _db is None:
        DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        _db = await aiosqlite.connect(str(DB_PATH))
        _db.row_factory = aiosqlite.Row
        await _db.execute("PRAGMA journal_mode=WAL")
        await _init_tables(_db)
        logger.info(f"SQLite database initialized at {DB_PATH}")
    return _db


async def close_db():
    """Close the database connection."""
    global _db
    if _db:
        await _db.close()
        _db = None
        logger.info("SQLite database connection closed")


async def _init_tables(db: aiosqlite.Connection):
    """Create tables if they don't exist."""
    await db.executescript("""
        CREATE TABLE IF NOT EXISTS vehicle_lookups (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            plate TEXT NOT NULL,
            make TEXT,
            model TEXT,
            variant TEXT,
            colour TEXT,
            fuel_type TEXT,
            year INTEGER,
            engine_size REAL,
            body_type TEXT,
            transmission TEXT,
            doors INTEGER,
            seats INTEGER,
            co2_emissions REAL,
            annual_tax REAL,
            insurance_group TEXT,
            urban_mpg REAL,
            extra_urban_mpg REAL,
            combined_mpg REAL,
            previous_owners INTEGER,
            is_written_off INTEGER,
            write_off_category TEXT,
            is_stolen INTEGER,
            has_outstanding_finance INTEGER,
            private_price INTEGER,
            retail_price INTEGER,
            trade_price INTEGER,
            mileage INTEGER,
            record_json TEXT NOT NULL,
            checked_at TEXT NOT NULL,
            check_status TEXT NOT NULL DEFAULT 'success',
            api_provider TEXT NOT NULL DEFAULT 'enhanced-vehicle-service',
            test_mode INTEGER NOT NULL DEFAULT 1
        );

        CREATE UNIQUE INDEX IF NOT EXISTS idx_vehicle_lookups_plate
            ON vehicle_lookups(plate);
        CREATE INDEX IF NOT EXISTS idx_vehicle_lookups_checked
            ON vehicle_lookups(checked_at);
    """)
    await db.commit()
