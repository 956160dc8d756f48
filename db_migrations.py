import sqlite3
import time
from dataclasses import dataclass
from typing import Callable, List


@dataclass(frozen=True)
class Migration:
    migration_id: str
    description: str
    apply: Callable[[sqlite3.Connection], None]


def _migration_0001_initial(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS engine_meta (
          key TEXT PRIMARY KEY,
          value TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS transfer_requests (
          platform_id TEXT NOT NULL,
          item_id TEXT NOT NULL,
          minimum_quantity INTEGER NOT NULL,
          requested_quantity INTEGER NOT NULL,
          last_processed INTEGER NOT NULL DEFAULT 0,
          sort_order INTEGER NOT NULL DEFAULT 0,
          PRIMARY KEY (platform_id, item_id)
        );

        CREATE TABLE IF NOT EXISTS transfer_cooldowns (
          dest_id TEXT NOT NULL,
          source_id TEXT NOT NULL,
          item_id TEXT NOT NULL,
          last_transfer_tick INTEGER NOT NULL,
          PRIMARY KEY (dest_id, source_id, item_id)
        );

        CREATE TABLE IF NOT EXISTS transit_reservations (
          dest_id TEXT NOT NULL,
          item_id TEXT NOT NULL,
          quantity INTEGER NOT NULL,
          PRIMARY KEY (dest_id, item_id)
        );

        CREATE TABLE IF NOT EXISTS pending_transfers (
          transfer_id TEXT PRIMARY KEY,
          source_id TEXT NOT NULL,
          dest_id TEXT NOT NULL,
          item_id TEXT NOT NULL,
          amount INTEGER NOT NULL,
          eta_tick INTEGER NOT NULL,
          created_tick INTEGER NOT NULL,
          sort_order INTEGER NOT NULL DEFAULT 0
        );
        CREATE INDEX IF NOT EXISTS idx_pending_dest_item ON pending_transfers(dest_id, item_id);

        CREATE TABLE IF NOT EXISTS host_platforms (
          platform_id TEXT PRIMARY KEY,
          name TEXT NOT NULL,
          owner TEXT NOT NULL,
          valid INTEGER NOT NULL DEFAULT 1,
          state TEXT NOT NULL,
          location TEXT,
          tags_json TEXT NOT NULL DEFAULT '{}',
          sort_order INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS host_cargo_bays (
          platform_id TEXT NOT NULL,
          bay_index INTEGER NOT NULL,
          slot_count INTEGER NOT NULL,
          PRIMARY KEY (platform_id, bay_index)
        );

        CREATE TABLE IF NOT EXISTS host_cargo_stacks (
          platform_id TEXT NOT NULL,
          bay_index INTEGER NOT NULL,
          slot_index INTEGER NOT NULL,
          item_id TEXT NOT NULL,
          count INTEGER NOT NULL,
          PRIMARY KEY (platform_id, bay_index, slot_index)
        );
        """
    )


def _migrations() -> List[Migration]:
    return [
        Migration("0001_initial", "Create transfer engine and host snapshot tables", _migration_0001_initial),
    ]


def apply_migrations(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
          migration_id TEXT PRIMARY KEY,
          description TEXT NOT NULL,
          applied_at REAL NOT NULL
        );
        """
    )

    applied = {
        str(r["migration_id"])
        for r in conn.execute("SELECT migration_id FROM schema_migrations").fetchall()
    }

    for migration in _migrations():
        if migration.migration_id in applied:
            continue
        migration.apply(conn)
        conn.execute(
            "INSERT INTO schema_migrations (migration_id,description,applied_at) VALUES (?,?,?)",
            (migration.migration_id, migration.description, time.time()),
        )
