"""
Shared pytest fixtures for the orbital transfer request tests.

Provides:
  - In-memory SQLite DB with migrations applied
  - FastAPI TestClient on a throwaway database file
  - A fresh in-memory host and a transfer engine wired to it
  - Helper functions for spawning and stocking platforms
"""

import os
import sqlite3
import sys
import tempfile
from pathlib import Path
from typing import Dict, Generator, Optional

import pytest

# ---------------------------------------------------------------------------
# Ensure the project root is on sys.path so we can import app modules
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Use a writable temp directory for the test DB so the app startup succeeds.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="transfers_test_")
os.environ["DB_DIR"] = _TEST_DB_DIR
os.environ["SEED_BASELINE_PLATFORMS"] = "1"
os.environ["RESTORE_TRANSFER_SNAPSHOT"] = "0"


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def db_conn() -> Generator[sqlite3.Connection, None, None]:
    """Yield an in-memory SQLite connection with all migrations applied."""
    from db_migrations import apply_migrations

    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    apply_migrations(conn)

    yield conn
    conn.close()


# ---------------------------------------------------------------------------
# FastAPI TestClient
# ---------------------------------------------------------------------------

@pytest.fixture()
def client():
    """Return a Starlette TestClient wired to the FastAPI app.

    The database file is removed first so clock and snapshot state from an
    earlier test never leaks into this one.
    """
    from fastapi.testclient import TestClient
    from db import DB_PATH
    from main import app

    for suffix in ("", "-wal", "-shm"):
        path = Path(str(DB_PATH) + suffix)
        if path.exists():
            path.unlink()

    with TestClient(app) as c:
        yield c


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def host():
    from sim_host import HostSimulation
    return HostSimulation()


@pytest.fixture()
def config():
    from transfer_config import TransferConfig
    return TransferConfig()


@pytest.fixture()
def landings():
    from sim_host import LandingLog
    return LandingLog()


@pytest.fixture()
def engine(host, config, landings):
    from transfer_engine import TransferEngine
    return TransferEngine(host, host, config, delivery_hook=landings)


# ---------------------------------------------------------------------------
# Test data helpers
# ---------------------------------------------------------------------------

class TestHelpers:
    """Stateless helper methods for common test-data operations."""

    @staticmethod
    def spawn(
        host,
        platform_id: str,
        *,
        location: Optional[str] = "nauvis",
        name: Optional[str] = None,
        owner: str = "player",
        slots: int = 40,
        bays: int = 1,
        tags: Optional[Dict[str, str]] = None,
        stock: Optional[Dict[str, int]] = None,
    ):
        platform = host.spawn_platform(
            name or platform_id,
            platform_id=platform_id,
            owner=owner,
            location=location,
            tags=tags,
            bays=bays,
            slots_per_bay=slots,
        )
        for item_id, count in (stock or {}).items():
            assert host.stock(platform_id, item_id, count) == count
        return platform

    @staticmethod
    def pending_sum(engine, dest_id: str, item_id: str) -> int:
        return sum(p.amount for p in engine.ledger.pending_for(dest_id, item_id))


@pytest.fixture()
def helpers() -> TestHelpers:
    return TestHelpers()


# ---------------------------------------------------------------------------
# Simulation clock helpers
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _reset_sim_clock():
    """Ensure the simulation clock is reset between tests."""
    from sim_service import reset_simulation_clock
    reset_simulation_clock()
    yield
    reset_simulation_clock()
