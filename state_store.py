"""
SQLite persistence for the engine snapshot, the host platforms and the
simulation clock.

The engine itself only knows the abstract snapshot (see
TransferEngine.snapshot); this module is the host-side rendering of it.
Pending pods have already left their source, so an engine snapshot is only
consistent together with the host inventories saved alongside it.
Callers own the transaction: nothing here commits.
"""

import json
import sqlite3
import time
from typing import Any, Dict, List, Optional, Tuple

from sim_service import export_simulation_state, import_simulation_state

META_LAST_CYCLE_TICK = "last_cycle_tick"
META_LAST_TICK = "last_tick"
META_SNAPSHOT_SAVED = "snapshot_saved_at"
SIM_CLOCK_META_TICK_ANCHOR = "sim_tick_anchor"
SIM_CLOCK_META_PAUSED = "sim_paused"
META_HOST_SAVED = "host_saved_at"


def _set_meta(conn: sqlite3.Connection, key: str, value: Any) -> None:
    conn.execute("INSERT OR REPLACE INTO engine_meta (key,value) VALUES (?,?)", (key, str(value)))


def _get_meta(conn: sqlite3.Connection, key: str) -> Optional[str]:
    row = conn.execute("SELECT value FROM engine_meta WHERE key=?", (key,)).fetchone()
    return str(row["value"]) if row else None


def save_snapshot(conn: sqlite3.Connection, snapshot: Dict[str, Any]) -> None:
    conn.execute("DELETE FROM transfer_requests")
    conn.execute("DELETE FROM transfer_cooldowns")
    conn.execute("DELETE FROM transit_reservations")
    conn.execute("DELETE FROM pending_transfers")

    request_rows = []
    order = 0
    for platform_id, rows in (snapshot.get("requests") or {}).items():
        for req in rows:
            request_rows.append(
                (
                    str(platform_id),
                    str(req["item"]),
                    int(req["minimum"]),
                    int(req["requested"]),
                    int(req.get("last_processed") or 0),
                    order,
                )
            )
            order += 1
    conn.executemany(
        """
        INSERT INTO transfer_requests
          (platform_id, item_id, minimum_quantity, requested_quantity, last_processed, sort_order)
        VALUES (?,?,?,?,?,?)
        """,
        request_rows,
    )

    conn.executemany(
        "INSERT INTO transfer_cooldowns (dest_id,source_id,item_id,last_transfer_tick) VALUES (?,?,?,?)",
        [
            (str(c["dest"]), str(c["source"]), str(c["item"]), int(c["last_transfer_tick"]))
            for c in snapshot.get("cooldowns") or []
        ],
    )

    conn.executemany(
        "INSERT INTO transit_reservations (dest_id,item_id,quantity) VALUES (?,?,?)",
        [
            (str(r["dest"]), str(r["item"]), int(r["quantity"]))
            for r in snapshot.get("reservations") or []
        ],
    )

    conn.executemany(
        """
        INSERT INTO pending_transfers
          (transfer_id, source_id, dest_id, item_id, amount, eta_tick, created_tick, sort_order)
        VALUES (?,?,?,?,?,?,?,?)
        """,
        [
            (
                str(p["transfer_id"]),
                str(p["source"]),
                str(p["dest"]),
                str(p["item"]),
                int(p["amount"]),
                int(p["eta"]),
                int(p["created"]),
                idx,
            )
            for idx, p in enumerate(snapshot.get("pending_transfers") or [])
        ],
    )

    _set_meta(conn, META_LAST_CYCLE_TICK, int(snapshot.get("last_cycle_tick") or 0))
    last_tick = snapshot.get("last_tick")
    if last_tick is None:
        conn.execute("DELETE FROM engine_meta WHERE key=?", (META_LAST_TICK,))
    else:
        _set_meta(conn, META_LAST_TICK, int(last_tick))
    _set_meta(conn, META_SNAPSHOT_SAVED, time.time())


def load_snapshot(conn: sqlite3.Connection) -> Optional[Dict[str, Any]]:
    """Rebuild the snapshot; None when nothing has been saved yet."""
    if _get_meta(conn, META_SNAPSHOT_SAVED) is None:
        return None

    requests: Dict[str, List[Dict[str, Any]]] = {}
    for r in conn.execute(
        """
        SELECT platform_id,item_id,minimum_quantity,requested_quantity,last_processed
        FROM transfer_requests
        ORDER BY sort_order, platform_id, item_id
        """
    ).fetchall():
        requests.setdefault(str(r["platform_id"]), []).append(
            {
                "item": str(r["item_id"]),
                "minimum": int(r["minimum_quantity"]),
                "requested": int(r["requested_quantity"]),
                "last_processed": int(r["last_processed"]),
            }
        )

    cooldowns = [
        {
            "dest": str(r["dest_id"]),
            "source": str(r["source_id"]),
            "item": str(r["item_id"]),
            "last_transfer_tick": int(r["last_transfer_tick"]),
        }
        for r in conn.execute(
            "SELECT dest_id,source_id,item_id,last_transfer_tick FROM transfer_cooldowns"
        ).fetchall()
    ]

    reservations = [
        {"dest": str(r["dest_id"]), "item": str(r["item_id"]), "quantity": int(r["quantity"])}
        for r in conn.execute("SELECT dest_id,item_id,quantity FROM transit_reservations").fetchall()
    ]

    pending = [
        {
            "transfer_id": str(r["transfer_id"]),
            "source": str(r["source_id"]),
            "dest": str(r["dest_id"]),
            "item": str(r["item_id"]),
            "amount": int(r["amount"]),
            "eta": int(r["eta_tick"]),
            "created": int(r["created_tick"]),
        }
        for r in conn.execute(
            """
            SELECT transfer_id,source_id,dest_id,item_id,amount,eta_tick,created_tick
            FROM pending_transfers
            ORDER BY sort_order
            """
        ).fetchall()
    ]

    last_tick_raw = _get_meta(conn, META_LAST_TICK)
    return {
        "requests": requests,
        "cooldowns": cooldowns,
        "reservations": reservations,
        "pending_transfers": pending,
        "last_cycle_tick": int(_get_meta(conn, META_LAST_CYCLE_TICK) or 0),
        "last_tick": int(last_tick_raw) if last_tick_raw is not None else None,
    }


# ── Simulation clock persistence ─────────────────────────────────────────

def persist_simulation_clock_state(conn: sqlite3.Connection) -> None:
    state = export_simulation_state()
    _set_meta(conn, SIM_CLOCK_META_TICK_ANCHOR, int(state["tick_anchor"]))
    _set_meta(conn, SIM_CLOCK_META_PAUSED, "1" if bool(state["paused"]) else "0")


def load_simulation_clock_state(conn: sqlite3.Connection) -> None:
    tick_raw = _get_meta(conn, SIM_CLOCK_META_TICK_ANCHOR)
    paused_raw = _get_meta(conn, SIM_CLOCK_META_PAUSED)

    if tick_raw is None or paused_raw is None:
        persist_simulation_clock_state(conn)
        return

    try:
        tick_anchor = int(tick_raw)
        paused = str(paused_raw).strip().lower() in {"1", "true", "yes", "on"}
    except (TypeError, ValueError):
        persist_simulation_clock_state(conn)
        return

    # Resume from the saved tick; downtime does not count as game time.
    import_simulation_state(time.time(), tick_anchor, paused)


# ── Host platform persistence ────────────────────────────────────────────

def save_host_state(conn: sqlite3.Connection, platforms: List[Dict[str, Any]]) -> None:
    conn.execute("DELETE FROM host_platforms")
    conn.execute("DELETE FROM host_cargo_bays")
    conn.execute("DELETE FROM host_cargo_stacks")

    bay_rows = []
    stack_rows = []
    for order, p in enumerate(platforms):
        pid = str(p["platform_id"])
        conn.execute(
            """
            INSERT INTO host_platforms
              (platform_id, name, owner, valid, state, location, tags_json, sort_order)
            VALUES (?,?,?,?,?,?,?,?)
            """,
            (
                pid,
                str(p["name"]),
                str(p["owner"]),
                1 if p.get("valid", True) else 0,
                str(p["state"]),
                p.get("location"),
                json.dumps(p.get("tags") or {}, sort_keys=True),
                order,
            ),
        )
        for bay_index, bay in enumerate(p.get("bays") or []):
            bay_rows.append((pid, bay_index, int(bay["slot_count"])))
            for stack in bay.get("stacks") or []:
                stack_rows.append((pid, bay_index, int(stack["slot"]), str(stack["item"]), int(stack["count"])))

    conn.executemany(
        "INSERT INTO host_cargo_bays (platform_id,bay_index,slot_count) VALUES (?,?,?)",
        bay_rows,
    )
    conn.executemany(
        "INSERT INTO host_cargo_stacks (platform_id,bay_index,slot_index,item_id,count) VALUES (?,?,?,?,?)",
        stack_rows,
    )
    _set_meta(conn, META_HOST_SAVED, time.time())


def load_host_state(conn: sqlite3.Connection) -> Optional[List[Dict[str, Any]]]:
    """Rebuild the exported platform list; None when no host was saved."""
    if _get_meta(conn, META_HOST_SAVED) is None:
        return None

    stacks: Dict[Tuple[str, int], List[Dict[str, Any]]] = {}
    for r in conn.execute(
        "SELECT platform_id,bay_index,slot_index,item_id,count FROM host_cargo_stacks ORDER BY slot_index"
    ).fetchall():
        stacks.setdefault((str(r["platform_id"]), int(r["bay_index"])), []).append(
            {"slot": int(r["slot_index"]), "item": str(r["item_id"]), "count": int(r["count"])}
        )

    bays: Dict[str, List[Dict[str, Any]]] = {}
    for r in conn.execute(
        "SELECT platform_id,bay_index,slot_count FROM host_cargo_bays ORDER BY platform_id, bay_index"
    ).fetchall():
        pid = str(r["platform_id"])
        bays.setdefault(pid, []).append(
            {"slot_count": int(r["slot_count"]), "stacks": stacks.get((pid, int(r["bay_index"])), [])}
        )

    platforms = []
    for r in conn.execute(
        """
        SELECT platform_id,name,owner,valid,state,location,tags_json
        FROM host_platforms
        ORDER BY sort_order
        """
    ).fetchall():
        pid = str(r["platform_id"])
        try:
            tags = json.loads(r["tags_json"] or "{}")
        except json.JSONDecodeError:
            tags = {}
        platforms.append(
            {
                "platform_id": pid,
                "name": str(r["name"]),
                "owner": str(r["owner"]),
                "valid": bool(r["valid"]),
                "state": str(r["state"]),
                "location": r["location"],
                "tags": tags if isinstance(tags, dict) else {},
                "bays": bays.get(pid, []),
            }
        )
    return platforms
