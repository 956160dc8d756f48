"""
Transfer scheduler tests — the matching cycle end to end against the
in-memory host.

Coverage:
  - Request registry: upsert, validation, removal, lookups
  - Commit amount = min(source stock, requested, destination space)
  - Minimum enforcement (no partial dribbles)
  - Per-cycle quota bound
  - Cooldown spacing between commits of the same (dest, source, item)
  - Mutual-need deadlock between two platforms
  - Invalid destinations purged mid-cycle
  - Reservation == sum of pending pods after every commit
"""

import pytest

from transfer_config import TransferConfig
from transfer_engine import TransferEngine


# ── Request registry ──────────────────────────────────────────────────────

class TestRequestRegistry:
    def test_register_and_get(self, engine, host, helpers):
        helpers.spawn(host, "a")
        assert engine.register_request("a", "iron-plate", 100, 1000) is True
        req = engine.get_request("a", "iron-plate")
        assert req is not None
        assert (req.item, req.minimum, req.requested, req.last_processed) == ("iron-plate", 100, 1000, 0)

    def test_requested_defaults_to_minimum(self, engine, host, helpers):
        helpers.spawn(host, "a")
        assert engine.register_request("a", "iron-plate", 25)
        assert engine.get_request("a", "iron-plate").requested == 25

    def test_minimum_defaults_to_one(self, engine, host, helpers):
        helpers.spawn(host, "a")
        assert engine.register_request("a", "iron-plate")
        req = engine.get_request("a", "iron-plate")
        assert req.minimum == 1
        assert req.requested == 1

    @pytest.mark.parametrize("minimum,requested", [(0, 10), (-5, 10), (10, 5)])
    def test_rejects_invalid_quantities(self, engine, host, helpers, minimum, requested):
        helpers.spawn(host, "a")
        assert engine.register_request("a", "iron-plate", minimum, requested) is False
        assert engine.get_requests("a") == {}

    @pytest.mark.parametrize("minimum,requested", [("lots", 10), (5, "abc"), ([1], 10), (5, object())])
    def test_rejects_non_numeric_quantities(self, engine, host, helpers, minimum, requested):
        helpers.spawn(host, "a")
        assert engine.register_request("a", "iron-plate", minimum, requested) is False
        assert engine.get_requests("a") == {}

    def test_rejects_invalid_platform(self, engine, host, helpers):
        assert engine.register_request("ghost", "iron-plate", 1, 1) is False
        helpers.spawn(host, "a")
        host.destroy_platform("a")
        assert engine.register_request("a", "iron-plate", 1, 1) is False

    def test_rejects_blank_item(self, engine, host, helpers):
        helpers.spawn(host, "a")
        assert engine.register_request("a", "  ", 1, 1) is False

    def test_upsert_is_last_write_wins_and_resets_last_processed(self, engine, host, helpers):
        helpers.spawn(host, "a", slots=10)
        helpers.spawn(host, "b", stock={"iron-plate": 500})
        engine.register_request("a", "iron-plate", 10, 100)
        engine.process_cycle(60)
        assert engine.get_request("a", "iron-plate").last_processed == 60

        engine.register_request("a", "iron-plate", 20, 200)
        req = engine.get_request("a", "iron-plate")
        assert (req.minimum, req.requested, req.last_processed) == (20, 200, 0)
        assert len(engine.get_requests("a")) == 1

    def test_one_request_per_item_many_items(self, engine, host, helpers):
        helpers.spawn(host, "a")
        engine.register_request("a", "iron-plate", 1, 10)
        engine.register_request("a", "copper-plate", 1, 10)
        assert list(engine.get_requests("a")) == ["iron-plate", "copper-plate"]

    def test_remove_request(self, engine, host, helpers):
        helpers.spawn(host, "a")
        engine.register_request("a", "iron-plate", 1, 10)
        assert engine.remove_request("a", "iron-plate") is True
        assert engine.get_request("a", "iron-plate") is None
        # Removing an absent item is still a success for a valid platform
        assert engine.remove_request("a", "iron-plate") is True
        assert engine.remove_request("ghost", "iron-plate") is False

    def test_get_requests_returns_copies(self, engine, host, helpers):
        helpers.spawn(host, "a")
        engine.register_request("a", "iron-plate", 1, 10)
        engine.get_requests("a")["iron-plate"].requested = 999
        assert engine.get_request("a", "iron-plate").requested == 10


# ── Cycle scenarios ───────────────────────────────────────────────────────

class TestCycleScenarios:
    def test_commit_is_clamped_to_destination_space(self, engine, host, helpers):
        # 3 empty slots of iron-plate (stack 100) = 300 free
        helpers.spawn(host, "a", slots=3)
        helpers.spawn(host, "b", stock={"iron-plate": 500})
        engine.register_request("a", "iron-plate", 100, 1000)

        report = engine.process_cycle(60)

        assert report.committed == 1
        pending = engine.pending_transfers()
        assert len(pending) == 1
        assert pending[0].amount == 300
        assert pending[0].source == "b" and pending[0].dest == "a"
        assert host.contents("b")["iron-plate"] == 200
        req = engine.get_request("a", "iron-plate")
        assert req is not None, "request must stay registered after a commit"
        assert req.last_processed == 60

    def test_commit_takes_everything_up_to_requested(self, engine, host, helpers):
        helpers.spawn(host, "a")
        helpers.spawn(host, "b", stock={"iron-plate": 500})
        engine.register_request("a", "iron-plate", 100, 1000)
        engine.process_cycle(0)
        assert engine.pending_transfers()[0].amount == 500
        assert "iron-plate" not in host.contents("b")

    def test_requested_caps_the_amount(self, engine, host, helpers):
        helpers.spawn(host, "a")
        helpers.spawn(host, "b", stock={"iron-plate": 500})
        engine.register_request("a", "iron-plate", 10, 120)
        engine.process_cycle(0)
        assert engine.pending_transfers()[0].amount == 120
        assert host.contents("b")["iron-plate"] == 380

    def test_source_below_minimum_commits_nothing(self, engine, host, helpers):
        helpers.spawn(host, "a")
        helpers.spawn(host, "b", stock={"iron-plate": 50})
        engine.register_request("a", "iron-plate", 100, 1000)

        report = engine.process_cycle(60)

        assert report.committed == 0
        assert engine.pending_transfers() == []
        assert host.contents("b") == {"iron-plate": 50}
        assert len(engine.cooldowns) == 0
        assert engine.get_request("a", "iron-plate").last_processed == 0

    def test_destination_space_below_minimum_rejects_peer(self, engine, host, helpers):
        helpers.spawn(host, "a", slots=1)  # 100 free
        helpers.spawn(host, "b", stock={"iron-plate": 500})
        engine.register_request("a", "iron-plate", 150, 500)
        assert engine.process_cycle(0).committed == 0
        assert host.contents("b")["iron-plate"] == 500

    def test_rejected_peer_falls_through_to_next_peer(self, engine, host, helpers):
        helpers.spawn(host, "a")
        helpers.spawn(host, "poor", stock={"iron-plate": 20})
        helpers.spawn(host, "rich", stock={"iron-plate": 400})
        engine.register_request("a", "iron-plate", 100, 1000)
        engine.process_cycle(0)
        pending = engine.pending_transfers()
        assert [(p.source, p.amount) for p in pending] == [("rich", 400)]

    def test_one_commit_per_request_per_cycle(self, engine, host, helpers):
        helpers.spawn(host, "a")
        helpers.spawn(host, "b", stock={"iron-plate": 100})
        helpers.spawn(host, "c", stock={"iron-plate": 100})
        engine.register_request("a", "iron-plate", 10, 1000)
        assert engine.process_cycle(0).committed == 1
        assert len(engine.pending_transfers()) == 1

    def test_each_request_of_a_destination_is_served(self, engine, host, helpers):
        helpers.spawn(host, "a")
        helpers.spawn(host, "b", stock={"iron-plate": 100, "copper-plate": 100})
        engine.register_request("a", "iron-plate", 10, 50)
        engine.register_request("a", "copper-plate", 10, 50)
        assert engine.process_cycle(0).committed == 2
        assert sorted(p.item for p in engine.pending_transfers()) == ["copper-plate", "iron-plate"]

    def test_no_transfer_across_orbits(self, engine, host, helpers):
        helpers.spawn(host, "a", location="nauvis")
        helpers.spawn(host, "b", location="vulcanus", stock={"iron-plate": 500})
        engine.register_request("a", "iron-plate", 10, 100)
        assert engine.process_cycle(0).committed == 0

    def test_travelling_destination_is_skipped_not_purged(self, engine, host, helpers):
        helpers.spawn(host, "a")
        helpers.spawn(host, "b", stock={"iron-plate": 500})
        engine.register_request("a", "iron-plate", 10, 100)
        host.depart("a")
        report = engine.process_cycle(0)
        assert report.committed == 0
        assert report.purged_platforms == []
        assert engine.get_request("a", "iron-plate") is not None

    def test_ship_to_ship_is_not_scheduled(self, engine, host, helpers):
        helpers.spawn(host, "a", name="alpha-ship")
        helpers.spawn(host, "b", name="beta-ship", stock={"iron-plate": 500})
        engine.register_request("a", "iron-plate", 10, 100)
        assert engine.process_cycle(0).committed == 0
        helpers.spawn(host, "s", name="hub-station", stock={"iron-plate": 500})
        assert engine.process_cycle(60).committed == 1
        assert engine.pending_transfers()[0].source == "s"

    def test_invalid_destination_is_purged(self, engine, host, helpers):
        helpers.spawn(host, "a")
        helpers.spawn(host, "b", stock={"iron-plate": 500})
        engine.register_request("a", "iron-plate", 10, 100)
        host.destroy_platform("a")
        report = engine.process_cycle(0)
        assert report.purged_platforms == ["a"]
        assert engine.scheduler.requests_for("a") == {}

    def test_cycle_records_last_cycle_tick(self, engine):
        engine.process_cycle(120)
        assert engine.scheduler.last_cycle_tick == 120
        assert engine.snapshot()["last_cycle_tick"] == 120


# ── Properties ────────────────────────────────────────────────────────────

class TestSchedulerProperties:
    def test_quota_bound(self, host, helpers):
        engine = TransferEngine(host, host, TransferConfig(max_transfers_per_cycle=10))
        helpers.spawn(host, "source", bays=2, stock={"iron-plate": 6000})
        for i in range(15):
            helpers.spawn(host, f"dest_{i:02d}")
            engine.register_request(f"dest_{i:02d}", "iron-plate", 10, 100)

        first = engine.process_cycle(0)
        assert first.committed == 10
        assert first.quota_reached is True

        # Deferred destinations are served on the next cycle without penalty
        second = engine.process_cycle(60)
        assert second.committed == 5
        assert second.quota_reached is False
        assert {p.dest for p in engine.pending_transfers()} == {f"dest_{i:02d}" for i in range(15)}

    def test_quota_counts_across_requests_of_one_destination(self, host, helpers):
        engine = TransferEngine(host, host, TransferConfig(max_transfers_per_cycle=2))
        helpers.spawn(host, "a")
        helpers.spawn(host, "b", stock={"iron-plate": 100, "copper-plate": 100, "steel-plate": 100})
        for item in ("iron-plate", "copper-plate", "steel-plate"):
            engine.register_request("a", item, 10, 10)
        assert engine.process_cycle(0).committed == 2

    def test_minimum_is_never_violated(self, engine, host, helpers, landings):
        helpers.spawn(host, "a", slots=2)  # 200 free
        for i, stock in enumerate((5, 40, 90, 250)):
            helpers.spawn(host, f"s{i}", stock={"iron-plate": stock})
        engine.register_request("a", "iron-plate", 60, 1000)
        for tick in range(0, 1200, 60):
            engine.process_cycle(tick)
            engine.resolve_arrivals(tick)

        amounts = [l.amount for l in landings.recent()]
        assert amounts == [90, 110]
        assert all(amount >= 60 for amount in amounts)
        assert host.contents("a") == {"iron-plate": 200}
        assert host.contents("s3") == {"iron-plate": 140}

    def test_cooldown_spacing(self, engine, host, helpers, config):
        helpers.spawn(host, "a")
        helpers.spawn(host, "b", stock={"iron-plate": 1000})
        engine.register_request("a", "iron-plate", 10, 50)

        commits = []
        for tick in range(0, 1200, 60):
            if engine.process_cycle(tick).committed:
                commits.append(tick)

        assert commits == [0, 300, 600, 900]
        for earlier, later in zip(commits, commits[1:]):
            assert later - earlier >= config.cooldown_ticks

    def test_cooldown_is_per_source(self, engine, host, helpers):
        helpers.spawn(host, "a")
        helpers.spawn(host, "b", stock={"iron-plate": 1000})
        helpers.spawn(host, "c", stock={"iron-plate": 1000})
        engine.register_request("a", "iron-plate", 10, 50)
        engine.process_cycle(0)
        engine.process_cycle(60)
        assert [p.source for p in engine.pending_transfers()] == ["b", "c"]

    def test_mutual_need_deadlock_blocks_both_directions(self, engine, host, helpers):
        helpers.spawn(host, "a", stock={"copper-plate": 200})
        helpers.spawn(host, "b", stock={"iron-plate": 500})
        engine.register_request("a", "iron-plate", 100, 500)
        engine.register_request("b", "copper-plate", 100, 200)

        assert engine.scheduler.deadlock.would_deadlock("b", "a", "iron-plate") is True
        assert engine.scheduler.deadlock.would_deadlock("a", "b", "copper-plate") is True
        assert engine.process_cycle(0).committed == 0
        assert host.contents("a") == {"copper-plate": 200}
        assert host.contents("b") == {"iron-plate": 500}

    def test_reservation_matches_pending_after_commits(self, engine, host, helpers):
        helpers.spawn(host, "a")
        helpers.spawn(host, "b", stock={"iron-plate": 1000})
        helpers.spawn(host, "c", stock={"iron-plate": 1000})
        engine.register_request("a", "iron-plate", 10, 150)
        for tick in (0, 60, 120):
            engine.process_cycle(tick)
            assert engine.ledger.reserved("a", "iron-plate") == helpers.pending_sum(engine, "a", "iron-plate")
        assert engine.ledger.reserved("a", "iron-plate") == 300

    def test_reservation_limits_following_commits(self, engine, host, helpers):
        helpers.spawn(host, "a", slots=3)  # 300 free
        helpers.spawn(host, "b", stock={"iron-plate": 1000})
        helpers.spawn(host, "c", stock={"iron-plate": 1000})
        engine.register_request("a", "iron-plate", 50, 200)
        engine.process_cycle(0)  # 200 from b
        engine.process_cycle(60)  # only 100 left, from c
        assert [(p.source, p.amount) for p in engine.pending_transfers()] == [("b", 200), ("c", 100)]
        assert engine.available_to_receive("a", "iron-plate") == 0
        assert engine.process_cycle(360).committed == 0
