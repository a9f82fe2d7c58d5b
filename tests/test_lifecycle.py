"""Tests for the DCA position lifecycle engine."""

import asyncio
import logging
from unittest.mock import patch

import httpx
import pytest

from smart_dca.engine.errors import Outcome, StorageFailure
from smart_dca.engine.lifecycle import fixed_point_price, split_allocation, to_smallest_units
from smart_dca.models.position import PositionStatus
from smart_dca.services.cetus_router import CetusRouter
from tests.conftest import T0, WEEK_MS, make_config

DAY_MS = 86_400_000


def _snapshot(position):
    return (
        position.executed_periods,
        position.total_invested,
        position.total_acquired,
        position.average_price,
        position.next_execution_time,
        position.status,
        position.last_tx_digest,
    )


# ---------------------------------------------------------------------------
# 1. Pure helpers
# ---------------------------------------------------------------------------

class TestHelpers:
    def test_to_smallest_units(self):
        assert to_smallest_units("100") == 100_000000
        assert to_smallest_units("12.5") == 12_500000

    def test_to_smallest_units_rounds_down(self):
        assert to_smallest_units("10.1234567") == 10_123456

    def test_fixed_point_price_decimal_aware(self):
        # 100 USDC for 25.5 SUI
        assert fixed_point_price(100_000000, 25_500000000, 9) == 3_921568627

    def test_fixed_point_price_nothing_received(self):
        assert fixed_point_price(100_000000, 0, 9) == 0

    def test_split_allocation_last_leg_takes_remainder(self):
        tokens = [{"symbol": "SUI", "percentage": 50}, {"symbol": "CETUS", "percentage": 50}]
        legs = split_allocation(101, tokens)
        assert [amount for _, amount in legs] == [50, 51]

    def test_split_allocation_sums_to_amount(self):
        tokens = [
            {"symbol": "SUI", "percentage": 33},
            {"symbol": "CETUS", "percentage": 33},
            {"symbol": "DEEP", "percentage": 34},
        ]
        legs = split_allocation(100_000001, tokens)
        assert sum(amount for _, amount in legs) == 100_000001


# ---------------------------------------------------------------------------
# 2. Creation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_position(engine, store):
    position = await engine.create("0xowner", make_config())

    assert position.id.startswith("dca_")
    assert position.status == PositionStatus.ACTIVE
    assert position.executed_periods == 0
    assert position.amount_per_period == 100_000000
    assert position.interval_ms == WEEK_MS
    assert position.next_execution_time == T0 + WEEK_MS
    assert position.total_invested == 0
    assert position.average_price == 0

    stored = store.get(position.id)
    assert stored is not None
    assert stored.target_tokens[0]["symbol"] == "SUI"


@pytest.mark.asyncio
async def test_create_generates_distinct_ids(engine, clock):
    first = await engine.create("0xowner", make_config())
    clock.advance(1)
    second = await engine.create("0xowner", make_config())
    assert first.id != second.id
    assert [p.id for p in engine.get_user_positions("0xowner")] == [first.id, second.id]


# ---------------------------------------------------------------------------
# 3. Execution
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_execute_accumulates_period(engine, store, clock, router):
    position = await engine.create("0xowner", make_config())
    clock.advance(WEEK_MS)

    outcome = await engine.execute(position.id)

    assert outcome == Outcome.OK
    updated = store.get(position.id)
    assert updated.executed_periods == 1
    assert updated.total_invested == 100_000000
    assert updated.total_acquired == 25_500000000
    assert updated.average_price == 3_921568627
    assert updated.status == PositionStatus.ACTIVE
    assert updated.next_execution_time == clock.now + WEEK_MS
    assert updated.last_tx_digest == "0xdigest1"

    records = store.get_executions(position.id)
    assert len(records) == 1
    assert records[0].period_number == 1
    assert records[0].amount_spent == 100_000000
    assert records[0].amount_received == 25_500000000
    assert records[0].price == 3_921568627


@pytest.mark.asyncio
async def test_execute_not_due(engine, store, router):
    position = await engine.create("0xowner", make_config())

    assert await engine.execute(position.id) == Outcome.NOT_DUE
    assert router.quotes == []
    assert store.get(position.id).executed_periods == 0


@pytest.mark.asyncio
async def test_execute_unknown_position(engine):
    assert await engine.execute("dca_missing") == Outcome.NOT_FOUND


@pytest.mark.asyncio
async def test_execute_paused_position_is_noop(engine, store, clock, router):
    position = await engine.create("0xowner", make_config())
    await engine.pause(position.id)
    clock.advance(WEEK_MS)

    assert await engine.execute(position.id) == Outcome.INVALID_TRANSITION
    assert router.quotes == []
    assert store.get(position.id).executed_periods == 0


@pytest.mark.asyncio
async def test_router_failure_leaves_position_untouched(engine, store, clock, router, caplog):
    position = await engine.create("0xowner", make_config())
    clock.advance(WEEK_MS)
    before = _snapshot(store.get(position.id))
    router.fail_quote = True

    with caplog.at_level(logging.ERROR):
        outcome = await engine.execute(position.id)

    assert outcome == Outcome.ROUTER_FAILURE
    assert not outcome
    assert _snapshot(store.get(position.id)) == before
    assert store.get_executions(position.id) == []
    assert "router failure" in caplog.text


@pytest.mark.asyncio
async def test_failed_swap_leaves_position_untouched(engine, store, clock, router):
    position = await engine.create("0xowner", make_config())
    clock.advance(WEEK_MS)
    before = _snapshot(store.get(position.id))
    router.fail_swap_for = {"SUI"}

    assert await engine.execute(position.id) == Outcome.ROUTER_FAILURE
    assert _snapshot(store.get(position.id)) == before


@pytest.mark.asyncio
async def test_failed_position_retries_next_sweep(engine, store, clock, router):
    position = await engine.create("0xowner", make_config())
    clock.advance(WEEK_MS)
    router.fail_quote = True
    await engine.execute(position.id)

    router.fail_quote = False
    clock.advance(5 * 60_000)
    assert await engine.execute(position.id) == Outcome.OK
    assert store.get(position.id).executed_periods == 1


@pytest.mark.asyncio
async def test_last_period_completes_position(engine, store, clock, router):
    position = await engine.create("0xowner", make_config(total_periods=1))
    clock.advance(WEEK_MS)

    assert await engine.execute(position.id) == Outcome.COMPLETED

    completed = store.get(position.id)
    assert completed.status == PositionStatus.COMPLETED
    assert completed.executed_periods == completed.total_periods
    assert position.id not in [p.id for p in engine.get_active_positions()]

    clock.advance(WEEK_MS)
    quotes_before = len(router.quotes)
    report = await engine.run_due_sweep()
    assert report.checked == 0
    assert len(router.quotes) == quotes_before


@pytest.mark.asyncio
async def test_invested_tracks_executed_periods(engine, store, clock):
    position = await engine.create("0xowner", make_config(total_periods=3))
    for _ in range(3):
        clock.advance(WEEK_MS)
        assert (await engine.execute(position.id)).ok

        current = store.get(position.id)
        assert current.total_invested == current.executed_periods * current.amount_per_period
        assert current.executed_periods <= current.total_periods

    assert store.get(position.id).status == PositionStatus.COMPLETED
    assert len(store.get_executions(position.id)) == 3


@pytest.mark.asyncio
async def test_concurrent_executes_run_one_period(engine, store, clock, router):
    position = await engine.create("0xowner", make_config())
    clock.advance(WEEK_MS)

    outcomes = await asyncio.gather(engine.execute(position.id), engine.execute(position.id))

    assert sorted(outcomes) == sorted([Outcome.OK, Outcome.NOT_DUE])
    assert store.get(position.id).executed_periods == 1
    assert len(router.swaps) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "transition, status",
    [("pause", PositionStatus.PAUSED), ("close", PositionStatus.CLOSED)],
)
async def test_transition_waits_for_in_flight_execute(engine, store, clock, router, transition, status):
    position = await engine.create("0xowner", make_config())
    clock.advance(WEEK_MS)
    router.gate = asyncio.Event()

    executing = asyncio.create_task(engine.execute(position.id))
    await asyncio.wait_for(router.entered.wait(), timeout=1)
    transitioning = asyncio.create_task(getattr(engine, transition)(position.id))
    await asyncio.sleep(0)
    assert not transitioning.done()

    router.gate.set()
    assert await executing == Outcome.OK
    assert await transitioning == Outcome.OK

    final = store.get(position.id)
    assert final.executed_periods == 1
    assert final.total_invested == 100_000000
    assert final.status == status
    assert len(store.get_executions(position.id)) == 1


@pytest.mark.asyncio
async def test_locks_released_for_unknown_ids(engine):
    for i in range(1000):
        assert await engine.pause(f"dca_missing_{i}") == Outcome.NOT_FOUND

    assert len(engine._locks) == 0


@pytest.mark.asyncio
async def test_lock_released_after_transition(engine):
    position = await engine.create("0xowner", make_config())
    assert await engine.pause(position.id) == Outcome.OK
    assert await engine.resume(position.id) == Outcome.OK

    assert position.id not in engine._locks


# ---------------------------------------------------------------------------
# 4. Strategies
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_multi_token_splits_by_percentage(engine, store, clock, router):
    router.amount_out = {"SUI": 8_000000000, "CETUS": 500_000000000}
    config = make_config(
        strategy="multi_token",
        target_tokens=[{"symbol": "SUI", "percentage": 33}, {"symbol": "CETUS", "percentage": 67}],
    )
    position = await engine.create("0xowner", config)
    clock.advance(WEEK_MS)

    assert await engine.execute(position.id) == Outcome.OK

    assert [(r.to_token, r.amount_in) for r in router.swaps] == [("SUI", 33_000000), ("CETUS", 67_000000)]
    updated = store.get(position.id)
    assert updated.total_invested == 100_000000
    assert updated.total_acquired == 508_000000000
    records = store.get_executions(position.id)
    assert [r.target_symbol for r in records] == ["SUI", "CETUS"]
    assert sum(r.amount_spent for r in records) == 100_000000


@pytest.mark.asyncio
async def test_multi_token_partial_failure_records_settled_legs(engine, store, clock, router, caplog):
    router.amount_out = {"SUI": 8_000000000, "CETUS": 500_000000000}
    router.fail_swap_for = {"CETUS"}
    config = make_config(
        strategy="multi_token",
        target_tokens=[{"symbol": "SUI", "percentage": 50}, {"symbol": "CETUS", "percentage": 50}],
    )
    position = await engine.create("0xowner", config)
    clock.advance(WEEK_MS)
    before = _snapshot(store.get(position.id))

    with caplog.at_level(logging.ERROR):
        assert await engine.execute(position.id) == Outcome.ROUTER_FAILURE

    assert _snapshot(store.get(position.id)) == before
    assert "Partial execution" in caplog.text
    records = store.get_executions(position.id)
    assert [(r.period_number, r.target_symbol, r.amount_spent) for r in records] == [(1, "SUI", 50_000000)]


@pytest.mark.asyncio
async def test_retry_after_partial_failure_skips_settled_legs(engine, store, clock, router):
    router.amount_out = {"SUI": 8_000000000, "CETUS": 500_000000000}
    router.fail_swap_for = {"CETUS"}
    config = make_config(
        strategy="multi_token",
        target_tokens=[{"symbol": "SUI", "percentage": 50}, {"symbol": "CETUS", "percentage": 50}],
    )
    position = await engine.create("0xowner", config)
    clock.advance(WEEK_MS)
    await engine.execute(position.id)

    router.fail_swap_for = set()
    router.swaps.clear()
    clock.advance(5 * 60_000)
    assert await engine.execute(position.id) == Outcome.OK

    assert [r.to_token for r in router.swaps] == ["CETUS"]
    updated = store.get(position.id)
    assert updated.executed_periods == 1
    assert updated.total_invested == 100_000000
    assert updated.total_acquired == 508_000000000
    records = store.get_executions(position.id)
    assert sorted(r.target_symbol for r in records) == ["CETUS", "SUI"]
    assert {r.period_number for r in records} == {1}
    assert sum(r.amount_spent for r in records) == 100_000000

    # The next period buys both legs again
    router.swaps.clear()
    clock.advance(WEEK_MS)
    assert await engine.execute(position.id) == Outcome.OK
    assert [r.to_token for r in router.swaps] == ["SUI", "CETUS"]
    assert len(store.get_executions(position.id)) == 4


@pytest.mark.asyncio
async def test_limit_price_waits_when_quote_above_limit(engine, store, clock, router):
    # Quote is ~3.92 USDC per SUI
    position = await engine.create("0xowner", make_config(strategy="limit_price", limit_price=3.5))
    clock.advance(WEEK_MS)
    before = _snapshot(store.get(position.id))

    outcome = await engine.execute(position.id)

    assert outcome == Outcome.PRICE_ABOVE_LIMIT
    assert router.swaps == []
    assert _snapshot(store.get(position.id)) == before


@pytest.mark.asyncio
async def test_limit_price_buys_when_quote_below_limit(engine, store, clock, router):
    position = await engine.create("0xowner", make_config(strategy="limit_price", limit_price=4.0))
    clock.advance(WEEK_MS)

    assert await engine.execute(position.id) == Outcome.OK
    assert store.get(position.id).executed_periods == 1


# ---------------------------------------------------------------------------
# 5. Pause / resume / close
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_resume_reschedules_from_resume_time(engine, store, clock):
    position = await engine.create("0xowner", make_config())
    clock.advance(WEEK_MS)
    await engine.execute(position.id)
    stale_next = store.get(position.id).next_execution_time

    assert await engine.pause(position.id) == Outcome.OK
    assert store.get(position.id).status == PositionStatus.PAUSED

    clock.advance(3 * DAY_MS)
    assert await engine.resume(position.id) == Outcome.OK

    resumed = store.get(position.id)
    assert resumed.status == PositionStatus.ACTIVE
    assert resumed.next_execution_time == clock.now + WEEK_MS
    assert resumed.next_execution_time != stale_next
    assert resumed.executed_periods == 1


@pytest.mark.asyncio
async def test_pause_only_from_active(engine, clock):
    position = await engine.create("0xowner", make_config())
    await engine.pause(position.id)
    assert await engine.pause(position.id) == Outcome.INVALID_TRANSITION

    await engine.close(position.id)
    assert await engine.pause(position.id) == Outcome.INVALID_TRANSITION

    completed = await engine.create("0xowner", make_config(total_periods=1))
    clock.advance(WEEK_MS)
    await engine.execute(completed.id)
    assert await engine.pause(completed.id) == Outcome.INVALID_TRANSITION


@pytest.mark.asyncio
async def test_resume_only_from_paused(engine):
    position = await engine.create("0xowner", make_config())
    assert await engine.resume(position.id) == Outcome.INVALID_TRANSITION
    assert await engine.resume("dca_missing") == Outcome.NOT_FOUND


@pytest.mark.asyncio
async def test_close_from_active_and_paused(engine, store):
    active = await engine.create("0xowner", make_config())
    paused = await engine.create("0xowner", make_config())
    await engine.pause(paused.id)

    assert await engine.close(active.id) == Outcome.OK
    assert await engine.close(paused.id) == Outcome.OK
    assert store.get(active.id).status == PositionStatus.CLOSED
    assert store.get(paused.id).status == PositionStatus.CLOSED


@pytest.mark.asyncio
async def test_close_is_idempotent(engine, store, clock):
    position = await engine.create("0xowner", make_config())
    await engine.close(position.id)
    clock.advance(1000)

    assert await engine.close(position.id) == Outcome.OK
    closed = store.get(position.id)
    assert closed.status == PositionStatus.CLOSED
    assert closed.updated_at == clock.now


@pytest.mark.asyncio
async def test_close_rejected_for_completed(engine, store, clock):
    position = await engine.create("0xowner", make_config(total_periods=1))
    clock.advance(WEEK_MS)
    await engine.execute(position.id)

    assert await engine.close(position.id) == Outcome.INVALID_TRANSITION
    assert store.get(position.id).status == PositionStatus.COMPLETED


@pytest.mark.asyncio
async def test_transitions_on_unknown_position(engine):
    assert await engine.pause("dca_missing") == Outcome.NOT_FOUND
    assert await engine.close("dca_missing") == Outcome.NOT_FOUND


# ---------------------------------------------------------------------------
# 6. Sweep and yield
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_due_sweep_report(engine, clock, router):
    due = await engine.create("0xa", make_config(interval="daily"))
    not_due = await engine.create("0xb", make_config(interval="monthly"))
    failing = await engine.create("0xc", make_config(interval="daily", target_tokens=[{"symbol": "DEEP", "percentage": 100}]))
    router.amount_out = {"SUI": 25_500000000, "DEEP": 1_000_000000}
    router.fail_swap_for = {"DEEP"}
    clock.advance(DAY_MS)

    report = await engine.run_due_sweep()

    assert report.checked == 3
    assert report.executed == 1
    assert report.skipped == 1
    assert report.failed == 1
    assert report.failed_ids == [failing.id]
    assert engine.get_position(due.id).executed_periods == 1
    assert engine.get_position(not_due.id).executed_periods == 0


@pytest.mark.asyncio
async def test_sweep_continues_after_unexpected_error(engine, clock, router, caplog):
    broken = await engine.create("0xa", make_config(target_tokens=[{"symbol": "DEEP", "percentage": 100}]))
    clock.advance(1)
    healthy = await engine.create("0xb", make_config())
    router.errors = {"DEEP": AttributeError("'list' object has no attribute 'get'")}
    clock.advance(WEEK_MS)

    with caplog.at_level(logging.ERROR):
        report = await engine.run_due_sweep()

    assert report.checked == 2
    assert report.executed == 1
    assert report.failed == 1
    assert report.failed_ids == [broken.id]
    assert engine.get_position(healthy.id).executed_periods == 1
    assert engine.get_position(broken.id).executed_periods == 0
    assert f"[{broken.id}] execute failed" in caplog.text


@pytest.mark.asyncio
async def test_malformed_aggregator_response_is_router_failure(engine, store, clock):
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[1, 2])))
    engine.router = CetusRouter("https://aggregator.test/router_v3", http_client=client)
    position = await engine.create("0xowner", make_config())
    clock.advance(WEEK_MS)

    assert await engine.execute(position.id) == Outcome.ROUTER_FAILURE
    assert store.get(position.id).executed_periods == 0
    await engine.router.close()


@pytest.mark.asyncio
async def test_sweep_rejects_infinite_limit_on_stored_row(engine, store, clock, router):
    # Stored rows bypass schema validation
    bad = await engine.create("0xa", make_config(strategy="limit_price", limit_price=4.0))
    clock.advance(1)
    good = await engine.create("0xb", make_config())
    row = store.get(bad.id)
    row.limit_price = float("inf")
    store.save(row)
    clock.advance(WEEK_MS)

    report = await engine.run_due_sweep()

    assert report.checked == 2
    assert report.failed == 1
    assert report.failed_ids == [bad.id]
    assert engine.get_position(good.id).executed_periods == 1


@pytest.mark.asyncio
async def test_sweep_propagates_storage_failure(engine, store, clock):
    await engine.create("0xowner", make_config())
    clock.advance(WEEK_MS)

    with patch.object(store, "save", side_effect=StorageFailure("database is locked")):
        with pytest.raises(StorageFailure):
            await engine.run_due_sweep()


@pytest.mark.asyncio
async def test_estimate_yield(engine, clock):
    position = await engine.create("0xowner", make_config())
    clock.advance(WEEK_MS)
    await engine.execute(position.id)
    clock.advance(365 * DAY_MS - WEEK_MS)

    estimate = engine.estimate_yield(position.id)

    assert estimate.total_invested == pytest.approx(100.0)
    assert estimate.total_yield == pytest.approx(12.0)
    assert estimate.current_value == pytest.approx(112.0)
    assert estimate.apy == 0.12
    assert engine.estimate_yield("dca_missing") is None
