"""DCA position lifecycle: creation, pause/resume/close and scheduled execution.

State machine:
    (create) -> ACTIVE
    ACTIVE   -> PAUSED      pause
    PAUSED   -> ACTIVE      resume (schedule restarts from now)
    ACTIVE   -> ACTIVE      execute, periods remaining
    ACTIVE   -> COMPLETED   execute, last period
    ACTIVE | PAUSED -> CLOSED   close

COMPLETED and CLOSED are terminal. Every mutation of one position runs under
that position's lock; different positions proceed independently.
"""

import asyncio
import logging
import time
import uuid
import weakref
from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal

from smart_dca.engine.errors import Outcome, StorageFailure
from smart_dca.engine.store import PositionStore
from smart_dca.models.execution import ExecutionRecord
from smart_dca.models.position import DCAPosition, PositionStatus, StrategyType
from smart_dca.schemas.position import DCAConfig
from smart_dca.services.cetus_router import CetusRouter, Route, RouterError
from smart_dca.utils.constants import INTERVAL_MS, PRICE_PRECISION, SOURCE_DECIMALS, token_decimals

logger = logging.getLogger(__name__)

_DAY_MS = 24 * 60 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


def to_smallest_units(amount: str, decimals: int = SOURCE_DECIMALS) -> int:
    """Convert a human decimal string to an integer amount, rounding down."""
    scaled = Decimal(amount) * (Decimal(10) ** decimals)
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def fixed_point_price(spent: int, received: int, target_decimals: int) -> int:
    """Source units paid per whole target unit, scaled by PRICE_PRECISION.

    Returns 0 when nothing was received.
    """
    if received <= 0:
        return 0
    return (spent * 10**target_decimals * PRICE_PRECISION) // (received * 10**SOURCE_DECIMALS)


def split_allocation(amount: int, target_tokens: list[dict]) -> list[tuple[dict, int]]:
    """Split one period's amount across allocations by percentage.

    Floor division per leg; the last leg absorbs the remainder so the legs
    always sum to exactly ``amount``.
    """
    legs = []
    allocated = 0
    for i, allocation in enumerate(target_tokens):
        if i == len(target_tokens) - 1:
            share = amount - allocated
        else:
            share = amount * int(allocation["percentage"]) // 100
        allocated += share
        legs.append((allocation, share))
    return [(allocation, share) for allocation, share in legs if share > 0]


@dataclass
class PositionYield:
    total_invested: float
    current_value: float
    total_yield: float
    apy: float


@dataclass
class SweepReport:
    checked: int = 0
    executed: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    failed_ids: list[str] = field(default_factory=list)


@dataclass
class _Fill:
    symbol: str
    amount_in: int
    amount_out: int
    tx_digest: str | None
    settled: bool = False  # recorded by an earlier attempt at the same period


class PositionEngine:
    """Owns the DCA position state machine and per-period accounting."""

    def __init__(
        self,
        store: PositionStore,
        router: CetusRouter,
        clock: Callable[[], int] = now_ms,
        default_apy: float = 0.12,
    ):
        self.store = store
        self.router = router
        self.clock = clock
        self.default_apy = default_apy
        # Entries vanish once no caller holds or waits on the lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self._locks_guard = asyncio.Lock()

    async def _get_lock(self, position_id: str) -> asyncio.Lock:
        async with self._locks_guard:
            lock = self._locks.get(position_id)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[position_id] = lock
            return lock

    def _new_id(self, now: int) -> str:
        while True:
            position_id = f"dca_{now:x}_{uuid.uuid4().hex[:8]}"
            if self.store.get(position_id) is None:
                return position_id

    # ------------------------------------------------------------------
    # Creation and queries
    # ------------------------------------------------------------------

    async def create(self, owner: str, config: DCAConfig) -> DCAPosition:
        """Create and persist a new ACTIVE position; first execution one interval from now."""
        now = self.clock()
        interval_ms = INTERVAL_MS[config.interval]

        position = DCAPosition(
            id=self._new_id(now),
            owner=owner,
            source_token=config.source_token,
            target_tokens=[a.model_dump() for a in config.target_tokens],
            amount_per_period=to_smallest_units(config.amount_per_period),
            interval_ms=interval_ms,
            total_periods=config.total_periods,
            executed_periods=0,
            next_execution_time=now + interval_ms,
            strategy=config.strategy,
            limit_price=config.limit_price,
            enable_yield=config.enable_yield,
            auto_compound=config.auto_compound,
            total_invested=0,
            total_acquired=0,
            average_price=0,
            status=PositionStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        )
        self.store.save(position)

        logger.info(
            f"[{position.id}] Created for {owner}: {config.amount_per_period} "
            f"{config.source_token} x {config.total_periods} {config.interval.value} -> "
            f"{', '.join(a.symbol for a in config.target_tokens)}"
        )
        return position

    def get_position(self, position_id: str) -> DCAPosition | None:
        return self.store.get(position_id)

    def get_user_positions(self, owner: str) -> list[DCAPosition]:
        return self.store.get_by_owner(owner)

    def get_active_positions(self) -> list[DCAPosition]:
        return self.store.get_active()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def pause(self, position_id: str) -> Outcome:
        async with await self._get_lock(position_id):
            position = self.store.get(position_id)
            if position is None:
                return Outcome.NOT_FOUND
            if position.status != PositionStatus.ACTIVE:
                logger.info(f"[{position_id}] Pause rejected: status is {position.status.value}")
                return Outcome.INVALID_TRANSITION

            position.status = PositionStatus.PAUSED
            position.updated_at = self.clock()
            self.store.save(position)
            logger.info(f"[{position_id}] Paused")
            return Outcome.OK

    async def resume(self, position_id: str) -> Outcome:
        async with await self._get_lock(position_id):
            position = self.store.get(position_id)
            if position is None:
                return Outcome.NOT_FOUND
            if position.status != PositionStatus.PAUSED:
                logger.info(f"[{position_id}] Resume rejected: status is {position.status.value}")
                return Outcome.INVALID_TRANSITION

            # Paused time is excised; missed periods are not replayed
            now = self.clock()
            position.next_execution_time = now + position.interval_ms
            position.status = PositionStatus.ACTIVE
            position.updated_at = now
            self.store.save(position)
            logger.info(f"[{position_id}] Resumed, next execution at {position.next_execution_time}")
            return Outcome.OK

    async def close(self, position_id: str) -> Outcome:
        async with await self._get_lock(position_id):
            position = self.store.get(position_id)
            if position is None:
                return Outcome.NOT_FOUND
            if position.status == PositionStatus.COMPLETED:
                return Outcome.INVALID_TRANSITION

            position.status = PositionStatus.CLOSED
            position.updated_at = self.clock()
            self.store.save(position)
            logger.info(f"[{position_id}] Closed")
            return Outcome.OK

    # ------------------------------------------------------------------
    # Scheduled execution
    # ------------------------------------------------------------------

    async def execute(self, position_id: str) -> Outcome:
        """Run one period for a due ACTIVE position.

        Skip conditions (absent, not active, not due) return without side
        effects. Router failures leave the position untouched and due, so the
        next sweep retries it; legs swapped before the failure are recorded
        and not bought again. StorageFailure propagates.
        """
        async with await self._get_lock(position_id):
            position = self.store.get(position_id)
            if position is None:
                logger.warning(f"[{position_id}] Execute skipped: position not found")
                return Outcome.NOT_FOUND
            if position.status != PositionStatus.ACTIVE:
                logger.debug(f"[{position_id}] Execute skipped: status is {position.status.value}")
                return Outcome.INVALID_TRANSITION
            if self.clock() < position.next_execution_time:
                return Outcome.NOT_DUE

            logger.info(
                f"[{position_id}] Executing period "
                f"{position.executed_periods + 1}/{position.total_periods}"
            )
            try:
                fills = await self._convert(position)
            except RouterError as e:
                logger.error(f"[{position_id}] execute: router failure, retrying next sweep: {e}")
                return Outcome.ROUTER_FAILURE
            if fills is None:
                return Outcome.PRICE_ABOVE_LIMIT

            return self._apply_fills(position, fills)

    async def _convert(self, position: DCAPosition) -> list[_Fill] | None:
        """Quote every pending allocation leg, check the strategy gate, then swap each leg.

        Legs settled for this period by an earlier, partially failed attempt
        are carried over rather than bought again. Returns None when a
        limit-price position's quote is above its limit.
        """
        period = position.executed_periods + 1
        settled = {
            r.target_symbol: _Fill(r.target_symbol, r.amount_spent, r.amount_received, r.tx_digest, settled=True)
            for r in self.store.get_executions(position.id)
            if r.period_number == period
        }
        legs = split_allocation(position.amount_per_period, position.target_tokens)

        routes: list[Route] = []
        for allocation, amount in legs:
            if allocation["symbol"] in settled:
                continue
            routes.append(
                await self.router.find_best_route(position.source_token, allocation["symbol"], amount)
            )

        if routes and not self._strategy_allows(position, routes[0]):
            return None

        fills: dict[str, _Fill] = {}
        for route in routes:
            result = await self.router.execute_swap(route, route.amount_in)
            if not result.success or result.amount_out <= 0:
                if fills:
                    logger.error(
                        f"[{position.id}] Partial execution of period {period}, settled legs: "
                        + ", ".join(f"{f.amount_out} {f.symbol} ({f.tx_digest})" for f in fills.values())
                    )
                    self.store.save(position, self._records(position.id, period, fills.values(), self.clock()))
                raise RouterError(result.error or f"swap to {route.to_token} returned nothing")
            fills[route.to_token] = _Fill(route.to_token, route.amount_in, result.amount_out, result.tx_digest)

        return [settled.get(a["symbol"]) or fills[a["symbol"]] for a, _ in legs]

    @staticmethod
    def _records(position_id: str, period: int, fills, executed_at: int) -> list[ExecutionRecord]:
        return [
            ExecutionRecord(
                position_id=position_id,
                period_number=period,
                target_symbol=f.symbol,
                amount_spent=f.amount_in,
                amount_received=f.amount_out,
                price=fixed_point_price(f.amount_in, f.amount_out, token_decimals(f.symbol)),
                tx_digest=f.tx_digest,
                executed_at=executed_at,
            )
            for f in fills
        ]

    def _strategy_allows(self, position: DCAPosition, route: Route) -> bool:
        strategy = position.strategy
        if strategy == StrategyType.LIMIT:
            if position.limit_price is None:
                return True
            quoted = fixed_point_price(route.amount_in, route.expected_out, token_decimals(route.to_token))
            limit = int(Decimal(str(position.limit_price)) * PRICE_PRECISION)
            if quoted > limit:
                logger.info(
                    f"[{position.id}] Quote {quoted / PRICE_PRECISION:.6f} above limit "
                    f"{position.limit_price}, waiting"
                )
                return False
            return True
        if strategy in (StrategyType.FIXED, StrategyType.VALUE_AVG, StrategyType.MULTI_TOKEN):
            return True
        raise ValueError(f"Unhandled strategy: {strategy}")

    def _apply_fills(self, position: DCAPosition, fills: list[_Fill]) -> Outcome:
        now = self.clock()
        period = position.executed_periods + 1
        received = sum(f.amount_out for f in fills)

        position.executed_periods = period
        position.total_invested += position.amount_per_period
        position.total_acquired += received
        position.average_price = fixed_point_price(
            position.total_invested,
            position.total_acquired,
            token_decimals(position.primary_symbol),
        )
        position.next_execution_time = now + position.interval_ms
        position.last_tx_digest = fills[-1].tx_digest
        position.updated_at = now

        outcome = Outcome.OK
        if position.executed_periods >= position.total_periods:
            position.status = PositionStatus.COMPLETED
            outcome = Outcome.COMPLETED

        records = self._records(position.id, period, [f for f in fills if not f.settled], now)
        logger.info(
            f"[{position.id}] Period {period}/{position.total_periods}: spent "
            f"{position.amount_per_period}, received {received}, avg price "
            f"{position.average_price / PRICE_PRECISION:.6f}"
        )
        self.store.save(position, records)

        if outcome == Outcome.COMPLETED:
            logger.info(f"[{position.id}] Completed all {position.total_periods} periods")
        return outcome

    async def run_due_sweep(self) -> SweepReport:
        """Execute every ACTIVE position whose due time has passed, one at a time."""
        report = SweepReport()
        now = self.clock()
        for position in self.store.get_active():
            report.checked += 1
            if position.next_execution_time > now:
                report.skipped += 1
                continue

            try:
                outcome = await self.execute(position.id)
            except StorageFailure:
                raise
            except Exception as e:
                # Anything but a storage failure is confined to this position
                logger.error(f"[{position.id}] execute failed, retrying next sweep: {e}", exc_info=True)
                report.failed += 1
                report.failed_ids.append(position.id)
                continue

            if outcome == Outcome.OK:
                report.executed += 1
            elif outcome == Outcome.COMPLETED:
                report.executed += 1
                report.completed += 1
            elif outcome == Outcome.ROUTER_FAILURE:
                report.failed += 1
                report.failed_ids.append(position.id)
            else:
                report.skipped += 1

        logger.info(
            f"Sweep: checked={report.checked} executed={report.executed} "
            f"completed={report.completed} failed={report.failed} skipped={report.skipped}"
        )
        return report

    # ------------------------------------------------------------------
    # Yield estimate
    # ------------------------------------------------------------------

    def estimate_yield(self, position_id: str, annual_rate: float | None = None) -> PositionYield | None:
        """Estimated yield on the invested amount; the vault's on-chain state is authoritative."""
        position = self.store.get(position_id)
        if position is None:
            return None

        rate = self.default_apy if annual_rate is None else annual_rate
        invested = position.total_invested / 10**SOURCE_DECIMALS
        days_held = max(self.clock() - position.created_at, 0) / _DAY_MS
        total_yield = invested * rate * days_held / 365

        return PositionYield(
            total_invested=invested,
            current_value=invested + total_yield,
            total_yield=total_yield,
            apy=rate,
        )
