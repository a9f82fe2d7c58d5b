"""Shared fixtures: in-memory database, fake aggregator, controllable clock."""

import asyncio

import pytest

from smart_dca.database import build_engine, create_db_and_tables
from smart_dca.engine.lifecycle import PositionEngine
from smart_dca.engine.store import PositionStore
from smart_dca.schemas.position import DCAConfig
from smart_dca.services.cetus_router import Route, RouterError, SwapResult

T0 = 1_700_000_000_000
WEEK_MS = 604_800_000


class FakeClock:
    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int):
        self.now += ms


class FakeRouter:
    """Quotes a fixed output per target symbol and fills swaps at the quote."""

    def __init__(self, amount_out: int | dict[str, int] = 25_500_000_000):
        self.amount_out = amount_out
        self.paper_trading = True
        self.fail_quote = False
        self.fail_swap_for: set[str] = set()
        self.errors: dict[str, Exception] = {}
        # When set, quotes block on the gate after signalling `entered`
        self.gate: asyncio.Event | None = None
        self.entered = asyncio.Event()
        self.quotes: list[Route] = []
        self.swaps: list[Route] = []

    async def find_best_route(self, from_token: str, to_token: str, amount_in: int) -> Route:
        if self.gate is not None:
            self.entered.set()
            await self.gate.wait()
        if self.fail_quote:
            raise RouterError("aggregator unavailable")
        if to_token in self.errors:
            raise self.errors[to_token]
        if isinstance(self.amount_out, dict):
            out = self.amount_out[to_token]
        else:
            out = self.amount_out
        route = Route(from_token=from_token, to_token=to_token, amount_in=amount_in, expected_out=out)
        self.quotes.append(route)
        return route

    async def execute_swap(self, route: Route, amount_in: int) -> SwapResult:
        self.swaps.append(route)
        if route.to_token in self.fail_swap_for:
            return SwapResult(success=False, error="slippage exceeded")
        return SwapResult(success=True, amount_out=route.expected_out, tx_digest=f"0xdigest{len(self.swaps)}")

    async def close(self):
        pass


def make_config(**overrides) -> DCAConfig:
    data = {
        "target_tokens": [{"symbol": "SUI", "percentage": 100}],
        "amount_per_period": "100",
        "interval": "weekly",
        "total_periods": 4,
    }
    data.update(overrides)
    return DCAConfig(**data)


@pytest.fixture
def db():
    engine = build_engine("sqlite://")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(db):
    return PositionStore(db)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def router():
    return FakeRouter()


@pytest.fixture
def engine(store, router, clock):
    return PositionEngine(store, router, clock=clock)
