"""Cetus aggregator client wrapper for route discovery and swap execution.

Wraps the Cetus router_v3 REST API. Swaps are filled at the quoted output in
paper-trading mode; live submission needs a Sui transaction signer.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from smart_dca.utils.constants import TOKENS, TokenInfo

logger = logging.getLogger(__name__)

DEFAULT_CETUS_API_URL = "https://api-sui.cetus.zone/router_v3"


class RouterError(Exception):
    """Route lookup or swap execution failed."""


@dataclass
class Route:
    from_token: str
    to_token: str
    amount_in: int
    expected_out: int
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def hops(self) -> int:
        return len(self.raw.get("routes") or [])


@dataclass
class SwapResult:
    success: bool
    amount_out: int = 0
    tx_digest: str | None = None
    error: str | None = None


def _token_info(symbol: str) -> TokenInfo:
    token = TOKENS.get(symbol.upper())
    if token is None:
        raise RouterError(f"Unsupported token: {symbol}")
    return token


class CetusRouter:
    """Wrapper around the Cetus aggregator API for DCA conversions."""

    def __init__(
        self,
        endpoint: str = DEFAULT_CETUS_API_URL,
        paper_trading: bool = True,
        timeout_s: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.paper_trading = paper_trading
        self.timeout_s = timeout_s
        self._client = http_client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)
        return self._client

    async def find_best_route(self, from_token: str, to_token: str, amount_in: int) -> Route:
        """Ask the aggregator for the best route converting amount_in of from_token.

        Args:
            from_token: Source token symbol (e.g. "USDC").
            to_token: Target token symbol (e.g. "SUI").
            amount_in: Input amount in the source token's smallest units.

        Raises:
            RouterError: unsupported token, transport failure, or no usable route.
        """
        if amount_in <= 0:
            raise RouterError(f"amount_in must be positive, got {amount_in}")
        source = _token_info(from_token)
        target = _token_info(to_token)

        params = {
            "from": source.address,
            "target": target.address,
            "amount": str(amount_in),
            "by_amount_in": "true",
        }
        try:
            resp = await self._get_client().get(f"{self.endpoint}/find_routes", params=params)
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RouterError(f"Route request failed: {e}") from e
        if not isinstance(payload, dict):
            raise RouterError(f"Unexpected aggregator response: {payload!r:.200}")

        code = payload.get("code")
        data = payload.get("data") or {}
        if code != 200 or not isinstance(data, dict) or not data:
            msg = payload.get("msg") or "Cetus Aggregator failed to find route"
            raise RouterError(f"{msg} (code={code})")

        try:
            expected_out = int(data.get("amount_out", 0))
        except (TypeError, ValueError) as e:
            raise RouterError(f"Malformed amount_out: {data.get('amount_out')!r}") from e
        if expected_out <= 0:
            raise RouterError(f"No liquidity for {source.symbol} -> {target.symbol}")

        route = Route(
            from_token=source.symbol,
            to_token=target.symbol,
            amount_in=amount_in,
            expected_out=expected_out,
            raw=data,
        )
        logger.debug(
            f"Route {source.symbol}->{target.symbol}: in={amount_in} out={expected_out} "
            f"hops={route.hops}"
        )
        return route

    async def execute_swap(self, route: Route, amount_in: int) -> SwapResult:
        """Materialize a swap for a previously quoted route."""
        if amount_in != route.amount_in:
            return SwapResult(
                success=False,
                error=f"amount_in {amount_in} does not match quoted {route.amount_in}",
            )

        if self.paper_trading:
            digest = f"paper-{int(time.time() * 1000)}"
            logger.info(
                f"PAPER swap: {route.amount_in} {route.from_token} -> "
                f"{route.expected_out} {route.to_token} ({digest})"
            )
            return SwapResult(success=True, amount_out=route.expected_out, tx_digest=digest)

        # TODO: build and sign the router_v3 swap transaction once a Sui signer is wired in
        logger.error(f"Live swap requested for {route.from_token}->{route.to_token} but no signer is configured")
        return SwapResult(success=False, error="live swap submission is not configured")

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
        self._client = None
