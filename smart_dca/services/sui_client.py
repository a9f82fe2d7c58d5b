"""Sui JSON-RPC client for reading the yield vault and user vault assets."""

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)

H2OUSD_COIN_MARKER = "::h2o_usd::H2O_USD>"
DEPOSIT_RECEIPT_MARKER = "::SecureDepositReceipt"


class VaultError(Exception):
    """Vault state could not be read from chain."""


@dataclass
class VaultState:
    vault_id: str
    total_assets: int
    total_deposited: int
    total_withdrawn: int
    total_yield_earned: int
    total_users: int
    deposit_paused: bool
    withdrawal_paused: bool


@dataclass
class DepositReceipt:
    id: str
    owner: str | None
    vault_id: str | None
    usdc_deposited: int
    h2ousd_minted: int
    deposit_time: int
    unlock_time: int


@dataclass
class UserVaultAssets:
    owner: str
    coins: list[dict[str, Any]] = field(default_factory=list)
    receipts: list[DepositReceipt] = field(default_factory=list)

    @property
    def total_h2ousd(self) -> int:
        return sum(int(c["balance"]) for c in self.coins)

    @property
    def total_deposited(self) -> int:
        return sum(r.usdc_deposited for r in self.receipts)


def _as_int(value: Any) -> int:
    if value is None or value == "":
        return 0
    return int(value)


class SuiVaultClient:
    """Read-only access to the H2O vault shared object over Sui JSON-RPC."""

    page_size = 50

    def __init__(
        self,
        rpc_url: str,
        vault_object_id: str,
        timeout_s: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.rpc_url = rpc_url
        self.vault_object_id = vault_object_id
        self.timeout_s = timeout_s
        self._client = http_client
        self._request_id = 0

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)
        return self._client

    async def _rpc(self, method: str, params: list) -> Any:
        self._request_id += 1
        body = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        try:
            resp = await self._get_client().post(self.rpc_url, json=body)
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise VaultError(f"{method} failed: {e}") from e

        if payload.get("error"):
            err = payload["error"]
            raise VaultError(f"{method} error {err.get('code')}: {err.get('message')}")
        return payload.get("result")

    async def get_vault_state(self) -> VaultState:
        """Fetch aggregate totals from the vault shared object."""
        result = await self._rpc(
            "sui_getObject",
            [self.vault_object_id, {"showContent": True, "showOwner": True}],
        )
        content = ((result or {}).get("data") or {}).get("content") or {}
        if content.get("dataType") != "moveObject":
            raise VaultError(f"Invalid vault object {self.vault_object_id}")

        fields = content.get("fields") or {}
        return VaultState(
            vault_id=self.vault_object_id,
            total_assets=_as_int(fields.get("total_assets")),
            total_deposited=_as_int(fields.get("total_deposited")),
            total_withdrawn=_as_int(fields.get("total_withdrawn")),
            total_yield_earned=_as_int(fields.get("total_yield_earned")),
            total_users=_as_int(fields.get("total_users")),
            deposit_paused=bool(fields.get("deposit_paused")),
            withdrawal_paused=bool(fields.get("withdrawal_paused")),
        )

    async def get_user_assets(self, owner: str) -> UserVaultAssets:
        """Collect H2OUSD coins and deposit receipts owned by an address.

        Walks every page of suix_getOwnedObjects.
        """
        assets = UserVaultAssets(owner=owner)
        cursor = None
        while True:
            page = await self._rpc(
                "suix_getOwnedObjects",
                [owner, {"options": {"showType": True, "showContent": True}}, cursor, self.page_size],
            )
            page = page or {}
            for obj in page.get("data") or []:
                self._collect_object(assets, obj.get("data"))
            if not page.get("hasNextPage"):
                break
            cursor = page.get("nextCursor")

        logger.debug(
            f"Vault assets for {owner}: {len(assets.coins)} coins, {len(assets.receipts)} receipts"
        )
        return assets

    @staticmethod
    def _collect_object(assets: UserVaultAssets, data: dict | None):
        if not data or not data.get("type"):
            return
        obj_type = data["type"]
        fields = (data.get("content") or {}).get("fields") or {}

        if H2OUSD_COIN_MARKER in obj_type:
            assets.coins.append({"id": data.get("objectId"), "balance": _as_int(fields.get("balance"))})
        elif DEPOSIT_RECEIPT_MARKER in obj_type:
            assets.receipts.append(DepositReceipt(
                id=data.get("objectId"),
                owner=fields.get("owner"),
                vault_id=fields.get("vault_id"),
                usdc_deposited=_as_int(fields.get("usdc_deposited")),
                h2ousd_minted=_as_int(fields.get("h2ousd_minted")),
                deposit_time=_as_int(fields.get("deposit_time")),
                unlock_time=_as_int(fields.get("unlock_time")),
            ))

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
        self._client = None
