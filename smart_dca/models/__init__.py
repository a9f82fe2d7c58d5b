"""Database models."""

from smart_dca.models.position import DCAPosition, PositionStatus, StrategyType
from smart_dca.models.execution import ExecutionRecord
from smart_dca.models.vault_snapshot import VaultSnapshot
from smart_dca.models.wallet import CustodialWallet

__all__ = [
    "DCAPosition",
    "PositionStatus",
    "StrategyType",
    "ExecutionRecord",
    "VaultSnapshot",
    "CustodialWallet",
]
