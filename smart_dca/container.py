"""Service wiring: builds the store, clients, engine, scheduler and bot from settings."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.engine import Engine

from smart_dca.config import Settings
from smart_dca.database import build_engine
from smart_dca.engine.lifecycle import PositionEngine
from smart_dca.engine.scheduler import DCAScheduler, log_failure
from smart_dca.engine.store import PositionStore
from smart_dca.engine.vault_sync import VaultBookkeeper
from smart_dca.services.cetus_router import CetusRouter
from smart_dca.services.sui_client import SuiVaultClient
from smart_dca.services.telegram_bot import TelegramBot
from smart_dca.services.wallet_service import WalletService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    db: Engine
    store: PositionStore
    router: CetusRouter
    vault: SuiVaultClient
    position_engine: PositionEngine
    bookkeeper: VaultBookkeeper
    wallets: WalletService
    scheduler: DCAScheduler
    bot: Optional[TelegramBot] = None
    _alert_tasks: set = field(default_factory=set)

    def alert_failure(self, task: str, exc: BaseException):
        """Scheduler failure sink: log, then push an alert to Telegram admins."""
        log_failure(task, exc)
        if self.bot is None or not self.bot.admin_chat_ids:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        alert = loop.create_task(self.bot.send_notification(f"Smart DCA: {task} failed: {exc}"))
        self._alert_tasks.add(alert)
        alert.add_done_callback(self._alert_tasks.discard)

    async def close(self):
        """Release network clients and the connection pool."""
        await self.router.close()
        await self.vault.close()
        self.store.teardown()


def build_services(settings: Settings) -> Services:
    db = build_engine(settings.database_url)
    store = PositionStore(db)
    router = CetusRouter(
        settings.cetus_aggregator_url,
        paper_trading=settings.router_paper_trading,
        timeout_s=settings.router_timeout_s,
    )
    vault = SuiVaultClient(
        settings.resolved_rpc_url,
        settings.vault_object_id,
        timeout_s=settings.router_timeout_s,
    )
    position_engine = PositionEngine(store, router, default_apy=settings.default_apy)
    bookkeeper = VaultBookkeeper(vault, db, clock=position_engine.clock)
    wallets = WalletService(db, settings.encryption_key)

    bot = None
    if settings.telegram_bot_token:
        bot = TelegramBot(
            settings.telegram_bot_token,
            position_engine,
            wallets,
            vault=vault,
            admin_chat_ids=settings.telegram_admin_chat_ids,
        )

    scheduler = DCAScheduler(
        position_engine,
        vault_task=bookkeeper.record_snapshot,
        execute_interval_minutes=settings.execute_sweep_minutes,
        yield_interval_minutes=settings.yield_sweep_minutes,
    )
    services = Services(
        settings=settings,
        db=db,
        store=store,
        router=router,
        vault=vault,
        position_engine=position_engine,
        bookkeeper=bookkeeper,
        wallets=wallets,
        scheduler=scheduler,
        bot=bot,
    )
    scheduler.failure_sink = services.alert_failure

    mode = "paper" if settings.router_paper_trading else "live"
    logger.info(f"Services built: network={settings.sui_network}, router={mode}, bot={'on' if bot else 'off'}")
    return services
