"""Telegram bot: DCA position conversation, position control and admin alerts."""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError
from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from smart_dca.engine.errors import Outcome
from smart_dca.engine.lifecycle import PositionEngine
from smart_dca.models.position import TERMINAL_STATUSES, DCAPosition, PositionStatus, StrategyType
from smart_dca.schemas.position import DCAConfig
from smart_dca.services.sui_client import SuiVaultClient, VaultError
from smart_dca.services.wallet_service import WalletService
from smart_dca.utils.constants import (
    INTERVAL_LABELS,
    INTERVAL_MS,
    IntervalType,
    MAX_AMOUNT_PER_PERIOD,
    MAX_TOTAL_PERIODS,
    MIN_AMOUNT_PER_PERIOD,
    PRICE_PRECISION,
    SOURCE_DECIMALS,
    TARGET_SYMBOLS,
    token_decimals,
)

logger = logging.getLogger(__name__)

WELCOME_TEXT = (
    "Welcome to H2O Smart DCA!\n\n"
    "The DCA bot that earns while it waits: idle funds sit in a yield vault "
    "until each scheduled buy.\n\n"
    "/wallet - create or show your deposit wallet\n"
    "/new - create a DCA position\n"
    "/help - all commands"
)

HELP_TEXT = (
    "H2O Smart DCA commands\n\n"
    "/wallet - create or show your deposit wallet\n"
    "/new - create a new DCA position\n"
    "/list - list your positions\n"
    "/status <id> - position details\n"
    "/pause <id> - pause a position\n"
    "/resume <id> - resume a paused position\n"
    "/close <id> - close a position\n"
    "/yield - yield summary\n"
    "/help - this message"
)

NO_POSITIONS_TEXT = "You have no DCA positions yet. Use /new to create one."
NOT_FOUND_TEXT = "Position not found."

STATUS_LABELS = {
    PositionStatus.ACTIVE: "Active",
    PositionStatus.PAUSED: "Paused",
    PositionStatus.COMPLETED: "Completed",
    PositionStatus.CLOSED: "Closed",
}

STRATEGY_LABELS = {
    StrategyType.FIXED: "Fixed amount",
    StrategyType.LIMIT: "Limit price",
    StrategyType.VALUE_AVG: "Value averaging",
    StrategyType.MULTI_TOKEN: "Multi-token",
}


class ConversationStep(str, Enum):
    IDLE = "idle"
    SELECT_STRATEGY = "select_strategy"
    SELECT_TARGET_TOKEN = "select_target_token"
    ENTER_LIMIT_PRICE = "enter_limit_price"
    ENTER_AMOUNT = "enter_amount"
    SELECT_INTERVAL = "select_interval"
    ENTER_PERIODS = "enter_periods"
    CONFIRM = "confirm"


class CallbackAction(str, Enum):
    STRATEGY = "strategy"
    TOKEN = "token"
    INTERVAL = "interval"
    CREATE = "create"
    CANCEL = "cancel"
    PAUSE = "pause"
    RESUME = "resume"
    CLOSE = "close"
    CONFIRM_CLOSE = "confirm_close"


@dataclass
class Conversation:
    step: ConversationStep = ConversationStep.IDLE
    data: dict[str, Any] = field(default_factory=dict)


def callback_data(action: CallbackAction, value: str = "") -> str:
    return f"{action.value}:{value}"


def parse_callback(data: str | None) -> tuple[CallbackAction, str] | None:
    """Split "action:value" callback data; None for anything unrecognised."""
    if not data:
        return None
    action, _, value = data.partition(":")
    try:
        return CallbackAction(action), value
    except ValueError:
        return None


def format_units(amount: int, decimals: int, places: int = 4) -> str:
    value = Decimal(amount) / (Decimal(10) ** decimals)
    return f"{value:,.{places}f}"


def format_time(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def interval_label(interval_ms: int) -> str:
    for interval, ms in INTERVAL_MS.items():
        if ms == interval_ms:
            return INTERVAL_LABELS[interval]
    return f"every {interval_ms // 3_600_000}h"


def format_position_line(position: DCAPosition) -> str:
    targets = "/".join(t["symbol"] for t in position.target_tokens)
    return (
        f"[{STATUS_LABELS[position.status]}] {position.id}\n"
        f"   {position.source_token} -> {targets}\n"
        f"   {format_units(position.amount_per_period, SOURCE_DECIMALS, 2)} USDC "
        f"{interval_label(position.interval_ms)}\n"
        f"   Progress: {position.executed_periods}/{position.total_periods}"
    )


def format_position(position: DCAPosition) -> str:
    symbol = position.primary_symbol
    lines = [
        "Position details",
        "",
        f"ID: {position.id}",
        f"Status: {STATUS_LABELS[position.status]}",
        f"Strategy: {STRATEGY_LABELS[position.strategy]}",
        "",
        f"Source: {position.source_token}",
        "Target: " + ", ".join(f"{t['symbol']} {t['percentage']}%" for t in position.target_tokens),
        f"Per period: {format_units(position.amount_per_period, SOURCE_DECIMALS, 2)} USDC",
        f"Interval: {interval_label(position.interval_ms)}",
        f"Progress: {position.executed_periods}/{position.total_periods} ({position.remaining_periods} remaining)",
        "",
        f"Invested: {format_units(position.total_invested, SOURCE_DECIMALS, 2)} USDC",
        f"Acquired: {format_units(position.total_acquired, token_decimals(symbol))} {symbol}",
        f"Average price: {Decimal(position.average_price) / PRICE_PRECISION:,.4f} USDC",
    ]
    if position.limit_price is not None:
        lines.append(f"Limit price: {position.limit_price} USDC")
    if position.status not in TERMINAL_STATUSES:
        lines += ["", f"Next execution: {format_time(position.next_execution_time)}"]
    return "\n".join(lines)


def _position_keyboard(position: DCAPosition) -> InlineKeyboardMarkup | None:
    rows = []
    if position.status == PositionStatus.ACTIVE:
        rows.append([InlineKeyboardButton("Pause", callback_data=callback_data(CallbackAction.PAUSE, position.id))])
    elif position.status == PositionStatus.PAUSED:
        rows.append([InlineKeyboardButton("Resume", callback_data=callback_data(CallbackAction.RESUME, position.id))])
    if position.status not in TERMINAL_STATUSES:
        rows.append([InlineKeyboardButton("Close position", callback_data=callback_data(CallbackAction.CLOSE, position.id))])
    return InlineKeyboardMarkup(rows) if rows else None


OUTCOME_REPLIES = {
    CallbackAction.PAUSE: "Position {id} paused. Funds keep earning in the yield vault.",
    CallbackAction.RESUME: "Position {id} resumed. Next execution: {next}.",
    CallbackAction.CLOSE: "Position {id} closed.",
}


class TelegramBot:
    """Telegram bot running on the application's event loop."""

    def __init__(
        self,
        token: str,
        position_engine: PositionEngine,
        wallets: WalletService,
        vault: SuiVaultClient | None = None,
        admin_chat_ids: list[int] | None = None,
    ):
        self.token = token
        self.position_engine = position_engine
        self.wallets = wallets
        self.vault = vault
        self.admin_chat_ids = set(admin_chat_ids or [])
        self._app: Optional[Application] = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _conversation(context: ContextTypes.DEFAULT_TYPE) -> Conversation:
        conv = context.user_data.get("conversation")
        if conv is None:
            conv = Conversation()
            context.user_data["conversation"] = conv
        return conv

    @staticmethod
    def _reset(context: ContextTypes.DEFAULT_TYPE):
        context.user_data["conversation"] = Conversation()

    def _owner_address(self, user_id: int) -> str | None:
        return self.wallets.get_address(user_id)

    def _owned_position(self, user_id: int, position_id: str) -> DCAPosition | None:
        """The position, if it exists and belongs to this user's wallet."""
        position = self.position_engine.get_position(position_id)
        owner = self._owner_address(user_id)
        if position is None or owner is None or position.owner != owner:
            return None
        return position

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def _cmd_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await update.message.reply_text(WELCOME_TEXT)

    async def _cmd_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await update.message.reply_text(HELP_TEXT)

    async def _cmd_wallet(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        wallet = self.wallets.get_or_create(update.effective_user.id)
        await update.message.reply_text(
            "Your deposit wallet\n\n"
            f"{wallet.address}\n\n"
            "Send USDC to fund your positions and a little SUI for gas."
        )

    async def _cmd_new(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        self.wallets.get_or_create(update.effective_user.id)
        conv = self._conversation(context)
        conv.step = ConversationStep.SELECT_STRATEGY
        conv.data = {}

        keyboard = InlineKeyboardMarkup([
            [InlineKeyboardButton(STRATEGY_LABELS[s], callback_data=callback_data(CallbackAction.STRATEGY, s.value))]
            for s in (StrategyType.FIXED, StrategyType.LIMIT, StrategyType.VALUE_AVG)
        ])
        await update.message.reply_text("Create a new Smart DCA position\n\nChoose a strategy:", reply_markup=keyboard)

    async def _cmd_list(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        owner = self._owner_address(update.effective_user.id)
        positions = self.position_engine.get_user_positions(owner) if owner else []
        if not positions:
            await update.message.reply_text(NO_POSITIONS_TEXT)
            return

        lines = ["Your Smart DCA positions", ""]
        lines += [format_position_line(p) + "\n" for p in positions]
        lines.append("Use /status <id> for details")
        await update.message.reply_text("\n".join(lines))

    async def _cmd_status(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not context.args:
            await update.message.reply_text("Usage: /status <position id>")
            return
        position = self._owned_position(update.effective_user.id, context.args[0])
        if position is None:
            await update.message.reply_text(NOT_FOUND_TEXT)
            return
        await update.message.reply_text(format_position(position), reply_markup=_position_keyboard(position))

    async def _cmd_pause(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await self._transition_command(update, context, CallbackAction.PAUSE)

    async def _cmd_resume(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await self._transition_command(update, context, CallbackAction.RESUME)

    async def _cmd_close(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not context.args:
            await update.message.reply_text("Usage: /close <position id>")
            return
        position = self._owned_position(update.effective_user.id, context.args[0])
        if position is None:
            await update.message.reply_text(NOT_FOUND_TEXT)
            return
        await update.message.reply_text(
            f"Close position {position.id}?\n\n"
            "Remaining funds and accrued yield return to your wallet. This cannot be undone.",
            reply_markup=InlineKeyboardMarkup([[
                InlineKeyboardButton("Yes, close", callback_data=callback_data(CallbackAction.CONFIRM_CLOSE, position.id)),
                InlineKeyboardButton("Cancel", callback_data=callback_data(CallbackAction.CANCEL)),
            ]]),
        )

    async def _cmd_yield(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        owner = self._owner_address(update.effective_user.id)
        positions = self.position_engine.get_user_positions(owner) if owner else []
        if not positions:
            await update.message.reply_text(NO_POSITIONS_TEXT)
            return

        invested = 0.0
        earned = 0.0
        apy = self.position_engine.default_apy
        for position in positions:
            estimate = self.position_engine.estimate_yield(position.id)
            if estimate is not None:
                invested += estimate.total_invested
                earned += estimate.total_yield
                apy = estimate.apy

        lines = [
            "Yield summary (estimate)",
            "",
            f"Invested: {invested:,.2f} USDC",
            f"Estimated yield: {earned:,.4f} USDC",
            f"APY: ~{apy * 100:.1f}%",
        ]
        if self.vault is not None:
            try:
                assets = await self.vault.get_user_assets(owner)
                lines.append(f"Vault balance: {format_units(assets.total_h2ousd, SOURCE_DECIMALS, 2)} H2OUSD")
            except VaultError as e:
                logger.warning(f"Vault lookup failed for {owner}: {e}")
                lines.append("Vault balance: unavailable")
        await update.message.reply_text("\n".join(lines))

    async def _transition_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE, action: CallbackAction):
        if not context.args:
            await update.message.reply_text(f"Usage: /{action.value} <position id>")
            return
        position = self._owned_position(update.effective_user.id, context.args[0])
        if position is None:
            await update.message.reply_text(NOT_FOUND_TEXT)
            return
        await update.message.reply_text(await self._apply_transition(action, position.id))

    async def _apply_transition(self, action: CallbackAction, position_id: str) -> str:
        if action == CallbackAction.PAUSE:
            outcome = await self.position_engine.pause(position_id)
        elif action == CallbackAction.RESUME:
            outcome = await self.position_engine.resume(position_id)
        elif action in (CallbackAction.CLOSE, CallbackAction.CONFIRM_CLOSE):
            action = CallbackAction.CLOSE
            outcome = await self.position_engine.close(position_id)
        else:
            raise ValueError(f"Not a transition: {action}")

        if outcome == Outcome.NOT_FOUND:
            return NOT_FOUND_TEXT
        if outcome == Outcome.INVALID_TRANSITION:
            position = self.position_engine.get_position(position_id)
            status = STATUS_LABELS[position.status].lower() if position else "unknown"
            return f"Cannot {action.value} position {position_id}: it is {status}."

        position = self.position_engine.get_position(position_id)
        next_time = format_time(position.next_execution_time) if position else "-"
        return OUTCOME_REPLIES[action].format(id=position_id, next=next_time)

    # ------------------------------------------------------------------
    # Conversation input
    # ------------------------------------------------------------------

    async def _handle_text(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        conv = self._conversation(context)
        text = (update.message.text or "").strip()
        if not text or conv.step == ConversationStep.IDLE:
            return

        if conv.step == ConversationStep.ENTER_LIMIT_PRICE:
            await self._handle_limit_price(update, conv, text)
        elif conv.step == ConversationStep.ENTER_AMOUNT:
            await self._handle_amount(update, conv, text)
        elif conv.step == ConversationStep.ENTER_PERIODS:
            await self._handle_periods(update, context, conv, text)

    async def _handle_limit_price(self, update: Update, conv: Conversation, text: str):
        try:
            price = float(text)
        except ValueError:
            price = 0.0
        if not math.isfinite(price) or price <= 0:
            await update.message.reply_text("Enter a valid limit price (USDC per token).")
            return
        conv.data["limit_price"] = price
        conv.step = ConversationStep.ENTER_AMOUNT
        await update.message.reply_text("Enter the USDC amount per period:")

    async def _handle_amount(self, update: Update, conv: Conversation, text: str):
        try:
            amount = Decimal(text)
        except ArithmeticError:
            amount = None
        if amount is None or not amount.is_finite() or amount <= 0:
            await update.message.reply_text("Enter a valid amount (number).")
            return
        if amount < MIN_AMOUNT_PER_PERIOD:
            await update.message.reply_text(f"The minimum amount is {MIN_AMOUNT_PER_PERIOD} USDC.")
            return
        if amount > MAX_AMOUNT_PER_PERIOD:
            await update.message.reply_text(f"The maximum amount is {MAX_AMOUNT_PER_PERIOD:,} USDC.")
            return

        conv.data["amount_per_period"] = text
        conv.step = ConversationStep.SELECT_INTERVAL
        keyboard = InlineKeyboardMarkup([
            [
                InlineKeyboardButton("Daily", callback_data=callback_data(CallbackAction.INTERVAL, IntervalType.DAILY.value)),
                InlineKeyboardButton("Weekly", callback_data=callback_data(CallbackAction.INTERVAL, IntervalType.WEEKLY.value)),
            ],
            [
                InlineKeyboardButton("Every 2 weeks", callback_data=callback_data(CallbackAction.INTERVAL, IntervalType.BIWEEKLY.value)),
                InlineKeyboardButton("Monthly", callback_data=callback_data(CallbackAction.INTERVAL, IntervalType.MONTHLY.value)),
            ],
        ])
        await update.message.reply_text("Choose how often to buy:", reply_markup=keyboard)

    async def _handle_periods(self, update: Update, context: ContextTypes.DEFAULT_TYPE, conv: Conversation, text: str):
        periods = int(text) if text.isdigit() else 0
        if periods <= 0:
            await update.message.reply_text("Enter a valid number of periods (positive integer).")
            return
        if periods > MAX_TOTAL_PERIODS:
            await update.message.reply_text(f"The maximum is {MAX_TOTAL_PERIODS} periods.")
            return

        conv.data["total_periods"] = periods
        try:
            config = self._build_config(conv)
        except ValidationError as e:
            logger.info(f"Rejected DCA draft from user {update.effective_user.id}: {e}")
            self._reset(context)
            await update.message.reply_text("Invalid input, please start again with /new.")
            return

        conv.step = ConversationStep.CONFIRM
        total = Decimal(config.amount_per_period) * periods
        lines = [
            "Confirm your Smart DCA position:",
            "",
            f"Strategy: {STRATEGY_LABELS[config.strategy]}",
            f"Buy: {config.amount_per_period} USDC x {periods} periods = {total:,} USDC",
            f"Target: {config.target_tokens[0].symbol}",
            f"Interval: {INTERVAL_LABELS[config.interval]}",
        ]
        if config.limit_price is not None:
            lines.append(f"Limit price: {config.limit_price} USDC")
        lines += ["", "Idle funds earn yield in the vault until each buy."]
        keyboard = InlineKeyboardMarkup([[
            InlineKeyboardButton("Create", callback_data=callback_data(CallbackAction.CREATE)),
            InlineKeyboardButton("Cancel", callback_data=callback_data(CallbackAction.CANCEL)),
        ]])
        await update.message.reply_text("\n".join(lines), reply_markup=keyboard)

    @staticmethod
    def _build_config(conv: Conversation) -> DCAConfig:
        data = conv.data
        return DCAConfig(
            target_tokens=[{"symbol": data.get("symbol", ""), "percentage": 100}],
            amount_per_period=data.get("amount_per_period", ""),
            interval=data.get("interval", IntervalType.WEEKLY),
            total_periods=data.get("total_periods", 0),
            strategy=data.get("strategy", StrategyType.FIXED),
            limit_price=data.get("limit_price"),
        )

    # ------------------------------------------------------------------
    # Buttons
    # ------------------------------------------------------------------

    async def _handle_callback(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        if not query or not query.from_user:
            return
        await query.answer()

        parsed = parse_callback(query.data)
        if parsed is None:
            return
        action, value = parsed
        conv = self._conversation(context)

        if action == CallbackAction.STRATEGY:
            try:
                conv.data["strategy"] = StrategyType(value)
            except ValueError:
                return
            conv.step = ConversationStep.SELECT_TARGET_TOKEN
            keyboard = InlineKeyboardMarkup([
                [InlineKeyboardButton(s, callback_data=callback_data(CallbackAction.TOKEN, s)) for s in TARGET_SYMBOLS]
            ])
            await query.edit_message_text("Choose the token to buy:", reply_markup=keyboard)

        elif action == CallbackAction.TOKEN:
            if value not in TARGET_SYMBOLS:
                return
            conv.data["symbol"] = value
            if conv.data.get("strategy") == StrategyType.LIMIT:
                conv.step = ConversationStep.ENTER_LIMIT_PRICE
                await query.edit_message_text(f"Selected {value}\n\nEnter your limit price (USDC per {value}):")
            else:
                conv.step = ConversationStep.ENTER_AMOUNT
                await query.edit_message_text(f"Selected {value}\n\nEnter the USDC amount per period:")

        elif action == CallbackAction.INTERVAL:
            try:
                conv.data["interval"] = IntervalType(value)
            except ValueError:
                return
            conv.step = ConversationStep.ENTER_PERIODS
            await query.edit_message_text("Enter the number of periods (e.g. 4 buys 4 times):")

        elif action == CallbackAction.CREATE:
            await self._confirm_create(query, context, conv)

        elif action == CallbackAction.CANCEL:
            self._reset(context)
            await query.edit_message_text("Cancelled.")

        elif action in (CallbackAction.PAUSE, CallbackAction.RESUME, CallbackAction.CONFIRM_CLOSE):
            if self._owned_position(query.from_user.id, value) is None:
                await query.edit_message_text(NOT_FOUND_TEXT)
                return
            await query.edit_message_text(await self._apply_transition(action, value))

        elif action == CallbackAction.CLOSE:
            if self._owned_position(query.from_user.id, value) is None:
                await query.edit_message_text(NOT_FOUND_TEXT)
                return
            await query.edit_message_text(
                f"Close position {value}? This cannot be undone.",
                reply_markup=InlineKeyboardMarkup([[
                    InlineKeyboardButton("Yes, close", callback_data=callback_data(CallbackAction.CONFIRM_CLOSE, value)),
                    InlineKeyboardButton("Cancel", callback_data=callback_data(CallbackAction.CANCEL)),
                ]]),
            )

    async def _confirm_create(self, query, context: ContextTypes.DEFAULT_TYPE, conv: Conversation):
        if conv.step != ConversationStep.CONFIRM:
            await query.edit_message_text("Nothing to confirm. Start with /new.")
            return
        owner = self._owner_address(query.from_user.id)
        if owner is None:
            await query.edit_message_text("Create a wallet with /wallet first.")
            return

        config = self._build_config(conv)
        self._reset(context)
        position = await self.position_engine.create(owner, config)
        await query.edit_message_text(
            "Smart DCA position created!\n\n"
            f"ID: {position.id}\n"
            f"Next execution: {format_time(position.next_execution_time)}\n\n"
            f"Use /status {position.id} for details."
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _on_error(self, update: object, context: ContextTypes.DEFAULT_TYPE):
        logger.error(f"Telegram handler error: {context.error}", exc_info=context.error)
        if isinstance(update, Update) and update.effective_message:
            await update.effective_message.reply_text("Something went wrong, please try again.")

    async def send_notification(self, message: str):
        """Send a message to all admin chat IDs."""
        if not self._app or not self._app.bot:
            return
        for chat_id in self.admin_chat_ids:
            try:
                await self._app.bot.send_message(chat_id=chat_id, text=message)
            except Exception as e:
                logger.warning(f"Failed to send Telegram notification to {chat_id}: {e}")

    def build_application(self) -> Application:
        app = Application.builder().token(self.token).build()

        app.add_handler(CommandHandler("start", self._cmd_start))
        app.add_handler(CommandHandler("help", self._cmd_help))
        app.add_handler(CommandHandler("wallet", self._cmd_wallet))
        app.add_handler(CommandHandler("new", self._cmd_new))
        app.add_handler(CommandHandler("list", self._cmd_list))
        app.add_handler(CommandHandler("status", self._cmd_status))
        app.add_handler(CommandHandler("pause", self._cmd_pause))
        app.add_handler(CommandHandler("resume", self._cmd_resume))
        app.add_handler(CommandHandler("close", self._cmd_close))
        app.add_handler(CommandHandler("yield", self._cmd_yield))
        app.add_handler(CallbackQueryHandler(self._handle_callback))
        app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, self._handle_text))
        app.add_error_handler(self._on_error)
        return app

    async def start(self):
        """Initialize the application and start long polling on the running loop."""
        self._app = self.build_application()
        logger.info("Telegram bot starting...")
        await self._app.initialize()
        await self._app.start()
        await self._app.updater.start_polling()

    async def stop(self):
        if not self._app:
            return
        await self._app.updater.stop()
        await self._app.stop()
        await self._app.shutdown()
        self._app = None
        logger.info("Telegram bot stopped")
