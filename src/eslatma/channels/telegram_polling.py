import asyncio
import datetime
from functools import wraps

import telegram
from telegram.constants import ParseMode
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from eslatma.channels.base import MessageSink
from eslatma.config import messages
from eslatma.core.context import AppContext
from eslatma.core.render import render_created, render_pending
from eslatma.core.reminder_service import ConfirmationRequested, ReminderService
from eslatma.errors import DeliveryFailed, NoTimeFound, StaleConfirmation
from eslatma.logger import logger
from eslatma.metrics import runtime_metrics

CANCEL_PATTERN = r"^/ochir_(\d+)(?:@\w+)?$"
CONFIRM_PATTERN = r"^tomorrow_(yes|no)(?::([0-9a-f]+))?$"


def main_menu() -> telegram.ReplyKeyboardMarkup:
    return telegram.ReplyKeyboardMarkup([[messages.LIST_BUTTON]], resize_keyboard=True)


def confirmation_keyboard(token: str) -> telegram.InlineKeyboardMarkup:
    return telegram.InlineKeyboardMarkup([[
        telegram.InlineKeyboardButton(messages.YES, callback_data=f"tomorrow_yes:{token}"),
        telegram.InlineKeyboardButton(messages.NO, callback_data=f"tomorrow_no:{token}"),
    ]])


def _service(context: ContextTypes.DEFAULT_TYPE) -> ReminderService:
    return context.bot_data["service"]


def _ctx(context: ContextTypes.DEFAULT_TYPE) -> AppContext:
    return context.bot_data["ctx"]


def apologize_on_error(func):
    """在 handler 边界兜底: 单条消息处理失败只回复道歉，不影响其他消息和投递"""
    @wraps(func)
    async def decorated(update: telegram.Update, context: ContextTypes.DEFAULT_TYPE):
        try:
            return await func(update, context)
        except Exception as e:
            chat_id = update.effective_chat.id if update.effective_chat else None
            logger.error(f"处理 chat_id={chat_id} 的更新失败: {e}", exc_info=e)
            if update.effective_message is not None:
                try:
                    await update.effective_message.reply_text(messages.APOLOGY, reply_markup=main_menu())
                except telegram.error.TelegramError as send_error:
                    logger.error(f"向 chat_id={chat_id} 发送道歉消息失败: {send_error}")
    return decorated


@apologize_on_error
async def cmd_start(update: telegram.Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.info(f"收到 /start 命令来自 chat_id: {update.effective_chat.id}")
    await update.message.reply_text(messages.START, reply_markup=main_menu(), parse_mode=ParseMode.HTML)


@apologize_on_error
async def show_pending(update: telegram.Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    owner = update.effective_chat.id
    reminders = await _service(context).list_pending(owner)
    text = render_pending(reminders, _ctx(context).tz, _ctx(context).now())
    await update.message.reply_text(text, reply_markup=main_menu(), parse_mode=ParseMode.HTML)


@apologize_on_error
async def cancel_reminder(update: telegram.Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    owner = update.effective_chat.id
    reminder_id = int(context.matches[0].group(1))
    deleted = await _service(context).cancel(owner, reminder_id)
    await update.message.reply_text(messages.DELETED if deleted else messages.NOT_FOUND, reply_markup=main_menu())


@apologize_on_error
async def process_message(update: telegram.Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.message or not update.message.text:
        return

    owner = update.effective_chat.id
    runtime_metrics.record_msg_in()
    logger.info(f"chat_id: {owner} 消息内容: {update.message.text}")

    try:
        outcome = await _service(context).handle_text(owner, update.message.text)
    except NoTimeFound:
        await update.message.reply_text(messages.ASK_FOR_TIME, reply_markup=main_menu())
        return

    if isinstance(outcome, ConfirmationRequested):
        await update.message.reply_text(
            messages.TIME_PASSED,
            reply_markup=confirmation_keyboard(outcome.pending.token),
        )
        return

    await update.message.reply_text(
        render_created(outcome.reminder, _ctx(context).tz),
        reply_markup=main_menu(),
        parse_mode=ParseMode.HTML,
    )


@apologize_on_error
async def process_confirmation(update: telegram.Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    await query.answer()

    owner = update.effective_chat.id
    match = context.matches[0]
    accepted = match.group(1) == "yes"
    token = match.group(2)

    try:
        outcome = await _service(context).resolve_confirmation(owner, token, accepted)
    except StaleConfirmation:
        logger.info(f"chat_id: {owner} 的确认已失效, 忽略 (token={token})")
        await query.edit_message_text(messages.CONFIRMATION_STALE)
        return

    if outcome is None:
        await query.edit_message_text(messages.CONFIRMATION_DECLINED)
        return

    await query.edit_message_text(
        render_created(outcome.reminder, _ctx(context).tz, tomorrow=True),
        parse_mode=ParseMode.HTML,
    )


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """处理 telegram 库中发生的错误"""
    logger.error(f"Telegram 错误: {context.error}", exc_info=context.error)


def bot_error_callback(error: telegram.error.TelegramError) -> None:
    if isinstance(error, telegram.error.NetworkError):
        logger.warning(f"Telegram Bot 网络错误: {error}")
    else:
        logger.error(f"Telegram Bot 发生预期外的错误: {error}", exc_info=error)


class TelegramSink(MessageSink):
    def __init__(self, bot: telegram.Bot) -> None:
        self.bot = bot

    async def send(self, owner: int, text: str) -> None:
        try:
            await self.bot.send_message(
                chat_id=owner,
                text=text,
                parse_mode=ParseMode.HTML,
                reply_markup=main_menu(),
            )
        except telegram.error.TelegramError as e:
            raise DeliveryFailed(owner, str(e)) from e


def build_application(token: str, ctx: AppContext) -> Application:
    # concurrent_updates: 某条消息等待 LLM 时不阻塞其他用户的消息
    app = ApplicationBuilder().token(token).concurrent_updates(True).build()
    app.bot_data["ctx"] = ctx
    app.bot_data["service"] = ReminderService(ctx)

    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("kutilayotgan", show_pending))
    app.add_handler(MessageHandler(filters.Text([messages.LIST_BUTTON]), show_pending))
    app.add_handler(MessageHandler(filters.Regex(CANCEL_PATTERN), cancel_reminder))
    app.add_handler(CallbackQueryHandler(process_confirmation, pattern=CONFIRM_PATTERN))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, process_message))
    app.add_error_handler(error_handler)
    return app


async def main(app: Application, shutdown_event: asyncio.Event) -> None:
    """启动长轮询直到 shutdown_event 被设置；app 需已调用过 initialize()"""
    try:
        await app.updater.start_polling(
            poll_interval=0.5,
            timeout=datetime.timedelta(seconds=10),
            bootstrap_retries=-1,
            drop_pending_updates=False,  # 保留下线期间的消息
            error_callback=bot_error_callback,
        )
        await app.start()
        logger.info("Telegram Bot Polling 已启动")

        await shutdown_event.wait()
    finally:
        logger.info("关闭 Telegram Bot Polling...")
        if app.updater.running:
            await app.updater.stop()
        if app.running:
            await app.stop()
        await app.shutdown()


__all__ = ["TelegramSink", "build_application", "main", "main_menu", "confirmation_keyboard"]
