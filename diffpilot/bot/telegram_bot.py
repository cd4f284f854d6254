"""Telegram adapter - forwards chat messages to the command dispatcher."""

import structlog
from telegram import Update
from telegram.constants import ChatType
from telegram.ext import Application, ApplicationBuilder, ContextTypes, MessageHandler, filters

from diffpilot.api.container import Container
from diffpilot.bot.formatting import split_long_message

log = structlog.get_logger()

NOT_A_COMMAND = "I only understand commands. Send /help to see them."
RESTRICTED = "Sorry, this bot is restricted."


def is_authorized(user_id: object, allowed_user_ids: list[str]) -> bool:
    """Empty allow-list admits everyone."""
    if not allowed_user_ids:
        return True
    return str(user_id) in allowed_user_ids


async def send_text(bot, chat_id: object, text: str, max_length: int = 4000) -> None:
    for chunk in split_long_message(text, max_length):
        await bot.send_message(chat_id=chat_id, text=chunk)


def build_application(container: Container) -> Application:
    """Create the python-telegram-bot application wired to ``container``."""
    telegram = container.config.telegram
    if not telegram.bot_token:
        raise ValueError("Telegram bot token is not configured (BOT_TOKEN)")

    async def on_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.effective_message
        user = update.effective_user
        chat = update.effective_chat
        if message is None or user is None or chat is None or not message.text:
            return
        if not is_authorized(user.id, telegram.allowed_user_ids):
            log.warning("unauthorized_user", user_id=user.id, username=user.username)
            await message.reply_text(RESTRICTED)
            return

        reply = await container.dispatcher.handle(user.id, chat.id, message.text)
        if reply is None:
            if chat.type == ChatType.PRIVATE:
                await message.reply_text(NOT_A_COMMAND)
            return
        log.info("command_handled", user_id=user.id, chat_id=chat.id, ok=reply.ok)
        await send_text(context.bot, chat.id, reply.text, telegram.max_message_length)

    async def post_init(application: Application) -> None:
        seeded = container.seed_presets()
        log.info("bot_started", presets=len(container.presets), seeded=seeded)
        if telegram.notify_chat_id:
            reply = await container.dispatcher.handle(telegram.notify_chat_id, telegram.notify_chat_id, "/start")
            try:
                await send_text(application.bot, telegram.notify_chat_id, reply.text, telegram.max_message_length)
            except Exception as e:  # noqa: BLE001
                log.warning("startup_notification_failed", chat_id=telegram.notify_chat_id, reason=str(e))

    async def post_shutdown(application: Application) -> None:
        await container.aclose()
        log.info("bot_stopped")

    application = (
        ApplicationBuilder()
        .token(telegram.bot_token)
        .concurrent_updates(True)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )
    application.add_handler(MessageHandler(filters.TEXT, on_message))
    return application
