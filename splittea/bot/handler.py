from loguru import logger
from telegram import BotCommand, Update
from telegram.ext import Application, ContextTypes, MessageHandler, filters

from splittea.bot.states import Command
from splittea.config import get_settings
from splittea.deps import get_session_manager
from splittea.models.schemas import IncomingMessage

settings = get_settings()


def to_incoming(update: Update) -> IncomingMessage | None:
    """Map a Telegram update to a transport-neutral message."""
    message = update.effective_message
    if message is None or message.text is None:
        return None
    user = update.effective_user
    sender = f"@{user.username}" if user and user.username else None
    return IncomingMessage(session_id=message.chat_id, sender=sender, text=message.text)


async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Entry point for every text message, commands included."""
    incoming = to_incoming(update)
    if incoming is None:
        return
    logger.info("Telegram message in chat {} from {}", incoming.session_id, incoming.sender)

    reply = await get_session_manager().handle(incoming)
    await update.effective_message.reply_text(reply)


async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE):
    logger.opt(exception=context.error).error("An error has occurred in the dispatcher")


async def register_commands(app: Application) -> None:
    """Publish the command list shown in Telegram's menu."""
    await app.bot.set_my_commands(
        [BotCommand(command.value, command.description) for command in Command]
    )


def build_bot_app() -> Application:
    """Build and return the Telegram bot application."""
    # Per-chat ordering is enforced by the SessionManager
    app = (
        Application.builder()
        .token(settings.telegram_bot_token)
        .concurrent_updates(True)
        .build()
    )

    app.add_handler(MessageHandler(filters.TEXT, handle_message))
    app.add_error_handler(handle_error)

    return app
