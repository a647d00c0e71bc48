"""
Telegram Frontend for Expense Tracker

This is the chat interface household members interact with daily.

DESIGN PRINCIPLES:
1. The adapter only translates: Telegram update in, BotReply out
2. Startup is fail-fast: a bot that cannot reach its ledger never polls
3. Command registration is best effort (autocomplete only)

Run with:
    python -m app.main
"""

import sys
from typing import Optional

import structlog
from telegram import (
    BotCommand,
    BotCommandScopeAllGroupChats,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    Update,
)
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
)

from expense_tracker.audit import configure_logging
from expense_tracker.config import get_settings, validate_all_settings
from expense_tracker.orchestrator import (
    BOT_COMMANDS,
    BotReply,
    ChatUser,
    ExpenseBot,
    create_app_components,
)


logger = structlog.get_logger(__name__)

BOT_DATA_KEY = "expense_bot"


def chat_user(update: Update) -> ChatUser:
    user = update.effective_user
    if user is None:
        return ChatUser()
    return ChatUser(
        user_id=user.id,
        username=user.username,
        first_name=user.first_name,
    )


def reply_markup(reply: BotReply) -> Optional[InlineKeyboardMarkup]:
    if not reply.keyboard:
        return None
    return InlineKeyboardMarkup([
        [
            InlineKeyboardButton(button.text, callback_data=button.callback_data)
            for button in row
        ]
        for row in reply.keyboard
    ])


async def send_reply(update: Update, reply: BotReply) -> None:
    await update.effective_message.reply_text(
        reply.text,
        parse_mode=reply.parse_mode,
        reply_markup=reply_markup(reply),
    )


def get_bot(context: ContextTypes.DEFAULT_TYPE) -> ExpenseBot:
    return context.application.bot_data[BOT_DATA_KEY]


def command(name: str, needs_text: bool = False):
    """Build a CommandHandler callback that forwards to ExpenseBot.<name>."""

    async def callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        handler = getattr(get_bot(context), name)
        user = chat_user(update)
        if needs_text:
            reply = await handler(user, update.effective_message.text or "")
        else:
            reply = await handler(user)
        await send_reply(update, reply)

    return callback


async def on_button(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    reply = await get_bot(context).handle_callback(chat_user(update), query.data)

    if reply is None:
        await query.answer()
        return

    await query.answer(text=reply.notice)

    if reply.edit_text:
        try:
            await query.edit_message_text(reply.edit_text)
        except TelegramError as e:
            # Message too old or already edited
            logger.debug("edit_message_failed", error=str(e))

    if query.message is not None:
        await query.message.reply_text(
            reply.text,
            parse_mode=reply.parse_mode,
            reply_markup=reply_markup(reply),
        )


async def on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error("telegram_update_failed", error=str(context.error), exc_info=context.error)


async def post_init(application: Application) -> None:
    """
    Register commands, then run the startup ledger check.

    An exception here stops the application before polling starts.
    """
    commands = [BotCommand(name, description) for name, description in BOT_COMMANDS]
    try:
        await application.bot.set_my_commands(commands)
        await application.bot.set_my_commands(
            commands, scope=BotCommandScopeAllGroupChats()
        )
        logger.info("bot_commands_registered", count=len(commands))
    except TelegramError as e:
        logger.warning("bot_commands_registration_failed", error=str(e))

    result = await application.bot_data[BOT_DATA_KEY].initialize()
    logger.info(
        "default_sheet_ready",
        sheet=result.sheet_name,
        regions_written=result.regions_written,
    )


def build_application(bot: ExpenseBot, token: str) -> Application:
    application = ApplicationBuilder().token(token).post_init(post_init).build()
    application.bot_data[BOT_DATA_KEY] = bot

    application.add_handler(CommandHandler("start", command("start")))
    application.add_handler(CommandHandler("help", command("help")))
    application.add_handler(CommandHandler(["expense", "ex"], command("expense", needs_text=True)))
    application.add_handler(CommandHandler("total", command("total")))
    application.add_handler(CommandHandler("total_all", command("total_all")))
    application.add_handler(CommandHandler("set_target", command("set_target", needs_text=True)))
    application.add_handler(CommandHandler("setup_sheet", command("setup_sheet")))
    application.add_handler(CommandHandler("approve", command("approve", needs_text=True)))
    application.add_handler(CommandHandler("unapprove", command("unapprove", needs_text=True)))
    application.add_handler(CommandHandler("list_approved", command("list_approved")))
    application.add_handler(CommandHandler("myinfo", command("myinfo")))
    application.add_handler(CallbackQueryHandler(on_button))
    application.add_error_handler(on_error)

    return application


def main() -> None:
    """Main application entry point."""
    status = validate_all_settings()
    failed = [name for name in ("telegram", "google_sheets", "app") if not status.get(name)]
    if failed:
        configure_logging()
        for name in failed:
            logger.error("settings_invalid", section=name, error=status.get(f"{name}_error"))
        sys.exit(1)

    settings = get_settings()
    app_settings = settings.app
    configure_logging("DEBUG" if app_settings.debug_mode else app_settings.log_level)

    bot = create_app_components(settings)
    application = build_application(bot, settings.telegram.bot_token)

    logger.info(
        "bot_starting",
        environment=app_settings.app_environment,
        sheet=settings.google_sheets.sheet_name,
    )
    application.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
