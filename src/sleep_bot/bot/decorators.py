"""Bot handler decorators"""

import logging
from functools import wraps

from telegram import Update
from telegram.ext import ContextTypes

from sleep_bot.bot.handlers._helpers import safe_reply
from sleep_bot.config.settings import get_settings

logger = logging.getLogger(__name__)


def require_sleep_chat(func):
    """
    Decorator: Run the handler only for messages in the sleep chat

    Updates from anywhere else are dropped silently.

    Example:
        @require_sleep_chat
        async def gn_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
            # update.effective_chat is the sleep chat here
            pass
    """
    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE, *args, **kwargs):
        if not update.effective_message or not update.effective_user or not update.effective_chat:
            return None
        if update.effective_chat.id != get_settings().sleep_chat_id:
            logger.debug(f"Ignoring update from chat {update.effective_chat.id}")
            return None
        return await func(update, context, *args, **kwargs)
    return wrapper


def require_admin(func):
    """
    Decorator: Validate admin permission before running handler

    Example:
        @require_admin
        async def reset_all(update: Update, context: ContextTypes.DEFAULT_TYPE):
            # Admin permission is guaranteed here
            pass
    """
    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE, *args, **kwargs):
        user_id = update.effective_user.id

        if not get_settings().is_admin(user_id):
            logger.warning(f"User {user_id} attempted to access admin feature without permission")
            if update.effective_message:
                await safe_reply(update.effective_message, "Not allowed.")
            return None

        return await func(update, context, *args, **kwargs)
    return wrapper
