"""Bot handler helper functions"""

import logging

from telegram import Message, Update, User
from telegram.error import BadRequest, TelegramError

logger = logging.getLogger(__name__)


def display_name(user: User) -> str:
    """Name stored with check-ins and sessions"""
    return user.username or user.full_name or str(user.id)


async def safe_reply(message: Message, text: str, markdown: bool = True) -> None:
    """
    Reply to a message, falling back to a plain send in the same chat

    Delivery failures are logged, never raised.
    """
    parse_mode = "Markdown" if markdown else None
    try:
        await message.reply_text(text, parse_mode=parse_mode)
        return
    except TelegramError as e:
        logger.debug(f"Reply failed, sending to chat instead: {e}")

    try:
        await message.get_bot().send_message(message.chat_id, text, parse_mode=parse_mode)
    except TelegramError as e:
        logger.error(f"Failed to send message to chat {message.chat_id}: {e}")


async def safe_react(message: Message, emoji: str) -> None:
    """Acknowledge a message with a reaction"""
    try:
        await message.set_reaction(emoji)
    except BadRequest as e:
        # Reactions disabled in the chat, or the message is gone
        logger.debug(f"Reaction {emoji} rejected: {e}")
    except TelegramError as e:
        logger.warning(f"Failed to react to message {message.message_id}: {e}")


def command_args(update: Update) -> list[str]:
    """Words after the first one, lower-cased (``!reset last`` -> ``["last"]``)"""
    text = update.effective_message.text or ""
    return [word.lower() for word in text.split()[1:]]
