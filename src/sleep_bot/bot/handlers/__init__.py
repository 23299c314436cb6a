"""Bot handlers"""

from sleep_bot.bot.handlers.start import start_handler
from sleep_bot.bot.handlers.help import help_handler
from sleep_bot.bot.handlers.checkin import gm_handler, gn_handler, rate_handler, text_message_handler
from sleep_bot.bot.handlers.reset import reset_handler, undo_handler
from sleep_bot.bot.handlers.export import export_handler
from sleep_bot.bot.handlers.summary import summary_handler

__all__ = [
    "start_handler",
    "help_handler",
    "gn_handler",
    "gm_handler",
    "rate_handler",
    "text_message_handler",
    "reset_handler",
    "undo_handler",
    "export_handler",
    "summary_handler",
]
