"""Help handler"""

from telegram import Update
from telegram.ext import CommandHandler, ContextTypes

from sleep_bot.bot.handlers._helpers import safe_reply

HELP_TEXT = """📖 *How it works*

🌙 *Going to bed*
• `gn` - starts your sleep clock now
• `gn (11pm)` - you went to bed at another time
• `gn "reading first" !7` - with a note and tonight's energy rating

☀️ *Waking up*
• `gm` - stops the clock
• `gm (9:00 am) !6` - woke up earlier, with this morning's energy rating

⚡ *Energy ratings*
• `!1` to `!10` on its own fills whichever rating is still missing
• a sleep missing both takes the evening rating first

🕐 *Times*
`(11pm)`, `(9:00 am)`, `(21:15)` or just `(11)`; without am/pm the closest sensible reading wins.

↩️ *Fixing mistakes*
• `!reset last` - removes your latest check-in
• `!undo` - brings back the last reset (repeat to go further back)

📊 *Other*
• `!summary` - the last seven days
• `!export` - all sessions as CSV, sent privately

Slash forms work too: /gn, /gm, /rate, /reset, /undo, /summary, /export."""


async def help_command(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
):
    """Handle /help"""
    if not update.effective_message:
        return
    await safe_reply(update.effective_message, HELP_TEXT)


help_handler = CommandHandler("help", help_command)
