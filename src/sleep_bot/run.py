"""Bot entry point (filters warnings before imports)"""

import logging
import sys
import warnings

# ANSI colour codes
class Colors:
    """ANSI colour codes"""
    RESET = "\033[0m"
    BOLD = "\033[1m"


# Level colours
LOG_COLORS = {
    logging.DEBUG: "\033[38;5;245m",      # grey
    logging.INFO: "\033[38;5;79m",        # teal
    logging.WARNING: "\033[38;5;221m",    # soft amber
    logging.ERROR: "\033[38;5;203m",      # soft red
    logging.CRITICAL: "\033[1;38;5;203m", # bold soft red
}

# Fixed-width level names
LOG_LEVEL_NAMES = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO ",
    logging.WARNING: "WARN ",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "CRIT ",
}


# Must be installed before telegram is imported
warnings.filterwarnings("ignore", category=UserWarning, module="telegram")

from sleep_bot.config.settings import get_settings
from sleep_bot.core.timezone import get_timezone

settings = get_settings()
TZ = get_timezone()


class ColorFormatter(logging.Formatter):
    """Coloured, aligned log formatter"""

    def formatTime(self, record, datefmt=None):
        """Render record times in the configured zone"""
        import time
        from datetime import datetime

        dt = datetime.fromtimestamp(record.created, tz=TZ)
        ct = dt.replace(tzinfo=None).timetuple()

        if datefmt:
            s = time.strftime(datefmt, ct)
        else:
            t = time.strftime(self.default_time_format, ct)
            s = f"{t[:19]}"  # seconds precision
        return s

    def format(self, record):
        """Format the record and colour the whole line"""
        level_color = LOG_COLORS.get(record.levelno, "")
        record.levelname = LOG_LEVEL_NAMES.get(record.levelno, record.levelname)

        result = super().format(record)

        if level_color:
            result = f"{level_color}{result}{Colors.RESET}"

        return result


logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

for handler in logging.root.handlers:
    handler.setFormatter(ColorFormatter(
        fmt="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))

# Quiet library loggers
logging.getLogger("apscheduler.executors.default").setLevel(logging.WARNING)
logging.getLogger("apscheduler.scheduler").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.INFO)
logging.getLogger("telegram").setLevel(logging.INFO)
logging.getLogger("telegram.ext").setLevel(logging.INFO)

from sleep_bot.bot.app import create_app


def main():
    """Start the bot"""
    logger = logging.getLogger(__name__)
    logger.info("Starting bot...")
    app = create_app()
    logger.info("Bot created, polling for updates...")
    app.run_polling()


if __name__ == "__main__":
    main()
