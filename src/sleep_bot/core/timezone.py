"""Timezone handling"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from sleep_bot.config.settings import get_settings


def get_timezone() -> ZoneInfo:
    """The configured zone"""
    settings = get_settings()
    return ZoneInfo(settings.timezone)


def utc_now() -> datetime:
    """Current instant (aware, UTC)"""
    return datetime.now(timezone.utc)
