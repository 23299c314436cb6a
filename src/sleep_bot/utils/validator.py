"""Validation helpers"""

from sleep_bot.config.constants import MAX_RATING, MIN_RATING


def clean_input(text: str) -> str:
    """
    Clean input text

    Args:
        text: Input text

    Returns:
        Text with surrounding whitespace removed and inner runs collapsed
    """
    # Strip leading/trailing whitespace
    text = text.strip()

    # Collapse inner whitespace
    text = " ".join(text.split())

    return text


def validate_rating(value) -> int | None:
    """
    Validate an energy rating

    Args:
        value: Candidate rating (int or numeric string)

    Returns:
        The rating, or None when it is not an integer in 1-10
    """
    try:
        rating = int(str(value).strip().lstrip("!"))
    except (TypeError, ValueError):
        return None
    if rating < MIN_RATING or rating > MAX_RATING:
        return None
    return rating
